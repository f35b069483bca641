from pydantic import BaseModel, Field
from typing import Optional


class CreateBlockRequest(BaseModel):
    """Link an entity of the parent diagram to a child diagram"""
    parent_entity_key: str = Field(min_length=1, max_length=255)
    child_diagram_id: str = Field(min_length=1, max_length=64)
    label: Optional[str] = Field(default=None, max_length=255)
    created_by: Optional[str] = None  # set from auth context by the caller


class UpdateBlockRequest(BaseModel):
    """Only fields present in the request body are patched"""
    child_diagram_id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    label: Optional[str] = Field(default=None, max_length=255)


class SourceRequest(BaseModel):
    source: str
    strip_directives: bool = True
    collect_errors: bool = True


class BuildDirectiveRequest(BaseModel):
    entity_key: str
    child_diagram_id: str
    label: Optional[str] = None
