from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Edge:
    """A persisted block: `parent_entity_key` in `parent_diagram_id` -> `child_diagram_id`."""
    id: str
    parent_diagram_id: str
    parent_entity_key: str
    child_diagram_id: str
    label: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "parent_diagram_id": self.parent_diagram_id,
            "parent_entity_key": self.parent_entity_key,
            "child_diagram_id": self.child_diagram_id,
            "label": self.label,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class RemovalResult:
    id: str
    deleted: bool = True

    def to_dict(self) -> dict:
        return {"deleted": self.deleted, "id": self.id}
