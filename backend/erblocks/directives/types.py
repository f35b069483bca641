"""
Types shared by the block directive parser and the entity extractor.

A block directive is a Mermaid comment that links an entity in an ER diagram
to another diagram:

    %%block: User -> diagramId=abc123 label="User Details"

Directives are re-derived from source text on every parse and are never
persisted on their own.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class DiagnosticCode(Enum):
    MISSING_ARROW = "missing_arrow"
    MISSING_DIAGRAM_ID = "missing_diagram_id"
    MISSING_ENTITY = "missing_entity"
    EMPTY_DIAGRAM_ID = "empty_diagram_id"
    INVALID_ENTITY = "invalid_entity"
    UNCLOSED_LABEL = "unclosed_label"
    INVALID_FORMAT = "invalid_format"
    UNKNOWN_ENTITY = "unknown_entity"


@dataclass(frozen=True)
class Directive:
    entity_key: str
    child_diagram_id: str
    label: Optional[str] = None
    # 1-based source line, informational only
    line: Optional[int] = field(default=None, compare=False)

    def to_dict(self) -> dict:
        return {
            "entity_key": self.entity_key,
            "child_diagram_id": self.child_diagram_id,
            "label": self.label,
            "line": self.line,
        }


@dataclass
class ParseDiagnostic:
    """A malformed or dangling directive. Informational, never raised."""
    line: int
    content: str
    message: str
    code: DiagnosticCode = DiagnosticCode.INVALID_FORMAT

    def to_dict(self) -> dict:
        return {
            "line": self.line,
            "content": self.content,
            "message": self.message,
            "code": self.code.value,
        }


@dataclass
class ParserOptions:
    strip_directives: bool = True
    collect_errors: bool = True


@dataclass
class ParseResult:
    directives: List[Directive] = field(default_factory=list)
    errors: List[ParseDiagnostic] = field(default_factory=list)
    # Source safe to hand to the Mermaid renderer
    cleaned_source: str = ""

    def to_dict(self) -> dict:
        return {
            "directives": [d.to_dict() for d in self.directives],
            "errors": [e.to_dict() for e in self.errors],
            "cleaned_source": self.cleaned_source,
        }


@dataclass
class EntityInfo:
    name: str
    line: int
    has_directive: bool = False
    directive: Optional[Directive] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "line": self.line,
            "has_directive": self.has_directive,
            "directive": self.directive.to_dict() if self.directive else None,
        }


EntityMap = Dict[str, EntityInfo]
