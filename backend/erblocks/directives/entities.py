"""
Entity discovery for Mermaid ER diagram source.

Entities are found structurally, without a full Mermaid parser:
  - a name at the start of a line followed by `{` or a relationship leg
        Order {            Order ||--o{ LineItem : contains
  - both sides of a relationship expression anywhere on a line
        User ||--o{ Order : places

Each entity is cross-referenced with the block directives in the same source
so the renderer knows where to place drill-down badges.
"""

import re
from typing import Dict, List, Optional

from erblocks.directives.parser import parse_directives
from erblocks.directives.types import (
    DiagnosticCode,
    Directive,
    EntityInfo,
    EntityMap,
    ParseDiagnostic,
)

_IDENT = r"[A-Za-z_][A-Za-z0-9_]*"
_LEFT_LEG = r"(?:\|o|\|\||\}o|\}\|)"
_RIGHT_LEG = r"(?:o\||\|\||o\{|\|\{)"
_LINE = r"(?:--|\.\.)"

ENTITY_DEFINITION_RE = re.compile(rf"^[ \t]*({_IDENT})[ \t]*(?:\{{|{_LEFT_LEG})")
ENTITY_RELATIONSHIP_RE = re.compile(
    rf"({_IDENT})[ \t]*{_LEFT_LEG}{_LINE}{_RIGHT_LEG}[ \t]*({_IDENT})"
)


def _first_directive_by_key(directives: List[Directive]) -> Dict[str, Directive]:
    by_key: Dict[str, Directive] = {}
    for directive in directives:
        by_key.setdefault(directive.entity_key, directive)
    return by_key


def _extract(source: str, directives: List[Directive]) -> EntityMap:
    entity_map: EntityMap = {}
    by_key = _first_directive_by_key(directives)

    def register(name: str, line_number: int):
        if name in entity_map:
            return
        directive = by_key.get(name)
        entity_map[name] = EntityInfo(
            name=name,
            line=line_number,
            has_directive=directive is not None,
            directive=directive,
        )

    for index, line in enumerate((source or "").split("\n")):
        # comments and directives
        if line.strip().startswith("%%"):
            continue

        def_match = ENTITY_DEFINITION_RE.match(line)
        if def_match:
            register(def_match.group(1), index + 1)

        rel_match = ENTITY_RELATIONSHIP_RE.search(line)
        if rel_match:
            register(rel_match.group(1), index + 1)
            register(rel_match.group(2), index + 1)

    return entity_map


def extract_entities(source: str) -> EntityMap:
    """
    Map of entity name -> EntityInfo, in order of first appearance.

    Example:
        erDiagram
          User ||--o{ Order : places
          %%block: User -> diagramId=xyz label="Details"

        extract_entities(src)["User"].has_directive   # True
        extract_entities(src)["Order"].has_directive  # False
    """
    return _extract(source, parse_directives(source))


def validate_directives(source: str) -> List[ParseDiagnostic]:
    """Report directives whose entity key does not name an entity in the diagram."""
    directives = parse_directives(source)
    entities = _extract(source, directives)
    lines = (source or "").split("\n")
    errors: List[ParseDiagnostic] = []

    for directive in directives:
        if directive.entity_key in entities:
            continue
        line_number = directive.line or 0
        content = lines[line_number - 1].strip() if 0 < line_number <= len(lines) else ""
        errors.append(
            ParseDiagnostic(
                line=line_number,
                content=content,
                message=f"Block directive references unknown entity: {directive.entity_key}",
                code=DiagnosticCode.UNKNOWN_ENTITY,
            )
        )

    return errors


def find_directive_for_entity(source: str, entity_key: str) -> Optional[Directive]:
    return _first_directive_by_key(parse_directives(source)).get(entity_key)


def has_directive(source: str, entity_key: str) -> bool:
    return find_directive_for_entity(source, entity_key) is not None
