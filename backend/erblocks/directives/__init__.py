"""
Block directive parsing and entity discovery for Mermaid ER source.
"""

from erblocks.directives.types import (
    DiagnosticCode,
    Directive,
    EntityInfo,
    EntityMap,
    ParseDiagnostic,
    ParseResult,
    ParserOptions,
)

from erblocks.directives.parser import (
    build_directive,
    count_directives,
    is_directive,
    parse_directives,
    parse_with_diagnostics,
)

from erblocks.directives.entities import (
    extract_entities,
    find_directive_for_entity,
    has_directive,
    validate_directives,
)

__all__ = [
    "DiagnosticCode",
    "Directive",
    "EntityInfo",
    "EntityMap",
    "ParseDiagnostic",
    "ParseResult",
    "ParserOptions",
    "build_directive",
    "count_directives",
    "is_directive",
    "parse_directives",
    "parse_with_diagnostics",
    "extract_entities",
    "find_directive_for_entity",
    "has_directive",
    "validate_directives",
]
