"""
Block directive parser for Mermaid ER diagrams.

Parses %%block: comment directives that link an entity in a parent diagram
to a child diagram. The parser never raises on bad input: malformed
directives come back as diagnostics, and Mermaid keeps treating them as
ordinary comments.

Usage:
    result = parse_with_diagnostics(source)
    render(result.cleaned_source)
    for err in result.errors:
        print(f"line {err.line}: {err.message}")
"""

import logging
from dataclasses import dataclass
from itertools import islice
from typing import List, Optional, Tuple

from erblocks.directives.tokenizer import (
    ID_VALUE_RE,
    IDENT_RE,
    MARKER,
    Token,
    TokenKind,
    escape_label,
    iter_tokens,
    tokenize_line,
)
from erblocks.directives.types import (
    DiagnosticCode,
    Directive,
    ParseDiagnostic,
    ParseResult,
    ParserOptions,
)

logger = logging.getLogger(__name__)

EXPECTED_FORMAT = '%%block: EntityName -> diagramId=<id> [label="Label"]'

# MARKER IDENT ARROW ID_PARAM LABEL_PARAM plus one blank run before each
MAX_DIRECTIVE_TOKENS = 9

MESSAGES = {
    DiagnosticCode.MISSING_ARROW: 'Missing "->" between entity and diagramId',
    DiagnosticCode.MISSING_DIAGRAM_ID: 'Missing "diagramId=" parameter',
    DiagnosticCode.MISSING_ENTITY: 'Missing entity name before "->"',
    DiagnosticCode.EMPTY_DIAGRAM_ID: "Empty diagramId value",
    DiagnosticCode.INVALID_ENTITY: "Entity name must start with a letter or underscore",
    DiagnosticCode.UNCLOSED_LABEL: "Unclosed label quotation",
    DiagnosticCode.INVALID_FORMAT: f"Invalid block directive format. Expected: {EXPECTED_FORMAT}",
}


@dataclass
class _Match:
    directive: Directive
    # index of the first token after the directive
    next_index: int
    end: int


def _skip_blanks(tokens: List[Token], i: int) -> int:
    while i < len(tokens) and tokens[i].kind == TokenKind.BLANK:
        i += 1
    return i


def _match_tokens(tokens: List[Token]) -> Optional[_Match]:
    """
    State machine over one line's tokens, starting at a MARKER token.

    MARKER -> IDENT -> ARROW -> ID_PARAM [-> BLANK+ LABEL_PARAM]
    Blanks between tokens are skipped. A label parameter that is present
    but unterminated fails the whole directive.
    """
    if not tokens or tokens[0].kind != TokenKind.MARKER:
        return None

    i = _skip_blanks(tokens, 1)
    if i >= len(tokens) or tokens[i].kind != TokenKind.IDENT:
        return None
    entity_key = tokens[i].value

    i = _skip_blanks(tokens, i + 1)
    if i >= len(tokens) or tokens[i].kind != TokenKind.ARROW:
        return None

    i = _skip_blanks(tokens, i + 1)
    if i >= len(tokens) or tokens[i].kind != TokenKind.ID_PARAM or not tokens[i].value:
        return None
    child_id = tokens[i].value
    end_index = i + 1

    label = None
    j = _skip_blanks(tokens, end_index)
    if j > end_index and j < len(tokens) and tokens[j].kind == TokenKind.LABEL_PARAM:
        if not tokens[j].terminated:
            return None
        label = tokens[j].value or None
        end_index = j + 1

    return _Match(
        directive=Directive(entity_key=entity_key, child_diagram_id=child_id, label=label),
        next_index=end_index,
        end=tokens[end_index - 1].end,
    )


def _is_full_match(tokens: List[Token], match: Optional[_Match]) -> bool:
    if match is None:
        return False
    return all(tok.kind == TokenKind.BLANK for tok in tokens[match.next_index:])


def _is_directive_line(line: str) -> bool:
    return line.lstrip().startswith(MARKER)


def _scan(source: str) -> List[Tuple[Directive, int]]:
    """Every complete directive anywhere in `source`, with its start offset."""
    found: List[Tuple[Directive, int]] = []
    pos = source.find(MARKER)

    while pos != -1:
        tokens = list(islice(iter_tokens(source, pos, stop_at_newline=True), MAX_DIRECTIVE_TOKENS))
        match = _match_tokens(tokens)
        if match:
            found.append((match.directive, pos))
            pos = source.find(MARKER, match.end)
        else:
            pos = source.find(MARKER, pos + len(MARKER))

    return found


def parse_directives(source: str) -> List[Directive]:
    """
    Parse every syntactically complete directive in the text, in source order.

    Directives may sit on any line, anywhere in the line.
    """
    if not source:
        return []

    directives = []
    line = 1
    last = 0
    for directive, offset in _scan(source):
        line += source.count("\n", last, offset)
        last = offset
        directives.append(
            Directive(
                entity_key=directive.entity_key,
                child_diagram_id=directive.child_diagram_id,
                label=directive.label,
                line=line,
            )
        )
    return directives


def classify_malformed(line: str) -> DiagnosticCode:
    """
    Pick the single diagnostic category for a malformed directive line.
    Categories are checked in a fixed priority order.
    """
    tokens = tokenize_line(line, max(line.find(MARKER), 0))
    kinds = {tok.kind for tok in tokens}

    if TokenKind.ARROW not in kinds:
        return DiagnosticCode.MISSING_ARROW

    if TokenKind.ID_PARAM not in kinds:
        return DiagnosticCode.MISSING_DIAGRAM_ID

    first = _skip_blanks(tokens, 1)
    first_kind = tokens[first].kind if first < len(tokens) else None

    if first_kind == TokenKind.ARROW:
        return DiagnosticCode.MISSING_ENTITY

    if any(tok.kind == TokenKind.ID_PARAM and not tok.value for tok in tokens):
        return DiagnosticCode.EMPTY_DIAGRAM_ID

    if first_kind != TokenKind.IDENT:
        return DiagnosticCode.INVALID_ENTITY

    if any(tok.kind == TokenKind.LABEL_PARAM and not tok.terminated for tok in tokens):
        return DiagnosticCode.UNCLOSED_LABEL

    return DiagnosticCode.INVALID_FORMAT


def parse_with_diagnostics(source: str, options: Optional[ParserOptions] = None) -> ParseResult:
    """
    Line-by-line parse returning directives, diagnostics and cleaned source.

    A line that starts with the marker must match the grammar in full.
    Valid directive lines are dropped from the cleaned source when
    `strip_directives` is set. Malformed lines are always kept: Mermaid
    renders them as plain comments.
    """
    opts = options or ParserOptions()
    result = ParseResult()
    cleaned_lines: List[str] = []

    for index, line in enumerate((source or "").split("\n")):
        line_number = index + 1

        if not _is_directive_line(line):
            cleaned_lines.append(line)
            continue

        tokens = tokenize_line(line, line.find(MARKER))
        match = _match_tokens(tokens)

        if _is_full_match(tokens, match):
            d = match.directive
            result.directives.append(
                Directive(d.entity_key, d.child_diagram_id, d.label, line=line_number)
            )
            if not opts.strip_directives:
                cleaned_lines.append(line)
            continue

        cleaned_lines.append(line)
        if opts.collect_errors:
            code = classify_malformed(line)
            result.errors.append(
                ParseDiagnostic(
                    line=line_number,
                    content=line.strip(),
                    message=MESSAGES[code],
                    code=code,
                )
            )

    if result.errors:
        logger.debug("Found %d malformed block directive(s)", len(result.errors))

    result.cleaned_source = "\n".join(cleaned_lines)
    return result


def is_directive(text: str) -> bool:
    """True if `text` holds exactly one directive."""
    return len(_scan(text or "")) == 1


def build_directive(entity_key: str, child_diagram_id: str, label: Optional[str] = None) -> str:
    """
    Canonical directive text.

        build_directive("User", "abc-123", "User Details")
        # '%%block: User -> diagramId=abc-123 label="User Details"'
    """
    if not entity_key or not IDENT_RE.fullmatch(entity_key):
        raise ValueError(f"Invalid entity key for block directive: {entity_key!r}")
    if not child_diagram_id or not ID_VALUE_RE.fullmatch(child_diagram_id):
        raise ValueError(f"Invalid diagram id for block directive: {child_diagram_id!r}")

    directive = f"{MARKER} {entity_key} -> diagramId={child_diagram_id}"
    if label:
        if "\n" in label or "\r" in label:
            raise ValueError("Block directive labels cannot contain line breaks")
        directive += f' label="{escape_label(label)}"'
    return directive


def count_directives(source: str) -> int:
    return len(_scan(source or ""))
