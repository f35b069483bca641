"""
Tokenizer for the %%block: directive micro-grammar.

    %%block: <Entity> -> diagramId=<id> [label="<text>"]

The tokenizer is context free: it splits a run of text into MARKER, IDENT,
ARROW, ID_PARAM, LABEL_PARAM, BLANK, NEWLINE and OTHER tokens. Parameter
tokens carry their value so the parser's state machine never has to look at
raw characters again.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional

MARKER = "%%block:"
ARROW = "->"
ID_PARAM = "diagramId="
LABEL_PARAM = 'label="'

IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
ID_VALUE_RE = re.compile(r"[A-Za-z0-9_-]*")
# Body stops at an unescaped quote or at a line break
LABEL_BODY_RE = re.compile(r'((?:[^"\\\r\n]|\\[^\r\n])*)(")?')
BLANK_RE = re.compile(r"[ \t\r]+")

_ESCAPE_RE = re.compile(r'\\(["\\])')


class TokenKind(Enum):
    MARKER = "marker"
    IDENT = "ident"
    ARROW = "arrow"
    ID_PARAM = "id_param"
    LABEL_PARAM = "label_param"
    BLANK = "blank"
    NEWLINE = "newline"
    OTHER = "other"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    start: int
    end: int
    # Parsed value for ID_PARAM / LABEL_PARAM / IDENT
    value: Optional[str] = None
    # LABEL_PARAM only: closing quote was found
    terminated: bool = True


def unescape_label(body: str) -> str:
    return _ESCAPE_RE.sub(r"\1", body)


def escape_label(label: str) -> str:
    return label.replace("\\", "\\\\").replace('"', '\\"')


def iter_tokens(text: str, pos: int = 0, stop_at_newline: bool = False) -> Iterator[Token]:
    """Yield tokens from `text[pos:]`, optionally stopping after the first line break."""
    length = len(text)

    while pos < length:
        start = pos
        ch = text[pos]

        if text.startswith(MARKER, pos):
            pos += len(MARKER)
            yield Token(TokenKind.MARKER, MARKER, start, pos)
            continue

        if text.startswith(ARROW, pos):
            pos += len(ARROW)
            yield Token(TokenKind.ARROW, ARROW, start, pos)
            continue

        if text.startswith(ID_PARAM, pos):
            m = ID_VALUE_RE.match(text, pos + len(ID_PARAM))
            pos = m.end()
            yield Token(TokenKind.ID_PARAM, text[start:pos], start, pos, value=m.group(0))
            continue

        if text.startswith(LABEL_PARAM, pos):
            m = LABEL_BODY_RE.match(text, pos + len(LABEL_PARAM))
            pos = m.end()
            yield Token(
                TokenKind.LABEL_PARAM,
                text[start:pos],
                start,
                pos,
                value=unescape_label(m.group(1)),
                terminated=m.group(2) is not None,
            )
            continue

        if ch == "\n":
            pos += 1
            yield Token(TokenKind.NEWLINE, ch, start, pos)
            if stop_at_newline:
                return
            continue

        m = BLANK_RE.match(text, pos)
        if m:
            pos = m.end()
            yield Token(TokenKind.BLANK, m.group(0), start, pos)
            continue

        m = IDENT_RE.match(text, pos)
        if m:
            pos = m.end()
            yield Token(TokenKind.IDENT, m.group(0), start, pos, value=m.group(0))
            continue

        pos += 1
        yield Token(TokenKind.OTHER, ch, start, pos)


def tokenize_line(text: str, pos: int = 0) -> List[Token]:
    """Tokens from `pos` up to, not including, the next line break."""
    return [
        tok for tok in iter_tokens(text, pos, stop_at_newline=True)
        if tok.kind != TokenKind.NEWLINE
    ]
