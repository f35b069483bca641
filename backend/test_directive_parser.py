"""Tests for the %%block: directive parser"""

import time

import pytest

from erblocks.directives import (
    DiagnosticCode,
    Directive,
    ParserOptions,
    build_directive,
    count_directives,
    extract_entities,
    is_directive,
    parse_directives,
    parse_with_diagnostics,
)


SOURCE = """erDiagram
    User ||--o{ Order : places
    %%block: User -> diagramId=abc123 label="User Details"
    %%block: Order -> diagramId=order-detail_2
"""


def test_parse_directives_in_source_order():
    directives = parse_directives(SOURCE)

    assert directives == [
        Directive("User", "abc123", "User Details"),
        Directive("Order", "order-detail_2"),
    ]
    assert [d.line for d in directives] == [3, 4]


def test_parse_directives_anywhere_in_line():
    source = "Order { %%block: Order -> diagramId=x1 } and %%block: Item->diagramId=x2"

    directives = parse_directives(source)

    assert [(d.entity_key, d.child_diagram_id) for d in directives] == [
        ("Order", "x1"),
        ("Item", "x2"),
    ]


def test_whitespace_around_tokens_is_insignificant():
    for text in (
        "%%block:User->diagramId=abc",
        "%%block:   User   ->   diagramId=abc",
        "%%block:\tUser\t->\tdiagramId=abc\tlabel=\"L\"",
    ):
        [directive] = parse_directives(text)
        assert directive.entity_key == "User"
        assert directive.child_diagram_id == "abc"


def test_empty_source():
    assert parse_directives("") == []
    assert count_directives("") == 0
    result = parse_with_diagnostics("")
    assert result.directives == []
    assert result.errors == []
    assert result.cleaned_source == ""


def test_strip_directives_from_cleaned_source():
    result = parse_with_diagnostics(SOURCE)

    assert len(result.directives) == 2
    assert result.errors == []
    assert result.cleaned_source == "erDiagram\n    User ||--o{ Order : places\n"


def test_keep_directives_when_not_stripping():
    result = parse_with_diagnostics(SOURCE, ParserOptions(strip_directives=False))

    assert result.cleaned_source == SOURCE
    assert len(result.directives) == 2


def test_missing_entity_name_diagnostic():
    result = parse_with_diagnostics("%%block: -> diagramId=abc")

    assert result.directives == []
    assert len(result.errors) == 1
    error = result.errors[0]
    assert error.line == 1
    assert error.code == DiagnosticCode.MISSING_ENTITY
    assert "entity name" in error.message
    assert error.content == "%%block: -> diagramId=abc"


@pytest.mark.parametrize(
    "line, code",
    [
        ("%%block: User diagramId=abc", DiagnosticCode.MISSING_ARROW),
        ("%%block: User -> abc", DiagnosticCode.MISSING_DIAGRAM_ID),
        ("%%block: -> diagramId=abc", DiagnosticCode.MISSING_ENTITY),
        ("%%block: User -> diagramId=", DiagnosticCode.EMPTY_DIAGRAM_ID),
        ('%%block: User -> diagramId= label="x"', DiagnosticCode.EMPTY_DIAGRAM_ID),
        ("%%block: 1User -> diagramId=abc", DiagnosticCode.INVALID_ENTITY),
        ('%%block: User -> diagramId=abc label="Unclosed', DiagnosticCode.UNCLOSED_LABEL),
        ("%%block: User -> diagramId=abc extra", DiagnosticCode.INVALID_FORMAT),
        ("%%block: User Name -> diagramId=abc", DiagnosticCode.INVALID_FORMAT),
    ],
)
def test_malformed_line_classification(line, code):
    result = parse_with_diagnostics(f"erDiagram\n  {line}\n")

    assert len(result.errors) == 1
    assert result.errors[0].code == code
    assert result.errors[0].line == 2
    assert result.directives == []


def test_classification_priority():
    # no arrow and a bad entity name: the arrow is reported
    result = parse_with_diagnostics("%%block: 1User diagramId=abc")
    assert result.errors[0].code == DiagnosticCode.MISSING_ARROW

    # an arrow inside a label is not the arrow token
    result = parse_with_diagnostics('%%block: User diagramId=abc label="a -> b"')
    assert result.errors[0].code == DiagnosticCode.MISSING_ARROW


def test_malformed_lines_are_kept_in_cleaned_source():
    source = "erDiagram\n%%block: -> diagramId=abc\n%%block: User -> diagramId=ok"

    for strip in (True, False):
        result = parse_with_diagnostics(source, ParserOptions(strip_directives=strip))
        assert "%%block: -> diagramId=abc" in result.cleaned_source

    stripped = parse_with_diagnostics(source)
    assert stripped.cleaned_source == "erDiagram\n%%block: -> diagramId=abc"


def test_errors_not_collected_when_disabled():
    source = "%%block: -> diagramId=abc"

    result = parse_with_diagnostics(source, ParserOptions(collect_errors=False))

    assert result.errors == []
    assert result.cleaned_source == source


def test_unterminated_label_is_not_a_directive():
    source = '%%block: User -> diagramId=abc label="never closed'

    assert parse_directives(source) == []
    assert count_directives(source) == 0
    assert not is_directive(source)


def test_count_ignores_malformed_lines():
    source = SOURCE + "%%block: -> diagramId=abc\n%%block: User\n"

    assert count_directives(source) == 2


def test_is_directive():
    assert is_directive('%%block: User -> diagramId=abc label="x"')
    assert is_directive("  %%block: User -> diagramId=abc  ")
    assert not is_directive("%%block: User -> diagramId=")
    assert not is_directive("User ||--o{ Order : places")
    assert not is_directive("%%block: A -> diagramId=a %%block: B -> diagramId=b")


def test_build_directive_canonical_form():
    assert build_directive("User", "abc-123") == "%%block: User -> diagramId=abc-123"
    assert (
        build_directive("User", "abc-123", "User Details")
        == '%%block: User -> diagramId=abc-123 label="User Details"'
    )


@pytest.mark.parametrize(
    "entity_key, child_id, label",
    [
        ("User", "abc-123", "User Details"),
        ("_internal_9", "6f1c2b1e-0d4e-4f4e-9a57-3c2b8e1f0a11", None),
        ("Order", "o1", 'Says "hi" -> there'),
        ("Order", "o1", "back\\slash"),
    ],
)
def test_build_then_parse_round_trip(entity_key, child_id, label):
    text = build_directive(entity_key, child_id, label)

    assert parse_directives(text) == [Directive(entity_key, child_id, label)]
    assert is_directive(text)
    assert parse_with_diagnostics(text).errors == []


def test_empty_label_is_no_label():
    assert build_directive("User", "abc", "") == "%%block: User -> diagramId=abc"
    [directive] = parse_directives('%%block: User -> diagramId=abc label=""')
    assert directive.label is None


@pytest.mark.parametrize(
    "entity_key, child_id, label",
    [
        ("1User", "abc", None),
        ("User-Name", "abc", None),
        ("", "abc", None),
        ("User", "abc def", None),
        ("User", "", None),
        ("User", "abc", "two\nlines"),
    ],
)
def test_build_directive_rejects_invalid_input(entity_key, child_id, label):
    with pytest.raises(ValueError):
        build_directive(entity_key, child_id, label)


def test_windows_line_endings():
    source = "erDiagram\r\n%%block: User -> diagramId=abc\r\nUser {\r\n}"

    result = parse_with_diagnostics(source)

    assert result.errors == []
    assert result.directives == [Directive("User", "abc")]
    assert "%%block" not in result.cleaned_source


def test_directive_line_indented_with_any_whitespace():
    result = parse_with_diagnostics("\f%%block: User -> diagramId=x\n\v%%block: User diagramId=x")

    assert result.directives == [Directive("User", "x")]
    assert [(e.line, e.code) for e in result.errors] == [(2, DiagnosticCode.MISSING_ARROW)]


def test_long_line_of_markers_scans_in_linear_time():
    source = "%%block: " * 20000 + "%%block: User -> diagramId=x"

    started = time.perf_counter()
    assert parse_directives(source) == [Directive("User", "x")]
    assert count_directives(source) == 1
    assert not is_directive("%%block: " * 20000)
    assert extract_entities(source) == {}
    result = parse_with_diagnostics(source)
    elapsed = time.perf_counter() - started

    assert result.directives == []
    assert result.errors[0].code == DiagnosticCode.INVALID_ENTITY
    assert elapsed < 5
