"""Tests for diagnostics: codes, spans, error types and the formatter."""

import json

import pytest

from safeexpr import (
    ErrorCategory,
    ExprError,
    ExprRuntimeError,
    ExprSyntaxError,
    ExprValidationError,
)
from safeexpr.diagnostics import (
    Diagnostic,
    DiagnosticCode,
    DiagnosticFormatter,
    ErrorTemplate,
    OutputFormat,
    SourceSpan,
)


@pytest.fixture
def diagnostic() -> Diagnostic:
    return Diagnostic(
        code=DiagnosticCode.TYPE_MISMATCH,
        message="Cannot apply - to string and number",
        span=SourceSpan(start=4, end=9, line=2, column=3),
        hint="Convert the string first",
        expected_type="number",
        received_type="string",
    )


# ============================================================================
# CATEGORIES AND CODES
# ============================================================================


class TestErrorCategory:
    """Category values and compile-time split."""

    @pytest.mark.parametrize(
        ("category", "value", "compile_time"),
        [
            (ErrorCategory.LEX, "lex", True),
            (ErrorCategory.PARSE, "parse", True),
            (ErrorCategory.UNKNOWN_IDENTIFIER, "unknown-identifier", True),
            (ErrorCategory.BLOCKED_MEMBER, "blocked-member", True),
            (ErrorCategory.UNSAFE_PATTERN, "unsafe-pattern", True),
            (ErrorCategory.TYPE_MISMATCH, "type-mismatch", False),
            (ErrorCategory.RESOURCE_LIMIT, "resource-limit", False),
            (ErrorCategory.INTERNAL, "internal", False),
        ],
    )
    def test_values(self, category: ErrorCategory, value: str, compile_time: bool) -> None:
        assert str(category) == value
        assert category == value
        assert category.is_compile_time is compile_time


class TestDiagnosticCode:
    """Codes are grouped by numeric range."""

    @pytest.mark.parametrize(
        ("prefix", "codes"),
        [
            (1, ["UNEXPECTED_CHARACTER", "UNTERMINATED_STRING", "INVALID_ESCAPE", "SOURCE_TOO_LONG"]),
            (2, ["UNEXPECTED_TOKEN", "UNEXPECTED_END", "EMPTY_EXPRESSION", "COMPUTED_ACCESS"]),
            (3, ["UNKNOWN_IDENTIFIER", "BLOCKED_MEMBER", "UNAVAILABLE_METHOD", "UNSAFE_PATTERN"]),
            (4, ["TYPE_MISMATCH", "NOT_CALLABLE", "RESULT_TOO_LARGE", "INVALID_DATE"]),
            (9, ["HOST_FUNCTION_FAILED", "INTERNAL_ERROR"]),
        ],
    )
    def test_ranges(self, prefix: int, codes: list[str]) -> None:
        for name in codes:
            assert DiagnosticCode[name].value // 1000 == prefix

    def test_values_unique(self) -> None:
        values = [code.value for code in DiagnosticCode]
        assert len(values) == len(set(values))


# ============================================================================
# SOURCE SPANS
# ============================================================================


class TestSourceSpan:
    """Validation and construction from source text."""

    def test_defaults(self) -> None:
        span = SourceSpan(start=0, end=0)
        assert (span.line, span.column) == (1, 1)

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"start": -1, "end": 0}, "SourceSpan.start must be >= 0, got -1"),
            ({"start": 5, "end": 4}, r"SourceSpan.end \(4\) must be >= start \(5\)"),
            ({"start": 0, "end": 0, "line": 0}, "SourceSpan.line must be >= 1"),
            ({"start": 0, "end": 0, "column": 0}, "SourceSpan.column must be >= 1"),
        ],
    )
    def test_invalid(self, kwargs: dict[str, int], message: str) -> None:
        with pytest.raises(ValueError, match=message):
            SourceSpan(**kwargs)

    def test_at_first_line(self) -> None:
        assert SourceSpan.at("name + 1", 5, 6) == SourceSpan(start=5, end=6, line=1, column=6)

    def test_at_later_line(self) -> None:
        span = SourceSpan.at("a &&\n  b\n  @", 11)
        assert (span.start, span.end, span.line, span.column) == (11, 11, 3, 3)

    def test_at_clamps_offsets(self) -> None:
        span = SourceSpan.at("abc", 10, 2)
        assert (span.start, span.end) == (3, 3)
        assert SourceSpan.at("abc", -4).start == 0

    def test_immutable(self) -> None:
        span = SourceSpan(start=0, end=1)
        with pytest.raises(AttributeError):
            span.start = 3  # type: ignore[misc]


# ============================================================================
# DIAGNOSTIC
# ============================================================================


class TestDiagnostic:
    """The structured diagnostic record."""

    def test_str_is_message(self, diagnostic: Diagnostic) -> None:
        assert str(diagnostic) == "Cannot apply - to string and number"

    def test_format_error(self, diagnostic: Diagnostic) -> None:
        assert diagnostic.format_error() == (
            "error[TYPE_MISMATCH]: Cannot apply - to string and number\n"
            "  --> line 2, column 3\n"
            "  = expected: number\n"
            "  = received: string\n"
            "  = help: Convert the string first"
        )

    def test_with_span(self) -> None:
        original = ErrorTemplate.unknown_identifier("process")
        located = original.with_span(SourceSpan.at("process", 0, 7))
        assert original.span is None
        assert located.span == SourceSpan(start=0, end=7)
        assert located.message == original.message
        assert located.hint == original.hint

    def test_templates(self) -> None:
        assert ErrorTemplate.unknown_identifier("x").message == "Unknown identifier: x"
        assert ErrorTemplate.blocked_member("__proto__").message == "Blocked property: .__proto__"
        assert ErrorTemplate.not_callable("number").message == "number is not callable"
        assert ErrorTemplate.no_such_member("string", "foo").message == "string has no member .foo"
        assert ErrorTemplate.receiver_type("join", "array", "string").message == (
            "join() can only be called on an array, not string"
        )


# ============================================================================
# ERRORS
# ============================================================================


class TestExprError:
    """Exception hierarchy and rendering."""

    @pytest.mark.parametrize(
        ("error_type", "category"),
        [
            (ExprError, ErrorCategory.INTERNAL),
            (ExprSyntaxError, ErrorCategory.PARSE),
            (ExprValidationError, ErrorCategory.UNKNOWN_IDENTIFIER),
            (ExprRuntimeError, ErrorCategory.TYPE_MISMATCH),
        ],
    )
    def test_default_category(self, error_type: type[ExprError], category: ErrorCategory) -> None:
        error = error_type("x")
        assert error.category is category
        assert isinstance(error, ExprError)

    def test_explicit_category(self) -> None:
        error = ExprSyntaxError("x", category=ErrorCategory.LEX)
        assert error.category is ErrorCategory.LEX
        assert error.is_compile_time

    def test_plain_message(self) -> None:
        error = ExprRuntimeError("went wrong")
        assert str(error) == "went wrong"
        assert error.message == "went wrong"
        assert error.diagnostic is None
        assert error.span is None
        assert not error.is_compile_time

    def test_diagnostic_message(self) -> None:
        diagnostic = ErrorTemplate.unknown_identifier("process").with_span(SourceSpan(start=0, end=7))
        error = ExprValidationError(diagnostic)
        assert error.message == "Unknown identifier: process"
        assert str(error) == (
            "error[UNKNOWN_IDENTIFIER]: Unknown identifier: process\n"
            "  --> line 1, column 1\n"
            "  = help: Only context fields can be referenced"
        )
        assert error.span == SourceSpan(start=0, end=7)

    def test_compiled_errors_carry_location(self, engine) -> None:
        with pytest.raises(ExprValidationError) as exc_info:
            engine.compile("name +\n  process")
        error = exc_info.value
        assert error.span is not None
        assert (error.span.line, error.span.column) == (2, 3)
        assert "--> line 2, column 3" in str(error)


# ============================================================================
# FORMATTER
# ============================================================================


class TestDiagnosticFormatter:
    """Output formats and sanitization."""

    def test_simple(self, diagnostic: Diagnostic) -> None:
        formatter = DiagnosticFormatter(output_format=OutputFormat.SIMPLE)
        assert formatter.format(diagnostic) == "TYPE_MISMATCH: Cannot apply - to string and number"

    def test_json(self, diagnostic: Diagnostic) -> None:
        formatter = DiagnosticFormatter(output_format=OutputFormat.JSON)
        data = json.loads(formatter.format(diagnostic))
        assert data == {
            "code": "TYPE_MISMATCH",
            "code_value": 4001,
            "message": "Cannot apply - to string and number",
            "severity": "error",
            "line": 2,
            "column": 3,
            "start": 4,
            "end": 9,
            "expected_type": "number",
            "received_type": "string",
            "hint": "Convert the string first",
        }

    def test_json_minimal(self) -> None:
        formatter = DiagnosticFormatter(output_format=OutputFormat.JSON)
        data = json.loads(formatter.format(ErrorTemplate.not_callable("number")))
        assert set(data) == {"code", "code_value", "message", "severity", "received_type"}

    def test_json_keeps_unicode(self) -> None:
        formatter = DiagnosticFormatter(output_format=OutputFormat.JSON)
        rendered = formatter.format(ErrorTemplate.unknown_identifier("größe"))
        assert "größe" in rendered

    def test_color(self, diagnostic: Diagnostic) -> None:
        rendered = DiagnosticFormatter(color=True).format(diagnostic)
        assert rendered.startswith("\033[1;31merror\033[0m[TYPE_MISMATCH]")

    def test_warning_color(self) -> None:
        warning = Diagnostic(code=DiagnosticCode.INTERNAL_ERROR, message="m", severity="warning")
        assert DiagnosticFormatter(color=True).format(warning).startswith("\033[1;33mwarning")

    def test_sanitize_truncates(self) -> None:
        diagnostic = Diagnostic(code=DiagnosticCode.INTERNAL_ERROR, message="x" * 300)
        formatter = DiagnosticFormatter(output_format=OutputFormat.SIMPLE, sanitize=True, max_content_length=10)
        assert formatter.format(diagnostic) == "INTERNAL_ERROR: xxxxxxxxxx..."

    def test_unsanitized_keeps_full_message(self) -> None:
        diagnostic = Diagnostic(code=DiagnosticCode.INTERNAL_ERROR, message="x" * 300)
        assert DiagnosticFormatter().format(diagnostic).endswith("x" * 300)

    @pytest.mark.parametrize(
        ("text", "escaped"),
        [
            ("a\nb", "a\\nb"),
            ("a\rb", "a\\rb"),
            ("a\tb", "a\\tb"),
            ("a\x00b", "a\\0b"),
            ("a\x1b[31mb", "a\\x1b[31mb"),
            ("a\x07b", "a\\x07b"),
            ("a\x7fb", "a\\x7fb"),
        ],
    )
    def test_control_characters_escaped(self, text: str, escaped: str) -> None:
        diagnostic = Diagnostic(code=DiagnosticCode.INTERNAL_ERROR, message=text, hint=text)
        rendered = DiagnosticFormatter().format(diagnostic)
        assert rendered == f"error[INTERNAL_ERROR]: {escaped}\n  = help: {escaped}"

    def test_json_escapes_through_encoding(self) -> None:
        diagnostic = Diagnostic(code=DiagnosticCode.INTERNAL_ERROR, message="a\nb")
        rendered = DiagnosticFormatter(output_format=OutputFormat.JSON).format(diagnostic)
        assert "\n" not in rendered
        assert json.loads(rendered)["message"] == "a\nb"

    def test_format_all(self) -> None:
        formatter = DiagnosticFormatter(output_format=OutputFormat.SIMPLE)
        rendered = formatter.format_all([
            ErrorTemplate.not_callable("number"),
            ErrorTemplate.not_callable("string"),
        ])
        assert rendered == "NOT_CALLABLE: number is not callable\n\nNOT_CALLABLE: string is not callable"

    def test_format_all_empty(self) -> None:
        assert DiagnosticFormatter().format_all([]) == ""
