"""Diagnostic codes and data structures.

Defines error categories, error codes, source spans, and diagnostic messages.
Python 3.13+. Zero external dependencies.
"""

from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import Literal

__all__ = [
    "Diagnostic",
    "DiagnosticCode",
    "ErrorCategory",
    "SourceSpan",
]


class ErrorCategory(StrEnum):
    """Machine-checkable error category carried by every ExprError.

    Inherits from ``StrEnum`` so that ``str(category)`` and direct string
    comparisons work without accessing ``.value``; log aggregation receives
    plain strings (``"lex"``, ``"type-mismatch"``, etc.).

    Compile-time categories (deterministic from source text alone):
        LEX: Character outside the grammar, unterminated string
        PARSE: Token sequence outside the grammar
        UNKNOWN_IDENTIFIER: Name not present in the context schema
        BLOCKED_MEMBER: Member name on the deny-list
        UNSAFE_PATTERN: Pattern argument rejected by the pattern checker

    Run-time categories (depend on one invocation's context values):
        TYPE_MISMATCH: Operation applied to a value of the wrong type
        RESOURCE_LIMIT: Result would exceed a size bound
        INTERNAL: Unexpected failure inside the evaluator or a host callable
    """

    LEX = "lex"
    PARSE = "parse"
    UNKNOWN_IDENTIFIER = "unknown-identifier"
    BLOCKED_MEMBER = "blocked-member"
    UNSAFE_PATTERN = "unsafe-pattern"
    TYPE_MISMATCH = "type-mismatch"
    RESOURCE_LIMIT = "resource-limit"
    INTERNAL = "internal"

    @property
    def is_compile_time(self) -> bool:
        """True for categories reported to the expression author at compile time."""
        return self in _COMPILE_TIME_CATEGORIES


_COMPILE_TIME_CATEGORIES = frozenset({
    ErrorCategory.LEX,
    ErrorCategory.PARSE,
    ErrorCategory.UNKNOWN_IDENTIFIER,
    ErrorCategory.BLOCKED_MEMBER,
    ErrorCategory.UNSAFE_PATTERN,
})


class DiagnosticCode(Enum):
    """Error codes with unique identifiers.

    Organized by category:
        1000-1999: Lexical errors
        2000-2999: Parse errors
        3000-3999: Validation errors (identifiers, members, patterns)
        4000-4999: Run-time errors (type mismatches, resource limits)
        9000-9999: Internal errors
    """

    # Lexical errors (1000-1999)
    UNEXPECTED_CHARACTER = 1001
    UNTERMINATED_STRING = 1002
    INVALID_ESCAPE = 1003
    SOURCE_TOO_LONG = 1004
    NUMBER_TOO_LONG = 1005

    # Parse errors (2000-2999)
    UNEXPECTED_TOKEN = 2001
    UNEXPECTED_END = 2002
    EMPTY_EXPRESSION = 2003
    COMPUTED_ACCESS = 2004
    NESTING_DEPTH_EXCEEDED = 2005
    MISSING_COLON = 2006

    # Validation errors (3000-3999)
    UNKNOWN_IDENTIFIER = 3001
    UNKNOWN_MEMBER = 3002
    BLOCKED_MEMBER = 3003
    UNAVAILABLE_METHOD = 3004
    PATTERN_NOT_LITERAL = 3005
    UNSAFE_PATTERN = 3006
    PATTERN_METHOD_NOT_CALLED = 3007

    # Run-time errors (4000-4999)
    TYPE_MISMATCH = 4001
    NOT_CALLABLE = 4002
    INVALID_ARGUMENT = 4003
    RESULT_TOO_LARGE = 4004
    EVALUATION_DEPTH_EXCEEDED = 4005
    INVALID_DATE = 4006

    # Internal errors (9000-9999)
    HOST_FUNCTION_FAILED = 9001
    INTERNAL_ERROR = 9002


@dataclass(frozen=True, slots=True)
class SourceSpan:
    """Source code location for error reporting.

    Attributes:
        start: Starting character offset (0-indexed)
        end: Ending character offset (exclusive)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """

    start: int
    end: int
    line: int = 1
    column: int = 1

    def __post_init__(self) -> None:
        """Validate SourceSpan invariants.

        Raises:
            ValueError: If start is negative, end precedes start, or line or
                column is less than 1.
        """
        if self.start < 0:
            msg = f"SourceSpan.start must be >= 0, got {self.start}"
            raise ValueError(msg)
        if self.end < self.start:
            msg = f"SourceSpan.end ({self.end}) must be >= start ({self.start})"
            raise ValueError(msg)
        if self.line < 1:
            msg = f"SourceSpan.line must be >= 1 (1-indexed), got {self.line}"
            raise ValueError(msg)
        if self.column < 1:
            msg = f"SourceSpan.column must be >= 1 (1-indexed), got {self.column}"
            raise ValueError(msg)

    @classmethod
    def at(cls, source: str, start: int, end: int | None = None) -> "SourceSpan":
        """Build a span for ``source[start:end]`` with line and column computed.

        Args:
            source: Full expression source
            start: Starting character offset
            end: Ending offset (defaults to ``start``)
        """
        start = max(0, min(start, len(source)))
        end = start if end is None else max(start, end)
        line = source.count("\n", 0, start) + 1
        line_start = source.rfind("\n", 0, start) + 1
        return cls(start=start, end=end, line=line, column=start - line_start + 1)


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """Structured diagnostic message.

    Attributes:
        code: Unique error code
        message: Human-readable error description
        span: Source location (compile-time errors only)
        hint: Suggestion for fixing the error
        expression: Expression source the error refers to (optional)
        expected_type: Expected type for an operand (type mismatches)
        received_type: Actual type received (type mismatches)
        severity: Error severity level
    """

    code: DiagnosticCode
    message: str
    span: SourceSpan | None = None
    hint: str | None = None
    expression: str | None = None
    expected_type: str | None = None
    received_type: str | None = None
    severity: Literal["error", "warning"] = "error"

    def __str__(self) -> str:
        """Return human-readable error description."""
        return self.message

    def format_error(self) -> str:
        """Format diagnostic like Rust compiler.

        Delegates to DiagnosticFormatter for consistent output with
        control-character escaping (log injection prevention).

        Example output:
            error[UNKNOWN_IDENTIFIER]: Unknown identifier: process
              --> line 1, column 1
              = help: Only context fields can be referenced

        Returns:
            Formatted error message
        """
        from .formatter import DiagnosticFormatter  # noqa: PLC0415 - circular

        return DiagnosticFormatter().format(self)

    def with_span(self, span: SourceSpan) -> "Diagnostic":
        """Return a copy of this diagnostic located at ``span``."""
        return Diagnostic(
            code=self.code,
            message=self.message,
            span=span,
            hint=self.hint,
            expression=self.expression,
            expected_type=self.expected_type,
            received_type=self.received_type,
            severity=self.severity,
        )
