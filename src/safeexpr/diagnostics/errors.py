"""Expression exception hierarchy with structured diagnostics.

Integrates with diagnostic codes for Rust/Elm-inspired error messages.
All exceptions carry an ErrorCategory; most also carry a Diagnostic.

Python 3.13+. Zero external dependencies.
"""

from .codes import Diagnostic, ErrorCategory, SourceSpan

__all__ = [
    "ExprError",
    "ExprRuntimeError",
    "ExprSyntaxError",
    "ExprValidationError",
]


class ExprError(Exception):
    """Base exception for all expression errors.

    Callers catch this single type and branch on ``category``.

    Attributes:
        category: Machine-checkable error category
        diagnostic: Structured diagnostic information (optional)
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str | Diagnostic,
        *,
        category: ErrorCategory | None = None,
    ) -> None:
        """Initialize ExprError.

        Args:
            message: Error message string OR Diagnostic object
            category: Error category (defaults to the class default)
        """
        self.category: ErrorCategory = category or self.default_category
        if isinstance(message, Diagnostic):
            self.diagnostic: Diagnostic | None = message
            super().__init__(message.format_error())
        else:
            self.diagnostic = None
            super().__init__(message)

    @property
    def message(self) -> str:
        """Plain error message without location or hint lines."""
        if self.diagnostic is not None:
            return self.diagnostic.message
        return str(self)

    @property
    def span(self) -> SourceSpan | None:
        """Source location for compile-time errors, None otherwise."""
        if self.diagnostic is not None:
            return self.diagnostic.span
        return None

    @property
    def is_compile_time(self) -> bool:
        """True when the error is deterministic from source text alone."""
        return self.category.is_compile_time


class ExprSyntaxError(ExprError):
    """Lexical or parse error.

    Category is LEX or PARSE. Reported to the expression author.
    """

    default_category = ErrorCategory.PARSE


class ExprValidationError(ExprError):
    """Static validation failure.

    Category is UNKNOWN_IDENTIFIER, BLOCKED_MEMBER or UNSAFE_PATTERN.
    Reported to the expression author.
    """

    default_category = ErrorCategory.UNKNOWN_IDENTIFIER


class ExprRuntimeError(ExprError):
    """Failure while running a compiled expression.

    Category is TYPE_MISMATCH, RESOURCE_LIMIT or INTERNAL. Depends on the
    context values of one invocation; callers log it once and fall back to a
    safe default (False for conditions, empty string for macros).
    """

    default_category = ErrorCategory.TYPE_MISMATCH
