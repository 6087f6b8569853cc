"""Error message templates.

Centralized error message templates for testable, consistent error messages.
Python 3.13+. Zero external dependencies.
"""

from .codes import Diagnostic, DiagnosticCode


class ErrorTemplate:
    """Centralized error message templates.

    All error messages are created here. NO f-strings in exception constructors!
    Keeps messages testable, consistent, and documents every error case.
    """

    # ------------------------------------------------------------------
    # Lexical errors
    # ------------------------------------------------------------------

    @staticmethod
    def unexpected_character(char: str) -> Diagnostic:
        """Character outside the expression grammar.

        Args:
            char: The offending character
        """
        shown = char if char.isascii() and char.isprintable() else f"U+{ord(char):04X}"
        return Diagnostic(
            code=DiagnosticCode.UNEXPECTED_CHARACTER,
            message=f"Unexpected character: {shown}",
            hint="Identifiers are ASCII letters, digits and underscores",
        )

    @staticmethod
    def unterminated_string() -> Diagnostic:
        """String literal without a closing quote."""
        return Diagnostic(
            code=DiagnosticCode.UNTERMINATED_STRING,
            message="Unterminated string",
            hint="Close the string with the same quote it was opened with",
        )

    @staticmethod
    def invalid_escape(char: str) -> Diagnostic:
        """Escape sequence outside the fixed escape table.

        Args:
            char: Character following the backslash
        """
        return Diagnostic(
            code=DiagnosticCode.INVALID_ESCAPE,
            message=f'Invalid escape sequence "\\{char}" in string',
            hint='Allowed escapes: \\\\ \\" \\\' \\n \\t \\r \\0',
        )

    @staticmethod
    def source_too_long(length: int, limit: int) -> Diagnostic:
        """Expression source exceeds the size bound."""
        return Diagnostic(
            code=DiagnosticCode.SOURCE_TOO_LONG,
            message=f"Expression is {length} characters long, exceeding the limit of {limit}",
        )

    @staticmethod
    def number_too_long(length: int, limit: int) -> Diagnostic:
        """Number literal exceeds the digit bound."""
        return Diagnostic(
            code=DiagnosticCode.NUMBER_TOO_LONG,
            message=f"Number literal is {length} characters long, exceeding the limit of {limit}",
        )

    # ------------------------------------------------------------------
    # Parse errors
    # ------------------------------------------------------------------

    @staticmethod
    def unexpected_token(raw: str) -> Diagnostic:
        """Token that cannot appear at this position.

        Args:
            raw: Source text of the token
        """
        return Diagnostic(
            code=DiagnosticCode.UNEXPECTED_TOKEN,
            message=f"Unexpected token: {raw}",
        )

    @staticmethod
    def expected_token(expected: str, found: str) -> Diagnostic:
        """A specific token was required.

        Args:
            expected: Token that was required
            found: Source text of the token found instead
        """
        return Diagnostic(
            code=DiagnosticCode.UNEXPECTED_TOKEN,
            message=f"Unexpected token: {found} (expected {expected})",
        )

    @staticmethod
    def unexpected_end() -> Diagnostic:
        """Input ended in the middle of an expression."""
        return Diagnostic(
            code=DiagnosticCode.UNEXPECTED_END,
            message="Unexpected end of expression",
        )

    @staticmethod
    def empty_expression() -> Diagnostic:
        """Source contains no tokens."""
        return Diagnostic(
            code=DiagnosticCode.EMPTY_EXPRESSION,
            message="Empty expression",
        )

    @staticmethod
    def computed_access() -> Diagnostic:
        """Bracket access, which is not part of the grammar."""
        return Diagnostic(
            code=DiagnosticCode.COMPUTED_ACCESS,
            message="Unexpected token: [",
            hint="Only dotted member access (a.b) is supported",
        )

    @staticmethod
    def statement_separator() -> Diagnostic:
        """Semicolon after a complete expression."""
        return Diagnostic(
            code=DiagnosticCode.UNEXPECTED_TOKEN,
            message="Unexpected token: ;",
            hint="An expression is a single formula; statements are not supported",
        )

    @staticmethod
    def nesting_depth_exceeded(max_depth: int) -> Diagnostic:
        """Syntactic nesting exceeded the depth bound."""
        return Diagnostic(
            code=DiagnosticCode.NESTING_DEPTH_EXCEEDED,
            message=f"Expression nesting exceeds maximum depth of {max_depth}",
            hint="Reduce parentheses or chained calls",
        )

    @staticmethod
    def missing_colon() -> Diagnostic:
        """``$if`` condition not followed by ``:``."""
        return Diagnostic(
            code=DiagnosticCode.MISSING_COLON,
            message="Expected ':' after $if condition (missing colon)",
            hint="Write $if <condition>: <fact>",
        )

    # ------------------------------------------------------------------
    # Validation errors
    # ------------------------------------------------------------------

    @staticmethod
    def unknown_identifier(name: str) -> Diagnostic:
        """Identifier not present in the context schema."""
        return Diagnostic(
            code=DiagnosticCode.UNKNOWN_IDENTIFIER,
            message=f"Unknown identifier: {name}",
            hint="Only context fields can be referenced",
        )

    @staticmethod
    def unknown_member(namespace: str, member: str) -> Diagnostic:
        """Member not listed for a closed namespace record."""
        return Diagnostic(
            code=DiagnosticCode.UNKNOWN_MEMBER,
            message=f"Unknown identifier: {namespace}.{member}",
            hint=f"'{namespace}' exposes a fixed list of fields",
        )

    @staticmethod
    def blocked_member(member: str) -> Diagnostic:
        """Member name on the deny-list."""
        return Diagnostic(
            code=DiagnosticCode.BLOCKED_MEMBER,
            message=f"Blocked property: .{member}",
            hint="Member names that expose runtime internals are never available",
        )

    @staticmethod
    def method_unavailable(method: str, replacement: str) -> Diagnostic:
        """Method deliberately withheld in favor of a safer one."""
        return Diagnostic(
            code=DiagnosticCode.UNAVAILABLE_METHOD,
            message=f"{method}() is not available; use {replacement}() instead",
        )

    @staticmethod
    def pattern_not_literal(method: str) -> Diagnostic:
        """Pattern argument is not a string literal."""
        return Diagnostic(
            code=DiagnosticCode.PATTERN_NOT_LITERAL,
            message=f"{method}() requires a string literal pattern",
            hint=f'Write the pattern inline, e.g. .{method}("\\\\d+")',
        )

    @staticmethod
    def pattern_method_not_called(method: str) -> Diagnostic:
        """Pattern method referenced without being called on its receiver."""
        return Diagnostic(
            code=DiagnosticCode.PATTERN_METHOD_NOT_CALLED,
            message=f".{method} must be called directly with a string literal pattern",
            hint=f'Write receiver.{method}("...") instead of passing the method around',
        )

    @staticmethod
    def unsafe_pattern(pattern: str, reason: str, hint: str | None = None) -> Diagnostic:
        """Pattern rejected by the pattern-safety checker.

        Args:
            pattern: The rejected pattern text
            reason: Why it was rejected
            hint: How to rewrite it (optional)
        """
        return Diagnostic(
            code=DiagnosticCode.UNSAFE_PATTERN,
            message=f'Unsafe pattern "{pattern}": {reason}',
            hint=hint,
        )

    # ------------------------------------------------------------------
    # Run-time errors
    # ------------------------------------------------------------------

    @staticmethod
    def type_mismatch(message: str, expected: str, received: str) -> Diagnostic:
        """Operand of the wrong type.

        Args:
            message: What was attempted
            expected: Expected type name
            received: Received type name
        """
        return Diagnostic(
            code=DiagnosticCode.TYPE_MISMATCH,
            message=message,
            expected_type=expected,
            received_type=received,
        )

    @staticmethod
    def receiver_type(method: str, expected: str, received: str) -> Diagnostic:
        """Guarded method called on a value of the wrong type."""
        article = "an" if expected[0] in "aeiou" else "a"
        return Diagnostic(
            code=DiagnosticCode.TYPE_MISMATCH,
            message=f"{method}() can only be called on {article} {expected}, not {received}",
            expected_type=expected,
            received_type=received,
        )

    @staticmethod
    def no_such_member(type_name: str, member: str) -> Diagnostic:
        """Member not available on a value type."""
        return Diagnostic(
            code=DiagnosticCode.TYPE_MISMATCH,
            message=f"{type_name} has no member .{member}",
            received_type=type_name,
        )

    @staticmethod
    def not_callable(type_name: str) -> Diagnostic:
        """Call applied to a value that is not a function."""
        return Diagnostic(
            code=DiagnosticCode.NOT_CALLABLE,
            message=f"{type_name} is not callable",
            received_type=type_name,
        )

    @staticmethod
    def non_negative_integer(method: str, argument: str, value: object) -> Diagnostic:
        """Count or length argument is not a non-negative integer."""
        return Diagnostic(
            code=DiagnosticCode.INVALID_ARGUMENT,
            message=f"{method}() {argument} must be a non-negative integer, got {value}",
        )

    @staticmethod
    def invalid_argument(function: str, detail: str) -> Diagnostic:
        """Argument rejected by a built-in or method."""
        return Diagnostic(
            code=DiagnosticCode.INVALID_ARGUMENT,
            message=f"{function}(): {detail}",
        )

    @staticmethod
    def invalid_dice(expression: str) -> Diagnostic:
        """roll() argument is not NdM[+-K]."""
        return Diagnostic(
            code=DiagnosticCode.INVALID_ARGUMENT,
            message=f"Invalid dice expression: {expression}",
            hint='Use the form NdM or NdM+K, e.g. roll("2d6+3")',
        )

    @staticmethod
    def result_too_large(call: str, length: int, limit: int) -> Diagnostic:
        """Operation would produce a string over the size bound.

        Args:
            call: Description of the call, e.g. ``repeat(999)``
            length: Length the result would have
            limit: Configured bound
        """
        return Diagnostic(
            code=DiagnosticCode.RESULT_TOO_LARGE,
            message=(
                f"{call} would produce {length} characters, "
                f"exceeding the limit of {limit}"
            ),
        )

    @staticmethod
    def evaluation_depth_exceeded(max_depth: int) -> Diagnostic:
        """Evaluation recursion exceeded the depth bound."""
        return Diagnostic(
            code=DiagnosticCode.EVALUATION_DEPTH_EXCEEDED,
            message=f"Evaluation exceeds maximum depth of {max_depth}",
        )

    @staticmethod
    def invalid_date(method: str) -> Diagnostic:
        """Date operation that requires a valid date."""
        return Diagnostic(
            code=DiagnosticCode.INVALID_DATE,
            message=f"Invalid date: {method}() requires a valid date",
        )

    # ------------------------------------------------------------------
    # Internal errors
    # ------------------------------------------------------------------

    @staticmethod
    def host_function_failed(name: str, error: BaseException) -> Diagnostic:
        """Context-supplied callable raised."""
        return Diagnostic(
            code=DiagnosticCode.HOST_FUNCTION_FAILED,
            message=f"{name}() failed: {type(error).__name__}: {error}",
        )

    @staticmethod
    def internal_error(expression: str, error: BaseException) -> Diagnostic:
        """Unexpected exception inside the evaluator."""
        return Diagnostic(
            code=DiagnosticCode.INTERNAL_ERROR,
            message=(
                f'Failed to evaluate expression "{expression}": '
                f"{type(error).__name__}: {error}"
            ),
            expression=expression,
        )
