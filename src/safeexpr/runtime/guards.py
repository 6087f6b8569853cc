"""Runtime guards for amplifying string operations.

``repeat``, ``padStart``, ``padEnd``, ``replaceAll``, ``join`` and string
concatenation are each harmless alone but multiply sizes when chained
(``content.repeat(9).repeat(9)``). Every guard checks its receiver type and
numeric arguments, then computes the result length BEFORE building the
result. Each call bounds its own output, so any chain is bounded too.

Python 3.13+. Zero external dependencies.
"""

from safeexpr.constants import MAX_RESULT_LENGTH
from safeexpr.diagnostics import ErrorCategory, ErrorTemplate, ExprRuntimeError

from .values import is_number, to_display_string, type_name

__all__ = [
    "check_result_size",
    "guarded_concat",
    "guarded_join",
    "guarded_pad_end",
    "guarded_pad_start",
    "guarded_repeat",
    "guarded_replace_all",
    "require_array",
    "require_count",
    "require_string",
]


# ============================================================================
# CHECKS
# ============================================================================


def check_result_size(call: str, length: int, limit: int = MAX_RESULT_LENGTH) -> None:
    """Raise RESOURCE_LIMIT if a result of ``length`` characters is too large.

    Args:
        call: Description of the call for the message, e.g. ``repeat(999)``
        length: Length the result would have
        limit: Maximum allowed length

    Raises:
        ExprRuntimeError: (RESOURCE_LIMIT) when ``length > limit``
    """
    if length > limit:
        raise ExprRuntimeError(
            ErrorTemplate.result_too_large(call, length, limit),
            category=ErrorCategory.RESOURCE_LIMIT,
        )


def require_string(method: str, receiver: object) -> str:
    """Return ``receiver`` if it is a string, else raise TYPE_MISMATCH."""
    if not isinstance(receiver, str):
        raise ExprRuntimeError(
            ErrorTemplate.receiver_type(method, "string", type_name(receiver)),
            category=ErrorCategory.TYPE_MISMATCH,
        )
    return receiver


def require_array(method: str, receiver: object) -> tuple[object, ...]:
    """Return ``receiver`` if it is an array, else raise TYPE_MISMATCH."""
    if not isinstance(receiver, tuple):
        raise ExprRuntimeError(
            ErrorTemplate.receiver_type(method, "array", type_name(receiver)),
            category=ErrorCategory.TYPE_MISMATCH,
        )
    return receiver


def require_count(method: str, argument: str, value: object) -> int:
    """Return ``value`` as an int if it is a non-negative integral number.

    Raises:
        ExprRuntimeError: (TYPE_MISMATCH) for anything else, including 1.5,
            -1, NaN, booleans and strings
    """
    if is_number(value):
        number: int | float = value  # type: ignore[assignment]  # narrowed by is_number
        if isinstance(number, float) and number.is_integer():
            number = int(number)
        if isinstance(number, int) and number >= 0:
            return number
    shown = to_display_string(value) or type_name(value)
    raise ExprRuntimeError(
        ErrorTemplate.non_negative_integer(method, argument, shown),
        category=ErrorCategory.TYPE_MISMATCH,
    )


def _optional_string(method: str, argument: str, value: object, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ExprRuntimeError(
            ErrorTemplate.type_mismatch(
                f"{method}() {argument} must be a string, not {type_name(value)}",
                "string",
                type_name(value),
            ),
            category=ErrorCategory.TYPE_MISMATCH,
        )
    return value


# ============================================================================
# GUARDED OPERATIONS
# ============================================================================


def guarded_repeat(receiver: object, count: object = 0) -> str:
    """``s.repeat(n)``: ``s`` concatenated ``n`` times.

    Example:
        >>> guarded_repeat("ab", 3)
        'ababab'
    """
    text = require_string("repeat", receiver)
    times = require_count("repeat", "count", count)
    check_result_size(f"repeat({times})", len(text) * times)
    if not text or not times:
        # str * n needs n to fit in a machine index even when the result is empty.
        return ""
    return text * times


def _pad(method: str, receiver: object, width: object, fill: object) -> tuple[str, str]:
    """Shared padStart/padEnd logic: returns (text, padding)."""
    text = require_string(method, receiver)
    target = require_count(method, "width", width)
    filler = _optional_string(method, "fill", fill, " ")
    check_result_size(f"{method}({target})", max(target, len(text)))
    missing = target - len(text)
    if missing <= 0 or not filler:
        return text, ""
    repeats, remainder = divmod(missing, len(filler))
    return text, filler * repeats + filler[:remainder]


def guarded_pad_start(receiver: object, width: object = 0, fill: object = None) -> str:
    """``s.padStart(width, fill=" ")``.

    Example:
        >>> guarded_pad_start("42", 5, "0")
        '00042'
    """
    text, padding = _pad("padStart", receiver, width, fill)
    return padding + text


def guarded_pad_end(receiver: object, width: object = 0, fill: object = None) -> str:
    """``s.padEnd(width, fill=" ")``.

    Example:
        >>> guarded_pad_end("hi", 5, ".")
        'hi...'
    """
    text, padding = _pad("padEnd", receiver, width, fill)
    return text + padding


def guarded_replace_all(receiver: object, search: object = None, replacement: object = None) -> str:
    """``s.replaceAll(search, replacement)`` with literal (non-pattern) search.

    An empty ``search`` inserts ``replacement`` between every character and
    at both ends.
    """
    text = require_string("replaceAll", receiver)
    needle = to_display_string(search) if search is not None else "undefined"
    substitute = to_display_string(replacement) if replacement is not None else "undefined"
    occurrences = len(text) + 1 if needle == "" else text.count(needle)
    length = len(text) + occurrences * (len(substitute) - len(needle))
    check_result_size("replaceAll()", length)
    if needle == "":
        return substitute + substitute.join(text) + substitute if text else substitute
    return text.replace(needle, substitute)


def guarded_join(receiver: object, separator: object = None) -> str:
    """``arr.join(separator=",")``.

    Example:
        >>> guarded_join(("Alice", "Bob"), ", ")
        'Alice, Bob'
    """
    items = require_array("join", receiver)
    sep = "," if separator is None else to_display_string(separator)
    parts = [to_display_string(item) for item in items]
    length = sum(map(len, parts)) + len(sep) * max(len(parts) - 1, 0)
    check_result_size("join()", length)
    return sep.join(parts)


def guarded_concat(left: str, right: str, call: str = "+") -> str:
    """String concatenation bounded like the other amplifying operations."""
    check_result_size(f"concatenation ({call})", len(left) + len(right))
    return left + right
