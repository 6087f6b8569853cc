"""Built-in member tables for strings, arrays, numbers, booleans and dates.

Member access on a primitive never touches Python attributes: the name is
looked up in a fixed MethodRegistry for the receiver's type, and anything
missing is a TYPE_MISMATCH. Methods follow JavaScript naming and argument
conventions (camelCase names, extra arguments ignored, missing arguments
treated as absent) because expression authors write them that way.

Architecture:
    - MethodRegistry: name -> MethodSignature for one receiver type
    - Registration derives the camelCase name and the accepted argument
      count from the Python function signature
    - resolve_member(): property value or BoundMethod for a receiver

Python 3.13+. Uses Babel (via LocaleContext) for locale date strings.
"""

import math
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from inspect import Parameter, signature

from safeexpr.diagnostics import ErrorCategory, ErrorTemplate, ExprRuntimeError
from safeexpr.validation.patterns import validate_pattern

from .guards import (
    check_result_size,
    guarded_concat,
    guarded_join,
    guarded_pad_end,
    guarded_pad_start,
    guarded_repeat,
    guarded_replace_all,
    require_count,
)
from .locale_context import LocaleContext
from .values import (
    BoundMethod,
    ExprDate,
    Value,
    display_number,
    is_number,
    strict_equals,
    to_display_string,
    type_name,
)

__all__ = [
    "ARRAY_METHODS",
    "BOOLEAN_METHODS",
    "DATE_METHODS",
    "NUMBER_METHODS",
    "STRING_METHODS",
    "MethodRegistry",
    "MethodSignature",
    "resolve_member",
]


# ============================================================================
# REGISTRY
# ============================================================================


@dataclass(frozen=True, slots=True)
class MethodSignature:
    """Method metadata.

    Attributes:
        name: Name used in expressions (camelCase)
        python_name: Name of the implementing Python function
        callable: Implementation, called as ``callable(receiver, *args)``
        max_args: Positional arguments accepted after the receiver
            (None when variadic); extra arguments are dropped
        takes_locale: True if the implementation needs the engine locale
    """

    name: str
    python_name: str
    callable: Callable[..., Value]
    max_args: int | None
    takes_locale: bool


class MethodRegistry:
    """Fixed method table for one receiver type.

    Example:
        >>> registry = MethodRegistry("string")
        >>> registry.register(lambda s: s.upper(), name="toUpperCase")
        >>> "toUpperCase" in registry
        True
    """

    __slots__ = ("_methods", "receiver_type")

    def __init__(self, receiver_type: str) -> None:
        self.receiver_type = receiver_type
        self._methods: dict[str, MethodSignature] = {}

    def register(self, func: Callable[..., Value], *, name: str | None = None) -> None:
        """Register ``func`` (receiver first) under ``name``.

        The default name is the camelCase form of the function name.
        """
        python_name = getattr(func, "__name__", "unknown")
        if name is None:
            name = self._to_camel_case(python_name.lstrip("_"))

        positional = 0
        variadic = False
        takes_locale = False
        for param in signature(func).parameters.values():
            if param.kind is Parameter.VAR_POSITIONAL:
                variadic = True
            elif param.kind is Parameter.KEYWORD_ONLY:
                takes_locale = takes_locale or param.name == "locale"
            elif param.kind in (Parameter.POSITIONAL_ONLY, Parameter.POSITIONAL_OR_KEYWORD):
                positional += 1

        self._methods[name] = MethodSignature(
            name=name,
            python_name=python_name,
            callable=func,
            max_args=None if variadic else max(positional - 1, 0),
            takes_locale=takes_locale,
        )

    def method(self, name: str | None = None) -> Callable[[Callable[..., Value]], Callable[..., Value]]:
        """Decorator form of register()."""

        def decorator(func: Callable[..., Value]) -> Callable[..., Value]:
            self.register(func, name=name)
            return func

        return decorator

    def bind(self, receiver: Value, name: str, locale: LocaleContext) -> BoundMethod | None:
        """BoundMethod for ``receiver.name``, or None if not registered."""
        sig = self._methods.get(name)
        if sig is None:
            return None
        impl = partial(sig.callable, locale=locale) if sig.takes_locale else sig.callable
        limit = sig.max_args

        def call(bound_receiver: Value, *args: Value) -> Value:
            if limit is not None:
                args = args[:limit]
            return impl(bound_receiver, *args)

        return BoundMethod(name, receiver, call)

    def __contains__(self, name: object) -> bool:
        return name in self._methods

    def __iter__(self) -> Iterator[str]:
        return iter(self._methods)

    def __len__(self) -> int:
        return len(self._methods)

    def __repr__(self) -> str:
        return f"MethodRegistry({self.receiver_type!r}, methods={len(self._methods)})"

    @staticmethod
    def _to_camel_case(snake_case: str) -> str:
        """Convert snake_case to camelCase.

        Examples:
            >>> MethodRegistry._to_camel_case("pad_start")
            'padStart'
            >>> MethodRegistry._to_camel_case("trim")
            'trim'
        """
        components = snake_case.split("_")
        return components[0] + "".join(comp.capitalize() for comp in components[1:])


# ============================================================================
# ARGUMENT COERCION
# ============================================================================


def _text(value: Value) -> str:
    """String form of a search argument (absent reads as "undefined")."""
    return "undefined" if value is None else to_display_string(value)


def _integer(method: str, value: Value, default: int) -> int:
    """Integer position argument: truncated, NaN is 0, infinities clamp."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if not is_number(value):
        raise ExprRuntimeError(
            ErrorTemplate.type_mismatch(
                f"{method}() argument must be a number, not {type_name(value)}",
                "number",
                type_name(value),
            ),
            category=ErrorCategory.TYPE_MISMATCH,
        )
    number: float = value  # type: ignore[assignment]  # narrowed by is_number
    if math.isnan(number):
        return 0
    if math.isinf(number):
        return 2**53 if number > 0 else -(2**53)
    return int(number)


def _clamp(index: int, length: int) -> int:
    """JS relative index: negative counts from the end, clamped to [0, length]."""
    if index < 0:
        return max(length + index, 0)
    return min(index, length)


def _bounded(index: int, length: int) -> int:
    return min(max(index, 0), length)


def _pattern(method: str, value: Value) -> re.Pattern[str]:
    if not isinstance(value, str):
        raise ExprRuntimeError(
            ErrorTemplate.type_mismatch(
                f"{method}() pattern must be a string, not {type_name(value)}",
                "string",
                type_name(value),
            ),
            category=ErrorCategory.TYPE_MISMATCH,
        )
    # Pattern literals were checked at compile time; the lookup is memoized.
    return validate_pattern(value).regex


# ============================================================================
# STRING METHODS
# ============================================================================

STRING_METHODS = MethodRegistry("string")


@STRING_METHODS.method()
def includes(text: str, search: Value = None, position: Value = None) -> bool:
    start = _bounded(_integer("includes", position, 0), len(text))
    return _text(search) in text[start:]


@STRING_METHODS.method()
def starts_with(text: str, search: Value = None, position: Value = None) -> bool:
    start = _bounded(_integer("startsWith", position, 0), len(text))
    return text.startswith(_text(search), start)


@STRING_METHODS.method()
def ends_with(text: str, search: Value = None, end_position: Value = None) -> bool:
    end = _bounded(_integer("endsWith", end_position, len(text)), len(text))
    return text.endswith(_text(search), 0, end)


@STRING_METHODS.method()
def index_of(text: str, search: Value = None, position: Value = None) -> int:
    start = _bounded(_integer("indexOf", position, 0), len(text))
    return text.find(_text(search), start)


@STRING_METHODS.method()
def last_index_of(text: str, search: Value = None, position: Value = None) -> int:
    needle = _text(search)
    start = _bounded(_integer("lastIndexOf", position, len(text)), len(text))
    return text.rfind(needle, 0, start + len(needle))


@STRING_METHODS.method(name="slice")
def string_slice(text: str, start: Value = None, end: Value = None) -> str:
    return text[_integer("slice", start, 0):_integer("slice", end, len(text))]


@STRING_METHODS.method()
def substring(text: str, start: Value = None, end: Value = None) -> str:
    first = _bounded(_integer("substring", start, 0), len(text))
    last = _bounded(_integer("substring", end, len(text)), len(text))
    if first > last:
        first, last = last, first
    return text[first:last]


@STRING_METHODS.method(name="at")
def string_at(text: str, index: Value = None) -> str | None:
    position = _integer("at", index, 0)
    if -len(text) <= position < len(text):
        return text[position]
    return None


@STRING_METHODS.method()
def char_at(text: str, index: Value = None) -> str:
    position = _integer("charAt", index, 0)
    return text[position] if 0 <= position < len(text) else ""


@STRING_METHODS.method()
def char_code_at(text: str, index: Value = None) -> int | float:
    position = _integer("charCodeAt", index, 0)
    return ord(text[position]) if 0 <= position < len(text) else math.nan


@STRING_METHODS.method()
def to_upper_case(text: str) -> str:
    return text.upper()


@STRING_METHODS.method()
def to_lower_case(text: str) -> str:
    return text.lower()


@STRING_METHODS.method()
def trim(text: str) -> str:
    return text.strip()


@STRING_METHODS.method()
def trim_start(text: str) -> str:
    return text.lstrip()


@STRING_METHODS.method()
def trim_end(text: str) -> str:
    return text.rstrip()


@STRING_METHODS.method(name="concat")
def string_concat(text: str, *parts: Value) -> str:
    result = text
    for part in parts:
        result = guarded_concat(result, to_display_string(part), "concat()")
    return result


@STRING_METHODS.method(name="toString")
def string_to_string(text: str) -> str:
    return text


@STRING_METHODS.method()
def match(text: str, pattern: Value = None) -> tuple[str, ...] | None:
    """First match as a one-element array, or null."""
    found = _pattern("match", pattern).search(text)
    return (found.group(0),) if found is not None else None


@STRING_METHODS.method()
def search(text: str, pattern: Value = None) -> int:
    """Index of the first match, or -1."""
    found = _pattern("search", pattern).search(text)
    return found.start() if found is not None else -1


@STRING_METHODS.method()
def replace(text: str, pattern: Value = None, replacement: Value = None) -> str:
    """Replace the first match with ``replacement`` taken literally."""
    regex = _pattern("replace", pattern)
    substitute = _text(replacement)
    found = regex.search(text)
    if found is None:
        return text
    check_result_size(
        "replace()", len(text) - (found.end() - found.start()) + len(substitute)
    )
    return text[:found.start()] + substitute + text[found.end():]


@STRING_METHODS.method()
def split(text: str, pattern: Value = None, limit: Value = None) -> tuple[str, ...]:
    """Split around matches of ``pattern``; an empty pattern splits into characters.

    Empty matches adjacent to the previous split point do not split, so
    ``"abc".split("")`` is ``["a", "b", "c"]``.
    """
    regex = _pattern("split", pattern)
    max_parts = require_count("split", "limit", limit) if limit is not None else None
    if max_parts == 0:
        return ()
    if not text:
        return () if regex.match(text) is not None else ("",)

    parts: list[str] = []
    start = 0
    position = 0
    while position < len(text):
        found = regex.match(text, position)
        if found is None or found.end() == start:
            position += 1
            continue
        parts.append(text[start:position])
        if max_parts is not None and len(parts) == max_parts:
            return tuple(parts)
        start = found.end()
        position = start if found.end() > position else position + 1
    parts.append(text[start:])
    if max_parts is not None:
        parts = parts[:max_parts]
    return tuple(parts)


STRING_METHODS.register(guarded_repeat, name="repeat")
STRING_METHODS.register(guarded_pad_start, name="padStart")
STRING_METHODS.register(guarded_pad_end, name="padEnd")
STRING_METHODS.register(guarded_replace_all, name="replaceAll")


# ============================================================================
# ARRAY METHODS
# ============================================================================

ARRAY_METHODS = MethodRegistry("array")


@ARRAY_METHODS.method(name="includes")
def array_includes(items: tuple[Value, ...], value: Value = None) -> bool:
    return any(strict_equals(item, value) for item in items)


@ARRAY_METHODS.method(name="indexOf")
def array_index_of(items: tuple[Value, ...], value: Value = None, start: Value = None) -> int:
    first = _clamp(_integer("indexOf", start, 0), len(items))
    for index in range(first, len(items)):
        if strict_equals(items[index], value):
            return index
    return -1


@ARRAY_METHODS.method(name="lastIndexOf")
def array_last_index_of(items: tuple[Value, ...], value: Value = None) -> int:
    for index in range(len(items) - 1, -1, -1):
        if strict_equals(items[index], value):
            return index
    return -1


@ARRAY_METHODS.method(name="slice")
def array_slice(items: tuple[Value, ...], start: Value = None, end: Value = None) -> tuple[Value, ...]:
    return items[_integer("slice", start, 0):_integer("slice", end, len(items))]


@ARRAY_METHODS.method(name="at")
def array_at(items: tuple[Value, ...], index: Value = None) -> Value:
    position = _integer("at", index, 0)
    if -len(items) <= position < len(items):
        return items[position]
    return None


@ARRAY_METHODS.method(name="toString")
def array_to_string(items: tuple[Value, ...]) -> str:
    return guarded_join(items, ",")


def _sorted(items: tuple[Value, ...]) -> tuple[Value, ...]:
    """Copy sorted by display string (arrays are immutable; sort never mutates)."""
    return tuple(sorted(items, key=to_display_string))


def _reversed(items: tuple[Value, ...]) -> tuple[Value, ...]:
    return items[::-1]


ARRAY_METHODS.register(guarded_join, name="join")
ARRAY_METHODS.register(_sorted, name="sort")
ARRAY_METHODS.register(_sorted, name="toSorted")
ARRAY_METHODS.register(_reversed, name="reverse")
ARRAY_METHODS.register(_reversed, name="toReversed")


# ============================================================================
# NUMBER AND BOOLEAN METHODS
# ============================================================================

NUMBER_METHODS = MethodRegistry("number")
BOOLEAN_METHODS = MethodRegistry("boolean")


@NUMBER_METHODS.method()
def to_fixed(value: int | float, digits: Value = None) -> str:
    """Fixed-point notation with ``digits`` (0-100) fraction digits."""
    places = require_count("toFixed", "digits", 0 if digits is None else digits)
    if places > 100:
        raise ExprRuntimeError(
            ErrorTemplate.invalid_argument("toFixed", "digits must be between 0 and 100"),
            category=ErrorCategory.TYPE_MISMATCH,
        )
    if not math.isfinite(value):
        return display_number(value)
    return f"{value:.{places}f}"


@NUMBER_METHODS.method(name="toString")
def number_to_string(value: int | float) -> str:
    return display_number(value)


@BOOLEAN_METHODS.method(name="toString")
def boolean_to_string(value: bool) -> str:
    return "true" if value else "false"


# ============================================================================
# DATE METHODS
# ============================================================================

DATE_METHODS = MethodRegistry("date")


def _component(extract: Callable[[datetime], int], *, utc: bool) -> Callable[[ExprDate], int | float]:
    def getter(date: ExprDate) -> int | float:
        if not date.is_valid:
            return math.nan
        return extract(date.to_utc() if utc else date.to_local())

    return getter


_COMPONENTS: dict[str, Callable[[datetime], int]] = {
    "FullYear": lambda moment: moment.year,
    "Month": lambda moment: moment.month - 1,
    "Date": lambda moment: moment.day,
    # Sunday is 0
    "Day": lambda moment: (moment.weekday() + 1) % 7,
    "Hours": lambda moment: moment.hour,
    "Minutes": lambda moment: moment.minute,
    "Seconds": lambda moment: moment.second,
    "Milliseconds": lambda moment: moment.microsecond // 1000,
}

for _suffix, _extract in _COMPONENTS.items():
    DATE_METHODS.register(_component(_extract, utc=False), name=f"get{_suffix}")
    DATE_METHODS.register(_component(_extract, utc=True), name=f"getUTC{_suffix}")


@DATE_METHODS.method()
def get_time(date: ExprDate) -> int | float:
    return date.epoch_ms


@DATE_METHODS.method()
def value_of(date: ExprDate) -> int | float:
    return date.epoch_ms


@DATE_METHODS.method()
def get_timezone_offset(date: ExprDate) -> int | float:
    return date.timezone_offset()


@DATE_METHODS.method(name="toISOString")
def to_iso_string(date: ExprDate) -> str:
    return date.to_iso_string()


@DATE_METHODS.method(name="toJSON")
def to_json(date: ExprDate) -> str | None:
    """ISO string, or null for the invalid date."""
    return date.to_iso_string() if date.is_valid else None


@DATE_METHODS.method(name="toString")
def date_to_string(date: ExprDate) -> str:
    return date.to_display_string()


@DATE_METHODS.method()
def to_date_string(date: ExprDate) -> str:
    return date.to_date_string()


@DATE_METHODS.method()
def to_time_string(date: ExprDate) -> str:
    return date.to_time_string()


@DATE_METHODS.method(name="toUTCString")
def to_utc_string(date: ExprDate) -> str:
    if not date.is_valid:
        return "Invalid Date"
    return date.to_utc().strftime("%a, %d %b %Y %H:%M:%S GMT")


@DATE_METHODS.method()
def to_locale_string(date: ExprDate, *, locale: LocaleContext) -> str:
    if not date.is_valid:
        return "Invalid Date"
    return locale.format_datetime(date.to_local(), date_style="short", time_style="medium")


@DATE_METHODS.method()
def to_locale_date_string(date: ExprDate, *, locale: LocaleContext) -> str:
    if not date.is_valid:
        return "Invalid Date"
    return locale.format_date(date.to_local(), "short")


@DATE_METHODS.method()
def to_locale_time_string(date: ExprDate, *, locale: LocaleContext) -> str:
    if not date.is_valid:
        return "Invalid Date"
    return locale.format_time(date.to_local(), "medium")


# ============================================================================
# RESOLUTION
# ============================================================================


def resolve_member(receiver: Value, name: str, locale: LocaleContext) -> Value:
    """Read ``receiver.name`` for a primitive receiver.

    Returns the ``length`` property of strings and arrays, otherwise a
    BoundMethod from the receiver type's registry.

    Raises:
        ExprRuntimeError: (TYPE_MISMATCH) if the type has no such member
    """
    registry: MethodRegistry | None
    match receiver:
        case bool():
            registry = BOOLEAN_METHODS
        case int() | float():
            registry = NUMBER_METHODS
        case str() | tuple():
            if name == "length":
                return len(receiver)
            registry = STRING_METHODS if isinstance(receiver, str) else ARRAY_METHODS
        case ExprDate():
            registry = DATE_METHODS
        case _:
            registry = None

    bound = registry.bind(receiver, name, locale) if registry is not None else None
    if bound is None:
        raise ExprRuntimeError(
            ErrorTemplate.no_such_member(type_name(receiver), name),
            category=ErrorCategory.TYPE_MISMATCH,
        )
    return bound
