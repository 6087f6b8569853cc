"""Runtime value model.

Every value an expression can observe is one of:

    None                  absent field or optional slot
    bool, int, float      booleans and numbers
    str                   strings
    tuple[str, ...]       arrays (immutable, so no method can mutate context)
    ExprDate              dates
    Mapping[str, Value]   records and namespaces (``self``, ``time``, ``Date``)
    callable              host functions supplied by the context
    BoundMethod           a built-in method read but not yet called

The interpreter only ever dispatches on these types; it never reads an
attribute of a host object, so there is no reflective surface to reach.

Python 3.13+. Uses Babel for locale-aware date strings.
"""

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo
from types import MappingProxyType

from safeexpr.diagnostics import ErrorCategory, ErrorTemplate, ExprRuntimeError

from .locale_context import LocaleContext

__all__ = [
    "BoundMethod",
    "ExprDate",
    "Value",
    "display_number",
    "from_host",
    "is_number",
    "is_truthy",
    "make_namespace",
    "normalize_number",
    "strict_equals",
    "to_display_string",
    "type_name",
]

type Value = (
    None
    | bool
    | int
    | float
    | str
    | tuple[str, ...]
    | ExprDate
    | Mapping[str, Value]
    | BoundMethod
    | Callable[..., Value]
)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# Representable range, one day inside datetime's years 1-9999 so that any
# timezone offset still converts. Narrower than JavaScript's +-8.64e15 ms;
# instants outside it are invalid dates.
_MIN_EPOCH_MS = (datetime(1, 1, 2, tzinfo=UTC) - _EPOCH) // timedelta(milliseconds=1)
_MAX_EPOCH_MS = (datetime(9999, 12, 30, tzinfo=UTC) - _EPOCH) // timedelta(milliseconds=1)

# Largest integer a double represents exactly; beyond it numbers become floats.
_MAX_SAFE_INTEGER = 2**53

_WEEKDAY_ABBR = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def make_namespace(**members: "Value") -> Mapping[str, "Value"]:
    """Read-only record for use as a context value."""
    return MappingProxyType(dict(members))


# ============================================================================
# NUMBERS
# ============================================================================


def is_number(value: object) -> bool:
    """True for int and float, never for bool."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_number(value: int | float) -> int | float:
    """Keep integers within the exactly-representable range.

    Integer results beyond 2**53 become floats (inf on overflow), matching
    double-precision arithmetic.
    """
    if isinstance(value, int) and not -_MAX_SAFE_INTEGER <= value <= _MAX_SAFE_INTEGER:
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    return value


def display_number(value: int | float) -> str:
    """Number as shown to users: integral floats without '.0'.

    Example:
        >>> display_number(2.0), display_number(0.5), display_number(float("inf"))
        ('2', '0.5', 'Infinity')
    """
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


# ============================================================================
# DATES
# ============================================================================


@dataclass(frozen=True, slots=True)
class ExprDate:
    """Point in time with JavaScript-style accessors.

    Stores milliseconds since the Unix epoch (NaN for an invalid date) and
    the timezone used by the local-time getters.

    Example:
        >>> ExprDate.from_ms(0).to_iso_string()
        '1970-01-01T00:00:00.000Z'
    """

    epoch_ms: int | float
    tz: tzinfo = UTC

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_ms(cls, milliseconds: float, tz: tzinfo = UTC) -> "ExprDate":
        """Date at ``milliseconds`` after the epoch.

        NaN, infinities and instants outside years 1-9999 give an invalid date.
        """
        if not math.isfinite(milliseconds):
            return cls(math.nan, tz)
        epoch_ms = int(milliseconds)
        if not _MIN_EPOCH_MS <= epoch_ms <= _MAX_EPOCH_MS:
            return cls(math.nan, tz)
        return cls(epoch_ms, tz)

    @classmethod
    def invalid(cls, tz: tzinfo = UTC) -> "ExprDate":
        """The invalid date (all getters return NaN)."""
        return cls(math.nan, tz)

    @classmethod
    def from_datetime(cls, value: datetime, tz: tzinfo = UTC) -> "ExprDate":
        """Date for an aware datetime (naive values are taken in ``tz``)."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=tz)
        delta = value - _EPOCH
        return cls.from_ms(delta // timedelta(milliseconds=1), tz)

    @classmethod
    def from_components(
        cls,
        year: float,
        month: float,
        day: float = 1,
        hours: float = 0,
        minutes: float = 0,
        seconds: float = 0,
        milliseconds: float = 0,
        *,
        tz: tzinfo = UTC,
    ) -> "ExprDate":
        """Date from local-time components, with overflow carried upward.

        ``month`` is 0-based. Out-of-range components roll over into the
        next unit (month 12 is January of the following year, day 32 of
        January is February 1). Years 0-99 mean 1900-1999.
        """
        parts = (year, month, day, hours, minutes, seconds, milliseconds)
        if not all(math.isfinite(part) for part in parts):
            return cls.invalid(tz)
        year_i, month_i = int(year), int(month)
        if 0 <= year_i <= 99:
            year_i += 1900
        year_i += month_i // 12
        month_i %= 12
        try:
            start = datetime(year_i, month_i + 1, 1, tzinfo=tz)
            moment = start + timedelta(
                days=int(day) - 1,
                hours=int(hours),
                minutes=int(minutes),
                seconds=int(seconds),
                milliseconds=int(milliseconds),
            )
        except (ValueError, OverflowError):
            return cls.invalid(tz)
        return cls.from_datetime(moment, tz)

    @classmethod
    def parse(cls, text: str, tz: tzinfo = UTC, locale: LocaleContext | None = None) -> "ExprDate":
        """Parse an ISO 8601 string, or a date in the locale's short format.

        Date-only ISO strings are taken as UTC midnight; date-times without
        an offset are local time. Anything unparseable is an invalid date.
        """
        text = text.strip()
        if not text:
            return cls.invalid(tz)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None and "T" not in text and " " not in text:
                parsed = parsed.replace(tzinfo=UTC)
            return cls.from_datetime(parsed, tz)
        if locale is not None:
            day = locale.parse_date(text)
            if day is not None:
                return cls.from_datetime(datetime(day.year, day.month, day.day), tz)
        return cls.invalid(tz)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_valid(self) -> bool:
        """False for the invalid date."""
        return not (isinstance(self.epoch_ms, float) and math.isnan(self.epoch_ms))

    def to_utc(self) -> datetime:
        """UTC datetime (valid dates only)."""
        return _EPOCH + timedelta(milliseconds=self.epoch_ms)

    def to_local(self) -> datetime:
        """Datetime in ``tz`` (valid dates only)."""
        return self.to_utc().astimezone(self.tz)

    def timezone_offset(self) -> int | float:
        """Minutes from local time to UTC (positive west of Greenwich)."""
        if not self.is_valid:
            return math.nan
        offset = self.to_local().utcoffset() or timedelta(0)
        return -int(offset.total_seconds() // 60)

    def to_iso_string(self) -> str:
        """ISO 8601 UTC form: ``YYYY-MM-DDTHH:MM:SS.sssZ``.

        Raises:
            ExprRuntimeError: On the invalid date
        """
        if not self.is_valid:
            raise ExprRuntimeError(
                ErrorTemplate.invalid_date("toISOString"), category=ErrorCategory.TYPE_MISMATCH
            )
        moment = self.to_utc()
        return (
            f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
            f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
            f".{moment.microsecond // 1000:03d}Z"
        )

    def to_date_string(self) -> str:
        """``Mon Jan 15 2024``, or ``Invalid Date``."""
        if not self.is_valid:
            return "Invalid Date"
        moment = self.to_local()
        return (
            f"{_WEEKDAY_ABBR[moment.weekday()]} {_MONTH_ABBR[moment.month - 1]} "
            f"{moment.day:02d} {moment.year:04d}"
        )

    def to_time_string(self) -> str:
        """``14:30:00 GMT+0000 (UTC)``, or ``Invalid Date``."""
        if not self.is_valid:
            return "Invalid Date"
        moment = self.to_local()
        offset = moment.strftime("%z") or "+0000"
        zone = moment.tzname() or "UTC"
        return f"{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d} GMT{offset} ({zone})"

    def to_display_string(self) -> str:
        """Date and time, as ``toString()`` shows them."""
        if not self.is_valid:
            return "Invalid Date"
        return f"{self.to_date_string()} {self.to_time_string()}"


# ============================================================================
# BOUND METHODS
# ============================================================================


@dataclass(frozen=True, slots=True)
class BoundMethod:
    """Built-in method read from a receiver but not yet called.

    Produced by member access such as ``content.trim``; calling it runs the
    method on the captured receiver.
    """

    name: str
    receiver: "Value"
    function: Callable[..., "Value"]

    def __call__(self, *args: "Value") -> "Value":
        return self.function(self.receiver, *args)


# ============================================================================
# COERCIONS
# ============================================================================


def type_name(value: object) -> str:
    """Name of a value's type as shown in error messages."""
    match value:
        case None:
            return "null"
        case bool():
            return "boolean"
        case int() | float():
            return "number"
        case str():
            return "string"
        case tuple():
            return "array"
        case ExprDate():
            return "date"
        case BoundMethod():
            return "function"
        case Mapping():
            return "object"
        case _ if callable(value):
            return "function"
        case _:
            return "object"


def is_truthy(value: object) -> bool:
    """Truthiness: None, False, 0, NaN and "" are false; everything else is true.

    Empty arrays and records are true.
    """
    if value is None or value is False:
        return False
    if value is True:
        return True
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def strict_equals(left: object, right: object) -> bool:
    """Equality without coercion.

    Values of different types are never equal (a boolean never equals a
    number); int and float compare numerically; NaN equals nothing; arrays
    compare element-wise; dates compare by time.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if is_number(left) and is_number(right):
        return left == right
    if type_name(left) != type_name(right):
        return False
    if isinstance(left, ExprDate) and isinstance(right, ExprDate):
        return left.is_valid and right.is_valid and left.epoch_ms == right.epoch_ms
    if isinstance(left, (str, tuple)) or left is None:
        return left == right
    return left is right


def to_display_string(value: object) -> str:
    """Convert a value to the text substituted into messages.

    Example:
        >>> [to_display_string(v) for v in (None, True, 4.0, ("a", "b"))]
        ['', 'true', '4', 'a,b']
    """
    match value:
        case None:
            return ""
        case bool():
            return "true" if value else "false"
        case int() | float():
            return display_number(value)
        case str():
            return value
        case tuple():
            return ",".join(to_display_string(item) for item in value)
        case ExprDate():
            return value.to_iso_string() if value.is_valid else "Invalid Date"
        case BoundMethod():
            return f"function {value.name}() {{ [native code] }}"
        case Mapping():
            return "[object Object]"
        case _:
            return "function () { [native code] }"


def from_host(value: object) -> "Value":
    """Normalize a value supplied by the host into the value model.

    Lists become arrays, plain dicts become read-only records, datetimes
    become dates and oversized integers become floats. Anything else is
    returned unchanged; the interpreter never reads its attributes.
    """
    match value:
        case bool() | None | str() | float():
            return value
        case int():
            return normalize_number(value)
        case list() | tuple():
            return tuple(value)
        case datetime():
            return ExprDate.from_datetime(value)
        case MappingProxyType():
            return value
        case Mapping():
            return MappingProxyType(value)  # type: ignore[arg-type]  # any Mapping is accepted at run time
        case _:
            return value  # type: ignore[return-value]  # opaque host object
