"""Built-in callables exposed through the context.

Randomness (``random``, ``roll``, ``pick``) and wall-clock time (``Date``,
the date/time string helpers) are the only non-deterministic primitives an
expression can reach. Each factory takes its source of randomness or time
as a parameter so callers and tests can pin it down.

All callables accept positional expression values and return expression
values; invalid arguments raise ExprRuntimeError, never a Python builtin
exception.

Python 3.13+. Uses Babel (via LocaleContext) for date, time and duration text.
"""

import math
import random as random_module
import re
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, tzinfo

from safeexpr.constants import MAX_DICE_COUNT
from safeexpr.diagnostics import ErrorCategory, ErrorTemplate, ExprRuntimeError

from .locale_context import LocaleContext
from .values import ExprDate, Value, is_number, make_namespace, to_display_string, type_name

__all__ = [
    "Clock",
    "make_date_namespace",
    "make_pick",
    "make_random",
    "make_roll",
    "make_time_helpers",
    "roll_dice",
    "system_clock",
]

type Clock = Callable[[], datetime]

# NdM or NdM+K / NdM-K
_DICE_PATTERN = re.compile(r"^(\d+)d(\d+)([+-]\d+)?$")


def system_clock() -> datetime:
    """Current UTC time."""
    return datetime.now(UTC)


def _require_number(function: str, value: Value) -> int | float:
    if not is_number(value):
        raise ExprRuntimeError(
            ErrorTemplate.invalid_argument(
                function, f"expected a number, got {type_name(value)}"
            ),
            category=ErrorCategory.TYPE_MISMATCH,
        )
    return value  # type: ignore[return-value]  # narrowed by is_number


def _require_finite(function: str, value: Value) -> int | float:
    number = _require_number(function, value)
    if not math.isfinite(number):
        raise ExprRuntimeError(
            ErrorTemplate.invalid_argument(
                function, f"expected a finite number, got {to_display_string(number)}"
            ),
            category=ErrorCategory.TYPE_MISMATCH,
        )
    return number


# ============================================================================
# RANDOMNESS
# ============================================================================


def make_random(rng: random_module.Random | None = None) -> Callable[..., int | float]:
    """Build ``random()``.

    - ``random()``: float in [0, 1)
    - ``random(n)``: integer in 1..n
    - ``random(a, b)``: integer in a..b (inclusive)
    """
    source = rng or random_module.Random()

    def random(minimum: Value = None, maximum: Value = None) -> int | float:
        if minimum is None:
            return source.random()
        low = _require_finite("random", minimum)
        if maximum is None:
            return math.floor(source.random() * low) + 1
        high = _require_finite("random", maximum)
        return math.floor(low + source.random() * (high - low + 1))

    return random


def roll_dice(expression: Value, rng: random_module.Random | None = None) -> int:
    """Roll ``NdM+K`` dice and return the total.

    Args:
        expression: Dice notation such as "2d6+3"
        rng: Random source (default: a fresh Random)

    Raises:
        ExprRuntimeError: (TYPE_MISMATCH) for malformed notation, zero sides,
            or more than MAX_DICE_COUNT dice

    Example:
        >>> roll_dice("3d1+2")
        5
    """
    text = expression if isinstance(expression, str) else to_display_string(expression)
    found = _DICE_PATTERN.match(text)
    if found is None:
        raise ExprRuntimeError(ErrorTemplate.invalid_dice(text), category=ErrorCategory.TYPE_MISMATCH)
    count, sides = int(found.group(1)), int(found.group(2))
    if count > MAX_DICE_COUNT or sides == 0:
        raise ExprRuntimeError(ErrorTemplate.invalid_dice(text), category=ErrorCategory.TYPE_MISMATCH)
    source = rng or random_module.Random()
    total = int(found.group(3)) if found.group(3) else 0
    for _ in range(count):
        total += source.randint(1, sides)
    return total


def make_roll(rng: random_module.Random | None = None) -> Callable[[Value], int]:
    """Build ``roll(dice)`` bound to ``rng``."""
    source = rng or random_module.Random()

    def roll(dice: Value = None) -> int:
        return roll_dice(dice, source)

    return roll


def make_pick(rng: random_module.Random | None = None) -> Callable[..., Value]:
    """Build ``pick()``.

    ``pick(array)`` returns a random element; ``pick(a, b, c)`` a random
    argument. An empty array (or no arguments) gives null.
    """
    source = rng or random_module.Random()

    def pick(*options: Value) -> Value:
        if len(options) == 1 and isinstance(options[0], tuple):
            options = options[0]
        if not options:
            return None
        return options[math.floor(source.random() * len(options))]

    return pick


# ============================================================================
# DATES
# ============================================================================


def make_date_namespace(
    *,
    tz: tzinfo = UTC,
    locale: LocaleContext | None = None,
    clock: Clock = system_clock,
) -> Mapping[str, Value]:
    """Build the read-only ``Date`` namespace: ``new``, ``now``, ``parse``, ``UTC``.

    Example:
        >>> Date = make_date_namespace()
        >>> Date["UTC"](2024, 0, 15, 12)
        1705320000000
    """

    def new(*args: Value) -> ExprDate:
        if not args:
            return ExprDate.from_datetime(clock(), tz)
        if len(args) == 1:
            value = args[0]
            if isinstance(value, ExprDate):
                return ExprDate(value.epoch_ms, tz)
            if isinstance(value, str):
                return ExprDate.parse(value, tz, locale)
            return ExprDate.from_ms(_require_number("Date.new", value), tz)
        numbers = [_require_number("Date.new", arg) for arg in args[:7]]
        return ExprDate.from_components(*numbers, tz=tz)

    def now() -> int | float:
        return ExprDate.from_datetime(clock(), tz).epoch_ms

    def parse(text: Value = None) -> int | float:
        return ExprDate.parse(to_display_string(text), tz, locale).epoch_ms

    def utc(year: Value = None, *rest: Value) -> int | float:
        numbers = [_require_number("Date.UTC", arg) for arg in (year, *rest[:6])]
        if len(numbers) == 1:
            numbers.append(0)
        return ExprDate.from_components(*numbers, tz=UTC).epoch_ms

    return make_namespace(new=new, now=now, parse=parse, UTC=utc)


def make_time_helpers(
    *,
    locale: LocaleContext,
    tz: tzinfo = UTC,
    clock: Clock = system_clock,
) -> dict[str, Callable[..., str]]:
    """Build ``duration``, ``date_str``, ``time_str``, ``isodate``, ``isotime``, ``weekday``.

    ``date_str(offset_days)`` and ``weekday(offset_days)`` accept an optional
    day offset from today.
    """

    def local_now(offset_days: Value = None) -> datetime:
        moment = clock().astimezone(tz)
        if offset_days is not None:
            days = _require_finite("date_str", offset_days)
            moment = datetime.fromtimestamp(moment.timestamp() + days * 86_400, tz)
        return moment

    def duration(milliseconds: Value = None) -> str:
        return locale.format_duration(_require_finite("duration", milliseconds))

    def date_str(offset_days: Value = None) -> str:
        return locale.format_date(local_now(offset_days), "full")

    def time_str() -> str:
        return locale.format_time(local_now(), "short")

    def isodate() -> str:
        return local_now().date().isoformat()

    def isotime() -> str:
        return local_now().strftime("%H:%M")

    def weekday(offset_days: Value = None) -> str:
        return locale.format_weekday(local_now(offset_days))

    return {
        "duration": duration,
        "date_str": date_str,
        "time_str": time_str,
        "isodate": isodate,
        "isotime": isotime,
        "weekday": weekday,
    }
