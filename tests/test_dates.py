"""Tests for ExprDate, the Date namespace and date methods.

Contexts come from make_context(), whose clock is pinned to
Monday 15 January 2024, 14:30:00 UTC.
"""

import math
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta, timezone

import pytest

from safeexpr import ExprDate, ExpressionEngine, ExprRuntimeError
from safeexpr.runtime import LocaleContext, make_date_namespace

FIXED_NOW_MS = 1_705_329_000_000
EST = timezone(timedelta(hours=-5))


@pytest.fixture
def date_eval(engine: ExpressionEngine, make_context: Callable[..., Mapping[str, object]]):
    """Evaluate with a full context, optionally in another timezone."""

    def evaluate(source: str, **overrides: object) -> object:
        return engine.eval(source, make_context(**overrides))

    return evaluate


# ============================================================================
# EXPRDATE
# ============================================================================


class TestExprDate:
    """The date value type."""

    def test_epoch(self) -> None:
        assert ExprDate.from_ms(0).to_iso_string() == "1970-01-01T00:00:00.000Z"

    def test_before_epoch(self) -> None:
        assert ExprDate.from_ms(-1).to_iso_string() == "1969-12-31T23:59:59.999Z"

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_is_invalid(self, value: float) -> None:
        date = ExprDate.from_ms(value)
        assert not date.is_valid
        assert math.isnan(date.epoch_ms)

    @pytest.mark.parametrize("value", [1e20, -1e20, 8.64e15, -8.64e15, 2.6e14, -6.3e13])
    def test_outside_representable_years_is_invalid(self, value: float) -> None:
        assert not ExprDate.from_ms(value).is_valid

    def test_representable_extremes(self) -> None:
        assert ExprDate.from_ms(253_402_000_000_000).to_iso_string().startswith("9999-")
        assert ExprDate.from_ms(-62_135_000_000_000).to_iso_string().startswith("0001-")

    def test_from_datetime(self, fixed_now: datetime) -> None:
        assert ExprDate.from_datetime(fixed_now).epoch_ms == FIXED_NOW_MS

    def test_naive_datetime_taken_in_timezone(self) -> None:
        date = ExprDate.from_datetime(datetime(2024, 1, 15, 9, 30), EST)
        assert date.epoch_ms == FIXED_NOW_MS

    def test_components_with_overflow(self) -> None:
        assert ExprDate.from_components(2024, 1, 30).to_iso_string() == "2024-03-01T00:00:00.000Z"
        assert ExprDate.from_components(2024, 12, 1).to_iso_string() == "2025-01-01T00:00:00.000Z"
        assert ExprDate.from_components(2024, -1, 1).to_iso_string() == "2023-12-01T00:00:00.000Z"

    def test_two_digit_years(self) -> None:
        assert ExprDate.from_components(99, 0).to_iso_string().startswith("1999-01-01")
        assert ExprDate.from_components(100, 0).to_iso_string().startswith("0100-01-01")

    def test_components_out_of_range_are_invalid(self) -> None:
        assert not ExprDate.from_components(300_000, 0).is_valid
        assert not ExprDate.from_components(math.nan, 0).is_valid

    def test_parse_iso(self) -> None:
        assert ExprDate.parse("2024-01-15T14:30:00Z").epoch_ms == FIXED_NOW_MS
        assert ExprDate.parse("2024-01-15T09:30:00-05:00").epoch_ms == FIXED_NOW_MS

    def test_parse_date_only_is_utc_midnight(self) -> None:
        assert ExprDate.parse("2024-03-10", EST).to_iso_string() == "2024-03-10T00:00:00.000Z"

    def test_parse_local_date_time(self) -> None:
        assert ExprDate.parse("2024-01-15T09:30:00", EST).epoch_ms == FIXED_NOW_MS

    def test_parse_locale_short_format(self) -> None:
        date = ExprDate.parse("1/15/2024", locale=LocaleContext.create("en_US"))
        assert date.to_iso_string() == "2024-01-15T00:00:00.000Z"

    @pytest.mark.parametrize("text", ["", "   ", "garbage", "2024-13-45"])
    def test_parse_failure_is_invalid(self, text: str) -> None:
        assert not ExprDate.parse(text).is_valid

    def test_invalid_iso_string_raises(self) -> None:
        with pytest.raises(ExprRuntimeError, match="Invalid date: toISOString"):
            ExprDate.invalid().to_iso_string()

    def test_text_forms(self) -> None:
        date = ExprDate.from_ms(FIXED_NOW_MS)
        assert date.to_date_string() == "Mon Jan 15 2024"
        assert date.to_time_string() == "14:30:00 GMT+0000 (UTC)"
        assert date.to_display_string() == "Mon Jan 15 2024 14:30:00 GMT+0000 (UTC)"

    def test_text_forms_in_other_timezone(self) -> None:
        date = ExprDate.from_ms(FIXED_NOW_MS, EST)
        assert date.to_time_string() == "09:30:00 GMT-0500 (UTC-05:00)"
        assert date.timezone_offset() == 300

    def test_invalid_text_forms(self) -> None:
        invalid = ExprDate.invalid()
        assert invalid.to_date_string() == "Invalid Date"
        assert invalid.to_display_string() == "Invalid Date"
        assert math.isnan(invalid.timezone_offset())


# ============================================================================
# DATE NAMESPACE
# ============================================================================


class TestDateNamespace:
    """Date.new, Date.now, Date.parse, Date.UTC."""

    def test_now(self, date_eval) -> None:
        assert date_eval("Date.now()") == FIXED_NOW_MS

    def test_new_without_arguments_is_now(self, date_eval) -> None:
        assert date_eval("Date.new().getTime()") == FIXED_NOW_MS

    def test_new_from_milliseconds(self, date_eval) -> None:
        assert date_eval("Date.new(0).toISOString()") == "1970-01-01T00:00:00.000Z"

    def test_new_from_string(self, date_eval) -> None:
        assert date_eval("Date.new('2024-03-10').getUTCDate()") == 10

    def test_new_from_date(self, date_eval) -> None:
        assert date_eval("Date.new(Date.new(5)).getTime()") == 5

    def test_new_from_components(self, date_eval) -> None:
        assert date_eval("Date.new(2024, 0, 31).toISOString()") == "2024-01-31T00:00:00.000Z"
        assert date_eval("Date.new(2024, 0, 32).getMonth()") == 1

    def test_new_components_are_local(self, date_eval) -> None:
        source = "Date.new(2024, 0, 15).toISOString()"
        assert date_eval(source, tz=EST) == "2024-01-15T05:00:00.000Z"

    def test_new_rejects_non_numbers(self, date_eval) -> None:
        with pytest.raises(ExprRuntimeError, match=r"Date.new\(\): expected a number, got string"):
            date_eval("Date.new(2024, 'x')")

    def test_parse(self, date_eval) -> None:
        assert date_eval("Date.parse('2024-01-15T00:00:00Z')") == 1_705_276_800_000
        assert math.isnan(date_eval("Date.parse('nope')"))

    def test_parse_locale_format(self, date_eval) -> None:
        assert date_eval("Date.parse('1/15/2024')") == 1_705_276_800_000

    def test_utc(self, date_eval) -> None:
        assert date_eval("Date.UTC(2024, 0, 15, 12)") == 1_705_320_000_000
        assert date_eval("Date.UTC(2024)") == 1_704_067_200_000

    def test_utc_ignores_timezone(self, date_eval) -> None:
        assert date_eval("Date.UTC(2024, 0, 15, 12)", tz=EST) == 1_705_320_000_000

    def test_namespace_is_read_only(self, fixed_now: datetime) -> None:
        namespace = make_date_namespace(clock=lambda: fixed_now)
        with pytest.raises(TypeError):
            namespace["now"] = None  # type: ignore[index]
        assert set(namespace) == {"new", "now", "parse", "UTC"}


# ============================================================================
# DATE METHODS
# ============================================================================


class TestDateGetters:
    """Local and UTC component getters."""

    @pytest.mark.parametrize(
        ("method", "expected"),
        [
            ("getFullYear", 2024),
            ("getMonth", 0),
            ("getDate", 15),
            ("getDay", 1),
            ("getHours", 14),
            ("getMinutes", 30),
            ("getSeconds", 0),
            ("getMilliseconds", 0),
            ("getTime", FIXED_NOW_MS),
            ("valueOf", FIXED_NOW_MS),
            ("getTimezoneOffset", 0),
        ],
    )
    def test_getter(self, date_eval, method: str, expected: int) -> None:
        assert date_eval(f"Date.new().{method}()") == expected

    def test_milliseconds(self, date_eval) -> None:
        assert date_eval("Date.new(1705329000123).getMilliseconds()") == 123

    def test_sunday_is_zero(self, date_eval) -> None:
        assert date_eval("Date.new(2024, 0, 14).getDay()") == 0

    def test_local_versus_utc(self, date_eval) -> None:
        assert date_eval("Date.new().getHours()", tz=EST) == 9
        assert date_eval("Date.new().getUTCHours()", tz=EST) == 14
        assert date_eval("Date.new().getTimezoneOffset()", tz=EST) == 300

    def test_utc_getters(self, date_eval) -> None:
        assert date_eval("Date.new(0).getUTCFullYear()") == 1970
        assert date_eval("Date.new(0).getUTCDay()") == 4

    def test_invalid_date_getters_are_nan(self, date_eval) -> None:
        assert math.isnan(date_eval("Date.new('x').getFullYear()"))
        assert math.isnan(date_eval("Date.new('x').getTime()"))

    def test_far_future_date_getters_are_nan(self, date_eval) -> None:
        huge = "100000000000000000000"
        assert math.isnan(date_eval(f"Date.new({huge}).getFullYear()"))
        assert math.isnan(date_eval(f"Date.new(-{huge}).getUTCHours()", tz=EST))
        assert date_eval(f"Date.new({huge}).toDateString()") == "Invalid Date"


class TestDateStrings:
    """String conversions."""

    def test_iso_and_json(self, date_eval) -> None:
        assert date_eval("Date.new().toISOString()") == "2024-01-15T14:30:00.000Z"
        assert date_eval("Date.new().toJSON()") == "2024-01-15T14:30:00.000Z"

    def test_to_string(self, date_eval) -> None:
        assert date_eval("Date.new().toString()") == "Mon Jan 15 2024 14:30:00 GMT+0000 (UTC)"
        assert date_eval("Date.new().toDateString()") == "Mon Jan 15 2024"
        assert date_eval("Date.new().toTimeString()") == "14:30:00 GMT+0000 (UTC)"

    def test_to_utc_string(self, date_eval) -> None:
        assert date_eval("Date.new().toUTCString()", tz=EST) == "Mon, 15 Jan 2024 14:30:00 GMT"

    def test_locale_strings(self, date_eval) -> None:
        assert date_eval("Date.new().toLocaleDateString()") == "1/15/24"
        assert "2:30:00" in date_eval("Date.new().toLocaleTimeString()")  # type: ignore[operator]
        assert date_eval("Date.new().toLocaleString()").startswith("1/15/24, 2:30:00")  # type: ignore[union-attr]

    def test_invalid_date_strings(self, date_eval) -> None:
        for method in ("toString", "toDateString", "toUTCString", "toLocaleString"):
            assert date_eval(f"Date.new('x').{method}()") == "Invalid Date"
        assert date_eval("Date.new('x').toJSON()") is None

    def test_invalid_date_iso_raises(self, date_eval) -> None:
        with pytest.raises(ExprRuntimeError, match="requires a valid date"):
            date_eval("Date.new('x').toISOString()")

    def test_display_string_is_iso(self, engine: ExpressionEngine, make_context) -> None:
        context = make_context()
        assert engine.eval_to_display_string("Date.new(0)", context) == "1970-01-01T00:00:00.000Z"
        assert engine.eval("'at ' + Date.new(0)", context) == "at 1970-01-01T00:00:00.000Z"


class TestDateComparison:
    """Dates compare by time."""

    def test_ordering(self, date_eval) -> None:
        assert date_eval("Date.new() > Date.new(0)") is True
        assert date_eval("Date.new(0) <= Date.new(0)") is True

    def test_equality(self, date_eval) -> None:
        assert date_eval("Date.new(0) == Date.new(0)") is True
        assert date_eval("Date.new(0) == Date.new(1)") is False

    def test_invalid_dates_never_compare(self, date_eval) -> None:
        assert date_eval("Date.new('x') < Date.new(0)") is False
        assert date_eval("Date.new('x') == Date.new('x')") is False

    def test_host_datetimes_become_dates(self, engine: ExpressionEngine) -> None:
        context = {"self": {"born": datetime(2000, 1, 1, tzinfo=UTC)}}
        assert engine.eval("self.born.getFullYear()", context) == 2000
