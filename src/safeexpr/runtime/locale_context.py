"""Locale context for date, time and duration helpers.

Expressions format dates (``date_str()``, ``toLocaleDateString()``), times
and durations. All of that goes through one immutable LocaleContext per
engine, backed by Babel, so output is CLDR-compliant and never depends on
the process-global ``locale`` module.

Architecture:
    - LocaleContext: Immutable locale configuration container
    - Instances are cached per normalized locale code (LRU, RLock)
    - Unknown locales fall back to en_US with a warning

Python 3.13+. Uses Babel for i18n.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from threading import RLock
from typing import ClassVar, Literal

from babel import Locale, UnknownLocaleError
from babel import dates as babel_dates

from safeexpr.constants import DEFAULT_LOCALE, MAX_LOCALE_CACHE_SIZE

__all__ = ["LocaleContext", "normalize_locale"]

logger = logging.getLogger(__name__)

type FormatStyle = Literal["short", "medium", "long", "full"]


def normalize_locale(locale_code: str) -> str:
    """Convert a BCP-47 locale code to the POSIX form Babel expects.

    Example:
        >>> normalize_locale("en-US")
        'en_US'
    """
    return locale_code.replace("-", "_")


@dataclass(frozen=True, slots=True)
class LocaleContext:
    """Immutable locale configuration for formatting operations.

    Use LocaleContext.create() to construct instances; it validates the
    locale and reuses cached instances.

    Examples:
        >>> ctx = LocaleContext.create("en-US")
        >>> ctx.format_date(datetime(2024, 1, 15), "medium")
        'Jan 15, 2024'

        >>> ctx = LocaleContext.create("xx-UNKNOWN")
        >>> ctx.is_fallback
        True

    Thread Safety:
        Instances are immutable. Cache operations are protected by RLock.
    """

    _cache: ClassVar[OrderedDict[str, "LocaleContext"]] = OrderedDict()
    _cache_lock: ClassVar[RLock] = RLock()

    locale_code: str
    _babel_locale: Locale
    is_fallback: bool = False

    @classmethod
    def clear_cache(cls) -> None:
        """Clear the locale context cache."""
        with cls._cache_lock:
            cls._cache.clear()

    @classmethod
    def cache_size(cls) -> int:
        """Number of cached LocaleContext instances."""
        with cls._cache_lock:
            return len(cls._cache)

    @classmethod
    def create(cls, locale_code: str = DEFAULT_LOCALE) -> "LocaleContext":
        """Create LocaleContext with graceful fallback for invalid locales.

        Args:
            locale_code: BCP-47 or POSIX locale identifier (e.g. 'en-US', 'de_DE')

        Returns:
            LocaleContext instance. For unknown or invalid locales, formatting
            uses en_US while locale_code preserves the requested value.
        """
        cache_key = normalize_locale(locale_code)

        with cls._cache_lock:
            if cache_key in cls._cache:
                cls._cache.move_to_end(cache_key)
                return cls._cache[cache_key]

        used_fallback = False
        try:
            babel_locale = Locale.parse(cache_key)
        except UnknownLocaleError as e:
            logger.warning("Unknown locale '%s': %s. Falling back to en_US", locale_code, e)
            babel_locale = Locale.parse("en_US")
            used_fallback = True
        except ValueError as e:
            logger.warning(
                "Invalid locale format '%s': %s. Falling back to en_US", locale_code, e
            )
            babel_locale = Locale.parse("en_US")
            used_fallback = True

        ctx = cls(locale_code=locale_code, _babel_locale=babel_locale, is_fallback=used_fallback)

        with cls._cache_lock:
            if cache_key in cls._cache:
                return cls._cache[cache_key]
            if len(cls._cache) >= MAX_LOCALE_CACHE_SIZE:
                cls._cache.popitem(last=False)
            cls._cache[cache_key] = ctx
            return ctx

    @property
    def babel_locale(self) -> Locale:
        """Pre-validated Babel Locale for this context."""
        return self._babel_locale

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    def format_date(self, value: date, style: FormatStyle | str = "medium") -> str:
        """Format the date part of ``value`` (style name or CLDR pattern)."""
        return str(babel_dates.format_date(value, format=style, locale=self.babel_locale))

    def format_time(self, value: datetime, style: FormatStyle | str = "medium") -> str:
        """Format the time part of ``value`` (style name or CLDR pattern)."""
        return str(babel_dates.format_time(value, format=style, locale=self.babel_locale))

    def format_datetime(
        self,
        value: datetime,
        *,
        date_style: FormatStyle = "medium",
        time_style: FormatStyle = "medium",
    ) -> str:
        """Format date and time, combined by the locale's dateTimeFormat.

        Example:
            >>> LocaleContext.create("en_US").format_datetime(datetime(2024, 1, 15, 14, 30))
            'Jan 15, 2024, 2:30:00\\u202fPM'
        """
        date_str = self.format_date(value, date_style)
        time_str = self.format_time(value, time_style)
        # CLDR pattern: {0} is the time, {1} the date
        datetime_pattern = (
            self.babel_locale.datetime_formats.get(date_style)
            or self.babel_locale.datetime_formats.get("medium")
            or "{1} {0}"
        )
        return str(datetime_pattern).format(time_str, date_str)

    def format_weekday(self, value: date) -> str:
        """Full weekday name, e.g. 'Monday'."""
        return self.format_date(value, "EEEE")

    def format_duration(self, milliseconds: float) -> str:
        """Human-readable duration, e.g. '3 hours'.

        Negative durations are formatted by magnitude.
        """
        delta = timedelta(milliseconds=abs(milliseconds))
        return str(
            babel_dates.format_timedelta(delta, threshold=1, locale=self.babel_locale)
        )

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse_date(self, text: str) -> date | None:
        """Parse a date written in this locale's short format, or None.

        Example:
            >>> LocaleContext.create("en_US").parse_date("1/15/2024")
            datetime.date(2024, 1, 15)
        """
        try:
            return babel_dates.parse_date(text, locale=self.babel_locale)
        except (ValueError, IndexError):
            # Babel raises IndexError when the text has too few numbers
            return None
