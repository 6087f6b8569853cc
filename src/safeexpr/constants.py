"""Shared constants for safeexpr.

This module provides centralized configuration constants used across the
syntax, validation and runtime packages. Placing constants here avoids
circular imports and provides a single source of truth.

Constants are grouped by domain:
- Depth limits: Recursion protection for parsing, validation and evaluation
- Size limits: Bounds on source text and on values produced at run time
- Cache limits: Memory bounds for the compile cache and the error log
- Context defaults: Values used when building evaluation contexts

Python 3.13+. Zero external dependencies.
"""

# ruff: noqa: RUF022 - __all__ organized by category for readability
__all__ = [
    # Depth limits
    "MAX_DEPTH",
    # Size limits
    "MAX_SOURCE_LENGTH",
    "MAX_NUMBER_LENGTH",
    "MAX_RESULT_LENGTH",
    "MAX_CONTEXT_CHAR_LIMIT",
    # Cache limits
    "DEFAULT_CACHE_SIZE",
    "MAX_ERROR_LOG_ENTRIES",
    "MAX_LOCALE_CACHE_SIZE",
    # Context defaults
    "SCHEMA_VERSION",
    "DAY_START_HOUR",
    "NIGHT_START_HOUR",
    "DEFAULT_LOCALE",
    "DEFAULT_MESSAGE_FORMAT",
    "MAX_DICE_COUNT",
]

# ============================================================================
# DEPTH LIMITS
# ============================================================================
#
# One limit is shared by the parser (syntactic nesting and AST height), the
# validator (tree walk) and the interpreter (evaluation recursion).
#
# AST height grows with left-associative chains ("1 + 1 + ... + 1" has height
# equal to its term count), so the limit also caps chain length. 128 admits a
# hundred-term chain while keeping the parser's worst case (about six Python
# frames per parenthesized level) below the default recursion limit of 1000.
#
# ============================================================================

MAX_DEPTH: int = 128

# ============================================================================
# SIZE LIMITS
# ============================================================================

# Maximum expression source length in characters (64 KiB).
# Expressions are one-liners; anything larger is abuse.
MAX_SOURCE_LENGTH: int = 64 * 1024

# Maximum characters in a number literal. Doubles top out near 1.8e308, so
# longer literals carry no extra precision.
MAX_NUMBER_LENGTH: int = 400

# Maximum length of any string produced at run time by an amplifying
# operation (repeat, padStart, padEnd, replaceAll, join, concatenation).
MAX_RESULT_LENGTH: int = 100_000

# Hard cap for the $context directive (characters of history).
MAX_CONTEXT_CHAR_LIMIT: int = 1_000_000

# ============================================================================
# CACHE LIMITS
# ============================================================================

# Default maximum number of compiled expressions kept per engine.
DEFAULT_CACHE_SIZE: int = 1000

# Maximum distinct (entity, error) pairs remembered for log deduplication.
# When exceeded the log forgets its oldest entries.
MAX_ERROR_LOG_ENTRIES: int = 10_000

# Maximum number of cached LocaleContext instances.
MAX_LOCALE_CACHE_SIZE: int = 128

# ============================================================================
# CONTEXT DEFAULTS
# ============================================================================

# Version of the default context schema. Adding a field is additive;
# removing or renaming one requires a bump.
SCHEMA_VERSION: int = 1

# time.is_day covers [DAY_START_HOUR, NIGHT_START_HOUR).
DAY_START_HOUR: int = 6
NIGHT_START_HOUR: int = 18

# Locale used by the date, time and duration helpers.
DEFAULT_LOCALE: str = "en_US"

# Default line format for messages(): %a = author, %m = message.
DEFAULT_MESSAGE_FORMAT: str = "%a: %m"

# Upper bound on the dice count accepted by roll() ("NdM" with N <= this).
MAX_DICE_COUNT: int = 1000
