"""Evaluation context construction.

A context is a read-only mapping from schema field to value, built fresh
for every evaluation. create_base_context() assembles one from the raw
inputs the host already has (the entity's facts, the triggering message,
timers, channel and server details) and fills every schema field with a
sensible default, so an expression never sees a half-built context.

Python 3.13+. Uses Babel (via LocaleContext) for date, time and duration text.
"""

import logging
import random as random_module
import re
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, tzinfo
from types import MappingProxyType

from safeexpr.constants import (
    DAY_START_HOUR,
    DEFAULT_LOCALE,
    DEFAULT_MESSAGE_FORMAT,
    NIGHT_START_HOUR,
)
from safeexpr.diagnostics import ExprValidationError
from safeexpr.validation.patterns import validate_pattern

from .functions import (
    Clock,
    make_date_namespace,
    make_pick,
    make_random,
    make_roll,
    make_time_helpers,
    system_clock,
)
from .locale_context import LocaleContext
from .values import Value, is_number, make_namespace, to_display_string

__all__ = [
    "MessageSource",
    "create_base_context",
    "format_messages",
    "make_has_fact",
    "mentioned_in_dialogue",
    "parse_self_context",
    "parse_self_value",
]

logger = logging.getLogger(__name__)

type MessageSource = Callable[..., str]

# "key: value" facts
_KEY_VALUE_PATTERN = re.compile(r"^([a-z_][a-z0-9_]*)\s*:\s*(.+)$", re.IGNORECASE)

# Decimal numbers written in canonical form ("3", "-2.5"; not "03", "2.50", "1e3")
_CANONICAL_NUMBER = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d*[1-9])?")

# Quoted dialogue: "..." or '...'
_QUOTED_PATTERN = re.compile(r"[\"']([^\"']+)[\"']")

# %a = author, %m = message text
_MESSAGE_FIELD = re.compile(r"%[am]")

_MAX_EXACT_INTEGER = 2**53


# ============================================================================
# SELF CONTEXT
# ============================================================================


def parse_self_value(text: str) -> bool | int | float | str:
    """Type a fact value: ``true``/``false``, canonical numbers, else the stripped text.

    Examples:
        >>> parse_self_value(" 42 "), parse_self_value("2.50"), parse_self_value("true")
        (42, '2.50', True)
    """
    value = text.strip()
    if value == "true":
        return True
    if value == "false":
        return False
    if _CANONICAL_NUMBER.fullmatch(value) and value != "-0":
        if "." in value:
            return float(value)
        number = int(value)
        if abs(number) <= _MAX_EXACT_INTEGER:
            return number
    return value


def parse_self_context(facts: Iterable[str]) -> Mapping[str, Value]:
    """Collect ``key: value`` facts into the read-only ``self`` record.

    Comment lines (``#``) and ``$if`` directives are skipped. Later facts
    override earlier ones.

    Example:
        >>> dict(parse_self_context(["health: 80", "mood: calm", "# note: x"]))
        {'health': 80, 'mood': 'calm'}
    """
    record: dict[str, Value] = {}
    for fact in facts:
        if fact.startswith("#") or fact.strip().startswith("$if "):
            continue
        found = _KEY_VALUE_PATTERN.match(fact)
        if found is not None:
            record[found.group(1)] = parse_self_value(found.group(2))
    return MappingProxyType(record)


# ============================================================================
# MESSAGE HELPERS
# ============================================================================


def mentioned_in_dialogue(content: str, name: str) -> bool:
    """True if ``name`` appears as a whole word in the spoken part of ``content``.

    When the content contains quotes, only the quoted parts are searched.
    Multi-line content without quotes is narration and never matches.
    Single-line content without quotes is searched whole.

    Examples:
        >>> mentioned_in_dialogue('She waves. "Hi Alice!"', "alice")
        True
        >>> mentioned_in_dialogue("Alice walks in.\\nShe sits.", "Alice")
        False
    """
    if not name:
        return False
    quoted = _QUOTED_PATTERN.findall(content)
    if quoted:
        haystack = " ".join(quoted)
    elif "\n" in content:
        return False
    else:
        haystack = content
    return re.search(rf"\b{re.escape(name)}\b", haystack, re.IGNORECASE) is not None


def make_has_fact(facts: Iterable[str]) -> Callable[[Value], bool]:
    """Build ``has_fact(pattern)`` over ``facts``.

    The pattern is checked by the pattern-safety checker and matched
    case-insensitively; a pattern the checker rejects falls back to a
    case-insensitive substring test.
    """
    lines = tuple(facts)

    def has_fact(pattern: Value = None) -> bool:
        text = to_display_string(pattern)
        try:
            safe = validate_pattern(text)
        except ExprValidationError:
            logger.debug("has_fact pattern %r rejected; using substring match", text)
            needle = text.lower()
            return any(needle in line.lower() for line in lines)
        regex = re.compile(safe.regex.pattern, safe.regex.flags | re.IGNORECASE)
        return any(regex.search(line) is not None for line in lines)

    return has_fact


def _no_messages(count: Value = None, line_format: Value = None, *_filters: Value) -> str:
    return ""


# ============================================================================
# BASE CONTEXT
# ============================================================================


def create_base_context(
    *,
    facts: Iterable[str] = (),
    has_fact: Callable[[Value], bool] | None = None,
    messages: MessageSource | None = None,
    response_ms: int | float = 0,
    retry_ms: int | float = 0,
    idle_ms: int | float = 0,
    unread_count: int = 0,
    mentioned: bool = False,
    replied: bool = False,
    replied_to: str = "",
    is_forward: bool = False,
    is_self: bool = False,
    is_hologram: bool = False,
    interaction_type: str | None = None,
    name: str = "",
    chars: Iterable[str] = (),
    group: str | None = None,
    channel: Mapping[str, Value] | None = None,
    server: Mapping[str, Value] | None = None,
    locale: str | LocaleContext = DEFAULT_LOCALE,
    tz: tzinfo = UTC,
    rng: random_module.Random | None = None,
    clock: Clock = system_clock,
) -> Mapping[str, Value]:
    """Build a complete, read-only evaluation context.

    Args:
        facts: The entity's raw facts (``self`` and the default ``has_fact``)
        has_fact: Fact lookup (default: pattern search over ``facts``)
        messages: ``messages(n, format)`` history lookup; ``%a`` is the
            author and ``%m`` the message text (default: always empty)
        response_ms: Milliseconds since the entity last responded
        retry_ms: Milliseconds since a scheduled retry was set (0 if none)
        idle_ms: Milliseconds since any message in the channel
        unread_count: Messages since the entity last spoke
        mentioned: Entity was @mentioned
        replied: Message replies to the entity
        replied_to: Name of the entity replied to
        is_forward: Message is forwarded
        is_self: Message came from this entity
        is_hologram: Message came from any entity rather than a user
        interaction_type: Interaction verb (drink, eat, ...) if any
        name: The entity's name
        chars: Names of every entity bound to the channel
        group: Display form of ``chars`` (default: comma-joined)
        channel: ``id``, ``name``, ``description``, ``mention``, ``is_nsfw``, ``type``
        server: ``id``, ``name``, ``description``
        locale: Locale code or LocaleContext for date and duration text
        tz: Timezone for ``time``, ``Date`` and the date helpers
        rng: Random source for ``random``, ``roll`` and ``pick``
        clock: Source of the current time

    Returns:
        Read-only mapping with every default schema field
    """
    fact_list = tuple(facts)
    history = messages or _no_messages
    char_names = tuple(chars)
    locale_ctx = locale if isinstance(locale, LocaleContext) else LocaleContext.create(locale)
    source = rng or random_module.Random()
    hour = clock().astimezone(tz).hour
    content = history(1, "%m")
    channel_fields = channel or {}
    server_fields = server or {}

    def mentioned_in_content(person: Value = None) -> bool:
        return mentioned_in_dialogue(content, to_display_string(person))

    context: dict[str, Value] = {
        "self": parse_self_context(fact_list),
        "name": name,
        "chars": char_names,
        "group": group if group is not None else ", ".join(char_names),
        "random": make_random(source),
        "roll": make_roll(source),
        "pick": make_pick(source),
        "has_fact": has_fact or make_has_fact(fact_list),
        "time": make_namespace(
            hour=hour,
            is_day=DAY_START_HOUR <= hour < NIGHT_START_HOUR,
            is_night=not DAY_START_HOUR <= hour < NIGHT_START_HOUR,
        ),
        "response_ms": response_ms,
        "retry_ms": retry_ms,
        "idle_ms": idle_ms,
        "Date": make_date_namespace(tz=tz, locale=locale_ctx, clock=clock),
        "unread_count": unread_count,
        "mentioned": mentioned,
        "replied": replied,
        "replied_to": replied_to,
        "is_forward": is_forward,
        "is_self": is_self,
        "is_hologram": is_hologram,
        "mentioned_in_dialogue": mentioned_in_content,
        "content": content,
        "author": history(1, "%a"),
        "interaction_type": interaction_type,
        "messages": history,
        "channel": make_namespace(
            id=channel_fields.get("id", ""),
            name=channel_fields.get("name", ""),
            description=channel_fields.get("description", ""),
            mention=channel_fields.get("mention", ""),
            is_nsfw=channel_fields.get("is_nsfw", False),
            type=channel_fields.get("type", "text"),
        ),
        "server": make_namespace(
            id=server_fields.get("id", ""),
            name=server_fields.get("name", ""),
            description=server_fields.get("description", ""),
        ),
    }
    context.update(make_time_helpers(locale=locale_ctx, tz=tz, clock=clock))
    return MappingProxyType(context)


def format_messages(
    entries: Iterable[tuple[str, str]],
) -> MessageSource:
    """Build ``messages(n, format)`` over (author, text) pairs, newest last.

    Example:
        >>> messages = format_messages([("Ann", "hi"), ("Bob", "yo")])
        >>> messages(2)
        'Ann: hi\\nBob: yo'
        >>> messages(1, "%m")
        'yo'
    """
    history = tuple(entries)

    def messages(count: Value = 1, line_format: Value = None, *_filters: Value) -> str:
        amount = 1
        if is_number(count) and count >= 1:
            amount = int(min(count, len(history) or 1))
        template = line_format if isinstance(line_format, str) else DEFAULT_MESSAGE_FORMAT
        recent = history[-amount:] if history else ()
        return "\n".join(
            _MESSAGE_FIELD.sub(lambda field: author if field.group(0) == "%a" else text, template)
            for author, text in recent
        )

    return messages
