"""Fact directives: conditional facts and entity configuration lines.

An entity is described by a list of fact lines. Most are free text handed to
the host as-is; lines starting with ``$`` are directives:

    $if EXPR: CONTENT        CONTENT applies only when EXPR is truthy
    $respond [true|false]    Whether the entity responds (last wins)
    $retry MS                Re-evaluate after MS milliseconds (stops evaluation)
    $avatar URL              Avatar image (last wins)
    $locked                  Entity is locked against automated edits
    $locked FACT             FACT is locked but still applies
    $stream [full] ["delim"] Streaming mode (last wins)
    $memory [none|channel|guild|global]
    $context N[k]            Context character limit (last wins)
    $freeform                Multi-character responses are not split

Conditions are compiled by an ExpressionEngine. Only the text up to the
colon that ends the condition is tokenized, so apostrophes in the content
of a conditional fact never break the condition.

Permission directives ($locked, $edit, $view, $blacklist) are read without
evaluating any condition, by parse_permission_directives().

Python 3.13+. Zero external dependencies.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Literal

from safeexpr.constants import MAX_CONTEXT_CHAR_LIMIT
from safeexpr.diagnostics import ErrorCategory, ErrorTemplate, ExprError, ExprSyntaxError, SourceSpan
from safeexpr.engine import ExpressionEngine, get_shared_engine
from safeexpr.syntax.parser import parse_prefix

__all__ = [
    "EVERYONE",
    "EntityPermissions",
    "EvaluatedFacts",
    "FactKind",
    "MemoryScope",
    "ProcessedFact",
    "StreamMode",
    "evaluate_facts",
    "is_user_blacklisted",
    "matches_user_entry",
    "parse_fact",
    "parse_permission_directives",
    "strip_comments",
]

logger = logging.getLogger(__name__)

IF_SIGIL = "$if "
RESPOND_SIGIL = "$respond"
RETRY_SIGIL = "$retry "
AVATAR_SIGIL = "$avatar "
LOCKED_SIGIL = "$locked"
EDIT_SIGIL = "$edit "
VIEW_SIGIL = "$view "
BLACKLIST_SIGIL = "$blacklist "
STREAM_SIGIL = "$stream"
MEMORY_SIGIL = "$memory"
CONTEXT_SIGIL = "$context"
FREEFORM_SIGIL = "$freeform"

EVERYONE: Literal["everyone"] = "everyone"

_LEADING_INTEGER = re.compile(r"[+-]?\d+")
_STREAM_DELIMITER = re.compile(r"[\"']([^\"']+)[\"']$")
_CONTEXT_LIMIT = re.compile(r"(\d+(?:\.\d+)?)(k)?")
_SNOWFLAKE = re.compile(r"\d{17,19}")


class FactKind(StrEnum):
    """What a processed fact line is."""

    FACT = "fact"
    RESPOND = "respond"
    RETRY = "retry"
    AVATAR = "avatar"
    LOCKED = "locked"
    STREAM = "stream"
    MEMORY = "memory"
    CONTEXT = "context"
    FREEFORM = "freeform"


class StreamMode(StrEnum):
    """``lines``: one message per delimiter; ``full``: edited progressively."""

    LINES = "lines"
    FULL = "full"


class MemoryScope(StrEnum):
    """Where memories are retrieved from."""

    NONE = "none"
    CHANNEL = "channel"
    GUILD = "guild"
    GLOBAL = "global"


# ============================================================================
# PARSING
# ============================================================================


@dataclass(frozen=True, slots=True)
class ProcessedFact:
    """One fact line, classified.

    Attributes:
        content: Fact text (after the condition, for conditional facts)
        kind: Directive kind, FACT for plain text
        expression: Condition source for ``$if`` facts, else None
        locked: Line carried the ``$locked`` prefix
        respond: ``$respond`` value
        retry_ms: ``$retry`` delay
        avatar_url: ``$avatar`` URL
        stream_mode: ``$stream`` mode
        stream_delimiter: ``$stream`` custom delimiter
        memory_scope: ``$memory`` scope
        context_limit: ``$context`` character limit
    """

    content: str
    kind: FactKind = FactKind.FACT
    expression: str | None = None
    locked: bool = False
    respond: bool | None = None
    retry_ms: int | None = None
    avatar_url: str | None = None
    stream_mode: StreamMode | None = None
    stream_delimiter: str | None = None
    memory_scope: MemoryScope | None = None
    context_limit: int | None = None

    @property
    def conditional(self) -> bool:
        """True for ``$if`` facts."""
        return self.expression is not None


def strip_comments(facts: Iterable[str]) -> list[str]:
    """Drop lines starting with ``#`` in the first column."""
    return [fact for fact in facts if not fact.startswith("#")]


def _parse_respond(content: str) -> bool | None:
    if not content.startswith(RESPOND_SIGIL):
        return None
    rest = content[len(RESPOND_SIGIL) :].strip().lower()
    if rest in ("", "true"):
        return True
    if rest == "false":
        return False
    return None


def _parse_retry(content: str) -> int | None:
    if not content.startswith(RETRY_SIGIL):
        return None
    found = _LEADING_INTEGER.match(content[len(RETRY_SIGIL) :].strip())
    if found is None:
        return None
    ms = int(found.group(0))
    return ms if ms >= 0 else None


def _parse_avatar(content: str) -> str | None:
    if not content.startswith(AVATAR_SIGIL):
        return None
    return content[len(AVATAR_SIGIL) :].strip() or None


def _parse_stream(content: str) -> tuple[StreamMode, str | None] | None:
    if not content.startswith(STREAM_SIGIL):
        return None
    rest = content[len(STREAM_SIGIL) :].strip()
    delimiter = None
    quoted = _STREAM_DELIMITER.search(rest)
    if quoted is not None:
        delimiter = quoted.group(1)
        rest = rest[: quoted.start()].strip()
    match rest.lower():
        case "":
            return StreamMode.LINES, delimiter
        case "full":
            return StreamMode.FULL, delimiter
        case _:
            return None


def _parse_memory(content: str) -> MemoryScope | None:
    if not content.startswith(MEMORY_SIGIL):
        return None
    rest = content[len(MEMORY_SIGIL) :].strip().lower()
    if rest == "":
        return MemoryScope.NONE
    try:
        return MemoryScope(rest)
    except ValueError:
        return None


def _parse_context(content: str) -> int | None:
    if not content.startswith(CONTEXT_SIGIL):
        return None
    found = _CONTEXT_LIMIT.fullmatch(content[len(CONTEXT_SIGIL) :].strip().lower())
    if found is None:
        return None
    value = float(found.group(1))
    if found.group(2):
        value *= 1000
    return min(int(value), MAX_CONTEXT_CHAR_LIMIT)


def _parse_directive(content: str, expression: str | None) -> ProcessedFact:
    """Classify ``content`` as one of the directives valid after ``$if``."""
    respond = _parse_respond(content)
    if respond is not None:
        return ProcessedFact(content, FactKind.RESPOND, expression, respond=respond)
    retry_ms = _parse_retry(content)
    if retry_ms is not None:
        return ProcessedFact(content, FactKind.RETRY, expression, retry_ms=retry_ms)
    if expression is None:
        # $avatar is only recognized unconditionally
        avatar_url = _parse_avatar(content)
        if avatar_url is not None:
            return ProcessedFact(content, FactKind.AVATAR, avatar_url=avatar_url)
    stream = _parse_stream(content)
    if stream is not None:
        mode, delimiter = stream
        return ProcessedFact(
            content, FactKind.STREAM, expression, stream_mode=mode, stream_delimiter=delimiter
        )
    scope = _parse_memory(content)
    if scope is not None:
        return ProcessedFact(content, FactKind.MEMORY, expression, memory_scope=scope)
    limit = _parse_context(content)
    if limit is not None:
        return ProcessedFact(content, FactKind.CONTEXT, expression, context_limit=limit)
    if content == FREEFORM_SIGIL:
        return ProcessedFact(content, FactKind.FREEFORM, expression)
    return ProcessedFact(content, FactKind.FACT, expression)


def _split_condition(text: str) -> tuple[str, str]:
    """Split ``EXPR: CONTENT`` at the colon that ends the expression.

    Raises:
        ExprSyntaxError: If the condition cannot be parsed or is not
            followed by ``:``
    """
    _, stop = parse_prefix(text)
    if not stop.is_operator(":"):
        raise ExprSyntaxError(
            ErrorTemplate.missing_colon().with_span(SourceSpan.at(text, stop.start)),
            category=ErrorCategory.PARSE,
        )
    return text[: stop.start].strip(), text[stop.end :].strip()


def parse_fact(fact: str) -> ProcessedFact:
    """Classify one fact line.

    Raises:
        ExprSyntaxError: If a ``$if`` condition is malformed or its colon
            is missing

    Examples:
        >>> parse_fact("$if mentioned: $respond").kind
        <FactKind.RESPOND: 'respond'>
        >>> parse_fact("$if time.is_night: it's dark").content
        "it's dark"
    """
    trimmed = fact.strip()

    if trimmed.startswith(LOCKED_SIGIL):
        rest = trimmed[len(LOCKED_SIGIL) :]
        if not rest.strip():
            return ProcessedFact(trimmed, FactKind.LOCKED)
        if rest.startswith(" "):
            return replace(parse_fact(rest.strip()), locked=True)

    if trimmed.startswith(IF_SIGIL):
        expression, content = _split_condition(trimmed[len(IF_SIGIL) :])
        return _parse_directive(content, expression)

    return _parse_directive(trimmed, None)


# ============================================================================
# EVALUATION
# ============================================================================


@dataclass(slots=True)
class EvaluatedFacts:
    """Outcome of evaluating an entity's facts against one context.

    Attributes:
        facts: Fact lines that apply, directives removed
        should_respond: Last ``$respond`` value, None if none applied
        respond_source: Fact line that set ``should_respond``
        retry_ms: ``$retry`` delay that stopped evaluation
        avatar_url: Last applying ``$avatar``
        is_locked: A bare ``$locked`` applied
        locked_facts: Content of applying ``$locked`` facts
        stream_mode: Last applying ``$stream`` mode
        stream_delimiter: Delimiter of that ``$stream``
        memory_scope: Last applying ``$memory`` scope
        context_limit: Last applying ``$context`` limit
        is_freeform: A ``$freeform`` applied
    """

    facts: list[str] = field(default_factory=list)
    should_respond: bool | None = None
    respond_source: str | None = None
    retry_ms: int | None = None
    avatar_url: str | None = None
    is_locked: bool = False
    locked_facts: set[str] = field(default_factory=set)
    stream_mode: StreamMode | None = None
    stream_delimiter: str | None = None
    memory_scope: MemoryScope = MemoryScope.NONE
    context_limit: int | None = None
    is_freeform: bool = False


def evaluate_facts(
    facts: Iterable[str],
    context: Mapping[str, object],
    engine: ExpressionEngine | None = None,
    *,
    entity: str | None = None,
) -> EvaluatedFacts:
    """Apply conditions and collect directives, top to bottom.

    A fact whose condition is malformed, fails to compile or fails at run
    time does not apply; the error is logged once per (entity, error)
    through the engine's RuntimeErrorLog.

    Args:
        facts: Raw fact lines
        context: Evaluation context for ``$if`` conditions
        engine: Engine compiling the conditions (default: shared engine)
        entity: Entity identifier used when logging errors
    """
    engine = engine or get_shared_engine()
    result = EvaluatedFacts()

    for fact in strip_comments(facts):
        try:
            parsed = parse_fact(fact)
        except ExprError as error:
            engine.error_log.report(error, source=fact.strip(), entity=entity)
            continue

        if parsed.expression is not None and not engine.evaluate_condition(
            parsed.expression, context, entity=entity
        ):
            continue

        if parsed.kind is FactKind.LOCKED:
            result.is_locked = True
            continue
        if parsed.locked:
            # Locked lines stay visible whatever they contain.
            result.locked_facts.add(parsed.content)
            result.facts.append(parsed.content)
            continue
        if parsed.kind is FactKind.RETRY:
            result.retry_ms = parsed.retry_ms
            break

        match parsed.kind:
            case FactKind.RESPOND:
                result.should_respond = parsed.respond
                result.respond_source = fact
            case FactKind.AVATAR:
                result.avatar_url = parsed.avatar_url
            case FactKind.STREAM:
                result.stream_mode = parsed.stream_mode
                result.stream_delimiter = parsed.stream_delimiter
            case FactKind.MEMORY:
                result.memory_scope = parsed.memory_scope or MemoryScope.NONE
            case FactKind.CONTEXT:
                result.context_limit = parsed.context_limit
            case FactKind.FREEFORM:
                result.is_freeform = True
            case _:
                result.facts.append(parsed.content)

    return result


# ============================================================================
# PERMISSIONS
# ============================================================================

type UserList = tuple[str, ...] | Literal["everyone"]


@dataclass(frozen=True, slots=True)
class EntityPermissions:
    """Permission directives of an entity.

    Attributes:
        is_locked: Bare ``$locked`` present
        locked_facts: Content of ``$locked FACT`` lines
        edit_list: ``$edit`` users, EVERYONE, or None for owner-only
        view_list: ``$view`` users, EVERYONE, or None for owner-only
        blacklist: Accumulated ``$blacklist`` entries (usernames or IDs)
    """

    is_locked: bool = False
    locked_facts: frozenset[str] = frozenset()
    edit_list: UserList | None = None
    view_list: UserList | None = None
    blacklist: tuple[str, ...] = ()


def _parse_user_list(value: str) -> UserList:
    if value.lower() in ("@everyone", "everyone"):
        return EVERYONE
    return tuple(entry.strip() for entry in value.split(",") if entry.strip())


def parse_permission_directives(facts: Iterable[str]) -> EntityPermissions:
    """Read permission directives without evaluating conditions.

    Example:
        >>> perms = parse_permission_directives(["$edit @everyone", "$blacklist bob, eve"])
        >>> perms.edit_list, perms.blacklist
        ('everyone', ('bob', 'eve'))
    """
    is_locked = False
    locked_facts: set[str] = set()
    edit_list: UserList | None = None
    view_list: UserList | None = None
    blacklist: list[str] = []

    for fact in facts:
        trimmed = fact.strip()
        if trimmed.startswith("#"):
            continue
        if trimmed == LOCKED_SIGIL:
            is_locked = True
        elif trimmed.startswith(LOCKED_SIGIL + " "):
            locked_facts.add(trimmed[len(LOCKED_SIGIL) + 1 :].strip())
        elif trimmed.startswith(EDIT_SIGIL):
            edit_list = _parse_user_list(trimmed[len(EDIT_SIGIL) :].strip())
        elif trimmed.startswith(VIEW_SIGIL):
            view_list = _parse_user_list(trimmed[len(VIEW_SIGIL) :].strip())
        elif trimmed.startswith(BLACKLIST_SIGIL):
            entries = _parse_user_list(trimmed[len(BLACKLIST_SIGIL) :].strip())
            # "$blacklist @everyone" is meaningless and ignored
            if entries != EVERYONE:
                blacklist.extend(entries)

    return EntityPermissions(
        is_locked=is_locked,
        locked_facts=frozenset(locked_facts),
        edit_list=edit_list,
        view_list=view_list,
        blacklist=tuple(blacklist),
    )


def matches_user_entry(entry: str, user_id: str, username: str) -> bool:
    """Match a permission entry: 17-19 digit IDs exactly, usernames case-insensitively."""
    if _SNOWFLAKE.fullmatch(entry):
        return entry == user_id
    return entry.lower() == username.lower()


def is_user_blacklisted(
    permissions: EntityPermissions,
    user_id: str,
    username: str,
    owner_id: str | None = None,
) -> bool:
    """True if the user matches a blacklist entry. The owner is never blacklisted."""
    if owner_id and user_id == owner_id:
        return False
    return any(matches_user_entry(entry, user_id, username) for entry in permissions.blacklist)
