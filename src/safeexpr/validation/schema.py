"""Context schema: the closed set of names an expression may reference.

The validator resolves every identifier against a ContextSchema, so the
schema is the whole surface an expression author can reach. Namespaces
(``time``, ``channel``, ``server``, ``Date``) additionally list their members;
``self`` is an open record whose keys come from the entity's own facts.

The schema is versioned. Adding a field is additive; renaming or removing
one changes which stored expressions compile and requires a version bump.

Python 3.13+. Zero external dependencies.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType

from safeexpr.constants import SCHEMA_VERSION

__all__ = [
    "DEFAULT_SCHEMA",
    "ContextSchema",
    "FieldKind",
    "FieldSpec",
]


class FieldKind(StrEnum):
    """Static kind of a context field."""

    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"
    STRING_ARRAY = "string_array"
    CALLABLE = "callable"
    NAMESPACE = "namespace"
    RECORD = "record"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Declaration of one context field.

    Attributes:
        kind: Static kind of the value
        members: Member names of a closed namespace (empty otherwise)
        open: True when any member name may be read (records such as ``self``)
    """

    kind: FieldKind
    members: frozenset[str] = frozenset()
    open: bool = False

    @property
    def is_closed_namespace(self) -> bool:
        """True if member access is restricted to ``members``."""
        return self.kind is FieldKind.NAMESPACE and not self.open

    @classmethod
    def namespace(cls, *members: str) -> "FieldSpec":
        """Closed namespace with the given members."""
        return cls(FieldKind.NAMESPACE, frozenset(members))


@dataclass(frozen=True, slots=True)
class ContextSchema:
    """Versioned mapping of field name to FieldSpec.

    Example:
        >>> schema = DEFAULT_SCHEMA.extend(score=FieldSpec(FieldKind.NUMBER))
        >>> "score" in schema
        True
    """

    fields: Mapping[str, FieldSpec]
    version: int = SCHEMA_VERSION
    _frozen_fields: Mapping[str, FieldSpec] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_frozen_fields", MappingProxyType(dict(self.fields)))

    def __contains__(self, name: object) -> bool:
        return name in self._frozen_fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._frozen_fields)

    def __len__(self) -> int:
        return len(self._frozen_fields)

    def get(self, name: str) -> FieldSpec | None:
        """FieldSpec for ``name``, or None if not declared."""
        return self._frozen_fields.get(name)

    def extend(self, **extra: FieldSpec) -> "ContextSchema":
        """Return a new schema with additional (or replaced) fields."""
        return ContextSchema({**self._frozen_fields, **extra}, version=self.version)


_NUMBER = FieldSpec(FieldKind.NUMBER)
_BOOLEAN = FieldSpec(FieldKind.BOOLEAN)
_STRING = FieldSpec(FieldKind.STRING)
_CALLABLE = FieldSpec(FieldKind.CALLABLE)

DEFAULT_SCHEMA: ContextSchema = ContextSchema(
    {
        # Entity state
        "self": FieldSpec(FieldKind.RECORD, open=True),
        "name": _STRING,
        "chars": FieldSpec(FieldKind.STRING_ARRAY),
        "group": _STRING,
        # Randomness
        "random": _CALLABLE,
        "roll": _CALLABLE,
        "pick": _CALLABLE,
        # Fact lookup
        "has_fact": _CALLABLE,
        # Clock
        "time": FieldSpec.namespace("hour", "is_day", "is_night"),
        "response_ms": _NUMBER,
        "retry_ms": _NUMBER,
        "idle_ms": _NUMBER,
        "duration": _CALLABLE,
        "date_str": _CALLABLE,
        "time_str": _CALLABLE,
        "isodate": _CALLABLE,
        "isotime": _CALLABLE,
        "weekday": _CALLABLE,
        "Date": FieldSpec.namespace("new", "now", "parse", "UTC"),
        # Triggering message
        "unread_count": _NUMBER,
        "mentioned": _BOOLEAN,
        "replied": _BOOLEAN,
        "replied_to": _STRING,
        "is_forward": _BOOLEAN,
        "is_self": _BOOLEAN,
        "is_hologram": _BOOLEAN,
        "mentioned_in_dialogue": _CALLABLE,
        "content": _STRING,
        "author": _STRING,
        "interaction_type": _STRING,
        "messages": _CALLABLE,
        # Location
        "channel": FieldSpec.namespace("id", "name", "description", "mention", "is_nsfw", "type"),
        "server": FieldSpec.namespace("id", "name", "description"),
    }
)
