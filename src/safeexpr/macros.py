"""Macro expansion for ``{{...}}`` placeholders in fact text.

    {{char}}        -> the entity's name
    {{user}}        -> the literal text "user"
    {{entity:ID}}   -> whatever the host's resolver returns for ID
    {{EXPR}}        -> EXPR evaluated to its display string

A macro whose expression fails renders as the empty string; the error is
logged once per (entity, error) by the engine's RuntimeErrorLog.

Python 3.13+. Zero external dependencies.
"""

import re
from collections.abc import Callable, Mapping

from safeexpr.engine import ExpressionEngine, get_shared_engine

__all__ = ["EntityResolver", "expand_macros"]

type EntityResolver = Callable[[int], str | None]

_MACRO_PATTERN = re.compile(r"\{\{(.+?)\}\}")
_ENTITY_REFERENCE = re.compile(r"entity:(\d+)")


def expand_macros(
    text: str,
    context: Mapping[str, object],
    *,
    entity_name: str = "",
    engine: ExpressionEngine | None = None,
    resolve_entity: EntityResolver | None = None,
) -> str:
    """Replace every ``{{...}}`` placeholder in ``text``.

    Args:
        text: Fact or template text
        context: Evaluation context for expression macros
        entity_name: Name substituted for ``{{char}}``
        engine: Engine evaluating expression macros (default: shared engine)
        resolve_entity: Maps an entity ID to its display text; a reference
            it cannot resolve (or any reference, without a resolver) is left
            as written

    Example:
        >>> expand_macros("{{char}} has {{self.health}} HP", {"self": {"health": 80}},
        ...               entity_name="Aria")
        'Aria has 80 HP'
    """
    evaluator = engine or get_shared_engine()

    def expand(found: re.Match[str]) -> str:
        inner = found.group(1).strip()
        reference = _ENTITY_REFERENCE.fullmatch(inner)
        if reference is not None:
            resolved = resolve_entity(int(reference.group(1))) if resolve_entity else None
            return found.group(0) if resolved is None else resolved
        match inner.lower():
            case "char":
                return entity_name
            case "user":
                return "user"
            case _:
                return evaluator.expand_macro(inner, context, entity=entity_name or None)

    return _MACRO_PATTERN.sub(expand, text)
