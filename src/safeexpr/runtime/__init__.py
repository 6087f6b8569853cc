"""Evaluation runtime: values, interpreter, guards, built-ins and context.

Python 3.13+. Uses Babel for locale-aware date, time and duration text.
"""

from .cache import CompileCache
from .context import (
    create_base_context,
    format_messages,
    make_has_fact,
    mentioned_in_dialogue,
    parse_self_context,
    parse_self_value,
)
from .functions import (
    make_date_namespace,
    make_pick,
    make_random,
    make_roll,
    make_time_helpers,
    roll_dice,
    system_clock,
)
from .guards import (
    check_result_size,
    guarded_concat,
    guarded_join,
    guarded_pad_end,
    guarded_pad_start,
    guarded_repeat,
    guarded_replace_all,
)
from .interpreter import CompiledExpression, Interpreter, compile_ast, evaluate
from .locale_context import LocaleContext, normalize_locale
from .methods import resolve_member
from .values import (
    BoundMethod,
    ExprDate,
    Value,
    from_host,
    is_truthy,
    make_namespace,
    strict_equals,
    to_display_string,
    type_name,
)

__all__ = [
    "BoundMethod",
    "CompileCache",
    "CompiledExpression",
    "ExprDate",
    "Interpreter",
    "LocaleContext",
    "Value",
    "check_result_size",
    "compile_ast",
    "create_base_context",
    "evaluate",
    "format_messages",
    "from_host",
    "guarded_concat",
    "guarded_join",
    "guarded_pad_end",
    "guarded_pad_start",
    "guarded_repeat",
    "guarded_replace_all",
    "is_truthy",
    "make_date_namespace",
    "make_has_fact",
    "make_namespace",
    "make_pick",
    "make_random",
    "make_roll",
    "make_time_helpers",
    "mentioned_in_dialogue",
    "normalize_locale",
    "parse_self_context",
    "parse_self_value",
    "resolve_member",
    "roll_dice",
    "strict_equals",
    "system_clock",
    "to_display_string",
    "type_name",
]
