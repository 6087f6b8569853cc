"""safeexpr - sandboxed expression language for user-authored conditions and macros.

Expressions are small JavaScript-like boolean/value expressions written by
untrusted users ("mentioned && random() < 0.3", "self.health > 50",
"content.match('^hi')"). Evaluating one can never reach host internals,
run arbitrary code, loop unboundedly or exhaust memory: sources are parsed
into an AST, validated against a fixed context schema and a member deny-list,
checked for catastrophic regex patterns, and run by a tree-walking
interpreter with size guards on every growth-capable built-in.

Public API:
    compile_expr - Compile (cached by exact source)
    eval_expr - Evaluate against a context
    eval_to_display_string - Evaluate to display text
    eval_condition - Evaluate to a boolean
    ExpressionEngine - Engine with its own cache, schema and locale
    create_base_context - Build a complete evaluation context
    evaluate_facts - Apply $if conditions and fact directives
    expand_macros - Expand {{...}} placeholders

Exceptions:
    ExprError - Base exception class (category attribute)
    ExprSyntaxError - Lex and parse errors
    ExprValidationError - Unknown identifiers, blocked members, unsafe patterns
    ExprRuntimeError - Type mismatches, resource limits, internal errors

Python 3.13+. Uses Babel for locale-aware date, time and duration text.
"""

from .diagnostics import (
    ErrorCategory,
    ExprError,
    ExprRuntimeError,
    ExprSyntaxError,
    ExprValidationError,
)
from .engine import (
    ExpressionEngine,
    RuntimeErrorLog,
    clear_shared_engine,
    compile_expr,
    eval_condition,
    eval_expr,
    eval_to_display_string,
    get_shared_engine,
)
from .facts import (
    EntityPermissions,
    EvaluatedFacts,
    ProcessedFact,
    evaluate_facts,
    is_user_blacklisted,
    matches_user_entry,
    parse_fact,
    parse_permission_directives,
    strip_comments,
)
from .macros import expand_macros
from .runtime import CompiledExpression, ExprDate, Value, create_base_context
from .validation import DEFAULT_SCHEMA, ContextSchema, validate_pattern

# Version information - Auto-populated from package metadata
try:
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as _get_version
except ImportError as e:
    raise RuntimeError("importlib.metadata unavailable - Python version too old? " + str(e)) from e

try:
    __version__ = _get_version("safeexpr")
except PackageNotFoundError:
    # Development mode: package not installed yet
    __version__ = "0.0.0+dev"

__all__ = [
    "DEFAULT_SCHEMA",
    "CompiledExpression",
    "ContextSchema",
    "EntityPermissions",
    "ErrorCategory",
    "EvaluatedFacts",
    "ExprDate",
    "ExprError",
    "ExprRuntimeError",
    "ExprSyntaxError",
    "ExprValidationError",
    "ExpressionEngine",
    "ProcessedFact",
    "RuntimeErrorLog",
    "Value",
    "__version__",
    "clear_shared_engine",
    "compile_expr",
    "create_base_context",
    "eval_condition",
    "eval_expr",
    "eval_to_display_string",
    "evaluate_facts",
    "expand_macros",
    "get_shared_engine",
    "is_user_blacklisted",
    "matches_user_entry",
    "parse_fact",
    "parse_permission_directives",
    "strip_comments",
    "validate_pattern",
]
