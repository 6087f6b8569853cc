"""Tree-walking interpreter for validated expression ASTs.

Evaluation never generates or executes Python source and never reads a
Python attribute of a runtime value. Member access is resolved through
mapping lookups (records and namespaces) or the fixed method tables in
``runtime.methods``; everything else is a TYPE_MISMATCH.

Evaluation is pure apart from the randomness and clock primitives the
context supplies. Depth is bounded by the visitor's DepthGuard.

Python 3.13+. Zero external dependencies.
"""

import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from safeexpr.constants import DEFAULT_LOCALE
from safeexpr.diagnostics import ErrorCategory, ErrorTemplate, ExprError, ExprRuntimeError
from safeexpr.syntax.ast import (
    Binary,
    Call,
    Expression,
    Identifier,
    Literal,
    MemberAccess,
    Ternary,
    Unary,
)
from safeexpr.syntax.visitor import ASTVisitor
from safeexpr.validation.schema import DEFAULT_SCHEMA, ContextSchema
from safeexpr.validation.validator import ExpressionValidator

from .guards import guarded_concat
from .locale_context import LocaleContext
from .methods import resolve_member
from .values import (
    BoundMethod,
    ExprDate,
    Value,
    from_host,
    is_number,
    is_truthy,
    normalize_number,
    strict_equals,
    to_display_string,
    type_name,
)

__all__ = ["CompiledExpression", "Interpreter", "compile_ast", "evaluate"]

logger = logging.getLogger(__name__)

_EQUALITY_OPERATORS = frozenset({"==", "===", "!=", "!=="})
_RELATIONAL_OPERATORS = frozenset({"<", ">", "<=", ">="})
_ARITHMETIC_OPERATORS = frozenset({"-", "*", "/", "%"})


def _type_error(message: str, expected: str, received: str) -> ExprRuntimeError:
    return ExprRuntimeError(
        ErrorTemplate.type_mismatch(message, expected, received),
        category=ErrorCategory.TYPE_MISMATCH,
    )


# ============================================================================
# ARITHMETIC
# ============================================================================


def _divide(left: int | float, right: int | float) -> int | float:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    if isinstance(left, int) and isinstance(right, int) and left % right == 0:
        return left // right
    return left / right


def _remainder(left: int | float, right: int | float) -> int | float:
    """Truncating remainder: the result takes the sign of the dividend."""
    if right == 0 or math.isnan(left) or math.isnan(right) or math.isinf(left):
        return math.nan
    if math.isinf(right):
        return left
    if isinstance(left, int) and isinstance(right, int):
        result = abs(left) % abs(right)
        return result if left >= 0 else -result
    return math.fmod(left, right)


_ARITHMETIC: dict[str, Callable[[int | float, int | float], int | float]] = {
    "-": lambda left, right: left - right,
    "*": lambda left, right: left * right,
    "/": _divide,
    "%": _remainder,
}


def _compare(op: str, left: Value, right: Value) -> bool:
    """Relational comparison of two numbers, strings or dates.

    Null, NaN and invalid dates compare false against everything.
    """
    if left is None or right is None:
        return False
    if is_number(left) and is_number(right):
        ordered: tuple[object, object] = (left, right)
    elif isinstance(left, str) and isinstance(right, str):
        ordered = (left, right)
    elif isinstance(left, ExprDate) and isinstance(right, ExprDate):
        ordered = (left.epoch_ms, right.epoch_ms)
    else:
        raise _type_error(
            f"Cannot compare {type_name(left)} {op} {type_name(right)}",
            type_name(left),
            type_name(right),
        )
    a, b = ordered
    if isinstance(a, float) and math.isnan(a) or isinstance(b, float) and math.isnan(b):
        return False
    match op:
        case "<":
            return a < b  # type: ignore[operator]  # same-kind operands
        case ">":
            return a > b  # type: ignore[operator]
        case "<=":
            return a <= b  # type: ignore[operator]
        case _:
            return a >= b  # type: ignore[operator]


# ============================================================================
# INTERPRETER
# ============================================================================


class Interpreter(ASTVisitor[Value]):
    """Evaluates one AST against one context.

    Instances are single-use: create one per evaluation.
    """

    __slots__ = ("_context", "_locale")

    def __init__(self, context: Mapping[str, object], locale: LocaleContext) -> None:
        super().__init__(category=ErrorCategory.RESOURCE_LIMIT)
        self._context = context
        self._locale = locale

    def evaluate(self, node: Expression) -> Value:
        """Evaluate ``node`` and return its value."""
        return self._eval(node)

    def _eval(self, node: Expression) -> Value:
        with self._depth_guard:
            return self.visit(node)

    # ------------------------------------------------------------------
    # Leaves
    # ------------------------------------------------------------------

    def visit_Literal(self, node: Literal) -> Value:
        value = node.value
        if isinstance(value, int) and not isinstance(value, bool):
            return normalize_number(value)
        return value

    def visit_Identifier(self, node: Identifier) -> Value:
        return from_host(self._context.get(node.name))

    # ------------------------------------------------------------------
    # Postfix
    # ------------------------------------------------------------------

    def visit_MemberAccess(self, node: MemberAccess) -> Value:
        receiver = self._eval(node.object)
        if receiver is None:
            # Optional slots: reading through an absent value stays absent.
            return None
        if isinstance(receiver, Mapping):
            return from_host(receiver.get(node.name))
        return resolve_member(receiver, node.name, self._locale)

    def visit_Call(self, node: Call) -> Value:
        function = self._eval(node.callee)
        args = tuple(self._eval(arg) for arg in node.args)
        if isinstance(function, BoundMethod):
            return function(*args)
        if function is None or isinstance(function, Mapping) or not callable(function):
            raise ExprRuntimeError(
                ErrorTemplate.not_callable(type_name(function)),
                category=ErrorCategory.TYPE_MISMATCH,
            )
        try:
            result = function(*args)
        except ExprError:
            raise
        except Exception as exc:
            name = _callee_name(node.callee)
            logger.debug("Host function %s() raised %s", name, type(exc).__name__)
            raise ExprRuntimeError(
                ErrorTemplate.host_function_failed(name, exc),
                category=ErrorCategory.INTERNAL,
            ) from exc
        return from_host(result)

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def visit_Unary(self, node: Unary) -> Value:
        operand = self._eval(node.operand)
        if node.op == "!":
            return not is_truthy(operand)
        if not is_number(operand):
            raise _type_error(
                f"Cannot negate {type_name(operand)}", "number", type_name(operand)
            )
        return normalize_number(-operand)  # type: ignore[operator]  # narrowed by is_number

    def visit_Binary(self, node: Binary) -> Value:
        op = node.op
        left = self._eval(node.left)
        if op == "&&":
            return self._eval(node.right) if is_truthy(left) else left
        if op == "||":
            return left if is_truthy(left) else self._eval(node.right)

        right = self._eval(node.right)
        if op in _EQUALITY_OPERATORS:
            equal = strict_equals(left, right)
            return equal if op in ("==", "===") else not equal
        if op in _RELATIONAL_OPERATORS:
            return _compare(op, left, right)
        if op == "+":
            if isinstance(left, str) or isinstance(right, str):
                return guarded_concat(to_display_string(left), to_display_string(right))
            if is_number(left) and is_number(right):
                return normalize_number(left + right)  # type: ignore[operator]  # narrowed
        elif op in _ARITHMETIC_OPERATORS and is_number(left) and is_number(right):
            return normalize_number(_ARITHMETIC[op](left, right))  # type: ignore[arg-type]  # narrowed
        raise _type_error(
            f"Cannot apply {op} to {type_name(left)} and {type_name(right)}",
            "number",
            type_name(right) if is_number(left) else type_name(left),
        )

    def visit_Ternary(self, node: Ternary) -> Value:
        if is_truthy(self._eval(node.condition)):
            return self._eval(node.then_branch)
        return self._eval(node.else_branch)


def _callee_name(node: Expression) -> str:
    """Dotted name of a call target, for error messages."""
    match node:
        case Identifier(name=name):
            return name
        case MemberAccess(object=obj, name=name):
            return f"{_callee_name(obj)}.{name}"
        case _:
            return "(expression)"


def evaluate(
    node: Expression,
    context: Mapping[str, object],
    locale: LocaleContext | None = None,
) -> Value:
    """Evaluate a validated AST against ``context``.

    Raises:
        ExprRuntimeError: TYPE_MISMATCH, RESOURCE_LIMIT or INTERNAL
        DepthLimitExceededError: If evaluation nests deeper than MAX_DEPTH
    """
    return Interpreter(context, locale or LocaleContext.create(DEFAULT_LOCALE)).evaluate(node)


# ============================================================================
# COMPILED FORM
# ============================================================================


@dataclass(frozen=True, slots=True)
class CompiledExpression:
    """Validated, directly executable form of one source string.

    Immutable once created, so one instance may run concurrently against
    many contexts.

    Attributes:
        source: Source text (the compile cache key)
        ast: Validated AST
        schema_version: Version of the schema it was validated against
    """

    source: str
    ast: Expression
    schema_version: int

    def run(self, context: Mapping[str, object], locale: LocaleContext | None = None) -> Value:
        """Evaluate against ``context``.

        Args:
            context: Field values for this evaluation (never mutated)
            locale: Locale for date strings (default: DEFAULT_LOCALE)

        Raises:
            ExprRuntimeError: On type mismatches and resource limits
        """
        return evaluate(self.ast, context, locale)


def compile_ast(
    node: Expression,
    source: str = "",
    schema: ContextSchema = DEFAULT_SCHEMA,
) -> CompiledExpression:
    """Validate ``node`` against ``schema`` and wrap it for execution.

    Raises:
        ExprValidationError: On the first validation failure
    """
    ExpressionValidator(schema, source or None).check(node)
    return CompiledExpression(source=source, ast=node, schema_version=schema.version)
