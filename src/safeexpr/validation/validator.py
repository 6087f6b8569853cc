"""Static validator for expression ASTs.

Runs once per compile, before anything is evaluated. Checks are applied at
every depth of the tree, not just at the root:

1. Identifier resolution: every identifier must be a schema field.
2. Member-access safety: member names on the deny-list are rejected wherever
   they appear (after an identifier, a call result or another member).
   Members of closed namespaces must be declared.
3. Pattern-literal safety: the first argument of match, search, replace and
   split is a string literal that passes the pattern-safety checker.

Validation depends only on AST shape and the schema, never on context
values, so a compiled expression is valid for every context.

Python 3.13+. Zero external dependencies.
"""

import logging
from dataclasses import dataclass

from safeexpr.constants import MAX_DEPTH
from safeexpr.core.depth_guard import DepthLimitExceededError
from safeexpr.diagnostics import (
    Diagnostic,
    ErrorCategory,
    ErrorTemplate,
    ExprValidationError,
    SourceSpan,
)
from safeexpr.syntax.ast import Call, Expression, Identifier, Literal, MemberAccess
from safeexpr.syntax.visitor import ASTVisitor

from .patterns import PATTERN_METHODS, validate_pattern
from .schema import DEFAULT_SCHEMA, ContextSchema

__all__ = [
    "BLOCKED_MEMBERS",
    "UNAVAILABLE_METHODS",
    "ExpressionValidator",
    "ValidationResult",
    "is_blocked_member",
    "validate",
]

logger = logging.getLogger(__name__)

# ============================================================================
# DENY-LIST
# ============================================================================

BLOCKED_MEMBERS: frozenset[str] = frozenset({
    # Prototype-chain escapes
    "constructor",
    "__proto__",
    "prototype",
    "__defineGetter__",
    "__defineSetter__",
    "__lookupGetter__",
    "__lookupSetter__",
    # Python object, frame, generator, coroutine and code introspection
    "mro",
    "func_globals",
    "func_code",
    "im_func",
    "im_self",
    "gi_frame",
    "gi_code",
    "gi_yieldfrom",
    "cr_frame",
    "cr_code",
    "cr_await",
    "ag_frame",
    "ag_code",
    "f_back",
    "f_builtins",
    "f_code",
    "f_globals",
    "f_locals",
    "tb_frame",
    "tb_next",
    "co_code",
    "co_consts",
})

# Methods withheld in favor of a safer equivalent.
UNAVAILABLE_METHODS: dict[str, str] = {"matchAll": "match"}


def is_blocked_member(name: str) -> bool:
    """True if ``name`` may never be read as a member.

    Every name starting with a double underscore is blocked, which covers
    all Python special attributes.
    """
    return name in BLOCKED_MEMBERS or name.startswith("__")


# ============================================================================
# RESULT
# ============================================================================


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of validating one AST.

    Attributes:
        errors: Every violation found, in source order

    Example:
        >>> validate(parse("process.exit(1)")).is_valid
        False
    """

    errors: tuple[ExprValidationError, ...] = ()

    @property
    def is_valid(self) -> bool:
        """True if no violation was found."""
        return not self.errors

    @property
    def error_count(self) -> int:
        """Number of violations."""
        return len(self.errors)

    def raise_first(self) -> None:
        """Raise the first violation, if any."""
        if self.errors:
            raise self.errors[0]


# ============================================================================
# VALIDATOR
# ============================================================================


class ExpressionValidator(ASTVisitor):
    """Collects schema, deny-list and pattern violations.

    Instances are single-use: create one per validated tree.
    """

    __slots__ = ("_errors", "_schema", "_source")

    def __init__(self, schema: ContextSchema = DEFAULT_SCHEMA, source: str | None = None) -> None:
        super().__init__(category=ErrorCategory.PARSE)
        self._schema = schema
        self._source = source
        self._errors: list[ExprValidationError] = []

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def validate(self, node: Expression) -> ValidationResult:
        """Walk ``node`` and return every violation found."""
        if node.height > MAX_DEPTH:
            raise DepthLimitExceededError(
                ErrorTemplate.nesting_depth_exceeded(MAX_DEPTH),
                category=ErrorCategory.PARSE,
            )
        self.visit(node)
        return ValidationResult(tuple(self._errors))

    def check(self, node: Expression) -> None:
        """Validate ``node`` and raise the first violation.

        Raises:
            ExprValidationError: On the first violation in source order
        """
        self.validate(node).raise_first()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _report(self, diagnostic: Diagnostic, node: Expression, category: ErrorCategory) -> None:
        if node.span is not None:
            if self._source is not None:
                span = SourceSpan.at(self._source, node.span.start, node.span.end)
            else:
                span = SourceSpan(start=node.span.start, end=node.span.end)
            diagnostic = diagnostic.with_span(span)
        self._errors.append(ExprValidationError(diagnostic, category=category))

    # ------------------------------------------------------------------
    # Visitors
    # ------------------------------------------------------------------

    def visit_Identifier(self, node: Identifier) -> Expression:
        if node.name not in self._schema:
            self._report(
                ErrorTemplate.unknown_identifier(node.name),
                node,
                ErrorCategory.UNKNOWN_IDENTIFIER,
            )
        return node

    def _check_member(self, node: MemberAccess, *, called: bool) -> None:
        name = node.name
        if is_blocked_member(name):
            self._report(ErrorTemplate.blocked_member(name), node, ErrorCategory.BLOCKED_MEMBER)
        elif name in UNAVAILABLE_METHODS:
            self._report(
                ErrorTemplate.method_unavailable(name, UNAVAILABLE_METHODS[name]),
                node,
                ErrorCategory.BLOCKED_MEMBER,
            )
        elif name in PATTERN_METHODS and not called:
            # A detached pattern method could later be called with any value.
            self._report(
                ErrorTemplate.pattern_method_not_called(name),
                node,
                ErrorCategory.UNSAFE_PATTERN,
            )
        elif isinstance(node.object, Identifier):
            spec = self._schema.get(node.object.name)
            if spec is not None and spec.is_closed_namespace and name not in spec.members:
                self._report(
                    ErrorTemplate.unknown_member(node.object.name, name),
                    node,
                    ErrorCategory.UNKNOWN_IDENTIFIER,
                )

    def visit_MemberAccess(self, node: MemberAccess) -> Expression:
        self.generic_visit(node)
        self._check_member(node, called=False)
        return node

    def visit_Call(self, node: Call) -> Expression:
        callee = node.callee
        if not (isinstance(callee, MemberAccess) and callee.name in PATTERN_METHODS):
            self.generic_visit(node)
            return node

        # receiver.method(...) is the only form in which a pattern method may appear.
        with self._depth_guard:
            with self._depth_guard:
                self.visit(callee.object)
            for arg in node.args:
                self.visit(arg)
        self._check_member(callee, called=True)
        method = callee.name
        pattern = node.args[0] if node.args else None
        if not (isinstance(pattern, Literal) and pattern.is_string):
            self._report(
                ErrorTemplate.pattern_not_literal(str(method)),
                pattern if pattern is not None else node,
                ErrorCategory.UNSAFE_PATTERN,
            )
            return node
        try:
            validate_pattern(str(pattern.value))
        except ExprValidationError as exc:
            if exc.diagnostic is None:
                self._errors.append(exc)
            else:
                self._report(exc.diagnostic, pattern, ErrorCategory.UNSAFE_PATTERN)
        return node


def validate(
    node: Expression,
    schema: ContextSchema = DEFAULT_SCHEMA,
    source: str | None = None,
) -> ValidationResult:
    """Validate an AST against ``schema``.

    Args:
        node: Root of the AST
        schema: Fields that identifiers may reference
        source: Expression source, used to locate errors by line and column

    Returns:
        ValidationResult listing every violation
    """
    return ExpressionValidator(schema, source).validate(node)
