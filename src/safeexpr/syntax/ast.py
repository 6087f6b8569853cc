"""Expression AST node definitions.

Seven node kinds cover the whole grammar: literals, identifiers, member
access, calls, unary, binary and ternary operators. Nodes are immutable;
the compile cache shares them between threads.

Each node records its height (1 for a leaf, 1 + the tallest child
otherwise) so depth limits can be checked without walking the tree.

Includes type guards as static methods (eliminates circular imports).

Python 3.13+. Zero external dependencies.
"""

from dataclasses import dataclass, field
from typing import TypeIs

# ruff: noqa: RUF022 - __all__ organized by category for readability
__all__ = [
    # Base types
    "Span",
    # Nodes
    "Literal",
    "Identifier",
    "MemberAccess",
    "Call",
    "Unary",
    "Binary",
    "Ternary",
    # Type aliases
    "Expression",
    "LiteralValue",
    # Helpers
    "children",
]

# ============================================================================
# BASE TYPES
# ============================================================================


@dataclass(frozen=True, slots=True)
class Span:
    """Source position span.

    Attributes:
        start: Starting character offset (inclusive)
        end: Ending character offset (exclusive)

    Example:
        Source: "a.b"
        MemberAccess span: Span(start=0, end=3)
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        """Validate span invariants."""
        if self.start < 0:
            msg = f"Span start must be >= 0, got {self.start}"
            raise ValueError(msg)
        if self.end < self.start:
            msg = f"Span end ({self.end}) must be >= start ({self.start})"
            raise ValueError(msg)


type LiteralValue = str | int | float | bool


def _height(*nodes: "Expression") -> int:
    return 1 + max(node.height for node in nodes)


# ============================================================================
# NODES
# ============================================================================


@dataclass(frozen=True, slots=True)
class Literal:
    """Number, string or boolean constant."""

    value: LiteralValue
    span: Span | None = field(default=None, compare=False)
    height: int = field(default=1, init=False, compare=False, repr=False)

    @staticmethod
    def guard(node: object) -> TypeIs["Literal"]:
        """Type guard for Literal nodes."""
        return isinstance(node, Literal)

    @property
    def is_string(self) -> bool:
        """True for string literals (used by pattern argument checks)."""
        return isinstance(self.value, str)


@dataclass(frozen=True, slots=True)
class Identifier:
    """Bare name resolved against the evaluation context."""

    name: str
    span: Span | None = field(default=None, compare=False)
    height: int = field(default=1, init=False, compare=False, repr=False)

    @staticmethod
    def guard(node: object) -> TypeIs["Identifier"]:
        """Type guard for Identifier nodes."""
        return isinstance(node, Identifier)


@dataclass(frozen=True, slots=True)
class MemberAccess:
    """Static member access: ``object.name``.

    The member name is always a literal identifier; computed access
    (``object[expr]``) is rejected by the parser.
    """

    object: "Expression"
    name: str
    span: Span | None = field(default=None, compare=False)
    height: int = field(default=1, init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "height", _height(self.object))

    @staticmethod
    def guard(node: object) -> TypeIs["MemberAccess"]:
        """Type guard for MemberAccess nodes."""
        return isinstance(node, MemberAccess)


@dataclass(frozen=True, slots=True)
class Call:
    """Call of a callee expression with positional arguments."""

    callee: "Expression"
    args: tuple["Expression", ...] = ()
    span: Span | None = field(default=None, compare=False)
    height: int = field(default=1, init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "height", _height(self.callee, *self.args))

    @staticmethod
    def guard(node: object) -> TypeIs["Call"]:
        """Type guard for Call nodes."""
        return isinstance(node, Call)

    @property
    def method_name(self) -> str | None:
        """Member name when the callee is ``receiver.name``, else None."""
        if isinstance(self.callee, MemberAccess):
            return self.callee.name
        return None


@dataclass(frozen=True, slots=True)
class Unary:
    """Prefix operator: ``!`` or ``-``."""

    op: str
    operand: "Expression"
    span: Span | None = field(default=None, compare=False)
    height: int = field(default=1, init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "height", _height(self.operand))

    @staticmethod
    def guard(node: object) -> TypeIs["Unary"]:
        """Type guard for Unary nodes."""
        return isinstance(node, Unary)


@dataclass(frozen=True, slots=True)
class Binary:
    """Infix operator, including the short-circuit ``&&`` and ``||``."""

    op: str
    left: "Expression"
    right: "Expression"
    span: Span | None = field(default=None, compare=False)
    height: int = field(default=1, init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "height", _height(self.left, self.right))

    @staticmethod
    def guard(node: object) -> TypeIs["Binary"]:
        """Type guard for Binary nodes."""
        return isinstance(node, Binary)


@dataclass(frozen=True, slots=True)
class Ternary:
    """Conditional: ``condition ? then_branch : else_branch``."""

    condition: "Expression"
    then_branch: "Expression"
    else_branch: "Expression"
    span: Span | None = field(default=None, compare=False)
    height: int = field(default=1, init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "height", _height(self.condition, self.then_branch, self.else_branch)
        )

    @staticmethod
    def guard(node: object) -> TypeIs["Ternary"]:
        """Type guard for Ternary nodes."""
        return isinstance(node, Ternary)


# ============================================================================
# TYPE ALIASES
# ============================================================================

type Expression = Literal | Identifier | MemberAccess | Call | Unary | Binary | Ternary


def children(node: Expression) -> tuple[Expression, ...]:
    """Direct child expressions of ``node`` in evaluation order."""
    match node:
        case MemberAccess():
            return (node.object,)
        case Call():
            return (node.callee, *node.args)
        case Unary():
            return (node.operand,)
        case Binary():
            return (node.left, node.right)
        case Ternary():
            return (node.condition, node.then_branch, node.else_branch)
        case _:
            return ()
