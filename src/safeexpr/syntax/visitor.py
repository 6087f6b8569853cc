"""Visitor pattern for expression AST traversal.

NOTE: This module follows Python stdlib ast.NodeVisitor naming convention.
Methods are named visit_NodeName (PascalCase) rather than visit_node_name
(snake_case), matching the AST class names.

Type Parameters:
- ASTVisitor[T] is generic over return type T
- ASTVisitor (no type param) defaults to T=Expression

The static validator and the interpreter are both visitors.

Python 3.13+.
"""

from collections.abc import Callable
from typing import ClassVar

from safeexpr.constants import MAX_DEPTH
from safeexpr.core.depth_guard import DepthGuard
from safeexpr.diagnostics import ErrorCategory

from .ast import Expression, children

__all__ = ["ASTVisitor"]


class ASTVisitor[T = Expression]:
    """Base visitor for traversing an expression AST.

    Follows stdlib ast.NodeVisitor convention: generic_visit() automatically
    traverses all child nodes. Override visit_NodeType methods to add custom
    behavior.

    Uses class-level dispatch table for performance:
    - Dispatch table built once per class definition via __init_subclass__
    - Avoids per-instance cache warmup overhead
    - Falls back to instance-level cache for dynamically added methods

    Example:
        >>> class CountIdentifiers(ASTVisitor):
        ...     def __init__(self):
        ...         super().__init__()
        ...         self.count = 0
        ...
        ...     def visit_Identifier(self, node: Identifier) -> Expression:
        ...         self.count += 1
        ...         return node
        ...
        >>> visitor = CountIdentifiers()
        >>> visitor.visit(parse("a + b.c(d)"))
        >>> visitor.count
        3
    """

    __slots__ = ("_depth_guard", "_instance_dispatch_cache")

    # Class-level dispatch table (method names only, not bound methods)
    # Built once per class definition via __init_subclass__
    _class_visit_methods: ClassVar[dict[str, str]] = {}

    def __init_subclass__(cls, **kwargs: object) -> None:
        """Build class-level dispatch table when subclass is defined."""
        super().__init_subclass__(**kwargs)
        cls._class_visit_methods = {}
        for name in dir(cls):
            if name.startswith("visit_") and name != "visit":
                # "visit_Binary" -> "Binary"
                cls._class_visit_methods[name[6:]] = name

    def __init__(
        self,
        *,
        max_depth: int | None = None,
        category: ErrorCategory = ErrorCategory.RESOURCE_LIMIT,
    ) -> None:
        """Initialize visitor with depth guard and dispatch cache.

        Subclasses MUST call super().__init__() to ensure depth protection
        is properly initialized.

        Args:
            max_depth: Maximum traversal depth (default: MAX_DEPTH)
            category: Error category reported when the depth bound is hit
        """
        effective_max_depth = max_depth if max_depth is not None else MAX_DEPTH
        self._depth_guard = DepthGuard(max_depth=effective_max_depth, category=category)
        self._instance_dispatch_cache: dict[type, Callable[[Expression], T]] = {}

    def visit(self, node: Expression) -> T:
        """Visit a node (dispatcher with class-level + instance-level caching).

        Args:
            node: AST node to visit

        Returns:
            Result of visiting the node
        """
        node_type = type(node)

        if node_type in self._instance_dispatch_cache:
            return self._instance_dispatch_cache[node_type](node)

        node_type_name = node_type.__name__
        if node_type_name in self._class_visit_methods:
            method = getattr(self, self._class_visit_methods[node_type_name])
        else:
            method = self.generic_visit

        self._instance_dispatch_cache[node_type] = method
        return method(node)  # type: ignore[no-any-return]  # getattr returns Any

    def generic_visit(self, node: Expression) -> T:
        """Default visitor (traverses children with depth protection).

        Raises:
            DepthLimitExceededError: If traversal depth exceeds the bound
        """
        with self._depth_guard:
            for child in children(node):
                self.visit(child)
        return node  # type: ignore[return-value]  # T defaults to Expression
