"""Unified depth limiting for recursion protection.

Provides reusable depth tracking to prevent stack overflow from:
- Deeply parenthesized or chained source text in the parser
- Deep AST nesting in validation and evaluation
- Programmatically constructed adversarial ASTs

Thread-safe: uses explicit state, no thread-local storage.
Python 3.13+.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field

from safeexpr.constants import MAX_DEPTH
from safeexpr.diagnostics import ErrorCategory, ExprError
from safeexpr.diagnostics.templates import ErrorTemplate

__all__ = ["DepthGuard", "DepthLimitExceededError", "depth_clamp"]

logger = logging.getLogger(__name__)


class DepthLimitExceededError(ExprError):
    """Raised when maximum nesting depth is exceeded.

    Category is PARSE when raised while parsing (the source itself is
    rejected) and RESOURCE_LIMIT when raised while evaluating.
    """

    default_category = ErrorCategory.RESOURCE_LIMIT


@dataclass(slots=True)
class DepthGuard:
    """Context manager for tracking and limiting recursion depth.

    Usage in parsing:
        guard = DepthGuard(category=ErrorCategory.PARSE)
        with guard:
            operand = self._parse_unary()

    Usage in evaluation:
        guard = DepthGuard()
        with guard:
            value = self._eval(node.operand)

    Mutability Note:
        Intentionally mutable (not frozen=True) to enable stateful depth
        tracking via context manager protocol.

    Thread Safety:
        Uses explicit instance state, fully reentrant.
        Each call stack maintains its own DepthGuard instance.

    Attributes:
        max_depth: Maximum allowed depth (default: MAX_DEPTH)
        category: Error category reported when the limit is hit
        current_depth: Current recursion depth
    """

    max_depth: int = MAX_DEPTH
    category: ErrorCategory = ErrorCategory.RESOURCE_LIMIT
    current_depth: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        """Clamp max_depth against Python recursion limit."""
        self.max_depth = depth_clamp(self.max_depth)

    def __enter__(self) -> DepthGuard:
        """Enter guarded section, increment depth.

        Validates depth limit BEFORE incrementing: __exit__ is not called
        when __enter__ raises, so incrementing first would leave
        current_depth permanently elevated.
        """
        self.check()
        self.current_depth += 1
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit guarded section, decrement depth."""
        self.current_depth -= 1

    @property
    def depth(self) -> int:
        """Current depth (alias for current_depth)."""
        return self.current_depth

    def is_exceeded(self) -> bool:
        """Check if depth limit has been reached."""
        return self.current_depth >= self.max_depth

    def check(self) -> None:
        """Explicitly check depth and raise if exceeded.

        Raises:
            DepthLimitExceededError: If depth limit exceeded
        """
        if self.current_depth >= self.max_depth:
            if self.category is ErrorCategory.PARSE:
                diagnostic = ErrorTemplate.nesting_depth_exceeded(self.max_depth)
            else:
                diagnostic = ErrorTemplate.evaluation_depth_exceeded(self.max_depth)
            raise DepthLimitExceededError(diagnostic, category=self.category)

    def reset(self) -> None:
        """Reset depth to zero."""
        self.current_depth = 0


def depth_clamp(requested_depth: int, reserve_frames: int = 50) -> int:
    """Clamp requested depth against Python recursion limit.

    Every guarded level of the parser and interpreter costs several Python
    frames, so the safe depth is a fraction of the recursion limit. Logs a
    warning if clamping occurs.

    Args:
        requested_depth: Desired maximum depth
        reserve_frames: Stack frames to reserve for call overhead (default: 50)

    Returns:
        Safe depth value, clamped if necessary

    Example:
        >>> import sys
        >>> sys.setrecursionlimit(1000)
        >>> depth_clamp(100)
        100
        >>> depth_clamp(500)  # clamped to (1000 - 50) // 6
        158
    """
    max_safe_depth = (sys.getrecursionlimit() - reserve_frames) // _FRAMES_PER_LEVEL
    if requested_depth > max_safe_depth:
        logger.warning(
            "Requested depth %d exceeds Python recursion limit (%d). "
            "Clamping to %d to prevent RecursionError. "
            "Consider increasing sys.setrecursionlimit() if needed.",
            requested_depth,
            sys.getrecursionlimit(),
            max_safe_depth,
        )
        return max_safe_depth
    return requested_depth


# Upper bound of Python frames consumed per guarded level (the parser's
# precedence ladder re-enters through several methods per nesting level).
_FRAMES_PER_LEVEL = 6
