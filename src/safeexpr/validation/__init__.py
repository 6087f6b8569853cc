"""Static validation: context schema, deny-list and pattern safety.

Python 3.13+. Zero external dependencies.
"""

from .patterns import PATTERN_METHODS, SafePattern, validate_pattern
from .schema import DEFAULT_SCHEMA, ContextSchema, FieldKind, FieldSpec
from .validator import (
    BLOCKED_MEMBERS,
    UNAVAILABLE_METHODS,
    ExpressionValidator,
    ValidationResult,
    is_blocked_member,
    validate,
)

__all__ = [
    "BLOCKED_MEMBERS",
    "DEFAULT_SCHEMA",
    "PATTERN_METHODS",
    "UNAVAILABLE_METHODS",
    "ContextSchema",
    "ExpressionValidator",
    "FieldKind",
    "FieldSpec",
    "SafePattern",
    "ValidationResult",
    "is_blocked_member",
    "validate",
    "validate_pattern",
]
