"""Diagnostic system for expression errors.

Provides structured error diagnostics with categories, codes, spans and hints.
Inspired by Rust compiler diagnostics and Elm error messages.

Python 3.13+. Zero external dependencies.
"""

from .codes import Diagnostic, DiagnosticCode, ErrorCategory, SourceSpan
from .errors import (
    ExprError,
    ExprRuntimeError,
    ExprSyntaxError,
    ExprValidationError,
)
from .formatter import DiagnosticFormatter, OutputFormat
from .templates import ErrorTemplate

__all__ = [
    "Diagnostic",
    "DiagnosticCode",
    "DiagnosticFormatter",
    "ErrorCategory",
    "ErrorTemplate",
    "ExprError",
    "ExprRuntimeError",
    "ExprSyntaxError",
    "ExprValidationError",
    "OutputFormat",
    "SourceSpan",
]
