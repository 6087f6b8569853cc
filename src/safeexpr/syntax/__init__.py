"""Expression syntax: tokens, lexer, AST, parser and visitor.

Python 3.13+. Zero external dependencies.
"""

from .ast import (
    Binary,
    Call,
    Expression,
    Identifier,
    Literal,
    LiteralValue,
    MemberAccess,
    Span,
    Ternary,
    Unary,
    children,
)
from .lexer import iter_tokens, tokenize
from .parser import BINARY_PRECEDENCE, Parser, parse, parse_prefix
from .tokens import OPERATORS, PUNCTUATION, Token, TokenKind
from .visitor import ASTVisitor

__all__ = [
    "BINARY_PRECEDENCE",
    "OPERATORS",
    "PUNCTUATION",
    "ASTVisitor",
    "Binary",
    "Call",
    "Expression",
    "Identifier",
    "Literal",
    "LiteralValue",
    "MemberAccess",
    "Parser",
    "Span",
    "Ternary",
    "Token",
    "TokenKind",
    "Unary",
    "children",
    "iter_tokens",
    "parse",
    "parse_prefix",
    "tokenize",
]
