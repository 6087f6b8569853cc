"""Expression lexer: source text to token stream.

Grammar (lexical):
    identifier  := [A-Za-z_][A-Za-z0-9_]*        (ASCII only)
    boolean     := "true" | "false"
    number      := [0-9]+ ("." [0-9]+)? | "." [0-9]+
    string      := '"' chars '"' | "'" chars "'"  (escapes: \\ \" \' \n \t \r \0)
    operator    := === !== == != <= >= && || < > + - * / % ! ? :
    punctuation := ( ) . , ; [ ]

There are no hex, octal, binary, exponent, separator or big-integer number
forms: "0x41" lexes as the number 0 followed by the identifier x41. There is
no interpolating, raw or multi-line string syntax and no regex literal.

Tokens are produced lazily by iter_tokens(), so a caller that stops
consuming after a prefix expression never scans the text that follows it.

Python 3.13+. Zero external dependencies.
"""

import logging
from collections.abc import Iterator

from safeexpr.constants import MAX_NUMBER_LENGTH, MAX_SOURCE_LENGTH
from safeexpr.diagnostics import (
    Diagnostic,
    ErrorCategory,
    ErrorTemplate,
    ExprSyntaxError,
    SourceSpan,
)

from .cursor import Cursor
from .tokens import OPERATORS, PUNCTUATION, Token, TokenKind

__all__ = ["iter_tokens", "tokenize"]

logger = logging.getLogger(__name__)

_IDENT_START = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_")
_IDENT_CHARS = _IDENT_START | frozenset("0123456789")
_DIGITS = frozenset("0123456789")
_WHITESPACE = frozenset(" \t\r\n")
_QUOTES = frozenset("\"'")

_ESCAPES: dict[str, str] = {
    "\\": "\\",
    '"': '"',
    "'": "'",
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
}

_KEYWORD_LITERALS: dict[str, bool] = {"true": True, "false": False}


def _lex_error(cursor: Cursor, diagnostic: Diagnostic, length: int = 1) -> ExprSyntaxError:
    line, column = cursor.compute_line_col()
    span = SourceSpan(start=cursor.pos, end=cursor.pos + length, line=line, column=column)
    return ExprSyntaxError(diagnostic.with_span(span), category=ErrorCategory.LEX)


def iter_tokens(source: str) -> Iterator[Token]:
    """Lazily tokenize ``source``, ending with a single END token.

    Args:
        source: Expression source text

    Yields:
        Tokens in source order

    Raises:
        ExprSyntaxError: (category LEX) on any character outside the grammar,
            an unterminated string, an unknown escape, or oversized source
    """
    if len(source) > MAX_SOURCE_LENGTH:
        raise ExprSyntaxError(
            ErrorTemplate.source_too_long(len(source), MAX_SOURCE_LENGTH),
            category=ErrorCategory.LEX,
        )

    cursor = Cursor(source, 0)
    while True:
        while not cursor.is_eof and cursor.current in _WHITESPACE:
            cursor = cursor.advance()
        if cursor.is_eof:
            yield Token(TokenKind.END, "", cursor.pos, cursor.pos)
            return

        char = cursor.current
        start = cursor.pos

        if char in _IDENT_START:
            cursor = _scan_identifier(cursor)
            text = cursor.slice_from(start)
            if text in _KEYWORD_LITERALS:
                yield Token(TokenKind.BOOLEAN, _KEYWORD_LITERALS[text], start, cursor.pos, text)
            else:
                yield Token(TokenKind.IDENTIFIER, text, start, cursor.pos, text)
        elif char in _DIGITS or (char == "." and cursor.peek(1) in _DIGITS):
            token, cursor = _scan_number(cursor)
            yield token
        elif char in _QUOTES:
            token, cursor = _scan_string(cursor)
            yield token
        elif char in PUNCTUATION:
            cursor = cursor.advance()
            yield Token(TokenKind.PUNCTUATION, char, start, cursor.pos, char)
        else:
            for op in OPERATORS:
                if cursor.startswith(op):
                    cursor = cursor.advance(len(op))
                    yield Token(TokenKind.OPERATOR, op, start, cursor.pos, op)
                    break
            else:
                raise _lex_error(cursor, ErrorTemplate.unexpected_character(char))


def tokenize(source: str) -> list[Token]:
    """Tokenize the whole of ``source``.

    Example:
        >>> [t.raw for t in tokenize("a.b(1)")]
        ['a', '.', 'b', '(', '1', ')', '']
    """
    return list(iter_tokens(source))


def _scan_identifier(cursor: Cursor) -> Cursor:
    while not cursor.is_eof and cursor.current in _IDENT_CHARS:
        cursor = cursor.advance()
    return cursor


def _scan_number(cursor: Cursor) -> tuple[Token, Cursor]:
    opening = cursor
    start = cursor.pos
    while not cursor.is_eof and cursor.current in _DIGITS:
        cursor = cursor.advance()
    is_float = False
    if cursor.peek() == "." and cursor.peek(1) in _DIGITS:
        is_float = True
        cursor = cursor.advance()
        while not cursor.is_eof and cursor.current in _DIGITS:
            cursor = cursor.advance()
    text = cursor.slice_from(start)
    if len(text) > MAX_NUMBER_LENGTH:
        raise _lex_error(
            opening, ErrorTemplate.number_too_long(len(text), MAX_NUMBER_LENGTH), length=len(text)
        )
    value: int | float = float(text) if is_float else int(text)
    return Token(TokenKind.NUMBER, value, start, cursor.pos, text), cursor


def _scan_string(cursor: Cursor) -> tuple[Token, Cursor]:
    opening = cursor
    quote = cursor.current
    cursor = cursor.advance()
    chars: list[str] = []
    while True:
        if cursor.is_eof or cursor.current == "\n":
            raise _lex_error(opening, ErrorTemplate.unterminated_string())
        char = cursor.current
        if char == quote:
            cursor = cursor.advance()
            break
        if char == "\\":
            escaped = cursor.peek(1)
            if escaped is None:
                raise _lex_error(opening, ErrorTemplate.unterminated_string())
            if escaped not in _ESCAPES:
                raise _lex_error(cursor, ErrorTemplate.invalid_escape(escaped), length=2)
            chars.append(_ESCAPES[escaped])
            cursor = cursor.advance(2)
            continue
        chars.append(char)
        cursor = cursor.advance()
    raw = cursor.slice_from(opening.pos)
    return Token(TokenKind.STRING, "".join(chars), opening.pos, cursor.pos, raw), cursor
