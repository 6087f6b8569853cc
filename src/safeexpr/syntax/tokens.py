"""Token definitions for the expression lexer.

Python 3.13+. Zero external dependencies.
"""

from dataclasses import dataclass
from enum import StrEnum

__all__ = [
    "OPERATORS",
    "PUNCTUATION",
    "Token",
    "TokenKind",
]


class TokenKind(StrEnum):
    """Lexical category of a token."""

    IDENTIFIER = "identifier"
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"
    END = "end"


# Longest first: the lexer takes the first entry that matches.
OPERATORS: tuple[str, ...] = (
    "===", "!==",
    "==", "!=", "<=", ">=", "&&", "||",
    "<", ">", "+", "-", "*", "/", "%", "!", "?", ":",
)

# ";", "[" and "]" have no production in the grammar. They are tokenized so
# the parser can reject them with a positioned "Unexpected token" error.
PUNCTUATION: frozenset[str] = frozenset("().,;[]")


@dataclass(frozen=True, slots=True)
class Token:
    """Immutable lexical token.

    Attributes:
        kind: Lexical category
        value: Decoded value (str for identifiers, operators and strings,
            int or float for numbers, bool for booleans, "" for END)
        start: Starting character offset in the source
        end: Ending character offset (exclusive)
        raw: Source text of the token
    """

    kind: TokenKind
    value: str | int | float | bool
    start: int
    end: int
    raw: str = ""

    def is_operator(self, *ops: str) -> bool:
        """True if this is an operator token with one of the given spellings."""
        return self.kind is TokenKind.OPERATOR and self.value in ops

    def is_punct(self, char: str) -> bool:
        """True if this is the given punctuation token."""
        return self.kind is TokenKind.PUNCTUATION and self.value == char

    @property
    def display(self) -> str:
        """Text used to name the token in error messages."""
        if self.kind is TokenKind.END:
            return "end of expression"
        return self.raw or str(self.value)
