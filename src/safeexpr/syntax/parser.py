"""Recursive-descent expression parser.

Grammar:
    expression := ternary
    ternary    := logic_or ("?" ternary ":" ternary)?
    logic_or   := logic_and ("||" logic_and)*
    logic_and  := equality ("&&" equality)*
    equality   := relational (("==" | "!=" | "===" | "!==") relational)*
    relational := additive (("<" | ">" | "<=" | ">=") additive)*
    additive   := term (("+" | "-") term)*
    term       := unary (("*" | "/" | "%") unary)*
    unary      := ("!" | "-") unary | postfix
    postfix    := primary ("." IDENTIFIER | "(" arguments ")")*
    primary    := NUMBER | STRING | BOOLEAN | IDENTIFIER | "(" expression ")"
    arguments  := (expression ("," expression)*)?

The binary tiers are parsed by precedence climbing over one table, which
keeps left-associative chains iterative. Everything that nests (parentheses,
unary operators, ternary branches, call arguments and right operands) passes
through a DepthGuard, so adversarial input ends in a parse error rather than
a RecursionError.

There is no assignment, sequencing, spread, arrow function, object literal
or computed member access. Keywords of other languages ("new", "typeof",
"return") are ordinary identifiers and are rejected later by the validator.

Python 3.13+. Zero external dependencies.
"""

import logging
from collections.abc import Iterable, Iterator

from safeexpr.core.depth_guard import DepthGuard
from safeexpr.diagnostics import (
    Diagnostic,
    ErrorCategory,
    ErrorTemplate,
    ExprSyntaxError,
    SourceSpan,
)

from .ast import (
    Binary,
    Call,
    Expression,
    Identifier,
    Literal,
    MemberAccess,
    Span,
    Ternary,
    Unary,
)
from .lexer import iter_tokens
from .tokens import Token, TokenKind

__all__ = ["BINARY_PRECEDENCE", "Parser", "parse", "parse_prefix"]

logger = logging.getLogger(__name__)

# Higher binds tighter. All tiers are left-associative.
BINARY_PRECEDENCE: dict[str, int] = {
    "||": 1,
    "&&": 2,
    "==": 3,
    "!=": 3,
    "===": 3,
    "!==": 3,
    "<": 4,
    ">": 4,
    "<=": 4,
    ">=": 4,
    "+": 5,
    "-": 5,
    "*": 6,
    "/": 6,
    "%": 6,
}

_UNARY_OPERATORS = ("!", "-")

_LITERAL_KINDS = frozenset({TokenKind.NUMBER, TokenKind.STRING, TokenKind.BOOLEAN})


class Parser:
    """Single-use parser over a lazy token stream.

    Holds one token of lookahead. Tokens past the last one inspected are
    never requested from the lexer.
    """

    __slots__ = ("_current", "_guard", "_last_end", "_source", "_tokens")

    def __init__(self, tokens: Iterable[Token], source: str | None = None) -> None:
        self._tokens: Iterator[Token] = iter(tokens)
        self._source = source
        self._guard = DepthGuard(category=ErrorCategory.PARSE)
        self._last_end = 0
        self._current = self._pull()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def parse(self) -> Expression:
        """Parse a complete expression; any trailing token is an error."""
        if self._current.kind is TokenKind.END:
            raise self._error(ErrorTemplate.empty_expression(), self._current)
        node = self.parse_expression()
        if self._current.kind is not TokenKind.END:
            raise self._trailing_token_error(self._current)
        return node

    def parse_expression(self) -> Expression:
        """Parse one expression and stop at the first token that cannot continue it."""
        return self._parse_ternary()

    @property
    def current(self) -> Token:
        """The lookahead token."""
        return self._current

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def _pull(self) -> Token:
        try:
            return next(self._tokens)
        except StopIteration:
            end = self._last_end
            return Token(TokenKind.END, "", end, end)

    def _advance(self) -> Token:
        token = self._current
        self._last_end = token.end
        if token.kind is not TokenKind.END:
            self._current = self._pull()
        return token

    def _expect_punct(self, char: str) -> Token:
        token = self._current
        if not token.is_punct(char):
            if token.kind is TokenKind.END:
                raise self._error(ErrorTemplate.unexpected_end(), token)
            raise self._error(ErrorTemplate.expected_token(char, token.display), token)
        return self._advance()

    def _span_from(self, start: int) -> Span:
        return Span(start=start, end=max(start, self._last_end))

    def _error(self, diagnostic: Diagnostic, token: Token) -> ExprSyntaxError:
        if self._source is not None:
            span = SourceSpan.at(self._source, token.start, token.end)
        else:
            span = SourceSpan(start=token.start, end=token.end)
        return ExprSyntaxError(diagnostic.with_span(span), category=ErrorCategory.PARSE)

    def _trailing_token_error(self, token: Token) -> ExprSyntaxError:
        if token.is_punct(";"):
            return self._error(ErrorTemplate.statement_separator(), token)
        if token.is_punct("["):
            return self._error(ErrorTemplate.computed_access(), token)
        return self._error(ErrorTemplate.unexpected_token(token.display), token)

    def _check_height(self, node: Expression, token: Token) -> Expression:
        if node.height > self._guard.max_depth:
            raise self._error(ErrorTemplate.nesting_depth_exceeded(self._guard.max_depth), token)
        return node

    # ------------------------------------------------------------------
    # Grammar
    # ------------------------------------------------------------------

    def _parse_ternary(self) -> Expression:
        start_token = self._current
        condition = self._parse_binary(1)
        if not self._current.is_operator("?"):
            return condition
        self._advance()
        with self._guard:
            then_branch = self._parse_ternary()
            colon = self._current
            if not colon.is_operator(":"):
                if colon.kind is TokenKind.END:
                    raise self._error(ErrorTemplate.unexpected_end(), colon)
                raise self._error(ErrorTemplate.expected_token(":", colon.display), colon)
            self._advance()
            else_branch = self._parse_ternary()
        node = Ternary(condition, then_branch, else_branch, self._span_from(start_token.start))
        return self._check_height(node, start_token)

    def _parse_binary(self, min_precedence: int) -> Expression:
        start_token = self._current
        left = self._parse_unary()
        while True:
            token = self._current
            if token.kind is not TokenKind.OPERATOR:
                return left
            precedence = BINARY_PRECEDENCE.get(str(token.value))
            if precedence is None or precedence < min_precedence:
                return left
            self._advance()
            with self._guard:
                right = self._parse_binary(precedence + 1)
            left = Binary(str(token.value), left, right, self._span_from(start_token.start))
            self._check_height(left, token)

    def _parse_unary(self) -> Expression:
        token = self._current
        if token.is_operator(*_UNARY_OPERATORS):
            self._advance()
            with self._guard:
                operand = self._parse_unary()
            node = Unary(str(token.value), operand, self._span_from(token.start))
            return self._check_height(node, token)
        return self._parse_postfix()

    def _parse_postfix(self) -> Expression:
        start_token = self._current
        node = self._parse_primary()
        while True:
            token = self._current
            if token.is_punct("."):
                self._advance()
                name_token = self._current
                if name_token.kind is not TokenKind.IDENTIFIER:
                    if name_token.kind is TokenKind.END:
                        raise self._error(ErrorTemplate.unexpected_end(), name_token)
                    raise self._error(
                        ErrorTemplate.expected_token("member name", name_token.display),
                        name_token,
                    )
                self._advance()
                node = MemberAccess(node, str(name_token.value), self._span_from(start_token.start))
            elif token.is_punct("("):
                self._advance()
                args = self._parse_arguments()
                node = Call(node, args, self._span_from(start_token.start))
            elif token.is_punct("["):
                raise self._error(ErrorTemplate.computed_access(), token)
            else:
                return node
            self._check_height(node, token)

    def _parse_arguments(self) -> tuple[Expression, ...]:
        args: list[Expression] = []
        if self._current.is_punct(")"):
            self._advance()
            return ()
        with self._guard:
            args.append(self._parse_ternary())
            while self._current.is_punct(","):
                self._advance()
                args.append(self._parse_ternary())
        self._expect_punct(")")
        return tuple(args)

    def _parse_primary(self) -> Expression:
        token = self._current
        if token.kind in _LITERAL_KINDS:
            self._advance()
            value = token.value
            return Literal(value, self._span_from(token.start))
        if token.kind is TokenKind.IDENTIFIER:
            self._advance()
            return Identifier(str(token.value), self._span_from(token.start))
        if token.is_punct("("):
            self._advance()
            with self._guard:
                node = self._parse_ternary()
            self._expect_punct(")")
            return node
        if token.kind is TokenKind.END:
            raise self._error(ErrorTemplate.unexpected_end(), token)
        if token.is_punct("["):
            raise self._error(ErrorTemplate.computed_access(), token)
        raise self._error(ErrorTemplate.unexpected_token(token.display), token)


def parse(source: str | Iterable[Token]) -> Expression:
    """Parse expression source (or a pre-lexed token sequence) into an AST.

    Args:
        source: Expression source text, or tokens ending with an END token

    Returns:
        Root node of the expression AST

    Raises:
        ExprSyntaxError: On lexical errors (category LEX) or grammar
            violations (category PARSE)

    Example:
        >>> parse("a.b && !c")
        Binary(op='&&', left=MemberAccess(...), right=Unary(...), ...)
    """
    if isinstance(source, str):
        return Parser(iter_tokens(source), source).parse()
    return Parser(source).parse()


def parse_prefix(source: str) -> tuple[Expression, Token]:
    """Parse the longest expression at the start of ``source``.

    Returns the expression and the first token that is not part of it. The
    lexer is not asked for anything beyond that token, so text after it
    (for example the free-form content of a conditional fact) is never
    tokenized.

    Raises:
        ExprSyntaxError: If no expression can be parsed from the prefix
    """
    parser = Parser(iter_tokens(source), source)
    if parser.current.kind is TokenKind.END:
        raise ExprSyntaxError(
            ErrorTemplate.empty_expression().with_span(SourceSpan.at(source, 0)),
            category=ErrorCategory.PARSE,
        )
    node = parser.parse_expression()
    return node, parser.current
