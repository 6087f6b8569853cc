"""Tests for the recursive-descent parser, AST nodes and visitor."""

import pytest

from safeexpr import ErrorCategory, ExprError, ExprSyntaxError
from safeexpr.constants import MAX_DEPTH
from safeexpr.diagnostics import DiagnosticCode
from safeexpr.syntax import (
    ASTVisitor,
    Binary,
    Call,
    Expression,
    Identifier,
    Literal,
    MemberAccess,
    Span,
    Ternary,
    TokenKind,
    Unary,
    children,
    parse,
    parse_prefix,
    tokenize,
)


def ident(name: str) -> Identifier:
    return Identifier(name)


def parse_error(source: str) -> ExprSyntaxError:
    with pytest.raises(ExprSyntaxError) as exc_info:
        parse(source)
    return exc_info.value


# ============================================================================
# PRIMARIES
# ============================================================================


class TestPrimaries:
    """Literals, identifiers and parentheses."""

    def test_number_literal(self) -> None:
        assert parse("42") == Literal(42)

    def test_string_literal(self) -> None:
        node = parse("'hi'")
        assert node == Literal("hi")
        assert isinstance(node, Literal)
        assert node.is_string

    def test_boolean_literal(self) -> None:
        assert parse("true") == Literal(True)
        assert parse("false") == Literal(False)

    def test_identifier(self) -> None:
        assert parse("mentioned") == ident("mentioned")

    def test_parentheses_do_not_create_nodes(self) -> None:
        assert parse("((a))") == ident("a")

    def test_accepts_token_iterable(self) -> None:
        assert parse(tokenize("a + b")) == Binary("+", ident("a"), ident("b"))


# ============================================================================
# PRECEDENCE AND ASSOCIATIVITY
# ============================================================================


class TestPrecedence:
    """Binding strength: * / % > + - > relational > equality > && > ||."""

    def test_multiplication_binds_tighter_than_addition(self) -> None:
        assert parse("1 + 2 * 3") == Binary(
            "+", Literal(1), Binary("*", Literal(2), Literal(3))
        )

    def test_parentheses_override(self) -> None:
        assert parse("(1 + 2) * 3") == Binary(
            "*", Binary("+", Literal(1), Literal(2)), Literal(3)
        )

    def test_subtraction_is_left_associative(self) -> None:
        assert parse("1 - 2 - 3") == Binary(
            "-", Binary("-", Literal(1), Literal(2)), Literal(3)
        )

    def test_and_binds_tighter_than_or(self) -> None:
        assert parse("a || b && c") == Binary(
            "||", ident("a"), Binary("&&", ident("b"), ident("c"))
        )

    def test_relational_binds_tighter_than_equality(self) -> None:
        assert parse("a < b == c > d") == Binary(
            "==",
            Binary("<", ident("a"), ident("b")),
            Binary(">", ident("c"), ident("d")),
        )

    def test_additive_binds_tighter_than_relational(self) -> None:
        assert parse("a + 1 > b") == Binary(
            ">", Binary("+", ident("a"), Literal(1)), ident("b")
        )

    @pytest.mark.parametrize("op", ["==", "!=", "===", "!=="])
    def test_equality_spellings(self, op: str) -> None:
        assert parse(f"a {op} b") == Binary(op, ident("a"), ident("b"))

    def test_ternary_is_right_associative(self) -> None:
        assert parse("a ? b : c ? d : e") == Ternary(
            ident("a"), ident("b"), Ternary(ident("c"), ident("d"), ident("e"))
        )

    def test_ternary_binds_loosest(self) -> None:
        assert parse("a || b ? 1 : 2") == Ternary(
            Binary("||", ident("a"), ident("b")), Literal(1), Literal(2)
        )

    def test_nested_ternary_in_then_branch(self) -> None:
        assert parse("a ? b ? 1 : 2 : 3") == Ternary(
            ident("a"), Ternary(ident("b"), Literal(1), Literal(2)), Literal(3)
        )


# ============================================================================
# UNARY AND POSTFIX
# ============================================================================


class TestUnaryAndPostfix:
    """Prefix ``!`` and ``-``; ``.name`` and ``(args)`` chains."""

    def test_double_negation(self) -> None:
        assert parse("!!a") == Unary("!", Unary("!", ident("a")))

    def test_numeric_negation(self) -> None:
        assert parse("-x * 2") == Binary("*", Unary("-", ident("x")), Literal(2))

    def test_unary_plus_not_supported(self) -> None:
        assert parse_error("+a").message == "Unexpected token: +"

    def test_member_chain(self) -> None:
        assert parse("a.b.c") == MemberAccess(MemberAccess(ident("a"), "b"), "c")

    def test_method_call(self) -> None:
        node = parse("content.includes('x', 1)")
        assert node == Call(
            MemberAccess(ident("content"), "includes"), (Literal("x"), Literal(1))
        )
        assert isinstance(node, Call)
        assert node.method_name == "includes"

    def test_plain_call_has_no_method_name(self) -> None:
        node = parse("random()")
        assert node == Call(ident("random"), ())
        assert isinstance(node, Call)
        assert node.method_name is None

    def test_call_on_call_result(self) -> None:
        assert parse("f()()") == Call(Call(ident("f"), ()), ())

    def test_member_on_literal(self) -> None:
        assert parse("'abc'.length") == MemberAccess(Literal("abc"), "length")

    def test_negation_applies_to_whole_postfix_chain(self) -> None:
        assert parse("!a.b()") == Unary("!", Call(MemberAccess(ident("a"), "b"), ()))

    def test_ternary_inside_arguments(self) -> None:
        assert parse("f(a ? 1 : 2, b)") == Call(
            ident("f"), (Ternary(ident("a"), Literal(1), Literal(2)), ident("b"))
        )


# ============================================================================
# SYNTAX ERRORS
# ============================================================================


class TestSyntaxErrors:
    """Grammar violations raise ExprSyntaxError(PARSE) with a location."""

    def test_empty_expression(self) -> None:
        error = parse_error("   ")
        assert error.category is ErrorCategory.PARSE
        assert error.message == "Empty expression"

    def test_trailing_token(self) -> None:
        assert parse_error("a b").message == "Unexpected token: b"

    def test_trailing_token_location(self) -> None:
        span = parse_error("a b").span
        assert span is not None
        assert (span.start, span.column) == (2, 3)

    def test_unclosed_parenthesis(self) -> None:
        assert parse_error("(a").message == "Unexpected end of expression"

    def test_wrong_closing_token(self) -> None:
        assert parse_error("(a b").message == "Unexpected token: b (expected ))"

    def test_stray_closing_parenthesis(self) -> None:
        assert parse_error("a)").message == "Unexpected token: )"

    def test_dangling_operator(self) -> None:
        assert parse_error("a +").message == "Unexpected end of expression"

    def test_ternary_without_colon(self) -> None:
        assert parse_error("a ? b").message == "Unexpected end of expression"
        assert parse_error("a ? b , c").message == "Unexpected token: , (expected :)"

    def test_member_name_must_be_identifier(self) -> None:
        assert parse_error("a.(b)").message == "Unexpected token: ( (expected member name)"
        assert parse_error("a.").message == "Unexpected end of expression"

    def test_trailing_comma_in_arguments(self) -> None:
        assert parse_error("f(a,)").message == "Unexpected token: )"

    def test_computed_member_access(self) -> None:
        error = parse_error("self['constructor']")
        assert error.message == "Unexpected token: ["
        assert error.diagnostic is not None
        assert error.diagnostic.code is DiagnosticCode.COMPUTED_ACCESS

    def test_array_literal(self) -> None:
        assert parse_error("[1, 2]").message == "Unexpected token: ["

    def test_statement_separator(self) -> None:
        error = parse_error("a; b")
        assert error.message == "Unexpected token: ;"
        assert error.diagnostic is not None
        assert error.diagnostic.hint is not None
        assert "statements" in error.diagnostic.hint

    def test_keyword_followed_by_expression(self) -> None:
        assert parse_error("typeof a").message == "Unexpected token: a"
        assert parse_error("new Date()").message == "Unexpected token: Date"

    def test_lex_errors_surface_with_lex_category(self) -> None:
        with pytest.raises(ExprSyntaxError) as exc_info:
            parse("a = 1")
        assert exc_info.value.category is ErrorCategory.LEX

    def test_error_renders_location_in_str(self) -> None:
        rendered = str(parse_error("a b"))
        assert rendered.startswith("error[UNEXPECTED_TOKEN]: Unexpected token: b")
        assert "--> line 1, column 3" in rendered


# ============================================================================
# DEPTH LIMITS
# ============================================================================


class TestDepthLimits:
    """Adversarial nesting ends in a parse error, never a RecursionError."""

    def test_moderate_nesting_accepted(self) -> None:
        assert parse("(" * 50 + "true" + ")" * 50) == Literal(True)

    def test_deep_parentheses_rejected(self) -> None:
        with pytest.raises(ExprError) as exc_info:
            parse("(" * 1000 + "1" + ")" * 1000)
        assert exc_info.value.category is ErrorCategory.PARSE
        assert exc_info.value.message == (
            f"Expression nesting exceeds maximum depth of {MAX_DEPTH}"
        )

    def test_deep_negation_rejected(self) -> None:
        with pytest.raises(ExprError) as exc_info:
            parse("!" * 5000 + "a")
        assert exc_info.value.category is ErrorCategory.PARSE

    def test_deep_calls_rejected(self) -> None:
        with pytest.raises(ExprError) as exc_info:
            parse("f(" * 500 + ")" * 500)
        assert exc_info.value.category is ErrorCategory.PARSE

    def test_long_method_chain_accepted(self) -> None:
        node = parse("content" + ".trim()" * 20 + ".length > 0")
        assert isinstance(node, Binary)

    def test_hundred_term_chain_accepted(self) -> None:
        node = parse(" + ".join(["1"] * 100) + " > 0")
        assert node.height == 101

    def test_chain_at_height_limit_accepted(self) -> None:
        assert parse(" + ".join(["1"] * MAX_DEPTH)).height == MAX_DEPTH

    def test_chain_beyond_height_limit_rejected(self) -> None:
        error = parse_error(" + ".join(["1"] * (MAX_DEPTH + 1)))
        assert error.category is ErrorCategory.PARSE
        assert "maximum depth" in error.message


# ============================================================================
# PREFIX PARSING
# ============================================================================


class TestParsePrefix:
    """parse_prefix() stops at the first token that cannot continue."""

    def test_stops_at_colon(self) -> None:
        node, stop = parse_prefix("mentioned: hello there")
        assert node == ident("mentioned")
        assert stop.is_operator(":")
        assert stop.start == 9

    def test_ternary_consumes_its_own_colon(self) -> None:
        node, stop = parse_prefix("a ? b : c: rest")
        assert node == Ternary(ident("a"), ident("b"), ident("c"))
        assert stop.is_operator(":")
        assert stop.start == 9

    def test_text_after_stop_is_not_tokenized(self) -> None:
        node, stop = parse_prefix("true: it's @ not an expression")
        assert node == Literal(True)
        assert stop.is_operator(":")

    def test_stop_at_end(self) -> None:
        _, stop = parse_prefix("a && b")
        assert stop.kind is TokenKind.END

    def test_stop_at_other_token(self) -> None:
        _, stop = parse_prefix("a b")
        assert stop.value == "b"

    def test_empty_prefix(self) -> None:
        with pytest.raises(ExprSyntaxError, match="Empty expression"):
            parse_prefix("")


# ============================================================================
# AST NODES
# ============================================================================


class TestASTNodes:
    """Spans, heights and child enumeration."""

    def test_spans(self) -> None:
        node = parse("a.b + 1")
        assert node.span == Span(0, 7)
        assert isinstance(node, Binary)
        assert node.left.span == Span(0, 3)
        assert node.right.span == Span(6, 7)

    def test_span_ignored_by_equality(self) -> None:
        assert Literal(1, Span(0, 1)) == Literal(1, Span(5, 6))

    def test_span_validation(self) -> None:
        with pytest.raises(ValueError, match="start must be >= 0"):
            Span(-1, 0)
        with pytest.raises(ValueError, match="must be >= start"):
            Span(3, 2)

    def test_heights(self) -> None:
        assert parse("a").height == 1
        assert parse("a.b.c").height == 3
        assert parse("f(a.b)").height == 3
        assert parse("a ? b : c.d").height == 3

    def test_children_in_evaluation_order(self) -> None:
        assert children(parse("f(a, b)")) == (ident("f"), ident("a"), ident("b"))
        assert children(parse("a ? b : c")) == (ident("a"), ident("b"), ident("c"))
        assert children(parse("-a")) == (ident("a"),)
        assert children(parse("1")) == ()

    def test_type_guards(self) -> None:
        node = parse("a.b")
        assert MemberAccess.guard(node)
        assert not Call.guard(node)
        assert Identifier.guard(ident("x"))

    def test_nodes_are_immutable(self) -> None:
        node = parse("a")
        with pytest.raises(AttributeError):
            node.name = "b"  # type: ignore[misc]


# ============================================================================
# VISITOR
# ============================================================================


class IdentifierCounter(ASTVisitor):
    """Counts identifiers, relying on generic_visit for traversal."""

    def __init__(self) -> None:
        super().__init__()
        self.names: list[str] = []

    def visit_Identifier(self, node: Identifier) -> Expression:
        self.names.append(node.name)
        return node


class TestVisitor:
    """ASTVisitor dispatch and traversal."""

    def test_generic_visit_reaches_every_identifier(self) -> None:
        counter = IdentifierCounter()
        counter.visit(parse("a + b.c(d) ? e : -f"))
        assert counter.names == ["a", "b", "d", "e", "f"]

    def test_visit_returns_node_by_default(self) -> None:
        node = parse("1 + 2")
        assert IdentifierCounter().visit(node) is node
