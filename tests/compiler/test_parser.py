"""Parser tests: tree shape, desugaring, primitives and parse errors."""

import pytest

from exprc.compiler.ast_nodes import Node, NodeKind, to_sexpr
from exprc.compiler.lexer import Token, TokenKind, tokenize
from exprc.compiler.parser import (
    DEFAULT_MAX_DEPTH, Parser, max_depth_ceiling, parse, parse_source,
)
from exprc.errors import ErrorKind, ParseError, Span


def sexpr(source, **kw):
    return to_sexpr(parse_source(source, **kw))


class TestTreeShape:

    def test_literal(self):
        assert parse_source("42") == Node.num(42)

    def test_left_associative_fold(self):
        assert sexpr("1-2-3") == "(- (- 1 2) 3)"

    def test_precedence_tiers(self):
        assert sexpr("1+2*3") == "(+ 1 (* 2 3))"
        assert sexpr("1*2+3") == "(+ (* 1 2) 3)"

    def test_parens_override(self):
        assert sexpr("(1+2)*3") == "(* (+ 1 2) 3)"

    def test_relational_below_additive(self):
        assert sexpr("1+2<3") == "(< (+ 1 2) 3)"

    def test_equality_lowest(self):
        assert sexpr("1<2==3<4") == "(== (< 1 2) (< 3 4))"

    def test_redundant_parens_vanish(self):
        assert parse_source("(((7)))") == Node.num(7)

    def test_spans_not_part_of_equality(self):
        a = parse_source("1+2")
        b = parse_source(" 1 + 2 ")
        assert a == b
        assert a.span != b.span


class TestDesugaring:

    def test_gt_swaps_into_lt(self):
        assert sexpr("1>2") == "(< 2 1)"

    def test_geq_swaps_into_leq(self):
        assert sexpr("1>=2") == "(<= 2 1)"

    def test_no_gt_node_kinds(self):
        tree = parse_source("3>2>=1")
        assert tree.kind == NodeKind.LEQ
        assert tree.lhs == Node.num(1)
        assert tree.rhs.kind == NodeKind.LT

    def test_unary_minus(self):
        assert sexpr("-5") == "(- 0 5)"

    def test_unary_plus_is_identity(self):
        assert parse_source("+5") == Node.num(5)

    def test_unary_binds_tighter_than_mul(self):
        assert sexpr("-2*3") == "(* (- 0 2) 3)"

    def test_double_sign_rejected(self):
        with pytest.raises(ParseError) as exc:
            parse_source("--1")
        assert exc.value.kind == ErrorKind.UNEXPECTED_TOKEN
        assert exc.value.token.kind == TokenKind.MINUS


class TestPrimitives:

    def test_expect_consumes_only_on_match(self):
        parser = Parser(tokenize("+1"))
        assert parser.expect(TokenKind.MINUS) is None
        assert parser.pos == 0
        tok = parser.expect(TokenKind.PLUS)
        assert tok.kind == TokenKind.PLUS
        assert parser.pos == 1

    def test_expect_number(self):
        parser = Parser(tokenize("17"))
        assert parser.expect_number() == 17
        assert parser.expect(TokenKind.EOF) is not None

    def test_expect_number_rejects_operator(self):
        parser = Parser(tokenize("*"))
        with pytest.raises(ParseError) as exc:
            parser.expect_number()
        assert exc.value.kind == ErrorKind.UNEXPECTED_TOKEN
        assert parser.pos == 0

    def test_token_list_without_eof(self):
        tokens = [Token(TokenKind.NUMBER, Span(0, 1), 1), Token(TokenKind.PLUS, Span(1, 2))]
        with pytest.raises(ParseError) as exc:
            parse(tokens)
        assert exc.value.kind == ErrorKind.EOF
        assert exc.value.span == Span(2, 2)
        assert exc.value.token is None


class TestParseErrors:

    def test_dangling_plus(self):
        with pytest.raises(ParseError) as exc:
            parse_source("1+")
        assert exc.value.kind == ErrorKind.EOF
        assert exc.value.span == Span(2, 2)
        assert exc.value.token.kind == TokenKind.EOF

    def test_unclosed_paren(self):
        with pytest.raises(ParseError) as exc:
            parse_source("(1+2")
        assert exc.value.kind == ErrorKind.EOF
        assert "')'" in exc.value.diagnostic.message

    def test_missing_operand(self):
        with pytest.raises(ParseError) as exc:
            parse_source("1+*2")
        assert exc.value.kind == ErrorKind.UNEXPECTED_TOKEN
        assert exc.value.span == Span(2, 3)
        assert exc.value.token.kind == TokenKind.ASTERISK

    def test_wrong_closer(self):
        with pytest.raises(ParseError) as exc:
            parse_source("(1 2)")
        assert exc.value.kind == ErrorKind.UNEXPECTED_TOKEN
        assert exc.value.token.value == 2

    def test_trailing_token(self):
        with pytest.raises(ParseError) as exc:
            parse_source("1 2")
        assert exc.value.kind == ErrorKind.UNEXPECTED_TOKEN
        assert exc.value.span == Span(2, 3)

    def test_stray_rparen(self):
        with pytest.raises(ParseError) as exc:
            parse_source("1)")
        assert exc.value.kind == ErrorKind.UNEXPECTED_TOKEN

    def test_empty_parens(self):
        with pytest.raises(ParseError) as exc:
            parse_source("()")
        assert exc.value.kind == ErrorKind.UNEXPECTED_TOKEN
        assert exc.value.token.kind == TokenKind.RPAREN


class TestNestingLimit:

    def test_default_limit_accepted(self):
        depth = DEFAULT_MAX_DEPTH
        tree = parse_source("(" * depth + "1" + ")" * depth)
        assert tree == Node.num(1)

    def test_one_past_default_rejected(self):
        depth = DEFAULT_MAX_DEPTH + 1
        with pytest.raises(ParseError) as exc:
            parse_source("(" * depth + "1" + ")" * depth)
        assert exc.value.kind == ErrorKind.NESTING_TOO_DEEP
        assert exc.value.span == Span(DEFAULT_MAX_DEPTH, DEFAULT_MAX_DEPTH + 1)

    def test_custom_limit(self):
        with pytest.raises(ParseError) as exc:
            parse_source("((1))", max_depth=1)
        assert exc.value.diagnostic.details == {"limit": 1}

    def test_sequential_parens_do_not_accumulate(self):
        source = "+".join(["(1)"] * 500)
        assert parse_source(source, max_depth=1).kind == NodeKind.ADD

    def test_deep_nesting_fails_cleanly(self):
        depth = 100000
        with pytest.raises(ParseError) as exc:
            parse_source("(" * depth + "1" + ")" * depth)
        assert exc.value.kind == ErrorKind.NESTING_TOO_DEEP

    def test_limit_is_clamped_to_ceiling(self):
        depth = 2000
        with pytest.raises(ParseError) as exc:
            parse_source("(" * depth + "1" + ")" * depth, max_depth=5000)
        assert exc.value.kind == ErrorKind.NESTING_TOO_DEEP
        assert exc.value.diagnostic.details == {"limit": max_depth_ceiling()}

    def test_ceiling_depth_parses(self):
        depth = max_depth_ceiling()
        tree = parse_source("(" * depth + "1" + ")" * depth, max_depth=depth)
        assert tree == Node.num(1)

    def test_default_within_ceiling(self):
        assert DEFAULT_MAX_DEPTH <= max_depth_ceiling()
