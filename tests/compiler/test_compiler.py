"""exprc Compiler Tests: EXPR-001 through EXPR-010.

End-to-end: source text in, assembly out, assembly executed on the stack
machine. Each class covers one observable property of the pipeline.
"""

import pytest

from exprc import compile
from exprc.compiler import run
from exprc.compiler.generator import generate
from exprc.compiler.parser import parse_source
from exprc.errors import ErrorKind, LexError, ParseError


def returns(source: str) -> int:
    return run(compile(source)).value


class TestEXPR001:
    """EXPR-001: A bare literal compiles to a program returning it."""

    @pytest.mark.parametrize("n", [0, 1, 42, 255, 2**31 - 1, 2**31, 2**63 - 1])
    def test_literal_returns_itself(self, n):
        assert returns(str(n)) == n

    def test_u64_max_wraps_to_minus_one(self):
        assert returns(str(2**64 - 1)) == -1

    def test_whitespace_is_insignificant(self):
        assert returns("  \t 12 \n") == 12


class TestEXPR002:
    """EXPR-002: Binary operators of one tier associate to the left."""

    def test_subtraction_chain(self):
        assert returns("1-2-3") == -4

    def test_division_chain(self):
        assert returns("100/10/5") == 2

    def test_mixed_additive_chain(self):
        assert returns("10-3+2") == 9


class TestEXPR003:
    """EXPR-003: Multiplicative binds tighter than additive; parens override."""

    def test_mul_before_add(self):
        assert returns("1+2*3") == 7

    def test_parens_override(self):
        assert returns("(1+2)*3") == 9

    def test_nested_parens(self):
        assert returns("((2+3)*(4-1))/5") == 3

    def test_comparison_below_additive(self):
        assert returns("1+1==2") == 1

    def test_equality_below_relational(self):
        assert returns("1<2==1") == 1


class TestEXPR004:
    """EXPR-004: Relational operators, including desugared > and >=."""

    @pytest.mark.parametrize("source, expected", [
        ("2>1", 1),
        ("1<2", 1),
        ("1>=1", 1),
        ("1>2", 0),
        ("2<=1", 0),
        ("1<=1", 1),
        ("0-1<0", 1),
    ])
    def test_relational(self, source, expected):
        assert returns(source) == expected


class TestEXPR005:
    """EXPR-005: Equality operators push 1 or 0."""

    @pytest.mark.parametrize("source, expected", [
        ("1==1", 1),
        ("1!=1", 0),
        ("1==2", 0),
        ("3!=4", 1),
    ])
    def test_equality(self, source, expected):
        assert returns(source) == expected


class TestEXPR006:
    """EXPR-006: Unary plus is a no-op, unary minus is 0 - x."""

    def test_unary_minus(self):
        assert returns("-5+8") == 3

    def test_unary_plus(self):
        assert returns("+5") == 5

    def test_unary_minus_on_parens(self):
        assert returns("-(3*4)") == -12

    def test_unary_after_operator(self):
        assert returns("3*-2") == -6


class TestEXPR007:
    """EXPR-007: Division truncates toward zero for every sign combination."""

    @pytest.mark.parametrize("source, expected", [
        ("7/2", 3),
        ("-7/2", -3),
        ("7/-2", -3),
        ("-7/-2", 3),
        ("1/3", 0),
        ("-1/3", 0),
    ])
    def test_truncation(self, source, expected):
        assert returns(source) == expected


class TestEXPR008:
    """EXPR-008: Compilation is deterministic."""

    def test_same_source_same_output(self):
        source = "(1+2)*3 >= 4 - -5"
        assert compile(source) == compile(source)

    def test_generate_is_repeatable_on_one_tree(self):
        ast = parse_source("1*2+3")
        assert generate(ast) == generate(ast)


class TestEXPR009:
    """EXPR-009: Malformed input fails with the right error kind."""

    def test_dangling_operator_is_eof(self):
        with pytest.raises(ParseError) as exc:
            compile("1+")
        assert exc.value.kind == ErrorKind.EOF

    def test_invalid_char(self):
        with pytest.raises(LexError) as exc:
            compile("1$2")
        assert exc.value.kind == ErrorKind.INVALID_CHAR
        assert exc.value.diagnostic.details == {"char": "$", "position": 1}

    def test_unmatched_paren_is_eof(self):
        with pytest.raises(ParseError) as exc:
            compile("(1+2")
        assert exc.value.kind == ErrorKind.EOF

    def test_empty_input_is_eof(self):
        with pytest.raises(ParseError) as exc:
            compile("   ")
        assert exc.value.kind == ErrorKind.EOF


class TestEXPR010:
    """EXPR-010: Every program leaves exactly its result on the stack."""

    @pytest.mark.parametrize("source", [
        "1",
        "1+2",
        "(1+2)*(3+4)/(5-6)",
        "1<2==2>1",
        "-(-(-(1)))",
    ])
    def test_pushes_balance_pops(self, source):
        result = run(compile(source))
        # the final 'pop rax' consumes the single result
        assert result.pushes == result.pops
        assert result.stack_left == 0

    def test_long_chain_does_not_recurse(self):
        source = "+".join(["1"] * 5000)
        result = run(compile(source))
        assert result.value == 5000
        assert result.pushes == result.pops
        assert result.max_stack == 2
