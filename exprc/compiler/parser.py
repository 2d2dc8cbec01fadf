"""exprc Parser: LL(1) recursive-descent parser.

Parses the token list into an AST. One token of lookahead, no backtracking.

Grammar, lowest to highest precedence (binary levels are left-associative):
  expr       := equality
  equality   := relational (('==' | '!=') relational)*
  relational := additive (('<' | '<=' | '>' | '>=') additive)*
  additive   := term (('+' | '-') term)*
  term       := unary (('*' | '/') unary)*
  unary      := ('+' | '-')? primary
  primary    := NUMBER | '(' expr ')'
"""

from __future__ import annotations

import logging
import sys
from typing import Iterable, Optional

from exprc.compiler.ast_nodes import Node, NodeKind, count_nodes
from exprc.compiler.lexer import Token, TokenKind, tokenize
from exprc.errors import (
    ParseError, Span, nesting_too_deep, unexpected_eof, unexpected_token,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 100

# One parenthesis level recurses through _parse_primary, _parse_equality,
# _parse_relational, _parse_additive, _parse_term and _parse_unary.
FRAMES_PER_LEVEL = 6
# Left for the caller, the entry points and logging.
RESERVED_FRAMES = 200


def max_depth_ceiling() -> int:
    """Deepest nesting the parser can reach under the current recursion limit."""
    return max(1, (sys.getrecursionlimit() - RESERVED_FRAMES) // FRAMES_PER_LEVEL)


# token kind -> (node kind, swap operands)
OperatorTable = dict[TokenKind, tuple[NodeKind, bool]]

EQUALITY_OPERATORS: OperatorTable = {
    TokenKind.EQ: (NodeKind.EQ, False),
    TokenKind.NEQ: (NodeKind.NEQ, False),
}

# a > b is b < a, a >= b is b <= a
RELATIONAL_OPERATORS: OperatorTable = {
    TokenKind.LT: (NodeKind.LT, False),
    TokenKind.LEQ: (NodeKind.LEQ, False),
    TokenKind.GT: (NodeKind.LT, True),
    TokenKind.GEQ: (NodeKind.LEQ, True),
}

ADDITIVE_OPERATORS: OperatorTable = {
    TokenKind.PLUS: (NodeKind.ADD, False),
    TokenKind.MINUS: (NodeKind.SUB, False),
}

TERM_OPERATORS: OperatorTable = {
    TokenKind.ASTERISK: (NodeKind.MUL, False),
    TokenKind.SLASH: (NodeKind.DIV, False),
}


class Parser:
    """LL(1) recursive-descent parser for one expression."""

    def __init__(self, tokens: Iterable[Token], max_depth: int = DEFAULT_MAX_DEPTH):
        self.tokens = list(tokens)
        self.pos = 0
        self.max_depth = min(max_depth, max_depth_ceiling())
        self._depth = 0

    def _current(self) -> Optional[Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def _peek(self) -> Optional[TokenKind]:
        tok = self._current()
        return tok.kind if tok is not None else None

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def _end_span(self) -> Span:
        if not self.tokens:
            return Span(0, 0)
        end = self.tokens[-1].span.end
        return Span(end, end)

    def _error(self, expected: str) -> ParseError:
        tok = self._current()
        if tok is None:
            return ParseError(unexpected_eof(self._end_span(), expected))
        if tok.kind == TokenKind.EOF:
            return ParseError(unexpected_eof(tok.span, expected), tok)
        return ParseError(unexpected_token(tok, expected), tok)

    def expect(self, kind: TokenKind) -> Optional[Token]:
        """Consume and return the lookahead if it is ``kind``; never raises."""
        if self._peek() == kind:
            return self._advance()
        return None

    def expect_number(self, expected: str = "a number") -> int:
        if self._peek() == TokenKind.NUMBER:
            return self._advance().value
        raise self._error(expected)

    # -------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------

    def parse(self) -> Node:
        node = self._parse_equality()
        if self._peek() not in (TokenKind.EOF, None):
            raise self._error("end of input")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("parsed %d tokens into %d nodes", len(self.tokens), count_nodes(node))
        return node

    # -------------------------------------------------------------------
    # Binary levels
    # -------------------------------------------------------------------

    def _match_any(self, operators: OperatorTable) -> Optional[Token]:
        if self._peek() in operators:
            return self._advance()
        return None

    def _combine(self, operators: OperatorTable, op: Token, lhs: Node, rhs: Node) -> Node:
        kind, swap = operators[op.kind]
        if swap:
            return Node.binary(kind, rhs, lhs, op.span)
        return Node.binary(kind, lhs, rhs, op.span)

    def _parse_equality(self) -> Node:
        node = self._parse_relational()
        while True:
            op = self._match_any(EQUALITY_OPERATORS)
            if op is None:
                return node
            node = self._combine(EQUALITY_OPERATORS, op, node, self._parse_relational())

    def _parse_relational(self) -> Node:
        node = self._parse_additive()
        while True:
            op = self._match_any(RELATIONAL_OPERATORS)
            if op is None:
                return node
            node = self._combine(RELATIONAL_OPERATORS, op, node, self._parse_additive())

    def _parse_additive(self) -> Node:
        node = self._parse_term()
        while True:
            op = self._match_any(ADDITIVE_OPERATORS)
            if op is None:
                return node
            node = self._combine(ADDITIVE_OPERATORS, op, node, self._parse_term())

    def _parse_term(self) -> Node:
        node = self._parse_unary()
        while True:
            op = self._match_any(TERM_OPERATORS)
            if op is None:
                return node
            node = self._combine(TERM_OPERATORS, op, node, self._parse_unary())

    # -------------------------------------------------------------------
    # Unary and primary
    # -------------------------------------------------------------------

    def _parse_unary(self) -> Node:
        if self.expect(TokenKind.PLUS):
            return self._parse_primary()
        sign = self.expect(TokenKind.MINUS)
        if sign:
            operand = self._parse_primary()
            return Node.binary(NodeKind.SUB, Node.num(0, sign.span), operand, sign.span)
        return self._parse_primary()

    def _parse_primary(self) -> Node:
        lparen = self.expect(TokenKind.LPAREN)
        if lparen:
            if self._depth >= self.max_depth:
                raise ParseError(nesting_too_deep(lparen.span, self.max_depth), lparen)
            self._depth += 1
            node = self._parse_equality()
            if self.expect(TokenKind.RPAREN) is None:
                raise self._error("')'")
            self._depth -= 1
            return node

        tok = self._current()
        value = self.expect_number("a number or '('")
        return Node.num(value, tok.span)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse(tokens: Iterable[Token], max_depth: int = DEFAULT_MAX_DEPTH) -> Node:
    """Parse a token list into an AST."""
    return Parser(tokens, max_depth=max_depth).parse()


def parse_source(source: str, max_depth: int = DEFAULT_MAX_DEPTH) -> Node:
    """Tokenize and parse one expression."""
    return parse(tokenize(source), max_depth=max_depth)
