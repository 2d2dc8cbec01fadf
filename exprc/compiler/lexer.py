"""exprc Lexer: tokenizer with source spans.

Produces a list of tokens from one expression. Maximal munch, ASCII only.
The list always ends with a zero-width EOF token.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from exprc.errors import (
    LexError, Span, invalid_char, lex_eof, literal_overflow,
)

logger = logging.getLogger(__name__)

U64_MAX = 2**64 - 1

DIGITS = "0123456789"
WHITESPACE = " \t\n\r\f\v"


class TokenKind(Enum):
    NUMBER = "Number"
    PLUS = "Plus"
    MINUS = "Minus"
    ASTERISK = "Asterisk"
    SLASH = "Slash"
    LPAREN = "Lparen"
    RPAREN = "Rparen"
    LT = "Lt"
    LEQ = "Leq"
    GT = "Gt"
    GEQ = "Geq"
    EQ = "Eq"
    NEQ = "Neq"
    EOF = "Eof"


SINGLE_CHAR_TOKENS: dict[str, TokenKind] = {
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.ASTERISK,
    "/": TokenKind.SLASH,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
}

# first char -> (kind without '=', kind with '='); None means '=' is required
OR_EQUALS_TOKENS: dict[str, tuple[Optional[TokenKind], TokenKind]] = {
    "<": (TokenKind.LT, TokenKind.LEQ),
    ">": (TokenKind.GT, TokenKind.GEQ),
    "=": (None, TokenKind.EQ),
    "!": (None, TokenKind.NEQ),
}

LEXEMES: dict[TokenKind, str] = {
    TokenKind.PLUS: "+",
    TokenKind.MINUS: "-",
    TokenKind.ASTERISK: "*",
    TokenKind.SLASH: "/",
    TokenKind.LPAREN: "(",
    TokenKind.RPAREN: ")",
    TokenKind.LT: "<",
    TokenKind.LEQ: "<=",
    TokenKind.GT: ">",
    TokenKind.GEQ: ">=",
    TokenKind.EQ: "==",
    TokenKind.NEQ: "!=",
}


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    span: Span
    value: Optional[int] = None

    def describe(self) -> str:
        if self.kind == TokenKind.NUMBER:
            return f"Number({self.value})"
        if self.kind == TokenKind.EOF:
            return "Eof"
        return f"{self.kind.value}({LEXEMES[self.kind]!r})"

    def __repr__(self) -> str:
        return f"Token({self.describe()}, {self.span})"


class Lexer:
    """Tokenizer for a single expression."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0

    def _peek(self) -> Optional[str]:
        if self.pos < len(self.source):
            return self.source[self.pos]
        return None

    def _peek_ahead(self, offset: int = 1) -> Optional[str]:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return None

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        return ch

    def _skip_whitespace(self) -> None:
        while self.pos < len(self.source) and self.source[self.pos] in WHITESPACE:
            self.pos += 1

    def _read_number(self) -> Token:
        start = self.pos
        while self.pos < len(self.source) and self.source[self.pos] in DIGITS:
            self.pos += 1
        text = self.source[start:self.pos]
        span = Span(start, self.pos)
        value = int(text)
        if value > U64_MAX:
            raise LexError(literal_overflow(text, span))
        return Token(TokenKind.NUMBER, span, value)

    def _read_or_equals(self, ch: str) -> Token:
        start = self.pos
        bare, with_equals = OR_EQUALS_TOKENS[ch]
        nxt = self._peek_ahead()
        if nxt == "=":
            self.pos += 2
            return Token(with_equals, Span(start, self.pos))
        if bare is not None:
            self._advance()
            return Token(bare, Span(start, self.pos))
        # '==' and '!=' need both characters
        if nxt is None:
            raise LexError(lex_eof(start + 1))
        raise LexError(invalid_char(nxt, start + 1))

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        while True:
            self._skip_whitespace()
            ch = self._peek()
            if ch is None:
                break

            if ch in DIGITS:
                tokens.append(self._read_number())
            elif ch in SINGLE_CHAR_TOKENS:
                start = self.pos
                self._advance()
                tokens.append(Token(SINGLE_CHAR_TOKENS[ch], Span(start, self.pos)))
            elif ch in OR_EQUALS_TOKENS:
                tokens.append(self._read_or_equals(ch))
            else:
                raise LexError(invalid_char(ch, self.pos))

        tokens.append(Token(TokenKind.EOF, Span(self.pos, self.pos)))
        logger.debug("tokenized %d chars into %d tokens", len(self.source), len(tokens))
        return tokens


def tokenize(source: str) -> list[Token]:
    """Convenience function to tokenize one expression."""
    return Lexer(source).tokenize()
