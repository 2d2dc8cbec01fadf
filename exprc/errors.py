"""Structured error objects for the exprc compiler.

Every diagnostic carries its kind, a human-readable message and the source
span it points at. Diagnostics are machine-readable (``to_dict``/``to_json``)
and render as caret lines under the offending source text.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from exprc.compiler.lexer import Token


class ErrorKind(Enum):
    INVALID_CHAR = "invalid_char"
    LEX_EOF = "lex_eof"
    LITERAL_OVERFLOW = "literal_overflow"
    UNEXPECTED_TOKEN = "unexpected_token"
    EOF = "eof"
    NESTING_TOO_DEEP = "nesting_too_deep"


@dataclass(frozen=True)
class Span:
    """Half-open ``[start, end)`` offset range into the source."""
    start: int
    end: int

    @property
    def width(self) -> int:
        return self.end - self.start

    def __str__(self) -> str:
        return f"{self.start}..{self.end}"


@dataclass
class Diagnostic:
    kind: ErrorKind
    message: str
    span: Span
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "span": {"start": self.span.start, "end": self.span.end},
        }
        if self.details:
            d["details"] = self.details
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def caret_line(self, column: Optional[int] = None, width: Optional[int] = None) -> str:
        # Zero-width spans (end of input) still get one caret.
        padding = " " * (self.span.start if column is None else column)
        carets = "^" * max(1, self.span.width if width is None else width)
        return f"{padding}{carets} {self.message}"

    def render(self, source: str) -> str:
        """The source line holding ``span.start``, then the caret line."""
        line_start = source.rfind("\n", 0, self.span.start) + 1
        line_end = source.find("\n", self.span.start)
        if line_end == -1:
            line_end = len(source)
        line = source[line_start:line_end]
        width = min(self.span.width, line_end - self.span.start)
        return f"{line}\n{self.caret_line(self.span.start - line_start, width)}"

    def __str__(self) -> str:
        return f"[{self.kind.value}] at {self.span}: {self.message}"


def invalid_char(char: str, position: int) -> Diagnostic:
    return Diagnostic(
        kind=ErrorKind.INVALID_CHAR,
        message=f"invalid char {char!r}",
        span=Span(position, position + 1),
        details={"char": char, "position": position},
    )


def lex_eof(position: int) -> Diagnostic:
    return Diagnostic(
        kind=ErrorKind.LEX_EOF,
        message="unexpected end of input while scanning a token",
        span=Span(position, position),
        details={"position": position},
    )


def literal_overflow(text: str, span: Span) -> Diagnostic:
    return Diagnostic(
        kind=ErrorKind.LITERAL_OVERFLOW,
        message=f"integer literal {text} does not fit in 64 bits",
        span=span,
        details={"literal": text},
    )


def unexpected_token(token: Token, expected: str) -> Diagnostic:
    return Diagnostic(
        kind=ErrorKind.UNEXPECTED_TOKEN,
        message=f"unexpected token {token.describe()}, expected {expected}",
        span=token.span,
        details={"token": token.describe(), "expected": expected},
    )


def unexpected_eof(span: Span, expected: str) -> Diagnostic:
    return Diagnostic(
        kind=ErrorKind.EOF,
        message=f"unexpected end of input, expected {expected}",
        span=span,
        details={"expected": expected},
    )


def nesting_too_deep(span: Span, limit: int) -> Diagnostic:
    return Diagnostic(
        kind=ErrorKind.NESTING_TOO_DEEP,
        message=f"expression nesting exceeds {limit} levels",
        span=span,
        details={"limit": limit},
    )


class CompileError(Exception):
    """Exception wrapping the first diagnostic of a failed compilation."""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(str(diagnostic))

    @property
    def kind(self) -> ErrorKind:
        return self.diagnostic.kind

    @property
    def span(self) -> Span:
        return self.diagnostic.span

    def render(self, source: str) -> str:
        return self.diagnostic.render(source)

    def to_json(self, indent: int = 2) -> str:
        return self.diagnostic.to_json(indent=indent)


class LexError(CompileError):
    """Raised by the lexer on the first character it cannot scan."""


class ParseError(CompileError):
    """Raised by the parser; ``token`` is the lookahead it rejected."""

    def __init__(self, diagnostic: Diagnostic, token: Optional[Token] = None):
        self.token = token
        super().__init__(diagnostic)


class ExecutionError(Exception):
    """A trap while executing compiled code (machine or reference evaluator)."""


class CertificationError(Exception):
    """Assembly the certifier cannot model."""
