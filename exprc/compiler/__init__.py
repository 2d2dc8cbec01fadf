"""exprc compiler pipeline: lexer, parser, stack-assembly generator, and
the machine, LLVM and certification back ends that check its output."""

from __future__ import annotations

from .lexer import Lexer, Token, TokenKind, tokenize
from .ast_nodes import Node, NodeKind, evaluate, postorder, to_sexpr
from .parser import DEFAULT_MAX_DEPTH, Parser, parse, parse_source
from .generator import StackEmitter, generate
from .machine import ExecutionResult, StackMachine, decode, run


def compile_to_ast(source: str, max_depth: int = DEFAULT_MAX_DEPTH) -> Node:
    """Lex and parse ``source``; raises ``LexError`` or ``ParseError``."""
    return parse(tokenize(source), max_depth=max_depth)


def compile(source: str, max_depth: int = DEFAULT_MAX_DEPTH) -> str:
    """Compile one expression to stack-machine assembly text."""
    return generate(compile_to_ast(source, max_depth=max_depth))
