"""exprc: arithmetic expression to x86-64 stack-machine assembly compiler"""

__version__ = "0.1.0"

from exprc.compiler import compile, compile_to_ast
from exprc.errors import CompileError, LexError, ParseError

__all__ = ["compile", "compile_to_ast", "CompileError", "LexError", "ParseError"]
