"""exprc CLI: Command-line interface for the exprc compiler.

Commands:
  exprc compile <expr>     Emit x86-64 stack assembly (or LLVM IR / AST)
  exprc run <expr>         Compile and execute on the stack machine (or JIT)
  exprc tokens <expr>      Print the token stream

Expressions starting with '-' must follow '--', e.g. ``exprc run -- -5+8``.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from exprc import __version__
from exprc.compiler import compile_to_ast, generate, run, to_sexpr, tokenize
from exprc.compiler.ast_nodes import evaluate
from exprc.compiler.parser import max_depth_ceiling
from exprc.config import EMIT_FORMATS, ERROR_FORMATS, ExprcConfig, load_config
from exprc.errors import CompileError, ExecutionError

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _report(err: CompileError, source: str, error_format: str) -> int:
    """Render a compile error on stderr; returns the exit status."""
    if error_format == "json":
        print(err.to_json(), file=sys.stderr)
    else:
        print(err.render(source), file=sys.stderr)
    return 1


def _max_depth(text: str) -> int:
    """argparse type for --max-depth: an int in 1..max_depth_ceiling()."""
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from None
    ceiling = max_depth_ceiling()
    if not 1 <= value <= ceiling:
        raise argparse.ArgumentTypeError(f"must be between 1 and {ceiling}, got {value}")
    return value


def _setting(args: argparse.Namespace, config: ExprcConfig, name: str):
    """Command-line value if given, else the config file's."""
    value = getattr(args, name, None)
    if value is None or value is False:
        return getattr(config, name)
    return value


def cmd_compile(args: argparse.Namespace) -> int:
    """Compile one expression and write the requested output."""
    config: ExprcConfig = args.settings
    error_format = _setting(args, config, "error_format")
    emit = _setting(args, config, "emit")

    try:
        ast = compile_to_ast(args.expr, max_depth=_setting(args, config, "max_depth"))
    except CompileError as e:
        return _report(e, args.expr, error_format)

    if emit == "ast":
        output = to_sexpr(ast) + "\n"
    elif emit == "llvm":
        from exprc.compiler.llvm_emit import emit_llvm
        output = emit_llvm(ast)
    else:
        output = generate(ast)

    if _setting(args, config, "certify"):
        from exprc.compiler.certify import certify
        asm = output if emit == "asm" else generate(ast)
        cert = certify(ast, asm, symbolic_literals=_setting(args, config, "symbolic_literals"))
        if not cert.proved:
            print(json.dumps({"error": "certification failed", **cert.to_dict()}, indent=2),
                  file=sys.stderr)
            return 3
        logger.info("certified %r", args.expr)

    if args.output:
        with open(args.output, "w") as f:
            f.write(output)
    else:
        sys.stdout.write(output)
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Compile one expression, execute it and print the value."""
    config: ExprcConfig = args.settings
    try:
        ast = compile_to_ast(args.expr, max_depth=_setting(args, config, "max_depth"))
    except CompileError as e:
        return _report(e, args.expr, _setting(args, config, "error_format"))

    try:
        if args.jit:
            from exprc.compiler.llvm_emit import emit_llvm, jit_evaluate
            # native code would die on SIGFPE; trap here first
            evaluate(ast)
            value = jit_evaluate(emit_llvm(ast))
        else:
            value = run(generate(ast)).value
    except ExecutionError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    print(value)
    return 0


def cmd_tokens(args: argparse.Namespace) -> int:
    """Print the token stream, one token per line."""
    config: ExprcConfig = args.settings
    try:
        tokens = tokenize(args.expr)
    except CompileError as e:
        return _report(e, args.expr, _setting(args, config, "error_format"))
    for tok in tokens:
        print(f"{tok.span.start:>4}..{tok.span.end:<4} {tok.describe()}")
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="exprc",
        description="exprc: arithmetic expression to x86-64 stack assembly compiler",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Config file (default: nearest .exprcrc.yml/.yaml/.json)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("expr", help="Expression to compile")
        p.add_argument("--max-depth", type=_max_depth, dest="max_depth",
                       help="Parenthesis nesting limit")
        p.add_argument("--error-format", dest="error_format", choices=ERROR_FORMATS,
                       help="Diagnostic format on stderr (default: text)")

    # compile
    p_compile = subparsers.add_parser("compile", help="Compile an expression to assembly")
    add_common(p_compile)
    p_compile.add_argument("--emit", choices=EMIT_FORMATS,
                           help="Output: x86-64 assembly, LLVM IR or the AST (default: asm)")
    p_compile.add_argument("-o", "--output", help="Output file (default: stdout)")
    p_compile.add_argument("--certify", action="store_true",
                           help="Prove the assembly against the AST with Z3")
    p_compile.add_argument("--symbolic", action="store_true", dest="symbolic_literals",
                           help="With --certify, prove for every value of the literals")
    p_compile.set_defaults(func=cmd_compile)

    # run
    p_run = subparsers.add_parser("run", help="Compile and execute an expression")
    add_common(p_run)
    p_run.add_argument("--jit", action="store_true",
                       help="Execute LLVM IR natively instead of the stack machine")
    p_run.set_defaults(func=cmd_run)

    # tokens
    p_tokens = subparsers.add_parser("tokens", help="Print the token stream")
    add_common(p_tokens)
    p_tokens.set_defaults(func=cmd_tokens)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.settings = load_config(args.config)
    except ValueError as e:
        print(f"error: invalid config: {e}", file=sys.stderr)
        sys.exit(1)

    _configure_logging("DEBUG" if args.verbose else args.settings.log_level)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
