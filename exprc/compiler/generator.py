"""exprc code generator: AST to x86-64 stack-machine assembly.

Post-order emission: both operands are pushed, popped into rax/rdi, combined
in rax and the result pushed back. Every subtree leaves exactly one value on
the stack.

Output is Intel syntax for GNU as, entry point ``main``.
"""

from __future__ import annotations

import logging

from exprc.compiler.ast_nodes import Node, NodeKind, postorder

logger = logging.getLogger(__name__)

# push takes a sign-extended imm32
IMM32_MAX = 2**31 - 1

PROLOGUE = [
    ".intel_syntax noprefix",
    ".globl main",
    "main:",
]

EPILOGUE = [
    "  pop rax",
    "  ret",
]

ARITHMETIC: dict[NodeKind, list[str]] = {
    NodeKind.ADD: ["add rax, rdi"],
    NodeKind.SUB: ["sub rax, rdi"],
    NodeKind.MUL: ["imul rax, rdi"],
    NodeKind.DIV: ["cqo", "idiv rdi"],
}

SETCC: dict[NodeKind, str] = {
    NodeKind.EQ: "sete",
    NodeKind.NEQ: "setne",
    NodeKind.LT: "setl",
    NodeKind.LEQ: "setle",
}


class StackEmitter:
    """Emits stack-machine assembly for one expression tree."""

    def __init__(self):
        self._lines: list[str] = []

    def _ins(self, text: str) -> None:
        self._lines.append(f"  {text}")

    def _emit_num(self, value: int) -> None:
        if value <= IMM32_MAX:
            self._ins(f"push {value}")
        else:
            self._ins(f"mov rax, {value}")
            self._ins("push rax")

    def _emit_operator(self, kind: NodeKind) -> None:
        self._ins("pop rdi")
        self._ins("pop rax")
        if kind in ARITHMETIC:
            for text in ARITHMETIC[kind]:
                self._ins(text)
        else:
            self._ins("cmp rax, rdi")
            self._ins(f"{SETCC[kind]} al")
            self._ins("movzb rax, al")
        self._ins("push rax")

    def emit_body(self, root: Node) -> list[str]:
        """Instructions for ``root`` alone, without prologue or epilogue."""
        self._lines = []
        for node in postorder(root):
            if node.is_leaf:
                self._emit_num(node.value)
            else:
                self._emit_operator(node.kind)
        return self._lines

    def emit_program(self, root: Node) -> str:
        body = self.emit_body(root)
        lines = PROLOGUE + body + EPILOGUE
        logger.debug("emitted %d instructions", len(body) + len(EPILOGUE))
        return "\n".join(lines) + "\n"


def generate(root: Node) -> str:
    """Generate a complete assembly program for ``root``."""
    return StackEmitter().emit_program(root)
