"""exprc stack machine: executes the generator's assembly text.

Models exactly the x86-64 subset the generator emits: three 64-bit registers
(rax, rdi, rdx), the ``al`` byte alias, the flags of the last ``cmp`` and the
hardware stack. Lets tests and ``exprc run`` check what a program returns
without an assembler, and counts pushes and pops so the stack-balance
invariant can be measured.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from exprc.compiler.ast_nodes import WORD_BITS, WORD_MASK, to_signed
from exprc.errors import ExecutionError

logger = logging.getLogger(__name__)

REGISTERS = ("rax", "rdi", "rdx")
BYTE_REGISTERS = {"al": "rax"}

ARITY: dict[str, int] = {
    "push": 1,
    "pop": 1,
    "mov": 2,
    "add": 2,
    "sub": 2,
    "imul": 2,
    "cqo": 0,
    "idiv": 1,
    "cmp": 2,
    "sete": 1,
    "setne": 1,
    "setl": 1,
    "setle": 1,
    "movzb": 2,
    "ret": 0,
}

CONDITIONS = {
    "sete": lambda lhs, rhs: lhs == rhs,
    "setne": lambda lhs, rhs: lhs != rhs,
    "setl": lambda lhs, rhs: lhs < rhs,
    "setle": lambda lhs, rhs: lhs <= rhs,
}


@dataclass(frozen=True)
class Instruction:
    op: str
    operands: tuple[str, ...]
    line: int

    def __str__(self) -> str:
        if self.operands:
            return f"{self.op} {', '.join(self.operands)}"
        return self.op


def decode(asm: str) -> list[Instruction]:
    """Split assembly text into instructions, skipping directives and labels."""
    program: list[Instruction] = []
    for lineno, raw in enumerate(asm.splitlines(), start=1):
        text = raw.split("#", 1)[0].strip()
        if not text or text.startswith(".") or text.endswith(":"):
            continue
        op, _, rest = text.partition(" ")
        operands = tuple(part.strip() for part in rest.split(",")) if rest.strip() else ()
        if op not in ARITY:
            raise ExecutionError(f"line {lineno}: unknown instruction {op!r}")
        if len(operands) != ARITY[op]:
            raise ExecutionError(
                f"line {lineno}: {op} takes {ARITY[op]} operand(s), got {len(operands)}"
            )
        program.append(Instruction(op, operands, lineno))
    return program


@dataclass
class ExecutionResult:
    value: int
    pushes: int
    pops: int
    max_stack: int
    steps: int
    stack_left: int


class StackMachine:
    """Interpreter for the generator's instruction subset."""

    def __init__(self):
        self.registers: dict[str, int] = {}
        self.stack: list[int] = []
        self._flags: Optional[tuple[int, int]] = None
        self.reset()

    def reset(self) -> None:
        self.registers = {name: 0 for name in REGISTERS}
        self.stack = []
        self._flags = None

    def _read(self, operand: str, ins: Instruction) -> int:
        if operand in self.registers:
            return self.registers[operand]
        if operand in BYTE_REGISTERS:
            return self.registers[BYTE_REGISTERS[operand]] & 0xFF
        try:
            return to_signed(int(operand, 0))
        except ValueError:
            raise ExecutionError(f"line {ins.line}: bad operand {operand!r} in '{ins}'") from None

    def _write(self, operand: str, value: int, ins: Instruction) -> None:
        if operand in self.registers:
            self.registers[operand] = to_signed(value)
        elif operand in BYTE_REGISTERS:
            full = BYTE_REGISTERS[operand]
            merged = (self.registers[full] & ~0xFF & WORD_MASK) | (value & 0xFF)
            self.registers[full] = to_signed(merged)
        else:
            raise ExecutionError(f"line {ins.line}: cannot write to {operand!r} in '{ins}'")

    def _idiv(self, ins: Instruction) -> None:
        divisor = self._read(ins.operands[0], ins)
        if divisor == 0:
            raise ExecutionError(f"line {ins.line}: division by zero")
        # rdx:rax is a signed 128-bit dividend
        dividend = ((self.registers["rdx"] & WORD_MASK) << WORD_BITS) | (self.registers["rax"] & WORD_MASK)
        if dividend >> (2 * WORD_BITS - 1):
            dividend -= 1 << (2 * WORD_BITS)
        quotient = abs(dividend) // abs(divisor)
        if (dividend < 0) != (divisor < 0):
            quotient = -quotient
        if to_signed(quotient) != quotient:
            raise ExecutionError(f"line {ins.line}: integer overflow in division")
        self.registers["rax"] = quotient
        self.registers["rdx"] = dividend - quotient * divisor

    def _step(self, ins: Instruction) -> bool:
        """Execute one instruction; returns False on ``ret``."""
        op, args = ins.op, ins.operands
        if op == "push":
            self.stack.append(self._read(args[0], ins))
        elif op == "pop":
            if not self.stack:
                raise ExecutionError(f"line {ins.line}: pop from empty stack")
            self._write(args[0], self.stack.pop(), ins)
        elif op in ("mov", "movzb"):
            self._write(args[0], self._read(args[1], ins), ins)
        elif op == "add":
            self._write(args[0], self._read(args[0], ins) + self._read(args[1], ins), ins)
        elif op == "sub":
            self._write(args[0], self._read(args[0], ins) - self._read(args[1], ins), ins)
        elif op == "imul":
            self._write(args[0], self._read(args[0], ins) * self._read(args[1], ins), ins)
        elif op == "cqo":
            self.registers["rdx"] = -1 if self.registers["rax"] < 0 else 0
        elif op == "idiv":
            self._idiv(ins)
        elif op == "cmp":
            self._flags = (self._read(args[0], ins), self._read(args[1], ins))
        elif op in CONDITIONS:
            if self._flags is None:
                raise ExecutionError(f"line {ins.line}: {op} without a preceding cmp")
            self._write(args[0], int(CONDITIONS[op](*self._flags)), ins)
        elif op == "ret":
            return False
        return True

    def execute(self, program: list[Instruction]) -> ExecutionResult:
        self.reset()
        pushes = pops = max_stack = steps = 0
        for ins in program:
            steps += 1
            if ins.op == "push":
                pushes += 1
            elif ins.op == "pop":
                pops += 1
            if not self._step(ins):
                logger.debug("ret after %d steps, rax=%d", steps, self.registers["rax"])
                return ExecutionResult(
                    value=self.registers["rax"],
                    pushes=pushes,
                    pops=pops,
                    max_stack=max_stack,
                    steps=steps,
                    stack_left=len(self.stack),
                )
            max_stack = max(max_stack, len(self.stack))
        raise ExecutionError("program ended without ret")

    def run(self, asm: str) -> ExecutionResult:
        return self.execute(decode(asm))


def run(asm: str) -> ExecutionResult:
    """Decode and execute assembly text on a fresh machine."""
    return StackMachine().run(asm)
