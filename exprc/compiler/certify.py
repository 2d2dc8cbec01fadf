"""exprc translation validation: prove each compilation correct with Z3.

Instead of trusting the generator, every emitted program can be checked:

  1. SOURCE SEMANTICS: the AST becomes a 64-bit bit-vector term
     (wrapping add/sub/mul, truncating signed division, 0/1 comparisons).
  2. TARGET SEMANTICS: the assembly is symbolically executed instruction by
     instruction over bit-vector registers and a symbolic stack.
  3. OBLIGATION: ``source != target`` must be unsatisfiable.

With ``symbolic_literals`` the k-th literal of the tree (in post-order) and
the k-th literal loaded by the program are the same free variable ``lit_k``,
so a successful proof covers every assignment of literal values, not just the
ones written in the source.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import z3

from exprc.compiler.ast_nodes import WORD_BITS, Node, NodeKind, postorder, to_signed
from exprc.compiler.machine import BYTE_REGISTERS, REGISTERS, Instruction, decode
from exprc.errors import CertificationError

logger = logging.getLogger(__name__)


@dataclass
class Certificate:
    proved: bool
    source_term: Any
    target_term: Any
    counterexample: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "proved": self.proved,
            "source": str(self.source_term),
            "target": str(self.target_term),
            "counterexample": self.counterexample,
        }


class _Literals:
    """Hands out literal terms in load order, concrete or symbolic."""

    def __init__(self, symbolic: bool):
        self.symbolic = symbolic
        self.variables: list[Any] = []
        self._next = 0

    def take(self, value: int) -> Any:
        idx = self._next
        self._next += 1
        if not self.symbolic:
            return z3.BitVecVal(to_signed(value), WORD_BITS)
        while len(self.variables) <= idx:
            self.variables.append(z3.BitVec(f"lit_{len(self.variables)}", WORD_BITS))
        return self.variables[idx]


def _bool_to_word(cond: Any) -> Any:
    return z3.If(cond, z3.BitVecVal(1, WORD_BITS), z3.BitVecVal(0, WORD_BITS))


# ---------------------------------------------------------------------------
# Source semantics
# ---------------------------------------------------------------------------

def source_term(root: Node, literals: _Literals) -> Any:
    terms: list[Any] = []
    for node in postorder(root):
        if node.is_leaf:
            terms.append(literals.take(node.value))
            continue
        rhs = terms.pop()
        lhs = terms.pop()
        kind = node.kind
        if kind == NodeKind.ADD:
            terms.append(lhs + rhs)
        elif kind == NodeKind.SUB:
            terms.append(lhs - rhs)
        elif kind == NodeKind.MUL:
            terms.append(lhs * rhs)
        elif kind == NodeKind.DIV:
            # bit-vector '/' is bvsdiv, which truncates toward zero
            terms.append(lhs / rhs)
        elif kind == NodeKind.EQ:
            terms.append(_bool_to_word(lhs == rhs))
        elif kind == NodeKind.NEQ:
            terms.append(_bool_to_word(lhs != rhs))
        elif kind == NodeKind.LT:
            terms.append(_bool_to_word(lhs < rhs))
        elif kind == NodeKind.LEQ:
            terms.append(_bool_to_word(lhs <= rhs))
    return terms[0]


# ---------------------------------------------------------------------------
# Target semantics
# ---------------------------------------------------------------------------

class SymbolicMachine:
    """Symbolic executor for the generator's instruction subset."""

    def __init__(self, literals: _Literals):
        self.literals = literals
        self.registers: dict[str, Any] = {
            name: z3.BitVecVal(0, WORD_BITS) for name in REGISTERS
        }
        self.stack: list[Any] = []
        self._flags: Optional[tuple[Any, Any]] = None
        # idiv is only modelled as a 64-bit divide when rdx holds rax's sign
        self._rdx_is_sign_of_rax = False

    def _fail(self, ins: Instruction, reason: str) -> CertificationError:
        return CertificationError(f"line {ins.line}: '{ins}': {reason}")

    def _read(self, operand: str, ins: Instruction) -> Any:
        if operand in self.registers:
            return self.registers[operand]
        if operand in BYTE_REGISTERS:
            return z3.Extract(7, 0, self.registers[BYTE_REGISTERS[operand]])
        try:
            value = int(operand, 0)
        except ValueError:
            raise self._fail(ins, f"unsupported operand {operand!r}") from None
        return self.literals.take(value)

    def _write(self, operand: str, term: Any, ins: Instruction) -> None:
        if BYTE_REGISTERS.get(operand, operand) in ("rax", "rdx"):
            self._rdx_is_sign_of_rax = False
        if operand in self.registers:
            self.registers[operand] = term
        elif operand in BYTE_REGISTERS:
            full = self.registers[BYTE_REGISTERS[operand]]
            self.registers[BYTE_REGISTERS[operand]] = z3.Concat(z3.Extract(WORD_BITS - 1, 8, full), term)
        else:
            raise self._fail(ins, f"cannot write to {operand!r}")

    def step(self, ins: Instruction) -> bool:
        op, args = ins.op, ins.operands
        if op == "push":
            self.stack.append(self._read(args[0], ins))
        elif op == "pop":
            if not self.stack:
                raise self._fail(ins, "pop from empty stack")
            self._write(args[0], self.stack.pop(), ins)
        elif op == "mov":
            self._write(args[0], self._read(args[1], ins), ins)
        elif op == "movzb":
            self._write(args[0], z3.ZeroExt(WORD_BITS - 8, self._read(args[1], ins)), ins)
        elif op == "add":
            self._write(args[0], self._read(args[0], ins) + self._read(args[1], ins), ins)
        elif op == "sub":
            self._write(args[0], self._read(args[0], ins) - self._read(args[1], ins), ins)
        elif op == "imul":
            self._write(args[0], self._read(args[0], ins) * self._read(args[1], ins), ins)
        elif op == "cqo":
            rax = self.registers["rax"]
            self.registers["rdx"] = z3.If(
                rax < 0, z3.BitVecVal(-1, WORD_BITS), z3.BitVecVal(0, WORD_BITS),
            )
            self._rdx_is_sign_of_rax = True
        elif op == "idiv":
            if not self._rdx_is_sign_of_rax:
                raise self._fail(ins, "idiv without a preceding cqo")
            divisor = self._read(args[0], ins)
            rax = self.registers["rax"]
            self.registers["rax"] = rax / divisor
            self.registers["rdx"] = z3.SRem(rax, divisor)
            self._rdx_is_sign_of_rax = False
        elif op == "cmp":
            self._flags = (self._read(args[0], ins), self._read(args[1], ins))
        elif op in ("sete", "setne", "setl", "setle"):
            if self._flags is None:
                raise self._fail(ins, "condition without a preceding cmp")
            lhs, rhs = self._flags
            cond = {
                "sete": lambda: lhs == rhs,
                "setne": lambda: lhs != rhs,
                "setl": lambda: lhs < rhs,
                "setle": lambda: lhs <= rhs,
            }[op]()
            byte = z3.If(cond, z3.BitVecVal(1, 8), z3.BitVecVal(0, 8))
            self._write(args[0], byte, ins)
        elif op == "ret":
            return False
        return True


def target_term(asm: str, literals: _Literals) -> Any:
    machine = SymbolicMachine(literals)
    for ins in decode(asm):
        if not machine.step(ins):
            if machine.stack:
                raise CertificationError(f"{len(machine.stack)} value(s) left on the stack at ret")
            return machine.registers["rax"]
    raise CertificationError("program ended without ret")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def certify(root: Node, asm: str, symbolic_literals: bool = False) -> Certificate:
    """Check that ``asm`` returns the value ``root`` denotes."""
    src_literals = _Literals(symbolic_literals)
    src = source_term(root, src_literals)
    tgt_literals = _Literals(symbolic_literals)
    tgt = target_term(asm, tgt_literals)

    solver = z3.Solver()
    solver.add(src != tgt)
    result = solver.check()
    if result == z3.unsat:
        logger.debug("certified: %s", src)
        return Certificate(proved=True, source_term=src, target_term=tgt)

    counterexample: dict[str, int] = {}
    if result == z3.sat:
        model = solver.model()
        for var in tgt_literals.variables:
            val = model.evaluate(var, model_completion=True)
            counterexample[str(var)] = to_signed(val.as_long())
    logger.warning("certification failed (%s): source %s, target %s", result, src, tgt)
    return Certificate(proved=False, source_term=src, target_term=tgt, counterexample=counterexample)
