"""exprc AST node definitions.

One leaf kind (``Num``) and eight binary operator kinds. ``>``/``>=`` and the
unary signs are desugared by the parser, so they have no node kind.

Every walk over a tree goes through ``postorder``, which uses an explicit
stack: a left-leaning chain of thousands of operators must not hit the
interpreter's recursion limit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional

from exprc.errors import ExecutionError, Span

WORD_BITS = 64
WORD_MASK = (1 << WORD_BITS) - 1
INT64_MIN = -(1 << (WORD_BITS - 1))


class NodeKind(Enum):
    NUM = "Num"
    ADD = "Add"
    SUB = "Sub"
    MUL = "Mul"
    DIV = "Div"
    EQ = "Eq"
    NEQ = "Neq"
    LT = "Lt"
    LEQ = "Leq"


OPERATOR_SYMBOLS: dict[NodeKind, str] = {
    NodeKind.ADD: "+",
    NodeKind.SUB: "-",
    NodeKind.MUL: "*",
    NodeKind.DIV: "/",
    NodeKind.EQ: "==",
    NodeKind.NEQ: "!=",
    NodeKind.LT: "<",
    NodeKind.LEQ: "<=",
}


@dataclass(frozen=True)
class Node:
    kind: NodeKind
    value: int = 0
    lhs: Optional[Node] = None
    rhs: Optional[Node] = None
    span: Optional[Span] = field(default=None, compare=False)

    @classmethod
    def num(cls, value: int, span: Optional[Span] = None) -> Node:
        return cls(NodeKind.NUM, value=value, span=span)

    @classmethod
    def binary(cls, kind: NodeKind, lhs: Node, rhs: Node,
               span: Optional[Span] = None) -> Node:
        if kind == NodeKind.NUM:
            raise ValueError("Num is a leaf kind")
        return cls(kind, lhs=lhs, rhs=rhs, span=span)

    @property
    def is_leaf(self) -> bool:
        return self.kind == NodeKind.NUM


def postorder(root: Node) -> Iterator[Node]:
    """Yield nodes left subtree first, then right subtree, then the node."""
    stack: list[tuple[Node, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if node.is_leaf or expanded:
            yield node
            continue
        stack.append((node, True))
        stack.append((node.rhs, False))
        stack.append((node.lhs, False))


def count_nodes(root: Node) -> int:
    return sum(1 for _ in postorder(root))


def to_sexpr(root: Node) -> str:
    """Render a tree as an S-expression, e.g. ``(+ 1 (* 2 3))``."""
    parts: list[str] = []
    for node in postorder(root):
        if node.is_leaf:
            parts.append(str(node.value))
        else:
            rhs = parts.pop()
            lhs = parts.pop()
            parts.append(f"({OPERATOR_SYMBOLS[node.kind]} {lhs} {rhs})")
    return parts[0]


# ---------------------------------------------------------------------------
# 64-bit integer semantics
# ---------------------------------------------------------------------------

def to_signed(value: int) -> int:
    """Reinterpret the low 64 bits of ``value`` as two's complement."""
    value &= WORD_MASK
    if value >> (WORD_BITS - 1):
        return value - (1 << WORD_BITS)
    return value


def trunc_div(lhs: int, rhs: int) -> int:
    """Signed 64-bit division truncating toward zero, trapping like ``idiv``."""
    if rhs == 0:
        raise ExecutionError("division by zero")
    if lhs == INT64_MIN and rhs == -1:
        raise ExecutionError("integer overflow in division")
    quotient = abs(lhs) // abs(rhs)
    if (lhs < 0) != (rhs < 0):
        quotient = -quotient
    return quotient


def apply_operator(kind: NodeKind, lhs: int, rhs: int) -> int:
    if kind == NodeKind.ADD:
        return to_signed(lhs + rhs)
    if kind == NodeKind.SUB:
        return to_signed(lhs - rhs)
    if kind == NodeKind.MUL:
        return to_signed(lhs * rhs)
    if kind == NodeKind.DIV:
        return trunc_div(lhs, rhs)
    if kind == NodeKind.EQ:
        return int(lhs == rhs)
    if kind == NodeKind.NEQ:
        return int(lhs != rhs)
    if kind == NodeKind.LT:
        return int(lhs < rhs)
    if kind == NodeKind.LEQ:
        return int(lhs <= rhs)
    raise ValueError(f"not a binary operator: {kind}")


def evaluate(root: Node) -> int:
    """Reference semantics: the signed 64-bit value the compiled program returns."""
    values: list[int] = []
    for node in postorder(root):
        if node.is_leaf:
            values.append(to_signed(node.value))
        else:
            rhs = values.pop()
            lhs = values.pop()
            values.append(apply_operator(node.kind, lhs, rhs))
    return values[0]
