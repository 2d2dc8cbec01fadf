"""exprc LLVM backend: AST to LLVM IR via llvmlite.

An alternative to the stack-assembly generator: the same post-order walk,
but each node becomes an SSA value instead of a push. The IR can be
JIT-compiled and called, which gives an independent check of what the
expression evaluates to on the host.
"""

from __future__ import annotations

import ctypes
import logging
from typing import Any

from llvmlite import binding as llvm_binding
from llvmlite import ir as llvm_ir

from exprc.compiler.ast_nodes import Node, NodeKind, postorder, to_signed

logger = logging.getLogger(__name__)

I64 = llvm_ir.IntType(64)

ICMP_PREDICATES: dict[NodeKind, str] = {
    NodeKind.EQ: "==",
    NodeKind.NEQ: "!=",
    NodeKind.LT: "<",
    NodeKind.LEQ: "<=",
}


class LLVMEmitter:
    """Emits an LLVM module with ``i64 @main()`` returning the expression."""

    def __init__(self, module_name: str = "exprc"):
        self.module_name = module_name
        self._builder: Any = None

    def _emit_binary(self, kind: NodeKind, lhs: Any, rhs: Any, idx: int) -> Any:
        b = self._builder
        if kind == NodeKind.ADD:
            return b.add(lhs, rhs, name=f"add.{idx}")
        if kind == NodeKind.SUB:
            return b.sub(lhs, rhs, name=f"sub.{idx}")
        if kind == NodeKind.MUL:
            return b.mul(lhs, rhs, name=f"mul.{idx}")
        if kind == NodeKind.DIV:
            return b.sdiv(lhs, rhs, name=f"div.{idx}")
        flag = b.icmp_signed(ICMP_PREDICATES[kind], lhs, rhs, name=f"cmp.{idx}")
        return b.zext(flag, I64, name=f"ext.{idx}")

    def emit_module(self, root: Node) -> str:
        module = llvm_ir.Module(name=self.module_name)
        module.triple = llvm_binding.get_default_triple()

        fn_type = llvm_ir.FunctionType(I64, [])
        func = llvm_ir.Function(module, fn_type, name="main")
        block = func.append_basic_block(name="entry")
        self._builder = llvm_ir.IRBuilder(block)

        values: list[Any] = []
        for idx, node in enumerate(postorder(root)):
            if node.is_leaf:
                values.append(llvm_ir.Constant(I64, to_signed(node.value)))
            else:
                rhs = values.pop()
                lhs = values.pop()
                values.append(self._emit_binary(node.kind, lhs, rhs, idx))

        self._builder.ret(values[0])
        return str(module)


# ---------------------------------------------------------------------------
# JIT execution
# ---------------------------------------------------------------------------

def _initialize_llvm() -> None:
    """Initialize LLVM native target machinery."""
    llvm_binding.initialize_native_target()
    llvm_binding.initialize_native_asmprinter()


def jit_evaluate(llvm_ir_str: str) -> int:
    """Compile LLVM IR with MCJIT and call its ``main``."""
    _initialize_llvm()
    mod = llvm_binding.parse_assembly(llvm_ir_str)
    mod.verify()

    target = llvm_binding.Target.from_default_triple()
    target_machine = target.create_target_machine()
    backing = llvm_binding.parse_assembly("")
    engine = llvm_binding.create_mcjit_compiler(backing, target_machine)
    engine.add_module(mod)
    engine.finalize_object()
    engine.run_static_constructors()

    address = engine.get_function_address("main")
    main = ctypes.CFUNCTYPE(ctypes.c_int64)(address)
    result = main()
    logger.debug("jit main() returned %d", result)
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def emit_llvm(root: Node) -> str:
    """Emit LLVM IR for ``root``. Returns LLVM IR string."""
    return LLVMEmitter().emit_module(root)
