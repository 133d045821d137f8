"""
MCJIT execution backend.

Parses a module's textual IR into a native module, compiles it with an
MCJIT engine for the host target, and calls compiled functions through
ctypes.
"""
from __future__ import annotations

import ctypes
import logging
from typing import Any, List, Optional

from llvmlite import binding as llvm
from llvmlite import ir

from irhandle.backend.native import parse_and_verify
from irhandle.backend.targets import CPU, CodegenLevel, configure_module, create_target_machine
from irhandle.internals.errors import EmissionError, VerificationError, make_error, raise_error

logger = logging.getLogger(__name__)

_INT_CTYPES = {
    1: ctypes.c_bool,
    8: ctypes.c_uint8,
    16: ctypes.c_uint16,
    32: ctypes.c_uint32,
    64: ctypes.c_uint64,
}


def ctype_for(ty: ir.Type) -> Any:
    """ctypes type used to pass *ty* across the JIT boundary (None for void)."""
    if isinstance(ty, ir.VoidType):
        return None
    if isinstance(ty, ir.IntType) and ty.width in _INT_CTYPES:
        return _INT_CTYPES[ty.width]
    if isinstance(ty, ir.FloatType):
        return ctypes.c_float
    if isinstance(ty, ir.DoubleType):
        return ctypes.c_double
    if isinstance(ty, ir.PointerType):
        return ctypes.c_void_p
    raise_error("IH0504", type=str(ty))


class JITBackend:
    """Owns one MCJIT execution engine and its native module."""

    def __init__(self, engine: llvm.ExecutionEngine, tm: llvm.TargetMachine, name: str) -> None:
        self._engine = engine
        self._tm = tm
        self._name = name

    @classmethod
    def create(cls, text: str, name: str, level: CodegenLevel) -> 'JITBackend':
        """Compile textual IR for the host.

        Raises:
            EngineCreationError: Parsing, verification, target selection or
                finalization failed.
        """
        try:
            llmod = parse_and_verify(text, name)
            tm = create_target_machine(CPU.NATIVE, level, jit=True)
        except (VerificationError, EmissionError) as e:
            raise make_error("IH0102", module=name, reason=e.message) from e

        configure_module(llmod, tm, CPU.NATIVE.triple())
        try:
            engine = llvm.create_mcjit_compiler(llmod, tm)
            engine.finalize_object()
            engine.run_static_constructors()
        except RuntimeError as e:
            raise make_error("IH0102", module=name, reason=str(e).strip()) from e

        logger.debug("MCJIT engine ready for '%s' at %s", name, level.name)
        return cls(engine, tm, name)

    def call(self, fn: ir.Function, args: List[Any]) -> Any:
        """Call the compiled *fn* with raw argument values.

        Returns:
            The raw return value (None for void).
        """
        ftype = fn.ftype
        if len(args) > len(ftype.args):
            raise_error("IH0504", type="... (variadic arguments)")
        restype = ctype_for(ftype.return_type)
        argtypes = [ctype_for(t) for t in ftype.args]

        addr = self._engine.get_function_address(fn.name)
        if not addr:
            raise_error("IH0502", function=fn.name)

        cfunc = ctypes.CFUNCTYPE(restype, *argtypes)(addr)
        result = cfunc(*args)
        if restype is ctypes.c_bool:
            return int(result)
        return result

    def close(self) -> None:
        # The engine owns the native module it was created with
        self._engine.close()
        self._engine = None
        self._tm = None
