"""
Execution engines.

An Engine is bound at construction to exactly one Module and owns one
execution backend: the IR interpreter or an MCJIT compiler. The Engine
does not own the Module; running after the Module is disposed raises
``StaleHandleError``.

Arguments and results cross the engine boundary as ``GenericValue``
objects; each ``run`` produces exactly one ``FuncallResult``.
"""
from __future__ import annotations

import logging
import typing
from enum import Enum
from typing import Any, Optional, Sequence, Union

from llvmlite import ir

from irhandle.backend.native import initialize_native_backend
from irhandle.backend.targets import CodegenLevel
from irhandle.core.arena import ARENA
from irhandle.core.function import Function, MODULE_KIND
from irhandle.engine.interpreter import Interpreter, mask, normalize, to_signed
from irhandle.engine.jit import JITBackend
from irhandle.internals.errors import VerificationError, make_error, raise_error

if typing.TYPE_CHECKING:
    from irhandle.core.module import Module

logger = logging.getLogger(__name__)

ENGINE_KIND = "engine"

_OPAQUE_PTR = ir.IntType(8).as_pointer()


class GenericValue:
    """Type-erased value for one execution argument or result."""

    __slots__ = ("type", "payload")

    def __init__(self, ty: ir.Type, payload: Any) -> None:
        self.type = ty
        self.payload = payload

    @classmethod
    def of_int(cls, ty: ir.IntType, value: int, signed: bool = False) -> 'GenericValue':
        """Integer of type *ty*; *value* is wrapped to the type's width.

        With *signed*, *value* must fit the signed range of the type.
        """
        value = int(value)
        if signed and not -(1 << (ty.width - 1)) <= value < (1 << (ty.width - 1)):
            raise ValueError(f"{value} does not fit in signed {ty}")
        return cls(ty, value & mask(ty.width))

    @classmethod
    def of_float(cls, ty: ir.Type, value: float) -> 'GenericValue':
        return cls(ty, normalize(ty, float(value)))

    @classmethod
    def of_pointer(cls, value: Any, ty: Optional[ir.Type] = None) -> 'GenericValue':
        return cls(ty or _OPAQUE_PTR, value)

    def to_int(self, signed: bool = False) -> int:
        """Integer view; unsigned unless *signed* is set."""
        value = self.payload
        if value is None:
            return 0
        if isinstance(value, float):
            value = int(value)
        if not isinstance(value, int):
            raise TypeError(f"generic value of type {self.type} has no integer view")
        if isinstance(self.type, ir.IntType):
            width = self.type.width
            return to_signed(value, width) if signed else value & mask(width)
        return value

    def to_float(self) -> float:
        if self.payload is None:
            return 0.0
        return float(self.payload)

    def to_pointer(self) -> Any:
        return self.payload

    def __repr__(self) -> str:
        return f"GenericValue({self.type}, {self.payload!r})"


class FuncallResult:
    """The value produced by exactly one ``Engine.run``."""

    __slots__ = ("_value",)

    def __init__(self, value: Optional[GenericValue]) -> None:
        self._value = value

    @property
    def value(self) -> Optional[GenericValue]:
        return self._value

    @property
    def is_void(self) -> bool:
        return self._value is None

    def to_int(self, signed: bool = False) -> int:
        """Integer view of the result (unsigned by default, 0 for void)."""
        if self._value is None:
            return 0
        return self._value.to_int(signed)

    def to_float(self) -> float:
        if self._value is None:
            return 0.0
        return self._value.to_float()

    def __repr__(self) -> str:
        return f"FuncallResult({self._value!r})"


class EngineMode(str, Enum):
    INTERPRETER = "interpreter"
    JIT = "jit"


class Engine:
    """Executes functions of one bound Module."""

    def __init__(self, module: 'Module', backend: Union[Interpreter, JITBackend],
                 mode: EngineMode) -> None:
        self._module = module
        self._backend = backend
        self._mode = mode
        self._id, self._finalizer = ARENA.track(ENGINE_KIND, self, _release_engine, backend)

    @classmethod
    def create_interpreter(cls, module: 'Module') -> 'Engine':
        """Bind a fresh interpreter to *module*.

        Raises:
            EngineCreationError: The module does not verify.
        """
        initialize_native_backend()
        try:
            module.verify()
        except VerificationError as e:
            raise make_error("IH0101", module=module.name, reason=e.message) from e
        engine = cls(module, Interpreter(module.ir), EngineMode.INTERPRETER)
        logger.debug("interpreter #%d bound to module '%s'", engine._id, module.name)
        return engine

    @classmethod
    def create_jit(cls, module: 'Module', level: CodegenLevel = CodegenLevel.O2) -> 'Engine':
        """Bind an MCJIT engine compiled at *level* to *module*.

        Raises:
            EngineCreationError: The module cannot be compiled for the host.
        """
        initialize_native_backend()
        backend = JITBackend.create(module.render_to_text(), module.name, level)
        engine = cls(module, backend, EngineMode.JIT)
        logger.debug("JIT engine #%d bound to module '%s'", engine._id, module.name)
        return engine

    @property
    def mode(self) -> EngineMode:
        return self._mode

    @property
    def module(self) -> 'Module':
        return self._module

    @property
    def is_disposed(self) -> bool:
        return not ARENA.is_live(self._id)

    def run(self, function: Union[Function, str],
            arguments: Sequence[GenericValue] = ()) -> FuncallResult:
        """Execute *function* with *arguments*, blocking until it returns.

        Args:
            function: A handle (or the name) of a function of the bound module.
            arguments: One GenericValue per parameter, in order.

        Raises:
            StaleHandleError: The engine or its module has been disposed.
            ForeignHandleError: *function* belongs to another module.
            ExecutionError: Wrong argument count, or the backend cannot run
                the function.
        """
        ARENA.get(self._id, ENGINE_KIND)
        ARENA.get(self._module.arena_id, MODULE_KIND)
        fn = self._resolve(function)
        ftype = fn.ftype
        expected = len(ftype.args)
        if len(arguments) < expected or (len(arguments) > expected and not ftype.var_arg):
            raise_error("IH0503", function=fn.name, expected=expected, got=len(arguments))

        raw_args = [gv.payload for gv in arguments]
        raw = self._backend.call(fn, raw_args)

        ret_ty = ftype.return_type
        if isinstance(ret_ty, ir.VoidType):
            return FuncallResult(None)
        return FuncallResult(GenericValue(ret_ty, normalize(ret_ty, raw) if raw is not None else None))

    def _resolve(self, function: Union[Function, str]) -> ir.Function:
        module = self._module
        if isinstance(function, str):
            found = module.lookup_function(function)
            if found is None:
                raise_error("IH0506", name=function, module=module.name)
            return found.handle

        if function.is_bare:
            handle = function.handle
            owner = handle.parent
            if owner is not module.ir:
                raise_error("IH0402", what=f"function '{handle.name}'",
                            owner=getattr(owner, "name", "?"), module=module.name)
            return handle

        if function.module_id != module.arena_id:
            owner = function.module
            raise_error("IH0402", what=f"function '{function.name}'",
                        owner=owner.name, module=module.name)
        return function.handle

    def dispose(self) -> None:
        """Release the execution backend. Repeated calls are no-ops."""
        if not self._finalizer.alive:
            return
        self._finalizer()
        self._backend = None

    def __enter__(self) -> 'Engine':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self.is_disposed else f"bound to {self._module.name!r}"
        return f"<Engine #{self._id} {self._mode.value} {state}>"


def _release_engine(arena_id: int, backend: Union[Interpreter, JITBackend]) -> None:
    # Runs once, from dispose() or when the Engine is collected
    if not ARENA.release(arena_id):
        return
    if isinstance(backend, JITBackend):
        backend.close()
    logger.debug("engine #%d released", arena_id)
