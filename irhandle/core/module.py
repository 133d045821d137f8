"""
Modules: exclusive owners of an llvmlite IR module.

A Module is registered in the handle arena for its whole life. Function
handles derived from it resolve through that registration, so once the
module is disposed every derived handle raises ``StaleHandleError``
instead of reaching released state.
"""
from __future__ import annotations

import logging
import os
import sys
import typing
from pathlib import Path
from typing import Dict, List, Optional, Union

from llvmlite import ir

from irhandle.backend.native import parse_and_verify
from irhandle.backend.targets import CodegenLevel
from irhandle.core.arena import ARENA
from irhandle.core.context import Context
from irhandle.core.function import Function, MODULE_KIND
from irhandle.internals.errors import VerificationError, raise_error

if typing.TYPE_CHECKING:
    from irhandle.engine.engine import Engine

logger = logging.getLogger(__name__)


class Module:
    """A named container of functions and global values.

    Create one with :meth:`create` (global context) or
    :meth:`create_in_context`. The module references its context but does
    not own it. Dispose it explicitly with :meth:`dispose` or use it as a
    context manager.
    """

    def __init__(self, name: str, context: Optional[Context] = None) -> None:
        self._context = context or Context.global_()
        self._name = name
        self._ir: Optional[ir.Module] = ir.Module(name=name, context=self._context.ir)
        self._functions: List[ir.Function] = []
        self._index_by_name: Dict[str, int] = {}
        self._id, self._finalizer = ARENA.track(MODULE_KIND, self, _release_module,
                                                self._context, name)
        self._context._attach(self._id)
        logger.debug("module '%s' #%d created in context #%d", name, self._id, self._context.arena_id)

    @classmethod
    def create(cls, name: str) -> 'Module':
        """New empty module in the global context."""
        return cls(name)

    @classmethod
    def create_in_context(cls, name: str, context: Context) -> 'Module':
        """New empty module scoped to *context*.

        Raises:
            StaleHandleError: *context* has been disposed.
        """
        return cls(name, context)

    # Properties

    @property
    def name(self) -> str:
        return self._name

    @property
    def arena_id(self) -> int:
        return self._id

    @property
    def context(self) -> Context:
        return self._context

    @property
    def is_disposed(self) -> bool:
        return not ARENA.is_live(self._id)

    @property
    def ir(self) -> ir.Module:
        """The underlying llvmlite module (for use with ``ir.IRBuilder``)."""
        self._ensure_live()
        return self._ir

    # Functions

    def add_function(self, name: str, function_type: ir.FunctionType) -> Function:
        """Declare a new function.

        Raises:
            DuplicateSymbolError: A global value named *name* already exists.
        """
        mod = self.ir
        if name in mod.globals:
            raise_error("IH0405", name=name, module=self._name)
        fn = ir.Function(mod, function_type, name=name)
        return Function(self._id, self._adopt(fn))

    def lookup_function(self, name: str) -> Optional[Function]:
        """Return the function named *name*, or None if there is none."""
        gv = self.ir.globals.get(name)
        if not isinstance(gv, ir.Function):
            return None
        return Function(self._id, self._adopt(gv))

    def get_or_declare(self, name: str, function_type: ir.FunctionType) -> Function:
        """Return the function named *name*, declaring it if absent.

        An existing function is returned as is, even when its type differs
        from *function_type*; the mismatch is only logged.
        """
        existing = self.lookup_function(name)
        if existing is None:
            return self.add_function(name, function_type)
        if existing.signature() != function_type:
            logger.warning("reusing '%s' in module '%s' with type %s; requested type %s ignored",
                           name, self._name, existing.signature(), function_type)
        return existing

    def functions(self) -> List[Function]:
        """All functions of the module, in declaration order."""
        for fn in self.ir.functions:
            self._adopt(fn)
        return [Function(self._id, i) for i in range(len(self._functions))]

    def _adopt(self, fn: ir.Function) -> int:
        index = self._index_by_name.get(fn.name)
        if index is not None and self._functions[index] is fn:
            return index
        self._functions.append(fn)
        index = len(self._functions) - 1
        self._index_by_name[fn.name] = index
        return index

    def _function_at(self, index: int) -> ir.Function:
        self._ensure_live()
        return self._functions[index]

    # Globals

    def add_global(self, ty: ir.Type, name: str) -> ir.GlobalVariable:
        """Declare module-level storage of type *ty*.

        Raises:
            DuplicateSymbolError: A global value named *name* already exists.
        """
        mod = self.ir
        if name in mod.globals:
            raise_error("IH0405", name=name, module=self._name)
        return ir.GlobalVariable(mod, ty, name=name)

    def set_initializer(self, global_value: ir.GlobalVariable, value: ir.Constant) -> None:
        """Bind the initial value of a global declared in this module.

        Raises:
            ForeignHandleError: The global belongs to another module.
        """
        mod = self.ir
        owner = global_value.parent
        if owner is not mod:
            raise_error("IH0402", what=f"global '{global_value.name}'",
                        owner=getattr(owner, "name", "?"), module=self._name)
        global_value.initializer = value

    # Verification and rendering

    def verify(self) -> None:
        """Run the native verifier over the module.

        The module itself is never modified, so repeated calls without
        intervening changes give the same outcome.

        Raises:
            VerificationError: The first violation the verifier reports.
        """
        llmod = parse_and_verify(self.render_to_text(), self._name)
        llmod.close()

    def is_valid(self) -> bool:
        try:
            self.verify()
        except VerificationError:
            return False
        return True

    def render_to_text(self) -> str:
        return str(self.ir)

    def dump(self) -> None:
        """Write the textual IR to standard error."""
        sys.stderr.write(self.render_to_text())
        sys.stderr.flush()

    def render_to_file(self, path: Union[str, os.PathLike]) -> Path:
        """Write the textual IR to *path*.

        Raises:
            RenderError: The file could not be written.
        """
        out = Path(path)
        text = self.render_to_text()
        try:
            out.write_text(text, encoding="utf-8")
        except OSError as e:
            raise_error("IH0304", path=str(out), reason=e.strerror or str(e))
        return out

    # Engines

    def create_interpreter(self) -> 'Engine':
        from irhandle.engine.engine import Engine
        return Engine.create_interpreter(self)

    def create_jit(self, level: CodegenLevel = CodegenLevel.O2) -> 'Engine':
        from irhandle.engine.engine import Engine
        return Engine.create_jit(self, level)

    # Lifecycle

    def dispose(self) -> None:
        """Release the module. Repeated calls are no-ops.

        Every Function handle derived from this module becomes stale.
        """
        if not self._finalizer.alive:
            return
        self._finalizer()
        self._ir = None
        self._functions.clear()
        self._index_by_name.clear()

    def _ensure_live(self) -> None:
        ARENA.get(self._id, MODULE_KIND)

    def __enter__(self) -> 'Module':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self.is_disposed else f"{len(self._functions)} function(s)"
        return f"<Module {self._name!r} #{self._id} {state}>"


def _release_module(arena_id: int, context: Context, name: str) -> None:
    # Runs once, from dispose() or when the Module is collected
    if ARENA.release(arena_id):
        context._detach(arena_id)
        logger.debug("module '%s' #%d released", name, arena_id)
