"""Isolation scopes for types and constants."""
from __future__ import annotations

import logging
import threading
import typing
from typing import Optional, Set

from llvmlite import ir

from irhandle.core.arena import ARENA
from irhandle.internals.errors import raise_error

if typing.TYPE_CHECKING:
    from irhandle.core.module import Module

logger = logging.getLogger(__name__)

CONTEXT_KIND = "context"


class Context:
    """An isolation scope that modules, types and constants are created in.

    Use :meth:`global_` for the process-wide default scope or :meth:`create`
    for a fresh one. A context must outlive every module created in it;
    :meth:`dispose` refuses while such modules are still live.
    """

    _global: Optional['Context'] = None
    _global_lock = threading.Lock()

    def __init__(self, ir_context: ir.Context, is_global: bool = False) -> None:
        self._ir = ir_context
        self._is_global = is_global
        self._module_ids: Set[int] = set()
        self._id, self._finalizer = ARENA.track(CONTEXT_KIND, self, _release_context)
        logger.debug("context #%d created%s", self._id, " (global)" if is_global else "")

    @classmethod
    def global_(cls) -> 'Context':
        """Return the process-wide default context (same object every call)."""
        if cls._global is None:
            with cls._global_lock:
                if cls._global is None:
                    cls._global = cls(ir.global_context, is_global=True)
        return cls._global

    @classmethod
    def create(cls) -> 'Context':
        """Allocate a new isolation scope."""
        return cls(ir.Context())

    @property
    def arena_id(self) -> int:
        return self._id

    @property
    def is_global(self) -> bool:
        return self._is_global

    @property
    def is_disposed(self) -> bool:
        return not ARENA.is_live(self._id)

    @property
    def ir(self) -> ir.Context:
        """The underlying llvmlite context."""
        self._ensure_live()
        return self._ir

    def create_module(self, name: str) -> 'Module':
        from irhandle.core.module import Module
        return Module.create_in_context(name, self)

    def identified_type(self, name: str) -> ir.IdentifiedStructType:
        """Return the named struct type interned in this context."""
        self._ensure_live()
        return self._ir.get_identified_type(name)

    def live_modules(self) -> int:
        return len(self._module_ids)

    def dispose(self) -> None:
        """Release this context.

        The global context is never released. Repeated calls are no-ops.

        Raises:
            ContextInUseError: Modules created in this context are still live.
        """
        if self._is_global or not self._finalizer.alive:
            return
        if self._module_ids:
            raise_error("IH0406", handle=self._id, count=len(self._module_ids))
        self._finalizer()

    # Module bookkeeping

    def _attach(self, module_id: int) -> None:
        self._ensure_live()
        self._module_ids.add(module_id)

    def _detach(self, module_id: int) -> None:
        self._module_ids.discard(module_id)

    def _ensure_live(self) -> None:
        ARENA.get(self._id, CONTEXT_KIND)

    def __enter__(self) -> 'Context':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "global" if self._is_global else ("disposed" if self.is_disposed else "live")
        return f"<Context #{self._id} {state}>"


def _release_context(arena_id: int) -> None:
    if ARENA.release(arena_id):
        logger.debug("context #%d released", arena_id)
