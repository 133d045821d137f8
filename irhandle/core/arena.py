"""
Handle arena for contexts, modules and engines.

Every Context, Module and Engine is registered here and addressed by an integer
arena id. Function handles are ``(module id, index)`` pairs, so any access
through a handle first resolves its owner here; a released id raises
``StaleHandleError`` instead of touching freed state.

The arena only holds weak references. Owners register a finalizer with
:meth:`HandleArena.track`, so an object dropped without ``dispose()`` still
has its slot released (and its cleanup run) when it is collected.

Ids are never reused within a process.
"""
from __future__ import annotations

import itertools
import threading
import weakref
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from irhandle.internals.errors import raise_error


@dataclass
class _Slot:
    kind: str
    ref: weakref.ref


class HandleArena:
    """Registry mapping arena ids to live contexts, modules and engines."""

    def __init__(self) -> None:
        self._slots: Dict[int, _Slot] = {}
        self._ids: Iterator[int] = itertools.count(1)
        # finalizers may run from the collector while the lock is held
        self._lock = threading.RLock()

    def insert(self, kind: str, payload: Any) -> int:
        """Register *payload* (weakly) and return its new arena id."""
        with self._lock:
            arena_id = next(self._ids)
            self._slots[arena_id] = _Slot(kind, weakref.ref(payload))
        return arena_id

    def track(self, kind: str, payload: Any, cleanup: Callable[..., None],
              *args: Any) -> Tuple[int, weakref.finalize]:
        """Register *payload* and tie ``cleanup(arena_id, *args)`` to its lifetime.

        The cleanup runs exactly once: on the first call of the returned
        finalizer (``dispose()``) or when *payload* is collected. It must
        not reference *payload* itself.

        Returns:
            The new arena id and the finalizer (``alive`` is False once it
            has run).
        """
        arena_id = self.insert(kind, payload)
        fin = weakref.finalize(payload, cleanup, arena_id, *args)
        # process teardown does not need slot bookkeeping
        fin.atexit = False
        return arena_id, fin

    def get(self, arena_id: int, kind: str) -> Any:
        """Resolve *arena_id* to its payload.

        Raises:
            StaleHandleError: The id was released, never issued, or its
                object has been collected.
            ForeignHandleError: The id names a different kind of object.
        """
        slot = self._slots.get(arena_id)
        payload = slot.ref() if slot is not None else None
        if payload is None:
            raise_error("IH0401", kind=kind, handle=arena_id)
        if slot.kind != kind:
            raise_error("IH0407", handle=arena_id, actual=slot.kind, expected=kind)
        return payload

    def release(self, arena_id: int) -> bool:
        """Release *arena_id*.

        Returns:
            True if this call released it, False if it was already released.
        """
        with self._lock:
            return self._slots.pop(arena_id, None) is not None

    def is_live(self, arena_id: Optional[int]) -> bool:
        if arena_id is None:
            return False
        slot = self._slots.get(arena_id)
        return slot is not None and slot.ref() is not None

    def live_count(self, kind: Optional[str] = None) -> int:
        with self._lock:
            slots = list(self._slots.values())
        return sum(1 for s in slots
                   if (kind is None or s.kind == kind) and s.ref() is not None)


ARENA = HandleArena()
