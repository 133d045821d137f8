"""
Function handles.

A ``Function`` never owns IR. Handles obtained through a module are
``(module arena id, table index)`` pairs resolved through the arena on
every access, so using one after its module is disposed raises
``StaleHandleError``. Handles built with :meth:`Function.from_handle` wrap
an ``llvmlite.ir.Function`` directly; they have no known owning module and
refuse signature queries.
"""
from __future__ import annotations

import typing
from typing import Optional, Tuple

from llvmlite import ir

from irhandle.core.arena import ARENA
from irhandle.internals.errors import raise_error

if typing.TYPE_CHECKING:
    from irhandle.core.module import Module

MODULE_KIND = "module"


class Function:
    """Non-owning handle to a function in a module's function table."""

    __slots__ = ("_module_id", "_index", "_bare")

    def __init__(self, module_id: Optional[int], index: Optional[int],
                 bare: Optional[ir.Function] = None) -> None:
        self._module_id = module_id
        self._index = index
        self._bare = bare

    @classmethod
    def declare_in(cls, module: 'Module', name: str, function_type: ir.FunctionType) -> 'Function':
        """Declare a new function named *name* in *module*."""
        return module.add_function(name, function_type)

    @classmethod
    def from_handle(cls, handle: ir.Function) -> 'Function':
        """Wrap an existing llvmlite function as a bare handle.

        The owning module and the function type are treated as unknown:
        :meth:`signature`, :meth:`return_type`, :meth:`parameter_types` and
        :meth:`is_var_arg` raise ``UnknownSignatureError``.
        """
        return cls(None, None, bare=handle)

    # Resolution

    @property
    def is_bare(self) -> bool:
        return self._bare is not None

    @property
    def module_id(self) -> Optional[int]:
        return self._module_id

    @property
    def index(self) -> Optional[int]:
        return self._index

    @property
    def module(self) -> Optional['Module']:
        """Owning module, or None for a bare handle."""
        if self._bare is not None:
            return None
        return ARENA.get(self._module_id, MODULE_KIND)

    @property
    def handle(self) -> ir.Function:
        """The underlying llvmlite function."""
        if self._bare is not None:
            return self._bare
        return self.module._function_at(self._index)

    @property
    def name(self) -> str:
        return self.handle.name

    # Body construction

    def append_block(self, label: str = "") -> ir.Block:
        """Append a new basic block and return it.

        A label already used in this function gets a numeric suffix.
        """
        return self.handle.append_basic_block(name=label)

    def blocks(self) -> Tuple[ir.Block, ...]:
        return tuple(self.handle.blocks)

    # Introspection

    def parameter(self, index: int) -> ir.Argument:
        """Return the parameter value at *index*.

        Raises:
            ParameterIndexError: *index* is outside ``[0, parameter_count())``.
        """
        fn = self.handle
        count = len(fn.args)
        if not 0 <= index < count:
            raise_error("IH0404", index=index, name=fn.name, count=count)
        return fn.args[index]

    def parameter_count(self) -> int:
        return len(self.handle.args)

    def signature(self) -> ir.FunctionType:
        """Function type this function was declared with."""
        if self._bare is not None:
            raise_error("IH0403", name=self._bare.name)
        return self.handle.ftype

    def return_type(self) -> ir.Type:
        return self.signature().return_type

    def parameter_types(self) -> Tuple[ir.Type, ...]:
        return tuple(self.signature().args)

    def is_var_arg(self) -> bool:
        return bool(self.signature().var_arg)

    def is_declaration(self) -> bool:
        return self.handle.is_declaration

    # Identity

    def _key(self) -> tuple:
        if self._bare is not None:
            return ("bare", id(self._bare))
        return ("module", self._module_id, self._index)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Function):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        if self._bare is not None:
            return f"<Function {self._bare.name!r} bare>"
        if not ARENA.is_live(self._module_id):
            return f"<Function module #{self._module_id}[{self._index}] stale>"
        return f"<Function {self.name!r} module #{self._module_id}[{self._index}]>"
