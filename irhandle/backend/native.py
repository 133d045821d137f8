"""
Process-wide native backend state.

LLVM's native target, assembly printer and assembly parser must be
registered once per process before target machines or MCJIT engines can
be created. This module owns that one-time step behind an explicit
ensure-initialized contract, and the shared "textual IR -> verified
native module" step used by verification, the JIT and emission.
"""
from __future__ import annotations

import logging
import threading

from llvmlite import binding as llvm

from irhandle.internals.errors import raise_error

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()
_initialized = False


def initialize_native_backend() -> None:
    """Initialize LLVM native target, assembly printer and assembly parser.

    Performs one-time initialization of LLVM's native code generation
    support. Safe to call multiple times and from several threads.

    Raises:
        BackendUnavailableError: The host has no native backend. Fatal.
    """
    global _initialized
    if _initialized:
        return
    with _init_lock:
        if _initialized:
            return
        try:
            llvm.initialize_native_target()
            llvm.initialize_native_asmprinter()
            llvm.initialize_native_asmparser()
        except RuntimeError as e:
            raise_error("IH0900", reason=str(e))
        _initialized = True
        logger.debug("native backend initialized for %s", llvm.get_default_triple())


def is_backend_initialized() -> bool:
    """Check if the native backend has been initialized."""
    return _initialized


def parse_module(text: str, name: str) -> llvm.ModuleRef:
    """Parse textual IR into a fresh native module.

    Args:
        text: LLVM assembly.
        name: Name used in diagnostics.

    Raises:
        VerificationError: The text is not valid LLVM assembly.
    """
    try:
        llmod = llvm.parse_assembly(text)
    except RuntimeError as e:
        raise_error("IH0202", module=name, reason=str(e).strip())
    llmod.name = name
    return llmod


def parse_and_verify(text: str, name: str) -> llvm.ModuleRef:
    """Parse textual IR and run the native verifier over it.

    The returned module is an independent native copy; callers own it.

    Raises:
        VerificationError: Parsing or verification failed.
    """
    llmod = parse_module(text, name)
    try:
        llmod.verify()
    except RuntimeError as e:
        raise_error("IH0201", module=name, reason=str(e).strip())
    return llmod
