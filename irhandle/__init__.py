"""irhandle - handle-safe façade over LLVM IR construction, execution and emission."""
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("irhandle")
    __dev__ = False
except PackageNotFoundError:
    # Development mode - read from pyproject.toml
    import tomllib
    from pathlib import Path
    try:
        pyproject = Path(__file__).parent.parent / "pyproject.toml"
        with open(pyproject, "rb") as f:
            __version__ = tomllib.load(f).get("project", {}).get("version", "unknown")
    except (OSError, tomllib.TOMLDecodeError):
        __version__ = "unknown"
    __dev__ = True

from irhandle.backend.targets import CPU, CodegenLevel
from irhandle.backend.native import initialize_native_backend, is_backend_initialized
from irhandle.backend.emission import emit_object
from irhandle.core.context import Context
from irhandle.core.module import Module
from irhandle.core.function import Function
from irhandle.engine.engine import Engine, FuncallResult, GenericValue
from irhandle.internals.errors import (
    IRHandleError,
    EngineCreationError,
    VerificationError,
    EmissionError,
    RenderError,
    HandleError,
    StaleHandleError,
    ForeignHandleError,
    UnknownSignatureError,
    ParameterIndexError,
    DuplicateSymbolError,
    ContextInUseError,
    ExecutionError,
    BackendUnavailableError,
)

__all__ = [
    "CPU",
    "CodegenLevel",
    "Context",
    "Module",
    "Function",
    "Engine",
    "FuncallResult",
    "GenericValue",
    "emit_object",
    "initialize_native_backend",
    "is_backend_initialized",
    "IRHandleError",
    "EngineCreationError",
    "VerificationError",
    "EmissionError",
    "RenderError",
    "HandleError",
    "StaleHandleError",
    "ForeignHandleError",
    "UnknownSignatureError",
    "ParameterIndexError",
    "DuplicateSymbolError",
    "ContextInUseError",
    "ExecutionError",
    "BackendUnavailableError",
]
