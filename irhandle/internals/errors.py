# internals/errors.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, NoReturn, Type


class Category(str, Enum):
    CONSTRUCTION = "construction"
    VERIFICATION = "verification"
    EMISSION     = "emission"
    HANDLE       = "handle"
    EXECUTION    = "execution"
    FATAL        = "fatal"


@dataclass(frozen=True)
class ErrorMessage:
    code: str
    text: str
    category: Category
    exc: Type[BaseException]
    doc: str = ""


#
# --- Exception hierarchy
#

class IRHandleError(Exception):
    """Base class for every recoverable failure raised by irhandle.

    Attributes:
        code: Registry code (e.g. "IH0201").
        message: Formatted message without the code prefix.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


class EngineCreationError(IRHandleError):
    """An execution backend could not be created for a module."""


class VerificationError(IRHandleError):
    """A module failed structural validation."""


class EmissionError(IRHandleError):
    """The code generator rejected a module or the object could not be written."""


class RenderError(IRHandleError):
    """Textual IR could not be written to its destination."""


class HandleError(IRHandleError):
    """A handle was used outside its contract."""


class StaleHandleError(HandleError):
    pass


class ForeignHandleError(HandleError):
    pass


class UnknownSignatureError(HandleError):
    pass


class DuplicateSymbolError(HandleError):
    pass


class ContextInUseError(HandleError):
    pass


class ParameterIndexError(HandleError, IndexError):
    pass


class ExecutionError(IRHandleError):
    """Executed IR used something the engine cannot run."""


class BackendUnavailableError(RuntimeError):
    """No native code generator is available on this host.

    Deliberately not an IRHandleError: this is a fatal startup condition,
    not something callers are expected to recover from.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


REGISTRY: Dict[str, ErrorMessage] = {}


class _ErrorCatalog:
    def __init__(self, backing: Dict[str, ErrorMessage]) -> None:
        self._registry = backing

    def __getattr__(self, name: str) -> ErrorMessage:
        try:
            return self._registry[name]
        except KeyError as e:
            raise AttributeError(name) from e

    def __getitem__(self, code: str) -> ErrorMessage:
        return self._registry[code]


ERR = _ErrorCatalog(REGISTRY)


def make_error(code: str, **kwargs) -> BaseException:
    """Build (without raising) the exception registered under *code*."""
    msg = _get(code)
    return msg.exc(code, _fmt(code, **kwargs))


def raise_error(code: str, **kwargs) -> NoReturn:
    """Raise the exception registered under *code*.

    Args:
        code: Error code (e.g., "IH0201")
        **kwargs: Format parameters for the error message

    Raises:
        IRHandleError subclass (or BackendUnavailableError) for the code.
    """
    raise make_error(code, **kwargs)


#
# --- Helpers
#

def _add(msg: ErrorMessage) -> None:
    if msg.code in REGISTRY:
        raise ValueError(f"duplicate error code {REGISTRY[msg.code]} in {msg}")
    REGISTRY[msg.code] = msg

def _get(code: str) -> ErrorMessage:
    try:
        return REGISTRY[code]
    except KeyError:
        raise KeyError(f"unknown error code: {code}")

def _fmt(code: str, **kwargs) -> str:
    msg = _get(code)
    try:
        return msg.text.format(**kwargs)
    except KeyError as key_error:
        missing = key_error.args[0]
        raise KeyError(f"missing text key '{missing}' for {code} "
                       f"(needed by: {msg.text!r})") from None

#
# --- Registry population
#

# Engine construction (IH01xx)
_add(ErrorMessage("IH0101",
    "cannot create interpreter for module '{module}': {reason}",
    Category.CONSTRUCTION, EngineCreationError,
    "The module failed the interpreter's preconditions (usually verification)."))

_add(ErrorMessage("IH0102",
    "cannot create JIT engine for module '{module}': {reason}",
    Category.CONSTRUCTION, EngineCreationError,
    "MCJIT could not parse, verify or finalize the module."))

# Verification (IH02xx)
_add(ErrorMessage("IH0201",
    "module '{module}' failed verification: {reason}",
    Category.VERIFICATION, VerificationError,
    "The native verifier rejected the module."))

_add(ErrorMessage("IH0202",
    "cannot parse IR for '{module}': {reason}",
    Category.VERIFICATION, VerificationError,
    "The textual form of the module is not valid LLVM assembly."))

# Emission and I/O (IH03xx)
_add(ErrorMessage("IH0301",
    "cannot emit object for module '{module}': {reason}",
    Category.EMISSION, EmissionError,
    "The code generator rejected the module."))

_add(ErrorMessage("IH0302",
    "cannot write object file '{path}': {reason}",
    Category.EMISSION, EmissionError,
    "The output path could not be written; no partial file is left."))

_add(ErrorMessage("IH0303",
    "no target for CPU '{cpu}' (triple '{triple}'): {reason}",
    Category.EMISSION, EmissionError,
    "The target for the requested CPU is not registered on this host."))

_add(ErrorMessage("IH0304",
    "cannot write IR text to '{path}': {reason}",
    Category.EMISSION, RenderError,
    "render_to_file could not write its destination."))

_add(ErrorMessage("IH0305",
    "cannot read IR source '{path}': {reason}",
    Category.EMISSION, EmissionError,
    "The textual IR input file could not be read."))

# Handle misuse (IH04xx)
_add(ErrorMessage("IH0401",
    "{kind} #{handle} has been disposed",
    Category.HANDLE, StaleHandleError,
    "A handle was used after its owner released it."))

_add(ErrorMessage("IH0402",
    "{what} belongs to module '{owner}', not '{module}'",
    Category.HANDLE, ForeignHandleError,
    "A handle from one module was passed to another module or engine."))

_add(ErrorMessage("IH0403",
    "function '{name}' was wrapped from a bare handle; its signature is unknown",
    Category.HANDLE, UnknownSignatureError,
    "Bare handles carry no owning module or function type."))

_add(ErrorMessage("IH0404",
    "parameter index {index} out of range for '{name}' ({count} parameters)",
    Category.HANDLE, ParameterIndexError,
    "Parameter indices must be in [0, parameter_count())."))

_add(ErrorMessage("IH0405",
    "symbol '{name}' already defined in module '{module}'",
    Category.HANDLE, DuplicateSymbolError,
    "Global value names are unique within a module."))

_add(ErrorMessage("IH0406",
    "context #{handle} still has {count} live module(s)",
    Category.HANDLE, ContextInUseError,
    "A context must outlive every module built in it."))

_add(ErrorMessage("IH0407",
    "arena id #{handle} names a {actual}, not a {expected}",
    Category.HANDLE, ForeignHandleError,
    "An arena id was resolved as the wrong kind of object."))

# Execution (IH05xx)
_add(ErrorMessage("IH0501",
    "unsupported instruction '{opname}' in function '{function}'",
    Category.EXECUTION, ExecutionError,
    "The interpreter does not implement this instruction."))

_add(ErrorMessage("IH0502",
    "function '{function}' has no body in this module",
    Category.EXECUTION, ExecutionError,
    "Calls to external declarations cannot be interpreted."))

_add(ErrorMessage("IH0503",
    "function '{function}' expects {expected} argument(s), got {got}",
    Category.EXECUTION, ExecutionError,
    "Argument count does not match the function signature."))

_add(ErrorMessage("IH0504",
    "type '{type}' cannot be passed across the JIT boundary",
    Category.EXECUTION, ExecutionError,
    "Only integers up to 64 bits, float, double, pointers and void are marshalled."))

_add(ErrorMessage("IH0505",
    "reached 'unreachable' in function '{function}'",
    Category.EXECUTION, ExecutionError,
    "Control flow reached an unreachable terminator."))

_add(ErrorMessage("IH0506",
    "no function named '{name}' in module '{module}'",
    Category.EXECUTION, ExecutionError,
    "Engine.run was given a name the bound module does not define."))

_add(ErrorMessage("IH0507",
    "block '{block}' in function '{function}' has no terminator",
    Category.EXECUTION, ExecutionError,
    "Execution fell off the end of a basic block."))

_add(ErrorMessage("IH0508",
    "integer division by zero in function '{function}'",
    Category.EXECUTION, ExecutionError,
    "udiv, sdiv, urem and srem with a zero divisor are undefined."))

_add(ErrorMessage("IH0509",
    "phi '{name}' in function '{function}' has no incoming value from block '{block}'",
    Category.EXECUTION, ExecutionError,
    "Control reached a phi from a predecessor it does not list."))

# Fatal startup (IH09xx)
_add(ErrorMessage("IH0900",
    "no native code generator available: {reason}",
    Category.FATAL, BackendUnavailableError,
    "The host platform has no LLVM backend; this is not recoverable."))
