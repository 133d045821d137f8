"""
Object file emission.

Lowers a module to a relocatable object file for a chosen CPU and code
generation level. Output is written to a temporary file next to the
destination and renamed into place, so a failed emission never leaves a
partial object behind.
"""
from __future__ import annotations

import logging
import os
import tempfile
import typing
from pathlib import Path
from typing import Union

from llvmlite import binding as llvm

from irhandle.backend.native import parse_and_verify, parse_module
from irhandle.backend.targets import CPU, CodegenLevel, configure_module, create_target_machine
from irhandle.internals.errors import VerificationError, make_error, raise_error

if typing.TYPE_CHECKING:
    from irhandle.core.module import Module

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def emit_object(module: 'Module',
                opt_level: CodegenLevel = CodegenLevel.O2,
                output_path: PathLike = "a.o",
                cpu: CPU = CPU.NATIVE) -> Path:
    """Emit *module* as an object file at *output_path*.

    The module should have been verified; an invalid module is reported
    through the parse step or the code generator.

    Args:
        module: The module to lower.
        opt_level: Code generation optimization level.
        output_path: Destination object file.
        cpu: Target CPU.

    Returns:
        The path written.

    Raises:
        EmissionError: The backend rejected the module or the file could
            not be written.
    """
    llmod = _to_native(module.render_to_text(), module.name)
    return _emit(llmod, module.name, opt_level, Path(output_path), cpu)


def emit_assembly_file(source_path: PathLike,
                       opt_level: CodegenLevel = CodegenLevel.O2,
                       output_path: PathLike = "a.o",
                       cpu: CPU = CPU.NATIVE,
                       verify: bool = True) -> Path:
    """Emit a textual IR file (``.ll``) as an object file."""
    source = Path(source_path)
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as e:
        raise_error("IH0305", path=str(source), reason=e.strerror or str(e))

    name = source.stem
    llmod = parse_and_verify(text, name) if verify else parse_module(text, name)
    return _emit(llmod, name, opt_level, Path(output_path), cpu)


def verify_assembly(text: str, name: str = "<input>") -> None:
    """Parse and verify textual IR.

    Raises:
        VerificationError: With the native diagnostic.
    """
    parse_and_verify(text, name)


def _to_native(text: str, name: str) -> llvm.ModuleRef:
    try:
        return parse_module(text, name)
    except VerificationError as e:
        # unparsable text is a backend rejection for emission
        raise make_error("IH0301", module=name, reason=str(e)) from e


def _emit(llmod: llvm.ModuleRef, name: str, opt_level: CodegenLevel,
          out: Path, cpu: CPU) -> Path:
    tm = create_target_machine(cpu, opt_level)
    configure_module(llmod, tm, cpu.triple())

    try:
        obj_bytes = tm.emit_object(llmod)
    except RuntimeError as e:
        raise_error("IH0301", module=name, reason=str(e).strip())

    _write_atomically(out, obj_bytes)
    logger.debug("emitted %s -> %s (%d bytes, cpu=%s, %s)",
                 name, out, len(obj_bytes), cpu.value, opt_level.name)
    return out


def _write_atomically(out: Path, data: bytes) -> None:
    parent = out.parent if str(out.parent) else Path(".")
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{out.name}.", suffix=".tmp", dir=parent)
    except OSError as e:
        raise_error("IH0302", path=str(out), reason=e.strerror or str(e))

    try:
        with os.fdopen(fd, "wb") as fh:
            # mkstemp creates 0600; use the mode a plain open() would give
            os.chmod(tmp_name, 0o666 & ~_current_umask())
            fh.write(data)
        os.replace(tmp_name, out)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise_error("IH0302", path=str(out), reason=e.strerror or str(e))


def _current_umask() -> int:
    mask = os.umask(0o022)
    os.umask(mask)
    return mask
