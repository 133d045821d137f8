"""
CPU and code generation level configuration, and target machine setup.

``CPU`` selects the target architecture for emission; ``CodegenLevel``
maps onto the code generator's optimization levels
(none / less / default / aggressive).
"""
from __future__ import annotations

import logging
from enum import Enum

from llvmlite import binding as llvm

from irhandle.backend.native import initialize_native_backend
from irhandle.backend.platform_detect import get_current_platform
from irhandle.internals.errors import raise_error

logger = logging.getLogger(__name__)


class CPU(str, Enum):
    NATIVE = "native"
    X86_64 = "x86-64"
    I686   = "i686"

    @classmethod
    def parse(cls, text: str) -> 'CPU':
        """Parse a CPU name ("native", "x86-64"/"x86_64", "i686")."""
        key = text.strip().lower().replace("_", "-")
        for cpu in cls:
            if cpu.value == key:
                return cpu
        raise ValueError(f"unknown CPU '{text}' (expected one of: {', '.join(c.value for c in cls)})")

    def triple(self) -> str:
        """Target triple for this CPU, derived from the host's default triple."""
        host = get_current_platform()
        if self is CPU.NATIVE:
            return host.triple
        arch = "x86_64" if self is CPU.X86_64 else "i686"
        return host.with_arch(arch).triple

    def cpu_name(self) -> str:
        """CPU name handed to the target machine."""
        if self is CPU.NATIVE:
            return llvm.get_host_cpu_name()
        return self.value


class CodegenLevel(Enum):
    O0 = 0
    O1 = 1
    O2 = 2
    O3 = 3

    @classmethod
    def parse(cls, text: str) -> 'CodegenLevel':
        """Parse "O0".."O3" (case-insensitive) or "0".."3"."""
        key = text.strip().upper()
        if not key.startswith("O"):
            key = f"O{key}"
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"unknown optimization level '{text}' (expected O0, O1, O2 or O3)") from None

    @property
    def description(self) -> str:
        return _LEVEL_DESCRIPTIONS[self]


_LEVEL_DESCRIPTIONS = {
    CodegenLevel.O0: "none",
    CodegenLevel.O1: "less",
    CodegenLevel.O2: "default",
    CodegenLevel.O3: "aggressive",
}


def create_target_machine(cpu: CPU = CPU.NATIVE,
                          level: CodegenLevel = CodegenLevel.O2,
                          jit: bool = False) -> llvm.TargetMachine:
    """Create a target machine for *cpu* at optimization *level*.

    Emission uses the default relocation and code model; JIT engines use
    the JIT code model.

    Raises:
        EmissionError: No registered target handles the CPU's triple.
    """
    initialize_native_backend()
    triple = cpu.triple()
    try:
        target = llvm.Target.from_triple(triple)
    except RuntimeError as e:
        raise_error("IH0303", cpu=cpu.value, triple=triple, reason=str(e).strip())

    codemodel = "jitdefault" if jit else "default"
    tm = target.create_target_machine(
        cpu=cpu.cpu_name(),
        features="",
        opt=level.value,
        reloc="default",
        codemodel=codemodel,
    )
    logger.debug("target machine: triple=%s cpu=%s opt=%s", triple, cpu.cpu_name(), level.name)
    return tm


def configure_module(llmod: llvm.ModuleRef, tm: llvm.TargetMachine, triple: str) -> None:
    """Stamp a native module with the target machine's triple and data layout."""
    llmod.triple = triple
    llmod.data_layout = str(tm.target_data)
