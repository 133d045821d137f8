"""CPU / CodegenLevel configuration and triple handling."""
import pytest
from llvmlite import binding as llvm

from irhandle import CPU, CodegenLevel, emit_object, initialize_native_backend, is_backend_initialized
from irhandle.backend.platform_detect import get_current_platform, parse_triple
from irhandle.backend.targets import create_target_machine

HOST_IS_X86 = get_current_platform().is_x86


@pytest.mark.parametrize("triple", [
    "x86_64-pc-linux-gnu",
    "arm64-apple-darwin25.0.0",
    "x86_64-pc-windows-msvc",
    "i686-unknown-linux-gnu-extra",
])
def test_parse_triple_round_trips(triple):
    assert parse_triple(triple).triple == triple


def test_parse_triple_parts():
    p = parse_triple("x86_64-pc-linux-gnu")
    assert (p.arch, p.vendor, p.os, p.abi) == ("x86_64", "pc", "linux", "gnu")
    assert p.is_x86 and p.is_linux and not p.is_darwin
    assert p.with_arch("i686").triple == "i686-pc-linux-gnu"


def test_cpu_parse():
    assert CPU.parse("native") is CPU.NATIVE
    assert CPU.parse("x86_64") is CPU.X86_64
    assert CPU.parse("X86-64") is CPU.X86_64
    assert CPU.parse("i686") is CPU.I686
    with pytest.raises(ValueError):
        CPU.parse("sparc")


def test_cpu_triples():
    host = llvm.get_default_triple()
    assert CPU.NATIVE.triple() == host
    assert CPU.X86_64.triple().startswith("x86_64-")
    assert CPU.I686.triple().startswith("i686-")
    assert CPU.I686.triple().split("-")[1:] == host.split("-")[1:]
    assert CPU.X86_64.cpu_name() == "x86-64"
    assert CPU.NATIVE.cpu_name() == llvm.get_host_cpu_name()


def test_codegen_level_parse():
    assert CodegenLevel.parse("O0") is CodegenLevel.O0
    assert CodegenLevel.parse("o2") is CodegenLevel.O2
    assert CodegenLevel.parse("3") is CodegenLevel.O3
    with pytest.raises(ValueError):
        CodegenLevel.parse("O4")
    assert [lvl.description for lvl in CodegenLevel] == ["none", "less", "default", "aggressive"]


def test_backend_is_initialized():
    assert is_backend_initialized()


def test_native_target_machine():
    tm = create_target_machine(CPU.NATIVE, CodegenLevel.O1)
    assert str(tm.target_data)


@pytest.mark.skipif(not HOST_IS_X86, reason="x86 targets are only registered on x86 hosts")
@pytest.mark.parametrize("cpu", [CPU.X86_64, CPU.I686])
def test_emit_for_x86_cpus(module, tmp_path, cpu):
    out = emit_object(module, CodegenLevel.O2, tmp_path / f"{cpu.name}.o", cpu)
    assert out.stat().st_size > 0


def test_initialize_is_repeatable():
    initialize_native_backend()
    initialize_native_backend()
    assert is_backend_initialized()
