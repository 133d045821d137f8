"""CLI entry point and argument parsing."""
from __future__ import annotations

import argparse
import logging
import platform
import sys
import traceback
from pathlib import Path

import llvmlite
from llvmlite import binding as llvm

import irhandle


def version_lines() -> list[str]:
    """Package, Python, llvmlite and LLVM versions, one per line."""
    dev = " (dev)" if irhandle.__dev__ else ""
    llvm_ver = ".".join(str(p) for p in llvm.llvm_version_info)
    return [
        f"irhandle {irhandle.__version__}{dev}",
        f"Python {platform.python_version()}",
        f"llvmlite {llvmlite.__version__}",
        f"LLVM {llvm_ver}",
    ]


def print_target_info() -> int:
    """Print versions, the host target and the accepted CPU / level choices."""
    from irhandle.backend.native import initialize_native_backend
    from irhandle.backend.targets import CPU, CodegenLevel

    initialize_native_backend()
    for line in version_lines():
        print(line)
    print()
    print(f"Default triple: {llvm.get_default_triple()}")
    print(f"Host CPU: {llvm.get_host_cpu_name()}")
    print()

    print("CPUs:")
    for cpu in CPU:
        print(f"  {cpu.value:<8} {cpu.triple()}")
    print()

    print("Codegen levels:")
    for level in CodegenLevel:
        print(f"  {level.name}  {level.description}")

    return 0


def verify_file(source: Path) -> int:
    """Parse and verify a textual IR file.

    Returns:
        0 if the file verifies, 2 otherwise.
    """
    from irhandle.backend.emission import verify_assembly

    try:
        text = source.read_text(encoding="utf-8")
    except OSError as e:
        print(f"error: cannot read {source}: {e.strerror or e}", file=sys.stderr)
        return 2

    verify_assembly(text, source.stem)
    print(f"{source}: ok")
    return 0


def emit_file(args: argparse.Namespace) -> int:
    from irhandle.backend.emission import emit_assembly_file
    from irhandle.backend.targets import CPU, CodegenLevel

    source = Path(args.source)
    out = Path(args.out) if args.out else source.with_suffix(".o")
    written = emit_assembly_file(
        source,
        opt_level=CodegenLevel.parse(args.opt),
        output_path=out,
        cpu=CPU.parse(args.cpu),
        verify=not args.no_verify,
    )
    print(f"wrote {written}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="irhandle", description="LLVM IR verification and object emission")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log lifecycle events at DEBUG level")
    ap.add_argument(
        "--traceback",
        action="store_true",
        help="Print full traceback on backend errors (for debugging)",
    )
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("info", help="Show versions, host target and configuration choices")

    p_verify = sub.add_parser("verify", help="Verify a textual IR file (.ll)")
    p_verify.add_argument("source", help="Path to IR file")

    p_emit = sub.add_parser("emit", help="Emit a textual IR file as an object file")
    p_emit.add_argument("source", help="Path to IR file")
    p_emit.add_argument("-o", "--out", metavar="OUT",
                        help="Output object path (default: source filename with .o)")
    p_emit.add_argument("--cpu", choices=["native", "x86-64", "i686"], default="native",
                        help="Target CPU")
    p_emit.add_argument("--opt", choices=["O0", "O1", "O2", "O3"], default="O2",
                        help="Code generation level")
    p_emit.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip IR verification before emission.",
    )
    return ap


def main(argv: list[str] | None = None) -> int:
    """Command line entry point."""
    from irhandle.internals.errors import IRHandleError

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "info":
        return print_target_info()

    try:
        if args.command == "verify":
            return verify_file(Path(args.source))
        return emit_file(args)
    except IRHandleError as e:
        if args.traceback:
            traceback.print_exc()
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
