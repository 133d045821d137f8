"""
Target triple parsing for irhandle.

Splits an LLVM target triple into its parts so the emission façade can
retarget the host triple to a different architecture (x86-64 or i686)
while keeping the host vendor, OS and ABI.
"""
from __future__ import annotations
from dataclasses import dataclass, replace
from llvmlite import binding as llvm


@dataclass(frozen=True)
class TargetPlatform:
    """Represents a compilation target platform."""
    arch: str      # x86_64, i686, aarch64, etc.
    vendor: str    # apple, pc, unknown, etc.
    os: str        # darwin25.0.0, linux, windows, etc.
    abi: str       # (empty), gnu, musl, etc.

    @property
    def is_x86(self) -> bool:
        """Returns True for any 32- or 64-bit x86 architecture."""
        return self.arch in {'x86_64', 'amd64', 'i386', 'i486', 'i586', 'i686'}

    @property
    def is_linux(self) -> bool:
        return self.os == 'linux'

    @property
    def is_darwin(self) -> bool:
        return self.os.startswith('darwin') or self.os.startswith('macos')

    @property
    def triple(self) -> str:
        """Reconstruct the target triple string."""
        parts = [self.arch, self.vendor, self.os]
        if self.abi:
            parts.append(self.abi)
        return '-'.join(parts)

    def with_arch(self, arch: str) -> 'TargetPlatform':
        return replace(self, arch=arch)


def parse_triple(triple: str) -> TargetPlatform:
    """
    Parse an LLVM target triple into components.

    Unlike a platform check, the OS part keeps its version suffix so that
    ``parse_triple(t).triple == t`` for every well-formed triple.

    Examples:
        x86_64-pc-linux-gnu -> TargetPlatform(x86_64, pc, linux, gnu)
        arm64-apple-darwin25.0.0 -> TargetPlatform(arm64, apple, darwin25.0.0, '')
    """
    parts = triple.split('-')

    return TargetPlatform(
        arch=parts[0] if len(parts) > 0 else 'unknown',
        vendor=parts[1] if len(parts) > 1 else 'unknown',
        os=parts[2] if len(parts) > 2 else 'unknown',
        abi='-'.join(parts[3:]) if len(parts) > 3 else '',
    )


def get_current_platform() -> TargetPlatform:
    """Get the host platform."""
    return parse_triple(llvm.get_default_triple())
