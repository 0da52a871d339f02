"""
Platform detection and the per-OS link table.

Every OS-dependent decision of the link stage (library file naming, the
linker program, implicit system libraries, extra flags) is looked up in
``PLATFORMS`` instead of being branched on at each call site.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from llvmlite import binding as llvm


class TargetOS(str, Enum):
    WIN32 = "win32"
    MACOS = "macos"
    LINUX = "linux"
    ANDROID = "android"
    FREEBSD = "freebsd"


@dataclass(frozen=True)
class PlatformInfo:
    """Link conventions of one target OS."""
    dll_prefix: str
    dll_suffix: str
    cc_prog: str
    lib_flag: str                          # shared/dynamic library output flag
    implicit_libs: tuple[str, ...] = ()    # system libraries the runtime needs
    extra_flags: tuple[str, ...] = ()
    strips_lib_prefix: bool = True         # "libfoo.so" is linked as -lfoo
    install_name: bool = False             # needs -install_name for rpath use
    links_morestack: bool = True
    rpath_origin: Optional[str] = None     # runtime token for "the binary's dir"
    debug_symbol_tool: Optional[str] = None


PLATFORMS: dict[TargetOS, PlatformInfo] = {
    TargetOS.WIN32: PlatformInfo(
        dll_prefix="",
        dll_suffix=".dll",
        cc_prog="gcc",
        lib_flag="-shared",
        strips_lib_prefix=False,
    ),
    TargetOS.MACOS: PlatformInfo(
        dll_prefix="lib",
        dll_suffix=".dylib",
        cc_prog="cc",
        lib_flag="-dynamiclib",
        # The compact unwinder can't walk our stack-growth frames.
        extra_flags=("-Wl,-no_compact_unwind",),
        install_name=True,
        rpath_origin="@loader_path",
        debug_symbol_tool="dsymutil",
    ),
    TargetOS.LINUX: PlatformInfo(
        dll_prefix="lib",
        dll_suffix=".so",
        cc_prog="cc",
        lib_flag="-shared",
        # librt/libdl are indirect runtime dependencies; libm backs frem.
        implicit_libs=("-lrt", "-ldl", "-lm"),
        rpath_origin="$ORIGIN",
    ),
    TargetOS.ANDROID: PlatformInfo(
        dll_prefix="lib",
        dll_suffix=".so",
        cc_prog="arm-linux-androideabi-g++",
        lib_flag="-shared",
        implicit_libs=("-ldl", "-llog", "-lsupc++", "-lgnustl_shared", "-lm"),
        links_morestack=False,
        rpath_origin="$ORIGIN",
    ),
    TargetOS.FREEBSD: PlatformInfo(
        dll_prefix="lib",
        dll_suffix=".so",
        cc_prog="cc",
        lib_flag="-shared",
        extra_flags=(
            "-pthread", "-lrt",
            "-L/usr/local/lib", "-lexecinfo",
            "-L/usr/local/lib/gcc46",
            "-L/usr/local/lib/gcc44", "-lstdc++",
            "-Wl,-z,origin",
            "-Wl,-rpath,/usr/local/lib/gcc46",
            "-Wl,-rpath,/usr/local/lib/gcc44",
        ),
        rpath_origin="$ORIGIN",
    ),
}

# Code model flags passed to the C compiler driver per architecture.
ARCH_CC_ARGS: dict[str, tuple[str, ...]] = {
    "x86_64": ("-m64",),
    "amd64": ("-m64",),
    "i386": ("-m32",),
    "i686": ("-m32",),
    "x86": ("-m32",),
    "arm": ("-marm",),
}

_OS_ALIASES = {
    "linux": TargetOS.LINUX,
    "darwin": TargetOS.MACOS,
    "macos": TargetOS.MACOS,
    "macosx": TargetOS.MACOS,
    "windows": TargetOS.WIN32,
    "win32": TargetOS.WIN32,
    "mingw": TargetOS.WIN32,
    "android": TargetOS.ANDROID,
    "androideabi": TargetOS.ANDROID,
    "freebsd": TargetOS.FREEBSD,
}


def platform_info(os: TargetOS) -> PlatformInfo:
    return PLATFORMS[os]


@dataclass
class TargetPlatform:
    """Represents a compilation target platform."""
    arch: str      # arm64, x86_64, riscv64, etc.
    vendor: str    # apple, pc, unknown, etc.
    os: str        # darwin, linux, windows, etc.
    abi: str       # (empty), gnu, musl, etc.

    @property
    def target_os(self) -> Optional[TargetOS]:
        """The OS table key for this target, or None if unsupported."""
        # arm-linux-androideabi puts the android marker in the abi slot
        if self.abi.startswith("android"):
            return TargetOS.ANDROID
        return _OS_ALIASES.get(self.os)

    @property
    def cc_args(self) -> tuple[str, ...]:
        return ARCH_CC_ARGS.get(self.arch, ())

    @property
    def triple(self) -> str:
        """Reconstruct the target triple string."""
        parts = [self.arch, self.vendor, self.os]
        if self.abi:
            parts.append(self.abi)
        return '-'.join(parts)


def _strip_os_version(os_part: str) -> str:
    # darwin25.0.0 -> darwin, freebsd13.2 -> freebsd
    stripped = os_part.rstrip("0123456789.")
    return stripped or os_part


def parse_triple(triple: str) -> TargetPlatform:
    """
    Parse an LLVM target triple into components.

    Examples:
        arm64-apple-darwin25.0.0 -> TargetPlatform(arm64, apple, darwin, '')
        x86_64-pc-linux-gnu -> TargetPlatform(x86_64, pc, linux, gnu)
        x86_64-w64-windows-msvc -> TargetPlatform(x86_64, w64, windows, msvc)
        arm-linux-androideabi -> TargetPlatform(arm, unknown, linux, androideabi)
    """
    parts = triple.split('-')

    # Three-part triples with a known OS in the vendor slot omit the vendor.
    if len(parts) == 3 and _strip_os_version(parts[1]) in _OS_ALIASES:
        parts = [parts[0], "unknown", parts[1], parts[2]]

    os_part = _strip_os_version(parts[2]) if len(parts) > 2 else 'unknown'

    return TargetPlatform(
        arch=parts[0] if len(parts) > 0 else 'unknown',
        vendor=parts[1] if len(parts) > 1 else 'unknown',
        os=os_part,
        abi=parts[3] if len(parts) > 3 else '',
    )


def get_current_platform() -> TargetPlatform:
    """Get the platform for the current compilation."""
    return parse_triple(llvm.get_default_triple())
