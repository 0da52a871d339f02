"""System linker orchestration.

Turns one compiled object file plus its crate dependencies into an
executable or a shared library by assembling a ``cc`` command line and
running it. All OS-specific choices come from the platform table in
``platform_detect``.
"""
from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from cratelink.backend.artifact import output_dll_filename
from cratelink.backend.link_meta import LinkMeta
from cratelink.backend.platform_detect import PlatformInfo, TargetOS, TargetPlatform, platform_info
from cratelink.backend.process import ProcessRunner, SubprocessRunner
from cratelink.backend.rpath import get_rpath_flags
from cratelink.internals import errors as er
from cratelink.internals.errors import CodedError
from cratelink.internals.report import Reporter


ARCHIVE_SUFFIXES = (".rlib", ".a")
RUNTIME_LIB = "cratert"
MORESTACK_LIB = "morestack"


class LinkError(CodedError):
    """Fatal link-stage failure (CE4003, CE4004, CE4010)."""


@dataclass(frozen=True)
class Dependency:
    """A crate this unit links against.

    Attributes:
        path: The archive (``.rlib``/``.a``) or shared library file.
        identity: The dependency's link identity, when known.
        link_args: Raw linker arguments the dependency asks its users to pass.
    """
    path: Path
    identity: Optional[LinkMeta] = None
    link_args: tuple[str, ...] = ()

    @property
    def is_archive(self) -> bool:
        return self.path.suffix in ARCHIVE_SUFFIXES


@dataclass
class LinkRequest:
    """Everything the link stage needs for one unit."""
    obj_filename: Path
    out_filename: Path
    link_meta: LinkMeta
    target: TargetPlatform
    building_library: bool = False
    dependencies: list[Dependency] = field(default_factory=list)
    used_libraries: list[str] = field(default_factory=list)
    link_args: list[str] = field(default_factory=list)
    addl_lib_search_paths: list[Path] = field(default_factory=list)
    save_temps: bool = False


@dataclass
class LinkCommand:
    """Program plus its ordered argument list."""
    program: str
    args: list[str] = field(default_factory=list)

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def __str__(self) -> str:
        return shlex.join(self.argv)


def unlib(info: PlatformInfo, stem: str) -> str:
    """Convert a library file stem into a ``-l`` argument.

    ``libfoo`` -> ``foo`` unless the platform keeps the prefix.
    """
    if info.strips_lib_prefix and stem.startswith("lib"):
        return stem[3:]
    return stem


def resolve_target_os(target: TargetPlatform) -> TargetOS:
    os = target.target_os
    if os is None:
        raise LinkError("CE4010", os=target.os, triple=target.triple)
    return os


class LinkOrchestrator:
    """Builds and runs the system linker invocation for one unit."""

    def __init__(self, runtime_lib_dir: Path, runner: Optional[ProcessRunner] = None,
                 reporter: Optional[Reporter] = None, cc_prog: Optional[str] = None,
                 verbose: bool = False) -> None:
        """Initialize the orchestrator.

        Args:
            runtime_lib_dir: Directory holding the runtime support library.
            runner: Process boundary (real subprocesses if omitted).
            reporter: Receives non-fatal warnings.
            cc_prog: Linker driver override; the platform default otherwise.
            verbose: If True, print the assembled command.
        """
        self.runtime_lib_dir = runtime_lib_dir
        self.runner = runner or SubprocessRunner()
        self.reporter = reporter if reporter is not None else Reporter()
        self.cc_prog = cc_prog
        self.verbose = verbose

    def output_path(self, request: LinkRequest) -> Path:
        """The file the linker will write.

        Libraries are renamed to their identity-bearing filename inside the
        requested output directory; executables use the path as given.
        """
        if request.building_library:
            os = resolve_target_os(request.target)
            long_libname = output_dll_filename(os, request.link_meta)
            return request.out_filename.parent / long_libname
        return request.out_filename

    def build_command(self, request: LinkRequest, output: Path) -> LinkCommand:
        """Assemble the full linker command for ``request``."""
        os = resolve_target_os(request.target)
        info = platform_info(os)
        cmd = LinkCommand(self.cc_prog or info.cc_prog)
        args = cmd.args

        # The default library location, needed to find the runtime.
        args.append(f"-L{self.runtime_lib_dir}")
        args.extend(request.target.cc_args)
        args.extend(["-o", str(output), str(request.obj_filename)])

        # Crate linking
        rpath_dirs: list[Path] = []
        for dep in request.dependencies:
            if dep.is_archive:
                args.append(str(dep.path))
                continue
            directory = dep.path.parent
            if str(directory) not in ("", "."):
                args.append(f"-L{directory}")
            rpath_dirs.append(directory)
            args.append(f"-l{unlib(info, dep.path.stem)}")

        for dep in request.dependencies:
            args.extend(dep.link_args)
        args.extend(request.link_args)

        # Extern library linking. These paths only help at link time; the
        # libraries still have to be findable at run time by other means.
        for path in request.addl_lib_search_paths:
            args.append(f"-L{path}")
        for lib in request.used_libraries:
            args.append(f"-l{lib}")

        if request.building_library:
            args.append(info.lib_flag)
            if info.install_name:
                args.append(f"-Wl,-install_name,@rpath/{output.name}")

        args.append(f"-l{RUNTIME_LIB}")
        args.extend(info.implicit_libs)
        args.extend(info.extra_flags)
        if info.links_morestack:
            args.append(f"-l{MORESTACK_LIB}")

        args.extend(get_rpath_flags(os, output, rpath_dirs, self.runtime_lib_dir))
        return cmd

    def link_binary(self, request: LinkRequest) -> Path:
        """Link ``request`` and return the artifact path.

        Raises:
            LinkError: CE4003 if the linker exits non-zero (the object file
                is left in place), CE4004 if it cannot be started.
        """
        output = self.output_path(request)
        if self.verbose and request.building_library:
            print(f"link_meta: {request.link_meta}")
            print(f"output: {output}")

        cmd = self.build_command(request, output)
        if self.verbose:
            print(f"{cmd.program} link args: {' '.join(cmd.args)}")

        try:
            result = self.runner.run(cmd.argv)
        except (OSError, subprocess.SubprocessError) as e:
            raise LinkError("CE4004", tool=cmd.program, reason=str(e))

        if result.returncode != 0:
            raise LinkError(
                "CE4003",
                tool=cmd.program,
                status=result.returncode,
                notes=[f"{cmd.program} arguments: {shlex.join(cmd.args)}", result.output],
            )

        os = resolve_target_os(request.target)
        tool = platform_info(os).debug_symbol_tool
        if tool is not None:
            self._extract_debug_symbols(tool, output)

        if not request.save_temps:
            self._remove_object(request.obj_filename)
        return output

    def _extract_debug_symbols(self, tool: str, output: Path) -> None:
        try:
            result = self.runner.run([tool, str(output)])
        except (OSError, subprocess.SubprocessError) as e:
            er.emit(self.reporter, er.ERR.CW4006, None, tool=tool, path=str(output), reason=str(e))
            return
        if result.returncode != 0:
            er.emit(self.reporter, er.ERR.CW4006, None, tool=tool, path=str(output),
                    reason=f"exit code {result.returncode}")

    def _remove_object(self, obj_filename: Path) -> None:
        try:
            obj_filename.unlink()
        except OSError:
            er.emit(self.reporter, er.ERR.CW4005, None, path=str(obj_filename))


def dependency_hashes(dependencies: Sequence[Dependency]) -> list[str]:
    """The identity hashes of dependencies that have one."""
    return [d.identity.extras_hash for d in dependencies if d.identity is not None]
