"""Input resolution: working directory, sysroot, attribute files and dependencies."""
from __future__ import annotations

import os
import platform
import shlex
import sys
from pathlib import Path
from typing import Iterable, Optional, Sequence

from cratelink.backend.artifact import ARCHIVE_PREFIX, parse_archive_filename, parse_dll_filename
from cratelink.backend.attributes import MetaItem, MetaKind
from cratelink.backend.hash_utils import HASH_WIDTH
from cratelink.backend.link_meta import DEFAULT_VERS, LinkMeta, LinkMetaError
from cratelink.backend.linker import Dependency, unlib
from cratelink.backend.platform_detect import TargetOS, platform_info
from cratelink.compiler.fingerprint import compute_file_fingerprint
from cratelink.internals.errors import CodedError
from cratelink.internals.parser import parse_attributes

ENV_CWD = "CRATELINK_CWD"
ENV_SYSROOT = "CRATELINK_SYSROOT"
ENV_LIB_PATH = "CRATELINK_LIB_PATH"

LINK_ARGS_ATTR = "link_args"
SIDECAR_SUFFIX = ".attrs"


class LoadError(CodedError):
    """An input file is missing or unreadable (CE4009, CE4011)."""


def get_effective_cwd() -> Path:
    """Get the effective current working directory for file resolution.

    Checks for the CRATELINK_CWD environment variable set by wrapper
    scripts. If present, uses that directory. Otherwise falls back to
    os.getcwd().
    """
    cwd = os.environ.get(ENV_CWD)
    if cwd:
        return Path(cwd)
    return Path.cwd()


def resolve_input_path(path: str | Path) -> Path:
    """Anchor a relative command-line path at the effective cwd."""
    p = Path(path)
    if not p.is_absolute():
        p = get_effective_cwd() / p
    return p


def get_sysroot(override: Optional[str] = None) -> Path:
    """Sysroot from ``--sysroot``, then CRATELINK_SYSROOT, then the interpreter prefix."""
    if override:
        return Path(override).expanduser()
    env = os.environ.get(ENV_SYSROOT)
    if env:
        return Path(env).expanduser()
    return Path(sys.prefix)


def target_lib_dir(sysroot: Path, triple: str) -> Path:
    """Directory holding the runtime support library for ``triple``."""
    return sysroot / "lib" / "cratelink" / triple / "lib"


def get_search_paths() -> list[Path]:
    """Get dependency search paths from the CRATELINK_LIB_PATH environment variable.

    Default:
        [effective cwd] if CRATELINK_LIB_PATH is not set.
    """
    cwd = get_effective_cwd()
    lib_path = os.environ.get(ENV_LIB_PATH)
    if not lib_path:
        return [cwd]

    # Split by : on Unix, ; on Windows
    separator = ';' if platform.system() == 'Windows' else ':'

    paths = []
    for path_str in lib_path.split(separator):
        path_str = path_str.strip()
        if path_str:
            paths.append(Path(path_str).expanduser())

    # Always include current directory as fallback
    if cwd not in paths:
        paths.append(cwd)
    return paths


def read_attributes(path: Path) -> list[MetaItem]:
    """Read and parse an attribute declaration file.

    Raises:
        LoadError: CE4011 if the file cannot be read.
        LinkMetaError: CE4008 if it is not well formed.
    """
    try:
        src = path.read_text(encoding="utf-8")
    except OSError as e:
        raise LoadError("CE4011", path=str(path), reason=e.strerror or str(e)) from None
    return parse_attributes(src)


def collect_link_args(attrs: Iterable[MetaItem]) -> list[str]:
    """Split every ``#[link_args = "..."]`` attribute into linker arguments."""
    args: list[str] = []
    for attr in attrs:
        if attr.name == LINK_ARGS_ATTR and attr.kind is MetaKind.NAME_VALUE and attr.value_str is not None:
            args.extend(shlex.split(attr.value_str))
    return args


def locate_dependency(dep: str, search_paths: Optional[Sequence[Path]] = None) -> Path:
    """Find a dependency file given on the command line.

    Absolute paths are used as given; relative ones are tried against the
    effective cwd and then each search path.

    Raises:
        LoadError: CE4009 if no candidate exists.
    """
    p = Path(dep).expanduser()
    if p.is_absolute():
        if p.is_file():
            return p
        raise LoadError("CE4009", path=dep, paths=str(p.parent))

    paths = list(search_paths) if search_paths is not None else get_search_paths()
    candidate = get_effective_cwd() / p
    if candidate.is_file():
        return candidate
    for search_dir in paths:
        candidate = search_dir / p
        if candidate.is_file():
            return candidate

    search_str = ', '.join(str(sp) for sp in paths)
    raise LoadError("CE4009", path=dep, paths=search_str)


def dependency_identity(path: Path, os_: TargetOS) -> LinkMeta:
    """Link identity of a dependency file.

    Taken from the filename when it follows the crate naming convention;
    otherwise the name is the file stem, the version is the default and the
    hash is a truncated fingerprint of the file content.
    """
    dep = Dependency(path)
    if dep.is_archive:
        found = parse_archive_filename(path.name, path.suffix)
        stem = path.stem[len(ARCHIVE_PREFIX):] if path.stem.startswith(ARCHIVE_PREFIX) else path.stem
    else:
        found = parse_dll_filename(os_, path.name)
        stem = unlib(platform_info(os_), path.stem)
    if found is not None:
        return found
    return LinkMeta(name=stem, vers=DEFAULT_VERS,
                    extras_hash=compute_file_fingerprint(path, HASH_WIDTH))


def sidecar_link_args(path: Path) -> tuple[str, ...]:
    """Link args a dependency declares in ``<file>.attrs`` next to it, if present."""
    sidecar = path.with_name(path.name + SIDECAR_SUFFIX)
    if not sidecar.is_file():
        return ()
    try:
        attrs = read_attributes(sidecar)
    except LinkMetaError as e:
        where = f"{sidecar}:{e.span.line}:{e.span.col}" if e.span else str(sidecar)
        raise LinkMetaError("CE4008", reason=f"{where}: {e.kwargs.get('reason', e.message)}") from None
    return tuple(collect_link_args(attrs))


def resolve_dependency(dep: str, os_: TargetOS,
                       search_paths: Optional[Sequence[Path]] = None) -> Dependency:
    """Turn a ``--dep`` argument into a ``Dependency`` with identity and link args."""
    path = locate_dependency(dep, search_paths)
    try:
        identity = dependency_identity(path, os_)
    except OSError as e:
        raise LoadError("CE4011", path=str(path), reason=e.strerror or str(e)) from None
    return Dependency(path=path, identity=identity, link_args=sidecar_link_args(path))
