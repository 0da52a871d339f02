"""Runtime search path (rpath) flags.

Dynamic crate dependencies must be found again at run time. For every
directory a dependency was linked from, the output gets:

1. a path relative to the output's own directory (``$ORIGIN/..`` on ELF,
   ``@loader_path/..`` on Mach-O), so installed trees can be moved;
2. the absolute directory, for running straight from the build tree;
3. the installed runtime library directory as a last resort.

Duplicates are dropped, keeping the first occurrence.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional

from cratelink.backend.platform_detect import TargetOS, platform_info


def rpaths_to_flags(rpaths: Iterable[str]) -> list[str]:
    return [f"-Wl,-rpath,{p}" for p in rpaths]


def get_rpath_relative_to_output(origin: str, output: Path, lib_dir: Path) -> str:
    out_dir = os.path.dirname(os.path.abspath(output))
    rel = os.path.relpath(os.path.abspath(lib_dir), out_dir)
    rel = Path(rel).as_posix()
    if rel == ".":
        return origin
    return f"{origin}/{rel}"


def minimize_rpaths(rpaths: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for rp in rpaths:
        if rp not in seen:
            seen.add(rp)
            out.append(rp)
    return out


def get_rpaths(origin: str, output: Path, lib_dirs: Iterable[Path],
               runtime_lib_dir: Optional[Path] = None) -> list[str]:
    lib_dirs = list(lib_dirs)
    rel_rpaths = [get_rpath_relative_to_output(origin, output, d) for d in lib_dirs]
    abs_rpaths = [Path(os.path.abspath(d)).as_posix() for d in lib_dirs]
    fallback = [Path(os.path.abspath(runtime_lib_dir)).as_posix()] if runtime_lib_dir else []
    return minimize_rpaths(rel_rpaths + abs_rpaths + fallback)


def get_rpath_flags(os_: TargetOS, output: Path, lib_dirs: Iterable[Path],
                    runtime_lib_dir: Optional[Path] = None) -> list[str]:
    """Linker flags embedding rpaths for ``lib_dirs``; none on Windows."""
    origin = platform_info(os_).rpath_origin
    if origin is None:
        return []
    return rpaths_to_flags(get_rpaths(origin, output, lib_dirs, runtime_lib_dir))
