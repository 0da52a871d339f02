"""Output file naming for library crates."""
from __future__ import annotations

import re
from typing import Optional

from cratelink.backend.hash_utils import HASH_WIDTH
from cratelink.backend.link_meta import LinkMeta
from cratelink.backend.platform_detect import TargetOS, platform_info

ARCHIVE_PREFIX = "lib"


def output_dll_filename(os: TargetOS, lm: LinkMeta) -> str:
    """Shared library filename: ``{prefix}{name}-{extras_hash}-{vers}{suffix}``.

    Example:
        linux, LinkMeta("foo", "0.1", "abcd1234") -> "libfoo-abcd1234-0.1.so"
    """
    info = platform_info(os)
    return f"{info.dll_prefix}{lm.name}-{lm.extras_hash}-{lm.vers}{info.dll_suffix}"


def _parse_libname(core: str, width: int) -> Optional[LinkMeta]:
    m = re.fullmatch(rf"(?P<name>.+?)-(?P<hash>[0-9a-f]{{{width}}})-(?P<vers>.+)", core)
    if m is None:
        return None
    return LinkMeta(name=m.group("name"), vers=m.group("vers"), extras_hash=m.group("hash"))


def parse_dll_filename(os: TargetOS, filename: str, width: int = HASH_WIDTH) -> Optional[LinkMeta]:
    """Recover the link identity from a library filename, if it has one."""
    info = platform_info(os)
    if not filename.startswith(info.dll_prefix) or not filename.endswith(info.dll_suffix):
        return None
    return _parse_libname(filename[len(info.dll_prefix):len(filename) - len(info.dll_suffix)], width)


def parse_archive_filename(filename: str, suffix: str, width: int = HASH_WIDTH) -> Optional[LinkMeta]:
    """Same as ``parse_dll_filename`` for ``lib{name}-{hash}-{vers}{suffix}`` archives."""
    if not filename.startswith(ARCHIVE_PREFIX) or not filename.endswith(suffix):
        return None
    return _parse_libname(filename[len(ARCHIVE_PREFIX):len(filename) - len(suffix)], width)
