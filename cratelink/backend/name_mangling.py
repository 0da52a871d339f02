"""Linker-safe symbol name mangling.

Paths are flattened with the C++ namespace scheme::

    ["mod", "item"]  ->  _ZN3mod4item E  (without the space)

Each segment is first sanitized to an identifier charset, then written as
its UTF-8 byte length followed by its text. Because every segment carries
its own length, a sequence of segments can always be split back apart
(see ``demangle``).

Exported symbols get two trailing segments, the symbol type hash and the
crate version::

    exported_name(["mod", "item"], "_abc", "0.1") -> "_ZN3mod4item4_abc3_01E"
"""
from __future__ import annotations

import itertools
import threading
from typing import Iterable, List


MANGLE_START = "_ZN"
MANGLE_END = "E"

# Characters with a readable replacement; everything else outside the
# identifier charset is dropped.
_REPLACEMENTS = {
    '@': "_sbox_",
    '~': "_ubox_",
    '*': "_ptr_",
    '&': "_ref_",
    ',': "_",
    '{': "_of_",
    '(': "_of_",
}


def _is_ascii_ident_char(c: str) -> bool:
    return c == '_' or ('a' <= c <= 'z') or ('A' <= c <= 'Z') or ('0' <= c <= '9')


def _is_xid_start(c: str) -> bool:
    return c.isidentifier()


def _is_xid_continue(c: str) -> bool:
    return ("a" + c).isidentifier()


def sanitize(s: str) -> str:
    """Map a name onto characters every assembler accepts.

    Examples:
        "Option<~T>"   -> "Option_ubox_T"
        "fn(int, int)" -> "fn_of_int_int"
        "0.1"          -> "_01"

    The result never starts with a digit; sanitize is idempotent.
    """
    result: List[str] = []
    for c in s:
        replacement = _REPLACEMENTS.get(c)
        if replacement is not None:
            result.append(replacement)
        elif _is_ascii_ident_char(c):
            result.append(c)
        elif c > 'z' and _is_xid_continue(c):
            result.append(c)
    out = "".join(result)

    # Underscore-qualify anything that didn't start as an ident.
    if out and out[0] != '_' and not _is_xid_start(out[0]):
        return "_" + out
    return out


def mangle(path: Iterable[str]) -> str:
    """Encode a path as ``_ZN`` + ``{len}{segment}``... + ``E``."""
    parts = [MANGLE_START]
    for segment in path:
        sani = sanitize(segment)
        parts.append(f"{len(sani.encode('utf-8'))}{sani}")
    parts.append(MANGLE_END)
    return "".join(parts)


def demangle(symbol: str) -> List[str]:
    """Split a mangled name back into its (sanitized) segments.

    Raises:
        ValueError: If ``symbol`` is not a well-formed mangled name.
    """
    if not (symbol.startswith(MANGLE_START) and symbol.endswith(MANGLE_END)) \
            or len(symbol) < len(MANGLE_START) + len(MANGLE_END):
        raise ValueError(f"not a mangled name: {symbol!r}")
    body = symbol[len(MANGLE_START):-len(MANGLE_END)].encode("utf-8")

    segments: List[str] = []
    i = 0
    while i < len(body):
        # Lengths never have leading zeros, so a lone '0' is an empty segment.
        if body[i:i + 1] == b"0":
            segments.append("")
            i += 1
            continue
        j = i
        while j < len(body) and body[j:j + 1].isdigit():
            j += 1
        if j == i:
            raise ValueError(f"expected segment length at byte {i} of {symbol!r}")
        n = int(body[i:j])
        seg = body[j:j + n]
        if len(seg) != n:
            raise ValueError(f"segment at byte {i} of {symbol!r} is truncated")
        segments.append(seg.decode("utf-8"))
        i = j + n
    return segments


def exported_name(path: Iterable[str], hash: str, vers: str) -> str:
    """Mangle an exported symbol: path, then the type hash, then the version."""
    return mangle([*path, hash, vers])


class NameGenerator:
    """Hands out ``{flavor}_{n}`` names with a crate-wide counter."""

    def __init__(self) -> None:
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def fresh(self, flavor: str) -> str:
        with self._lock:
            n = next(self._counter)
        return f"{flavor}_{n}"
