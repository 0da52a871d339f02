"""Symbol type hashes (STH).

Two entities with the same path but different types (typically two
monomorphized instantiations of one generic function) must still get
different linkage names. STH(sym) = hash(CNAME, CMH, encoded type), so the
hash differs whenever the crate identity or the type encoding differs.

Hashing a type encoding is comparatively expensive and the same type is
asked for many times while emitting one crate, so results are memoized per
type key for the lifetime of the crate context.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

from cratelink.backend.hash_utils import HashState
from cratelink.backend.link_meta import LinkMeta


TypeKey = Union[str, int]


@dataclass(frozen=True)
class TypeDescriptor:
    """A fully resolved type as seen by the mangler.

    Attributes:
        encoding: Serialized type encoding (what gets hashed).
        key: Stable identity for memoization; defaults to the encoding.
        short_name: Short human form used in internal symbol names.
    """
    encoding: str
    key: Optional[TypeKey] = None
    short_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.key is None:
            object.__setattr__(self, "key", self.encoding)

    @property
    def display(self) -> str:
        return self.short_name if self.short_name is not None else self.encoding


def symbol_hash(state: HashState, link_meta: LinkMeta, encoding: str) -> str:
    """Compute STH for one type encoding.

    The result is prefixed with ``_`` so it never blends into the digits of
    a length prefix when mangled.
    """
    state.reset()
    state.write_str(link_meta.name)
    state.write_str("-")
    state.write_str(link_meta.extras_hash)
    state.write_str("-")
    state.write_str(encoding)
    return "_" + state.result_str()


class TypeHashCache:
    """Thread-safe insert-if-absent table from type key to STH.

    ``computed`` counts how many hashes were actually produced.
    """

    def __init__(self) -> None:
        self._hashes: Dict[TypeKey, str] = {}
        self._lock = threading.Lock()
        self.computed = 0

    def get_or_compute(self, key: TypeKey, compute: Callable[[], str]) -> str:
        with self._lock:
            found = self._hashes.get(key)
            if found is not None:
                return found
            value = compute()
            self._hashes[key] = value
            self.computed += 1
            return value

    def get(self, key: TypeKey) -> Optional[str]:
        with self._lock:
            return self._hashes.get(key)

    def __contains__(self, key: TypeKey) -> bool:
        with self._lock:
            return key in self._hashes

    def __len__(self) -> int:
        with self._lock:
            return len(self._hashes)


class SymbolHasher:
    """Owns the hash state and type cache for one crate."""

    def __init__(self, link_meta: LinkMeta, state: Optional[HashState] = None,
                 cache: Optional[TypeHashCache] = None) -> None:
        self.link_meta = link_meta
        self.state = state or HashState()
        self.cache = cache if cache is not None else TypeHashCache()

    def get_symbol_hash(self, t: TypeDescriptor) -> str:
        # The cache lock also serializes use of the shared hash state.
        return self.cache.get_or_compute(
            t.key, lambda: symbol_hash(self.state, self.link_meta, t.encoding))
