"""Per-crate naming context used by code generation.

One ``CrateContext`` exists per compiled unit. It is created after the link
identity is known and lives until the object file has been emitted; code
generation asks it for every symbol name it writes.
"""
from __future__ import annotations

from typing import Optional, Sequence

from cratelink.backend.hash_utils import HashState
from cratelink.backend.link_meta import LinkMeta
from cratelink.backend.name_mangling import NameGenerator, exported_name, mangle
from cratelink.backend.symbol_hash import SymbolHasher, TypeDescriptor, TypeHashCache


class CrateContext:
    """Symbol naming services for one crate."""

    def __init__(self, link_meta: LinkMeta, state: Optional[HashState] = None) -> None:
        self.link_meta = link_meta
        self.type_hashcodes = TypeHashCache()
        self.symbol_hasher = SymbolHasher(link_meta, state=state, cache=self.type_hashcodes)
        self.names = NameGenerator()

    def get_symbol_hash(self, t: TypeDescriptor) -> str:
        return self.symbol_hasher.get_symbol_hash(t)

    def mangled_name(self, path: Sequence[str], t: TypeDescriptor, exported: bool) -> str:
        """Name for an entity at ``path`` with type ``t``.

        Exported names end in the type hash and crate version so they stay
        unique across every crate in the final link. Internal names only
        need to be unique within this object file and omit the version.
        """
        if exported:
            return self.mangle_exported_name(path, t)
        return mangle([*path, self.get_symbol_hash(t)])

    def mangle_exported_name(self, path: Sequence[str], t: TypeDescriptor) -> str:
        return exported_name(path, self.get_symbol_hash(t), self.link_meta.vers)

    def mangle_internal_name_by_type_only(self, t: TypeDescriptor, name: str) -> str:
        return mangle([name, t.display, self.get_symbol_hash(t)])

    def mangle_internal_name_by_path_and_seq(self, path: Sequence[str], flavor: str) -> str:
        return mangle([*path, self.names.fresh(flavor)])

    def mangle_internal_name_by_path(self, path: Sequence[str]) -> str:
        return mangle(path)

    def mangle_internal_name_by_seq(self, flavor: str) -> str:
        return self.names.fresh(flavor)
