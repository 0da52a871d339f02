"""Crate link identity.

Linkers see one flat namespace, while every compiled unit (crate) expects
its own. Each crate therefore gets a link identity made of three parts:

- CNAME: the ``name`` item of ``#[link(...)]``, or the output file stem.
- CVERS: the ``vers`` item, or ``"0.0"``.
- CMH:   a hash over every other exported ``#[link(...)]`` item (sorted)
         followed by the hashes of the crates it depends on (sorted).

A library crate is written to ``{prefix}CNAME-CMH-CVERS{suffix}`` and its
exported symbols carry ``CMH``-derived hashes plus ``CVERS`` in their
mangled names, so two crates that share a name but differ in metadata or
dependencies never clobber each other.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from cratelink.backend.attributes import MetaItem, MetaKind, lit_to_str, sort_meta_items
from cratelink.backend.hash_utils import HashState, len_and_str
from cratelink.internals import errors as er
from cratelink.internals.errors import CodedError
from cratelink.internals.report import Reporter


LINKAGE_ATTR = "link"
DEFAULT_VERS = "0.0"


class LinkMetaError(CodedError):
    """Raised when a unit's link metadata cannot be turned into an identity."""


@dataclass(frozen=True)
class LinkMeta:
    """Immutable link identity of one compiled unit."""
    name: str
    vers: str
    extras_hash: str

    def __str__(self) -> str:
        return f"{self.name}-{self.extras_hash}-{self.vers}"


@dataclass
class ProvidedMetas:
    name: Optional[str]
    vers: Optional[str]
    cmh_items: list[MetaItem]


def find_linkage_metas(attrs: Iterable[MetaItem]) -> list[MetaItem]:
    """Collect the items of every ``link(...)`` list attribute."""
    metas: list[MetaItem] = []
    for attr in attrs:
        if attr.name == LINKAGE_ATTR and attr.kind is MetaKind.LIST:
            metas.extend(attr.items)
    return metas


def require_unique_names(metas: Iterable[MetaItem]) -> None:
    """Raise CE4002 on the first repeated item name."""
    seen: set[str] = set()
    for meta in metas:
        if meta.name in seen:
            raise LinkMetaError("CE4002", span=meta.span, name=meta.name)
        seen.add(meta.name)


def provided_link_metas(attrs: Iterable[MetaItem]) -> ProvidedMetas:
    """Split linkage items into name, vers and the rest.

    ``name``/``vers`` only count when they carry a string value; any other
    shape is hashed like an ordinary item.
    """
    name = None
    vers = None
    cmh_items: list[MetaItem] = []
    linkage_metas = find_linkage_metas(attrs)
    require_unique_names(linkage_metas)
    for meta in linkage_metas:
        if meta.name == "name" and meta.value_str is not None:
            name = meta.value_str
        elif meta.name == "vers" and meta.value_str is not None:
            vers = meta.value_str
        else:
            cmh_items.append(meta)
    return ProvidedMetas(name, vers, cmh_items)


# Each item is prefixed with its kind so a list, a value and a word never
# produce the same stream. The dependency block opens with its own marker.
_KIND_TAGS = {MetaKind.WORD: "w", MetaKind.NAME_VALUE: "nv", MetaKind.LIST: "l"}
DEPS_MARKER = "deps"


def _write_meta_item(state: HashState, item: MetaItem) -> None:
    state.write_str(len_and_str(_KIND_TAGS[item.kind]))
    state.write_str(len_and_str(item.name))
    if item.kind is MetaKind.NAME_VALUE:
        state.write_str(len_and_str(lit_to_str(item.value)))
    elif item.kind is MetaKind.LIST:
        state.write_str(len_and_str(str(len(item.items))))
        for sub in item.items:
            _write_meta_item(state, sub)


def crate_meta_extras_hash(state: HashState, cmh_items: Iterable[MetaItem],
                           dep_hashes: Iterable[str]) -> str:
    """Compute CMH over sorted extra items and sorted dependency hashes."""
    state.reset()
    for item in sort_meta_items(cmh_items):
        _write_meta_item(state, item)
    state.write_str(len_and_str(DEPS_MARKER))
    for dh in sorted(dep_hashes):
        state.write_str(len_and_str(dh))
    return state.result_str()


def _warn_missing(reporter: Optional[Reporter], name: str, default: str) -> None:
    if reporter is not None:
        er.emit(reporter, er.ERR.CW4001, None, name=name, default=default)


def crate_meta_name(output: Path, opt_name: Optional[str],
                    reporter: Optional[Reporter] = None) -> str:
    if opt_name is not None:
        return opt_name
    stem = Path(output).stem
    if not stem:
        raise LinkMetaError("CE4007", path=str(output))
    _warn_missing(reporter, "name", stem)
    return stem


def crate_meta_vers(opt_vers: Optional[str], reporter: Optional[Reporter] = None) -> str:
    if opt_vers is not None:
        return opt_vers
    _warn_missing(reporter, "vers", DEFAULT_VERS)
    return DEFAULT_VERS


def build_link_meta(attrs: Iterable[MetaItem], output: Path,
                    dep_hashes: Iterable[str] = (),
                    reporter: Optional[Reporter] = None,
                    state: Optional[HashState] = None) -> LinkMeta:
    """Build the link identity of a unit.

    Args:
        attrs: All crate-level attributes of the unit.
        output: Output path requested by the user (used to infer the name).
        dep_hashes: Hashes of every crate this unit links against.
        reporter: Receives CW4001 when name or vers is inferred.
        state: Hash state to use (a fresh default one if omitted).

    Raises:
        LinkMetaError: CE4002 on duplicate items, CE4007 when the name
            must be inferred from an output path without a stem.
    """
    provided = provided_link_metas(attrs)
    name = crate_meta_name(output, provided.name, reporter)
    vers = crate_meta_vers(provided.vers, reporter)
    extras_hash = crate_meta_extras_hash(state or HashState(), provided.cmh_items, dep_hashes)
    return LinkMeta(name=name, vers=vers, extras_hash=extras_hash)
