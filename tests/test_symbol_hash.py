from __future__ import annotations

import threading

from cratelink.backend.hash_utils import HASH_WIDTH, HashState
from cratelink.backend.link_meta import LinkMeta
from cratelink.backend.symbol_hash import SymbolHasher, TypeDescriptor, TypeHashCache, symbol_hash


def test_symbol_hash_shape(foo_meta: LinkMeta) -> None:
    h = symbol_hash(HashState(), foo_meta, "fn(int) -> int")
    assert h.startswith("_")
    assert len(h) == HASH_WIDTH + 1


def test_distinct_encodings_give_distinct_hashes(foo_meta: LinkMeta) -> None:
    hasher = SymbolHasher(foo_meta)
    encodings = ["int", "uint", "fn(int)", "fn(uint)", "Option<int>", "Option<~int>", "*u8", "&u8"]
    hashes = {hasher.get_symbol_hash(TypeDescriptor(e)) for e in encodings}
    assert len(hashes) == len(encodings)


def test_hash_depends_on_crate_identity(foo_meta: LinkMeta) -> None:
    other_hash = LinkMeta(foo_meta.name, foo_meta.vers, "fedcba9876543210")
    other_name = LinkMeta("bar", foo_meta.vers, foo_meta.extras_hash)
    t = TypeDescriptor("fn(int) -> int")
    base = SymbolHasher(foo_meta).get_symbol_hash(t)
    assert SymbolHasher(other_hash).get_symbol_hash(t) != base
    assert SymbolHasher(other_name).get_symbol_hash(t) != base


def test_version_does_not_feed_symbol_hash(foo_meta: LinkMeta) -> None:
    newer = LinkMeta(foo_meta.name, "9.9", foo_meta.extras_hash)
    t = TypeDescriptor("int")
    assert SymbolHasher(foo_meta).get_symbol_hash(t) == SymbolHasher(newer).get_symbol_hash(t)


def test_hash_is_memoized_per_type_key(foo_meta: LinkMeta) -> None:
    hasher = SymbolHasher(foo_meta)
    t = TypeDescriptor("fn(int) -> int")
    first = hasher.get_symbol_hash(t)
    second = hasher.get_symbol_hash(TypeDescriptor("fn(int) -> int"))
    assert first == second
    assert hasher.cache.computed == 1
    assert t.key in hasher.cache
    assert hasher.cache.get(t.key) == first
    assert first == symbol_hash(HashState(), foo_meta, t.encoding)


def test_explicit_key_identifies_the_type(foo_meta: LinkMeta) -> None:
    hasher = SymbolHasher(foo_meta)
    a = TypeDescriptor("struct Point { x: int, y: int }", key=17, short_name="Point")
    b = TypeDescriptor("struct Point { x: int, y: int }", key=18, short_name="Point")
    assert a.display == "Point"
    assert hasher.get_symbol_hash(a) == hasher.get_symbol_hash(b)
    assert hasher.cache.computed == 2
    assert len(hasher.cache) == 2


def test_cache_only_computes_when_absent() -> None:
    cache = TypeHashCache()
    calls = []

    def compute() -> str:
        calls.append(1)
        return "_abc"

    assert cache.get_or_compute("k", compute) == "_abc"
    assert cache.get_or_compute("k", compute) == "_abc"
    assert calls == [1]
    assert cache.get("missing") is None


def test_concurrent_lookups_hash_each_type_once(foo_meta: LinkMeta) -> None:
    hasher = SymbolHasher(foo_meta)
    types = [TypeDescriptor(f"fn(T{i})") for i in range(32)]
    expected = {t.key: symbol_hash(HashState(), foo_meta, t.encoding) for t in types}
    results: list[dict] = []
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        seen = {}
        for _ in range(20):
            for t in types:
                seen[t.key] = hasher.get_symbol_hash(t)
        results.append(seen)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    assert hasher.cache.computed == len(types)
    assert len(results) == 8
    assert all(seen == expected for seen in results)
