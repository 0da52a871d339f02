from __future__ import annotations

import threading

import pytest

from cratelink.backend.crate_context import CrateContext
from cratelink.backend.link_meta import LinkMeta
from cratelink.backend.name_mangling import NameGenerator, demangle, exported_name, mangle, sanitize
from cratelink.backend.symbol_hash import TypeDescriptor

SAMPLES = [
    "main", "Option<~T>", "fn(int, int)", "0.1", "@box", "*const u8", "&mut x",
    "{closure}", "café", "名前", "", "__", "9lives", "a-b.c", "Vec<Vec<u8>>",
]


@pytest.mark.parametrize("raw, expected", [
    ("main", "main"),
    ("Option<~T>", "Option_ubox_T"),
    ("fn(int, int)", "fn_of_int_int"),
    ("0.1", "_01"),
    ("@int", "_sbox_int"),
    ("*u8", "_ptr_u8"),
    ("&str", "_ref_str"),
    ("{closure}", "_of_closure"),
    ("a-b.c", "abc"),
    ("café", "café"),
    ("", ""),
])
def test_sanitize(raw: str, expected: str) -> None:
    assert sanitize(raw) == expected


@pytest.mark.parametrize("raw", SAMPLES)
def test_sanitize_is_idempotent_and_never_starts_with_digit(raw: str) -> None:
    once = sanitize(raw)
    assert sanitize(once) == once
    assert not once[:1].isdigit()


def test_mangle_layout() -> None:
    assert mangle(["a", "bc"]) == "_ZN1a2bcE"
    assert mangle([]) == "_ZNE"
    assert mangle(["café"]) == "_ZN5caféE"


def test_exported_name_appends_hash_and_version() -> None:
    assert exported_name(["mod", "item"], "_abc", "0.1") == "_ZN3mod4item4_abc3_01E"


def test_segment_lengths_keep_paths_apart() -> None:
    assert mangle(["ab", "c"]) != mangle(["a", "bc"])
    assert mangle(["abc"]) != mangle(["a", "b", "c"])


@pytest.mark.parametrize("path", [
    ["mod", "item"],
    SAMPLES,
    ["", "x", ""],
    ["a" * 12, "b" * 100],
])
def test_demangle_inverts_mangle(path: list[str]) -> None:
    assert demangle(mangle(path)) == [sanitize(s) for s in path]


@pytest.mark.parametrize("bad", ["foo", "_ZN", "_ZN3abE", "_ZNxE", "_ZN3abcE_"])
def test_demangle_rejects_malformed(bad: str) -> None:
    with pytest.raises(ValueError):
        demangle(bad)


def test_name_generator_counts_per_context() -> None:
    gen = NameGenerator()
    assert gen.fresh("glue") == "glue_0"
    assert gen.fresh("shim") == "shim_1"
    assert NameGenerator().fresh("glue") == "glue_0"


def test_name_generator_is_thread_safe() -> None:
    gen = NameGenerator()
    names: list[str] = []
    lock = threading.Lock()

    def worker() -> None:
        local = [gen.fresh("tmp") for _ in range(200)]
        with lock:
            names.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()
    assert len(set(names)) == 800


def test_crate_context_names(foo_meta: LinkMeta) -> None:
    ctx = CrateContext(foo_meta)
    t = TypeDescriptor("fn(int) -> int", short_name="fn")
    sth = ctx.get_symbol_hash(t)

    exported = ctx.mangled_name(["mod", "item"], t, exported=True)
    internal = ctx.mangled_name(["mod", "item"], t, exported=False)
    assert exported == exported_name(["mod", "item"], sth, "0.1")
    assert demangle(exported) == ["mod", "item", sth, "_01"]
    assert demangle(internal) == ["mod", "item", sth]
    assert ctx.type_hashcodes.computed == 1

    assert ctx.mangle_internal_name_by_type_only(t, "drop") == mangle(["drop", "fn", sth])
    assert ctx.mangle_internal_name_by_path(["a", "b"]) == "_ZN1a1bE"
    assert ctx.mangle_internal_name_by_path_and_seq(["a"], "glue") == "_ZN1a6glue_0E"
    assert ctx.mangle_internal_name_by_seq("tydesc") == "tydesc_1"


def test_same_path_different_types_do_not_collide(foo_meta: LinkMeta) -> None:
    ctx = CrateContext(foo_meta)
    a = ctx.mangled_name(["vec", "push"], TypeDescriptor("fn(Vec<int>, int)"), exported=True)
    b = ctx.mangled_name(["vec", "push"], TypeDescriptor("fn(Vec<str>, str)"), exported=True)
    assert a != b
