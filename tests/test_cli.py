from __future__ import annotations

from pathlib import Path

import pytest

from cratelink.backend.link_meta import build_link_meta
from cratelink.backend.name_mangling import demangle
from cratelink.compiler.cli import build_arg_parser, main
from cratelink.compiler.pipeline import link_unit
from cratelink.backend.process import ProcessResult
from cratelink.internals.parser import parse_attributes
from cratelink.internals.report import Reporter
from link_helpers import FakeRunner

LINUX = ["--target", "x86_64-unknown-linux-gnu"]
FOO_ATTRS = '#[link(name = "foo", vers = "0.1", author = "me")]'


def _link(workdir: Path, argv: list[str], runner: FakeRunner | None = None,
          reporter: Reporter | None = None) -> tuple[int, Reporter, FakeRunner]:
    runner = runner or FakeRunner()
    reporter = reporter or Reporter(filename="main.o")
    args = build_arg_parser().parse_args(["main.o", *LINUX, *argv])
    code = link_unit(workdir / "main.o", reporter, args, runner=runner)
    return code, reporter, runner


def test_executable_with_defaults_warns(workdir: Path) -> None:
    code, reporter, runner = _link(workdir, [])
    assert code == 1
    assert reporter.codes() == ["CW4001", "CW4001"]
    assert runner.programs() == ["cc"]
    assert str(workdir / "main") in runner.calls[0]
    assert not (workdir / "main.o").exists()


def test_executable_with_attributes(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, reporter, runner = _link(workdir, ["--attr", FOO_ATTRS, "-o", "bin/app"])
    assert code == 0
    assert reporter.items == []
    assert str(workdir / "bin" / "app") in runner.calls[0]
    assert f"Success! Wrote native binary: {workdir / 'bin' / 'app'}" in capsys.readouterr().out


def test_attribute_file(workdir: Path) -> None:
    (workdir / "crate.attrs").write_text(FOO_ATTRS + "\n")
    code, reporter, _ = _link(workdir, ["--attrs", "crate.attrs", "--save-temps"])
    assert code == 0
    assert (workdir / "main.o").exists()


def test_library_file_name(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, _, runner = _link(workdir, ["--lib", "--attr", FOO_ATTRS, "--print-file-name"])
    assert code == 0
    assert runner.calls == []

    expected = build_link_meta(parse_attributes(FOO_ATTRS), workdir / "main")
    out = capsys.readouterr().out.strip().splitlines()[-1]
    assert out == str(workdir / f"libfoo-{expected.extras_hash}-0.1.so")


def test_library_link(workdir: Path) -> None:
    code, _, runner = _link(workdir, ["--lib", "--attr", FOO_ATTRS, "--link-arg=-Wl,--as-needed",
                                      "-l", "ssl", "-L", "/opt/lib"])
    assert code == 0
    args = runner.calls[0]
    assert "-shared" in args
    assert args.index("-Wl,--as-needed") < args.index("-L/opt/lib") < args.index("-lssl")


def test_link_args_attribute(workdir: Path) -> None:
    code, _, runner = _link(workdir, ["--attr", FOO_ATTRS, "--attr", '#[link_args = "-lz"]'])
    assert code == 0
    assert "-lz" in runner.calls[0]


def test_dependencies_feed_the_crate_hash(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    base = ["--lib", "--attr", FOO_ATTRS, "--print-file-name"]
    (workdir / "libbar-0123456789abcdef-0.2.so").write_bytes(b"so")
    (workdir / "libplain.so").write_bytes(b"one")

    _link(workdir, base)
    _link(workdir, [*base, "--dep", "libbar-0123456789abcdef-0.2.so"])
    _link(workdir, [*base, "--dep", "libbar-0123456789abcdef-0.2.so", "--dep", "libplain.so"])
    (workdir / "libplain.so").write_bytes(b"two")
    _link(workdir, [*base, "--dep", "libbar-0123456789abcdef-0.2.so", "--dep", "libplain.so"])

    names = capsys.readouterr().out.strip().splitlines()
    names = [n for n in names if n.endswith(".so")]
    assert len(names) == 4
    assert len(set(names)) == 4


def test_dependency_link_order(workdir: Path) -> None:
    deps = workdir / "deps"
    deps.mkdir()
    (deps / "libbar-0123456789abcdef-0.2.so").write_bytes(b"so")
    (deps / "libbar-0123456789abcdef-0.2.so.attrs").write_text('#[link_args = "-lpthread"]')
    code, _, runner = _link(workdir, ["--attr", FOO_ATTRS, "--dep", "deps/libbar-0123456789abcdef-0.2.so"])
    assert code == 0
    args = runner.calls[0]
    assert args.index(f"-L{deps}") < args.index("-lbar-0123456789abcdef-0.2") < args.index("-lpthread")
    assert "-Wl,-rpath,$ORIGIN/deps" in args


def test_dependency_from_search_path(workdir: Path, tmp_path_factory: pytest.TempPathFactory,
                                     monkeypatch: pytest.MonkeyPatch) -> None:
    libdir = tmp_path_factory.mktemp("libs")
    (libdir / "libbar-0123456789abcdef-0.2.rlib").write_bytes(b"!<arch>\n")
    monkeypatch.setenv("CRATELINK_LIB_PATH", str(libdir))
    code, _, runner = _link(workdir, ["--attr", FOO_ATTRS, "--dep", "libbar-0123456789abcdef-0.2.rlib"])
    assert code == 0
    assert str(libdir / "libbar-0123456789abcdef-0.2.rlib") in runner.calls[0]


def test_missing_dependency(workdir: Path) -> None:
    code, reporter, runner = _link(workdir, ["--attr", FOO_ATTRS, "--dep", "libnope.so"])
    assert code == 2
    assert reporter.codes() == ["CE4009"]
    assert runner.calls == []
    assert (workdir / "main.o").exists()


def test_malformed_attribute(workdir: Path) -> None:
    code, reporter, runner = _link(workdir, ["--attr", '#[link(name = "foo"'])
    assert code == 2
    assert reporter.codes() == ["CE4008"]
    assert runner.calls == []
    assert "<attr #1>" in reporter.format(use_color=False)


def test_missing_attribute_file(workdir: Path) -> None:
    code, reporter, _ = _link(workdir, ["--attrs", "missing.attrs"])
    assert code == 2
    assert reporter.codes() == ["CE4011"]


def test_duplicate_linkage_item_shows_source_line(workdir: Path) -> None:
    (workdir / "crate.attrs").write_text('#[link(name = "foo")]\n#[link(name = "bar")]\n')
    code, reporter, runner = _link(workdir, ["--attrs", "crate.attrs"])
    assert code == 2
    assert reporter.codes() == ["CE4002"]
    assert runner.calls == []
    text = reporter.format(use_color=False)
    assert f"{workdir / 'crate.attrs'}:2:" in text
    assert '  | #[link(name = "bar")]' in text


def test_linker_failure_keeps_object(workdir: Path) -> None:
    runner = FakeRunner({"cc": ProcessResult(1, stderr="ld: error\n")})
    code, reporter, _ = _link(workdir, ["--attr", FOO_ATTRS], runner=runner)
    assert code == 2
    assert reporter.codes() == ["CE4003"]
    assert (workdir / "main.o").exists()


def test_missing_object(workdir: Path) -> None:
    (workdir / "main.o").unlink()
    code, reporter, runner = _link(workdir, ["--attr", FOO_ATTRS])
    assert code == 2
    assert reporter.codes() == ["CE4011"]
    assert runner.calls == []


def test_unknown_target(workdir: Path) -> None:
    code, reporter, _ = _link(workdir, ["--target", "wasm32-unknown-unknown"])
    assert code == 2
    assert reporter.codes() == ["CE4010"]


def test_earlier_errors_skip_the_link_stage(workdir: Path) -> None:
    reporter = Reporter()
    reporter.error("CE0001", "earlier stage failed")
    code, _, runner = _link(workdir, ["--attr", FOO_ATTRS], reporter=reporter)
    assert code == 2
    assert runner.calls == []
    assert (workdir / "main.o").exists()


def test_mangle(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, _, runner = _link(workdir, ["--attr", FOO_ATTRS, "--mangle", "mod::item", "--type", "fn(int)"])
    assert code == 0
    assert runner.calls == []
    symbol = capsys.readouterr().out.strip().splitlines()[-1]
    segments = demangle(symbol)
    assert segments[:2] == ["mod", "item"]
    assert segments[3] == "_01"

    _link(workdir, ["--attr", FOO_ATTRS, "--mangle", "mod::item", "--type", "fn(int)", "--internal"])
    internal = capsys.readouterr().out.strip().splitlines()[-1]
    assert demangle(internal) == segments[:3]


def test_main_version() -> None:
    assert main(["--version"]) == 0


def test_main_requires_object() -> None:
    assert main([]) == 2


def test_main_mangle_requires_type(workdir: Path) -> None:
    assert main(["main.o", "--mangle", "a::b"]) == 2


def test_main_reports_diagnostics(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["main.o", *LINUX, "--attr", FOO_ATTRS, "--dep", "libnope.so"]) == 2
    err = capsys.readouterr().err
    assert "error [CE4009]" in err
