from __future__ import annotations

from pathlib import Path

import pytest

from cratelink.backend.link_meta import LinkMeta
from cratelink.backend.platform_detect import TargetPlatform, parse_triple
from cratelink.compiler.loader import ENV_CWD, ENV_LIB_PATH, ENV_SYSROOT
from link_helpers import FakeRunner

LINUX_TRIPLE = "x86_64-unknown-linux-gnu"


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's CRATELINK_* settings out of every test."""
    for var in (ENV_CWD, ENV_LIB_PATH, ENV_SYSROOT, "NO_COLOR"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def linux_target() -> TargetPlatform:
    return parse_triple(LINUX_TRIPLE)


@pytest.fixture
def foo_meta() -> LinkMeta:
    return LinkMeta(name="foo", vers="0.1", extras_hash="0123456789abcdef")


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A temporary effective cwd holding an object file ``main.o``."""
    monkeypatch.setenv(ENV_CWD, str(tmp_path))
    (tmp_path / "main.o").write_bytes(b"\x7fELF fake object")
    return tmp_path
