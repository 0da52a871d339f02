"""External tool invocation.

The link stage talks to exactly one kind of outside world: programs run
with an argument vector. ``ProcessRunner`` is that boundary, so tests can
substitute a fake and inspect the commands that would have run.
"""
from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Protocol, Sequence


@dataclass(frozen=True)
class ProcessResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def output(self) -> str:
        """Combined stderr and stdout, as shown in link failure notes."""
        return self.stderr + self.stdout


class ProcessRunner(Protocol):
    def run(self, argv: Sequence[str]) -> ProcessResult:
        """Run ``argv[0]`` with the remaining arguments and wait for it.

        Raises:
            OSError: If the program cannot be started.
        """
        ...


class SubprocessRunner:
    """Runs programs with ``subprocess.run``, capturing text output."""

    def __init__(self, cwd=None, timeout: float | None = None) -> None:
        self.cwd = cwd
        self.timeout = timeout

    def run(self, argv: Sequence[str]) -> ProcessResult:
        result = subprocess.run(
            list(argv),
            cwd=self.cwd,
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )
        return ProcessResult(result.returncode, result.stdout, result.stderr)
