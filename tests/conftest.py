"""Shared fixtures: a fake command runner that writes cover profiles."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest

from covercheck.utils.subprocess_runner import SubprocessError, SubprocessResult

if TYPE_CHECKING:
    from collections.abc import Sequence

# 10 covered statements, 10 uncovered: 50% coverage.
HALF_COVERED_PROFILE = """\
mode: atomic
example.com/mypkg/foo.go:5.2,7.4 10 1
example.com/mypkg/foo.go:10.1,12.3 10 0
"""


@dataclass
class FakeRunner:
    """``CommandRunner`` that writes *profile* instead of running ``go test``."""

    profile: str | None = HALF_COVERED_PROFILE
    returncode: int = 0
    error: Exception | None = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    def run(
        self,
        command: Sequence[str],
        *,
        stdout: Any = None,
        stderr: Any = None,
        cwd: Path | None = None,
    ) -> SubprocessResult:
        self.calls.append(
            {"command": list(command), "stdout": stdout, "stderr": stderr, "cwd": cwd}
        )
        if self.error is not None:
            raise self.error
        if self.profile is not None:
            coverprofile = command[list(command).index("-coverprofile") + 1]
            Path(coverprofile).write_text(self.profile, encoding="utf-8")
        return SubprocessResult(returncode=self.returncode)

    @property
    def coverprofile(self) -> str:
        command = self.calls[-1]["command"]
        return command[command.index("-coverprofile") + 1]


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def failing_runner() -> FakeRunner:
    return FakeRunner(profile=None, returncode=1)


@pytest.fixture
def unstartable_runner() -> FakeRunner:
    return FakeRunner(
        profile=None,
        error=SubprocessError("Command not found: go", result=SubprocessResult(returncode=-1)),
    )


def write_profile(root: Path, content: str, name: str = "coverage.out") -> Path:
    """Write a cover profile under *root* and return its path."""
    path = root / name
    path.write_text(content, encoding="utf-8")
    return path
