"""Blocking subprocess execution behind a replaceable runner interface.

``CoverChecker`` never calls :mod:`subprocess` directly; it goes through a
``CommandRunner`` so tests can substitute a fake that writes a profile
instead of running ``go test``.
"""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

# What ``subprocess`` accepts for stdout/stderr: None inherits, DEVNULL discards.
StreamTarget = IO[bytes] | int | None


@dataclass
class SubprocessResult:
    """Result of subprocess execution."""

    returncode: int
    """Exit code of the process."""

    duration_ms: float = 0.0
    """Actual duration of execution in milliseconds."""

    @property
    def success(self) -> bool:
        """True if returncode is 0."""
        return self.returncode == 0


class CommandRunner(Protocol):
    """Anything that can run a command to completion and report its exit status."""

    def run(
        self,
        command: Sequence[str],
        *,
        stdout: StreamTarget = None,
        stderr: StreamTarget = None,
        cwd: Path | None = None,
    ) -> SubprocessResult: ...


class SubprocessCommandRunner:
    """``CommandRunner`` backed by :func:`subprocess.run`."""

    def run(
        self,
        command: Sequence[str],
        *,
        stdout: StreamTarget = None,
        stderr: StreamTarget = None,
        cwd: Path | None = None,
    ) -> SubprocessResult:
        """Execute *command* and wait for it to exit.

        Output is not captured: it goes wherever *stdout* and *stderr* point.

        Args:
            command: Command and arguments (e.g. ``['go', 'test', './...']``).
            stdout: File object, ``subprocess.DEVNULL`` or ``None`` to inherit.
            stderr: File object, ``subprocess.DEVNULL`` or ``None`` to inherit.
            cwd: Working directory. Defaults to the current directory.

        Returns:
            SubprocessResult with the exit code and duration.

        Raises:
            SubprocessError: If the command cannot be started.
            ValueError: If command is empty or cwd does not exist.
        """
        if not command:
            raise ValueError("Command cannot be empty")

        work_dir = cwd.resolve() if cwd else Path.cwd()
        if not work_dir.exists():
            raise ValueError(f"Working directory does not exist: {work_dir}")

        logger.debug("Running subprocess: %s (cwd=%s)", " ".join(command), work_dir)
        start_time = time.perf_counter()

        try:
            completed = subprocess.run(  # noqa: S603
                list(command),
                stdout=stdout,
                stderr=stderr,
                cwd=work_dir,
                check=False,
            )
        except FileNotFoundError as exc:
            logger.error("Command not found: %s", command[0])
            raise SubprocessError(
                f"Command not found: {command[0]}",
                result=SubprocessResult(returncode=-1),
            ) from exc
        except OSError as exc:
            raise SubprocessError(
                f"Subprocess execution failed: {exc}",
                result=SubprocessResult(returncode=-1),
            ) from exc

        result = SubprocessResult(
            returncode=completed.returncode,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
        logger.debug(
            "Subprocess completed: returncode=%d, duration=%.2fms",
            result.returncode,
            result.duration_ms,
        )
        return result


class SubprocessError(Exception):
    """Exception raised when a subprocess cannot be executed."""

    def __init__(self, message: str, result: SubprocessResult) -> None:
        """Initialize with error message and result.

        Args:
            message: Error description.
            result: The SubprocessResult describing the failed execution.
        """
        super().__init__(message)
        self.result = result
