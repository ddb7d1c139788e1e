"""Run ``go test`` with a cover profile and enforce the coverage threshold.

One run is a straight line: prepare the profile path and redirects, run the
command, parse the profile, compare against the threshold.  Every failure is
terminal and surfaces as a ``CoverCheckError``.
"""

from __future__ import annotations

import contextlib
import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from covercheck.config import format_duration
from covercheck.errors import CheckIOError, CommandError, ProfileParseError
from covercheck.profile import calculate_coverage, guess_package_name
from covercheck.redirect import child_stream, for_file, owns_stream
from covercheck.threshold import check_threshold
from covercheck.utils.subprocess_runner import SubprocessCommandRunner, SubprocessError

if TYPE_CHECKING:
    from covercheck.config import CheckConfig
    from covercheck.utils.subprocess_runner import CommandRunner

logger = logging.getLogger(__name__)

TEMP_PROFILE_PREFIX = "covercheck"


def _log_if_err(log: logging.Logger, action: Any, msg: str, *args: Any) -> None:
    """Run a cleanup *action*, logging instead of raising if it fails."""
    try:
        action()
    except OSError as exc:
        log.warning("%s: %s", msg % args if args else msg, exc)


class CoverChecker:
    """Runs the test command for one ``CheckConfig`` and checks its coverage.

    Args:
        config: Settings for this run.
        runner: Executes the test command; tests pass a fake here.
        log: Destination for diagnostic messages; defaults to the module logger.
        stdout: Stream used when the stdout target is ``-``.
        stderr: Stream used when the stderr target is ``-``.
    """

    def __init__(
        self,
        config: CheckConfig,
        *,
        runner: CommandRunner | None = None,
        log: logging.Logger | None = None,
        stdout: Any = None,
        stderr: Any = None,
    ) -> None:
        self.config = config
        self.runner: CommandRunner = runner or SubprocessCommandRunner()
        self.log = log or logger
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr

    def build_command(self, coverprofile: str) -> list[str]:
        """Return the full ``go test`` command line for *coverprofile*."""
        cfg = self.config
        cmd = [cfg.go_binary, "test", "-covermode", cfg.covermode]
        if cfg.race:
            cmd.append("-race")
        if cfg.timeout > 0:
            cmd.extend(["-timeout", format_duration(cfg.timeout)])
        if cfg.parallel > 0:
            cmd.extend(["-parallel", str(cfg.parallel)])
        cmd.extend(["-coverprofile", coverprofile])
        cmd.extend(cfg.args)
        return cmd

    def run(self) -> float:
        """Run the tests and return the measured coverage.

        Raises:
            CheckIOError: A redirect or temporary file could not be managed.
            CommandError: The test command failed; coverage is not evaluated.
            ProfileParseError: The profile written by the command is unusable.
            CoverageThresholdError: Coverage is below ``required_coverage``.
        """
        with contextlib.ExitStack() as stack:
            coverprofile = self.config.coverprofile or self._temp_profile(stack)
            coverprofile = self._resolve_profile(coverprofile)
            out = self._open_redirect(stack, self.config.stdout, self.stdout, "stdout")
            err = self._open_redirect(stack, self.config.stderr, self.stderr, "stderr")
            self._run_command(
                self.build_command(coverprofile),
                stdout=child_stream(out, self.stdout),
                stderr=child_stream(err, self.stderr),
            )
            return self._check_coverage(coverprofile)

    def _resolve_profile(self, coverprofile: str) -> str:
        """Anchor a relative profile path in the directory ``go test`` runs in."""
        if self.config.workdir and not os.path.isabs(coverprofile):
            return os.path.abspath(os.path.join(self.config.workdir, coverprofile))
        return coverprofile

    def _temp_profile(self, stack: contextlib.ExitStack) -> str:
        try:
            fd, name = tempfile.mkstemp(prefix=TEMP_PROFILE_PREFIX)
        except OSError as exc:
            raise CheckIOError("Cannot create covercheck temp file", exc) from exc
        stack.callback(
            _log_if_err, self.log, lambda: os.remove(name), "Unable to remove cover profile file"
        )
        try:
            os.close(fd)
        except OSError as exc:
            raise CheckIOError("Unable to close originally opened cover file", exc) from exc
        self.log.info("Setting coverprofile to %s", name)
        return name

    def _open_redirect(
        self, stack: contextlib.ExitStack, target: str, dash: Any, label: str
    ) -> Any:
        try:
            stream = for_file(target, dash)
        except CheckIOError as exc:
            raise CheckIOError(f"Cannot open {label} pipe file", exc) from exc
        if owns_stream(stream, dash):
            stack.callback(_log_if_err, self.log, stream.close, "Unable to close %s", label)
        return stream

    def _run_command(self, cmd: list[str], *, stdout: Any, stderr: Any) -> None:
        cwd = Path(self.config.workdir) if self.config.workdir else None
        self.log.info("Running cmd=[%s] args=[%s]", cmd[0], ", ".join(cmd[1:]))
        try:
            result = self.runner.run(cmd, stdout=stdout, stderr=stderr, cwd=cwd)
        except (SubprocessError, ValueError) as exc:
            raise CommandError("cannot run command", exc) from exc
        if not result.success:
            raise CommandError(
                "cannot run command",
                RuntimeError(f"exit status {result.returncode}"),
                returncode=result.returncode,
            )
        self.log.info("Finished running command")

    def _check_coverage(self, coverprofile: str) -> float:
        try:
            coverage = calculate_coverage(coverprofile)
        except ProfileParseError as exc:
            raise ProfileParseError(
                "cannot load coverage profile file", exc, path=exc.path
            ) from exc
        self.log.info("Calculated coverage %.2f", coverage)
        check_threshold(
            coverage, self.config.required_coverage, package=guess_package_name(coverprofile)
        )
        return coverage
