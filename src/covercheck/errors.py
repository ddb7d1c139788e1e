"""Error types raised by covercheck.

Every error carries a short context message and, when there is one, the
underlying cause.  ``str(err)`` renders ``"<context>: <cause>"`` so that the
whole chain fits on the single line printed by the CLI.
"""

from __future__ import annotations


class CoverCheckError(Exception):
    """Base class for all covercheck failures."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        """Initialize with a context message and an optional cause.

        Args:
            message: What covercheck was doing when the failure happened.
            cause: The lower-level exception being wrapped, if any.
        """
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message}: {self.cause}"


class ConfigError(CoverCheckError):
    """Invalid flags, arguments or ``.covercheck.yml`` contents."""


class CheckIOError(CoverCheckError):
    """A redirect file or the temporary profile could not be created or closed."""


class CommandError(CoverCheckError):
    """The wrapped test command failed to start or exited non-zero."""

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        *,
        returncode: int | None = None,
    ) -> None:
        super().__init__(message, cause)
        self.returncode = returncode


class ProfileParseError(CoverCheckError):
    """The coverage profile could not be read or does not match the format."""

    def __init__(self, message: str, cause: BaseException | None = None, *, path: str = "") -> None:
        super().__init__(message, cause)
        self.path = path


class CoverageThresholdError(CoverCheckError):
    """Measured coverage is below the required minimum."""

    def __init__(self, message: str, *, coverage: float, required: float, package: str) -> None:
        super().__init__(message)
        self.coverage = coverage
        self.required = required
        self.package = package
