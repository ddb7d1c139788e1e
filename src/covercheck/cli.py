"""covercheck CLI: run ``go test`` and fail when coverage is too low."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console
from rich.logging import RichHandler

from covercheck import __version__
from covercheck.checker import CoverChecker
from covercheck.config import load_config, validate_config
from covercheck.errors import ConfigError, CoverCheckError

if TYPE_CHECKING:
    from covercheck.config import CheckConfig
    from covercheck.utils.subprocess_runner import CommandRunner

LOGGER_NAME = "covercheck"
_LOG_PREFIX = "[covercheck]"
_FAILURE_EXIT_CODE = 1

# Single-dash spellings of covercheck-only options that would otherwise reach go test.
_OWN_OPTION_NAMES = frozenset(
    {
        "required_coverage",
        "required-coverage",
        "coverprofile",
        "covermode",
        "stdout",
        "stderr",
        "config",
        "verbose",
    }
)


def _configure_logging(*, verbose: bool) -> logging.Logger:
    """Return the package logger, writing to stderr only in verbose mode."""
    log = logging.getLogger(LOGGER_NAME)
    for handler in list(log.handlers):
        log.removeHandler(handler)

    if verbose:
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True, soft_wrap=True),
            show_time=False,
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter(f"{_LOG_PREFIX} %(message)s"))
        log.addHandler(handler)
        log.setLevel(logging.DEBUG)
    else:
        log.addHandler(logging.NullHandler())
        log.setLevel(logging.WARNING)
    return log


def _reject_own_options(go_args: tuple[str, ...]) -> None:
    """Refuse passthrough arguments that spell a covercheck option with one dash."""
    for arg in go_args:
        if arg == "--":
            return
        name = arg.lstrip("-").split("=", 1)[0]
        if arg.startswith("-") and not arg.startswith("--") and name in _OWN_OPTION_NAMES:
            raise ConfigError(
                f"unsupported option {arg!r}",
                ValueError(f"use --{name} before the go test arguments"),
            )


def _build_config(config_path: str | None, overrides: dict[str, Any]) -> CheckConfig:
    config = load_config(Path.cwd(), overrides, config_path=config_path)
    errors = validate_config(config)
    if errors:
        raise ConfigError("invalid configuration", ValueError("; ".join(errors)))
    return config


def run_check(
    config: CheckConfig,
    *,
    runner: CommandRunner | None = None,
    log: logging.Logger | None = None,
) -> float:
    """Run one coverage check; raises ``CoverCheckError`` on any failure."""
    return CoverChecker(config, runner=runner, log=log).run()


@click.command(
    context_settings={
        "ignore_unknown_options": True,
        "allow_interspersed_args": False,
    }
)
@click.option(
    "--required-coverage",
    "--required_coverage",
    "required_coverage",
    type=float,
    default=None,
    help="Required coverage percentage; below it the exit code is non-zero. [default: 0]",
)
@click.option("--race", is_flag=True, default=False, help="Enable race detection.")
@click.option(
    "--timeout",
    default=None,
    metavar="DURATION",
    help="Test timeout as a Go duration (e.g. 30s, 5m).",
)
@click.option("--parallel", type=int, default=None, help="Maximum parallel tests.")
@click.option("--coverprofile", default=None, help="Coverage profile output path.")
@click.option(
    "--stdout", "stdout_target", default=None, help="File to pipe stdout to.  - means stdout."
)
@click.option(
    "--stderr", "stderr_target", default=None, help="File to pipe stderr to.  - means stderr."
)
@click.option(
    "--covermode",
    type=click.Choice(["set", "count", "atomic"]),
    default=None,
    help="go test -covermode. [default: atomic]",
)
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Config file to use instead of ./.covercheck.yml.",
)
@click.option("--verbose", is_flag=True, default=False, help="Verbose logging to stderr.")
@click.version_option(version=__version__, prog_name="covercheck")
@click.argument("go_args", nargs=-1, type=click.UNPROCESSED)
def cli(
    required_coverage: float | None,
    timeout: str | None,
    parallel: int | None,
    coverprofile: str | None,
    stdout_target: str | None,
    stderr_target: str | None,
    covermode: str | None,
    config_path: str | None,
    go_args: tuple[str, ...],
    *,
    race: bool,
    verbose: bool,
) -> None:
    """Run ``go test`` with a coverage profile and check the total statement coverage.

    Arguments after the options are passed through to ``go test``.  covercheck
    options need two dashes; a single-dash spelling such as
    ``-required_coverage`` is rejected instead of being handed to ``go test``.

    Example:
      covercheck --required_coverage 80 ./...
    """
    overrides: dict[str, Any] = {
        "required_coverage": required_coverage,
        "race": race or None,
        "timeout": timeout,
        "parallel": parallel,
        "coverprofile": coverprofile,
        "stdout": stdout_target,
        "stderr": stderr_target,
        "covermode": covermode,
        "verbose": verbose or None,
        "args": list(go_args) or None,
    }
    try:
        _configure_logging(verbose=verbose)
        _reject_own_options(go_args)
        config = _build_config(config_path, overrides)
        log = _configure_logging(verbose=config.verbose)
        run_check(config, log=log)
    except CoverCheckError as e:
        click.echo(" ".join(str(e).splitlines()))
        raise SystemExit(_FAILURE_EXIT_CODE) from e

