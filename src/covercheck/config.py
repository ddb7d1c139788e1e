"""Configuration parsing from ``.covercheck.yml`` and command-line flags."""

from __future__ import annotations

import logging
import math
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from covercheck.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".covercheck.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")
_VALID_COVERMODES = ("set", "count", "atomic")
_MAX_PERCENTAGE = 100.0

# ── Go durations ─────────────────────────────────────────────────

_NS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_NS_PER_SECOND = 1_000_000_000
_NS_PER_MINUTE = 60 * _NS_PER_SECOND
_NS_PER_HOUR = 60 * _NS_PER_MINUTE


def parse_duration(text: str) -> float:
    """Parse a Go duration string (``"1m30s"``, ``"500ms"``) into seconds.

    A bare number is taken as seconds.

    Raises:
        ValueError: If *text* is not a valid non-negative duration.
    """
    value = text.strip()
    if not value:
        raise ValueError("empty duration")
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds) or seconds < 0:
            raise ValueError(f"invalid duration {text!r}")
        return seconds

    pos = 0
    total_ns = 0.0
    while pos < len(value):
        match = _DURATION_PART_RE.match(value, pos)
        if not match:
            raise ValueError(f"invalid duration {text!r}")
        number, unit = match.groups()
        total_ns += float(number) * _NS_PER_UNIT[unit]
        pos = match.end()
    return total_ns / _NS_PER_SECOND


def _trim_fraction(value: float, digits: int) -> str:
    return f"{value:.{digits}f}".rstrip("0").rstrip(".")


def format_duration(seconds: float) -> str:
    """Render *seconds* the way Go's ``time.Duration.String`` does (``"1m30s"``)."""
    ns = round(seconds * _NS_PER_SECOND)
    if ns == 0:
        return "0s"
    if ns < _NS_PER_UNIT["us"]:
        return f"{ns}ns"
    if ns < _NS_PER_UNIT["ms"]:
        return f"{_trim_fraction(ns / _NS_PER_UNIT['us'], 3)}µs"
    if ns < _NS_PER_SECOND:
        return f"{_trim_fraction(ns / _NS_PER_UNIT['ms'], 6)}ms"

    hours, rem = divmod(ns, _NS_PER_HOUR)
    minutes, rem = divmod(rem, _NS_PER_MINUTE)
    out = ""
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return f"{out}{_trim_fraction(rem / _NS_PER_SECOND, 9)}s"


# ── Config model ─────────────────────────────────────────────────


@dataclass
class CheckConfig:
    """Everything one covercheck run needs, built once and passed explicitly."""

    required_coverage: float = 0.0
    """Minimum statement coverage percentage; 0 always passes."""

    race: bool = False
    """Pass ``-race`` to ``go test``."""

    timeout: float = 0.0
    """``go test -timeout`` in seconds; 0 leaves the Go default."""

    parallel: int = 0
    """``go test -parallel`` value; 0 leaves the Go default."""

    coverprofile: str = ""
    """Where ``go test`` writes the profile; empty uses a temporary file."""

    stdout: str = ""
    """Target for the test command's stdout: ``-`` passes through, empty discards."""

    stderr: str = ""
    """Target for the test command's stderr: ``-`` passes through, empty discards."""

    verbose: bool = False
    """Send diagnostic logging to stderr."""

    covermode: str = "atomic"
    """``go test -covermode`` value (set, count, atomic)."""

    go_binary: str = "go"
    """Go executable to invoke."""

    workdir: str = ""
    """Directory to run ``go test`` in; empty uses the current directory."""

    args: list[str] = field(default_factory=list)
    """Extra arguments passed through to ``go test`` (packages, -run, ...)."""


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot read config file {path}", exc) from exc
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return parsed


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw YAML/CLI value to the type of ``CheckConfig.<name>``."""
    if isinstance(value, str):
        value = _resolve_env_vars(value)
    try:
        if name == "timeout":
            return parse_duration(str(value)) if isinstance(value, str) else float(value)
        if name == "required_coverage":
            return float(value)
        if name == "parallel":
            return int(value)
        if name in ("race", "verbose"):
            if not isinstance(value, bool):
                raise TypeError(f"expected a boolean, got {value!r}")
            return value
        if name == "args":
            if isinstance(value, str):
                return value.split()
            return [_resolve_env_vars(str(item)) for item in value]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid value for {name}", exc) from exc
    return str(value)


def load_config(
    root: str | Path = ".",
    overrides: dict[str, Any] | None = None,
    *,
    config_path: str | Path | None = None,
) -> CheckConfig:
    """Build a ``CheckConfig`` from ``.covercheck.yml`` and command-line overrides.

    Args:
        root: Directory searched for ``.covercheck.yml``.
        overrides: Values from the command line; ``None`` entries are ignored.
        config_path: Explicit config file, used instead of the one in *root*.

    Raises:
        ConfigError: If the file is unreadable or a value has the wrong type.
    """
    path = Path(config_path) if config_path else Path(root) / CONFIG_FILE_NAME
    if config_path and not path.is_file():
        raise ConfigError(f"config file {path} does not exist")

    raw = _read_config_file(path)
    known = {f.name for f in fields(CheckConfig)}
    for key in raw:
        if key not in known:
            logger.warning("Ignoring unknown key %r in %s", key, path)

    values: dict[str, Any] = {
        key: _coerce(key, value) for key, value in raw.items() if key in known and value is not None
    }
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key not in known:
            raise ConfigError(f"unknown option {key!r}")
        values[key] = _coerce(key, value)

    config = CheckConfig(**values)
    logger.debug("Loaded config: %s", config)
    return config


def validate_config(config: CheckConfig) -> list[str]:
    """Return a list of human-readable problems with *config* (empty when valid)."""
    errors: list[str] = []

    if not 0.0 <= config.required_coverage <= _MAX_PERCENTAGE:
        errors.append(
            f"required_coverage must be between 0 and 100 (got: {config.required_coverage})"
        )

    if config.timeout < 0:
        errors.append(f"timeout must not be negative (got: {config.timeout})")

    if config.parallel < 0:
        errors.append(f"parallel must not be negative (got: {config.parallel})")

    if config.covermode not in _VALID_COVERMODES:
        errors.append(
            f"covermode must be one of {', '.join(_VALID_COVERMODES)} (got: {config.covermode!r})"
        )

    if not config.go_binary:
        errors.append("go_binary must not be empty")

    return errors
