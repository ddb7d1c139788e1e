"""Tests for config.py: .covercheck.yml loading, overrides and validation."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
import yaml

from covercheck.config import (
    CONFIG_FILE_NAME,
    CheckConfig,
    _resolve_env_vars,
    format_duration,
    load_config,
    parse_duration,
    validate_config,
)
from covercheck.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterator


def _write_config(root: Path, data: Any) -> Path:
    path = root / CONFIG_FILE_NAME
    path.write_text(yaml.dump(data), encoding="utf-8")
    return path


@pytest.fixture
def no_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[pytest.MonkeyPatch]:
    monkeypatch.delenv("COVERCHECK_MISSING", raising=False)
    yield monkeypatch


# ── Go durations ─────────────────────────────────────────────────


class TestParseDuration:
    @pytest.mark.parametrize(
        ("text", "seconds"),
        [
            ("30s", 30.0),
            ("1m30s", 90.0),
            ("2h", 7200.0),
            ("1h2m3s", 3723.0),
            ("500ms", 0.5),
            ("1.5s", 1.5),
            ("250us", 0.00025),
            ("250µs", 0.00025),
            ("10", 10.0),
            ("0", 0.0),
            (" 45s ", 45.0),
        ],
    )
    def test_valid(self, text: str, seconds: float) -> None:
        assert parse_duration(text) == pytest.approx(seconds)

    @pytest.mark.parametrize("text", ["", "abc", "10x", "-5", "1m-3s", "s", "nan", "inf"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(ValueError):
            parse_duration(text)


class TestFormatDuration:
    @pytest.mark.parametrize(
        ("seconds", "text"),
        [
            (0, "0s"),
            (30, "30s"),
            (90, "1m30s"),
            (3600, "1h0m0s"),
            (3723, "1h2m3s"),
            (1.5, "1.5s"),
            (0.5, "500ms"),
            (0.00025, "250µs"),
            (0.000000005, "5ns"),
            (600, "10m0s"),
        ],
    )
    def test_go_style(self, seconds: float, text: str) -> None:
        assert format_duration(seconds) == text

    def test_round_trips_through_parse(self) -> None:
        assert parse_duration(format_duration(5025.25)) == pytest.approx(5025.25)


# ── load_config ──────────────────────────────────────────────────


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path: Path) -> None:
        assert load_config(tmp_path) == CheckConfig()

    def test_defaults(self) -> None:
        config = CheckConfig()
        assert config.required_coverage == 0.0
        assert config.covermode == "atomic"
        assert config.go_binary == "go"
        assert config.args == []

    def test_reads_file(self, tmp_path: Path) -> None:
        _write_config(
            tmp_path,
            {
                "required_coverage": 75,
                "race": True,
                "timeout": "2m",
                "parallel": 4,
                "covermode": "count",
                "args": ["./..."],
            },
        )
        config = load_config(tmp_path)
        assert config.required_coverage == 75.0
        assert config.race is True
        assert config.timeout == 120.0
        assert config.parallel == 4
        assert config.covermode == "count"
        assert config.args == ["./..."]

    def test_numeric_timeout_is_seconds(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"timeout": 45})
        assert load_config(tmp_path).timeout == 45.0

    def test_args_string_is_split(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"args": "-run TestFoo ./pkg/..."})
        assert load_config(tmp_path).args == ["-run", "TestFoo", "./pkg/..."]

    def test_overrides_win(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"required_coverage": 75, "stdout": "out.log"})
        config = load_config(tmp_path, {"required_coverage": 90.0, "stdout": None})
        assert config.required_coverage == 90.0
        assert config.stdout == "out.log"

    def test_explicit_config_path(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yml"
        path.write_text("required_coverage: 12.5\n", encoding="utf-8")
        assert load_config(tmp_path / "elsewhere", config_path=path).required_coverage == 12.5

    def test_explicit_config_path_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="does not exist"):
            load_config(tmp_path, config_path=tmp_path / "missing.yml")

    def test_env_var_expansion(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COVER_OUT", "/tmp/cover.out")
        _write_config(tmp_path, {"coverprofile": "${COVER_OUT}"})
        assert load_config(tmp_path).coverprofile == "/tmp/cover.out"

    def test_empty_file(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_text("", encoding="utf-8")
        assert load_config(tmp_path) == CheckConfig()

    def test_non_mapping_is_error(self, tmp_path: Path) -> None:
        _write_config(tmp_path, ["not", "a", "mapping"])
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_config(tmp_path)

    def test_invalid_yaml_is_error(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_text("key: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="cannot read config file"):
            load_config(tmp_path)

    def test_non_utf8_file_is_error(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_bytes(b"required_coverage: \xff\xfe80\n")
        with pytest.raises(ConfigError, match="cannot read config file"):
            load_config(tmp_path)

    def test_bad_value_type(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"parallel": "many"})
        with pytest.raises(ConfigError, match="invalid value for parallel"):
            load_config(tmp_path)

    def test_bad_boolean(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"race": "sometimes"})
        with pytest.raises(ConfigError, match="invalid value for race"):
            load_config(tmp_path)

    def test_bad_timeout_override(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="invalid value for timeout"):
            load_config(tmp_path, {"timeout": "soon"})

    def test_unknown_key_ignored(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        _write_config(tmp_path, {"colour": "blue"})
        assert load_config(tmp_path) == CheckConfig()
        assert "Ignoring unknown key 'colour'" in caplog.text

    def test_unknown_override_is_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="unknown option"):
            load_config(tmp_path, {"colour": "blue"})


class TestResolveEnvVars:
    def test_missing_var_returns_empty(self, no_env: pytest.MonkeyPatch) -> None:
        assert _resolve_env_vars("${COVERCHECK_MISSING}") == ""

    def test_no_vars_unchanged(self) -> None:
        assert _resolve_env_vars("plain text") == "plain text"


# ── validate_config ──────────────────────────────────────────────


class TestValidateConfig:
    def test_default_is_valid(self) -> None:
        assert validate_config(CheckConfig()) == []

    def test_collects_all_errors(self) -> None:
        config = CheckConfig(
            required_coverage=101.0, timeout=-1.0, parallel=-2, covermode="often", go_binary=""
        )
        errors = validate_config(config)
        assert len(errors) == 5
        assert any("required_coverage" in e for e in errors)
        assert any("timeout" in e for e in errors)
        assert any("parallel" in e for e in errors)
        assert any("covermode" in e for e in errors)
        assert any("go_binary" in e for e in errors)

    @pytest.mark.parametrize("value", [0.0, 50.0, 100.0])
    def test_required_coverage_range(self, value: float) -> None:
        assert validate_config(CheckConfig(required_coverage=value)) == []

    def test_negative_required_coverage(self) -> None:
        assert validate_config(CheckConfig(required_coverage=-0.5))
