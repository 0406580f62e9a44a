from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import pytest

from notepad_server import load_config
from notepad_server.config import ConfigError


def _base_args(tmp_path: Path, *extra: str) -> list[str]:
    return ["--database-path", str(tmp_path / "pads.db"), *extra]


def test_duration_flags_accept_suffixes(tmp_path: Path) -> None:
    cfg = load_config(
        argv=_base_args(tmp_path, "--request-timeout", "2m", "--shutdown-timeout", "1h"),
        environ={},
    )

    assert cfg.request_timeout == timedelta(minutes=2)
    assert cfg.shutdown_timeout == timedelta(hours=1)


def test_duration_flags_use_seconds_when_missing_suffix(tmp_path: Path) -> None:
    cfg = load_config(
        argv=_base_args(tmp_path, "--request-timeout", "7", "--shutdown-timeout", "9"),
        environ={},
    )

    assert cfg.request_timeout == timedelta(seconds=7)
    assert cfg.shutdown_timeout == timedelta(seconds=9)


def test_numeric_durations_in_config_file(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"request_timeout": 1.5}), encoding="utf-8")

    cfg = load_config(argv=_base_args(tmp_path, "--config-file", str(config_path)), environ={})

    assert cfg.request_timeout == timedelta(seconds=1.5)


@pytest.mark.parametrize("value", ["", "abc", "3x", "-5s"])
def test_invalid_duration_strings_raise(tmp_path: Path, value: str) -> None:
    with pytest.raises(ConfigError):
        load_config(argv=_base_args(tmp_path, f"--shutdown-timeout={value}"), environ={})


@pytest.mark.parametrize(("raw", "expected"), [("true", True), ("ON", True), ("0", False), ("no", False)])
def test_boolean_spellings(tmp_path: Path, raw: str, expected: bool) -> None:
    cfg = load_config(argv=_base_args(tmp_path, "--idempotent-mutations", raw), environ={})

    assert cfg.idempotent_mutations is expected


def test_invalid_config_file_value_is_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"database_path": str(tmp_path / "pads.db"), "show_banner": "definitely"}),
        encoding="utf-8",
    )

    with pytest.raises(ConfigError):
        load_config(argv=["--config-file", str(config_path)], environ={})


def test_empty_database_path_in_config_file_raises(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"database_path": ""}), encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(argv=["--config-file", str(config_path)], environ={})


def test_config_file_must_be_json_object(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1, 2, 3]", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(argv=["--config-file", str(config_path)], environ={})


def test_negative_duration_from_environment_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="non-negative"):
        load_config(argv=_base_args(tmp_path), environ={"NOTEPAD_SERVER_REQUEST_TIMEOUT": "-5s"})
