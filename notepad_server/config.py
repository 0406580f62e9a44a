"""Configuration loading utilities for the notepad MCP server."""

from __future__ import annotations

import argparse
import json
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Sequence

ENV_PREFIX = "NOTEPAD_SERVER_"

BOOL_TRUE = {"1", "true", "t", "yes", "y", "on"}
BOOL_FALSE = {"0", "false", "f", "no", "n", "off"}
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_DATABASE_FILENAME = "notepads.db"


def _default_database_path() -> Path:
    """Return the default database location inside the installed package directory."""

    return (Path(__file__).resolve().parent / DEFAULT_DATABASE_FILENAME).resolve()


DEFAULT_DATABASE_PATH = _default_database_path()
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_REQUEST_TIMEOUT = "0s"
DEFAULT_SHUTDOWN_TIMEOUT = "5s"

T_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600}

ENV_FIELD_MAP = {
    "config_file": f"{ENV_PREFIX}CONFIG_FILE",
    "database_path": f"{ENV_PREFIX}DATABASE_PATH",
    "log_level": f"{ENV_PREFIX}LOG_LEVEL",
    "show_banner": f"{ENV_PREFIX}SHOW_BANNER",
    "request_timeout": f"{ENV_PREFIX}REQUEST_TIMEOUT",
    "shutdown_timeout": f"{ENV_PREFIX}SHUTDOWN_TIMEOUT",
    "idempotent_mutations": f"{ENV_PREFIX}IDEMPOTENT_MUTATIONS",
}

DEFAULT_VALUES: dict[str, Any] = {
    "config_file": None,
    "database_path": str(DEFAULT_DATABASE_PATH),
    "log_level": DEFAULT_LOG_LEVEL,
    "show_banner": False,
    "request_timeout": DEFAULT_REQUEST_TIMEOUT,
    "shutdown_timeout": DEFAULT_SHUTDOWN_TIMEOUT,
    "idempotent_mutations": False,
}


class ConfigError(ValueError):
    """Raised when configuration values are invalid."""


@dataclass(slots=True)
class Config:
    """Configuration model for the notepad MCP server."""

    database_path: Path
    log_level: str
    show_banner: bool
    request_timeout: timedelta
    shutdown_timeout: timedelta
    idempotent_mutations: bool
    config_file: Path | None = None


def load_config(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Load configuration from CLI arguments, environment variables, and optional file."""

    parser = _build_arg_parser()
    parsed = parser.parse_args(argv)
    cli_values = {k: v for k, v in vars(parsed).items() if v is not None}

    env_values = _extract_env_values(environ if environ is not None else os.environ)

    config_path_value = cli_values.get("config_file") or env_values.get("config_file")
    file_values = _load_config_file(config_path_value)

    merged: dict[str, Any] = {}
    _merge_layer(merged, DEFAULT_VALUES)
    _merge_layer(merged, file_values)
    _merge_layer(merged, env_values)
    _merge_layer(merged, cli_values)

    config = _normalize_values(merged, config_path_value)

    _maybe_write_config_file(config)
    return config


def hot_reload_config(*_args: Any, **_kwargs: Any) -> None:
    """Explicitly prevent runtime configuration reloading."""

    raise ConfigError("Configuration can only be loaded during startup. Restart the server to apply changes.")


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notepad-server",
        description="Notepad MCP server configuration flags.",
        add_help=False,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("-h", "--help", action="help", help="Show this help message and exit.")
    parser.add_argument(
        "--config-file",
        dest="config_file",
        metavar="PATH",
        help="Path to a JSON configuration file (created on first run). Default: none.",
    )
    parser.add_argument(
        "--database-path",
        dest="database_path",
        metavar="PATH",
        help=f"SQLite database file holding notepads (default: {DEFAULT_DATABASE_PATH}).",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        metavar="LEVEL",
        help=f"Diagnostic log level written to stderr: {', '.join(LOG_LEVELS)} (default: {DEFAULT_LOG_LEVEL}).",
    )
    parser.add_argument(
        "--show-banner",
        dest="show_banner",
        metavar="BOOL",
        help="Print the FastMCP startup banner on stderr (default: false).",
    )
    parser.add_argument(
        "--request-timeout",
        dest="request_timeout",
        metavar="DURATION",
        help="Upper bound for a single tool call; 0 disables the limit (default: 0s).",
    )
    parser.add_argument(
        "--shutdown-timeout",
        dest="shutdown_timeout",
        metavar="DURATION",
        help=f"Graceful shutdown timeout (default: {DEFAULT_SHUTDOWN_TIMEOUT}).",
    )
    parser.add_argument(
        "--idempotent-mutations",
        dest="idempotent_mutations",
        metavar="BOOL",
        help="Confirm delNotepad/updateNotepad even when no notepad matched (default: false).",
    )
    return parser


def _extract_env_values(env: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for field, env_name in ENV_FIELD_MAP.items():
        if env_name in env:
            values[field] = env[env_name]
    return values


def _load_config_file(path_value: str | Path | None) -> dict[str, Any]:
    if not path_value:
        return {}
    path = _parse_path(path_value, field="config_file")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file is not valid JSON: {path}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a JSON object")
    result: dict[str, Any] = {k: v for k, v in data.items() if k in DEFAULT_VALUES}
    result["config_file"] = str(path)
    return result


def _merge_layer(base: MutableMapping[str, Any], overrides: Mapping[str, Any]) -> None:
    for key, value in overrides.items():
        if value is None:
            continue
        base[key] = value


def _normalize_values(values: Mapping[str, Any], config_path_value: str | Path | None) -> Config:
    database_path = _parse_path(values["database_path"], field="database_path")

    log_level = str(values.get("log_level", DEFAULT_VALUES["log_level"])).strip().upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"log_level must be one of: {', '.join(LOG_LEVELS)}")

    show_banner = _parse_bool(values.get("show_banner"), default=DEFAULT_VALUES["show_banner"])
    idempotent_mutations = _parse_bool(
        values.get("idempotent_mutations"),
        default=DEFAULT_VALUES["idempotent_mutations"],
    )

    request_timeout = _parse_duration(
        values.get("request_timeout", DEFAULT_VALUES["request_timeout"]),
        default_unit="s",
        field="request_timeout",
    )
    shutdown_timeout = _parse_duration(
        values.get("shutdown_timeout", DEFAULT_VALUES["shutdown_timeout"]),
        default_unit="s",
        field="shutdown_timeout",
    )

    config_file_path = _parse_optional_path(config_path_value, field="config_file")

    return Config(
        database_path=database_path,
        log_level=log_level,
        show_banner=show_banner,
        request_timeout=request_timeout,
        shutdown_timeout=shutdown_timeout,
        idempotent_mutations=idempotent_mutations,
        config_file=config_file_path,
    )


def _maybe_write_config_file(config: Config) -> None:
    path = config.config_file
    if path is None:
        return

    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        return

    payload = _serialize_config(config)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def _serialize_config(config: Config) -> dict[str, Any]:
    return {
        "config_file": str(config.config_file) if config.config_file else None,
        "database_path": str(config.database_path),
        "log_level": config.log_level,
        "show_banner": config.show_banner,
        "request_timeout": _format_duration(config.request_timeout, preferred_unit="s"),
        "shutdown_timeout": _format_duration(config.shutdown_timeout, preferred_unit="s"),
        "idempotent_mutations": config.idempotent_mutations,
    }


def _format_duration(duration: timedelta, *, preferred_unit: str) -> str:
    total_seconds = int(duration.total_seconds())
    factor = T_DURATION_UNITS.get(preferred_unit, 1)
    if factor and total_seconds % factor == 0:
        return f"{total_seconds // factor}{preferred_unit}"
    return f"{total_seconds}s"


def _parse_bool(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in BOOL_TRUE:
            return True
        if lowered in BOOL_FALSE:
            return False
    raise ConfigError(f"Invalid boolean value: {value!r}")


def _parse_duration(value: Any, *, default_unit: str, field: str) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration for {field}: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
        if seconds < 0:
            raise ConfigError(f"{field} must be positive")
        return timedelta(seconds=seconds)
    if not isinstance(value, str):
        raise ConfigError(f"Invalid duration for {field}: {value!r}")

    stripped = value.strip()
    if not stripped:
        raise ConfigError(f"{field} may not be empty")

    unit = default_unit
    suffix = stripped[-1]
    number_part = stripped
    if suffix.lower() in T_DURATION_UNITS:
        unit = suffix.lower()
        number_part = stripped[:-1]
    if not number_part or not number_part.isdigit():
        raise ConfigError(f"{field} must be a non-negative integer optionally suffixed with s, m, or h")
    seconds = int(number_part) * T_DURATION_UNITS[unit]
    return timedelta(seconds=seconds)


def _parse_path(value: Any, *, field: str) -> Path:
    if isinstance(value, Path):
        return value.expanduser().resolve()
    if not isinstance(value, str):
        raise ConfigError(f"Invalid path for {field}: {value!r}")
    stripped = value.strip()
    if not stripped:
        raise ConfigError(f"{field} may not be empty")
    return Path(stripped).expanduser().resolve()


def _parse_optional_path(value: Any, *, field: str) -> Path | None:
    if value in (None, ""):
        return None
    return _parse_path(value, field=field)
