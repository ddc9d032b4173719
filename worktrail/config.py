from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/worktrail/config.json").expanduser()
DEFAULT_DB_PATH = Path("~/.worktrail/worktrail.sqlite").expanduser()

CONFIG_ENV_OVERRIDES = {
    "db_path": "WORKTRAIL_DB",
    "git_max_depth": "WORKTRAIL_GIT_MAX_DEPTH",
    "initial_sync_days": "WORKTRAIL_INITIAL_SYNC_DAYS",
    "auto_sync_interval_s": "WORKTRAIL_AUTO_SYNC_INTERVAL_S",
    "calendar_export_path": "WORKTRAIL_CALENDAR_EXPORT",
    "progress_queue_size": "WORKTRAIL_PROGRESS_QUEUE_SIZE",
}

_INT_KEYS = {
    "git_max_depth",
    "initial_sync_days",
    "auto_sync_interval_s",
    "progress_queue_size",
}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("WORKTRAIL_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def _strip_jsonc(text: str) -> str:
    """Drop // and /* */ comments and trailing commas outside of strings."""

    out: list[str] = []
    i = 0
    in_string = False
    length = len(text)
    while i < length:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < length:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
            continue
        if text.startswith("//", i):
            end = text.find("\n", i)
            i = length if end == -1 else end
            continue
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                raise ValueError("unterminated block comment")
            i = end + 2
            continue
        if ch == ",":
            j = i + 1
            while j < length and text[j] in " \t\r\n":
                j += 1
            if j < length and text[j] in "}]":
                i += 1
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(_strip_jsonc(raw))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class WorktrailConfig:
    db_path: str = str(DEFAULT_DB_PATH)
    # Directory depth below the configured dev folder searched for repositories.
    git_max_depth: int = 2
    initial_sync_days: int = 90
    auto_sync_interval_s: int = 900
    calendar_export_path: str | None = None
    progress_queue_size: int = 256


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    if parsed < 0:
        warnings.warn(f"Negative int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    return parsed


def load_config(path: Path | None = None) -> WorktrailConfig:
    cfg = WorktrailConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = read_config_file(config_path)
        except ValueError:
            warnings.warn(
                f"Ignoring unreadable config file {config_path}", RuntimeWarning, stacklevel=2
            )
            data = {}
        cfg = _apply_dict(cfg, data)
    cfg = _apply_dict(cfg, get_env_overrides())
    return cfg


def _apply_dict(cfg: WorktrailConfig, data: dict[str, Any]) -> WorktrailConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        if key in _INT_KEYS:
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        if value is None or isinstance(value, str):
            if key == "db_path" and not value:
                continue
            setattr(cfg, key, value or None)
            continue
        warnings.warn(f"Invalid value for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return cfg
