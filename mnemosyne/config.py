from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .db import DEFAULT_DB_PATH

DEFAULT_CONFIG_PATH = Path("~/.config/mnemosyne/config.json").expanduser()

CONFIG_ENV_OVERRIDES = {
    "db_path": "MNEMOSYNE_DB",
    "user_id": "MNEMOSYNE_USER_ID",
    "auto_sync": "MNEMOSYNE_AUTO_SYNC",
    "sync_remote": "MNEMOSYNE_SYNC_REMOTE",
    "sync_branch": "MNEMOSYNE_SYNC_BRANCH",
    "sync_push_timeout_s": "MNEMOSYNE_SYNC_PUSH_TIMEOUT_S",
    "log_level": "MNEMOSYNE_LOG_LEVEL",
}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("MNEMOSYNE_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


@dataclass
class MnemosyneConfig:
    db_path: str = str(DEFAULT_DB_PATH)
    user_id: str = "default"
    # Commit and push the database after each write when its directory is a git repo.
    auto_sync: bool = True
    sync_remote: str = "origin"
    sync_branch: str = "main"
    sync_push_timeout_s: int = 5
    log_level: str = "INFO"


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    if value.lower() in {"1", "true", "yes", "on"}:
        return True
    if value.lower() in {"0", "false", "off", "no"}:
        return False
    return default


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _coerce_bool(value: object, default: bool, *, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return _parse_bool(value, default)
    warnings.warn(f"Invalid bool for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def _coerce_str(value: object, default: str, *, key: str) -> str:
    if value is None:
        return default
    if isinstance(value, str) and value.strip():
        return value.strip()
    warnings.warn(f"Invalid string for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def load_config(path: Path | None = None) -> MnemosyneConfig:
    cfg = MnemosyneConfig()
    try:
        data = read_config_file(path)
    except ValueError as exc:
        warnings.warn(f"Invalid config file: {exc}", RuntimeWarning, stacklevel=2)
        data = {}
    cfg = _apply_dict(cfg, data)
    cfg = _apply_env(cfg)
    return cfg


def _apply_dict(cfg: MnemosyneConfig, data: dict[str, Any]) -> MnemosyneConfig:
    for key in ("db_path", "user_id", "sync_remote", "sync_branch", "log_level"):
        if key in data:
            setattr(cfg, key, _coerce_str(data[key], getattr(cfg, key), key=key))
    if "auto_sync" in data:
        cfg.auto_sync = _coerce_bool(data["auto_sync"], cfg.auto_sync, key="auto_sync")
    if "sync_push_timeout_s" in data:
        cfg.sync_push_timeout_s = _parse_int(
            data["sync_push_timeout_s"], cfg.sync_push_timeout_s, key="sync_push_timeout_s"
        )
    return cfg


def _apply_env(cfg: MnemosyneConfig) -> MnemosyneConfig:
    cfg.db_path = os.getenv("MNEMOSYNE_DB", cfg.db_path)
    cfg.user_id = os.getenv("MNEMOSYNE_USER_ID", cfg.user_id)
    cfg.auto_sync = _parse_bool(os.getenv("MNEMOSYNE_AUTO_SYNC"), cfg.auto_sync)
    cfg.sync_remote = os.getenv("MNEMOSYNE_SYNC_REMOTE", cfg.sync_remote)
    cfg.sync_branch = os.getenv("MNEMOSYNE_SYNC_BRANCH", cfg.sync_branch)
    cfg.sync_push_timeout_s = _parse_int(
        os.getenv("MNEMOSYNE_SYNC_PUSH_TIMEOUT_S"),
        cfg.sync_push_timeout_s,
        key="sync_push_timeout_s",
    )
    cfg.log_level = os.getenv("MNEMOSYNE_LOG_LEVEL", cfg.log_level)
    return cfg
