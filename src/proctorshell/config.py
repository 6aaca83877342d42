"""XDG config loading for proctored sessions."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Literal, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

DEFAULT_CONFIG_PATH = Path("~/.config/proctorshell/config.toml").expanduser()
DEFAULT_WORKSPACE_DIR = "~/.proctor_workspace"
DEFAULT_INTERNAL_DIR = "~/.proctor_internal"
DEFAULT_HISTORY_FILE_NAME = ".cmd_history"
DEFAULT_SESSION_LOG_NAME = "session_log.txt"
DEFAULT_IGNORED_SUFFIXES = (".swp", "~")
DEFAULT_SHELL_FAMILY: Literal["auto", "zsh", "bash"] = "auto"
DEFAULT_TERMINAL_ID = "terminal"
DEFAULT_ADMIN_KEY = "1915"
ADMIN_KEY_ENV = "PROCTOR_ADMIN_KEY"
DEFAULT_FORBIDDEN_APPS = ("firefox", "hotspotshield", "discord", "slack", "spotify", "zen")
DEFAULT_SHIELD_INTERVAL_SECONDS = 5.0

_VALID_SHELL_FAMILIES = {"auto", "zsh", "bash"}


def _is_plain_name(value: str) -> bool:
    return bool(value) and value not in {".", ".."} and "/" not in value and "\\" not in value


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    workspace_dir: str = DEFAULT_WORKSPACE_DIR
    internal_dir: str = DEFAULT_INTERNAL_DIR
    history_file_name: str = DEFAULT_HISTORY_FILE_NAME
    session_log_name: str = DEFAULT_SESSION_LOG_NAME
    ignored_suffixes: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORED_SUFFIXES))
    shell_family: Literal["auto", "zsh", "bash"] = DEFAULT_SHELL_FAMILY
    terminal_id: str = DEFAULT_TERMINAL_ID
    admin_key: str = DEFAULT_ADMIN_KEY
    shield_enabled: bool = True
    forbidden_apps: list[str] = Field(default_factory=lambda: list(DEFAULT_FORBIDDEN_APPS))
    shield_interval_seconds: float = DEFAULT_SHIELD_INTERVAL_SECONDS

    @field_validator("shell_family")
    @classmethod
    def _validate_shell_family(cls, value: str) -> str:
        if value not in _VALID_SHELL_FAMILIES:
            raise ValueError(f"Invalid shell family: {value}")
        return value

    @field_validator("history_file_name", "session_log_name")
    @classmethod
    def _validate_file_name(cls, value: str) -> str:
        if not _is_plain_name(value):
            raise ValueError(f"Expected a bare file name, got: {value!r}")
        return value

    @field_validator("shield_interval_seconds")
    @classmethod
    def _validate_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("shield_interval_seconds must be positive")
        return value

    @field_validator("terminal_id", "workspace_dir", "internal_dir")
    @classmethod
    def _validate_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Value cannot be blank")
        return value.strip()

    def workspace_path(self) -> Path:
        return _absolute(self.workspace_dir)

    def internal_path(self) -> Path:
        return _absolute(self.internal_dir)

    def history_path(self) -> Path:
        return self.internal_path() / self.history_file_name

    def session_log_path(self) -> Path:
        return self.workspace_path() / self.session_log_name


def _absolute(value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = path.resolve()
    return path


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _normalize_entries(value: object, default: tuple[str, ...], *, lower: bool = False) -> list[str]:
    if not isinstance(value, list):
        return list(default)
    normalized: list[str] = []
    for item in value:
        if not isinstance(item, str):
            continue
        entry = item.strip().lower() if lower else item.strip()
        if entry and entry not in normalized:
            normalized.append(entry)
    return normalized


def _sanitize(raw: dict[str, object]) -> AppConfig:
    cfg = AppConfig()

    for key in ("workspace_dir", "internal_dir", "terminal_id"):
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            setattr(cfg, key, value)

    for key in ("history_file_name", "session_log_name"):
        value = raw.get(key)
        if isinstance(value, str) and _is_plain_name(value):
            setattr(cfg, key, value)

    if "ignored_suffixes" in raw:
        cfg.ignored_suffixes = _normalize_entries(raw.get("ignored_suffixes"), DEFAULT_IGNORED_SUFFIXES)

    if "forbidden_apps" in raw:
        cfg.forbidden_apps = _normalize_entries(raw.get("forbidden_apps"), DEFAULT_FORBIDDEN_APPS, lower=True)

    shield_enabled = raw.get("shield_enabled")
    if isinstance(shield_enabled, bool):
        cfg.shield_enabled = shield_enabled

    interval = raw.get("shield_interval_seconds")
    if isinstance(interval, (int, float)) and not isinstance(interval, bool) and interval > 0:
        cfg.shield_interval_seconds = float(interval)

    shell_family = raw.get("shell_family", cfg.shell_family)
    if isinstance(shell_family, str) and shell_family in _VALID_SHELL_FAMILIES:
        cfg.shell_family = cast(Literal["auto", "zsh", "bash"], shell_family)

    admin_key = raw.get("admin_key", cfg.admin_key)
    if isinstance(admin_key, str) and admin_key:
        cfg.admin_key = admin_key

    return cfg


def _apply_env(cfg: AppConfig) -> AppConfig:
    env_key = os.getenv(ADMIN_KEY_ENV, "").strip()
    if env_key:
        cfg.admin_key = env_key
    return cfg


def load_config(path: str | Path | None = None) -> AppConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return _apply_env(AppConfig())
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        return _apply_env(AppConfig())
    if not isinstance(raw, dict):
        return _apply_env(AppConfig())
    return _apply_env(_sanitize(raw))
