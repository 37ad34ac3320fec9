"""Configuration loading and validation."""

from __future__ import annotations

import keyword
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .logging import level_from_string

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/hotseat/config.yaml")
DEFAULT_ROOT_DIR = Path("~/.local/lib/hotseat")
DEFAULT_LOG_LEVEL = "info"
DEFAULT_MARKER = "restart.txt"
DEFAULT_DEBOUNCE_SECONDS = 0.5
CONFIG_ENV_VAR = "HOTSEAT_CONFIG"


@dataclass(frozen=True)
class LoggingConfig:
    """Logging-related configuration."""

    level: str = DEFAULT_LOG_LEVEL
    debug_file: bool = False


@dataclass(frozen=True)
class Config:
    """Fully parsed host configuration."""

    app_root: Path
    app_package: str
    root_dir: Path
    logging: LoggingConfig
    marker: str = DEFAULT_MARKER
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    settings: dict[str, Any] = field(default_factory=dict)

    @property
    def bin_dir(self) -> Path:
        return self.app_root / "bin"

    @property
    def package_path(self) -> Path:
        return Path(*self.app_package.split("."))

    @property
    def controllers_dir(self) -> Path:
        return self.bin_dir / self.package_path / "controllers"

    @property
    def watch_dir(self) -> Path:
        return self.app_root / "tmp"

    @property
    def marker_path(self) -> Path:
        return self.watch_dir / self.marker


def load_config(path: Path | str | None = None) -> Config:
    """Load and validate configuration from YAML."""

    config_path = resolve_config_path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        try:
            raw = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError("Configuration root must be a mapping.")

    return parse_config(raw)


def resolve_config_path(explicit: Path | str | None) -> Path:
    if explicit:
        return Path(explicit).expanduser()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def parse_config(raw: dict[str, Any]) -> Config:
    """Build a :class:`Config` from an already-decoded mapping."""

    app_root = _parse_app_root(raw.get("app_root"))
    app_package = _parse_package(raw.get("app_package"))
    root_dir = Path(raw.get("root_dir") or DEFAULT_ROOT_DIR).expanduser()
    return Config(
        app_root=app_root,
        app_package=app_package,
        root_dir=root_dir,
        logging=_parse_logging(raw.get("logging")),
        marker=_parse_marker(raw.get("marker")),
        debounce_seconds=_parse_debounce(raw.get("debounce_seconds")),
        settings=_parse_settings(raw.get("settings")),
    )


def _parse_app_root(value: Any) -> Path:
    if value is None:
        raise ConfigError("app_root must be configured.")
    if not isinstance(value, str | Path):
        raise ConfigError("app_root must be a string path.")
    path = Path(value).expanduser()
    if not path.is_dir():
        raise ConfigError(f"app_root is not a directory: {path}")
    bin_dir = path / "bin"
    if not bin_dir.is_dir():
        LOGGER.warning("Application root %s has no bin/ directory yet.", path)
    return path


def _parse_package(value: Any) -> str:
    if not value or not isinstance(value, str):
        raise ConfigError("app_package must be a dotted package name.")
    parts = value.strip().split(".")
    for part in parts:
        if not part.isidentifier() or keyword.iskeyword(part):
            raise ConfigError(f"app_package '{value}' is not a valid package name.")
    return ".".join(parts)


def _parse_marker(value: Any) -> str:
    if value is None:
        return DEFAULT_MARKER
    if not isinstance(value, str) or not value.strip():
        raise ConfigError("marker must be a non-empty file name.")
    marker = value.strip()
    if "/" in marker or os.sep in marker:
        raise ConfigError("marker must be a file name, not a path.")
    return marker


def _parse_debounce(value: Any) -> float:
    if value is None:
        return DEFAULT_DEBOUNCE_SECONDS
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ConfigError("debounce_seconds must be a number.")
    if value < 0:
        raise ConfigError("debounce_seconds cannot be negative.")
    return float(value)


def _parse_settings(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError("settings must be a mapping.")
    return dict(value)


def _parse_logging(value: Any) -> LoggingConfig:
    if value is None:
        return LoggingConfig()
    if not isinstance(value, dict):
        raise ConfigError("logging must be a mapping.")
    level = str(value.get("level", DEFAULT_LOG_LEVEL)).strip().lower()
    level_from_string(level)
    debug_file = bool(value.get("debug_file", False))
    return LoggingConfig(level=level, debug_file=debug_file)


__all__ = [
    "Config",
    "ConfigError",
    "LoggingConfig",
    "load_config",
    "parse_config",
    "resolve_config_path",
]
