"""Centralized path constants for the devicelink daemon."""

from __future__ import annotations

import os
from pathlib import Path


def _env_path(variable: str, default: Path) -> Path:
    value = os.environ.get(variable)
    return Path(value).expanduser() if value else default


def _xdg_dir(variable: str, fallback: str) -> Path:
    return _env_path(variable, Path.home() / fallback)


PACKAGE_ROOT = Path(__file__).resolve().parents[1]

# Persistent state (settings, identity, daemon config)
CONFIG_DIR = _env_path("DEVICELINK_CONFIG_DIR", _xdg_dir("XDG_CONFIG_HOME", ".config") / "devicelink")
CONFIG_PATH = CONFIG_DIR / "config.txt"
SETTINGS_FILE = CONFIG_DIR / "settings.json"
CERTIFICATE_PATH = CONFIG_DIR / "certificate.pem"
PRIVATE_KEY_PATH = CONFIG_DIR / "private.pem"

# Per-device caches, one directory per device id
CACHE_DIR = _env_path("DEVICELINK_CACHE_DIR", _xdg_dir("XDG_CACHE_HOME", ".cache") / "devicelink")

# Logging
LOGS_DIR = _env_path("DEVICELINK_LOG_DIR", CACHE_DIR / "logs")
DAEMON_LOG_FILE = LOGS_DIR / "daemon.log"


def ensure_directories() -> None:
    """Create necessary directories if they don't exist."""

    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    CACHE_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)


__all__ = [
    'PACKAGE_ROOT',
    'CONFIG_DIR',
    'CONFIG_PATH',
    'SETTINGS_FILE',
    'CERTIFICATE_PATH',
    'PRIVATE_KEY_PATH',
    'CACHE_DIR',
    'LOGS_DIR',
    'DAEMON_LOG_FILE',
    'ensure_directories',
]
