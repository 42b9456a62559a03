"""Loads daemon options from the ``key = value`` file ``config.txt``.

Blank lines and ``#`` comments are ignored, values may be quoted, and a
trailing ``# comment`` is stripped. Unknown keys are kept in the parsed
mapping but ignored by ``DaemonConfig``; malformed values fall back to
their defaults with a warning.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping

import aiofiles

from .logging_utils import get_module_logger
from .paths import CONFIG_PATH


logger = get_module_logger("ConfigManager")

DEFAULT_BUS_HOST = "127.0.0.1"
DEFAULT_BUS_PORT = 52721
DEFAULT_REMOTE_TIMEOUT = 25.0

_TRUE_VALUES = ("true", "1", "yes", "on")


def parse_config_lines(lines: Iterable[str]) -> Dict[str, str]:
    config: Dict[str, str] = {}

    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = (part.strip() for part in line.split("=", 1))
        value = value.split("#", 1)[0].strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]

        config[key] = value

    return config


async def read_config_async(config_path: Path) -> Dict[str, str]:
    if not await asyncio.to_thread(config_path.exists):
        return {}

    try:
        async with aiofiles.open(config_path, "r", encoding="utf-8") as f:
            return parse_config_lines(await f.readlines())
    except OSError as e:
        logger.error("Failed to read config %s: %s", config_path, e)
        return {}


def _get_bool(config: Mapping[str, str], key: str, default: bool) -> bool:
    if key not in config:
        return default
    return config[key].lower() in _TRUE_VALUES


def _get_number(config: Mapping[str, str], key: str, default, kind):
    if key not in config:
        return default
    try:
        return kind(config[key])
    except ValueError:
        logger.warning("Invalid %s value for %s: %r, using default %s", kind.__name__, key, config[key], default)
        return default


@dataclass(frozen=True)
class DaemonConfig:
    """Daemon options resolved from ``config.txt``."""
    log_level: str = "info"
    console_output: bool = True
    bus_host: str = DEFAULT_BUS_HOST
    bus_port: int = DEFAULT_BUS_PORT
    remote_timeout: float = DEFAULT_REMOTE_TIMEOUT

    @classmethod
    def from_mapping(cls, config: Mapping[str, str]) -> "DaemonConfig":
        return cls(
            log_level=config.get("log_level", "info"),
            console_output=_get_bool(config, "console_output", True),
            bus_host=config.get("bus_host", DEFAULT_BUS_HOST),
            bus_port=_get_number(config, "bus_port", DEFAULT_BUS_PORT, int),
            remote_timeout=_get_number(config, "remote_timeout", DEFAULT_REMOTE_TIMEOUT, float),
        )


async def load_daemon_config_async(config_path: Path = CONFIG_PATH) -> DaemonConfig:
    return DaemonConfig.from_mapping(await read_config_async(config_path))
