"""
Settings Store - Persistent key-value settings with per-device subtrees.

Settings live in a single JSON document keyed by absolute path, similar to
a dconf database::

    {
        "/name": "workstation",
        "/devices": ["3c0e8a2f..."],
        "/device/3c0e8a2f.../paired": true
    }

A ``Settings`` view binds a path prefix to a schema of defaults. Unset keys
read as their default, ``reset`` removes the stored value, and
``SettingsStore.reset_tree`` removes a whole subtree. Observers registered
with ``connect`` are called after a key changes.

The store is created once by the service and handed to every component
that needs it; ``close`` drops observers at shutdown.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from .logging_utils import get_module_logger

logger = get_module_logger("SettingsStore")

ChangeCallback = Callable[[str, Any], None]

APP_SCHEMA: Dict[str, Any] = {
    "name": "",
    "id": "",
    "devices": [],
    "discoverable": True,
}

DEVICE_SCHEMA: Dict[str, Any] = {
    "name": "",
    "type": "smartphone",
    "paired": False,
    "certificate-pem": "",
    "last-connection": "",
}


def device_settings_path(device_id: str) -> str:
    return f"/device/{device_id}/"


class SettingsStore:
    """JSON-backed settings database shared by all ``Settings`` views."""

    def __init__(self, file_path: Path):
        self._file_path = Path(file_path)
        self._values: Dict[str, Any] = {}
        self._observers: Dict[str, List[ChangeCallback]] = {}
        self._closed = False
        self.revision = 0
        self._load()

    # =========================================================================
    # Persistence
    # =========================================================================

    @property
    def file_path(self) -> Path:
        return self._file_path

    def _load(self) -> None:
        if not self._file_path.exists():
            return

        try:
            with open(self._file_path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in settings file %s: %s", self._file_path, e)
            return
        except OSError as e:
            logger.error("Failed to read settings file %s: %s", self._file_path, e)
            return

        if not isinstance(data, dict):
            logger.error("Settings file %s does not hold an object, ignoring it", self._file_path)
            return

        self._values = data

    def _save(self) -> None:
        self._file_path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                dir=str(self._file_path.parent),
                delete=False,
                encoding="utf-8",
            ) as tmp:
                tmp_path = Path(tmp.name)
                json.dump(self._values, tmp, indent=2, sort_keys=True)
                tmp.flush()
                os.fsync(tmp.fileno())

            os.replace(tmp_path, self._file_path)
        finally:
            if tmp_path is not None:
                try:
                    tmp_path.unlink()
                except FileNotFoundError:
                    pass

        self.revision += 1

    # =========================================================================
    # Raw access (absolute paths)
    # =========================================================================

    def contains(self, path: str) -> bool:
        return path in self._values

    def read(self, path: str, default: Any = None) -> Any:
        if path in self._values:
            return copy.deepcopy(self._values[path])
        return copy.deepcopy(default)

    def write(self, path: str, value: Any) -> None:
        self._ensure_open()
        json.dumps(value)  # reject values the document cannot hold
        self._values[path] = copy.deepcopy(value)
        self._save()
        self._notify(path, value)

    def remove(self, path: str) -> None:
        self._ensure_open()
        if path not in self._values:
            return
        del self._values[path]
        self._save()
        self._notify(path, None)

    def reset_tree(self, prefix: str) -> int:
        """Remove every key below ``prefix``; returns the number removed."""
        self._ensure_open()
        if not prefix.endswith("/"):
            prefix = f"{prefix}/"

        doomed = [path for path in self._values if path.startswith(prefix)]
        if not doomed:
            return 0

        for path in doomed:
            del self._values[path]
        self._save()

        for path in doomed:
            self._notify(path, None)
        logger.debug("Reset %d keys under %s", len(doomed), prefix)
        return len(doomed)

    def paths(self, prefix: str = "/") -> List[str]:
        return sorted(path for path in self._values if path.startswith(prefix))

    # =========================================================================
    # Views and observers
    # =========================================================================

    def view(self, prefix: str = "/", schema: Optional[Mapping[str, Any]] = None) -> "Settings":
        return Settings(self, prefix, APP_SCHEMA if schema is None else schema)

    def remembered_devices(self) -> List[Any]:
        devices = self.view().get("devices")
        if not isinstance(devices, list):
            logger.warning("Ignoring malformed device list: %r", devices)
            return []
        return list(devices)

    def device_view(self, device_id: str) -> "Settings":
        return Settings(self, device_settings_path(device_id), DEVICE_SCHEMA)

    def connect(self, path: str, callback: ChangeCallback) -> None:
        self._observers.setdefault(path, []).append(callback)

    def disconnect(self, path: str, callback: ChangeCallback) -> None:
        callbacks = self._observers.get(path, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def _notify(self, path: str, value: Any) -> None:
        for callback in list(self._observers.get(path, ())):
            try:
                callback(path, value)
            except Exception:
                logger.exception("Settings observer for %s failed", path)

    def close(self) -> None:
        self._observers.clear()
        self._closed = True
        logger.debug("Settings store closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("settings store is closed")


class Settings:
    """Schema-checked view over one subtree of a ``SettingsStore``."""

    def __init__(self, store: SettingsStore, prefix: str, schema: Mapping[str, Any]):
        if not prefix.endswith("/"):
            prefix = f"{prefix}/"
        self._store = store
        self._prefix = prefix
        self._schema = dict(schema)

    @property
    def prefix(self) -> str:
        return self._prefix

    def _path(self, key: str) -> str:
        if key not in self._schema:
            raise KeyError(f"Unknown settings key '{key}' under {self._prefix}")
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Any:
        return self._store.read(self._path(key), self._schema[key])

    def set(self, key: str, value: Any) -> None:
        default = self._schema[key] if key in self._schema else None
        if default is not None and not isinstance(value, type(default)):
            raise TypeError(
                f"Settings key '{key}' expects {type(default).__name__}, got {type(value).__name__}"
            )
        self._store.write(self._path(key), value)

    def reset(self, key: str) -> None:
        self._store.remove(self._path(key))

    def is_set(self, key: str) -> bool:
        return self._store.contains(self._path(key))

    def connect(self, key: str, callback: ChangeCallback) -> None:
        self._store.connect(self._path(key), callback)


__all__ = [
    "APP_SCHEMA",
    "DEVICE_SCHEMA",
    "Settings",
    "SettingsStore",
    "device_settings_path",
]
