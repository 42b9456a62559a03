"""Unit test fixtures for isolated, fast test execution.

Every fixture here writes only below ``tmp_path``; nothing touches the
user's real configuration or cache directories.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from devicelink.core.notifications import LoggingPresenter
from devicelink.core.settings_store import SettingsStore


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    path = tmp_path / "state"
    path.mkdir()
    return path


@pytest.fixture
def settings_store(state_dir: Path) -> Iterator[SettingsStore]:
    store = SettingsStore(state_dir / "settings.json")
    yield store
    store.close()


@pytest.fixture
def presenter() -> LoggingPresenter:
    return LoggingPresenter()
