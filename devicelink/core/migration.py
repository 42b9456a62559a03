"""
Configuration Migrator - One-time repair of identity and device records.

Runs once at startup, before the device registry accepts dispatches. When
the local certificate carries an identifier that no longer satisfies the
device id format, the certificate is discarded (so a new identity is
generated) and every remembered device is either repaired or discarded:

- a device whose own id is malformed is dropped together with its
  settings subtree and cache directory;
- a well-formed device keeps its settings but loses its paired flag, since
  it was paired with the old identity.

A second run finds no certificate (or a valid one) and does nothing.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Set

from devicelink.core.devices.identity import (
    default_device_name,
    read_certificate_common_name,
    validate_id,
    validate_name,
)
from devicelink.core.errors import MigrationIOFailure
from devicelink.core.logging_utils import get_module_logger
from devicelink.core.notifications import Notification, NotificationPriority, Presenter
from devicelink.core.settings_store import SettingsStore, device_settings_path

logger = get_module_logger("Migration")

MIGRATION_NOTIFICATION_ID = "settings-migrated"


@dataclass
class MigrationResult:
    """What a migration run changed."""
    migrated: bool = False
    name_repaired: bool = False
    valid_ids: Set[str] = field(default_factory=set)
    removed_ids: Set[str] = field(default_factory=set)
    failures: List[MigrationIOFailure] = field(default_factory=list)


class ConfigurationMigrator:

    def __init__(
        self,
        settings_store: SettingsStore,
        presenter: Presenter,
        certificate_path: Path,
        private_key_path: Path,
        cache_dir: Path,
        host_name: Callable[[], str] = default_device_name,
    ):
        self._store = settings_store
        self._settings = settings_store.view()
        self._presenter = presenter
        self._certificate_path = Path(certificate_path)
        self._private_key_path = Path(private_key_path)
        self._cache_dir = Path(cache_dir)
        self._host_name = host_name

    def migrate(self) -> MigrationResult:
        result = MigrationResult()

        if not validate_name(self._settings.get("name")):
            name = self._host_name()
            logger.info("Replacing invalid device name with %r", name)
            self._settings.set("name", name)
            result.name_repaired = True

        if self._identity_is_current():
            return result

        logger.warning("Local identity uses an outdated id format; migrating settings")

        # The certificate is the single source of truth for the local id
        for path in (self._certificate_path, self._private_key_path):
            self._delete_file(path, result)

        device_list: List[str] = []
        for device_id in self._store.remembered_devices():
            if not isinstance(device_id, str):
                logger.info("Malformed device entry %r removed", device_id)
                continue
            if validate_id(device_id):
                self._store.device_view(device_id).set("paired", False)
                result.valid_ids.add(device_id)
                device_list.append(device_id)
                continue

            self._store.reset_tree(device_settings_path(device_id))
            self._delete_cache(device_id, result)
            result.removed_ids.add(device_id)
            logger.info("Invalid device id %s removed", device_id)

        self._settings.set("devices", device_list)

        self._presenter.send_notification(
            MIGRATION_NOTIFICATION_ID,
            Notification(
                title="Settings Migrated",
                body=(
                    "devicelink has updated to support changes to the device protocol. "
                    "Some devices may need to be re-paired."
                ),
                icon="dialog-warning",
                priority=NotificationPriority.HIGH,
            ),
        )

        # Regenerated from the new certificate on next use
        self._settings.reset("id")

        result.migrated = True
        logger.info(
            "Migration complete: %d devices kept, %d removed",
            len(result.valid_ids),
            len(result.removed_ids),
        )
        return result

    def _identity_is_current(self) -> bool:
        if not self._certificate_path.exists():
            logger.debug("No certificate at %s; nothing to migrate", self._certificate_path)
            return True

        try:
            common_name = read_certificate_common_name(self._certificate_path)
        except (OSError, ValueError) as e:
            logger.warning("Unreadable certificate %s: %s", self._certificate_path, e)
            return False

        return validate_id(common_name)

    def _delete_file(self, path: Path, result: MigrationResult) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self._record_failure(result, MigrationIOFailure(f"Could not delete {path}: {e}"))

    def _delete_cache(self, device_id: str, result: MigrationResult) -> None:
        # Only a direct child of the cache root may be removed
        cache_root = self._cache_dir.resolve()
        cache_path = (cache_root / device_id).resolve()
        if cache_path.parent != cache_root:
            self._record_failure(
                result,
                MigrationIOFailure(f"Refusing to remove cache for {device_id!r}: outside {cache_root}"),
            )
            return
        if not cache_path.exists():
            return
        try:
            shutil.rmtree(cache_path)
        except OSError as e:
            self._record_failure(result, MigrationIOFailure(f"Could not remove {cache_path}: {e}"))

    @staticmethod
    def _record_failure(result: MigrationResult, failure: MigrationIOFailure) -> None:
        result.failures.append(failure)
        logger.warning("%s (continuing)", failure)


def run_migration(
    settings_store: SettingsStore,
    presenter: Presenter,
    certificate_path: Path,
    private_key_path: Path,
    cache_dir: Path,
    host_name: Optional[Callable[[], str]] = None,
) -> MigrationResult:
    migrator = ConfigurationMigrator(
        settings_store,
        presenter,
        certificate_path=certificate_path,
        private_key_path=private_key_path,
        cache_dir=cache_dir,
        host_name=host_name or default_device_name,
    )
    return migrator.migrate()
