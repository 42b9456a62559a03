"""Unit tests for the startup configuration migration."""

import shutil

import pytest

from devicelink.core.migration import (
    MIGRATION_NOTIFICATION_ID,
    ConfigurationMigrator,
)
from devicelink.core.notifications import NotificationPriority
from devicelink.core.settings_store import device_settings_path

from tests.unit.helpers import OTHER_VALID_ID, VALID_ID, write_certificate


OLD_STYLE_ID = "6f1c2d3e-4a5b-6c7d-8e9f-0a1b2c3d4e5f"


@pytest.fixture
def identity_paths(state_dir):
    return {
        "certificate_path": state_dir / "certificate.pem",
        "private_key_path": state_dir / "private.pem",
        "cache_dir": state_dir / "cache",
    }


@pytest.fixture
def migrator(settings_store, presenter, identity_paths):
    return ConfigurationMigrator(
        settings_store,
        presenter,
        host_name=lambda: "workstation",
        **identity_paths,
    )


def _seed_devices(settings_store, cache_dir, device_ids):
    settings_store.view().set("devices", list(device_ids))
    for device_id in device_ids:
        device = settings_store.device_view(device_id)
        device.set("name", f"device {device_id}")
        device.set("paired", True)
        (cache_dir / device_id).mkdir(parents=True)
        (cache_dir / device_id / "contacts.json").write_text("{}")


class TestNoOpPaths:

    def test_missing_certificate_is_noop(self, migrator, settings_store, presenter):
        settings_store.view().set("name", "desk")
        settings_store.view().set("devices", ["bad!"])
        revision = settings_store.revision

        result = migrator.migrate()

        assert not result.migrated
        assert settings_store.view().get("devices") == ["bad!"]
        assert settings_store.revision == revision
        assert presenter.notifications == {}

    def test_valid_certificate_is_noop(self, migrator, settings_store, presenter, identity_paths):
        write_certificate(identity_paths["certificate_path"], VALID_ID)
        settings_store.view().set("name", "desk")
        settings_store.view().set("id", VALID_ID)
        settings_store.device_view(OTHER_VALID_ID).set("paired", True)

        result = migrator.migrate()

        assert not result.migrated
        assert identity_paths["certificate_path"].exists()
        assert settings_store.view().get("id") == VALID_ID
        assert settings_store.device_view(OTHER_VALID_ID).get("paired") is True
        assert presenter.notifications == {}


class TestNameRepair:

    def test_blank_name_replaced_with_host_name(self, migrator, settings_store):
        result = migrator.migrate()

        assert result.name_repaired
        assert settings_store.view().get("name") == "workstation"

    def test_valid_name_kept(self, migrator, settings_store):
        settings_store.view().set("name", "My Desktop")

        result = migrator.migrate()

        assert not result.name_repaired
        assert settings_store.view().get("name") == "My Desktop"


class TestMigration:

    def test_mixed_device_list(self, migrator, settings_store, presenter, identity_paths):
        cache_dir = identity_paths["cache_dir"]
        write_certificate(
            identity_paths["certificate_path"],
            OLD_STYLE_ID,
            key_path=identity_paths["private_key_path"],
        )
        settings_store.view().set("name", "desk")
        settings_store.view().set("id", OLD_STYLE_ID)
        _seed_devices(settings_store, cache_dir, [VALID_ID, "bad!"])

        result = migrator.migrate()

        assert result.migrated
        assert result.valid_ids == {VALID_ID}
        assert result.removed_ids == {"bad!"}

        # Identity material is gone and the cached id reset
        assert not identity_paths["certificate_path"].exists()
        assert not identity_paths["private_key_path"].exists()
        assert not settings_store.view().is_set("id")

        # Valid device repaired, invalid device discarded
        assert settings_store.view().get("devices") == [VALID_ID]
        assert settings_store.device_view(VALID_ID).get("paired") is False
        assert settings_store.device_view(VALID_ID).get("name") == f"device {VALID_ID}"
        assert settings_store.paths(device_settings_path("bad!")) == []
        assert (cache_dir / VALID_ID).exists()
        assert not (cache_dir / "bad!").exists()

        notification = presenter.notifications[MIGRATION_NOTIFICATION_ID]
        assert notification.title == "Settings Migrated"
        assert notification.priority is NotificationPriority.HIGH
        assert len(presenter.notifications) == 1

    def test_second_run_is_noop(self, migrator, settings_store, presenter, identity_paths):
        write_certificate(identity_paths["certificate_path"], OLD_STYLE_ID)
        settings_store.view().set("name", "desk")
        _seed_devices(settings_store, identity_paths["cache_dir"], [VALID_ID, "bad!"])
        migrator.migrate()

        presenter.notifications.clear()
        revision = settings_store.revision

        result = migrator.migrate()

        assert not result.migrated
        assert settings_store.revision == revision
        assert presenter.notifications == {}

    def test_unreadable_certificate_counts_as_invalid(self, migrator, settings_store, identity_paths):
        identity_paths["certificate_path"].write_text("garbage")
        settings_store.view().set("name", "desk")

        result = migrator.migrate()

        assert result.migrated
        assert not identity_paths["certificate_path"].exists()

    def test_cache_removal_failure_is_ignored(self, migrator, settings_store, identity_paths, monkeypatch):
        write_certificate(identity_paths["certificate_path"], OLD_STYLE_ID)
        settings_store.view().set("name", "desk")
        _seed_devices(settings_store, identity_paths["cache_dir"], ["bad!"])

        def fail(path, *args, **kwargs):
            raise PermissionError(f"cannot remove {path}")

        monkeypatch.setattr(shutil, "rmtree", fail)

        result = migrator.migrate()

        assert result.migrated
        assert result.removed_ids == {"bad!"}
        assert len(result.failures) == 1
        assert settings_store.view().get("devices") == []

    @pytest.mark.parametrize("escaping_id", ["", ".", "../sibling", "cache/.."])
    def test_cache_purge_stays_inside_cache_root(
        self, migrator, settings_store, identity_paths, state_dir, escaping_id
    ):
        cache_dir = identity_paths["cache_dir"]
        write_certificate(identity_paths["certificate_path"], OLD_STYLE_ID)
        settings_store.view().set("name", "desk")
        _seed_devices(settings_store, cache_dir, [VALID_ID])
        (state_dir / "sibling").mkdir()
        (state_dir / "sibling" / "keep.txt").write_text("keep")
        settings_store.view().set("devices", [VALID_ID, escaping_id])

        result = migrator.migrate()

        assert result.removed_ids == {escaping_id}
        assert len(result.failures) == 1
        assert (cache_dir / VALID_ID / "contacts.json").exists()
        assert (state_dir / "sibling" / "keep.txt").exists()
        assert settings_store.view().get("devices") == [VALID_ID]

    def test_absolute_id_does_not_leave_cache_root(self, migrator, settings_store, identity_paths, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "notes.txt").write_text("mine")
        write_certificate(identity_paths["certificate_path"], OLD_STYLE_ID)
        settings_store.view().set("name", "desk")
        settings_store.view().set("devices", [str(outside)])

        result = migrator.migrate()

        assert result.removed_ids == {str(outside)}
        assert (outside / "notes.txt").exists()
        assert len(result.failures) == 1

    def test_malformed_device_list_treated_as_empty(self, migrator, settings_store, identity_paths):
        write_certificate(identity_paths["certificate_path"], OLD_STYLE_ID)
        settings_store.view().set("name", "desk")
        settings_store.write("/devices", "not-a-list")

        result = migrator.migrate()

        assert result.migrated
        assert result.removed_ids == set()
        assert settings_store.view().get("devices") == []
