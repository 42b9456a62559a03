"""Unit tests for the application entry point."""

import io
from unittest.mock import AsyncMock, MagicMock

import pytest

from devicelink.app import daemon
from devicelink.core.config_manager import DaemonConfig
from devicelink.core.errors import RemoteCallError
from devicelink.core.service import DaemonService
from devicelink.core.shutdown_coordinator import ShutdownCoordinator
from devicelink.core.settings_store import SettingsStore

from tests.unit.helpers import VALID_ID, write_certificate


@pytest.fixture(autouse=True)
def quiet_entry_point(monkeypatch, tmp_path):
    """Keep main() away from real config, log and state directories."""
    monkeypatch.setattr(daemon, "CONFIG_PATH", tmp_path / "config.txt")
    monkeypatch.setattr(daemon, "ensure_directories", lambda: None)
    monkeypatch.setattr(daemon, "configure_logging", MagicMock())
    monkeypatch.setattr(daemon, "_install_signal_handlers", lambda handler: None)


@pytest.fixture
def backend():
    return MagicMock(return_value=None)


@pytest.fixture
def launcher(state_dir, backend):
    config = DaemonConfig(bus_port=0)

    def service_factory():
        return DaemonService(
            config,
            settings_path=state_dir / "settings.json",
            certificate_path=state_dir / "certificate.pem",
            private_key_path=state_dir / "private.pem",
            cache_dir=state_dir / "cache",
            backend=backend,
            shutdown_coordinator=ShutdownCoordinator(),
        )

    return daemon.Launcher(config, service_factory=service_factory)


def _remember(state_dir, *device_ids):
    store = SettingsStore(state_dir / "settings.json")
    store.view().set("name", "desk")
    store.view().set("devices", list(device_ids))
    for device_id in device_ids:
        store.device_view(device_id).set("name", "Phone")
        store.device_view(device_id).set("paired", True)
    store.close()


class TestMain:

    @pytest.mark.asyncio
    async def test_usage_error_exits_1(self, capsys):
        assert await daemon.main(["--bogus"]) == 1
        assert "unrecognized arguments" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_version(self):
        stream = io.StringIO()
        assert await daemon.main(["--version"], stream=stream) == 0
        assert stream.getvalue().startswith("devicelink ")

    @pytest.mark.asyncio
    async def test_primary_message_to_unknown_device_exits_0(self, launcher):
        argv = ["--device=abc123", "--message=+15551234", "--message-body=hello"]

        assert await daemon.main(argv, launcher=launcher) == 0

        # One-shot primary starts up fully, then tears itself down again
        assert launcher.is_primary
        assert launcher.service.migration_result is not None
        assert not launcher.service.bus.is_running
        assert launcher.service.settings_store.closed

    @pytest.mark.asyncio
    async def test_primary_migrates_before_dispatching(self, launcher, backend, state_dir):
        write_certificate(state_dir / "certificate.pem", "6f1c2d3e-4a5b-6c7d-8e9f-0a1b2c3d4e5f")
        _remember(state_dir, VALID_ID, "bad!")

        assert await daemon.main([f"--device={VALID_ID}", "--ring"], launcher=launcher) == 0

        assert launcher.service.migration_result.migrated
        assert launcher.service.migration_result.removed_ids == {"bad!"}
        backend.assert_called_once()
        record, action_name, parameter = backend.call_args.args
        assert (record.id, action_name, parameter) == (VALID_ID, "ring", None)
        assert record.paired is False

    @pytest.mark.asyncio
    async def test_primary_lists_remembered_devices(self, launcher, state_dir):
        _remember(state_dir, VALID_ID)
        stream = io.StringIO()

        assert await daemon.main(["--list-all"], stream=stream, launcher=launcher) == 0
        assert stream.getvalue() == f"{VALID_ID}\tPhone\tfalse\ttrue\n"

    @pytest.mark.asyncio
    async def test_missing_body_exits_1(self, launcher):
        argv = ["--device=abc123", "--message=+15551234"]
        assert await daemon.main(argv, launcher=launcher) == 1

    @pytest.mark.asyncio
    async def test_serves_until_shutdown(self, launcher, monkeypatch):
        async def serve(service, uris):
            assert service.registry.is_running
            await service.shutdown("test")
            return 0

        monkeypatch.setattr(daemon, "serve", serve)

        assert await daemon.main([], launcher=launcher) == 0
        assert launcher.service.shutdown_coordinator.is_complete


class TestForwardToPrimary:

    @pytest.mark.asyncio
    async def test_plain_invocation(self):
        client = MagicMock()
        client.call_app_action = AsyncMock()

        assert await daemon.forward_to_primary(client, []) == 0
        client.call_app_action.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_uris_forwarded(self, tmp_path):
        client = MagicMock()
        client.call_app_action = AsyncMock(return_value={"success": True})
        local = tmp_path / "photo.jpg"

        assert await daemon.forward_to_primary(client, ["sms:+1", str(local)]) == 0
        client.call_app_action.assert_awaited_once_with(
            "open", {"uris": ["sms:+1", local.resolve().as_uri()]}
        )

    @pytest.mark.asyncio
    async def test_remote_failure(self):
        client = MagicMock()
        client.call_app_action = AsyncMock(side_effect=RemoteCallError("timed out"))

        assert await daemon.forward_to_primary(client, ["tel:+1"]) == 1


class TestLauncher:

    @pytest.mark.asyncio
    async def test_second_launcher_gets_remote_transport(self, launcher, state_dir):
        first_transport = await launcher.connect()
        port = launcher.service.bus.bound_port

        config = DaemonConfig(bus_port=port, remote_timeout=2)
        second = daemon.Launcher(
            config,
            service_factory=lambda: DaemonService(
                config,
                settings_path=state_dir / "second.json",
                certificate_path=state_dir / "certificate.pem",
                private_key_path=state_dir / "private.pem",
                cache_dir=state_dir / "cache",
                shutdown_coordinator=ShutdownCoordinator(),
            ),
        )

        try:
            remote = await second.connect()
            assert not second.is_primary
            assert type(remote).__name__ == "RemoteTransport"
            assert type(first_transport).__name__ == "LocalTransport"
            assert await remote.list_devices() == {}
        finally:
            await launcher.service.shutdown("test")
