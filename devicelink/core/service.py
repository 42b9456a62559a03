"""
Daemon Service - Process-scoped owner of the daemon's components.

One ``DaemonService`` exists per process. It creates the settings store
and hands it to the registry and migrator, wires the router to the error
reporter, and exposes the application actions the bus and the CLI bridge
call into.

Startup (primary instance only):
1. ``register`` binds the bus address
2. ``startup`` runs the configuration migration, then starts the registry

Shutdown runs through the shutdown coordinator:
1. Stop the bus server
2. Stop the device registry
3. Drain pending action tasks until none remain
4. Close the settings store
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from devicelink import __version__

from .asyncio_utils import create_logged_task, drain_pending
from .bus.server import BusServer
from .commands.envelope import ActionEnvelope, decode
from .commands.router import ActionOutcome, ActionRouter
from .config_manager import DaemonConfig
from .devices.registry import ActionBackend, DeviceRegistry, DiscoveryHook
from .error_reporter import ErrorReporter
from .errors import UnknownAction
from .logging_utils import get_module_logger
from .migration import MigrationResult, run_migration
from .notifications import LoggingPresenter, Presenter
from .paths import CACHE_DIR, CERTIFICATE_PATH, PRIVATE_KEY_PATH, SETTINGS_FILE
from .settings_store import SettingsStore
from .shutdown_coordinator import ShutdownCoordinator
from .uri_intents import UriIntent, open_uris

logger = get_module_logger("DaemonService")


class DaemonService:

    def __init__(
        self,
        config: Optional[DaemonConfig] = None,
        *,
        settings_path: Path = SETTINGS_FILE,
        certificate_path: Path = CERTIFICATE_PATH,
        private_key_path: Path = PRIVATE_KEY_PATH,
        cache_dir: Path = CACHE_DIR,
        presenter: Optional[Presenter] = None,
        backend: Optional[ActionBackend] = None,
        discovery: Optional[DiscoveryHook] = None,
        shutdown_coordinator: Optional[ShutdownCoordinator] = None,
        version: str = __version__,
    ):
        self.config = config or DaemonConfig()
        self.version = version
        self.certificate_path = Path(certificate_path)
        self.private_key_path = Path(private_key_path)
        self.cache_dir = Path(cache_dir)

        self.presenter: Presenter = presenter or LoggingPresenter()
        self.settings_store = SettingsStore(settings_path)
        self.pending: Set[asyncio.Task[Any]] = set()

        self.error_reporter = ErrorReporter(self.presenter)
        self.registry = DeviceRegistry(
            self.settings_store,
            backend=backend,
            pending=self.pending,
            discovery=discovery,
        )
        self.router = ActionRouter(self.registry, self.error_reporter)
        self.bus = BusServer(self, host=self.config.bus_host, port=self.config.bus_port)

        self.shutdown_coordinator = shutdown_coordinator or ShutdownCoordinator()
        self.shutdown_coordinator.register_cleanup(self._stop_bus)
        self.shutdown_coordinator.register_cleanup(self._stop_registry)
        self.shutdown_coordinator.register_cleanup(self._drain_pending)
        self.shutdown_coordinator.register_cleanup(self._close_settings)

        self._actions: Dict[str, Callable[[Any], Any]] = {
            "connect": self._action_connect,
            "device": self._action_device,
            "error": self._action_error,
            "open": self._action_open,
            "preferences": self._action_preferences,
            "quit": self._action_quit,
            "refresh": self._action_refresh,
        }
        self.migration_result: Optional[MigrationResult] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def register(self) -> bool:
        """Try to become the primary instance."""
        return await self.bus.register()

    @property
    def is_primary(self) -> bool:
        return self.bus.is_running

    def startup(self) -> None:
        try:
            self.migration_result = run_migration(
                self.settings_store,
                self.presenter,
                certificate_path=self.certificate_path,
                private_key_path=self.private_key_path,
                cache_dir=self.cache_dir,
            )
        except Exception as e:
            logger.error("Configuration migration failed: %s", e, exc_info=True)
            self.error_reporter.report(e)

        self.registry.start()
        logger.info("devicelink %s started", self.version)

    async def shutdown(self, source: str = "service") -> None:
        await self.shutdown_coordinator.initiate_shutdown(source)

    async def wait_closed(self) -> None:
        await self.shutdown_coordinator.wait_for_shutdown()

    async def _stop_bus(self) -> None:
        await self.bus.stop()

    async def _stop_registry(self) -> None:
        self.registry.stop()

    async def _drain_pending(self) -> None:
        drained = await drain_pending(self.pending)
        if drained:
            logger.info("Drained %d pending action tasks", drained)

    async def _close_settings(self) -> None:
        self.settings_store.close()

    # =========================================================================
    # Bus and CLI surface
    # =========================================================================

    def managed_objects(self) -> Dict[str, Dict[str, Any]]:
        return self.registry.managed_objects()

    def dispatch(self, envelope: ActionEnvelope) -> List[ActionOutcome]:
        return self.router.dispatch(envelope)

    def activate_action(self, name: str, parameter: Any = None) -> None:
        """Activate an application action; failures are logged, not raised."""
        handler = self._actions.get(name)
        if handler is None:
            raise UnknownAction(name)

        try:
            handler(parameter)
        except Exception as e:
            logger.error("Action '%s' failed: %s", name, e, exc_info=True)

    def open(self, uris: Iterable[str]) -> List[UriIntent]:
        return open_uris(uris, self.presenter)

    # =========================================================================
    # Application actions
    # =========================================================================

    def _action_connect(self, uri: Any) -> None:
        if not isinstance(uri, str) or not uri:
            raise ValueError("connect requires a URI")
        self.registry.identify(uri)

    def _action_refresh(self, _parameter: Any = None) -> None:
        self.registry.identify()

    def _action_device(self, parameter: Any) -> None:
        # Notification buttons carry the envelope in encoded form
        envelope = parameter if isinstance(parameter, ActionEnvelope) else decode(parameter)
        self.dispatch(envelope)

    def _action_error(self, target: Any) -> None:
        if not isinstance(target, Mapping):
            raise ValueError("error action requires a string map")
        self.error_reporter.show_error(target)

    def _action_open(self, uris: Any) -> None:
        self.open(uris or ())

    def _action_preferences(self, _parameter: Any = None) -> None:
        self.presenter.open_preferences()

    def _action_quit(self, _parameter: Any = None) -> None:
        # Not tracked in ``pending``: the drain step runs inside this task
        create_logged_task(
            self.shutdown_coordinator.initiate_shutdown("quit action"),
            logger=logger,
            context="quit",
        )
