import argparse
import asyncio
import signal
import sys
from typing import Callable, List, Optional, TextIO

from devicelink import __version__
from devicelink.core.bus.client import BusClient
from devicelink.core.cli.bridge import CONTINUE_STARTUP, CliBridge, Transport
from devicelink.core.cli.options import parse_options
from devicelink.core.cli.transports import LocalTransport, RemoteTransport
from devicelink.core.config_manager import DaemonConfig, load_daemon_config_async
from devicelink.core.errors import DaemonError, UsageError
from devicelink.core.logging_config import configure_logging
from devicelink.core.logging_utils import get_module_logger
from devicelink.core.paths import CONFIG_PATH, DAEMON_LOG_FILE, ensure_directories
from devicelink.core.service import DaemonService
from devicelink.core.shutdown_coordinator import get_shutdown_coordinator
from devicelink.core.uri_intents import normalize_uri


logger = get_module_logger("Daemon")


class Launcher:
    """Decides, on first use, whether this process is primary or secondary."""

    def __init__(
        self,
        config: DaemonConfig,
        service_factory: Optional[Callable[[], DaemonService]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.config = config
        self.cancel_event = cancel_event or asyncio.Event()
        self._service_factory = service_factory or self._default_service
        self.service: Optional[DaemonService] = None
        self.client: Optional[BusClient] = None

    def _default_service(self) -> DaemonService:
        return DaemonService(self.config, shutdown_coordinator=get_shutdown_coordinator())

    @property
    def is_primary(self) -> bool:
        return self.service is not None

    async def connect(self) -> Transport:
        if self.service is not None:
            return LocalTransport(self.service)
        if self.client is not None:
            return RemoteTransport(self.client)

        service = self._service_factory()
        if await service.register():
            logger.debug("Registered as the primary instance")
            self.service = service
            service.startup()
            return LocalTransport(service)

        # Another instance owns the bus; nothing of ours needs tearing down
        service.settings_store.close()
        self.client = BusClient(
            self.config.bus_host,
            self.config.bus_port,
            timeout=self.config.remote_timeout,
            cancel_event=self.cancel_event,
        )
        return RemoteTransport(self.client)


def _install_signal_handlers(on_signal: Callable[[], None]) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, on_signal)
        except (NotImplementedError, RuntimeError):
            pass  # Windows doesn't support add_signal_handler


async def serve(service: DaemonService, uris: List[str]) -> int:
    """Run the primary instance until shutdown; ``startup`` already ran on registration."""
    if uris:
        service.open(uris)

    logger.info("Serving on %s", service.bus.url)
    await service.wait_closed()
    return 0


async def forward_to_primary(client: BusClient, uris: List[str]) -> int:
    """Hand a plain invocation over to the running instance."""
    if not uris:
        logger.info("devicelink is already running")
        return 0

    try:
        await client.call_app_action("open", {"uris": [normalize_uri(uri) for uri in uris]})
    except DaemonError as e:
        logger.error("Could not open URIs: %s", e)
        return 1
    return 0


async def main(
    argv: Optional[List[str]] = None,
    *,
    stream: Optional[TextIO] = None,
    launcher: Optional[Launcher] = None,
) -> int:
    """
    Entry point shared by the daemon and one-shot commands.

    Exit status:
    - 0: the invocation was handled (or the daemon shut down cleanly)
    - 1: argument errors, bus failures or a failed command
    """
    config = await load_daemon_config_async(CONFIG_PATH)

    try:
        options: argparse.Namespace = parse_options(argv, config)
    except UsageError as e:
        print(e, file=sys.stderr)
        return 1

    ensure_directories()
    configure_logging(
        options.log_level,
        console=options.console_output,
        log_file=DAEMON_LOG_FILE,
    )

    launcher = launcher or Launcher(config)
    shutdown_task: Optional[asyncio.Task] = None

    def signal_handler() -> None:
        nonlocal shutdown_task
        launcher.cancel_event.set()
        if launcher.service is None:
            return
        if shutdown_task is None or shutdown_task.done():
            shutdown_task = asyncio.create_task(launcher.service.shutdown("signal"))

    _install_signal_handlers(signal_handler)

    bridge = CliBridge(launcher.connect, __version__, stream=stream)
    status = await bridge.handle_local_options(options)

    if status != CONTINUE_STARTUP:
        if launcher.service is not None:
            await launcher.service.shutdown("command line")
        return status

    if launcher.service is None:
        if launcher.client is None:
            logger.error("No bus connection available")
            return 1
        return await forward_to_primary(launcher.client, options.uris)

    try:
        return await serve(launcher.service, options.uris)
    except Exception as e:
        logger.error("Unexpected error: %s", e, exc_info=True)
        return 1
    finally:
        await launcher.service.shutdown("finally block")


def run(argv: Optional[List[str]] = None) -> int:
    try:
        return asyncio.run(main(argv))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except Exception as exc:  # pragma: no cover - fatal guard
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(run())
