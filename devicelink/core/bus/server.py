"""
Bus Server - The primary instance's listening endpoint.

Owning the bus means owning the well-known localhost address. The first
process to bind it becomes the primary instance; any later process finds
the address in use and runs as a secondary invocation that forwards its
request through ``BusClient`` and exits.
"""

import errno
from typing import Optional

from aiohttp import web

from devicelink.core.errors import BusRegistrationFailure
from devicelink.core.logging_utils import get_module_logger

from .middleware import (
    error_handling_middleware,
    localhost_only_middleware,
    request_logging_middleware,
)
from .routes import APPLICATION_KEY, BusApplication, setup_bus_routes


logger = get_module_logger("BusServer")


class BusServer:
    """
    aiohttp server carrying envelopes and app actions to the primary.

    ``register`` returns ``True`` when this process now owns the address
    and ``False`` when another instance already does.
    """

    def __init__(
        self,
        application: BusApplication,
        host: str = "127.0.0.1",
        port: int = 52721,
        localhost_only: bool = True,
    ):
        self.application = application
        self.host = host
        self.port = port
        self.localhost_only = localhost_only

        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._running = False

    def _create_app(self) -> web.Application:
        # Chain: localhost check -> request logging -> error handling
        middlewares = [request_logging_middleware, error_handling_middleware]
        if self.localhost_only:
            middlewares.insert(0, localhost_only_middleware)

        app = web.Application(middlewares=middlewares)
        app[APPLICATION_KEY] = self.application
        setup_bus_routes(app)
        return app

    async def register(self) -> bool:
        if self._running:
            logger.warning("Bus server already registered")
            return True

        self._app = self._create_app()
        self._runner = web.AppRunner(self._app, access_log=None)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.host, self.port)
        try:
            await self._site.start()
        except OSError as e:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            self._app = None
            if e.errno == errno.EADDRINUSE:
                logger.info("Bus address %s:%d is owned by another instance", self.host, self.port)
                return False
            raise BusRegistrationFailure(
                f"Could not bind bus address {self.host}:{self.port}: {e}"
            ) from e

        self._running = True
        logger.info("Bus server registered on %s", self.url)
        return True

    async def stop(self) -> None:
        if not self._running:
            return

        logger.info("Stopping bus server...")

        if self._site:
            await self._site.stop()
            self._site = None

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        self._app = None
        self._running = False

        logger.info("Bus server stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def bound_port(self) -> int:
        """The port actually bound (differs from ``port`` when it is 0)."""
        if self._runner is not None:
            for address in self._runner.addresses:
                if isinstance(address, tuple) and len(address) >= 2:
                    return int(address[1])
        return self.port

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.bound_port}"
