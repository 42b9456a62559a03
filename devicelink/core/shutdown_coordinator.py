"""
Shutdown Coordinator - Single point of control for daemon teardown.

The service registers its cleanups in dependency order (bus server, device
registry, pending action tasks, settings store). Whatever triggers the
shutdown, a signal, the ``quit`` action or a failed startup, goes through
``initiate_shutdown`` so the sequence runs exactly once.
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from .logging_utils import get_module_logger

CleanupCallback = Callable[[], Awaitable[None]]


class ShutdownState(Enum):
    """States of the shutdown process."""
    RUNNING = "running"
    REQUESTED = "requested"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class ShutdownCoordinator:
    """
    Runs registered cleanups once, in registration order.

    A failing cleanup is logged and the remaining cleanups still run.
    """

    def __init__(self):
        self.logger = get_module_logger("ShutdownCoordinator")
        self._state = ShutdownState.RUNNING
        self._shutdown_event = asyncio.Event()
        self._cleanup_callbacks: List[CleanupCallback] = []
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ShutdownState:
        return self._state

    @property
    def is_shutting_down(self) -> bool:
        return self._state in (ShutdownState.REQUESTED, ShutdownState.IN_PROGRESS)

    @property
    def is_complete(self) -> bool:
        return self._state == ShutdownState.COMPLETE

    def register_cleanup(self, callback: CleanupCallback) -> None:
        self._cleanup_callbacks.append(callback)
        self.logger.debug("Registered cleanup callback: %s", _callback_name(callback))

    async def initiate_shutdown(self, source: str = "unknown") -> None:
        """
        Begin shutdown; later requests are ignored.

        Args:
            source: What triggered shutdown (for logging)
        """
        async with self._lock:
            if self._state != ShutdownState.RUNNING:
                self.logger.debug(
                    "Shutdown already initiated (state=%s), ignoring request from %s",
                    self._state.value,
                    source,
                )
                return

            self.logger.info("Shutdown initiated by: %s", source)
            self._state = ShutdownState.REQUESTED

        shutdown_start = time.perf_counter()
        await self._execute_cleanup()

        async with self._lock:
            self._state = ShutdownState.COMPLETE
            self._shutdown_event.set()

        self.logger.info("Shutdown complete in %.3fs", time.perf_counter() - shutdown_start)

    async def _execute_cleanup(self) -> None:
        async with self._lock:
            self._state = ShutdownState.IN_PROGRESS

        total = len(self._cleanup_callbacks)
        self.logger.debug("Running %d cleanup callbacks", total)

        for index, callback in enumerate(self._cleanup_callbacks, 1):
            name = _callback_name(callback)
            try:
                started = time.perf_counter()
                await callback()
                self.logger.debug(
                    "Cleanup %d/%d %s finished in %.3fs",
                    index,
                    total,
                    name,
                    time.perf_counter() - started,
                )
            except Exception as e:
                self.logger.error("Error in cleanup callback %s: %s", name, e, exc_info=True)

    async def wait_for_shutdown(self) -> None:
        await self._shutdown_event.wait()


def _callback_name(callback: CleanupCallback) -> str:
    return getattr(callback, "__name__", repr(callback))


_coordinator: Optional[ShutdownCoordinator] = None


def get_shutdown_coordinator() -> ShutdownCoordinator:
    """Get the process-wide shutdown coordinator."""
    global _coordinator
    if _coordinator is None:
        _coordinator = ShutdownCoordinator()
    return _coordinator


def reset_shutdown_coordinator() -> None:
    """Reset the process-wide coordinator (mainly for testing)."""
    global _coordinator
    _coordinator = None
