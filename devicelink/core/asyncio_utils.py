"""Asyncio helpers for fire-and-forget work on the daemon loop."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Awaitable, Optional

from .logging_utils import AnyLogger, get_module_logger


def _task_label(task: asyncio.Task[Any], context: Optional[str]) -> str:
    if context:
        return context
    name = task.get_name()
    return name or "background task"


def add_task_exception_logger(
    task: asyncio.Task[Any],
    *,
    logger: Optional[AnyLogger] = None,
    context: Optional[str] = None,
) -> asyncio.Task[Any]:
    """Ensure task exceptions are retrieved and logged.

    Without this, exceptions in fire-and-forget tasks surface as
    "Task exception was never retrieved" warnings long after the failure.
    """
    task_logger = logger or get_module_logger("asyncio")

    def _done(done_task: asyncio.Task[Any]) -> None:
        try:
            done_task.result()
        except asyncio.CancelledError:
            return
        except Exception:
            task_logger.exception(
                "Unhandled exception in %s",
                _task_label(done_task, context),
            )

    task.add_done_callback(_done)
    return task


def create_logged_task(
    coro: Awaitable[Any],
    *,
    logger: Optional[AnyLogger] = None,
    context: Optional[str] = None,
    loop: Optional[asyncio.AbstractEventLoop] = None,
    pending: Optional[set[asyncio.Task[Any]]] = None,
) -> asyncio.Task[Any]:
    """Create a task that won't lose exceptions, optionally tracking it."""
    if loop is None:
        loop = asyncio.get_running_loop()

    task = loop.create_task(coro)
    if context:
        with contextlib.suppress(Exception):  # pragma: no cover - best effort
            task.set_name(context)

    add_task_exception_logger(task, logger=logger, context=context)

    if pending is not None:
        pending.add(task)
        task.add_done_callback(pending.discard)

    return task


async def drain_pending(pending: set[asyncio.Task[Any]]) -> int:
    """Await tracked tasks until none remain, including ones spawned meanwhile.

    Returns the number of tasks that were awaited.
    """
    drained = 0
    while pending:
        batch = list(pending)
        drained += len(batch)
        await asyncio.gather(*batch, return_exceptions=True)
        pending.difference_update(batch)
    return drained
