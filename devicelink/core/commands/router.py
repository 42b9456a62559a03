"""
Action Router - Delivers envelopes to device handles.

Each dispatch resolves the envelope's selector against the registry and
activates the action once per resolved handle. Every step produces an
``ActionOutcome`` instead of raising; ``dispatch`` then logs the failed
outcomes itself. A stale id, an unknown action or a bad target on one
device never reaches the caller and never stops the remaining devices of
a wildcard dispatch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from devicelink.core.commands.envelope import ActionEnvelope, WILDCARD
from devicelink.core.devices.registry import DeviceHandle
from devicelink.core.error_reporter import ErrorReporter
from devicelink.core.errors import DaemonError, HandleNotFound
from devicelink.core.logging_utils import get_module_logger

logger = get_module_logger("ActionRouter")


class HandleSource(Protocol):

    def get(self, device_id: str) -> Optional[DeviceHandle]: ...

    def snapshot(self) -> Sequence[DeviceHandle]: ...


@dataclass
class ActionOutcome:
    """Result of one resolution or activation step."""
    target: str
    action_name: str
    success: bool
    error: Optional[BaseException] = None

    @property
    def error_name(self) -> Optional[str]:
        return type(self.error).__name__ if self.error is not None else None


class ActionRouter:

    def __init__(self, registry: HandleSource, error_reporter: Optional[ErrorReporter] = None):
        self._registry = registry
        self._error_reporter = error_reporter

    def resolve(self, selector: str) -> List[DeviceHandle]:
        if selector == WILDCARD:
            return list(self._registry.snapshot())

        handle = self._registry.get(selector)
        if handle is None:
            raise HandleNotFound(selector)
        return [handle]

    def dispatch(self, envelope: ActionEnvelope) -> List[ActionOutcome]:
        logger.debug("Dispatching %s", envelope.describe())

        try:
            handles = self.resolve(envelope.selector)
        except Exception as exc:
            outcomes = [ActionOutcome(envelope.selector, envelope.action_name, False, exc)]
            self._log_failures(envelope, outcomes)
            return outcomes

        outcomes = [self._activate(handle, envelope) for handle in handles]
        self._log_failures(envelope, outcomes)
        return outcomes

    def _activate(self, handle: DeviceHandle, envelope: ActionEnvelope) -> ActionOutcome:
        try:
            handle.activate(envelope.action_name, envelope.target)
        except Exception as exc:
            return ActionOutcome(handle.id, envelope.action_name, False, exc)
        return ActionOutcome(handle.id, envelope.action_name, True)

    def _log_failures(self, envelope: ActionEnvelope, outcomes: List[ActionOutcome]) -> None:
        for outcome in outcomes:
            if outcome.success:
                continue

            error = outcome.error
            if isinstance(error, DaemonError):
                logger.warning(
                    "%s failed for %s: %s (%s)",
                    envelope.action_name,
                    outcome.target,
                    error,
                    envelope.describe(),
                )
                continue

            logger.error(
                "Unexpected error activating %s on %s (%s)",
                envelope.action_name,
                outcome.target,
                envelope.describe(),
                exc_info=error,
            )
            if self._error_reporter is not None and error is not None:
                self._error_reporter.report(error)
