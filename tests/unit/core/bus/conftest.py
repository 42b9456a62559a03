"""Fixtures for bus server and client tests.

``FakeApplication`` stands in for the daemon service behind the bus so
routes can be exercised without settings, migration or devices.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import pytest
from aiohttp import web

from devicelink.core.bus.server import BusServer
from devicelink.core.commands.envelope import ActionEnvelope
from devicelink.core.commands.router import ActionOutcome
from devicelink.core.errors import HandleNotFound


class FakeApplication:

    version = "9.9.9"

    def __init__(self):
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.envelopes: List[ActionEnvelope] = []
        self.actions: List[Tuple[str, Any]] = []
        self.known_ids = {"abc123"}

    def managed_objects(self) -> Dict[str, Dict[str, Any]]:
        return self.objects

    def dispatch(self, envelope: ActionEnvelope) -> List[ActionOutcome]:
        self.envelopes.append(envelope)
        if envelope.selector in self.known_ids:
            return [ActionOutcome(envelope.selector, envelope.action_name, True)]
        error = HandleNotFound(envelope.selector)
        return [ActionOutcome(envelope.selector, envelope.action_name, False, error)]

    def activate_action(self, name: str, parameter: Any = None) -> None:
        self.actions.append((name, parameter))


def create_test_app(application: FakeApplication) -> web.Application:
    """Build the bus application without binding a port."""
    server = BusServer(application, localhost_only=False)
    return server._create_app()


@pytest.fixture
def fake_application() -> FakeApplication:
    return FakeApplication()
