"""Envelope delivery for the CLI bridge: in-process or over the bus."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Protocol

from devicelink.core.bus.client import BusClient
from devicelink.core.commands.envelope import ActionEnvelope
from devicelink.core.commands.router import ActionOutcome


class LocalService(Protocol):

    def managed_objects(self) -> Mapping[str, Mapping[str, Any]]: ...

    def dispatch(self, envelope: ActionEnvelope) -> List[ActionOutcome]: ...


class LocalTransport:
    """Used when this process owns the bus."""

    def __init__(self, service: LocalService):
        self._service = service

    async def list_devices(self) -> Mapping[str, Mapping[str, Any]]:
        return self._service.managed_objects()

    async def activate(self, envelope: ActionEnvelope) -> None:
        self._service.dispatch(envelope)


class RemoteTransport:
    """Forwards to the primary instance."""

    def __init__(self, client: BusClient):
        self._client = client

    async def list_devices(self) -> Dict[str, Dict[str, Any]]:
        return await self._client.get_managed_objects()

    async def activate(self, envelope: ActionEnvelope) -> None:
        await self._client.activate(envelope)
