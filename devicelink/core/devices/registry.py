"""
Device Registry - Live device handles keyed by device id.

The registry owns every ``Device`` for the lifetime of the daemon. Pairing,
encryption and payload transfer happen in the protocol engine, which is
attached to each device as an ``ActionBackend``; the registry and its
devices only validate and forward actions.

The router reads the registry through two operations: ``get`` for a
concrete id and ``snapshot`` for the wildcard selector. ``snapshot``
returns a copy, so devices added or removed while a dispatch is iterating
do not affect that dispatch.
"""

from __future__ import annotations

import asyncio
import inspect
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set

from devicelink.core.asyncio_utils import create_logged_task
from devicelink.core.commands.envelope import TypedValue, ValueKind
from devicelink.core.errors import TargetTypeMismatch, UnknownAction
from devicelink.core.logging_utils import get_module_logger
from devicelink.core.settings_store import SettingsStore

logger = get_module_logger("DeviceRegistry")

DEVICE_OBJECT_ROOT = "/devices"
_NON_WORD = re.compile(r"\W+")

# Action name -> expected target shape (None means the action takes no target)
ACTION_SIGNATURES: Dict[str, Optional[ValueKind]] = {
    "pair": None,
    "unpair": None,
    "ring": None,
    "ping": ValueKind.STRING,
    "sendSms": ValueKind.STRING_PAIR,
    "uriSms": ValueKind.STRING,
    "sendNotification": ValueKind.STRING_MAP,
    "shareFile": ValueKind.STRING_BOOL_PAIR,
    "shareUri": ValueKind.STRING,
    "shareText": ValueKind.STRING,
}


@dataclass
class DeviceRecord:
    id: str
    name: str = ""
    paired: bool = False
    connected: bool = False

    def public_attributes(self) -> Dict[str, Any]:
        return {
            "Id": self.id,
            "Name": self.name,
            "Connected": self.connected,
            "Paired": self.paired,
        }


ActionBackend = Callable[[DeviceRecord, str, Any], Optional[Awaitable[Any]]]
DiscoveryHook = Callable[[Optional[str]], Optional[Awaitable[Any]]]


class DeviceHandle(Protocol):
    """What the router needs from a device."""

    @property
    def id(self) -> str: ...

    def activate(self, action_name: str, target: Optional[TypedValue]) -> None: ...


def object_path_for(device_id: str) -> str:
    return f"{DEVICE_OBJECT_ROOT}/{_NON_WORD.sub('_', device_id)}"


def _unattached_backend(record: DeviceRecord, action_name: str, parameter: Any) -> None:
    logger.info("No protocol engine attached; dropping %s for %s", action_name, record.id)


class Device:
    """A managed device handle.

    ``activate`` checks the action name and target shape, then hands the
    unpacked parameter to the backend. Coroutines returned by the backend
    are scheduled, not awaited.
    """

    def __init__(
        self,
        record: DeviceRecord,
        backend: Optional[ActionBackend] = None,
        pending: Optional[Set[asyncio.Task[Any]]] = None,
        actions: Optional[Dict[str, Optional[ValueKind]]] = None,
    ):
        self.record = record
        self._backend = backend or _unattached_backend
        self._pending = pending
        self._actions = dict(ACTION_SIGNATURES if actions is None else actions)

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def object_path(self) -> str:
        return object_path_for(self.record.id)

    @property
    def action_names(self) -> List[str]:
        return sorted(self._actions)

    def activate(self, action_name: str, target: Optional[TypedValue] = None) -> None:
        if action_name not in self._actions:
            raise UnknownAction(action_name, self.id)

        expected = self._actions[action_name]
        actual = target.kind if target is not None else None
        if expected is not actual:
            raise TargetTypeMismatch(
                action_name,
                expected.value if expected is not None else None,
                actual.value if actual is not None else None,
            )

        parameter = target.unpack() if target is not None else None
        logger.debug("Activating %s on %s", action_name, self.id)
        result = self._backend(self.record, action_name, parameter)

        if inspect.isawaitable(result):
            create_logged_task(
                result,
                logger=logger,
                context=f"{action_name}@{self.id}",
                pending=self._pending,
            )

    def __repr__(self) -> str:
        return f"Device(id={self.record.id!r}, name={self.record.name!r})"


class DeviceRegistry:

    def __init__(
        self,
        settings_store: SettingsStore,
        backend: Optional[ActionBackend] = None,
        pending: Optional[Set[asyncio.Task[Any]]] = None,
        discovery: Optional[DiscoveryHook] = None,
    ):
        self._store = settings_store
        self._backend = backend
        self._discovery = discovery
        self._pending = pending
        self._devices: Dict[str, Device] = {}
        self._running = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Load remembered devices and begin accepting dispatches."""
        if self._running:
            return

        for device_id in self._store.remembered_devices():
            if not isinstance(device_id, str):
                logger.warning("Skipping malformed device entry %r", device_id)
                continue
            if device_id in self._devices:
                continue
            settings = self._store.device_view(device_id)
            record = DeviceRecord(
                id=device_id,
                name=settings.get("name"),
                paired=settings.get("paired"),
            )
            self.add(Device(record, backend=self._backend, pending=self._pending))

        self._running = True
        logger.info("Device registry started with %d remembered devices", len(self._devices))

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        for device in self._devices.values():
            device.record.connected = False
        logger.info("Device registry stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # Membership
    # =========================================================================

    def add(self, device: Device) -> None:
        self._devices[device.id] = device
        logger.debug("Device added: %s", device.id)

    def remove(self, device_id: str) -> Optional[Device]:
        device = self._devices.pop(device_id, None)
        if device is not None:
            logger.debug("Device removed: %s", device_id)
        return device

    def get(self, device_id: str) -> Optional[Device]:
        return self._devices.get(device_id)

    def snapshot(self) -> List[Device]:
        return list(self._devices.values())

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices

    def managed_objects(self) -> Dict[str, Dict[str, Any]]:
        """Public attributes of every device keyed by object path."""
        return {device.object_path: device.record.public_attributes() for device in self.snapshot()}

    # =========================================================================
    # Discovery
    # =========================================================================

    def identify(self, uri: Optional[str] = None) -> None:
        """Ask the discovery layer to broadcast (or contact ``uri``)."""
        if uri:
            logger.info("Identity requested for %s", uri)
        else:
            logger.info("Identity broadcast requested")

        if self._discovery is None:
            return

        result = self._discovery(uri)
        if inspect.isawaitable(result):
            create_logged_task(result, logger=logger, context="identify", pending=self._pending)
