"""
CLI Bridge - Turns command-line intents into action envelopes.

``handle_local_options`` runs before the daemon starts and returns an exit
status: ``0`` when the invocation was fully handled, ``1`` when it failed,
and ``CONTINUE_STARTUP`` (-1) when no device was named and the process
should go on to start (or hand off to) the daemon.

Envelopes are delivered through a ``Transport``: in-process to the router
when this process owns the bus, or over the bus to the primary instance
otherwise. All envelopes for one invocation are built before the first one
is delivered, so a missing option never leaves a partial dispatch.
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, TextIO

from devicelink.core.commands.envelope import ActionEnvelope, TypedValue
from devicelink.core.errors import MissingRequiredOption
from devicelink.core.logging_utils import get_module_logger

logger = get_module_logger("CliBridge")

CONTINUE_STARTUP = -1

CLI_APP_NAME = "devicelink CLI"
DEFAULT_ICON_NAME = "devicelink"


class Transport(Protocol):

    async def list_devices(self) -> Mapping[str, Mapping[str, Any]]: ...

    async def activate(self, envelope: ActionEnvelope) -> None: ...


TransportFactory = Callable[[], Awaitable[Transport]]


# =========================================================================
# Intent builders
# =========================================================================

def _now_ms() -> str:
    return str(int(time.time() * 1000))


def serialize_icon(icon: Optional[str]) -> Dict[str, str]:
    """Describe an icon as a themed name or a file location."""
    if not icon:
        return {"kind": "themed", "value": DEFAULT_ICON_NAME}
    if icon.startswith("file://") or "/" in icon:
        return {"kind": "file", "value": icon}
    return {"kind": "themed", "value": icon}


def message_envelope(device_id: str, options: argparse.Namespace) -> ActionEnvelope:
    if options.message_body is None:
        raise MissingRequiredOption("--message-body", "--message")

    # Only single-recipient messaging is supported
    address = options.message[0]
    return ActionEnvelope(device_id, "sendSms", TypedValue.string_pair(address, options.message_body))


def notification_envelope(device_id: str, options: argparse.Namespace) -> ActionEnvelope:
    title = options.notification
    body = options.notification_body or ""
    now = _now_ms()

    notification = {
        "appName": options.notification_appname or CLI_APP_NAME,
        "id": options.notification_id or now,
        "title": title,
        "text": body,
        "ticker": f"{title}: {body}",
        "time": now,
        "isClearable": "true",
        "icon": serialize_icon(options.notification_icon),
    }
    return ActionEnvelope(device_id, "sendNotification", TypedValue.string_map(notification))


def share_file_target(path: str) -> TypedValue:
    if "://" not in path:
        path = str(Path(path).expanduser().resolve())
    return TypedValue.string_bool_pair(path, False)


def build_device_envelopes(device_id: str, options: argparse.Namespace) -> List[ActionEnvelope]:
    """Envelopes for every device intent present, in delivery order."""
    if options.pair:
        return [ActionEnvelope(device_id, "pair")]
    if options.unpair:
        return [ActionEnvelope(device_id, "unpair")]

    envelopes: List[ActionEnvelope] = []

    if options.message:
        envelopes.append(message_envelope(device_id, options))

    if options.notification is not None:
        envelopes.append(notification_envelope(device_id, options))

    if options.ping:
        envelopes.append(ActionEnvelope(device_id, "ping", TypedValue.string("")))

    if options.ring:
        envelopes.append(ActionEnvelope(device_id, "ring"))

    for path in options.share_file or ():
        envelopes.append(ActionEnvelope(device_id, "shareFile", share_file_target(path)))

    for url in options.share_link or ():
        envelopes.append(ActionEnvelope(device_id, "shareUri", TypedValue.string(url)))

    if options.share_text is not None:
        envelopes.append(ActionEnvelope(device_id, "shareText", TypedValue.string(options.share_text)))

    return envelopes


# =========================================================================
# Bridge
# =========================================================================

def _format_bool(value: Any) -> str:
    return "true" if value else "false"


class CliBridge:

    def __init__(self, connect: TransportFactory, version: str, stream: Optional[TextIO] = None):
        self._connect = connect
        self._version = version
        self._stream = stream

    def _print(self, line: str) -> None:
        print(line, file=self._stream or sys.stdout)

    async def handle_local_options(self, options: argparse.Namespace) -> int:
        try:
            if options.version:
                self._print(f"devicelink {self._version}")
                return 0

            transport = await self._connect()

            if options.list_devices:
                await self.list_devices(transport, full=False)
                return 0

            if options.list_all:
                await self.list_devices(transport, full=True)
                return 0

            # Anything else needs a device; without one this is the daemon starting
            if not options.device:
                return CONTINUE_STARTUP

            for envelope in build_device_envelopes(options.device, options):
                await transport.activate(envelope)

            return 0
        except Exception as e:
            logger.error("Command failed: %s", e, exc_info=True)
            return 1

    async def list_devices(self, transport: Transport, full: bool) -> None:
        objects = await transport.list_devices()

        for attributes in objects.values():
            device_id = attributes.get("Id", "")
            connected = bool(attributes.get("Connected"))
            paired = bool(attributes.get("Paired"))

            if full:
                self._print(
                    f"{device_id}\t{attributes.get('Name', '')}\t"
                    f"{_format_bool(connected)}\t{_format_bool(paired)}"
                )
            elif connected and paired:
                self._print(device_id)
