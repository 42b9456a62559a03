"""Command-line intents and their delivery."""

from .bridge import CONTINUE_STARTUP, CliBridge, build_device_envelopes
from .options import build_parser, parse_options
from .transports import LocalTransport, RemoteTransport

__all__ = [
    "CONTINUE_STARTUP",
    "CliBridge",
    "LocalTransport",
    "RemoteTransport",
    "build_device_envelopes",
    "build_parser",
    "parse_options",
]
