"""Maps opened URIs to device actions and asks the user to pick a device."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

from .commands.envelope import TypedValue
from .logging_utils import get_module_logger
from .notifications import Presenter

logger = get_module_logger("UriIntents")


@dataclass(frozen=True)
class UriIntent:
    title: str
    action_name: str
    target: TypedValue


def normalize_uri(value: str) -> str:
    """Plain filesystem paths become ``file:`` URIs."""
    if urlsplit(value).scheme:
        return value
    return Path(value).expanduser().resolve().as_uri()


def intent_for_uri(uri: str) -> UriIntent:
    scheme = urlsplit(uri).scheme.lower()

    if scheme == "sms":
        return UriIntent("Send SMS", "uriSms", TypedValue.string(uri))
    if scheme == "tel":
        return UriIntent("Dial Number", "shareUri", TypedValue.string(uri))
    if scheme == "file":
        return UriIntent("Share File", "shareFile", TypedValue.string_bool_pair(uri, False))

    raise ValueError(f"Unsupported URI: {uri}")


def open_uris(uris: Iterable[str], presenter: Presenter) -> List[UriIntent]:
    """Show a device chooser per supported URI.

    Unsupported or failing URIs are logged and skipped.
    """
    opened: List[UriIntent] = []
    for value in uris:
        uri: Optional[str] = None
        try:
            uri = normalize_uri(value)
            intent = intent_for_uri(uri)
            presenter.choose_device(intent.title, intent.action_name, intent.target)
            opened.append(intent)
        except Exception as e:
            logger.error("Opening %s failed: %s", uri or value, e)
    return opened
