"""Notification records and the presentation-layer interface.

Dialogs, tray icons and desktop notifications live outside the daemon. The
daemon only *triggers* them through a ``Presenter``. ``LoggingPresenter`` is
the headless default and records what it was asked to show.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .logging_utils import get_module_logger

logger = get_module_logger("Presenter")


class NotificationPriority(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


@dataclass
class Notification:
    title: str
    body: str = ""
    icon: Optional[str] = None
    priority: NotificationPriority = NotificationPriority.NORMAL
    default_action: Optional[str] = None
    target: Optional[Dict[str, str]] = None


class Presenter(Protocol):

    def send_notification(self, notification_id: str, notification: Notification) -> None: ...

    def open_uri(self, uri: str) -> None: ...

    def show_error_dialog(self, error: Dict[str, str]) -> None: ...

    def choose_device(self, title: str, action_name: str, target: Any) -> None: ...

    def open_preferences(self) -> None: ...


@dataclass
class LoggingPresenter:
    """Headless presenter that logs every request.

    Notifications are keyed by id, so sending twice with the same id
    replaces the earlier notification rather than adding a second one.
    """
    notifications: Dict[str, Notification] = field(default_factory=dict)
    opened_uris: List[str] = field(default_factory=list)
    error_dialogs: List[Dict[str, str]] = field(default_factory=list)
    device_choices: List[Tuple[str, str, Any]] = field(default_factory=list)
    preferences_requests: int = 0

    def send_notification(self, notification_id: str, notification: Notification) -> None:
        self.notifications[notification_id] = notification
        logger.info(
            "Notification %s (%s): %s - %s",
            notification_id,
            notification.priority.value,
            notification.title,
            notification.body,
        )

    def open_uri(self, uri: str) -> None:
        self.opened_uris.append(uri)
        logger.info("Open URI requested: %s", uri)

    def show_error_dialog(self, error: Dict[str, str]) -> None:
        self.error_dialogs.append(dict(error))
        logger.info("Error dialog requested: %s: %s", error.get("name"), error.get("message"))

    def choose_device(self, title: str, action_name: str, target: Any) -> None:
        self.device_choices.append((title, action_name, target))
        logger.info("Device chooser requested: %s (%s)", title, action_name)

    def open_preferences(self) -> None:
        self.preferences_requests += 1
        logger.info("Preferences requested")
