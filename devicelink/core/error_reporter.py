"""Turns service-level errors into user-visible notifications."""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .logging_utils import get_module_logger
from .notifications import Notification, NotificationPriority, Presenter

logger = get_module_logger("ErrorReporter")

ERROR_ACTION = "app.error"
ERROR_ICON = "dialog-error"


@dataclass
class ErrorReport:
    name: str
    message: str
    stack: str = ""
    url: Optional[str] = None

    @classmethod
    def from_exception(cls, exc: BaseException, url: Optional[str] = None) -> "ErrorReport":
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return cls(
            name=type(exc).__name__,
            message=str(exc),
            stack=stack,
            url=url if url is not None else getattr(exc, "url", None),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ErrorReport":
        url = data.get("url")
        return cls(
            name=str(data.get("name") or "Error"),
            message=str(data.get("message", "")),
            stack=str(data.get("stack", "")),
            url=str(url) if url is not None else None,
        )

    def to_mapping(self) -> Dict[str, str]:
        data = {
            "name": self.name.strip(),
            "message": self.message.strip(),
            "stack": self.stack.strip(),
        }
        if self.url is not None:
            data["url"] = self.url
        return data


class ErrorReporter:
    """Logs errors and raises a notification the user can act on.

    Notification identity is the error's URL when one is given, otherwise
    the trimmed message, so repeated identical errors collapse into a
    single notification.
    """

    def __init__(self, presenter: Presenter, app_name: str = "devicelink"):
        self._presenter = presenter
        self._app_name = app_name

    def report(self, error: Any) -> None:
        try:
            report = self._coerce(error)

            # Always log the error
            logger.error("%s: %s\n%s", report.name, report.message, report.stack)

            if report.url is not None:
                notification_id = report.url
                body = "Click for help troubleshooting"
                priority = NotificationPriority.URGENT
            else:
                notification_id = report.message.strip()
                body = "Click for more information"
                priority = NotificationPriority.HIGH

            notification = Notification(
                title=f"{self._app_name}: {report.name.strip()}",
                body=body,
                icon=ERROR_ICON,
                priority=priority,
                default_action=ERROR_ACTION,
                target=report.to_mapping(),
            )
            self._presenter.send_notification(notification_id, notification)
        except Exception:
            logger.exception("Failed to report error %r", error)

    def show_error(self, target: Mapping[str, Any]) -> None:
        """Handle the notification's default action."""
        try:
            report = ErrorReport.from_mapping(target)

            # A URL means the wiki has better information than a dialog
            if report.url is not None:
                self._presenter.open_uri(report.url)
                return

            self._presenter.show_error_dialog(report.to_mapping())
        except Exception:
            logger.exception("Failed to show error")

    @staticmethod
    def _coerce(error: Any) -> ErrorReport:
        if isinstance(error, ErrorReport):
            return error
        if isinstance(error, BaseException):
            return ErrorReport.from_exception(error)
        if isinstance(error, Mapping):
            return ErrorReport.from_mapping(error)
        return ErrorReport(name="Error", message=str(error))
