"""Exception types raised across the daemon.

Router-side errors (``HandleNotFound``, ``UnknownAction``,
``TargetTypeMismatch``) are logged and never terminate the daemon.
CLI-side errors (``MissingRequiredOption``, ``UsageError``,
``BusRegistrationFailure``, ``RemoteCallError``) end the invocation with a
non-zero exit status.
"""

from __future__ import annotations

from typing import Optional


class DaemonError(Exception):
    """Base class for all errors raised by devicelink."""


class MalformedEnvelope(DaemonError):
    """An encoded envelope could not be decoded into a well-typed value."""


class HandleNotFound(DaemonError):

    def __init__(self, device_id: str):
        super().__init__(f"No device with id '{device_id}'")
        self.device_id = device_id


class UnknownAction(DaemonError):

    def __init__(self, action_name: str, device_id: Optional[str] = None):
        where = f" on device '{device_id}'" if device_id else ""
        super().__init__(f"Unknown action '{action_name}'{where}")
        self.action_name = action_name
        self.device_id = device_id


class TargetTypeMismatch(DaemonError):

    def __init__(self, action_name: str, expected: Optional[str], actual: Optional[str]):
        super().__init__(
            f"Action '{action_name}' expects target {expected or 'none'}, got {actual or 'none'}"
        )
        self.action_name = action_name
        self.expected = expected
        self.actual = actual


class MigrationIOFailure(DaemonError):
    """A best-effort filesystem cleanup step during migration failed."""


class MissingRequiredOption(DaemonError):

    def __init__(self, option: str, required_by: str):
        super().__init__(f"missing {option} option (required by {required_by})")
        self.option = option
        self.required_by = required_by


class UsageError(DaemonError):
    """The command line could not be parsed."""


class BusRegistrationFailure(DaemonError):
    """The process could neither own the bus address nor reach its owner."""


class RemoteCallError(DaemonError):
    """A call to the primary instance failed, timed out or was cancelled."""


__all__ = [
    "DaemonError",
    "MalformedEnvelope",
    "HandleNotFound",
    "UnknownAction",
    "TargetTypeMismatch",
    "MigrationIOFailure",
    "MissingRequiredOption",
    "UsageError",
    "BusRegistrationFailure",
    "RemoteCallError",
]
