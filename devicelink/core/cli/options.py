"""Command-line options shared by the daemon and one-shot invocations."""

from __future__ import annotations

import argparse
from typing import NoReturn, Optional, Sequence

from devicelink.core.config_manager import DaemonConfig
from devicelink.core.errors import UsageError


LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


class CliArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises ``UsageError`` instead of exiting."""

    def error(self, message: str) -> NoReturn:
        raise UsageError(f"{self.prog}: {message}")


def build_parser(defaults: Optional[DaemonConfig] = None) -> CliArgumentParser:
    defaults = defaults or DaemonConfig()

    parser = CliArgumentParser(
        prog="devicelink",
        description="devicelink - Device synchronization daemon and command-line client",
    )

    parser.add_argument(
        "uris",
        nargs="*",
        metavar="URI",
        help="sms:, tel: or file: URIs to open with a device",
    )

    general = parser.add_argument_group("general")
    general.add_argument("-v", "--version", action="store_true", help="Show release version")
    general.add_argument(
        "-l",
        "--list-devices",
        action="store_true",
        help="List available (paired and connected) devices",
    )
    general.add_argument("-a", "--list-all", action="store_true", help="List all devices")
    general.add_argument("-d", "--device", metavar="ID", help="Target device")

    actions = parser.add_argument_group("device actions")
    actions.add_argument("--pair", action="store_true", help="Pair")
    actions.add_argument("--unpair", action="store_true", help="Unpair")
    actions.add_argument(
        "--message",
        action="append",
        metavar="ADDRESS",
        help="Send SMS (repeatable; only the first recipient is used)",
    )
    actions.add_argument("--message-body", metavar="TEXT", help="Message Body")
    actions.add_argument("--notification", metavar="TITLE", help="Send Notification")
    actions.add_argument("--notification-appname", metavar="NAME", help="Notification App Name")
    actions.add_argument("--notification-body", metavar="TEXT", help="Notification Body")
    actions.add_argument("--notification-icon", metavar="ICON", help="Notification Icon")
    actions.add_argument("--notification-id", metavar="ID", help="Notification ID")
    actions.add_argument("--ping", action="store_true", help="Ping")
    actions.add_argument("--ring", action="store_true", help="Ring")
    actions.add_argument("--share-file", action="append", metavar="FILEPATH", help="Share File (repeatable)")
    actions.add_argument("--share-link", action="append", metavar="URL", help="Share Link (repeatable)")
    actions.add_argument("--share-text", metavar="TEXT", help="Share Text")

    daemon = parser.add_argument_group("daemon")
    daemon.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=defaults.log_level if defaults.log_level in LOG_LEVELS else "info",
        help="Logging level (default: info)",
    )
    daemon.add_argument(
        "--console",
        dest="console_output",
        action="store_true",
        default=defaults.console_output,
        help="Also log to console",
    )
    daemon.add_argument(
        "--no-console",
        dest="console_output",
        action="store_false",
        help="Log to file only",
    )

    return parser


def parse_options(
    argv: Optional[Sequence[str]] = None,
    defaults: Optional[DaemonConfig] = None,
) -> argparse.Namespace:
    """Parse ``argv``; raises ``UsageError`` on any malformed option."""
    return build_parser(defaults).parse_args(argv)
