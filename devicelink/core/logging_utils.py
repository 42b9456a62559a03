"""Component-tagged loggers under the ``devicelink`` namespace.

``get_module_logger("Migration").info("done")`` logs ``[Migration] done``
through the standard ``devicelink.Migration`` logger, so handlers and
levels configured on the root logger apply unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, MutableMapping, Optional, Tuple, Union

LOGGER_NAMESPACE = "devicelink"


class ComponentLogger(logging.LoggerAdapter):

    def __init__(self, logger: logging.Logger, component: str):
        super().__init__(logger, {"component": component})

    @property
    def component(self) -> str:
        return self.extra["component"]

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.component}] {msg}", kwargs


AnyLogger = Union[ComponentLogger, logging.Logger]


def get_module_logger(name: Optional[str] = None) -> ComponentLogger:
    component = name or "Daemon"
    if component.startswith(f"{LOGGER_NAMESPACE}."):
        component = component[len(LOGGER_NAMESPACE) + 1:]
    return ComponentLogger(logging.getLogger(f"{LOGGER_NAMESPACE}.{component}"), component)


__all__ = ["AnyLogger", "ComponentLogger", "LOGGER_NAMESPACE", "get_module_logger"]
