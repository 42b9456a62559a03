"""Action envelopes and their routing to device handles."""

from .envelope import WILDCARD, ActionEnvelope, TypedValue, ValueKind, decode, encode
from .router import ActionOutcome, ActionRouter

__all__ = [
    "WILDCARD",
    "ActionEnvelope",
    "ActionOutcome",
    "ActionRouter",
    "TypedValue",
    "ValueKind",
    "decode",
    "encode",
]
