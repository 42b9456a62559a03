"""Envelope codec for action invocations crossing the process boundary.

An envelope is the ``(selector, action, has_target, target)`` tuple used on
the bus. Targets are ``TypedValue`` instances drawn from a closed set of
shapes; each shape is identified by a short signature that travels with
the value on the wire::

    {"selector": "*", "action": "ping", "hasTarget": true,
     "target": {"type": "s", "value": ""}}

Decoding is all-or-nothing: a payload either yields a complete, well-typed
``ActionEnvelope`` or raises ``MalformedEnvelope``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from devicelink.core.errors import MalformedEnvelope


WILDCARD = "*"

StringMap = Dict[str, Union[str, "StringMap"]]


class ValueKind(Enum):
    """Shapes a target value may take, keyed by wire signature."""
    STRING = "s"
    BOOLEAN = "b"
    STRING_ARRAY = "as"
    STRING_PAIR = "(ss)"
    STRING_BOOL_PAIR = "(sb)"
    STRING_MAP = "a{sv}"


def _is_str(value: Any) -> bool:
    return isinstance(value, str)


def _is_bool(value: Any) -> bool:
    return type(value) is bool


def _normalize_map(value: Any) -> StringMap:
    if not isinstance(value, Mapping):
        raise TypeError(f"string map expected, got {type(value).__name__}")

    result: StringMap = {}
    for key, item in value.items():
        if not _is_str(key):
            raise TypeError(f"string map keys must be strings, got {type(key).__name__}")
        if _is_str(item):
            result[key] = item
        elif isinstance(item, Mapping):
            result[key] = _normalize_map(item)
        else:
            raise TypeError(f"string map value for '{key}' must be a string or map")
    return result


def _normalize_pair(value: Any, second_check) -> tuple:
    if not isinstance(value, (tuple, list)) or len(value) != 2:
        raise TypeError("pair must have exactly two elements")
    first, second = value
    if not _is_str(first) or not second_check(second):
        raise TypeError("pair elements have the wrong types")
    return (first, second)


def _normalize(kind: ValueKind, value: Any) -> Any:
    if kind is ValueKind.STRING:
        if not _is_str(value):
            raise TypeError(f"string expected, got {type(value).__name__}")
        return value
    if kind is ValueKind.BOOLEAN:
        if not _is_bool(value):
            raise TypeError(f"boolean expected, got {type(value).__name__}")
        return value
    if kind is ValueKind.STRING_ARRAY:
        if isinstance(value, (str, bytes)) or not isinstance(value, (tuple, list)):
            raise TypeError("string array expected")
        if not all(_is_str(item) for item in value):
            raise TypeError("string array elements must be strings")
        return tuple(value)
    if kind is ValueKind.STRING_PAIR:
        return _normalize_pair(value, _is_str)
    if kind is ValueKind.STRING_BOOL_PAIR:
        return _normalize_pair(value, _is_bool)
    if kind is ValueKind.STRING_MAP:
        return _normalize_map(value)
    raise TypeError(f"unsupported value kind {kind!r}")


@dataclass(frozen=True)
class TypedValue:
    """A target value tagged with its shape."""
    kind: ValueKind
    value: Any

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ValueKind):
            raise TypeError(f"kind must be a ValueKind, got {self.kind!r}")
        object.__setattr__(self, "value", _normalize(self.kind, self.value))

    @property
    def signature(self) -> str:
        return self.kind.value

    @classmethod
    def string(cls, value: str) -> "TypedValue":
        return cls(ValueKind.STRING, value)

    @classmethod
    def boolean(cls, value: bool) -> "TypedValue":
        return cls(ValueKind.BOOLEAN, value)

    @classmethod
    def string_array(cls, values) -> "TypedValue":
        return cls(ValueKind.STRING_ARRAY, list(values))

    @classmethod
    def string_pair(cls, first: str, second: str) -> "TypedValue":
        return cls(ValueKind.STRING_PAIR, (first, second))

    @classmethod
    def string_bool_pair(cls, first: str, second: bool) -> "TypedValue":
        return cls(ValueKind.STRING_BOOL_PAIR, (first, second))

    @classmethod
    def string_map(cls, entries: Mapping[str, Any]) -> "TypedValue":
        return cls(ValueKind.STRING_MAP, entries)

    def unpack(self) -> Any:
        """Return a plain Python copy of the value."""
        if self.kind is ValueKind.STRING_MAP:
            return json.loads(json.dumps(self.value))
        return self.value

    def to_wire(self) -> Dict[str, Any]:
        if self.kind in (ValueKind.STRING_ARRAY, ValueKind.STRING_PAIR, ValueKind.STRING_BOOL_PAIR):
            value: Any = list(self.value)
        else:
            value = self.value
        return {"type": self.signature, "value": value}

    @classmethod
    def from_wire(cls, data: Any) -> "TypedValue":
        if not isinstance(data, Mapping):
            raise MalformedEnvelope("target must be an object with 'type' and 'value'")
        signature = data.get("type")
        try:
            kind = ValueKind(signature)
        except ValueError:
            raise MalformedEnvelope(f"unrecognized target type {signature!r}") from None
        if "value" not in data:
            raise MalformedEnvelope("target is missing its value")
        try:
            return cls(kind, data["value"])
        except TypeError as exc:
            raise MalformedEnvelope(f"target does not match type {signature}: {exc}") from exc


@dataclass(frozen=True)
class ActionEnvelope:
    """One action invocation addressed to a device or to all devices."""
    selector: str
    action_name: str
    target: Optional[TypedValue] = None

    @property
    def has_target(self) -> bool:
        return self.target is not None

    @property
    def is_wildcard(self) -> bool:
        return self.selector == WILDCARD

    def describe(self) -> str:
        target = self.target.signature if self.target is not None else "-"
        return f"{self.action_name}[{target}] -> {self.selector}"


def encode(envelope: ActionEnvelope) -> bytes:
    message: Dict[str, Any] = {
        "selector": envelope.selector,
        "action": envelope.action_name,
        "hasTarget": envelope.has_target,
    }
    if envelope.target is not None:
        message["target"] = envelope.target.to_wire()
    return json.dumps(message, ensure_ascii=False).encode("utf-8")


def decode(payload: Union[bytes, str]) -> ActionEnvelope:
    try:
        data = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedEnvelope(f"envelope is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise MalformedEnvelope("envelope must be a JSON object")

    selector = data.get("selector")
    if selector is None:
        raise MalformedEnvelope("envelope is missing its selector")
    if not isinstance(selector, str):
        raise MalformedEnvelope("selector must be a string")

    action_name = data.get("action")
    if not isinstance(action_name, str):
        raise MalformedEnvelope("action name must be a string")

    has_target = data.get("hasTarget", False)
    if not _is_bool(has_target):
        raise MalformedEnvelope("hasTarget must be a boolean")

    target = TypedValue.from_wire(data.get("target")) if has_target else None
    return ActionEnvelope(selector=selector, action_name=action_name, target=target)


__all__ = [
    "WILDCARD",
    "ValueKind",
    "TypedValue",
    "ActionEnvelope",
    "encode",
    "decode",
]
