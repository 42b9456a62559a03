"""Unit tests for the action envelope codec."""

import json

import pytest

from devicelink.core.commands.envelope import (
    WILDCARD,
    ActionEnvelope,
    TypedValue,
    ValueKind,
    decode,
    encode,
)
from devicelink.core.errors import MalformedEnvelope


ROUND_TRIP_TARGETS = [
    None,
    TypedValue.string(""),
    TypedValue.string("héllo wörld"),
    TypedValue.boolean(False),
    TypedValue.string_array([]),
    TypedValue.string_array(["a", "b"]),
    TypedValue.string_pair("+15551234", "hello"),
    TypedValue.string_bool_pair("file:///tmp/report.pdf", False),
    TypedValue.string_map({}),
    TypedValue.string_map({"title": "t", "icon": {"kind": "themed", "value": "phone"}}),
]


class TestTypedValue:
    """TypedValue construction and validation."""

    def test_pair_normalized_to_tuple(self):
        value = TypedValue(ValueKind.STRING_PAIR, ["a", "b"])
        assert value.value == ("a", "b")

    def test_shape_mismatch_rejected(self):
        with pytest.raises(TypeError):
            TypedValue.string_bool_pair("a", "false")
        with pytest.raises(TypeError):
            TypedValue(ValueKind.BOOLEAN, 1)
        with pytest.raises(TypeError):
            TypedValue(ValueKind.STRING_ARRAY, "abc")

    def test_map_values_must_be_strings_or_maps(self):
        with pytest.raises(TypeError):
            TypedValue.string_map({"count": 3})

    def test_unpack_map_returns_copy(self):
        value = TypedValue.string_map({"nested": {"k": "v"}})
        unpacked = value.unpack()
        unpacked["nested"]["k"] = "changed"
        assert value.value["nested"]["k"] == "v"


class TestEncodeDecode:
    """encode/decode symmetry and wire form."""

    @pytest.mark.parametrize("target", ROUND_TRIP_TARGETS, ids=lambda t: t.signature if t else "none")
    def test_round_trip(self, target):
        envelope = ActionEnvelope("abc123", "someAction", target)
        assert decode(encode(envelope)) == envelope

    def test_wire_form(self):
        envelope = ActionEnvelope(WILDCARD, "sendSms", TypedValue.string_pair("+1", "hi"))
        data = json.loads(encode(envelope))
        assert data == {
            "selector": "*",
            "action": "sendSms",
            "hasTarget": True,
            "target": {"type": "(ss)", "value": ["+1", "hi"]},
        }

    def test_no_target_omits_field(self):
        data = json.loads(encode(ActionEnvelope("abc123", "ring")))
        assert data["hasTarget"] is False
        assert "target" not in data

    def test_decode_accepts_str(self):
        envelope = decode('{"selector": "x", "action": "ring", "hasTarget": false}')
        assert envelope.selector == "x"
        assert envelope.target is None


class TestMalformedEnvelopes:
    """decode is all-or-nothing."""

    @pytest.mark.parametrize(
        "payload",
        [
            b"not json",
            b"\xff\xfe",
            b"[1, 2]",
            b'{"action": "ring", "hasTarget": false}',
            b'{"selector": 5, "action": "ring", "hasTarget": false}',
            b'{"selector": "x", "action": null, "hasTarget": false}',
            b'{"selector": "x", "action": "ring", "hasTarget": "yes"}',
            b'{"selector": "x", "action": "ping", "hasTarget": true}',
            b'{"selector": "x", "action": "ping", "hasTarget": true, "target": {"type": "q", "value": ""}}',
            b'{"selector": "x", "action": "ping", "hasTarget": true, "target": {"type": "s"}}',
            b'{"selector": "x", "action": "sendSms", "hasTarget": true, "target": {"type": "(ss)", "value": ["a"]}}',
            b'{"selector": "x", "action": "shareFile", "hasTarget": true, "target": {"type": "(sb)", "value": ["a", "b"]}}',
        ],
    )
    def test_rejected(self, payload):
        with pytest.raises(MalformedEnvelope):
            decode(payload)
