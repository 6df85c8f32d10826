"""Change envelope tests — wire form, validation, variant decoding."""

import json

import pytest
from pydantic import ValidationError

from evcharge.events.envelope import (
    PaymentChanged,
    StationChanged,
    build_envelope,
    parse_envelope,
)
from evcharge.events.types import PAYMENT_CHANGED, STATION_CHANGED


def test_wire_form_uses_camel_case_names():
    envelope = build_envelope(STATION_CHANGED, "insert", "abc", {"id": "abc", "name": "Hub"})
    wire = envelope.to_wire()

    assert set(wire) == {"event", "operationType", "documentKey", "fullDocument", "timestamp"}
    assert wire["event"] == "station-changed"
    assert wire["fullDocument"] == {"id": "abc", "name": "Hub"}
    assert isinstance(wire["timestamp"], str)


def test_delete_wire_form_has_no_full_document_key():
    envelope = build_envelope(PAYMENT_CHANGED, "delete", "p1")
    wire = json.loads(envelope.to_json())
    assert "fullDocument" not in wire
    assert wire["operationType"] == "delete"


def test_delete_with_body_is_invalid():
    with pytest.raises(ValidationError):
        build_envelope(PAYMENT_CHANGED, "delete", "p1", {"id": "p1"})


def test_non_delete_without_body_is_invalid():
    with pytest.raises(ValidationError):
        build_envelope(PAYMENT_CHANGED, "update", "p1")


def test_unknown_operation_is_invalid():
    with pytest.raises(ValidationError):
        build_envelope(STATION_CHANGED, "truncate", "s1", {"id": "s1"})


def test_parse_picks_variant_from_event_tag():
    sent = build_envelope(PAYMENT_CHANGED, "update", "p1", {"id": "p1", "status": "completed"})

    received = parse_envelope(sent.to_json())

    assert isinstance(received, PaymentChanged)
    assert received == sent


def test_parse_rejects_unknown_tags():
    raw = json.dumps({
        "event": "booking-changed",
        "operationType": "insert",
        "documentKey": "b1",
        "fullDocument": {},
        "timestamp": "2026-10-19T10:00:00Z",
    })
    with pytest.raises(ValidationError):
        parse_envelope(raw)


def test_envelopes_are_immutable():
    envelope = build_envelope(STATION_CHANGED, "insert", "s1", {"id": "s1"})
    with pytest.raises(ValidationError):
        envelope.document_key = "other"
    assert isinstance(envelope, StationChanged)
