# tests/test_registry.py
from itertools import count

import pytest

from repairhub.intake.protocol import (
    CustomerInfo, DeviceInfo, PricingInfo, PricingPatch, QuoteItemInfo, display_topic, intake_topic,
)
from repairhub.intake.registry import SessionRegistry

FACILITY = "fac-1"


def _ids():
    n = count(1)
    return lambda: f"S{next(n)}"


@pytest.fixture
def registry(channel):
    return SessionRegistry(FACILITY, channel, id_factory=_ids())


def _start(registry):
    return registry.start_session(
        CustomerInfo(name="Mario Rossi", phone="3331234567"),
        DeviceInfo(brand="Apple", model="iPhone 13", device_type="smartphone", reported_issue="broken screen"),
        PricingInfo(estimated_cost=150, diagnostic_fee=20, amount_due_now=20),
    )


def _send(channel, sid, type_, **payload):
    channel.publish(intake_topic(sid), {"type": type_, "sessionId": sid, "payload": payload})


def test_start_publishes_intake_started(registry, channel, record):
    display = record(display_topic(FACILITY))
    sid = _start(registry)
    assert registry.mode == "confirm_data"
    msg = display.last()
    assert msg["type"] == "intake_started"
    assert msg["sessionId"] == sid
    assert msg["payload"]["customer"]["name"] == "Mario Rossi"
    assert msg["payload"]["device"]["deviceType"] == "smartphone"
    assert msg["payload"]["estimatedCost"] == 150


def test_full_happy_path(registry, channel, record):
    display = record(display_topic(FACILITY))
    signed = []
    registry.on_signature = signed.append
    sid = _start(registry)

    _send(channel, sid, "customer_confirmed_data", confirmed=True)
    assert registry.current.data_confirmed
    assert registry.request_password(sid)
    _send(channel, sid, "password_submitted", password="1234")
    assert registry.mode == "signature"
    assert registry.current.password == "1234"
    _send(channel, sid, "signature_submitted", signatureData="data:image/png;base64,AAA")
    assert registry.mode == "completed"
    assert [s.session_id for s in signed] == [sid]
    assert registry.complete(sid)
    assert display.types == ["intake_started", "request_password", "intake_completed"]


def test_password_skipped(registry, channel):
    sid = _start(registry)
    registry.request_password(sid)
    _send(channel, sid, "password_skipped")
    assert registry.mode == "signature"
    assert registry.current.password_skipped
    assert registry.current.password is None


def test_request_password_without_confirmation_is_allowed(registry):
    sid = _start(registry)
    assert not registry.current.data_confirmed
    assert registry.request_password(sid)
    assert registry.mode == "enter_password"


def test_update_pricing_merges_fields(registry, record):
    display = record(display_topic(FACILITY))
    sid = _start(registry)
    assert registry.update_pricing(sid, PricingPatch(estimated_cost=180))
    assert registry.current.pricing.estimated_cost == 180
    assert registry.current.pricing.diagnostic_fee == 20
    assert display.last() == {"type": "intake_update", "sessionId": sid, "payload": {"estimatedCost": 180.0}}


def test_update_pricing_keeps_quote_items_typed(registry, record):
    display = record(display_topic(FACILITY))
    sid = _start(registry)
    item = QuoteItemInfo(description="Display OLED", kind="part", unit_price=120)
    assert registry.update_pricing(sid, PricingPatch(quote_items=[item], labor_cost=30))

    stored = registry.current.pricing.quote_items
    assert isinstance(stored[0], QuoteItemInfo)
    assert registry.current.pricing.labor_cost == 30
    assert display.last()["payload"]["quoteItems"][0]["unitPrice"] == 120.0

    assert registry.publish_snapshot()
    snap = display.last()["payload"]
    assert snap["quoteItems"][0]["description"] == "Display OLED"
    assert snap["estimatedCost"] == 150.0


def test_update_details_replaces_customer_and_device(registry, record):
    display = record(display_topic(FACILITY))
    sid = _start(registry)
    assert registry.update_details(sid, customer=CustomerInfo(name="Maria Rossi", phone="3330000000"))
    assert registry.current.customer.name == "Maria Rossi"
    assert registry.current.device.brand == "Apple"
    assert registry.current.version == 1
    payload = display.last()["payload"]
    assert payload["customer"]["name"] == "Maria Rossi"
    assert "device" not in payload

    assert not registry.update_details("stale", customer=CustomerInfo(name="X", phone="0"))


def test_update_for_superseded_session_dropped(registry, record):
    display = record(display_topic(FACILITY))
    old = _start(registry)
    new = _start(registry)
    assert not registry.update_pricing(old, PricingPatch(estimated_cost=999))
    assert registry.current.pricing.estimated_cost == 150
    assert registry.current_session_id == new
    assert display.types == ["intake_started", "intake_started"]


def test_late_password_for_superseded_session_is_dropped(registry, channel):
    a = _start(registry)
    registry.request_password(a)
    b = _start(registry)
    _send(channel, a, "password_submitted", password="0000")
    # even if it reaches the new session's topic
    channel.publish(intake_topic(b), {"type": "password_submitted", "sessionId": a, "payload": {"password": "0000"}})
    assert registry.current_session_id == b
    assert registry.mode == "confirm_data"
    assert registry.current.password is None


def test_cancel_returns_to_standby_and_ignores_late_events(registry, channel, record):
    display = record(display_topic(FACILITY))
    sid = _start(registry)
    registry.request_password(sid)
    assert registry.cancel() == sid
    assert registry.mode == "standby"
    assert display.last()["type"] == "intake_cancelled"
    _send(channel, sid, "signature_submitted", signatureData="late")
    assert registry.current is None


@pytest.mark.parametrize("steps", [[], ["request_password"], ["request_password", "request_signature"]])
def test_cancel_from_any_state(registry, steps):
    sid = _start(registry)
    for step in steps:
        getattr(registry, step)(sid)
    registry.cancel()
    assert registry.mode == "standby"


def test_duplicate_events_are_noops(registry, channel):
    sid = _start(registry)
    registry.request_password(sid)
    _send(channel, sid, "password_submitted", password="1234")
    version = registry.current.version
    _send(channel, sid, "password_submitted", password="1234")
    _send(channel, sid, "password_skipped")
    assert registry.current.version == version
    _send(channel, sid, "signature_submitted", signatureData="sig")
    _send(channel, sid, "signature_submitted", signatureData="sig")
    assert registry.mode == "completed"
    assert registry.current.signature_data == "sig"


def test_signature_before_signature_mode_ignored(registry, channel):
    sid = _start(registry)
    _send(channel, sid, "signature_submitted", signatureData="sig")
    assert registry.mode == "confirm_data"
    assert registry.current.signature_data is None


def test_malformed_message_dropped(registry, channel):
    sid = _start(registry)
    channel.publish(intake_topic(sid), {"type": "password_submitted", "sessionId": sid, "payload": {}})
    channel.publish(intake_topic(sid), {"type": "made_up", "sessionId": sid})
    assert registry.mode == "confirm_data"


def test_guarded_transitions(registry):
    sid = _start(registry)
    assert not registry.complete(sid)
    assert not registry.request_password("other")
    assert registry.request_signature(sid)
    assert not registry.request_password(sid)


def test_completed_is_terminal(registry):
    sid = _start(registry)
    registry.request_signature(sid)
    assert registry.attach_signature(sid, "sig")
    assert not registry.request_password(sid)
    assert not registry.request_signature(sid)
    assert not registry.update_pricing(sid, PricingPatch(estimated_cost=1))
    assert not registry.attach_signature(sid, "other")


def test_snapshot_on_request(registry, channel, record):
    display = record(display_topic(FACILITY))
    sid = _start(registry)
    registry.request_password(sid)
    channel.publish(f"display-sync-{FACILITY}", {"type": "snapshot_requested", "payload": {}})
    snap = display.last()
    assert snap["type"] == "intake_snapshot"
    assert snap["sessionId"] == sid
    assert snap["payload"]["mode"] == "enter_password"


def test_snapshot_with_no_session_publishes_nothing(registry, channel, record):
    display = record(display_topic(FACILITY))
    channel.publish(f"display-sync-{FACILITY}", {"type": "snapshot_requested"})
    assert display.messages == []
