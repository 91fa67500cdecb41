# tests/test_remote_signer.py
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from repairhub.errors import NotFoundError, ValidationError
from repairhub.intake.protocol import signature_topic
from repairhub.intake.remote_signer import RemoteSignerDevice, RemoteSignerLink, parse_link


class Clock:
    def __init__(self):
        self.now = datetime(2026, 10, 19, 9, 0)

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def signer(channel, clock):
    return RemoteSignerLink(channel, ttl_minutes=30, base_url="https://hub.example",
                            id_factory=lambda: "R1", clock=clock)


def test_link_carries_id_and_amounts(signer):
    rec = signer.create("20", "150.5")
    assert rec.status == "pending"
    assert rec.url.startswith("https://hub.example/remote-sign/R1?")
    link = parse_link(rec.url)
    assert link.session_id == "R1"
    assert link.amount == Decimal("20.00")
    assert link.total == Decimal("150.50")
    assert link.expires_at == rec.expires_at


def test_signature_completes_and_unsubscribes(signer, channel, clock):
    applied = []
    rec = signer.create(20, 150, on_signed=applied.append)
    device = RemoteSignerDevice.from_url(channel, rec.url, clock=clock)
    assert channel.subscriber_count(signature_topic("R1")) == 1
    assert device.submit("data:image/png;base64,SIG")
    assert rec.status == "completed"
    assert rec.signature_data == "data:image/png;base64,SIG"
    assert applied == [rec]
    assert channel.subscriber_count(signature_topic("R1")) == 0
    assert not device.submit("again")


def test_second_completion_is_ignored(signer, channel):
    applied = []
    signer.create(1, 1, on_signed=applied.append)
    msg = {"type": "signature_completed", "sessionId": "R1", "payload": {"signatureData": "one"}}
    signer.handle_message("R1", msg)
    signer.handle_message("R1", dict(msg, payload={"signatureData": "two"}))
    assert signer.get("R1").signature_data == "one"
    assert len(applied) == 1


def test_expired_link_refuses_signature(signer, channel, clock):
    rec = signer.create(20, 150)
    device = RemoteSignerDevice.from_url(channel, rec.url, clock=clock)
    clock.now += timedelta(minutes=31)
    assert device.expired
    assert not device.submit("late")
    # a device with a wrong clock still gets dropped by the controller
    signer.handle_message("R1", {"type": "signature_completed", "sessionId": "R1", "payload": {"signatureData": "x"}})
    assert signer.get("R1").status == "expired"
    assert signer.get("R1").signature_data is None


def test_expire_stale(signer, clock):
    signer.create(1, 1)
    clock.now += timedelta(minutes=30)
    assert signer.expire_stale() == 1
    assert signer.expire_stale() == 0


def test_cancel(signer, channel):
    rec = signer.create(1, 1)
    assert signer.cancel("R1")
    assert rec.status == "cancelled"
    assert channel.subscriber_count(signature_topic("R1")) == 0
    assert not signer.cancel("R1")


def test_unknown_and_invalid(signer):
    with pytest.raises(NotFoundError):
        signer.get("missing")
    with pytest.raises(ValidationError):
        signer.create(-1, 10)
    with pytest.raises(ValidationError):
        parse_link("https://hub.example/other/R1")
