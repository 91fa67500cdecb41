# repairhub/intake/remote_signer.py: signature capture delegated to any third device
"""
The controlling terminal mints a fresh id (unrelated to any intake session id),
keeps a small pending record and hands out a link carrying the id, the amounts
to show and the expiry. The remote device listens on nothing; it publishes a
single ``signature_completed`` on ``signature-{id}`` and the controller, which
is subscribed there, unsubscribes and applies the artifact.

Records are ``pending`` until one of: ``completed`` (signature seen),
``expired`` (lifetime elapsed), ``cancelled`` (operator gave up).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Literal, Optional
from urllib.parse import parse_qs, urlencode, urlparse

from pydantic import ValidationError as WireValidationError

from .. import config
from ..errors import NotFoundError, ValidationError
from ..money import Amount, from_cents, to_cents
from ..utils import new_session_id, utcnow
from .channel import MessageChannel, Unsubscribe
from .protocol import SignatureCompleted, SignaturePayload, parse_signer_event, signature_topic

logger = logging.getLogger(__name__)

RemoteStatus = Literal["pending", "completed", "expired", "cancelled"]
LINK_PATH = "/remote-sign"


@dataclass
class PendingRemoteSignature:
    session_id: str
    amount: Decimal
    total: Decimal
    created_at: datetime
    expires_at: datetime
    status: RemoteStatus = "pending"
    intake_session_id: Optional[str] = None
    signature_data: Optional[str] = None
    signed_at: Optional[datetime] = None
    url: str = ""
    on_signed: Optional[Callable[["PendingRemoteSignature"], None]] = field(default=None, repr=False)


def build_link(session_id: str, amount: Decimal, total: Decimal, expires_at: datetime,
               base_url: str = config.PUBLIC_BASE_URL) -> str:
    query = urlencode({
        "amount": f"{amount:.2f}",
        "total": f"{total:.2f}",
        "exp": int((expires_at - datetime(1970, 1, 1)).total_seconds()),
    })
    return f"{base_url}{LINK_PATH}/{session_id}?{query}"


@dataclass(frozen=True)
class RemoteLink:
    session_id: str
    amount: Decimal
    total: Decimal
    expires_at: Optional[datetime]


def parse_link(url: str) -> RemoteLink:
    parsed = urlparse(url)
    prefix = LINK_PATH + "/"
    if not parsed.path.startswith(prefix) or len(parsed.path) == len(prefix):
        raise ValidationError(f"not a remote signature link: {url}")
    qs = parse_qs(parsed.query)
    exp = qs.get("exp", [None])[0]
    return RemoteLink(
        session_id=parsed.path[len(prefix):],
        amount=Decimal(qs.get("amount", ["0.00"])[0]),
        total=Decimal(qs.get("total", ["0.00"])[0]),
        expires_at=datetime(1970, 1, 1) + timedelta(seconds=int(exp)) if exp else None,
    )


class RemoteSignerLink:
    """Controller side. Owns the pending records and the channel subscriptions."""

    def __init__(self, channel: MessageChannel,
                 ttl_minutes: int = config.REMOTE_SIGNATURE_TTL_MINUTES,
                 base_url: str = config.PUBLIC_BASE_URL,
                 id_factory: Callable[[], str] = new_session_id,
                 clock: Callable[[], datetime] = utcnow):
        self.channel = channel
        self.ttl = timedelta(minutes=ttl_minutes)
        self.base_url = base_url
        self._id_factory = id_factory
        self._clock = clock
        self._records: Dict[str, PendingRemoteSignature] = {}
        self._unsubscribers: Dict[str, Unsubscribe] = {}

    def create(self, amount: Amount, total: Amount,
               on_signed: Optional[Callable[[PendingRemoteSignature], None]] = None,
               intake_session_id: Optional[str] = None) -> PendingRemoteSignature:
        if to_cents(amount) < 0 or to_cents(total) < 0:
            raise ValidationError("amounts must be >= 0")
        now = self._clock()
        sid = self._id_factory()
        rec = PendingRemoteSignature(
            session_id=sid,
            amount=from_cents(to_cents(amount)),
            total=from_cents(to_cents(total)),
            created_at=now,
            expires_at=now + self.ttl,
            intake_session_id=intake_session_id,
            on_signed=on_signed,
        )
        rec.url = build_link(sid, rec.amount, rec.total, rec.expires_at, self.base_url)
        self._records[sid] = rec
        self._unsubscribers[sid] = self.channel.subscribe(
            signature_topic(sid), lambda message, sid=sid: self.handle_message(sid, message)
        )
        logger.info("remote signature %s created, expires %s", sid, rec.expires_at.isoformat())
        return rec

    def get(self, session_id: str) -> PendingRemoteSignature:
        rec = self._records.get(session_id)
        if rec is None:
            raise NotFoundError(f"remote signature {session_id} not found")
        self._expire_if_due(rec)
        return rec

    def cancel(self, session_id: str) -> bool:
        rec = self.get(session_id)
        if rec.status != "pending":
            return False
        rec.status = "cancelled"
        self._unsubscribe(session_id)
        logger.info("remote signature %s cancelled", session_id)
        return True

    def expire_stale(self) -> int:
        return sum(1 for rec in list(self._records.values()) if self._expire_if_due(rec))

    def _expire_if_due(self, rec: PendingRemoteSignature) -> bool:
        if rec.status == "pending" and self._clock() >= rec.expires_at:
            rec.status = "expired"
            self._unsubscribe(rec.session_id)
            logger.info("remote signature %s expired", rec.session_id)
            return True
        return False

    def _unsubscribe(self, session_id: str) -> None:
        unsub = self._unsubscribers.pop(session_id, None)
        if unsub is not None:
            unsub()

    def handle_message(self, session_id: str, message: dict) -> None:
        try:
            event = parse_signer_event(message)
        except WireValidationError as e:
            logger.warning("malformed remote signature message dropped: %s", e)
            return
        if event.session_id != session_id:
            logger.info("signature_completed for %s on topic of %s dropped", event.session_id, session_id)
            return
        rec = self._records.get(session_id)
        if rec is None or self._expire_if_due(rec) or rec.status != "pending":
            logger.info("signature_completed for %s dropped, record is %s",
                        session_id, rec.status if rec else "unknown")
            return

        rec.status = "completed"
        rec.signature_data = event.payload.signature_data
        rec.signed_at = self._clock()
        self._unsubscribe(session_id)
        logger.info("remote signature %s completed", session_id)
        if rec.on_signed:
            rec.on_signed(rec)


class RemoteSignerDevice:
    """The third device: opened from a link, submits exactly one signature."""

    def __init__(self, channel: MessageChannel, link: RemoteLink,
                 clock: Callable[[], datetime] = utcnow):
        self.channel = channel
        self.link = link
        self._clock = clock
        self.signed = False

    @classmethod
    def from_url(cls, channel: MessageChannel, url: str, **kw) -> "RemoteSignerDevice":
        return cls(channel, parse_link(url), **kw)

    @property
    def expired(self) -> bool:
        return self.link.expires_at is not None and self._clock() >= self.link.expires_at

    def submit(self, signature_data: str) -> bool:
        if self.signed or self.expired or not signature_data:
            return False
        sid = self.link.session_id
        self.channel.publish(signature_topic(sid), SignatureCompleted(
            session_id=sid, payload=SignaturePayload(signature_data=signature_data)
        ).to_wire())
        self.signed = True
        return True
