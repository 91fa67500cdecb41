# repairhub/intake/registry.py: coordinator side of the intake protocol
"""
The staff terminal owns the authoritative ``IntakeSession``. A registry keeps
exactly one current session per facility (a single-slot arena): starting a new
one drops the previous aggregate, and everything addressed to the old id is
treated as a protocol mismatch from then on.

State changes are published on ``display-{facility}``; customer actions come
back on ``intake-{session}``. Delivery is best effort, so every inbound
handler checks the session id and the current mode before it touches anything,
and repeats of an already applied event are no-ops.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional

from pydantic import ValidationError as WireValidationError

from ..errors import ProtocolMismatchError
from ..utils import new_session_id, utcnow
from .channel import MessageChannel, Unsubscribe
from .protocol import (
    CustomerConfirmedData,
    CustomerInfo,
    DeviceInfo,
    IntakeCancelled,
    IntakeCompleted,
    IntakeMode,
    IntakeSnapshot,
    IntakeSnapshotPayload,
    IntakeStarted,
    IntakeStartedPayload,
    IntakeUpdate,
    IntakeUpdatePayload,
    PasswordSkipped,
    PasswordSubmitted,
    PricingInfo,
    PricingPatch,
    RequestPassword,
    RequestSignature,
    SignatureSubmitted,
    SnapshotRequested,
    display_sync_topic,
    display_topic,
    intake_topic,
    parse_coordinator_event,
)

logger = logging.getLogger(__name__)

ACTIVE_MODES = ("confirm_data", "enter_password", "signature")


@dataclass
class IntakeSession:
    session_id: str
    facility_id: str
    customer: CustomerInfo
    device: DeviceInfo
    pricing: PricingInfo
    mode: IntakeMode = "confirm_data"
    created_at: datetime = field(default_factory=utcnow)
    version: int = 0
    data_confirmed: bool = False
    password: Optional[str] = None
    password_skipped: bool = False
    signature_data: Optional[str] = None

    def bump(self) -> None:
        self.version += 1

    def started_payload(self) -> IntakeStartedPayload:
        return IntakeStartedPayload(customer=self.customer, device=self.device,
                                    **self.pricing.model_dump(exclude_none=True))


class SessionRegistry:
    def __init__(self, facility_id: str, channel: MessageChannel,
                 id_factory: Callable[[], str] = new_session_id,
                 on_data_confirmed: Optional[Callable[[IntakeSession], None]] = None,
                 on_password: Optional[Callable[[IntakeSession], None]] = None,
                 on_signature: Optional[Callable[[IntakeSession], None]] = None):
        self.facility_id = facility_id
        self.channel = channel
        self._id_factory = id_factory
        self._current: Optional[IntakeSession] = None
        self._unsubscribe_session: Optional[Unsubscribe] = None
        self.on_data_confirmed = on_data_confirmed
        self.on_password = on_password
        self.on_signature = on_signature
        self._handlers = {
            CustomerConfirmedData: self._on_customer_confirmed,
            PasswordSubmitted: self._on_password_submitted,
            PasswordSkipped: self._on_password_skipped,
            SignatureSubmitted: self._on_signature_submitted,
            SnapshotRequested: self._on_snapshot_requested,
        }
        self._unsubscribe_sync = channel.subscribe(display_sync_topic(facility_id), self.handle_message)

    # ---- read side
    @property
    def current(self) -> Optional[IntakeSession]:
        return self._current

    @property
    def current_session_id(self) -> Optional[str]:
        return self._current.session_id if self._current else None

    @property
    def mode(self) -> IntakeMode:
        return self._current.mode if self._current else "standby"

    def _publish(self, event) -> None:
        self.channel.publish(display_topic(self.facility_id), event.to_wire())

    def _session_for(self, session_id: str, action: str) -> Optional[IntakeSession]:
        if self._current is None or self._current.session_id != session_id:
            logger.info("%s for stale session %s dropped (current %s)", action, session_id, self.current_session_id)
            return None
        return self._current

    # ---- operator actions
    def start_session(self, customer: CustomerInfo, device: DeviceInfo, pricing: PricingInfo) -> str:
        previous = self._current
        if previous is not None and previous.mode != "completed":
            logger.info("session %s superseded before completion", previous.session_id)
        self._drop_session_subscription()

        session = IntakeSession(
            session_id=self._id_factory(),
            facility_id=self.facility_id,
            customer=customer,
            device=device,
            pricing=pricing,
        )
        self._current = session
        self._unsubscribe_session = self.channel.subscribe(intake_topic(session.session_id), self.handle_message)
        self._publish(IntakeStarted(session_id=session.session_id, payload=session.started_payload()))
        logger.info("intake session %s started for facility %s", session.session_id, self.facility_id)
        return session.session_id

    def update_pricing(self, session_id: str, patch: PricingPatch) -> bool:
        session = self._session_for(session_id, "intake_update")
        if session is None or session.mode == "completed":
            return False
        # attribute values, not model_dump(): nested quote items must stay models
        changes = {k: getattr(patch, k) for k in patch.model_fields_set}
        if not changes:
            return True
        session.pricing = session.pricing.model_copy(update=changes)
        session.bump()
        self._publish(IntakeUpdate(session_id=session_id, payload=IntakeUpdatePayload(**changes)))
        return True

    def update_details(self, session_id: str, customer: Optional[CustomerInfo] = None,
                       device: Optional[DeviceInfo] = None) -> bool:
        session = self._session_for(session_id, "intake_update")
        if session is None or session.mode == "completed":
            return False
        if customer is not None:
            session.customer = customer
        if device is not None:
            session.device = device
        session.bump()
        self._publish(IntakeUpdate(session_id=session_id,
                                   payload=IntakeUpdatePayload(customer=customer, device=device)))
        return True

    def request_password(self, session_id: str) -> bool:
        # no need to wait for customer_confirmed_data: operator override
        session = self._session_for(session_id, "request_password")
        if session is None or session.mode not in ("confirm_data", "enter_password"):
            return False
        session.mode = "enter_password"
        session.bump()
        self._publish(RequestPassword(session_id=session_id))
        return True

    def request_signature(self, session_id: str) -> bool:
        session = self._session_for(session_id, "request_signature")
        if session is None or session.mode not in ACTIVE_MODES:
            return False
        session.mode = "signature"
        session.bump()
        self._publish(RequestSignature(session_id=session_id))
        return True

    def cancel(self) -> Optional[str]:
        session = self._current
        if session is None:
            return None
        self._drop_session_subscription()
        self._current = None
        self._publish(IntakeCancelled(session_id=session.session_id))
        logger.info("intake session %s cancelled in mode %s", session.session_id, session.mode)
        return session.session_id

    def complete(self, session_id: str) -> bool:
        session = self._session_for(session_id, "intake_completed")
        if session is None or session.mode != "completed":
            return False
        self._publish(IntakeCompleted(session_id=session_id))
        return True

    def attach_signature(self, session_id: str, signature_data: str) -> bool:
        """Applies a signature captured anywhere (display, remote device, terminal)."""
        session = self._session_for(session_id, "signature")
        if session is None:
            return False
        if session.mode == "completed":
            # duplicate delivery of the same artifact is fine, a different one is not
            return session.signature_data == signature_data
        if session.mode not in ACTIVE_MODES:
            return False
        session.signature_data = signature_data
        session.mode = "completed"
        session.bump()
        logger.info("intake session %s signed", session_id)
        if self.on_signature:
            self.on_signature(session)
        return True

    def publish_snapshot(self) -> bool:
        session = self._current
        if session is None:
            return False
        payload = IntakeSnapshotPayload(mode=session.mode, **session.started_payload().model_dump())
        self._publish(IntakeSnapshot(session_id=session.session_id, payload=payload))
        return True

    def close(self) -> None:
        self._drop_session_subscription()
        self._unsubscribe_sync()

    def _drop_session_subscription(self) -> None:
        if self._unsubscribe_session is not None:
            self._unsubscribe_session()
            self._unsubscribe_session = None

    # ---- inbound
    def handle_message(self, message: dict) -> None:
        try:
            event = parse_coordinator_event(message)
        except WireValidationError as e:
            logger.warning("malformed inbound message %s dropped: %s", message.get("type"), e)
            return
        self.on_inbound_event(event)

    def on_inbound_event(self, event) -> None:
        handler = self._handlers[type(event)]
        try:
            handler(event)
        except ProtocolMismatchError as e:
            logger.info("protocol mismatch, dropped: %s", e)

    def _check(self, event) -> IntakeSession:
        if self._current is None or event.session_id != self._current.session_id:
            raise ProtocolMismatchError(event.type, event.session_id, self.current_session_id)
        return self._current

    def _on_customer_confirmed(self, event: CustomerConfirmedData) -> None:
        session = self._check(event)
        if session.data_confirmed or session.mode == "completed":
            return
        session.data_confirmed = True
        session.bump()
        if self.on_data_confirmed:
            self.on_data_confirmed(session)

    def _on_password_submitted(self, event: PasswordSubmitted) -> None:
        session = self._check(event)
        if session.mode != "enter_password":
            logger.info("password for %s ignored in mode %s", session.session_id, session.mode)
            return
        session.password = event.payload.password
        session.password_skipped = False
        session.mode = "signature"
        session.bump()
        if self.on_password:
            self.on_password(session)

    def _on_password_skipped(self, event: PasswordSkipped) -> None:
        session = self._check(event)
        if session.mode != "enter_password":
            return
        session.password_skipped = True
        session.mode = "signature"
        session.bump()
        if self.on_password:
            self.on_password(session)

    def _on_signature_submitted(self, event: SignatureSubmitted) -> None:
        session = self._check(event)
        if session.mode not in ("signature", "completed"):
            logger.info("signature for %s ignored in mode %s", session.session_id, session.mode)
            return
        self.attach_signature(session.session_id, event.payload.signature_data)

    def _on_snapshot_requested(self, event: SnapshotRequested) -> None:
        # no id check: a reconnecting display may not know the current id at all
        self.publish_snapshot()


class IntakeHub:
    """One registry per facility, all sharing one channel."""

    def __init__(self, channel: MessageChannel):
        self.channel = channel
        self._registries: Dict[str, SessionRegistry] = {}

    def registry_for(self, facility_id: str) -> SessionRegistry:
        reg = self._registries.get(facility_id)
        if reg is None:
            reg = SessionRegistry(facility_id, self.channel)
            self._registries[facility_id] = reg
        return reg

    def find_session(self, session_id: str) -> Optional[SessionRegistry]:
        for reg in self._registries.values():
            if reg.current_session_id == session_id:
                return reg
        return None
