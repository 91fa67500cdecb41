# repairhub/intake/display.py: customer-facing display, mirror of the coordinator session
"""
The display never decides anything on its own except the two local steps the
customer drives (password -> signature, signature -> completed); everything
else comes from events on the facility-wide topic. Its own actions go out on
the per-session topic, never on the broadcast one, so two terminals running
intakes for the same facility do not hear each other's customers.
"""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Callable, Optional

from pydantic import ValidationError as WireValidationError

from .. import config
from .channel import MessageChannel, Unsubscribe
from .protocol import (
    CustomerConfirmedData,
    IntakeCancelled,
    IntakeCompleted,
    IntakeMode,
    IntakeSnapshot,
    IntakeStarted,
    IntakeStartedPayload,
    IntakeUpdate,
    PasswordPayload,
    PasswordSkipped,
    PasswordSubmitted,
    RequestPassword,
    RequestSignature,
    SignaturePayload,
    SignatureSubmitted,
    SnapshotRequested,
    display_sync_topic,
    display_topic,
    intake_topic,
    parse_display_event,
)

logger = logging.getLogger(__name__)

# call_later(delay_seconds, callback) -> handle with .cancel()
Scheduler = Callable[[float, Callable[[], None]], Any]

ENDED_SESSIONS_KEPT = 32


def loop_call_later(delay: float, callback: Callable[[], None]):
    return asyncio.get_running_loop().call_later(delay, callback)


class DisplaySessionClient:
    def __init__(self, facility_id: str, channel: MessageChannel,
                 call_later: Scheduler = loop_call_later,
                 grace_seconds: float = config.DISPLAY_COMPLETED_GRACE_SECONDS):
        self.facility_id = facility_id
        self.channel = channel
        self.call_later = call_later
        self.grace_seconds = grace_seconds
        self.mode: IntakeMode = "standby"
        self.session_id: Optional[str] = None
        self.session: Optional[IntakeStartedPayload] = None
        self.data_confirmed = False
        # cancelled or completed ids; a late intake_started/snapshot for them is a redelivery
        self._ended: deque = deque(maxlen=ENDED_SESSIONS_KEPT)
        self._reset_handle = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._handlers = {
            IntakeStarted: self._on_started,
            IntakeUpdate: self._on_update,
            RequestPassword: self._on_request_password,
            RequestSignature: self._on_request_signature,
            IntakeCancelled: self._on_cancelled,
            IntakeCompleted: self._on_completed,
            IntakeSnapshot: self._on_snapshot,
        }

    def connect(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.channel.subscribe(display_topic(self.facility_id), self.handle_message)
        # whatever was broadcast before we joined is gone; ask for the current state
        self.channel.publish(display_sync_topic(self.facility_id),
                             SnapshotRequested(session_id=self.session_id).to_wire())

    def disconnect(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cancel_pending_reset()

    # ---- inbound
    def handle_message(self, message: dict) -> None:
        try:
            event = parse_display_event(message)
        except WireValidationError as e:
            logger.warning("malformed display message %s dropped: %s", message.get("type"), e)
            return
        self._handlers[type(event)](event)

    def _is_current(self, event) -> bool:
        if event.session_id != self.session_id:
            logger.info("%s for %s ignored, display holds %s", event.type, event.session_id, self.session_id)
            return False
        return True

    def _replace(self, session_id: str, payload: IntakeStartedPayload, mode: IntakeMode) -> None:
        self._cancel_pending_reset()
        if session_id != self.session_id:
            self._mark_ended()  # the coordinator keeps one session, the old one is gone
        self.session_id = session_id
        self.session = payload
        self.mode = mode
        self.data_confirmed = mode != "confirm_data"

    def _has_ended(self, event) -> bool:
        if event.session_id in self._ended:
            logger.info("%s for ended session %s ignored", event.type, event.session_id)
            return True
        return False

    def _mark_ended(self) -> None:
        if self.session_id is not None and self.session_id not in self._ended:
            self._ended.append(self.session_id)

    def _on_started(self, event: IntakeStarted) -> None:
        if event.session_id == self.session_id and self.mode != "standby":
            return  # duplicate delivery
        if self._has_ended(event):
            return
        self._replace(event.session_id, event.payload, "confirm_data")

    def _on_snapshot(self, event: IntakeSnapshot) -> None:
        if self._has_ended(event):
            return
        payload = IntakeStartedPayload(**event.payload.model_dump(exclude={"mode"}))
        if event.session_id == self.session_id and event.payload.mode == self.mode:
            # another display reconnected; we are already in step
            self.session = payload
            return
        self._replace(event.session_id, payload, event.payload.mode)
        if event.payload.mode == "completed":
            self._schedule_reset()

    def _on_update(self, event: IntakeUpdate) -> None:
        if not self._is_current(event) or self.session is None:
            return
        changes = event.payload.model_dump(exclude_unset=True, exclude_none=True)
        self.session = self.session.model_copy(update={
            k: getattr(event.payload, k) for k in changes
        })

    def _on_request_password(self, event: RequestPassword) -> None:
        if self._is_current(event) and self.mode in ("confirm_data", "enter_password"):
            self.mode = "enter_password"

    def _on_request_signature(self, event: RequestSignature) -> None:
        if self._is_current(event) and self.mode in ("confirm_data", "enter_password", "signature"):
            self.mode = "signature"

    def _on_cancelled(self, event: IntakeCancelled) -> None:
        if self._is_current(event):
            self.reset_to_standby()
        elif event.session_id not in self._ended:
            # may overtake its own intake_started
            self._ended.append(event.session_id)

    def _on_completed(self, event: IntakeCompleted) -> None:
        if not self._is_current(event):
            return
        if self.mode == "completed" and self._reset_handle is not None:
            return  # already counting down
        self.mode = "completed"
        self._schedule_reset()

    # ---- grace period
    def _schedule_reset(self) -> None:
        self._cancel_pending_reset()
        session_id = self.session_id

        def reset() -> None:
            self._reset_handle = None
            # a newer intake may have arrived during the grace period
            if self.session_id == session_id and self.mode == "completed":
                self.reset_to_standby()

        self._reset_handle = self.call_later(self.grace_seconds, reset)

    def _cancel_pending_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None

    def reset_to_standby(self) -> None:
        self._cancel_pending_reset()
        self._mark_ended()
        self.mode = "standby"
        self.session_id = None
        self.session = None
        self.data_confirmed = False

    # ---- customer actions (published on the session topic)
    def _send(self, event) -> bool:
        if self.session_id is None:
            return False
        self.channel.publish(intake_topic(self.session_id), event.to_wire())
        return True

    def confirm_data(self) -> bool:
        if self.mode != "confirm_data":
            return False
        self.data_confirmed = True
        return self._send(CustomerConfirmedData(session_id=self.session_id))

    def submit_password(self, password: str) -> bool:
        if self.mode != "enter_password" or not password:
            return False
        sent = self._send(PasswordSubmitted(session_id=self.session_id, payload=PasswordPayload(password=password)))
        self.mode = "signature"
        return sent

    def skip_password(self) -> bool:
        if self.mode != "enter_password":
            return False
        sent = self._send(PasswordSkipped(session_id=self.session_id))
        self.mode = "signature"
        return sent

    def submit_signature(self, signature_data: str) -> bool:
        if self.mode != "signature" or not signature_data:
            return False
        sent = self._send(SignatureSubmitted(session_id=self.session_id,
                                             payload=SignaturePayload(signature_data=signature_data)))
        # stays here until intake_completed starts the grace period
        self.mode = "completed"
        return sent
