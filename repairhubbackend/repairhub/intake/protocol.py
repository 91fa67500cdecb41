# repairhub/intake/protocol.py: wire types for the intake / remote-signature channels
"""
Every message on a channel is an envelope ``{type, sessionId, payload}``.
Each ``type`` has its own model so a handler table can be checked against the
closed set below (``DISPLAY_EVENTS``, ``COORDINATOR_EVENTS``, ``SIGNER_EVENTS``).
"""
from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

IntakeMode = Literal["standby", "confirm_data", "enter_password", "signature", "completed"]


def display_topic(facility_id: str) -> str:
    """Facility-wide broadcast, coordinator -> every display of the facility."""
    return f"display-{facility_id}"


def display_sync_topic(facility_id: str) -> str:
    return f"display-sync-{facility_id}"


def intake_topic(session_id: str) -> str:
    """Addressed per session, display -> coordinator."""
    return f"intake-{session_id}"


def signature_topic(session_id: str) -> str:
    return f"signature-{session_id}"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---- session data
class CustomerInfo(WireModel):
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None


class DeviceInfo(WireModel):
    brand: str
    model: str
    device_type: str
    reported_issue: str
    imei: Optional[str] = None
    serial_number: Optional[str] = None


class QuoteItemInfo(WireModel):
    id: Optional[str] = None
    description: str
    kind: Literal["part", "labor", "service"] = "service"
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(default=0.0, ge=0)
    total: Optional[float] = None


class PricingInfo(WireModel):
    estimated_cost: float = Field(default=0.0, ge=0)
    diagnostic_fee: float = Field(default=0.0, ge=0)
    amount_due_now: float = Field(default=0.0, ge=0)
    remaining_balance: Optional[float] = None
    quote_items: Optional[List[QuoteItemInfo]] = None
    labor_cost: Optional[float] = None


class PricingPatch(WireModel):
    """Partial pricing update; unset fields keep their current value."""
    estimated_cost: Optional[float] = Field(default=None, ge=0)
    diagnostic_fee: Optional[float] = Field(default=None, ge=0)
    amount_due_now: Optional[float] = Field(default=None, ge=0)
    remaining_balance: Optional[float] = None
    quote_items: Optional[List[QuoteItemInfo]] = None
    labor_cost: Optional[float] = None


# ---- payloads
class Empty(WireModel):
    pass


class IntakeStartedPayload(PricingInfo):
    customer: CustomerInfo
    device: DeviceInfo


class IntakeUpdatePayload(PricingPatch):
    customer: Optional[CustomerInfo] = None
    device: Optional[DeviceInfo] = None


class IntakeSnapshotPayload(IntakeStartedPayload):
    mode: IntakeMode


class CustomerConfirmedPayload(WireModel):
    confirmed: Literal[True] = True


class PasswordPayload(WireModel):
    password: str


class SignaturePayload(WireModel):
    signature_data: str = Field(min_length=1)


# ---- events
class _Event(WireModel):
    session_id: str


class IntakeStarted(_Event):
    type: Literal["intake_started"] = "intake_started"
    payload: IntakeStartedPayload


class IntakeUpdate(_Event):
    type: Literal["intake_update"] = "intake_update"
    payload: IntakeUpdatePayload


class RequestPassword(_Event):
    type: Literal["request_password"] = "request_password"
    payload: Empty = Empty()


class RequestSignature(_Event):
    type: Literal["request_signature"] = "request_signature"
    payload: Empty = Empty()


class IntakeCancelled(_Event):
    type: Literal["intake_cancelled"] = "intake_cancelled"
    payload: Empty = Empty()


class IntakeCompleted(_Event):
    type: Literal["intake_completed"] = "intake_completed"
    payload: Empty = Empty()


class IntakeSnapshot(_Event):
    type: Literal["intake_snapshot"] = "intake_snapshot"
    payload: IntakeSnapshotPayload


class SnapshotRequested(WireModel):
    type: Literal["snapshot_requested"] = "snapshot_requested"
    session_id: Optional[str] = None  # last id the display knew, if any
    payload: Empty = Empty()


class CustomerConfirmedData(_Event):
    type: Literal["customer_confirmed_data"] = "customer_confirmed_data"
    payload: CustomerConfirmedPayload = CustomerConfirmedPayload()


class PasswordSubmitted(_Event):
    type: Literal["password_submitted"] = "password_submitted"
    payload: PasswordPayload


class PasswordSkipped(_Event):
    type: Literal["password_skipped"] = "password_skipped"
    payload: Empty = Empty()


class SignatureSubmitted(_Event):
    type: Literal["signature_submitted"] = "signature_submitted"
    payload: SignaturePayload


class SignatureCompleted(_Event):
    type: Literal["signature_completed"] = "signature_completed"
    payload: SignaturePayload


DisplayEvent = Annotated[
    Union[IntakeStarted, IntakeUpdate, RequestPassword, RequestSignature,
          IntakeCancelled, IntakeCompleted, IntakeSnapshot],
    Field(discriminator="type"),
]
CoordinatorEvent = Annotated[
    Union[CustomerConfirmedData, PasswordSubmitted, PasswordSkipped, SignatureSubmitted, SnapshotRequested],
    Field(discriminator="type"),
]

DISPLAY_EVENTS = (IntakeStarted, IntakeUpdate, RequestPassword, RequestSignature,
                  IntakeCancelled, IntakeCompleted, IntakeSnapshot)
COORDINATOR_EVENTS = (CustomerConfirmedData, PasswordSubmitted, PasswordSkipped,
                      SignatureSubmitted, SnapshotRequested)
SIGNER_EVENTS = (SignatureCompleted,)

_display_adapter = TypeAdapter(DisplayEvent)
_coordinator_adapter = TypeAdapter(CoordinatorEvent)


def parse_display_event(message: dict):
    """Raises ``pydantic.ValidationError`` for anything outside the catalogue."""
    return _display_adapter.validate_python(message)


def parse_coordinator_event(message: dict):
    return _coordinator_adapter.validate_python(message)


def parse_signer_event(message: dict) -> SignatureCompleted:
    return SignatureCompleted.model_validate(message)
