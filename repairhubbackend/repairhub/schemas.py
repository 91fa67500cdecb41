from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional, List, Literal

from .intake.protocol import CustomerInfo, DeviceInfo, IntakeMode, PricingInfo, PricingPatch, WireModel

# ---- Quotes
class LineItemIn(BaseModel):
    id: Optional[str] = None
    description: str
    kind: Literal["part", "labor", "service"]
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal = Field(ge=0)
    purchase_cost: Decimal = Field(default=Decimal("0"), ge=0)  # per unit, parts only

class TotalsOut(BaseModel):
    parts_total: Decimal
    labor_total: Decimal
    service_total: Decimal
    grand_total: Decimal
    parts_purchase_cost: Decimal

class RatesIn(BaseModel):
    centro: Decimal = Field(ge=0, le=100)
    corner: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    platform: Decimal = Field(ge=0, le=100)

class SplitRequest(BaseModel):
    items: List[LineItemIn]
    rates: RatesIn

class SplitOut(BaseModel):
    grand_total: Decimal
    parts_purchase_cost: Decimal
    gross_margin: Decimal
    centro_rate: Decimal
    corner_rate: Decimal
    platform_rate: Decimal
    centro_commission: Decimal
    corner_commission: Decimal
    platform_commission: Decimal
    unallocated: Decimal
    warnings: List[str] = []

# ---- Settlements
class SettlementCreate(BaseModel):
    job_id: str
    facility_id: str
    referrer_id: Optional[str] = None
    payment_collection_method: Literal["direct", "via_corner"] = "direct"
    items: List[LineItemIn]
    notes: Optional[str] = None

class SettlementRead(BaseModel):
    id: str
    job_id: str
    facility_id: str
    referrer_id: Optional[str] = None
    payment_collection_method: Literal["direct", "via_corner"]
    gross_revenue: Decimal
    parts_cost: Decimal
    gross_margin: Decimal
    centro_rate: Decimal
    corner_rate: Decimal
    platform_rate: Decimal
    centro_commission: Decimal
    corner_commission: Decimal
    platform_commission: Decimal
    unallocated: Decimal
    platform_paid: bool
    platform_paid_at: Optional[datetime] = None
    corner_paid: bool
    corner_paid_at: Optional[datetime] = None
    state: Literal["unpaid", "platform_only_paid", "corner_only_paid", "fully_paid"]
    created_at: datetime

class OutstandingRead(BaseModel):
    facility_id: str
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    platform_due: Decimal
    corner_due: Decimal
    total_due: Decimal
    entries: List[SettlementRead] = []

# ---- Intake (camelCase like the realtime payloads)
class IntakeStartIn(WireModel):
    customer: CustomerInfo
    device: DeviceInfo
    pricing: PricingInfo = PricingInfo()

class IntakePricingIn(PricingPatch):
    pass

class IntakeDetailsIn(WireModel):
    customer: Optional[CustomerInfo] = None
    device: Optional[DeviceInfo] = None

class IntakeStartOut(WireModel):
    session_id: str
    display_topic: str
    intake_topic: str

class IntakeSessionRead(WireModel):
    session_id: Optional[str] = None
    facility_id: str
    mode: IntakeMode
    version: int = 0
    data_confirmed: bool = False
    password: Optional[str] = None
    password_skipped: bool = False
    signed: bool = False
    customer: Optional[CustomerInfo] = None
    device: Optional[DeviceInfo] = None
    pricing: Optional[PricingInfo] = None
    created_at: Optional[datetime] = None

# ---- Remote signatures
class RemoteSignatureCreate(BaseModel):
    amount: Decimal = Field(ge=0)
    total: Decimal = Field(ge=0)
    facility_id: Optional[str] = None
    intake_session_id: Optional[str] = None

class RemoteSignatureRead(BaseModel):
    session_id: str
    amount: Decimal
    total: Decimal
    status: Literal["pending", "completed", "expired", "cancelled"]
    url: str
    created_at: datetime
    expires_at: datetime
    signed_at: Optional[datetime] = None
    intake_session_id: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)

class RemoteSignIn(BaseModel):
    signature_data: str = Field(min_length=1)

# ---- Auth
class OperatorOut(BaseModel):
    id: int
    email: EmailStr
    name: str
    roles: List[str]
    facility_id: Optional[str] = None

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class LoginIn(BaseModel):
    email: EmailStr
    password: str
