# Staff-terminal endpoints. async so the registries, the channel and the
# websocket bridge all run on the event loop, never on the threadpool.
from fastapi import APIRouter, Depends, HTTPException

from .. import schemas
from ..deps import get_intake_hub
from ..intake.protocol import display_topic, intake_topic
from ..intake.registry import IntakeHub, SessionRegistry

router = APIRouter(prefix="/intake", tags=["intake"])

def session_to_read(reg: SessionRegistry) -> schemas.IntakeSessionRead:
    s = reg.current
    if s is None:
        return schemas.IntakeSessionRead(facility_id=reg.facility_id, mode="standby")
    return schemas.IntakeSessionRead(
        session_id=s.session_id,
        facility_id=s.facility_id,
        mode=s.mode,
        version=s.version,
        data_confirmed=s.data_confirmed,
        password=s.password,
        password_skipped=s.password_skipped,
        signed=s.signature_data is not None,
        customer=s.customer,
        device=s.device,
        pricing=s.pricing,
        created_at=s.created_at,
    )

def _applied(ok: bool, reg: SessionRegistry):
    if not ok:
        raise HTTPException(409, f"not applicable to the current session (mode {reg.mode})")
    return session_to_read(reg)

@router.post("/{facility_id}/sessions", response_model=schemas.IntakeStartOut, status_code=201)
async def start_session(facility_id: str, payload: schemas.IntakeStartIn, hub: IntakeHub = Depends(get_intake_hub)):
    sid = hub.registry_for(facility_id).start_session(payload.customer, payload.device, payload.pricing)
    return schemas.IntakeStartOut(session_id=sid, display_topic=display_topic(facility_id), intake_topic=intake_topic(sid))

@router.get("/{facility_id}/session", response_model=schemas.IntakeSessionRead)
async def current_session(facility_id: str, hub: IntakeHub = Depends(get_intake_hub)):
    return session_to_read(hub.registry_for(facility_id))

@router.patch("/{facility_id}/sessions/{session_id}/pricing", response_model=schemas.IntakeSessionRead)
async def update_pricing(facility_id: str, session_id: str, payload: schemas.IntakePricingIn,
                         hub: IntakeHub = Depends(get_intake_hub)):
    reg = hub.registry_for(facility_id)
    # a stale id is dropped silently; the caller just sees the current session
    reg.update_pricing(session_id, payload)
    return session_to_read(reg)

@router.patch("/{facility_id}/sessions/{session_id}/details", response_model=schemas.IntakeSessionRead)
async def update_details(facility_id: str, session_id: str, payload: schemas.IntakeDetailsIn,
                         hub: IntakeHub = Depends(get_intake_hub)):
    if payload.customer is None and payload.device is None:
        raise HTTPException(422, "nothing to update")
    reg = hub.registry_for(facility_id)
    reg.update_details(session_id, customer=payload.customer, device=payload.device)
    return session_to_read(reg)

@router.post("/{facility_id}/sessions/{session_id}/request-password", response_model=schemas.IntakeSessionRead)
async def request_password(facility_id: str, session_id: str, hub: IntakeHub = Depends(get_intake_hub)):
    reg = hub.registry_for(facility_id)
    return _applied(reg.request_password(session_id), reg)

@router.post("/{facility_id}/sessions/{session_id}/request-signature", response_model=schemas.IntakeSessionRead)
async def request_signature(facility_id: str, session_id: str, hub: IntakeHub = Depends(get_intake_hub)):
    reg = hub.registry_for(facility_id)
    return _applied(reg.request_signature(session_id), reg)

@router.post("/{facility_id}/sessions/{session_id}/complete", response_model=schemas.IntakeSessionRead)
async def complete(facility_id: str, session_id: str, hub: IntakeHub = Depends(get_intake_hub)):
    reg = hub.registry_for(facility_id)
    return _applied(reg.complete(session_id), reg)

@router.post("/{facility_id}/cancel", response_model=schemas.IntakeSessionRead)
async def cancel(facility_id: str, hub: IntakeHub = Depends(get_intake_hub)):
    reg = hub.registry_for(facility_id)
    reg.cancel()
    return session_to_read(reg)
