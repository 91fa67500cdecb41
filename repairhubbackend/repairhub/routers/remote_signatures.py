from fastapi import APIRouter, Depends, HTTPException
from starlette.responses import Response

from .. import schemas
from ..codes import link_qr_png
from ..deps import get_channel, get_intake_hub, get_remote_signer
from ..errors import NotFoundError, ValidationError
from ..intake.channel import MessageChannel
from ..intake.registry import IntakeHub
from ..intake.remote_signer import PendingRemoteSignature, RemoteLink, RemoteSignerDevice, RemoteSignerLink

router = APIRouter(prefix="/remote-signatures", tags=["remote_signatures"])

def _get(signer: RemoteSignerLink, session_id: str) -> PendingRemoteSignature:
    try:
        return signer.get(session_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))

@router.post("", response_model=schemas.RemoteSignatureRead, status_code=201)
async def create_remote_signature(payload: schemas.RemoteSignatureCreate,
                                  signer: RemoteSignerLink = Depends(get_remote_signer),
                                  hub: IntakeHub = Depends(get_intake_hub)):
    on_signed = None
    if payload.intake_session_id:
        reg = hub.registry_for(payload.facility_id) if payload.facility_id else hub.find_session(payload.intake_session_id)
        if reg is None or reg.current_session_id != payload.intake_session_id:
            raise HTTPException(404, "intake session is not active")
        intake_sid = payload.intake_session_id
        # same path as a signature captured on the display
        on_signed = lambda rec: reg.attach_signature(intake_sid, rec.signature_data)  # noqa: E731
    try:
        return signer.create(payload.amount, payload.total, on_signed=on_signed,
                             intake_session_id=payload.intake_session_id)
    except ValidationError as e:
        raise HTTPException(422, str(e))

@router.get("/{session_id}", response_model=schemas.RemoteSignatureRead)
async def get_remote_signature(session_id: str, signer: RemoteSignerLink = Depends(get_remote_signer)):
    return _get(signer, session_id)

@router.get("/{session_id}/code.png")
async def remote_signature_code(session_id: str, signer: RemoteSignerLink = Depends(get_remote_signer)):
    rec = _get(signer, session_id)
    return Response(content=link_qr_png(rec.url), media_type="image/png")

@router.post("/{session_id}/sign", response_model=schemas.RemoteSignatureRead)
async def sign_remote(session_id: str, payload: schemas.RemoteSignIn,
                      signer: RemoteSignerLink = Depends(get_remote_signer),
                      channel: MessageChannel = Depends(get_channel)):
    # HTTP fallback for the remote device; it only publishes, like the websocket client
    rec = _get(signer, session_id)
    device = RemoteSignerDevice(channel, RemoteLink(rec.session_id, rec.amount, rec.total, rec.expires_at))
    if rec.status != "pending" or not device.submit(payload.signature_data):
        raise HTTPException(409, f"remote signature is {signer.get(session_id).status}")
    return signer.get(session_id)

@router.delete("/{session_id}", response_model=schemas.RemoteSignatureRead)
async def cancel_remote_signature(session_id: str, signer: RemoteSignerLink = Depends(get_remote_signer)):
    rec = _get(signer, session_id)
    if not signer.cancel(session_id):
        raise HTTPException(409, f"remote signature is {rec.status}")
    return rec
