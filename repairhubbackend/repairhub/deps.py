from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session
from typing import Generator, List, Optional

from .auth import decode_access_token
from .database import SessionLocal
from .intake.channel import InMemoryChannel
from .intake.registry import IntakeHub
from .intake.remote_signer import RemoteSignerLink
from .models import Operator

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

# process-wide realtime state; one event loop drives all of it
channel = InMemoryChannel()
intake_hub = IntakeHub(channel)
remote_signer = RemoteSignerLink(channel)

def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_channel() -> InMemoryChannel:
    return channel

def get_intake_hub() -> IntakeHub:
    return intake_hub

def get_remote_signer() -> RemoteSignerLink:
    return remote_signer

class CurrentOperator:
    def __init__(self, id: int, email: str, name: str, roles: List[str], facility_id: Optional[str] = None):
        self.id = id; self.email = email; self.name = name; self.roles = roles; self.facility_id = facility_id

def get_current_operator(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> CurrentOperator:
    cred_err = HTTPException(status_code=401, detail="Authentication required")
    try:
        payload = decode_access_token(token)
        uid = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise cred_err
    op = db.query(Operator).filter(Operator.id == uid, Operator.is_active == True).first()  # noqa: E712
    if not op:
        raise cred_err
    roles = [r.role.name for r in op.roles if r.role is not None]
    return CurrentOperator(op.id, op.email, op.name, roles, op.facility_id)

def require_roles(required: List[str]):
    def checker(current: CurrentOperator = Depends(get_current_operator)):
        if not set(current.roles).intersection(required):
            raise HTTPException(status_code=403, detail="Insufficient role for this operation")
        return current
    return checker
