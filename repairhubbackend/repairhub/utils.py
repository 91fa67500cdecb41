import secrets
from datetime import datetime

def new_session_id() -> str:
    # opaque, unguessable; also used as the remote-signature link token
    return secrets.token_urlsafe(16)

def utcnow() -> datetime:
    return datetime.utcnow()
