from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from ..schemas import LoginIn, Token, OperatorOut
from ..models import Operator
from ..auth import create_access_token, verify_password
from ..deps import get_db, get_current_operator

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login", response_model=Token)
def login(body: LoginIn, db: Session = Depends(get_db)):
    op = db.query(Operator).filter(Operator.email == body.email).first()
    if not op or not op.is_active or not verify_password(body.password, op.password_hash):
        raise HTTPException(status_code=401, detail="Wrong email or password")
    return {"access_token": create_access_token({"sub": str(op.id)})}

@router.get("/me", response_model=OperatorOut)
def me(current=Depends(get_current_operator)):
    return OperatorOut(id=current.id, email=current.email, name=current.name,
                       roles=current.roles, facility_id=current.facility_id)
