# repairhub/main.py
from __future__ import annotations

import logging
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .auth import ROLE_FACILITY_STAFF, ROLE_PLATFORM_ADMIN, hash_password
from .database import SessionLocal, create_db
from .models import Operator, OperatorRole, Role
from .rates import seed_settings
from .routers import auth_routes, intake, quotes, realtime, remote_signatures, settlements

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="RepairHub Intake & Settlement API",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def seed_owner(db) -> None:
    if not (config.OWNER_EMAIL and config.OWNER_PASSWORD):
        return
    roles = {}
    for name in (ROLE_PLATFORM_ADMIN, ROLE_FACILITY_STAFF):
        role = db.query(Role).filter(Role.name == name).first()
        if not role:
            role = Role(name=name)
            db.add(role)
            db.flush()
        roles[name] = role
    op = db.query(Operator).filter(Operator.email == config.OWNER_EMAIL).first()
    if not op:
        op = Operator(email=config.OWNER_EMAIL, name="Owner", password_hash=hash_password(config.OWNER_PASSWORD))
        db.add(op)
        db.flush()
        db.add(OperatorRole(operator_id=op.id, role_id=roles[ROLE_PLATFORM_ADMIN].id))
        logger.info("seeded platform admin %s", config.OWNER_EMAIL)
    db.commit()


@app.on_event("startup")
def on_startup():
    create_db()
    with SessionLocal() as db:
        seed_settings(db)
        seed_owner(db)


# ========= Health / Root =========
@app.get("/", tags=["meta"])
def root():
    return {"ok": True, "service": "RepairHub Intake & Settlement API", "time": datetime.utcnow().isoformat()}


@app.get("/health", tags=["meta"])
def health():
    return {"status": "healthy"}


app.include_router(auth_routes.router)
app.include_router(quotes.router)
app.include_router(settlements.router)
app.include_router(intake.router)
app.include_router(remote_signatures.router)
app.include_router(realtime.router)
