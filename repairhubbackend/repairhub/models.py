import uuid
from sqlalchemy import Column, String, DateTime, Integer, Numeric, ForeignKey, UniqueConstraint, Boolean, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base
from datetime import datetime

def uuid_col(primary=False):
    return Column(String, primary_key=primary, default=lambda: str(uuid.uuid4()))

class Facility(Base):
    __tablename__ = "facilities"
    id = uuid_col(True)
    name = Column(String, nullable=False)
    commission_rate = Column(Numeric(5, 2), nullable=True)  # None -> platform default
    created_at = Column(DateTime, server_default=func.now())

class Referrer(Base):
    __tablename__ = "referrers"
    id = uuid_col(True)
    name = Column(String, nullable=False)
    commission_rate = Column(Numeric(5, 2), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

class PlatformSetting(Base):
    __tablename__ = "platform_settings"
    key = Column(String(100), primary_key=True)
    value = Column(String(255), nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class SettlementLedgerEntry(Base):
    __tablename__ = "settlement_ledger"
    id = uuid_col(True)
    job_id = Column(String, nullable=False, unique=True, index=True)
    facility_id = Column(String, nullable=False, index=True)
    referrer_id = Column(String, nullable=True, index=True)
    payment_collection_method = Column(String(16), nullable=False, default="direct")  # direct | via_corner

    # frozen at settlement time, never updated
    gross_revenue_cents = Column(Integer, nullable=False)
    parts_cost_cents = Column(Integer, nullable=False)
    gross_margin_cents = Column(Integer, nullable=False)
    centro_rate = Column(Numeric(5, 2), nullable=False)
    corner_rate = Column(Numeric(5, 2), nullable=False)
    platform_rate = Column(Numeric(5, 2), nullable=False)
    centro_commission_cents = Column(Integer, nullable=False)
    corner_commission_cents = Column(Integer, nullable=False)
    platform_commission_cents = Column(Integer, nullable=False)
    unallocated_cents = Column(Integer, nullable=False, default=0)
    notes = Column(Text)

    # the only mutable pairs
    platform_paid = Column(Boolean, nullable=False, default=False)
    platform_paid_at = Column(DateTime)
    corner_paid = Column(Boolean, nullable=False, default=False)
    corner_paid_at = Column(DateTime)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

class Operator(Base):
    __tablename__ = "operators"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    facility_id = Column(String, ForeignKey("facilities.id"), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    roles = relationship("OperatorRole", back_populates="operator", cascade="all, delete-orphan")

class Role(Base):
    __tablename__ = "roles"
    id = Column(Integer, primary_key=True)
    name = Column(String(50), unique=True, nullable=False)  # PLATFORM_ADMIN, FACILITY_STAFF

class OperatorRole(Base):
    __tablename__ = "operator_roles"
    id = Column(Integer, primary_key=True)
    operator_id = Column(Integer, ForeignKey("operators.id", ondelete="CASCADE"))
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"))
    operator = relationship("Operator", back_populates="roles")
    role = relationship("Role")
    __table_args__ = (UniqueConstraint('operator_id', 'role_id', name='uq_operator_role'),)
