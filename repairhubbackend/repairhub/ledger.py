# repairhub/ledger.py: settlement ledger (one row per completed job)
"""
Append-only settlement rows. Numbers are frozen at creation; the only
amendments are the platform and corner paid/paid-at pairs, and those only
ever go from unpaid to paid.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Literal, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .errors import DuplicateSettlementError, NotFoundError, ValidationError
from .money import from_cents
from .revenue_split import RevenueSplit

logger = logging.getLogger(__name__)

CollectionMethod = Literal["direct", "via_corner"]
Counterparty = Literal["platform", "corner"]
EntryState = Literal["unpaid", "platform_only_paid", "corner_only_paid", "fully_paid"]

COLLECTION_METHODS = ("direct", "via_corner")
COUNTERPARTIES = ("platform", "corner")


def has_corner_leg(entry: models.SettlementLedgerEntry) -> bool:
    return entry.referrer_id is not None


def corner_settled(entry: models.SettlementLedgerEntry) -> bool:
    # via_corner: the referrer kept its cut before remitting
    if not has_corner_leg(entry) or entry.payment_collection_method == "via_corner":
        return True
    return bool(entry.corner_paid)


def entry_state(entry: models.SettlementLedgerEntry) -> EntryState:
    platform = bool(entry.platform_paid)
    corner = corner_settled(entry)
    if platform and corner:
        return "fully_paid"
    if platform:
        return "platform_only_paid"
    if corner:
        return "corner_only_paid"
    return "unpaid"


def record_settlement(db: Session, job_id: str, facility_id: str, split: RevenueSplit,
                      payment_collection_method: CollectionMethod = "direct",
                      referrer_id: Optional[str] = None,
                      notes: Optional[str] = None) -> models.SettlementLedgerEntry:
    if payment_collection_method not in COLLECTION_METHODS:
        raise ValidationError(f"unknown payment collection method {payment_collection_method!r}")
    if payment_collection_method == "via_corner" and not referrer_id:
        raise ValidationError("via_corner collection needs a referrer")
    if split.corner_cents != 0 and not referrer_id:
        # nobody to owe it to; the rates should have had corner = 0
        raise ValidationError("corner commission without a referrer")

    existing = db.scalar(select(models.SettlementLedgerEntry).where(models.SettlementLedgerEntry.job_id == job_id))
    if existing is not None:
        logger.warning("duplicate settlement for job %s rejected (entry %s)", job_id, existing.id)
        raise DuplicateSettlementError(job_id)

    entry = models.SettlementLedgerEntry(
        job_id=job_id,
        facility_id=facility_id,
        referrer_id=referrer_id,
        payment_collection_method=payment_collection_method,
        gross_revenue_cents=split.grand_total_cents,
        parts_cost_cents=split.parts_purchase_cost_cents,
        gross_margin_cents=split.gross_margin_cents,
        centro_rate=split.rates.centro,
        corner_rate=split.rates.corner,
        platform_rate=split.rates.platform,
        centro_commission_cents=split.centro_cents,
        corner_commission_cents=split.corner_cents,
        platform_commission_cents=split.platform_cents,
        unallocated_cents=split.unallocated_cents,
        notes=notes,
        platform_paid=False,
        corner_paid=False,
        created_at=datetime.utcnow(),
    )
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent writer for the same job
        db.rollback()
        logger.warning("duplicate settlement for job %s rejected by unique constraint", job_id)
        raise DuplicateSettlementError(job_id)
    db.refresh(entry)
    logger.info(
        "settlement %s recorded for job %s: margin=%s centro=%s corner=%s platform=%s unallocated=%s",
        entry.id, job_id, split.gross_margin, split.centro_commission,
        split.corner_commission, split.platform_commission, split.unallocated,
    )
    return entry


def get_entry(db: Session, entry_id: str) -> models.SettlementLedgerEntry:
    entry = db.get(models.SettlementLedgerEntry, entry_id)
    if entry is None:
        raise NotFoundError(f"settlement entry {entry_id} not found")
    return entry


def mark_counterparty_paid(db: Session, entry_id: str, counterparty: Counterparty,
                           now: Optional[datetime] = None) -> models.SettlementLedgerEntry:
    if counterparty not in COUNTERPARTIES:
        raise ValidationError(f"unknown counterparty {counterparty!r}")
    entry = get_entry(db, entry_id)

    if counterparty == "corner" and entry.payment_collection_method == "via_corner":
        raise ValidationError("corner commission is settled at collection for via_corner entries")
    if counterparty == "corner" and not has_corner_leg(entry):
        raise ValidationError("entry has no referrer, there is no corner leg to pay")

    paid_attr = f"{counterparty}_paid"
    if getattr(entry, paid_attr):
        return entry

    setattr(entry, paid_attr, True)
    setattr(entry, f"{counterparty}_paid_at", now or datetime.utcnow())
    db.commit()
    db.refresh(entry)
    logger.info("settlement %s: %s leg marked paid", entry.id, counterparty)
    return entry


@dataclass
class OutstandingSummary:
    platform_due_cents: int = 0
    corner_due_cents: int = 0
    entries: List[models.SettlementLedgerEntry] = field(default_factory=list)

    @property
    def total_due_cents(self) -> int:
        return self.platform_due_cents + self.corner_due_cents

    @property
    def platform_due(self) -> Decimal:
        return from_cents(self.platform_due_cents)

    @property
    def corner_due(self) -> Decimal:
        return from_cents(self.corner_due_cents)

    @property
    def total_due(self) -> Decimal:
        return from_cents(self.total_due_cents)


def outstanding(db: Session, facility_id: str, date_from: Optional[date] = None,
                date_to: Optional[date] = None) -> OutstandingSummary:
    """Unpaid legs for a facility; both dates are inclusive calendar days."""
    E = models.SettlementLedgerEntry
    stmt = select(E).where(E.facility_id == facility_id).order_by(E.created_at)
    if date_from is not None:
        stmt = stmt.where(E.created_at >= datetime.combine(date_from, time.min))
    if date_to is not None:
        stmt = stmt.where(E.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    summary = OutstandingSummary()
    for entry in db.scalars(stmt).all():
        due = False
        if not entry.platform_paid:
            summary.platform_due_cents += entry.platform_commission_cents
            due = True
        if not corner_settled(entry):
            summary.corner_due_cents += entry.corner_commission_cents
            due = True
        if due:
            summary.entries.append(entry)
    return summary
