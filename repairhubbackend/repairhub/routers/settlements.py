from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from starlette.responses import Response

from .. import ledger, models, schemas
from ..auth import ROLE_PLATFORM_ADMIN
from ..deps import get_db, require_roles
from ..errors import DuplicateSettlementError, NotFoundError, ValidationError
from ..money import from_cents
from ..pdf_renderer import render_outstanding_statement_pdf
from ..rates import resolve_rates
from ..revenue_split import split_quote
from .quotes import to_line_items

router = APIRouter(prefix="/settlements", tags=["settlements"])

def entry_to_read(e: models.SettlementLedgerEntry) -> schemas.SettlementRead:
    return schemas.SettlementRead(
        id=e.id,
        job_id=e.job_id,
        facility_id=e.facility_id,
        referrer_id=e.referrer_id,
        payment_collection_method=e.payment_collection_method,
        gross_revenue=from_cents(e.gross_revenue_cents),
        parts_cost=from_cents(e.parts_cost_cents),
        gross_margin=from_cents(e.gross_margin_cents),
        centro_rate=e.centro_rate,
        corner_rate=e.corner_rate,
        platform_rate=e.platform_rate,
        centro_commission=from_cents(e.centro_commission_cents),
        corner_commission=from_cents(e.corner_commission_cents),
        platform_commission=from_cents(e.platform_commission_cents),
        unallocated=from_cents(e.unallocated_cents),
        platform_paid=e.platform_paid,
        platform_paid_at=e.platform_paid_at,
        corner_paid=e.corner_paid,
        corner_paid_at=e.corner_paid_at,
        state=ledger.entry_state(e),
        created_at=e.created_at,
    )

@router.post("", response_model=schemas.SettlementRead, status_code=201)
def create_settlement(payload: schemas.SettlementCreate, db: Session = Depends(get_db)):
    items = to_line_items(payload.items)
    # rates are read now and frozen into the row
    rates = resolve_rates(db, payload.facility_id, payload.referrer_id)
    try:
        result = split_quote(items, rates)
        entry = ledger.record_settlement(
            db,
            job_id=payload.job_id,
            facility_id=payload.facility_id,
            split=result,
            payment_collection_method=payload.payment_collection_method,
            referrer_id=payload.referrer_id,
            notes=payload.notes,
        )
    except DuplicateSettlementError as e:
        raise HTTPException(409, str(e))
    except ValidationError as e:
        raise HTTPException(422, str(e))
    return entry_to_read(entry)

@router.get("/outstanding", response_model=schemas.OutstandingRead)
def get_outstanding(
    facility_id: str,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    s = ledger.outstanding(db, facility_id, date_from, date_to)
    return schemas.OutstandingRead(
        facility_id=facility_id,
        date_from=date_from,
        date_to=date_to,
        platform_due=s.platform_due,
        corner_due=s.corner_due,
        total_due=s.total_due,
        entries=[entry_to_read(e) for e in s.entries],
    )

@router.get("/statement.pdf")
def outstanding_statement(
    facility_id: str,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    s = ledger.outstanding(db, facility_id, date_from, date_to)
    facility = db.get(models.Facility, facility_id)
    pdf = render_outstanding_statement_pdf(facility.name if facility else facility_id, s, date_from, date_to)
    headers = {"Content-Disposition": f'attachment; filename="statement_{facility_id}.pdf"'}
    return Response(content=pdf, media_type="application/pdf", headers=headers)

@router.get("/{entry_id}", response_model=schemas.SettlementRead)
def get_settlement(entry_id: str, db: Session = Depends(get_db)):
    try:
        return entry_to_read(ledger.get_entry(db, entry_id))
    except NotFoundError as e:
        raise HTTPException(404, str(e))

@router.post(
    "/{entry_id}/paid/{counterparty}",
    response_model=schemas.SettlementRead,
    dependencies=[Depends(require_roles([ROLE_PLATFORM_ADMIN]))],
)
def mark_paid(entry_id: str, counterparty: str, db: Session = Depends(get_db)):
    try:
        entry = ledger.mark_counterparty_paid(db, entry_id, counterparty)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except ValidationError as e:
        raise HTTPException(422, str(e))
    return entry_to_read(entry)
