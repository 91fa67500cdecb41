from fastapi import APIRouter, HTTPException
from typing import List

from .. import schemas
from ..errors import ValidationError
from ..quotes import LineItem, totals
from ..revenue_split import CommissionRates, split_quote

router = APIRouter(prefix="/quotes", tags=["quotes"])

def to_line_items(items: List[schemas.LineItemIn]) -> List[LineItem]:
    try:
        return [
            LineItem.build(
                id=it.id or str(n),
                description=it.description,
                kind=it.kind,
                quantity=it.quantity,
                unit_price=it.unit_price,
                purchase_cost=it.purchase_cost if it.kind == "part" else 0,
            )
            for n, it in enumerate(items, start=1)
        ]
    except ValidationError as e:
        raise HTTPException(422, str(e))

@router.post("/totals", response_model=schemas.TotalsOut)
def quote_totals(items: List[schemas.LineItemIn]):
    return totals(to_line_items(items)).as_dict()

@router.post("/split", response_model=schemas.SplitOut)
def quote_split(payload: schemas.SplitRequest):
    rates = CommissionRates.of(payload.rates.centro, payload.rates.corner, payload.rates.platform)
    try:
        result = split_quote(to_line_items(payload.items), rates)
    except ValidationError as e:
        raise HTTPException(422, str(e))
    return result.as_dict()
