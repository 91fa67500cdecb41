# repairhub/rates.py: commission rate lookup (platform settings + facility + referrer)
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from . import models
from .revenue_split import CommissionRates

PLATFORM_RATE_KEY = "platform_commission_rate"
DEFAULT_CORNER_RATE_KEY = "default_corner_commission_rate"
DEFAULT_CENTRO_RATE_KEY = "default_centro_commission_rate"

DEFAULT_SETTINGS = {
    PLATFORM_RATE_KEY: "20",
    DEFAULT_CORNER_RATE_KEY: "10",
    DEFAULT_CENTRO_RATE_KEY: "70",
}


def get_setting(db: Session, key: str) -> Decimal:
    row = db.get(models.PlatformSetting, key)
    return Decimal(row.value if row else DEFAULT_SETTINGS[key])


def seed_settings(db: Session) -> None:
    for key, value in DEFAULT_SETTINGS.items():
        if not db.get(models.PlatformSetting, key):
            db.add(models.PlatformSetting(key=key, value=value))
    db.commit()


def resolve_rates(db: Session, facility_id: str, referrer_id: Optional[str] = None) -> CommissionRates:
    """
    Rates in force right now for a facility/referrer pair. The ledger copies
    them into the entry, so later changes here never touch recorded jobs.
    Without a referrer the corner leg is not eligible (rate 0).
    """
    facility = db.get(models.Facility, facility_id)
    if facility is not None and facility.commission_rate is not None:
        centro = Decimal(facility.commission_rate)
    else:
        centro = get_setting(db, DEFAULT_CENTRO_RATE_KEY)

    corner = Decimal(0)
    if referrer_id:
        referrer = db.get(models.Referrer, referrer_id)
        if referrer is not None and referrer.commission_rate is not None:
            corner = Decimal(referrer.commission_rate)
        else:
            corner = get_setting(db, DEFAULT_CORNER_RATE_KEY)

    return CommissionRates(centro=centro, corner=corner, platform=get_setting(db, PLATFORM_RATE_KEY))
