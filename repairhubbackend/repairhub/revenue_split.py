# repairhub/revenue_split.py: gross margin + three-way commission split
"""
Splits the gross margin of a job between the operating facility (centro),
the referring collection point (corner) and the platform.

Each commission is rounded on its own from its own rate. Whatever rounding
leaves over (or takes, by at most one cent) is reported as ``unallocated``
instead of being pushed into one of the legs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional

from .errors import ValidationError
from .money import Amount, from_cents, percent_of, to_cents, to_decimal
from .quotes import LineItem, totals

logger = logging.getLogger(__name__)

# commissions may overshoot the margin by rounding, never by more than a cent
ROUNDING_EPSILON_CENTS = 1


@dataclass(frozen=True)
class CommissionRates:
    centro: Decimal
    corner: Decimal
    platform: Decimal

    @classmethod
    def of(cls, centro: Amount, corner: Amount, platform: Amount) -> "CommissionRates":
        return cls(to_decimal(centro), to_decimal(corner), to_decimal(platform))

    def validate(self) -> None:
        for name in ("centro", "corner", "platform"):
            rate = getattr(self, name)
            if rate < 0 or rate > 100:
                raise ValidationError(f"{name} rate {rate} outside [0, 100]")
        if self.centro + self.corner + self.platform > 100:
            raise ValidationError(
                f"rates sum to {self.centro + self.corner + self.platform}, more than 100"
            )


@dataclass(frozen=True)
class RevenueSplit:
    grand_total_cents: int
    parts_purchase_cost_cents: int
    gross_margin_cents: int
    centro_cents: int
    corner_cents: int
    platform_cents: int
    rates: CommissionRates
    warnings: List[str] = field(default_factory=list)

    @property
    def allocated_cents(self) -> int:
        return self.centro_cents + self.corner_cents + self.platform_cents

    @property
    def unallocated_cents(self) -> int:
        # negative only when half-up rounding pushed the legs one cent over
        return self.gross_margin_cents - self.allocated_cents

    @property
    def gross_margin(self) -> Decimal:
        return from_cents(self.gross_margin_cents)

    @property
    def centro_commission(self) -> Decimal:
        return from_cents(self.centro_cents)

    @property
    def corner_commission(self) -> Decimal:
        return from_cents(self.corner_cents)

    @property
    def platform_commission(self) -> Decimal:
        return from_cents(self.platform_cents)

    @property
    def unallocated(self) -> Decimal:
        return from_cents(self.unallocated_cents)

    def as_dict(self) -> dict:
        return {
            "grand_total": from_cents(self.grand_total_cents),
            "parts_purchase_cost": from_cents(self.parts_purchase_cost_cents),
            "gross_margin": self.gross_margin,
            "centro_rate": self.rates.centro,
            "corner_rate": self.rates.corner,
            "platform_rate": self.rates.platform,
            "centro_commission": self.centro_commission,
            "corner_commission": self.corner_commission,
            "platform_commission": self.platform_commission,
            "unallocated": self.unallocated,
            "warnings": list(self.warnings),
        }


def split(grand_total: Amount, parts_purchase_cost: Amount, rates: CommissionRates,
          billed_parts_total: Optional[Amount] = None) -> RevenueSplit:
    rates.validate()
    grand = to_cents(grand_total)
    cost = to_cents(parts_purchase_cost)
    if grand < 0 or cost < 0:
        raise ValidationError("amounts must be >= 0")
    if billed_parts_total is not None and cost > to_cents(billed_parts_total):
        raise ValidationError(
            f"parts purchase cost {from_cents(cost)} exceeds billed parts {from_cents(to_cents(billed_parts_total))}"
        )

    warnings: List[str] = []
    margin = grand - cost
    if margin < 0:
        msg = f"purchase cost {from_cents(cost)} exceeds total {from_cents(grand)}; gross margin clamped to 0"
        logger.warning(msg)
        warnings.append(msg)
        margin = 0

    result = RevenueSplit(
        grand_total_cents=grand,
        parts_purchase_cost_cents=cost,
        gross_margin_cents=margin,
        centro_cents=percent_of(margin, rates.centro),
        corner_cents=percent_of(margin, rates.corner),
        platform_cents=percent_of(margin, rates.platform),
        rates=rates,
        warnings=warnings,
    )
    if result.allocated_cents > margin + ROUNDING_EPSILON_CENTS:
        raise ValidationError(
            f"commissions {from_cents(result.allocated_cents)} exceed gross margin {result.gross_margin}"
        )
    return result


def split_quote(items: Iterable[LineItem], rates: CommissionRates) -> RevenueSplit:
    t = totals(items)
    return split(t.grand_total, t.parts_purchase_cost, rates, billed_parts_total=t.parts_total)
