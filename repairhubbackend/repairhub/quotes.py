# repairhub/quotes.py: quote totals (parts / labor / service)
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Literal

from .errors import ValidationError
from .money import Amount, from_cents, to_cents

ItemKind = Literal["part", "labor", "service"]
ITEM_KINDS = ("part", "labor", "service")


@dataclass(frozen=True)
class LineItem:
    id: str
    description: str
    kind: ItemKind
    quantity: int
    unit_price: Decimal
    purchase_cost: Decimal = Decimal("0")  # per unit, parts only

    def __post_init__(self):
        if self.kind not in ITEM_KINDS:
            raise ValidationError(f"unknown line item kind {self.kind!r}")
        if self.quantity < 1:
            raise ValidationError(f"line item {self.id}: quantity must be >= 1")
        if self.unit_price < 0 or self.purchase_cost < 0:
            raise ValidationError(f"line item {self.id}: prices must be >= 0")
        if self.kind == "part" and self.purchase_cost > self.unit_price:
            raise ValidationError(f"line item {self.id}: purchase cost exceeds billed price")

    @classmethod
    def build(cls, id: str, description: str, kind: ItemKind, quantity: int,
              unit_price: Amount, purchase_cost: Amount = 0) -> "LineItem":
        return cls(
            id=id,
            description=description,
            kind=kind,
            quantity=int(quantity),
            unit_price=from_cents(to_cents(unit_price)),
            purchase_cost=from_cents(to_cents(purchase_cost)),
        )

    @property
    def total_cents(self) -> int:
        return to_cents(self.unit_price) * self.quantity

    @property
    def cost_basis_cents(self) -> int:
        if self.kind != "part":
            return 0
        return to_cents(self.purchase_cost) * self.quantity


@dataclass(frozen=True)
class Totals:
    parts_cents: int = 0
    labor_cents: int = 0
    service_cents: int = 0
    parts_purchase_cost_cents: int = 0

    @property
    def grand_cents(self) -> int:
        return self.parts_cents + self.labor_cents + self.service_cents

    @property
    def parts_total(self) -> Decimal:
        return from_cents(self.parts_cents)

    @property
    def labor_total(self) -> Decimal:
        return from_cents(self.labor_cents)

    @property
    def service_total(self) -> Decimal:
        return from_cents(self.service_cents)

    @property
    def grand_total(self) -> Decimal:
        return from_cents(self.grand_cents)

    @property
    def parts_purchase_cost(self) -> Decimal:
        return from_cents(self.parts_purchase_cost_cents)

    def as_dict(self) -> dict:
        return {
            "parts_total": self.parts_total,
            "labor_total": self.labor_total,
            "service_total": self.service_total,
            "grand_total": self.grand_total,
            "parts_purchase_cost": self.parts_purchase_cost,
        }


def totals(items: Iterable[LineItem]) -> Totals:
    sums = {"part": 0, "labor": 0, "service": 0}
    cost = 0
    for it in items:
        sums[it.kind] += it.total_cents
        cost += it.cost_basis_cents
    return Totals(
        parts_cents=sums["part"],
        labor_cents=sums["labor"],
        service_cents=sums["service"],
        parts_purchase_cost_cents=cost,
    )
