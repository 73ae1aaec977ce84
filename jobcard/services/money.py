"""Estimate arithmetic: subtotal, discounts, tax and grand total.

All functions are pure and work on line-item mappings whose numeric fields may
be ``Decimal``, ``int``, or decimal strings (the form estimate snapshots are
stored in). Results are full-precision ``Decimal``; rounding to cents happens
where values are persisted.

``grand_total`` is the one formula for estimate totals. Estimate creation and
every estimate update go through it.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Iterable, List, Mapping

from jobcard.utils.helpers import to_decimal

ZERO = Decimal("0")
HUNDRED = Decimal("100")

PERCENTAGE = "percentage"
FIXED = "fixed"


@dataclass(frozen=True)
class Financials:
    subtotal: Decimal
    total_discount: Decimal
    amount_after_discount: Decimal
    tax_amount: Decimal
    grand_total: Decimal

    def to_dict(self) -> dict:
        return asdict(self)


def _sum(items: Iterable[Mapping], field: str) -> Decimal:
    return sum((to_decimal(item.get(field)) for item in items or ()), ZERO)


def subtotal(labour: Iterable[Mapping], materials: Iterable[Mapping], charges: Iterable[Mapping]) -> Decimal:
    return _sum(labour, "total_cost") + _sum(materials, "amount") + _sum(charges, "amount")


def discount_amount(subtotal_value, discount_type: str, value) -> Decimal:
    """Percentage of the subtotal, or the fixed value as-is (no upper clamp)."""
    v = to_decimal(value)
    if discount_type == PERCENTAGE:
        return to_decimal(subtotal_value) * v / HUNDRED
    if discount_type == FIXED:
        return v
    raise ValueError(f"Unknown discount type: {discount_type!r}")


def total_discount(discounts: Iterable[Mapping]) -> Decimal:
    return _sum(discounts, "amount")


def apply_discounts(subtotal_value, discounts: Iterable[Mapping]) -> Decimal:
    after = to_decimal(subtotal_value) - total_discount(discounts)
    return after if after > ZERO else ZERO


def tax(amount_after_discount, tax_percentage) -> Decimal:
    return to_decimal(amount_after_discount) * to_decimal(tax_percentage) / HUNDRED


def recalculate_discounts(subtotal_value, discounts: Iterable[Mapping]) -> List[dict]:
    """Copies of ``discounts`` with ``amount`` derived from type/value; stored amounts are ignored."""
    out = []
    for d in discounts or ():
        row = dict(d)
        row["amount"] = discount_amount(subtotal_value, row.get("type"), row.get("value"))
        out.append(row)
    return out


def grand_total(
    labour: Iterable[Mapping],
    materials: Iterable[Mapping],
    charges: Iterable[Mapping],
    discounts: Iterable[Mapping],
    tax_percentage,
) -> Financials:
    labour, materials, charges, discounts = list(labour or ()), list(materials or ()), list(charges or ()), list(discounts or ())
    sub = subtotal(labour, materials, charges)
    disc = total_discount(discounts)
    after = apply_discounts(sub, discounts)
    tax_amount = tax(after, tax_percentage)
    return Financials(
        subtotal=sub,
        total_discount=disc,
        amount_after_discount=after,
        tax_amount=tax_amount,
        grand_total=after + tax_amount,
    )
