"""Final statement: estimated vs actual costs for a work order.

Estimate lines and actual entries share no key, so they are matched on their
description (trimmed, case-insensitive). Two estimate lines with the same
description collapse into one row, and the last one wins; likewise for actual
entries. Rows keep insertion order: estimate lines first, then actual entries
that matched nothing.

The statement is a projection and is never stored.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from jobcard.services.estimates import find_active_estimate
from jobcard.services.work_orders import get_work_order
from jobcard.utils.helpers import round_currency, to_decimal

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _key(line: Mapping) -> str:
    return str(line.get("description") or "").strip().lower()


def _sum(items: Iterable[Mapping], field: str) -> Decimal:
    return sum((to_decimal(i.get(field)) for i in items or ()), ZERO)


def match_lines(
    estimated: Iterable[Mapping],
    actual: Iterable[Mapping],
    *,
    qty_field: str,
    cost_field: str,
    qty_label: str,
    cost_label: str,
) -> List[dict]:
    est_qty, act_qty = f"estimated_{qty_label}", f"actual_{qty_label}"
    est_cost, act_cost = f"estimated_{cost_label}", f"actual_{cost_label}"

    rows: Dict[str, dict] = {}
    for line in estimated or ():
        cost = round_currency(line.get(cost_field))
        rows[_key(line)] = {
            "description": line.get("description"),
            est_qty: round_currency(line.get(qty_field)),
            act_qty: round_currency(ZERO),
            est_cost: cost,
            act_cost: round_currency(ZERO),
            "variance": -cost,
        }

    for line in actual or ():
        key = _key(line)
        qty = round_currency(line.get(qty_field))
        cost = round_currency(line.get(cost_field))
        row = rows.get(key)
        if row is None:
            rows[key] = {
                "description": line.get("description"),
                est_qty: round_currency(ZERO),
                act_qty: qty,
                est_cost: round_currency(ZERO),
                act_cost: cost,
                "variance": cost,
            }
        else:
            row[act_qty] = qty
            row[act_cost] = cost
            row["variance"] = cost - row[est_cost]

    return list(rows.values())


def compare_labour(estimated, actual) -> List[dict]:
    return match_lines(
        estimated, actual,
        qty_field="hours", cost_field="total_cost",
        qty_label="hours", cost_label="cost",
    )


def compare_materials(estimated, actual) -> List[dict]:
    return match_lines(
        estimated, actual,
        qty_field="quantity", cost_field="amount",
        qty_label="quantity", cost_label="amount",
    )


def variance_percentage(variance_total, estimated_grand_total) -> Decimal:
    base = to_decimal(estimated_grand_total)
    if base == ZERO:
        return round_currency(ZERO)
    pct = to_decimal(variance_total) / base * HUNDRED
    return pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def build_final_statement(work_order: Mapping, estimate: Optional[Mapping]) -> dict:
    """
    Compare a work order record (``WorkOrder.to_dict()`` shape) with its
    estimate record (``Estimate.to_dict()`` shape, or None).
    """
    actual_labour = list(work_order.get("labour_entry") or [])
    actual_materials = list(work_order.get("material_entry") or [])

    actual_labour_cost = _sum(actual_labour, "total_cost")
    actual_material_cost = _sum(actual_materials, "amount")
    actual_total = actual_labour_cost + actual_material_cost

    zero = round_currency(ZERO)
    statement = {
        "work_order": work_order,
        "estimate": estimate,
        "has_estimate": estimate is not None,
        "labour_comparison": [],
        "material_comparison": [],
        "financial_summary": {
            "estimated": {
                "labour_cost": zero,
                "material_cost": zero,
                "additional_charges": zero,
                "subtotal": zero,
                "discount": zero,
                "tax": zero,
                "grand_total": zero,
            },
            "actual": {
                "labour_cost": round_currency(actual_labour_cost),
                "material_cost": round_currency(actual_material_cost),
                "grand_total": round_currency(actual_total),
            },
            "variance": {
                "labour_cost": zero,
                "material_cost": zero,
                "total": zero,
                "percentage": zero,
            },
        },
    }
    if estimate is None:
        return statement

    est_labour = list(estimate.get("estimated_labour") or [])
    est_materials = list(estimate.get("estimated_materials") or [])
    est_labour_cost = _sum(est_labour, "total_cost")
    est_material_cost = _sum(est_materials, "amount")
    # Stored totals are the baseline; they are not recomputed here.
    est_grand_total = to_decimal(estimate.get("grand_total"))

    summary = statement["financial_summary"]
    summary["estimated"] = {
        "labour_cost": round_currency(est_labour_cost),
        "material_cost": round_currency(est_material_cost),
        "additional_charges": round_currency(_sum(estimate.get("additional_charges"), "amount")),
        "subtotal": round_currency(estimate.get("subtotal")),
        "discount": round_currency(_sum(estimate.get("discounts"), "amount")),
        "tax": round_currency(estimate.get("tax_amount")),
        "grand_total": round_currency(est_grand_total),
    }
    total_variance = actual_total - est_grand_total
    summary["variance"] = {
        "labour_cost": round_currency(actual_labour_cost - est_labour_cost),
        "material_cost": round_currency(actual_material_cost - est_material_cost),
        "total": round_currency(total_variance),
        "percentage": variance_percentage(total_variance, est_grand_total),
    }

    statement["labour_comparison"] = compare_labour(est_labour, actual_labour)
    statement["material_comparison"] = compare_materials(est_materials, actual_materials)
    return statement


def final_statement_for(session: Session, work_order_id: int) -> dict:
    wo = get_work_order(session, work_order_id)
    est = find_active_estimate(session, wo.id)
    return build_final_statement(wo.to_dict(), est.to_dict() if est else None)
