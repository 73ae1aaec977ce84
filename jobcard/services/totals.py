from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List, Mapping

from flask import current_app
from sqlalchemy.orm import Session

from jobcard.models.employee import Employee
from jobcard.models.work_order import LabourEntry, MaterialEntry, WorkOrder
from jobcard.services.errors import ValidationError
from jobcard.utils.helpers import round_currency, round_hours, to_decimal
from jobcard.utils.validators import Errors, validate_labour_entry, validate_material_entry

ZERO = Decimal("0")


def compute_totals(labour: Iterable[Mapping], materials: Iterable[Mapping]) -> dict:
    """Running actuals for a work order, summed from scratch."""
    labour, materials = list(labour or ()), list(materials or ())
    hours = sum((to_decimal(e.get("hours")) for e in labour), ZERO)
    labour_cost = sum((to_decimal(e.get("total_cost")) for e in labour), ZERO)
    material_cost = sum((to_decimal(e.get("amount")) for e in materials), ZERO)
    return {
        "total_labour_hours": round_hours(hours),
        "total_labour_cost": round_currency(labour_cost),
        "total_material_cost": round_currency(material_cost),
        "grand_total": round_currency(labour_cost + material_cost),
    }


def recompute_totals(work_order: WorkOrder) -> dict:
    totals = compute_totals(
        [e.to_dict() for e in work_order.labour_entries],
        [e.to_dict() for e in work_order.material_entries],
    )
    for field, value in totals.items():
        setattr(work_order, field, value)
    return totals


def employee_errors(session: Session, entries: List[dict], key: str) -> Errors:
    """Field errors for labour entries pointing at unknown or deleted employees."""
    ids = {e.get("employee_id") for e in entries if e.get("employee_id") is not None}
    if not ids:
        return {}
    known = {
        row[0]
        for row in session.query(Employee.id)
        .filter(Employee.id.in_(ids))
        .filter(Employee.is_deleted.is_(False))
        .all()
    }
    errors: Errors = {}
    for i, e in enumerate(entries):
        emp_id = e.get("employee_id")
        if emp_id is not None and emp_id not in known:
            field = f"{key}.{i}.employee_id" if key else "employee_id"
            errors[field] = f"Employee {emp_id} not found."
    return errors


def new_labour_entry(cleaned: dict) -> LabourEntry:
    return LabourEntry(
        entry_date=cleaned["date"],
        description=cleaned["description"],
        hours=cleaned["hours"],
        employee_id=cleaned["employee_id"],
        cost_per_hour=cleaned["cost_per_hour"],
        total_cost=cleaned["total_cost"],
    )


def new_material_entry(cleaned: dict) -> MaterialEntry:
    return MaterialEntry(
        description=cleaned["description"],
        quantity=cleaned["quantity"],
        unit=cleaned["unit"],
        unit_price=cleaned["unit_price"],
        amount=cleaned["amount"],
        supplier=cleaned.get("supplier"),
    )


def append_labour(session: Session, work_order: WorkOrder, payload) -> WorkOrder:
    cleaned, errors = validate_labour_entry(payload)
    if not errors:
        errors.update(employee_errors(session, [cleaned], ""))
    if errors:
        raise ValidationError(errors)

    work_order.labour_entries.append(new_labour_entry(cleaned))
    totals = recompute_totals(work_order)
    session.commit()
    current_app.logger.info(
        "labour entry added work_order=%s hours=%s grand_total=%s",
        work_order.id, cleaned["hours"], totals["grand_total"],
    )
    return work_order


def append_material(session: Session, work_order: WorkOrder, payload) -> WorkOrder:
    cleaned, errors = validate_material_entry(payload)
    if errors:
        raise ValidationError(errors)

    work_order.material_entries.append(new_material_entry(cleaned))
    totals = recompute_totals(work_order)
    session.commit()
    current_app.logger.info(
        "material entry added work_order=%s amount=%s grand_total=%s",
        work_order.id, cleaned["amount"], totals["grand_total"],
    )
    return work_order
