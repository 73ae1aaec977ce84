from __future__ import annotations

from dataclasses import dataclass
from typing import List

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from jobcard.models.employee import Employee
from jobcard.models.work_order import JOB_PENDING, WorkOrder
from jobcard.services.errors import NotFound, ValidationError
from jobcard.services.totals import employee_errors, new_labour_entry, new_material_entry, recompute_totals
from jobcard.utils.validators import validate_employee_payload, validate_work_order_payload


@dataclass(frozen=True)
class Page:
    items: List
    total: int
    limit: int
    offset: int


def get_work_order(session: Session, work_order_id: int) -> WorkOrder:
    wo = session.get(WorkOrder, work_order_id)
    if wo is None or wo.is_deleted:
        raise NotFound(f"Work order {work_order_id} not found")
    return wo


def _like_pattern(q: str) -> str:
    """Case-folded substring pattern with LIKE wildcards escaped."""
    text = q.strip().lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{text}%"


def list_work_orders(session: Session, *, status=None, q=None, limit: int = 50, offset: int = 0) -> Page:
    query = session.query(WorkOrder).filter(WorkOrder.is_deleted.is_(False))
    if status:
        query = query.filter(WorkOrder.status == status)
    if q:
        like = _like_pattern(q)
        query = query.filter(
            func.lower(WorkOrder.order_number).like(like, escape="\\")
            | func.lower(WorkOrder.client_name).like(like, escape="\\")
        )
    total = query.count()
    items = (
        query.order_by(WorkOrder.created_at.desc(), WorkOrder.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return Page(items=items, total=total, limit=limit, offset=offset)


def create_work_order(session: Session, payload, *, user_id=None) -> WorkOrder:
    cleaned, errors = validate_work_order_payload(payload)
    if not errors:
        errors.update(employee_errors(session, cleaned["labour_entry"], "labour_entry"))
    if errors:
        raise ValidationError(errors)

    labour = cleaned.pop("labour_entry")
    materials = cleaned.pop("material_entry")
    wo = WorkOrder(**cleaned, status=JOB_PENDING, created_by=user_id)
    wo.labour_entries = [new_labour_entry(e) for e in labour]
    wo.material_entries = [new_material_entry(e) for e in materials]
    recompute_totals(wo)

    session.add(wo)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ValidationError({"order_number": "Work order with this order number already exists."}) from e
    current_app.logger.info("work order created id=%s number=%s", wo.id, wo.order_number)
    return wo


# ---------------------------------------------------------------------------
# Employees
# ---------------------------------------------------------------------------

def get_employee(session: Session, employee_id: int) -> Employee:
    emp = session.get(Employee, employee_id)
    if emp is None or emp.is_deleted:
        raise NotFound(f"Employee {employee_id} not found")
    return emp


def list_employees(session: Session, *, active_only: bool = True, q=None) -> List[Employee]:
    query = session.query(Employee).filter(Employee.is_deleted.is_(False))
    if active_only:
        query = query.filter(Employee.is_active.is_(True))
    if q:
        like = _like_pattern(q)
        query = query.filter(
            func.lower(Employee.employee_code).like(like, escape="\\")
            | func.lower(Employee.first_name).like(like, escape="\\")
            | func.lower(Employee.last_name).like(like, escape="\\")
            | func.lower(Employee.email).like(like, escape="\\")
        )
    return query.order_by(func.lower(Employee.last_name), func.lower(Employee.first_name)).all()


def _commit_employee(session: Session, emp: Employee) -> Employee:
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ValidationError({"employee_code": "Employee code already in use."}) from e
    return emp


def create_employee(session: Session, payload) -> Employee:
    cleaned, errors = validate_employee_payload(payload)
    if errors:
        raise ValidationError(errors)
    emp = Employee(**cleaned)
    session.add(emp)
    _commit_employee(session, emp)
    current_app.logger.info("employee created id=%s code=%s", emp.id, emp.employee_code)
    return emp


def update_employee(session: Session, employee_id: int, payload) -> Employee:
    """Apply the fields present in ``payload``; labour entries keep their own cost snapshot."""
    emp = get_employee(session, employee_id)
    cleaned, errors = validate_employee_payload(payload, partial=True)
    if errors:
        raise ValidationError(errors)
    for field, value in cleaned.items():
        setattr(emp, field, value)
    _commit_employee(session, emp)
    current_app.logger.info("employee updated id=%s fields=%s", emp.id, ",".join(sorted(cleaned)))
    return emp
