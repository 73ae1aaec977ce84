from __future__ import annotations

from datetime import date
from typing import Optional

from flask import current_app
from sqlalchemy.orm import Session

from jobcard.models.work_order import (
    JOB_APPROVED,
    JOB_CHECKED,
    JOB_COMPLETED,
    JOB_DELIVERED,
    JOB_PENDING,
    WorkOrder,
)
from jobcard.services.errors import InvalidTransition
from jobcard.services.work_orders import get_work_order
from jobcard.utils.helpers import today_utc, utcnow

# One step forward at a time; delivered is terminal.
NEXT_STATUS = {
    JOB_PENDING: JOB_CHECKED,
    JOB_CHECKED: JOB_APPROVED,
    JOB_APPROVED: JOB_COMPLETED,
    JOB_COMPLETED: JOB_DELIVERED,
}


def _advance(session: Session, work_order_id: int, target: str) -> WorkOrder:
    wo = get_work_order(session, work_order_id)
    current = wo.status or JOB_PENDING
    if NEXT_STATUS.get(current) != target:
        required = next((s for s, nxt in NEXT_STATUS.items() if nxt == target), None)
        nxt = NEXT_STATUS.get(current)
        raise InvalidTransition(
            current,
            target,
            [nxt] if nxt else [],
            message=f"Cannot move work order from {current} to {target}; only {required} orders can be {target}.",
        )
    wo.status = target
    return wo


def check_work_order(session: Session, work_order_id: int, *, user_id=None) -> WorkOrder:
    wo = _advance(session, work_order_id, JOB_CHECKED)
    wo.checked_by = user_id
    wo.checked_at = utcnow()
    session.commit()
    current_app.logger.info("work order checked id=%s by=%s", wo.id, user_id)
    return wo


def approve_work_order(session: Session, work_order_id: int, *, user_id=None) -> WorkOrder:
    wo = _advance(session, work_order_id, JOB_APPROVED)
    wo.approved_by = user_id
    wo.approved_at = utcnow()
    session.commit()
    current_app.logger.info("work order approved id=%s by=%s", wo.id, user_id)
    return wo


def complete_work_order(session: Session, work_order_id: int, *, user_id=None) -> WorkOrder:
    wo = _advance(session, work_order_id, JOB_COMPLETED)
    wo.completed_by = user_id
    wo.completed_at = utcnow()
    session.commit()
    current_app.logger.info("work order completed id=%s by=%s", wo.id, user_id)
    return wo


def deliver_work_order(
    session: Session,
    work_order_id: int,
    *,
    user_id=None,
    remarks: Optional[str] = None,
    today: Optional[date] = None,
) -> WorkOrder:
    wo = _advance(session, work_order_id, JOB_DELIVERED)
    today = today or today_utc()
    wo.delivered_by = user_id
    wo.delivered_at = utcnow()
    wo.date_delivered = today
    wo.delivered_on_time = (today <= wo.date_promised) if wo.date_promised else None
    if remarks:
        wo.remarks = remarks
    session.commit()
    current_app.logger.info("work order delivered id=%s on_time=%s", wo.id, wo.delivered_on_time)
    return wo
