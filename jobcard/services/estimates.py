"""Estimate lifecycle: create, update, approve, status transitions.

This module owns every write to an estimate and to the work order's
denormalized ``has_estimate`` / ``estimate_amount``. Each operation is one unit
of work: it commits on success and leaves the session rolled back on failure.

Status transitions::

    draft    -> sent, rejected
    sent     -> approved, rejected, expired
    rejected -> draft
    expired  -> draft
    approved -> (none; approved estimates are immutable)
"""
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jobcard.models.estimate import (
    ESTIMATE_STATUSES,
    STATUS_APPROVED,
    STATUS_DRAFT,
    STATUS_EXPIRED,
    STATUS_REJECTED,
    STATUS_SENT,
    Estimate,
)
from jobcard.models.work_order import WorkOrder
from jobcard.services import money, numbering
from jobcard.services.errors import (
    AlreadyApproved,
    ConcurrencyConflict,
    DuplicateEstimate,
    EstimateLocked,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from jobcard.services.work_orders import get_work_order
from jobcard.utils.helpers import round_currency, today_utc, utcnow
from jobcard.utils.validators import clean_str, validate_estimate_payload

TRANSITIONS = {
    STATUS_DRAFT: (STATUS_SENT, STATUS_REJECTED),
    STATUS_SENT: (STATUS_APPROVED, STATUS_REJECTED, STATUS_EXPIRED),
    STATUS_REJECTED: (STATUS_DRAFT,),
    STATUS_EXPIRED: (STATUS_DRAFT,),
    STATUS_APPROVED: (),
}

# approve() is a shortcut that may skip "sent"
APPROVABLE_FROM = (STATUS_DRAFT, STATUS_SENT)


def allowed_transitions(status: str) -> Tuple[str, ...]:
    return TRANSITIONS.get(status, ())


def check_transition(current: str, requested: str) -> bool:
    """
    Validate ``current -> requested``. Returns False for a same-status no-op,
    True when the move is allowed, raises otherwise.
    """
    if requested not in ESTIMATE_STATUSES:
        raise ValidationError({"status": f"Must be one of: {', '.join(ESTIMATE_STATUSES)}."})
    if requested == current:
        return False
    if current == STATUS_APPROVED:
        raise EstimateLocked("Cannot change status of approved estimate", current=current, allowed=[])
    allowed = allowed_transitions(current)
    if requested not in allowed:
        raise InvalidTransition(current, requested, allowed)
    return True


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def find_active_estimate(session: Session, work_order_id: int) -> Optional[Estimate]:
    return (
        session.query(Estimate)
        .filter(Estimate.work_order_id == work_order_id)
        .filter(Estimate.is_deleted.is_(False))
        .one_or_none()
    )


def get_estimate(session: Session, work_order_id: int) -> Estimate:
    est = find_active_estimate(session, work_order_id)
    if est is None:
        raise NotFound(f"Estimate not found for work order {work_order_id}")
    return est


# ---------------------------------------------------------------------------
# Pricing helpers
# ---------------------------------------------------------------------------

def _snapshot_line(line: dict) -> dict:
    """JSON-safe copy of a line item: decimals as cent strings, dates as ISO."""
    out = {}
    for key, value in line.items():
        if isinstance(value, Decimal):
            out[key] = str(round_currency(value))
        elif isinstance(value, date):
            out[key] = value.isoformat()
        else:
            out[key] = value
    return out


def _snapshot(lines: Iterable[dict]) -> List[dict]:
    return [_snapshot_line(line) for line in lines or ()]


def price_estimate(labour, materials, charges, discounts, tax_percentage) -> Tuple[List[dict], money.Financials]:
    """Refresh discount amounts against the current subtotal, then total everything."""
    labour, materials, charges = list(labour or ()), list(materials or ()), list(charges or ())
    sub = money.subtotal(labour, materials, charges)
    discounts = money.recalculate_discounts(sub, discounts)
    return discounts, money.grand_total(labour, materials, charges, discounts, tax_percentage)


def _apply_financials(est: Estimate, fin: money.Financials) -> None:
    est.subtotal = round_currency(fin.subtotal)
    est.tax_amount = round_currency(fin.tax_amount)
    est.grand_total = round_currency(fin.grand_total)


def _sync_work_order(work_order: WorkOrder, est: Estimate) -> None:
    work_order.has_estimate = True
    work_order.estimate_amount = est.grand_total


def _mark_approved(est: Estimate, user_id) -> None:
    est.status = STATUS_APPROVED
    if est.approved_at is None:
        est.approved_by = user_id
        est.approved_at = utcnow()


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def create_estimate(session: Session, work_order_id: int, payload, *, user_id=None, today: Optional[date] = None) -> Estimate:
    """
    Create the work order's estimate. Number allocation is retried when a
    concurrent create claims the same number; a concurrent create for the
    same work order surfaces as DuplicateEstimate.
    """
    attempts = max(1, int(current_app.config.get("ESTIMATE_NUMBER_MAX_ATTEMPTS", 5)))
    for attempt in range(1, attempts + 1):
        try:
            return _create_once(session, work_order_id, payload, user_id=user_id, today=today)
        except IntegrityError:
            session.rollback()
            if find_active_estimate(session, work_order_id) is not None:
                raise DuplicateEstimate("Estimate already exists for this work order")
            current_app.logger.warning(
                "estimate number collision work_order=%s attempt=%s/%s", work_order_id, attempt, attempts
            )
    raise ConcurrencyConflict("Could not allocate a unique estimate number; retry the request.")


def _create_once(session: Session, work_order_id: int, payload, *, user_id, today: Optional[date]) -> Estimate:
    wo = get_work_order(session, work_order_id)
    if find_active_estimate(session, wo.id) is not None:
        raise DuplicateEstimate("Estimate already exists for this work order")

    cleaned, errors = validate_estimate_payload(payload)
    if errors:
        raise ValidationError(errors)

    today = today or today_utc()
    estimate_date = cleaned.get("estimate_date") or today
    valid_until = cleaned.get("valid_until") or (
        estimate_date + timedelta(days=int(current_app.config.get("DEFAULT_ESTIMATE_VALIDITY_DAYS", 30)))
    )
    if valid_until < estimate_date:
        raise ValidationError({"valid_until": "Must be on or after estimate_date."})

    # Absent keys snapshot the work order's current entries; [] means "none".
    if "estimated_labour" in cleaned:
        labour = cleaned["estimated_labour"]
    else:
        labour = [e.to_dict() for e in wo.labour_entries]
    if "estimated_materials" in cleaned:
        materials = cleaned["estimated_materials"]
    else:
        materials = [e.to_dict() for e in wo.material_entries]
    charges = cleaned.get("additional_charges", [])
    tax_percentage = cleaned.get("tax_percentage", Decimal("0"))

    discounts, fin = price_estimate(labour, materials, charges, cleaned.get("discounts", []), tax_percentage)

    est = Estimate(
        work_order_id=wo.id,
        estimate_number=numbering.generate_estimate_number(session, today),
        estimate_date=estimate_date,
        valid_until=valid_until,
        estimated_labour=_snapshot(labour),
        estimated_materials=_snapshot(materials),
        additional_charges=_snapshot(charges),
        discounts=_snapshot(discounts),
        tax_percentage=tax_percentage,
        notes=cleaned.get("notes"),
        terms_and_conditions=cleaned.get("terms_and_conditions"),
        status=STATUS_DRAFT,
        created_by=user_id,
        is_deleted=False,
    )
    _apply_financials(est, fin)
    session.add(est)
    _sync_work_order(wo, est)
    session.commit()

    current_app.logger.info(
        "estimate created number=%s work_order=%s grand_total=%s",
        est.estimate_number, wo.id, est.grand_total,
    )
    return est


def update_estimate(session: Session, work_order_id: int, payload) -> Estimate:
    est = get_estimate(session, work_order_id)
    if est.is_locked:
        raise EstimateLocked("Cannot edit approved estimate", current=est.status, allowed=[])

    cleaned, errors = validate_estimate_payload(payload, partial=True)
    estimate_date = cleaned.get("estimate_date", est.estimate_date)
    valid_until = cleaned.get("valid_until", est.valid_until)
    if estimate_date and valid_until and valid_until < estimate_date and "valid_until" not in errors:
        errors["valid_until"] = "Must be on or after estimate_date."
    if errors:
        raise ValidationError(errors)

    # Effective inputs = stored snapshot overlaid with whatever was provided
    labour = cleaned.get("estimated_labour", est.estimated_labour or [])
    materials = cleaned.get("estimated_materials", est.estimated_materials or [])
    charges = cleaned.get("additional_charges", est.additional_charges or [])
    tax_percentage = cleaned.get("tax_percentage", est.tax_percentage)
    discounts, fin = price_estimate(labour, materials, charges, cleaned.get("discounts", est.discounts or []), tax_percentage)

    est.estimate_date = estimate_date
    est.valid_until = valid_until
    est.estimated_labour = _snapshot(labour)
    est.estimated_materials = _snapshot(materials)
    est.additional_charges = _snapshot(charges)
    est.discounts = _snapshot(discounts)
    est.tax_percentage = tax_percentage
    if "notes" in cleaned:
        est.notes = cleaned["notes"]
    if "terms_and_conditions" in cleaned:
        est.terms_and_conditions = cleaned["terms_and_conditions"]
    _apply_financials(est, fin)
    _sync_work_order(est.work_order, est)
    session.commit()

    current_app.logger.info(
        "estimate updated number=%s work_order=%s grand_total=%s",
        est.estimate_number, work_order_id, est.grand_total,
    )
    return est


def approve_estimate(session: Session, work_order_id: int, *, user_id=None) -> Estimate:
    est = get_estimate(session, work_order_id)
    if est.status == STATUS_APPROVED:
        raise AlreadyApproved("Estimate is already approved")
    if est.status not in APPROVABLE_FROM:
        raise InvalidTransition(
            est.status,
            STATUS_APPROVED,
            allowed_transitions(est.status),
            message=f"Cannot approve a {est.status} estimate; only draft or sent estimates can be approved",
        )

    _mark_approved(est, user_id)
    _sync_work_order(est.work_order, est)
    session.commit()
    current_app.logger.info("estimate approved number=%s by=%s", est.estimate_number, user_id)
    return est


def change_status(session: Session, work_order_id: int, status, *, user_id=None) -> Estimate:
    est = get_estimate(session, work_order_id)
    requested = (clean_str(status, max_len=16) or "").lower()
    if not check_transition(est.status, requested):
        return est

    previous = est.status
    if requested == STATUS_APPROVED:
        _mark_approved(est, user_id)
        _sync_work_order(est.work_order, est)
    else:
        est.status = requested
    session.commit()
    current_app.logger.info("estimate status number=%s %s -> %s", est.estimate_number, previous, requested)
    return est


def delete_estimate(session: Session, work_order_id: int) -> None:
    """Soft-delete a non-approved estimate so a fresh one can be drafted."""
    est = get_estimate(session, work_order_id)
    if est.is_locked:
        raise EstimateLocked("Cannot delete approved estimate", current=est.status, allowed=[])
    est.is_deleted = True
    wo = est.work_order
    wo.has_estimate = False
    wo.estimate_amount = None
    session.commit()
    current_app.logger.info("estimate deleted number=%s work_order=%s", est.estimate_number, work_order_id)


def expire_estimates(session: Session, today: Optional[date] = None) -> int:
    """Move sent estimates past valid_until to expired. Returns how many moved."""
    today = today or today_utc()
    rows = (
        session.query(Estimate)
        .filter(Estimate.is_deleted.is_(False))
        .filter(Estimate.status == STATUS_SENT)
        .filter(Estimate.valid_until < today)
        .all()
    )
    for est in rows:
        check_transition(est.status, STATUS_EXPIRED)
        est.status = STATUS_EXPIRED
    session.commit()
    if rows:
        current_app.logger.info("expired %s estimate(s) as of %s", len(rows), today.isoformat())
    return len(rows)
