from flask import jsonify, request
from flask_login import current_user

from jobcard.extensions import db, limiter
from jobcard.models.employee import Employee
from jobcard.models.user import (
    PERM_APPROVE_JOBS,
    PERM_CHECK_JOBS,
    PERM_COMPLETE_JOBS,
    PERM_CREATE_JOBS,
    PERM_DELIVER_JOBS,
    PERM_READ_JOBS,
    PERM_UPDATE_JOBS,
)
from jobcard.models.work_order import JOB_STATUSES
from jobcard.services import reconciliation, totals, workflow
from jobcard.services.policy import permission_required
from jobcard.services.work_orders import create_work_order, get_work_order, list_work_orders
from jobcard.utils.validators import clean_str
from . import bp


def _int_arg(name: str, default: int, maximum: int) -> int:
    raw = (request.args.get(name) or "").strip()
    if not raw.isdigit():
        return default
    return min(int(raw), maximum)


@bp.post("/", strict_slashes=False)
@limiter.limit("120 per minute")
@permission_required(PERM_CREATE_JOBS)
def create():
    data = request.get_json(silent=True) or {}
    wo = create_work_order(db.session, data, user_id=current_user.id)
    return jsonify(ok=True, data=wo.to_dict()), 201


@bp.get("/", strict_slashes=False)
@permission_required(PERM_READ_JOBS)
def index():
    status = (request.args.get("status") or "").strip().lower()
    page = list_work_orders(
        db.session,
        status=status if status in JOB_STATUSES else None,
        q=(request.args.get("q") or "").strip() or None,
        limit=_int_arg("limit", 50, 500),
        offset=_int_arg("offset", 0, 1_000_000),
    )
    rows = [{
        "id": wo.id,
        "order_number": wo.order_number,
        "client_name": wo.client_name,
        "status": wo.status,
        "total": wo.total_dict(),
        "has_estimate": wo.has_estimate,
        "estimate_amount": wo.estimate_amount,
        "created_at": wo.created_at.isoformat() if wo.created_at else None,
    } for wo in page.items]
    return jsonify(ok=True, rows=rows, total=page.total, limit=page.limit, offset=page.offset)


@bp.get("/<int:work_order_id>")
@permission_required(PERM_READ_JOBS)
def detail(work_order_id: int):
    wo = get_work_order(db.session, work_order_id)
    data = wo.to_dict()

    # Attach employee names to labour rows for display
    ids = {e["employee_id"] for e in data["labour_entry"]}
    names = {}
    if ids:
        names = {
            emp.id: emp.full_name
            for emp in db.session.query(Employee).filter(Employee.id.in_(ids)).all()
        }
    for entry in data["labour_entry"]:
        entry["employee_name"] = names.get(entry["employee_id"])
    return jsonify(ok=True, data=data)


@bp.post("/<int:work_order_id>/labour")
@limiter.limit("120 per minute")
@permission_required(PERM_UPDATE_JOBS)
def add_labour(work_order_id: int):
    wo = get_work_order(db.session, work_order_id)
    wo = totals.append_labour(db.session, wo, request.get_json(silent=True) or {})
    return jsonify(ok=True, data=wo.to_dict()), 201


@bp.post("/<int:work_order_id>/material")
@limiter.limit("120 per minute")
@permission_required(PERM_UPDATE_JOBS)
def add_material(work_order_id: int):
    wo = get_work_order(db.session, work_order_id)
    wo = totals.append_material(db.session, wo, request.get_json(silent=True) or {})
    return jsonify(ok=True, data=wo.to_dict()), 201


@bp.patch("/<int:work_order_id>/check")
@limiter.limit("120 per minute")
@permission_required(PERM_CHECK_JOBS)
def check(work_order_id: int):
    wo = workflow.check_work_order(db.session, work_order_id, user_id=current_user.id)
    return jsonify(ok=True, data=wo.to_dict())


@bp.patch("/<int:work_order_id>/approve")
@limiter.limit("120 per minute")
@permission_required(PERM_APPROVE_JOBS)
def approve(work_order_id: int):
    wo = workflow.approve_work_order(db.session, work_order_id, user_id=current_user.id)
    return jsonify(ok=True, data=wo.to_dict())


@bp.patch("/<int:work_order_id>/complete")
@limiter.limit("120 per minute")
@permission_required(PERM_COMPLETE_JOBS)
def complete(work_order_id: int):
    wo = workflow.complete_work_order(db.session, work_order_id, user_id=current_user.id)
    return jsonify(ok=True, data=wo.to_dict())


@bp.patch("/<int:work_order_id>/deliver")
@limiter.limit("120 per minute")
@permission_required(PERM_DELIVER_JOBS)
def deliver(work_order_id: int):
    data = request.get_json(silent=True) or {}
    wo = workflow.deliver_work_order(
        db.session,
        work_order_id,
        user_id=current_user.id,
        remarks=clean_str(data.get("remarks"), max_len=5000),
    )
    return jsonify(ok=True, data=wo.to_dict())


@bp.get("/<int:work_order_id>/final-statement")
@permission_required(PERM_READ_JOBS)
def final_statement(work_order_id: int):
    return jsonify(ok=True, data=reconciliation.final_statement_for(db.session, work_order_id))
