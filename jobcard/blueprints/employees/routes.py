from flask import jsonify, request

from jobcard.extensions import db, limiter
from jobcard.models.user import PERM_MANAGE_EMPLOYEES, PERM_READ_JOBS
from jobcard.services.policy import permission_required
from jobcard.services.work_orders import create_employee, get_employee, list_employees, update_employee
from . import bp


@bp.get("/", strict_slashes=False)
@permission_required(PERM_READ_JOBS)
def index():
    include_inactive = (request.args.get("include_inactive") or "").lower() in ("1", "true", "yes")
    rows = list_employees(
        db.session,
        active_only=not include_inactive,
        q=(request.args.get("q") or "").strip() or None,
    )
    return jsonify(ok=True, rows=[e.to_dict() for e in rows])


@bp.post("/", strict_slashes=False)
@limiter.limit("120 per minute")
@permission_required(PERM_MANAGE_EMPLOYEES)
def create():
    emp = create_employee(db.session, request.get_json(silent=True) or {})
    return jsonify(ok=True, data=emp.to_dict()), 201


@bp.get("/<int:employee_id>")
@permission_required(PERM_READ_JOBS)
def detail(employee_id: int):
    return jsonify(ok=True, data=get_employee(db.session, employee_id).to_dict())


@bp.patch("/<int:employee_id>")
@limiter.limit("120 per minute")
@permission_required(PERM_MANAGE_EMPLOYEES)
def update(employee_id: int):
    emp = update_employee(db.session, employee_id, request.get_json(silent=True) or {})
    return jsonify(ok=True, data=emp.to_dict())
