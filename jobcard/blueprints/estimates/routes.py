from flask import jsonify, request
from flask_login import current_user

from jobcard.extensions import db, limiter
from jobcard.models.user import PERM_APPROVE_JOBS, PERM_CREATE_JOBS, PERM_EDIT_JOBS, PERM_READ_JOBS
from jobcard.services import estimates
from jobcard.services.policy import permission_required
from . import bp


@bp.post("/<int:work_order_id>/estimate")
@limiter.limit("120 per minute")
@permission_required(PERM_CREATE_JOBS)
def create(work_order_id: int):
    data = request.get_json(silent=True) or {}
    est = estimates.create_estimate(db.session, work_order_id, data, user_id=current_user.id)
    return jsonify(ok=True, data=est.to_dict()), 201


@bp.get("/<int:work_order_id>/estimate")
@permission_required(PERM_READ_JOBS)
def detail(work_order_id: int):
    est = estimates.get_estimate(db.session, work_order_id)
    data = est.to_dict()
    data["allowed_transitions"] = list(estimates.allowed_transitions(est.status))
    return jsonify(ok=True, data=data)


@bp.patch("/<int:work_order_id>/estimate")
@limiter.limit("120 per minute")
@permission_required(PERM_EDIT_JOBS)
def update(work_order_id: int):
    data = request.get_json(silent=True) or {}
    est = estimates.update_estimate(db.session, work_order_id, data)
    return jsonify(ok=True, data=est.to_dict())


@bp.delete("/<int:work_order_id>/estimate")
@limiter.limit("120 per minute")
@permission_required(PERM_EDIT_JOBS)
def delete(work_order_id: int):
    estimates.delete_estimate(db.session, work_order_id)
    return ("", 204)


@bp.post("/<int:work_order_id>/estimate/approve")
@limiter.limit("120 per minute")
@permission_required(PERM_APPROVE_JOBS)
def approve(work_order_id: int):
    est = estimates.approve_estimate(db.session, work_order_id, user_id=current_user.id)
    return jsonify(ok=True, data=est.to_dict())


@bp.patch("/<int:work_order_id>/estimate/status")
@limiter.limit("120 per minute")
@permission_required(PERM_EDIT_JOBS)
def change_status(work_order_id: int):
    data = request.get_json(silent=True) or {}
    est = estimates.change_status(db.session, work_order_id, data.get("status"), user_id=current_user.id)
    return jsonify(ok=True, data=est.to_dict())
