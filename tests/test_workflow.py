from datetime import date

import pytest
from jobcard.services import workflow
from jobcard.services.errors import InvalidTransition, NotFound


def test_full_job_lifecycle(session, work_order):
    wo = workflow.check_work_order(session, work_order.id, user_id=None)
    assert wo.status == "checked" and wo.checked_at is not None
    wo = workflow.approve_work_order(session, work_order.id)
    assert wo.status == "approved" and wo.approved_at is not None
    wo = workflow.complete_work_order(session, work_order.id)
    assert wo.status == "completed" and wo.completed_at is not None
    wo = workflow.deliver_work_order(session, work_order.id, remarks="Customer happy", today=date(2025, 6, 19))
    assert wo.status == "delivered"
    assert wo.date_delivered == date(2025, 6, 19)
    assert wo.delivered_on_time is True
    assert wo.remarks == "Customer happy"


def test_late_delivery_is_flagged(session, work_order):
    for step in (workflow.check_work_order, workflow.approve_work_order, workflow.complete_work_order):
        step(session, work_order.id)
    wo = workflow.deliver_work_order(session, work_order.id, today=date(2025, 6, 21))
    assert wo.delivered_on_time is False


def test_steps_cannot_be_skipped(session, work_order):
    with pytest.raises(InvalidTransition) as exc:
        workflow.complete_work_order(session, work_order.id)
    assert exc.value.current == "pending"
    assert exc.value.allowed == ["checked"]


def test_delivered_is_terminal(session, work_order):
    for step in (workflow.check_work_order, workflow.approve_work_order,
                 workflow.complete_work_order, workflow.deliver_work_order):
        step(session, work_order.id)
    with pytest.raises(InvalidTransition) as exc:
        workflow.deliver_work_order(session, work_order.id)
    assert exc.value.allowed == []


def test_unknown_work_order(session):
    with pytest.raises(NotFound):
        workflow.check_work_order(session, 12345)
