from datetime import date
from decimal import Decimal

import pytest
from conftest import work_order_payload
from jobcard.models.estimate import ESTIMATE_STATUSES
from jobcard.services import estimates, numbering
from jobcard.services.errors import (
    AlreadyApproved,
    ConcurrencyConflict,
    DuplicateEstimate,
    EstimateLocked,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from jobcard.services.work_orders import create_work_order

ALLOWED = {
    ("draft", "sent"), ("draft", "rejected"),
    ("sent", "approved"), ("sent", "rejected"), ("sent", "expired"),
    ("rejected", "draft"),
    ("expired", "draft"),
}


def test_create_snapshots_work_order_entries(session, work_order, june_15):
    est = estimates.create_estimate(session, work_order.id, {}, user_id=None, today=june_15)

    assert est.estimate_number == "EST-2025-06-00001"
    assert est.status == "draft"
    assert est.estimate_date == june_15
    assert est.valid_until == date(2025, 7, 15)
    assert est.estimated_labour[0]["description"] == "Rewire"
    assert est.estimated_labour[0]["total_cost"] == "250.00"
    assert est.estimated_labour[0]["date"] == "2025-06-02"
    assert est.estimated_materials[0]["amount"] == "100.00"
    assert est.subtotal == Decimal("350.00")
    assert est.grand_total == Decimal("350.00")

    session.refresh(work_order)
    assert work_order.has_estimate is True
    assert work_order.estimate_amount == Decimal("350.00")


def test_create_with_explicit_lines_discount_and_tax(session, work_order, june_15):
    payload = {
        "estimated_labour": [],
        "estimated_materials": [
            {"description": "Panel", "quantity": "1", "unit": "pc", "unit_price": "400", "amount": "400"},
        ],
        "additional_charges": [{"description": "Call-out", "amount": "100"}],
        "discounts": [{"description": "Spring", "type": "percentage", "value": "10", "amount": "1"}],
        "tax_percentage": "10",
        "terms": "Net 30",
    }
    est = estimates.create_estimate(session, work_order.id, payload, today=june_15)

    assert est.estimated_labour == []
    assert est.subtotal == Decimal("500.00")
    # client-sent amount is replaced by the derived one
    assert est.discounts[0]["amount"] == "50.00"
    assert est.tax_amount == Decimal("45.00")
    assert est.grand_total == Decimal("495.00")
    assert est.terms_and_conditions == "Net 30"


def test_create_rejects_second_active_estimate(session, work_order, june_15):
    estimates.create_estimate(session, work_order.id, {}, today=june_15)
    with pytest.raises(DuplicateEstimate):
        estimates.create_estimate(session, work_order.id, {}, today=june_15)


def test_create_for_missing_work_order(session):
    with pytest.raises(NotFound):
        estimates.create_estimate(session, 999, {})


def test_create_validation_errors_carry_field_paths(session, work_order):
    payload = {
        "estimated_labour": [{"description": "x", "hours": "-1", "date": "2025-06-01",
                              "employee_id": 1, "cost_per_hour": "1", "total_cost": "1"}],
        "estimate_date": "2025-06-10",
        "valid_until": "2025-06-01",
    }
    with pytest.raises(ValidationError) as exc:
        estimates.create_estimate(session, work_order.id, payload)
    assert "estimated_labour.0.hours" in exc.value.fields
    assert "valid_until" in exc.value.fields


def test_numbers_stay_unique_across_work_orders(session, work_order, employee, june_15):
    other = create_work_order(session, work_order_payload(employee.id, order_number="WO-1002"))
    a = estimates.create_estimate(session, work_order.id, {}, today=june_15)
    b = estimates.create_estimate(session, other.id, {}, today=june_15)
    assert (a.estimate_number, b.estimate_number) == ("EST-2025-06-00001", "EST-2025-06-00002")


def test_number_collision_exhausts_retries(session, work_order, employee, june_15, monkeypatch):
    taken = estimates.create_estimate(session, work_order.id, {}, today=june_15).estimate_number
    other = create_work_order(session, work_order_payload(employee.id, order_number="WO-1002"))
    other_id = other.id

    calls = []

    def always_taken(sess, today=None):
        calls.append(today)
        return taken

    monkeypatch.setattr(numbering, "generate_estimate_number", always_taken)
    with pytest.raises(ConcurrencyConflict):
        estimates.create_estimate(session, other_id, {}, today=june_15)
    assert len(calls) == 5
    assert estimates.find_active_estimate(session, other_id) is None


def test_update_merges_and_recalculates(session, work_order, june_15):
    estimates.create_estimate(session, work_order.id, {"notes": "first"}, today=june_15)
    est = estimates.update_estimate(session, work_order.id, {
        "tax_percentage": "10",
        "discounts": [{"description": "Loyal", "type": "percentage", "value": "10"}],
    })

    # labour/material snapshot kept, totals recomputed
    assert est.subtotal == Decimal("350.00")
    assert est.discounts[0]["amount"] == "35.00"
    assert est.tax_amount == Decimal("31.50")
    assert est.grand_total == Decimal("346.50")
    assert est.notes == "first"
    assert est.work_order.estimate_amount == Decimal("346.50")


def test_update_refreshes_percentage_discount_when_lines_change(session, work_order, june_15):
    estimates.create_estimate(session, work_order.id, {
        "discounts": [{"description": "Loyal", "type": "percentage", "value": "10"}],
    }, today=june_15)
    est = estimates.update_estimate(session, work_order.id, {
        "additional_charges": [{"description": "Permit", "amount": "50"}],
    })
    assert est.subtotal == Decimal("400.00")
    assert est.discounts[0]["amount"] == "40.00"
    assert est.grand_total == Decimal("360.00")


def test_update_rejects_status_key(session, work_order, june_15):
    estimates.create_estimate(session, work_order.id, {}, today=june_15)
    with pytest.raises(ValidationError) as exc:
        estimates.update_estimate(session, work_order.id, {"status": "approved"})
    assert "status" in exc.value.fields


@pytest.mark.parametrize("current", ESTIMATE_STATUSES)
@pytest.mark.parametrize("requested", ESTIMATE_STATUSES)
def test_transition_table(current, requested):
    if current == requested:
        assert estimates.check_transition(current, requested) is False
    elif current == "approved":
        with pytest.raises(EstimateLocked):
            estimates.check_transition(current, requested)
    elif (current, requested) in ALLOWED:
        assert estimates.check_transition(current, requested) is True
    else:
        with pytest.raises(InvalidTransition) as exc:
            estimates.check_transition(current, requested)
        assert exc.value.allowed == list(estimates.allowed_transitions(current))


def test_unknown_status_is_a_validation_error():
    with pytest.raises(ValidationError):
        estimates.check_transition("draft", "archived")


def test_change_status_follows_table(session, work_order, june_15):
    estimates.create_estimate(session, work_order.id, {}, today=june_15)
    assert estimates.change_status(session, work_order.id, "sent").status == "sent"
    with pytest.raises(InvalidTransition):
        estimates.change_status(session, work_order.id, "draft")
    est = estimates.change_status(session, work_order.id, "approved", user_id=None)
    assert est.status == "approved"
    assert est.approved_at is not None


def test_approve_from_draft_and_lock(session, work_order, june_15):
    estimates.create_estimate(session, work_order.id, {}, today=june_15)
    est = estimates.approve_estimate(session, work_order.id)
    before = (est.grand_total, est.status, est.estimate_number, list(est.estimated_labour))

    with pytest.raises(AlreadyApproved):
        estimates.approve_estimate(session, work_order.id)
    with pytest.raises(EstimateLocked):
        estimates.update_estimate(session, work_order.id, {"notes": "late change"})
    with pytest.raises(EstimateLocked):
        estimates.change_status(session, work_order.id, "draft")
    with pytest.raises(EstimateLocked):
        estimates.delete_estimate(session, work_order.id)

    est = estimates.get_estimate(session, work_order.id)
    assert (est.grand_total, est.status, est.estimate_number, list(est.estimated_labour)) == before
    assert est.notes is None


def test_approve_rejected_estimate_is_invalid(session, work_order, june_15):
    estimates.create_estimate(session, work_order.id, {}, today=june_15)
    estimates.change_status(session, work_order.id, "rejected")
    with pytest.raises(InvalidTransition) as exc:
        estimates.approve_estimate(session, work_order.id)
    assert exc.value.current == "rejected"


def test_delete_frees_work_order_for_a_new_estimate(session, work_order, june_15):
    estimates.create_estimate(session, work_order.id, {}, today=june_15)
    estimates.delete_estimate(session, work_order.id)

    session.refresh(work_order)
    assert work_order.has_estimate is False
    assert work_order.estimate_amount is None
    with pytest.raises(NotFound):
        estimates.get_estimate(session, work_order.id)

    again = estimates.create_estimate(session, work_order.id, {}, today=june_15)
    assert again.estimate_number == "EST-2025-06-00002"


def test_expire_moves_only_overdue_sent_estimates(session, work_order, june_15):
    estimates.create_estimate(session, work_order.id, {}, today=june_15)
    estimates.change_status(session, work_order.id, "sent")

    assert estimates.expire_estimates(session, today=date(2025, 7, 15)) == 0
    assert estimates.expire_estimates(session, today=date(2025, 7, 16)) == 1
    est = estimates.get_estimate(session, work_order.id)
    assert est.status == "expired"
    assert estimates.change_status(session, work_order.id, "draft").status == "draft"


def test_create_rejects_amount_beyond_column_range(session, work_order, june_15):
    with pytest.raises(ValidationError) as exc:
        estimates.create_estimate(session, work_order.id, {
            "additional_charges": [{"description": "c", "amount": "1e26"}],
        }, today=june_15)
    assert exc.value.fields == {"additional_charges.0.amount": "Must be 9999999999.99 or less."}
    assert estimates.find_active_estimate(session, work_order.id) is None
