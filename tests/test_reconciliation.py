from decimal import Decimal

from jobcard.services import estimates, reconciliation


def _wo(labour=(), materials=()):
    return {"id": 1, "labour_entry": list(labour), "material_entry": list(materials)}


def _labour(desc, hours, cost):
    return {"description": desc, "hours": hours, "total_cost": cost}


def _material(desc, qty, amount):
    return {"description": desc, "quantity": qty, "amount": amount}


def _estimate(labour=(), materials=(), grand_total="0", **extra):
    est = {
        "estimated_labour": list(labour),
        "estimated_materials": list(materials),
        "additional_charges": [],
        "discounts": [],
        "subtotal": grand_total,
        "tax_amount": "0",
        "grand_total": grand_total,
    }
    est.update(extra)
    return est


def test_without_estimate_only_actuals_are_reported():
    stmt = reconciliation.build_final_statement(_wo([_labour("Wiring", "3", "90")], [_material("Cable", "2", "40")]), None)

    assert stmt["has_estimate"] is False
    assert stmt["labour_comparison"] == []
    assert stmt["material_comparison"] == []
    summary = stmt["financial_summary"]
    assert summary["actual"]["grand_total"] == Decimal("130.00")
    assert summary["estimated"]["grand_total"] == Decimal("0.00")
    assert summary["variance"]["percentage"] == Decimal("0.00")


def test_lines_match_case_and_whitespace_insensitively():
    rows = reconciliation.compare_labour(
        [_labour("  Rewire Kitchen ", "10", "250")],
        [_labour("rewire kitchen", "12", "300")],
    )
    assert len(rows) == 1
    row = rows[0]
    assert row["description"] == "  Rewire Kitchen "
    assert row["estimated_hours"] == Decimal("10.00")
    assert row["actual_hours"] == Decimal("12.00")
    assert row["variance"] == Decimal("50.00")


def test_unmatched_lines_on_either_side():
    rows = reconciliation.compare_materials(
        [_material("Panel", "1", "400")],
        [_material("Breaker", "4", "80")],
    )
    assert [r["description"] for r in rows] == ["Panel", "Breaker"]
    panel, breaker = rows
    assert panel["actual_amount"] == Decimal("0.00")
    assert panel["variance"] == Decimal("-400.00")
    assert breaker["estimated_amount"] == Decimal("0.00")
    assert breaker["variance"] == Decimal("80.00")


def test_duplicate_descriptions_collapse_last_wins():
    rows = reconciliation.compare_labour(
        [_labour("Install", "2", "50"), _labour("install", "3", "75")],
        [_labour("INSTALL", "1", "20"), _labour("Install", "4", "100")],
    )
    assert len(rows) == 1
    assert rows[0]["estimated_cost"] == Decimal("75.00")
    assert rows[0]["actual_cost"] == Decimal("100.00")
    assert rows[0]["variance"] == Decimal("25.00")


def test_row_variance_always_actual_minus_estimated():
    rows = reconciliation.compare_materials(
        [_material("A", "1", "10"), _material("B", "1", "20.55")],
        [_material("b", "1", "20"), _material("C", "2", "7.25")],
    )
    for row in rows:
        assert row["variance"] == row["actual_amount"] - row["estimated_amount"]


def test_summary_variance_against_stored_grand_total():
    wo = _wo([_labour("Wiring", "10", "300")], [_material("Cable", "20", "100")])
    est = _estimate(
        [_labour("Wiring", "8", "200")],
        [_material("Cable", "20", "100")],
        grand_total="330",
        tax_amount="30",
        subtotal="300",
    )
    stmt = reconciliation.build_final_statement(wo, est)
    summary = stmt["financial_summary"]

    assert stmt["has_estimate"] is True
    assert summary["estimated"]["labour_cost"] == Decimal("200.00")
    assert summary["estimated"]["tax"] == Decimal("30.00")
    assert summary["actual"]["grand_total"] == Decimal("400.00")
    assert summary["variance"]["labour_cost"] == Decimal("100.00")
    assert summary["variance"]["material_cost"] == Decimal("0.00")
    assert summary["variance"]["total"] == Decimal("70.00")
    assert summary["variance"]["percentage"] == Decimal("21.21")


def test_zero_estimate_gives_zero_percentage():
    stmt = reconciliation.build_final_statement(_wo([_labour("x", "1", "10")]), _estimate(grand_total="0"))
    assert stmt["financial_summary"]["variance"]["total"] == Decimal("10.00")
    assert stmt["financial_summary"]["variance"]["percentage"] == Decimal("0.00")


def test_variance_percentage_rounds_half_up():
    assert reconciliation.variance_percentage("1", "8") == Decimal("12.50")
    assert reconciliation.variance_percentage("-1", "3") == Decimal("-33.33")


def test_final_statement_for_persisted_records(session, work_order, june_15):
    estimates.create_estimate(session, work_order.id, {}, today=june_15)
    stmt = reconciliation.final_statement_for(session, work_order.id)

    assert stmt["has_estimate"] is True
    assert stmt["estimate"]["estimate_number"] == "EST-2025-06-00001"
    assert stmt["financial_summary"]["variance"]["total"] == Decimal("0.00")
    assert [r["description"] for r in stmt["labour_comparison"]] == ["Rewire"]
    assert stmt["material_comparison"][0]["variance"] == Decimal("0.00")


def test_wiring_example_variance():
    stmt = reconciliation.build_final_statement(
        _wo([_labour("wiring", "12", "600")]),
        _estimate([_labour("Wiring", "10", "500")], grand_total="500"),
    )
    (row,) = stmt["labour_comparison"]
    assert row["estimated_cost"] == Decimal("500.00")
    assert row["actual_cost"] == Decimal("600.00")
    assert row["variance"] == Decimal("100.00")
