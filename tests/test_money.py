from decimal import Decimal

import pytest
from jobcard.services import money

LABOUR = [{"total_cost": "250.00"}, {"total_cost": Decimal("50")}]
MATERIALS = [{"amount": "100.00"}]
CHARGES = [{"description": "Call-out", "amount": "50"}]


def test_subtotal_sums_labour_materials_and_charges():
    assert money.subtotal(LABOUR, MATERIALS, CHARGES) == Decimal("450")


def test_subtotal_empty_is_zero():
    assert money.subtotal([], [], []) == Decimal("0")


def test_percentage_and_fixed_discounts():
    assert money.discount_amount(Decimal("200"), "percentage", "10") == Decimal("20")
    assert money.discount_amount(Decimal("200"), "fixed", "35.50") == Decimal("35.50")


def test_unknown_discount_type_raises():
    with pytest.raises(ValueError):
        money.discount_amount(Decimal("100"), "coupon", "5")


def test_recalculate_discounts_ignores_stored_amount():
    discounts = [{"description": "Loyal", "type": "percentage", "value": "10", "amount": "999"}]
    out = money.recalculate_discounts(Decimal("400"), discounts)
    assert out[0]["amount"] == Decimal("40")
    # input rows are not mutated
    assert discounts[0]["amount"] == "999"


def test_discounts_never_push_amount_below_zero():
    discounts = [{"type": "fixed", "value": "500", "amount": "500"}]
    assert money.apply_discounts(Decimal("100"), discounts) == Decimal("0")
    fin = money.grand_total([], [{"amount": "100"}], [], discounts, "15")
    assert fin.amount_after_discount == Decimal("0")
    assert fin.tax_amount == Decimal("0")
    assert fin.grand_total == Decimal("0")
    assert fin.total_discount == Decimal("500")


def test_grand_total_applies_tax_after_discount():
    discounts = money.recalculate_discounts(Decimal("450"), [{"type": "percentage", "value": "10"}])
    fin = money.grand_total(LABOUR, MATERIALS, CHARGES, discounts, "10")
    assert fin.subtotal == Decimal("450")
    assert fin.total_discount == Decimal("45")
    assert fin.amount_after_discount == Decimal("405")
    assert fin.tax_amount == Decimal("40.5")
    assert fin.grand_total == Decimal("445.5")


@pytest.mark.parametrize("sub,disc,tax_pct", [
    ("100", "0", "0"),
    ("1234.56", "34.56", "8.25"),
    ("10", "20", "50"),
    ("0", "0", "100"),
])
def test_grand_total_identity(sub, disc, tax_pct):
    discounts = [{"type": "fixed", "value": disc, "amount": disc}]
    fin = money.grand_total([], [{"amount": sub}], [], discounts, tax_pct)
    expected_after = max(Decimal(sub) - Decimal(disc), Decimal("0"))
    assert fin.amount_after_discount == expected_after
    assert fin.tax_amount == expected_after * Decimal(tax_pct) / Decimal("100")
    assert fin.grand_total == fin.amount_after_discount + fin.tax_amount


def test_decimal_arithmetic_has_no_float_drift():
    fin = money.grand_total([], [{"amount": "0.1"}, {"amount": "0.2"}], [], [], "0")
    assert fin.subtotal == Decimal("0.3")


def test_financials_to_dict():
    fin = money.grand_total([], [{"amount": "10"}], [], [], "0")
    assert fin.to_dict() == {
        "subtotal": Decimal("10"),
        "total_discount": Decimal("0"),
        "amount_after_discount": Decimal("10"),
        "tax_amount": Decimal("0"),
        "grand_total": Decimal("10"),
    }


def test_no_discount_total_is_subtotal_plus_tax():
    fin = money.grand_total([{"total_cost": "200"}], [{"amount": "300"}], [], [], "8")
    assert fin.grand_total == Decimal("500") * (1 + Decimal("8") / 100)


def test_recalculate_discounts_is_idempotent():
    discounts = [
        {"description": "Loyal", "type": "percentage", "value": "12.5"},
        {"description": "Promo", "type": "fixed", "value": "20"},
    ]
    once = money.recalculate_discounts(Decimal("480"), discounts)
    twice = money.recalculate_discounts(Decimal("480"), once)
    assert once == twice
    assert [d["amount"] for d in once] == [Decimal("60"), Decimal("20")]
