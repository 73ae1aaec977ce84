from datetime import date

from jobcard.models import Estimate
from jobcard.services import numbering


def _stub_estimate(session, work_order, number, deleted=False):
    est = Estimate(
        work_order_id=work_order.id,
        estimate_number=number,
        estimate_date=date(2025, 6, 1),
        valid_until=date(2025, 7, 1),
        subtotal=0,
        grand_total=0,
        is_deleted=deleted,
    )
    session.add(est)
    session.commit()
    return est


def test_format_and_parse():
    assert numbering.format_estimate_number(2025, 6, 7, prefix="EST") == "EST-2025-06-00007"
    assert numbering.parse_counter("EST-2025-06-00042") == 42
    assert numbering.parse_counter(None) == 0
    assert numbering.parse_counter("garbage") == 0


def test_first_number_of_month(session):
    assert numbering.generate_estimate_number(session, date(2025, 6, 15)) == "EST-2025-06-00001"


def test_increments_within_month_and_counts_deleted(session, work_order):
    _stub_estimate(session, work_order, "EST-2025-06-00001", deleted=True)
    _stub_estimate(session, work_order, "EST-2025-06-00002")
    assert numbering.generate_estimate_number(session, date(2025, 6, 30)) == "EST-2025-06-00003"


def test_counter_resets_each_month(session, work_order):
    _stub_estimate(session, work_order, "EST-2025-06-00009")
    assert numbering.generate_estimate_number(session, date(2025, 7, 1)) == "EST-2025-07-00001"


def test_prefix_comes_from_config(app, session):
    app.config["ESTIMATE_NUMBER_PREFIX"] = "QT"
    try:
        assert numbering.generate_estimate_number(session, date(2025, 6, 1)) == "QT-2025-06-00001"
    finally:
        app.config["ESTIMATE_NUMBER_PREFIX"] = "EST"
