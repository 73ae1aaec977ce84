import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")

from datetime import date
from decimal import Decimal

import pytest
from jobcard import create_app
from jobcard.extensions import db
from jobcard.models import Employee, User, WorkOrder
from jobcard.services.work_orders import create_work_order


@pytest.fixture(scope="session")
def app():
    app = create_app()
    app.config.update(
        TESTING=True,
        WTF_CSRF_ENABLED=False,
        RATELIMIT_ENABLED=False,
        ESTIMATE_NUMBER_PREFIX="EST",
    )
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture(autouse=True)
def _db_clean(app):
    # Clean BEFORE and AFTER each test so state stays hermetic
    def wipe():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()

    with app.app_context():
        wipe()
    yield
    with app.app_context():
        wipe()


@pytest.fixture()
def ctx(app):
    with app.app_context():
        yield


@pytest.fixture()
def session(ctx):
    return db.session


def make_user(email="boss@example.test", permissions=(), superuser=False, active=True):
    u = User(email=email, name="Test", permissions=list(permissions), is_superuser=superuser, is_active=active)
    u.set_password("pw")
    db.session.add(u)
    db.session.commit()
    return u


def login(client, user_id):
    with client.session_transaction() as s:
        s["_user_id"] = str(user_id)
        s["_fresh"] = True


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def admin_client(app, client):
    with app.app_context():
        uid = make_user(superuser=True).id
    login(client, uid)
    return client


@pytest.fixture()
def employee(session):
    emp = Employee(employee_code="E-001", first_name="Ada", last_name="Wright", minimum_wage=Decimal("20.00"))
    session.add(emp)
    session.commit()
    return emp


def work_order_payload(employee_id, **overrides):
    data = {
        "order_number": "WO-1001",
        "client": {"code": "C-7", "name": "Harbor Cafe", "contact_info": {"phone": "555-0100", "email": "ops@harbor.test"}},
        "order_detail": {"order_date": "2025-06-01", "date_promised": "2025-06-20"},
        "job_info": {"priority": "high", "type": "repair", "description": "Rewire kitchen"},
        "labour_entry": [
            {"date": "2025-06-02", "description": "Rewire", "hours": "10", "employee_id": employee_id,
             "cost_per_hour": "25", "total_cost": "250"},
        ],
        "material_entry": [
            {"description": "Cable", "quantity": "20", "unit": "m", "unit_price": "5", "amount": "100"},
        ],
    }
    data.update(overrides)
    return data


@pytest.fixture()
def work_order(session, employee) -> WorkOrder:
    return create_work_order(session, work_order_payload(employee.id))


@pytest.fixture()
def june_15():
    return date(2025, 6, 15)
