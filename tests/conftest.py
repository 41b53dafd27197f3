"""
conftest.py — Shared Test Fixtures for CarDash

Provides an in-memory SQLite database with roles and the permission catalog
seeded, FastAPI TestClients with auth overrides, and factory fixtures for
the core models (User, Customer, Provider, Car, Deal, Bill).

Business Rules:
- All tests run against isolated in-memory DB (no prod data risk)
- Auth is overridden so route tests don't need a login round-trip
- Each test function gets a fresh DB (create_all / drop_all)

Called by: all test files via pytest autodiscovery
Depends on: cardash.models (Base), cardash.database (get_db), cardash.dependencies
"""

import os

os.environ["TESTING"] = "1"  # Must be set before importing cardash modules
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cardash.models import (
    Base,
    Bill,
    BillPayment,
    Car,
    Customer,
    Deal,
    Provider,
    User,
)
from cardash.services.permission_service import (
    ADMIN_ROLE,
    SALES_ROLE,
    assign_role,
    seed_roles_and_permissions,
    set_user_permissions,
)
from cardash.services.security import hash_password

# ── In-memory SQLite engine ──────────────────────────────────────────

TEST_DB_URL = "sqlite://"  # in-memory, fresh per session

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

TEST_PASSWORD = "secret123"
SALES_PERMISSIONS = ["view_cars", "view_customers", "view_sales_deals"]


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, seed roles/permissions, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    seed_roles_and_permissions(session)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _make_user(db: Session, email: str, full_name: str, role: str, permissions=None) -> User:
    user = User(
        email=email,
        full_name=full_name,
        password_hash=hash_password(TEST_PASSWORD),
        status="Active",
    )
    db.add(user)
    db.flush()
    assign_role(db, user.id, role)
    if permissions:
        set_user_permissions(db, user.id, permissions)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def admin_user(db_session: Session) -> User:
    """An Admin-role user (every permission)."""
    return _make_user(db_session, "admin@autoshoket.co.il", "Test Admin", ADMIN_ROLE)


@pytest.fixture()
def sales_user(db_session: Session) -> User:
    """A Sales-role user with a handful of page grants."""
    return _make_user(
        db_session, "sales@autoshoket.co.il", "Test Sales", SALES_ROLE, SALES_PERMISSIONS
    )


@pytest.fixture()
def test_customer(db_session: Session) -> Customer:
    c = Customer(
        name="Dana Levi",
        phone="050-1234567",
        email="dana@example.com",
        address="Herzl 1, Haifa",
        car_number="12-345-67",
        id_number="123456789",
        age=41,
    )
    db_session.add(c)
    db_session.commit()
    db_session.refresh(c)
    return c


@pytest.fixture()
def test_provider(db_session: Session) -> Provider:
    p = Provider(name="Galil Motors", address="Industrial Zone, Karmiel", phone="04-9990000")
    db_session.add(p)
    db_session.commit()
    db_session.refresh(p)
    return p


@pytest.fixture()
def test_car(db_session: Session, test_provider: Provider) -> Car:
    car = Car(
        title="Corolla Hybrid",
        brand="Toyota",
        year=2021,
        status="used",
        type="sedan",
        car_number="55-123-66",
        kilometers=42000,
        market_price=98000,
        buy_price=80000,
        sale_price=95000,
        provider_id=test_provider.id,
    )
    db_session.add(car)
    db_session.commit()
    db_session.refresh(car)
    return car


@pytest.fixture()
def test_deal(db_session: Session, test_customer: Customer, test_car: Car) -> Deal:
    """An active sale deal (no ledger rows; use deal_service for those)."""
    deal = Deal(
        title="Corolla sale",
        description="Sold after test drive",
        deal_type="used_sale",
        status="active",
        amount=95000,
        selling_price=95000,
        customer_id=test_customer.id,
        customer_name=test_customer.name,
        car_id=test_car.id,
    )
    db_session.add(deal)
    db_session.commit()
    db_session.refresh(deal)
    return deal


@pytest.fixture()
def test_bill(db_session: Session, test_deal: Deal, test_customer: Customer) -> Bill:
    """A tax_invoice_receipt on test_deal with two payment rows."""
    bill = Bill(
        deal_id=test_deal.id,
        customer_id=test_customer.id,
        customer_name=test_customer.name,
        bill_type="tax_invoice_receipt",
        bill_direction="positive",
        status="paid",
        description="Down payment",
        amount=30000,
        total_with_tax=30000,
    )
    bill.payments.append(BillPayment(payment_type="visa", amount=20000, payment_date=date(2026, 3, 1)))
    bill.payments.append(BillPayment(payment_type="cash", amount=10000))
    db_session.add(bill)
    db_session.commit()
    db_session.refresh(bill)
    return bill


def _client_for(db_session: Session, user: User | None):
    from cardash.database import get_db
    from cardash.dependencies import require_user
    from cardash.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    if user is not None:
        app.dependency_overrides[require_user] = lambda: user
    return app


@pytest.fixture()
def client(db_session: Session, admin_user: User) -> TestClient:
    """TestClient authenticated as admin_user.

    Overrides get_db to use the test session and require_user to skip the
    session-cookie login.
    """
    app = _client_for(db_session, admin_user)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def sales_client(db_session: Session, sales_user: User) -> TestClient:
    """TestClient authenticated as the restricted sales_user."""
    app = _client_for(db_session, sales_user)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def anon_client(db_session: Session) -> TestClient:
    """TestClient with real session auth (only get_db overridden)."""
    app = _client_for(db_session, None)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
