"""
Test setup: in-memory SQLite, sandbox payments, email disabled.
Environment must be set before anything from ``tourism`` is imported.
"""
import os

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["PAYMENTS_SANDBOX"] = "true"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["ENFORCE_STATUS_TRANSITIONS"] = "false"

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from tourism.db.session import Base, SessionLocal, engine
from tourism.core.security import create_access_token, create_guest_token, hash_password, new_guest_id
from tourism.domain.parties import Caller, Guest, Registered
from tourism.main import app
from tourism.models.user import User
from tourism.models.destination import Destination  # noqa: F401
from tourism.models.product import Product
from tourism.models.booking import Booking, BookingMessage, TimelineEntry  # noqa: F401
from tourism.models.cancellation import Cancellation  # noqa: F401
from tourism.models.audit_log import AuditLog  # noqa: F401
from tourism.models.email_log import EmailLog  # noqa: F401


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def make_user(db, role: str, email: str | None = None, password: str = "secret123", **fields) -> User:
    u = User(
        id=str(uuid.uuid4()),
        email=email or f"{role}-{uuid.uuid4().hex[:6]}@example.com",
        name=fields.pop("name", role.title()),
        phone="9876543210",
        role=role,
        password_hash=hash_password(password),
        is_active=fields.pop("is_active", True),
        business_name="Test Crafts" if role == "seller" else None,
        **fields,
    )
    db.add(u)
    db.commit()
    return u


def make_product(db, seller: User, price: str = "1000.00", **fields) -> Product:
    values = dict(
        seller_id=seller.id,
        name="Dokra Figurine",
        description="Brass figurine",
        short_description="Brass",
        category="handicrafts",
        price_amount=Decimal(price),
        price_currency="INR",
        price_unit="per_item",
        in_stock=True,
        stock_quantity=10,
        available_dates=[],
        blackout_dates=[],
        tags=[],
        is_active=True,
        is_approved=True,
    )
    values.update(fields)
    p = Product(id=str(uuid.uuid4()), **values)
    db.add(p)
    db.commit()
    return p


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def token_for(user: User) -> str:
    return create_access_token(user.id, user.role)


def caller_for(user: User) -> Caller:
    return Caller(party=Registered(user.id), role=user.role, email=user.email)


def guest_caller() -> Caller:
    return Caller(party=Guest(new_guest_id()), role="tourist")


def guest_headers(guest_id: str) -> dict:
    return bearer(create_guest_token(guest_id))


def in_hours(hours: float) -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=hours)


def booking_payload(product_id: str, quantity: int = 1, start: datetime | None = None, **details) -> dict:
    d = {"quantity": quantity, "startDate": (start or in_hours(24 * 7)).isoformat()}
    d.update(details)
    return {"product": product_id, "details": d, "payment": {"method": "upi"}}


@pytest.fixture
def admin(db):
    return make_user(db, "admin")


@pytest.fixture
def seller(db):
    return make_user(db, "seller")


@pytest.fixture
def tourist(db):
    return make_user(db, "tourist")


@pytest.fixture
def product(db, seller):
    return make_product(db, seller)
