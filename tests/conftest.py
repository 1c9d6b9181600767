"""Shared fixtures: in-memory database, API client, users and catalog factories"""

import os

# Settings are read at import time, so the environment is fixed before the app loads
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
for var in ("WHATSAPP_ACCESS_TOKEN", "WHATSAPP_PHONE_NUMBER_ID", "WHATSAPP_VERIFY_TOKEN", "R2_ACCOUNT_ID"):
    os.environ.pop(var, None)

from datetime import date, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from salon.database import Base, get_db  # noqa: E402
from salon.main import app  # noqa: E402
from salon.models import User, default_preferences  # noqa: E402
from salon.models_catalog import Package, Product, Service, Stylist  # noqa: E402
from salon.security_utils import create_access_token, hash_password_bcrypt  # noqa: E402

TEST_PASSWORD = "secret123"

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def next_working_day(days_ahead: int = 2) -> date:
    """A future Monday-Saturday date (default stylist schedule)"""
    day = date.today() + timedelta(days=days_ahead)
    while day.weekday() == 6:
        day += timedelta(days=1)
    return day


def next_sunday() -> date:
    day = date.today() + timedelta(days=1)
    while day.weekday() != 6:
        day += timedelta(days=1)
    return day


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    counter = {"value": 0}

    def _make_user(role: str = "customer", phone: str = None, **overrides) -> User:
        counter["value"] += 1
        user = User(
            name=overrides.pop("name", f"Test User {counter['value']}"),
            email=overrides.pop("email", f"user{counter['value']}@example.com"),
            phone=phone,
            password_hash=hash_password_bcrypt(TEST_PASSWORD),
            role=role,
            is_active=overrides.pop("is_active", True),
            preferences=overrides.pop("preferences", None) or default_preferences(),
            **overrides,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def customer(make_user):
    return make_user(name="Priya Sharma", email="priya@example.com", phone="+919876543210")


@pytest.fixture
def other_customer(make_user):
    return make_user(name="Anita Rao", email="anita@example.com")


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", name="Salon Admin", email="admin@example.com")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


# ============================================================================
# CATALOG FACTORIES
# ============================================================================


@pytest.fixture
def make_service(db_session):
    def _make_service(**overrides) -> Service:
        values = {
            "name": "Haircut & Styling",
            "duration": 60,
            "price": 800.0,
            "category": "hair",
            "available_at_home": True,
            "available_at_salon": True,
        }
        values.update(overrides)
        service = Service(**values)
        db_session.add(service)
        db_session.commit()
        db_session.refresh(service)
        return service

    return _make_service


@pytest.fixture
def make_stylist(db_session):
    def _make_stylist(**overrides) -> Stylist:
        values = {
            "name": "Meera Kapoor",
            "email": "meera@salon.example.com",
            "specialties": ["Haircut", "Coloring"],
            "experience": 6,
            "rating": 4.5,
            "working_hours": {"start": "09:00", "end": "18:00"},
            "working_days": ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday"],
            "available_for_home": True,
            "available_for_salon": True,
        }
        values.update(overrides)
        stylist = Stylist(**values)
        db_session.add(stylist)
        db_session.commit()
        db_session.refresh(stylist)
        return stylist

    return _make_stylist


@pytest.fixture
def make_product(db_session):
    def _make_product(**overrides) -> Product:
        values = {
            "name": "Argan Oil Shampoo",
            "category": "hair_care",
            "price": 250.0,
            "stock": 10,
            "brand": "Glow",
            "reorder_level": 3,
        }
        values.update(overrides)
        product = Product(**values)
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make_product


@pytest.fixture
def make_package(db_session):
    def _make_package(**overrides) -> Package:
        values = {
            "name": "Gold Membership",
            "price": 2000.0,
            "duration": 3,
            "duration_unit": "months",
            "benefits": ["10% off services", "Priority booking"],
            "discount_percentage": 10,
            "max_appointments": 2,
        }
        values.update(overrides)
        package = Package(**values)
        db_session.add(package)
        db_session.commit()
        db_session.refresh(package)
        return package

    return _make_package


SHIPPING_ADDRESS = {
    "name": "Priya Sharma",
    "street": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "zip_code": "560001",
    "country": "India",
    "phone": "9876543210",
}
