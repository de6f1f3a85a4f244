"""Shared fixtures: an in-memory database per test, tenants, users and products."""

import itertools

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from freshstock.api.deps_auth import get_app_settings, get_events, get_session_factory
from freshstock.core.config import Settings
from freshstock.core.database import Base
from freshstock.core.email import EmailService
from freshstock.core.events import EventBus
from freshstock.core.security import create_access_token, hash_password
from freshstock.main import app
from freshstock.models.business import Business, BusinessMember
from freshstock.models.notification import Notification  # noqa: F401
from freshstock.models.order import Order  # noqa: F401
from freshstock.models.product import Product
from freshstock.models.stock_movement import StockMovement  # noqa: F401
from freshstock.models.user import User
from freshstock.services.notifications import Notifier

_sku_counter = itertools.count(1)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings(scheduler_enabled=False, send_emails=False, suppress_duplicate_auto_orders=False)


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def received(events):
    """Events that actually reached the bus, as (name, payload) tuples."""
    captured = []
    events.subscribe(lambda event, payload: captured.append((event, payload)))
    return captured


@pytest.fixture
def notifier(db, events, settings):
    return Notifier(db, events, EmailService(settings))


@pytest.fixture
def make_business(db):
    def _make(name="Corner Grocery"):
        b = Business(name=name)
        db.add(b)
        db.commit()
        return b

    return _make


@pytest.fixture
def make_user(db):
    def _make(business, username, role="owner", is_active=True):
        u = User(
            username=username,
            name=username.title(),
            email=f"{username}@example.com",
            role=role,
            password_hash=hash_password("secret123"),
            business_id=business.id if business is not None else None,
            is_active=is_active,
        )
        db.add(u)
        db.flush()
        if business is not None:
            db.add(BusinessMember(business_id=business.id, user_id=u.id, role=role))
        db.commit()
        return u

    return _make


@pytest.fixture
def make_product(db):
    def _make(business, **overrides):
        values = dict(
            sku=f"SKU-{next(_sku_counter):04d}",
            name="Whole Milk",
            category="dairy",
            unit="liter",
            current_stock=5,
            min_stock_level=10,
            max_stock_level=50,
            cost_price=2.0,
            selling_price=3.0,
            reorder_quantity=20,
            supplier_name="Dairy Best",
            supplier_email="sales@dairybest.example",
        )
        values.update(overrides)
        p = Product(business_id=business.id, **values)
        db.add(p)
        db.commit()
        return p

    return _make


@pytest.fixture
def shop(make_business):
    return make_business()


@pytest.fixture
def owner(make_user, shop):
    return make_user(shop, "owner", role="owner")


@pytest.fixture
def viewer(make_user, shop):
    return make_user(shop, "viewer", role="viewer")


@pytest.fixture
def client(session_factory, events, settings):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_events] = lambda: events
    app.dependency_overrides[get_app_settings] = lambda: settings
    # no context manager: the lifespan (and its scheduler) stays off
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(u: User) -> dict:
        token = create_access_token({"sub": str(u.id), "role": u.role})
        return {"Authorization": f"Bearer {token}"}

    return _headers
