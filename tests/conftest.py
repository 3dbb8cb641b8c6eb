"""
Shared fixtures: a throwaway SQLite database, a session, product factory,
and TestClients for a guest, a customer and an admin.

Environment is set before anything from config/ is imported, because
config.settings reads it at import time.
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="atelier-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CSRF_ENABLED"] = "false"
os.environ["CART_EXPIRY_HOURS"] = "0"
os.environ["ORDER_STRICT_TRANSITIONS"] = "false"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from config.database import Base, SessionLocal, engine
from common.security import create_token
from modules.auth.deps import Identity
from modules.catalog.models import Product
from main import app


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def make_product(db):
    """Factory: committed Product rows."""

    def _make(name="Ivory Silk Gown", price="1000.00", stock=10, is_active=True):
        product = Product(name=name, price=Decimal(price), stock=stock, is_active=is_active)
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture()
def stock_of(db):
    """Current stock straight from the database."""

    def _stock(product_id):
        db.expire_all()
        return db.query(Product.stock).filter(Product.id == product_id).scalar()

    return _stock


@pytest.fixture()
def customer():
    return Identity.for_user(1)


@pytest.fixture()
def other_customer():
    return Identity.for_user(2)


def _client_for(user_id=None, is_admin=False):
    client = TestClient(app)
    if user_id is not None:
        token = create_token({"sub": str(user_id), "is_admin": is_admin})
        client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest.fixture()
def guest_client():
    return _client_for()


@pytest.fixture()
def user_client():
    return _client_for(user_id=1)


@pytest.fixture()
def other_user_client():
    return _client_for(user_id=2)


@pytest.fixture()
def admin_client():
    return _client_for(user_id=99, is_admin=True)


SHIPPING = {
    "full_name": "Amelia Hart",
    "address": "12 Orchard Lane",
    "city": "Bath",
    "postal_code": "BA1 1AA",
    "country": "UK",
    "phone": "+44 7700 900123",
}


@pytest.fixture()
def shipping():
    return dict(SHIPPING)
