"""
Shared fixtures: in-memory SQLite, TestClient, user/product factories,
and HS256 session tokens standing in for identity-provider JWTs.
"""

import hashlib
import hmac
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_JWT_KEY"] = "test-session-secret"
os.environ["AUTH_JWT_ALGORITHM"] = "HS256"
os.environ["AUTH_JWT_ISSUER"] = ""
os.environ["CLERK_WEBHOOK_SECRET"] = "whsec_dGVzdC1zdml4LXNlY3JldC1rZXktMTIzNDU2"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_stripe_test"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "rzp_webhook_secret"
os.environ["OPENAI_API_KEY"] = "sk-openai-test"
os.environ["SCHEDULER_ENABLED"] = "false"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from config.database import Base, SessionLocal, engine
from main import app
from modules.catalog.models import Category, Product, ProductImage
from modules.customer.address_models import Address
from modules.user.models import User, UserRole


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    return TestClient(app)


def session_token(clerk_id: str) -> str:
    return jwt.encode({"sub": clerk_id}, os.environ["AUTH_JWT_KEY"], algorithm="HS256")


def hmac_hex(secret: str, message) -> str:
    """HMAC-SHA256 hex digest, as the payment gateways sign callbacks."""
    if isinstance(message, str):
        message = message.encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


@pytest.fixture
def auth_headers():

    def build(user: User) -> dict:
        return {"Authorization": f"Bearer {session_token(user.clerk_id)}"}

    return build


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def factory(role: str = UserRole.USER.value, **kwargs) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            clerk_id=kwargs.pop("clerk_id", f"user_test_{n}"),
            email=kwargs.pop("email", f"user{n}@example.com"),
            name=kwargs.pop("name", f"Test User {n}"),
            role=role,
            **kwargs,
        )
        db.add(user)
        db.commit()
        return user

    return factory


@pytest.fixture
def category(db):
    cat = Category(name="Silk Sarees", slug="silk-sarees", is_active=True)
    db.add(cat)
    db.commit()
    return cat


@pytest.fixture
def make_product(db, category):
    counter = {"n": 0}

    def factory(price="1000", stock=5, is_active=True, **kwargs) -> Product:
        counter["n"] += 1
        n = counter["n"]
        product = Product(
            name=kwargs.pop("name", f"Saree {n}"),
            slug=kwargs.pop("slug", f"saree-{n}"),
            price=Decimal(str(price)),
            stock=stock,
            is_active=is_active,
            category_id=category.id,
            **kwargs,
        )
        product.images = [ProductImage(url=f"https://img.test/saree-{n}.jpg", is_primary=True, sort_order=0)]
        db.add(product)
        db.commit()
        return product

    return factory


@pytest.fixture
def make_address(db):

    def factory(user: User) -> Address:
        address = Address(
            user_id=user.id, name=user.name, phone="9876543210",
            address_line1="12 MG Road", city="Bengaluru", state="Karnataka", pincode="560001",
        )
        db.add(address)
        db.commit()
        return address

    return factory
