"""
Test configuration for the checkout API.
"""
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from checkout import create_app
from checkout.config import TestingConfig
from checkout.extensions import db
from checkout.model import Category, Coupon, Product, User
from checkout.services.rate_limit import AllowAll


@pytest.fixture
def app():
    app = create_app(TestingConfig, rate_limiter=AllowAll())
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def catalog(app):
    """Two categories and three products: A=200, B=100 (shoes), C=50 (socks)."""
    shoes = Category(name="Shoes")
    socks = Category(name="Socks")
    db.session.add_all([shoes, socks])
    db.session.flush()

    a = Product(name="Runner", price=Decimal("200.00"), category_id=shoes.id, image_url="/img/a.png")
    b = Product(name="Trail", price=Decimal("100.00"), category_id=shoes.id)
    c = Product(name="Crew sock", price=Decimal("50.00"), category_id=socks.id)
    db.session.add_all([a, b, c])
    db.session.commit()
    return {
        "A": str(a.id),
        "B": str(b.id),
        "C": str(c.id),
        "shoes": str(shoes.id),
        "socks": str(socks.id),
    }


@pytest.fixture
def make_coupon(app):
    def _make(**overrides):
        values = {
            "code": "SAVE20",
            "type": "percentage",
            "value": Decimal("20"),
            "is_active": True,
            "apply_to_all": True,
            "used_count": 0,
        }
        values.update(overrides)
        c = Coupon(**values)
        db.session.add(c)
        db.session.commit()
        return c
    return _make


@pytest.fixture
def make_user(app):
    def _make(email="shopper@example.com", role="user"):
        u = User(email=email, name=email.split("@")[0], role=role)
        db.session.add(u)
        db.session.commit()
        return u
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def order_body(catalog):
    def _body(**overrides):
        body = {
            "customer_email": "shopper@example.com",
            "customer_name": "Mona Adel",
            "shipping_address": {"street": "12 Nile St", "city": "Cairo", "phone": "01000000000"},
            "items": [{"product_id": catalog["A"], "quantity": 2}],
            "payment_method": "cod",
        }
        body.update(overrides)
        return body
    return _body

