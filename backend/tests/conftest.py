"""
Pytest fixtures for Retail Assist backend tests.

Provides the application on an in-memory database, a per-test table wipe,
catalog fixtures and the auth header every API route expects.
"""

import pytest

from retail_assist import create_app
from retail_assist.extensions import db
from retail_assist.models import Product, Stock


AUTH_TOKEN = "test-token"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'AUTH_TOKEN': AUTH_TOKEN,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture
def auth_headers():
    return {'auth-token': AUTH_TOKEN}


@pytest.fixture
def make_product(db_session):
    """
    Factory for catalog rows.

    quantity=None leaves the product without a stock record.
    """
    def _make(
        sku="BISPAR800G",
        name="Parle-G Gold Biscuits",
        price_cents=10000,
        quantity=100,
        is_active=True,
        product_type="BISCUIT",
        brand="PARLE",
        weight=800,
        weight_unit="GRAM",
    ):
        product = Product(
            sku=sku,
            name=name,
            product_type=product_type,
            brand=brand,
            weight=weight,
            weight_unit=weight_unit,
            price_cents=price_cents,
            is_active=is_active,
        )
        if quantity is not None:
            product.stock = Stock(quantity=quantity, received_total=quantity, sold_total=0)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture
def biscuits(make_product):
    """BISPAR800G with 100 on hand at 100.00."""
    return make_product()


@pytest.fixture
def sugar(make_product):
    """SUGTAT1K with 50 on hand at 50.00."""
    return make_product(
        sku="SUGTAT1K",
        name="Tata Sugar",
        price_cents=5000,
        quantity=50,
        product_type="SUGAR",
        brand="TATA",
        weight=1,
        weight_unit="KILOGRAM",
    )
