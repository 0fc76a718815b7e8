"""
Pytest fixtures for the sale engine tests.

Provides an app on in-memory SQLite, per-test table clearing, and
shop/customer/inventory factories.
"""

from datetime import date
from decimal import Decimal

import pytest
from aymur import create_app
from aymur.extensions import db
from aymur.models import Customer, InventoryItem, Shop, ShopSetting
from aymur.services import sales_service


ACTOR_ID = 42
SALE_DATE = date(2024, 12, 4)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'DEBUG',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
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


@pytest.fixture(scope='function')
def actor_id():
    return ACTOR_ID


@pytest.fixture(scope='function')
def shop(db_session):
    """Shop A with the default invoice prefix."""
    shop = Shop(name="Shop A", currency="USD", is_active=True)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def other_shop(db_session):
    """Shop B with its own invoice prefix."""
    shop = Shop(name="Shop B", currency="EUR", is_active=True)
    db_session.add(shop)
    db_session.flush()
    db_session.add(ShopSetting(shop_id=shop.id, invoice_prefix="GLD-"))
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def customer(db_session, shop):
    customer = Customer(shop_id=shop.id, full_name="Layla Haddad", phone="555-0101")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def second_customer(db_session, shop):
    customer = Customer(shop_id=shop.id, full_name="Omar Saleh")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def make_item(db_session, shop):
    """Factory for inventory items in Shop A (available unless told otherwise)."""
    counter = {"n": 0}

    def _make(status="available", name=None, shop_id=None):
        counter["n"] += 1
        item = InventoryItem(
            shop_id=shop_id or shop.id,
            item_name=name or f"Gold Ring {counter['n']}",
            barcode=f"RING-{counter['n']:04d}",
            weight_grams=Decimal("4.250"),
            metal_type="gold",
            metal_purity="21k",
            status=status,
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _make


@pytest.fixture(scope='function')
def make_sale(db_session, shop, actor_id):
    """Factory for pending sales in Shop A."""
    def _make(customer_id=None, **fields):
        return sales_service.create_sale(
            shop.id,
            actor_id,
            fields.pop("sale_date", SALE_DATE),
            fields.pop("currency", "USD"),
            customer_id=customer_id,
            **fields,
        )

    return _make
