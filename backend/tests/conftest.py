"""
Pytest fixtures for ledgerbook backend tests.

Provides test database setup, a business with catalog fixtures, and test client.
"""

from decimal import Decimal

import pytest
from ledgerbook import create_app
from ledgerbook.extensions import db
from ledgerbook.services import catalog_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STOCK_CAS_ATTEMPTS': 3,
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
def business(db_session):
    """Business A, the one most tests write to."""
    return catalog_service.create_business("Corner Shop", code="SHOP")


@pytest.fixture(scope='function')
def other_business(db_session):
    """Business B, for cross-tenant checks."""
    return catalog_service.create_business("Other Shop", code="OTHER")


@pytest.fixture(scope='function')
def item(business):
    """Widget with 10 in stock."""
    return catalog_service.create_item(
        business.id,
        "Widget",
        unit="pcs",
        stock_quantity=Decimal("10"),
        min_stock=Decimal("3"),
        selling_price_cents=5000,
        purchase_price_cents=3000,
    )


@pytest.fixture(scope='function')
def second_item(business):
    """Gadget with 5 in stock."""
    return catalog_service.create_item(
        business.id,
        "Gadget",
        stock_quantity=Decimal("5"),
        selling_price_cents=2000,
    )


@pytest.fixture(scope='function')
def customer(business):
    return catalog_service.create_party(business.id, "Acme Retail", party_type="CUSTOMER")

