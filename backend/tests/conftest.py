"""
Pytest fixtures for pharmastock backend tests.

Provides test database setup, tenant fixtures, medication factories and a
test client.
"""

from datetime import timedelta

import pytest
from pharmastock import create_app
from pharmastock.extensions import db
from pharmastock.models import Pharmacy
from pharmastock.services import medication_service
from pharmastock.decorators import PHARMACY_HEADER, ROLE_HEADER, USER_HEADER
from pharmastock.time_utils import today


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        # Unit tests never contend, so retries only slow failures down
        'MOVEMENT_RETRY_BACKOFF': 0.0,
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
        # Clear all data but keep schema (core deletes bypass the movement guard)
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def pharmacy(db_session):
    """Create Pharmacy A (first tenant)."""
    pharmacy = Pharmacy(name="Pharmacy A - Central", license_number="LIC-A", is_active=True)
    db_session.add(pharmacy)
    db_session.commit()
    return pharmacy


@pytest.fixture(scope='function')
def other_pharmacy(db_session):
    """Create Pharmacy B (second tenant)."""
    pharmacy = Pharmacy(name="Pharmacy B - Northside", license_number="LIC-B", is_active=True)
    db_session.add(pharmacy)
    db_session.commit()
    return pharmacy


@pytest.fixture(scope='function')
def make_medication(db_session):
    """
    Factory creating medications through the service, so opening stock is
    logged as a movement.
    """
    counter = {"n": 0}

    def _make(pharmacy_id, **overrides):
        counter["n"] += 1
        fields = {
            "name": f"Medication {counter['n']}",
            "category": "Analgesic",
            "unit": "tablet",
            "expiry_date": today() + timedelta(days=365),
            "batch_number": f"BATCH-{counter['n']:03d}",
            "supplier": "MedCo",
            "quantity": 0,
            "price_cents": 50,
            "low_stock_threshold": 10,
        }
        fields.update(overrides)
        return medication_service.create_medication(pharmacy_id=pharmacy_id, **fields)

    return _make


@pytest.fixture(scope='function')
def medication(pharmacy, make_medication):
    """Medication in Pharmacy A with 50 tablets on hand."""
    return make_medication(pharmacy.id, name="Paracetamol 500mg", quantity=50)


def _tenant_headers(pharmacy_id, role: str = "pharmacist", user_id: str = "user-1") -> dict:
    """Helper to build the identity headers set by the upstream gateway."""
    headers = {ROLE_HEADER: role, USER_HEADER: user_id}
    if pharmacy_id is not None:
        headers[PHARMACY_HEADER] = str(pharmacy_id)
    return headers


@pytest.fixture(scope='session')
def tenant_headers():
    return _tenant_headers
