"""
Pytest fixtures for visitdesk backend tests.

Provides the app on in-memory SQLite, table cleanup per test, a frozen
clock, the priced catalog and helpers that put visits into a given state.
"""

import sys
from datetime import datetime, timedelta

import pytest

from visitdesk import create_app, time_utils
from visitdesk.extensions import db
from visitdesk.models import Product
from visitdesk.services import auth_service, pricing_service, visit_service

ADMIN_PASSWORD = "counter-pass-123"

# Prices in cents used throughout the suite
TEST_PRICES = {
    pricing_service.FIRST_HOUR: 1500,
    pricing_service.SUBSEQUENT_HOUR: 500,
    pricing_service.EXTENSION_HOUR: 500,
    pricing_service.DRINK: 300,
}

TEST_CONFIG = {
    'TESTING': True,
    'SECRET_KEY': 'test',
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'DEFAULT_BUFFER_MINUTES': 10,
    'MATERIALIZE_FALLBACK_MINUTES': 60,
    'PAYNOW_UEN': '',
    'LOG_LEVEL': 'WARNING',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(dict(TEST_CONFIG))

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
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


class FrozenClock:
    """Stand-in for time_utils.utcnow that only moves when told to."""

    def __init__(self, at: datetime):
        self._now = at

    def now(self) -> datetime:
        return self._now

    def advance(self, **delta) -> datetime:
        self._now = self._now + timedelta(**delta)
        return self._now


@pytest.fixture(scope='function')
def clock(app, monkeypatch):
    """utcnow() pinned to a fixed instant; use clock.advance(minutes=...) to move it."""
    frozen = FrozenClock(datetime(2026, 3, 7, 18, 0, 0))
    real_utcnow = time_utils.utcnow
    # Modules bind utcnow at import time, so patch every visitdesk module holding it
    for name, module in list(sys.modules.items()):
        if name.startswith("visitdesk") and getattr(module, "utcnow", None) is real_utcnow:
            monkeypatch.setattr(module, "utcnow", frozen.now)
    yield frozen


@pytest.fixture(scope='function')
def prices(db_session):
    """Seed the four priced products. Returns {name: Product}."""
    products = {}
    for name, price_cents in TEST_PRICES.items():
        product = Product(name=name, price_cents=price_cents, is_active=True)
        db_session.add(product)
        products[name] = product
    db_session.commit()
    return products


@pytest.fixture(scope='function')
def start_visit(db_session, prices, clock):
    """Factory: create and pay for a visit, returning the ACTIVE Visit."""
    def _start(pax=2, hours=1, name="Party", buffer_minutes=10, method="CASH"):
        visit = visit_service.create_visit(name, pax)
        visit_service.start_visit(visit.id, hours, buffer_minutes, method)
        return visit_service.get_visit(visit.id)

    return _start


@pytest.fixture(scope='function')
def admin_password():
    return ADMIN_PASSWORD


@pytest.fixture(scope='function')
def admin_client(client, db_session):
    """Test client already logged into the back office."""
    auth_service.set_admin_password(ADMIN_PASSWORD)
    response = client.post('/api/admin/login', json={'password': ADMIN_PASSWORD})
    assert response.status_code == 200
    return client
