# tests/conftest.py
"""
Pytest configuration and fixtures shared by the marketplace tests.

Every test gets its own SQLite file database so concurrent-claim tests can
open independent sessions against the same store.
"""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from descuentosya.database import build_engine, build_session_factory, init_database
from descuentosya.marketplace import Marketplace
from descuentosya.models import ApprovalStatus
from descuentosya.observability.metrics import reset_metrics
from descuentosya.services.locking import EntityLockRegistry
from descuentosya.services.notification_service import NotificationService

# Pocitos, Montevideo
POCITOS = (-34.915, -56.150)


def in_days(days: float) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


@pytest.fixture
def db_engine(tmp_path):
    """SQLite file database, created fresh for each test."""
    bind = build_engine(f"sqlite:///{(tmp_path / 'descuentosya_test.db').as_posix()}", echo=False)
    init_database(bind)
    yield bind
    bind.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def clean_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def notifications():
    return NotificationService(max_per_recipient=50)


@pytest.fixture
def locks():
    return EntityLockRegistry()


@pytest.fixture
def marketplace(db_session, notifications, locks):
    return Marketplace(db_session, notifications=notifications, locks=locks)


@pytest.fixture
def make_marketplace(session_factory, notifications, locks):
    """Build extra facades over new sessions that share the notification store and locks."""
    opened = []

    def _make():
        session = session_factory()
        opened.append(session)
        return Marketplace(session, notifications=notifications, locks=locks)

    yield _make
    for session in opened:
        session.close()


@pytest.fixture
def make_business(marketplace):
    def _make(approved: bool = True, **overrides):
        payload = {
            "name": f"Test Cafe {uuid4().hex[:6]}",
            "category": "gastronomia",
            "address": "Av. Brasil 2500, Pocitos",
            "lat": POCITOS[0],
            "lng": POCITOS[1],
            "plan": "premium",
        }
        payload.update(overrides)
        if approved:
            result = marketplace.create_business(**payload)
        else:
            result = marketplace.register_business(**payload)
        assert result.success, result.message
        return result.value

    return _make


@pytest.fixture
def deal_payload():
    def _payload(**overrides):
        payload = {
            "title": "2x1 en cafe de especialidad",
            "description": "Valid for dine-in only",
            "category": "gastronomia",
            "original_price": 300,
            "discount_percent": 50,
            "available_quantity": 10,
            "expires_at": in_days(7),
            "terms": ["One coupon per visit"],
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def make_deal(marketplace, make_business, deal_payload):
    """Create an approved, visible deal (optionally for a given business)."""

    def _make(business=None, **overrides):
        business = business or make_business()
        result = marketplace.create_approved_deal(business.businessID, **deal_payload(**overrides))
        assert result.success, result.message
        assert result.value.approval_status == ApprovalStatus.APPROVED
        return result.value

    return _make


@pytest.fixture
def pending_deal(marketplace, make_business, deal_payload):
    business = make_business()
    result = marketplace.submit_deal(business.businessID, **deal_payload(title="Pending pizza"))
    assert result.success, result.message
    return result.value
