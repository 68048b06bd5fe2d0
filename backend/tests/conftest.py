"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Must be set before the application modules read their settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SESSION_EVENTS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from cuebill_api.core.dependencies import get_clock, get_event_publisher
from cuebill_api.main import app
from cuebill_api.models import (
    Base,
    ConsumableItem,
    Organization,
    PricingPolicy,
    ServiceType,
    VenueTable,
)
from cuebill_api.services.domain import SessionService
from cuebill_api.services.locks import KeyedLockRegistry
from shared.config.constants import Capabilities, PricingKind, TableStatus
from shared.infrastructure.db import create_db_engine, get_db
from shared.infrastructure.events import Event
from shared.security.auth import sign_jwt


START = datetime(2024, 5, 13, 18, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable UTC clock. Call it to read, advance() to move it."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class RecordingPublisher:
    """Keeps every published event in memory."""

    def __init__(self):
        self.events: list[Event] = []

    def publish(self, event: Event) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [e.type for e in self.events]


@dataclass
class Venue:
    """Ids of the seeded test venue."""

    organization_id: int
    table_id: int
    other_table_id: int
    capped_service_id: int  # 2.00/min, cap 60
    fixed_service_id: int  # 100.00 flat
    unlimited_service_id: int  # 1.50/min, no cap
    unpriced_service_id: int  # no policy at all
    nachos_id: int  # 20.00, stock 10
    cola_id: int  # 5.00, stock 10
    cigar_id: int  # switched off


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    test_engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def file_engine_factory(tmp_path):
    """
    Build file-backed SQLite engines for multi-threaded tests.

    Each connection starts its transactions with BEGIN IMMEDIATE, so writers
    queue on the database lock instead of failing on upgrade.
    """
    engines = []

    def _factory():
        file_engine = create_db_engine(f"sqlite:///{tmp_path / 'concurrency.db'}", sqlite_begin="BEGIN IMMEDIATE")
        Base.metadata.create_all(bind=file_engine)
        engines.append(file_engine)
        return file_engine

    yield _factory

    for file_engine in engines:
        file_engine.dispose()


# =============================================================================
# Time, events, locks
# =============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def events():
    return RecordingPublisher()


@pytest.fixture
def locks():
    return KeyedLockRegistry(timeout_seconds=5)


@pytest.fixture
def service(db_session, clock, events, locks):
    return SessionService(db_session, clock=clock, publisher=events, locks=locks)


# =============================================================================
# Seed data
# =============================================================================


def seed_venue(db) -> Venue:
    """Insert one organization with two tables, four service types and three items."""
    org = Organization(name="Test Cue Club", slug="test-cue-club")
    db.add(org)
    db.flush()

    capped = ServiceType(organization_id=org.id, name="Per-minute", pricing_kind=PricingKind.PER_MINUTE)
    fixed = ServiceType(organization_id=org.id, name="Flat", pricing_kind=PricingKind.FIXED)
    unlimited = ServiceType(organization_id=org.id, name="Open play", pricing_kind=PricingKind.PER_MINUTE)
    unpriced = ServiceType(organization_id=org.id, name="Tournament", pricing_kind=PricingKind.FIXED)
    db.add_all([capped, fixed, unlimited, unpriced])
    db.flush()

    tables = [
        VenueTable(organization_id=org.id, label="T-01", table_type="snooker", status=TableStatus.AVAILABLE),
        VenueTable(organization_id=org.id, label="T-02", table_type="pool", status=TableStatus.AVAILABLE),
    ]
    db.add_all(tables)
    db.flush()

    for table in tables:
        db.add_all([
            PricingPolicy(
                table_id=table.id,
                service_type_id=capped.id,
                kind=PricingKind.PER_MINUTE,
                rate_per_minute_cents=200,
                cap_minutes=60,
                unlimited_time=False,
            ),
            PricingPolicy(
                table_id=table.id,
                service_type_id=fixed.id,
                kind=PricingKind.FIXED,
                fixed_amount_cents=10000,
            ),
            PricingPolicy(
                table_id=table.id,
                service_type_id=unlimited.id,
                kind=PricingKind.PER_MINUTE,
                rate_per_minute_cents=150,
                unlimited_time=True,
            ),
        ])

    nachos = ConsumableItem(organization_id=org.id, name="Nachos", price_cents=2000, stock_quantity=10)
    cola = ConsumableItem(organization_id=org.id, name="Cola", price_cents=500, stock_quantity=10)
    cigar = ConsumableItem(organization_id=org.id, name="Cigar", price_cents=1500, stock_quantity=5, is_available=False)
    db.add_all([nachos, cola, cigar])
    db.commit()

    return Venue(
        organization_id=org.id,
        table_id=tables[0].id,
        other_table_id=tables[1].id,
        capped_service_id=capped.id,
        fixed_service_id=fixed.id,
        unlimited_service_id=unlimited.id,
        unpriced_service_id=unpriced.id,
        nachos_id=nachos.id,
        cola_id=cola.id,
        cigar_id=cigar.id,
    )


@pytest.fixture
def venue(db_session) -> Venue:
    return seed_venue(db_session)


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture
def client(db_session, clock, events):
    """
    Create a test client with database, clock and publisher overrides.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_event_publisher] = lambda: events

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def make_auth_headers(
    organization_id: int,
    capabilities: list[str] | None = None,
    actor_id: int = 42,
) -> dict[str, str]:
    if capabilities is None:
        capabilities = sorted(Capabilities.ALL)
    token = sign_jwt({"sub": str(actor_id), "organization_id": organization_id, "capabilities": capabilities})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(venue):
    """Staff token with every capability for the seeded organization."""
    return make_auth_headers(venue.organization_id)


@pytest.fixture
def headers_for():
    """Factory for tokens with a chosen organization and capabilities."""
    return make_auth_headers
