"""
Tests for the demo venue seed.
"""

from sqlalchemy import func, select

from cuebill_api.models import ConsumableItem, Organization, PricingPolicy, VenueTable
from cuebill_api.seed import DEMO_ITEMS, DEMO_ORGANIZATION_SLUG, DEMO_TABLES, seed
from cuebill_api.services.domain import PricingService


def test_seed_creates_a_priced_venue(db_session):
    org = seed(db_session)

    assert org.slug == DEMO_ORGANIZATION_SLUG
    tables = list(db_session.scalars(select(VenueTable).where(VenueTable.organization_id == org.id)))
    assert len(tables) == len(DEMO_TABLES)
    assert db_session.scalar(select(func.count(ConsumableItem.id))) == len(DEMO_ITEMS)

    policy = db_session.scalars(select(PricingPolicy).where(PricingPolicy.table_id == tables[0].id)).first()
    snapshot = PricingService(db_session).resolve(tables[0].id, policy.service_type_id)
    assert snapshot.kind == policy.kind


def test_seed_is_idempotent(db_session):
    first = seed(db_session)
    second = seed(db_session)

    assert second.id == first.id
    assert db_session.scalar(select(func.count(Organization.id))) == 1
    assert db_session.scalar(select(func.count(VenueTable.id))) == len(DEMO_TABLES)
