"""
Seed data for development and testing.
Creates a demo organization with tables, service types, pricing policies
and a small consumables catalog.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import PricingKind, TableStatus
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from cuebill_api.models import (
    ConsumableCategory,
    ConsumableItem,
    Organization,
    PricingPolicy,
    ServiceType,
    VenueTable,
)

logger = get_logger(__name__)

DEMO_ORGANIZATION_SLUG = "demo-venue"

# (label, table_type)
DEMO_TABLES = [
    ("T-01", "snooker"),
    ("T-02", "snooker"),
    ("T-03", "pool"),
    ("T-04", "pool"),
]

# (category, name, price_cents, stock)
DEMO_ITEMS = [
    ("Drinks", "Cola", 250, 48),
    ("Drinks", "Sparkling water", 150, 36),
    ("Drinks", "Coffee", 200, 100),
    ("Snacks", "Chips", 300, 24),
    ("Snacks", "Peanuts", 200, 24),
]


def seed(db: Session) -> Organization:
    """
    Seed the demo organization.
    Idempotent: returns the existing organization if already seeded.
    """
    org = db.scalar(select(Organization).where(Organization.slug == DEMO_ORGANIZATION_SLUG))
    if org is not None:
        logger.info("Demo organization already seeded, skipping", organization_id=org.id)
        return org

    org = Organization(name="Demo Cue Club", slug=DEMO_ORGANIZATION_SLUG, address="1 Baize Street")
    db.add(org)
    db.flush()

    per_minute = ServiceType(
        organization_id=org.id,
        name="Per-minute play",
        pricing_kind=PricingKind.PER_MINUTE,
        description="Billed by the minute, capped at two hours",
    )
    flat = ServiceType(
        organization_id=org.id,
        name="Flat session",
        pricing_kind=PricingKind.FIXED,
        description="One price regardless of duration",
    )
    db.add_all([per_minute, flat])
    db.flush()

    for label, table_type in DEMO_TABLES:
        table = VenueTable(
            organization_id=org.id,
            label=label,
            table_type=table_type,
            status=TableStatus.AVAILABLE,
        )
        db.add(table)
        db.flush()

        snooker = table_type == "snooker"
        db.add_all([
            PricingPolicy(
                table_id=table.id,
                service_type_id=per_minute.id,
                kind=PricingKind.PER_MINUTE,
                rate_per_minute_cents=300 if snooker else 200,
                cap_minutes=120,
                unlimited_time=False,
            ),
            PricingPolicy(
                table_id=table.id,
                service_type_id=flat.id,
                kind=PricingKind.FIXED,
                fixed_amount_cents=15000 if snooker else 10000,
            ),
        ])

    categories: dict[str, ConsumableCategory] = {}
    for category_name, name, price_cents, stock in DEMO_ITEMS:
        category = categories.get(category_name)
        if category is None:
            category = ConsumableCategory(organization_id=org.id, name=category_name)
            db.add(category)
            db.flush()
            categories[category_name] = category
        db.add(
            ConsumableItem(
                organization_id=org.id,
                category_id=category.id,
                name=name,
                price_cents=price_cents,
                stock_quantity=stock,
            )
        )

    safe_commit(db)
    logger.info(
        "Demo organization seeded",
        organization_id=org.id,
        tables=len(DEMO_TABLES),
        items=len(DEMO_ITEMS),
    )
    return org
