"""
SQLAlchemy ORM Models Package.

- base: Base class, UTCDateTime, TimestampMixin
- organization: Organization
- table: VenueTable, ServiceType, PricingPolicy
- catalog: ConsumableCategory, ConsumableItem
- session: PlaySession, SessionOrder
- invoice: Invoice, InvoiceItem
- sequence: SequenceCounter
"""

from .base import Base, TimestampMixin, UTCDateTime, utc_now
from .organization import Organization
from .table import VenueTable, ServiceType, PricingPolicy
from .catalog import ConsumableCategory, ConsumableItem
from .session import PlaySession, SessionOrder
from .invoice import Invoice, InvoiceItem
from .sequence import SequenceCounter

__all__ = [
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "utc_now",
    "Organization",
    "VenueTable",
    "ServiceType",
    "PricingPolicy",
    "ConsumableCategory",
    "ConsumableItem",
    "PlaySession",
    "SessionOrder",
    "Invoice",
    "InvoiceItem",
    "SequenceCounter",
]
