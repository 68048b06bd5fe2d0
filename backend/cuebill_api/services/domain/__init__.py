"""
Domain Services.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Model (entity)

Usage:
    from cuebill_api.services.domain import SessionService

    # In router
    service = SessionService(db, clock=clock, publisher=publisher)
    closed = service.close_session(session_id, actor.organization_id)
"""

from .pricing_service import PricingService
from .session_service import SessionService, OrderAttachment, ClosedSession
from .invoice_service import InvoiceService

__all__ = [
    "PricingService",
    "SessionService",
    "OrderAttachment",
    "ClosedSession",
    "InvoiceService",
]
