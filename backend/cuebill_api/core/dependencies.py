"""
FastAPI dependencies wiring domain services to the request.

Tests override ``get_clock`` and ``get_event_publisher`` through
``app.dependency_overrides`` to control time and capture events.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from fastapi import Depends, Query
from sqlalchemy.orm import Session

from shared.config.constants import Limits
from shared.infrastructure.db import get_db
from shared.infrastructure.events import EventPublisher, SessionEventPublisher
from cuebill_api.models import utc_now
from cuebill_api.services.domain import InvoiceService, SessionService


_publisher = SessionEventPublisher()


def get_clock() -> Callable[[], datetime]:
    return utc_now


def get_event_publisher() -> EventPublisher:
    return _publisher


def get_session_service(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> SessionService:
    return SessionService(db, clock=clock, publisher=publisher)


def get_invoice_service(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> InvoiceService:
    return InvoiceService(db, clock=clock, publisher=publisher)


@dataclass
class Pagination:
    """Limit/offset pair, clamped to the allowed page size."""

    limit: int
    offset: int

    def __post_init__(self):
        self.limit = min(max(1, self.limit), Limits.MAX_PAGE_SIZE)
        self.offset = max(0, self.offset)


def get_pagination(
    limit: int = Query(Limits.DEFAULT_PAGE_SIZE, ge=1, le=Limits.MAX_PAGE_SIZE, description="Max items to return"),
    offset: int = Query(0, ge=0, description="Items to skip"),
) -> Pagination:
    return Pagination(limit=limit, offset=offset)
