"""
Event System for session lifecycle notifications via Redis pub/sub.

- event_types.py: Event type constants
- event_schema.py: Event dataclass with validation
- channels.py: Channel naming functions
- redis_pool.py: Sync connection pool and health check
- publisher.py: publish_event and the post-commit SessionEventPublisher
"""

from .event_types import (
    SESSION_STARTED,
    SESSION_PAUSED,
    SESSION_RESUMED,
    SESSION_ORDER_ADDED,
    SESSION_CLOSED,
    SESSION_CANCELLED,
    INVOICE_PAYMENT_UPDATED,
    MAX_EVENT_SIZE,
)
from .event_schema import Event
from .channels import channel_org_sessions
from .redis_pool import (
    get_redis_sync_pool,
    get_redis_sync_client,
    check_redis_health,
    close_redis_sync_pool,
)
from .publisher import EventPublisher, SessionEventPublisher, publish_event

__all__ = [
    # Event Types
    "SESSION_STARTED",
    "SESSION_PAUSED",
    "SESSION_RESUMED",
    "SESSION_ORDER_ADDED",
    "SESSION_CLOSED",
    "SESSION_CANCELLED",
    "INVOICE_PAYMENT_UPDATED",
    "MAX_EVENT_SIZE",
    # Event Schema
    "Event",
    # Channels
    "channel_org_sessions",
    # Redis Pool
    "get_redis_sync_pool",
    "get_redis_sync_client",
    "check_redis_health",
    "close_redis_sync_pool",
    # Publishing
    "EventPublisher",
    "SessionEventPublisher",
    "publish_event",
]
