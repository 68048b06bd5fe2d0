"""
Infrastructure module: Database, request correlation and Redis/events.

Provides:
- Database engine, sessions and transactions (db.py)
- X-Request-ID propagation (correlation.py)
- Redis pub/sub for session lifecycle events (events/)
"""

from shared.infrastructure.db import (
    engine,
    SessionLocal,
    create_db_engine,
    get_db,
    get_db_context,
    safe_commit,
    transaction_scope,
)
from shared.infrastructure.events import (
    SessionEventPublisher,
    get_redis_sync_client,
    close_redis_sync_pool,
    publish_event,
)

__all__ = [
    # db
    "engine",
    "SessionLocal",
    "create_db_engine",
    "get_db",
    "get_db_context",
    "safe_commit",
    "transaction_scope",
    # events (Redis)
    "SessionEventPublisher",
    "get_redis_sync_client",
    "close_redis_sync_pool",
    "publish_event",
]
