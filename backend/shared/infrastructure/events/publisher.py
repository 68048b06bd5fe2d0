"""
Core Event Publishing.

Session events are notifications sent after the change has been committed.
A Redis outage must never undo or fail a committed session operation, so
SessionEventPublisher logs publish failures instead of raising them.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

import redis

from shared.config.settings import settings
from shared.config.logging import get_logger
from .channels import channel_org_sessions
from .event_schema import Event
from .event_types import MAX_EVENT_SIZE
from .redis_pool import get_redis_sync_client

logger = get_logger(__name__)


class EventPublisher(Protocol):
    def publish(self, event: Event) -> None: ...


def _validate_event_size(event_json: str, event_type: str) -> None:
    size = len(event_json.encode("utf-8"))
    if size > MAX_EVENT_SIZE:
        raise ValueError(
            f"Event {event_type} exceeds max size: {size} > {MAX_EVENT_SIZE} bytes"
        )


def publish_event(redis_client: redis.Redis, channel: str, event: Event) -> int:
    """
    Publish an event to a Redis channel.

    Returns:
        Number of subscribers that received the message.

    Raises:
        ValueError: If the event is too large.
        redis.RedisError: If Redis is unreachable.
    """
    event_json = event.to_json()
    _validate_event_size(event_json, event.type)
    return redis_client.publish(channel, event_json)


class SessionEventPublisher:
    """Publishes session lifecycle events to the organization channel."""

    def __init__(
        self,
        client_factory: Callable[[], redis.Redis] = get_redis_sync_client,
        enabled: bool | None = None,
    ):
        self._client_factory = client_factory
        self._enabled = settings.session_events_enabled if enabled is None else enabled

    def publish(self, event: Event) -> None:
        if not self._enabled:
            return

        channel = channel_org_sessions(event.organization_id)
        try:
            receivers = publish_event(self._client_factory(), channel, event)
        except (redis.RedisError, ValueError) as e:
            logger.warning(
                "Session event not published",
                channel=channel,
                event_type=event.type,
                session_id=event.session_id,
                error=str(e),
            )
            return

        logger.debug("Session event published", channel=channel, event_type=event.type, receivers=receivers)
