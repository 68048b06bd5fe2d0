"""
Tests for the health endpoint and the post-commit event publisher.
"""

import redis

from shared.config.settings import settings
from shared.infrastructure.events import Event, SESSION_STARTED, SessionEventPublisher, channel_org_sessions


class TestHealth:

    def test_health_without_events(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["dependencies"]["database"]["status"] == "healthy"
        assert body["dependencies"]["redis"]["status"] == "disabled"

    def test_redis_outage_is_degraded_not_down(self, client, monkeypatch):
        monkeypatch.setattr(settings, "session_events_enabled", True)
        monkeypatch.setattr(
            "cuebill_api.routers.health.routes.check_redis_health",
            lambda: {"status": "unhealthy", "error": "Connection refused"},
        )

        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"


class FakeRedis:
    def __init__(self, fail=False):
        self.fail = fail
        self.published = []

    def publish(self, channel, message):
        if self.fail:
            raise redis.ConnectionError("Connection refused")
        self.published.append((channel, message))
        return 1


class TestSessionEventPublisher:

    def event(self):
        return Event(type=SESSION_STARTED, organization_id=7, session_id=3, table_id=2, entity={"code": "SES-7-1"})

    def test_publishes_to_organization_channel(self):
        fake = FakeRedis()
        SessionEventPublisher(client_factory=lambda: fake, enabled=True).publish(self.event())

        channel, message = fake.published[0]
        assert channel == channel_org_sessions(7) == "org:7:sessions"
        decoded = Event.from_json(message)
        assert decoded.type == SESSION_STARTED
        assert decoded.entity["code"] == "SES-7-1"

    def test_redis_failure_is_swallowed(self):
        fake = FakeRedis(fail=True)

        SessionEventPublisher(client_factory=lambda: fake, enabled=True).publish(self.event())

        assert fake.published == []

    def test_disabled_publisher_does_nothing(self):
        fake = FakeRedis()

        SessionEventPublisher(client_factory=lambda: fake, enabled=False).publish(self.event())

        assert fake.published == []
