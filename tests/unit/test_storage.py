"""Tests for the key-value stores and the Redis circuit breaker."""

import pytest
import redis
from structlog.testing import capture_logs

from storage.errors import StorageUnavailable
from storage.kv_store import MemoryStore, RedisStore, SafeStore, redis_stores
from storage.redis_client import CircuitBreaker, CircuitOpenError, RedisClient
from tracker.session import SESSION_ID_KEY, SessionManager


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.expiry = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex

    def delete(self, key):
        self.data.pop(key, None)


class FakeRedisClient:
    """Runs operations against FakeRedis the way RedisClient.execute_with_retry does."""

    def __init__(self, error: Exception | None = None):
        self.redis = FakeRedis()
        self.error = error

    def execute_with_retry(self, func):
        if self.error is not None:
            raise self.error
        return func(self.redis)


class FlakyStore(MemoryStore):
    def __init__(self):
        super().__init__()
        self.broken = False

    def get(self, key):
        if self.broken:
            raise StorageUnavailable("quota exceeded")
        return super().get(key)

    def set(self, key, value):
        if self.broken:
            raise StorageUnavailable("quota exceeded")
        super().set(key, value)


class TestMemoryStore:
    def test_get_set_delete(self):
        s = MemoryStore({"a": "1"})
        assert s.get("a") == "1"
        s.set("b", "2")
        s.delete("a")
        s.delete("missing")
        assert s.snapshot() == {"b": "2"}


class TestRedisStore:
    def test_keys_are_namespaced(self):
        client = FakeRedisClient()
        store = RedisStore(client, "telemetry", "visitor-1")
        store.set("analytics_returning_user", "true")
        assert client.redis.data == {"telemetry:visitor-1:analytics_returning_user": "true"}
        assert store.get("analytics_returning_user") == "true"

    def test_ttl_applied_on_write(self):
        client = FakeRedisClient()
        store = RedisStore(client, "telemetry", "session-1", ttl_sec=1800)
        store.set("analytics_page_views", "3")
        assert client.redis.expiry["telemetry:session-1:analytics_page_views"] == 1800

    def test_delete(self):
        client = FakeRedisClient()
        store = RedisStore(client, "ns", "s")
        store.set("k", "v")
        store.delete("k")
        assert store.get("k") is None

    def test_redis_errors_become_storage_unavailable(self):
        store = RedisStore(FakeRedisClient(error=redis.ResponseError("WRONGTYPE")), "ns", "s")
        with pytest.raises(StorageUnavailable):
            store.get("k")


class TestSafeStore:
    def test_passes_through_when_healthy(self):
        inner = MemoryStore()
        s = SafeStore(inner, "session")
        s.set("k", "v")
        assert inner.get("k") == "v"
        assert s.get("k") == "v"
        assert not s.degraded

    def test_none_inner_is_memory_only(self):
        s = SafeStore(None, "local")
        assert s.degraded
        s.set("k", "v")
        assert s.get("k") == "v"

    def test_degrades_on_failure_and_keeps_values(self):
        inner = FlakyStore()
        s = SafeStore(inner, "session")
        s.set("k", "v")
        inner.broken = True
        with capture_logs() as logs:
            assert s.get("k") == "v"
            s.set("k2", "v2")
        assert s.degraded
        assert s.get("k2") == "v2"
        degraded = [entry for entry in logs if entry["event"] == "storage_degraded"]
        assert len(degraded) == 1
        assert degraded[0]["store"] == "session"

    def test_reads_are_mirrored(self):
        inner = FlakyStore()
        inner.set("k", "from-disk")
        s = SafeStore(inner, "local")
        assert s.get("k") == "from-disk"
        inner.broken = True
        assert s.get("k") == "from-disk"


class TestCircuitBreaker:
    def test_opens_after_threshold(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=30, now=lambda: 0.0)
        for _ in range(3):
            cb.record_failure()
        assert cb.state == "open"
        assert cb.can_execute() is False

    def test_half_open_after_recovery(self):
        t = [0.0]
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=30, now=lambda: t[0])
        cb.record_failure()
        t[0] = 31.0
        assert cb.can_execute() is True
        assert cb.state == "half_open"
        cb.record_success()
        assert cb.state == "closed"

    def test_half_open_failure_reopens(self):
        t = [0.0]
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=10, now=lambda: t[0])
        for _ in range(5):
            cb.record_failure()
        t[0] = 11.0
        cb.can_execute()
        cb.record_failure()
        assert cb.state == "open"


class TestRedisStores:
    def test_scopes_and_ttl(self, settings):
        client = FakeRedisClient()
        session, local = redis_stores(client, settings, visitor_id="v-1", browsing_session="tab-9")
        session.set("analytics_page_views", "1")
        local.set("analytics_returning_user", "true")
        assert client.redis.expiry == {
            "telemetry:session:tab-9:analytics_page_views": 1800,
            "telemetry:visitor:v-1:analytics_returning_user": None,
        }

    def test_backs_a_session_manager(self, settings, environment, clock):
        client = FakeRedisClient()
        session, local = redis_stores(client, settings, "v-1", "tab-1")
        first = SessionManager(session, local, environment, clock).get_or_create_session()
        assert client.redis.data["telemetry:session:tab-1:" + SESSION_ID_KEY] == first.session_id

        other_session, same_visitor = redis_stores(client, settings, "v-1", "tab-2")
        second = SessionManager(other_session, same_visitor, environment, clock).get_or_create_session()
        assert second.session_id != first.session_id
        assert second.is_returning_user is True


class TestRedisClient:
    def test_connection_errors_become_storage_unavailable(self, settings):
        client = RedisClient(settings)

        def down(r):
            raise redis.ConnectionError("refused")

        with pytest.raises(StorageUnavailable):
            client.execute_with_retry(down)

    def test_circuit_opens_and_fails_fast(self, settings):
        client = RedisClient(settings)
        calls = []

        def down(r):
            calls.append(1)
            raise redis.ConnectionError("refused")

        for _ in range(2):
            with pytest.raises(StorageUnavailable):
                client.execute_with_retry(down)
        with pytest.raises(CircuitOpenError):
            client.execute_with_retry(down)
        assert len(calls) == 4

    def test_success(self, settings):
        client = RedisClient(settings)
        assert client.execute_with_retry(lambda r: "pong") == "pong"
