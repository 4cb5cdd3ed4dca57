"""Key-value stores backing the session (per-tab) and long-lived (per-device) state."""

from typing import Protocol

import redis

from config import Settings, configure_logging
from storage.errors import StorageUnavailable
from storage.redis_client import RedisClient


class KeyValueStore(Protocol):
    """String-to-string store with the semantics of browser Web Storage."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore:
    """Process-local store. Used for tests and as the degraded fallback."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class RedisStore:
    """
    Redis-backed store scoped to one visitor (long-lived) or one browsing
    session (per-tab). Keys are namespaced as ``{namespace}:{scope}:{key}``.

    A ``ttl_sec`` makes every write sliding-expire, which is how a per-session
    scope ends when the visitor goes away; long-lived scopes pass ``None``.
    """

    def __init__(self, client: RedisClient, namespace: str, scope: str, ttl_sec: int | None = None):
        self._client = client
        self._prefix = f"{namespace}:{scope}:"
        self._ttl = ttl_sec

    def _key(self, key: str) -> str:
        return self._prefix + key

    def get(self, key: str) -> str | None:
        def _op(r):
            return r.get(self._key(key))
        return self._run(_op)

    def set(self, key: str, value: str) -> None:
        def _op(r):
            r.set(self._key(key), value, ex=self._ttl)
        self._run(_op)

    def delete(self, key: str) -> None:
        def _op(r):
            r.delete(self._key(key))
        self._run(_op)

    def _run(self, op):
        try:
            return self._client.execute_with_retry(op)
        except redis.RedisError as e:
            raise StorageUnavailable(str(e)) from e


def redis_stores(
    client: RedisClient, settings: Settings, visitor_id: str, browsing_session: str
) -> tuple[RedisStore, RedisStore]:
    """
    Build the (session, long-lived) store pair for one visitor. The session
    scope expires after `session_ttl_sec` of inactivity; the visitor scope
    never expires.
    """
    session = RedisStore(
        client,
        settings.store_namespace,
        f"session:{browsing_session}",
        ttl_sec=settings.session_ttl_sec,
    )
    local = RedisStore(client, settings.store_namespace, f"visitor:{visitor_id}")
    return session, local


class SafeStore:
    """
    Wraps a store so that no read or write ever raises into tracking code.

    The first failure logs ``storage_degraded`` and switches the wrapper to an
    in-memory store for the rest of the process lifetime, seeded with whatever
    was read or written through it so far.
    """

    def __init__(self, inner: KeyValueStore | None, name: str, log=None):
        self._inner = inner
        self._fallback = MemoryStore()
        self._degraded = inner is None
        self.name = name
        self.log = log or configure_logging("storage")

    @property
    def degraded(self) -> bool:
        return self._degraded

    def get(self, key: str) -> str | None:
        if not self._degraded:
            try:
                value = self._inner.get(key)
                if value is not None:
                    self._fallback.set(key, value)
                return value
            except Exception as e:
                self._degrade(e)
        return self._fallback.get(key)

    def set(self, key: str, value: str) -> None:
        self._fallback.set(key, value)
        if not self._degraded:
            try:
                self._inner.set(key, value)
            except Exception as e:
                self._degrade(e)

    def delete(self, key: str) -> None:
        self._fallback.delete(key)
        if not self._degraded:
            try:
                self._inner.delete(key)
            except Exception as e:
                self._degrade(e)

    def _degrade(self, error: Exception):
        self._degraded = True
        self.log.warning(
            "storage_degraded",
            store=self.name,
            error_type=type(error).__name__,
            error=str(error),
        )
