"""Resilient Redis client with connection pooling and circuit breaker."""

import time
from typing import Any, Callable

import redis

from config import Settings, configure_logging
from storage.errors import StorageUnavailable


class CircuitBreaker:
    """
    Three-state circuit breaker: CLOSED → OPEN → HALF_OPEN.

    CLOSED: Normal operation. Track consecutive failures.
    OPEN:   After failure_threshold failures, reject all calls immediately.
    HALF_OPEN: After recovery_timeout, allow one test call through.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        now: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.state = "closed"
        self.failure_count = 0
        self.last_failure_time = 0.0
        self._now = now

    def can_execute(self) -> bool:
        if self.state == "closed":
            return True
        if self.state == "open":
            if self._now() - self.last_failure_time > self.recovery_timeout:
                self.state = "half_open"
                return True
            return False
        # half_open: allow one test call
        return True

    def record_success(self):
        self.failure_count = 0
        self.state = "closed"

    def record_failure(self):
        self.failure_count += 1
        self.last_failure_time = self._now()
        if self.failure_count >= self.failure_threshold or self.state == "half_open":
            self.state = "open"


class CircuitOpenError(StorageUnavailable):
    pass


class RedisClient:
    """Redis client wrapper used as the durable session / visitor store.

    Session state is small and read on every tracking call, so failures are
    retried briefly and then fail fast behind the circuit breaker; callers
    degrade to in-memory state instead of waiting on a dead server.
    """

    def __init__(self, settings: Settings, max_retries: int = 2):
        self.log = configure_logging("redis-client", settings.log_level)
        self._pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            max_connections=settings.redis_pool_size,
            decode_responses=True,
        )
        self._circuit = CircuitBreaker(failure_threshold=3, recovery_timeout=30)
        self._max_retries = max_retries
        self.log.info("redis_pool_created", url=settings.redis_url, pool_size=settings.redis_pool_size)

    def get_client(self) -> redis.Redis:
        return redis.Redis(connection_pool=self._pool)

    def execute_with_retry(self, func: Callable[[redis.Redis], Any]) -> Any:
        """Execute a Redis operation with circuit breaker and retry logic."""
        if not self._circuit.can_execute():
            raise CircuitOpenError("Redis circuit breaker is OPEN, failing fast")

        last_error: Exception | None = None
        for attempt in range(self._max_retries):
            try:
                result = func(self.get_client())
                self._circuit.record_success()
                return result
            except (redis.ConnectionError, redis.TimeoutError) as e:
                last_error = e
                self._circuit.record_failure()
                if attempt < self._max_retries - 1:
                    backoff = 0.05 * (2 ** attempt)
                    self.log.warning(
                        "redis_retry",
                        attempt=attempt + 1,
                        backoff=backoff,
                        error=str(e),
                    )
                    time.sleep(backoff)

        raise StorageUnavailable(f"Redis unreachable: {last_error}") from last_error

    def close(self):
        self._pool.disconnect()
        self.log.info("redis_pool_closed")
