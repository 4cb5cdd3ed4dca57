from .errors import StorageUnavailable
from .kv_store import KeyValueStore, MemoryStore, RedisStore, SafeStore, redis_stores
from .redis_client import CircuitBreaker, CircuitOpenError, RedisClient

__all__ = [
    "StorageUnavailable",
    "KeyValueStore",
    "MemoryStore",
    "RedisStore",
    "SafeStore",
    "redis_stores",
    "CircuitBreaker",
    "CircuitOpenError",
    "RedisClient",
]
