"""Cache Store - key/value stores with TTL. Every store failure raises CacheError."""
import logging
import threading
import time
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

from redis import Redis
from redis.exceptions import RedisError

from recommender.errors import CacheError
from recommender.utils import sanitize_url

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheStore(Protocol):
    """Contract of the external cache store. Values are strings."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def ping(self) -> bool:
        ...


class RedisCacheStore:
    """
    Redis-backed cache store.

    Construction never raises: an unreachable Redis yields a store whose operations
    raise CacheError, so callers degrade to cache-miss behaviour.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        password: Optional[str] = None,
        socket_timeout: float = 1.0,
        client: Optional[Redis] = None,
    ):
        self.redis_url = redis_url
        self._redis: Optional[Redis] = client
        self._available = client is not None

        if client is None:
            try:
                self._redis = Redis.from_url(
                    redis_url,
                    password=password,
                    decode_responses=True,
                    socket_connect_timeout=socket_timeout,
                    socket_timeout=socket_timeout,
                )
                self._redis.ping()
                self._available = True
                logger.info(f"Cache connected to Redis at {sanitize_url(redis_url)}")
            except (RedisError, OSError, ValueError) as e:
                logger.warning(f"Cache Redis unavailable at {sanitize_url(redis_url)}: {e}")
                self._available = False

    @property
    def is_available(self) -> bool:
        """Check if cache is reachable right now."""
        if self._redis is None:
            return False
        try:
            return bool(self._redis.ping())
        except (RedisError, OSError):
            return False

    def _client(self, operation: str) -> Redis:
        if self._redis is None:
            raise CacheError("Redis client not initialised", operation=operation)
        return self._redis

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client("get").get(key)
        except CacheError:
            raise
        except (RedisError, OSError) as e:
            raise CacheError(f"Cache read failed for {key}", operation="get", cause=e, key=key)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self._client("set").setex(key, ttl_seconds, value)
        except CacheError:
            raise
        except (RedisError, OSError) as e:
            raise CacheError(f"Cache write failed for {key}", operation="set", cause=e, key=key)

    def delete(self, key: str) -> None:
        try:
            self._client("delete").delete(key)
        except CacheError:
            raise
        except (RedisError, OSError) as e:
            raise CacheError(f"Cache delete failed for {key}", operation="delete", cause=e, key=key)

    def ping(self) -> bool:
        try:
            return bool(self._client("ping").ping())
        except CacheError:
            raise
        except (RedisError, OSError) as e:
            raise CacheError("Cache ping failed", operation="ping", cause=e)

    def clear_prefix(self, prefix: str) -> int:
        """Delete every key under ``prefix:``. Uses SCAN, never KEYS."""
        redis = self._client("clear")
        deleted = 0
        cursor = 0
        try:
            while True:
                cursor, keys = redis.scan(cursor=cursor, match=f"{prefix}:*", count=100)
                if keys:
                    redis.delete(*keys)
                    deleted += len(keys)
                if cursor == 0:
                    break
        except (RedisError, OSError) as e:
            raise CacheError(f"Cache clear failed for prefix {prefix}", operation="clear", cause=e)
        return deleted

    def get_stats(self, prefix: str) -> Dict[str, Any]:
        redis = self._client("stats")
        try:
            info = redis.info()
            key_count = 0
            cursor = 0
            while True:
                cursor, keys = redis.scan(cursor=cursor, match=f"{prefix}:*", count=1000)
                key_count += len(keys)
                if cursor == 0:
                    break
        except (RedisError, OSError) as e:
            raise CacheError("Cache stats unavailable", operation="stats", cause=e)
        return {
            "available": True,
            "used_memory_human": info.get("used_memory_human", "unknown"),
            "keys": key_count,
        }


class InMemoryCacheStore:
    """Process-local cache store for tests and local runs. TTL is honoured on read."""

    def __init__(self, clock=time.monotonic):
        self._data: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._data[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def ping(self) -> bool:
        return True

    def clear_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._data if k.startswith(f"{prefix}:")]
            for k in keys:
                del self._data[k]
            return len(keys)

    def get_stats(self, prefix: str) -> Dict[str, Any]:
        with self._lock:
            return {
                "available": True,
                "keys": sum(1 for k in self._data if k.startswith(f"{prefix}:")),
            }

    def __len__(self) -> int:
        return len(self._data)
