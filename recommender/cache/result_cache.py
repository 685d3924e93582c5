"""Recommendation Cache - short-lived cache of ranked responses, keyed by request shape."""
import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from recommender.cache.store import CacheStore
from recommender.errors import CacheError

logger = logging.getLogger(__name__)

# 10 minutes
RESULT_TTL_SECONDS = 10 * 60


class RecommendationCache:
    """
    Caches serialized recommendation responses.

    Like EmbeddingCache it is never authoritative: store failures and undecodable
    entries are misses, and CacheError never leaves this class.
    """

    def __init__(
        self,
        store: Optional[CacheStore],
        version: str = "v1",
        ttl_seconds: int = RESULT_TTL_SECONDS,
        key_prefix: str = "recommendation:hybrid",
    ):
        self.store = store
        self.version = version
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    def make_key(self, parts: Mapping[str, Any]) -> str:
        """Hash the request parts (plus the scoring version) into a short key."""
        raw = json.dumps(
            {"version": self.version, **parts},
            sort_keys=True, ensure_ascii=False, separators=(",", ":"),
        )
        digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]
        return f"{self.key_prefix}:{digest}"

    def get(self, parts: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        if self.store is None:
            return None

        key = self.make_key(parts)
        try:
            raw = self.store.get(key)
        except CacheError as e:
            logger.warning(f"Recommendation cache read failed, treating as miss: {e.log_fields()}")
            return None

        if raw is None:
            return None

        try:
            entry = json.loads(raw)
            payload = entry["payload"]
        except (TypeError, ValueError, KeyError):
            payload = None
        if not isinstance(payload, dict):
            logger.warning(f"Corrupt recommendation cache entry {key}, discarding")
            self._delete_quietly(key)
            return None

        logger.debug(f"Recommendation cache hit for {key}")
        return payload

    def set(self, parts: Mapping[str, Any], payload: Dict[str, Any]) -> bool:
        """Best-effort write. Returns False instead of raising on failure."""
        if self.store is None:
            return False

        key = self.make_key(parts)
        entry = {
            "payload": payload,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.store.set(key, json.dumps(entry, ensure_ascii=False), self.ttl_seconds)
            return True
        except CacheError as e:
            logger.warning(f"Recommendation cache write failed: {e.log_fields()}")
            return False

    def invalidate(self, parts: Mapping[str, Any]) -> bool:
        if self.store is None:
            return False
        return self._delete_quietly(self.make_key(parts))

    def clear_all(self) -> int:
        """Remove every cached response. Returns the number of deleted keys (0 on failure)."""
        clear = getattr(self.store, "clear_prefix", None)
        if clear is None:
            return 0
        try:
            deleted = clear(self.key_prefix)
            logger.info(f"Cleared {deleted} recommendation cache entries")
            return deleted
        except CacheError as e:
            logger.warning(f"Recommendation cache clear failed: {e.log_fields()}")
            return 0

    def stats(self) -> Dict[str, Any]:
        get_stats = getattr(self.store, "get_stats", None)
        if get_stats is None:
            return {"available": self.store is not None}
        try:
            stats = get_stats(self.key_prefix)
        except CacheError as e:
            return {"available": False, "error": e.message}
        stats["ttl_seconds"] = self.ttl_seconds
        return stats

    def _delete_quietly(self, key: str) -> bool:
        try:
            self.store.delete(key)
            return True
        except CacheError as e:
            logger.warning(f"Recommendation cache delete failed: {e.log_fields()}")
            return False
