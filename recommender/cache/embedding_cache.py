"""Embedding Cache - call-site wrapper that turns every cache failure into a miss."""
import json
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from recommender.cache.store import CacheStore
from recommender.errors import CacheError
from recommender.utils import text_fingerprint

logger = logging.getLogger(__name__)

# 1 hour
EMBEDDING_TTL_SECONDS = 60 * 60


class EmbeddingCache:
    """
    Caches query embeddings keyed by (normalized text, provider version).

    The cache is never authoritative: a failure, a miss and a corrupt entry all look the
    same to callers, who fall through to recomputation. CacheError never leaves this class.
    """

    def __init__(
        self,
        store: Optional[CacheStore],
        provider_version: str,
        ttl_seconds: int = EMBEDDING_TTL_SECONDS,
        key_prefix: str = "embedding",
    ):
        self.store = store
        self.provider_version = provider_version
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    def make_key(self, text: str) -> str:
        return f"{self.key_prefix}:{self.provider_version}:{text_fingerprint(text)}"

    def get(self, text: str) -> Optional[List[float]]:
        if self.store is None:
            return None

        key = self.make_key(text)
        try:
            raw = self.store.get(key)
        except CacheError as e:
            logger.warning(f"Embedding cache read failed, treating as miss: {e.log_fields()}")
            return None

        if raw is None:
            logger.debug(f"Embedding cache miss for {key}")
            return None

        embedding = self._decode(raw)
        if embedding is None:
            logger.warning(f"Corrupt embedding cache entry {key}, discarding")
            self._delete_quietly(key)
            return None

        logger.debug(f"Embedding cache hit for {key}")
        return embedding

    def set(self, text: str, embedding: List[float], model: Optional[str] = None) -> bool:
        """Best-effort write. Returns False instead of raising on failure."""
        if self.store is None:
            return False

        key = self.make_key(text)
        entry = {
            "embedding": list(embedding),
            "model": model or self.provider_version,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.store.set(key, json.dumps(entry), self.ttl_seconds)
            return True
        except CacheError as e:
            logger.warning(f"Embedding cache write failed: {e.log_fields()}")
            return False

    def invalidate(self, text: str) -> bool:
        if self.store is None:
            return False
        return self._delete_quietly(self.make_key(text))

    def clear_all(self) -> int:
        """Remove every embedding entry. Returns the number of deleted keys (0 on failure)."""
        clear = getattr(self.store, "clear_prefix", None)
        if clear is None:
            return 0
        try:
            deleted = clear(self.key_prefix)
            logger.info(f"Cleared {deleted} embedding cache entries")
            return deleted
        except CacheError as e:
            logger.warning(f"Embedding cache clear failed: {e.log_fields()}")
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
            logger.warning(f"Embedding cache delete failed: {e.log_fields()}")
            return False

    @staticmethod
    def _decode(raw: Any) -> Optional[List[float]]:
        try:
            data = json.loads(raw)
            embedding = data["embedding"]
            if not isinstance(embedding, list) or not embedding:
                return None
            values = [float(v) for v in embedding]
        except (TypeError, ValueError, KeyError):
            return None
        if not all(math.isfinite(v) for v in values):
            return None
        return values
