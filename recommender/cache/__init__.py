"""Cache Module - Caching services."""
from recommender.cache.store import CacheStore, RedisCacheStore, InMemoryCacheStore
from recommender.cache.embedding_cache import EmbeddingCache, EMBEDDING_TTL_SECONDS
from recommender.cache.result_cache import RecommendationCache, RESULT_TTL_SECONDS

__all__ = [
    'CacheStore',
    'RedisCacheStore',
    'InMemoryCacheStore',
    'EmbeddingCache',
    'EMBEDDING_TTL_SECONDS',
    'RecommendationCache',
    'RESULT_TTL_SECONDS',
]
