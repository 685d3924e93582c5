from dataclasses import dataclass
from typing import Optional

from recommender.cache.embedding_cache import EmbeddingCache
from recommender.cache.result_cache import RecommendationCache
from recommender.cache.store import RedisCacheStore
from recommender.config_loader import AppConfig, LlmConfig, VectorStoreConfig
from recommender.directory import SqlCenterDirectory
from recommender.llm.embedding_client import EmbeddingClient
from recommender.llm.openai_service import OpenAIEmbeddingProvider
from recommender.orchestrator import RecommendationService
from recommender.scorer.semantic import SemanticScorer
from recommender.vector.interfaces import VectorStore


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    Single source of truth for service instantiation. Building the context opens
    no database connection; the Redis store pings once and degrades if unreachable.
    """
    config: AppConfig
    recommendation_service: RecommendationService
    embedding_client: EmbeddingClient
    vector_store: VectorStore
    cache: Optional[EmbeddingCache] = None
    result_cache: Optional[RecommendationCache] = None

    @classmethod
    def build(cls, config: AppConfig) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration

        Returns:
            Fully wired AppContext instance
        """
        from database.database import make_session_factory

        session_factory = make_session_factory(config.database.url)

        provider = cls._build_embedding_provider(config.llm)

        # Cache (optional - a miss is always acceptable)
        cache = None
        result_cache = None
        if config.cache.enabled:
            store = RedisCacheStore(
                redis_url=config.cache.redis_url,
                password=config.cache.password,
                socket_timeout=config.cache.socket_timeout_seconds,
            )
            version = config.cache.provider_version or provider.provider_version
            cache = EmbeddingCache(
                store,
                provider_version=version,
                ttl_seconds=config.cache.embedding_ttl_seconds,
                key_prefix=config.cache.key_prefix,
            )
            if config.cache.result_ttl_seconds > 0:
                result_cache = RecommendationCache(
                    store,
                    version=version,
                    ttl_seconds=config.cache.result_ttl_seconds,
                    key_prefix=config.cache.result_key_prefix,
                )

        embedding_client = EmbeddingClient(
            provider,
            cache=cache,
            max_batch_size=config.llm.max_batch_size,
            max_input_chars=config.llm.max_input_chars,
            provider_retries=config.llm.provider_retries,
            backoff_base_seconds=config.llm.backoff_base_seconds,
            backoff_max_seconds=config.llm.backoff_max_seconds,
            expected_dimensions=config.llm.embedding_dimensions,
        )

        vector_store = cls._build_vector_store(config.vector_store, session_factory)

        semantic_scorer = SemanticScorer(
            embedding_client,
            vector_store,
            top_k_multiplier=config.vector_store.top_k_multiplier,
            score_threshold=config.vector_store.score_threshold,
            rate_limit_retry_cap_seconds=config.recommendation.rate_limit_retry_cap_seconds,
        )

        recommendation_service = RecommendationService(
            directory=SqlCenterDirectory(session_factory),
            semantic_scorer=semantic_scorer,
            config=config.recommendation,
            cache=cache,
            result_cache=result_cache,
        )

        return cls(
            config=config,
            recommendation_service=recommendation_service,
            embedding_client=embedding_client,
            vector_store=vector_store,
            cache=cache,
            result_cache=result_cache,
        )

    @staticmethod
    def _build_embedding_provider(llm_config: LlmConfig) -> OpenAIEmbeddingProvider:
        """Build OpenAI embedding provider from LLM configuration."""
        return OpenAIEmbeddingProvider(
            api_key=llm_config.api_key,
            base_url=llm_config.base_url,
            organization=llm_config.organization,
            model=llm_config.embedding_model,
            dimensions=llm_config.embedding_dimensions,
            timeout=llm_config.request_timeout_seconds,
            default_retry_after=llm_config.default_retry_after_seconds,
        )

    @staticmethod
    def _build_vector_store(vector_config: VectorStoreConfig, session_factory) -> VectorStore:
        """Build the configured vector store backend."""
        if vector_config.backend == "pgvector":
            from recommender.vector.pgvector_store import PgVectorStore
            return PgVectorStore(session_factory)

        from recommender.vector.qdrant_store import QdrantVectorStore
        return QdrantVectorStore(
            url=vector_config.url,
            api_key=vector_config.api_key,
            collection_name=vector_config.collection_name,
            timeout=vector_config.timeout_seconds,
        )

    def close(self) -> None:
        self.recommendation_service.close()
