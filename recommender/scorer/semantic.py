#!/usr/bin/env python3
"""
Semantic Scorer - similarity between the user's free-text query and each candidate.

Flow: embed the query (cache first) -> nearest-neighbour search restricted to the
candidate set -> clamp each cosine similarity into [0, 1].

Semantic scoring is an optional enhancement. Every semantic-path failure is logged and
returned as an unavailable outcome with a fallback reason; only cancellation propagates.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from recommender.errors import (
    EmbeddingGenerationError,
    EmbeddingProviderError,
    RateLimitExceeded,
    RecommendationEngineError,
    RequestCancelled,
    SemanticSearchError,
    VectorStoreError,
)
from recommender.llm.embedding_client import EmbeddingClient
from recommender.scorer.models import Candidate, FallbackReason
from recommender.utils import normalize_similarity
from recommender.vector.interfaces import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class SemanticOutcome:
    """Either ``scores`` (candidate id -> [0, 1]) or an unavailable result with a reason."""
    scores: Optional[Dict[int, float]] = None
    fallback_reason: Optional[FallbackReason] = None
    error: Optional[RecommendationEngineError] = None

    @property
    def available(self) -> bool:
        return self.scores is not None

    @classmethod
    def unavailable(cls, reason: FallbackReason, error: Optional[RecommendationEngineError] = None) -> "SemanticOutcome":
        return cls(scores=None, fallback_reason=reason, error=error)


def _wait(stop_event: Optional[threading.Event], seconds: float) -> bool:
    """Wait up to ``seconds``; True if the request was stopped meanwhile."""
    if seconds <= 0:
        return stop_event is not None and stop_event.is_set()
    if stop_event is None:
        threading.Event().wait(seconds)
        return False
    return stop_event.wait(seconds)


class SemanticScorer:
    """Scores candidates by query/center embedding similarity."""

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_store: VectorStore,
        top_k_multiplier: int = 2,
        score_threshold: float = 0.2,
        rate_limit_retry_cap_seconds: float = 2.0,
    ):
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.top_k_multiplier = top_k_multiplier
        self.score_threshold = score_threshold
        self.rate_limit_retry_cap_seconds = rate_limit_retry_cap_seconds

    def _embed_query(self, query_text: str, stop_event: Optional[threading.Event]) -> List[float]:
        """Embed with one bounded retry after a rate limit."""
        try:
            return self.embedding_client.embed(query_text, stop_event=stop_event)
        except RateLimitExceeded as e:
            wait = min(e.retry_after, self.rate_limit_retry_cap_seconds)
            logger.warning(f"Rate limited while embedding query, retrying once in {wait:.1f}s: {e.log_fields()}")
            if _wait(stop_event, wait):
                raise RequestCancelled("Rate-limit retry abandoned", operation="embed", cause=e)
            return self.embedding_client.embed(query_text, stop_event=stop_event)

    def score(
        self,
        candidates: Sequence[Candidate],
        query_text: str,
        limit: int = 5,
        stop_event: Optional[threading.Event] = None,
    ) -> SemanticOutcome:
        if not candidates:
            return SemanticOutcome(scores={})

        try:
            query_vector = self._embed_query(query_text, stop_event)
        except RateLimitExceeded as e:
            logger.warning(f"Semantic scoring unavailable, rate limit exhausted: {e.log_fields()}")
            return SemanticOutcome.unavailable(FallbackReason.RATE_LIMITED, e)
        except EmbeddingGenerationError as e:
            logger.warning(f"Semantic scoring skipped, query cannot be embedded: {e.log_fields()}")
            return SemanticOutcome.unavailable(FallbackReason.INVALID_QUERY, e)
        except EmbeddingProviderError as e:
            logger.warning(f"Semantic scoring unavailable, embedding provider failed: {e.log_fields()}")
            return SemanticOutcome.unavailable(FallbackReason.EMBEDDING_UNAVAILABLE, e)

        candidate_ids = [c.id for c in candidates]
        top_k = max(len(candidates), limit * self.top_k_multiplier)
        try:
            matches = self.vector_store.query(query_vector, top_k, candidate_ids=candidate_ids)
        except SemanticSearchError as e:
            logger.warning(f"Semantic scoring unavailable, search rejected the query: {e.log_fields()}")
            return SemanticOutcome.unavailable(FallbackReason.INVALID_QUERY, e)
        except VectorStoreError as e:
            logger.warning(f"Semantic scoring unavailable, vector store failed: {e.log_fields()}")
            return SemanticOutcome.unavailable(FallbackReason.VECTOR_STORE_UNAVAILABLE, e)

        wanted = set(candidate_ids)
        scores: Dict[int, float] = {}
        for match in matches:
            if match.candidate_id not in wanted:
                continue
            similarity = normalize_similarity(match.similarity)
            # Below threshold counts as no match; the combiner scores it 0
            if similarity < self.score_threshold:
                continue
            scores[match.candidate_id] = max(similarity, scores.get(match.candidate_id, 0.0))

        logger.debug(f"Semantic scores for {len(scores)}/{len(candidates)} candidates (top_k={top_k})")
        return SemanticOutcome(scores=scores)
