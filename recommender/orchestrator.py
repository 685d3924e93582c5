#!/usr/bin/env python3
"""
Recommendation Service - public entry point of the hybrid recommendation engine.

Per request:
    Init -> CandidatesFetched -> RuleScored -> {SemanticAttempted | SemanticSkipped}
         -> Combined -> Ranked -> Done

The rule-based scorer always runs. The semantic scorer runs only when the caller sent a
non-empty query, in a worker thread bounded by ``semantic_timeout_seconds``. Whatever
happens on the semantic path, the caller gets a ranked list unless the input is invalid,
the request is cancelled, or an internal invariant breaks.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from recommender.cache.embedding_cache import EmbeddingCache
from recommender.cache.result_cache import RecommendationCache
from recommender.config_loader import RecommendationConfig
from recommender.directory import CenterDirectory
from recommender.errors import (
    RecommendationEngineError,
    RecommendationError,
    RequestCancelled,
    ValidationError,
)
from recommender.health import HealthStatus, check_health
from recommender.scorer.combiner import ScoreCombiner, normalize_weights, rank
from recommender.scorer.models import (
    MAX_PROFILE_SYMPTOMS,
    Algorithm,
    CenterType,
    FallbackReason,
    Location,
    RankedCandidate,
    ScoringFilters,
    SymptomTag,
    UserProfile,
    Weights,
)
from recommender.scorer.rule_score import RuleBasedScorer
from recommender.scorer.semantic import SemanticOutcome, SemanticScorer
from recommender.utils import normalize_query_text

module_logger = logging.getLogger(__name__)

# How often a waiting request checks the caller's cancel event
CANCEL_POLL_SECONDS = 0.05


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class UserProfileInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    age_group: Optional[str] = Field(None, alias="ageGroup")
    symptoms: List[SymptomTag] = Field(default_factory=list, max_length=MAX_PROFILE_SYMPTOMS)
    preferred_counseling_type: Optional[str] = Field(None, alias="preferredCounselingType")
    prefer_free: bool = Field(False, alias="preferFree")
    prefer_online: bool = Field(False, alias="preferOnline")

    def to_profile(self) -> UserProfile:
        return UserProfile(
            age_group=self.age_group or None,
            symptoms=frozenset(self.symptoms),
            preferred_counseling_type=self.preferred_counseling_type or None,
            prefer_free=self.prefer_free,
            prefer_online=self.prefer_online,
        )


class WeightsInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    embedding: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    rule: Optional[float] = Field(None, ge=0, allow_inf_nan=False)


class RecommendationRequest(BaseModel):
    """Inbound request. Accepts snake_case names or the camelCase names of the HTTP API."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    user_query: Optional[str] = Field(None, alias="userQuery")
    max_distance_km: Optional[float] = Field(None, alias="maxDistanceKm", gt=0, allow_inf_nan=False)
    limit: Optional[int] = None
    weights: Optional[WeightsInput] = None
    user_profile: Optional[UserProfileInput] = Field(None, alias="userProfile")
    center_types: List[CenterType] = Field(default_factory=list, alias="centerTypes")


RequestInput = Union[RecommendationRequest, Mapping[str, Any]]


def parse_request(data: RequestInput) -> RecommendationRequest:
    """Validate inbound data; pydantic failures become the engine's ValidationError."""
    if isinstance(data, RecommendationRequest):
        return data
    try:
        return RecommendationRequest.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field_name = ".".join(str(p) for p in first.get("loc", ())) or None
        raise ValidationError(
            f"Invalid request: {first.get('msg', str(e))}", field=field_name, operation="parse_request", cause=e
        )


@dataclass
class RecommendationMetadata:
    algorithm: Algorithm
    fallback_mode: bool
    fallback_reason: Optional[FallbackReason]
    query_time_ms: int
    weights: Weights
    total_count: int
    cache_hit: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algorithm": self.algorithm.value,
            "fallbackMode": self.fallback_mode,
            "fallbackReason": self.fallback_reason.value if self.fallback_reason else None,
            "queryTimeMs": self.query_time_ms,
            "weights": self.weights.to_dict(),
            "totalCount": self.total_count,
            "cacheHit": self.cache_hit,
        }


@dataclass
class RecommendationResult:
    recommendations: List[RankedCandidate]
    metadata: RecommendationMetadata

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommendations": [r.to_dict() for r in self.recommendations],
            "metadata": self.metadata.to_dict(),
        }

    def to_cache_entry(self) -> Dict[str, Any]:
        m = self.metadata
        return {
            "recommendations": [r.to_cache_entry() for r in self.recommendations],
            "metadata": {
                "algorithm": m.algorithm.value,
                "fallback_mode": m.fallback_mode,
                "fallback_reason": m.fallback_reason.value if m.fallback_reason else None,
                "weights": m.weights.to_dict(),
                "total_count": m.total_count,
            },
        }

    @classmethod
    def from_cache_entry(cls, data: Dict[str, Any], query_time_ms: int) -> "RecommendationResult":
        m = data["metadata"]
        metadata = RecommendationMetadata(
            algorithm=Algorithm(m["algorithm"]),
            fallback_mode=bool(m["fallback_mode"]),
            fallback_reason=FallbackReason(m["fallback_reason"]) if m["fallback_reason"] else None,
            query_time_ms=query_time_ms,
            weights=Weights(**m["weights"]),
            total_count=int(m["total_count"]),
            cache_hit=True,
        )
        return cls(
            recommendations=[RankedCandidate.from_cache_entry(r) for r in data["recommendations"]],
            metadata=metadata,
        )


@dataclass
class _ResolvedRequest:
    location: Location
    query: str
    filters: ScoringFilters
    limit: int
    profile: Optional[UserProfile]
    weights: Weights

    def cache_key_parts(self) -> Dict[str, Any]:
        """Request shape for the response cache; coordinates are rounded to ~11m."""
        profile = None
        if self.profile is not None:
            profile = {
                "age_group": self.profile.age_group,
                "symptoms": sorted(s.value for s in self.profile.symptoms),
                "counseling_type": self.profile.preferred_counseling_type,
                "free": self.profile.prefer_free,
                "online": self.profile.prefer_online,
            }
        return {
            "lat": f"{self.location.latitude:.4f}",
            "lng": f"{self.location.longitude:.4f}",
            "dist": self.filters.max_distance_km,
            "types": sorted(t.value for t in self.filters.center_types),
            "query": normalize_query_text(self.query),
            "weights": self.weights.to_dict(),
            "limit": self.limit,
            "profile": profile,
        }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class RecommendationService:
    """
    Coordinates the directory, both scorers and the combiner for one request at a time.

    Holds no per-request state, so one instance serves concurrent requests. Collaborators
    (including the logger and the cache) are injected.
    """

    def __init__(
        self,
        directory: CenterDirectory,
        rule_scorer: Optional[RuleBasedScorer] = None,
        semantic_scorer: Optional[SemanticScorer] = None,
        combiner: Optional[ScoreCombiner] = None,
        config: Optional[RecommendationConfig] = None,
        cache: Optional[EmbeddingCache] = None,
        logger: Optional[logging.Logger] = None,
        max_semantic_workers: int = 4,
        result_cache: Optional[RecommendationCache] = None,
    ):
        self.config = config or RecommendationConfig()
        self.directory = directory
        self.rule_scorer = rule_scorer or RuleBasedScorer(self.config.rule_weights)
        self.semantic_scorer = semantic_scorer
        self.combiner = combiner or ScoreCombiner(
            Weights(
                embedding=self.config.default_weights.embedding,
                rule=self.config.default_weights.rule,
            )
        )
        self.cache = cache
        self.result_cache = result_cache
        self.logger = logger or module_logger
        self._executor = ThreadPoolExecutor(max_workers=max_semantic_workers, thread_name_prefix="semantic")

    def close(self) -> None:
        """Stop accepting semantic work. Abandoned workers finish on their own."""
        self._executor.shutdown(wait=False)

    def __enter__(self) -> "RecommendationService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _resolve(self, request: RecommendationRequest) -> _ResolvedRequest:
        cfg = self.config

        limit = cfg.default_limit if request.limit is None else request.limit
        if limit < 1:
            raise ValidationError("limit must be at least 1", field="limit", operation="parse_request")
        if limit > cfg.max_limit:
            self.logger.info(f"Clamping limit {limit} to {cfg.max_limit}")
            limit = cfg.max_limit

        max_distance_km = request.max_distance_km or cfg.default_max_distance_km
        if max_distance_km > cfg.max_distance_km_cap:
            self.logger.info(f"Clamping maxDistanceKm {max_distance_km} to {cfg.max_distance_km_cap}")
            max_distance_km = cfg.max_distance_km_cap

        requested = None
        if request.weights is not None:
            requested = {k: v for k, v in request.weights.model_dump().items() if v is not None}
        # Rejects unusable weights before any I/O happens
        weights = normalize_weights(requested, self.combiner.default_weights)

        return _ResolvedRequest(
            location=Location(request.latitude, request.longitude),
            query=(request.user_query or "").strip(),
            filters=ScoringFilters(max_distance_km=max_distance_km, center_types=frozenset(request.center_types)),
            limit=limit,
            profile=request.user_profile.to_profile() if request.user_profile else None,
            weights=weights,
        )

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event], stage: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise RequestCancelled(f"Request cancelled at {stage}", operation=stage)

    def _run_semantic(self, candidates, resolved: _ResolvedRequest,
                      cancel_event: Optional[threading.Event]) -> SemanticOutcome:
        """Run the semantic scorer in a worker, bounded by the semantic timeout.

        Never joins an abandoned worker: on timeout or cancellation the worker's stop
        event is set and the request moves on.
        """
        stop_event = threading.Event()
        future = self._executor.submit(
            self.semantic_scorer.score, candidates, resolved.query, resolved.limit, stop_event
        )
        deadline = time.monotonic() + self.config.semantic_timeout_seconds

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                stop_event.set()
                future.cancel()
                self.logger.warning(
                    f"Semantic scoring exceeded {self.config.semantic_timeout_seconds}s, continuing in fallback mode"
                )
                return SemanticOutcome.unavailable(FallbackReason.SEMANTIC_TIMEOUT)
            try:
                return future.result(timeout=min(remaining, CANCEL_POLL_SECONDS))
            except FuturesTimeout:
                if cancel_event is not None and cancel_event.is_set():
                    stop_event.set()
                    future.cancel()
                    raise RequestCancelled("Request cancelled during semantic scoring", operation="semantic")
            except RecommendationEngineError:
                raise
            except Exception as e:
                raise RecommendationError(
                    f"Semantic scorer failed unexpectedly: {e!r}", algorithm="hybrid", operation="semantic", cause=e
                )

    def _cached_result(self, resolved: _ResolvedRequest, started: float) -> Optional[RecommendationResult]:
        if self.result_cache is None:
            return None
        parts = resolved.cache_key_parts()
        entry = self.result_cache.get(parts)
        if entry is None:
            return None
        try:
            return RecommendationResult.from_cache_entry(
                entry, query_time_ms=int(round((time.perf_counter() - started) * 1000))
            )
        except (KeyError, TypeError, ValueError) as e:
            self.logger.warning(f"Discarding undecodable recommendation cache entry: {e!r}")
            self.result_cache.invalidate(parts)
            return None

    def _store_result(self, resolved: _ResolvedRequest, result: RecommendationResult) -> None:
        if self.result_cache is None:
            return
        # A transient semantic failure is never replayed from the cache
        if result.metadata.fallback_reason not in (None, FallbackReason.NO_QUERY):
            return
        self.result_cache.set(resolved.cache_key_parts(), result.to_cache_entry())

    def recommend(
        self,
        request: RequestInput,
        cancel_event: Optional[threading.Event] = None,
    ) -> RecommendationResult:
        """Rank centers for one request.

        A cached response for the same request shape is returned as-is with
        ``metadata.cache_hit`` set.

        Raises:
            ValidationError: invalid request (the only client error)
            RequestCancelled: ``cancel_event`` was set before the request finished
            RecommendationError: internal invariant violation
        """
        started = time.perf_counter()
        resolved = self._resolve(parse_request(request))
        self._check_cancelled(cancel_event, "init")

        cached = self._cached_result(resolved, started)
        if cached is not None:
            self.logger.info(
                f"Recommendation cache hit: {len(cached.recommendations)} centers "
                f"algorithm={cached.metadata.algorithm.value} queryTimeMs={cached.metadata.query_time_ms}"
            )
            return cached

        candidates = self.directory.fetch_candidates(
            resolved.location, resolved.filters.max_distance_km, resolved.filters.center_types or None
        )
        self._check_cancelled(cancel_event, "candidates_fetched")

        rule_scores = self.rule_scorer.score(candidates, resolved.profile, resolved.filters)
        self._check_cancelled(cancel_event, "rule_scored")

        if not resolved.query:
            outcome = SemanticOutcome.unavailable(FallbackReason.NO_QUERY)
        elif self.semantic_scorer is None:
            outcome = SemanticOutcome.unavailable(FallbackReason.EMBEDDING_UNAVAILABLE)
        else:
            outcome = self._run_semantic(candidates, resolved, cancel_event)
        self._check_cancelled(cancel_event, "semantic")

        combined = self.combiner.combine(rule_scores, outcome.scores, resolved.weights)
        try:
            ranked = rank(candidates, combined.breakdowns)
        except RecommendationError as e:
            self.logger.error(f"Ranking invariant violated: {e.log_fields()}")
            raise

        top = ranked[:resolved.limit]
        metadata = RecommendationMetadata(
            algorithm=combined.algorithm,
            fallback_mode=combined.fallback_mode,
            fallback_reason=outcome.fallback_reason if combined.fallback_mode else None,
            query_time_ms=int(round((time.perf_counter() - started) * 1000)),
            weights=combined.weights,
            total_count=len(candidates),
        )
        self.logger.info(
            f"Recommended {len(top)}/{len(candidates)} centers "
            f"algorithm={metadata.algorithm.value} fallbackMode={metadata.fallback_mode} "
            f"fallbackReason={metadata.fallback_reason.value if metadata.fallback_reason else None} "
            f"queryTimeMs={metadata.query_time_ms}"
        )
        result = RecommendationResult(recommendations=top, metadata=metadata)
        self._store_result(resolved, result)
        return result

    def check_health(self) -> HealthStatus:
        """Probe the embedding provider and vector store. Never raises."""
        llm_probe = vector_probe = None
        if self.semantic_scorer is not None:
            llm_probe = self.semantic_scorer.embedding_client.probe
            vector_probe = self.semantic_scorer.vector_store.probe

        cache_probe = None
        if self.cache is not None and self.cache.store is not None:
            cache_probe = self.cache.store.ping

        return check_health(
            llm_probe, vector_probe, cache_probe,
            degraded_latency_ms=self.config.health_degraded_latency_ms,
        )
