#!/usr/bin/env python3
"""
Scoring Models - Data structures shared by the scorers, combiner and orchestrator.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, FrozenSet

from recommender.utils import walk_time_minutes


class CenterType(str, Enum):
    WELFARE_CENTER = "welfare-center"
    SUICIDE_PREVENTION = "suicide-prevention"
    ADDICTION_MANAGEMENT = "addiction-management"
    YOUTH_COUNSELING = "youth-counseling"
    CHILD_PROTECTION = "child-protection"


class SymptomTag(str, Enum):
    DEPRESSION = "depression"
    ANXIETY = "anxiety"
    STRESS = "stress"
    INSOMNIA = "insomnia"
    PANIC = "panic"
    OBSESSIVE_COMPULSIVE = "obsessive-compulsive"
    TRAUMA = "trauma"
    RELATIONSHIPS = "relationships"
    FAMILY_CONFLICT = "family-conflict"
    WORK_STRESS = "work-stress"
    ACADEMIC_STRESS = "academic-stress"
    ADDICTION = "addiction"
    SUICIDAL_THOUGHTS = "suicidal-thoughts"
    SELF_HARM = "self-harm"
    BULLYING = "bullying"
    ABUSE = "abuse"


MAX_PROFILE_SYMPTOMS = 10


class Algorithm(str, Enum):
    RULE_BASED = "rule_based"
    HYBRID = "hybrid"
    SEMANTIC = "semantic"


class FallbackReason(str, Enum):
    """Why a request was answered with rule-based scores only."""
    NO_QUERY = "no_query"
    EMBEDDING_UNAVAILABLE = "embedding_unavailable"
    RATE_LIMITED = "rate_limited"
    VECTOR_STORE_UNAVAILABLE = "vector_store_unavailable"
    SEMANTIC_TIMEOUT = "semantic_timeout"
    INVALID_QUERY = "invalid_query"


class SimilarityLevel(str, Enum):
    """Coarse band of a normalized embedding similarity."""
    VERY_HIGH = "very_high"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def similarity_level(score: Optional[float]) -> Optional[SimilarityLevel]:
    if score is None:
        return None
    if score >= 0.9:
        return SimilarityLevel.VERY_HIGH
    if score >= 0.7:
        return SimilarityLevel.HIGH
    if score >= 0.5:
        return SimilarityLevel.MEDIUM
    return SimilarityLevel.LOW


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class CenterProgram:
    """Active program offered by a center."""
    name: str
    program_type: Optional[str] = None
    target_group: Optional[str] = None
    is_free: bool = False
    is_online_available: bool = False


@dataclass(frozen=True)
class Candidate:
    """Read-only snapshot of one center considered in a single request."""
    id: int
    name: str
    type: CenterType
    location: Location
    distance_meters: float
    is_free_available: bool = False
    is_online_available: bool = False
    programs: Tuple[CenterProgram, ...] = ()
    road_address: Optional[str] = None
    phone_number: Optional[str] = None
    # Owned by the vector store; the engine never mutates it
    embedding_vector: Optional[Tuple[float, ...]] = None


@dataclass(frozen=True)
class UserProfile:
    age_group: Optional[str] = None
    symptoms: FrozenSet[SymptomTag] = frozenset()
    preferred_counseling_type: Optional[str] = None
    prefer_free: bool = False
    prefer_online: bool = False


@dataclass(frozen=True)
class ScoringFilters:
    """Structured caller filters the rule-based scorer evaluates against."""
    max_distance_km: float = 10.0
    center_types: FrozenSet[CenterType] = frozenset()

    @property
    def max_distance_meters(self) -> float:
        return self.max_distance_km * 1000.0


@dataclass(frozen=True)
class Weights:
    embedding: float
    rule: float

    def to_dict(self) -> Dict[str, float]:
        return {"embedding": self.embedding, "rule": self.rule}


@dataclass
class RuleScore:
    """Rule-based score for one candidate plus its explainable sub-scores."""
    candidate_id: int
    score: float
    components: Dict[str, float] = field(default_factory=dict)
    reasons: List[str] = field(default_factory=list)


@dataclass
class ScoreBreakdown:
    """Fused score for one candidate.

    When ``embedding_score`` is None the candidate was scored in fallback mode and
    ``total_score == rule_based_score``.
    """
    candidate_id: int
    rule_based_score: float
    embedding_score: Optional[float]
    total_score: float
    weights: Weights
    rule_components: Dict[str, float] = field(default_factory=dict)
    reasons: List[str] = field(default_factory=list)


@dataclass
class RankedCandidate:
    candidate: Candidate
    breakdown: ScoreBreakdown

    def to_dict(self) -> Dict:
        level = similarity_level(self.breakdown.embedding_score)
        return {
            "centerId": self.candidate.id,
            "centerName": self.candidate.name,
            "centerType": self.candidate.type.value,
            "distanceMeters": self.candidate.distance_meters,
            "walkTimeMinutes": walk_time_minutes(self.candidate.distance_meters),
            "roadAddress": self.candidate.road_address,
            "phoneNumber": self.candidate.phone_number,
            "totalScore": self.breakdown.total_score,
            "scores": {
                "ruleBasedScore": self.breakdown.rule_based_score,
                "embeddingScore": self.breakdown.embedding_score,
                "embeddingLevel": level.value if level else None,
                "breakdown": dict(self.breakdown.rule_components),
            },
            "reasons": list(self.breakdown.reasons),
        }

    def to_cache_entry(self) -> Dict[str, Any]:
        """Full snapshot for the response cache. The embedding vector is not kept."""
        c, b = self.candidate, self.breakdown
        return {
            "candidate": {
                "id": c.id,
                "name": c.name,
                "type": c.type.value,
                "latitude": c.location.latitude,
                "longitude": c.location.longitude,
                "distance_meters": c.distance_meters,
                "is_free_available": c.is_free_available,
                "is_online_available": c.is_online_available,
                "programs": [asdict(p) for p in c.programs],
                "road_address": c.road_address,
                "phone_number": c.phone_number,
            },
            "breakdown": {
                "rule_based_score": b.rule_based_score,
                "embedding_score": b.embedding_score,
                "total_score": b.total_score,
                "weights": b.weights.to_dict(),
                "rule_components": dict(b.rule_components),
                "reasons": list(b.reasons),
            },
        }

    @classmethod
    def from_cache_entry(cls, data: Dict[str, Any]) -> "RankedCandidate":
        """Inverse of to_cache_entry. Raises KeyError/TypeError/ValueError on a malformed entry."""
        c, b = data["candidate"], data["breakdown"]
        candidate = Candidate(
            id=int(c["id"]),
            name=c["name"],
            type=CenterType(c["type"]),
            location=Location(float(c["latitude"]), float(c["longitude"])),
            distance_meters=float(c["distance_meters"]),
            is_free_available=bool(c["is_free_available"]),
            is_online_available=bool(c["is_online_available"]),
            programs=tuple(CenterProgram(**p) for p in c["programs"]),
            road_address=c["road_address"],
            phone_number=c["phone_number"],
        )
        breakdown = ScoreBreakdown(
            candidate_id=candidate.id,
            rule_based_score=float(b["rule_based_score"]),
            embedding_score=None if b["embedding_score"] is None else float(b["embedding_score"]),
            total_score=float(b["total_score"]),
            weights=Weights(**b["weights"]),
            rule_components=dict(b["rule_components"]),
            reasons=list(b["reasons"]),
        )
        return cls(candidate=candidate, breakdown=breakdown)
