#!/usr/bin/env python3
"""
Score Combiner - fuses rule-based and semantic scores.

Hybrid:   total = w_rule * rule + w_embedding * embedding
Fallback: total = rule (embedding scores unavailable)

Ranking is deterministic: total score descending, then distance ascending, then the
original candidate order.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Union

from recommender.errors import RecommendationError, ValidationError
from recommender.scorer.models import (
    Algorithm,
    Candidate,
    RankedCandidate,
    RuleScore,
    ScoreBreakdown,
    Weights,
)
from recommender.utils import clamp01

logger = logging.getLogger(__name__)

WeightsInput = Union[Weights, Mapping[str, float], None]


@dataclass
class CombineOutcome:
    breakdowns: List[ScoreBreakdown]
    algorithm: Algorithm
    fallback_mode: bool
    weights: Weights


def normalize_weights(weights: WeightsInput, default: Weights) -> Weights:
    """Scale caller weights so they sum to 1. Missing components take the default value.

    Weights that cannot be normalized (negative, non-finite, all zero) are invalid input.
    """
    if weights is None:
        embedding, rule = default.embedding, default.rule
    elif isinstance(weights, Weights):
        embedding, rule = weights.embedding, weights.rule
    else:
        embedding = weights.get("embedding", default.embedding)
        rule = weights.get("rule", default.rule)

    for name, value in (("embedding", embedding), ("rule", rule)):
        if value is None or not math.isfinite(float(value)) or float(value) < 0:
            raise ValidationError(f"Weight {name} must be a non-negative number", field=f"weights.{name}")

    embedding, rule = float(embedding), float(rule)
    total = embedding + rule
    if total <= 0:
        raise ValidationError("Weights must not both be zero", field="weights")

    if abs(total - 1.0) > 1e-9:
        logger.debug(f"Normalizing weights embedding={embedding} rule={rule} (sum={total})")
    return Weights(embedding=embedding / total, rule=rule / total)


class ScoreCombiner:
    """Merges per-candidate rule scores with optional embedding scores."""

    def __init__(self, default_weights: Optional[Weights] = None):
        self.default_weights = default_weights or Weights(embedding=0.5, rule=0.5)

    def combine(
        self,
        rule_scores: Sequence[RuleScore],
        embedding_scores: Optional[Mapping[int, float]],
        weights: WeightsInput = None,
    ) -> CombineOutcome:
        """Fuse scores; ``embedding_scores=None`` means semantic scoring is unavailable."""
        resolved = normalize_weights(weights, self.default_weights)

        if embedding_scores is None:
            breakdowns = [
                ScoreBreakdown(
                    candidate_id=rs.candidate_id,
                    rule_based_score=rs.score,
                    embedding_score=None,
                    total_score=rs.score,
                    weights=resolved,
                    rule_components=dict(rs.components),
                    reasons=list(rs.reasons),
                )
                for rs in rule_scores
            ]
            return CombineOutcome(breakdowns, Algorithm.RULE_BASED, True, resolved)

        breakdowns = []
        for rs in rule_scores:
            # Candidates the semantic scorer did not return keep their place with score 0
            embedding = clamp01(float(embedding_scores.get(rs.candidate_id, 0.0)))
            total = resolved.rule * rs.score + resolved.embedding * embedding
            breakdowns.append(ScoreBreakdown(
                candidate_id=rs.candidate_id,
                rule_based_score=rs.score,
                embedding_score=embedding,
                total_score=clamp01(total),
                weights=resolved,
                rule_components=dict(rs.components),
                reasons=list(rs.reasons),
            ))

        algorithm = Algorithm.SEMANTIC if resolved.rule == 0 else Algorithm.HYBRID
        return CombineOutcome(breakdowns, algorithm, False, resolved)


def rank(candidates: Sequence[Candidate], breakdowns: Sequence[ScoreBreakdown]) -> List[RankedCandidate]:
    """Pair candidates with breakdowns and order them deterministically."""
    if len(candidates) != len(breakdowns):
        raise RecommendationError(
            f"Candidate/score count mismatch: {len(candidates)} candidates, {len(breakdowns)} scores",
            algorithm="combine", operation="rank"
        )

    by_id: Dict[int, ScoreBreakdown] = {b.candidate_id: b for b in breakdowns}
    if len(by_id) != len(breakdowns) or any(c.id not in by_id for c in candidates):
        raise RecommendationError(
            "Scores do not line up with the candidate set", algorithm="combine", operation="rank"
        )

    indexed = [(index, RankedCandidate(c, by_id[c.id])) for index, c in enumerate(candidates)]
    indexed.sort(key=lambda item: (-item[1].breakdown.total_score, item[1].candidate.distance_meters, item[0]))
    return [ranked for _, ranked in indexed]
