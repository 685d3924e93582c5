#!/usr/bin/env python3
"""
Rule-Based Score - deterministic scoring over structured candidate attributes.

score = w_proximity * proximity
      + w_type      * type_match
      + w_symptom   * symptom_affinity
      + w_pref      * preference

Every sub-score lies in [0, 1] and the weights are normalized to sum to 1, so the total
is always in [0, 1]. No I/O happens here; the only failure mode is malformed candidate
data, which rejects the whole batch with a ValidationError.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from recommender.config_loader import RuleWeightsConfig
from recommender.errors import ValidationError
from recommender.scorer.affinity import affinity_for
from recommender.scorer.models import (
    Candidate,
    CenterType,
    RuleScore,
    ScoringFilters,
    UserProfile,
)
from recommender.utils import clamp01, walk_time_minutes

logger = logging.getLogger(__name__)

# Score for a preference that was not requested, or requested but not matched
NEUTRAL_PREFERENCE_SCORE = 0.5

# Sub-score thresholds above which a human-readable reason is emitted
REASON_THRESHOLDS = {
    "proximity": 0.8,
    "symptom_affinity": 0.5,
    "preference": 0.75,
}


def proximity_score(distance_meters: float, max_distance_meters: float) -> float:
    """1 at distance 0, 0 at or beyond the max distance, linear in between."""
    if max_distance_meters <= 0:
        return 0.0
    if distance_meters <= 0:
        return 1.0
    if distance_meters >= max_distance_meters:
        return 0.0
    return clamp01(1.0 - distance_meters / max_distance_meters)


def type_match_score(center_type: CenterType, requested_types: Iterable[CenterType]) -> float:
    requested = set(requested_types)
    if not requested:
        return 1.0
    return 1.0 if center_type in requested else 0.0


def symptom_affinity_score(center_type: CenterType, profile: Optional[UserProfile]) -> float:
    """Share of the user's symptoms this center type is specialised in."""
    if profile is None or not profile.symptoms:
        return 0.0
    overlap = profile.symptoms & affinity_for(center_type)
    return len(overlap) / len(profile.symptoms)


def _matches_counseling_type(candidate: Candidate, preferred: str) -> bool:
    wanted = preferred.strip().lower()
    for program in candidate.programs:
        program_type = (program.program_type or "").strip().lower()
        if program_type and (program_type == wanted or wanted in program_type or program_type in wanted):
            return True
    return False


def _matches_age_group(candidate: Candidate, age_group: str) -> bool:
    wanted = age_group.strip().lower()
    for program in candidate.programs:
        target = (program.target_group or "").strip().lower()
        if target and (target == wanted or wanted in target or target in wanted):
            return True
    return False


def preference_score(candidate: Candidate, profile: Optional[UserProfile]) -> float:
    """Mean over requested preferences: 1 when matched, neutral otherwise.

    Nothing requested (or no profile) yields the neutral constant.
    """
    if profile is None:
        return NEUTRAL_PREFERENCE_SCORE

    outcomes: List[bool] = []
    if profile.prefer_free:
        outcomes.append(candidate.is_free_available)
    if profile.prefer_online:
        outcomes.append(candidate.is_online_available)
    if profile.preferred_counseling_type:
        outcomes.append(_matches_counseling_type(candidate, profile.preferred_counseling_type))
    if profile.age_group:
        outcomes.append(_matches_age_group(candidate, profile.age_group))

    if not outcomes:
        return NEUTRAL_PREFERENCE_SCORE
    return sum(1.0 if matched else NEUTRAL_PREFERENCE_SCORE for matched in outcomes) / len(outcomes)


def normalize_rule_weights(config: RuleWeightsConfig) -> Dict[str, float]:
    raw = {
        "proximity": config.proximity,
        "type_match": config.type_match,
        "symptom_affinity": config.symptom_affinity,
        "preference": config.preference,
    }
    for name, value in raw.items():
        if not math.isfinite(value) or value < 0:
            raise ValidationError(f"Rule weight {name} must be a non-negative number", field=name)
    total = sum(raw.values())
    if total <= 0:
        raise ValidationError("Rule weights must not all be zero", field="rule_weights")
    return {name: value / total for name, value in raw.items()}


def validate_candidate(candidate: Candidate) -> None:
    if candidate.id is None:
        raise ValidationError("Candidate is missing an id", field="id", operation="rule_score")
    if not isinstance(candidate.type, CenterType):
        raise ValidationError(
            f"Candidate {candidate.id} has unknown type {candidate.type!r}",
            field="type", operation="rule_score", candidate_id=candidate.id
        )
    distance = candidate.distance_meters
    if distance is None or not isinstance(distance, (int, float)) or not math.isfinite(distance) or distance < 0:
        raise ValidationError(
            f"Candidate {candidate.id} has invalid distance {distance!r}",
            field="distance_meters", operation="rule_score", candidate_id=candidate.id
        )


def _reasons(candidate: Candidate, components: Dict[str, float], profile: Optional[UserProfile]) -> List[str]:
    ranked: List[Tuple[float, str]] = []
    if components["proximity"] >= REASON_THRESHOLDS["proximity"]:
        minutes = walk_time_minutes(candidate.distance_meters)
        ranked.append((components["proximity"], f"Close by ({candidate.distance_meters / 1000:.1f}km, {minutes} min walk)"))
    if profile is not None and components["symptom_affinity"] >= REASON_THRESHOLDS["symptom_affinity"]:
        ranked.append((components["symptom_affinity"], f"Specialised in your concerns ({candidate.type.value})"))
    if components["preference"] >= REASON_THRESHOLDS["preference"]:
        ranked.append((components["preference"], "Matches your preferences"))
    ranked.sort(key=lambda item: item[0], reverse=True)
    return [text for _, text in ranked[:3]]


def score_candidate(
    candidate: Candidate,
    profile: Optional[UserProfile],
    filters: ScoringFilters,
    weights: Dict[str, float],
) -> RuleScore:
    components = {
        "proximity": proximity_score(candidate.distance_meters, filters.max_distance_meters),
        "type_match": type_match_score(candidate.type, filters.center_types),
        "symptom_affinity": symptom_affinity_score(candidate.type, profile),
        "preference": preference_score(candidate, profile),
    }
    total = clamp01(sum(weights[name] * value for name, value in components.items()))
    return RuleScore(
        candidate_id=candidate.id,
        score=total,
        components=components,
        reasons=_reasons(candidate, components, profile),
    )


class RuleBasedScorer:
    """Scores a batch of candidates. Pure: no I/O, no shared state between calls."""

    def __init__(self, config: Optional[RuleWeightsConfig] = None):
        self.weights = normalize_rule_weights(config or RuleWeightsConfig())

    def score(
        self,
        candidates: Sequence[Candidate],
        profile: Optional[UserProfile],
        filters: ScoringFilters,
    ) -> List[RuleScore]:
        # Validate the whole batch before scoring any of it
        for candidate in candidates:
            validate_candidate(candidate)

        scores = [score_candidate(c, profile, filters, self.weights) for c in candidates]
        logger.debug(f"Rule-scored {len(scores)} candidates")
        return scores
