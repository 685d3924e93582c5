"""Scorer Module - rule-based scoring, score fusion and ranking."""
from recommender.scorer.models import (
    Algorithm,
    Candidate,
    CenterProgram,
    CenterType,
    FallbackReason,
    Location,
    RankedCandidate,
    RuleScore,
    ScoreBreakdown,
    ScoringFilters,
    SymptomTag,
    UserProfile,
    Weights,
)
from recommender.scorer.rule_score import RuleBasedScorer
from recommender.scorer.combiner import ScoreCombiner, normalize_weights, rank

__all__ = [
    'Algorithm',
    'Candidate',
    'CenterProgram',
    'CenterType',
    'FallbackReason',
    'Location',
    'RankedCandidate',
    'RuleScore',
    'ScoreBreakdown',
    'ScoringFilters',
    'SymptomTag',
    'UserProfile',
    'Weights',
    'RuleBasedScorer',
    'ScoreCombiner',
    'normalize_weights',
    'rank',
]
