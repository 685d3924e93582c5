#!/usr/bin/env python3
"""
Unit tests for the rule-based scorer and its sub-scores.
"""

import math

import pytest

from recommender.config_loader import RuleWeightsConfig
from recommender.errors import ValidationError
from recommender.scorer.models import (
    Candidate,
    CenterProgram,
    CenterType,
    Location,
    ScoringFilters,
    SymptomTag,
    UserProfile,
)
from recommender.scorer.rule_score import (
    NEUTRAL_PREFERENCE_SCORE,
    RuleBasedScorer,
    normalize_rule_weights,
    preference_score,
    proximity_score,
    symptom_affinity_score,
    type_match_score,
)


def make_candidate(center_id=1, center_type=CenterType.WELFARE_CENTER, distance=1000,
                   free=False, online=False, programs=()):
    return Candidate(
        id=center_id,
        name=f"Center {center_id}",
        type=center_type,
        location=Location(37.5665, 126.9780),
        distance_meters=distance,
        is_free_available=free,
        is_online_available=online,
        programs=tuple(programs),
    )


class TestProximity:

    @pytest.mark.parametrize("distance, expected", [
        (0, 1.0),
        (2500, 0.75),
        (5000, 0.5),
        (10000, 0.0),
        (15000, 0.0),
    ])
    def test_linear_decay(self, distance, expected):
        assert proximity_score(distance, 10000) == pytest.approx(expected)

    def test_closer_is_higher(self):
        assert proximity_score(1000, 10000) > proximity_score(2000, 10000)

    def test_zero_max_distance(self):
        assert proximity_score(0, 0) == 0.0


class TestTypeMatch:

    def test_empty_filter_matches_everything(self):
        assert type_match_score(CenterType.YOUTH_COUNSELING, []) == 1.0

    def test_in_filter(self):
        assert type_match_score(CenterType.YOUTH_COUNSELING, [CenterType.YOUTH_COUNSELING]) == 1.0

    def test_not_in_filter(self):
        assert type_match_score(CenterType.YOUTH_COUNSELING, [CenterType.WELFARE_CENTER]) == 0.0


class TestSymptomAffinity:

    def test_no_profile(self):
        assert symptom_affinity_score(CenterType.WELFARE_CENTER, None) == 0.0

    def test_no_symptoms(self):
        assert symptom_affinity_score(CenterType.WELFARE_CENTER, UserProfile()) == 0.0

    def test_partial_overlap(self):
        profile = UserProfile(symptoms=frozenset({SymptomTag.DEPRESSION, SymptomTag.ADDICTION}))
        assert symptom_affinity_score(CenterType.WELFARE_CENTER, profile) == 0.5

    def test_full_overlap(self):
        profile = UserProfile(symptoms=frozenset({SymptomTag.DEPRESSION, SymptomTag.ADDICTION}))
        assert symptom_affinity_score(CenterType.ADDICTION_MANAGEMENT, profile) == 1.0

    def test_no_overlap(self):
        profile = UserProfile(symptoms=frozenset({SymptomTag.INSOMNIA}))
        assert symptom_affinity_score(CenterType.CHILD_PROTECTION, profile) == 0.0


class TestPreference:

    def test_no_profile_is_neutral(self):
        assert preference_score(make_candidate(), None) == NEUTRAL_PREFERENCE_SCORE

    def test_nothing_requested_is_neutral(self):
        assert preference_score(make_candidate(free=True), UserProfile()) == NEUTRAL_PREFERENCE_SCORE

    def test_prefer_free_matched(self):
        assert preference_score(make_candidate(free=True), UserProfile(prefer_free=True)) == 1.0

    def test_prefer_free_unmatched_is_neutral(self):
        assert preference_score(make_candidate(free=False), UserProfile(prefer_free=True)) == NEUTRAL_PREFERENCE_SCORE

    def test_mixed_preferences_average(self):
        profile = UserProfile(prefer_free=True, prefer_online=True)
        assert preference_score(make_candidate(free=True, online=False), profile) == pytest.approx(0.75)

    def test_counseling_type_and_age_group_match_programs(self):
        candidate = make_candidate(programs=[
            CenterProgram(name="청소년 비대면상담", program_type="online", target_group="youth"),
        ])
        profile = UserProfile(preferred_counseling_type="Online", age_group="youth")
        assert preference_score(candidate, profile) == 1.0

    def test_age_group_without_programs(self):
        assert preference_score(make_candidate(), UserProfile(age_group="senior")) == NEUTRAL_PREFERENCE_SCORE


class TestRuleWeights:

    def test_default_weights_sum_to_one(self):
        weights = normalize_rule_weights(RuleWeightsConfig())
        assert sum(weights.values()) == pytest.approx(1.0)
        assert weights["proximity"] == max(weights.values())

    def test_weights_are_normalized(self):
        weights = normalize_rule_weights(RuleWeightsConfig(proximity=2, type_match=1, symptom_affinity=1, preference=0))
        assert weights == pytest.approx({"proximity": 0.5, "type_match": 0.25, "symptom_affinity": 0.25, "preference": 0.0})

    def test_all_zero_rejected(self):
        with pytest.raises(ValidationError):
            normalize_rule_weights(RuleWeightsConfig(proximity=0, type_match=0, symptom_affinity=0, preference=0))

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            normalize_rule_weights(RuleWeightsConfig(proximity=-1))


class TestRuleBasedScorer:

    @pytest.fixture
    def scorer(self):
        return RuleBasedScorer()

    def test_perfect_candidate_scores_one(self, scorer):
        candidate = make_candidate(center_type=CenterType.ADDICTION_MANAGEMENT, distance=0, free=True)
        profile = UserProfile(symptoms=frozenset({SymptomTag.ADDICTION}), prefer_free=True)

        [result] = scorer.score([candidate], profile, ScoringFilters())

        assert result.score == pytest.approx(1.0)
        assert result.components == pytest.approx(
            {"proximity": 1.0, "type_match": 1.0, "symptom_affinity": 1.0, "preference": 1.0}
        )

    def test_weighted_sum(self, scorer):
        candidate = make_candidate(distance=5000)

        [result] = scorer.score([candidate], None, ScoringFilters(max_distance_km=10))

        # 0.40 * 0.5 + 0.20 * 1 + 0.25 * 0 + 0.15 * 0.5
        assert result.score == pytest.approx(0.475)

    def test_scores_always_in_unit_interval(self, scorer, seoul_centers):
        profile = UserProfile(
            symptoms=frozenset({SymptomTag.DEPRESSION, SymptomTag.BULLYING}),
            prefer_free=True, prefer_online=True,
        )
        filters = ScoringFilters(max_distance_km=5, center_types=frozenset({CenterType.WELFARE_CENTER}))
        candidates = [make_candidate(c.id, c.type, distance=c.id * 700, free=c.is_free_available)
                      for c in seoul_centers]

        for result in scorer.score(candidates, profile, filters):
            assert 0.0 <= result.score <= 1.0

    def test_reasons(self, scorer):
        candidate = make_candidate(center_type=CenterType.SUICIDE_PREVENTION, distance=1000, free=True)
        profile = UserProfile(symptoms=frozenset({SymptomTag.SUICIDAL_THOUGHTS}), prefer_free=True)

        [result] = scorer.score([candidate], profile, ScoringFilters())

        assert len(result.reasons) == 3
        assert any("1.0km, 13 min walk" in r for r in result.reasons)
        assert any("suicide-prevention" in r for r in result.reasons)

    def test_empty_batch(self, scorer):
        assert scorer.score([], None, ScoringFilters()) == []

    @pytest.mark.parametrize("bad", [
        make_candidate(distance=-1),
        make_candidate(distance=math.nan),
        make_candidate(distance=None),
        make_candidate(center_type="hospital"),
        make_candidate(center_id=None),
    ])
    def test_malformed_candidate_rejects_batch(self, scorer, bad):
        with pytest.raises(ValidationError):
            scorer.score([make_candidate(), bad], None, ScoringFilters())
