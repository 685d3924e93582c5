"""Static symptom affinity table: which symptoms each center type is specialised in."""
from typing import Dict, FrozenSet

from recommender.scorer.models import CenterType, SymptomTag

S = SymptomTag

SYMPTOM_AFFINITY: Dict[CenterType, FrozenSet[SymptomTag]] = {
    CenterType.WELFARE_CENTER: frozenset({
        S.DEPRESSION, S.ANXIETY, S.STRESS, S.INSOMNIA, S.PANIC,
        S.OBSESSIVE_COMPULSIVE, S.TRAUMA, S.RELATIONSHIPS, S.WORK_STRESS,
    }),
    CenterType.SUICIDE_PREVENTION: frozenset({
        S.SUICIDAL_THOUGHTS, S.SELF_HARM, S.DEPRESSION, S.TRAUMA, S.PANIC,
    }),
    CenterType.ADDICTION_MANAGEMENT: frozenset({
        S.ADDICTION, S.STRESS, S.FAMILY_CONFLICT, S.DEPRESSION, S.INSOMNIA,
    }),
    CenterType.YOUTH_COUNSELING: frozenset({
        S.ACADEMIC_STRESS, S.BULLYING, S.RELATIONSHIPS, S.FAMILY_CONFLICT,
        S.ANXIETY, S.DEPRESSION, S.SELF_HARM,
    }),
    CenterType.CHILD_PROTECTION: frozenset({
        S.ABUSE, S.TRAUMA, S.FAMILY_CONFLICT, S.BULLYING,
    }),
}


def affinity_for(center_type: CenterType) -> FrozenSet[SymptomTag]:
    return SYMPTOM_AFFINITY.get(center_type, frozenset())
