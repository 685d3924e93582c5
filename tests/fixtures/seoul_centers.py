#!/usr/bin/env python3
"""
Seoul center fixture: 20 centers around Seoul City Hall (37.5665, 126.9780).

17 centers lie within 10km of City Hall, 3 lie beyond it. Every center has a
precomputed 4-dimensional embedding on the axes (mood, addiction, youth, crisis).
"""
from typing import Dict, List, Tuple

from recommender.scorer.models import Candidate, CenterProgram, CenterType, Location

CITY_HALL = Location(37.5665, 126.9780)

T = CenterType

# (id, name, type, lat offset, lng offset, free, online)
_ROWS = [
    (1, "중구정신건강복지센터", T.WELFARE_CENTER, 0.0020, 0.0010, True, False),
    (2, "종로구정신건강복지센터", T.WELFARE_CENTER, 0.0150, 0.0020, True, True),
    (3, "서울시자살예방센터", T.SUICIDE_PREVENTION, -0.0080, 0.0100, True, True),
    (4, "용산구정신건강복지센터", T.WELFARE_CENTER, -0.0300, -0.0050, True, False),
    (5, "서울중독관리통합지원센터", T.ADDICTION_MANAGEMENT, 0.0100, -0.0200, True, False),
    (6, "서울시청소년상담복지센터", T.YOUTH_COUNSELING, 0.0050, 0.0300, True, True),
    (7, "마포구정신건강복지센터", T.WELFARE_CENTER, -0.0050, -0.0450, False, False),
    (8, "서대문구정신건강복지센터", T.WELFARE_CENTER, 0.0200, -0.0300, True, False),
    (9, "성동구정신건강복지센터", T.WELFARE_CENTER, -0.0050, 0.0600, True, True),
    (10, "서울아동보호전문기관", T.CHILD_PROTECTION, 0.0350, 0.0200, True, False),
    (11, "동작구정신건강복지센터", T.WELFARE_CENTER, -0.0600, -0.0100, False, True),
    (12, "은평구청소년상담복지센터", T.YOUTH_COUNSELING, 0.0500, -0.0350, True, False),
    (13, "성북구정신건강복지센터", T.WELFARE_CENTER, 0.0300, 0.0400, True, False),
    (14, "영등포구중독관리센터", T.ADDICTION_MANAGEMENT, -0.0400, -0.0600, False, False),
    (15, "광진구자살예방센터", T.SUICIDE_PREVENTION, -0.0200, 0.0800, True, True),
    (16, "동대문구정신건강복지센터", T.WELFARE_CENTER, 0.0150, 0.0550, True, False),
    (17, "관악구청소년상담복지센터", T.YOUTH_COUNSELING, -0.0750, -0.0200, True, True),
    # Beyond 10km
    (18, "노원구정신건강복지센터", T.WELFARE_CENTER, 0.1000, 0.0800, True, False),
    (19, "강동구정신건강복지센터", T.WELFARE_CENTER, -0.0100, 0.1500, True, False),
    (20, "강서구자살예방센터", T.SUICIDE_PREVENTION, 0.0100, -0.1500, True, True),
]

# Embedding per center type on (mood, addiction, youth, crisis)
TYPE_VECTORS: Dict[CenterType, Tuple[float, ...]] = {
    T.WELFARE_CENTER: (0.9, 0.1, 0.1, 0.3),
    T.SUICIDE_PREVENTION: (0.6, 0.0, 0.1, 0.9),
    T.ADDICTION_MANAGEMENT: (0.1, 1.0, 0.0, 0.1),
    T.YOUTH_COUNSELING: (0.4, 0.1, 0.9, 0.1),
    T.CHILD_PROTECTION: (0.1, 0.0, 0.8, 0.4),
}

DEPRESSION_QUERY = "우울증 상담"
ADDICTION_QUERY = "알코올 중독 상담"

QUERY_VECTORS: Dict[str, List[float]] = {
    DEPRESSION_QUERY: [1.0, 0.0, 0.0, 0.2],
    ADDICTION_QUERY: [0.0, 1.0, 0.0, 0.0],
}


def _programs(center_type: CenterType, free: bool, online: bool) -> Tuple[CenterProgram, ...]:
    target = "youth" if center_type in (T.YOUTH_COUNSELING, T.CHILD_PROTECTION) else "adult"
    programs = [CenterProgram(name="개인상담", program_type="individual", target_group=target, is_free=free)]
    if online:
        programs.append(CenterProgram(
            name="비대면상담", program_type="online", target_group=target, is_free=free, is_online_available=True
        ))
    return tuple(programs)


def build_centers() -> List[Candidate]:
    """Centers with distance 0; the directory computes the real distance per request."""
    centers = []
    for center_id, name, center_type, d_lat, d_lng, free, online in _ROWS:
        centers.append(Candidate(
            id=center_id,
            name=name,
            type=center_type,
            location=Location(round(CITY_HALL.latitude + d_lat, 6), round(CITY_HALL.longitude + d_lng, 6)),
            distance_meters=0,
            is_free_available=free,
            is_online_available=online,
            programs=_programs(center_type, free, online),
            road_address=f"서울특별시 {name}",
            phone_number=f"02-000-{center_id:04d}",
            embedding_vector=TYPE_VECTORS[center_type],
        ))
    return centers


def build_center_vectors() -> Dict[int, List[float]]:
    return {c.id: list(c.embedding_vector) for c in build_centers()}


WITHIN_10KM_IDS = [row[0] for row in _ROWS if row[0] <= 17]
