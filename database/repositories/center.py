import logging
import math
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from database.models import Center
from database.repositories.base import BaseRepository
from recommender.scorer.models import Candidate, CenterProgram, CenterType, Location
from recommender.utils import haversine_distance_meters

logger = logging.getLogger(__name__)

KM_PER_DEGREE_LATITUDE = 111.32


def bounding_box(location: Location, max_distance_km: float):
    """Lat/lng box that contains every point within ``max_distance_km`` of ``location``."""
    lat_delta = max_distance_km / KM_PER_DEGREE_LATITUDE
    cos_lat = math.cos(math.radians(location.latitude))
    if cos_lat < 1e-6:
        lng_delta = 180.0
    else:
        lng_delta = min(180.0, max_distance_km / (KM_PER_DEGREE_LATITUDE * cos_lat))
    return (
        location.latitude - lat_delta,
        location.latitude + lat_delta,
        location.longitude - lng_delta,
        location.longitude + lng_delta,
    )


def to_candidate(center: Center, distance_meters: int) -> Optional[Candidate]:
    try:
        center_type = CenterType(center.center_type)
    except ValueError:
        logger.warning(f"Skipping center {center.id}: unknown center type {center.center_type!r}")
        return None

    programs = tuple(
        CenterProgram(
            name=p.program_name,
            program_type=p.program_type,
            target_group=p.target_group,
            is_free=bool(p.is_free),
            is_online_available=bool(p.is_online_available),
        )
        for p in center.programs
        if p.is_active
    )
    return Candidate(
        id=center.id,
        name=center.center_name,
        type=center_type,
        location=Location(float(center.latitude), float(center.longitude)),
        distance_meters=distance_meters,
        is_free_available=any(p.is_free for p in programs),
        is_online_available=any(p.is_online_available for p in programs),
        programs=programs,
        road_address=center.road_address,
        phone_number=center.phone_number,
    )


class CenterRepository(BaseRepository):
    def fetch_candidates(
        self,
        location: Location,
        max_distance_km: float,
        type_filter: Optional[Iterable[CenterType]] = None
    ) -> List[Candidate]:
        """Active centers within ``max_distance_km``, nearest first (ties by id)."""
        min_lat, max_lat, min_lng, max_lng = bounding_box(location, max_distance_km)

        stmt = (
            select(Center)
            .options(selectinload(Center.programs))
            .where(
                Center.is_active.is_(True),
                Center.latitude.between(min_lat, max_lat),
                Center.longitude.between(min_lng, max_lng),
            )
        )
        types = [t.value for t in type_filter] if type_filter else []
        if types:
            stmt = stmt.where(Center.center_type.in_(types))

        rows = self.db.execute(stmt).scalars().all()

        max_distance_meters = max_distance_km * 1000
        candidates = []
        for center in rows:
            distance = haversine_distance_meters(
                location.latitude, location.longitude, float(center.latitude), float(center.longitude)
            )
            if distance > max_distance_meters:
                continue
            candidate = to_candidate(center, distance)
            if candidate is not None:
                candidates.append(candidate)

        candidates.sort(key=lambda c: (c.distance_meters, c.id))
        logger.debug(f"Fetched {len(candidates)} candidates within {max_distance_km}km ({len(rows)} in bounding box)")
        return candidates
