"""
Center Directory - read-only source of candidate centers for a geographic query.
"""
import logging
from dataclasses import replace
from typing import Iterable, List, Optional, Protocol, Sequence, runtime_checkable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from database.uow import center_uow
from recommender.errors import RecommendationError
from recommender.scorer.models import Candidate, CenterType, Location
from recommender.utils import haversine_distance_meters

logger = logging.getLogger(__name__)


@runtime_checkable
class CenterDirectory(Protocol):
    """Protocol for the center directory store."""

    def fetch_candidates(
        self,
        location: Location,
        max_distance_km: float,
        type_filter: Optional[Iterable[CenterType]] = None
    ) -> List[Candidate]:
        """
        Return active centers within ``max_distance_km`` of ``location``.

        Each candidate's ``distance_meters`` is computed relative to ``location``.
        Candidates are ordered by distance, then id.
        """
        ...


class InMemoryCenterDirectory:
    """In-memory implementation of the center directory for tests and fixtures."""

    def __init__(self, centers: Optional[Sequence[Candidate]] = None):
        self._centers: List[Candidate] = list(centers or [])

    def fetch_candidates(
        self,
        location: Location,
        max_distance_km: float,
        type_filter: Optional[Iterable[CenterType]] = None
    ) -> List[Candidate]:
        types = set(type_filter or ())
        max_distance_meters = max_distance_km * 1000
        results = []
        for center in self._centers:
            if types and center.type not in types:
                continue
            distance = haversine_distance_meters(
                location.latitude, location.longitude,
                center.location.latitude, center.location.longitude,
            )
            if distance > max_distance_meters:
                continue
            results.append(replace(center, distance_meters=distance))
        results.sort(key=lambda c: (c.distance_meters, c.id))
        return results


class SqlCenterDirectory:
    """Adapter that reads candidates through CenterRepository, one unit of work per call."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def fetch_candidates(
        self,
        location: Location,
        max_distance_km: float,
        type_filter: Optional[Iterable[CenterType]] = None
    ) -> List[Candidate]:
        try:
            with center_uow(self._session_factory) as repo:
                return repo.fetch_candidates(location, max_distance_km, type_filter)
        except SQLAlchemyError as e:
            raise RecommendationError(
                "Center directory query failed", algorithm="none", operation="fetch_candidates", cause=e
            )
