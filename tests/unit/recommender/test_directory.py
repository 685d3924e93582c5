#!/usr/bin/env python3
"""
Unit tests for the center directory implementations.
"""
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from recommender.directory import InMemoryCenterDirectory, SqlCenterDirectory
from recommender.errors import RecommendationError
from recommender.scorer.models import CenterType, Location

from tests.fixtures.seoul_centers import CITY_HALL, WITHIN_10KM_IDS, build_centers


@pytest.fixture
def directory():
    return InMemoryCenterDirectory(build_centers())


class TestInMemoryCenterDirectory:

    def test_radius_filter(self, directory):
        candidates = directory.fetch_candidates(CITY_HALL, 10)

        assert sorted(c.id for c in candidates) == WITHIN_10KM_IDS
        assert all(0 <= c.distance_meters <= 10000 for c in candidates)

    def test_sorted_by_distance_then_id(self, directory):
        candidates = directory.fetch_candidates(CITY_HALL, 50)

        keys = [(c.distance_meters, c.id) for c in candidates]
        assert keys == sorted(keys)
        assert len(candidates) == 20

    def test_distance_is_relative_to_request(self, directory):
        near = directory.fetch_candidates(CITY_HALL, 50)[0]
        moved = Location(near.location.latitude, near.location.longitude)

        again = directory.fetch_candidates(moved, 50)

        assert again[0].id == near.id
        assert again[0].distance_meters == 0

    def test_type_filter(self, directory):
        candidates = directory.fetch_candidates(CITY_HALL, 50, [CenterType.SUICIDE_PREVENTION])

        assert [c.id for c in candidates] and all(c.type == CenterType.SUICIDE_PREVENTION for c in candidates)

    def test_snapshots_are_not_mutated(self):
        centers = build_centers()
        directory = InMemoryCenterDirectory(centers)

        directory.fetch_candidates(CITY_HALL, 10)

        assert all(c.distance_meters == 0 for c in centers)


class TestSqlCenterDirectory:

    def test_database_failure_is_internal_error(self):
        session = MagicMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))
        directory = SqlCenterDirectory(lambda: session)

        with pytest.raises(RecommendationError) as exc_info:
            directory.fetch_candidates(CITY_HALL, 10)
        assert exc_info.value.operation == "fetch_candidates"
        session.close.assert_called_once()
