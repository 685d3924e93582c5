"""
Pytest configuration and fixtures.

This file provides pytest-specific configuration and fixtures.
For standard test utilities, see tests/__init__.py
"""

import logging

import pytest

from recommender.cache.store import InMemoryCacheStore
from tests.fixtures.seoul_centers import build_centers
from tests.mocks.fakes import FakeEmbeddingProvider, build_service


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "db: marks tests as requiring database (deselect with '-m \"not db\"')"
    )


@pytest.fixture(scope="session")
def test_db_url():
    """URL of a PostgreSQL + pgvector database, or skip."""
    from tests import TEST_DB_URL, check_db_available
    if not check_db_available():
        pytest.skip("Test database not available")
    return TEST_DB_URL


@pytest.fixture
def seoul_centers():
    return build_centers()


@pytest.fixture
def fake_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def cache_store():
    return InMemoryCacheStore()


@pytest.fixture
def service(fake_provider, cache_store):
    svc = build_service(provider=fake_provider, cache_store=cache_store)
    yield svc
    svc.close()


@pytest.fixture(autouse=True)
def quiet_third_party_loggers():
    for name in ("httpx", "openai", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)
