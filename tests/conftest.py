"""Shared fixtures: fallback dataset, query cache and a wired-up test client."""
import os

os.environ["ENV"] = "test"

from pathlib import Path
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from streetsupport.api.routes import get_accommodation_search, get_database, get_service_search
from streetsupport.main import app
from streetsupport.services.accommodation_search import AccommodationSearch
from streetsupport.services.fallback_service import FallbackDataset
from streetsupport.services.query_cache import InMemoryQueryCache
from streetsupport.services.service_search import ServiceSearch
from tests.fakes import FakeDatabase

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def fallback() -> FallbackDataset:
    return FallbackDataset(str(FIXTURES / "fallback-providers.json"))


@pytest.fixture
def query_cache() -> InMemoryQueryCache:
    return InMemoryQueryCache()


@pytest.fixture
def make_client(fallback, query_cache):
    """Build a TestClient over the given fake database (None = database down)."""

    def _make(db: Optional[FakeDatabase]) -> TestClient:
        search = ServiceSearch(db, query_cache, fallback, cache_ttl=60)
        accommodation_search = AccommodationSearch(db, query_cache, cache_ttl=60)
        app.dependency_overrides[get_service_search] = lambda: search
        app.dependency_overrides[get_accommodation_search] = lambda: accommodation_search
        app.dependency_overrides[get_database] = lambda: db
        return TestClient(app, raise_server_exceptions=False)

    yield _make
    app.dependency_overrides.clear()
