"""
Shared fixtures for catalog service tests.
"""

import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from shared.config import ServiceConfig
from service_catalog.app.main import CatalogService
from service_catalog.app.persistence.memory import InMemoryDocumentStore
from service_catalog.app.storage.object_store import ObjectStore


class FakeClock:
    """Controllable epoch-seconds clock."""

    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    """Clock starting at the real current time so issued tokens stay valid."""
    return FakeClock(time.time())


@pytest.fixture
def memory_store():
    """Fresh in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def object_store():
    """Object store double recording deletions."""
    objects = MagicMock(spec=ObjectStore)
    objects.delete_url = AsyncMock(return_value=True)
    return objects


@pytest.fixture
def config():
    """Catalog configuration for tests."""
    return ServiceConfig(
        "catalog",
        8020,
        document_store="memory",
        jwt_secret="test-secret-for-catalog-service-tokens",
    )


@pytest.fixture
def service(config, memory_store, object_store, clock):
    """Catalog service wired to in-memory collaborators."""
    return CatalogService(
        config=config,
        document_store=memory_store,
        object_store=object_store,
        clock=clock,
    )


@pytest.fixture
def client(service):
    """Test client for the catalog service."""
    return TestClient(service.app)
