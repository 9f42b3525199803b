"""
Tests for the content version store.
"""

from unittest.mock import AsyncMock, patch

import pytest

from shared.metrics import MetricsCollector
from service_catalog.app.versioning import ContentVersionStore, VERSIONED_COLLECTIONS


class TestContentVersionStore:
    """Test cases for ContentVersionStore."""

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("catalog")

    @pytest.fixture
    def versions(self, memory_store, clock, metrics):
        """Version store over the in-memory document store."""
        return ContentVersionStore(memory_store, clock=clock, metrics=metrics)

    @pytest.mark.asyncio
    async def test_read_creates_singleton(self, versions, memory_store, clock):
        """Reading an empty store seeds the singleton with zero counters."""
        snapshot = await versions.read()

        assert snapshot["v"] == int(clock() * 1000)
        for collection in VERSIONED_COLLECTIONS:
            assert snapshot[collection] == 0
        assert await memory_store.count("content_versions") == 1

    @pytest.mark.asyncio
    async def test_read_keeps_record_written_by_racing_bump(self, versions, memory_store, clock):
        """A record upserted between lookup and seed is returned, not re-inserted."""
        await versions.bump("songs")
        bumped = int(clock() * 1000)
        clock.advance(5)

        stale_lookup = AsyncMock(return_value=None)
        duplicate = AsyncMock(side_effect=RuntimeError("E11000 duplicate key error"))
        with patch.object(memory_store, "find_one", stale_lookup), \
                patch.object(memory_store, "insert_one", duplicate):
            snapshot = await versions.read()

        assert snapshot["v"] == bumped
        assert snapshot["songs"] == bumped
        duplicate.assert_not_called()
        assert await memory_store.count("content_versions") == 1

    @pytest.mark.asyncio
    async def test_bump_sets_global_and_collection(self, versions, clock):
        """A bump stamps the global version and the named counter."""
        assert await versions.bump("genres") is None

        snapshot = await versions.read()
        expected = int(clock() * 1000)
        assert snapshot["v"] == expected
        assert snapshot["genres"] == expected
        assert snapshot["songs"] == 0
        assert snapshot["updatedAt"] is not None

    @pytest.mark.asyncio
    async def test_successive_bumps_increase(self, versions, clock):
        """Versions move forward with the clock and v tracks the newest counter."""
        await versions.bump("moods")
        first = await versions.read()

        clock.advance(1.5)
        await versions.bump("songs")
        second = await versions.read()

        assert second["v"] > first["v"]
        assert second["songs"] > first["moods"]
        assert second["moods"] == first["moods"]
        assert second["v"] >= max(second[c] for c in VERSIONED_COLLECTIONS)

    @pytest.mark.asyncio
    async def test_single_document_after_many_bumps(self, versions, memory_store, clock):
        """The singleton is upserted, never duplicated."""
        for collection in VERSIONED_COLLECTIONS:
            await versions.bump(collection)
            clock.advance(0.01)

        assert await memory_store.count("content_versions") == 1
        assert await memory_store.count("content_versions", {"key": "global"}) == 1

    @pytest.mark.asyncio
    async def test_unknown_collection_bumps_global_only(self, versions, clock):
        """Unknown names advance v without adding a counter."""
        await versions.bump("genres")
        before = await versions.read()

        clock.advance(2)
        await versions.bump("playlists")
        after = await versions.read()

        assert after["v"] > before["v"]
        assert after["genres"] == before["genres"]
        assert "playlists" not in after

    @pytest.mark.asyncio
    async def test_bump_failure_is_swallowed(self, clock, metrics):
        """A failing store write is logged and counted but never raised."""
        store = AsyncMock()
        store.update_one.side_effect = RuntimeError("connection reset")
        versions = ContentVersionStore(store, clock=clock, metrics=metrics)

        assert await versions.bump("songs") is None
        assert metrics.get_sample_value(
            "content_version_bumps_total", collection="songs", status="error"
        ) == 1.0

    @pytest.mark.asyncio
    async def test_successful_bumps_are_counted(self, versions, metrics):
        """Successful bumps are counted per collection."""
        await versions.bump("batches")
        await versions.bump("batches")

        assert metrics.get_sample_value(
            "content_version_bumps_total", collection="batches", status="ok"
        ) == 2.0
