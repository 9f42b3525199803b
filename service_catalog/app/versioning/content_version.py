"""
Content version store.

A single ``content_versions`` document (``key == "global"``) carries a global
version ``v`` plus one counter per catalog collection. Every counter holds the
epoch-milliseconds of the last bump. Clients can poll the snapshot to decide
whether their cached copy of a collection is stale.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..persistence.base import DocumentStore


VERSIONED_COLLECTIONS = ("songs", "genres", "subgenres", "instruments", "moods", "batches")


class ContentVersionStore:
    """Owner of the content version singleton."""

    COLLECTION = "content_versions"
    KEY = "global"

    def __init__(
        self,
        store: DocumentStore,
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("catalog.content_version")

    async def bump(self, collection: str) -> None:
        """Advance the global version and ``collection``'s counter to now.

        Called after a successful write. It never raises and returns nothing:
        a failed bump is logged and counted, and the write that triggered it
        stands. Unknown collection names advance the global version only.
        """
        now = self.clock()
        now_ms = int(now * 1000)
        values: Dict[str, Any] = {
            "v": now_ms,
            "updatedAt": datetime.fromtimestamp(now, tz=timezone.utc),
        }

        if collection in VERSIONED_COLLECTIONS:
            values[collection] = now_ms
        else:
            self.logger.warning(
                "Unknown content collection, bumping global version only",
                collection=collection
            )

        try:
            await self.store.update_one(self.COLLECTION, {"key": self.KEY}, values, upsert=True)
        except Exception as e:
            self.logger.error(
                "Content version bump failed",
                collection=collection,
                error=str(e)
            )
            self._record(collection, "error")
            return None

        self.logger.debug("Content version bumped", collection=collection, version=now_ms)
        self._record(collection, "ok")
        return None

    async def read(self) -> Dict[str, Any]:
        """Return the version snapshot, creating the singleton if missing.

        Seeding is a single find-or-insert so that a bump landing at the same
        time is kept rather than colliding with the seed.
        """
        doc = await self.store.find_or_insert(
            self.COLLECTION,
            {"key": self.KEY},
            {"key": self.KEY, "v": int(self.clock() * 1000)}
        )

        snapshot: Dict[str, Any] = {"v": doc.get("v") or 0}
        for collection in VERSIONED_COLLECTIONS:
            snapshot[collection] = doc.get(collection) or 0
        snapshot["updatedAt"] = doc.get("updatedAt")
        return snapshot

    def _record(self, collection: str, status: str):
        if self.metrics:
            self.metrics.increment_counter(
                "content_version_bumps_total",
                collection=collection,
                status=status
            )
