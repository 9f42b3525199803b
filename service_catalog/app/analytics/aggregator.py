"""
Song analytics aggregation.

Aggregations run over plain store queries so they behave the same on
MongoDB and on the in-memory store.
"""

import math
import time
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from shared.errors import NotFoundError
from shared.logging import get_logger
from ..catalog.manager import CatalogManager, SONGS
from ..persistence.base import DESCENDING, Document, DocumentStore


SONG_ANALYTICS = "song_analytics"

# Trending weights: plays count triple, downloads double
PLAY_WEIGHT = 3
DOWNLOAD_WEIGHT = 2
FAVORITE_WEIGHT = 1

SEEK_BUCKET_SECONDS = 10
POPULAR_TIMESTAMP_LIMIT = 20
SONG_RECENT_LIMIT = 100
PLATFORM_RECENT_LIMIT = 50
TOP_SONGS_LIMIT = 10

TOTAL_FIELDS = (
    "totalPlays",
    "totalDownloads",
    "totalFavorites",
    "totalPlaytimeHours",
    "weeklyPlays",
    "weeklyDownloads",
    "weeklyFavorites",
)


def trending_score(analytics: Optional[Dict[str, Any]]) -> float:
    analytics = analytics or {}
    return (
        (analytics.get("weeklyPlays") or 0) * PLAY_WEIGHT
        + (analytics.get("weeklyDownloads") or 0) * DOWNLOAD_WEIGHT
        + (analytics.get("weeklyFavorites") or 0) * FAVORITE_WEIGHT
    )


def _mean(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


class AnalyticsAggregator:
    """Read-side analytics over songs and interaction events."""

    def __init__(
        self,
        store: DocumentStore,
        catalog: CatalogManager,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.catalog = catalog
        self.clock = clock
        self.logger = get_logger("catalog.analytics")

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)

    def _cutoff(self, days: int) -> datetime:
        return self._now() - timedelta(days=days)

    async def recalculate_trending_scores(self) -> int:
        """Recompute every song's trending score. Returns the song count."""
        songs = await self.store.find(SONGS)
        now = self._now()
        for song in songs:
            await self.store.update_one(SONGS, {"_id": song["_id"]}, {
                "analytics.trendingScore": trending_score(song.get("analytics")),
                "analytics.lastTrendingUpdate": now,
            })

        self.logger.info("Trending scores updated", songs=len(songs))
        return len(songs)

    async def songs_overview(self) -> List[Dict[str, Any]]:
        """All songs by trending score, with their analytics block."""
        await self.recalculate_trending_scores()

        songs = await self.store.find(SONGS, sort=[("analytics.trendingScore", DESCENDING)])
        songs = await self.catalog.populate_songs(songs)

        overview = []
        for song in songs:
            analytics = song.get("analytics") or {}
            summary = {field: analytics.get(field, 0) for field in TOTAL_FIELDS + ("trendingScore",)}
            summary["lastPlayedAt"] = analytics.get("lastPlayedAt")
            overview.append({
                "_id": song["_id"],
                "title": song.get("title"),
                "artist": song.get("artist"),
                "genres": song.get("genres", []),
                "subGenres": song.get("subGenres", []),
                "collectionType": song.get("collectionType"),
                "createdAt": song.get("createdAt"),
                "analytics": summary,
            })
        return overview

    async def song_detail(self, song_id: str, days: int = 7) -> Dict[str, Any]:
        """Detailed analytics for one song over the last ``days`` days."""
        songs = await self.store.find(SONGS, {"_id": song_id})
        if not songs:
            raise NotFoundError("Song not found", details={"id": song_id})
        song = (await self.catalog.populate_songs(songs))[0]

        events = await self.store.find(
            SONG_ANALYTICS,
            {"songId": song_id, "timestamp": {"$gte": self._cutoff(days)}},
            sort=[("timestamp", DESCENDING)],
        )

        recent = [
            {
                "_id": event["_id"],
                "interactionType": event.get("interactionType"),
                "playData": event.get("playData"),
                "timestamp": event.get("timestamp"),
                "userId": event.get("userId"),
                "userEmail": event.get("userEmail"),
            }
            for event in events[:SONG_RECENT_LIMIT]
        ]
        completions = [
            (event.get("playData") or {}).get("completionPercentage") or 0
            for event in recent if event["interactionType"] == "play"
        ]

        return {
            "song": {
                "_id": song["_id"],
                "title": song.get("title"),
                "artist": song.get("artist"),
                "duration": song.get("duration"),
                "genres": song.get("genres", []),
                "subGenres": song.get("subGenres", []),
                "analytics": song.get("analytics"),
            },
            "popularTimestamps": self._popular_timestamps(events),
            "detailedStats": self._interaction_stats(events),
            "recentInteractions": recent,
            "avgCompletionRate": _mean(completions) or 0,
            "periodDays": days,
        }

    @staticmethod
    def _popular_timestamps(events: List[Document]) -> List[Dict[str, Any]]:
        buckets: Dict[int, List[float]] = defaultdict(list)
        for event in events:
            if event.get("interactionType") != "seek":
                continue
            position = (event.get("seekData") or {}).get("toPosition")
            if position is None:
                continue
            buckets[math.floor(position / SEEK_BUCKET_SECONDS)].append(position)

        ranked = sorted(buckets.items(), key=lambda item: (-len(item[1]), item[0]))
        return [
            {
                "_id": {"interval": interval},
                "count": len(positions),
                "avgPosition": _mean(positions),
            }
            for interval, positions in ranked[:POPULAR_TIMESTAMP_LIMIT]
        ]

    @staticmethod
    def _interaction_stats(events: List[Document]) -> List[Dict[str, Any]]:
        grouped: Dict[str, List[Document]] = defaultdict(list)
        for event in events:
            grouped[event.get("interactionType")].append(event)

        stats = []
        for interaction_type, items in grouped.items():
            play_data = [item.get("playData") or {} for item in items]
            completions = [
                data["completionPercentage"] for data in play_data
                if data.get("completionPercentage") is not None
            ]
            stats.append({
                "_id": interaction_type,
                "count": len(items),
                "totalDuration": sum(data.get("duration") or 0 for data in play_data),
                "avgCompletionRate": _mean(completions),
            })
        return stats

    async def platform_stats(self, days: int = 7) -> Dict[str, Any]:
        """Platform-wide totals, top songs and recent activity."""
        await self.recalculate_trending_scores()

        songs = await self.store.find(SONGS)
        totals = {field: 0 for field in TOTAL_FIELDS}
        for song in songs:
            analytics = song.get("analytics") or {}
            for field in TOTAL_FIELDS:
                totals[field] += analytics.get(field) or 0

        top = await self.store.find(SONGS, sort=[("analytics.totalPlays", DESCENDING)], limit=TOP_SONGS_LIMIT)
        top_songs = [
            {
                "_id": song["_id"],
                "title": song.get("title"),
                "artist": song.get("artist"),
                "analytics": {
                    field: (song.get("analytics") or {}).get(field, 0)
                    for field in ("totalPlays", "totalDownloads", "totalFavorites")
                },
            }
            for song in top
        ]

        events = await self.store.find(
            SONG_ANALYTICS,
            {"timestamp": {"$gte": self._cutoff(days)}},
            sort=[("timestamp", DESCENDING)],
            limit=PLATFORM_RECENT_LIMIT,
        )
        titles = {song["_id"]: song for song in songs}
        recent_activity = []
        for event in events:
            song = titles.get(event.get("songId"))
            recent_activity.append({
                "_id": event["_id"],
                "songId": {
                    "_id": song["_id"],
                    "title": song.get("title"),
                    "artist": song.get("artist"),
                } if song else None,
                "interactionType": event.get("interactionType"),
                "timestamp": event.get("timestamp"),
                "userEmail": event.get("userEmail"),
            })

        return {
            "totalSongs": len(songs),
            "stats": totals,
            "topSongs": top_songs,
            "recentActivity": recent_activity,
            "periodDays": days,
        }

    async def reset_weekly_counters(self) -> int:
        """Zero weekly counters and trending scores of every song."""
        reset = await self.store.update_many(SONGS, {}, {
            "analytics.weeklyPlays": 0,
            "analytics.weeklyDownloads": 0,
            "analytics.weeklyFavorites": 0,
            "analytics.trendingScore": 0,
            "analytics.lastTrendingUpdate": self._now(),
        })

        self.logger.info("Weekly counters reset", songs=reset)
        return reset
