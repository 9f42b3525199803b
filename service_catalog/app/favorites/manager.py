"""
Favorites manager.

Favorites are an ordered list of song ids on the user document and the
download history keeps the most recent entries only. Neither is catalog
content, so these writes leave the content version alone.
"""

from typing import Any, Dict, List, Optional

from shared.errors import AuthenticationError, NotFoundError, ValidationError
from shared.logging import get_logger
from ..auth.middleware import USERS
from ..catalog.manager import SONGS
from ..persistence.base import Document, DocumentStore, utcnow


FAVORITE_SONG_FIELDS = ("_id", "title", "artist", "imageUrl", "audioUrl", "collectionType", "duration")
MAX_DOWNLOAD_HISTORY = 100


class FavoritesManager:
    """Favorite songs and download tracking for signed-in users."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.logger = get_logger("catalog.favorites")

    async def _get_user(self, user_id: str) -> Document:
        user = await self.store.find_one(USERS, {"_id": user_id})
        if user is None:
            raise AuthenticationError("User not found for this token")
        return user

    async def list_favorites(self, user_id: str) -> List[Dict[str, Any]]:
        """The user's favorite songs in the order they were added.

        Songs deleted from the catalog since are left out.
        """
        favorites = (await self._get_user(user_id)).get("favorites") or []
        if not favorites:
            return []

        songs = await self.store.find(SONGS, {"_id": {"$in": favorites}})
        by_id = {song["_id"]: song for song in songs}
        return [
            {field: by_id[song_id].get(field) for field in FAVORITE_SONG_FIELDS}
            for song_id in favorites if song_id in by_id
        ]

    async def add_favorite(self, user_id: str, song_id: str) -> Dict[str, Any]:
        song_id = (song_id or "").strip()
        if not song_id:
            raise ValidationError("songId is required")

        user = await self._get_user(user_id)
        if await self.store.find_one(SONGS, {"_id": song_id}) is None:
            raise NotFoundError("Song not found.", details={"id": song_id})

        favorites = list(user.get("favorites") or [])
        if song_id not in favorites:
            favorites.append(song_id)
            await self.store.update_one(USERS, {"_id": user_id}, {"favorites": favorites})
            self.logger.info("Favorite added", user_id=user_id, song_id=song_id)

        return {"message": "Song added to favorites", "favorites": favorites}

    async def remove_favorite(self, user_id: str, song_id: str) -> Dict[str, Any]:
        user = await self._get_user(user_id)
        current = user.get("favorites") or []
        favorites = [favorite for favorite in current if favorite != song_id]

        if len(favorites) != len(current):
            await self.store.update_one(USERS, {"_id": user_id}, {"favorites": favorites})
            self.logger.info("Favorite removed", user_id=user_id, song_id=song_id)

        return {"message": "Song removed from favorites", "favorites": favorites}

    async def track_download(self, user_id: str, song_id: str, song_title: Optional[str] = None) -> Dict[str, Any]:
        song_id = (song_id or "").strip()
        if not song_id:
            raise ValidationError("songId is required")

        user = await self._get_user(user_id)
        history = list(user.get("downloadHistory") or [])
        history.append({"songId": song_id, "songTitle": song_title, "downloadedAt": utcnow()})

        await self.store.update_one(
            USERS,
            {"_id": user_id},
            {"downloadHistory": history[-MAX_DOWNLOAD_HISTORY:]}
        )

        self.logger.info("Download tracked", user_id=user_id, song_id=song_id)
        return {"message": "Download tracked"}
