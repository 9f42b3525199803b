"""
Catalog manager: CRUD for genres, sub-genres, moods, instruments, batches
and songs.

Every successful mutation ends with a content version bump for its
collection. Replaced or orphaned media objects are removed after the
document write, so a failed write never loses the old object.
"""

from typing import Any, Dict, Iterable, List, Optional

from shared.errors import ConflictError, NotFoundError, ValidationError
from shared.logging import get_logger
from ..persistence.base import ASCENDING, DESCENDING, Document, DocumentStore
from ..storage.object_store import ObjectStore
from ..versioning.content_version import ContentVersionStore
from .models import (
    BatchCreateRequest, GenreCreateRequest, GenreUpdateRequest,
    ReferenceItemRequest, ReferenceItemUpdateRequest, SongCreateRequest,
    SongUpdateRequest, SubGenreCreateRequest, SubGenreUpdateRequest,
    empty_song_analytics,
)


GENRES = "genres"
SUBGENRES = "subgenres"
MOODS = "moods"
INSTRUMENTS = "instruments"
BATCHES = "batches"
SONGS = "songs"

REFERENCE_LABELS = {
    MOODS: "Mood",
    INSTRUMENTS: "Instrument",
}


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


class CatalogManager:
    """Catalog document operations."""

    def __init__(self, store: DocumentStore, versions: ContentVersionStore, objects: ObjectStore):
        self.store = store
        self.versions = versions
        self.objects = objects
        self.logger = get_logger("catalog.manager")

    # Helpers

    async def _get_or_404(self, collection: str, document_id: str, message: str) -> Document:
        document = await self.store.find_one(collection, {"_id": document_id})
        if document is None:
            raise NotFoundError(message, details={"id": document_id})
        return document

    async def _committed(self, *collections: str):
        for collection in collections:
            await self.versions.bump(collection)

    async def _delete_objects(self, urls: Iterable[Optional[str]]):
        for url in urls:
            if url:
                await self.objects.delete_url(url)

    @staticmethod
    def _next_image(current: Optional[str], replacement: Optional[str], clear: bool) -> str:
        if replacement:
            return replacement
        if clear:
            return ""
        return current or ""

    async def _names_by_id(self, collection: str, ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        wanted = list(dict.fromkeys(i for i in ids if i))
        if not wanted:
            return {}
        documents = await self.store.find(collection, {"_id": {"$in": wanted}})
        return {doc["_id"]: {"_id": doc["_id"], "name": doc.get("name")} for doc in documents}

    async def _all_exist(self, collection: str, ids: List[str]) -> bool:
        wanted = set(ids)
        if not wanted:
            return True
        return await self.store.count(collection, {"_id": {"$in": list(wanted)}}) == len(wanted)

    # Genres

    async def create_genre(self, request: GenreCreateRequest) -> Document:
        name = _clean(request.name)
        if not name:
            raise ValidationError("Genre name is required.")

        if await self.store.find_one(GENRES, {"name": name}):
            raise ConflictError("Genre with this name already exists.", details={"name": name})

        genre = await self.store.insert_one(GENRES, {
            "name": name,
            "description": request.description or "",
            "imageUrl": request.image_url or "",
        })
        await self._committed(GENRES)

        self.logger.info("Genre created", genre_id=genre["_id"], name=name)
        return genre

    async def list_genres(self) -> List[Document]:
        return await self.store.find(GENRES, sort=[("name", ASCENDING)])

    async def update_genre(self, genre_id: str, request: GenreUpdateRequest) -> Document:
        existing = await self._get_or_404(GENRES, genre_id, "Genre not found.")

        name = _clean(request.name)
        if name and name != existing["name"]:
            conflict = await self.store.find_one(GENRES, {"name": name, "_id": {"$ne": genre_id}})
            if conflict:
                raise ConflictError("Another genre with this name already exists.", details={"name": name})

        image_url = self._next_image(existing.get("imageUrl"), request.image_url, request.clear_image)
        updated = await self.store.update_one(GENRES, {"_id": genre_id}, {
            "name": name or existing["name"],
            "description": request.description if request.description is not None else existing.get("description", ""),
            "imageUrl": image_url,
        })
        if updated is None:
            raise NotFoundError("Genre not found after update attempt.", details={"id": genre_id})
        await self._committed(GENRES)

        if existing.get("imageUrl") and existing["imageUrl"] != image_url:
            await self._delete_objects([existing["imageUrl"]])

        self.logger.info("Genre updated", genre_id=genre_id)
        return updated

    async def delete_genre(self, genre_id: str) -> Dict[str, Any]:
        """Delete a genre together with its sub-genres."""
        genre = await self._get_or_404(GENRES, genre_id, "Genre not found.")

        children = await self.store.find(SUBGENRES, {"genre": genre_id})
        removed = await self.store.delete_many(SUBGENRES, {"genre": genre_id})
        if not await self.store.delete_one(GENRES, {"_id": genre_id}):
            raise NotFoundError("Genre not found.", details={"id": genre_id})
        await self._committed(GENRES, SUBGENRES)

        await self._delete_objects([genre.get("imageUrl")] + [child.get("imageUrl") for child in children])

        self.logger.info("Genre deleted", genre_id=genre_id, subgenres_removed=removed)
        return {
            "success": True,
            "message": "Genre and associated sub-genres (and image) deleted successfully.",
            "subGenresDeleted": removed,
        }

    # Sub-genres

    async def _with_parent(self, subgenres: List[Document]) -> List[Document]:
        parents = await self._names_by_id(GENRES, (doc.get("genre") for doc in subgenres))
        for doc in subgenres:
            doc["genre"] = parents.get(doc.get("genre"))
        return subgenres

    async def create_subgenre(self, request: SubGenreCreateRequest) -> Document:
        name = _clean(request.name)
        genre_id = _clean(request.genre)
        if not name or not genre_id:
            raise ValidationError("Sub-genre name and parent genre are required.")

        await self._get_or_404(GENRES, genre_id, "Parent genre not found.")

        if await self.store.find_one(SUBGENRES, {"name": name, "genre": genre_id}):
            raise ConflictError(
                "Sub-genre with this name already exists under the selected genre.",
                details={"name": name, "genre": genre_id}
            )

        subgenre = await self.store.insert_one(SUBGENRES, {
            "name": name,
            "genre": genre_id,
            "description": request.description or "",
            "imageUrl": request.image_url or "",
        })
        await self._committed(SUBGENRES)

        self.logger.info("Sub-genre created", subgenre_id=subgenre["_id"], genre_id=genre_id)
        return subgenre

    async def list_subgenres(self) -> List[Document]:
        subgenres = await self.store.find(SUBGENRES, sort=[("name", ASCENDING)])
        return await self._with_parent(subgenres)

    async def list_subgenres_by_genre(self, genre_id: str) -> List[Document]:
        return await self.store.find(SUBGENRES, {"genre": genre_id}, sort=[("name", ASCENDING)])

    async def update_subgenre(self, subgenre_id: str, request: SubGenreUpdateRequest) -> Document:
        existing = await self._get_or_404(SUBGENRES, subgenre_id, "Sub-genre not found.")

        name = _clean(request.name) or existing["name"]
        genre_id = _clean(request.genre) or existing["genre"]

        if genre_id != existing["genre"]:
            await self._get_or_404(GENRES, genre_id, "New parent genre not found.")

        if name != existing["name"] or genre_id != existing["genre"]:
            conflict = await self.store.find_one(
                SUBGENRES, {"name": name, "genre": genre_id, "_id": {"$ne": subgenre_id}}
            )
            if conflict:
                raise ConflictError(
                    "Another sub-genre with this name already exists under the selected genre.",
                    details={"name": name, "genre": genre_id}
                )

        image_url = self._next_image(existing.get("imageUrl"), request.image_url, request.clear_image)
        updated = await self.store.update_one(SUBGENRES, {"_id": subgenre_id}, {
            "name": name,
            "genre": genre_id,
            "description": request.description if request.description is not None else existing.get("description", ""),
            "imageUrl": image_url,
        })
        if updated is None:
            raise NotFoundError("Sub-genre not found after update attempt.", details={"id": subgenre_id})
        await self._committed(SUBGENRES)

        if existing.get("imageUrl") and existing["imageUrl"] != image_url:
            await self._delete_objects([existing["imageUrl"]])

        self.logger.info("Sub-genre updated", subgenre_id=subgenre_id)
        return (await self._with_parent([updated]))[0]

    async def delete_subgenre(self, subgenre_id: str) -> Dict[str, Any]:
        subgenre = await self._get_or_404(SUBGENRES, subgenre_id, "Sub-genre not found.")

        if not await self.store.delete_one(SUBGENRES, {"_id": subgenre_id}):
            raise NotFoundError("Sub-genre not found.", details={"id": subgenre_id})
        await self._committed(SUBGENRES)

        await self._delete_objects([subgenre.get("imageUrl")])

        self.logger.info("Sub-genre deleted", subgenre_id=subgenre_id)
        return {"success": True, "message": "Sub-genre and its image deleted successfully."}

    # Moods and instruments

    async def create_reference_item(self, collection: str, request: ReferenceItemRequest) -> Document:
        label = REFERENCE_LABELS[collection]
        name = _clean(request.name)
        if not name:
            raise ValidationError(f"{label} name is required.")

        if await self.store.find_one(collection, {"name": name}, case_insensitive=True):
            raise ConflictError(f'{label} "{name}" already exists.', details={"name": name})

        item = await self.store.insert_one(collection, {
            "name": name,
            "description": request.description or "",
            "imageUrl": request.image_url or "",
        })
        await self._committed(collection)

        self.logger.info(f"{label} created", item_id=item["_id"], name=name)
        return item

    async def list_reference_items(self, collection: str) -> List[Document]:
        return await self.store.find(collection, sort=[("name", ASCENDING)])

    async def update_reference_item(
        self,
        collection: str,
        item_id: str,
        request: ReferenceItemUpdateRequest,
    ) -> Document:
        label = REFERENCE_LABELS[collection]
        existing = await self._get_or_404(collection, item_id, f"{label} not found.")

        name = _clean(request.name)
        if name and name != existing["name"]:
            conflict = await self.store.find_one(
                collection, {"name": name, "_id": {"$ne": item_id}}, case_insensitive=True
            )
            if conflict:
                raise ConflictError(
                    f'Another {label.lower()} with the name "{name}" already exists.',
                    details={"name": name}
                )

        image_url = self._next_image(existing.get("imageUrl"), request.image_url, request.clear_image)
        updated = await self.store.update_one(collection, {"_id": item_id}, {
            "name": name or existing["name"],
            "description": request.description if request.description is not None else existing.get("description", ""),
            "imageUrl": image_url,
        })
        if updated is None:
            raise NotFoundError(f"{label} not found after update attempt.", details={"id": item_id})
        await self._committed(collection)

        if existing.get("imageUrl") and existing["imageUrl"] != image_url:
            await self._delete_objects([existing["imageUrl"]])

        self.logger.info(f"{label} updated", item_id=item_id)
        return updated

    async def delete_reference_item(self, collection: str, item_id: str) -> Dict[str, Any]:
        label = REFERENCE_LABELS[collection]
        existing = await self._get_or_404(collection, item_id, f"{label} not found.")

        if not await self.store.delete_one(collection, {"_id": item_id}):
            raise NotFoundError(f"{label} not found.", details={"id": item_id})
        await self._committed(collection)

        await self._delete_objects([existing.get("imageUrl")])

        self.logger.info(f"{label} deleted", item_id=item_id)
        return {"success": True, "message": f"{label} and its image deleted successfully."}

    # Batches

    async def create_batch(self, request: BatchCreateRequest) -> Document:
        name = _clean(request.name)
        if not name:
            raise ValidationError("Batch name is required.")

        if await self.store.find_one(BATCHES, {"name": name}, case_insensitive=True):
            raise ConflictError(f'Batch "{name}" already exists.', details={"name": name})

        batch = await self.store.insert_one(BATCHES, {"name": name})
        await self._committed(BATCHES)

        self.logger.info("Batch created", batch_id=batch["_id"], name=name)
        return batch

    async def list_batches(self) -> List[Document]:
        return await self.store.find(BATCHES, sort=[("name", ASCENDING)])

    # Songs

    async def populate_songs(self, songs: List[Document]) -> List[Document]:
        """Replace genre and sub-genre ids with ``{_id, name}`` pairs."""
        genres = await self._names_by_id(GENRES, (g for song in songs for g in song.get("genres", [])))
        subgenres = await self._names_by_id(SUBGENRES, (s for song in songs for s in song.get("subGenres", [])))
        for song in songs:
            song["genres"] = [genres[g] for g in song.get("genres", []) if g in genres]
            song["subGenres"] = [subgenres[s] for s in song.get("subGenres", []) if s in subgenres]
        return songs

    async def _check_song_refs(self, genres: List[str], subgenres: List[str], message: str):
        if not await self._all_exist(GENRES, genres) or not await self._all_exist(SUBGENRES, subgenres):
            raise NotFoundError(message, details={"genres": genres, "subGenres": subgenres})

    async def create_song(self, request: SongCreateRequest) -> Document:
        title = _clean(request.title)
        if not title:
            raise ValidationError("Song title is required.")
        if not request.image_url or not request.audio_url:
            raise ValidationError("Both image and audio files are required.")
        if request.collection_type is None:
            raise ValidationError("Collection type is required.")

        await self._check_song_refs(
            request.genres, request.sub_genres,
            "One or more provided Genre or SubGenre IDs are invalid."
        )

        song = await self.store.insert_one(SONGS, {
            "title": title,
            "artist": _clean(request.artist),
            "imageUrl": request.image_url,
            "audioUrl": request.audio_url,
            "duration": request.duration,
            "genres": request.genres,
            "subGenres": request.sub_genres,
            "collectionType": request.collection_type.value,
            "isExclusive": request.is_exclusive,
            "analytics": empty_song_analytics(),
        })
        await self._committed(SONGS)

        self.logger.info("Song created", song_id=song["_id"], title=title)
        return song

    async def list_songs(self) -> List[Document]:
        songs = await self.store.find(SONGS, sort=[("createdAt", DESCENDING)])
        return await self.populate_songs(songs)

    async def update_song(self, song_id: str, request: SongUpdateRequest) -> Document:
        existing = await self._get_or_404(SONGS, song_id, "Song not found.")

        genres = request.genres if request.genres is not None else existing.get("genres", [])
        subgenres = request.sub_genres if request.sub_genres is not None else existing.get("subGenres", [])
        await self._check_song_refs(
            genres, subgenres,
            "One or more provided Genre or SubGenre IDs are invalid for update."
        )

        values: Dict[str, Any] = {"genres": genres, "subGenres": subgenres}
        if _clean(request.title):
            values["title"] = _clean(request.title)
        if request.artist is not None:
            values["artist"] = _clean(request.artist)
        if request.duration is not None:
            values["duration"] = request.duration
        if request.collection_type is not None:
            values["collectionType"] = request.collection_type.value
        if request.is_exclusive is not None:
            values["isExclusive"] = request.is_exclusive
        if request.image_url:
            values["imageUrl"] = request.image_url
        if request.audio_url:
            values["audioUrl"] = request.audio_url

        updated = await self.store.update_one(SONGS, {"_id": song_id}, values)
        if updated is None:
            raise NotFoundError("Song not found after update attempt.", details={"id": song_id})
        await self._committed(SONGS)

        replaced = [
            existing.get(field) for field in ("imageUrl", "audioUrl")
            if field in values and existing.get(field) and existing[field] != values[field]
        ]
        await self._delete_objects(replaced)

        self.logger.info("Song updated", song_id=song_id)
        return (await self.populate_songs([updated]))[0]

    async def delete_song(self, song_id: str) -> Dict[str, Any]:
        """Delete a song and both of its media objects."""
        song = await self._get_or_404(SONGS, song_id, "Song not found.")

        if not await self.store.delete_one(SONGS, {"_id": song_id}):
            raise NotFoundError("Song not found.", details={"id": song_id})
        await self._committed(SONGS)

        await self._delete_objects([song.get("imageUrl"), song.get("audioUrl")])

        self.logger.info("Song deleted", song_id=song_id)
        return {"success": True, "message": "Song and associated files deleted successfully."}

    async def weekly_recommendations(self, limit: int = 20) -> List[Document]:
        """Top songs by trending score."""
        songs = await self.store.find(
            SONGS,
            sort=[("analytics.trendingScore", DESCENDING), ("analytics.weeklyPlays", DESCENDING)],
            limit=limit,
        )
        return await self.populate_songs(songs)
