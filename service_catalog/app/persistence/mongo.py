"""
MongoDB document store for the catalog service.
"""

from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.collation import Collation, CollationStrength

from shared.logging import get_logger
from shared.errors import ExternalServiceError
from .base import (
    DocumentStore, Document, Filter, SortSpec, new_document_id, utcnow,
)


# Case-insensitive name lookups (matches "Chill" against "chill")
CASE_INSENSITIVE = Collation(locale="en", strength=CollationStrength.SECONDARY)

INDEXES = {
    "content_versions": [("key", True)],
    "users": [("username", True)],
    "genres": [("name", True)],
    "song_analytics": [("songId", False), ("timestamp", False)],
}


class MongoDocumentStore(DocumentStore):
    """MongoDB persistence through motor."""

    def __init__(self, uri: str, database: str, server_selection_timeout_ms: int = 5000):
        self.uri = uri
        self.database_name = database
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self.logger = get_logger("catalog.persistence.mongo")
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    async def start(self):
        """Connect and ensure indexes."""
        try:
            self.client = AsyncIOMotorClient(
                self.uri,
                tz_aware=True,
                serverSelectionTimeoutMS=self.server_selection_timeout_ms,
            )
            self.db = self.client[self.database_name]
            await self.client.admin.command("ping")
            await self._ensure_indexes()

            self.logger.info("MongoDB document store started", database=self.database_name)

        except Exception as e:
            self.logger.error("Failed to start MongoDB document store", error=str(e))
            raise ExternalServiceError("mongodb", str(e)) from e

    async def stop(self):
        if self.client:
            self.client.close()
            self.logger.info("MongoDB document store stopped")

    async def _ensure_indexes(self):
        for collection, indexes in INDEXES.items():
            for field, unique in indexes:
                await self.db[collection].create_index(field, unique=unique)

    async def health_check(self) -> bool:
        try:
            await self.client.admin.command("ping")
            return True
        except Exception as e:
            self.logger.error("MongoDB health check failed", error=str(e))
            return False

    async def insert_one(self, collection: str, document: Document) -> Document:
        stored = dict(document)
        stored.setdefault("_id", new_document_id())
        now = utcnow()
        stored.setdefault("createdAt", now)
        stored.setdefault("updatedAt", now)
        await self.db[collection].insert_one(stored)
        return stored

    async def find_one(self, collection: str, filter: Filter, case_insensitive: bool = False) -> Optional[Document]:
        if case_insensitive:
            return await self.db[collection].find_one(filter, collation=CASE_INSENSITIVE)
        return await self.db[collection].find_one(filter)

    async def find(
        self,
        collection: str,
        filter: Optional[Filter] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        cursor = self.db[collection].find(filter or {})
        if sort:
            cursor = cursor.sort(list(sort))
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def find_or_insert(self, collection: str, filter: Filter, document: Document) -> Document:
        now = utcnow()
        seed = {"_id": new_document_id(), "createdAt": now, "updatedAt": now, **document}
        return await self.db[collection].find_one_and_update(
            filter,
            {"$setOnInsert": seed},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    async def update_one(
        self,
        collection: str,
        filter: Filter,
        values: Dict[str, Any],
        upsert: bool = False,
    ) -> Optional[Document]:
        update: Dict[str, Any] = {"$set": {"updatedAt": utcnow(), **values}}
        if upsert:
            update["$setOnInsert"] = {"_id": new_document_id(), "createdAt": utcnow()}
        return await self.db[collection].find_one_and_update(
            filter,
            update,
            upsert=upsert,
            return_document=ReturnDocument.AFTER,
        )

    async def update_many(self, collection: str, filter: Filter, values: Dict[str, Any]) -> int:
        result = await self.db[collection].update_many(
            filter, {"$set": {"updatedAt": utcnow(), **values}}
        )
        return result.matched_count

    async def delete_one(self, collection: str, filter: Filter) -> bool:
        result = await self.db[collection].delete_one(filter)
        return result.deleted_count == 1

    async def delete_many(self, collection: str, filter: Filter) -> int:
        result = await self.db[collection].delete_many(filter)
        return result.deleted_count

    async def count(self, collection: str, filter: Optional[Filter] = None) -> int:
        return await self.db[collection].count_documents(filter or {})
