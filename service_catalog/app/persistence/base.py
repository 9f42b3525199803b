"""
Document store interface.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId


Document = Dict[str, Any]
Filter = Dict[str, Any]
SortSpec = Sequence[Tuple[str, int]]

ASCENDING = 1
DESCENDING = -1


def new_document_id() -> str:
    """Generate a new document id."""
    return str(ObjectId())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStore(ABC):
    """Async document store used by the catalog managers.

    Documents are plain dicts keyed by a string ``_id``. Filters accept
    equality, ``$in``, ``$ne``, ``$gt``/``$gte``/``$lt``/``$lte`` and dotted
    paths into sub-documents. Updates set fields (dotted paths allowed) and
    never replace a whole document.
    """

    async def start(self):
        """Open connections."""

    async def stop(self):
        """Close connections."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True if the store is reachable."""

    @abstractmethod
    async def insert_one(self, collection: str, document: Document) -> Document:
        """Insert a document, stamping ``_id``, ``createdAt`` and ``updatedAt``."""

    @abstractmethod
    async def find_one(
        self,
        collection: str,
        filter: Filter,
        case_insensitive: bool = False,
    ) -> Optional[Document]:
        """Return the first matching document or None.

        ``case_insensitive`` compares string values ignoring case, the way a
        strength-2 collation does.
        """

    @abstractmethod
    async def find(
        self,
        collection: str,
        filter: Optional[Filter] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """Return all matching documents."""

    @abstractmethod
    async def find_or_insert(self, collection: str, filter: Filter, document: Document) -> Document:
        """Return the first match, inserting ``document`` in one step if none exists.

        An existing match is returned untouched.
        """

    @abstractmethod
    async def update_one(
        self,
        collection: str,
        filter: Filter,
        values: Dict[str, Any],
        upsert: bool = False,
    ) -> Optional[Document]:
        """Set ``values`` on the first matching document and return it updated."""

    @abstractmethod
    async def update_many(self, collection: str, filter: Filter, values: Dict[str, Any]) -> int:
        """Set ``values`` on every matching document. Returns the match count."""

    @abstractmethod
    async def delete_one(self, collection: str, filter: Filter) -> bool:
        """Delete the first matching document."""

    @abstractmethod
    async def delete_many(self, collection: str, filter: Filter) -> int:
        """Delete every matching document. Returns the deleted count."""

    @abstractmethod
    async def count(self, collection: str, filter: Optional[Filter] = None) -> int:
        """Count matching documents."""
