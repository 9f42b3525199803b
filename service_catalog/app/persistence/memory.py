"""
In-process document store.
"""

import copy
from typing import Any, Dict, List, Optional

from shared.logging import get_logger
from .base import (
    DocumentStore, Document, Filter, SortSpec, new_document_id, utcnow,
)


_MISSING = object()


def get_path(document: Document, path: str) -> Any:
    """Resolve a dotted path, returning ``_MISSING`` when absent."""
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def set_path(document: Document, path: str, value: Any):
    """Set a dotted path, creating intermediate sub-documents."""
    parts = path.split(".")
    target = document
    for part in parts[:-1]:
        child = target.get(part)
        if not isinstance(child, dict):
            child = {}
            target[part] = child
        target = child
    target[parts[-1]] = value


def _fold(value: Any, case_insensitive: bool) -> Any:
    if case_insensitive and isinstance(value, str):
        return value.casefold()
    return value


def _equals(actual: Any, expected: Any, case_insensitive: bool) -> bool:
    if actual is _MISSING:
        return expected is None
    if isinstance(actual, list) and not isinstance(expected, list):
        return any(_fold(item, case_insensitive) == _fold(expected, case_insensitive) for item in actual)
    return _fold(actual, case_insensitive) == _fold(expected, case_insensitive)


def _compare(actual: Any, operator: str, expected: Any) -> bool:
    if actual is _MISSING or actual is None:
        return False
    try:
        if operator == "$gt":
            return actual > expected
        if operator == "$gte":
            return actual >= expected
        if operator == "$lt":
            return actual < expected
        return actual <= expected
    except TypeError:
        return False


def matches(document: Document, filter: Optional[Filter], case_insensitive: bool = False) -> bool:
    """Evaluate a filter against a document."""
    for path, condition in (filter or {}).items():
        actual = get_path(document, path)
        if isinstance(condition, dict) and condition and all(key.startswith("$") for key in condition):
            for operator, expected in condition.items():
                if operator == "$in":
                    if not any(_equals(actual, option, case_insensitive) for option in expected):
                        return False
                elif operator == "$ne":
                    if _equals(actual, expected, case_insensitive):
                        return False
                elif operator in ("$gt", "$gte", "$lt", "$lte"):
                    if not _compare(actual, operator, expected):
                        return False
                else:
                    raise ValueError(f"Unsupported filter operator: {operator}")
        elif not _equals(actual, condition, case_insensitive):
            return False
    return True


def _sort_key(value: Any):
    if value is _MISSING or value is None:
        return (0, 0)
    return (1, value)


class InMemoryDocumentStore(DocumentStore):
    """Document store kept in a dict of collections.

    Documents are deep-copied on the way in and out so callers never share
    state with the store.
    """

    def __init__(self):
        self.logger = get_logger("catalog.persistence.memory")
        self._collections: Dict[str, List[Document]] = {}

    async def start(self):
        self.logger.info("In-memory document store started")

    async def health_check(self) -> bool:
        return True

    def _collection(self, name: str) -> List[Document]:
        return self._collections.setdefault(name, [])

    def _matching(self, collection: str, filter: Optional[Filter], case_insensitive: bool = False) -> List[Document]:
        return [doc for doc in self._collection(collection) if matches(doc, filter, case_insensitive)]

    async def insert_one(self, collection: str, document: Document) -> Document:
        stored = copy.deepcopy(document)
        stored.setdefault("_id", new_document_id())
        now = utcnow()
        stored.setdefault("createdAt", now)
        stored.setdefault("updatedAt", now)
        self._collection(collection).append(stored)
        return copy.deepcopy(stored)

    async def find_one(self, collection: str, filter: Filter, case_insensitive: bool = False) -> Optional[Document]:
        found = self._matching(collection, filter, case_insensitive)
        return copy.deepcopy(found[0]) if found else None

    async def find(
        self,
        collection: str,
        filter: Optional[Filter] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        found = self._matching(collection, filter)
        # Stable sorts applied last-key-first give a compound ordering
        for path, direction in reversed(list(sort or [])):
            found = sorted(found, key=lambda doc: _sort_key(get_path(doc, path)), reverse=direction < 0)
        if limit:
            found = found[:limit]
        return copy.deepcopy(found)

    async def find_or_insert(self, collection: str, filter: Filter, document: Document) -> Document:
        found = self._matching(collection, filter)
        if found:
            return copy.deepcopy(found[0])
        return await self.insert_one(collection, document)

    async def update_one(
        self,
        collection: str,
        filter: Filter,
        values: Dict[str, Any],
        upsert: bool = False,
    ) -> Optional[Document]:
        found = self._matching(collection, filter)
        if not found:
            if not upsert:
                return None
            seed = {
                path: condition for path, condition in filter.items()
                if not isinstance(condition, dict)
            }
            document: Document = {}
            for path, value in {**seed, **values}.items():
                set_path(document, path, value)
            return await self.insert_one(collection, document)

        target = found[0]
        for path, value in values.items():
            set_path(target, path, copy.deepcopy(value))
        if "updatedAt" not in values:
            target["updatedAt"] = utcnow()
        return copy.deepcopy(target)

    async def update_many(self, collection: str, filter: Filter, values: Dict[str, Any]) -> int:
        found = self._matching(collection, filter)
        now = utcnow()
        for target in found:
            for path, value in values.items():
                set_path(target, path, copy.deepcopy(value))
            if "updatedAt" not in values:
                target["updatedAt"] = now
        return len(found)

    async def delete_one(self, collection: str, filter: Filter) -> bool:
        found = self._matching(collection, filter)
        if not found:
            return False
        self._collection(collection).remove(found[0])
        return True

    async def delete_many(self, collection: str, filter: Filter) -> int:
        found = self._matching(collection, filter)
        keep = [doc for doc in self._collection(collection) if not any(doc is gone for gone in found)]
        self._collections[collection] = keep
        return len(found)

    async def count(self, collection: str, filter: Optional[Filter] = None) -> int:
        return len(self._matching(collection, filter))
