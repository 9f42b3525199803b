"""
Document store implementations for the catalog service.

The MongoDB store is used in deployments; the in-memory store backs local
runs (``VARA_DOCUMENT_STORE=memory``) and the test suite.
"""

from .base import DocumentStore
from .memory import InMemoryDocumentStore
from .mongo import MongoDocumentStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "MongoDocumentStore",
]
