"""
Object storage for catalog media.
"""

from .object_store import ObjectStore

__all__ = ["ObjectStore"]
