"""
Content version tracking.
"""

from .content_version import ContentVersionStore, VERSIONED_COLLECTIONS

__all__ = ["ContentVersionStore", "VERSIONED_COLLECTIONS"]
