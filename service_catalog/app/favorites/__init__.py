"""
Per-user favorite songs and download history.
"""

from .manager import FavoritesManager
from .models import DownloadTrackRequest, FavoriteAddRequest

__all__ = [
    "DownloadTrackRequest",
    "FavoriteAddRequest",
    "FavoritesManager",
]
