"""
Favorites request models.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FavoriteAddRequest(BaseModel):
    """Add a song to the caller's favorites."""
    model_config = ConfigDict(populate_by_name=True)

    song_id: Optional[str] = Field(None, alias="songId")


class DownloadTrackRequest(BaseModel):
    """Record that the caller downloaded a song."""
    model_config = ConfigDict(populate_by_name=True)

    song_id: Optional[str] = Field(None, alias="songId")
    song_title: Optional[str] = Field(None, alias="songTitle")
