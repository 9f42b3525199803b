"""
Request models for catalog mutations.

Bodies use the admin console's camelCase field names. Required fields are
optional here so the managers can answer with the catalog's own 400
messages instead of a generic validation error.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CollectionType(str, Enum):
    """Song availability."""
    FREE = "free"
    PAID = "paid"


class CatalogModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenreCreateRequest(CatalogModel):
    """Genre creation request."""
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")


class GenreUpdateRequest(GenreCreateRequest):
    """Genre update request."""
    clear_image: bool = Field(False, alias="clearImage")


class SubGenreCreateRequest(CatalogModel):
    """Sub-genre creation request."""
    name: Optional[str] = None
    genre: Optional[str] = Field(None, description="Parent genre id")
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")


class SubGenreUpdateRequest(SubGenreCreateRequest):
    """Sub-genre update request."""
    clear_image: bool = Field(False, alias="clearImage")


class ReferenceItemRequest(CatalogModel):
    """Mood or instrument creation request."""
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")


class ReferenceItemUpdateRequest(ReferenceItemRequest):
    """Mood or instrument update request."""
    clear_image: bool = Field(False, alias="clearImage")


class BatchCreateRequest(CatalogModel):
    """Batch creation request."""
    name: Optional[str] = None


class SongCreateRequest(CatalogModel):
    """Song creation request. Media URLs point at already-uploaded objects."""
    title: Optional[str] = None
    artist: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")
    audio_url: Optional[str] = Field(None, alias="audioUrl")
    duration: float = Field(0, ge=0, description="Duration in seconds")
    genres: List[str] = Field(default_factory=list)
    sub_genres: List[str] = Field(default_factory=list, alias="subGenres")
    collection_type: Optional[CollectionType] = Field(None, alias="collectionType")
    is_exclusive: bool = Field(False, alias="isExclusive")


class SongUpdateRequest(CatalogModel):
    """Song update request. Omitted fields keep their stored value."""
    title: Optional[str] = None
    artist: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")
    audio_url: Optional[str] = Field(None, alias="audioUrl")
    duration: Optional[float] = Field(None, ge=0)
    genres: Optional[List[str]] = None
    sub_genres: Optional[List[str]] = Field(None, alias="subGenres")
    collection_type: Optional[CollectionType] = Field(None, alias="collectionType")
    is_exclusive: Optional[bool] = Field(None, alias="isExclusive")


def empty_song_analytics() -> dict:
    """Analytics block of a newly created song."""
    return {
        "totalPlays": 0,
        "totalDownloads": 0,
        "totalFavorites": 0,
        "totalPlaytimeHours": 0,
        "weeklyPlays": 0,
        "weeklyDownloads": 0,
        "weeklyFavorites": 0,
        "trendingScore": 0,
        "lastPlayedAt": None,
        "lastTrendingUpdate": None,
    }
