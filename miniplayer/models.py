"""
Data Models for the MiniPlayer catalog

Songs and playlist membership links held by the catalog store.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Table and column names used in the persisted catalog
# ---------------------------------------------------------------------------

SONG_TABLE = "song"
PLAYLIST_SONG_TABLE = "playlist_song"

SONG_FIELDS: tuple[str, ...] = ("title", "artist", "album", "genre", "length", "filename")

# Characters outside the XML 1.0 Char production cannot be stored in the catalog file
_XML_ILLEGAL = re.compile(r"[^\t\n\r\x20-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]")


# ---------------------------------------------------------------------------
# Song models
# ---------------------------------------------------------------------------

class Song(BaseModel):
    """Song metadata record. Two songs are equal if all their fields are equal."""

    model_config = ConfigDict(validate_assignment=True)

    id: int = Field(0, ge=0, description="Catalog identity, assigned by the store (0 = unassigned)")
    title: str = Field("", description="Song title")
    artist: str = Field("", description="Song artist")
    album: str = Field("", description="Album name")
    genre: str = Field("", description="Musical genre")
    length: str = Field("", description="Display-formatted duration, e.g. '3:07'")
    filename: Optional[str] = Field(None, description="Path to the backing media file")

    @field_validator(*SONG_FIELDS)
    @classmethod
    def storable_text(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            bad = _XML_ILLEGAL.search(v)
            if bad:
                raise ValueError(f"character {bad.group()!r} cannot be stored in the catalog")
        return v

    def descriptive_fields(self) -> dict[str, Optional[str]]:
        """Every field except the identity."""
        return {name: getattr(self, name) for name in SONG_FIELDS}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Song):
            return NotImplemented
        return self.id == other.id and self.descriptive_fields() == other.descriptive_fields()

    def __str__(self) -> str:
        return (
            f"Id={self.id} Title={self.title} Artist={self.artist} "
            f"Album={self.album} Genre={self.genre} Length={self.length} "
            f"Filename={self.filename}"
        )


class PlaylistSong(BaseModel):
    """Membership of a song in a playlist."""

    model_config = ConfigDict(frozen=True)

    playlist_id: int = Field(..., description="Playlist identity")
    song_id: int = Field(..., description="Identity of the member song")
