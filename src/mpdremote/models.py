"""Pydantic models for MPD library and player data."""

import hashlib
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ServerEndpoint(BaseModel):
    """MPD server address and credentials."""

    hostname: str
    port: int = 6600
    password: str = ""

    model_config = {"frozen": True}


class DisplayType(str, Enum):
    """Kind of entity listed when browsing the library."""

    ALBUMS = "albums"
    GENRES = "genres"
    ARTISTS = "artists"


class PlaybackStatus(str, Enum):
    """Player state as seen by the client."""

    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


class Track(BaseModel):
    """A song of the music database."""

    title: str
    artist: str
    track_number: int = 1
    # Whole seconds
    duration: int = Field(default=0, ge=0)
    uri: str

    # Position in the queue, only set for queued songs
    position: Optional[int] = None

    @field_validator("track_number")
    @classmethod
    def clamp_track_number(cls, value: int) -> int:
        return max(value, 1)

    @property
    def duration_str(self) -> str:
        return f"{self.duration // 60}:{self.duration % 60:02d}"


class Album(BaseModel):
    """An album; tracks are None until fetched."""

    name: str
    artist: str = ""
    tracks: Optional[list[Track]] = None
    # Directory holding the album files, relative to the music root
    path: Optional[str] = None

    @property
    def unique_identifier(self) -> str:
        """Stable key for this album, e.g. for cover caches."""
        return hashlib.md5(f"{self.name}{self.artist}".encode("utf-8")).hexdigest()

    @property
    def tracks_loaded(self) -> bool:
        return self.tracks is not None


class Artist(BaseModel):
    """An artist; albums are None until fetched."""

    name: str
    albums: Optional[list[Album]] = None


class Genre(BaseModel):
    """A genre; albums are None until fetched."""

    name: str
    albums: Optional[list[Album]] = None


class PlayerSnapshot(BaseModel):
    """What the player is doing right now."""

    track: Track
    album: Album
    elapsed: int = 0
    status: PlaybackStatus = PlaybackStatus.UNKNOWN

    model_config = {"frozen": True}

    @property
    def elapsed_str(self) -> str:
        return f"{self.elapsed // 60}:{self.elapsed % 60:02d}"
