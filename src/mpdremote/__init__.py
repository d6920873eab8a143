"""Music Player Daemon remote control library."""

from mpdremote.connection import MpdConnection
from mpdremote.library import MusicLibrary
from mpdremote.models import (
    Album,
    Artist,
    DisplayType,
    Genre,
    PlaybackStatus,
    PlayerSnapshot,
    ServerEndpoint,
    Track,
)

__all__ = [
    "Album",
    "Artist",
    "DisplayType",
    "Genre",
    "MpdConnection",
    "MusicLibrary",
    "PlaybackStatus",
    "PlayerSnapshot",
    "ServerEndpoint",
    "Track",
]
