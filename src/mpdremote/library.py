"""In-memory catalog of an MPD music library."""

import logging
from typing import Optional

from mpdremote.connection import MpdConnection
from mpdremote.models import Album, Artist, DisplayType, Genre, Track

logger = logging.getLogger(__name__)


class MusicLibrary:
    """Albums, artists and genres loaded from one MPD connection.

    The library registers itself as the connection's album resolver, so
    queries that must match known albums (albums of an artist, the current
    song's album) resolve against what has been loaded here.

    Example:
        library = MusicLibrary(connection)
        library.load(DisplayType.ALBUMS)
        artist = Artist(name="Radiohead")
        for album in library.load_albums_for_artist(artist):
            print(album.name)
    """

    def __init__(self, connection: MpdConnection) -> None:
        self.connection = connection
        self.albums: list[Album] = []
        self.artists: list[Artist] = []
        self.genres: list[Genre] = []
        self._albums_by_name: dict[str, Album] = {}

        connection.album_resolver = self.album_matching_name

    def load(self, display_type: DisplayType) -> list:
        """Fetch and cache every album, artist or genre."""
        items = self.connection.list_distinct_values(display_type)
        if display_type is DisplayType.ALBUMS:
            self.albums = items
            self._albums_by_name = {}
            for album in self.albums:
                self._albums_by_name.setdefault(album.name, album)
        elif display_type is DisplayType.ARTISTS:
            self.artists = items
        else:
            self.genres = items
        logger.debug("Loaded %d %s", len(items), display_type.value)
        return items

    def album_matching_name(self, name: str) -> Optional[Album]:
        """The loaded album called name, if any."""
        return self._albums_by_name.get(name)

    def load_albums_for_artist(self, artist: Artist) -> list[Album]:
        artist.albums = self.connection.albums_for_artist(artist)
        return artist.albums

    def load_albums_for_genre(self, genre: Genre) -> list[Album]:
        genre.albums = self.connection.albums_for_genre(genre)
        return genre.albums

    def load_artists_for_genre(self, genre: Genre) -> list[Artist]:
        return self.connection.artists_for_genre(genre)

    def load_tracks_for_album(self, album: Album) -> Optional[list[Track]]:
        """Fetch the album's tracks; a failed fetch leaves album.tracks as is."""
        tracks = self.connection.tracks_for_album(album)
        if tracks is not None:
            album.tracks = tracks
        return album.tracks

    def load_tracks_for_albums(self, albums: list[Album]) -> None:
        """Fetch tracks for the albums that have none loaded yet."""
        for album in albums:
            if album.tracks is None:
                self.load_tracks_for_album(album)

    def load_path_for_album(self, album: Album) -> Optional[str]:
        """Fetch the album's storage directory, keeping any cached one."""
        if album.path is None:
            album.path = self.connection.path_for_album(album)
        return album.path
