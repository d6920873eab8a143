"""Stateful MPD connection: library queries and playback control.

MpdConnection is the boundary of the library: errors from the session layer
are logged here and turned into empty results, None or False. No public
method raises.

Example:
    library = MusicLibrary(...)
    conn = MpdConnection(ServerEndpoint(hostname="192.168.1.100"),
                         album_resolver=library.album_matching_name)
    if conn.connect():
        for artist in conn.list_distinct_values(DisplayType.ARTISTS):
            print(artist.name)
        conn.disconnect()
"""

import logging
import posixpath
import random
from typing import Callable, Optional, Union

from mpdremote.models import (
    Album,
    Artist,
    DisplayType,
    Genre,
    PlayerSnapshot,
    ServerEndpoint,
    Track,
)
from mpdremote.protocol import (
    MpdClientError,
    Tag,
    decode_utf8,
    parse_elapsed,
    parse_track,
    playback_status,
)
from mpdremote.session import MpdSession

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# Looks up a previously known album by name
AlbumResolver = Callable[[str], Optional[Album]]

Constraint = tuple[Tag, str]

_DISPLAY_TAGS = {
    DisplayType.ALBUMS: Tag.ALBUM,
    DisplayType.GENRES: Tag.GENRE,
    DisplayType.ARTISTS: Tag.ARTIST,
}

_DISPLAY_MODELS = {
    DisplayType.ALBUMS: Album,
    DisplayType.GENRES: Genre,
    DisplayType.ARTISTS: Artist,
}

_METADATA_QUERIES = (
    ("artist", Tag.ALBUM_ARTIST),
    ("year", Tag.DATE),
    ("genre", Tag.GENRE),
)

# Result key -> key of the "stats" response
_STATS_FIELDS = {
    "albums": "albums",
    "artists": "artists",
    "songs": "songs",
    "dbplaytime": "db_playtime",
    "mpduptime": "uptime",
    "mpdplaytime": "playtime",
    "mpddbupdate": "db_update",
}


def _flag(value: bool) -> str:
    return "1" if value else "0"


class MpdConnection:
    """Client for one MPD server.

    Not thread-safe: every call runs a complete request/response exchange
    on the single underlying session. Callers sharing a connection between
    threads must serialize access themselves.

    Attributes:
        endpoint: Server address and password.
        album_resolver: Maps an album name to a known Album, or None.
        timeout: Connect timeout in seconds.
    """

    def __init__(
        self,
        endpoint: ServerEndpoint,
        album_resolver: Optional[AlbumResolver] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.endpoint = endpoint
        self.album_resolver = album_resolver
        self.timeout = timeout

        self._session: Optional[MpdSession] = None
        self._connected = False

    def __del__(self) -> None:
        self.disconnect()

    def __enter__(self) -> "MpdConnection":
        self.connect()
        return self

    def __exit__(self, *_: object) -> None:
        self.disconnect()

    @property
    def connected(self) -> bool:
        """True if the last connect() succeeded and disconnect() was not called since."""
        return self._connected

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    def connect(self) -> bool:
        """Open and authenticate a session.

        Returns:
            True on success. On failure the connection stays disconnected
            and connect() may be called again.
        """
        if self._session is not None:
            self.disconnect()

        host, port = self.endpoint.hostname, self.endpoint.port
        try:
            session = MpdSession.open(host, port, self.timeout)
        except MpdClientError as e:
            self._log_error("connect", e)
            return False

        if self.endpoint.password:
            try:
                session.run("password", self.endpoint.password)
            except MpdClientError as e:
                self._log_error("connect", e)
                session.close()
                return False

        self._session = session
        self._connected = True
        return True

    def disconnect(self) -> None:
        """Release the session. Safe to call when already disconnected."""
        session = getattr(self, "_session", None)
        if session is not None:
            session.close()
            self._session = None
            logger.info(
                "Disconnected from MPD at %s:%d", self.endpoint.hostname, self.endpoint.port
            )
        self._connected = False

    # -------------------------------------------------------------------------
    # Library queries
    # -------------------------------------------------------------------------

    def list_distinct_values(
        self, display_type: DisplayType
    ) -> list[Union[Album, Genre, Artist]]:
        """List every album, genre or artist name known to the daemon."""
        names = self._tag_query("list_distinct_values", _DISPLAY_TAGS[display_type])
        model = _DISPLAY_MODELS[display_type]
        return [model(name=name) for name in names or []]

    def first_album_for_genre(self, genre: Genre) -> Optional[Album]:
        """First album of a genre, e.g. to pick a genre cover."""
        names = self._tag_query(
            "first_album_for_genre", Tag.ALBUM, [(Tag.GENRE, genre.name)], first_only=True
        )
        if not names:
            logger.debug("No album found for genre %r", genre.name)
            return None
        return Album(name=names[0])

    def albums_for_genre(self, genre: Genre) -> list[Album]:
        """Known albums of a genre; names the resolver does not know are dropped."""
        names = self._tag_query("albums_for_genre", Tag.ALBUM, [(Tag.GENRE, genre.name)])
        return self._resolve_albums(names or [])

    def albums_for_artist(self, artist: Artist) -> list[Album]:
        """Known albums of an artist; names the resolver does not know are dropped."""
        names = self._tag_query("albums_for_artist", Tag.ALBUM, [(Tag.ARTIST, artist.name)])
        return self._resolve_albums(names or [])

    def artists_for_genre(self, genre: Genre) -> list[Artist]:
        """Artists with at least one song in a genre."""
        names = self._tag_query("artists_for_genre", Tag.ARTIST, [(Tag.GENRE, genre.name)])
        return [Artist(name=name) for name in names or []]

    def path_for_album(self, album: Album) -> Optional[str]:
        """Directory of the album's first song, relative to the music root."""
        caller = "path_for_album"
        session = self._begin_search(caller, [(Tag.ALBUM, album.name)])
        if session is None:
            return None

        path = None
        song = session.recv_song()
        if song is not None:
            uri = decode_utf8(song.get("file"))
            if uri is not None:
                path = posixpath.dirname(uri)

        self._finish(caller, session)
        return path

    def tracks_for_album(self, album: Album) -> Optional[list[Track]]:
        """Fetch an album's tracks in daemon order.

        Returns:
            The parsed tracks (possibly empty), or None if the search could
            not be sent.
        """
        caller = "tracks_for_album"
        constraints: list[Constraint] = [(Tag.ALBUM, album.name)]
        if album.artist:
            constraints.append((Tag.ALBUM_ARTIST, album.artist))

        session = self._begin_search(caller, constraints)
        if session is None:
            return None

        tracks: list[Track] = []
        while True:
            song = session.recv_song()
            if song is None:
                break
            track = parse_track(song)
            if track is None:
                logger.debug("Skipping incomplete song %r", song.get("file"))
                continue
            tracks.append(track)

        self._finish(caller, session)
        return tracks

    def metadata_for_album(self, album: Album) -> dict[str, str]:
        """Album artist, year and genre.

        Queries run one after the other; the first failure returns what was
        gathered so far.
        """
        caller = "metadata_for_album"
        metadata: dict[str, str] = {}
        for key, tag in _METADATA_QUERIES:
            session = self._begin_search(caller, [(Tag.ALBUM, album.name)], tag=tag)
            if session is None:
                return metadata

            # Year is the first 4 bytes of the date
            max_bytes = 4 if tag is Tag.DATE else None
            values = self._recv_tag_values(session, tag, first_only=True, max_bytes=max_bytes)
            if values:
                metadata[key] = values[0]

            if not self._finish(caller, session):
                return metadata
        return metadata

    # -------------------------------------------------------------------------
    # Playback & queue
    # -------------------------------------------------------------------------

    def play_album(self, album: Album, shuffle: bool = False, loop: bool = False) -> None:
        """Replace the queue with the album and start playing."""
        tracks = self._album_tracks(album)
        if tracks is not None:
            self.play_tracks(tracks, shuffle, loop)

    def play_tracks(self, tracks: list[Track], shuffle: bool = False, loop: bool = False) -> None:
        """Replace the queue with tracks and start playing.

        Playback starts at the first track, or at a random one when
        shuffling. Stops at the first failing command; tracks already added
        stay in the queue.
        """
        caller = "play_tracks"
        if not self._run(caller, "clear"):
            return
        if not self._run(caller, "random", _flag(shuffle)):
            return
        if not self._run(caller, "repeat", _flag(loop)):
            return
        if not self._enqueue(caller, tracks):
            return
        if not tracks:
            logger.debug("Queue is empty, not starting playback")
            return

        position = random.randrange(len(tracks)) if shuffle else 0
        self._run(caller, "play", str(position))

    def add_album_to_queue(self, album: Album) -> None:
        """Append the album's tracks to the queue."""
        tracks = self._album_tracks(album)
        if tracks is not None:
            self._enqueue("add_album_to_queue", tracks)

    def toggle_pause(self) -> bool:
        """Pause or resume playback."""
        return self._run("toggle_pause", "pause")

    def next_track(self) -> None:
        self._run("next_track", "next")

    def previous_track(self) -> None:
        self._run("previous_track", "previous")

    def set_shuffle(self, shuffle: bool) -> None:
        self._run("set_shuffle", "random", _flag(shuffle))

    def set_loop(self, loop: bool) -> None:
        self._run("set_loop", "repeat", _flag(loop))

    def seek(self, track_position: int, seconds: int) -> None:
        """Seek to seconds within the song at track_position in the queue."""
        self._run("seek", "seek", str(track_position), str(seconds))

    def set_volume(self, volume: int) -> None:
        """Set the volume (0-100, clamped)."""
        self._run("set_volume", "setvol", str(max(0, min(100, volume))))

    # -------------------------------------------------------------------------
    # Status & stats
    # -------------------------------------------------------------------------

    def refresh_status(self) -> None:
        """Request the player status; failures are only logged."""
        self._run("refresh_status", "status")

    def current_snapshot(self) -> Optional[PlayerSnapshot]:
        """Current track, album, elapsed time and playback status.

        Returns None if nothing is playing, the status is unavailable, the
        song is incomplete, or its album is not known to the resolver.
        """
        caller = "current_snapshot"
        song = self._query(caller, "currentsong")
        if not song or "file" not in song:
            return None

        status = self._query(caller, "status")
        if status is None:
            return None

        track = parse_track(song)
        if track is None:
            logger.debug("Current song %r is incomplete", song.get("file"))
            return None

        album_name = decode_utf8(song.get(Tag.ALBUM.value))
        album = self._resolve_album(album_name) if album_name is not None else None
        if album is None:
            logger.info("No matching album found for %r", album_name)
            return None

        return PlayerSnapshot(
            track=track,
            album=album,
            elapsed=parse_elapsed(status),
            status=playback_status(decode_utf8(status.get("state"))),
        )

    def server_stats(self) -> dict[str, str]:
        """Database and daemon counters, or an empty dict on failure."""
        stats = self._query("server_stats", "stats")
        if stats is None:
            return {}
        result: dict[str, str] = {}
        for key, field in _STATS_FIELDS.items():
            value = decode_utf8(stats.get(field))
            result[key] = value if value is not None else "0"
        return result

    # -------------------------------------------------------------------------
    # Private
    # -------------------------------------------------------------------------

    def _log_error(self, caller: str, error: Exception) -> None:
        logger.error("%s: %s", caller, error)

    def _session_for(self, caller: str) -> Optional[MpdSession]:
        if self._session is None:
            logger.warning("%s: not connected", caller)
        return self._session

    def _run(self, caller: str, command: str, *args: str) -> bool:
        session = self._session_for(caller)
        if session is None:
            return False
        try:
            session.run(command, *args)
        except MpdClientError as e:
            self._log_error(caller, e)
            return False
        return True

    def _query(self, caller: str, command: str) -> Optional[dict[str, bytes]]:
        session = self._session_for(caller)
        if session is None:
            return None
        try:
            return session.run_pairs(command)
        except MpdClientError as e:
            self._log_error(caller, e)
            return None

    def _begin_search(
        self,
        caller: str,
        constraints: list[Constraint],
        tag: Optional[Tag] = None,
    ) -> Optional[MpdSession]:
        """Build and commit a tag search, or a song search when tag is None."""
        session = self._session_for(caller)
        if session is None:
            return None
        try:
            if tag is None:
                session.search_db_songs(exact=True)
            else:
                session.search_db_tags(tag.value)
            for constraint_tag, value in constraints:
                session.search_add_tag_constraint(constraint_tag.value, value)
            session.search_commit()
        except MpdClientError as e:
            session.search_cancel()
            self._log_error(caller, e)
            return None
        return session

    def _recv_tag_values(
        self,
        session: MpdSession,
        tag: Tag,
        first_only: bool = False,
        max_bytes: Optional[int] = None,
    ) -> list[str]:
        values: list[str] = []
        while True:
            pair = session.recv_pair_named(tag.value)
            if pair is None:
                break
            raw = pair.value if max_bytes is None else pair.value[:max_bytes]
            value = decode_utf8(raw)
            if value is None:
                logger.debug("Skipping %s value that is not valid UTF-8", tag.value)
            else:
                values.append(value)
            if first_only:
                break
        return values

    def _finish(self, caller: str, session: MpdSession) -> bool:
        try:
            session.response_finish()
        except MpdClientError as e:
            self._log_error(caller, e)
            return False
        return True

    def _tag_query(
        self,
        caller: str,
        tag: Tag,
        constraints: Optional[list[Constraint]] = None,
        first_only: bool = False,
    ) -> Optional[list[str]]:
        """Values of a tag search, or None if the search could not be sent."""
        session = self._begin_search(caller, constraints or [], tag=tag)
        if session is None:
            return None
        values = self._recv_tag_values(session, tag, first_only=first_only)
        self._finish(caller, session)
        return values

    def _resolve_album(self, name: str) -> Optional[Album]:
        if self.album_resolver is None:
            return None
        return self.album_resolver(name)

    def _resolve_albums(self, names: list[str]) -> list[Album]:
        albums = []
        for name in names:
            album = self._resolve_album(name)
            if album is not None:
                albums.append(album)
        return albums

    def _album_tracks(self, album: Album) -> Optional[list[Track]]:
        if album.tracks is not None:
            return album.tracks
        return self.tracks_for_album(album)

    def _enqueue(self, caller: str, tracks: list[Track]) -> bool:
        for track in tracks:
            if not self._run(caller, "add", track.uri):
                return False
        return True
