"""Tests for the in-memory music library."""

from unittest.mock import patch

import pytest

from mpdremote.connection import MpdConnection
from mpdremote.library import MusicLibrary
from mpdremote.models import Album, Artist, DisplayType, Genre, ServerEndpoint

OK = b"OK\n"

ALBUMS_RESPONSE = b"Album: Kid A\nAlbum: Mezzanine\nAlbum: OK Computer\nOK\n"


@pytest.fixture
def open_library(mpd_daemon):
    def _open(*responses: bytes):
        fake = mpd_daemon(*responses)
        connection = MpdConnection(ServerEndpoint(hostname="musicbox.local"))
        library = MusicLibrary(connection)
        assert connection.connect()
        return library, fake

    return _open


class TestMusicLibrary:
    """Tests for MusicLibrary."""

    def test_registers_as_resolver(self, open_library):
        library, _ = open_library()
        assert library.connection.album_resolver == library.album_matching_name

    def test_load_albums(self, open_library):
        library, _ = open_library(ALBUMS_RESPONSE)
        albums = library.load(DisplayType.ALBUMS)
        assert [a.name for a in albums] == ["Kid A", "Mezzanine", "OK Computer"]
        assert library.album_matching_name("Mezzanine") is albums[1]
        assert library.album_matching_name("Dummy") is None

    def test_load_artists_and_genres(self, open_library):
        library, _ = open_library(b"Artist: Air\nOK\n", b"Genre: Rock\nOK\n")
        library.load(DisplayType.ARTISTS)
        library.load(DisplayType.GENRES)
        assert [a.name for a in library.artists] == ["Air"]
        assert [g.name for g in library.genres] == ["Rock"]

    def test_albums_for_artist_use_loaded_albums(self, open_library):
        library, _ = open_library(ALBUMS_RESPONSE, b"Album: Kid A\nAlbum: Amnesiac\nAlbum: OK Computer\nOK\n")
        library.load(DisplayType.ALBUMS)
        artist = Artist(name="Radiohead")
        albums = library.load_albums_for_artist(artist)
        assert [a.name for a in albums] == ["Kid A", "OK Computer"]
        assert artist.albums is albums
        assert albums[0] is library.album_matching_name("Kid A")

    def test_albums_for_genre(self, open_library):
        library, _ = open_library(ALBUMS_RESPONSE, b"Album: Mezzanine\nOK\n")
        library.load(DisplayType.ALBUMS)
        genre = Genre(name="Trip Hop")
        library.load_albums_for_genre(genre)
        assert [a.name for a in genre.albums] == ["Mezzanine"]

    def test_artists_for_genre(self, open_library):
        library, _ = open_library(b"Artist: Portishead\nOK\n")
        artists = library.load_artists_for_genre(Genre(name="Trip Hop"))
        assert [a.name for a in artists] == ["Portishead"]

    def test_load_tracks_replaces_list(self, open_library):
        song = b"file: Kid A/01.flac\nTitle: Everything In Its Right Place\nArtist: Radiohead\nTrack: 1\n"
        library, _ = open_library(song + OK)
        album = Album(name="Kid A")
        tracks = library.load_tracks_for_album(album)
        assert album.tracks is tracks
        assert [t.title for t in tracks] == ["Everything In Its Right Place"]

    def test_failed_track_fetch_keeps_unfetched_state(self, open_library):
        library, fake = open_library()
        album = Album(name="Kid A")
        with patch.object(fake, "sendall", side_effect=OSError("Broken pipe")):
            assert library.load_tracks_for_album(album) is None
        assert album.tracks is None

    def test_load_tracks_for_albums_skips_loaded(self, open_library):
        library, fake = open_library(OK)
        loaded = Album(name="Mezzanine", tracks=[])
        pending = Album(name="Kid A")
        library.load_tracks_for_albums([loaded, pending])
        assert pending.tracks == []
        assert fake.commands == ['find "(album == \\"Kid A\\")"']

    def test_load_path_is_cached(self, open_library):
        library, fake = open_library(b"file: Massive Attack/Mezzanine/01.flac\nOK\n")
        album = Album(name="Mezzanine")
        assert library.load_path_for_album(album) == "Massive Attack/Mezzanine"
        assert library.load_path_for_album(album) == "Massive Attack/Mezzanine"
        assert len(fake.commands) == 1
