"""Command-line remote for MPD."""

import sys
from contextlib import contextmanager
from typing import Iterator

import click

from mpdremote.config import configure_logging, settings
from mpdremote.connection import MpdConnection
from mpdremote.library import MusicLibrary
from mpdremote.models import Album, Artist, DisplayType, Genre


def get_connection() -> MpdConnection:
    """Create an MPD connection from settings."""
    return MpdConnection(settings.mpd.endpoint(), timeout=settings.mpd.timeout)


@contextmanager
def open_library() -> Iterator[MusicLibrary]:
    """Connect and yield a library bound to the connection."""
    connection = get_connection()
    library = MusicLibrary(connection)
    if not connection.connect():
        click.echo(
            f"Unable to connect to MPD at {settings.mpd.host}:{settings.mpd.port}", err=True
        )
        sys.exit(1)
    try:
        yield library
    finally:
        connection.disconnect()


def find_album(library: MusicLibrary, name: str) -> Album:
    """Load albums and return the one called name, or exit."""
    library.load(DisplayType.ALBUMS)
    album = library.album_matching_name(name)
    if album is None:
        click.echo(f"Unknown album: {name}", err=True)
        sys.exit(1)
    return album


def on_off(value: str) -> bool:
    return value == "on"


@click.group()
@click.option("--host", envvar="MPDREMOTE_MPD__HOST", default="localhost", help="MPD host")
@click.option("--port", envvar="MPDREMOTE_MPD__PORT", default=6600, help="MPD port")
@click.option("--password", envvar="MPDREMOTE_MPD__PASSWORD", default="", help="MPD password")
@click.option("-v", "--verbose", is_flag=True, help="Log protocol details")
@click.pass_context
def main(ctx, host, port, password, verbose):
    """MPD remote control CLI."""
    ctx.ensure_object(dict)
    settings.mpd.host = host
    settings.mpd.port = port
    settings.mpd.password = password
    if verbose:
        settings.log.level = "DEBUG"
    configure_logging(settings.log)


@main.command()
@click.option("--genre", help="Only artists of this genre")
def artists(genre):
    """List artists."""
    with open_library() as library:
        if genre:
            found = library.load_artists_for_genre(Genre(name=genre))
        else:
            found = library.load(DisplayType.ARTISTS)
        for artist in found:
            click.echo(artist.name)


@main.command()
def genres():
    """List genres."""
    with open_library() as library:
        for genre in library.load(DisplayType.GENRES):
            click.echo(genre.name)


@main.command()
@click.option("--artist", help="Only albums of this artist")
@click.option("--genre", help="Only albums of this genre")
def albums(artist, genre):
    """List albums."""
    with open_library() as library:
        found = library.load(DisplayType.ALBUMS)
        if artist:
            found = library.load_albums_for_artist(Artist(name=artist))
        elif genre:
            found = library.load_albums_for_genre(Genre(name=genre))
        for album in found:
            click.echo(album.name)


@main.command()
@click.argument("album_name")
def tracks(album_name):
    """List the tracks of an album."""
    with open_library() as library:
        album = find_album(library, album_name)
        for track in library.load_tracks_for_album(album) or []:
            click.echo(f"{track.track_number:2d}. {track.title} - {track.artist} ({track.duration_str})")


@main.command()
@click.argument("album_name")
def info(album_name):
    """Show album metadata."""
    with open_library() as library:
        album = find_album(library, album_name)
        metadata = library.connection.metadata_for_album(album)
        path = library.load_path_for_album(album)
        click.echo(f"Album:  {album.name}")
        click.echo(f"Artist: {metadata.get('artist', '')}")
        click.echo(f"Year:   {metadata.get('year', '')}")
        click.echo(f"Genre:  {metadata.get('genre', '')}")
        click.echo(f"Path:   {path or ''}")


@main.command()
@click.argument("album_name")
@click.option("--shuffle", is_flag=True, help="Shuffle the album")
@click.option("--loop", is_flag=True, help="Repeat the album")
def play(album_name, shuffle, loop):
    """Play an album, replacing the queue."""
    with open_library() as library:
        album = find_album(library, album_name)
        library.connection.play_album(album, shuffle=shuffle, loop=loop)
        click.echo(f"Playing {album.name}")


@main.command()
@click.argument("album_name")
def add(album_name):
    """Add an album to the queue."""
    with open_library() as library:
        album = find_album(library, album_name)
        library.connection.add_album_to_queue(album)
        click.echo(f"Queued {album.name}")


@main.command()
def pause():
    """Toggle pause."""
    with open_library() as library:
        if not library.connection.toggle_pause():
            click.echo("Failed to toggle pause", err=True)
            sys.exit(1)
        click.echo("Toggled pause")


@main.command("next")
def next_track():
    """Next track."""
    with open_library() as library:
        library.connection.next_track()
        click.echo("Next")


@main.command("prev")
def prev_track():
    """Previous track."""
    with open_library() as library:
        library.connection.previous_track()
        click.echo("Previous")


@main.command()
@click.argument("position", type=int)
@click.argument("seconds", type=int)
def seek(position, seconds):
    """Seek to SECONDS in the queued song at POSITION."""
    with open_library() as library:
        library.connection.seek(position, seconds)


@main.command()
@click.argument("value", type=click.IntRange(0, 100))
def vol(value):
    """Set volume (0-100)."""
    with open_library() as library:
        library.connection.set_volume(value)
        click.echo(f"Volume: {value}")


@main.command()
@click.argument("state", type=click.Choice(["on", "off"]))
def shuffle(state):
    """Turn shuffle on or off."""
    with open_library() as library:
        library.connection.set_shuffle(on_off(state))


@main.command()
@click.argument("state", type=click.Choice(["on", "off"]))
def repeat(state):
    """Turn repeat on or off."""
    with open_library() as library:
        library.connection.set_loop(on_off(state))


@main.command()
def status():
    """Show what is playing."""
    with open_library() as library:
        library.load(DisplayType.ALBUMS)
        snapshot = library.connection.current_snapshot()
        if snapshot is None:
            click.echo("Nothing playing")
            return
        click.echo(f"State:    {snapshot.status.value}")
        click.echo(f"Track:    {snapshot.track.title}")
        click.echo(f"Artist:   {snapshot.track.artist}")
        click.echo(f"Album:    {snapshot.album.name}")
        click.echo(f"Position: {snapshot.elapsed_str} / {snapshot.track.duration_str}")


@main.command()
def stats():
    """Show database statistics."""
    with open_library() as library:
        for key, value in library.connection.server_stats().items():
            click.echo(f"{key + ':':13s}{value}")


if __name__ == "__main__":
    main()
