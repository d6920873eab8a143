"""MPD text protocol helpers.

MPD speaks a line-based protocol:
- Commands are single lines: ``command arg1 "arg 2"``
- Responses are ``key: value`` lines terminated by ``OK``
- Errors replace the terminator with ``ACK [error@index] {command} message``

Values are kept as raw bytes on the wire side and decoded here, field by
field, so that a single bad value never spoils a whole response.

Reference: https://mpd.readthedocs.io/en/stable/protocol.html
"""

import re
from enum import Enum
from typing import Optional

from mpdremote.models import PlaybackStatus, Track


class Tag(str, Enum):
    """Protocol tag names used in searches and responses."""

    ALBUM = "album"
    ALBUM_ARTIST = "albumartist"
    ARTIST = "artist"
    DATE = "date"
    GENRE = "genre"
    TITLE = "title"
    TRACK = "track"


class MpdClientError(Exception):
    """Base class for errors raised by the protocol and session layers."""


class MpdError(MpdClientError):
    """Error reported by the daemon in an ACK line."""

    def __init__(self, code: int, command: str, message: str) -> None:
        self.code = code
        self.command = command
        self.message = message
        super().__init__(f"MPD error {code} in {command}: {message}")


ACK_PATTERN = re.compile(r"ACK \[(\d+)@\d+\] \{(\w*)\} (.*)")

_STATE_MAP = {
    "play": PlaybackStatus.PLAYING,
    "pause": PlaybackStatus.PAUSED,
    "stop": PlaybackStatus.STOPPED,
}


def parse_ack(line: str) -> MpdError:
    """Build an MpdError from an ACK line."""
    match = ACK_PATTERN.match(line)
    if match:
        return MpdError(int(match.group(1)), match.group(2), match.group(3))
    return MpdError(0, "", line)


def escape_arg(arg: str) -> str:
    """Quote an argument if it contains whitespace, quotes or backslashes."""
    if arg and not any(c in arg for c in ' "\t\n\\\''):
        return arg
    escaped = arg.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_command(command: str, *args: str) -> str:
    """Format a command line (without the trailing newline).

    Raises:
        MpdClientError: If an argument contains a line break, which would
            split the command in two.
    """
    for arg in args:
        if "\n" in arg or "\r" in arg:
            raise MpdClientError(f"Line break in argument to {command}: {arg!r}")
    if not args:
        return command
    return f"{command} {' '.join(escape_arg(arg) for arg in args)}"


def build_filter(constraints: list[tuple[str, str]]) -> str:
    """Build an MPD filter expression from (tag, value) equality constraints.

    One constraint gives ``(album == "X")``; several are joined with AND:
    ``((album == "X") AND (albumartist == "Y"))``.
    """
    parts = []
    for tag, value in constraints:
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        parts.append(f'({tag} == "{escaped}")')
    if len(parts) == 1:
        return parts[0]
    return f"({' AND '.join(parts)})"


def decode_utf8(value: Optional[bytes]) -> Optional[str]:
    """Decode a protocol value, treating invalid UTF-8 as absent."""
    if value is None:
        return None
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return None


def parse_track_number(text: Optional[str]) -> int:
    """Parse a track tag such as "7" or "7/12", defaulting to 1."""
    if not text:
        return 1
    head = text.split("/", 1)[0].strip()
    try:
        number = int(head)
    except ValueError:
        return 1
    return max(number, 1)


def _parse_seconds(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return max(int(float(value)), 0)
    except (ValueError, OverflowError):
        return None


def parse_duration(song: dict[str, bytes]) -> int:
    """Song duration in whole seconds.

    Newer daemons send ``duration`` with sub-second precision, older ones
    only ``Time``.
    """
    seconds = _parse_seconds(decode_utf8(song.get("duration")))
    if seconds is None:
        seconds = _parse_seconds(decode_utf8(song.get("time")))
    return seconds or 0


def parse_elapsed(status: dict[str, bytes]) -> int:
    """Elapsed time of the current song, from ``elapsed`` or ``time``."""
    seconds = _parse_seconds(decode_utf8(status.get("elapsed")))
    if seconds is None:
        # Legacy "time" field is "elapsed:total"
        legacy = decode_utf8(status.get("time")) or ""
        seconds = _parse_seconds(legacy.split(":", 1)[0])
    return seconds or 0


def parse_position(song: dict[str, bytes]) -> Optional[int]:
    """Queue position of a song, if it belongs to the queue."""
    text = decode_utf8(song.get("pos"))
    if text is None:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def playback_status(state: Optional[str]) -> PlaybackStatus:
    """Map the daemon's ``state`` value to a PlaybackStatus."""
    if state is None:
        return PlaybackStatus.UNKNOWN
    return _STATE_MAP.get(state, PlaybackStatus.UNKNOWN)


def parse_track(song: dict[str, bytes]) -> Optional[Track]:
    """Parse a song into a Track.

    Args:
        song: Song fields keyed by lowercase tag name, as returned by
            MpdSession.recv_song.

    Returns:
        The Track, or None if title, artist, track number or URI is missing
        or not valid UTF-8.
    """
    title = decode_utf8(song.get(Tag.TITLE.value))
    artist = decode_utf8(song.get(Tag.ARTIST.value))
    track_number = decode_utf8(song.get(Tag.TRACK.value))
    uri = decode_utf8(song.get("file"))
    if title is None or artist is None or track_number is None or uri is None:
        return None

    track = Track(
        title=title,
        artist=artist,
        track_number=parse_track_number(track_number),
        duration=parse_duration(song),
        uri=uri,
    )
    track.position = parse_position(song)
    return track
