"""Tests for MPD protocol helpers."""

import pytest

from mpdremote.models import PlaybackStatus
from mpdremote.protocol import (
    MpdClientError,
    MpdError,
    build_filter,
    decode_utf8,
    escape_arg,
    format_command,
    parse_ack,
    parse_duration,
    parse_elapsed,
    parse_track,
    parse_track_number,
    playback_status,
)

SAMPLE_SONG = {
    "file": b"Radiohead/OK Computer/02 Paranoid Android.flac",
    "title": b"Paranoid Android",
    "artist": b"Radiohead",
    "album": b"OK Computer",
    "track": b"2/12",
    "duration": b"383.267",
    "time": b"383",
    "pos": b"1",
}


class TestParseAck:
    """Tests for ACK line parsing."""

    def test_parse_ack(self):
        error = parse_ack("ACK [50@0] {find} No such song")
        assert isinstance(error, MpdError)
        assert error.code == 50
        assert error.command == "find"
        assert error.message == "No such song"

    def test_parse_unrecognized_ack(self):
        error = parse_ack("ACK garbage")
        assert error.code == 0
        assert error.message == "ACK garbage"


class TestFormatCommand:
    """Tests for command formatting."""

    def test_plain_args(self):
        assert format_command("play", "3") == "play 3"

    def test_no_args(self):
        assert format_command("status") == "status"

    def test_quotes_spaces(self):
        assert escape_arg("OK Computer") == '"OK Computer"'

    def test_escapes_quotes_and_backslashes(self):
        assert escape_arg('say "hi" \\o/') == '"say \\"hi\\" \\\\o/"'

    def test_empty_arg_is_quoted(self):
        assert escape_arg("") == '""'

    def test_rejects_line_breaks(self):
        with pytest.raises(MpdClientError):
            format_command("add", "a\nclear")
        with pytest.raises(MpdClientError):
            format_command("find", "(album == \"A\r\")")


class TestBuildFilter:
    """Tests for filter expressions."""

    def test_single_constraint(self):
        assert build_filter([("genre", "Rock")]) == '(genre == "Rock")'

    def test_several_constraints(self):
        expr = build_filter([("album", "Kid A"), ("albumartist", "Radiohead")])
        assert expr == '((album == "Kid A") AND (albumartist == "Radiohead"))'

    def test_escapes_value(self):
        assert build_filter([("album", 'The "Best"')]) == '(album == "The \\"Best\\"")'


class TestDecode:
    """Tests for UTF-8 decoding."""

    def test_valid_utf8(self):
        assert decode_utf8("Björk".encode("utf-8")) == "Björk"

    def test_invalid_utf8_is_absent(self):
        assert decode_utf8(b"\xff\xfeabc") is None

    def test_none(self):
        assert decode_utf8(None) is None


class TestParseTrackNumber:
    """Tests for track number parsing."""

    def test_number_with_total(self):
        assert parse_track_number("7/12") == 7

    def test_plain_number(self):
        assert parse_track_number("3") == 3

    def test_not_a_number(self):
        assert parse_track_number("abc") == 1

    def test_empty(self):
        assert parse_track_number("") == 1

    def test_zero_is_coerced(self):
        assert parse_track_number("0/10") == 1


class TestParseDurations:
    """Tests for duration and elapsed parsing."""

    def test_duration_preferred(self):
        assert parse_duration(SAMPLE_SONG) == 383

    def test_time_fallback(self):
        assert parse_duration({"time": b"241"}) == 241

    def test_missing(self):
        assert parse_duration({}) == 0

    def test_negative_clamped(self):
        assert parse_duration({"duration": b"-3"}) == 0

    def test_elapsed(self):
        assert parse_elapsed({"elapsed": b"45.512"}) == 45

    def test_elapsed_legacy_time(self):
        assert parse_elapsed({"time": b"12:240"}) == 12

    def test_elapsed_missing(self):
        assert parse_elapsed({}) == 0


class TestPlaybackStatus:
    """Tests for player state mapping."""

    def test_known_states(self):
        assert playback_status("play") is PlaybackStatus.PLAYING
        assert playback_status("pause") is PlaybackStatus.PAUSED
        assert playback_status("stop") is PlaybackStatus.STOPPED

    def test_unrecognized_state(self):
        assert playback_status("buffering") is PlaybackStatus.UNKNOWN
        assert playback_status(None) is PlaybackStatus.UNKNOWN


class TestParseTrack:
    """Tests for song parsing."""

    def test_complete_song(self):
        track = parse_track(SAMPLE_SONG)
        assert track is not None
        assert track.title == "Paranoid Android"
        assert track.artist == "Radiohead"
        assert track.track_number == 2
        assert track.duration == 383
        assert track.uri == "Radiohead/OK Computer/02 Paranoid Android.flac"
        assert track.position == 1

    def test_missing_artist(self):
        song = {k: v for k, v in SAMPLE_SONG.items() if k != "artist"}
        assert parse_track(song) is None

    def test_missing_track_tag(self):
        song = {k: v for k, v in SAMPLE_SONG.items() if k != "track"}
        assert parse_track(song) is None

    def test_invalid_title_encoding(self):
        song = dict(SAMPLE_SONG, title=b"\xc3\x28")
        assert parse_track(song) is None

    def test_non_numeric_track_number(self):
        track = parse_track(dict(SAMPLE_SONG, track=b"A1"))
        assert track is not None
        assert track.track_number == 1

    def test_not_queued(self):
        song = {k: v for k, v in SAMPLE_SONG.items() if k != "pos"}
        track = parse_track(song)
        assert track is not None
        assert track.position is None
