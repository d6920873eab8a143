"""Low-level MPD protocol session over a TCP socket.

A session is strictly sequential: a command is sent, its response is read
pair by pair, and the response must be finished before the next command.

Example:
    session = MpdSession.open("192.168.1.100", 6600, timeout=30.0)
    session.search_db_tags(Tag.ARTIST)
    session.search_commit()
    while True:
        pair = session.recv_pair_named("artist")
        if pair is None:
            break
        print(pair.value)
    session.response_finish()
"""

import logging
import socket
from typing import NamedTuple, Optional

from mpdremote.protocol import (
    MpdClientError,
    build_filter,
    format_command,
    parse_ack,
)

logger = logging.getLogger(__name__)

# Keys that start a new entity in a song listing
_ENTITY_KEYS = frozenset({"file", "directory", "playlist"})


class MpdConnectionError(MpdClientError):
    """The session could not be opened or the socket failed."""


class Pair(NamedTuple):
    """One ``key: value`` line of a response."""

    name: str
    value: bytes


class MpdSession:
    """Synchronous MPD protocol session.

    Receive methods never raise: they return None at the end of a response
    and keep any ACK or socket failure until response_finish() is called.
    """

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._rfile = sock.makefile("rb")
        self._version = ""
        self._in_response = False
        self._error: Optional[MpdClientError] = None
        self._pending: Optional[Pair] = None
        self._search: Optional[list[str]] = None
        self._constraints: list[tuple[str, str]] = []

    @classmethod
    def open(cls, host: str, port: int, timeout: float) -> "MpdSession":
        """Connect to the daemon and read its greeting.

        The timeout covers the TCP connect and the greeting only; the socket
        is blocking afterwards.

        Raises:
            MpdConnectionError: If the connection or the greeting fails.
        """
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except socket.timeout as e:
            raise MpdConnectionError(f"Connection to {host}:{port} timed out") from e
        except OSError as e:
            raise MpdConnectionError(f"Failed to connect to {host}:{port}: {e}") from e

        session = cls(sock)
        try:
            session._read_greeting()
            sock.settimeout(None)
        except MpdClientError:
            session.close()
            raise
        except OSError as e:
            session.close()
            raise MpdConnectionError(f"Failed to set up session with {host}:{port}: {e}") from e

        logger.info("Connected to MPD %s at %s:%d", session.version, host, port)
        return session

    @property
    def version(self) -> str:
        """Protocol version announced in the greeting."""
        return self._version

    def close(self) -> None:
        """Close the socket; the session cannot be used afterwards."""
        try:
            self._rfile.close()
            self._sock.close()
        except OSError as e:
            logger.debug("Error while closing MPD socket: %s", e)
        self._in_response = False
        self._pending = None

    def _read_line(self) -> bytes:
        try:
            line = self._rfile.readline()
        except OSError as e:
            raise MpdConnectionError(f"Read failed: {e}") from e
        if not line:
            raise MpdConnectionError("Connection closed by server")
        return line.rstrip(b"\n")

    def _read_greeting(self) -> None:
        greeting = self._read_line().decode("utf-8", errors="replace")
        if not greeting.startswith("OK MPD "):
            raise MpdConnectionError(f"Invalid MPD greeting: {greeting}")
        self._version = greeting[7:]

    # -------------------------------------------------------------------------
    # Commands & responses
    # -------------------------------------------------------------------------

    def send_command(self, command: str, *args: str) -> None:
        """Send one command line.

        Raises:
            MpdClientError: If the previous response was not finished, or an
                argument has a line break or cannot be encoded as UTF-8.
            MpdConnectionError: If the socket write fails.
        """
        if self._in_response or self._pending is not None:
            raise MpdClientError("Previous response not finished")

        line = format_command(command, *args)
        logger.debug("MPD command: %s", line)
        try:
            data = line.encode("utf-8") + b"\n"
        except UnicodeEncodeError as e:
            raise MpdClientError(f"Command is not valid UTF-8: {line!r}") from e
        try:
            self._sock.sendall(data)
        except OSError as e:
            raise MpdConnectionError(f"Write failed: {e}") from e
        self._in_response = True
        self._error = None

    def recv_pair(self) -> Optional[Pair]:
        """Next pair of the current response, or None at its end."""
        if self._pending is not None:
            pair, self._pending = self._pending, None
            return pair

        while self._in_response:
            try:
                line = self._read_line()
            except MpdConnectionError as e:
                self._error = e
                self._in_response = False
                return None

            if line == b"OK":
                self._in_response = False
                return None
            if line.startswith(b"ACK "):
                self._error = parse_ack(line.decode("utf-8", errors="replace"))
                self._in_response = False
                return None

            key, sep, value = line.partition(b": ")
            if not sep:
                logger.debug("Skipping malformed response line: %r", line)
                continue
            return Pair(key.decode("utf-8", errors="replace"), value)

        return None

    def recv_pair_named(self, name: str) -> Optional[Pair]:
        """Next pair whose key matches name (case-insensitive)."""
        name = name.lower()
        while True:
            pair = self.recv_pair()
            if pair is None or pair.name.lower() == name:
                return pair

    def recv_song(self) -> Optional[dict[str, bytes]]:
        """Next song of the current response.

        Returns:
            Song fields keyed by lowercase tag name (first value wins), or
            None when no songs are left.
        """
        first = self.recv_pair_named("file")
        if first is None:
            return None

        song = {"file": first.value}
        while True:
            pair = self.recv_pair()
            if pair is None:
                break
            key = pair.name.lower()
            if key in _ENTITY_KEYS:
                self._pending = pair
                break
            song.setdefault(key, pair.value)
        return song

    def response_finish(self) -> None:
        """Discard the rest of the response and report its outcome.

        Raises:
            MpdError: If the daemon answered with an ACK.
            MpdConnectionError: If the socket failed while reading.
        """
        self._pending = None
        while self.recv_pair() is not None:
            pass
        if self._error is not None:
            error, self._error = self._error, None
            raise error

    def run(self, command: str, *args: str) -> None:
        """Send a command and wait for its acknowledgement."""
        self.send_command(command, *args)
        self.response_finish()

    def run_pairs(self, command: str, *args: str) -> dict[str, bytes]:
        """Send a command and collect its response keyed by lowercase name."""
        self.send_command(command, *args)
        result: dict[str, bytes] = {}
        while True:
            pair = self.recv_pair()
            if pair is None:
                break
            result.setdefault(pair.name.lower(), pair.value)
        self.response_finish()
        return result

    # -------------------------------------------------------------------------
    # Search builder
    # -------------------------------------------------------------------------

    def _begin_search(self, command: list[str]) -> None:
        if self._search is not None:
            raise MpdClientError("Search already in progress")
        self._search = command
        self._constraints = []

    def search_db_tags(self, tag: str) -> None:
        """Begin listing the distinct values of a tag."""
        self._begin_search(["list", tag])

    def search_db_songs(self, exact: bool = True) -> None:
        """Begin searching songs, exact (find) or substring (search)."""
        self._begin_search(["find" if exact else "search"])

    def search_add_tag_constraint(self, tag: str, value: str) -> None:
        """Restrict the current search to songs whose tag equals value."""
        if self._search is None:
            raise MpdClientError("No search in progress")
        self._constraints.append((tag, value))

    def search_cancel(self) -> None:
        """Drop the search being built."""
        self._search = None
        self._constraints = []

    def search_commit(self) -> None:
        """Send the search built so far."""
        if self._search is None:
            raise MpdClientError("No search in progress")
        command, *args = self._search
        if self._constraints:
            args.append(build_filter(self._constraints))
        self.search_cancel()
        self.send_command(command, *args)
