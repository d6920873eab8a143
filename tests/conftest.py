"""Test fixtures simulating an MPD daemon."""

import io
import socket

import pytest

GREETING = b"OK MPD 0.23.5\n"


class FakeSocket:
    """Socket stand-in that replays scripted daemon responses."""

    def __init__(self, responses: list[bytes]) -> None:
        self._rfile = io.BytesIO(b"".join(responses))
        self.sent: list[bytes] = []
        self.timeout = None
        self.closed = False

    def makefile(self, mode: str = "rb") -> io.BytesIO:
        return self._rfile

    def sendall(self, data: bytes) -> None:
        self.sent.append(data)

    def settimeout(self, value) -> None:
        self.timeout = value

    def close(self) -> None:
        self.closed = True

    @property
    def commands(self) -> list[str]:
        """Command lines sent so far, without newlines."""
        return [data.decode("utf-8").rstrip("\n") for data in self.sent]


@pytest.fixture
def mpd_daemon(monkeypatch):
    """Route socket connections to a FakeSocket.

    Usage:
        fake = mpd_daemon(b"OK\\n", b"Album: A\\nOK\\n")

    The greeting is prepended; each argument is the full response to one
    command, in the order the commands will be sent.
    """

    def _daemon(*responses: bytes, greeting: bytes = GREETING) -> FakeSocket:
        fake = FakeSocket([greeting, *responses])
        monkeypatch.setattr(socket, "create_connection", lambda address, timeout=None: fake)
        return fake

    return _daemon
