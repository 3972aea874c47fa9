from __future__ import annotations

import socket

import pytest

from chatrelay.config import RelayRuntimeConfig
from chatrelay.service import RelayService

TIMEOUT_S = 3.0


class RecordingSession:
    """Stand-in for a ClientSession that records every line sent to it."""

    def __init__(self, username: str | None = None) -> None:
        self.username = username
        self.lines: list[str] = []

    def send(self, line: str) -> bool:
        self.lines.append(line)
        return True


class LineClient:
    """Minimal protocol client over a real socket."""

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock
        self.sock.settimeout(TIMEOUT_S)
        self.reader = sock.makefile("r", encoding="utf-8", newline="\n")

    @classmethod
    def connect(cls, address: tuple[str, int]) -> "LineClient":
        return cls(socket.create_connection(address, timeout=TIMEOUT_S))

    def send(self, line: str) -> None:
        self.sock.sendall((line + "\n").encode("utf-8"))

    def recv(self) -> str:
        """Next line without its newline; "" once the relay closed the stream."""
        return self.reader.readline().rstrip("\n")

    def expect(self, expected: str) -> None:
        assert self.recv() == expected

    def recv_until_eof(self) -> list[str]:
        lines = []
        while True:
            line = self.recv()
            if line == "":
                return lines
            lines.append(line)

    def join(self, name: str) -> None:
        self.expect("[SYSTEM] Enter username:")
        self.send(name)
        self.expect(f"[SYSTEM] Welcome, {name}!")
        self.expect(f"[SYSTEM] {name} has joined the chat.")

    def close(self) -> None:
        try:
            self.reader.close()
        finally:
            self.sock.close()


@pytest.fixture
def hub() -> RelayService:
    """A relay that is never started; enough for registry/router/command tests."""
    return RelayService(RelayRuntimeConfig())


@pytest.fixture
def relay():
    svc = RelayService(RelayRuntimeConfig(host="127.0.0.1", port=0, accept_poll_s=0.05))
    svc.start()
    try:
        yield svc
    finally:
        svc.stop()


@pytest.fixture
def connect(relay):
    clients: list[LineClient] = []

    def _connect() -> LineClient:
        c = LineClient.connect(relay.address)
        clients.append(c)
        return c

    yield _connect

    for c in clients:
        c.close()


@pytest.fixture
def make_session():
    return RecordingSession


@pytest.fixture
def line_client():
    return LineClient
