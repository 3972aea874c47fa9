from __future__ import annotations

import logging
import socket
import threading
from typing import TYPE_CHECKING, Any

from .constants import (
    QUIT_SENTINEL,
    TXT_DISCONNECTING,
    TXT_JOINED,
    TXT_LEFT,
    TXT_PROMPT_USERNAME,
    TXT_RETRY,
    TXT_USERNAME_EMPTY,
    TXT_USERNAME_INVALID,
    TXT_USERNAME_TAKEN,
    TXT_WELCOME,
)
from .messages import system_line
from .util import normalize_username, sanitize_line

if TYPE_CHECKING:
    from .service import RelayService


class HandshakeFailure(Exception):
    """The client never settled on a usable username."""


class ClientSession:
    """
    Server side of one client connection.

    One thread runs `run()` for the lifetime of the connection and is the
    only reader. `send()` may be called from any thread; writes are
    serialized so concurrent deliveries never interleave within a line.
    `close()` is idempotent and may be called from the session's own thread
    or from the relay during shutdown.
    """

    def __init__(self, hub: RelayService, sock: socket.socket, address: Any = None) -> None:
        self.hub = hub
        self.sock = sock
        self.address = address
        self.log = logging.getLogger("chatrelay.session")

        self.username: str | None = None

        self._reader = sock.makefile(
            "r", encoding=hub.config.encoding, errors="replace", newline="\n"
        )
        self._send_lock = threading.Lock()
        # Guards _closed and username assignment. Taken before the registry
        # lock, never after it.
        self._state_lock = threading.Lock()
        self._closed = False

    @property
    def alive(self) -> bool:
        return not self._closed

    @property
    def peer(self) -> str:
        addr = self.address
        if isinstance(addr, tuple) and len(addr) >= 2:
            return f"{addr[0]}:{addr[1]}"
        return str(addr) if addr else "-"

    def send(self, line: str) -> bool:
        """Write one line to the client. Failures are logged, never raised."""
        data = (sanitize_line(line) + "\n").encode(self.hub.config.encoding, errors="replace")
        with self._send_lock:
            try:
                self.sock.sendall(data)
            except OSError as e:
                self.hub.stats_manager.inc("send_failures")
                self.log.debug(
                    "Send failed peer=%s user=%r bytes=%s err=%s",
                    self.peer,
                    self.username,
                    len(data),
                    e,
                )
                return False
        self.hub.stats_manager.inc("lines_out")
        return True

    def _read_line(self) -> str | None:
        limit = max(1, int(self.hub.config.max_line_chars))
        try:
            raw = self._reader.readline(limit)
            if len(raw) >= limit and not raw.endswith("\n"):
                # Over-long line: keep the head, discard up to the newline.
                self.hub.stats_manager.inc("lines_truncated")
                self.log.warning(
                    "Line over %s chars truncated peer=%s user=%r",
                    limit,
                    self.peer,
                    self.username,
                )
                tail = self._reader.readline(limit)
                while tail and not tail.endswith("\n"):
                    tail = self._reader.readline(limit)
        except (OSError, ValueError) as e:
            # ValueError: the reader was closed underneath us.
            self.log.debug("Read failed peer=%s user=%r err=%s", self.peer, self.username, e)
            return None
        if not raw:
            return None
        self.hub.stats_manager.inc("lines_in")
        return raw.rstrip("\r\n")

    def _claim(self, name: str) -> bool:
        with self._state_lock:
            if self._closed:
                raise HandshakeFailure("session closed during handshake")
            if not self.hub.registry.register(name, self):
                return False
            self.username = name
            return True

    def handshake(self) -> str:
        """
        Negotiate a username and register it.

        Registration is the atomic compare-and-insert in the registry, so two
        clients racing for the same free name cannot both win. Raises
        HandshakeFailure after `max_handshake_attempts` rejected names or if
        the client goes away first.
        """
        max_attempts = max(1, int(self.hub.config.max_handshake_attempts))
        self.send(system_line(TXT_PROMPT_USERNAME))

        failures = 0
        while True:
            raw = self._read_line()
            if raw is None:
                raise HandshakeFailure("connection closed before a username was accepted")

            name = normalize_username(raw)
            if name is not None and self._claim(name):
                return name

            if name is not None:
                reason = TXT_USERNAME_TAKEN
            elif raw.strip():
                reason = TXT_USERNAME_INVALID
            else:
                reason = TXT_USERNAME_EMPTY

            failures += 1
            self.log.debug(
                "Username rejected peer=%s name=%r attempt=%s reason=%r",
                self.peer,
                raw.strip(),
                failures,
                reason,
            )
            if failures >= max_attempts:
                self.send(system_line(f"{reason} {TXT_DISCONNECTING}"))
                raise HandshakeFailure(f"{reason} after {failures} attempts")
            self.send(system_line(f"{reason} {TXT_RETRY}"))

    def read_loop(self) -> None:
        while self.alive:
            line = self._read_line()
            if line is None:
                self.log.debug("Stream ended peer=%s user=%r", self.peer, self.username)
                return
            if not self.hub.command_handler.handle_line(self, line):
                return

    def run(self) -> None:
        self.log.info("Connection opened peer=%s", self.peer)
        try:
            try:
                name = self.handshake()
            except HandshakeFailure as e:
                self.hub.stats_manager.inc("handshakes_failed")
                self.log.info("Handshake failed peer=%s reason=%s", self.peer, e)
                return

            self.hub.stats_manager.inc("handshakes_ok")
            self.log.info("User joined user=%r peer=%s", name, self.peer)
            self.send(system_line(TXT_WELCOME.format(user=name)))
            self.hub.router.announce(TXT_JOINED.format(user=name))

            self.read_loop()
        except Exception:
            self.log.exception("Session failed peer=%s user=%r", self.peer, self.username)
        finally:
            self.close()
            try:
                self._reader.close()
            except OSError:
                pass
            self.hub.on_session_finished(self)

    def close(self) -> None:
        """
        Terminate the session.

        Sends the QUIT sentinel (best-effort), closes the socket and releases
        the username. Only a session that actually held a registry entry
        triggers a departure announcement.
        """
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            username = self.username

        self.send(QUIT_SENTINEL)
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        with self._send_lock:
            self.sock.close()

        if username is not None and self.hub.registry.unregister(username):
            self.log.info("User left user=%r peer=%s", username, self.peer)
            self.hub.router.announce(TXT_LEFT.format(user=username))
        else:
            self.log.info("Connection closed peer=%s", self.peer)
