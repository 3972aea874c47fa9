from __future__ import annotations

import logging
import signal
import socket
import threading

from .commands import CommandHandler
from .config import RelayRuntimeConfig
from .registry import SessionRegistry
from .router import MessageRouter
from .session import ClientSession
from .stats import StatsManager


class RelayService:
    def __init__(self, config: RelayRuntimeConfig) -> None:
        self.config = config
        self.log = logging.getLogger("chatrelay.relay")

        # Guards the set of live connections (registered or still in the
        # handshake). The username map has its own lock inside the registry.
        self._state_lock = threading.RLock()
        self._shutdown = threading.Event()
        self._stopped = False

        self.registry = SessionRegistry()
        self.router = MessageRouter(self)
        self.command_handler = CommandHandler(self)
        self.stats_manager = StatsManager(self)

        self._sessions: set[ClientSession] = set()
        self._server_socket: socket.socket | None = None
        self._accept_thread: threading.Thread | None = None
        self._accept_error: OSError | None = None

    @property
    def address(self) -> tuple[str, int] | None:
        if self._server_socket is None:
            return None
        try:
            host, port = self._server_socket.getsockname()[:2]
        except OSError:
            # Listening socket already closed by stop().
            return None
        return host, port

    def live_connections(self) -> int:
        with self._state_lock:
            return len(self._sessions)

    def start(self) -> None:
        """Bind and start accepting. Bind failures propagate as OSError."""
        if self._server_socket is not None:
            return

        self.log.info("Starting relay on %s:%s", self.config.host, self.config.port)
        srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            srv.bind((self.config.host, int(self.config.port)))
            srv.listen(int(self.config.backlog))
            srv.settimeout(float(self.config.accept_poll_s))
        except OSError:
            srv.close()
            raise

        self._server_socket = srv
        self.stats_manager.set_start_time()

        self._accept_thread = threading.Thread(
            target=self._accept_loop, name="chatrelay-accept", daemon=True
        )
        self._accept_thread.start()

        host, port = self.address or (self.config.host, self.config.port)
        self.log.info("Relay listening on %s:%s", host, port)

    def _accept_loop(self) -> None:
        srv = self._server_socket
        if srv is None:
            return

        while not self._shutdown.is_set():
            try:
                conn, addr = srv.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._shutdown.is_set():
                    break
                self.log.error("Accept failed, relay cannot continue: %s", e)
                self._accept_error = e
                self._shutdown.set()
                break

            self._spawn_session(conn, addr)

    def _spawn_session(self, conn: socket.socket, addr) -> None:
        conn.settimeout(None)
        with self._state_lock:
            if self._stopped:
                conn.close()
                return
            session = ClientSession(self, conn, addr)
            self._sessions.add(session)

        self.stats_manager.inc("connections")
        t = threading.Thread(
            target=session.run,
            name=f"chatrelay-session-{session.peer}",
            daemon=True,
        )
        t.start()

    def on_session_finished(self, session: ClientSession) -> None:
        with self._state_lock:
            self._sessions.discard(session)

    def run_forever(self) -> None:
        if self._server_socket is None:
            self.start()

        signal.signal(signal.SIGINT, lambda *_: self._shutdown.set())
        signal.signal(signal.SIGTERM, lambda *_: self._shutdown.set())

        while not self._shutdown.is_set():
            self._shutdown.wait(0.25)

        self.stop()
        if self._accept_error is not None:
            raise self._accept_error

    def stop(self) -> None:
        """Stop accepting and close every live connection."""
        with self._state_lock:
            if self._stopped:
                return
            self._stopped = True
            sessions = list(self._sessions)

        self._shutdown.set()

        if self._server_socket is not None:
            try:
                self._server_socket.close()
            except OSError:
                pass

        if self._accept_thread is not None and self._accept_thread is not threading.current_thread():
            self._accept_thread.join(timeout=max(1.0, 2 * float(self.config.accept_poll_s)))

        self.log.info("Stopping relay, closing %s connection(s)", len(sessions))
        for session in sessions:
            session.close()

        self.log.info("%s", self.stats_manager.format_stats())
