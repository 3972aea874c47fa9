"""Statistics tracking and reporting for the relay."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .service import RelayService


class StatsManager:
    """
    Lifetime counters for one relay.

    Tracks:
    - Accepted connections and handshake outcomes
    - Lines read and written, failed writes
    - Over-long lines cut short
    - Routed broadcasts, private messages and announcements
    - Malformed commands
    """

    def __init__(self, hub: RelayService) -> None:
        self.hub = hub
        self._lock = threading.Lock()

        self.started_wall_time: float | None = None
        self.started_monotonic: float | None = None

        self._counters: dict[str, int] = {
            "connections": 0,
            "handshakes_ok": 0,
            "handshakes_failed": 0,
            "lines_in": 0,
            "lines_out": 0,
            "lines_truncated": 0,
            "send_failures": 0,
            "broadcasts": 0,
            "private_messages": 0,
            "pm_not_found": 0,
            "malformed": 0,
            "announcements": 0,
        }

    def set_start_time(self) -> None:
        self.started_wall_time = time.time()
        self.started_monotonic = time.monotonic()

    def inc(self, key: str, delta: int = 1) -> None:
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + int(delta)

    def get(self, key: str) -> int:
        with self._lock:
            return self._counters.get(key, 0)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def format_stats(self) -> str:
        """Format current statistics as a human-readable, multi-line string."""
        from . import __version__

        started = self.started_monotonic
        uptime_s = (time.monotonic() - started) if started is not None else 0.0
        if self.started_wall_time is not None:
            started_at = time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime(self.started_wall_time))
        else:
            started_at = "-"
        online = len(self.hub.registry)
        c = self.snapshot()

        lines: list[str] = []
        lines.append(f"chatrelay {__version__} stats")
        lines.append(f"started={started_at} uptime_s={uptime_s:.1f}")
        lines.append(f"users_online={online} connections_live={self.hub.live_connections()}")
        lines.append(
            "sessions: connections={} handshakes_ok={} handshakes_failed={}".format(
                c.get("connections", 0),
                c.get("handshakes_ok", 0),
                c.get("handshakes_failed", 0),
            )
        )
        lines.append(
            "io: lines_in={} lines_out={} lines_truncated={} send_failures={}".format(
                c.get("lines_in", 0),
                c.get("lines_out", 0),
                c.get("lines_truncated", 0),
                c.get("send_failures", 0),
            )
        )
        lines.append(
            "routing: broadcasts={} pms={} pm_not_found={} announcements={} malformed={}".format(
                c.get("broadcasts", 0),
                c.get("private_messages", 0),
                c.get("pm_not_found", 0),
                c.get("announcements", 0),
                c.get("malformed", 0),
            )
        )

        return "\n".join(lines)
