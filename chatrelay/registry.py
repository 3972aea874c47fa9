from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .session import ClientSession


class SessionRegistry:
    """
    The shared username -> session map for one relay.

    Every operation takes the same lock, so register/unregister/lookup and
    snapshots are atomic with respect to each other. The registry only holds
    references; it never sends on or closes a session itself.
    """

    def __init__(self) -> None:
        self.log = logging.getLogger("chatrelay.registry")
        self._lock = threading.Lock()
        self._by_name: dict[str, ClientSession] = {}

    def register(self, name: str, session: ClientSession) -> bool:
        """Insert `name` only if it is free. Returns whether it was inserted."""
        with self._lock:
            if name in self._by_name:
                return False
            self._by_name[name] = session
            count = len(self._by_name)

        self.log.debug("Registered name=%r online=%s", name, count)
        return True

    def unregister(self, name: str) -> bool:
        """Remove `name` if present. Returns whether a mapping was removed."""
        with self._lock:
            removed = self._by_name.pop(name, None) is not None
            count = len(self._by_name)

        if removed:
            self.log.debug("Unregistered name=%r online=%s", name, count)
        return removed

    def lookup(self, name: str) -> ClientSession | None:
        with self._lock:
            return self._by_name.get(name)

    def snapshot(self) -> list[str]:
        with self._lock:
            return list(self._by_name.keys())

    def sessions(self) -> list[ClientSession]:
        with self._lock:
            return list(self._by_name.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._by_name
