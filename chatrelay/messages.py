"""Ephemeral message values and their rendering to wire lines."""

from __future__ import annotations

from dataclasses import dataclass

from .constants import PM_FROM_PREFIX, PM_TO_PREFIX, SYSTEM_PREFIX


def system_line(text: str) -> str:
    return SYSTEM_PREFIX + text


@dataclass(frozen=True)
class Broadcast:
    sender: str
    text: str

    def render(self) -> str:
        return f"{self.sender}: {self.text}"


@dataclass(frozen=True)
class PrivateMessage:
    """A message for one recipient, echoed back to its sender as confirmation."""

    sender: str
    recipient: str
    text: str

    def render_for_recipient(self) -> str:
        return PM_FROM_PREFIX.format(user=self.sender) + self.text

    def render_for_sender(self) -> str:
        return PM_TO_PREFIX.format(user=self.recipient) + self.text


@dataclass(frozen=True)
class SystemAnnouncement:
    text: str

    def render(self) -> str:
        return system_line(self.text)
