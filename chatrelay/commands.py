"""Command parsing and dispatch for client lines."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .constants import (
    CMD_LIST,
    CMD_MSG,
    CMD_PM,
    CMD_QUIT,
    TXT_GOODBYE,
    TXT_PM_USAGE,
    TXT_USER_LIST,
)
from .messages import system_line

if TYPE_CHECKING:
    from .service import RelayService
    from .session import ClientSession

QUIT = "quit"
LIST = "list"
PM = "pm"
MSG = "msg"
MALFORMED_PM = "malformed_pm"


@dataclass(frozen=True)
class Command:
    kind: str
    target: str | None = None
    text: str | None = None


def parse_command(line: str) -> Command | None:
    """Parse one client line.

    Keywords are case-insensitive; the payload keeps its case. Returns None
    for blank lines. Anything that is not a recognized command becomes a
    broadcast of the whole line.
    """
    text = line.strip()
    if not text:
        return None

    # Tokens are separated by spaces only; a tab stays part of its token.
    parts = text.split(" ", 1)
    keyword = parts[0].upper()
    rest = parts[1].lstrip(" ") if len(parts) > 1 else ""

    if keyword == CMD_QUIT and not rest:
        return Command(QUIT)
    if keyword == CMD_LIST and not rest:
        return Command(LIST)

    if keyword == CMD_PM:
        args = rest.split(" ", 1)
        body = args[1].lstrip(" ") if len(args) > 1 else ""
        if not args[0] or not body:
            return Command(MALFORMED_PM)
        return Command(PM, target=args[0], text=body)

    if keyword == CMD_MSG and rest:
        return Command(MSG, text=rest)

    return Command(MSG, text=text)


class CommandHandler:
    """Runs parsed commands on behalf of a registered session."""

    def __init__(self, hub: RelayService) -> None:
        self.hub = hub
        self.log = logging.getLogger("chatrelay.commands")

    def handle_line(self, session: ClientSession, line: str) -> bool:
        """Handle one line from `session`.

        Returns False when the session asked to leave, True otherwise.
        """
        cmd = parse_command(line)
        if cmd is None:
            return True
        return self.dispatch(session, cmd)

    def dispatch(self, session: ClientSession, cmd: Command) -> bool:
        username = session.username
        if username is None:
            # Commands only run after the handshake assigned a name.
            return False

        if cmd.kind == QUIT:
            session.send(system_line(TXT_GOODBYE))
            return False

        if cmd.kind == LIST:
            users = ", ".join(self.hub.registry.snapshot())
            session.send(system_line(TXT_USER_LIST.format(users=users)))
            return True

        if cmd.kind == MALFORMED_PM:
            self.hub.stats_manager.inc("malformed")
            session.send(system_line(TXT_PM_USAGE))
            return True

        if cmd.kind == PM:
            self.hub.router.private_message(username, cmd.target or "", cmd.text or "")
            return True

        if cmd.kind == MSG:
            self.hub.router.broadcast(username, cmd.text or "")
            return True

        self.log.warning("Unhandled command kind=%r user=%r", cmd.kind, username)
        return True
