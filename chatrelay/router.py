from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .constants import TXT_USER_NOT_FOUND
from .messages import Broadcast, PrivateMessage, SystemAnnouncement, system_line

if TYPE_CHECKING:
    from .service import RelayService


class MessageRouter:
    """
    Delivers messages to registered sessions.

    This class is responsible for:
    - Broadcasts to every registered session (sender included)
    - Private messages with a confirmation echo to the sender
    - System announcements (join/leave notices)

    Fan-out works on a registry snapshot taken at the start of each call and
    never holds the registry lock while sending. Sessions that join or leave
    during a delivery may or may not see that message.
    """

    def __init__(self, hub: RelayService) -> None:
        self.hub = hub
        self.log = logging.getLogger("chatrelay.router")

    def broadcast(self, sender: str, text: str) -> int:
        line = Broadcast(sender, text).render()
        targets = self.hub.registry.sessions()
        self.hub.stats_manager.inc("broadcasts")

        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "Broadcast from=%r recipients=%s chars=%s",
                sender,
                len(targets),
                len(text),
            )

        for session in targets:
            session.send(line)
        return len(targets)

    def private_message(self, sender: str, recipient: str, text: str) -> bool:
        """
        Deliver `text` from `sender` to `recipient` only.

        Returns True if the recipient was online. The sender's confirmation
        (or not-found notice) is skipped silently when the sender itself is
        no longer registered, e.g. while it is disconnecting.
        """
        target = self.hub.registry.lookup(recipient)
        origin = self.hub.registry.lookup(sender)

        if target is None:
            self.hub.stats_manager.inc("pm_not_found")
            self.log.debug("PM from=%r to unknown user=%r", sender, recipient)
            if origin is not None:
                origin.send(system_line(TXT_USER_NOT_FOUND.format(user=recipient)))
            return False

        pm = PrivateMessage(sender, recipient, text)
        self.hub.stats_manager.inc("private_messages")
        self.log.debug("PM from=%r to=%r chars=%s", sender, recipient, len(text))

        target.send(pm.render_for_recipient())
        if origin is not None:
            origin.send(pm.render_for_sender())
        return True

    def announce(self, text: str) -> int:
        line = SystemAnnouncement(text).render()
        targets = self.hub.registry.sessions()
        self.hub.stats_manager.inc("announcements")
        self.log.debug("Announce recipients=%s text=%r", len(targets), text)

        for session in targets:
            session.send(line)
        return len(targets)
