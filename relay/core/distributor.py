from __future__ import annotations

import logging

from .codes import ChangeCode
from .models import ChatRoom, Message, ToChat, ToUser, User
from .registry import EntityRegistry

log = logging.getLogger("relay.distributor")


class Distributor:
    """Synchronous in-memory fan-out into user mailboxes.

    Only users active at fan-out time receive anything; there is no backfill and no retry.
    Callers hold ``registry.lock``.
    """

    def __init__(self, registry: EntityRegistry, *, notify_self: bool = True) -> None:
        self.registry = registry
        self.notify_self = notify_self

    def distribute_message(self, message: Message) -> int:
        target = message.target
        delivered = 0
        if isinstance(target, ToChat):
            for user in self.registry.users:
                if user.username != message.sender.username:
                    user.mailbox.enqueue_message(message)
                    delivered += 1
        elif isinstance(target, ToUser):
            for user in self.registry.users:
                if user is target.user:
                    user.mailbox.enqueue_message(message)
                    delivered += 1
        log.debug("Message from %s queued for %d user(s)", message.sender.username, delivered)
        return delivered

    def distribute_chat_change(self, chat: ChatRoom, change: ChangeCode) -> None:
        for user in self.registry.users:
            user.mailbox.enqueue_chat_change(chat, change)

    def distribute_user_change(self, subject: User, change: ChangeCode) -> None:
        for user in self.registry.users:
            if user is subject and not self.notify_self:
                continue
            user.mailbox.enqueue_user_change(subject, change)


__all__ = ["Distributor"]
