from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Deque, Dict, List, Optional, Tuple

from .codes import ChangeCode

if TYPE_CHECKING:
    from .models import ChatRoom, Message, User


class Mailbox:
    """Pending deliveries for one user.

    Three independent queues:
      • messages: plain FIFO, one message per dequeue
      • chat changes: ChatRoom -> ordered tags
      • user changes: User -> ordered tags

    A change dequeue hands back every pending tag for a single subject at once.
    Subjects come out in the order their first pending tag arrived.

    ``None`` from a dequeue means "nothing pending"; callers poll until they see it.
    Not thread-safe: callers hold the registry lock.
    """

    def __init__(self) -> None:
        self._messages: Deque[Message] = deque()
        self._chat_changes: Dict[ChatRoom, List[ChangeCode]] = {}
        self._user_changes: Dict[User, List[ChangeCode]] = {}

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def enqueue_message(self, message: Message) -> None:
        self._messages.append(message)

    def dequeue_message(self) -> Optional[Message]:
        if not self._messages:
            return None
        return self._messages.popleft()

    # ------------------------------------------------------------------
    # Change events
    # ------------------------------------------------------------------

    def enqueue_chat_change(self, chat: ChatRoom, change: ChangeCode) -> None:
        self._chat_changes.setdefault(chat, []).append(change)

    def dequeue_chat_change(self) -> Optional[Tuple[ChatRoom, List[ChangeCode]]]:
        return _pop_oldest(self._chat_changes)

    def enqueue_user_change(self, subject: User, change: ChangeCode) -> None:
        self._user_changes.setdefault(subject, []).append(change)

    def dequeue_user_change(self) -> Optional[Tuple[User, List[ChangeCode]]]:
        return _pop_oldest(self._user_changes)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def pending_messages(self) -> int:
        return len(self._messages)

    @property
    def pending_chat_subjects(self) -> int:
        return len(self._chat_changes)

    @property
    def pending_user_subjects(self) -> int:
        return len(self._user_changes)

    def is_empty(self) -> bool:
        return not (self._messages or self._chat_changes or self._user_changes)


def _pop_oldest(queue: dict):
    if not queue:
        return None
    key = next(iter(queue))
    return key, queue.pop(key)


__all__ = ["Mailbox"]
