from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from .mailbox import Mailbox


@dataclass(eq=False)
class ChatRoom:
    """A room every active user hears about. Names need not be unique; ids are."""

    id: int
    name: str


@dataclass(eq=False)
class User:
    """A logged-in user. Lives only as long as the session that created it."""

    username: str
    nickname: str
    session_token: str
    picture: Optional[bytes] = None
    mailbox: Mailbox = field(default_factory=Mailbox)

    @property
    def has_picture(self) -> bool:
        return self.picture is not None


# ---------------------------------------------------------------------------
# Message target: exactly one of chat or user
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToChat:
    chat: ChatRoom


@dataclass(frozen=True)
class ToUser:
    user: User


Target = Union[ToChat, ToUser]


@dataclass(frozen=True)
class Message:
    sender: User
    target: Target
    body: str
    sent_at: str  # ISO-8601 with zone, as supplied by the sender

    @property
    def to_user(self) -> bool:
        return isinstance(self.target, ToUser)


__all__ = ["ChatRoom", "User", "ToChat", "ToUser", "Target", "Message"]
