from __future__ import annotations

import asyncio
import logging
from typing import List

from .errors import ProtocolError, UnknownChatError, UnknownUserError, UsernameTakenError
from .models import ChatRoom, User

log = logging.getLogger("relay.registry")


class EntityRegistry:
    """Owns the active users and chat rooms.

    Every component gets a reference to the same instance. Mutations (and reads that
    must be consistent across a whole request) happen while holding ``lock``; the
    dispatcher, the session timers and the admin console all take it.

    Lookups are linear scans over small lists.
    """

    def __init__(self) -> None:
        self.users: List[User] = []
        self.chats: List[ChatRoom] = []
        self.lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def user_exists(self, username: str) -> bool:
        return any(u.username == username for u in self.users)

    def get_user(self, username: str) -> User:
        for user in self.users:
            if user.username == username:
                return user
        raise UnknownUserError(username)

    def add_user(self, user: User) -> None:
        if self.user_exists(user.username):
            raise UsernameTakenError(user.username)
        self.users.append(user)

    def remove_user(self, user: User) -> bool:
        try:
            self.users.remove(user)
        except ValueError:
            return False
        return True

    def user_at(self, index: int) -> User:
        if not 0 <= index < len(self.users):
            raise ProtocolError(f"user index {index} out of range")
        return self.users[index]

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    def chat_exists(self, chat_id: int) -> bool:
        return any(c.id == chat_id for c in self.chats)

    def get_chat(self, chat_id: int) -> ChatRoom:
        for chat in self.chats:
            if chat.id == chat_id:
                return chat
        raise UnknownChatError(chat_id)

    def chats_named(self, name: str) -> List[ChatRoom]:
        return [c for c in self.chats if c.name == name]

    def add_chat(self, chat: ChatRoom) -> None:
        if self.chat_exists(chat.id):
            raise ValueError(f"chat id {chat.id} already in use")
        self.chats.append(chat)

    def remove_chat(self, chat: ChatRoom) -> bool:
        try:
            self.chats.remove(chat)
        except ValueError:
            return False
        return True

    def chat_at(self, index: int) -> ChatRoom:
        if not 0 <= index < len(self.chats):
            raise ProtocolError(f"chat index {index} out of range")
        return self.chats[index]

    def allocate_chat_id(self) -> int:
        """Smallest non-negative id not held by a live chat."""
        chat_id = 0
        while self.chat_exists(chat_id):
            chat_id += 1
        return chat_id

    def create_chat(self, name: str) -> ChatRoom:
        chat = ChatRoom(id=self.allocate_chat_id(), name=name)
        self.chats.append(chat)
        log.info("Created chat %d (%s)", chat.id, chat.name)
        return chat


__all__ = ["EntityRegistry"]
