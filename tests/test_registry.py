# tests/test_registry.py
from __future__ import annotations

import pytest

from relay.core.errors import ProtocolError, UnknownChatError, UnknownUserError, UsernameTakenError
from relay.core.models import ChatRoom, User


def mk_user(name: str) -> User:
    return User(username=name, nickname=name.title(), session_token=f"tok-{name}")


# -----------------------------
# Chat id allocation
# -----------------------------

def test_first_chats_get_sequential_ids(registry):
    assert registry.create_chat("general").id == 0
    assert registry.create_chat("random").id == 1


def test_freed_id_is_reused_first(registry):
    """Removing chat 0 makes 0 the smallest free id again."""
    general = registry.create_chat("general")
    registry.create_chat("random")

    assert registry.remove_chat(general)
    third = registry.create_chat("third")

    assert third.id == 0
    assert sorted(c.id for c in registry.chats) == [0, 1]


def test_allocation_always_picks_smallest_unused(registry):
    created = [registry.create_chat(f"room{i}") for i in range(6)]
    for chat in (created[4], created[1], created[2]):
        registry.remove_chat(chat)

    in_use = {c.id for c in registry.chats}
    for _ in range(4):
        expected = min(set(range(len(in_use) + 1)) - in_use)
        chat = registry.create_chat("again")
        assert chat.id == expected
        in_use.add(chat.id)

    ids = [c.id for c in registry.chats]
    assert len(ids) == len(set(ids))


def test_add_chat_rejects_duplicate_id(registry):
    registry.add_chat(ChatRoom(3, "a"))
    with pytest.raises(ValueError):
        registry.add_chat(ChatRoom(3, "b"))


def test_chat_lookup_and_index(registry):
    registry.create_chat("general")
    registry.create_chat("general")

    assert registry.get_chat(1).name == "general"
    assert len(registry.chats_named("general")) == 2
    assert registry.chat_at(0).id == 0
    with pytest.raises(UnknownChatError):
        registry.get_chat(9)
    with pytest.raises(ProtocolError):
        registry.chat_at(-1)
    with pytest.raises(ProtocolError):
        registry.chat_at(2)


# -----------------------------
# Users
# -----------------------------

def test_usernames_unique_among_active(registry):
    alice = mk_user("alice")
    registry.add_user(alice)
    with pytest.raises(UsernameTakenError):
        registry.add_user(mk_user("alice"))
    assert len(registry.users) == 1

    registry.remove_user(alice)
    registry.add_user(mk_user("alice"))
    assert registry.user_exists("alice")


def test_remove_absent_user_is_noop(registry):
    alice = mk_user("alice")
    registry.add_user(alice)
    assert registry.remove_user(alice) is True
    assert registry.remove_user(alice) is False


def test_user_lookup(registry):
    registry.add_user(mk_user("alice"))
    registry.add_user(mk_user("bob"))

    assert registry.get_user("bob").nickname == "Bob"
    assert registry.user_at(1).username == "bob"
    with pytest.raises(UnknownUserError):
        registry.get_user("carol")
    with pytest.raises(ProtocolError):
        registry.user_at(2)
