# tests/test_sessions.py
from __future__ import annotations

import asyncio

import pytest

from relay.core.codes import ChangeCode
from relay.core.models import User

TIMEOUT = 0.2  # matches conftest TEST_TIMEOUT_SECS


# -----------------------------
# Utilities
# -----------------------------

def login(registry, sessions, name: str):
    session = sessions.find_or_create(f"tok-{name}")
    user = User(name, name, session.token)
    registry.add_user(user)
    sessions.bind_user(session, user)
    return session, user


def user_events(user: User) -> list:
    out = []
    while (item := user.mailbox.dequeue_user_change()) is not None:
        out.append((item[0].username, item[1]))
    return out


# -----------------------------
# Basic state machine
# -----------------------------

@pytest.mark.asyncio
async def test_find_or_create_is_stable(sessions):
    s1 = sessions.find_or_create("abc")
    assert sessions.find_or_create("abc") is s1
    assert not s1.active
    assert s1.timer is None


@pytest.mark.asyncio
async def test_bind_arms_single_timer(registry, sessions):
    session, _ = login(registry, sessions, "alice")
    assert session.active
    first = session.timer
    assert first is not None and not first.done()

    sessions.rearm(session)
    await asyncio.sleep(0)
    assert session.timer is not first
    assert first.cancelled()
    sessions.stop_all()


@pytest.mark.asyncio
async def test_rearm_on_anonymous_is_noop(sessions):
    session = sessions.find_or_create("anon")
    sessions.rearm(session)
    assert session.timer is None


@pytest.mark.asyncio
async def test_logout_keeps_session_anonymous(registry, sessions):
    session, alice = login(registry, sessions, "alice")
    _, bob = login(registry, sessions, "bob")

    assert sessions.logout(session) is True
    assert not session.active
    assert session.timer is None
    assert sessions.get(session.token) is session
    assert not registry.user_exists("alice")
    assert user_events(bob) == [("alice", [ChangeCode.DISCONNECTED])]
    assert sessions.logout(session) is False
    sessions.stop_all()


# -----------------------------
# Idle eviction
# -----------------------------

def keep_alive(sessions, session) -> asyncio.Task:
    """Rearm ``session`` well inside the timeout until cancelled."""

    async def _loop():
        while True:
            await asyncio.sleep(TIMEOUT / 4)
            sessions.rearm(session)

    return asyncio.create_task(_loop())


@pytest.mark.asyncio
async def test_idle_session_is_evicted(registry, sessions):
    """carol goes quiet past the timeout: removed, session dropped, others told once."""
    alice_session, alice = login(registry, sessions, "alice")
    carol_session, _ = login(registry, sessions, "carol")
    keeper = keep_alive(sessions, alice_session)

    await asyncio.sleep(TIMEOUT * 2)
    keeper.cancel()

    assert not registry.user_exists("carol")
    assert sessions.get(carol_session.token) is None
    assert [u.username for u in registry.users] == ["alice"]
    assert user_events(alice) == [("carol", [ChangeCode.DISCONNECTED])]
    sessions.stop_all()


@pytest.mark.asyncio
async def test_repeated_rearm_yields_exactly_one_eviction(registry, sessions):
    watcher_session, watcher = login(registry, sessions, "watcher")
    session, _ = login(registry, sessions, "dave")
    keeper = keep_alive(sessions, watcher_session)

    for _ in range(5):
        await asyncio.sleep(TIMEOUT / 4)
        sessions.rearm(session)

    assert registry.user_exists("dave")
    await asyncio.sleep(TIMEOUT * 2)
    keeper.cancel()

    assert not registry.user_exists("dave")
    assert registry.user_exists("watcher")
    assert user_events(watcher) == [("dave", [ChangeCode.DISCONNECTED])]
    sessions.stop_all()


@pytest.mark.asyncio
async def test_timer_waits_for_lock_and_skips_if_superseded(registry, sessions):
    """A timer that fires while a request holds the lock must not evict after a rearm."""
    session, _ = login(registry, sessions, "erin")

    async with registry.lock:
        await asyncio.sleep(TIMEOUT * 1.5)  # timer wakes and queues on the lock
        sessions.rearm(session)

    await asyncio.sleep(0.01)
    assert registry.user_exists("erin")
    assert session.active
    sessions.stop_all()


@pytest.mark.asyncio
async def test_evict_after_logout_is_noop(registry, sessions):
    session, _ = login(registry, sessions, "frank")
    _, gina = login(registry, sessions, "gina")

    assert sessions.logout(session) is True
    assert sessions.evict(session) is False
    assert sessions.evict(session) is False
    assert user_events(gina) == [("frank", [ChangeCode.DISCONNECTED])]
    sessions.stop_all()


@pytest.mark.asyncio
async def test_stop_all_prevents_eviction(registry, sessions):
    login(registry, sessions, "hank")
    sessions.stop_all()
    await asyncio.sleep(TIMEOUT * 1.5)
    assert registry.user_exists("hank")


@pytest.mark.asyncio
async def test_session_for_finds_bound_session(registry, sessions):
    session, user = login(registry, sessions, "ivy")
    assert sessions.session_for(user) is session
    sessions.logout(session)
    assert sessions.session_for(user) is None
