from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .codes import ChangeCode
from .distributor import Distributor
from .models import User
from .registry import EntityRegistry

log = logging.getLogger("relay.sessions")

DEFAULT_TIMEOUT_SECS = 30.0


@dataclass(slots=True, eq=False)
class Session:
    """Caller-supplied token, optionally bound to a logged-in user.

    Anonymous (no user) sessions carry no timer. Active sessions always have exactly one.
    """

    token: str
    user: Optional[User] = None
    timer: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self.user is not None


class SessionManager:
    """Maps tokens to sessions and evicts idle ones.

    Each Active session owns one asyncio task that sleeps for ``timeout_secs`` and then
    evicts under ``registry.lock``. Rearming cancels that task and starts a fresh one; a
    task that already woke up but lost the race to the lock notices it is no longer the
    session's current timer and exits without touching anything.

    All methods except the timer body assume the caller holds ``registry.lock``.
    """

    def __init__(
        self,
        registry: EntityRegistry,
        distributor: Distributor,
        timeout_secs: float = DEFAULT_TIMEOUT_SECS,
    ) -> None:
        self.registry = registry
        self.distributor = distributor
        self.timeout_secs = timeout_secs
        self._sessions: Dict[str, Session] = {}

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_or_create(self, token: str) -> Session:
        session = self._sessions.get(token)
        if session is None:
            session = Session(token=token)
            self._sessions[token] = session
            log.debug("New session %s", token)
        return session

    def get(self, token: str) -> Optional[Session]:
        return self._sessions.get(token)

    def session_for(self, user: User) -> Optional[Session]:
        session = self._sessions.get(user.session_token)
        if session is not None and session.user is user:
            return session
        return None

    def __len__(self) -> int:
        return len(self._sessions)

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def bind_user(self, session: Session, user: User) -> None:
        """Anonymous -> Active."""
        session.user = user
        self._arm(session)
        log.info("User %s logged in on session %s", user.username, session.token)

    def rearm(self, session: Session) -> None:
        if not session.active:
            return
        self._cancel_timer(session)
        self._arm(session)

    def logout(self, session: Session) -> bool:
        """Active -> Anonymous. Removes the user and announces Disconnected.

        Returns False (and does nothing else) when there was no user to remove.
        """
        self._cancel_timer(session)
        user = session.user
        if user is None:
            return False
        session.user = None
        if not self.registry.remove_user(user):
            return False
        self.distributor.distribute_user_change(user, ChangeCode.DISCONNECTED)
        log.info("User %s logged out (session %s)", user.username, session.token)
        return True

    def evict(self, session: Session) -> bool:
        """Logout plus forgetting the session entirely. Safe to call more than once."""
        removed = self.logout(session)
        if self._sessions.get(session.token) is session:
            del self._sessions[session.token]
        return removed

    def stop_all(self) -> None:
        for session in self._sessions.values():
            self._cancel_timer(session)
        log.debug("Cancelled all session timers")

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _arm(self, session: Session) -> None:
        session.timer = asyncio.create_task(
            self._expire(session), name=f"session-timeout:{session.token}"
        )

    @staticmethod
    def _cancel_timer(session: Session) -> None:
        timer, session.timer = session.timer, None
        if timer is not None:
            timer.cancel()

    async def _expire(self, session: Session) -> None:
        await asyncio.sleep(self.timeout_secs)
        async with self.registry.lock:
            if session.timer is not asyncio.current_task():
                return  # superseded by a rearm or already cancelled
            session.timer = None
            user = session.user
            if self.evict(session) and user is not None:
                log.info("Session %s timed out; evicted %s", session.token, user.username)


__all__ = ["Session", "SessionManager", "DEFAULT_TIMEOUT_SECS"]
