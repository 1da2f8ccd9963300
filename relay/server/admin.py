from __future__ import annotations

import asyncio
import logging
import sys
import threading
from typing import TYPE_CHECKING, List, Optional

from relay.core.codes import ChangeCode
from relay.core.errors import ProtocolError, UnknownChatError
from relay.core.proto import parse_int

if TYPE_CHECKING:
    from .runtime import ServerRuntime

log = logging.getLogger("relay.server.admin")

USAGE = "Commands: /addchat <name>, /removechat <id|name>, /removeuser <name>, /stop"


class AdminConsole:
    """Operator commands read from stdin. Each command runs under the registry lock."""

    def __init__(self, runtime: ServerRuntime) -> None:
        self.runtime = runtime
        self._shutdown: Optional[asyncio.Task] = None

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        lines: asyncio.Queue[Optional[str]] = asyncio.Queue()

        # daemon thread so a blocked readline never holds up interpreter exit
        def _reader() -> None:
            try:
                for raw in sys.stdin:
                    loop.call_soon_threadsafe(lines.put_nowait, raw)
                loop.call_soon_threadsafe(lines.put_nowait, None)
            except RuntimeError:
                log.debug("Event loop closed; admin console reader exiting")

        threading.Thread(target=_reader, name="admin-stdin", daemon=True).start()

        while not self.runtime.stopping:
            line = await lines.get()
            if line is None:
                break
            line = line.strip()
            if not line:
                continue
            for out in await self.execute(line):
                print(out)

    async def execute(self, line: str) -> List[str]:
        parts = line.strip().split(" ", 1)
        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd == "/stop":
            self._shutdown = asyncio.create_task(self.runtime.begin_shutdown(), name="graceful-shutdown")
            return [f"Shutting down in {self.runtime.shutdown_grace:g} seconds"]
        if cmd == "/addchat" and arg:
            return await self._add_chat(arg)
        if cmd == "/removechat" and arg:
            return await self._remove_chat(arg)
        if cmd == "/removeuser" and arg:
            return await self._remove_user(arg)
        return [USAGE]

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _add_chat(self, name: str) -> List[str]:
        rt = self.runtime
        async with rt.registry.lock:
            chat = rt.registry.create_chat(name)
            rt.distributor.distribute_chat_change(chat, ChangeCode.CONNECTED)
        return [f"{chat.id} {chat.name}"]

    async def _remove_chat(self, target: str) -> List[str]:
        rt = self.runtime
        async with rt.registry.lock:
            try:
                chats = [rt.registry.get_chat(parse_int(target))]
            except ProtocolError:
                chats = rt.registry.chats_named(target)
            except UnknownChatError:
                log.warning("Admin asked to remove unknown chat id %s", target)
                return ["Chat id not found"]

            for chat in chats:
                rt.distributor.distribute_chat_change(chat, ChangeCode.DISCONNECTED)
                rt.registry.remove_chat(chat)
                log.info("Removed chat %d (%s)", chat.id, chat.name)
        if not chats:
            return ["No chat named " + target]
        return [f"Removed {c.id} {c.name}" for c in chats]

    async def _remove_user(self, username: str) -> List[str]:
        rt = self.runtime
        async with rt.registry.lock:
            if not rt.registry.user_exists(username):
                log.warning("Admin asked to remove unknown user %s", username)
                return ["User not found"]
            user = rt.registry.get_user(username)
            session = rt.sessions.session_for(user)
            if session is not None:
                rt.sessions.evict(session)
            else:
                rt.registry.remove_user(user)
                rt.distributor.distribute_user_change(user, ChangeCode.DISCONNECTED)
        log.info("Admin removed user %s", username)
        return [f"Removed {username}"]


__all__ = ["AdminConsole", "USAGE"]
