from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import websockets

from relay.core.codes import ChangeCode, RequestCode, ResultCode
from relay.core.proto import decode_reply, encode_request, parse_flag

log = logging.getLogger("relay.cmd.client")


class ClientApp:
    """Interactive client. Everything arrives by polling; the server never pushes."""

    def __init__(self, server_url: str, username: str, nickname: str, poll_interval: float = 1.0) -> None:
        self.server_url = server_url
        self.username = username
        self.nickname = nickname
        self.poll_interval = poll_interval
        self.token = str(uuid.uuid4())

        self.ws = None
        self.send_lock = asyncio.Lock()
        self.stop_event = asyncio.Event()

    async def run(self) -> None:
        async with websockets.connect(self.server_url) as ws:
            self.ws = ws
            result, _ = await self.request(RequestCode.LOGIN, self.username, self.nickname)
            if result != ResultCode.SUCCESS:
                print(f"Login failed: {result.name}")
                return
            poller = asyncio.create_task(self._poll_loop())
            try:
                await self._command_loop()
            finally:
                self.stop_event.set()
                poller.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await poller
                with contextlib.suppress(websockets.ConnectionClosed):
                    await self.request(RequestCode.LOGOUT)

    async def request(self, code: RequestCode, *args: object) -> Tuple[ResultCode, List[str]]:
        assert self.ws is not None
        # strict request/reply: never interleave two requests on the socket
        async with self.send_lock:
            await self.ws.send(encode_request(self.token, code, *args))
            raw = await self.ws.recv()
        return decode_reply(raw)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _poll_loop(self) -> None:
        while not self.stop_event.is_set():
            result, _ = await self.request(RequestCode.KEEP_ALIVE)
            if result != ResultCode.SUCCESS:
                print(f"Server ended the session ({result.name})")
                self.stop_event.set()
                break
            await self._drain(RequestCode.POLL_USER_UPDATES, self._show_user_update)
            await self._drain(RequestCode.POLL_CHAT_UPDATES, self._show_chat_update)
            await self._drain(RequestCode.POLL_NEW_MESSAGE, self._show_message)
            await asyncio.sleep(self.poll_interval)

    async def _drain(self, code: RequestCode, show) -> None:
        while True:
            result, fields = await self.request(code)
            if result != ResultCode.SUCCESS or not fields:
                return
            show(fields)

    @staticmethod
    def _describe(tags: str) -> str:
        return ", ".join(ChangeCode(int(t)).name.lower() for t in tags.split(","))

    def _show_user_update(self, fields: List[str]) -> None:
        print(f"* {fields[0]}: {self._describe(fields[1])}")

    def _show_chat_update(self, fields: List[str]) -> None:
        print(f"* chat #{fields[0]}: {self._describe(fields[1])}")

    def _show_message(self, fields: List[str]) -> None:
        sender, to_user, recipient, body, sent_at = fields
        where = "(private)" if parse_flag(to_user) else f"#{recipient}"
        print(f"[{sent_at}] {where} <{sender}> {body}")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _command_loop(self) -> None:
        loop = asyncio.get_running_loop()
        print("Relay client ready. Commands: /users, /chats, /tell <user> <msg>, /say <chat> <msg>, "
              "/nick <name>, /mkchat <name>, /quit")
        while not self.stop_event.is_set():
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            line = line.strip()
            if line:
                await self._handle_command(line)

    async def _handle_command(self, line: str) -> None:
        parts = line.split(" ", 2)
        cmd = parts[0]
        if cmd == "/users":
            await self._list(RequestCode.LIST_USERS, RequestCode.GET_USER_BY_INDEX)
        elif cmd == "/chats":
            await self._list(RequestCode.LIST_CHATS, RequestCode.GET_CHAT_BY_INDEX)
        elif cmd in {"/tell", "/say"} and len(parts) == 3:
            await self._send(to_user=cmd == "/tell", recipient=parts[1], body=parts[2])
        elif cmd == "/nick" and len(parts) >= 2:
            await self._report(RequestCode.SET_NICKNAME, line.split(" ", 1)[1])
        elif cmd == "/mkchat" and len(parts) >= 2:
            await self._report(RequestCode.CREATE_CHAT_ROOM, line.split(" ", 1)[1])
        elif cmd in {"/quit", "/exit"}:
            self.stop_event.set()
        else:
            print("Unknown command")

    async def _list(self, count_code: RequestCode, item_code: RequestCode) -> None:
        result, fields = await self.request(count_code)
        if result != ResultCode.SUCCESS:
            print(f"Error: {result.name}")
            return
        for index in range(int(fields[0])):
            result, item = await self.request(item_code, index)
            if result == ResultCode.SUCCESS:
                print(f"  {item[0]}")

    async def _send(self, *, to_user: bool, recipient: str, body: str) -> None:
        sent_at = datetime.now(timezone.utc).isoformat()
        await self._report(RequestCode.SEND_MESSAGE, str(to_user).lower(), recipient, body, sent_at)

    async def _report(self, code: RequestCode, *args: object) -> Optional[List[str]]:
        result, fields = await self.request(code, *args)
        if result != ResultCode.SUCCESS:
            print(f"Error: {result.name}")
            return None
        if fields:
            print(" ".join(fields))
        return fields


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Poll-based chat relay client")
    parser.add_argument("--server", default="ws://127.0.0.1:8743", help="Relay websocket URL")
    parser.add_argument("--user", required=True, help="Username to log in as")
    parser.add_argument("--nick", default=None, help="Display nickname (defaults to username)")
    parser.add_argument("--poll-interval", type=float, default=1.0)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    app = ClientApp(args.server, args.user, args.nick or args.user, args.poll_interval)
    asyncio.run(app.run())


if __name__ == "__main__":
    main()
