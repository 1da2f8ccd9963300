from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Union

import websockets

from relay.core.codes import ResultCode
from relay.core.dispatcher import Dispatcher
from relay.core.distributor import Distributor
from relay.core.proto import encode_reply
from relay.core.registry import EntityRegistry
from relay.core.sessions import DEFAULT_TIMEOUT_SECS, SessionManager

log = logging.getLogger("relay.server.runtime")

DEFAULT_LISTEN = "0.0.0.0:8743"
DEFAULT_SHUTDOWN_GRACE_SECS = 5.0


class ServerRuntime:
    """Request/reply relay server: one websocket text frame in, exactly one out."""

    def __init__(self, config: Dict[str, Any]) -> None:
        self.cfg = config
        self.listen_host, self.listen_port = self._parse_listen(config.get("listen", DEFAULT_LISTEN))
        self.session_timeout = float(config.get("session_timeout_secs", DEFAULT_TIMEOUT_SECS))
        self.shutdown_grace = float(config.get("shutdown_grace_secs", DEFAULT_SHUTDOWN_GRACE_SECS))

        self.registry = EntityRegistry()
        self.distributor = Distributor(self.registry, notify_self=bool(config.get("notify_self", True)))
        self.sessions = SessionManager(self.registry, self.distributor, self.session_timeout)
        self.dispatcher = Dispatcher(self.registry, self.sessions, self.distributor)

        self.stopping = False
        self.closed = asyncio.Event()
        self._ws_server: Optional[Any] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        self._ws_server = await websockets.serve(self._handle_connection, self.listen_host, self.listen_port)
        if self.listen_port == 0:
            # ephemeral port requested; record what the OS picked
            self.listen_port = list(self._ws_server.sockets)[0].getsockname()[1]
        log.info("Relay listening on ws://%s:%d", self.listen_host, self.listen_port)

    async def begin_shutdown(self) -> None:
        """Refuse new work for the grace window so clients notice and log out, then close."""
        if self.stopping:
            return
        self.stopping = True
        log.info("Shutting down in %.0f seconds", self.shutdown_grace)
        await asyncio.sleep(self.shutdown_grace)
        self.closed.set()

    async def stop(self) -> None:
        self.stopping = True
        async with self.registry.lock:
            self.sessions.stop_all()

        if self._ws_server is not None:
            self._ws_server.close()
            await self._ws_server.wait_closed()
            self._ws_server = None
        self.closed.set()
        log.info("Relay stopped")

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    async def handle_raw(self, raw: Union[str, bytes]) -> str:
        if self.stopping:
            return encode_reply(ResultCode.COULD_NOT_CONNECT)
        return await self.dispatcher.dispatch_raw(raw)

    async def _handle_connection(self, websocket) -> None:
        remote = self._fmt_remote(websocket)
        log.debug("Accepted connection from %s", remote)
        try:
            async for raw in websocket:
                await websocket.send(await self.handle_raw(raw))
        except websockets.ConnectionClosed:
            pass
        finally:
            log.debug("Connection from %s closed", remote)

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_listen(value: str) -> tuple[str, int]:
        host, port = value.rsplit(":", 1)
        return host, int(port)

    @staticmethod
    def _fmt_remote(websocket) -> str:
        peer = getattr(websocket, "remote_address", None)
        if isinstance(peer, tuple):
            return f"{peer[0]}:{peer[1]}"
        return str(peer)


__all__ = ["ServerRuntime"]
