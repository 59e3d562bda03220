"""Client side of a relay session: one accepted WebSocket connection."""

from __future__ import annotations

import logging
from typing import Protocol

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

LOGGER = logging.getLogger(__name__)


class EndpointClosed(Exception):
    """The client connection went away while sending or receiving."""


class MessageEndpoint(Protocol):
    peer: str

    @property
    def is_open(self) -> bool: ...

    async def receive(self) -> str | bytes | None: ...

    async def send(self, text: str) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class WebSocketEndpoint:
    """Adapts a ``websockets`` server connection to :class:`MessageEndpoint`."""

    def __init__(self, connection: ServerConnection) -> None:
        self._connection = connection
        host, port = connection.remote_address[:2]
        self.peer = f"{host}:{port}"

    @property
    def is_open(self) -> bool:
        return self._connection.state is State.OPEN

    async def receive(self) -> str | bytes | None:
        """Return the next frame, or None once the connection is closed."""

        try:
            return await self._connection.recv()
        except ConnectionClosed as exc:
            if exc.rcvd is None or exc.rcvd.code not in (1000, 1001):
                LOGGER.info("[%s] WebSocket closed abnormally: %s", self.peer, exc)
            return None

    async def send(self, text: str) -> None:
        try:
            await self._connection.send(text)
        except ConnectionClosed as exc:
            raise EndpointClosed(str(exc)) from exc

    async def close(self, code: int = 1000, reason: str = "") -> None:
        await self._connection.close(code=code, reason=reason)
