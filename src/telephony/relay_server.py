"""WebSocket listener for the SIP relay and its registry of live sessions."""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass, replace

from websockets.asyncio.server import Server, ServerConnection, serve

from config.settings import Settings, get_settings
from telephony.datagram import DatagramChannel
from telephony.endpoint import MessageEndpoint, WebSocketEndpoint
from telephony.errors import BindError, CapacityError
from telephony.session import ConnectionSession

LOGGER = logging.getLogger(__name__)

SIP_SUBPROTOCOL = "sip"
CLOSE_INTERNAL_ERROR = 1011
CLOSE_TRY_AGAIN_LATER = 1013


@dataclass(frozen=True, slots=True)
class RelayConfig:
    host: str
    port: int
    upstream_host: str
    upstream_port: int
    bind_host: str = "0.0.0.0"
    advertised_host: str | None = None
    max_sessions: int = 1024
    idle_timeout: float = 0.0
    inbound_queue_size: int = 256

    @classmethod
    def from_settings(cls, settings: Settings) -> RelayConfig:
        return cls(
            host=settings.sip_ws_host,
            port=settings.sip_ws_port,
            upstream_host=settings.sip_server_host,
            upstream_port=settings.sip_server_port,
            bind_host=settings.sip_udp_bind_host,
            advertised_host=settings.sip_advertised_host,
            max_sessions=settings.relay_max_sessions,
            idle_timeout=settings.relay_idle_timeout_seconds,
            inbound_queue_size=settings.relay_inbound_queue_size,
        )


class SessionRegistry:
    """Live relay sessions keyed by session id.

    Only touched on connect/disconnect; the relay path itself never looks here.
    """

    def __init__(self, capacity: int) -> None:
        self._capacity = capacity
        self._lock = asyncio.Lock()
        self._sessions: dict[str, ConnectionSession] = {}

    @property
    def full(self) -> bool:
        return len(self._sessions) >= self._capacity

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    async def add(self, session: ConnectionSession) -> None:
        async with self._lock:
            if len(self._sessions) >= self._capacity:
                raise CapacityError(f"{self._capacity} sessions already active")
            self._sessions[session.id] = session

    async def remove(self, session: ConnectionSession) -> bool:
        async with self._lock:
            if self._sessions.get(session.id) is not session:
                return False
            del self._sessions[session.id]
            return True

    async def snapshot(self) -> list[ConnectionSession]:
        async with self._lock:
            return list(self._sessions.values())


class RelayServer:
    """WebSocket listener that gives every SIP client its own UDP socket."""

    def __init__(self, config: RelayConfig) -> None:
        self._config = config
        self._server: Server | None = None
        self.registry = SessionRegistry(config.max_sessions)

    @property
    def port(self) -> int | None:
        """Bound listening port (differs from the configured one when that was 0)."""

        if self._server is None:
            return None
        for sock in self._server.sockets:
            return sock.getsockname()[1]
        return None

    async def start(self) -> None:
        if self._server is not None:
            return
        self._server = await serve(
            self._handle_connection,
            self._config.host,
            self._config.port,
            subprotocols=[SIP_SUBPROTOCOL],
        )
        LOGGER.info(
            "WebSocket SIP relay listening on ws://%s:%s -> udp://%s:%s",
            self._config.host,
            self.port,
            self._config.upstream_host,
            self._config.upstream_port,
        )

    async def stop(self) -> None:
        if self._server is None:
            return
        server, self._server = self._server, None
        sessions = await self.registry.snapshot()
        await asyncio.gather(*(session.stop() for session in sessions), return_exceptions=True)
        server.close()
        await server.wait_closed()
        LOGGER.info("WebSocket SIP relay stopped (%s sessions closed)", len(sessions))

    async def serve_forever(self) -> None:
        await self.start()
        assert self._server is not None
        try:
            await self._server.wait_closed()
        finally:
            await self.stop()

    async def _handle_connection(self, connection: ServerConnection) -> None:
        await self.handle_endpoint(WebSocketEndpoint(connection))

    async def handle_endpoint(self, endpoint: MessageEndpoint) -> None:
        """Run one client connection from accept to close."""

        LOGGER.info("New WebSocket connection: %s", endpoint.peer)

        if self.registry.full:
            LOGGER.warning("[%s] Rejected: %s sessions already active", endpoint.peer, len(self.registry))
            await endpoint.close(CLOSE_TRY_AGAIN_LATER, "SIP relay at capacity")
            return

        try:
            channel = await DatagramChannel.open(
                self._config.upstream_host,
                self._config.upstream_port,
                bind_host=self._config.bind_host,
                advertised_host=self._config.advertised_host,
                queue_size=self._config.inbound_queue_size,
            )
        except BindError as exc:
            LOGGER.error("[%s] %s", endpoint.peer, exc.detail)
            await endpoint.close(CLOSE_INTERNAL_ERROR, "UDP bind failed")
            return

        session = ConnectionSession(endpoint, channel, idle_timeout=self._config.idle_timeout)
        try:
            await self.registry.add(session)
        except CapacityError as exc:
            channel.close()
            LOGGER.warning("[%s] Rejected: %s", endpoint.peer, exc.detail)
            await endpoint.close(CLOSE_TRY_AGAIN_LATER, "SIP relay at capacity")
            return

        LOGGER.info(
            "[%s] UDP socket on %s:%s (advertised %s)",
            session.id,
            channel.local_address,
            channel.local_port,
            channel.advertised_host,
        )
        try:
            await session.run()
        finally:
            await self.registry.remove(session)
            LOGGER.info(
                "[%s] WebSocket connection closed (out=%s in=%s queue_dropped=%s errors=%s)",
                session.id,
                session.stats.outbound_messages,
                session.stats.inbound_messages,
                session.stats.queue_dropped,
                dict(session.stats.errors),
            )


def _parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="WebSocket to UDP SIP relay")
    parser.add_argument("--host", default=settings.sip_ws_host)
    parser.add_argument("--port", type=int, default=settings.sip_ws_port)
    parser.add_argument("--upstream-host", default=settings.sip_server_host)
    parser.add_argument("--upstream-port", type=int, default=settings.sip_server_port)
    return parser.parse_args()


async def _amain() -> None:
    args = _parse_args()
    config = replace(
        RelayConfig.from_settings(get_settings()),
        host=args.host,
        port=args.port,
        upstream_host=args.upstream_host,
        upstream_port=args.upstream_port,
    )
    server = RelayServer(config)
    await server.serve_forever()


def main() -> None:
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(_amain())


if __name__ == "__main__":
    main()
