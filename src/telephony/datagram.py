"""Per-session UDP socket towards the upstream SIP server."""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Final

from telephony.errors import BindError, SendError

LOGGER = logging.getLogger(__name__)

MAX_DATAGRAM_SIZE: Final[int] = 65535
_UNSPECIFIED_HOSTS: Final[frozenset[str]] = frozenset({"0.0.0.0", "::", ""})


class _ChannelProtocol(asyncio.DatagramProtocol):
    """Queues datagrams from the SIP server for the channel's reader."""

    def __init__(self, queue_size: int) -> None:
        self.queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        try:
            self.queue.put_nowait(data)
        except asyncio.QueueFull:
            self.dropped += 1
            LOGGER.warning("Inbound queue full, dropping %s bytes from %s:%s", len(data), addr[0], addr[1])

    def error_received(self, exc: Exception) -> None:
        # ICMP errors (e.g. port unreachable) surface here; the socket stays usable.
        LOGGER.warning("UDP error: %s", exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(None)


class DatagramChannel:
    """UDP socket bound to an OS-assigned port and connected to one SIP server.

    The socket is connected to the upstream address, so the kernel picks the
    outgoing interface at bind time and only the upstream server's datagrams
    are delivered. Use :meth:`open` to create one; the local port is known as
    soon as it returns.
    """

    def __init__(
        self,
        transport: asyncio.DatagramTransport,
        protocol: _ChannelProtocol,
        *,
        remote_address: tuple[str, int],
        advertised_host: str | None = None,
    ) -> None:
        self._transport = transport
        self._protocol = protocol
        self._closed = False
        self._eof = False
        self.remote_address = remote_address

        sockname = transport.get_extra_info("sockname")
        self.local_address: str = sockname[0]
        self.local_port: int = sockname[1]
        self.advertised_host: str = advertised_host or self.local_address

    @classmethod
    async def open(
        cls,
        remote_host: str,
        remote_port: int,
        *,
        bind_host: str = "0.0.0.0",
        advertised_host: str | None = None,
        queue_size: int = 256,
    ) -> DatagramChannel:
        """Bind a new socket and connect it to ``remote_host:remote_port``.

        Raises:
            BindError: if the address cannot be resolved or no local port can be bound.
        """

        loop = asyncio.get_running_loop()
        family = socket.AF_INET6 if ":" in bind_host else socket.AF_INET
        try:
            transport, protocol = await loop.create_datagram_endpoint(
                lambda: _ChannelProtocol(queue_size),
                local_addr=(bind_host, 0),
                remote_addr=(remote_host, remote_port),
                family=family,
            )
        except OSError as exc:
            raise BindError(f"UDP bind towards {remote_host}:{remote_port} failed: {exc}") from exc

        peer = transport.get_extra_info("peername")
        remote_address = (peer[0], peer[1]) if peer else (remote_host, remote_port)
        channel = cls(transport, protocol, remote_address=remote_address, advertised_host=advertised_host)
        if channel.advertised_host in _UNSPECIFIED_HOSTS:
            LOGGER.warning("UDP socket reports unspecified local address; set SIP_ADVERTISED_HOST")
        return channel

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dropped(self) -> int:
        return self._protocol.dropped

    def send(self, data: bytes) -> None:
        """Send one datagram to the upstream server.

        Raises:
            SendError: if the channel is closed or the datagram cannot be handed to the OS.
        """

        if self._closed or self._transport.is_closing():
            raise SendError("UDP channel is closed")
        if len(data) > MAX_DATAGRAM_SIZE:
            raise SendError(f"Datagram too large ({len(data)} bytes)")
        try:
            self._transport.sendto(data)
        except OSError as exc:
            raise SendError(str(exc)) from exc

    async def receive(self) -> bytes | None:
        """Return the next datagram, or None once the channel is closed."""

        if self._eof or (self._closed and self._protocol.queue.empty()):
            return None
        data = await self._protocol.queue.get()
        if data is None:
            self._eof = True
        return data

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._transport.close()

    def __repr__(self) -> str:
        status = "closed" if self._closed else "open"
        return f"<DatagramChannel({self.local_address}:{self.local_port} -> {self.remote_address[0]}:{self.remote_address[1]}, {status})>"
