from __future__ import annotations

import asyncio
from collections.abc import Callable

from telephony.endpoint import EndpointClosed
from telephony.errors import SendError


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class _UpstreamProtocol(asyncio.DatagramProtocol):
    def __init__(self, reply: Callable[[bytes], bytes | None] | None) -> None:
        self._reply = reply
        self.transport: asyncio.DatagramTransport | None = None
        self.received: list[bytes] = []
        self.sources: list[tuple[str, int]] = []

    def connection_made(self, transport) -> None:
        self.transport = transport

    def datagram_received(self, data: bytes, addr) -> None:
        self.received.append(data)
        self.sources.append((addr[0], addr[1]))
        if self._reply is not None and self.transport is not None:
            answer = self._reply(data)
            if answer is not None:
                self.transport.sendto(answer, addr)


class UdpUpstream:
    """Loopback stand-in for the UDP SIP server."""

    def __init__(self, transport: asyncio.DatagramTransport, protocol: _UpstreamProtocol) -> None:
        self._transport = transport
        self._protocol = protocol

    @classmethod
    async def start(cls, reply: Callable[[bytes], bytes | None] | None = None) -> UdpUpstream:
        loop = asyncio.get_running_loop()
        transport, protocol = await loop.create_datagram_endpoint(
            lambda: _UpstreamProtocol(reply),
            local_addr=("127.0.0.1", 0),
        )
        return cls(transport, protocol)

    @property
    def port(self) -> int:
        return self._transport.get_extra_info("sockname")[1]

    @property
    def received(self) -> list[bytes]:
        return self._protocol.received

    @property
    def sources(self) -> list[tuple[str, int]]:
        return self._protocol.sources

    def send_to(self, addr: tuple[str, int], data: bytes) -> None:
        self._transport.sendto(data, addr)

    def close(self) -> None:
        self._transport.close()


class FakeEndpoint:
    """In-memory client connection; feed() plays the browser."""

    def __init__(self, peer: str = "127.0.0.1:40000") -> None:
        self.peer = peer
        self.is_open = True
        self.sent: list[str] = []
        self.close_codes: list[int] = []
        self._incoming: asyncio.Queue[str | bytes | None] = asyncio.Queue()

    def feed(self, frame: str | bytes) -> None:
        self._incoming.put_nowait(frame)

    def disconnect(self) -> None:
        self.is_open = False
        self._incoming.put_nowait(None)

    async def receive(self) -> str | bytes | None:
        return await self._incoming.get()

    async def send(self, text: str) -> None:
        if not self.is_open:
            raise EndpointClosed("closed")
        self.sent.append(text)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_codes.append(code)
        if self.is_open:
            self.disconnect()


class FakeChannel:
    """DatagramChannel double that records sends and counts close() calls."""

    def __init__(self, advertised_host: str = "10.0.0.5", local_port: int = 54321) -> None:
        self.advertised_host = advertised_host
        self.local_address = advertised_host
        self.local_port = local_port
        self.remote_address = ("198.51.100.10", 5060)
        self.sent: list[bytes] = []
        self.close_calls = 0
        self.dropped = 0
        self.fail_next_sends = 0
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def deliver(self, data: bytes) -> None:
        self._queue.put_nowait(data)

    def send(self, data: bytes) -> None:
        if self.fail_next_sends:
            self.fail_next_sends -= 1
            raise SendError("network unreachable")
        self.sent.append(data)

    async def receive(self) -> bytes | None:
        return await self._queue.get()

    def close(self) -> None:
        self.close_calls += 1
        self._queue.put_nowait(None)
