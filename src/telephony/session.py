"""One relay session: a WebSocket client paired with its own UDP socket."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field

from telephony.datagram import DatagramChannel
from telephony.endpoint import EndpointClosed, MessageEndpoint
from telephony.errors import DecodeError, RelayError, RelayErrorKind, RewriteError, SendError
from telephony.sip_rewrite import first_line, rewrite_headers

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionStats:
    outbound_messages: int = 0
    inbound_messages: int = 0
    inbound_dropped: int = 0
    queue_dropped: int = 0
    errors: Counter[RelayErrorKind] = field(default_factory=Counter)


class ConnectionSession:
    """Relays SIP between one WebSocket client and its own UDP socket.

    Two tasks run for the lifetime of the session:
    - outbound: client frame -> Via/Contact rewrite -> UDP datagram
    - inbound: UDP datagram -> UTF-8 text -> client frame (unchanged)

    Whichever finishes first (client closed, socket closed, idle timeout)
    cancels the other, and the UDP socket is closed exactly once.
    """

    def __init__(
        self,
        endpoint: MessageEndpoint,
        channel: DatagramChannel,
        *,
        idle_timeout: float = 0.0,
    ) -> None:
        self.id = endpoint.peer
        self._endpoint = endpoint
        self._channel = channel
        self._idle_timeout = idle_timeout
        self._finished = asyncio.Event()
        self.stats = SessionStats()

    @property
    def channel(self) -> DatagramChannel:
        return self._channel

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    async def run(self) -> None:
        outbound = asyncio.create_task(self._pump_outbound(), name=f"sip-relay-out:{self.id}")
        inbound = asyncio.create_task(self._pump_inbound(), name=f"sip-relay-in:{self.id}")
        tasks = (outbound, inbound)
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self._channel.close()
            for task in tasks:
                task.cancel()
            results = await asyncio.gather(*tasks, return_exceptions=True)
            self.stats.queue_dropped = self._channel.dropped
            self._finished.set()
            for result in results:
                if isinstance(result, Exception):
                    LOGGER.error("[%s] Relay task failed", self.id, exc_info=result)

        if self._endpoint.is_open:
            await self._endpoint.close(1000, "SIP relay closed")

    async def stop(self) -> None:
        """End the session by closing the client connection."""

        if self._endpoint.is_open:
            await self._endpoint.close(1001, "SIP relay shutting down")

    async def _next_frame(self) -> str | bytes | None:
        if not self._idle_timeout:
            return await self._endpoint.receive()
        try:
            return await asyncio.wait_for(self._endpoint.receive(), timeout=self._idle_timeout)
        except asyncio.TimeoutError:
            LOGGER.info("[%s] Idle for %ss, closing session", self.id, self._idle_timeout)
            return None

    async def _pump_outbound(self) -> None:
        while True:
            frame = await self._next_frame()
            if frame is None:
                return
            self.relay_outbound(frame)

    async def _pump_inbound(self) -> None:
        while True:
            data = await self._channel.receive()
            if data is None:
                return
            try:
                await self.relay_inbound(data)
            except EndpointClosed:
                return

    def relay_outbound(self, frame: str | bytes) -> bool:
        """Rewrite one client message and send it upstream. Returns True if sent."""

        if isinstance(frame, bytes):
            try:
                frame = frame.decode("utf-8")
            except UnicodeDecodeError as exc:
                self._record(DecodeError(f"Client frame is not UTF-8: {exc}"))
                return False

        host, port = self._channel.advertised_host, self._channel.local_port
        try:
            result = rewrite_headers(frame, host, port)
            message = result.message
        except Exception as exc:
            LOGGER.exception("[%s] Header rewrite failed, forwarding unchanged", self.id)
            self._record(RewriteError(str(exc)))
            message = frame

        start_line = first_line(message)
        LOGGER.info("[%s] -> SIP server: %s bytes [%s]", self.id, len(message), start_line.split(" ", 1)[0])
        LOGGER.debug("[%s] Outbound SIP message:\n%s", self.id, message)

        try:
            self._channel.send(message.encode("utf-8"))
        except SendError as exc:
            self._record(exc)
            return False

        self.stats.outbound_messages += 1
        return True

    async def relay_inbound(self, data: bytes) -> bool:
        """Forward one upstream datagram to the client. Returns True if delivered.

        Raises:
            EndpointClosed: if the client connection closed during the send.
        """

        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            self._record(DecodeError(f"Datagram is not UTF-8: {exc}"))
            return False

        LOGGER.info("[%s] <- SIP server: %s bytes %s", self.id, len(data), first_line(text))

        if not self._endpoint.is_open:
            self.stats.inbound_dropped += 1
            LOGGER.debug("[%s] Client gone, dropping datagram", self.id)
            return False

        await self._endpoint.send(text)
        self.stats.inbound_messages += 1
        return True

    def _record(self, error: RelayError) -> None:
        self.stats.errors[error.kind] += 1
        LOGGER.warning("[%s] %s error: %s", self.id, error.kind.value, error.detail)
