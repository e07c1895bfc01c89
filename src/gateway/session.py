"""
Shared plumbing for the per-connection HTTP and WebSocket sessions.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from gateway_utils.types import Application, InboundEvent, OutboundEvent, Scope
from gateway_utils.logging import peer_logger


class Session:
    """
    Owns one connection's scope and stream pair.

    Subclasses implement `_receive` and `_send`; the public `receive` and
    `send` methods serialize each half with its own lock, so overlapping
    calls to the same half wait for the one in flight.
    """

    kind = "session"

    def __init__(self, scope: Scope, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.scope = scope
        self.reader = reader
        self.writer = writer
        self.logger = peer_logger(self.kind, scope.client)
        self.state: Enum | None = None
        self._receive_lock = asyncio.Lock()
        self._send_lock = asyncio.Lock()
        self._stream_closed = False

    def _set_state(self, state: Enum) -> None:
        if self.state is not None:
            self.logger.debug("%s -> %s", self.state.value, state.value)
        self.state = state

    async def receive(self) -> InboundEvent:
        """Return the next inbound event for the application."""
        async with self._receive_lock:
            return await self._receive()

    async def send(self, event: OutboundEvent) -> None:
        """Translate one outbound event into wire bytes."""
        async with self._send_lock:
            await self._send(event)

    async def run(self, app: Application) -> None:
        """Invoke the application once with this session's contract."""
        await app(self.scope, self.receive, self.send)

    async def _receive(self) -> InboundEvent:
        raise NotImplementedError

    async def _send(self, event: OutboundEvent) -> None:
        raise NotImplementedError

    @property
    def closed(self) -> bool:
        return self._stream_closed

    async def close_stream(self) -> None:
        """
        Close the underlying stream. Safe to call more than once.
        """
        if self._stream_closed:
            return
        self._stream_closed = True
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as e:
            # Peer already went away; the socket is closed either way
            self.logger.debug("Error while closing stream: %s", e)
        self.logger.info("Connection closed")
