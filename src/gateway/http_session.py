"""
HTTP session: one request/response cycle over an accepted stream.
Lifecycle: SCOPE_BUILT -> AWAITING_APPLICATION
           -> RESPONSE_STARTED -> RESPONSE_COMPLETE

The request head is decoded by the acceptor before the session exists.
"""

from __future__ import annotations

import asyncio

from gateway_utils.types import (
    Application, GatewayError, HttpDisconnect, HttpRequestBody, HttpResponseBody,
    HttpResponseStart, HttpState, InboundEvent, OutboundEvent, ProtocolViolation,
    Scope, SessionClosed, TruncatedBody,
)
from gateway_utils.http import encode_response_head, reason_phrase
from gateway.session import Session


class HttpSession(Session):
    """
    Drives a single HTTP exchange for the application.

    The request body is read lazily, on the first receive() call. The
    response head is buffered on HttpResponseStart and written together
    with the first HttpResponseBody. A body with more=False ends the
    response and closes the connection.

    An application that never sends a final body keeps the connection
    open for as long as it keeps running.
    """

    kind = "http"

    def __init__(
        self,
        scope: Scope,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        body_length: int = 0,
    ) -> None:
        super().__init__(scope, reader, writer)
        self.state = HttpState.SCOPE_BUILT
        self.body_length = body_length
        self.status: int | None = None
        self._body_delivered = False
        self._aborted = False
        self._pending_head: bytes | None = None
        self._complete = asyncio.Event()

    @property
    def response_started(self) -> bool:
        return self.state in (HttpState.RESPONSE_STARTED, HttpState.RESPONSE_COMPLETE)

    async def run(self, app: Application) -> None:
        """
        Invoke the application. If it fails with its own error before any
        response bytes went out, answer 500 and close.
        """
        self._set_state(HttpState.AWAITING_APPLICATION)
        try:
            await app(self.scope, self.receive, self.send)
        except GatewayError:
            raise
        except Exception:
            if not self.response_started and not self.closed:
                self.logger.error("Application failed before responding; sending 500")
                await self._write_error(500)
            raise
        if self.state != HttpState.RESPONSE_COMPLETE:
            self.logger.warning("Application returned without completing the response")

    async def _receive(self) -> InboundEvent:
        if self._aborted:
            raise SessionClosed("Connection was aborted")
        if not self._body_delivered and self.state != HttpState.RESPONSE_COMPLETE:
            body = await self._read_body()
            self._body_delivered = True
            return HttpRequestBody(body=body, more=False)
        # Nothing more to read: report the disconnect once the response is done
        await self._complete.wait()
        return HttpDisconnect()

    async def _read_body(self) -> bytes:
        if self.body_length == 0:
            return b""
        try:
            return await self.reader.readexactly(self.body_length)
        except asyncio.IncompleteReadError as e:
            self.logger.warning("Body truncated: got %d of %d bytes", len(e.partial), self.body_length)
            await self._abort()
            raise TruncatedBody(f"Expected {self.body_length} body bytes, got {len(e.partial)}") from e

    async def _send(self, event: OutboundEvent) -> None:
        if self.state == HttpState.RESPONSE_COMPLETE:
            raise SessionClosed("Response already complete")

        if isinstance(event, HttpResponseStart):
            if self._pending_head is not None or self.response_started:
                raise ProtocolViolation("Response already started")
            # Encoding here rejects unknown status codes and bad headers early
            self._pending_head = encode_response_head(event.status, event.headers, self.scope.http_version)
            self.status = event.status
            self.logger.debug("Response head buffered (status %d)", event.status)
            return

        if isinstance(event, HttpResponseBody):
            if self._pending_head is None and not self.response_started:
                raise ProtocolViolation("Response body sent before response start")
            if self._pending_head is not None:
                self.writer.write(self._pending_head)
                self._pending_head = None
                self._set_state(HttpState.RESPONSE_STARTED)
            if event.body:
                self.writer.write(bytes(event.body))
            await self.writer.drain()
            if not event.more:
                await self._finish()
            return

        raise ProtocolViolation(f"Unexpected event for an HTTP connection: {type(event).__name__}")

    async def _finish(self) -> None:
        self._set_state(HttpState.RESPONSE_COMPLETE)
        self._complete.set()
        self.logger.info('"%s %s" %s', self.scope.method, self.scope.path, self.status)
        await self.close_stream()

    async def _abort(self) -> None:
        # No response is written; later receive/send calls raise SessionClosed
        self._aborted = True
        self._pending_head = None
        self._set_state(HttpState.RESPONSE_COMPLETE)
        self._complete.set()
        await self.close_stream()

    async def _write_error(self, status: int) -> None:
        body = f"{status} {reason_phrase(status)}".encode()
        self._pending_head = None
        self.writer.write(encode_response_head(status, [
            ("content-type", "text/plain; charset=utf-8"),
            ("content-length", str(len(body))),
        ], self.scope.http_version))
        self.writer.write(body)
        self.status = status
        self._set_state(HttpState.RESPONSE_STARTED)
        await self.writer.drain()
        await self._finish()
