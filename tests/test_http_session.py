"""
Tests for the HTTP session state machine.
"""

import asyncio

import pytest

from gateway_utils.types import (
    HttpDisconnect,
    HttpRequestBody,
    HttpResponseBody,
    HttpResponseStart,
    HttpState,
    ProtocolViolation,
    SessionClosed,
    TruncatedBody,
    UnknownStatusCode,
    WebsocketSend,
)
from gateway.http_session import HttpSession

from conftest import make_reader


def make_session(scope, writer, body: bytes = b"", body_length: int | None = None) -> HttpSession:
    length = len(body) if body_length is None else body_length
    return HttpSession(scope, make_reader(body), writer, body_length=length)


class TestReceive:

    @pytest.mark.asyncio
    async def test_empty_body(self, http_scope, writer):
        session = make_session(http_scope, writer)
        assert await session.receive() == HttpRequestBody(body=b"", more=False)

    @pytest.mark.asyncio
    async def test_body_read_in_one_event(self, http_scope, writer):
        session = make_session(http_scope, writer, body=b'{"name": "John"}')
        event = await session.receive()
        assert event.body == b'{"name": "John"}'
        assert event.more is False

    @pytest.mark.asyncio
    async def test_truncated_body(self, http_scope, writer):
        session = make_session(http_scope, writer, body=b"abc", body_length=10)
        with pytest.raises(TruncatedBody):
            await session.receive()
        assert session.state == HttpState.RESPONSE_COMPLETE
        assert writer.closed
        with pytest.raises(SessionClosed):
            await session.receive()
        with pytest.raises(SessionClosed):
            await session.send(HttpResponseStart(200))
        assert writer.writes == []

    @pytest.mark.asyncio
    async def test_disconnect_after_response(self, http_scope, writer):
        session = make_session(http_scope, writer)
        await session.receive()

        pending = asyncio.ensure_future(session.receive())
        await asyncio.sleep(0)
        assert not pending.done()

        await session.send(HttpResponseStart(200))
        await session.send(HttpResponseBody(b"done"))
        assert await pending == HttpDisconnect()

    @pytest.mark.asyncio
    async def test_concurrent_receives_are_serialized(self, http_scope, writer):
        session = make_session(http_scope, writer, body=b"payload")
        both = asyncio.gather(session.receive(), session.receive())
        await asyncio.sleep(0)

        await session.send(HttpResponseStart(200))
        await session.send(HttpResponseBody(b"done"))
        assert await both == [HttpRequestBody(body=b"payload", more=False), HttpDisconnect()]


class TestSend:

    @pytest.mark.asyncio
    async def test_simple_response(self, http_scope, writer):
        session = make_session(http_scope, writer)

        assert await session.receive() == HttpRequestBody(b"", more=False)
        await session.send(HttpResponseStart(200, [("content-type", "text/plain")]))
        assert writer.buffer == b""
        await session.send(HttpResponseBody(b"hi", more=False))

        assert bytes(writer.buffer) == b"HTTP/1.1 200 OK\r\ncontent-type: text/plain\r\n\r\nhi"
        assert writer.closed
        assert session.state == HttpState.RESPONSE_COMPLETE

    @pytest.mark.asyncio
    async def test_streamed_body(self, http_scope, writer):
        session = make_session(http_scope, writer)
        await session.send(HttpResponseStart(201, [(b"x-a", b"1"), (b"x-a", b"2")]))
        await session.send(HttpResponseBody(b"part1,", more=True))
        assert session.state == HttpState.RESPONSE_STARTED
        assert not writer.closed
        await session.send(HttpResponseBody(b"part2", more=True))
        await session.send(HttpResponseBody())

        assert writer.writes == [
            b"HTTP/1.1 201 Created\r\nx-a: 1\r\nx-a: 2\r\n\r\n",
            b"part1,",
            b"part2",
        ]
        assert writer.closed

    @pytest.mark.asyncio
    async def test_body_before_start(self, http_scope, writer):
        session = make_session(http_scope, writer)
        with pytest.raises(ProtocolViolation):
            await session.send(HttpResponseBody(b"oops"))
        assert writer.writes == []

    @pytest.mark.asyncio
    async def test_second_start(self, http_scope, writer):
        session = make_session(http_scope, writer)
        await session.send(HttpResponseStart(200))
        with pytest.raises(ProtocolViolation):
            await session.send(HttpResponseStart(404))

    @pytest.mark.asyncio
    async def test_start_after_body(self, http_scope, writer):
        session = make_session(http_scope, writer)
        await session.send(HttpResponseStart(200))
        await session.send(HttpResponseBody(b"a", more=True))
        with pytest.raises(ProtocolViolation):
            await session.send(HttpResponseStart(200))

    @pytest.mark.asyncio
    async def test_unknown_status(self, http_scope, writer):
        session = make_session(http_scope, writer)
        with pytest.raises(UnknownStatusCode):
            await session.send(HttpResponseStart(599))
        assert writer.writes == []

    @pytest.mark.asyncio
    async def test_websocket_event_rejected(self, http_scope, writer):
        session = make_session(http_scope, writer)
        with pytest.raises(ProtocolViolation):
            await session.send(WebsocketSend("nope"))

    @pytest.mark.asyncio
    async def test_send_after_complete(self, http_scope, writer):
        session = make_session(http_scope, writer)
        await session.send(HttpResponseStart(204))
        await session.send(HttpResponseBody())
        with pytest.raises(SessionClosed):
            await session.send(HttpResponseBody(b"late"))


class TestRun:

    @pytest.mark.asyncio
    async def test_echo_application(self, http_scope, writer):
        async def app(scope, receive, send):
            event = await receive()
            await send(HttpResponseStart(200, [("content-length", str(len(event.body)))]))
            await send(HttpResponseBody(event.body))

        session = make_session(http_scope, writer, body=b"ping")
        await session.run(app)

        assert bytes(writer.buffer) == b"HTTP/1.1 200 OK\r\ncontent-length: 4\r\n\r\nping"
        assert writer.closed

    @pytest.mark.asyncio
    async def test_application_error_sends_500(self, http_scope, writer):
        async def app(scope, receive, send):
            raise RuntimeError("boom")

        session = make_session(http_scope, writer)
        with pytest.raises(RuntimeError):
            await session.run(app)

        assert writer.buffer.startswith(b"HTTP/1.1 500 Internal Server Error\r\n")
        assert writer.buffer.endswith(b"\r\n\r\n500 Internal Server Error")
        assert writer.closed

    @pytest.mark.asyncio
    async def test_application_error_after_start_writes_nothing_more(self, http_scope, writer):
        async def app(scope, receive, send):
            await send(HttpResponseStart(200))
            await send(HttpResponseBody(b"partial", more=True))
            raise RuntimeError("boom")

        session = make_session(http_scope, writer)
        with pytest.raises(RuntimeError):
            await session.run(app)

        assert writer.writes == [b"HTTP/1.1 200 OK\r\n\r\n", b"partial"]

    @pytest.mark.asyncio
    async def test_protocol_violation_propagates_without_500(self, http_scope, writer):
        async def app(scope, receive, send):
            await send(HttpResponseBody(b"no start"))

        session = make_session(http_scope, writer)
        with pytest.raises(ProtocolViolation):
            await session.run(app)
        assert writer.writes == []
