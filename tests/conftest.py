"""
pytest configuration and fixtures.
"""

import asyncio

import pytest

from gateway_utils.types import HttpRequest, Scope
from gateway_utils.protocol import encode_frame
from gateway.classifier import build_scope


class RecordingWriter:
    """In-memory stand-in for asyncio.StreamWriter that records everything written."""

    def __init__(self, peername=("127.0.0.1", 50000)):
        self.buffer = bytearray()
        self.writes: list[bytes] = []
        self.closed = False
        self.peername = peername

    def write(self, data: bytes) -> None:
        if self.closed:
            raise ConnectionResetError("write after close")
        self.writes.append(bytes(data))
        self.buffer.extend(data)

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def close(self) -> None:
        self.closed = True

    def is_closing(self) -> bool:
        return self.closed

    async def wait_closed(self) -> None:
        return None

    def get_extra_info(self, name, default=None):
        if name == "peername":
            return self.peername
        if name == "sockname":
            return ("127.0.0.1", 8000)
        return default


def make_reader(data: bytes = b"", eof: bool = True) -> asyncio.StreamReader:
    """A StreamReader pre-loaded with bytes (must be called inside a running loop)."""
    reader = asyncio.StreamReader()
    if data:
        reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


def client_frame(opcode: int, payload: bytes, key: bytes = b"\x01\x02\x03\x04") -> bytes:
    """A masked frame as a browser would send it."""
    return encode_frame(opcode, payload, masking_key=key)


def make_request(
    method: str = "GET",
    path: str = "/",
    query: bytes = b"",
    headers: tuple = (),
    http_version: str = "1.1",
) -> HttpRequest:
    target = path + ("?" + query.decode("latin-1") if query else "")
    return HttpRequest(
        method=method,
        target=target,
        path=path,
        raw_path=path.encode("latin-1"),
        query=query,
        http_version=http_version,
        headers=tuple(headers),
    )


WS_HEADERS = (
    (b"host", b"localhost:8000"),
    (b"upgrade", b"websocket"),
    (b"connection", b"Upgrade"),
    (b"sec-websocket-key", b"dGhlIHNhbXBsZSBub25jZQ=="),
    (b"sec-websocket-version", b"13"),
)


@pytest.fixture
def writer() -> RecordingWriter:
    return RecordingWriter()


@pytest.fixture
def http_scope() -> Scope:
    return build_scope(make_request(), client=("127.0.0.1", 50000))


@pytest.fixture
def ws_scope() -> Scope:
    return build_scope(make_request(path="/ws", headers=WS_HEADERS), client=("127.0.0.1", 50000))
