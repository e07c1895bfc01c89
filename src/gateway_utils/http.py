"""HTTP/1.1 request head decoding and response head encoding"""

from __future__ import annotations

import asyncio
from typing import Iterable

from gateway_utils.types import (
    HttpRequest, HeaderPair, MalformedRequestLine, MalformedHeaderLine, UnknownStatusCode,
)
from gateway_utils.logging import get_logger
from gateway_utils.validate import validate_header_pair

logger = get_logger(__name__)

CRLF = b"\r\n"

STATUS_PHRASES: dict[int, str] = {
    100: "Continue",
    101: "Switching Protocols",
    200: "OK",
    201: "Created",
    202: "Accepted",
    204: "No Content",
    206: "Partial Content",
    301: "Moved Permanently",
    302: "Found",
    303: "See Other",
    304: "Not Modified",
    307: "Temporary Redirect",
    308: "Permanent Redirect",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    406: "Not Acceptable",
    408: "Request Timeout",
    409: "Conflict",
    410: "Gone",
    411: "Length Required",
    413: "Payload Too Large",
    414: "URI Too Long",
    415: "Unsupported Media Type",
    418: "I'm a teapot",
    422: "Unprocessable Entity",
    426: "Upgrade Required",
    429: "Too Many Requests",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    501: "Not Implemented",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
    505: "HTTP Version Not Supported",
}


def reason_phrase(status: int) -> str:
    """Return the reason phrase for a status code or raise UnknownStatusCode."""
    try:
        return STATUS_PHRASES[status]
    except (KeyError, TypeError):
        raise UnknownStatusCode(f"Unknown HTTP status code: {status!r}") from None


def parse_request_line(line: bytes) -> tuple[str, str, str]:
    """
    Parses a request line (without its CRLF) into method, target and version.

    Args:
        line: e.g. b"GET /path?x=1 HTTP/1.1"

    Returns:
        (method, target, version number) such as ("GET", "/path?x=1", "1.1").
    """
    parts = line.split(b" ")
    if len(parts) != 3 or not all(parts):
        logger.debug("Invalid HTTP request line: %r", line)
        raise MalformedRequestLine(f"Invalid HTTP request line: {line!r}")
    method, target, protocol = (p.decode("latin-1") for p in parts)
    if not protocol.startswith("HTTP/"):
        logger.debug("Invalid HTTP protocol token: %r", protocol)
        raise MalformedRequestLine(f"Invalid HTTP protocol token: {protocol!r}")
    return method, target, protocol[len("HTTP/"):]


def split_target(target: str) -> tuple[str, bytes]:
    """Split a request target at the first '?'; the query stays raw bytes."""
    path, _, query = target.partition("?")
    return path, query.encode("latin-1")


def parse_header_line(line: bytes) -> HeaderPair:
    """
    Splits a header line (without its CRLF) at the first ': '.

    The name is lowercased, the value is kept byte-for-byte.
    """
    name, sep, value = line.partition(b": ")
    if not sep or not name:
        logger.debug("Invalid header line: %r", line)
        raise MalformedHeaderLine(f"Invalid header line: {line!r}")
    return name.lower(), value


def content_length(request: HttpRequest) -> int:
    """Body length declared by the request; 0 when there is no content-length."""
    raw = request.get_header(b"content-length")
    if raw is None:
        return 0
    try:
        length = int(raw.strip())
    except ValueError:
        raise MalformedHeaderLine(f"Invalid content-length: {raw!r}") from None
    if length < 0:
        raise MalformedHeaderLine(f"Invalid content-length: {raw!r}")
    return length


async def _read_line(reader: asyncio.StreamReader, error: type[Exception]) -> bytes:
    try:
        line = await reader.readuntil(CRLF)
    except asyncio.IncompleteReadError as e:
        raise error("Connection closed in the middle of the request head") from e
    except asyncio.LimitOverrunError as e:
        raise error("Request head line too long") from e
    return line[:-2]


async def read_request(reader: asyncio.StreamReader) -> HttpRequest | None:
    """
    Reads a request line and header block from a stream.

    The body is left unread in the stream.

    Returns:
        The parsed HttpRequest, or None if the peer closed the connection
        without sending anything.
    """
    try:
        first = await reader.readuntil(CRLF)
    except asyncio.IncompleteReadError as e:
        if not e.partial:
            return None
        raise MalformedRequestLine("Connection closed in the middle of the request line") from e
    except asyncio.LimitOverrunError as e:
        raise MalformedRequestLine("Request line too long") from e

    method, target, version = parse_request_line(first[:-2])
    path, query = split_target(target)

    headers: list[HeaderPair] = []
    while True:
        line = await _read_line(reader, MalformedHeaderLine)
        if not line:
            break
        headers.append(parse_header_line(line))

    return HttpRequest(
        method=method,
        target=target,
        path=path,
        raw_path=path.encode("latin-1"),
        query=query,
        http_version=version,
        headers=tuple(headers),
    )


def _to_bytes(part: str | bytes) -> bytes:
    return part.encode("latin-1") if isinstance(part, str) else bytes(part)


def encode_response_head(
    status: int,
    headers: Iterable[tuple[str | bytes, str | bytes]] = (),
    http_version: str = "1.1",
) -> bytes:
    """
    Formats a status line and header block into raw response bytes.

    Args:
        status: The HTTP status code; must be in STATUS_PHRASES.
        headers: Ordered (name, value) pairs, str or bytes.
        http_version: Version number for the status line.

    Returns:
        The raw head, terminated by an empty line.
    """
    reason = reason_phrase(status)
    lines = [f"HTTP/{http_version} {status} {reason}".encode("latin-1")]
    for name, value in headers:
        validate_header_pair(name, value)
        lines.append(_to_bytes(name) + b": " + _to_bytes(value))
    return CRLF.join(lines) + CRLF + CRLF
