"""Module for all the types used throughout the gateway"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Awaitable, Callable, TypeAlias, Union


# === HTTP ===

# Header names are normalized to lowercase at parse time; values stay raw.
HeaderPair: TypeAlias = tuple[bytes, bytes]
Headers: TypeAlias = tuple[HeaderPair, ...]
Address: TypeAlias = tuple[str, int]

@dataclass(frozen=True, slots=True)
class HttpRequest:
    method: str
    target: str
    path: str
    raw_path: bytes
    query: bytes
    # Version number only, e.g. "1.1" for "HTTP/1.1"
    http_version: str
    headers: Headers

    def get_header(self, name: bytes) -> bytes | None:
        """Return the first value for a lowercase header name."""
        for key, value in self.headers:
            if key == name:
                return value
        return None


# === Protocol / Framing ===

class Opcode(IntEnum):
    CONTINUATION = 0x0
    TEXT = 0x1
    BINARY = 0x2
    CLOSE = 0x8
    PING = 0x9
    PONG = 0xA

# 4-byte masking key for client->server frames
MaskingKey: TypeAlias = bytes

@dataclass(slots=True)
class Frame:
    fin: bool
    # Kept as a plain int so unsupported opcodes still decode
    opcode: int
    masked: bool
    payload_length: int
    masking_key: MaskingKey | None
    payload: bytes = b""

class CloseCode(IntEnum):
    NORMAL_CLOSURE = 1000
    NO_STATUS_RECEIVED = 1005
    ABNORMAL_CLOSURE = 1006
    INTERNAL_ERROR = 1011


# === Scope ===

class ConnectionKind(Enum):
    HTTP = "http"
    WEBSOCKET = "websocket"

@dataclass(frozen=True, slots=True)
class Scope:
    kind: ConnectionKind
    http_version: str
    method: str | None
    scheme: str
    path: str
    raw_path: bytes
    query: bytes
    headers: Headers
    subprotocols: tuple[str, ...] = ()
    client: Address | None = None
    server: Address | None = None


# === Events ===

Payload: TypeAlias = Union[str, bytes]

def _check_payload(payload: object) -> None:
    if not isinstance(payload, (str, bytes, bytearray, memoryview)):
        raise TypeError(f"payload must be str or bytes, not {type(payload).__name__}")

# Inbound (session -> application)

@dataclass(frozen=True, slots=True)
class HttpRequestBody:
    body: bytes = b""
    more: bool = False

@dataclass(frozen=True, slots=True)
class HttpDisconnect:
    pass

@dataclass(frozen=True, slots=True)
class WebsocketConnect:
    pass

@dataclass(frozen=True, slots=True)
class WebsocketReceive:
    payload: Payload

    def __post_init__(self) -> None:
        _check_payload(self.payload)

@dataclass(frozen=True, slots=True)
class WebsocketDisconnect:
    code: int = CloseCode.NO_STATUS_RECEIVED

InboundEvent: TypeAlias = Union[
    HttpRequestBody, HttpDisconnect, WebsocketConnect, WebsocketReceive, WebsocketDisconnect
]

# Outbound (application -> session)

@dataclass(frozen=True, slots=True)
class HttpResponseStart:
    status: int
    headers: tuple[tuple[str | bytes, str | bytes], ...] = field(default=())

    def __post_init__(self) -> None:
        # Accept any iterable of pairs but store an immutable tuple
        object.__setattr__(self, "headers", tuple((k, v) for k, v in self.headers))

@dataclass(frozen=True, slots=True)
class HttpResponseBody:
    body: bytes = b""
    more: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.body, (bytes, bytearray, memoryview)):
            raise TypeError(f"body must be bytes, not {type(self.body).__name__}")

@dataclass(frozen=True, slots=True)
class WebsocketAccept:
    subprotocol: str | None = None

@dataclass(frozen=True, slots=True)
class WebsocketSend:
    payload: Payload

    def __post_init__(self) -> None:
        _check_payload(self.payload)

@dataclass(frozen=True, slots=True)
class WebsocketClose:
    code: int = CloseCode.NORMAL_CLOSURE

OutboundEvent: TypeAlias = Union[
    HttpResponseStart, HttpResponseBody, WebsocketAccept, WebsocketSend, WebsocketClose
]


# === Gateway contract ===

Receive: TypeAlias = Callable[[], Awaitable[InboundEvent]]
Send: TypeAlias = Callable[[OutboundEvent], Awaitable[None]]
Application: TypeAlias = Callable[[Scope, Receive, Send], Awaitable[None]]


# === Errors ===

class GatewayError(Exception):
    """Base class for every error raised by the gateway core."""

class MalformedInput(GatewayError):
    """Raised when bytes from the peer cannot be parsed."""

class MalformedRequestLine(MalformedInput):
    """Raised when the HTTP request line is not METHOD TARGET VERSION."""

class MalformedHeaderLine(MalformedInput):
    """Raised when a header line has no ': ' separator or a bad value."""

class TruncatedBody(MalformedInput):
    """Raised when the stream ends before content-length bytes arrived."""

class TruncatedFrame(MalformedInput):
    """Raised when the stream ends before a frame is complete."""

class MalformedFrame(MalformedInput):
    """Raised for frame headers that violate RFC 6455 framing."""

class InvalidUtf8(MalformedInput):
    """Raised when a text frame payload is not valid UTF-8."""

class ProtocolViolation(GatewayError):
    """Raised when the application calls send/receive out of order."""

class UnknownStatusCode(ProtocolViolation):
    """Raised when a response uses a status code with no reason phrase."""

class UnsupportedOpcode(GatewayError):
    """Raised for frames whose opcode the gateway does not handle."""

class HandshakeError(GatewayError):
    """Raised when the HTTP Upgrade/WebSocket handshake fails."""

class MissingHandshakeKey(HandshakeError):
    """Raised when the upgrade request carries no Sec-WebSocket-Key."""

class SessionClosed(GatewayError):
    """Raised for any receive/send call after the session has finished."""


# Other aliases
BytesLike: TypeAlias = bytes | bytearray | memoryview


# === Session states ===

class HttpState(Enum):
    SCOPE_BUILT = "SCOPE_BUILT"
    AWAITING_APPLICATION = "AWAITING_APPLICATION"
    RESPONSE_STARTED = "RESPONSE_STARTED"
    RESPONSE_COMPLETE = "RESPONSE_COMPLETE"

class ConnectionState(Enum):
    CONNECTING = "CONNECTING"
    ACCEPT_PENDING = "ACCEPT_PENDING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"
