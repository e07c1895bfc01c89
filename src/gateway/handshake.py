"""Module for handling WebSocket handshakes"""

from __future__ import annotations
from gateway_utils.types import Scope, MissingHandshakeKey
from gateway_utils.http import encode_response_head
from gateway_utils.logging import get_logger
from hashlib import sha1
import base64

logger = get_logger(__name__)

GUID = "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"


def compute_accept(sec_websocket_key: str | bytes) -> str:
    """
    Computes the Sec-WebSocket-Accept value from the Sec-WebSocket-Key.

    Args:
        sec_websocket_key: The Sec-WebSocket-Key from the client request.

    Returns:
        The computed Sec-WebSocket-Accept value.
    """
    if isinstance(sec_websocket_key, bytes):
        sec_websocket_key = sec_websocket_key.decode("latin-1")
    # RFC 6455: Sec-WebSocket-Accept = base64( SHA1( key + GUID ) )
    sha = sha1((sec_websocket_key + GUID).encode("latin-1")).digest()
    return base64.b64encode(sha).decode("ascii")


def find_handshake_key(scope: Scope) -> bytes:
    """Return the client's Sec-WebSocket-Key or raise MissingHandshakeKey."""
    for name, value in scope.headers:
        if name == b"sec-websocket-key":
            return value.strip()
    logger.error("Missing Sec-WebSocket-Key header")
    raise MissingHandshakeKey("Missing Sec-WebSocket-Key header")


def create_upgrade_response(scope: Scope, subprotocol: str | None = None) -> bytes:
    """
    Builds the raw 101 Switching Protocols response for a WebSocket scope.

    Args:
        scope: The WebSocket connection scope holding the client headers.
        subprotocol: The subprotocol chosen by the application, if any.

    Returns:
        The raw HTTP response bytes.
    """
    accept_value = compute_accept(find_handshake_key(scope))
    headers = [
        ("Upgrade", "websocket"),
        ("Connection", "Upgrade"),
        ("Sec-WebSocket-Accept", accept_value),
    ]
    if subprotocol is not None:
        headers.append(("Sec-WebSocket-Protocol", subprotocol))
    return encode_response_head(101, headers, http_version=scope.http_version)
