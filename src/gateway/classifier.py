"""Decides whether a parsed request stays HTTP or upgrades to WebSocket"""

from __future__ import annotations

from gateway_utils.types import Address, ConnectionKind, HttpRequest, Scope
from gateway_utils.logging import get_logger

logger = get_logger(__name__)


def is_websocket_upgrade(request: HttpRequest) -> bool:
    """
    True for GET requests carrying `Connection: ...upgrade...` and
    `Upgrade: websocket` (both case-insensitive).
    """
    if request.method != "GET":
        return False
    connection = (request.get_header(b"connection") or b"").lower()
    upgrade = (request.get_header(b"upgrade") or b"").strip().lower()
    return b"upgrade" in connection and upgrade == b"websocket"


def parse_subprotocols(request: HttpRequest) -> tuple[str, ...]:
    """Comma separated sec-websocket-protocol values, trimmed, empty tokens dropped."""
    tokens: list[str] = []
    for name, value in request.headers:
        if name != b"sec-websocket-protocol":
            continue
        tokens.extend(t.strip() for t in value.decode("latin-1").split(","))
    return tuple(t for t in tokens if t)


def build_scope(request: HttpRequest, client: Address | None = None, server: Address | None = None) -> Scope:
    """Build the immutable per-connection Scope for a decoded request."""
    if is_websocket_upgrade(request):
        kind = ConnectionKind.WEBSOCKET
        method = None
        scheme = "ws"
        subprotocols = parse_subprotocols(request)
    else:
        kind = ConnectionKind.HTTP
        method = request.method
        scheme = "http"
        subprotocols = ()
    logger.debug("Classified %s %s as %s", request.method, request.target, kind.value)
    return Scope(
        kind=kind,
        http_version=request.http_version,
        method=method,
        scheme=scheme,
        path=request.path,
        raw_path=request.raw_path,
        query=request.query,
        headers=request.headers,
        subprotocols=subprotocols,
        client=client,
        server=server,
    )
