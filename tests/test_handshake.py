"""
Unit tests for the WebSocket handshake and connection classification.
"""

import pytest

from gateway_utils.types import ConnectionKind, MissingHandshakeKey
from gateway.classifier import build_scope, is_websocket_upgrade, parse_subprotocols
from gateway.handshake import compute_accept, create_upgrade_response

from conftest import WS_HEADERS, make_request


class TestComputeAccept:

    def test_rfc_6455_vector(self):
        assert compute_accept("dGhlIHNhbXBsZSBub25jZQ==") == "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="

    def test_accepts_bytes(self):
        assert compute_accept(b"dGhlIHNhbXBsZSBub25jZQ==") == "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="


class TestUpgradeResponse:

    def test_response(self, ws_scope):
        assert create_upgrade_response(ws_scope) == (
            b"HTTP/1.1 101 Switching Protocols\r\n"
            b"Upgrade: websocket\r\n"
            b"Connection: Upgrade\r\n"
            b"Sec-WebSocket-Accept: s3pPLMBiTxaQ9kYGzzhZRbK+xOo=\r\n"
            b"\r\n"
        )

    def test_response_with_subprotocol(self, ws_scope):
        response = create_upgrade_response(ws_scope, "chat")
        assert response.endswith(b"Sec-WebSocket-Protocol: chat\r\n\r\n")

    def test_missing_key(self):
        headers = tuple(h for h in WS_HEADERS if h[0] != b"sec-websocket-key")
        scope = build_scope(make_request(headers=headers))
        with pytest.raises(MissingHandshakeKey):
            create_upgrade_response(scope)


class TestClassifier:

    def test_websocket_upgrade(self):
        assert is_websocket_upgrade(make_request(headers=WS_HEADERS))

    def test_case_insensitive_and_token_list(self):
        request = make_request(headers=(
            (b"connection", b"keep-alive, UPGRADE"),
            (b"upgrade", b"WebSocket"),
        ))
        assert is_websocket_upgrade(request)

    @pytest.mark.parametrize(
        "method, headers",
        [
            ("POST", WS_HEADERS),
            ("GET", ((b"upgrade", b"websocket"),)),
            ("GET", ((b"connection", b"Upgrade"),)),
            ("GET", ((b"connection", b"Upgrade"), (b"upgrade", b"h2c"))),
            ("GET", ()),
        ],
    )
    def test_stays_http(self, method, headers):
        assert not is_websocket_upgrade(make_request(method=method, headers=headers))

    def test_http_scope(self):
        request = make_request(
            method="POST", path="/items", query=b"a=1&b=%20",
            headers=((b"content-type", b"text/plain"),),
        )
        scope = build_scope(request, client=("10.0.0.1", 1234), server=("127.0.0.1", 8000))

        assert scope.kind is ConnectionKind.HTTP
        assert scope.method == "POST"
        assert scope.scheme == "http"
        assert scope.path == "/items"
        assert scope.query == b"a=1&b=%20"
        assert scope.http_version == "1.1"
        assert scope.headers == ((b"content-type", b"text/plain"),)
        assert scope.subprotocols == ()
        assert scope.client == ("10.0.0.1", 1234)

    def test_websocket_scope(self):
        headers = WS_HEADERS + ((b"sec-websocket-protocol", b"chat, superchat ,,v2"),)
        scope = build_scope(make_request(path="/ws", headers=headers))

        assert scope.kind is ConnectionKind.WEBSOCKET
        assert scope.method is None
        assert scope.scheme == "ws"
        assert scope.subprotocols == ("chat", "superchat", "v2")

    def test_subprotocols_across_repeated_headers(self):
        request = make_request(headers=(
            (b"sec-websocket-protocol", b"a"),
            (b"sec-websocket-protocol", b"b, c"),
        ))
        assert parse_subprotocols(request) == ("a", "b", "c")

    def test_scope_is_immutable(self, http_scope):
        with pytest.raises(AttributeError):
            http_scope.path = "/other"
