"""
WebSocket session for one upgraded TCP connection.
Handles the handshake and frame-level state machine behind the
receive/send contract.
"""

from __future__ import annotations

import asyncio

from gateway_utils.types import (
    Application, CloseCode, ConnectionState, GatewayError, InboundEvent, InvalidUtf8, MalformedInput,
    OutboundEvent, Opcode, ProtocolViolation, Scope, SessionClosed, UnsupportedOpcode,
    WebsocketAccept, WebsocketClose, WebsocketConnect, WebsocketDisconnect,
    WebsocketReceive, WebsocketSend,
)
from gateway_utils.protocol import encode_frame, make_close, parse_close_code, read_frame
from gateway.handshake import create_upgrade_response
from gateway.session import Session


class WebSocketSession(Session):
    """
    Manages a single WebSocket connection over an accepted stream.
    Lifecycle: CONNECTING -> ACCEPT_PENDING -> OPEN -> CLOSING -> CLOSED

    The wire handshake is only written once the application sends
    WebsocketAccept. Each receive() while OPEN reads exactly one frame;
    fragmented messages are not reassembled.
    """

    kind = "websocket"

    def __init__(self, scope: Scope, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        super().__init__(scope, reader, writer)
        self.state = ConnectionState.CONNECTING
        self.subprotocol: str | None = None
        # Close info
        self.close_code: int | None = None
        self.logger.info("WebSocket connection for %s", scope.path)

    async def run(self, app: Application) -> None:
        """
        Invoke the application. An application error on an open
        connection is reported to the peer with close code 1011.
        """
        try:
            await app(self.scope, self.receive, self.send)
        except GatewayError:
            raise
        except Exception:
            if self.state == ConnectionState.OPEN and not self.closed:
                self.logger.error("Application failed; closing with %d", CloseCode.INTERNAL_ERROR)
                await self._write_close(CloseCode.INTERNAL_ERROR)
            raise

    # Receive half

    async def _receive(self) -> InboundEvent:
        match self.state:
            case ConnectionState.CONNECTING:
                self._set_state(ConnectionState.ACCEPT_PENDING)
                return WebsocketConnect()
            case ConnectionState.ACCEPT_PENDING:
                raise ProtocolViolation("Connection must be accepted or closed before receiving")
            case ConnectionState.OPEN:
                return await self._receive_frame()
            case _:
                raise SessionClosed(f"Cannot receive in state {self.state.value}")

    async def _receive_frame(self) -> InboundEvent:
        try:
            frame = await read_frame(self.reader)
        except asyncio.IncompleteReadError:
            if self.state == ConnectionState.CLOSED:
                # Our own close frame went out while this read was waiting
                return WebsocketDisconnect(code=self.close_code)
            # Peer dropped TCP between frames
            self.logger.info("Peer closed the connection without a close frame")
            if self.close_code is None:
                self.close_code = CloseCode.ABNORMAL_CLOSURE
            self._set_state(ConnectionState.CLOSED)
            await self.close_stream()
            return WebsocketDisconnect(code=CloseCode.ABNORMAL_CLOSURE)
        except MalformedInput:
            await self._abort()
            raise

        match frame.opcode:
            case Opcode.TEXT:
                try:
                    text = frame.payload.decode("utf-8")
                except UnicodeDecodeError as e:
                    self.logger.debug("Text frame is not valid UTF-8")
                    await self._abort()
                    raise InvalidUtf8("Text frames must be valid UTF-8") from e
                return WebsocketReceive(payload=text)
            case Opcode.BINARY:
                return WebsocketReceive(payload=frame.payload)
            case Opcode.CLOSE:
                code = parse_close_code(frame.payload)
                self.logger.info("Close frame received (code %d)", code)
                if self.state != ConnectionState.OPEN:
                    # Peer answering a close frame we already sent
                    return WebsocketDisconnect(code=code)
                self.close_code = code
                self._set_state(ConnectionState.CLOSING)
                return WebsocketDisconnect(code=self.close_code)
            case _:
                self.logger.warning("Unsupported frame opcode: %d", frame.opcode)
                await self._abort()
                raise UnsupportedOpcode(f"Unsupported frame opcode: {frame.opcode:#x}")

    async def _abort(self) -> None:
        # Fatal input: drop TCP without a close frame
        self._set_state(ConnectionState.CLOSED)
        await self.close_stream()

    # Send half

    async def _send(self, event: OutboundEvent) -> None:
        match self.state:
            case ConnectionState.CONNECTING | ConnectionState.ACCEPT_PENDING:
                await self._send_handshake_reply(event)
            case ConnectionState.OPEN:
                await self._send_open(event)
            case ConnectionState.CLOSING if isinstance(event, WebsocketClose):
                await self._write_close(event.code)
            case _:
                raise SessionClosed(f"Cannot send {type(event).__name__} in state {self.state.value}")

    async def _send_handshake_reply(self, event: OutboundEvent) -> None:
        if isinstance(event, WebsocketAccept):
            self.writer.write(create_upgrade_response(self.scope, event.subprotocol))
            await self.writer.drain()
            self.subprotocol = event.subprotocol
            self._set_state(ConnectionState.OPEN)
            self.logger.info("Handshake sent; state=OPEN")
        elif isinstance(event, WebsocketClose):
            # Rejected before the handshake: nothing goes on the wire
            self.logger.info("Connection rejected by application")
            self.close_code = event.code
            self._set_state(ConnectionState.CLOSED)
            await self.close_stream()
        else:
            raise ProtocolViolation(
                f"Expected WebsocketAccept or WebsocketClose, got {type(event).__name__}"
            )

    async def _send_open(self, event: OutboundEvent) -> None:
        if isinstance(event, WebsocketSend):
            if isinstance(event.payload, str):
                frame = encode_frame(Opcode.TEXT, event.payload.encode("utf-8"))
            else:
                frame = encode_frame(Opcode.BINARY, event.payload)
            self.writer.write(frame)
            await self.writer.drain()
        elif isinstance(event, WebsocketClose):
            await self._write_close(event.code)
        else:
            raise ProtocolViolation(f"Unexpected event on an open WebSocket: {type(event).__name__}")

    async def _write_close(self, code: int) -> None:
        frame = make_close(code)
        if self.state == ConnectionState.OPEN:
            self._set_state(ConnectionState.CLOSING)
        self.writer.write(frame)
        await self.writer.drain()
        if self.close_code is None:
            self.close_code = code
        self._set_state(ConnectionState.CLOSED)
        await self.close_stream()
