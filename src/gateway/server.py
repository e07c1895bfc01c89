from __future__ import annotations

import asyncio

from gateway_utils.logging import get_logger
from gateway_utils.types import (
    Application, ConnectionKind, GatewayError, MalformedInput, ProtocolViolation,
    UnsupportedOpcode,
)
from gateway_utils.http import content_length, read_request
from gateway.classifier import build_scope
from gateway.connection import WebSocketSession
from gateway.http_session import HttpSession
from gateway.session import Session
from gateway.config import DEFAULT_HOST, DEFAULT_PORT

logger = get_logger(__name__)


def _address(value: object) -> tuple[str, int] | None:
    # IPv6 peers report (host, port, flowinfo, scope_id)
    if isinstance(value, tuple) and len(value) >= 2:
        return value[0], value[1]
    return None


async def handle_connection(
    application: Application,
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
) -> None:
    """
    Serve one accepted connection: read the request head, pick the session
    type and hand the session to the application. Errors end this
    connection only.
    """
    client = _address(writer.get_extra_info("peername"))
    server = _address(writer.get_extra_info("sockname"))
    session: Session | None = None
    try:
        request = await read_request(reader)
        if request is None:
            logger.debug("Peer %s closed before sending a request", client)
            return
        scope = build_scope(request, client=client, server=server)
        if scope.kind is ConnectionKind.WEBSOCKET:
            session = WebSocketSession(scope, reader, writer)
        else:
            session = HttpSession(scope, reader, writer, body_length=content_length(request))
        await session.run(application)
    except MalformedInput as e:
        logger.warning("Malformed input from %s: %s", client, e)
    except (ProtocolViolation, UnsupportedOpcode) as e:
        logger.warning("Closing connection from %s: %s", client, e)
    except GatewayError as e:
        logger.error("Gateway error on connection from %s: %s", client, e)
    except ConnectionError as e:
        logger.info("Transport failure on connection from %s: %s", client, e)
    except Exception:
        logger.exception("Application error on connection from %s", client)
    finally:
        if session is not None:
            await session.close_stream()
        else:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug("Error while closing stream: %s", e)


async def serve(application: Application, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    """
    Accept connections on host:port until cancelled, one task per connection.
    """
    async def on_connect(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        await handle_connection(application, reader, writer)

    server = await asyncio.start_server(on_connect, host, port, reuse_address=True)
    for sock in server.sockets:
        bound = sock.getsockname()
        logger.info("Listening on http://%s:%s", bound[0], bound[1])
    async with server:
        await server.serve_forever()


def run(application: Application, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    """Blocking entry point: serve until interrupted."""
    try:
        asyncio.run(serve(application, host, port))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
