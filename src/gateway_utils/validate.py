"""Module for all validation functions"""

from __future__ import annotations
from gateway_utils.types import Frame, MalformedFrame, ProtocolViolation
from gateway_utils.logging import get_logger

# RFC 6455: 64-bit payload length must fit in 63 bits
MAX_PAYLOAD_LENGTH = 2 ** 63 - 1

logger = get_logger(__name__)

def validate_frame(frame: Frame) -> None:
    """
    Validate the structural fields of a WebSocket frame.

    Checks:
    - opcode fits in 4 bits
    - masking key is present iff the frame is masked, and is 4 bytes long
    - payload length fits in 63 bits and matches the payload

    Reserved bits, fragmentation and control-frame rules are not checked;
    the session decides what to do with opcodes it does not handle.
    """
    if not 0 <= frame.opcode <= 0xF:
        logger.debug("Opcode out of range: %r", frame.opcode)
        raise MalformedFrame("Opcode out of range")

    if frame.masked != (frame.masking_key is not None):
        logger.debug("Mask bit %s but masking key %r", frame.masked, frame.masking_key)
        raise MalformedFrame("Mask bit and masking key disagree")

    if frame.masking_key is not None and len(frame.masking_key) != 4:
        logger.debug("Invalid masking key length: %s", len(frame.masking_key))
        raise MalformedFrame("Invalid masking key length")

    if frame.payload_length > MAX_PAYLOAD_LENGTH:
        logger.debug("Payload length too large: %d", frame.payload_length)
        raise MalformedFrame("Invalid 64-bit payload length (MSB must be 0)")

    if frame.payload and len(frame.payload) != frame.payload_length:
        logger.debug("Payload is %d bytes, header says %d", len(frame.payload), frame.payload_length)
        raise MalformedFrame("Payload length does not match header")


def validate_close_code(code: int) -> None:
    """Close codes travel as unsigned 16-bit integers."""
    if not isinstance(code, int) or not 0 <= code <= 0xFFFF:
        logger.debug("Invalid close code: %r", code)
        raise ProtocolViolation(f"Close code must be a 16-bit unsigned integer, got {code!r}")


def validate_header_pair(name: str | bytes, value: str | bytes) -> None:
    """
    Reject header names/values that would break the response framing.

    A CR or LF inside a header would let the application inject extra
    header lines or end the head early.
    """
    for part in (name, value):
        if not isinstance(part, (str, bytes)):
            logger.debug("Invalid header part type: %s", type(part))
            raise ProtocolViolation("Header names and values must be str or bytes")
        try:
            raw = part.encode("latin-1") if isinstance(part, str) else part
        except UnicodeEncodeError:
            logger.debug("Header is not latin-1: %r", part)
            raise ProtocolViolation("Header names and values must be latin-1 text")
        if b"\r" in raw or b"\n" in raw:
            logger.debug("Header contains CR/LF: %r", part)
            raise ProtocolViolation("Header names and values must not contain CR or LF")
    if not name:
        raise ProtocolViolation("Header name must not be empty")
