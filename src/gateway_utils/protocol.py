"""WebSocket frame codec"""

from __future__ import annotations

import asyncio

from gateway_utils.types import Opcode, MaskingKey, Frame, BytesLike, TruncatedFrame
from gateway_utils.logging import get_logger
from gateway_utils.validate import validate_frame, validate_close_code

logger = get_logger(__name__)

def encode_frame(op: Opcode | int, payload: BytesLike, masking_key: MaskingKey | None = None) -> bytes:
    """
    Encodes a single, final WebSocket frame.

    Server frames are never masked. A masking key is only passed when
    producing client-to-server frames, e.g. from a test client.

    Args:
        op: The opcode of the WebSocket frame.
        payload: The payload data to include in the frame.
        masking_key: The masking key to use (must be 4 bytes), or None.

    Returns:
        The encoded frame as bytes.
    """
    payload = bytes(payload)
    frame = Frame(
        fin=True,
        opcode=int(op),
        masked=masking_key is not None,
        payload_length=len(payload),
        masking_key=masking_key,
        payload=payload,
    )
    validate_frame(frame)

    # Construct header
    message = bytearray()
    message.append(0x80 | frame.opcode)
    message.append((masking_key is not None) << 7)
    if len(payload) <= 125:
        message[-1] |= len(payload)
    elif len(payload) <= 65535:
        message[-1] |= 126
        message.extend(len(payload).to_bytes(2, byteorder='big'))
    else:
        message[-1] |= 127
        message.extend(len(payload).to_bytes(8, byteorder='big'))
    if masking_key is not None:
        message.extend(masking_key)
        message.extend(apply_mask(payload, masking_key))
    else:
        message.extend(payload)
    return bytes(message)


def frame_header_length(head: BytesLike) -> int:
    """
    Return the full header size (length fields and masking key included)
    announced by the first two bytes of a frame.
    """
    if len(head) < 2:
        raise TruncatedFrame("Frame too short")
    masked = (head[1] & 0x80) != 0
    length_field = head[1] & 0x7F
    if length_field == 126:
        size = 4
    elif length_field == 127:
        size = 10
    else:
        size = 2
    return size + (4 if masked else 0)


def decode_frame_header(header: BytesLike) -> Frame:
    """
    Decodes a frame header into a Frame with an empty payload.

    Args:
        header: Exactly the header bytes, as sized by frame_header_length().

    Returns:
        A Frame with fin, opcode, mask and length fields set.
    """
    header = bytes(header)
    expected = frame_header_length(header)
    if len(header) < expected:
        raise TruncatedFrame("Frame too short for its header")

    first_byte = header[0]
    fin = (first_byte & 0x80) != 0
    opcode = first_byte & 0x0F

    second_byte = header[1]
    masked = (second_byte & 0x80) != 0
    payload_length = second_byte & 0x7F

    if payload_length == 126:
        payload_length = int.from_bytes(header[2:4], byteorder='big')
        offset = 4
    elif payload_length == 127:
        payload_length = int.from_bytes(header[2:10], byteorder='big')
        offset = 10
    else:
        offset = 2

    masking_key: MaskingKey | None = None
    if masked:
        masking_key = header[offset:offset + 4]

    frame = Frame(
        fin=fin,
        opcode=opcode,
        masked=masked,
        payload_length=payload_length,
        masking_key=masking_key,
    )
    validate_frame(frame)
    return frame


def _attach_payload(frame: Frame, raw: bytes) -> Frame:
    if frame.masking_key is not None:
        raw = apply_mask(raw, frame.masking_key)
    frame.payload = raw
    return frame


def decode_frame(data: BytesLike) -> Frame:
    """
    Decodes one WebSocket frame from the start of a buffer.

    Bytes after the frame are ignored.

    Args:
        data: The raw frame bytes.

    Returns:
        A Frame object with the decoded, unmasked payload.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError("Frame must be bytes, bytearray, or memoryview")
    data = bytes(data)

    header_length = frame_header_length(data)
    frame = decode_frame_header(data[:header_length])
    end = header_length + frame.payload_length
    if len(data) < end:
        raise TruncatedFrame("Frame too short for specified payload length")
    return _attach_payload(frame, data[header_length:end])


async def read_frame(reader: asyncio.StreamReader) -> Frame:
    """
    Reads exactly one WebSocket frame from a stream.

    Raises:
        TruncatedFrame: if the stream ends inside the frame. An
            IncompleteReadError with no partial bytes at the very first
            read is re-raised so callers can tell a clean EOF apart.
    """
    try:
        head = await reader.readexactly(2)
    except asyncio.IncompleteReadError as e:
        if not e.partial:
            raise
        raise TruncatedFrame("Stream ended inside a frame header") from e
    try:
        header_length = frame_header_length(head)
        rest = await reader.readexactly(header_length - 2)
        frame = decode_frame_header(head + rest)
        payload = await reader.readexactly(frame.payload_length)
    except asyncio.IncompleteReadError as e:
        logger.debug("Stream ended %d bytes into a frame section", len(e.partial))
        raise TruncatedFrame("Stream ended before the frame was complete") from e
    return _attach_payload(frame, payload)


def make_close(code: int) -> bytes:
    """
    Create a Close frame (opcode 0x8) carrying a big-endian status code.
    """
    validate_close_code(code)
    return encode_frame(Opcode.CLOSE, code.to_bytes(2, byteorder='big'))


def parse_close_code(payload: bytes) -> int:
    """Return the status code of a close payload, 1005 when none was sent."""
    if len(payload) >= 2:
        return int.from_bytes(payload[:2], byteorder='big')
    return 1005


def apply_mask(payload: bytes, masking_key: MaskingKey) -> bytes:
    """
    Masks / Unmasks the payload using the provided masking key.

    Args:
        payload: The payload to mask.
        masking_key: The masking key to use (must be 4 bytes).

    Returns:
        The masked payload.
    """
    if len(masking_key) != 4:
        raise ValueError("Invalid masking key length")
    return bytes(b ^ masking_key[i % 4] for i, b in enumerate(payload))
