"""
MessagePack framing for the WebSocket transport.

Every frame is a single MessagePack map. Decoding enforces size limits so a
hostile client cannot make the server allocate unbounded buffers.
"""

from typing import Any

import msgpack


class DecodeError(Exception):
    """Error raised when a frame cannot be decoded into a message map."""


# Client frames are small: an id or two, a username and a word.
MAX_BUFFER_LEN = 16 * 1024
MAX_STR_LEN = 1024
MAX_BIN_LEN = 1024
MAX_ARRAY_LEN = 64
MAX_MAP_LEN = 32
MAX_EXT_LEN = 64


def encode(data: dict[str, Any]) -> bytes:
    return msgpack.packb(data)


def decode(data: bytes) -> dict[str, Any]:
    """
    Decode a MessagePack frame to a dict.

    Raises DecodeError if data is invalid, not a map, or exceeds size limits.
    """
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_BUFFER_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_BIN_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=MAX_EXT_LEN,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected map, got {type(result).__name__}")

    return result
