"""
Record timestamp decoding.

Every message in a telemetry log is preceded by an 8-byte timestamp in
microseconds since the Unix epoch. It should be big-endian, but some
writers emit host byte order. A big-endian reading later than "now" is
taken as proof of the wrong order and the value is byte-swapped.

This only works for logs recorded in the past relative to conversion time.
"""

import struct
import time
from typing import Optional

TIMESTAMP_SIZE = 8

_BIG_ENDIAN_U64 = struct.Struct(">Q")
_LITTLE_ENDIAN_U64 = struct.Struct("<Q")


def now_usec() -> int:
    """Current wall-clock time in microseconds since epoch."""
    return time.time_ns() // 1000


def byteswap64(value: int) -> int:
    """Reverse the byte order of an unsigned 64-bit integer."""
    return _LITTLE_ENDIAN_U64.unpack(_BIG_ENDIAN_U64.pack(value))[0]


def decode_timestamp(raw: bytes, now_us: Optional[int] = None) -> int:
    """
    Decode an 8-byte record timestamp.

    Args:
        raw: Exactly 8 bytes as read from the log
        now_us: Reference "now" in microseconds (defaults to the wall clock)

    Returns:
        Microseconds since epoch
    """
    if len(raw) != TIMESTAMP_SIZE:
        raise ValueError(f"Timestamp must be {TIMESTAMP_SIZE} bytes, got {len(raw)}")

    timestamp = _BIG_ENDIAN_U64.unpack(raw)[0]
    if now_us is None:
        now_us = now_usec()
    if timestamp > now_us:
        timestamp = byteswap64(timestamp)
    return timestamp


def encode_timestamp(timestamp: int) -> bytes:
    return _BIG_ENDIAN_U64.pack(timestamp)
