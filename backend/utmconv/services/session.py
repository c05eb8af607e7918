"""
Decoder sessions.

A session is an exclusively reserved channel plus its own incremental
MAVLink parser. Channels are a finite resource handed out by a
ChannelAllocator; every session must be released back to it.
"""

import logging
import os
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from pymavlink.dialects.v20 import common as mavlink

from utmconv.exceptions import NoSessionAvailable


logger = logging.getLogger(__name__)

MAX_CHANNELS = int(os.getenv("UTM_MAX_CHANNELS", "16"))


class DecoderSession:
    """Incremental decoder bound to one reserved channel."""

    def __init__(self, channel: int, allocator: "ChannelAllocator"):
        self.channel = channel
        self._allocator = allocator
        self._parser = self._new_parser()
        self._released = False

    @staticmethod
    def _new_parser() -> mavlink.MAVLink:
        parser = mavlink.MAVLink(None)
        # Resync silently on bad prefixes and CRC errors instead of raising
        parser.robust_parsing = True
        return parser

    @property
    def released(self) -> bool:
        return self._released

    def parse_byte(self, byte: bytes) -> Optional[mavlink.MAVLink_message]:
        """
        Feed one byte to the parser.

        Returns the message once a frame completes, None otherwise. Frames
        that fail to decode count as incomplete.
        """
        if self._released:
            raise RuntimeError(f"Session on channel {self.channel} already released")
        msg = self._parser.parse_char(byte)
        if msg is None or msg.get_type() == "BAD_DATA":
            return None
        return msg

    def reset(self) -> None:
        """Drop any partially framed message."""
        self._parser = self._new_parser()

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._allocator.free(self.channel)


class ChannelAllocator:
    """Thread-safe pool of decoder channels."""

    def __init__(self, max_channels: int = MAX_CHANNELS):
        self._lock = threading.Lock()
        self._max_channels = max_channels
        self._in_use: set[int] = set()

    @property
    def available(self) -> int:
        with self._lock:
            return self._max_channels - len(self._in_use)

    def reserve(self) -> Optional[int]:
        with self._lock:
            for channel in range(self._max_channels):
                if channel not in self._in_use:
                    self._in_use.add(channel)
                    return channel
        return None

    def free(self, channel: int) -> None:
        with self._lock:
            self._in_use.discard(channel)
        logger.debug(f"Released decoder channel {channel}")

    def acquire_session(self) -> Optional[DecoderSession]:
        channel = self.reserve()
        if channel is None:
            return None
        logger.debug(f"Reserved decoder channel {channel}")
        return DecoderSession(channel, self)

    @contextmanager
    def session(self) -> Iterator[DecoderSession]:
        """Scoped session, released on every exit path."""
        session = self.acquire_session()
        if session is None:
            raise NoSessionAvailable("No decoder channels available")
        try:
            yield session
        finally:
            session.release()


# Global allocator instance (shared by all converters in the process)
_allocator: Optional[ChannelAllocator] = None


def get_allocator() -> ChannelAllocator:
    """Get the global channel allocator."""
    global _allocator
    if _allocator is None:
        _allocator = ChannelAllocator()
    return _allocator
