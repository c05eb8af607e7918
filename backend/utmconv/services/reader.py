"""
Telemetry log reader.

On disk a log is a repetition of

    [8-byte timestamp][MAVLink frame]

The reader feeds the frame bytes one at a time into a decoder session and,
after each complete frame, consumes the timestamp of the next record.
"""

import logging
from typing import BinaryIO, Iterator, Optional

from utmconv.models.raw import DecodedMessage, decode_message
from utmconv.services.session import DecoderSession
from utmconv.services.timestamp import TIMESTAMP_SIZE, decode_timestamp


logger = logging.getLogger(__name__)


class MessageStreamReader:
    """Pulls (timestamp, message) pairs out of a binary telemetry log."""

    def __init__(self, stream: BinaryIO, session: DecoderSession):
        self._stream = stream
        self._session = session
        self._exhausted = False
        self.bytes_read = 0

    def _read(self, size: int) -> bytes:
        if self._exhausted:
            return b""
        try:
            data = self._stream.read(size)
        except OSError as e:
            logger.warning(f"Read error, ending stream after {self.bytes_read} bytes: {e}")
            self._exhausted = True
            return b""
        if len(data) < size:
            self._exhausted = True
        self.bytes_read += len(data)
        return data

    def _read_timestamp(self) -> Optional[int]:
        raw = self._read(TIMESTAMP_SIZE)
        if len(raw) < TIMESTAMP_SIZE:
            return None
        return decode_timestamp(raw)

    def read_initial_timestamp(self) -> Optional[int]:
        """Consume the timestamp that precedes the first message."""
        return self._read_timestamp()

    def read_next(self) -> Optional[tuple[Optional[int], DecodedMessage]]:
        """
        Decode the next message.

        Returns:
            (timestamp of the following record, message), or None when the
            stream ends before another frame completes. The timestamp is
            None if the log stops right after the frame.
        """
        while True:
            byte = self._read(1)
            if not byte:
                return None
            msg = self._session.parse_byte(byte)
            if msg is not None:
                return self._read_timestamp(), decode_message(msg)

    def __iter__(self) -> Iterator[tuple[int, DecodedMessage]]:
        """
        Yield each message with the timestamp recorded in front of it.

        Reads the initial timestamp itself; a log too short to hold one
        yields nothing.
        """
        current = self.read_initial_timestamp()
        if current is None:
            return
        while True:
            result = self.read_next()
            if result is None:
                return
            next_timestamp, message = result
            yield current, message
            if next_timestamp is None:
                return
            current = next_timestamp
