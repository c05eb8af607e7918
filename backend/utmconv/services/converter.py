"""
Telemetry log -> UTM flight-logging file conversion.

Ties together the decoder session, reader, interpreter and serializer.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from utmconv.exceptions import (
    ConversionError,
    DestinationUnwritable,
    NoSessionAvailable,
    SourceUnreadable,
)
from utmconv.models.track import Track
from utmconv.services.interpreter import LEGACY_RAW_GPS_LONGITUDE, build_track
from utmconv.services.reader import MessageStreamReader
from utmconv.services.serializer import filename_stem, serialize_track
from utmconv.services.session import ChannelAllocator, DecoderSession, get_allocator


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class ConversionResult:
    """Outcome of one conversion."""

    source_file: Path
    output_file: Optional[Path]  # None when the track was empty or the write failed
    track: Track
    message_counts: dict[str, int] = field(default_factory=dict)
    fused_position: bool = False
    write_error: Optional[str] = None

    @property
    def sample_count(self) -> int:
        return len(self.track)


class UTMConverter:
    """
    Converts telemetry logs into UTM flight-logging JSON.

    The decoder session is reserved on first use and kept for later
    conversions until close() is called.
    """

    def __init__(
        self,
        allocator: Optional[ChannelAllocator] = None,
        legacy_raw_gps_longitude: bool = LEGACY_RAW_GPS_LONGITUDE,
    ):
        self._allocator = allocator if allocator is not None else get_allocator()
        self._session: Optional[DecoderSession] = None
        self.legacy_raw_gps_longitude = legacy_raw_gps_longitude

    @property
    def session(self) -> Optional[DecoderSession]:
        return self._session

    def __enter__(self) -> "UTMConverter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self):
        self.close()

    def close(self) -> None:
        """Release the decoder session, if one is held."""
        session = getattr(self, "_session", None)
        if session is not None:
            session.release()
            self._session = None

    def convert(self, src: PathLike, dst: PathLike) -> bool:
        """
        Convert a log, reporting failure as False.

        Returns True once both files were opened, even if the log held no
        usable positions (the destination is removed in that case).
        """
        try:
            self.convert_file(src, dst)
        except ConversionError as e:
            logger.warning(str(e))
            return False
        return True

    def convert_file(
        self,
        src: PathLike,
        dst: PathLike,
        now: Optional[datetime] = None,
    ) -> ConversionResult:
        """
        Convert a log, raising a ConversionError subclass on failure.

        Args:
            src: Telemetry log to read
            dst: UTM file to write
            now: Creation time stamped into the footer (defaults to now)
        """
        src = Path(src)
        dst = Path(dst)
        session = self._ensure_session()

        try:
            log_file = open(src, "rb")
        except OSError as e:
            raise SourceUnreadable(f"Unable to open log file: '{src}', error: {e}") from e

        with log_file:
            try:
                utm_file = open(dst, "w", encoding="utf-8")
            except OSError as e:
                raise DestinationUnwritable(f"Unable to create UTM file: '{dst}', error: {e}") from e

            session.reset()
            reader = MessageStreamReader(log_file, session)
            track, state = build_track(reader, self.legacy_raw_gps_longitude)

            write_error: Optional[str] = None
            try:
                with utm_file:
                    if track:
                        utm_file.write(serialize_track(track, filename_stem(dst), now))
            except OSError as e:
                write_error = str(e)

        output_file: Optional[Path] = dst
        if write_error is not None:
            logger.warning(f"Unable to write UTM file: '{dst}', error: {write_error}")
            _remove_partial(dst)
            output_file = None
        elif not track:
            logger.info(f"No position data in {src.name}, removing {dst}")
            _remove_partial(dst)
            output_file = None
        else:
            logger.info(f"Converted {src.name}: {len(track)} samples -> {dst}")

        return ConversionResult(
            source_file=src,
            output_file=output_file,
            track=track,
            message_counts=dict(state.message_counts),
            fused_position=state.global_position_seen,
            write_error=write_error,
        )

    def _ensure_session(self) -> DecoderSession:
        if self._session is None:
            self._session = self._allocator.acquire_session()
        if self._session is None:
            raise NoSessionAvailable("No mavlink channels available")
        return self._session


def _remove_partial(dst: Path) -> None:
    # Only regular files; never unlink device nodes such as /dev/null
    if dst.is_file():
        dst.unlink()


def convert_telemetry_file(
    src: PathLike,
    dst: PathLike,
    allocator: Optional[ChannelAllocator] = None,
) -> ConversionResult:
    """
    Convert one log with a session scoped to this call.
    """
    with UTMConverter(allocator) as converter:
        return converter.convert_file(src, dst)


def read_track(src: PathLike, allocator: Optional[ChannelAllocator] = None) -> tuple[Track, bool]:
    """
    Interpret a log without writing anything.

    Returns the track and whether the fused position source was present.
    """
    allocator = allocator if allocator is not None else get_allocator()
    src = Path(src)
    with allocator.session() as session:
        try:
            log_file = open(src, "rb")
        except OSError as e:
            raise SourceUnreadable(f"Unable to open log file: '{src}', error: {e}") from e
        with log_file:
            track, state = build_track(MessageStreamReader(log_file, session))
    return track, state.global_position_seen
