"""
Interpreter for decoded telemetry.

Reduces a stream of (timestamp, message) pairs into one canonical Track:
- GLOBAL_POSITION_INT is the preferred position source; once seen, raw GPS
  fixes no longer produce samples
- raw GPS fixes count only with a 3D fix or better
- the last VFR_HUD ground speed is attached to every later sample
- consecutive samples with the same position and speed collapse into one
"""

from __future__ import annotations

import logging
import math
import os
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from utmconv.models.raw import (
    AirspeedHud,
    DecodedMessage,
    GlobalPositionEstimate,
    RawGpsFix,
)
from utmconv.models.track import Track, TrackSample


logger = logging.getLogger(__name__)

DEGE7 = 1e7        # degE7 -> degrees
MM_PER_M = 1000.0  # mm -> m

# Reproduce converters that wrote the raw GPS latitude into gps_lon too
LEGACY_RAW_GPS_LONGITUDE = os.getenv("UTM_LEGACY_RAW_GPS_LONGITUDE", "0") not in ("0", "false", "False")


@dataclass
class InterpreterState:
    """Scratch state carried across messages."""

    global_position_seen: bool = False
    last_speed: float = 0.0
    message_counts: Counter = field(default_factory=Counter)


def build_track(
    messages: Iterable[tuple[int, DecodedMessage]],
    legacy_raw_gps_longitude: bool = LEGACY_RAW_GPS_LONGITUDE,
) -> tuple[Track, InterpreterState]:
    """
    Fold (timestamp, message) pairs into a Track.

    Returns the track together with the final interpreter state.
    """
    track = Track()
    state = InterpreterState()
    for timestamp, message in messages:
        apply_message(track, state, timestamp, message, legacy_raw_gps_longitude)

    logger.debug(
        f"Built track with {len(track)} samples from "
        f"{sum(state.message_counts.values())} messages"
    )
    return track, state


def apply_message(
    track: Track,
    state: InterpreterState,
    timestamp: int,
    message: DecodedMessage,
    legacy_raw_gps_longitude: bool = LEGACY_RAW_GPS_LONGITUDE,
) -> None:
    """Advance the reduction by one message."""
    track.mark_start(timestamp)
    state.message_counts[type(message).__name__] += 1

    if isinstance(message, RawGpsFix):
        _handle_raw_gps(track, state, timestamp, message, legacy_raw_gps_longitude)
    elif isinstance(message, GlobalPositionEstimate):
        _handle_global_position(track, state, timestamp, message)
    elif isinstance(message, AirspeedHud):
        state.last_speed = _sanitize_speed(message.groundspeed)


def _handle_raw_gps(
    track: Track,
    state: InterpreterState,
    timestamp: int,
    fix: RawGpsFix,
    legacy_longitude: bool,
) -> None:
    if state.global_position_seen or not fix.has_3d_fix:
        return

    lon = fix.lat if legacy_longitude else fix.lon
    track.append(TrackSample(
        elapsed_s=track.elapsed_since_start(timestamp),
        lon=lon / DEGE7,
        lat=fix.lat / DEGE7,
        alt=fix.alt / MM_PER_M,
        speed=state.last_speed,
    ))


def _handle_global_position(
    track: Track,
    state: InterpreterState,
    timestamp: int,
    position: GlobalPositionEstimate,
) -> None:
    if not state.global_position_seen:
        logger.debug("Fused position available, ignoring raw GPS from here on")
    state.global_position_seen = True

    track.append(TrackSample(
        elapsed_s=track.elapsed_since_start(timestamp),
        lon=position.lon / DEGE7,
        lat=position.lat / DEGE7,
        alt=position.alt / MM_PER_M,
        speed=state.last_speed,
    ))


def _sanitize_speed(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return float(value)
