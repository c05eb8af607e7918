"""
GUTMA flight-logging serializer.

Renders a Track as the fixed "flight_logging_submission" JSON document.
The text is assembled by hand so that numbers keep their fixed-point
layout (3 decimals for time/altitude/speed, 6 for lon/lat).
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from utmconv.models.track import EPOCH, TRACK_KEYS, Track


# Stamp creation_dtg with local wall-clock time (older converters did this)
LOCAL_CREATION_DTG = os.getenv("UTM_LOCAL_CREATION_DTG", "0") not in ("0", "false", "False")

ALTITUDE_SYSTEM = "WGS84"
LOGGING_TYPE = "GUTMA_DX_JSON"

ITEM_INDENT = " " * 20
ITEM_FORMAT = "[%.3f, %f, %f, %.3f, %.3f ]"

LOGGING_HEADER = (
    '{\n'
    '    "exchange": {\n'
    '        "exchange_type": "flight_logging",\n'
    '        "message": {\n'
    '            "flight_logging": {\n'
    '                "flight_logging_items": [\n'
)

LOGGING_KEYS = (
    '                ],\n'
    '                "flight_logging_keys": [\n'
    f'                    {", ".join(json.dumps(k) for k in TRACK_KEYS)}\n'
    '                ],\n'
    f'                "altitude_system": "{ALTITUDE_SYSTEM}",\n'
)


def format_dtg(dt: datetime) -> str:
    """ISO-8601 date-time to the second, followed by a literal Z."""
    return dt.replace(tzinfo=None, microsecond=0).isoformat() + "Z"


def filename_stem(path: Union[str, Path]) -> str:
    """File name without directory or any extension."""
    return Path(path).name.split(".")[0]


def creation_time(local: bool = LOCAL_CREATION_DTG) -> datetime:
    if local:
        return datetime.now()
    return datetime.now(timezone.utc)


def serialize_track(track: Track, filename: str, now: Optional[datetime] = None) -> str:
    """
    Render a track as a flight-logging submission.

    Args:
        track: Non-empty track
        filename: Value for the footer "filename" field (see filename_stem)
        now: Creation time; defaults to creation_time()

    Returns:
        The complete JSON document
    """
    if not track:
        raise ValueError("Refusing to serialize an empty track")
    if now is None:
        now = creation_time()

    start = track.start_time
    if start is None:
        start = EPOCH

    items = ",\n".join(ITEM_INDENT + ITEM_FORMAT % sample.as_tuple() for sample in track)

    parts = [
        LOGGING_HEADER,
        items + "\n",
        LOGGING_KEYS,
        f'                "logging_start_dtg": {json.dumps(format_dtg(start))}\n',
        '            },\n',
        '            "file": {\n',
        f'                "logging_type": "{LOGGING_TYPE}",\n',
        f'                "filename": {json.dumps(filename)},\n',
        f'                "creation_dtg": {json.dumps(format_dtg(now))}\n',
        '            },\n',
        '            "message_type": "flight_logging_submission"\n',
        '        }\n',
        '    }\n',
        '}\n',
    ]
    return "".join(parts)
