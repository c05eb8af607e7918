"""
Decoded message model (source-format, unnormalized).

The reader turns every pymavlink message into one of these variants before
interpretation. Integer fields keep the wire encoding (1e7 degrees,
millimeters); scaling happens in utmconv.services.interpreter.
"""

from dataclasses import dataclass
from typing import Union

from pymavlink.dialects.v20 import common as mavlink


GPS_FIX_TYPE_3D_FIX = mavlink.GPS_FIX_TYPE_3D_FIX


@dataclass(frozen=True)
class RawGpsFix:
    """GPS_RAW_INT: position straight from the receiver."""

    lat: int        # degE7
    lon: int        # degE7
    alt: int        # mm (MSL)
    fix_type: int   # GPS_FIX_TYPE

    @property
    def has_3d_fix(self) -> bool:
        return self.fix_type >= GPS_FIX_TYPE_3D_FIX


@dataclass(frozen=True)
class GlobalPositionEstimate:
    """GLOBAL_POSITION_INT: the autopilot's fused position estimate."""

    lat: int        # degE7
    lon: int        # degE7
    alt: int        # mm (MSL)


@dataclass(frozen=True)
class AirspeedHud:
    """VFR_HUD: only the ground speed is consumed."""

    groundspeed: float  # m/s, may be NaN


@dataclass(frozen=True)
class IgnoredMessage:
    """Any other message kind."""

    msg_type: str


DecodedMessage = Union[RawGpsFix, GlobalPositionEstimate, AirspeedHud, IgnoredMessage]


def decode_message(msg: mavlink.MAVLink_message) -> DecodedMessage:
    """Map a pymavlink message onto the consumed variants."""
    msg_type = msg.get_type()
    if msg_type == "GPS_RAW_INT":
        return RawGpsFix(lat=msg.lat, lon=msg.lon, alt=msg.alt, fix_type=msg.fix_type)
    if msg_type == "GLOBAL_POSITION_INT":
        return GlobalPositionEstimate(lat=msg.lat, lon=msg.lon, alt=msg.alt)
    if msg_type == "VFR_HUD":
        return AirspeedHud(groundspeed=float(msg.groundspeed))
    return IgnoredMessage(msg_type=msg_type)
