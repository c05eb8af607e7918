"""
Sample data generator for testing.

Writes telemetry logs in the on-disk layout the converter reads: an 8-byte
timestamp (microseconds since epoch) in front of every MAVLink frame.
"""

import math
import struct
from pathlib import Path
from typing import Iterable, Optional

import numpy as np
from pymavlink.dialects.v20 import common as mavlink


_encoder = mavlink.MAVLink(None, srcSystem=1, srcComponent=1)


def global_position(lat: int, lon: int, alt: int, time_boot_ms: int = 0) -> mavlink.MAVLink_message:
    """GLOBAL_POSITION_INT with degE7 lat/lon and mm altitude."""
    return _encoder.global_position_int_encode(time_boot_ms, lat, lon, alt, alt, 0, 0, 0, 0)


def raw_gps(
    lat: int,
    lon: int,
    alt: int,
    fix_type: int = mavlink.GPS_FIX_TYPE_3D_FIX,
    time_usec: int = 0,
) -> mavlink.MAVLink_message:
    return _encoder.gps_raw_int_encode(time_usec, fix_type, lat, lon, alt, 100, 100, 0, 0, 10)


def vfr_hud(groundspeed: float, airspeed: float = 0.0) -> mavlink.MAVLink_message:
    return _encoder.vfr_hud_encode(airspeed, groundspeed, 0, 0, 0.0, 0.0)


def heartbeat() -> mavlink.MAVLink_message:
    return _encoder.heartbeat_encode(
        mavlink.MAV_TYPE_QUADROTOR,
        mavlink.MAV_AUTOPILOT_PX4,
        0,
        0,
        mavlink.MAV_STATE_ACTIVE,
    )


def encode_records(
    records: Iterable[tuple[int, mavlink.MAVLink_message]],
    little_endian: bool = False,
) -> bytes:
    """Serialize (timestamp, message) records into log bytes."""
    fmt = "<Q" if little_endian else ">Q"
    mav = mavlink.MAVLink(None, srcSystem=1, srcComponent=1)
    chunks = []
    for timestamp, msg in records:
        chunks.append(struct.pack(fmt, timestamp))
        chunks.append(msg.pack(mav))
        mav.seq = (mav.seq + 1) % 256
    return b"".join(chunks)


def write_log(
    output_path: Path,
    records: Iterable[tuple[int, mavlink.MAVLink_message]],
    little_endian: bool = False,
) -> Path:
    output_path.write_bytes(encode_records(records, little_endian))
    return output_path


def generate_circle_flight(
    output_path: Path,
    start_us: int = 1_600_000_000_000_000,
    duration_s: float = 60.0,
    rate_hz: float = 5.0,
    center_lat: float = 47.3977,
    center_lon: float = 8.5456,
    radius_m: float = 50.0,
    altitude_m: float = 488.0,
    groundspeed: float = 5.0,
    fused_position: bool = True,
    seed: Optional[int] = None,
) -> Path:
    """
    Generate a circular flight.

    Each epoch writes a HEARTBEAT, a VFR_HUD, a GPS_RAW_INT and (unless
    fused_position is False) a GLOBAL_POSITION_INT.
    """
    rng = np.random.default_rng(seed)
    n_samples = max(int(duration_s * rate_hz), 1)
    t = np.arange(n_samples) / rate_hz
    angle = t / duration_s * 2 * np.pi

    meters_per_deg_lat = 111000.0
    meters_per_deg_lon = 111000.0 * math.cos(math.radians(center_lat))

    lat = center_lat + radius_m * np.sin(angle) / meters_per_deg_lat
    lon = center_lon + radius_m * np.cos(angle) / meters_per_deg_lon
    alt = altitude_m + rng.normal(0, 0.2, n_samples)
    speed = groundspeed + rng.normal(0, 0.1, n_samples)

    records = []
    step_us = int(1_000_000 / rate_hz)
    for i in range(n_samples):
        ts = start_us + i * step_us
        lat_e7 = int(round(lat[i] * 1e7))
        lon_e7 = int(round(lon[i] * 1e7))
        alt_mm = int(round(alt[i] * 1000))
        records.append((ts, heartbeat()))
        records.append((ts + 1000, vfr_hud(float(speed[i]))))
        records.append((ts + 2000, raw_gps(lat_e7, lon_e7, alt_mm)))
        if fused_position:
            records.append((ts + 3000, global_position(lat_e7, lon_e7, alt_mm, int(t[i] * 1000))))

    return write_log(output_path, records)
