"""
Geodesic helpers for WGS84 tracks.
"""

import numpy as np
from numpy.typing import ArrayLike

EARTH_RADIUS_M = 6371000.0  # mean radius


def haversine_distance(lat1: ArrayLike, lon1: ArrayLike, lat2: ArrayLike, lon2: ArrayLike):
    """
    Calculate great-circle distance between points.

    Args:
        lat1, lon1: First point coordinates in degrees
        lat2, lon2: Second point coordinates in degrees

    Returns:
        Distance in meters (scalar or array, following the inputs)
    """
    lat1_rad = np.radians(lat1)
    lat2_rad = np.radians(lat2)
    dlat = np.radians(np.subtract(lat2, lat1))
    dlon = np.radians(np.subtract(lon2, lon1))

    a = np.sin(dlat/2)**2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon/2)**2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1-a))

    return EARTH_RADIUS_M * c


def path_length(lat: ArrayLike, lon: ArrayLike) -> float:
    """Sum of great-circle legs along a polyline, in meters."""
    lat = np.asarray(lat, dtype=np.float64)
    lon = np.asarray(lon, dtype=np.float64)
    if lat.size < 2:
        return 0.0
    legs = haversine_distance(lat[:-1], lon[:-1], lat[1:], lon[1:])
    return float(np.nansum(legs))
