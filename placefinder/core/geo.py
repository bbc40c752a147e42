"""Small geometry helpers shared by the providers and the ranking stages."""

from __future__ import annotations

import math
from typing import Optional, Tuple

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in kilometers."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_from(anchor, latitude: float, longitude: float) -> Optional[float]:
    if anchor is None:
        return None
    return haversine_km(anchor.latitude, anchor.longitude, latitude, longitude)


def degree_deltas(latitude: float, radius_km: float, max_delta: float) -> Tuple[float, float]:
    """Latitude/longitude half-widths of a box around `latitude`, capped at `max_delta` degrees."""
    lat_delta = min(radius_km / KM_PER_DEGREE, max_delta)
    cos_lat = math.cos(math.radians(latitude))
    if cos_lat <= 1e-9:
        return lat_delta, max_delta
    lon_delta = min(radius_km / (KM_PER_DEGREE * cos_lat), max_delta)
    return lat_delta, lon_delta


def bounding_box(
    latitude: float, longitude: float, radius_km: float, max_delta: float
) -> Tuple[float, float, float, float]:
    """Returns (south, west, north, east)."""
    lat_delta, lon_delta = degree_deltas(latitude, radius_km, max_delta)
    return latitude - lat_delta, longitude - lon_delta, latitude + lat_delta, longitude + lon_delta


def anchor_bucket(anchor) -> str:
    """~1 km grid cell of an anchor, used in cache keys."""
    if anchor is None:
        return "no-location"
    return f"{anchor.latitude:.2f},{anchor.longitude:.2f}"
