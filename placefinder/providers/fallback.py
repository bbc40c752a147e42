# placefinder/providers/fallback.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .base import GeocodedLocation, UserLocation


@dataclass(frozen=True)
class FallbackConfig:
    default_latitude: float = 29.9511
    default_longitude: float = -90.0715
    relevance: float = 0.1


class FallbackProvider:
    """
    Synthetic, low-confidence candidate used when every adapter came up empty,
    so callers always have something to show or geocode against.
    Not registered in the cascade and never cached.
    """

    provider_name = "fallback"

    def __init__(self, cfg: Optional[FallbackConfig] = None):
        self.cfg = cfg or FallbackConfig()

    def locate(self, query: str, anchor: Optional[UserLocation]) -> GeocodedLocation:
        if anchor is not None:
            lat, lng = anchor.latitude, anchor.longitude
        else:
            lat, lng = self.cfg.default_latitude, self.cfg.default_longitude
        return GeocodedLocation(
            latitude=lat,
            longitude=lng,
            address="Location services temporarily unavailable",
            place_name=query,
            source=self.provider_name,
            relevance=self.cfg.relevance,
            place_type="place",
            distance_km=0.0 if anchor is not None else None,
            extras={"low_confidence": True},
        )
