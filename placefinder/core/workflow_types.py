from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..providers.base import GeocodedLocation, Locality, LocationProvider, UserLocation
from .registry import ServiceDescriptor
from .telemetry import NullObserver, SearchObserver

# Candidates within this distance count as "very close" for region checks and the second pass.
VERY_CLOSE_KM = 10.0


@dataclass(frozen=True)
class SearchOptions:
    max_results: int = 10
    search_radius_km: float = 15.0
    anchor_lat: Optional[float] = None
    anchor_lon: Optional[float] = None
    # Budget for the adapter cascade; adapters not reached in time are recorded as timed out.
    timeout_ms: int = 15000
    # Caller's hard budget for the whole call; exceeding it raises CallerTimeoutError.
    overall_timeout_ms: Optional[int] = None
    # Call every enabled adapter instead of stopping once a trusted one fills max_results.
    exhaust_all_sources: bool = False

    def __post_init__(self):
        if self.max_results < 1:
            raise ValueError("max_results must be >= 1")
        if not self.search_radius_km > 0:
            raise ValueError("search_radius_km must be > 0")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        if self.overall_timeout_ms is not None and self.overall_timeout_ms <= 0:
            raise ValueError("overall_timeout_ms must be > 0")
        if (self.anchor_lat is None) != (self.anchor_lon is None):
            raise ValueError("anchor_lat and anchor_lon must be given together")

    @property
    def anchor(self) -> Optional[UserLocation]:
        if self.anchor_lat is None or self.anchor_lon is None:
            return None
        return UserLocation(latitude=float(self.anchor_lat), longitude=float(self.anchor_lon))


@dataclass(frozen=True)
class LocationSearchResult:
    query: str
    locations: List[GeocodedLocation]
    search_radius_km: float
    best_match: Optional[GeocodedLocation] = None
    errors: Optional[List[str]] = None
    from_cache: bool = False
    fallback_used: bool = False

    @property
    def total_results(self) -> int:
        return len(self.locations)


@dataclass
class SearchContext:
    query: str
    options: SearchOptions
    observer: SearchObserver = field(default_factory=NullObserver)

    # Set by the planner.
    deadline: float = 0.0
    started_at: float = 0.0
    services: List[Tuple[ServiceDescriptor, LocationProvider]] = field(default_factory=list)

    anchor: Optional[UserLocation] = None
    locality: Optional[Locality] = None
    country_code: Optional[str] = None

    candidates: List[GeocodedLocation] = field(default_factory=list)
    results: List[GeocodedLocation] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    done: bool = False
    from_cache: bool = False
    fallback_used: bool = False

    def to_result(self) -> LocationSearchResult:
        return LocationSearchResult(
            query=self.query,
            locations=list(self.results),
            search_radius_km=self.options.search_radius_km,
            best_match=self.results[0] if self.results else None,
            errors=list(self.errors) or None,
            from_cache=self.from_cache,
            fallback_used=self.fallback_used,
        )
