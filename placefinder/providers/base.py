# Provider interfaces and dataclasses.
# placefinder/providers/base.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class UserLocation:
    """A coordinate used as the proximity anchor for a search."""
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class GeocodedLocation:
    """
    A normalized, provider-agnostic candidate returned by location providers.
    `extras` stores provider-specific fields (rating, price level, ...) for
    debugging/provenance without widening the canonical shape.
    """
    latitude: float
    longitude: float
    address: str
    place_name: str
    source: str
    relevance: float

    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    place_type: Optional[str] = None
    place_id: Optional[str] = None

    # Attached by later pipeline stages.
    distance_km: Optional[float] = None
    composite_score: float = 0.0

    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def dedupe_key(self) -> str:
        if self.place_id:
            return self.place_id
        return f"{self.latitude:.4f},{self.longitude:.4f}"


@dataclass(frozen=True)
class ProviderResponse:
    """Either candidates or an error string; adapters never raise past this."""
    candidates: List[GeocodedLocation] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, error: str) -> "ProviderResponse":
        return cls(candidates=[], error=error)


@dataclass(frozen=True)
class Locality:
    """Reverse-geocoded administrative context of an anchor."""
    city: Optional[str] = None
    state: Optional[str] = None
    state_code: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None

    @property
    def label(self) -> str:
        """Text appended to a query for a locality-augmented search."""
        return " ".join(p for p in (self.city, self.state_code or self.state) if p)


class LocationProvider(Protocol):
    provider_name: str

    async def search(
        self,
        query: str,
        anchor: Optional[UserLocation],
        *,
        radius_km: float,
        max_results: int,
        country_code: Optional[str] = None,
    ) -> ProviderResponse:
        """
        Returns a ProviderResponse. Transport and provider errors are reported
        through `ProviderResponse.error`, never raised.
        """
        ...


@runtime_checkable
class ReverseGeocoder(Protocol):
    async def reverse_locality(self, latitude: float, longitude: float) -> Optional[Locality]:
        ...
