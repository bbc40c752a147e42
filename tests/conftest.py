import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest

from placefinder.core.cache import LocalityCache, SearchCache
from placefinder.core.config import Settings
from placefinder.core.geo import haversine_km
from placefinder.core.orchestrator import LocationResolver
from placefinder.core.registry import ServiceRegistry
from placefinder.core.user_location import UserLocationStore
from placefinder.providers.base import GeocodedLocation, Locality, ProviderResponse, UserLocation

KM_PER_DEG_LAT = 111.195


def place(
    name: str,
    lat: float,
    lon: float,
    *,
    anchor: Optional[UserLocation] = None,
    source: str = "google_places",
    relevance: float = 0.8,
    place_id: Optional[str] = None,
    place_type: Optional[str] = None,
    state: Optional[str] = None,
    country_code: Optional[str] = None,
) -> GeocodedLocation:
    distance = haversine_km(anchor.latitude, anchor.longitude, lat, lon) if anchor else None
    return GeocodedLocation(
        latitude=lat,
        longitude=lon,
        address=f"{name} address",
        place_name=name,
        source=source,
        relevance=relevance,
        place_id=place_id,
        place_type=place_type,
        state=state,
        country_code=country_code,
        distance_km=distance,
    )


def north_of(anchor: UserLocation, km: float) -> Tuple[float, float]:
    return anchor.latitude + km / KM_PER_DEG_LAT, anchor.longitude


Results = Union[Sequence[GeocodedLocation], Callable[[str, Optional[UserLocation]], Sequence[GeocodedLocation]]]


class FakeAdapter:
    """In-memory adapter honoring the provider contract."""

    def __init__(
        self,
        name: str,
        results: Results = (),
        *,
        error: Optional[str] = None,
        delay: Union[float, List[float]] = 0.0,
        raises: Optional[BaseException] = None,
    ):
        self.provider_name = name
        self.results = results
        self.error = error
        self.delay = delay
        self.raises = raises
        self.calls: List[Dict[str, Any]] = []

    async def search(self, query, anchor, *, radius_km, max_results, country_code=None):
        self.calls.append(
            {
                "query": query,
                "anchor": anchor,
                "radius_km": radius_km,
                "max_results": max_results,
                "country_code": country_code,
            }
        )
        delay = self.delay.pop(0) if isinstance(self.delay, list) else self.delay
        if delay:
            await asyncio.sleep(delay)
        if self.raises is not None:
            raise self.raises
        results = self.results(query, anchor) if callable(self.results) else self.results
        return ProviderResponse(candidates=list(results)[:max_results], error=self.error)


class ReverseFakeAdapter(FakeAdapter):
    def __init__(
        self,
        name: str,
        results: Results = (),
        *,
        locality: Optional[Locality] = None,
        reverse_delay: float = 0.0,
        **kw,
    ):
        super().__init__(name, results, **kw)
        self.locality = locality
        self.reverse_delay = reverse_delay
        self.reverse_calls = 0

    async def reverse_locality(self, latitude, longitude):
        self.reverse_calls += 1
        if self.reverse_delay:
            await asyncio.sleep(self.reverse_delay)
        return self.locality


class RecordingObserver:
    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append((event, fields))

    def names(self) -> List[str]:
        return [e for e, _ in self.events]


def test_settings(**overrides: Any) -> Settings:
    values = dict(
        google_places_api_key="",
        google_geocoding_api_key="",
        mapbox_api_key="",
        default_country_code=None,
        adapter_timeout_s=5.0,
        max_retries=0,
    )
    values.update(overrides)
    return Settings(**values)


# keep pytest from collecting the helper above
test_settings.__test__ = False


def registry_with(settings: Settings, *entries: Tuple[str, int, Any]) -> ServiceRegistry:
    registry = ServiceRegistry(settings_loader=lambda: settings)
    for key, priority, adapter in entries:
        registry.register(key, key.replace("_", " ").title(), priority, lambda s, c, a=adapter: a)
    return registry


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def make_resolver(observer):
    def _make(*entries: Tuple[str, int, Any], settings: Optional[Settings] = None, **kw) -> LocationResolver:
        settings = settings or test_settings()
        return LocationResolver(
            settings,
            registry=registry_with(settings, *entries),
            user_location=kw.pop("user_location", UserLocationStore()),
            cache=kw.pop("cache", SearchCache()),
            locality_cache=kw.pop("locality_cache", LocalityCache()),
            observer=observer,
            **kw,
        )

    return _make
