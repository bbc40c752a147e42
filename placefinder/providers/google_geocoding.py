# placefinder/providers/google_geocoding.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..core.errors import ProviderError, TransportError
from ..core.geo import bounding_box, distance_from
from ..core.text import canonical_place_type, text_relevance
from .base import GeocodedLocation, Locality, UserLocation
from .http import HttpProvider, _safe_get

logger = logging.getLogger(__name__)


def _component(components: List[Dict[str, Any]], *types: str, short: bool = False) -> Optional[str]:
    for t in types:
        for comp in components or []:
            if t in (comp.get("types") or []):
                return comp.get("short_name" if short else "long_name")
    return None


def _place_name(item: Dict[str, Any]) -> str:
    if item.get("name"):
        return item["name"]
    if item.get("formatted_address"):
        return item["formatted_address"].split(",")[0]
    return "Unknown Place"


@dataclass(frozen=True)
class GoogleGeocodingConfig:
    api_key: str
    language_code: str = "en"

    timeout_s: float = 10.0
    max_retries: int = 2
    base_backoff_s: float = 0.3

    # Bias box half-width cap, ~33 km.
    max_bounds_delta: float = 0.3


class GoogleGeocodingProvider(HttpProvider):
    """
    Google Geocoding API provider, good for address searches:
      - GET https://maps.googleapis.com/maps/api/geocode/json?address=...
      - GET https://maps.googleapis.com/maps/api/geocode/json?latlng=... (reverse)
    """

    provider_name = "google_geocoding"
    _URL = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(self, cfg: GoogleGeocodingConfig, client: Optional[httpx.AsyncClient] = None):
        if not cfg.api_key:
            raise ValueError("GoogleGeocodingConfig.api_key is required")
        super().__init__(cfg, client)

    async def _get(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {**params, "key": self.cfg.api_key, "language": self.cfg.language_code}
        data = await self._request_with_retries("GET", self._URL, params=params)
        if not isinstance(data, dict):
            raise ValueError("Expected JSON object response")
        status = data.get("status")
        if status == "ZERO_RESULTS":
            return {"results": []}
        if status != "OK":
            raise ProviderError(f"{status}: {data.get('error_message', 'no error message')}")
        return data

    async def _search(
        self,
        query: str,
        anchor: Optional[UserLocation],
        *,
        radius_km: float,
        max_results: int,
        country_code: Optional[str],
    ) -> List[GeocodedLocation]:
        params: Dict[str, Any] = {"address": query}
        if country_code:
            params["region"] = country_code.lower()
            params["components"] = f"country:{country_code.upper()}"
        if anchor is not None:
            south, west, north, east = bounding_box(
                anchor.latitude, anchor.longitude, radius_km, self.cfg.max_bounds_delta
            )
            params["bounds"] = f"{south},{west}|{north},{east}"

        data = await self._get(params)
        results: List[GeocodedLocation] = []
        for item in data.get("results", []) or []:
            lat = _safe_get(item, ["geometry", "location", "lat"])
            lng = _safe_get(item, ["geometry", "location", "lng"])
            if lat is None or lng is None:
                continue
            components = item.get("address_components") or []
            name = _place_name(item)
            results.append(
                GeocodedLocation(
                    latitude=float(lat),
                    longitude=float(lng),
                    address=item.get("formatted_address") or name,
                    place_name=name,
                    source=self.provider_name,
                    relevance=text_relevance(name, query),
                    city=_component(components, "locality", "postal_town"),
                    state=_component(components, "administrative_area_level_1"),
                    country=_component(components, "country"),
                    country_code=_component(components, "country", short=True),
                    place_type=canonical_place_type(item.get("types") or []),
                    place_id=item.get("place_id"),
                    distance_km=distance_from(anchor, float(lat), float(lng)),
                    extras={"location_type": _safe_get(item, ["geometry", "location_type"])},
                )
            )
        return results

    async def reverse_locality(self, latitude: float, longitude: float) -> Optional[Locality]:
        try:
            data = await self._get(
                {
                    "latlng": f"{latitude},{longitude}",
                    "result_type": "locality|administrative_area_level_1",
                }
            )
        except (TransportError, ProviderError, httpx.HTTPError, ValueError) as e:
            logger.info("google_geocoding reverse lookup failed: %s", e)
            return None

        results = data.get("results") or []
        if not results:
            return None
        comps = results[0].get("address_components") or []
        return Locality(
            city=_component(comps, "locality", "sublocality", "postal_town"),
            state=_component(comps, "administrative_area_level_1"),
            state_code=_component(comps, "administrative_area_level_1", short=True),
            country=_component(comps, "country"),
            country_code=_component(comps, "country", short=True),
        )
