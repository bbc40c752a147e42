# placefinder/providers/openstreetmap.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..core.errors import ProviderError, TransportError
from ..core.geo import degree_deltas, distance_from
from ..core.text import canonical_place_type, text_relevance
from .base import GeocodedLocation, Locality, UserLocation
from .http import HttpProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NominatimConfig:
    user_agent: str = "placefinder/0.1"
    base_url: str = "https://nominatim.openstreetmap.org"
    language_code: str = "en"

    timeout_s: float = 10.0
    max_retries: int = 1
    base_backoff_s: float = 0.5

    # Viewbox half-width cap, ~55 km at the equator.
    max_viewbox_delta: float = 0.5


def _city(address: Dict[str, Any]) -> Optional[str]:
    return address.get("city") or address.get("town") or address.get("village")


class OpenStreetMapProvider(HttpProvider):
    """
    OpenStreetMap Nominatim provider. Free and keyless, so it is the adapter
    that is always available:
      - GET {base_url}/search?q=...&format=json&addressdetails=1
      - GET {base_url}/reverse?lat=..&lon=..&zoom=12
    """

    provider_name = "openstreetmap"

    def __init__(self, cfg: Optional[NominatimConfig] = None, client: Optional[httpx.AsyncClient] = None):
        super().__init__(cfg or NominatimConfig(), client)

    def _headers(self) -> Dict[str, str]:
        return {"User-Agent": self.cfg.user_agent, "Accept-Language": self.cfg.language_code}

    async def _get(self, path: str, params: Dict[str, Any]) -> Any:
        data = await self._request_with_retries(
            "GET", f"{self.cfg.base_url}/{path}", headers=self._headers(), params=params
        )
        if isinstance(data, dict) and data.get("error"):
            raise ProviderError(str(data["error"]))
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
        params: Dict[str, Any] = {
            "q": query,
            "format": "json",
            "limit": max_results,
            "addressdetails": 1,
            "extratags": 1,
            "namedetails": 1,
        }
        if country_code:
            params["countrycodes"] = country_code.lower()

        if anchor is None:
            return self._parse(await self._get("search", params), query, anchor)

        lat_delta, lon_delta = degree_deltas(anchor.latitude, radius_km, self.cfg.max_viewbox_delta)
        bounded = {
            **params,
            "viewbox": ",".join(
                str(v)
                for v in (
                    anchor.longitude - lon_delta,
                    anchor.latitude + lat_delta,
                    anchor.longitude + lon_delta,
                    anchor.latitude - lat_delta,
                )
            ),
            "bounded": 1,
        }
        results = self._parse(await self._get("search", bounded), query, anchor)
        if results:
            return results
        # Nothing inside the box; let the ranking stages judge unbounded hits.
        return self._parse(await self._get("search", params), query, anchor)

    def _parse(self, data: Any, query: str, anchor: Optional[UserLocation]) -> List[GeocodedLocation]:
        if not isinstance(data, list):
            raise ValueError("Expected JSON array response")
        results: List[GeocodedLocation] = []
        for item in data:
            lat, lon = float(item["lat"]), float(item["lon"])
            display_name = item.get("display_name") or ""
            name = item.get("name") or display_name.split(",")[0] or "Unknown Place"
            address = item.get("address") or {}
            results.append(
                GeocodedLocation(
                    latitude=lat,
                    longitude=lon,
                    address=display_name or name,
                    place_name=name,
                    source=self.provider_name,
                    relevance=text_relevance(name, query),
                    city=_city(address),
                    state=address.get("state"),
                    country=address.get("country"),
                    country_code=(address.get("country_code") or "").upper() or None,
                    place_type=canonical_place_type(item.get("type"), item.get("class")),
                    place_id=f"osm:{item['osm_type']}:{item['osm_id']}" if item.get("osm_id") else None,
                    distance_km=distance_from(anchor, lat, lon),
                    extras={"osm_class": item.get("class"), "osm_type": item.get("type")},
                )
            )
        return results

    async def reverse_locality(self, latitude: float, longitude: float) -> Optional[Locality]:
        try:
            data = await self._get(
                "reverse",
                {"lat": latitude, "lon": longitude, "format": "json", "zoom": 12, "addressdetails": 1},
            )
        except (TransportError, ProviderError, httpx.HTTPError, ValueError) as e:
            logger.info("openstreetmap reverse lookup failed: %s", e)
            return None

        address = data.get("address") if isinstance(data, dict) else None
        if not address:
            return None
        state_code = address.get("ISO3166-2-lvl4")
        return Locality(
            city=_city(address) or address.get("suburb"),
            state=address.get("state"),
            state_code=state_code.split("-")[-1] if state_code else None,
            country=address.get("country"),
            country_code=(address.get("country_code") or "").upper() or None,
        )
