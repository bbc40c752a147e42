# placefinder/providers/mapbox.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..core.errors import ProviderError
from ..core.geo import distance_from
from ..core.text import canonical_place_type, text_relevance
from .base import GeocodedLocation, UserLocation
from .http import HttpProvider, _safe_get


def _context(context: List[Dict[str, Any]], prefix: str, key: str = "text") -> Optional[str]:
    for comp in context or []:
        if str(comp.get("id", "")).startswith(prefix):
            return comp.get(key)
    return None


@dataclass(frozen=True)
class MapboxConfig:
    access_token: str
    language_code: str = "en"

    timeout_s: float = 10.0
    max_retries: int = 2
    base_backoff_s: float = 0.3

    # Geocoding v5 caps forward results at 10.
    max_page_size: int = 10


class MapboxProvider(HttpProvider):
    """
    Mapbox Geocoding v5 provider:
      - GET https://api.mapbox.com/geocoding/v5/mapbox.places/{query}.json
    """

    provider_name = "mapbox"
    _BASE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"

    def __init__(self, cfg: MapboxConfig, client: Optional[httpx.AsyncClient] = None):
        if not cfg.access_token:
            raise ValueError("MapboxConfig.access_token is required")
        super().__init__(cfg, client)

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
            "access_token": self.cfg.access_token,
            "limit": min(max_results, self.cfg.max_page_size),
            "language": self.cfg.language_code,
        }
        if country_code:
            params["country"] = country_code.lower()
        if anchor is not None:
            params["proximity"] = f"{anchor.longitude},{anchor.latitude}"

        data = await self._request_with_retries(
            "GET", f"{self._BASE_URL}/{quote(query, safe='')}.json", params=params
        )
        if not isinstance(data, dict):
            raise ValueError("Expected JSON object response")
        if "features" not in data:
            raise ProviderError(str(data.get("message") or "response has no features"))

        results: List[GeocodedLocation] = []
        for item in data["features"]:
            lng, lat = _safe_get(item, ["center", 0]), _safe_get(item, ["center", 1])
            if lat is None or lng is None:
                continue
            place_name = item.get("place_name") or ""
            name = item.get("text") or place_name.split(",")[0] or "Unknown Place"
            context = item.get("context") or []
            region_code = _context(context, "region", "short_code")
            results.append(
                GeocodedLocation(
                    latitude=float(lat),
                    longitude=float(lng),
                    address=place_name or name,
                    place_name=name,
                    source=self.provider_name,
                    relevance=text_relevance(name, query),
                    city=_context(context, "place"),
                    state=_context(context, "region"),
                    country=_context(context, "country"),
                    country_code=(_context(context, "country", "short_code") or "").upper() or None,
                    place_type=canonical_place_type(
                        _safe_get(item, ["properties", "category"]) or item.get("place_type") or []
                    ),
                    place_id=item.get("id"),
                    distance_km=distance_from(anchor, float(lat), float(lng)),
                    extras={"region_code": region_code, "mapbox_relevance": item.get("relevance")},
                )
            )
        return results
