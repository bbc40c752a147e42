# placefinder/providers/google_places.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Union

import httpx

from ..core.errors import ProviderError, TransportError
from ..core.geo import distance_from
from ..core.text import canonical_place_type, query_place_type, text_relevance
from .base import GeocodedLocation, ProviderResponse, UserLocation
from .http import HttpProvider, _safe_get

logger = logging.getLogger(__name__)

_POSTAL_RE = re.compile(r"\s+[A-Z0-9]{1,4}[\s-]?[0-9][A-Z0-9\s-]*$")


def _extract_address_components(addr: str) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """
    Lightweight parsing for city/region/country from Google's formattedAddress.
    Expected-ish format: "street, City, Region Postal, Country"
    """
    if not addr:
        return None, None, None
    parts = [p.strip() for p in addr.split(",") if p.strip()]
    country = parts[-1] if len(parts) >= 1 else None
    region = parts[-2] if len(parts) >= 2 else None
    city = parts[-3] if len(parts) >= 3 else None
    if region:
        # "LA 70112" -> "LA"
        region = _POSTAL_RE.sub("", region) or region
    return city, region, country


@dataclass(frozen=True)
class GooglePlacesConfig:
    api_key: str
    # e.g. "en" or "en-CA"
    language_code: str = "en"

    # Hard caps / safety
    timeout_s: float = 10.0
    max_retries: int = 2
    base_backoff_s: float = 0.3

    # The API rejects pages larger than this.
    max_page_size: int = 20
    # Nearby search only accepts a restriction circle up to 50 km.
    max_nearby_radius_m: float = 50000.0

    field_mask: str = (
        "places.id,"
        "places.displayName,"
        "places.formattedAddress,"
        "places.location,"
        "places.types,"
        "places.priceLevel,"
        "places.rating,"
        "places.userRatingCount,"
        "places.businessStatus"
    )


class GooglePlacesProvider(HttpProvider):
    """
    Google Places API v1 provider:
      - POST https://places.googleapis.com/v1/places:searchText
      - POST https://places.googleapis.com/v1/places:searchNearby

    Auth header:
      - X-Goog-Api-Key: <key>

    Field masks:
      - X-Goog-FieldMask: <comma-separated fields>
    """

    provider_name = "google_places"
    _BASE_URL = "https://places.googleapis.com/v1"

    def __init__(self, cfg: GooglePlacesConfig, client: Optional[httpx.AsyncClient] = None):
        if not cfg.api_key:
            raise ValueError("GooglePlacesConfig.api_key is required")
        super().__init__(cfg, client)

    def _headers(self) -> Dict[str, str]:
        return {
            "X-Goog-Api-Key": self.cfg.api_key,
            "X-Goog-FieldMask": self.cfg.field_mask,
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._request_with_retries(
            "POST", f"{self._BASE_URL}/{path}", headers=self._headers(), json=body
        )
        if not isinstance(data, dict):
            raise ValueError("Expected JSON object response")
        if data.get("error"):
            err = data["error"]
            raise ProviderError(f"{_safe_get(err, ['status'], 'ERROR')}: {_safe_get(err, ['message'], err)}")
        return data

    async def _search(
        self,
        query: str,
        anchor: Optional[UserLocation],
        *,
        radius_km: float,
        max_results: int,
        country_code: Optional[str],
    ) -> Union[List[GeocodedLocation], ProviderResponse]:
        """
        Text search first; when an anchor exists and the text search came up
        short, a nearby search restricted around the anchor tops it up. A failed
        top-up yields the text results together with the error.
        """
        radius_m = float(radius_km) * 1000.0
        included_type = query_place_type(query)

        body: Dict[str, Any] = {
            "textQuery": query,
            "languageCode": self.cfg.language_code,
            "maxResultCount": min(max_results, self.cfg.max_page_size),
            "rankPreference": "DISTANCE" if anchor is not None else "RELEVANCE",
        }
        if anchor is not None:
            body["locationBias"] = {
                "circle": {
                    "center": {"latitude": anchor.latitude, "longitude": anchor.longitude},
                    "radius": radius_m,
                }
            }
        if included_type:
            body["includedType"] = included_type
        if country_code:
            body["regionCode"] = country_code.upper()

        data = await self._post("places:searchText", body)
        seen: Set[str] = set()
        results: List[GeocodedLocation] = []
        for place in data.get("places", []) or []:
            loc = self._to_location(place, query, anchor, strategy="text")
            if loc is not None and loc.place_id not in seen:
                seen.add(loc.place_id or "")
                results.append(loc)

        if anchor is None or len(results) >= max_results:
            return results

        nearby_body: Dict[str, Any] = {
            "languageCode": self.cfg.language_code,
            "maxResultCount": min(max_results - len(results), self.cfg.max_page_size),
            "rankPreference": "DISTANCE",
            "locationRestriction": {
                "circle": {
                    "center": {"latitude": anchor.latitude, "longitude": anchor.longitude},
                    "radius": min(radius_m, self.cfg.max_nearby_radius_m),
                }
            },
        }
        if included_type:
            nearby_body["includedTypes"] = [included_type]
        if country_code:
            nearby_body["regionCode"] = country_code.upper()

        try:
            nearby = await self._post("places:searchNearby", nearby_body)
        except (TransportError, ProviderError, httpx.HTTPError, ValueError) as e:
            # partial answer: text results plus the top-up error
            logger.warning("google_places nearby top-up failed: %s", e)
            return ProviderResponse(candidates=results, error=f"{self.provider_name}: nearby search failed: {e}")
        for place in nearby.get("places", []) or []:
            loc = self._to_location(place, query, anchor, strategy="nearby")
            if loc is not None and loc.place_id not in seen:
                seen.add(loc.place_id or "")
                results.append(loc)
        return results

    def _to_location(
        self,
        place: Dict[str, Any],
        query: str,
        anchor: Optional[UserLocation],
        *,
        strategy: str,
    ) -> Optional[GeocodedLocation]:
        place_id = _safe_get(place, ["id"])
        lat = _safe_get(place, ["location", "latitude"])
        lng = _safe_get(place, ["location", "longitude"])
        if not place_id or lat is None or lng is None:
            return None

        name = _safe_get(place, ["displayName", "text"], "") or "Unknown Place"
        formatted_address = place.get("formattedAddress") or "Address not available"
        city, region, country = _extract_address_components(place.get("formattedAddress") or "")
        extras = {
            "strategy": strategy,
            "rating": place.get("rating"),
            "user_rating_count": place.get("userRatingCount"),
            "price_level": place.get("priceLevel"),
            "business_status": place.get("businessStatus"),
        }

        return GeocodedLocation(
            latitude=float(lat),
            longitude=float(lng),
            address=formatted_address,
            place_name=name,
            source=self.provider_name,
            relevance=text_relevance(name, query),
            city=city,
            state=region,
            country=country,
            place_type=canonical_place_type(place.get("types") or []),
            place_id=str(place_id),
            distance_km=distance_from(anchor, float(lat), float(lng)),
            extras={k: v for k, v in extras.items() if v is not None},
        )
