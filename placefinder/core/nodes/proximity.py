from __future__ import annotations

import logging
import re
from typing import Optional

from ...providers.base import GeocodedLocation, Locality
from ..workflow_types import VERY_CLOSE_KM, SearchContext

logger = logging.getLogger(__name__)

# Country names as they appear in formatted addresses, for providers that give no code.
_COUNTRY_CODES = {
    "us": "US",
    "usa": "US",
    "united states": "US",
    "united states of america": "US",
    "canada": "CA",
    "mexico": "MX",
    "méxico": "MX",
    "uk": "GB",
    "united kingdom": "GB",
    "great britain": "GB",
    "ireland": "IE",
    "france": "FR",
    "germany": "DE",
    "deutschland": "DE",
    "spain": "ES",
    "españa": "ES",
    "italy": "IT",
    "italia": "IT",
    "australia": "AU",
    "new zealand": "NZ",
}


def _country_code(code: Optional[str], name: Optional[str]) -> Optional[str]:
    if code:
        return code.strip().upper()
    if name:
        return _COUNTRY_CODES.get(name.strip().lower())
    return None


def _norm_state(value: Optional[str]) -> str:
    return re.sub(r"[^a-z]", "", (value or "").lower())


def region_consistent(candidate: GeocodedLocation, locality: Optional[Locality]) -> bool:
    """
    False when the candidate sits in another country than the anchor, or in
    another state while lying outside the very-close radius. Unknown regions pass.
    """
    if locality is None:
        return True

    anchor_country = _country_code(locality.country_code, locality.country)
    candidate_country = _country_code(candidate.country_code, candidate.country)
    if anchor_country and candidate_country and anchor_country != candidate_country:
        return False

    if candidate.distance_km is not None and candidate.distance_km <= VERY_CLOSE_KM:
        return True
    state = _norm_state(candidate.state)
    anchor_states = {_norm_state(locality.state), _norm_state(locality.state_code)} - {""}
    if state and anchor_states and state not in anchor_states:
        return False
    return True


class ProximityFilterNode:
    """
    Keeps candidates within the search radius, then drops the regionally
    implausible ones. Never empties a non-empty set: if nothing is within the
    radius the candidates are left for the selector's distance cap.
    """

    name = "proximity_filter"

    async def run(self, ctx: SearchContext) -> SearchContext:
        if ctx.anchor is None or not ctx.candidates:
            return ctx

        radius = ctx.options.search_radius_km
        within = [c for c in ctx.candidates if c.distance_km is not None and c.distance_km <= radius]
        if not within:
            return ctx

        regional = [c for c in within if region_consistent(c, ctx.locality)]
        if len(regional) < len(within):
            logger.debug(
                "region filter dropped %s",
                [c.place_name for c in within if c not in regional],
            )
        ctx.candidates = regional or within
        return ctx
