from __future__ import annotations

from dataclasses import replace
from typing import Optional

from ...providers.base import GeocodedLocation
from ..text import name_match_score, normalize, tokenize, type_fit
from ..workflow_types import SearchContext

# authoritative commercial > premium third-party > free community data
SOURCE_TRUST = {
    "google_places": 1.0,
    "google_geocoding": 1.0,
    "mapbox": 0.8,
    "openstreetmap": 0.7,
    "fallback": 0.0,
}
DEFAULT_SOURCE_TRUST = 0.5


def proximity_points(distance_km: Optional[float]) -> float:
    """Piecewise-linear 45..0 reward over distance bands."""
    if distance_km is None:
        return 0.0
    d = distance_km
    if d <= 1:
        return 45 - d * 5
    if d <= 5:
        return 40 - ((d - 1) / 4) * 10
    if d <= 15:
        return 30 - ((d - 5) / 10) * 15
    if d <= 50:
        return 15 - ((d - 15) / 35) * 10
    return max(0.0, 5 - ((d - 50) / 50) * 5)


def distance_penalty(distance_km: Optional[float]) -> float:
    if distance_km is None:
        return 0.0
    if distance_km > 200:
        return 40.0
    if distance_km > 100:
        return 25.0
    if distance_km > 50:
        return 10.0
    return 0.0


def composite_score(location: GeocodedLocation, query: str, anchored: bool) -> float:
    score = location.relevance * 35
    if anchored:
        score += proximity_points(location.distance_km)
        score -= distance_penalty(location.distance_km)
    score += name_match_score(location.place_name, query) * 15
    score += type_fit(location.place_type, query) * 5
    score += SOURCE_TRUST.get(location.source, DEFAULT_SOURCE_TRUST) * 5

    q = normalize(query)
    if len(tokenize(q, min_len=2)) > 1 and q in normalize(location.place_name):
        score += 3
    return max(0.0, min(score, 100.0))


class ScoreNode:
    name = "score"

    async def run(self, ctx: SearchContext) -> SearchContext:
        anchored = ctx.anchor is not None
        ctx.candidates = [
            replace(c, composite_score=composite_score(c, ctx.query, anchored)) for c in ctx.candidates
        ]
        return ctx
