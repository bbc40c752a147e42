"""Text matching between queries and place names, plus place-type vocabulary mapping."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Union

CANONICAL_PLACE_TYPES = (
    "restaurant",
    "cafe",
    "store",
    "park",
    "museum",
    "accommodation",
    "healthcare",
    "education",
    "entertainment",
    "shopping",
    "place",
)

# Provider vocabularies (Google types, OSM type/class values, Mapbox categories).
_TYPE_MAP = {
    "restaurant": "restaurant",
    "food": "restaurant",
    "fast_food": "restaurant",
    "meal_takeaway": "restaurant",
    "meal_delivery": "restaurant",
    "pizza_restaurant": "restaurant",
    "bar": "restaurant",
    "pub": "restaurant",
    "cafe": "cafe",
    "coffee_shop": "cafe",
    "coffee": "cafe",
    "bakery": "cafe",
    "ice_cream": "cafe",
    "store": "store",
    "shop": "store",
    "supermarket": "store",
    "grocery_store": "store",
    "grocery": "store",
    "convenience_store": "store",
    "convenience": "store",
    "clothing_store": "store",
    "hardware_store": "store",
    "pharmacy": "healthcare",
    "mall": "shopping",
    "shopping_mall": "shopping",
    "department_store": "shopping",
    "marketplace": "shopping",
    "park": "park",
    "national_park": "park",
    "garden": "park",
    "playground": "park",
    "nature_reserve": "park",
    "campground": "park",
    "museum": "museum",
    "art_gallery": "museum",
    "gallery": "museum",
    "lodging": "accommodation",
    "hotel": "accommodation",
    "motel": "accommodation",
    "hostel": "accommodation",
    "guest_house": "accommodation",
    "hospital": "healthcare",
    "doctor": "healthcare",
    "clinic": "healthcare",
    "dentist": "healthcare",
    "health": "healthcare",
    "school": "education",
    "university": "education",
    "college": "education",
    "education": "education",
    "library": "education",
    "theatre": "entertainment",
    "movie_theater": "entertainment",
    "cinema": "entertainment",
    "night_club": "entertainment",
    "nightclub": "entertainment",
    "amusement_park": "entertainment",
    "stadium": "entertainment",
    "bowling_alley": "entertainment",
    "zoo": "entertainment",
    "aquarium": "entertainment",
}

_GENERIC_TYPES = {"establishment", "point_of_interest", "poi", "yes"}

# Keywords that pin a query to a single Google Places type.
_QUERY_TYPE_KEYWORDS = (
    ("restaurant", ("restaurant", "food", "eat", "dinner", "lunch", "breakfast")),
    ("cafe", ("coffee", "cafe", "starbucks", "dunkin")),
    ("store", ("store", "shop", "mall", "shopping")),
    ("park", ("park", "garden", "beach", "outdoor")),
)

# Fixed bonuses for high-utility types in the type-fit component.
_TYPE_BONUSES = {
    "restaurant": 0.8,
    "cafe": 0.7,
    "store": 0.6,
    "park": 0.7,
    "museum": 0.6,
    "accommodation": 0.5,
    "shopping": 0.6,
    "entertainment": 0.6,
}

_TOKEN_RE = re.compile(r"\s+")


def normalize(text: str) -> str:
    return " ".join((text or "").lower().split())


def tokenize(text: str, *, min_len: int = 1) -> List[str]:
    return [t for t in _TOKEN_RE.split(normalize(text)) if len(t) >= min_len]


def _exact_token(query_token: str, name_tokens: Sequence[str]) -> bool:
    return any(
        n == query_token or n == query_token + "s" or n + "s" == query_token
        for n in name_tokens
    )


def _partial_token(query_token: str, name_tokens: Sequence[str]) -> bool:
    return any(query_token in n or n in query_token for n in name_tokens)


def _token_hits(query_tokens: Sequence[str], name_tokens: Sequence[str]) -> tuple[int, int]:
    exact = partial = 0
    for q in query_tokens:
        if _exact_token(q, name_tokens):
            exact += 1
        elif _partial_token(q, name_tokens):
            partial += 1
    return exact, partial


def text_relevance(place_name: str, query: str) -> float:
    """
    Raw relevance of a provider result in [0, 1]:
    1.0 exact match, 0.9 containment in either direction, else a token-overlap
    ratio where exact token hits weigh three times partial ones.
    """
    name = normalize(place_name)
    q = normalize(query)
    if not name:
        return 0.5
    if not q:
        return 0.0
    if name == q:
        return 1.0
    if q in name or name in q:
        return 0.9

    query_tokens = tokenize(q)
    exact, partial = _token_hits(query_tokens, tokenize(name))
    ratio = (exact + partial / 3.0) / len(query_tokens)
    # Reordered tokens must not outrank a true containment match.
    return max(0.3, min(ratio, 0.85))


def name_match_score(place_name: str, query: str) -> float:
    """Name-match component of the composite score, in [0, 1]."""
    name = normalize(place_name)
    q = normalize(query)
    if not name or not q:
        return 0.0
    if name == q:
        return 1.0
    if q in name:
        return 0.9

    query_tokens = tokenize(q, min_len=2) or tokenize(q)
    exact, partial = _token_hits(query_tokens, tokenize(name))
    return min(0.8, (exact * 0.6 + partial * 0.2) / len(query_tokens))


def type_fit(place_type: Optional[str], query: str) -> float:
    """Place-type component of the composite score, in [0, 1]."""
    if not place_type:
        return 0.5
    t = place_type.lower()
    relevance = 0.5
    for word in tokenize(query, min_len=2):
        if word in t:
            relevance += 0.2
    for name, bonus in _TYPE_BONUSES.items():
        if name in t:
            relevance = max(relevance, bonus)
    return min(1.0, relevance)


def canonical_place_type(types: Union[None, str, Iterable[str]], osm_class: Optional[str] = None) -> str:
    """Map a provider's type(s) onto CANONICAL_PLACE_TYPES."""
    if types is None:
        candidates: List[str] = []
    elif isinstance(types, str):
        candidates = [types]
    else:
        candidates = [str(t) for t in types]
    if osm_class:
        candidates.append(osm_class)

    for raw in candidates:
        key = raw.strip().lower().replace(" ", "_")
        if key in _GENERIC_TYPES:
            continue
        if key in _TYPE_MAP:
            return _TYPE_MAP[key]
        # Mapbox categories arrive as "coffee, cafe, tea"
        for part in re.split(r"[,;]\s*", key):
            if part.strip("_ ") in _TYPE_MAP:
                return _TYPE_MAP[part.strip("_ ")]
    return "place"


def query_place_type(query: str) -> Optional[str]:
    """Single Google Places type implied by the query, if any."""
    q = normalize(query)
    for place_type, keywords in _QUERY_TYPE_KEYWORDS:
        if any(k in q for k in keywords):
            return place_type
    return None
