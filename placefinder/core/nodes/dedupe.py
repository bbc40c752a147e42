from __future__ import annotations

from typing import Iterable, List

from ...providers.base import GeocodedLocation
from ..workflow_types import SearchContext


def dedupe(candidates: Iterable[GeocodedLocation]) -> List[GeocodedLocation]:
    """Keeps the first candidate per place id / ~11 m coordinate cell."""
    seen = set()
    unique = []
    for c in candidates:
        key = c.dedupe_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(c)
    return unique


class DedupeNode:
    name = "dedupe"

    async def run(self, ctx: SearchContext) -> SearchContext:
        ctx.candidates = dedupe(ctx.candidates)
        return ctx
