from __future__ import annotations

import math

from ..workflow_types import SearchContext

# Distance cap floor; candidates beyond max(radius, this) lose to any nearer one.
MIN_DISTANCE_CAP_KM = 50.0


class AssembleResultsNode:
    """
    Orders and caps the scored candidates. With an anchor, distance dominates
    (score breaks ties); without one, the composite score decides.
    """

    name = "assemble_results"

    async def run(self, ctx: SearchContext) -> SearchContext:
        scored = ctx.candidates
        limit = ctx.options.max_results

        if ctx.anchor is None:
            ctx.results = sorted(scored, key=lambda c: -c.composite_score)[:limit]
            return ctx

        with_distance, without_distance = [], []
        for c in scored:
            if c.distance_km is not None and math.isfinite(c.distance_km):
                with_distance.append(c)
            else:
                without_distance.append(c)

        cap = max(ctx.options.search_radius_km, MIN_DISTANCE_CAP_KM)
        near_enough = [c for c in with_distance if c.distance_km <= cap]
        ordered = sorted(near_enough or with_distance, key=lambda c: (c.distance_km, -c.composite_score))
        ctx.results = (ordered + without_distance)[:limit]
        return ctx
