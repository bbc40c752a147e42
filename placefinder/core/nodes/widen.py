from __future__ import annotations

from ..cascade import run_cascade
from ..workflow_types import VERY_CLOSE_KM, SearchContext
from .dedupe import dedupe
from .proximity import region_consistent

SECOND_PASS_MAX_RADIUS_KM = 25.0
SECOND_PASS_MAX_RESULTS = 5


class LocalityWideningNode:
    """
    Second cascade with the query augmented by the anchor's city/state, for
    searches that found a few candidates but none very close. Second-pass
    results are kept only when they are very close, strictly closer than
    everything the first pass found and consistent with the anchor's region.
    """

    name = "locality_widening"

    def __init__(self, per_call_timeout_s: float):
        self.per_call_timeout_s = per_call_timeout_s

    def _applies(self, ctx: SearchContext) -> bool:
        if ctx.anchor is None or ctx.locality is None or not ctx.locality.label:
            return False
        if not ctx.candidates or len(ctx.candidates) >= ctx.options.max_results:
            return False
        return not any(
            c.distance_km is not None and c.distance_km <= VERY_CLOSE_KM for c in ctx.candidates
        )

    async def run(self, ctx: SearchContext) -> SearchContext:
        if not self._applies(ctx):
            return ctx

        radius = ctx.options.search_radius_km
        augmented = f"{ctx.query.strip()} {ctx.locality.label}".strip()
        found, errors = await run_cascade(
            ctx,
            augmented,
            radius_km=min(radius, SECOND_PASS_MAX_RADIUS_KM),
            max_results=SECOND_PASS_MAX_RESULTS,
            per_call_timeout_s=self.per_call_timeout_s,
            stop_early=False,
        )
        ctx.errors.extend(f"second pass: {e}" for e in errors)

        closest = min(
            (c.distance_km for c in ctx.candidates if c.distance_km is not None),
            default=float("inf"),
        )
        kept = [
            c
            for c in found
            if c.distance_km is not None
            and c.distance_km <= min(radius, VERY_CLOSE_KM)
            and c.distance_km < closest
            and region_consistent(c, ctx.locality)
        ]
        ctx.observer.emit("second_pass", query=augmented, found=len(found), kept=len(kept))
        if kept:
            ctx.candidates = dedupe(ctx.candidates + kept)
        return ctx
