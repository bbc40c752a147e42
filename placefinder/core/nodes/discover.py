from __future__ import annotations

from ..cascade import run_cascade
from ..workflow_types import SearchContext


class DiscoverLocationsNode:
    name = "discover_locations"

    def __init__(self, per_call_timeout_s: float):
        self.per_call_timeout_s = per_call_timeout_s

    async def run(self, ctx: SearchContext) -> SearchContext:
        found, errors = await run_cascade(
            ctx,
            ctx.query.strip(),
            radius_km=ctx.options.search_radius_km,
            max_results=ctx.options.max_results,
            per_call_timeout_s=self.per_call_timeout_s,
            stop_early=not ctx.options.exhaust_all_sources,
        )
        ctx.candidates = found
        ctx.errors.extend(errors)
        return ctx
