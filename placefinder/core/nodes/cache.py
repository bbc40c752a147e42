from __future__ import annotations

from ..cache import SearchCache
from ..workflow_types import SearchContext


class CacheLookupNode:
    name = "cache_lookup"

    def __init__(self, cache: SearchCache):
        self.cache = cache

    async def run(self, ctx: SearchContext) -> SearchContext:
        cached = self.cache.lookup(ctx.query, ctx.anchor, ctx.options.search_radius_km)
        if cached is None:
            return ctx
        ctx.observer.emit("cache_hit", query=ctx.query, count=len(cached))
        ctx.results = cached
        ctx.from_cache = True
        ctx.done = True
        return ctx


class CacheStoreNode:
    """Caches real answers only; a degraded fallback answer is never stored."""

    name = "cache_store"

    def __init__(self, cache: SearchCache):
        self.cache = cache

    async def run(self, ctx: SearchContext) -> SearchContext:
        if ctx.results and not ctx.fallback_used and not ctx.from_cache:
            self.cache.store(ctx.query, ctx.anchor, ctx.options.search_radius_km, ctx.results)
        return ctx
