from __future__ import annotations

from dataclasses import replace

from ...providers.fallback import FallbackProvider
from ..workflow_types import SearchContext
from .score import composite_score


class FallbackNode:
    name = "fallback"

    def __init__(self, provider: FallbackProvider):
        self.provider = provider

    async def run(self, ctx: SearchContext) -> SearchContext:
        if ctx.results:
            return ctx
        placeholder = self.provider.locate(ctx.query.strip(), ctx.anchor)
        placeholder = replace(
            placeholder, composite_score=composite_score(placeholder, ctx.query, ctx.anchor is not None)
        )
        ctx.observer.emit("fallback_used", query=ctx.query, errors=len(ctx.errors))
        ctx.results = [placeholder]
        ctx.fallback_used = True
        return ctx
