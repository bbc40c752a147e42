from __future__ import annotations

from ..user_location import UserLocationStore
from ..workflow_types import SearchContext


class AnchorResolverNode:
    """Explicit anchor > stored user location > none. An explicit anchor is remembered."""

    name = "anchor_resolver"

    def __init__(self, store: UserLocationStore):
        self.store = store

    async def run(self, ctx: SearchContext) -> SearchContext:
        explicit = ctx.options.anchor
        if explicit is not None:
            self.store.set(explicit)
            ctx.anchor = explicit
        else:
            ctx.anchor = self.store.get()

        ctx.observer.emit(
            "search_started",
            query=ctx.query,
            radius_km=ctx.options.search_radius_km,
            anchor=f"{ctx.anchor.latitude},{ctx.anchor.longitude}" if ctx.anchor else None,
        )
        return ctx
