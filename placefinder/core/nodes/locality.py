from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ...providers.base import ReverseGeocoder
from ..cache import LocalityCache
from ..workflow_types import SearchContext

logger = logging.getLogger(__name__)


class CountryHintNode:
    """Country hint for the first cascade: a cached anchor locality, else the configured default. No network."""

    name = "country_hint"

    def __init__(self, cache: LocalityCache, default_country_code: Optional[str] = None):
        self.cache = cache
        self.default_country_code = default_country_code

    async def run(self, ctx: SearchContext) -> SearchContext:
        ctx.country_code = self.default_country_code
        if ctx.anchor is None:
            return ctx
        ctx.locality = self.cache.get(ctx.anchor)
        if ctx.locality is not None and ctx.locality.country_code:
            ctx.country_code = ctx.locality.country_code
        return ctx


class LocalityNode:
    """
    Reverse-geocodes the anchor (city/state/country) through the first
    reverse-capable adapter that answers, once the first cascade has produced
    candidates. The locality drives the region-consistency filter and the
    second-pass query and hint.

    The lookup has its own time budget; it never draws on the cascade deadline.
    """

    name = "locality"

    def __init__(self, cache: LocalityCache, timeout_s: float):
        self.cache = cache
        self.timeout_s = timeout_s

    async def run(self, ctx: SearchContext) -> SearchContext:
        if ctx.anchor is None or ctx.locality is not None or not ctx.candidates:
            return ctx

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_s
        locality = None
        for descriptor, adapter in ctx.services:
            if not isinstance(adapter, ReverseGeocoder):
                continue
            budget = deadline - loop.time()
            if budget <= 0:
                logger.info("reverse lookup budget of %.1fs spent", self.timeout_s)
                break
            try:
                locality = await asyncio.wait_for(
                    adapter.reverse_locality(ctx.anchor.latitude, ctx.anchor.longitude),
                    timeout=budget,
                )
            except asyncio.TimeoutError:
                logger.info("reverse lookup via %s timed out", descriptor.key)
                continue
            if locality is not None:
                self.cache.put(ctx.anchor, locality)
                break

        ctx.locality = locality
        if locality is not None and locality.country_code:
            ctx.country_code = locality.country_code
        return ctx
