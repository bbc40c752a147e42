from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from ..errors import ConfigurationError
from ..registry import ServiceRegistry
from ..workflow_types import SearchContext

logger = logging.getLogger(__name__)


class RequestPlannerNode:
    """Normalizes the request, sets the cascade deadline and picks the adapters to try."""

    name = "request_planner"

    def __init__(self, registry: ServiceRegistry, client: Optional[httpx.AsyncClient] = None):
        self.registry = registry
        self.client = client

    async def run(self, ctx: SearchContext) -> SearchContext:
        loop = asyncio.get_running_loop()
        ctx.started_at = loop.time()
        ctx.deadline = ctx.started_at + ctx.options.timeout_ms / 1000.0

        if not ctx.query.strip():
            # Empty queries never reach an adapter.
            ctx.results = []
            ctx.done = True
            return ctx

        settings = self.registry.settings()
        for descriptor in self.registry.enabled_adapters(settings):
            try:
                ctx.services.append((descriptor, self.registry.build(descriptor, self.client, settings)))
            except ValueError as e:
                logger.warning("could not build %s: %s", descriptor.key, e)
                ctx.errors.append(f"{descriptor.display_name} failed: {e}")

        if not ctx.services:
            err = ConfigurationError("no location services are enabled")
            ctx.observer.emit("configuration_error", reason=str(err))
            ctx.errors.append(str(err))
        return ctx
