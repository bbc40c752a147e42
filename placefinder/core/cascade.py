"""Priority cascade over the enabled adapters, one call in flight at a time."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional, Tuple

from ..providers.base import GeocodedLocation, ProviderResponse
from .errors import describe
from .workflow_types import SearchContext

logger = logging.getLogger(__name__)

# Adapters at or above this priority are trusted enough to end the cascade early.
HIGH_PRIORITY = 2


def remaining_s(ctx: SearchContext) -> float:
    return ctx.deadline - asyncio.get_running_loop().time()


async def call_adapter(
    ctx: SearchContext,
    descriptor,
    adapter,
    query: str,
    *,
    radius_km: float,
    max_results: int,
    per_call_timeout_s: float,
) -> Tuple[List[GeocodedLocation], Optional[str]]:
    """
    One adapter call raced against min(per-call timeout, time left). Timeouts and
    unexpected exceptions are reported like any other adapter error.
    """
    budget = min(per_call_timeout_s, remaining_s(ctx))
    if budget <= 0:
        reason = f"{descriptor.display_name} skipped: search deadline exceeded"
        ctx.observer.emit("adapter_failed", adapter=descriptor.key, reason="deadline", ms=0)
        return [], reason

    ctx.observer.emit("adapter_attempted", adapter=descriptor.key, query=query)
    started = time.perf_counter()
    try:
        resp: ProviderResponse = await asyncio.wait_for(
            adapter.search(
                query,
                ctx.anchor,
                radius_km=radius_km,
                max_results=max_results,
                country_code=ctx.country_code,
            ),
            timeout=budget,
        )
    except asyncio.TimeoutError:
        elapsed = (time.perf_counter() - started) * 1000.0
        ctx.observer.emit("adapter_failed", adapter=descriptor.key, reason="timeout", ms=round(elapsed))
        return [], f"{descriptor.display_name} failed: timed out after {budget * 1000.0:.0f}ms"
    except Exception as e:  # adapters must not raise; recorded as a soft failure
        elapsed = (time.perf_counter() - started) * 1000.0
        logger.exception("adapter %s raised", descriptor.key)
        ctx.observer.emit("adapter_failed", adapter=descriptor.key, reason=type(e).__name__, ms=round(elapsed))
        return [], describe(e, descriptor.display_name)

    elapsed = (time.perf_counter() - started) * 1000.0
    if resp.error:
        ctx.observer.emit("adapter_failed", adapter=descriptor.key, reason=resp.error, ms=round(elapsed))
        return list(resp.candidates), f"{descriptor.display_name} failed: {resp.error}"
    ctx.observer.emit("adapter_succeeded", adapter=descriptor.key, count=len(resp.candidates), ms=round(elapsed))
    return list(resp.candidates), None


async def run_cascade(
    ctx: SearchContext,
    query: str,
    *,
    radius_km: float,
    max_results: int,
    per_call_timeout_s: float,
    stop_early: bool,
) -> Tuple[List[GeocodedLocation], List[str]]:
    """Returns (accumulated candidates in priority order, error strings)."""
    accumulated: List[GeocodedLocation] = []
    errors: List[str] = []
    for descriptor, adapter in ctx.services:
        found, error = await call_adapter(
            ctx,
            descriptor,
            adapter,
            query,
            radius_km=radius_km,
            max_results=max_results,
            per_call_timeout_s=per_call_timeout_s,
        )
        if error:
            errors.append(error)
        if not found:
            continue
        accumulated.extend(found)
        if stop_early and descriptor.priority <= HIGH_PRIORITY and len(accumulated) >= max_results:
            ctx.observer.emit("early_stop", adapter=descriptor.key, count=len(accumulated))
            break
    return accumulated, errors
