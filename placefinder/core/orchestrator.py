"""
LocationResolver: the entry point callers use to turn a free-text place query
(plus an optional user coordinate) into a ranked LocationSearchResult.

The resolver owns its collaborators (registry, user location store, search
cache, telemetry observer, http client); all of them can be injected.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import httpx

from ..providers.base import GeocodedLocation, UserLocation
from ..providers.fallback import FallbackConfig, FallbackProvider
from .cache import LocalityCache, SearchCache
from .config import Settings, load_settings
from .errors import CallerTimeoutError
from .nodes.anchors import AnchorResolverNode
from .nodes.assemble import AssembleResultsNode
from .nodes.cache import CacheLookupNode, CacheStoreNode
from .nodes.dedupe import DedupeNode
from .nodes.discover import DiscoverLocationsNode
from .nodes.fallback import FallbackNode
from .nodes.locality import CountryHintNode, LocalityNode
from .nodes.planner import RequestPlannerNode
from .nodes.proximity import ProximityFilterNode
from .nodes.score import ScoreNode
from .nodes.widen import LocalityWideningNode
from .registry import ServiceDescriptor, ServiceHealth, ServiceRegistry, ValidationReport, default_registry
from .telemetry import LoggingObserver, SearchObserver
from .user_location import UserLocationStore
from .workflow import WorkflowRunner
from .workflow_types import LocationSearchResult, SearchContext, SearchOptions

logger = logging.getLogger(__name__)


class LocationResolver:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        registry: Optional[ServiceRegistry] = None,
        user_location: Optional[UserLocationStore] = None,
        cache: Optional[SearchCache] = None,
        locality_cache: Optional[LocalityCache] = None,
        observer: Optional[SearchObserver] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or load_settings()
        if registry is None:
            # Explicit settings pin the registry; otherwise it re-reads the environment per query.
            registry = default_registry(load_settings if settings is None else (lambda: self.settings))
        self.registry = registry
        self.user_location = user_location or UserLocationStore()
        self.cache = cache or SearchCache(
            ttl_s=self.settings.cache_ttl_s, max_entries=self.settings.cache_max_entries
        )
        self.locality_cache = locality_cache or LocalityCache()
        self.observer = observer or LoggingObserver()
        self.fallback = FallbackProvider(
            FallbackConfig(
                default_latitude=self.settings.fallback_latitude,
                default_longitude=self.settings.fallback_longitude,
            )
        )
        self._client = client
        self._owns_client = False

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.adapter_timeout_s)
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    def _runner(self) -> WorkflowRunner:
        per_call = self.settings.adapter_timeout_s
        return WorkflowRunner(
            nodes=[
                AnchorResolverNode(self.user_location),
                RequestPlannerNode(self.registry, self._client),
                CacheLookupNode(self.cache),
                CountryHintNode(self.locality_cache, self.settings.default_country_code),
                DiscoverLocationsNode(per_call),
                DedupeNode(),
                LocalityNode(self.locality_cache, self.settings.locality_timeout_s),
                ProximityFilterNode(),
                LocalityWideningNode(per_call),
                ScoreNode(),
                AssembleResultsNode(),
                FallbackNode(self.fallback),
                CacheStoreNode(self.cache),
            ]
        )

    def default_options(self, **overrides: Any) -> SearchOptions:
        base = SearchOptions(
            max_results=self.settings.max_search_results,
            search_radius_km=self.settings.default_search_radius_km,
            timeout_ms=self.settings.search_timeout_ms,
        )
        return dataclasses.replace(base, **overrides) if overrides else base

    async def resolve(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        **overrides: Any,
    ) -> LocationSearchResult:
        """
        Resolve `query` to ranked locations. Adapter failures are soft and end
        up in `errors`; the result always holds at least the fallback candidate
        unless the query is empty. Only exceeding `overall_timeout_ms` raises
        (CallerTimeoutError).
        """
        if options is None:
            options = self.default_options(**overrides)
        elif overrides:
            options = dataclasses.replace(options, **overrides)

        ctx = SearchContext(query=query or "", options=options, observer=self.observer)
        if options.overall_timeout_ms is None:
            ctx = await self._runner().run(ctx)
        else:
            try:
                ctx = await asyncio.wait_for(
                    self._runner().run(ctx), timeout=options.overall_timeout_ms / 1000.0
                )
            except asyncio.TimeoutError as e:
                raise CallerTimeoutError(query, options.overall_timeout_ms) from e

        result = ctx.to_result()
        if ctx.started_at:
            elapsed = (asyncio.get_running_loop().time() - ctx.started_at) * 1000.0
            self.observer.emit(
                "search_completed",
                query=query,
                count=result.total_results,
                errors=len(result.errors or []),
                from_cache=result.from_cache,
                ms=round(elapsed),
            )
        return result

    async def resolve_with_retry(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        *,
        max_retries: int = 2,
        base_timeout_ms: int = 10000,
        backoff_s: float = 1.0,
    ) -> LocationSearchResult:
        """
        Whole-search retries: attempt n gets an overall budget of
        (options.overall_timeout_ms or base_timeout_ms) * n, with exponential
        backoff between attempts. The last CallerTimeoutError is re-raised.
        """
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        options = options or self.default_options()
        last_error: Optional[CallerTimeoutError] = None
        for attempt in range(1, max_retries + 1):
            budget = (options.overall_timeout_ms or base_timeout_ms) * attempt
            attempt_options = dataclasses.replace(options, overall_timeout_ms=budget)
            try:
                return await self.resolve(query, attempt_options)
            except CallerTimeoutError as e:
                last_error = e
                logger.warning("location search attempt %d/%d timed out: %s", attempt, max_retries, e)
                if attempt < max_retries:
                    await asyncio.sleep(backoff_s * (2 ** (attempt - 1)))
        raise last_error

    async def batch_resolve(
        self,
        queries: Iterable[str],
        options: Optional[SearchOptions] = None,
        *,
        delay_s: float = 0.2,
    ) -> List[LocationSearchResult]:
        options = options or self.default_options()
        results: List[LocationSearchResult] = []
        for i, query in enumerate(queries):
            if i and delay_s > 0:
                await asyncio.sleep(delay_s)
            try:
                results.append(await self.resolve(query, options))
            except CallerTimeoutError as e:
                logger.warning("batch search failed for %r: %s", query, e)
                results.append(
                    LocationSearchResult(
                        query=query,
                        locations=[],
                        search_radius_km=options.search_radius_km,
                        errors=[str(e)],
                    )
                )
        return results

    async def find_nearby(
        self,
        query: str,
        latitude: float,
        longitude: float,
        max_distance_km: float = 25.0,
    ) -> Optional[GeocodedLocation]:
        result = await self.resolve(
            query,
            self.default_options(
                max_results=5,
                search_radius_km=max_distance_km,
                anchor_lat=latitude,
                anchor_lon=longitude,
            ),
        )
        return result.best_match

    async def find_best(self, query: str, max_results: int = 5) -> Optional[GeocodedLocation]:
        result = await self.resolve(
            query, self.default_options(max_results=max_results, search_radius_km=100.0)
        )
        return result.best_match

    async def resolve_with_context(
        self,
        query: str,
        *,
        user_location: Optional[UserLocation] = None,
        search_radius_km: float = 25.0,
        include_types: Optional[Sequence[str]] = None,
        exclude_types: Optional[Sequence[str]] = None,
    ) -> LocationSearchResult:
        """Autocomplete-style search: more results, shorter budget, optional type filters."""
        result = await self.resolve(
            query,
            self.default_options(
                max_results=15,
                search_radius_km=search_radius_km,
                anchor_lat=user_location.latitude if user_location else None,
                anchor_lon=user_location.longitude if user_location else None,
                timeout_ms=12000,
            ),
        )
        if not include_types and not exclude_types:
            return result

        def keep(loc: GeocodedLocation) -> bool:
            place_type = (loc.place_type or "").lower()
            if exclude_types and any(t.lower() in place_type for t in exclude_types):
                return False
            if include_types and not any(t.lower() in place_type for t in include_types):
                return False
            return True

        locations = [loc for loc in result.locations if keep(loc)]
        return dataclasses.replace(
            result, locations=locations, best_match=locations[0] if locations else None
        )

    def set_user_location(self, location: UserLocation) -> None:
        self.user_location.set(location)

    def get_user_location(self) -> Optional[UserLocation]:
        return self.user_location.get()

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> Dict[str, Union[int, List[str]]]:
        return self.cache.stats()

    def services(self) -> List[ServiceDescriptor]:
        return self.registry.describe_all()

    def validate_services(self) -> ValidationReport:
        return self.registry.validate()

    async def service_health(self) -> Dict[str, ServiceHealth]:
        return await self.registry.check_health(self._client, timeout_s=self.settings.adapter_timeout_s)
