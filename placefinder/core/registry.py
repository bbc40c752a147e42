"""
Service registry: which location providers exist, in what priority order,
and which of them are usable with the current configuration.

Descriptors are recomputed from a fresh Settings on every call so that a
rotated or newly added credential takes effect without a restart.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import httpx

from ..providers.base import LocationProvider
from ..providers.google_geocoding import GoogleGeocodingConfig, GoogleGeocodingProvider
from ..providers.google_places import GooglePlacesConfig, GooglePlacesProvider
from ..providers.mapbox import MapboxConfig, MapboxProvider
from ..providers.openstreetmap import NominatimConfig, OpenStreetMapProvider
from .config import Settings, is_credential_configured, load_settings

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[Settings, Optional[httpx.AsyncClient]], LocationProvider]


@dataclass(frozen=True)
class ServiceDescriptor:
    key: str
    display_name: str
    # Lower = tried first.
    priority: int
    enabled: bool
    credential_present: bool
    description: str = ""


@dataclass(frozen=True)
class ValidationReport:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    configured_services: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ServiceHealth:
    status: str  # healthy | degraded | unhealthy
    checked_at: datetime
    response_ms: Optional[float] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class _ServiceEntry:
    key: str
    display_name: str
    priority: int
    factory: ProviderFactory
    credential: Optional[Callable[[Settings], Optional[str]]]
    feature_flag: Optional[Callable[[Settings], bool]]
    always_enabled: bool
    description: str


class ServiceRegistry:
    def __init__(self, settings_loader: Callable[[], Settings] = load_settings):
        self._settings_loader = settings_loader
        self._entries: Dict[str, _ServiceEntry] = {}

    def register(
        self,
        key: str,
        display_name: str,
        priority: int,
        factory: ProviderFactory,
        *,
        credential: Optional[Callable[[Settings], Optional[str]]] = None,
        feature_flag: Optional[Callable[[Settings], bool]] = None,
        always_enabled: bool = False,
        description: str = "",
    ) -> None:
        self._entries[key] = _ServiceEntry(
            key=key,
            display_name=display_name,
            priority=priority,
            factory=factory,
            credential=credential,
            feature_flag=feature_flag,
            always_enabled=always_enabled,
            description=description,
        )

    def settings(self) -> Settings:
        return self._settings_loader()

    def _describe(self, entry: _ServiceEntry, settings: Settings) -> ServiceDescriptor:
        if entry.credential is None:
            credential_present = True
        else:
            credential_present = is_credential_configured(entry.credential(settings))
        flag_on = entry.feature_flag(settings) if entry.feature_flag is not None else True
        enabled = entry.always_enabled or (flag_on and credential_present)
        return ServiceDescriptor(
            key=entry.key,
            display_name=entry.display_name,
            priority=entry.priority,
            enabled=enabled,
            credential_present=credential_present,
            description=entry.description,
        )

    def describe_all(self, settings: Optional[Settings] = None) -> List[ServiceDescriptor]:
        settings = settings or self.settings()
        descriptors = [self._describe(e, settings) for e in self._entries.values()]
        return sorted(descriptors, key=lambda d: d.priority)

    def enabled_adapters(self, settings: Optional[Settings] = None) -> List[ServiceDescriptor]:
        enabled = [d for d in self.describe_all(settings) if d.enabled]
        logger.debug("enabled location services: %s", [f"{d.key}({d.priority})" for d in enabled])
        return enabled

    def build(
        self,
        descriptor: ServiceDescriptor,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ) -> LocationProvider:
        entry = self._entries[descriptor.key]
        return entry.factory(settings or self.settings(), client)

    def validate(self, settings: Optional[Settings] = None) -> ValidationReport:
        settings = settings or self.settings()
        errors: List[str] = []
        warnings: List[str] = []
        configured: List[str] = []
        for entry in sorted(self._entries.values(), key=lambda e: e.priority):
            flag_on = entry.feature_flag(settings) if entry.feature_flag is not None else True
            if not (flag_on or entry.always_enabled):
                warnings.append(f"{entry.display_name}: service is disabled")
                continue
            if entry.credential is None:
                configured.append(entry.display_name)
                continue
            key = entry.credential(settings)
            if not key:
                errors.append(f"{entry.display_name}: API key is missing")
            elif key.strip().lower().startswith("your_"):
                errors.append(f"{entry.display_name}: API key appears to be a placeholder")
            elif not is_credential_configured(key):
                errors.append(f"{entry.display_name}: API key is too short")
            else:
                configured.append(entry.display_name)
        if not any(e.always_enabled or e.credential is None for e in self._entries.values()):
            warnings.append("no keyless fallback service registered; location search may be limited")
        return ValidationReport(
            is_valid=not errors, errors=errors, warnings=warnings, configured_services=configured
        )

    async def check_health(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout_s: float = 10.0,
    ) -> Dict[str, ServiceHealth]:
        """Probe every enabled service with a one-result search."""
        if client is None:
            async with httpx.AsyncClient(timeout=timeout_s) as own_client:
                return await self.check_health(own_client, timeout_s=timeout_s)

        settings = self.settings()
        health: Dict[str, ServiceHealth] = {}
        for descriptor in self.enabled_adapters(settings):
            started = time.perf_counter()
            try:
                adapter = self.build(descriptor, client, settings)
                resp = await asyncio.wait_for(
                    adapter.search("test", None, radius_km=1.0, max_results=1), timeout=timeout_s
                )
                elapsed = (time.perf_counter() - started) * 1000.0
                health[descriptor.key] = ServiceHealth(
                    status="healthy" if resp.ok else "degraded",
                    checked_at=datetime.now(timezone.utc),
                    response_ms=round(elapsed, 1),
                    error=resp.error,
                )
            except (asyncio.TimeoutError, ValueError, RuntimeError) as e:
                health[descriptor.key] = ServiceHealth(
                    status="unhealthy",
                    checked_at=datetime.now(timezone.utc),
                    error=f"{type(e).__name__}: {e}",
                )
        return health


def _google_places(settings: Settings, client: Optional[httpx.AsyncClient]) -> LocationProvider:
    cfg = GooglePlacesConfig(
        api_key=settings.google_places_api_key,
        language_code=settings.language_code,
        timeout_s=settings.adapter_timeout_s,
        max_retries=settings.max_retries,
    )
    return GooglePlacesProvider(cfg, client)


def _google_geocoding(settings: Settings, client: Optional[httpx.AsyncClient]) -> LocationProvider:
    cfg = GoogleGeocodingConfig(
        api_key=settings.google_geocoding_api_key,
        language_code=settings.language_code,
        timeout_s=settings.adapter_timeout_s,
        max_retries=settings.max_retries,
    )
    return GoogleGeocodingProvider(cfg, client)


def _openstreetmap(settings: Settings, client: Optional[httpx.AsyncClient]) -> LocationProvider:
    cfg = NominatimConfig(
        user_agent=settings.nominatim_user_agent,
        language_code=settings.language_code,
        timeout_s=settings.adapter_timeout_s,
        max_retries=min(settings.max_retries, 1),
    )
    return OpenStreetMapProvider(cfg, client)


def _mapbox(settings: Settings, client: Optional[httpx.AsyncClient]) -> LocationProvider:
    cfg = MapboxConfig(
        access_token=settings.mapbox_api_key,
        language_code=settings.language_code,
        timeout_s=settings.adapter_timeout_s,
        max_retries=settings.max_retries,
    )
    return MapboxProvider(cfg, client)


def default_registry(settings_loader: Callable[[], Settings] = load_settings) -> ServiceRegistry:
    registry = ServiceRegistry(settings_loader)
    registry.register(
        "google_places",
        "Google Places API",
        1,
        _google_places,
        credential=lambda s: s.google_places_api_key,
        feature_flag=lambda s: s.enable_google_places,
        description="Best for business searches with proximity biasing",
    )
    registry.register(
        "google_geocoding",
        "Google Geocoding API",
        2,
        _google_geocoding,
        credential=lambda s: s.google_geocoding_api_key,
        feature_flag=lambda s: s.enable_google_geocoding,
        description="Good for address and general location searches",
    )
    registry.register(
        "openstreetmap",
        "OpenStreetMap",
        3,
        _openstreetmap,
        always_enabled=True,
        description="Free geocoding service, always enabled as fallback",
    )
    registry.register(
        "mapbox",
        "MapBox",
        4,
        _mapbox,
        credential=lambda s: s.mapbox_api_key,
        feature_flag=lambda s: s.enable_mapbox,
        description="Premium geocoding service",
    )
    return registry
