from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime

from ..core.registry import ServiceDescriptor, ServiceHealth, ValidationReport
from ..core.workflow_types import LocationSearchResult
from ..providers.base import GeocodedLocation

HealthStatus = Literal["healthy", "degraded", "unhealthy"]


class Coordinate(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: Optional[float] = Field(default=None, ge=0)
    timestamp: Optional[float] = None


class SearchRequest(BaseModel):
    query: str
    max_results: int = Field(default=10, ge=1, le=50)
    search_radius_km: float = Field(default=15.0, gt=0)
    anchor_lat: Optional[float] = Field(default=None, ge=-90, le=90)
    anchor_lon: Optional[float] = Field(default=None, ge=-180, le=180)
    timeout_ms: int = Field(default=15000, gt=0)
    overall_timeout_ms: Optional[int] = Field(default=None, gt=0)
    exhaust_all_sources: bool = False

    @model_validator(mode="after")
    def _anchor_pair(self):
        if (self.anchor_lat is None) != (self.anchor_lon is None):
            raise ValueError("anchor_lat and anchor_lon must be given together")
        return self


class Location(BaseModel):
    latitude: float
    longitude: float
    address: str
    place_name: str
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    place_type: Optional[str] = None
    relevance: float
    distance_km: Optional[float] = None
    source: str
    place_id: Optional[str] = None
    composite_score: float
    extras: Dict[str, Any] = {}

    @classmethod
    def from_domain(cls, loc: GeocodedLocation) -> "Location":
        return cls(
            latitude=loc.latitude,
            longitude=loc.longitude,
            address=loc.address,
            place_name=loc.place_name,
            city=loc.city,
            state=loc.state,
            country=loc.country,
            country_code=loc.country_code,
            place_type=loc.place_type,
            relevance=loc.relevance,
            distance_km=loc.distance_km,
            source=loc.source,
            place_id=loc.place_id,
            composite_score=round(loc.composite_score, 2),
            extras=dict(loc.extras),
        )


class SearchResponse(BaseModel):
    query: str
    locations: List[Location]
    best_match: Optional[Location] = None
    total_results: int
    search_radius_km: float
    errors: Optional[List[str]] = None
    from_cache: bool = False
    fallback_used: bool = False

    @classmethod
    def from_domain(cls, result: LocationSearchResult) -> "SearchResponse":
        return cls(
            query=result.query,
            locations=[Location.from_domain(loc) for loc in result.locations],
            best_match=Location.from_domain(result.best_match) if result.best_match else None,
            total_results=result.total_results,
            search_radius_km=result.search_radius_km,
            errors=result.errors,
            from_cache=result.from_cache,
            fallback_used=result.fallback_used,
        )


class CacheStatsResponse(BaseModel):
    size: int
    keys: List[str]


class Service(BaseModel):
    key: str
    display_name: str
    priority: int
    enabled: bool
    credential_present: bool
    description: str = ""

    @classmethod
    def from_domain(cls, d: ServiceDescriptor) -> "Service":
        return cls(
            key=d.key,
            display_name=d.display_name,
            priority=d.priority,
            enabled=d.enabled,
            credential_present=d.credential_present,
            description=d.description,
        )


class ServicesResponse(BaseModel):
    services: List[Service]
    is_valid: bool
    errors: List[str] = []
    warnings: List[str] = []
    configured_services: List[str] = []

    @classmethod
    def from_domain(cls, descriptors: List[ServiceDescriptor], report: ValidationReport) -> "ServicesResponse":
        return cls(
            services=[Service.from_domain(d) for d in descriptors],
            is_valid=report.is_valid,
            errors=report.errors,
            warnings=report.warnings,
            configured_services=report.configured_services,
        )


class ServiceHealthResponse(BaseModel):
    status: HealthStatus
    checked_at: datetime
    response_ms: Optional[float] = None
    error: Optional[str] = None

    @classmethod
    def from_domain(cls, h: ServiceHealth) -> "ServiceHealthResponse":
        return cls(status=h.status, checked_at=h.checked_at, response_ms=h.response_ms, error=h.error)
