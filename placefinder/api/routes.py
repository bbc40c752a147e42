from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from .schemas import (
    CacheStatsResponse,
    Coordinate,
    SearchRequest,
    SearchResponse,
    ServiceHealthResponse,
    ServicesResponse,
)
from ..core.errors import CallerTimeoutError
from ..core.orchestrator import LocationResolver
from ..core.workflow_types import SearchOptions
from ..providers.base import UserLocation

router = APIRouter()


def get_resolver(request: Request) -> LocationResolver:
    return request.app.state.resolver


@router.post("/locations/search", response_model=SearchResponse)
async def search_locations(req: SearchRequest, resolver: LocationResolver = Depends(get_resolver)):
    options = SearchOptions(
        max_results=req.max_results,
        search_radius_km=req.search_radius_km,
        anchor_lat=req.anchor_lat,
        anchor_lon=req.anchor_lon,
        timeout_ms=req.timeout_ms,
        overall_timeout_ms=req.overall_timeout_ms,
        exhaust_all_sources=req.exhaust_all_sources,
    )
    try:
        result = await resolver.resolve(req.query, options)
    except CallerTimeoutError as e:
        raise HTTPException(status_code=504, detail=str(e))
    return SearchResponse.from_domain(result)


@router.put("/user-location", response_model=Coordinate)
async def put_user_location(coord: Coordinate, resolver: LocationResolver = Depends(get_resolver)):
    resolver.set_user_location(
        UserLocation(
            latitude=coord.latitude,
            longitude=coord.longitude,
            accuracy=coord.accuracy,
            timestamp=coord.timestamp,
        )
    )
    return coord


@router.get("/user-location", response_model=Coordinate)
async def get_user_location(resolver: LocationResolver = Depends(get_resolver)):
    loc = resolver.get_user_location()
    if loc is None:
        raise HTTPException(status_code=404, detail="user location not set")
    return Coordinate(
        latitude=loc.latitude, longitude=loc.longitude, accuracy=loc.accuracy, timestamp=loc.timestamp
    )


@router.delete("/cache", status_code=204)
async def clear_cache(resolver: LocationResolver = Depends(get_resolver)):
    resolver.clear_cache()
    return Response(status_code=204)


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(resolver: LocationResolver = Depends(get_resolver)):
    return CacheStatsResponse(**resolver.cache_stats())


@router.get("/services", response_model=ServicesResponse)
async def list_services(resolver: LocationResolver = Depends(get_resolver)):
    return ServicesResponse.from_domain(resolver.services(), resolver.validate_services())


@router.get("/services/health", response_model=Dict[str, ServiceHealthResponse])
async def services_health(resolver: LocationResolver = Depends(get_resolver)):
    health = await resolver.service_health()
    return {key: ServiceHealthResponse.from_domain(h) for key, h in health.items()}
