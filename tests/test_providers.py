import json

import httpx
import pytest

from placefinder.providers.base import ReverseGeocoder, UserLocation
from placefinder.providers.fallback import FallbackProvider
from placefinder.providers.google_geocoding import GoogleGeocodingConfig, GoogleGeocodingProvider
from placefinder.providers.google_places import (
    GooglePlacesConfig,
    GooglePlacesProvider,
    _extract_address_components,
)
from placefinder.providers.mapbox import MapboxConfig, MapboxProvider
from placefinder.providers.openstreetmap import NominatimConfig, OpenStreetMapProvider

NOLA = UserLocation(29.9511, -90.0715)


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def places_payload(*places):
    return {
        "places": [
            {
                "id": pid,
                "displayName": {"text": name},
                "formattedAddress": address,
                "location": {"latitude": lat, "longitude": lng},
                "types": ["cafe", "food", "point_of_interest"],
                "rating": 4.5,
            }
            for pid, name, address, lat, lng in places
        ]
    }


def test_extract_address_components():
    assert _extract_address_components("123 Main St, New Orleans, LA 70112, USA") == (
        "New Orleans",
        "LA",
        "USA",
    )
    assert _extract_address_components("") == (None, None, None)


def test_google_places_requires_key():
    with pytest.raises(ValueError):
        GooglePlacesProvider(GooglePlacesConfig(api_key=""))


@pytest.mark.asyncio
async def test_google_places_text_then_nearby_top_up():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append((request.url.path, body, request.headers))
        if request.url.path.endswith("places:searchText"):
            return httpx.Response(
                200,
                json=places_payload(
                    ("p1", "Coffee Shop", "1 Canal St, New Orleans, LA 70112, USA", 29.952, -90.072)
                ),
            )
        return httpx.Response(
            200,
            json=places_payload(
                ("p1", "Coffee Shop", "1 Canal St, New Orleans, LA 70112, USA", 29.952, -90.072),
                ("p2", "Cafe Beignet", "2 Royal St, New Orleans, LA 70130, USA", 29.956, -90.066),
            ),
        )

    async with mock_client(handler) as client:
        provider = GooglePlacesProvider(GooglePlacesConfig(api_key="test-key-123456", max_retries=0), client)
        resp = await provider.search("coffee shop", NOLA, radius_km=10, max_results=5, country_code="us")

    assert resp.ok
    assert [c.place_id for c in resp.candidates] == ["p1", "p2"]
    first = resp.candidates[0]
    assert first.source == "google_places"
    assert first.relevance == 1.0
    assert first.city == "New Orleans"
    assert first.state == "LA"
    assert first.place_type == "cafe"
    assert first.distance_km < 1
    assert first.extras["rating"] == 4.5
    assert first.extras["strategy"] == "text"
    assert resp.candidates[1].extras["strategy"] == "nearby"

    text_path, text_body, headers = requests[0]
    assert headers["X-Goog-Api-Key"] == "test-key-123456"
    assert text_body["rankPreference"] == "DISTANCE"
    assert text_body["locationBias"]["circle"]["radius"] == 10000.0
    assert text_body["includedType"] == "cafe"
    assert text_body["regionCode"] == "US"
    nearby_path, nearby_body, _ = requests[1]
    assert nearby_path.endswith("places:searchNearby")
    assert nearby_body["maxResultCount"] == 4


@pytest.mark.asyncio
async def test_google_places_keeps_text_results_when_nearby_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("places:searchText"):
            return httpx.Response(
                200,
                json=places_payload(
                    ("p1", "Coffee Shop", "1 Canal St, New Orleans, LA 70112, USA", 29.952, -90.072)
                ),
            )
        return httpx.Response(400, json={"error": {"status": "INVALID_ARGUMENT", "message": "bad type"}})

    async with mock_client(handler) as client:
        provider = GooglePlacesProvider(GooglePlacesConfig(api_key="test-key-123456", max_retries=0), client)
        resp = await provider.search("coffee shop", NOLA, radius_km=10, max_results=5)

    assert [c.place_id for c in resp.candidates] == ["p1"]
    assert not resp.ok
    assert resp.error.startswith("google_places: nearby search failed")
    assert "HTTP 400: bad type" in resp.error


@pytest.mark.asyncio
async def test_google_places_without_anchor_skips_nearby():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200, json=places_payload(("p1", "Museum", "Paris, France", 48.86, 2.33)))

    async with mock_client(handler) as client:
        provider = GooglePlacesProvider(GooglePlacesConfig(api_key="test-key-123456"), client)
        resp = await provider.search("museum", None, radius_km=10, max_results=5)

    assert len(calls) == 1
    assert resp.candidates[0].distance_km is None


@pytest.mark.asyncio
async def test_google_places_client_error_is_soft():
    def handler(request):
        return httpx.Response(403, json={"error": {"status": "PERMISSION_DENIED", "message": "bad key"}})

    async with mock_client(handler) as client:
        provider = GooglePlacesProvider(GooglePlacesConfig(api_key="test-key-123456"), client)
        resp = await provider.search("museum", None, radius_km=10, max_results=5)

    assert not resp.ok
    assert resp.candidates == []
    assert "HTTP 403" in resp.error
    assert "bad key" in resp.error


@pytest.mark.asyncio
async def test_transient_status_is_retried():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(503, text="unavailable")

    async with mock_client(handler) as client:
        provider = GooglePlacesProvider(
            GooglePlacesConfig(api_key="test-key-123456", max_retries=1, base_backoff_s=0.0), client
        )
        resp = await provider.search("museum", None, radius_km=10, max_results=5)

    assert len(calls) == 2
    assert resp.error.startswith("google_places: request failed after retries")


@pytest.mark.asyncio
async def test_network_error_is_soft():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with mock_client(handler) as client:
        provider = MapboxProvider(MapboxConfig(access_token="pk.test-token-123", max_retries=0), client)
        resp = await provider.search("museum", None, radius_km=10, max_results=5)

    assert not resp.ok
    assert "connection refused" in resp.error


def geocode_result(name, lat, lng, state="Louisiana", state_code="LA"):
    return {
        "formatted_address": f"{name}, New Orleans, LA, USA",
        "geometry": {"location": {"lat": lat, "lng": lng}, "location_type": "ROOFTOP"},
        "place_id": f"g-{name}",
        "types": ["street_address"],
        "address_components": [
            {"long_name": "New Orleans", "short_name": "New Orleans", "types": ["locality", "political"]},
            {"long_name": state, "short_name": state_code, "types": ["administrative_area_level_1"]},
            {"long_name": "United States", "short_name": "US", "types": ["country", "political"]},
        ],
    }


@pytest.mark.asyncio
async def test_google_geocoding_forward_search():
    seen = {}

    def handler(request):
        seen.update(dict(request.url.params))
        return httpx.Response(200, json={"status": "OK", "results": [geocode_result("1 Canal St", 29.95, -90.07)]})

    async with mock_client(handler) as client:
        provider = GoogleGeocodingProvider(GoogleGeocodingConfig(api_key="test-key-123456"), client)
        resp = await provider.search("1 Canal St", NOLA, radius_km=10, max_results=5, country_code="US")

    assert seen["address"] == "1 Canal St"
    assert seen["components"] == "country:US"
    assert seen["region"] == "us"
    assert "|" in seen["bounds"]
    loc = resp.candidates[0]
    assert loc.place_name == "1 Canal St"
    assert loc.city == "New Orleans"
    assert loc.state == "Louisiana"
    assert loc.country_code == "US"
    assert loc.place_type == "place"


@pytest.mark.asyncio
async def test_google_geocoding_statuses():
    statuses = iter([{"status": "ZERO_RESULTS", "results": []}, {"status": "REQUEST_DENIED", "error_message": "denied"}])

    def handler(request):
        return httpx.Response(200, json=next(statuses))

    async with mock_client(handler) as client:
        provider = GoogleGeocodingProvider(GoogleGeocodingConfig(api_key="test-key-123456"), client)
        empty = await provider.search("nowhere", None, radius_km=10, max_results=5)
        denied = await provider.search("nowhere", None, radius_km=10, max_results=5)

    assert empty.ok and empty.candidates == []
    assert "REQUEST_DENIED" in denied.error


@pytest.mark.asyncio
async def test_google_geocoding_reverse_locality():
    def handler(request):
        assert request.url.params["latlng"] == "29.9511,-90.0715"
        return httpx.Response(200, json={"status": "OK", "results": [geocode_result("New Orleans", 29.95, -90.07)]})

    async with mock_client(handler) as client:
        provider = GoogleGeocodingProvider(GoogleGeocodingConfig(api_key="test-key-123456"), client)
        assert isinstance(provider, ReverseGeocoder)
        locality = await provider.reverse_locality(29.9511, -90.0715)

    assert locality.city == "New Orleans"
    assert locality.state_code == "LA"
    assert locality.country_code == "US"
    assert locality.label == "New Orleans LA"


def nominatim_item(name, lat, lon, osm_id=123):
    return {
        "osm_type": "node",
        "osm_id": osm_id,
        "lat": str(lat),
        "lon": str(lon),
        "name": name,
        "display_name": f"{name}, French Quarter, New Orleans, Louisiana, United States",
        "class": "amenity",
        "type": "cafe",
        "address": {"city": "New Orleans", "state": "Louisiana", "country": "United States", "country_code": "us"},
    }


@pytest.mark.asyncio
async def test_openstreetmap_retries_unbounded_when_box_is_empty():
    seen = []

    def handler(request):
        params = dict(request.url.params)
        seen.append(params)
        assert request.headers["User-Agent"] == "placefinder-tests"
        if params.get("bounded") == "1":
            return httpx.Response(200, json=[])
        return httpx.Response(200, json=[nominatim_item("Cafe du Monde", 29.9575, -90.0618)])

    async with mock_client(handler) as client:
        provider = OpenStreetMapProvider(NominatimConfig(user_agent="placefinder-tests"), client)
        resp = await provider.search("cafe du monde", NOLA, radius_km=5, max_results=3, country_code="US")

    assert len(seen) == 2
    assert "viewbox" in seen[0] and "viewbox" not in seen[1]
    assert seen[0]["countrycodes"] == "us"
    loc = resp.candidates[0]
    assert loc.place_id == "osm:node:123"
    assert loc.place_type == "cafe"
    assert loc.country_code == "US"
    assert loc.city == "New Orleans"
    assert loc.relevance == 1.0


@pytest.mark.asyncio
async def test_openstreetmap_malformed_payload_is_soft():
    def handler(request):
        return httpx.Response(200, json={"unexpected": True})

    async with mock_client(handler) as client:
        provider = OpenStreetMapProvider(client=client)
        resp = await provider.search("anything", None, radius_km=5, max_results=3)

    assert "malformed response" in resp.error


@pytest.mark.asyncio
async def test_openstreetmap_reverse_locality():
    def handler(request):
        assert request.url.path == "/reverse"
        return httpx.Response(
            200,
            json={
                "address": {
                    "city": "New Orleans",
                    "state": "Louisiana",
                    "ISO3166-2-lvl4": "US-LA",
                    "country": "United States",
                    "country_code": "us",
                }
            },
        )

    async with mock_client(handler) as client:
        locality = await OpenStreetMapProvider(client=client).reverse_locality(29.9511, -90.0715)

    assert locality.state_code == "LA"
    assert locality.country_code == "US"


@pytest.mark.asyncio
async def test_openstreetmap_reverse_failure_returns_none():
    def handler(request):
        return httpx.Response(200, json={"error": "Unable to geocode"})

    async with mock_client(handler) as client:
        assert await OpenStreetMapProvider(client=client).reverse_locality(0.0, 0.0) is None


@pytest.mark.asyncio
async def test_mapbox_search():
    seen = {}

    def handler(request):
        seen["raw_path"] = request.url.raw_path
        seen.update(dict(request.url.params))
        return httpx.Response(
            200,
            json={
                "features": [
                    {
                        "id": "poi.1",
                        "text": "Coffee Shop",
                        "place_name": "Coffee Shop, 1 Canal St, New Orleans, Louisiana 70112, United States",
                        "center": [-90.072, 29.952],
                        "properties": {"category": "coffee, cafe, tea"},
                        "relevance": 0.98,
                        "context": [
                            {"id": "place.1", "text": "New Orleans"},
                            {"id": "region.1", "text": "Louisiana", "short_code": "US-LA"},
                            {"id": "country.1", "text": "United States", "short_code": "us"},
                        ],
                    }
                ]
            },
        )

    async with mock_client(handler) as client:
        provider = MapboxProvider(MapboxConfig(access_token="pk.test-token-123"), client)
        resp = await provider.search("coffee shop", NOLA, radius_km=5, max_results=20, country_code="US")

    assert b"/coffee%20shop.json" in seen["raw_path"]
    assert seen["proximity"] == "-90.0715,29.9511"
    assert seen["country"] == "us"
    assert seen["limit"] == "10"
    loc = resp.candidates[0]
    assert (loc.latitude, loc.longitude) == (29.952, -90.072)
    assert loc.city == "New Orleans"
    assert loc.state == "Louisiana"
    assert loc.country_code == "US"
    assert loc.place_type == "cafe"


@pytest.mark.asyncio
async def test_mapbox_missing_features_is_provider_error():
    def handler(request):
        return httpx.Response(200, json={"message": "Not Authorized - Invalid Token"})

    async with mock_client(handler) as client:
        provider = MapboxProvider(MapboxConfig(access_token="pk.test-token-123"), client)
        resp = await provider.search("coffee", None, radius_km=5, max_results=5)

    assert resp.error == "mapbox: Not Authorized - Invalid Token"


def test_fallback_candidate():
    provider = FallbackProvider()
    anchored = provider.locate("Coffee", NOLA)
    assert anchored.source == "fallback"
    assert anchored.place_name == "Coffee"
    assert anchored.distance_km == 0.0
    assert anchored.extras["low_confidence"] is True
    unanchored = provider.locate("Coffee", None)
    assert (unanchored.latitude, unanchored.longitude) == (29.9511, -90.0715)
    assert unanchored.distance_km is None
