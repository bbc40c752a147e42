import pytest

from placefinder.core.config import Settings, is_credential_configured
from placefinder.core.registry import default_registry
from placefinder.providers.google_places import GooglePlacesProvider
from placefinder.providers.openstreetmap import OpenStreetMapProvider

from conftest import FakeAdapter, registry_with, test_settings

REAL_KEY = "AIzaSyA-test-key-0123456789"


@pytest.mark.parametrize(
    "key, expected",
    [
        (REAL_KEY, True),
        ("", False),
        (None, False),
        ("your_google_places_api_key", False),
        ("YOUR_MAPBOX_TOKEN_HERE", False),
        ("short", False),
    ],
)
def test_is_credential_configured(key, expected):
    assert is_credential_configured(key) is expected


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("DEFAULT_SEARCH_RADIUS", "7.5")
    monkeypatch.setenv("MAX_SEARCH_RESULTS", "4")
    monkeypatch.setenv("ENABLE_MAPBOX", "false")
    monkeypatch.setenv("PLACEFINDER_COUNTRY", "ca")
    settings = Settings()
    assert settings.default_search_radius_km == 7.5
    assert settings.max_search_results == 4
    assert settings.enable_mapbox is False
    assert settings.default_country_code == "ca"


def test_only_keyless_service_enabled_without_credentials():
    registry = default_registry(lambda: test_settings())
    enabled = registry.enabled_adapters()
    assert [d.key for d in enabled] == ["openstreetmap"]
    assert [d.key for d in registry.describe_all()] == [
        "google_places",
        "google_geocoding",
        "openstreetmap",
        "mapbox",
    ]


def test_enabled_services_follow_keys_and_flags():
    settings = test_settings(
        google_places_api_key=REAL_KEY,
        google_geocoding_api_key="YOUR_GOOGLE_GEOCODING_API_KEY",
        mapbox_api_key=REAL_KEY,
        enable_mapbox=False,
    )
    registry = default_registry(lambda: settings)
    assert [(d.key, d.priority) for d in registry.enabled_adapters()] == [
        ("google_places", 1),
        ("openstreetmap", 3),
    ]
    mapbox = next(d for d in registry.describe_all() if d.key == "mapbox")
    assert mapbox.credential_present and not mapbox.enabled


def test_rotated_key_is_picked_up_without_restart():
    current = {"settings": test_settings()}
    registry = default_registry(lambda: current["settings"])
    assert "google_places" not in [d.key for d in registry.enabled_adapters()]
    current["settings"] = test_settings(google_places_api_key=REAL_KEY)
    assert "google_places" in [d.key for d in registry.enabled_adapters()]


def test_build_creates_provider_instances():
    settings = test_settings(google_places_api_key=REAL_KEY)
    registry = default_registry(lambda: settings)
    built = {d.key: registry.build(d) for d in registry.enabled_adapters()}
    assert isinstance(built["google_places"], GooglePlacesProvider)
    assert isinstance(built["openstreetmap"], OpenStreetMapProvider)


def test_validate_reports_missing_and_placeholder_keys():
    settings = test_settings(
        google_places_api_key=REAL_KEY,
        google_geocoding_api_key="your_key_goes_here",
        enable_mapbox=True,
    )
    report = default_registry(lambda: settings).validate()
    assert not report.is_valid
    assert "Google Geocoding API: API key appears to be a placeholder" in report.errors
    assert "MapBox: API key is missing" in report.errors
    assert report.configured_services == ["Google Places API", "OpenStreetMap"]


def test_validate_warns_on_disabled_services():
    settings = test_settings(
        google_places_api_key=REAL_KEY,
        enable_google_geocoding=False,
        enable_mapbox=False,
    )
    report = default_registry(lambda: settings).validate()
    assert report.is_valid
    assert "Google Geocoding API: service is disabled" in report.warnings
    assert "MapBox: service is disabled" in report.warnings


@pytest.mark.asyncio
async def test_check_health_probes_enabled_services():
    healthy = FakeAdapter("a")
    degraded = FakeAdapter("b", error="quota exceeded")
    registry = registry_with(test_settings(), ("a", 1, healthy), ("b", 2, degraded))

    health = await registry.check_health(timeout_s=1.0)

    assert health["a"].status == "healthy"
    assert health["b"].status == "degraded"
    assert health["b"].error == "quota exceeded"
    assert healthy.calls[0]["query"] == "test"
    assert healthy.calls[0]["max_results"] == 1


@pytest.mark.asyncio
async def test_check_health_marks_slow_service_unhealthy():
    registry = registry_with(test_settings(), ("slow", 1, FakeAdapter("slow", delay=1.0)))
    health = await registry.check_health(timeout_s=0.05)
    assert health["slow"].status == "unhealthy"
