from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
import os


def _env(name: str, default: str = ""):
    return lambda: os.getenv(name, default)


def _env_flag(name: str, default: bool = True):
    return lambda: os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def _env_optional(name: str):
    return lambda: os.getenv(name) or None


class Settings(BaseModel):
    model_config = ConfigDict(validate_default=True)

    # Read at construction time so a fresh Settings() picks up rotated keys.
    google_places_api_key: str = Field(default_factory=_env("GOOGLE_PLACES_API_KEY"))
    google_geocoding_api_key: str = Field(default_factory=_env("GOOGLE_GEOCODING_API_KEY"))
    mapbox_api_key: str = Field(default_factory=_env("MAPBOX_API_KEY"))

    enable_google_places: bool = Field(default_factory=_env_flag("ENABLE_GOOGLE_PLACES"))
    enable_google_geocoding: bool = Field(default_factory=_env_flag("ENABLE_GOOGLE_GEOCODING"))
    enable_mapbox: bool = Field(default_factory=_env_flag("ENABLE_MAPBOX"))

    nominatim_user_agent: str = Field(default_factory=_env("NOMINATIM_USER_AGENT", "placefinder/0.1"))
    language_code: str = Field(default_factory=_env("PLACEFINDER_LANGUAGE", "en"))
    default_country_code: Optional[str] = Field(default_factory=_env_optional("PLACEFINDER_COUNTRY"))

    default_search_radius_km: float = Field(default_factory=_env("DEFAULT_SEARCH_RADIUS", "15"), gt=0)
    max_search_results: int = Field(default_factory=_env("MAX_SEARCH_RESULTS", "10"), ge=1)
    search_timeout_ms: int = Field(default_factory=_env("SEARCH_TIMEOUT_MS", "15000"), gt=0)
    adapter_timeout_s: float = Field(default_factory=_env("ADAPTER_TIMEOUT_S", "10"), gt=0)
    max_retries: int = Field(default_factory=_env("MAX_RETRIES", "2"), ge=0)
    # Separate from the cascade deadline.
    locality_timeout_s: float = Field(default_factory=_env("LOCALITY_TIMEOUT_S", "3"), gt=0)

    cache_ttl_s: float = Field(default_factory=_env("SEARCH_CACHE_TTL_S", "300"), gt=0)
    cache_max_entries: int = Field(default_factory=_env("SEARCH_CACHE_MAX_ENTRIES", "50"), ge=1)

    fallback_latitude: float = Field(default_factory=_env("FALLBACK_LAT", "29.9511"))
    fallback_longitude: float = Field(default_factory=_env("FALLBACK_LON", "-90.0715"))


def is_credential_configured(key: Optional[str]) -> bool:
    """A usable key is present, not a placeholder and long enough to be real."""
    if not key or not isinstance(key, str):
        return False
    if key.strip().lower().startswith("your_"):
        return False
    return len(key) > 10


def load_settings() -> Settings:
    return Settings()
