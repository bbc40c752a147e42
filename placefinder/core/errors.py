from __future__ import annotations


class PlaceFinderError(Exception):
    """Base class for placefinder errors."""


class TransportError(PlaceFinderError):
    """Network, DNS or timeout failure talking to a provider."""


class ProviderError(PlaceFinderError):
    """A provider answered with a structured error (quota, auth, bad request)."""


class ConfigurationError(PlaceFinderError):
    """No location services are enabled."""


class CallerTimeoutError(PlaceFinderError, TimeoutError):
    """The caller's overall search budget was exceeded."""

    def __init__(self, query: str, timeout_ms: float):
        super().__init__(f"location search for {query!r} exceeded {timeout_ms:.0f}ms")
        self.query = query
        self.timeout_ms = timeout_ms


def describe(exc: BaseException, source: str) -> str:
    """Error string recorded in a search result's `errors`."""
    return f"{source} failed: {type(exc).__name__}: {exc}"
