# Shared httpx plumbing for the provider adapters.
# placefinder/providers/http.py
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional

import httpx

from ..core.errors import ProviderError, TransportError
from .base import ProviderResponse, UserLocation

logger = logging.getLogger(__name__)

_TRANSIENT_STATUS = (429, 500, 502, 503, 504)


def _safe_get(d: Any, path: List[Any], default=None):
    cur: Any = d
    for key in path:
        if isinstance(cur, dict) and key in cur:
            cur = cur[key]
        elif isinstance(cur, list) and isinstance(key, int) and -len(cur) <= key < len(cur):
            cur = cur[key]
        else:
            return default
    return cur


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200]
    message = (
        _safe_get(data, ["error", "message"])
        or _safe_get(data, ["error_message"])
        or _safe_get(data, ["message"])
        or _safe_get(data, ["error"])
    )
    return str(message) if message else resp.text[:200]


class HttpProvider:
    """
    Base for adapters that talk to a JSON HTTP API.

    Subclasses implement `_search` and may raise TransportError/ProviderError
    (or fail on a malformed payload); `search` converts every such failure into
    a ProviderResponse so nothing escapes the adapter boundary. A `_search` that
    got a partial answer may return a ProviderResponse carrying both.

    The httpx client is either injected (shared by the resolver) or opened with
    'async with'.
    """

    provider_name = "http"

    def __init__(self, cfg, client: Optional[httpx.AsyncClient] = None):
        self.cfg = cfg
        self._client = client
        self._owns_client = False

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.cfg.timeout_s)
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                f"{type(self).__name__} must be used with 'async with' or provide a client."
            )
        return self._client

    async def _request_with_retries(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Retries on transient failures (429/5xx/timeouts) with exponential backoff + jitter.
        Other 4xx answers are provider errors and are not retried.
        """
        last_err: Optional[Exception] = None
        for attempt in range(self.cfg.max_retries + 1):
            try:
                resp = await self.client.request(
                    method, url, headers=headers, json=json, params=params, timeout=self.cfg.timeout_s
                )
                if resp.status_code in _TRANSIENT_STATUS:
                    # transient / quota / backend issues
                    raise httpx.HTTPStatusError(
                        f"transient status {resp.status_code}",
                        request=resp.request,
                        response=resp,
                    )
                if resp.status_code >= 400:
                    raise ProviderError(f"HTTP {resp.status_code}: {_error_message(resp)}")
                return resp.json()
            except (httpx.TimeoutException, httpx.NetworkError, httpx.HTTPStatusError) as e:
                last_err = e
                if attempt >= self.cfg.max_retries:
                    break
                backoff = self.cfg.base_backoff_s * (2 ** attempt)
                jitter = random.random() * 0.25
                await asyncio.sleep(backoff + jitter)
        raise TransportError(f"request failed after retries: {last_err}") from last_err

    async def search(
        self,
        query: str,
        anchor: Optional[UserLocation],
        *,
        radius_km: float,
        max_results: int,
        country_code: Optional[str] = None,
    ) -> ProviderResponse:
        try:
            candidates = await self._search(
                query, anchor, radius_km=radius_km, max_results=max_results, country_code=country_code
            )
        except (TransportError, ProviderError) as e:
            logger.warning("%s search failed: %s", self.provider_name, e)
            return ProviderResponse.failed(f"{self.provider_name}: {e}")
        except httpx.HTTPError as e:
            logger.warning("%s transport error: %s", self.provider_name, e)
            return ProviderResponse.failed(f"{self.provider_name}: transport error: {e}")
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("%s returned a malformed response: %s", self.provider_name, e)
            return ProviderResponse.failed(f"{self.provider_name}: malformed response: {e}")
        if isinstance(candidates, ProviderResponse):
            return ProviderResponse(candidates=candidates.candidates[:max_results], error=candidates.error)
        return ProviderResponse(candidates=candidates[:max_results])

    async def _search(
        self,
        query: str,
        anchor: Optional[UserLocation],
        *,
        radius_km: float,
        max_results: int,
        country_code: Optional[str],
    ) -> list:
        raise NotImplementedError
