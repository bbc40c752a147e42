"""In-process, time-bounded caches for search results and anchor localities."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, TypeVar, Union

from cachetools import TTLCache

from ..providers.base import GeocodedLocation, Locality, UserLocation
from .geo import anchor_bucket

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    created_at: float
    anchor: Optional[UserLocation] = None


class _TTLStore(Generic[T]):
    """
    Lock-guarded cachetools.TTLCache of CacheEntry values. Expired entries are
    dropped lazily on access and on insert; when full, the least recently used goes.
    """

    def __init__(self, ttl_s: float, max_entries: int, clock: Callable[[], float]):
        if ttl_s <= 0:
            raise ValueError("ttl_s must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_s = ttl_s
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._cache: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_s, timer=clock)

    def get(self, key: str) -> Optional[CacheEntry[T]]:
        with self._lock:
            return self._cache.get(key)

    def put(self, key: str, value: T, anchor: Optional[UserLocation] = None) -> None:
        with self._lock:
            self._cache[key] = CacheEntry(value=value, created_at=self._clock(), anchor=anchor)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def keys(self) -> List[str]:
        with self._lock:
            expired = self._cache.expire()
            if expired:
                logger.debug("cache expired %d entries", len(expired))
            return list(self._cache.keys())


class SearchCache:
    """
    Results of successful searches keyed by normalized query, the anchor's
    ~1 km bucket and the search radius.
    """

    def __init__(
        self,
        ttl_s: float = 300.0,
        max_entries: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store: _TTLStore[List[GeocodedLocation]] = _TTLStore(ttl_s, max_entries, clock)

    @staticmethod
    def key(query: str, anchor: Optional[UserLocation], radius_km: float) -> str:
        return f"{query.strip().lower()}_{anchor_bucket(anchor)}_{radius_km:g}"

    def lookup(
        self, query: str, anchor: Optional[UserLocation], radius_km: float
    ) -> Optional[List[GeocodedLocation]]:
        entry = self._store.get(self.key(query, anchor, radius_km))
        return list(entry.value) if entry is not None else None

    def store(
        self,
        query: str,
        anchor: Optional[UserLocation],
        radius_km: float,
        results: List[GeocodedLocation],
    ) -> None:
        self._store.put(self.key(query, anchor, radius_km), list(results), anchor)

    def clear(self) -> None:
        self._store.clear()

    def stats(self) -> Dict[str, Union[int, List[str]]]:
        keys = self._store.keys()
        return {"size": len(keys), "keys": keys}


class LocalityCache:
    """Reverse-geocoded locality per anchor bucket."""

    def __init__(
        self,
        ttl_s: float = 3600.0,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store: _TTLStore[Locality] = _TTLStore(ttl_s, max_entries, clock)

    def get(self, anchor: UserLocation) -> Optional[Locality]:
        entry = self._store.get(anchor_bucket(anchor))
        return entry.value if entry is not None else None

    def put(self, anchor: UserLocation, locality: Locality) -> None:
        self._store.put(anchor_bucket(anchor), locality, anchor)

    def clear(self) -> None:
        self._store.clear()
