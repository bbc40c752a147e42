from __future__ import annotations

import logging
import threading
from typing import Optional

from ..providers.base import UserLocation

logger = logging.getLogger(__name__)


class UserLocationStore:
    """Last-known user coordinate. Last write wins; no history is kept."""

    def __init__(self, initial: Optional[UserLocation] = None):
        self._lock = threading.Lock()
        self._location = initial

    def set(self, location: UserLocation) -> None:
        with self._lock:
            self._location = location
        logger.debug("user location set to %.5f,%.5f", location.latitude, location.longitude)

    def get(self) -> Optional[UserLocation]:
        with self._lock:
            return self._location

    def clear(self) -> None:
        with self._lock:
            self._location = None
