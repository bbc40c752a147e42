"""Search telemetry: leveled events emitted to an injected observer."""

from __future__ import annotations

import logging
from typing import Any, Protocol

logger = logging.getLogger("placefinder.search")

_LEVELS = {
    "adapter_failed": logging.WARNING,
    "fallback_used": logging.WARNING,
    "configuration_error": logging.WARNING,
    "search_completed": logging.INFO,
    "cache_hit": logging.INFO,
    "early_stop": logging.INFO,
    "second_pass": logging.INFO,
}


class SearchObserver(Protocol):
    def emit(self, event: str, **fields: Any) -> None:
        ...


class LoggingObserver:
    """Forwards events to the `placefinder.search` logger with the fields in `extra`."""

    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def emit(self, event: str, **fields: Any) -> None:
        level = _LEVELS.get(event, logging.DEBUG)
        if not self.log.isEnabledFor(level):
            return
        detail = " ".join(f"{k}={v}" for k, v in fields.items())
        self.log.log(level, "%s %s", event, detail, extra={"event": event, "fields": fields})


class NullObserver:
    def emit(self, event: str, **fields: Any) -> None:
        return None
