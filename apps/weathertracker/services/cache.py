"""
Short-lived response cache in front of the OpenWeatherMap API.

Entries live in the 'weather' Django cache alias, each stored together with
the clock reading taken when it was fetched. Validity is decided at read
time against the same clock, so an entry older than the TTL counts as absent
even if the backend has not evicted it yet.
"""

import logging
import time
from typing import Any, Callable, Optional

from django.conf import settings
from django.core.cache import caches

logger = logging.getLogger(__name__)

CACHE_ALIAS = 'weather'
CACHE_KEY_PREFIX = 'weather_'

CURRENT = 'current'
FORECAST = 'forecast'


class ResponseCache:
    """Time-bounded memoization of provider responses keyed by (kind, lat, lon)."""

    def __init__(
        self,
        ttl: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        alias: str = CACHE_ALIAS,
    ):
        self.ttl = ttl if ttl is not None else getattr(settings, 'WEATHER_CACHE_TTL', 600)
        self.clock = clock
        self.backend = caches[alias]

    def _cache_key(self, kind: str, lat: float, lon: float) -> str:
        # Exact coordinates, no rounding: callers pass the stored city values
        return f"{CACHE_KEY_PREFIX}{kind}_{lat!r}_{lon!r}"

    def get(self, kind: str, lat: float, lon: float) -> Optional[Any]:
        entry = self.backend.get(self._cache_key(kind, lat, lon))
        if entry is None:
            return None

        payload, fetched_at = entry
        if self.clock() - fetched_at >= self.ttl:
            logger.debug(f"Cache expired for {kind} ({lat}, {lon})")
            return None

        logger.debug(f"Cache hit for {kind} ({lat}, {lon})")
        return payload

    def put(self, kind: str, lat: float, lon: float, payload: Any) -> None:
        self.backend.set(
            self._cache_key(kind, lat, lon),
            (payload, self.clock()),
            self.ttl,
        )

    def clear(self) -> None:
        """Drop every entry (test isolation or deliberate invalidation)."""
        self.backend.clear()
