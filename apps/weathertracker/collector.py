"""
Weather Collector

Fetches current weather for every tracked city and stores it.

A pass walks the cities one at a time with a fixed delay between them to
respect OpenWeatherMap rate limits. Only one pass runs at a time per
collector; a pass requested while another is running is skipped. A failure on
one city is recorded against that city and never ends the pass.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from django.conf import settings

from .registry import CityRegistry, PersistenceError
from .services import WeatherService, WeatherServiceError

logger = logging.getLogger(__name__)

# Delay between cities (seconds)
PACING_DELAY = 1


@dataclass
class CityOutcome:
    city_name: str
    status: str  # 'success' or 'failed'
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 'success'

    def as_dict(self) -> dict:
        result = {'city': self.city_name, 'status': self.status}
        if self.error is not None:
            result['error'] = self.error
        return result


@dataclass
class CollectionRunReport:
    """Result of one collection pass, in city order."""
    outcomes: list[CityOutcome] = field(default_factory=list)
    skipped: bool = False
    duration: float = 0.0

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    def as_dict(self) -> dict:
        return {
            'skipped': self.skipped,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'duration': round(self.duration, 2),
            'results': [o.as_dict() for o in self.outcomes],
        }


class WeatherCollector:
    """Runs collection passes over all tracked cities."""

    def __init__(
        self,
        service: Optional[WeatherService] = None,
        registry: Optional[CityRegistry] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.service = service or WeatherService()
        self.registry = registry or CityRegistry()
        self.delay = getattr(settings, 'WEATHER_COLLECTION_DELAY', PACING_DELAY)
        self._sleep = sleep
        self._lock = threading.Lock()
        self._collecting = False

    def pause(self):
        """Wait out the pacing delay between two cities."""
        self._sleep(self.delay)

    @property
    def is_collecting(self) -> bool:
        return self._collecting

    def run_collection_pass(self) -> CollectionRunReport:
        """Collect current weather for every city. No-op if a pass is running."""
        with self._lock:
            if self._collecting:
                logger.info("Collector: collection already in progress, skipping")
                return CollectionRunReport(skipped=True)
            self._collecting = True

        try:
            return self._collect_all()
        finally:
            self._collecting = False

    def _collect_all(self) -> CollectionRunReport:
        started = time.monotonic()
        report = CollectionRunReport()

        cities = self.registry.list_cities()
        if not cities:
            logger.info("Collector: no cities to collect weather for")
            return report

        logger.info(f"Collector: collecting weather for {len(cities)} cities")

        for index, city in enumerate(cities):
            if index > 0:
                self.pause()
            report.outcomes.append(self._collect_city(city))

        report.duration = time.monotonic() - started
        logger.info(
            f"Collector: collection complete: {report.succeeded} succeeded, "
            f"{report.failed} failed ({report.duration:.2f}s)"
        )
        return report

    def _collect_city(self, city) -> CityOutcome:
        try:
            data = self.service.get_current(city.latitude, city.longitude)
            self.registry.record_observation(city, data)
        except WeatherServiceError as e:
            # Upstream and transport failures count the same for now
            logger.warning(f"Collector: {city.name} failed ({e.kind.value}): {e}")
            return self._fail(city, e)
        except PersistenceError as e:
            logger.warning(f"Collector: {city.name} could not be stored: {e}")
            return self._fail(city, e)
        except Exception as e:
            logger.exception(f"Collector: unexpected error for {city.name}")
            return self._fail(city, e)

        try:
            self.registry.record_success(city)
        except Exception:
            logger.exception(f"Collector: could not update metadata for {city.name}")
        logger.info(f"Collector: {city.name}: {data.temperature}°C, {data.weather_description}")
        return CityOutcome(city.name, 'success')

    def _fail(self, city, error) -> CityOutcome:
        """Record a failed fetch; metadata errors never abort the pass."""
        try:
            self.registry.record_failure(city)
        except Exception:
            logger.exception(f"Collector: could not update metadata for {city.name}")
        return CityOutcome(city.name, 'failed', str(error))


_default_collector: Optional[WeatherCollector] = None
_default_lock = threading.Lock()


def get_collector() -> WeatherCollector:
    """Process-wide collector shared by the scheduler, views and commands."""
    global _default_collector

    with _default_lock:
        if _default_collector is None:
            _default_collector = WeatherCollector()
        return _default_collector


def run_collection_pass() -> CollectionRunReport:
    return get_collector().run_collection_pass()
