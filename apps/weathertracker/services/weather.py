"""
OpenWeatherMap API Integration Service

Provides the data the collector stores for each tracked city:
- Current weather - /data/2.5/weather (one observation)
- Forecast - /data/2.5/forecast (5 days in 3-hour steps)
- Geocoding - /geo/1.0/direct (place name to coordinates)

Current and forecast responses go through a 10-minute response cache to stay
within API rate limits.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from enum import Enum
from typing import Optional

import httpx
from django.conf import settings
from django.utils import timezone

from .cache import CURRENT, FORECAST, ResponseCache

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = 'Network error: Unable to reach OpenWeatherMap API'


class ErrorKind(Enum):
    """What went wrong talking to the provider."""
    UPSTREAM = 'upstream'
    TRANSPORT = 'transport'
    NOT_FOUND = 'not_found'
    PARSE = 'parse'


class WeatherServiceError(Exception):
    """Base exception for weather service errors."""
    kind = ErrorKind.UPSTREAM

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class UpstreamError(WeatherServiceError):
    """The provider answered with a non-success status."""
    kind = ErrorKind.UPSTREAM

    def __init__(self, status_code: int, provider_message: Optional[str] = None):
        message = f"OpenWeatherMap API error: {status_code}"
        if provider_message:
            message = f"{message} - {provider_message}"
        super().__init__(message)
        self.status_code = status_code
        self.provider_message = provider_message


class TransportError(WeatherServiceError):
    """The request never reached the provider (timeout, DNS, refused)."""
    kind = ErrorKind.TRANSPORT

    def __init__(self):
        super().__init__(NETWORK_ERROR_MESSAGE)


class NotFoundError(WeatherServiceError):
    """Geocoding returned no matches."""
    kind = ErrorKind.NOT_FOUND


@dataclass
class WeatherObservation:
    """Normalized weather record for one point in time."""
    temperature: float  # Celsius
    feels_like: Optional[float]
    humidity: Optional[int]  # percent
    pressure: Optional[int]  # hPa
    wind_speed: Optional[float]  # m/s
    weather_condition: str  # "Clear", "Clouds", ...
    weather_description: str  # "clear sky"
    timestamp: datetime
    is_forecast: bool = False
    forecast_timestamp: Optional[datetime] = None  # fetch instant, forecasts only
    from_cache: bool = False


@dataclass
class GeocodeResult:
    """Best match for a free-text place."""
    latitude: float
    longitude: float
    name: str
    country: str
    state: Optional[str] = None


class WeatherService:
    """Client for the OpenWeatherMap current, forecast and geocoding APIs."""

    def __init__(self, cache: Optional[ResponseCache] = None):
        self.api_key = getattr(settings, 'OPENWEATHER_API_KEY', '')
        self.base_url = getattr(settings, 'OPENWEATHER_BASE_URL', 'https://api.openweathermap.org/data/2.5')
        self.geo_url = getattr(settings, 'OPENWEATHER_GEO_URL', 'https://api.openweathermap.org/geo/1.0')
        self.timeout = getattr(settings, 'WEATHER_REQUEST_TIMEOUT', 5.0)
        self.cache = cache or ResponseCache()

    def get_current(self, lat: float, lon: float) -> WeatherObservation:
        """Current conditions at (lat, lon), served from cache when fresh."""
        cached_data = self.cache.get(CURRENT, lat, lon)
        if cached_data is not None:
            cached_data.from_cache = True
            logger.debug(f"Current weather cache hit for ({lat}, {lon})")
            return cached_data

        logger.info(f"Fetching current weather for ({lat}, {lon}) from OpenWeatherMap")
        data = self._fetch_current_from_api(lat, lon)
        self.cache.put(CURRENT, lat, lon, data)
        return data

    def get_forecast(self, lat: float, lon: float) -> list[WeatherObservation]:
        """5-day / 3-hour forecast at (lat, lon), served from cache when fresh."""
        cached_data = self.cache.get(FORECAST, lat, lon)
        if cached_data is not None:
            for entry in cached_data:
                entry.from_cache = True
            logger.debug(f"Forecast cache hit for ({lat}, {lon})")
            return cached_data

        logger.info(f"Fetching forecast for ({lat}, {lon}) from OpenWeatherMap")
        data = self._fetch_forecast_from_api(lat, lon)
        self.cache.put(FORECAST, lat, lon, data)
        return data

    def geocode(self, name: str, country: str, state: Optional[str] = None) -> GeocodeResult:
        """Resolve a place name to coordinates; first match wins."""
        query = ','.join(part for part in (name, state, country) if part)
        payload = self._request(
            f"{self.geo_url}/direct",
            {'q': query, 'limit': 1},
        )

        if not payload:
            raise NotFoundError(f"Location not found: {query}")

        try:
            match = payload[0]
            return GeocodeResult(
                latitude=float(match['lat']),
                longitude=float(match['lon']),
                name=match.get('name', name),
                country=match.get('country', country),
                state=match.get('state') or None,
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to parse geocoding response: {e}")
            raise WeatherServiceError(f"Failed to parse geocoding data: {e}", ErrorKind.PARSE)

    def clear_cache(self) -> None:
        """Clear cached current and forecast responses."""
        self.cache.clear()

    def is_configured(self) -> bool:
        """Check if the weather service is properly configured."""
        return bool(self.api_key)

    def _fetch_current_from_api(self, lat: float, lon: float) -> WeatherObservation:
        data = self._request(
            f"{self.base_url}/weather",
            {'lat': lat, 'lon': lon, 'units': 'metric'},
        )
        try:
            return self._parse_observation(data)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Failed to parse current weather response: {e}")
            raise WeatherServiceError(f"Failed to parse weather data: {e}", ErrorKind.PARSE)

    def _fetch_forecast_from_api(self, lat: float, lon: float) -> list[WeatherObservation]:
        data = self._request(
            f"{self.base_url}/forecast",
            {'lat': lat, 'lon': lon, 'units': 'metric'},
        )
        fetched_at = timezone.now()
        try:
            return [
                self._parse_observation(item, forecast_timestamp=fetched_at)
                for item in data['list']
            ]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Failed to parse forecast response: {e}")
            raise WeatherServiceError(f"Failed to parse forecast data: {e}", ErrorKind.PARSE)

    def _request(self, url: str, params: dict):
        """GET a JSON payload, classifying failures as upstream or transport."""
        params = {**params, 'appid': self.api_key}

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(url, params=params)
        except httpx.RequestError as e:
            logger.warning(f"OpenWeatherMap request to {url} failed: {e!r}")
            raise TransportError() from None

        if response.status_code != 200:
            raise UpstreamError(response.status_code, self._provider_message(response))

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"OpenWeatherMap returned a non-JSON body from {url}: {e}")
            raise WeatherServiceError(f"Invalid response from OpenWeatherMap: {e}", ErrorKind.PARSE)

    @staticmethod
    def _provider_message(response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            return body.get('message')
        return None

    @staticmethod
    def _parse_observation(item: dict, forecast_timestamp: Optional[datetime] = None) -> WeatherObservation:
        """Map one OpenWeatherMap entry (current or forecast step) to an observation."""
        main = item['main']
        weather = item['weather'][0]
        wind = item.get('wind') or {}

        return WeatherObservation(
            temperature=main['temp'],
            feels_like=main.get('feels_like'),
            humidity=main.get('humidity'),
            pressure=main.get('pressure'),
            wind_speed=wind.get('speed'),
            weather_condition=weather.get('main', ''),
            weather_description=weather.get('description', ''),
            timestamp=datetime.fromtimestamp(item['dt'], tz=dt_timezone.utc),
            is_forecast=forecast_timestamp is not None,
            forecast_timestamp=forecast_timestamp,
        )
