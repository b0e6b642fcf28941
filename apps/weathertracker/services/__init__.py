from .cache import ResponseCache
from .weather import (
    ErrorKind,
    GeocodeResult,
    NotFoundError,
    TransportError,
    UpstreamError,
    WeatherObservation,
    WeatherService,
    WeatherServiceError,
)

__all__ = [
    'ErrorKind',
    'GeocodeResult',
    'NotFoundError',
    'ResponseCache',
    'TransportError',
    'UpstreamError',
    'WeatherObservation',
    'WeatherService',
    'WeatherServiceError',
]
