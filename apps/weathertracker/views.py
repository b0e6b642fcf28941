"""JSON endpoints over the city registry and the collector."""

import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .collector import get_collector
from .models import City, WeatherRecord
from .registry import CityRegistry, PersistenceError
from .services import WeatherService, WeatherServiceError

logger = logging.getLogger(__name__)


def _error(message, status):
    return JsonResponse({'success': False, 'error': message}, status=status)


def _city_dict(city: City) -> dict:
    return {
        'id': city.id,
        'name': city.name,
        'country': city.country,
        'state': city.state or None,
        'latitude': city.latitude,
        'longitude': city.longitude,
        'date_added': city.date_added.isoformat(),
    }


def _record_dict(record: WeatherRecord) -> dict:
    return {
        'id': record.id,
        'city_id': record.city_id,
        'temperature': record.temperature,
        'feels_like': record.feels_like,
        'humidity': record.humidity,
        'pressure': record.pressure,
        'wind_speed': record.wind_speed,
        'weather_condition': record.weather_condition,
        'weather_description': record.weather_description,
        'timestamp': record.timestamp.isoformat(),
        'is_forecast': record.is_forecast,
        'forecast_timestamp': record.forecast_timestamp.isoformat() if record.forecast_timestamp else None,
        'created_at': record.created_at.isoformat(),
    }


def _observation_dict(obs) -> dict:
    return {
        'temperature': obs.temperature,
        'feels_like': obs.feels_like,
        'humidity': obs.humidity,
        'pressure': obs.pressure,
        'wind_speed': obs.wind_speed,
        'weather_condition': obs.weather_condition,
        'weather_description': obs.weather_description,
        'timestamp': obs.timestamp.isoformat(),
        'forecast_timestamp': obs.forecast_timestamp.isoformat() if obs.forecast_timestamp else None,
    }


@require_GET
def health(request):
    """Health check with the number of tracked cities."""
    return JsonResponse({'status': 'ok', 'cities': City.objects.count()})


@csrf_exempt
@require_http_methods(['GET', 'POST'])
def cities(request):
    registry = CityRegistry()

    if request.method == 'GET':
        return JsonResponse({
            'success': True,
            'data': [_city_dict(c) for c in City.objects.order_by('-date_added')],
        })

    try:
        body = json.loads(request.body or b'{}')
    except ValueError:
        return _error('Invalid JSON body', 400)

    name = body.get('name')
    country = body.get('country')
    latitude = body.get('latitude')
    longitude = body.get('longitude')
    if not name or not country or latitude is None or longitude is None:
        return _error('Missing required fields: name, country, latitude, longitude', 400)

    try:
        city = registry.create_city(
            name=name,
            country=country,
            latitude=float(latitude),
            longitude=float(longitude),
            state=body.get('state'),
        )
    except (TypeError, ValueError):
        return _error('latitude and longitude must be numbers', 400)
    except PersistenceError as e:
        return _error(str(e), 409)

    return JsonResponse({'success': True, 'data': _city_dict(city)}, status=201)


@csrf_exempt
@require_http_methods(['GET', 'DELETE'])
def city_detail(request, city_id):
    registry = CityRegistry()

    if request.method == 'DELETE':
        if not registry.delete_city(city_id):
            return _error('City not found', 404)
        return JsonResponse({'success': True, 'message': 'City deleted successfully'})

    city = registry.get_city(city_id)
    if city is None:
        return _error('City not found', 404)
    return JsonResponse({'success': True, 'data': _city_dict(city)})


@require_GET
def current_weather(request, city_id):
    """Live conditions (through the response cache) plus the latest stored record."""
    registry = CityRegistry()
    city = registry.get_city(city_id)
    if city is None:
        return _error('City not found', 404)

    try:
        data = WeatherService().get_current(city.latitude, city.longitude)
    except WeatherServiceError as e:
        logger.warning(f"Current weather failed for {city.name}: {e}")
        return _error(str(e), 502)

    latest = registry.latest_observation(city)
    return JsonResponse({
        'success': True,
        'data': {
            'current': _observation_dict(data),
            'from_cache': data.from_cache,
            'latest_record': _record_dict(latest) if latest else None,
            'city': _city_dict(city),
        },
    })


@require_GET
def history(request, city_id):
    registry = CityRegistry()
    city = registry.get_city(city_id)
    if city is None:
        return _error('City not found', 404)

    try:
        days = int(request.GET.get('days', 7))
    except ValueError:
        return _error('days must be an integer', 400)

    records = registry.history(city, days=days)
    return JsonResponse({'success': True, 'data': [_record_dict(r) for r in records]})


@require_GET
def forecast(request, city_id):
    registry = CityRegistry()
    city = registry.get_city(city_id)
    if city is None:
        return _error('City not found', 404)

    try:
        data = WeatherService().get_forecast(city.latitude, city.longitude)
    except WeatherServiceError as e:
        logger.warning(f"Forecast failed for {city.name}: {e}")
        return _error(str(e), 502)

    return JsonResponse({'success': True, 'data': [_observation_dict(o) for o in data]})


@csrf_exempt
@require_POST
def collect(request):
    """Run a collection pass now and return its report."""
    report = get_collector().run_collection_pass()
    if report.skipped:
        return JsonResponse({
            'success': True,
            'message': 'Collection already in progress',
            'data': report.as_dict(),
        })
    return JsonResponse({'success': True, 'data': report.as_dict()})
