from django.core.management.base import BaseCommand, CommandError

from apps.weathertracker.registry import CityRegistry, PersistenceError
from apps.weathertracker.services import NotFoundError, WeatherService, WeatherServiceError


class Command(BaseCommand):
    help = 'Geocode a place with OpenWeatherMap and start tracking it'

    def add_arguments(self, parser):
        parser.add_argument('name', help='City name, e.g. "London"')
        parser.add_argument('country', help='ISO 3166 country code, e.g. "GB"')
        parser.add_argument('--state', default=None, help='State or region (US only upstream)')

    def handle(self, *args, **options):
        service = WeatherService()
        if not service.is_configured():
            raise CommandError('OPENWEATHER_API_KEY is not configured')

        try:
            location = service.geocode(options['name'], options['country'], options['state'])
        except NotFoundError as e:
            raise CommandError(str(e))
        except WeatherServiceError as e:
            raise CommandError(f'Geocoding failed: {e}')

        try:
            city = CityRegistry().create_city(
                name=location.name,
                country=location.country,
                latitude=location.latitude,
                longitude=location.longitude,
                state=location.state,
            )
        except PersistenceError as e:
            raise CommandError(str(e))

        self.stdout.write(
            self.style.SUCCESS(f'Tracking {city} ({city.latitude}, {city.longitude})')
        )
