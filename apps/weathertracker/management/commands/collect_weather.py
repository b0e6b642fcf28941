"""
Management command to run a weather collection pass manually.

Usage:
    python manage.py collect_weather              # Current weather for all cities
    python manage.py collect_weather --forecast   # Also store the 5-day forecast
"""


from django.core.management.base import BaseCommand


class Command(BaseCommand):
    help = 'Collect current weather for all tracked cities'

    def add_arguments(self, parser):
        parser.add_argument(
            '--forecast',
            action='store_true',
            help='Also fetch and store the 5-day forecast for each city',
        )

    def handle(self, *args, **options):
        from apps.weathertracker.collector import get_collector

        collector = get_collector()
        report = collector.run_collection_pass()

        if report.skipped:
            self.stdout.write(self.style.WARNING('Collection already in progress, skipped'))
            return
        if not report.outcomes:
            self.stdout.write('No cities to collect weather for')
            return

        for outcome in report.outcomes:
            if outcome.succeeded:
                self.stdout.write(self.style.SUCCESS(f'  ✓ {outcome.city_name}'))
            else:
                self.stdout.write(self.style.ERROR(f'  ✗ {outcome.city_name}: {outcome.error}'))

        if options['forecast']:
            self._collect_forecasts(collector)

        self.stdout.write(
            self.style.SUCCESS(
                f'Collection complete: {report.succeeded} succeeded, '
                f'{report.failed} failed ({report.duration:.2f}s)'
            )
        )

    def _collect_forecasts(self, collector):
        """Fetch and store forecasts, one city at a time."""
        from apps.weathertracker.registry import PersistenceError
        from apps.weathertracker.services import WeatherServiceError

        for index, city in enumerate(collector.registry.list_cities()):
            if index > 0:
                collector.pause()
            try:
                data = collector.service.get_forecast(city.latitude, city.longitude)
                stored = collector.registry.record_forecast(city, data)
                self.stdout.write(f'    Forecast saved for {city.name} ({stored} entries)')
            except (WeatherServiceError, PersistenceError) as e:
                self.stdout.write(self.style.WARNING(f'    Forecast failed for {city.name}: {e}'))
