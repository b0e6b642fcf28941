"""
Management command for the weekly retention cleanup.

Usage:
    python manage.py cleanup_weather_records             # Use WEATHER_RETENTION_DAYS
    python manage.py cleanup_weather_records --days=7    # Custom window
    python manage.py cleanup_weather_records --dry-run   # Count only, per city
"""

from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db.models import Count
from django.utils import timezone

from apps.weathertracker.cron import RETENTION_DAYS, cleanup_weather_records
from apps.weathertracker.models import WeatherRecord


class Command(BaseCommand):
    help = 'Remove weather records stored longer than the retention window, then compact the database'

    def add_arguments(self, parser):
        parser.add_argument('--days', type=int, default=None,
                            help='Retention window in days (default: WEATHER_RETENTION_DAYS)')
        parser.add_argument('--dry-run', action='store_true',
                            help='Report what would be removed and exit')

    def handle(self, *args, **options):
        days = options['days']
        if days is None:
            days = getattr(settings, 'WEATHER_RETENTION_DAYS', RETENTION_DAYS)

        if not options['dry_run']:
            deleted = cleanup_weather_records(days=days)
            self.stdout.write(self.style.SUCCESS(f'Deleted {deleted} records older than {days} days'))
            return

        expired = WeatherRecord.objects.filter(created_at__lt=timezone.now() - timedelta(days=days))
        self.stdout.write(f'Would delete {expired.count()} records older than {days} days')
        per_city = expired.values('city__name').annotate(n=Count('id')).order_by('city__name')
        for row in per_city:
            self.stdout.write(f"  {row['city__name']}: {row['n']}")
