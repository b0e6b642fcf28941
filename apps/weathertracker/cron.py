"""
Scheduled tasks for the weathertracker app.

These functions are called by the scheduler module
(apps/weathertracker/scheduler.py) which runs in background threads. Tasks can
also be run manually via management commands (e.g.,
python manage.py cleanup_weather_records).
"""

import logging

from django.conf import settings

logger = logging.getLogger(__name__)

RETENTION_DAYS = 30


def cleanup_weather_records(days=None, registry=None):
    """
    Delete old WeatherRecord entries, then compact the database.

    Records older than WEATHER_RETENTION_DAYS (default 30), measured from
    when they were stored, are removed.
    """
    from apps.weathertracker.registry import CityRegistry

    registry = registry or CityRegistry()
    if days is None:
        days = getattr(settings, 'WEATHER_RETENTION_DAYS', RETENTION_DAYS)

    deleted = registry.delete_observations_older_than(days)
    logger.info(f'Cleanup: deleted {deleted} weather records older than {days} days')

    registry.compact()
    logger.info('Cleanup: database optimized')

    return deleted


def run_cleanup():
    """Cleanup for scheduled use: failures are logged, never raised."""
    try:
        return cleanup_weather_records()
    except Exception:
        logger.exception('Cleanup failed')
        return 0
