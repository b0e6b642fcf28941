from django.apps import AppConfig
from django.conf import settings
from django.db.backends.signals import connection_created


def configure_sqlite(sender, connection, **kwargs):
    """Enable WAL mode and foreign keys for SQLite connections."""
    if connection.vendor == 'sqlite':
        cursor = connection.cursor()
        cursor.execute('PRAGMA journal_mode=WAL;')
        cursor.execute('PRAGMA foreign_keys=ON;')


class WeathertrackerConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.weathertracker'

    def ready(self):
        connection_created.connect(configure_sqlite)

        import os
        import sys

        # Only the serving process runs the scheduler (not tests or one-off commands)
        if 'runserver' in sys.argv:
            # Skip the autoreloader's parent process
            if '--noreload' not in sys.argv and os.environ.get('RUN_MAIN') != 'true':
                return
        elif 'gunicorn' not in os.path.basename(sys.argv[0]):
            return
        if not getattr(settings, 'WEATHER_SCHEDULER_ENABLED', True):
            return

        from . import scheduler
        scheduler.start()
        scheduler.setup_graceful_shutdown()
