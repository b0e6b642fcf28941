"""
Task scheduler using background threads.

Runs two recurring jobs and one startup job:
- Hourly collection: every hour at minute 0 (UTC)
- Weekly cleanup: Sundays at 02:00 (UTC)
- Warm-up collection: once, shortly after startup

Overlapping collection fires are absorbed by the collector's single-flight
guard. Stopping the scheduler prevents future fires only; a pass already
running is left to finish.
"""

import atexit
import logging
import signal
import sys
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)

CLEANUP_WEEKDAY = 6  # Sunday
CLEANUP_HOUR = 2
WARMUP_DELAY = 2

_scheduler = None
_lock = threading.Lock()


def next_hourly_run(now: datetime) -> datetime:
    """Next top of the hour strictly after `now`."""
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


def next_weekly_run(now: datetime) -> datetime:
    """Next Sunday 02:00 strictly after `now`."""
    days_ahead = (CLEANUP_WEEKDAY - now.weekday()) % 7
    target = now.replace(hour=CLEANUP_HOUR, minute=0, second=0, microsecond=0) + timedelta(days=days_ahead)
    if target <= now:
        target += timedelta(days=7)
    return target


class WeatherScheduler:
    """Drives the collector and the retention cleanup on a fixed cadence."""

    def __init__(
        self,
        collector=None,
        cleanup: Optional[Callable[[], int]] = None,
        clock: Callable[[], datetime] = timezone.now,
    ):
        if collector is None:
            from .collector import get_collector
            collector = get_collector()
        if cleanup is None:
            from .cron import cleanup_weather_records
            cleanup = cleanup_weather_records

        self.collector = collector
        self.cleanup = cleanup
        self.clock = clock
        self.warmup_delay = getattr(settings, 'WEATHER_WARMUP_DELAY', WARMUP_DELAY)

        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []
        self._warmup: Optional[threading.Timer] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the recurring jobs and schedule the warm-up pass."""
        with self._state_lock:
            if self._running:
                return
            self._running = True
            self._stop_event = threading.Event()

            self._threads = [
                self._spawn('hourly-collection', next_hourly_run, self.run_collection),
                self._spawn('weekly-cleanup', next_weekly_run, self.run_cleanup),
            ]

            self._warmup = threading.Timer(self.warmup_delay, self.run_collection)
            self._warmup.daemon = True
            self._warmup.start()

        logger.info("Scheduler started: hourly collection at minute 0 (UTC), "
                    "weekly cleanup Sundays at %02d:00 (UTC)", CLEANUP_HOUR)

    def stop(self):
        """Cancel all future fires. Does not interrupt a running pass."""
        with self._state_lock:
            if not self._running:
                return
            self._running = False
            self._stop_event.set()
            if self._warmup is not None:
                self._warmup.cancel()
                self._warmup = None
            self._threads = []

        logger.info("Scheduler stopped")

    def run_collection(self):
        """Run one collection pass, logging rather than raising."""
        try:
            report = self.collector.run_collection_pass()
        except Exception:
            logger.exception("Scheduler: collection pass failed")
            return None
        if report.skipped:
            logger.info("Scheduler: collection skipped, previous pass still running")
        return report

    def run_cleanup(self):
        """Run retention cleanup, logging rather than raising."""
        logger.info("Scheduler: starting cleanup")
        try:
            deleted = self.cleanup()
        except Exception:
            logger.exception("Scheduler: cleanup failed")
            return None
        logger.info("Scheduler: completed cleanup (deleted %d records)", deleted)
        return deleted

    def _spawn(self, name, next_run, job):
        thread = threading.Thread(
            target=self._loop,
            args=(name, next_run, job, self._stop_event),
            name=f"scheduler-{name}",
            daemon=True,
        )
        thread.start()
        return thread

    def _loop(self, name, next_run, job, stop_event):
        """Sleep until the next fire time, run the job, repeat until stopped."""
        target = next_run(self.clock())
        while True:
            delay = max((target - self.clock()).total_seconds(), 0)
            logger.debug("Scheduler: %s next run in %ds", name, delay)
            if stop_event.wait(delay):
                break
            try:
                job()
            except Exception:
                logger.exception("Scheduler loop error (%s)", name)
            # Event.wait can wake just short of the target on the wall clock
            target = next_run(max(self.clock(), target))


def get_scheduler() -> WeatherScheduler:
    global _scheduler

    with _lock:
        if _scheduler is None:
            _scheduler = WeatherScheduler()
        return _scheduler


def start():
    """Start the process-wide scheduler."""
    scheduler = get_scheduler()
    scheduler.start()
    atexit.register(scheduler.stop)
    return scheduler


def stop():
    if _scheduler is not None:
        _scheduler.stop()


def setup_graceful_shutdown(scheduler: Optional[WeatherScheduler] = None):
    """Stop the scheduler on SIGINT/SIGTERM before the process exits."""
    if threading.current_thread() is not threading.main_thread():
        logger.debug("Not on the main thread, skipping signal handlers")
        return

    scheduler = scheduler or get_scheduler()

    for signum in (signal.SIGINT, signal.SIGTERM):
        previous = signal.getsignal(signum)

        def handler(received, frame, previous=previous):
            logger.info("Scheduler: received %s, shutting down", signal.Signals(received).name)
            scheduler.stop()
            if callable(previous):
                previous(received, frame)
            else:
                sys.exit(0)

        signal.signal(signum, handler)
