"""
Persistence for tracked cities, their collection metadata and weather records.

The collector and cleanup job only talk to the database through this module.
"""

import logging
from datetime import timedelta
from typing import Optional

from django.db import IntegrityError, connection, transaction
from django.db.models import F
from django.utils import timezone

from .models import City, CollectionMetadata, WeatherRecord
from .services.weather import WeatherObservation

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """A registry write failed (duplicate city, constraint violation)."""
    pass


class CityRegistry:
    """Read/write access to cities and their collected weather."""

    def list_cities(self) -> list[City]:
        return list(City.objects.order_by('id'))

    def get_city(self, city_id) -> Optional[City]:
        return City.objects.filter(pk=city_id).first()

    def create_city(
        self,
        name: str,
        country: str,
        latitude: float,
        longitude: float,
        state: Optional[str] = None,
    ) -> City:
        """Create a city together with its collection metadata row."""
        try:
            with transaction.atomic():
                city = City.objects.create(
                    name=name,
                    country=country,
                    state=state or '',
                    latitude=latitude,
                    longitude=longitude,
                )
                CollectionMetadata.objects.create(city=city)
        except IntegrityError as e:
            raise PersistenceError(f"City already exists: {name}, {country}") from e

        logger.info(f"Registered city {city} ({latitude}, {longitude})")
        return city

    def delete_city(self, city_id) -> bool:
        """Delete a city; metadata and records go with it. False if unknown."""
        deleted, _ = City.objects.filter(pk=city_id).delete()
        return deleted > 0

    def get_metadata(self, city_id) -> Optional[CollectionMetadata]:
        return CollectionMetadata.objects.filter(city_id=city_id).first()

    def record_observation(self, city: City, observation: WeatherObservation) -> WeatherRecord:
        try:
            return WeatherRecord.objects.create(
                city=city,
                temperature=observation.temperature,
                feels_like=observation.feels_like,
                humidity=observation.humidity,
                pressure=observation.pressure,
                wind_speed=observation.wind_speed,
                weather_condition=observation.weather_condition,
                weather_description=observation.weather_description,
                timestamp=observation.timestamp,
                is_forecast=False,
            )
        except IntegrityError as e:
            raise PersistenceError(f"Failed to store observation for {city.name}: {e}") from e

    def record_forecast(self, city: City, observations: list[WeatherObservation]) -> int:
        """Append forecast entries for a city. Returns the number stored."""
        records = [
            WeatherRecord(
                city=city,
                temperature=obs.temperature,
                feels_like=obs.feels_like,
                humidity=obs.humidity,
                pressure=obs.pressure,
                wind_speed=obs.wind_speed,
                weather_condition=obs.weather_condition,
                weather_description=obs.weather_description,
                timestamp=obs.timestamp,
                is_forecast=True,
                forecast_timestamp=obs.forecast_timestamp,
            )
            for obs in observations
        ]
        try:
            WeatherRecord.objects.bulk_create(records)
        except IntegrityError as e:
            raise PersistenceError(f"Failed to store forecast for {city.name}: {e}") from e
        return len(records)

    def record_success(self, city: City) -> None:
        CollectionMetadata.objects.filter(city=city).update(
            last_successful_fetch=timezone.now(),
            total_records=F('total_records') + 1,
            consecutive_failures=0,
        )

    def record_failure(self, city: City) -> None:
        CollectionMetadata.objects.filter(city=city).update(
            last_failed_fetch=timezone.now(),
            consecutive_failures=F('consecutive_failures') + 1,
        )

    def latest_observation(self, city: City) -> Optional[WeatherRecord]:
        return (
            WeatherRecord.objects
            .filter(city=city, is_forecast=False)
            .order_by('-timestamp')
            .first()
        )

    def history(self, city: City, days: int = 7) -> list[WeatherRecord]:
        """Observed (non-forecast) records from the last `days` days, oldest first."""
        cutoff = timezone.now() - timedelta(days=days)
        return list(
            WeatherRecord.objects
            .filter(city=city, is_forecast=False, timestamp__gte=cutoff)
            .order_by('timestamp')
        )

    def delete_observations_older_than(self, days: int) -> int:
        """Bulk-delete records persisted more than `days` days ago."""
        cutoff = timezone.now() - timedelta(days=days)
        deleted, _ = WeatherRecord.objects.filter(created_at__lt=cutoff).delete()
        return deleted

    def compact(self) -> None:
        """Reclaim space after bulk deletes."""
        if connection.vendor not in ('sqlite', 'postgresql'):
            logger.debug(f"No compaction for {connection.vendor}")
            return
        if connection.in_atomic_block:
            # VACUUM cannot run inside a transaction
            logger.debug("Skipping VACUUM inside a transaction")
            return
        with connection.cursor() as cursor:
            cursor.execute('VACUUM')
