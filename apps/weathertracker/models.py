from django.db import models


class City(models.Model):
    name = models.CharField(max_length=200)
    country = models.CharField(max_length=100)
    state = models.CharField(max_length=100, blank=True)
    latitude = models.FloatField()
    longitude = models.FloatField()
    date_added = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-date_added']
        verbose_name_plural = 'cities'
        constraints = [
            models.UniqueConstraint(
                fields=['name', 'country'],
                name='city_unique_name_country',
            ),
        ]

    def __str__(self):
        if self.state:
            return f"{self.name}, {self.state}, {self.country}"
        return f"{self.name}, {self.country}"


class CollectionMetadata(models.Model):
    """
    Per-city collection health.

    Created together with its City and removed with it (cascade).
    """

    city = models.OneToOneField(
        City,
        on_delete=models.CASCADE,
        related_name='metadata',
    )
    first_collection_date = models.DateTimeField(auto_now_add=True)
    last_successful_fetch = models.DateTimeField(null=True, blank=True)
    last_failed_fetch = models.DateTimeField(null=True, blank=True)
    consecutive_failures = models.PositiveIntegerField(default=0)
    total_records = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name_plural = 'collection metadata'

    def __str__(self):
        return f"{self.city.name}: {self.total_records} records, {self.consecutive_failures} failures"


class WeatherRecord(models.Model):
    """
    Stored weather observation (current conditions or forecast entry).

    Rows are append-only. Retention cleanup deletes by created_at, not by
    observation timestamp.
    """

    city = models.ForeignKey(
        City,
        on_delete=models.CASCADE,
        related_name='weather_records',
    )
    temperature = models.FloatField()
    feels_like = models.FloatField(null=True, blank=True)
    humidity = models.IntegerField(null=True, blank=True)
    pressure = models.IntegerField(null=True, blank=True)
    wind_speed = models.FloatField(null=True, blank=True)
    weather_condition = models.CharField(max_length=50, blank=True)
    weather_description = models.CharField(max_length=200, blank=True)

    # Observation time reported by the provider
    timestamp = models.DateTimeField(db_index=True)
    is_forecast = models.BooleanField(default=False)
    forecast_timestamp = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(
                fields=['city', 'is_forecast', 'timestamp'],
                name='weather_city_time_idx',
            ),
        ]

    def __str__(self):
        kind = 'forecast' if self.is_forecast else 'observed'
        return f"{self.city.name} {self.timestamp:%Y-%m-%d %H:%M} ({kind}): {self.temperature}°C"
