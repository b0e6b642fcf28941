"""Tests for the provider response cache."""

from datetime import datetime, timezone as dt_timezone
from unittest.mock import patch

from django.test import TestCase, override_settings

from apps.weathertracker.services.cache import CURRENT, FORECAST, ResponseCache
from apps.weathertracker.services.weather import WeatherObservation, WeatherService


class FakeClock:
    """Monotonic clock the test can move forward."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_observation(temperature=20.5):
    return WeatherObservation(
        temperature=temperature,
        feels_like=18.3,
        humidity=65,
        pressure=1013,
        wind_speed=5.5,
        weather_condition='Clear',
        weather_description='clear sky',
        timestamp=datetime(2023, 12, 3, 16, 0, tzinfo=dt_timezone.utc),
    )


class ResponseCacheTests(TestCase):
    """Tests for ResponseCache get/put/expiry."""

    def setUp(self):
        self.clock = FakeClock()
        self.cache = ResponseCache(ttl=600, clock=self.clock)
        self.cache.clear()

    def tearDown(self):
        self.cache.clear()

    def test_get_returns_none_when_empty(self):
        self.assertIsNone(self.cache.get(CURRENT, 51.5074, -0.1278))

    def test_put_then_get_returns_payload(self):
        self.cache.put(CURRENT, 51.5074, -0.1278, {'temp': 20.5})
        self.assertEqual(self.cache.get(CURRENT, 51.5074, -0.1278), {'temp': 20.5})

    def test_entry_valid_just_before_ttl(self):
        self.cache.put(CURRENT, 51.5074, -0.1278, {'temp': 20.5})
        self.clock.advance(599)
        self.assertEqual(self.cache.get(CURRENT, 51.5074, -0.1278), {'temp': 20.5})

    def test_entry_absent_once_ttl_elapsed(self):
        self.cache.put(CURRENT, 51.5074, -0.1278, {'temp': 20.5})
        self.clock.advance(600)
        self.assertIsNone(self.cache.get(CURRENT, 51.5074, -0.1278))

    def test_kinds_are_separate(self):
        self.cache.put(CURRENT, 51.5074, -0.1278, 'current')
        self.cache.put(FORECAST, 51.5074, -0.1278, 'forecast')

        self.assertEqual(self.cache.get(CURRENT, 51.5074, -0.1278), 'current')
        self.assertEqual(self.cache.get(FORECAST, 51.5074, -0.1278), 'forecast')

    def test_coordinates_are_not_rounded(self):
        self.cache.put(CURRENT, 51.5074, -0.1278, 'london')
        self.assertIsNone(self.cache.get(CURRENT, 51.5075, -0.1278))
        self.assertIsNone(self.cache.get(CURRENT, 51.5, -0.12))

    def test_put_refreshes_fetch_time(self):
        self.cache.put(CURRENT, 48.85, 2.35, 'old')
        self.clock.advance(500)
        self.cache.put(CURRENT, 48.85, 2.35, 'new')
        self.clock.advance(500)
        self.assertEqual(self.cache.get(CURRENT, 48.85, 2.35), 'new')

    def test_clear_removes_all_entries(self):
        self.cache.put(CURRENT, 51.5074, -0.1278, 'a')
        self.cache.put(FORECAST, 48.85, 2.35, 'b')

        self.cache.clear()

        self.assertIsNone(self.cache.get(CURRENT, 51.5074, -0.1278))
        self.assertIsNone(self.cache.get(FORECAST, 48.85, 2.35))

    @override_settings(WEATHER_CACHE_TTL=60)
    def test_ttl_defaults_to_setting(self):
        cache = ResponseCache(clock=self.clock)
        self.assertEqual(cache.ttl, 60)


class WeatherServiceCacheTests(TestCase):
    """Tests for cache use in WeatherService.get_current / get_forecast."""

    def setUp(self):
        self.clock = FakeClock()
        self.service = WeatherService(cache=ResponseCache(ttl=600, clock=self.clock))
        self.service.clear_cache()

    def tearDown(self):
        self.service.clear_cache()

    @patch.object(WeatherService, '_fetch_current_from_api')
    def test_second_call_within_ttl_served_from_cache(self, mock_fetch):
        mock_fetch.return_value = make_observation()

        first = self.service.get_current(51.5074, -0.1278)
        self.clock.advance(60)
        second = self.service.get_current(51.5074, -0.1278)

        mock_fetch.assert_called_once_with(51.5074, -0.1278)
        self.assertFalse(first.from_cache)
        self.assertTrue(second.from_cache)
        self.assertEqual(second.temperature, 20.5)

    @patch.object(WeatherService, '_fetch_current_from_api')
    def test_call_after_ttl_hits_provider_again(self, mock_fetch):
        mock_fetch.return_value = make_observation()

        self.service.get_current(51.5074, -0.1278)
        self.clock.advance(601)
        self.service.get_current(51.5074, -0.1278)

        self.assertEqual(mock_fetch.call_count, 2)

    @patch.object(WeatherService, '_fetch_current_from_api')
    def test_failed_fetch_is_not_cached(self, mock_fetch):
        from apps.weathertracker.services import TransportError

        mock_fetch.side_effect = [TransportError(), make_observation()]

        with self.assertRaises(TransportError):
            self.service.get_current(51.5074, -0.1278)
        result = self.service.get_current(51.5074, -0.1278)

        self.assertEqual(mock_fetch.call_count, 2)
        self.assertFalse(result.from_cache)

    @patch.object(WeatherService, '_fetch_forecast_from_api')
    def test_forecast_cached_separately_from_current(self, mock_forecast):
        mock_forecast.return_value = [make_observation(18.0), make_observation(19.5)]

        with patch.object(WeatherService, '_fetch_current_from_api') as mock_current:
            mock_current.return_value = make_observation()
            self.service.get_current(48.8566, 2.3522)

        first = self.service.get_forecast(48.8566, 2.3522)
        second = self.service.get_forecast(48.8566, 2.3522)

        mock_forecast.assert_called_once()
        self.assertEqual(len(first), 2)
        self.assertTrue(all(entry.from_cache for entry in second))

    @patch.object(WeatherService, '_fetch_current_from_api')
    def test_clear_cache_forces_refetch(self, mock_fetch):
        mock_fetch.return_value = make_observation()

        self.service.get_current(51.5074, -0.1278)
        self.service.clear_cache()
        self.service.get_current(51.5074, -0.1278)

        self.assertEqual(mock_fetch.call_count, 2)
