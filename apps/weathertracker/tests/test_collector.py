"""Tests for the weather collector."""

from datetime import datetime, timezone as dt_timezone
from unittest.mock import MagicMock, patch

from django.test import TestCase

from apps.weathertracker.collector import CollectionRunReport, WeatherCollector
from apps.weathertracker.models import CollectionMetadata, WeatherRecord
from apps.weathertracker.registry import CityRegistry, PersistenceError
from apps.weathertracker.services import (
    TransportError,
    UpstreamError,
    WeatherObservation,
    WeatherService,
)


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


class WeatherCollectorTests(TestCase):
    """Tests for WeatherCollector.run_collection_pass."""

    def setUp(self):
        self.registry = CityRegistry()
        self.city_a = self.registry.create_city('London', 'GB', 51.5, -0.12)
        self.city_b = self.registry.create_city('Paris', 'FR', 48.85, 2.35)

        self.service = MagicMock()
        self.sleeps = []
        self.collector = WeatherCollector(
            service=self.service,
            registry=self.registry,
            sleep=self.sleeps.append,
        )

    def _succeed_a_fail_b(self, lat, lon):
        if (lat, lon) == (51.5, -0.12):
            return make_observation(20.5)
        raise TransportError()

    def test_mixed_success_and_failure(self):
        self.service.get_current.side_effect = self._succeed_a_fail_b

        report = self.collector.run_collection_pass()

        self.assertEqual(
            [(o.city_name, o.status) for o in report.outcomes],
            [('London', 'success'), ('Paris', 'failed')],
        )
        self.assertEqual(report.succeeded, 1)
        self.assertEqual(report.failed, 1)
        self.assertEqual(report.outcomes[1].error, 'Network error: Unable to reach OpenWeatherMap API')

        meta_a = CollectionMetadata.objects.get(city=self.city_a)
        self.assertEqual(meta_a.total_records, 1)
        self.assertEqual(meta_a.consecutive_failures, 0)
        self.assertIsNotNone(meta_a.last_successful_fetch)
        self.assertIsNone(meta_a.last_failed_fetch)

        meta_b = CollectionMetadata.objects.get(city=self.city_b)
        self.assertEqual(meta_b.consecutive_failures, 1)
        self.assertEqual(meta_b.total_records, 0)
        self.assertIsNotNone(meta_b.last_failed_fetch)
        self.assertIsNone(meta_b.last_successful_fetch)

    def test_success_persists_one_observed_record(self):
        self.service.get_current.side_effect = self._succeed_a_fail_b

        self.collector.run_collection_pass()

        records = WeatherRecord.objects.filter(city=self.city_a)
        self.assertEqual(records.count(), 1)
        record = records.get()
        self.assertFalse(record.is_forecast)
        self.assertEqual(record.temperature, 20.5)
        self.assertEqual(record.weather_description, 'clear sky')
        self.assertFalse(WeatherRecord.objects.filter(city=self.city_b).exists())

    def test_failures_accumulate_and_reset_on_success(self):
        self.service.get_current.side_effect = UpstreamError(500, 'Internal error')
        self.collector.run_collection_pass()
        self.collector.run_collection_pass()

        meta = CollectionMetadata.objects.get(city=self.city_a)
        self.assertEqual(meta.consecutive_failures, 2)
        self.assertEqual(meta.total_records, 0)

        self.service.get_current.side_effect = None
        self.service.get_current.return_value = make_observation()
        self.collector.run_collection_pass()

        meta.refresh_from_db()
        self.assertEqual(meta.consecutive_failures, 0)
        self.assertEqual(meta.total_records, 1)

    def test_cities_paced_sequentially(self):
        self.registry.create_city('Berlin', 'DE', 52.52, 13.405)
        self.service.get_current.return_value = make_observation()

        self.collector.run_collection_pass()

        # One delay before each city after the first
        self.assertEqual(self.sleeps, [1, 1])
        coords = [c.args for c in self.service.get_current.call_args_list]
        self.assertEqual(coords, [(51.5, -0.12), (48.85, 2.35), (52.52, 13.405)])

    def test_empty_city_list_returns_empty_report(self):
        self.registry.delete_city(self.city_a.pk)
        self.registry.delete_city(self.city_b.pk)

        report = self.collector.run_collection_pass()

        self.assertEqual(report.outcomes, [])
        self.assertFalse(report.skipped)
        self.service.get_current.assert_not_called()
        self.assertEqual(self.sleeps, [])

    def test_pass_requested_during_pass_is_skipped(self):
        nested_reports = []

        def fetch_and_reenter(lat, lon):
            nested_reports.append(self.collector.run_collection_pass())
            return make_observation()

        self.service.get_current.side_effect = fetch_and_reenter

        report = self.collector.run_collection_pass()

        self.assertEqual(report.succeeded, 2)
        self.assertEqual(len(nested_reports), 2)
        for nested in nested_reports:
            self.assertTrue(nested.skipped)
            self.assertEqual(nested.outcomes, [])
        # Only the outer pass fetched and stored anything
        self.assertEqual(self.service.get_current.call_count, 2)
        self.assertEqual(WeatherRecord.objects.count(), 2)

    def test_guard_released_after_pass(self):
        self.service.get_current.return_value = make_observation()

        self.collector.run_collection_pass()

        self.assertFalse(self.collector.is_collecting)
        self.assertFalse(self.collector.run_collection_pass().skipped)

    def test_unexpected_error_fails_only_that_city(self):
        def boom_for_london(lat, lon):
            if (lat, lon) == (51.5, -0.12):
                raise RuntimeError('boom')
            return make_observation()

        self.service.get_current.side_effect = boom_for_london

        with self.assertLogs('apps.weathertracker.collector', level='ERROR'):
            report = self.collector.run_collection_pass()

        self.assertEqual(
            [(o.city_name, o.status) for o in report.outcomes],
            [('London', 'failed'), ('Paris', 'success')],
        )
        self.assertEqual(report.outcomes[0].error, 'boom')
        self.assertEqual(CollectionMetadata.objects.get(city=self.city_a).consecutive_failures, 1)
        self.assertEqual(CollectionMetadata.objects.get(city=self.city_b).total_records, 1)
        self.assertFalse(self.collector.is_collecting)

    @patch('httpx.Client')
    def test_non_json_provider_body_fails_only_that_city(self, mock_client_class):
        service = WeatherService()
        service.clear_cache()
        client = mock_client_class.return_value.__enter__.return_value
        client.get.return_value.status_code = 200
        client.get.return_value.json.side_effect = ValueError('Expecting value: line 1 column 1')
        collector = WeatherCollector(service=service, registry=self.registry, sleep=self.sleeps.append)

        report = collector.run_collection_pass()

        self.assertEqual([o.status for o in report.outcomes], ['failed', 'failed'])
        for city in (self.city_a, self.city_b):
            meta = CollectionMetadata.objects.get(city=city)
            self.assertEqual(meta.consecutive_failures, 1)
            self.assertIsNotNone(meta.last_failed_fetch)

    def test_guard_released_when_city_listing_fails(self):
        registry = MagicMock()
        registry.list_cities.side_effect = RuntimeError('database is locked')
        collector = WeatherCollector(service=self.service, registry=registry, sleep=self.sleeps.append)

        with self.assertRaises(RuntimeError):
            collector.run_collection_pass()

        self.assertFalse(collector.is_collecting)
        registry.list_cities.side_effect = None
        registry.list_cities.return_value = []
        self.assertFalse(collector.run_collection_pass().skipped)

    def test_persistence_failure_counts_as_failed(self):
        registry = MagicMock(wraps=self.registry)
        registry.list_cities.return_value = [self.city_a]
        registry.record_observation.side_effect = PersistenceError('disk full')
        collector = WeatherCollector(service=self.service, registry=registry, sleep=self.sleeps.append)
        self.service.get_current.return_value = make_observation()

        report = collector.run_collection_pass()

        self.assertEqual(report.outcomes[0].status, 'failed')
        self.assertEqual(report.outcomes[0].error, 'disk full')
        registry.record_failure.assert_called_once_with(self.city_a)
        registry.record_success.assert_not_called()


class CollectionRunReportTests(TestCase):
    """Tests for CollectionRunReport serialization."""

    def test_as_dict(self):
        from apps.weathertracker.collector import CityOutcome

        report = CollectionRunReport(outcomes=[
            CityOutcome('London', 'success'),
            CityOutcome('Paris', 'failed', 'Network error: Unable to reach OpenWeatherMap API'),
        ], duration=1.234)

        self.assertEqual(report.as_dict(), {
            'skipped': False,
            'succeeded': 1,
            'failed': 1,
            'duration': 1.23,
            'results': [
                {'city': 'London', 'status': 'success'},
                {'city': 'Paris', 'status': 'failed',
                 'error': 'Network error: Unable to reach OpenWeatherMap API'},
            ],
        })
