"""Tests for InfluxDB storage and the report writer."""

import time
import queue
import threading
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from influxdb_client import WritePrecision

from wxinflux.config.config_manager import ConfigManager
from wxinflux.database.influxdb_manager import InfluxDBManager, report_fields, report_tags
from wxinflux.database.report_writer import ReportWriter
from wxinflux.processing.models import DerivedReport

TIMESTAMP = datetime(2024, 1, 15, 10, 30, 45, tzinfo=timezone.utc)


def make_report(n=1, **overrides):
    values = dict(
        transmitter_id=n,
        wind_speed=5,
        wind_direction=180,
        temperature=72.5,
        humidity=40.0,
        dewpoint=46.4,
        heat_index=72.5,
        wind_chill=72.5,
        uv_index=2.0,
        solar_radiation=500.0,
        rainfall=0.2,
    )
    values.update(overrides)
    return DerivedReport(**values)


class TestInfluxDBManager:
    """Test cases for InfluxDBManager."""

    @pytest.fixture
    def mock_config(self):
        """Create a mock configuration."""
        config = Mock(spec=ConfigManager)
        config.get_influxdb_config.return_value = {
            'url': 'http://localhost:8086',
            'dbname': 'weather',
            'user': 'wx',
            'pass': 'secret',
            'retention_policy': 'autogen',
        }
        return config

    @pytest.fixture
    def client(self):
        return Mock()

    @pytest.fixture
    def manager(self, mock_config, client):
        return InfluxDBManager(mock_config, client=client)

    def test_bucket_from_database_and_retention_policy(self, manager, client):
        assert manager.bucket == 'weather/autogen'
        client.write_api.assert_called_once()

    def test_builds_v1_compatible_client(self, mock_config):
        manager = InfluxDBManager(mock_config)
        try:
            assert manager.client.url == 'http://localhost:8086'
            assert manager.client.token == 'wx:secret'
            assert manager.client.org == '-'
        finally:
            manager.close()

    def test_report_tags_and_fields(self):
        report = make_report(7)

        assert report_tags(report) == {'transmitter-id': '7'}
        assert report_fields(report) == {
            'wind_speed': 5.0,
            'wind_dir': 180.0,
            'temperature': 72.5,
            'humidity': 40.0,
            'dewpoint': 46.4,
            'heat_index': 72.5,
            'wind_chill': 72.5,
            'uv_index': 2.0,
            'solar_radiation': 500.0,
            'rainfall': 0.2,
        }

    def test_report_without_transmitter_has_no_tag(self):
        assert report_tags(make_report(transmitter_id=None)) == {}

    def test_write_report(self, manager):
        assert manager.write_report(make_report(3, rainfall=None), TIMESTAMP)

        kwargs = manager.write_api.write.call_args.kwargs
        assert kwargs['bucket'] == 'weather/autogen'
        point = kwargs['record']
        assert point._name == 'wxreport'
        assert point._write_precision == WritePrecision.S

        line = point.to_line_protocol()
        assert line.startswith('wxreport,transmitter-id=3 ')
        assert 'wind_dir=180' in line
        assert 'dewpoint=46.4' in line
        assert 'rainfall' not in line
        assert line.endswith(' 1705314645')

    def test_write_failure_returns_false(self, manager):
        manager.write_api.write.side_effect = ConnectionError("connection refused")

        assert manager.write_report(make_report(), TIMESTAMP) is False

    def test_write_without_api(self, manager):
        manager.write_api = None

        assert manager.write_point('wxreport', {}, {'temperature': 1.0}, TIMESTAMP) is False

    def test_report_without_measurements_is_not_written(self, manager):
        """A status-only report has no fields and never reaches InfluxDB."""
        assert manager.write_report(DerivedReport(), TIMESTAMP) is False

        manager.write_api.write.assert_not_called()

    def test_point_with_only_none_fields_is_not_written(self, manager):
        assert manager.write_point('wxreport', {'transmitter-id': '1'},
                                   {'temperature': None, 'humidity': None}, TIMESTAMP) is False

        manager.write_api.write.assert_not_called()

    def test_test_connection(self, manager, client):
        client.ping.return_value = True
        assert manager.test_connection()

        client.ping.side_effect = OSError("unreachable")
        assert not manager.test_connection()

    def test_close(self, manager, client):
        manager.close()

        client.close.assert_called_once()


class TestReportWriter:
    """Test cases for ReportWriter."""

    def test_failure_does_not_stop_next_report(self):
        """A failed write drops that report and the next one is still written."""
        manager = Mock()
        manager.write_report.side_effect = [True, False, True]
        reports = queue.Queue()
        for n in range(3):
            reports.put(make_report(n))
        reports.put(None)
        writer = ReportWriter(manager, reports, clock=lambda: TIMESTAMP)

        writer.run()

        assert [c.args[0].transmitter_id for c in manager.write_report.call_args_list] == [0, 1, 2]
        assert writer.written == 2
        assert writer.dropped == 1

    def test_exception_is_dropped(self):
        manager = Mock()
        manager.write_report.side_effect = [RuntimeError("batch failed"), True]
        reports = queue.Queue()
        reports.put(make_report(0))
        reports.put(make_report(1))
        reports.put(None)
        writer = ReportWriter(manager, reports)

        writer.run()

        assert manager.write_report.call_count == 2
        assert writer.written == 1
        assert writer.dropped == 1

    def test_timestamp_at_write_time(self):
        manager = Mock()
        manager.write_report.return_value = True
        writer = ReportWriter(manager, queue.Queue(), clock=lambda: TIMESTAMP)

        writer.write_report(make_report())

        assert manager.write_report.call_args.args[1] == TIMESTAMP

    def test_default_clock_is_utc_seconds(self):
        manager = Mock()
        manager.write_report.return_value = True
        writer = ReportWriter(manager, queue.Queue())

        writer.write_report(make_report())

        timestamp = manager.write_report.call_args.args[1]
        assert timestamp.tzinfo is timezone.utc
        assert timestamp.microsecond == 0

    def test_start_and_stop(self):
        manager = Mock()
        manager.write_report.return_value = True
        reports = queue.Queue(maxsize=1)
        writer = ReportWriter(manager, reports)

        thread = writer.start()
        reports.put(make_report())
        assert writer.stop(timeout=5)

        assert not thread.is_alive()
        assert writer.written == 1

    def test_stop_times_out_when_writer_is_busy(self):
        """stop() honours its timeout while a write hangs and the queue is full."""
        entered = threading.Event()
        release = threading.Event()

        def slow_write(report, timestamp):
            entered.set()
            release.wait(5)
            return True

        manager = Mock()
        manager.write_report.side_effect = slow_write
        reports = queue.Queue(maxsize=1)
        writer = ReportWriter(manager, reports)
        thread = writer.start()

        reports.put(make_report(0))
        assert entered.wait(5)
        reports.put(make_report(1))

        started = time.monotonic()
        assert writer.stop(timeout=0.2) is False
        assert time.monotonic() - started < 2

        release.set()
        assert writer.stop(timeout=5)
        assert not thread.is_alive()
        assert writer.written == 2

    def test_stop_times_out_when_join_is_slow(self):
        """The time spent waiting for the thread counts against the timeout."""
        entered = threading.Event()
        release = threading.Event()

        def slow_write(report, timestamp):
            entered.set()
            release.wait(5)
            return True

        manager = Mock()
        manager.write_report.side_effect = slow_write
        reports = queue.Queue(maxsize=1)
        writer = ReportWriter(manager, reports)
        thread = writer.start()
        reports.put(make_report(0))
        assert entered.wait(5)

        assert writer.stop(timeout=0.2) is False
        assert thread.is_alive()

        release.set()
        thread.join(5)
        assert not thread.is_alive()
