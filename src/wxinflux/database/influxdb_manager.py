"""InfluxDB client for storing weather reports."""

import logging
from typing import Dict, Any, Optional
from datetime import datetime

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from ..config.config_manager import ConfigManager
from ..processing.models import DerivedReport

MEASUREMENT = "wxreport"
TRANSMITTER_TAG = "transmitter-id"

# InfluxDB field name -> DerivedReport attribute
REPORT_FIELDS = {
    "wind_speed": "wind_speed",
    "wind_dir": "wind_direction",
    "temperature": "temperature",
    "humidity": "humidity",
    "dewpoint": "dewpoint",
    "heat_index": "heat_index",
    "wind_chill": "wind_chill",
    "uv_index": "uv_index",
    "solar_radiation": "solar_radiation",
    "rainfall": "rainfall",
}


class InfluxDBError(Exception):
    """Raised when InfluxDB operations fail."""
    pass


def report_tags(report: DerivedReport) -> Dict[str, str]:
    """Tag set for a weather report."""
    if report.transmitter_id is None:
        return {}
    return {TRANSMITTER_TAG: str(report.transmitter_id)}


def report_fields(report: DerivedReport) -> Dict[str, Optional[float]]:
    """Field set for a weather report.

    Values are stored as floats so a field never changes type in InfluxDB.
    """
    fields = {}
    for field_name, attr in REPORT_FIELDS.items():
        value = getattr(report, attr)
        fields[field_name] = float(value) if value is not None else None
    return fields


class InfluxDBManager:
    """Manages InfluxDB 1.x writes through the 2.x client's compatibility API."""

    def __init__(self, config: ConfigManager, client: Optional[InfluxDBClient] = None) -> None:
        """Initialize InfluxDB manager with configuration.

        Args:
            config: Configuration manager instance
            client: Pre-built client (built from config when None)
        """
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.client: Optional[InfluxDBClient] = client
        self.write_api = None

        influxdb_config = config.get_influxdb_config()
        self.url = influxdb_config['url']
        self.bucket = f"{influxdb_config['dbname']}/{influxdb_config['retention_policy']}"

        self._initialize_client(influxdb_config)

    def _initialize_client(self, influxdb_config: Dict[str, Any]) -> None:
        """Initialize InfluxDB client."""
        try:
            if self.client is None:
                self.client = InfluxDBClient(
                    url=influxdb_config['url'],
                    token=f"{influxdb_config['user']}:{influxdb_config['pass']}",
                    org='-'
                )
            self.write_api = self.client.write_api(write_options=SYNCHRONOUS)
        except Exception as e:
            self.logger.error(f"Failed to initialize InfluxDB client: {e}")
            raise InfluxDBError(f"InfluxDB initialization failed: {e}")

        self.logger.info(f"InfluxDB client created for {self.url}, bucket {self.bucket}")

    def write_point(self, measurement: str, tags: Dict[str, str],
                    fields: Dict[str, Any], timestamp: datetime) -> bool:
        """Write a single point. Failures are logged and not retried.

        Args:
            measurement: Measurement name
            tags: Tag set
            fields: Field set; None values are left out of the point
            timestamp: Point timestamp, stored with second precision

        Returns:
            True if write was successful, False otherwise (including when
            no field has a value)
        """
        if not self.write_api:
            self.logger.error("InfluxDB write API not initialized")
            return False

        # A point without fields is not valid line protocol.
        if all(value is None for value in fields.values()):
            self.logger.warning(f"Not writing {measurement} point with no field values")
            return False

        try:
            point = Point(measurement).time(timestamp, WritePrecision.S)
            for key, value in tags.items():
                point.tag(key, value)
            for key, value in fields.items():
                if value is not None:
                    point.field(key, value)

            self.write_api.write(bucket=self.bucket, record=point)

        except Exception as e:
            self.logger.error(f"Error logging data point to InfluxDB: {e}")
            return False

        return True

    def write_report(self, report: DerivedReport, timestamp: datetime) -> bool:
        """Write a weather report as a single `wxreport` point."""
        return self.write_point(MEASUREMENT, report_tags(report), report_fields(report), timestamp)

    def test_connection(self) -> bool:
        """Test InfluxDB connection.

        Returns:
            True if the server answers a ping, False otherwise
        """
        try:
            if not self.client:
                return False
            return bool(self.client.ping())
        except Exception as e:
            self.logger.error(f"InfluxDB connection test failed: {e}")
            return False

    def close(self) -> None:
        """Close InfluxDB client connection."""
        try:
            if self.client:
                self.client.close()
                self.logger.info("InfluxDB connection closed")
        except Exception as e:
            self.logger.error(f"Error closing InfluxDB connection: {e}")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
