"""InfluxDB storage for weather reports."""

from .influxdb_manager import InfluxDBError, InfluxDBManager
from .report_writer import ReportWriter

__all__ = ["InfluxDBError", "InfluxDBManager", "ReportWriter"]
