"""Main application for wxinflux."""

import sys
import queue
import logging
import signal
import argparse
from typing import Optional

from .config import ConfigManager
from .database import InfluxDBManager, ReportWriter
from .device import ConnectionManager, LinkUnavailableError, PacketReader


class ShutdownRequested(Exception):
    """Raised from the signal handler to unblock the reader."""
    pass


class WxInfluxApp:
    """Reads reports from the receiver and stores them in InfluxDB."""

    def __init__(self, config_path: str = 'config.yaml', log_level: Optional[str] = None) -> None:
        """Initialize the application.

        Args:
            config_path: Path to configuration file
            log_level: Overrides the configured log level
        """
        self.config: Optional[ConfigManager] = None
        self.connection: Optional[ConnectionManager] = None
        self.influxdb_manager: Optional[InfluxDBManager] = None
        self.packet_reader: Optional[PacketReader] = None
        self.report_writer: Optional[ReportWriter] = None
        self.logger: Optional[logging.Logger] = None
        self.shutting_down = False

        self._initialize(config_path, log_level)

    def _initialize(self, config_path: str, log_level: Optional[str]) -> None:
        """Initialize all components."""
        try:
            self.config = ConfigManager(config_path)
        except (FileNotFoundError, RuntimeError, ValueError) as e:
            print(f"Error reading config file. Did you pass the --config flag? Run with -h for help.\n{e}",
                  file=sys.stderr)
            sys.exit(1)

        self._setup_logging(log_level)
        self.logger = logging.getLogger(__name__)

        # Unbuffered in spirit: the reader blocks until the writer catches up.
        reports: queue.Queue = queue.Queue(maxsize=1)

        self.influxdb_manager = InfluxDBManager(self.config)
        self.connection = ConnectionManager.from_config(self.config)
        self.packet_reader = PacketReader(self.connection, reports)
        self.report_writer = ReportWriter(self.influxdb_manager, reports)

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        self.logger.info("wxinflux initialized successfully")

    def _setup_logging(self, log_level: Optional[str] = None) -> None:
        """Setup logging configuration."""
        log_config = self.config.get_logging_config()
        level = (log_level or log_config['level']).upper()

        handlers = [logging.StreamHandler()]
        if log_config.get('file'):
            handlers.append(logging.FileHandler(log_config['file']))

        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format=log_config['format'],
            handlers=handlers
        )

    def _signal_handler(self, signum, frame) -> None:
        """Handle shutdown signals."""
        if self.shutting_down:
            self.logger.info(f"Received signal {signum} while already shutting down, ignoring")
            return
        self.shutting_down = True
        self.logger.info(f"Received signal {signum}, shutting down...")
        self.packet_reader.stop()
        raise ShutdownRequested()

    def run(self) -> None:
        """Connect to the receiver and process reports until shut down."""
        if not self.influxdb_manager.test_connection():
            self.logger.warning(f"InfluxDB at {self.influxdb_manager.url} is not answering; reports may be dropped")

        try:
            self.connection.ensure_connected()
            self.report_writer.start()
            self.packet_reader.run()
        except ShutdownRequested:
            self.logger.info("Shutdown requested")

    def cleanup(self) -> None:
        """Cleanup resources."""
        self.shutting_down = True
        self.logger.info("Cleaning up resources...")

        if self.report_writer:
            self.report_writer.stop(timeout=10.0)
        if self.connection:
            self.connection.close()
        if self.influxdb_manager:
            self.influxdb_manager.close()

        self.logger.info(
            f"wxinflux shutdown complete ({self.report_writer.written} reports written, "
            f"{self.report_writer.dropped} dropped)"
        )

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.cleanup()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Store weather reports from a Davis ISS receiver in InfluxDB')
    parser.add_argument('--config', '-c', default='config.yaml',
                        help='Path to config file (default: ./config.yaml)')
    parser.add_argument('--log-level', '-l',
                        help='Override the configured log level (DEBUG, INFO, WARNING, ERROR)')
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    with WxInfluxApp(args.config, args.log_level) as app:
        try:
            app.run()
        except LinkUnavailableError as e:
            app.logger.error(f"Serial link unavailable: {e}")
            sys.exit(1)


if __name__ == '__main__':
    main()
