"""Background task that persists weather reports."""

import time
import queue
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from .influxdb_manager import InfluxDBManager
from ..processing.models import DerivedReport


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class ReportWriter:
    """Consumes reports from the handoff queue and writes each to InfluxDB.

    Writes are best effort: a report whose write fails is logged and
    dropped, and the next report is processed as usual.
    """

    def __init__(self, manager: InfluxDBManager, reports: queue.Queue,
                 clock: Callable[[], datetime] = _utcnow) -> None:
        self.manager = manager
        self.reports = reports
        self.clock = clock
        self.logger = logging.getLogger(__name__)
        self.written = 0
        self.dropped = 0
        self._thread: Optional[threading.Thread] = None

    def run(self) -> None:
        """Write reports until a None sentinel is received."""
        while True:
            report = self.reports.get()
            try:
                if report is None:
                    self.logger.info("Report writer stopped")
                    return
                self.write_report(report)
            finally:
                self.reports.task_done()

    def write_report(self, report: DerivedReport) -> bool:
        """Write one report, timestamped now."""
        try:
            success = self.manager.write_report(report, self.clock())
        except Exception as e:
            self.logger.error(f"Error logging report to InfluxDB: {e}")
            success = False

        if success:
            self.written += 1
            self.logger.debug(f"Received report: {report}")
        else:
            self.dropped += 1
            self.logger.warning(f"Dropped report from transmitter {report.transmitter_id}")
        return success

    def start(self) -> threading.Thread:
        """Run the writer on a daemon thread."""
        self._thread = threading.Thread(target=self.run, name="report-writer", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Send the sentinel and wait for the writer thread to finish.

        Args:
            timeout: Seconds to wait in total (None waits forever)

        Returns:
            True if the writer finished within the timeout, False otherwise
        """
        deadline = time.monotonic() + timeout if timeout is not None else None

        try:
            self.reports.put(None, timeout=timeout)
        except queue.Full:
            self.logger.warning(f"Report writer still busy after {timeout:g} seconds; not waiting for it")
            return False

        if self._thread is not None:
            remaining = max(0.0, deadline - time.monotonic()) if deadline is not None else None
            self._thread.join(remaining)
            if self._thread.is_alive():
                self.logger.warning("Report writer did not finish before the shutdown timeout")
                return False
        return True
