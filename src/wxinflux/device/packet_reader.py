"""Decodes weather packets from the receiver's serial stream."""

import json
import queue
import logging
import threading
from typing import Any, Dict

import serial

from .connection import ConnectionManager
from ..processing.models import DataValidationError, RawReading, generate_report

DEFAULT_MAX_RECORD_BYTES = 65536
READ_CHUNK = 4096

_WHITESPACE = b' \t\r\n'
_OPEN_BRACE = ord('{')
_CLOSE_BRACE = ord('}')
_QUOTE = ord('"')
_BACKSLASH = ord('\\')


class RecordDecodeError(Exception):
    """Raised when the stream cannot produce a valid record."""
    pass


class EndOfStream(RecordDecodeError):
    """Raised when the device stream is closed."""
    pass


class RecordDecoder:
    """Reads one JSON object at a time from a byte stream.

    Records are self-delimiting: each starts with ``{`` and ends at its
    matching ``}``. Braces inside string literals are ignored. A decoder is
    bound to a single link; build a new one after reconnecting.
    """

    def __init__(self, stream: Any, max_record_bytes: int = DEFAULT_MAX_RECORD_BYTES) -> None:
        self._stream = stream
        self._max_record_bytes = max_record_bytes
        self._buffer = bytearray()

    def decode(self) -> Dict[str, Any]:
        """Return the next record from the stream.

        Raises:
            EndOfStream: If the stream reports end of data
            RecordDecodeError: If the stream fails or a record is malformed
        """
        start = None
        depth = 0
        in_string = False
        escaped = False
        pos = 0

        while True:
            while pos < len(self._buffer):
                byte = self._buffer[pos]
                if start is None:
                    if byte in _WHITESPACE:
                        pos += 1
                        continue
                    if byte != _OPEN_BRACE:
                        self._buffer.clear()
                        raise RecordDecodeError(f"Unexpected byte {bytes([byte])!r} at start of record")
                    start = pos
                    depth = 1
                elif in_string:
                    if escaped:
                        escaped = False
                    elif byte == _BACKSLASH:
                        escaped = True
                    elif byte == _QUOTE:
                        in_string = False
                elif byte == _QUOTE:
                    in_string = True
                elif byte == _OPEN_BRACE:
                    depth += 1
                elif byte == _CLOSE_BRACE:
                    depth -= 1
                    if depth == 0:
                        record = bytes(self._buffer[start:pos + 1])
                        del self._buffer[:pos + 1]
                        return self._parse(record)
                pos += 1

            if start is None:
                # only whitespace buffered so far
                self._buffer.clear()
                pos = 0
            elif len(self._buffer) - start > self._max_record_bytes:
                self._buffer.clear()
                raise RecordDecodeError(f"Record exceeds {self._max_record_bytes} bytes")

            chunk = self._read()
            if not chunk:
                raise EndOfStream("End of stream from device")
            self._buffer.extend(chunk)

    def _read(self) -> bytes:
        try:
            waiting = getattr(self._stream, 'in_waiting', 0)
            return self._stream.read(max(1, min(waiting, READ_CHUNK)))
        except (serial.SerialException, OSError) as e:
            raise RecordDecodeError(f"Error reading from device: {e}") from e

    @staticmethod
    def _parse(record: bytes) -> Dict[str, Any]:
        try:
            return json.loads(record.decode('utf-8'))
        except (UnicodeDecodeError, ValueError) as e:
            raise RecordDecodeError(f"Malformed record {record[:80]!r}: {e}") from e


class PacketReader:
    """Turns the active link's byte stream into weather reports."""

    def __init__(self, connection: ConnectionManager, reports: queue.Queue,
                 max_record_bytes: int = DEFAULT_MAX_RECORD_BYTES) -> None:
        """Initialize the packet reader.

        Args:
            connection: Connection manager owning the serial link
            reports: Handoff queue the reports are published on
            max_record_bytes: Largest record accepted before the stream is reset
        """
        self.connection = connection
        self.reports = reports
        self.max_record_bytes = max_record_bytes
        self.logger = logging.getLogger(__name__)
        self.reports_published = 0
        self.reconnects = 0
        self._stop_event = threading.Event()

    def stop(self) -> None:
        """Ask the reader loop to exit after the current record."""
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:
        """Read reports until stopped.

        Raises:
            LinkUnavailableError: If a bounded reconnect policy gives up
        """
        self.logger.info("Reading reports from Si1000")

        while not self.stopped:
            link = self.connection.link
            if link is None:
                self.connection.ensure_connected()
                continue

            # The stream object changes on every reconnect, so the decoder
            # never outlives its link.
            decoder = RecordDecoder(link, self.max_record_bytes)
            self._read_link(decoder)

        self.logger.info("Packet reader stopped")

    def _read_link(self, decoder: RecordDecoder) -> None:
        while not self.stopped:
            try:
                record = decoder.decode()
            except RecordDecodeError as e:
                if self.stopped:
                    return
                self.logger.error(f"Error reading from device: {e}")
                self.connection.mark_disconnected()
                self.reconnects += 1
                self.connection.ensure_connected()
                return

            try:
                reading = RawReading.from_dict(record)
            except DataValidationError as e:
                self.logger.warning(f"Dropping invalid packet: {e}")
                continue

            self.logger.debug(f"Received packet: {reading}")
            self.publish(generate_report(reading))

    def publish(self, report) -> None:
        """Hand a report to the writer, blocking until there is room."""
        self.reports.put(report)
        self.reports_published += 1
