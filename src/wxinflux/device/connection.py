"""Serial link management for the Si1000 ISS receiver."""

import enum
import time
import logging
import threading
from typing import Any, Callable, Optional

import serial


class LinkUnavailableError(Exception):
    """Raised when a bounded reconnect policy runs out of attempts."""
    pass


class ConnectionState(enum.Enum):
    """Status of the serial link."""

    NOT_CONNECTED = 'not_connected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


class ReconnectPolicy:
    """Fixed-interval retry policy for opening the serial device."""

    def __init__(self, interval: float = 5.0, max_attempts: Optional[int] = None) -> None:
        """Initialize the policy.

        Args:
            interval: Seconds to sleep after a failed open
            max_attempts: Give up after this many failed opens (None retries forever)
        """
        if interval < 0:
            raise ValueError("interval must not be negative")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.interval = interval
        self.max_attempts = max_attempts

    @classmethod
    def from_config(cls, reconnect_config: dict) -> 'ReconnectPolicy':
        max_attempts = reconnect_config.get('max_attempts')
        return cls(
            interval=float(reconnect_config.get('interval', 5.0)),
            max_attempts=int(max_attempts) if max_attempts is not None else None,
        )

    def exhausted(self, attempts: int) -> bool:
        return self.max_attempts is not None and attempts >= self.max_attempts


def open_serial_port(device: str, baud: int) -> serial.Serial:
    """Open the receiver's serial port.

    Reads block until data arrives; a closed link surfaces as an empty read
    or a SerialException.
    """
    return serial.Serial(
        port=device,
        baudrate=baud,
        timeout=None,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE
    )


class ConnectionManager:
    """Owns the serial link and its connection state."""

    def __init__(self, device: str, baud: int,
                 policy: Optional[ReconnectPolicy] = None,
                 opener: Optional[Callable[[str, int], Any]] = None,
                 sleep: Callable[[float], None] = time.sleep) -> None:
        """Initialize the connection manager.

        Args:
            device: Serial device path
            baud: Baud rate
            policy: Reconnect policy (defaults to retrying every 5 seconds forever)
            opener: Callable opening the device; defaults to pyserial
            sleep: Sleep function used between attempts
        """
        self.device = device
        self.baud = baud
        self.policy = policy or ReconnectPolicy()
        self._opener = opener or open_serial_port
        self._sleep = sleep
        self.logger = logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._state = ConnectionState.NOT_CONNECTED
        self._link: Any = None

    @classmethod
    def from_config(cls, config, **kwargs) -> 'ConnectionManager':
        """Create a connection manager from a ConfigManager."""
        serial_config = config.get_serial_config()
        return cls(
            serial_config['device'],
            serial_config['baud'],
            policy=ReconnectPolicy.from_config(config.get_reconnect_config()),
            **kwargs
        )

    def current_state(self) -> ConnectionState:
        """Return the current connection state."""
        with self._lock:
            return self._state

    @property
    def link(self) -> Any:
        """The open serial handle, or None when not connected."""
        with self._lock:
            return self._link

    def ensure_connected(self) -> None:
        """Open the serial device unless a link exists or is being opened.

        Blocks, retrying at the policy interval, until the device opens.

        Raises:
            LinkUnavailableError: If the policy's attempt limit is reached
        """
        with self._lock:
            if self._state is ConnectionState.CONNECTING:
                self.logger.info("Skipping reconnect since connection is in progress")
                return
            if self._state is ConnectionState.CONNECTED:
                return
            self._state = ConnectionState.CONNECTING

        self.logger.info(f"Connecting to Si1000 on {self.device} at {self.baud} baud...")
        attempts = 0

        while True:
            try:
                link = self._opener(self.device, self.baud)
            except (serial.SerialException, OSError, ValueError) as e:
                attempts += 1
                self.logger.warning(f"Failed to open {self.device} (attempt {attempts}): {e}")

                if self.policy.exhausted(attempts):
                    with self._lock:
                        self._state = ConnectionState.NOT_CONNECTED
                    self.logger.error(f"Giving up on {self.device} after {attempts} attempts")
                    raise LinkUnavailableError(f"Could not open {self.device} after {attempts} attempts")

                self.logger.info(f"Sleeping {self.policy.interval:g} seconds and trying again")
                self._sleep(self.policy.interval)
                continue

            with self._lock:
                self._link = link
                self._state = ConnectionState.CONNECTED
            self.logger.info(f"Connection to Si1000 on {self.device} successful")
            return

    def mark_disconnected(self) -> None:
        """Demote the link after a read failure and release the old handle."""
        with self._lock:
            link, self._link = self._link, None
            self._state = ConnectionState.NOT_CONNECTED

        self.logger.warning(f"Lost connection to Si1000 on {self.device}")
        self._close_link(link)

    def close(self) -> None:
        """Close the serial link."""
        with self._lock:
            link, self._link = self._link, None
            self._state = ConnectionState.NOT_CONNECTED
        self._close_link(link)

    def _close_link(self, link: Any) -> None:
        if link is None:
            return
        try:
            link.close()
            self.logger.info(f"Closed serial port {self.device}")
        except (serial.SerialException, OSError) as e:
            self.logger.error(f"Error closing serial port {self.device}: {e}")
