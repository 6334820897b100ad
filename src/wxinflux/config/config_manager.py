"""Configuration manager for wxinflux."""

import os
import yaml
from typing import Dict, Any


# Older config files name the receiver section after the Si2000 board.
SERIAL_SECTION = 'si1000'
LEGACY_SERIAL_SECTION = 'si2000'

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class ConfigManager:
    """Loads and validates the YAML settings consumed at startup."""

    def __init__(self, config_path: str) -> None:
        """Initialize configuration manager.

        Args:
            config_path: Path to configuration file
        """
        self._config_path = os.path.abspath(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file and environment variables."""
        if not os.path.exists(self._config_path):
            raise FileNotFoundError(f"Configuration file not found: {self._config_path}")

        try:
            with open(self._config_path, 'r') as file:
                self._config = yaml.safe_load(file) or {}
        except (OSError, yaml.YAMLError) as e:
            raise RuntimeError(f"Failed to load configuration: {e}")

        if not isinstance(self._config, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        if LEGACY_SERIAL_SECTION in self._config and SERIAL_SECTION not in self._config:
            self._config[SERIAL_SECTION] = self._config.pop(LEGACY_SERIAL_SECTION)

        self._apply_env_overrides()
        self._validate_config()

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        env_mappings = {
            'INFLUXDB_URL': ['influxdb', 'url'],
            'INFLUXDB_DBNAME': ['influxdb', 'dbname'],
            'INFLUXDB_USER': ['influxdb', 'user'],
            'INFLUXDB_PASS': ['influxdb', 'pass'],
            'SERIAL_DEVICE': [SERIAL_SECTION, 'device'],
            'SERIAL_BAUD': [SERIAL_SECTION, 'baud'],
            'LOG_LEVEL': ['logging', 'level'],
        }

        for env_var, config_path in env_mappings.items():
            value = os.environ.get(env_var)
            if value:
                self._set_nested_value(config_path, value)

    def _set_nested_value(self, path: list, value: str) -> None:
        """Set nested configuration value."""
        current = self._config
        for key in path[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _validate_config(self) -> None:
        """Validate required configuration values."""
        for section in ['influxdb', SERIAL_SECTION]:
            if not isinstance(self._config.get(section), dict):
                raise ValueError(f"Missing required configuration section: {section}")

        for key in ['url', 'dbname']:
            if not self._config['influxdb'].get(key):
                raise ValueError(f"InfluxDB {key} must be set in config or INFLUXDB_{key.upper()} environment variable")

        serial_config = self._config[SERIAL_SECTION]
        if not serial_config.get('device'):
            raise ValueError("Serial device must be set in config or SERIAL_DEVICE environment variable")

        try:
            serial_config['baud'] = int(serial_config.get('baud'))
        except (TypeError, ValueError):
            raise ValueError(f"Invalid serial baud rate: {serial_config.get('baud')!r}")
        if serial_config['baud'] <= 0:
            raise ValueError(f"Invalid serial baud rate: {serial_config['baud']}")

        self._validate_reconnect()

    def _validate_reconnect(self) -> None:
        """Validate the optional reconnect policy section."""
        reconnect = self._config.get('reconnect') or {}
        if not isinstance(reconnect, dict):
            raise ValueError("Configuration section reconnect must be a mapping")

        interval = reconnect.get('interval', 5.0)
        try:
            interval = float(interval)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid reconnect interval: {interval!r}")
        if interval < 0:
            raise ValueError(f"Reconnect interval must not be negative: {interval:g}")
        reconnect['interval'] = interval

        max_attempts = reconnect.get('max_attempts')
        if max_attempts is not None:
            if isinstance(max_attempts, bool):
                raise ValueError(f"Invalid reconnect max_attempts: {max_attempts!r}")
            try:
                max_attempts = int(max_attempts)
            except (TypeError, ValueError):
                raise ValueError(f"Invalid reconnect max_attempts: {max_attempts!r}")
            if max_attempts < 1:
                raise ValueError(f"Reconnect max_attempts must be at least 1: {max_attempts}")
        reconnect['max_attempts'] = max_attempts
        self._config['reconnect'] = reconnect

    def get(self, path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            path: Configuration path using dot notation (e.g., 'si1000.device')
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        keys = path.split('.')
        current = self._config

        try:
            for key in keys:
                current = current[key]
            return current
        except (KeyError, TypeError):
            return default

    def get_influxdb_config(self) -> Dict[str, Any]:
        """Get InfluxDB configuration."""
        influxdb_config = {'user': '', 'pass': '', 'retention_policy': 'autogen'}
        influxdb_config.update(self._config['influxdb'])
        return influxdb_config

    def get_serial_config(self) -> Dict[str, Any]:
        """Get serial receiver configuration."""
        return self._config[SERIAL_SECTION].copy()

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration."""
        logging_config = {'level': 'INFO', 'format': DEFAULT_LOG_FORMAT, 'file': None}
        logging_config.update(self._config.get('logging') or {})
        return logging_config

    def get_reconnect_config(self) -> Dict[str, Any]:
        """Get reconnect policy configuration."""
        reconnect_config = {'interval': 5.0, 'max_attempts': None}
        reconnect_config.update(self._config.get('reconnect') or {})
        return reconnect_config
