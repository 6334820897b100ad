"""Weather reading and report entities."""

from dataclasses import dataclass
from typing import Dict, Any, Optional, Tuple

from . import weather_calc


class DataValidationError(Exception):
    """Raised when a decoded record has fields of the wrong type."""
    pass


# attribute -> (JSON key, accepted types)
_READING_FIELDS: Dict[str, Tuple[str, tuple]] = {
    'transmitter_id': ('transmitter_id', (int,)),
    'rssi': ('RSSI', (int,)),
    'recv_packets': ('recv_packets', (int,)),
    'lost_packets': ('lost_packets', (int,)),
    'bad_crc_packets': ('bad_CRC', (int,)),
    'wind_speed': ('wind_speed_mph', (int, float)),
    'wind_direction': ('wind_direction_degrees', (int, float)),
    'temperature': ('temperature_F', (int, float)),
    'humidity': ('humidity_pct', (int, float)),
    'uv_index': ('UV_index', (int, float)),
    'solar_radiation': ('solar_Wm2', (int, float)),
    'rain_spoons': ('rain_spoons', (int,)),
    'raw': ('raw', (str,)),
    'version': ('version', (str,)),
}


@dataclass(frozen=True)
class RawReading:
    """One record as emitted by the receiver firmware.

    Optional fields are None when the receiver did not report them.
    """

    ready: bool = False
    status: str = ''
    transmitter_id: Optional[int] = None
    rssi: Optional[int] = None
    recv_packets: Optional[int] = None
    lost_packets: Optional[int] = None
    bad_crc_packets: Optional[int] = None
    wind_speed: Optional[float] = None  # mph
    wind_direction: Optional[float] = None  # degrees
    temperature: Optional[float] = None  # °F
    humidity: Optional[float] = None  # percent
    uv_index: Optional[float] = None
    solar_radiation: Optional[float] = None  # W/m²
    rain_spoons: Optional[int] = None
    raw: Optional[str] = None
    version: Optional[str] = None

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> 'RawReading':
        """Build a reading from a decoded JSON object.

        Raises:
            DataValidationError: If a field has the wrong JSON type
        """
        ready = record.get('ready', False)
        if not isinstance(ready, bool):
            raise DataValidationError(f"ready must be a boolean, got {ready!r}")
        status = record.get('status') or ''
        if not isinstance(status, str):
            raise DataValidationError(f"status must be a string, got {status!r}")

        values = {}
        for attr, (key, types) in _READING_FIELDS.items():
            value = record.get(key)
            # bool is an int subclass but never a valid measurement
            if value is not None and (isinstance(value, bool) or not isinstance(value, types)):
                raise DataValidationError(f"{key} has invalid value {value!r}")
            values[attr] = value

        return cls(ready=ready, status=status, **values)


@dataclass(frozen=True)
class DerivedReport:
    """A reading enriched with derived metrics, ready for storage."""

    transmitter_id: Optional[int] = None
    wind_speed: Optional[float] = None
    wind_direction: Optional[float] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    dewpoint: Optional[float] = None
    heat_index: Optional[float] = None
    wind_chill: Optional[float] = None
    uv_index: Optional[float] = None
    solar_radiation: Optional[float] = None
    rainfall: Optional[float] = None


def generate_report(reading: RawReading) -> DerivedReport:
    """Create a weather report from a raw reading.

    A derived metric is left as None when one of its inputs was not reported.
    """
    t = reading.temperature
    rh = reading.humidity
    ws = reading.wind_speed

    return DerivedReport(
        transmitter_id=reading.transmitter_id,
        wind_speed=ws,
        wind_direction=reading.wind_direction,
        temperature=t,
        humidity=rh,
        dewpoint=weather_calc.dewpoint_fahrenheit(t, rh) if t is not None and rh is not None else None,
        heat_index=weather_calc.heat_index_fahrenheit(t, rh) if t is not None and rh is not None else None,
        wind_chill=weather_calc.wind_chill_fahrenheit(t, ws) if t is not None and ws is not None else None,
        uv_index=reading.uv_index,
        solar_radiation=reading.solar_radiation,
        rainfall=weather_calc.rainfall(reading.rain_spoons) if reading.rain_spoons is not None else None,
    )
