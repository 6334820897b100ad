"""Derived meteorological metrics.

All functions are pure. Temperatures are in °F unless the name says
otherwise, humidity is relative humidity in percent and wind speed is in mph.
"""

import math

# Rain collected per tip of the tipping-bucket gauge.
RAIN_PER_TIP = 0.1

MAGNUS_B = 17.27
MAGNUS_C = 237.7


def f_to_c(t: float) -> float:
    """Convert °F to °C."""
    return (t - 32.0) * 5.0 / 9.0


def c_to_f(t: float) -> float:
    """Convert °C to °F."""
    return (t * 9.0 / 5.0) + 32.0


def dewpoint_celsius(t: float, rh: float) -> float:
    """Calculate the dewpoint in °C using the Magnus formula.

    See https://en.wikipedia.org/wiki/Dew_point#Calculating_the_dew_point

    Degenerate inputs return 0.0 instead of raising or producing NaN:
    temperatures below freezing, the two divide-by-zero points of the
    formula, and non-positive humidity (outside the domain of the log).

    Args:
        t: Temperature in °C
        rh: Relative humidity in percent

    Returns:
        Dewpoint in °C
    """
    if t < 0:
        return 0.0

    if t == -MAGNUS_C:
        return 0.0

    if rh <= 0:
        return 0.0

    rh = rh / 100.0
    gamma = MAGNUS_B * t / (MAGNUS_C + t) + math.log(rh)

    if gamma == MAGNUS_B:
        return 0.0

    return MAGNUS_C * gamma / (MAGNUS_B - gamma)


def dewpoint_fahrenheit(t: float, rh: float) -> float:
    """Calculate the dewpoint in °F."""
    return c_to_f(dewpoint_celsius(f_to_c(t), rh))


def wind_chill_fahrenheit(t: float, ws: float) -> float:
    """Calculate the wind chill in °F.

    Uses the NWS formula from http://www.nws.noaa.gov/om/winter/windchill.shtml.
    Wind chill only applies below 50°F with wind above 0 mph; otherwise the
    temperature is returned unchanged.
    """
    if t >= 50 or ws <= 0:
        return t
    return 35.74 + 0.6215 * t + (-35.75 + 0.4275 * t) * math.pow(ws, 0.16)


def heat_index_fahrenheit(t: float, rh: float) -> float:
    """Calculate the heat index in °F.

    Uses the Rothfusz regression from
    http://www.wpc.ncep.noaa.gov/html/heatindex_equation.shtml. Heat index
    only applies from 80°F and above 40% humidity; otherwise the temperature
    is returned unchanged.
    """
    if t < 80.0 or rh <= 40.0:
        return t

    return (-42.379
            + 2.04901523 * t
            + 10.14333127 * rh
            - 0.22475541 * t * rh
            - 6.83783e-3 * t * t
            - 5.481717e-2 * rh * rh
            + 1.22874e-3 * t * t * rh
            + 8.5282e-4 * t * rh * rh
            - 1.99e-6 * t * t * rh * rh)


def rainfall(tips: int) -> float:
    """Convert a rain gauge tip count to rainfall."""
    return tips * RAIN_PER_TIP
