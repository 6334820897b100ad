"""
wxinflux

Reads weather reports from a Davis ISS receiver on a serial port, derives
dewpoint, heat index, wind chill and rainfall, and stores the results in
an InfluxDB time-series database.
"""

__version__ = "1.0.0"
__author__ = "wxinflux contributors"
