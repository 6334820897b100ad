"""Shared fixtures."""

import os
import tempfile

import pytest
import yaml


@pytest.fixture
def config_data():
    """A minimal valid configuration."""
    return {
        'influxdb': {
            'url': 'http://localhost:8086',
            'dbname': 'weather',
            'user': 'wx',
            'pass': 'secret',
        },
        'si1000': {'device': '/dev/ttyUSB0', 'baud': 19200},
    }


@pytest.fixture
def write_config():
    """Write a config mapping to a temporary YAML file."""
    paths = []

    def _write(data):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.dump(data, f)
            paths.append(f.name)
        return f.name

    yield _write

    for path in paths:
        os.unlink(path)
