"""
Shared fixtures for the reqprobe test suite.
"""

import io
from dataclasses import replace

import pytest
from prometheus_client import CollectorRegistry

from reqprobe.utils.config import Config, FilterConfig, HttpConfig, NetworkConfig, OutputConfig
from reqprobe.utils.monitoring import ProbeMetrics


@pytest.fixture
def make_config():
    """Build a Config with selected sections replaced by keyword values."""

    def _make(network=None, http=None, output=None, filter=None):
        config = Config()
        return replace(
            config,
            network=NetworkConfig(**(network or {})),
            http=HttpConfig(**(http or {})),
            output=OutputConfig(**(output or {})),
            filter=FilterConfig(**(filter or {})),
        )

    return _make


@pytest.fixture
def metrics():
    """Metrics bound to a private registry so tests never collide."""
    return ProbeMetrics(registry=CollectorRegistry())


@pytest.fixture
def output_buffer():
    return io.StringIO()
