"""
Pytest configuration and fixtures for tnsprobe tests.

This module provides shared fixtures for testing the TNS workers against
the simulated NAS service and against mocked QMI clients.
"""

import time
from typing import Callable
from unittest.mock import Mock

import pytest

from tnsprobe.qmi import QmiClient, QmiResponse, SimulatedServiceProvider, SyncPulseConfig
from tnsprobe.tns import ReadinessGate, TnsSettings


# ============================================================================
# Simulated NAS Service
# ============================================================================

@pytest.fixture
def provider():
    """
    Simulated NAS service without periodic pulse reports.

    Yields:
        SimulatedServiceProvider: Provider closed after the test
    """
    sim = SimulatedServiceProvider(pulse_report_interval=None)
    yield sim
    sim.close()


@pytest.fixture
def fast_settings():
    """
    Settings with short intervals so worker tests finish quickly.

    Returns:
        TnsSettings: Validated settings
    """
    settings = TnsSettings(
        poll_interval=0.05,
        send_timeout=1.0,
        retry_backoff=0.01,
        join_timeout=2.0,
        restart_delay=0.01,
    )
    settings.validate()
    return settings


@pytest.fixture
def pulse_config():
    """Non-default sync pulse configuration."""
    return SyncPulseConfig.clamped(pulse_period=20, start_sfn=100, report_period=5)


# ============================================================================
# Worker Collaborators
# ============================================================================

@pytest.fixture
def ready_gate():
    """Readiness gate that is already open."""
    gate = ReadinessGate()
    gate.set_ready(True)
    return gate


@pytest.fixture
def mock_client():
    """
    Mock QMI client that accepts every request.

    Returns:
        Mock: Client with a successful send_request
    """
    client = Mock(spec=QmiClient)
    client.name = "sync_pulse"
    client.is_released = False
    client.send_request.return_value = QmiResponse()
    return client


@pytest.fixture
def wait_for() -> Callable[..., bool]:
    """
    Poll a predicate until it holds or a timeout expires.

    Returns:
        Callable: ``wait_for(predicate, timeout=3.0)`` returning the last result
    """

    def _wait_for(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    return _wait_for
