"""Tests for monitoring module."""

import pytest


def test_monitoring_imports():
    """Test that all monitoring module components can be imported."""
    from meshguard.monitoring import (
        calls_total,
        call_failures_total,
        call_latency_seconds,
        circuit_state,
        circuit_transitions_total,
        degradation_level,
        MetricsServer,
    )

    assert calls_total is not None
    assert MetricsServer is not None
