"""Tests for degradation module."""

import pytest


def test_degradation_imports():
    """Test that degradation module can be imported."""
    from meshguard.degradation import (
        DegradationLevel,
        DegradationTracker,
        FeatureGate,
        HealthRecord,
        HealthStatus,
    )

    assert DegradationTracker is not None
    assert FeatureGate is not None
    assert DegradationLevel.NONE < DegradationLevel.CRITICAL
