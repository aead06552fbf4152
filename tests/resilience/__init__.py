"""Tests for resilience module."""

import pytest


def test_resilience_imports():
    """Test that resilience module can be imported."""
    from meshguard.resilience import (
        CircuitBreaker,
        CircuitBreakerConfig,
        CircuitState,
        FallbackStore,
        run_with_timeout,
        ServiceTimeoutError,
    )

    assert CircuitBreaker is not None
    assert FallbackStore is not None
    assert run_with_timeout is not None
    assert issubclass(ServiceTimeoutError, Exception)
