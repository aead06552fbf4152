"""Pytest configuration and fixtures for MeshGuard tests."""

import os
import pytest

from meshguard.config import Settings
from meshguard.degradation import DegradationTracker
from meshguard.orchestrator import Orchestrator
from meshguard.resilience import CircuitBreaker, FallbackStore


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def use_test_environment(monkeypatch):
    """Keep stray MESHGUARD_* variables out of the tests."""
    for key in list(os.environ):
        if key.startswith("MESHGUARD_"):
            monkeypatch.delenv(key)


@pytest.fixture
def clock():
    """Fake clock starting at a fixed epoch."""
    return FakeClock()


@pytest.fixture
def make_settings():
    """Build settings with test-friendly defaults."""

    def _make(**overrides) -> Settings:
        values = {
            "failure_threshold": 3,
            "recovery_timeout": 30.0,
            "max_half_open_probes": 1,
            "service_timeout": 1.0,
            "fallbacks_enabled": True,
            "health_check_interval": 0.05,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def make_orchestrator(make_settings, clock):
    """Build an orchestrator whose circuit breaker runs on the fake clock."""

    def _make(static_fallbacks=None, **overrides) -> Orchestrator:
        settings = make_settings(**overrides)
        return Orchestrator(
            settings,
            circuit_breaker=CircuitBreaker(settings.circuit_config(), clock=clock),
            tracker=DegradationTracker(failure_threshold=settings.failure_threshold, clock=clock),
            fallback_store=FallbackStore(static_fallbacks=static_fallbacks, clock=clock),
        )

    return _make

