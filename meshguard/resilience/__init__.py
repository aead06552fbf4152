"""Resilience primitives for MeshGuard.

This module provides:
- Per-dependency circuit breakers
- Cached and static fallbacks
- Timeout wrappers
"""

from .circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitRecord, CircuitState
from .fallback import DEFAULT_STATIC_FALLBACKS, FallbackEntry, FallbackStore
from .timeout import ServiceTimeoutError, run_with_async_timeout, run_with_timeout

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitRecord",
    "CircuitState",
    "FallbackStore",
    "FallbackEntry",
    "DEFAULT_STATIC_FALLBACKS",
    "run_with_timeout",
    "run_with_async_timeout",
    "ServiceTimeoutError",
]
