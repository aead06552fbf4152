"""Monitoring module for MeshGuard.

This module provides:
- Prometheus-format metrics for calls, circuits and degradation
- An HTTP server for /metrics and /health
"""

from .metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsServer,
    call_failures_total,
    call_latency_seconds,
    calls_total,
    circuit_state,
    circuit_transitions_total,
    degradation_level,
    generate_metrics,
)

__all__ = [
    "Counter",
    "Gauge",
    "Histogram",
    "calls_total",
    "call_failures_total",
    "call_latency_seconds",
    "circuit_state",
    "circuit_transitions_total",
    "degradation_level",
    "generate_metrics",
    "MetricsServer",
]
