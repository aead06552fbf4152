"""Prometheus-format metrics for MeshGuard.

Exports on /metrics for Prometheus scraping:
- Call metrics: calls_total, call_failures_total, call_latency_seconds
- Circuit metrics: circuit_state, circuit_transitions_total
- Degradation metrics: degradation_level

When the server is given an orchestrator, /health returns the dependency
health records as JSON.
"""

import bisect
import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional

from ..degradation.levels import DegradationLevel

logger = logging.getLogger(__name__)


# =============================================================================
# Metric Classes (Lightweight implementation without prometheus_client dependency)
# =============================================================================


class _Metric:
    """Shared label handling for all metric types."""

    kind = "untyped"

    def __init__(self, name: str, description: str, labels: Optional[list[str]] = None):
        self.name = name
        self.description = description
        self._label_names = labels or []
        self._lock = threading.Lock()

    def _key(self, kwargs: dict[str, Any]) -> tuple:
        return tuple(str(kwargs.get(l, "")) for l in self._label_names)

    def _format_labels(self, label_values: tuple, extra: str = "") -> str:
        parts = [f'{l}="{v}"' for l, v in zip(self._label_names, label_values)]
        if extra:
            parts.append(extra)
        return "{" + ",".join(parts) + "}" if parts else ""

    def _header(self) -> list[str]:
        return [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.kind}"]

    def _render(self, values: dict[tuple, float]) -> str:
        lines = self._header()
        for label_values, value in values.items():
            lines.append(f"{self.name}{self._format_labels(label_values)} {value}")
        return "\n".join(lines)


class Counter(_Metric):
    """A counter metric that can only increase."""

    kind = "counter"

    def __init__(self, name: str, description: str, labels: Optional[list[str]] = None):
        super().__init__(name, description, labels)
        self._values: dict[tuple, float] = {}

    def labels(self, **kwargs) -> "_Bound":
        """Return the counter bound to specific label values."""
        return _Bound(self, self._key(kwargs))

    def inc(self, value: float = 1.0) -> None:
        """Increment the unlabelled counter."""
        self._inc((), value)

    def _inc(self, key: tuple, value: float = 1.0) -> None:
        if value < 0:
            raise ValueError("Counters can only increase")
        with self._lock:
            self._values[key] = self._values.get(key, 0) + value

    def get(self, **kwargs) -> float:
        """Get the current value for a label set."""
        with self._lock:
            return self._values.get(self._key(kwargs), 0)

    def get_all(self) -> dict[tuple, float]:
        """Get all values."""
        with self._lock:
            return self._values.copy()

    def to_prometheus(self) -> str:
        """Format as Prometheus text."""
        with self._lock:
            return self._render(self._values)


class Gauge(_Metric):
    """A gauge metric that can be set, increased or decreased."""

    kind = "gauge"

    def __init__(self, name: str, description: str, labels: Optional[list[str]] = None):
        super().__init__(name, description, labels)
        self._values: dict[tuple, float] = {}

    def labels(self, **kwargs) -> "_Bound":
        """Return the gauge bound to specific label values."""
        return _Bound(self, self._key(kwargs))

    def set(self, value: float) -> None:
        """Set the unlabelled gauge."""
        self._set((), value)

    def inc(self, value: float = 1.0) -> None:
        """Increment the unlabelled gauge."""
        self._inc((), value)

    def dec(self, value: float = 1.0) -> None:
        """Decrement the unlabelled gauge."""
        self._inc((), -value)

    def _inc(self, key: tuple, value: float = 1.0) -> None:
        with self._lock:
            self._values[key] = self._values.get(key, 0) + value

    def _set(self, key: tuple, value: float) -> None:
        with self._lock:
            self._values[key] = value

    def get(self, **kwargs) -> float:
        """Get the current value for a label set."""
        with self._lock:
            return self._values.get(self._key(kwargs), 0)

    def get_all(self) -> dict[tuple, float]:
        """Get all values."""
        with self._lock:
            return self._values.copy()

    def to_prometheus(self) -> str:
        """Format as Prometheus text."""
        with self._lock:
            return self._render(self._values)


class Histogram(_Metric):
    """A histogram metric for tracking distributions.

    Only per-bucket counts, the sum and the count are kept per label set,
    so memory stays constant however many values are observed.
    """

    kind = "histogram"
    DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

    def __init__(
        self,
        name: str,
        description: str,
        labels: Optional[list[str]] = None,
        buckets: Optional[tuple] = None,
    ):
        super().__init__(name, description, labels)
        self.buckets = tuple(sorted(buckets or self.DEFAULT_BUCKETS))
        self._bucket_counts: dict[tuple, list[int]] = {}
        self._sums: dict[tuple, float] = {}
        self._counts: dict[tuple, int] = {}

    def labels(self, **kwargs) -> "_Bound":
        """Return the histogram bound to specific label values."""
        return _Bound(self, self._key(kwargs))

    def observe(self, value: float) -> None:
        """Record an unlabelled observation."""
        self._observe((), value)

    def _observe(self, key: tuple, value: float) -> None:
        # Index of the first bucket whose upper bound holds the value
        index = bisect.bisect_left(self.buckets, value)
        with self._lock:
            counts = self._bucket_counts.setdefault(key, [0] * len(self.buckets))
            if index < len(self.buckets):
                counts[index] += 1
            self._sums[key] = self._sums.get(key, 0.0) + value
            self._counts[key] = self._counts.get(key, 0) + 1

    def get(self, **kwargs) -> dict[str, float]:
        """Get the observation count and sum for a label set."""
        key = self._key(kwargs)
        with self._lock:
            return {"count": self._counts.get(key, 0), "sum": self._sums.get(key, 0.0)}

    def get_all(self) -> dict[tuple, dict[str, float]]:
        """Get the observation count and sum for every label set."""
        with self._lock:
            return {
                key: {"count": count, "sum": self._sums[key]}
                for key, count in self._counts.items()
            }

    def to_prometheus(self) -> str:
        """Format as Prometheus text."""
        lines = self._header()
        with self._lock:
            for label_values, counts in self._bucket_counts.items():
                cumulative = 0
                for bucket, count in zip(self.buckets, counts):
                    cumulative += count
                    labels = self._format_labels(label_values, f'le="{bucket}"')
                    lines.append(f"{self.name}_bucket{labels} {cumulative}")
                total = self._counts[label_values]
                labels = self._format_labels(label_values, 'le="+Inf"')
                lines.append(f"{self.name}_bucket{labels} {total}")
                plain = self._format_labels(label_values)
                lines.append(f"{self.name}_sum{plain} {self._sums[label_values]}")
                lines.append(f"{self.name}_count{plain} {total}")
        return "\n".join(lines)


class _Bound:
    """A metric with its label values fixed."""

    def __init__(self, parent: _Metric, key: tuple):
        self._parent = parent
        self._key = key

    def inc(self, value: float = 1.0) -> None:
        self._parent._inc(self._key, value)

    def dec(self, value: float = 1.0) -> None:
        self._parent._inc(self._key, -value)

    def set(self, value: float) -> None:
        self._parent._set(self._key, value)

    def observe(self, value: float) -> None:
        self._parent._observe(self._key, value)


# =============================================================================
# Call Metrics
# =============================================================================

calls_total = Counter(
    name="meshguard_calls_total",
    description="Total number of orchestrated calls by response source",
    labels=["dependency", "operation", "source"],
)

call_failures_total = Counter(
    name="meshguard_call_failures_total",
    description="Total number of failed dependency invocations",
    labels=["dependency", "error_type"],
)

call_latency_seconds = Histogram(
    name="meshguard_call_latency_seconds",
    description="Dependency invocation latency in seconds",
    labels=["dependency"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)


# =============================================================================
# Circuit Metrics
# =============================================================================

# 0 = closed, 1 = half-open, 2 = open
circuit_state = Gauge(
    name="meshguard_circuit_state",
    description="Current circuit state per dependency",
    labels=["dependency"],
)

circuit_transitions_total = Counter(
    name="meshguard_circuit_transitions_total",
    description="Number of circuit state transitions by target state",
    labels=["dependency", "state"],
)


# =============================================================================
# Degradation Metrics
# =============================================================================

degradation_level = Gauge(
    name="meshguard_degradation_level",
    description="Degradation level per dependency (0 none .. 4 critical)",
    labels=["dependency"],
)


_ALL_METRICS = [
    calls_total,
    call_failures_total,
    call_latency_seconds,
    circuit_state,
    circuit_transitions_total,
    degradation_level,
]


def generate_metrics() -> str:
    """Generate all metrics in Prometheus text format."""
    return "\n\n".join(metric.to_prometheus() for metric in _ALL_METRICS)


# =============================================================================
# Metrics HTTP Server
# =============================================================================


class MetricsHandler(BaseHTTPRequestHandler):
    """HTTP handler for the metrics and health endpoints."""

    orchestrator: Any = None

    def do_GET(self):
        """Handle GET requests."""
        if self.path == "/metrics":
            self._respond(200, "text/plain; charset=utf-8", generate_metrics().encode("utf-8"))
        elif self.path == "/health":
            status, body = self._health()
            self._respond(status, "application/json", json.dumps(body).encode("utf-8"))
        else:
            self.send_response(404)
            self.end_headers()

    def _health(self) -> tuple[int, dict[str, Any]]:
        if self.orchestrator is None:
            return 200, {"status": "ok"}
        level = self.orchestrator.system_degradation_level()
        body = {
            "level": level.name,
            "dependencies": {
                name: record.to_dict()
                for name, record in self.orchestrator.get_all_health().items()
            },
        }
        return (503 if level >= DegradationLevel.CRITICAL else 200), body

    def _respond(self, status: int, content_type: str, payload: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format, *args):
        """Route request logs to debug level."""
        logger.debug(format % args)


class MetricsServer:
    """HTTP server for Prometheus metrics and dependency health."""

    def __init__(self, host: str = "0.0.0.0", port: int = 8000, orchestrator: Any = None):
        """Initialize metrics server.

        Args:
            host: Host to bind to
            port: Port to listen on (0 picks a free port)
            orchestrator: Optional orchestrator backing /health
        """
        self.host = host
        self.port = port
        self.orchestrator = orchestrator
        self._server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the server in a background thread."""
        if self._server is not None:
            logger.warning("Metrics server already running")
            return

        handler = type("BoundMetricsHandler", (MetricsHandler,), {"orchestrator": self.orchestrator})
        self._server = HTTPServer((self.host, self.port), handler)
        self.port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info(f"Metrics server started on http://{self.host}:{self.port}/metrics")

    def stop(self) -> None:
        """Stop the server."""
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
            self._thread = None
            logger.info("Metrics server stopped")

    @property
    def is_running(self) -> bool:
        """Check if server is running."""
        return self._server is not None
