"""Orchestrator for calls to unreliable downstream dependencies.

Every call goes through the circuit breaker, is bounded by the service
timeout, updates the degradation tracker, and falls back to a cached or
static response on failure. Callers always get a ServiceResponse back.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .config import Settings, load_settings
from .degradation import DegradationLevel, DegradationTracker, FeatureGate, HealthRecord
from .monitoring import metrics
from .resilience import (
    CircuitBreaker,
    CircuitState,
    FallbackStore,
    run_with_async_timeout,
    run_with_timeout,
)

logger = logging.getLogger(__name__)

CIRCUIT_OPEN_REASON = "circuit open"

_CIRCUIT_STATE_VALUES = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


class ResponseSource(str, Enum):
    """Where a response's data came from."""

    SERVICE = "service"
    FALLBACK = "fallback"
    CACHE = "cache"


@dataclass(frozen=True)
class ServiceResponse:
    """Result of an orchestrated call."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    source: ResponseSource = ResponseSource.SERVICE
    duration: float = 0.0  # Seconds
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "source": self.source.value,
            "duration": self.duration,
            "metadata": dict(self.metadata),
        }


class HealthCheckFailed(Exception):
    """A health probe reported its dependency as unhealthy."""

    pass


class Orchestrator:
    """Facade that protects callers from failing dependencies.

    Usage:
        orchestrator = Orchestrator()

        response = orchestrator.call("inference-backend", "chat", lambda: backend.chat(prompt))
        if response.success:
            render(response.data)

        if orchestrator.is_feature_available("advanced_ai"):
            ...
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        tracker: Optional[DegradationTracker] = None,
        fallback_store: Optional[FallbackStore] = None,
        feature_gate: Optional[FeatureGate] = None,
        timer: Callable[[], float] = time.perf_counter,
    ):
        """Initialize orchestrator.

        Args:
            settings: Configuration, loaded from the environment if omitted
            circuit_breaker: Circuit state per dependency
            tracker: Health records per dependency
            fallback_store: Cached and static fallbacks
            feature_gate: Feature availability table, used when tracker is omitted
            timer: Monotonic time source for call durations
        """
        self.settings = settings or load_settings()
        self.circuit_breaker = circuit_breaker or CircuitBreaker(self.settings.circuit_config())
        self.tracker = tracker or DegradationTracker(
            failure_threshold=self.settings.failure_threshold,
            feature_gate=feature_gate,
        )
        self.fallback_store = fallback_store or FallbackStore(
            max_entries=self.settings.fallback_cache_max_entries,
        )
        self._timer = timer
        self._health_checks: dict[str, Callable[[], Any]] = {}
        self._health_lock = threading.Lock()
        self._health_thread: Optional[threading.Thread] = None
        self._health_stop = threading.Event()

        self.circuit_breaker.add_listener(self._on_circuit_transition)

        logger.info(
            f"Orchestrator initialized (failure_threshold={self.settings.failure_threshold}, "
            f"recovery_timeout={self.settings.recovery_timeout}s, "
            f"service_timeout={self.settings.service_timeout}s, "
            f"fallbacks_enabled={self.settings.fallbacks_enabled})"
        )

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def register_dependency(self, name: str) -> None:
        """Start tracking a dependency. Idempotent."""
        if self.tracker.register(name):
            metrics.circuit_state.labels(dependency=name).set(0)
            metrics.degradation_level.labels(dependency=name).set(0)

    def call(
        self,
        dependency: str,
        operation: str,
        unit_of_work: Callable[[], Any],
    ) -> ServiceResponse:
        """Invoke a unit of work against a dependency with degradation handling.

        Args:
            dependency: Dependency name
            operation: Operation name, used to key fallbacks
            unit_of_work: Zero-argument callable returning the result or raising

        Returns:
            ServiceResponse from the dependency, the cache or a static fallback
        """
        if not self._admit(dependency, operation):
            return self._fallback(dependency, operation, CIRCUIT_OPEN_REASON, 0.0)

        start = self._timer()
        try:
            result = run_with_timeout(
                unit_of_work,
                self.settings.service_timeout,
                name=f"{dependency}.{operation}",
            )
        except Exception as e:
            return self._on_failure(dependency, operation, e, self._timer() - start)
        except BaseException:
            self._abandon(dependency, operation)
            raise
        return self._on_success(dependency, operation, result, self._timer() - start)

    async def call_async(
        self,
        dependency: str,
        operation: str,
        unit_of_work: Callable[[], Awaitable[Any]],
    ) -> ServiceResponse:
        """Async variant of call() for coroutine functions."""
        if not self._admit(dependency, operation):
            return self._fallback(dependency, operation, CIRCUIT_OPEN_REASON, 0.0)

        start = self._timer()
        try:
            result = await run_with_async_timeout(
                unit_of_work,
                self.settings.service_timeout,
                name=f"{dependency}.{operation}",
            )
        except Exception as e:
            return self._on_failure(dependency, operation, e, self._timer() - start)
        except BaseException:
            self._abandon(dependency, operation)
            raise
        return self._on_success(dependency, operation, result, self._timer() - start)

    def _admit(self, dependency: str, operation: str) -> bool:
        self.register_dependency(dependency)
        if self.circuit_breaker.can_call(dependency):
            return True
        logger.warning(f"Circuit open for {dependency} - skipping {operation}, using fallback")
        self.tracker.mark_unavailable(dependency)
        return False

    def _abandon(self, dependency: str, operation: str) -> None:
        """Settle an admitted call that was cancelled or interrupted.

        The call counts as a failure so a half-open slot is never left
        held.
        """
        logger.warning(f"Call to {dependency}.{operation} abandoned, recording as failure")
        self.circuit_breaker.record_failure(dependency)

    def _on_success(
        self,
        dependency: str,
        operation: str,
        result: Any,
        duration: float,
    ) -> ServiceResponse:
        self.circuit_breaker.record_success(dependency)
        record = self.tracker.record_outcome(dependency, None, duration)
        self.fallback_store.put(dependency, operation, result)

        metrics.call_latency_seconds.labels(dependency=dependency).observe(duration)
        metrics.degradation_level.labels(dependency=dependency).set(int(record.degradation_level))
        metrics.calls_total.labels(
            dependency=dependency, operation=operation, source=ResponseSource.SERVICE.value
        ).inc()

        return ServiceResponse(
            success=True,
            data=result,
            source=ResponseSource.SERVICE,
            duration=duration,
            metadata={"dependency": dependency, "operation": operation},
        )

    def _on_failure(
        self,
        dependency: str,
        operation: str,
        error: Exception,
        duration: float,
    ) -> ServiceResponse:
        self.circuit_breaker.record_failure(dependency)
        record = self.tracker.record_outcome(dependency, error, duration)
        reason = str(error) or type(error).__name__

        logger.error(
            f"Call to {dependency}.{operation} failed after {duration * 1000:.0f}ms: {reason}"
        )
        metrics.call_latency_seconds.labels(dependency=dependency).observe(duration)
        metrics.call_failures_total.labels(
            dependency=dependency, error_type=type(error).__name__
        ).inc()
        metrics.degradation_level.labels(dependency=dependency).set(int(record.degradation_level))

        return self._fallback(dependency, operation, reason, duration)

    def _fallback(
        self,
        dependency: str,
        operation: str,
        reason: str,
        duration: float,
    ) -> ServiceResponse:
        """Walk the fallback cascade: cache, static default, hard failure."""
        metadata: dict[str, Any] = {
            "dependency": dependency,
            "operation": operation,
            "reason": reason,
        }

        if not self.settings.fallbacks_enabled:
            return self._count(ServiceResponse(
                success=False,
                error=reason,
                source=ResponseSource.SERVICE,
                duration=duration,
                metadata=metadata,
            ))

        entry = self.fallback_store.get_entry(dependency, operation)
        if entry is not None:
            logger.info(f"Using cached fallback for {dependency}.{operation}: {reason}")
            metadata["cached_at"] = entry.cached_at
            return self._count(ServiceResponse(
                success=True,
                data=entry.value,
                source=ResponseSource.CACHE,
                duration=duration,
                metadata=metadata,
            ))

        static = self.fallback_store.static_fallback(dependency, operation)
        if static is not None:
            logger.info(f"Using static fallback for {dependency}.{operation}: {reason}")
            return self._count(ServiceResponse(
                success=True,
                data=static,
                source=ResponseSource.FALLBACK,
                duration=duration,
                metadata=metadata,
            ))

        return self._count(ServiceResponse(
            success=False,
            error=f"unavailable: {reason}",
            source=ResponseSource.SERVICE,
            duration=duration,
            metadata=metadata,
        ))

    def _count(self, response: ServiceResponse) -> ServiceResponse:
        source = response.source.value if response.success else "failed"
        metrics.calls_total.labels(
            dependency=response.metadata["dependency"],
            operation=response.metadata["operation"],
            source=source,
        ).inc()
        return response

    def _on_circuit_transition(
        self,
        dependency: str,
        old_state: CircuitState,
        new_state: CircuitState,
    ) -> None:
        metrics.circuit_state.labels(dependency=dependency).set(_CIRCUIT_STATE_VALUES[new_state])
        metrics.circuit_transitions_total.labels(
            dependency=dependency, state=new_state.value
        ).inc()

    # ------------------------------------------------------------------
    # Health and degradation
    # ------------------------------------------------------------------

    def get_health(self, name: str) -> Optional[HealthRecord]:
        """Get a copy of a dependency's health record, or None if unknown."""
        return self.tracker.get(name)

    def get_all_health(self) -> dict[str, HealthRecord]:
        """Get copies of every dependency's health record."""
        return self.tracker.get_all()

    def set_metadata(self, name: str, key: str, value: Any) -> None:
        """Annotate a registered dependency's health record."""
        self.tracker.set_metadata(name, key, value)

    def system_degradation_level(self) -> DegradationLevel:
        """The worst degradation level across all dependencies."""
        return self.tracker.system_degradation_level()

    def is_feature_available(self, feature: str) -> bool:
        """Check whether a feature may be served at the current degradation level."""
        return self.tracker.is_feature_available(feature)

    def reset_circuit(self, name: str) -> None:
        """Force a dependency's circuit back to CLOSED."""
        self.circuit_breaker.reset(name)

    def get_degradation_stats(self) -> dict[str, Any]:
        """Get statistics for an operational dashboard."""
        stats = self.tracker.get_stats()
        stats["system_degradation_level"] = self.system_degradation_level().name
        stats["dependencies"] = {
            name: record.to_dict() for name, record in self.get_all_health().items()
        }
        stats["circuit_breaker_stats"] = self.circuit_breaker.get_stats()
        stats["fallback_cache_stats"] = self.fallback_store.get_stats()
        return stats

    # ------------------------------------------------------------------
    # Periodic health checks
    # ------------------------------------------------------------------

    def register_health_check(self, name: str, probe: Callable[[], Any]) -> None:
        """Register a probe for a dependency.

        Args:
            name: Dependency name
            probe: Zero-argument callable; truthy means healthy, falsy or
                raising means unhealthy
        """
        self.register_dependency(name)
        with self._health_lock:
            self._health_checks[name] = probe

    def run_health_checks(self) -> dict[str, bool]:
        """Run every registered probe once and record the outcomes.

        Probes only feed the degradation tracker; circuits and the
        fallback cache are untouched.

        Returns:
            Mapping of dependency name to probe result
        """
        with self._health_lock:
            probes = dict(self._health_checks)

        results = {}
        for name, probe in probes.items():
            start = self._timer()
            error: Optional[Exception] = None
            try:
                if not run_with_timeout(probe, self.settings.service_timeout, f"{name}.health_check"):
                    error = HealthCheckFailed(f"health check failed for {name}")
            except Exception as e:
                error = e
            record = self.tracker.record_outcome(name, error, self._timer() - start)
            metrics.degradation_level.labels(dependency=name).set(int(record.degradation_level))
            results[name] = error is None
        return results

    def start_health_checks(self) -> None:
        """Run health checks every health_check_interval seconds on a daemon thread."""
        if self._health_thread is not None and self._health_thread.is_alive():
            logger.warning("Health checks already running")
            return

        self._health_stop.clear()
        self._health_thread = threading.Thread(
            target=self._health_loop,
            name="meshguard-health",
            daemon=True,
        )
        self._health_thread.start()
        logger.info(f"Health checks started (interval: {self.settings.health_check_interval}s)")

    def stop_health_checks(self, timeout: Optional[float] = None) -> None:
        """Stop the health check thread."""
        if self._health_thread is None:
            return
        self._health_stop.set()
        self._health_thread.join(timeout)
        self._health_thread = None
        logger.info("Health checks stopped")

    def _health_loop(self) -> None:
        while not self._health_stop.wait(self.settings.health_check_interval):
            try:
                self.run_health_checks()
            except Exception:
                logger.exception("Health check cycle failed")
