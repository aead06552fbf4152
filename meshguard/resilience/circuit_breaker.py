"""Per-dependency circuit breakers.

Tracks one circuit per dependency name with:
- Three states: CLOSED (normal), OPEN (failing fast), HALF_OPEN (probing)
- Configurable failure threshold and recovery timeout
- A bounded probe budget while half-open, enforced under the lock
"""

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing fast
    HALF_OPEN = "half_open"  # Testing recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for the circuit breaker."""

    failure_threshold: int = 5  # Failures before opening
    recovery_timeout: float = 30.0  # Seconds before trying half-open
    max_half_open_probes: int = 3  # Probes admitted per half-open window

    def __post_init__(self):
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.recovery_timeout <= 0:
            raise ValueError("recovery_timeout must be > 0")
        if self.max_half_open_probes < 1:
            raise ValueError("max_half_open_probes must be >= 1")


@dataclass
class CircuitRecord:
    """State of the circuit for a single dependency."""

    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: Optional[float] = None
    next_attempt_time: Optional[float] = None
    half_open_probe_count: int = 0
    half_open_successes: int = 0
    total_calls: int = 0
    total_successes: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        data = dataclasses.asdict(self)
        data["state"] = self.state.value
        return data


StateListener = Callable[[str, CircuitState, CircuitState], None]


class CircuitBreaker:
    """Circuit breakers for every dependency, guarded by one lock.

    Usage:
        breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=3))

        if breaker.can_call("inference-backend"):
            try:
                result = call_backend()
                breaker.record_success("inference-backend")
            except Exception:
                breaker.record_failure("inference-backend")

    A True answer from can_call() admits exactly one attempt. Callers
    must not query again for the same attempt.
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize circuit breaker.

        Args:
            config: Circuit breaker configuration
            clock: Time source in seconds
        """
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._circuits: dict[str, CircuitRecord] = {}
        self._listeners: list[StateListener] = []
        self._lock = threading.Lock()

    def add_listener(self, listener: StateListener) -> None:
        """Register a callback invoked as listener(name, old_state, new_state)."""
        self._listeners.append(listener)

    def can_call(self, name: str) -> bool:
        """Check whether an attempt against a dependency is admitted.

        An open circuit whose recovery timeout has elapsed moves to
        HALF_OPEN here, and the admitted call counts as its first probe.

        Args:
            name: Dependency name

        Returns:
            True if the caller may invoke the dependency once
        """
        transition = None
        with self._lock:
            record = self._get_or_create(name)

            if record.state == CircuitState.CLOSED:
                return True

            if record.state == CircuitState.OPEN:
                if self._clock() < record.next_attempt_time:
                    return False
                transition = self._to_half_open(name, record)
                record.half_open_probe_count = 1
                admitted = True
            elif record.half_open_probe_count < self.config.max_half_open_probes:
                record.half_open_probe_count += 1
                admitted = True
            else:
                admitted = False

        self._notify(transition)
        return admitted

    def record_success(self, name: str) -> None:
        """Record a successful call to a dependency."""
        transition = None
        with self._lock:
            record = self._get_or_create(name)
            record.total_calls += 1
            record.total_successes += 1

            if record.state == CircuitState.CLOSED:
                record.failure_count = 0
            elif record.state == CircuitState.HALF_OPEN:
                record.half_open_successes += 1
                if record.half_open_successes >= self.config.max_half_open_probes:
                    transition = self._to_closed(name, record)
            # OPEN: a straggler admitted before the circuit opened; no transition

        self._notify(transition)

    def record_failure(self, name: str) -> None:
        """Record a failed call to a dependency."""
        transition = None
        with self._lock:
            record = self._get_or_create(name)
            now = self._clock()
            record.total_calls += 1
            record.failure_count += 1
            record.last_failure_time = now

            if record.state == CircuitState.CLOSED:
                if record.failure_count >= self.config.failure_threshold:
                    transition = self._to_open(name, record, now)
            elif record.state == CircuitState.HALF_OPEN:
                # One bad probe forfeits the whole recovery window
                transition = self._to_open(name, record, now)

        self._notify(transition)

    def get_state(self, name: str) -> CircuitRecord:
        """Get a copy of a dependency's circuit record."""
        with self._lock:
            record = self._circuits.get(name)
            if record is None:
                return CircuitRecord()
            return dataclasses.replace(record)

    def get_stats(self) -> dict[str, Any]:
        """Get statistics across all circuits.

        Returns:
            Dictionary with total_circuits, per-state counts and records
        """
        with self._lock:
            states = {state.value: 0 for state in CircuitState}
            circuits = {}
            for name, record in self._circuits.items():
                states[record.state.value] += 1
                circuits[name] = record.to_dict()
            return {
                "total_circuits": len(self._circuits),
                "states": states,
                "circuits": circuits,
            }

    def reset(self, name: str) -> None:
        """Force a dependency's circuit back to CLOSED."""
        transition = None
        with self._lock:
            record = self._circuits.get(name)
            if record is None:
                return
            old_state = record.state
            record.state = CircuitState.CLOSED
            record.failure_count = 0
            record.next_attempt_time = None
            record.half_open_probe_count = 0
            record.half_open_successes = 0
            if old_state != CircuitState.CLOSED:
                transition = (name, old_state, CircuitState.CLOSED)
        logger.info(f"Circuit breaker for {name} manually reset")
        self._notify(transition)

    def _get_or_create(self, name: str) -> CircuitRecord:
        record = self._circuits.get(name)
        if record is None:
            record = CircuitRecord()
            self._circuits[name] = record
        return record

    def _to_open(self, name: str, record: CircuitRecord, now: float) -> tuple:
        old_state = record.state
        record.state = CircuitState.OPEN
        record.next_attempt_time = now + self.config.recovery_timeout
        record.half_open_probe_count = 0
        record.half_open_successes = 0
        logger.warning(
            f"Circuit breaker for {name} OPENED after {record.failure_count} failures, "
            f"next attempt in {self.config.recovery_timeout}s"
        )
        return (name, old_state, CircuitState.OPEN)

    def _to_half_open(self, name: str, record: CircuitRecord) -> tuple:
        record.state = CircuitState.HALF_OPEN
        record.half_open_probe_count = 0
        record.half_open_successes = 0
        logger.info(f"Circuit breaker for {name} entering HALF_OPEN for recovery test")
        return (name, CircuitState.OPEN, CircuitState.HALF_OPEN)

    def _to_closed(self, name: str, record: CircuitRecord) -> tuple:
        record.state = CircuitState.CLOSED
        record.failure_count = 0
        record.next_attempt_time = None
        record.half_open_probe_count = 0
        record.half_open_successes = 0
        logger.info(f"Circuit breaker for {name} CLOSED - dependency recovered")
        return (name, CircuitState.HALF_OPEN, CircuitState.CLOSED)

    def _notify(self, transition: Optional[tuple]) -> None:
        if transition is None:
            return
        for listener in list(self._listeners):
            try:
                listener(*transition)
            except Exception:
                logger.exception(f"Circuit state listener failed for {transition[0]}")
