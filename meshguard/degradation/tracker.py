"""Degradation tracker for downstream dependencies.

Keeps one HealthRecord per dependency and derives the system-wide
degradation level from the worst of them.
"""

import copy
import dataclasses
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .features import FeatureGate
from .levels import DegradationLevel, HealthStatus, level_for_failures, status_for_failures

logger = logging.getLogger(__name__)


@dataclass
class HealthRecord:
    """Health of a single dependency."""

    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    consecutive_failures: int = 0
    last_error: Optional[str] = None
    last_latency: float = 0.0  # Seconds
    last_check: Optional[float] = None
    degradation_level: DegradationLevel = DegradationLevel.NONE
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "name": self.name,
            "status": self.status.value,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
            "last_latency": self.last_latency,
            "last_check": self.last_check,
            "degradation_level": self.degradation_level.name,
            "metadata": dict(self.metadata),
        }


class DegradationTracker:
    """Tracks dependency health and answers feature availability."""

    def __init__(
        self,
        failure_threshold: int = 5,
        feature_gate: Optional[FeatureGate] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize tracker.

        Args:
            failure_threshold: Consecutive failures at which a dependency is unhealthy
            feature_gate: Feature availability table
            clock: Time source in seconds
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.failure_threshold = failure_threshold
        self.feature_gate = feature_gate or FeatureGate()
        self._clock = clock
        self._records: dict[str, HealthRecord] = {}
        self._lock = threading.Lock()

    def register(self, name: str) -> bool:
        """Start tracking a dependency. Idempotent.

        Returns:
            True if the dependency was newly registered
        """
        with self._lock:
            if name in self._records:
                return False
            self._records[name] = HealthRecord(name=name, last_check=self._clock())
        logger.info(f"Dependency {name} registered for degradation monitoring")
        return True

    def record_outcome(
        self,
        name: str,
        error: Optional[BaseException],
        latency: float,
    ) -> HealthRecord:
        """Record the outcome of a call or health probe.

        Args:
            name: Dependency name
            error: The failure, or None on success
            latency: Duration of the attempt in seconds

        Returns:
            Copy of the updated record
        """
        with self._lock:
            record = self._get_or_create(name)
            previous_failures = record.consecutive_failures
            record.last_check = self._clock()
            record.last_latency = latency

            if error is None:
                record.consecutive_failures = 0
                record.last_error = None
                record.status = HealthStatus.HEALTHY
                record.degradation_level = DegradationLevel.NONE
            else:
                record.consecutive_failures += 1
                record.last_error = str(error) or type(error).__name__
                record.status = status_for_failures(
                    record.consecutive_failures, self.failure_threshold
                )
                record.degradation_level = level_for_failures(
                    record.consecutive_failures, self.failure_threshold
                )
            snapshot = copy.deepcopy(record)

        if error is None and previous_failures > 0:
            logger.info(f"Dependency {name} recovered after {previous_failures} failures")
        elif error is not None and snapshot.consecutive_failures == 1:
            logger.warning(f"Dependency {name} failure detected: {snapshot.last_error}")
        return snapshot

    def mark_unavailable(self, name: str) -> None:
        """Flag a dependency whose calls are being short-circuited."""
        with self._lock:
            record = self._get_or_create(name)
            record.status = HealthStatus.UNAVAILABLE
            record.last_check = self._clock()

    def set_metadata(self, name: str, key: str, value: Any) -> bool:
        """Annotate a tracked dependency.

        Returns:
            False if the dependency is not tracked
        """
        with self._lock:
            record = self._records.get(name)
            if record is None:
                return False
            record.metadata[key] = value
            return True

    def get(self, name: str) -> Optional[HealthRecord]:
        """Get a deep copy of a dependency's record, or None."""
        with self._lock:
            record = self._records.get(name)
            return copy.deepcopy(record) if record is not None else None

    def get_all(self) -> dict[str, HealthRecord]:
        """Get deep copies of every record."""
        with self._lock:
            return copy.deepcopy(self._records)

    def system_degradation_level(self) -> DegradationLevel:
        """The worst degradation level across all tracked dependencies."""
        with self._lock:
            return max(
                (record.degradation_level for record in self._records.values()),
                default=DegradationLevel.NONE,
            )

    def is_feature_available(self, feature: str) -> bool:
        """Check whether a feature may be served at the current system level."""
        return self.feature_gate.allows(feature, self.system_degradation_level())

    def get_stats(self) -> dict[str, Any]:
        """Get per-status and per-level breakdowns."""
        with self._lock:
            status_breakdown = {status.value: 0 for status in HealthStatus}
            level_breakdown = {level.name: 0 for level in DegradationLevel}
            for record in self._records.values():
                status_breakdown[record.status.value] += 1
                level_breakdown[record.degradation_level.name] += 1
            return {
                "total_dependencies": len(self._records),
                "status_breakdown": status_breakdown,
                "degradation_breakdown": level_breakdown,
            }

    def _get_or_create(self, name: str) -> HealthRecord:
        record = self._records.get(name)
        if record is None:
            record = HealthRecord(name=name)
            self._records[name] = record
        return record
