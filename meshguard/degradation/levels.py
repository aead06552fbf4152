"""Health status and degradation level enums."""

from enum import Enum, IntEnum


class HealthStatus(str, Enum):
    """Health status of a dependency."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNAVAILABLE = "unavailable"  # Calls are being short-circuited


class DegradationLevel(IntEnum):
    """Severity tiers, ordered so that max() picks the worst."""

    NONE = 0  # Full functionality
    MINIMAL = 1  # Minor features disabled
    PARTIAL = 2  # Some features disabled
    MAJOR = 3  # Most features disabled
    CRITICAL = 4  # Only core features available


def level_for_failures(consecutive_failures: int, failure_threshold: int) -> DegradationLevel:
    """Map a consecutive-failure count onto a degradation level.

    The bands are 0, up to half the threshold, below the threshold, below
    twice the threshold, and beyond.
    """
    if consecutive_failures <= 0:
        return DegradationLevel.NONE
    if consecutive_failures >= 2 * failure_threshold:
        return DegradationLevel.CRITICAL
    if consecutive_failures >= failure_threshold:
        return DegradationLevel.MAJOR
    if consecutive_failures > failure_threshold / 2:
        return DegradationLevel.PARTIAL
    return DegradationLevel.MINIMAL


def status_for_failures(consecutive_failures: int, failure_threshold: int) -> HealthStatus:
    """Map a consecutive-failure count onto a health status."""
    if consecutive_failures >= failure_threshold:
        return HealthStatus.UNHEALTHY
    if consecutive_failures > failure_threshold / 2:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY
