"""Degradation tracking and feature gating."""

from .features import DEFAULT_FEATURE_REQUIREMENTS, FeatureGate
from .levels import DegradationLevel, HealthStatus
from .tracker import DegradationTracker, HealthRecord

__all__ = [
    "DegradationLevel",
    "HealthStatus",
    "HealthRecord",
    "DegradationTracker",
    "FeatureGate",
    "DEFAULT_FEATURE_REQUIREMENTS",
]
