"""Feature gate: which features survive which degradation level."""

from types import MappingProxyType
from typing import Mapping, Optional

from .levels import DegradationLevel

# Feature -> highest system degradation level at which it stays available
DEFAULT_FEATURE_REQUIREMENTS: dict[str, DegradationLevel] = {
    "compression": DegradationLevel.MAJOR,
    "search": DegradationLevel.PARTIAL,
    "analytics": DegradationLevel.MINIMAL,
    "backup": DegradationLevel.CRITICAL,
    "advanced_ai": DegradationLevel.NONE,
    "basic_storage": DegradationLevel.CRITICAL,
}


class FeatureGate:
    """Read-only table mapping feature names to their tolerable level.

    Unknown features require a fully healthy system.
    """

    def __init__(self, requirements: Optional[Mapping[str, DegradationLevel]] = None):
        if requirements is None:
            requirements = DEFAULT_FEATURE_REQUIREMENTS
        self._requirements = MappingProxyType(
            {name: DegradationLevel(level) for name, level in requirements.items()}
        )

    @property
    def requirements(self) -> Mapping[str, DegradationLevel]:
        return self._requirements

    def max_level(self, feature: str) -> DegradationLevel:
        """Highest degradation level at which the feature is still served."""
        return self._requirements.get(feature, DegradationLevel.NONE)

    def allows(self, feature: str, level: DegradationLevel) -> bool:
        return level <= self.max_level(feature)
