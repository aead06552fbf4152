"""Tests for the feature gate."""

import pytest

from meshguard.degradation.features import DEFAULT_FEATURE_REQUIREMENTS, FeatureGate
from meshguard.degradation.levels import DegradationLevel


class TestFeatureGate:
    """Test FeatureGate."""

    def test_default_requirements(self):
        gate = FeatureGate()
        assert gate.max_level("advanced_ai") == DegradationLevel.NONE
        assert gate.max_level("basic_storage") == DegradationLevel.CRITICAL
        assert gate.max_level("search") == DegradationLevel.PARTIAL

    def test_unknown_feature_requires_full_health(self):
        gate = FeatureGate()
        assert gate.max_level("unknown") == DegradationLevel.NONE
        assert gate.allows("unknown", DegradationLevel.NONE) is True
        assert gate.allows("unknown", DegradationLevel.MINIMAL) is False

    @pytest.mark.parametrize(
        "level,expected",
        [
            (DegradationLevel.NONE, True),
            (DegradationLevel.MINIMAL, True),
            (DegradationLevel.PARTIAL, True),
            (DegradationLevel.MAJOR, False),
            (DegradationLevel.CRITICAL, False),
        ],
    )
    def test_search_availability(self, level, expected):
        assert FeatureGate().allows("search", level) is expected

    def test_always_available_features(self):
        gate = FeatureGate()
        for feature in ("backup", "basic_storage"):
            assert gate.allows(feature, DegradationLevel.CRITICAL) is True

    def test_custom_table(self):
        gate = FeatureGate({"reports": DegradationLevel.MAJOR})
        assert gate.allows("reports", DegradationLevel.MAJOR) is True
        assert gate.allows("search", DegradationLevel.MINIMAL) is False

    def test_table_is_read_only(self):
        gate = FeatureGate()
        with pytest.raises(TypeError):
            gate.requirements["search"] = DegradationLevel.CRITICAL
        assert DEFAULT_FEATURE_REQUIREMENTS["search"] == DegradationLevel.PARTIAL
