"""MeshGuard: resilience and degradation orchestration for unreliable dependencies."""

__version__ = "0.1.0"

from .config import ConfigurationError, Settings, load_settings
from .degradation import DegradationLevel, HealthRecord, HealthStatus
from .orchestrator import Orchestrator, ResponseSource, ServiceResponse

__all__ = [
    "Orchestrator",
    "ServiceResponse",
    "ResponseSource",
    "HealthRecord",
    "HealthStatus",
    "DegradationLevel",
    "Settings",
    "load_settings",
    "ConfigurationError",
]
