"""Configuration for MeshGuard."""

import logging
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .resilience.circuit_breaker import CircuitBreakerConfig


class ConfigurationError(Exception):
    """Raised when settings are malformed. Fatal at startup."""

    pass


class Settings(BaseSettings):
    """Orchestration layer settings."""

    model_config = SettingsConfigDict(
        env_prefix="MESHGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Circuit breaker
    failure_threshold: int = Field(default=5, ge=1)  # Failures before opening
    recovery_timeout: float = Field(default=30.0, gt=0)  # Seconds before half-open
    max_half_open_probes: int = Field(default=3, ge=1)

    # Calls
    service_timeout: float = Field(default=10.0, gt=0)  # Seconds per unit of work
    fallbacks_enabled: bool = True
    fallback_cache_max_entries: Optional[int] = Field(default=None, ge=1)

    # Health checks
    health_check_interval: float = Field(default=30.0, gt=0)

    # Monitoring
    metrics_host: str = "0.0.0.0"
    metrics_port: int = Field(default=8000, ge=0, le=65535)
    log_level: str = "INFO"

    def circuit_config(self) -> CircuitBreakerConfig:
        """Build the circuit breaker configuration from these settings."""
        return CircuitBreakerConfig(
            failure_threshold=self.failure_threshold,
            recovery_timeout=self.recovery_timeout,
            max_half_open_probes=self.max_half_open_probes,
        )


def load_settings(**overrides) -> Settings:
    """Load settings from the environment, applying explicit overrides.

    Raises:
        ConfigurationError: If any value is missing or out of range
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid MeshGuard configuration: {e}") from e


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for scripts and services."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
