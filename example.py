"""Example script demonstrating MeshGuard degradation handling."""

import logging
import random

from meshguard import Orchestrator, load_settings
from meshguard.config import configure_logging

configure_logging("INFO")
logger = logging.getLogger(__name__)


class FlakyBackend:
    """Stand-in for an inference backend that fails some of the time."""

    def __init__(self, failure_rate: float):
        self.failure_rate = failure_rate

    def chat(self, prompt: str) -> dict:
        if random.random() < self.failure_rate:
            raise ConnectionError("inference backend refused connection")
        return {"response": f"echo: {prompt}"}


def main():
    """Run a short degradation demonstration."""

    logger.info("=" * 60)
    logger.info("MeshGuard degradation demo")
    logger.info("=" * 60)

    settings = load_settings(failure_threshold=3, recovery_timeout=1.0, max_half_open_probes=1)
    orchestrator = Orchestrator(settings)
    backend = FlakyBackend(failure_rate=0.6)

    for i in range(12):
        prompt = f"question {i}"
        response = orchestrator.call("inference-backend", "chat", lambda: backend.chat(prompt))
        logger.info(
            f"  [{i:02d}] success={response.success} source={response.source.value} "
            f"error={response.error}"
        )

    logger.info("-" * 60)
    for name, record in orchestrator.get_all_health().items():
        logger.info(
            f"  {name}: status={record.status.value} "
            f"failures={record.consecutive_failures} level={record.degradation_level.name}"
        )

    for feature in ("advanced_ai", "search", "basic_storage"):
        logger.info(f"  feature {feature}: available={orchestrator.is_feature_available(feature)}")

    stats = orchestrator.get_degradation_stats()
    logger.info(f"System degradation level: {stats['system_degradation_level']}")
    logger.info("=" * 60)


if __name__ == "__main__":
    main()
