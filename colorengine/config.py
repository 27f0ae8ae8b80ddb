"""
colorengine Configuration
Manages environment variables and defaults for the quantization engine.
"""
import os
from typing import Optional


def _optional_int(name: str) -> Optional[int]:
    value = os.environ.get(name, "").strip()
    return int(value) if value else None


class Config:
    """Runtime settings for the quantization engine."""

    # Logging
    LOG_LEVEL: str = os.environ.get("COLORENGINE_LOG_LEVEL", "INFO")

    # K-means
    KMEANS_MAX_ITERATIONS: int = int(os.environ.get("COLORENGINE_KMEANS_MAX_ITERATIONS", "50"))
    KMEANS_CONVERGENCE_THRESHOLD: float = float(
        os.environ.get("COLORENGINE_KMEANS_CONVERGENCE_THRESHOLD", "1.0")
    )
    KMEANS_MAX_SAMPLES: int = int(os.environ.get("COLORENGINE_KMEANS_MAX_SAMPLES", "10000"))

    # Seed for K-means++ and synthetic images (unset -> fresh entropy per call)
    RANDOM_SEED: Optional[int] = _optional_int("COLORENGINE_RANDOM_SEED")

    # Sample/center pairs held at once during nearest-color assignment
    SCORING_CHUNK_CELLS: int = int(os.environ.get("COLORENGINE_SCORING_CHUNK_CELLS", "1048576"))

    # Observability
    MEMORY_PROBE_ENABLED: bool = bool(int(os.environ.get("COLORENGINE_MEMORY_PROBE_ENABLED", "1")))

    # Comparison scoring weights
    QUALITY_WEIGHT: float = 0.6
    SPEED_WEIGHT: float = 0.3
    MEMORY_WEIGHT: float = 0.1
    SPEED_BUDGET_MS: float = 1000.0
    MEMORY_BUDGET_BYTES: int = 100 * 1024 * 1024

    @classmethod
    def validate_max_iterations(cls, iterations: int) -> bool:
        """Validate K-means iteration cap."""
        return 1 <= iterations <= 1000

    @classmethod
    def validate_convergence_threshold(cls, threshold: float) -> bool:
        """Validate K-means convergence threshold (RGB units)."""
        return 0.0 <= threshold <= 255.0

    @classmethod
    def validate_max_samples(cls, max_samples: int) -> bool:
        """Validate K-means subsampling bound."""
        return max_samples >= 1

    @classmethod
    def validate_log_level(cls, level: str) -> bool:
        """Validate loguru level name."""
        return level.upper() in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


# Global config instance
config = Config()
