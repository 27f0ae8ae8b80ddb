"""
Shared quantizer contract.

Every algorithm reads opaque samples from the buffer, reduces them to a
palette and reports it through the same result shape. This module owns the
parts that must behave identically across algorithms: config coercion, the
empty-buffer path, memory-limit enforcement, measurement and scoring.
"""

from typing import List, Mapping, Union

import numpy as np
from loguru import logger

from colorengine.config import config as settings
from colorengine.schemas import ExtractionConfig, ExtractionResult, ExtractedColor, RGBColor
from colorengine.services.observability import ExtractionProbe
from .pixels import MAX_RGB_DISTANCE, BufferLike, nearest_centers, opaque_samples, squared_distances


class MemoryLimitExceeded(RuntimeError):
    """Raised when a run's estimated working set exceeds ``memory_limit``."""


ConfigLike = Union[ExtractionConfig, Mapping]


def coerce_config(config: ConfigLike) -> ExtractionConfig:
    """Validate a config mapping or pass an ExtractionConfig through."""
    if isinstance(config, ExtractionConfig):
        return config
    if isinstance(config, Mapping):
        return ExtractionConfig.model_validate(dict(config))
    raise TypeError(f"Expected ExtractionConfig or mapping, got {type(config).__name__}")


def quality_score(colors: np.ndarray) -> float:
    """Mean pairwise RGB distance of a palette, normalized to [0, 1]."""
    colors = np.asarray(colors, dtype=np.float64).reshape(-1, 3)
    k = colors.shape[0]
    if k < 2:
        return 0.0
    distances = np.sqrt(squared_distances(colors, colors))
    upper = distances[np.triu_indices(k, 1)]
    return float(min(upper.mean() / MAX_RGB_DISTANCE, 1.0))


def importance_scores(colors: np.ndarray) -> np.ndarray:
    """Distance from each color to its nearest other palette color, normalized."""
    colors = np.asarray(colors, dtype=np.float64).reshape(-1, 3)
    k = colors.shape[0]
    if k == 0:
        return np.zeros(0)
    if k == 1:
        return np.ones(1)
    distances = np.sqrt(squared_distances(colors, colors))
    np.fill_diagonal(distances, np.inf)
    return np.minimum(distances.min(axis=1) / MAX_RGB_DISTANCE, 1.0)


def representativeness_scores(colors: np.ndarray, samples: np.ndarray) -> np.ndarray:
    """
    Coverage of the sample distribution by each palette color.

    Each sample is assigned to its nearest palette color. A color scores
    ``share * (1 - mean_distance / max_distance)`` over the samples it wins,
    and 0 when it wins none.
    """
    k = colors.shape[0]
    n = samples.shape[0]
    if k == 0 or n == 0:
        return np.zeros(k)

    labels, distances = nearest_centers(samples, colors, settings.SCORING_CHUNK_CELLS)
    assigned = np.bincount(labels, minlength=k).astype(np.float64)
    distance_sums = np.bincount(labels, weights=distances, minlength=k)

    scores = np.zeros(k)
    won = assigned > 0
    fit = 1.0 - (distance_sums[won] / assigned[won]) / MAX_RGB_DISTANCE
    scores[won] = (assigned[won] / n) * fit
    return np.clip(scores, 0.0, 1.0)


def describe_palette(colors: np.ndarray, counts: np.ndarray, samples: np.ndarray) -> List[ExtractedColor]:
    """
    Build ExtractedColor entries from palette colors and their pixel counts.

    Args:
        colors: (K, 3) uint8 palette
        counts: (K,) pixels each color represents
        samples: (N, 3) samples the palette was computed from

    Returns:
        ExtractedColor list in palette order
    """
    n = max(1, samples.shape[0])
    frequencies = np.clip(np.asarray(counts, dtype=np.float64) / n, 0.0, 1.0)
    importance = importance_scores(colors)
    representativeness = representativeness_scores(colors, samples)

    return [
        ExtractedColor(
            color=RGBColor.from_sequence(colors[i]),
            frequency=float(frequencies[i]),
            importance=float(importance[i]),
            representativeness=float(representativeness[i]),
        )
        for i in range(colors.shape[0])
    ]


def combine_duplicates(colors: np.ndarray, counts: np.ndarray):
    """Fold palette entries that rounded to the same color into one entry."""
    if colors.shape[0] < 2:
        return colors, np.asarray(counts)
    unique_colors, first, inverse = np.unique(colors, axis=0, return_index=True, return_inverse=True)
    totals = np.bincount(inverse.reshape(-1), weights=counts, minlength=unique_colors.shape[0])
    # keep first-seen order
    keep = np.argsort(first, kind="stable")
    return unique_colors[keep], np.rint(totals[keep]).astype(np.int64)


def rank_by_count(colors: np.ndarray, counts: np.ndarray, limit: int):
    """Keep populated colors, most pixels first (stable), at most ``limit``."""
    counts = np.asarray(counts)
    populated = np.flatnonzero(counts > 0)
    order = populated[np.argsort(-counts[populated], kind="stable")][:limit]
    return colors[order], counts[order]


class BaseQuantizer:
    """
    Template for a palette quantizer.

    Subclasses set ``algorithm`` and implement ``extract`` and
    ``estimate_working_set``. Instances hold only immutable settings so the
    same instance may be used from several threads.
    """

    algorithm: str = ""

    def quantize(self, buffer: BufferLike, config: ConfigLike) -> ExtractionResult:
        """
        Extract a palette from an RGBA buffer.

        Args:
            buffer: (H, W, 4) array or PixelBuffer
            config: ExtractionConfig or equivalent mapping

        Returns:
            ExtractionResult for this algorithm

        Raises:
            ValueError: If config or buffer is invalid
            MemoryLimitExceeded: If the estimated working set exceeds memory_limit
        """
        config = coerce_config(config)
        samples = opaque_samples(buffer)
        return self.quantize_samples(samples, config)

    def quantize_samples(self, samples: np.ndarray, config: ConfigLike) -> ExtractionResult:
        """Run the algorithm on already-extracted opaque samples."""
        config = coerce_config(config)
        n = samples.shape[0]

        if n > 0:
            self.check_memory(samples, config)

        logger.info(f"{self.algorithm}: extracting {config.target_color_count} colors from {n} pixels")

        with ExtractionProbe() as probe:
            colors = self.extract(samples, config) if n > 0 else []

        palette = np.array([c.color.as_tuple() for c in colors], dtype=np.float64).reshape(-1, 3)
        score = quality_score(palette)
        meets_threshold = score >= config.quality_threshold
        if n > 0 and not meets_threshold:
            logger.warning(
                f"{self.algorithm}: quality {score:.3f} below threshold {config.quality_threshold:.3f}"
            )

        logger.info(
            f"{self.algorithm}: {len(colors)} colors in {probe.duration_ms:.1f}ms "
            f"(quality: {score:.3f}, memory: {probe.memory_usage} bytes)"
        )

        return ExtractionResult(
            colors=colors,
            algorithm=self.algorithm,
            extraction_time=probe.duration_ms,
            quality_score=score,
            memory_usage=probe.memory_usage,
            color_count=len(colors),
            meets_quality_threshold=meets_threshold,
        )

    def check_memory(self, samples: np.ndarray, config: ExtractionConfig) -> None:
        """Fail fast when the estimated working set exceeds memory_limit."""
        estimate = self.estimate_working_set(samples, config.target_color_count)
        if estimate > config.memory_limit_bytes:
            raise MemoryLimitExceeded(
                f"{self.algorithm} needs about {estimate / (1024 * 1024):.1f}MB for "
                f"{samples.shape[0]} pixels, over the {config.memory_limit}MB limit"
            )

    def extract(self, samples: np.ndarray, config: ExtractionConfig) -> List[ExtractedColor]:
        raise NotImplementedError

    def estimate_working_set(self, samples: np.ndarray, target: int) -> int:
        raise NotImplementedError

    @staticmethod
    def scoring_working_set(sample_count: int, target: int) -> int:
        """Bytes held by the chunked nearest-color pass of describe_palette."""
        rows = min(sample_count, max(1, settings.SCORING_CHUNK_CELLS // max(1, target)))
        # float64 diff tensor + distance matrix per chunk, labels + distances overall
        return rows * target * 8 * 4 + sample_count * 16
