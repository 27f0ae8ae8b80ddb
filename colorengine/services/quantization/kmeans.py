"""
K-means color quantization with K-means++ seeding.

Randomness comes from a generator created per call from the instance seed,
so a seeded quantizer is reproducible and instances never share RNG state.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from loguru import logger

from colorengine.config import config as settings
from colorengine.schemas import ExtractionConfig, ExtractedColor
from .base import BaseQuantizer, combine_duplicates, describe_palette, rank_by_count
from .pixels import nearest_centers, round_half_up, squared_distances


@dataclass
class KMeansFit:
    """Outcome of one Lloyd run."""
    centroids: np.ndarray
    labels: np.ndarray
    iterations: int
    converged: bool


class KMeansQuantizer(BaseQuantizer):
    """K-means++ seeding followed by bounded Lloyd iteration."""

    algorithm = "improved-kmeans"

    def __init__(self,
                 seed: Optional[int] = None,
                 max_iterations: Optional[int] = None,
                 convergence_threshold: Optional[float] = None,
                 max_samples: Optional[int] = None):
        """
        Args:
            seed: Seed for K-means++ draws; None falls back to
                COLORENGINE_RANDOM_SEED, then to fresh entropy per call
            max_iterations: Lloyd iteration cap
            convergence_threshold: Largest centroid move (RGB units) still
                counted as converged
            max_samples: Opaque samples kept after stride subsampling
        """
        self.seed = seed if seed is not None else settings.RANDOM_SEED
        self.max_iterations = settings.KMEANS_MAX_ITERATIONS if max_iterations is None else max_iterations
        self.convergence_threshold = (settings.KMEANS_CONVERGENCE_THRESHOLD
                                      if convergence_threshold is None else convergence_threshold)
        self.max_samples = settings.KMEANS_MAX_SAMPLES if max_samples is None else max_samples

        if not settings.validate_max_iterations(self.max_iterations):
            raise ValueError(f"max_iterations must be in 1..1000, got {self.max_iterations}")
        if not settings.validate_convergence_threshold(self.convergence_threshold):
            raise ValueError(f"convergence_threshold must be in 0..255, got {self.convergence_threshold}")
        if not settings.validate_max_samples(self.max_samples):
            raise ValueError(f"max_samples must be >= 1, got {self.max_samples}")

    def make_rng(self) -> np.random.Generator:
        return np.random.default_rng(self.seed)

    def subsample(self, samples: np.ndarray) -> np.ndarray:
        """Every step-th sample, step = max(1, n // max_samples)."""
        n = samples.shape[0]
        step = max(1, n // self.max_samples)
        return samples[::step]

    def seed_centroids(self, samples: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
        """
        K-means++ seeding.

        Each new centroid is drawn with probability proportional to the
        squared distance to its nearest existing centroid. Samples already
        covered (distance 0) are never drawn; when every sample is covered
        seeding stops early instead of duplicating a centroid.

        Returns:
            (k', 3) int64 centroids with k' <= k
        """
        n = samples.shape[0]
        if n == 0 or k <= 0:
            return np.zeros((0, 3), dtype=np.int64)

        chosen = [int(rng.integers(n))]
        min_d2 = squared_distances(samples, samples[chosen[0]][None, :])[:, 0]

        while len(chosen) < k:
            cumulative = np.cumsum(min_d2)
            total = cumulative[-1]
            if total <= 0:
                logger.debug(f"improved-kmeans: only {len(chosen)} distinct seeds available for k={k}")
                break
            draw = rng.random() * total
            j = int(np.searchsorted(cumulative, draw, side="right"))
            # a draw that rounds up to total lands past the end
            j = min(j, int(np.flatnonzero(min_d2 > 0)[-1]))
            chosen.append(j)
            min_d2 = np.minimum(min_d2, squared_distances(samples, samples[j][None, :])[:, 0])

        return samples[chosen].astype(np.int64)

    def fit(self, samples: np.ndarray, k: int, rng: Optional[np.random.Generator] = None) -> KMeansFit:
        """
        Seed and run Lloyd iterations until every centroid moves at most
        ``convergence_threshold`` or ``max_iterations`` is reached.

        An empty cluster keeps its previous centroid.
        """
        rng = rng if rng is not None else self.make_rng()
        centroids = self.seed_centroids(samples, k, rng)
        if centroids.shape[0] == 0:
            return KMeansFit(centroids, np.zeros(0, dtype=np.int64), 0, True)

        chunk = settings.SCORING_CHUNK_CELLS
        n_centroids = centroids.shape[0]
        converged = False
        iterations = 0

        for iteration in range(self.max_iterations):
            labels, _ = nearest_centers(samples, centroids, chunk)
            counts = np.bincount(labels, minlength=n_centroids)
            sums = np.stack(
                [np.bincount(labels, weights=samples[:, c], minlength=n_centroids) for c in range(3)],
                axis=1,
            )

            updated = centroids.copy()
            populated = counts > 0
            updated[populated] = round_half_up(sums[populated] / counts[populated, None]).astype(np.int64)

            movement = np.sqrt(((updated - centroids) ** 2).sum(axis=1))
            centroids = updated
            iterations = iteration + 1

            if np.all(movement <= self.convergence_threshold):
                converged = True
                break

        if converged:
            logger.debug(f"improved-kmeans: converged after {iterations} iterations")
        else:
            logger.warning(f"improved-kmeans: no convergence within {self.max_iterations} iterations")

        labels, _ = nearest_centers(samples, centroids, chunk)
        return KMeansFit(centroids, labels, iterations, converged)

    def extract(self, samples: np.ndarray, config: ExtractionConfig) -> List[ExtractedColor]:
        target = config.target_color_count
        working = self.subsample(samples)
        if working.shape[0] < samples.shape[0]:
            logger.debug(f"improved-kmeans: subsampled {samples.shape[0]} -> {working.shape[0]} pixels")

        fit = self.fit(working, target, self.make_rng())
        counts = np.bincount(fit.labels, minlength=fit.centroids.shape[0])
        colors, counts = combine_duplicates(fit.centroids.astype(np.uint8), counts)
        colors, counts = rank_by_count(colors, counts, target)
        return describe_palette(colors, counts, working)

    def estimate_working_set(self, samples: np.ndarray, target: int) -> int:
        sample_count = samples.shape[0]
        step = max(1, sample_count // self.max_samples)
        working = -(-sample_count // step)
        # D^2 weights and cumulative sums, labels, per-chunk distance tensors
        return working * (8 + 8 + 8 + 3) + self.scoring_working_set(working, target)
