"""
Hybrid quantization: octree, median-cut and K-means on split budgets, fused
by a greedy distance-threshold merge and ranked by a weighted score.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np
from loguru import logger

from colorengine.schemas import ExtractionConfig, ExtractedColor, RGBColor
from .base import BaseQuantizer
from .kmeans import KMeansQuantizer
from .median_cut import MedianCutQuantizer
from .octree import OctreeQuantizer
from .pixels import color_distance


IMPORTANCE_WEIGHT = 0.4
REPRESENTATIVENESS_WEIGHT = 0.4
FREQUENCY_WEIGHT = 0.2


@dataclass
class _FusionEntry:
    rgb: Tuple[int, int, int]
    frequency: float
    importance: float
    representativeness: float

    def absorb(self, other: "_FusionEntry") -> None:
        total = self.frequency + other.frequency
        if total > 0:
            own_weight = self.frequency / total
            other_weight = other.frequency / total
        else:
            own_weight = other_weight = 0.5

        self.rgb = tuple(
            min(255, int(math.floor(a * own_weight + b * other_weight + 0.5)))
            for a, b in zip(self.rgb, other.rgb)
        )
        self.frequency = total
        self.importance = max(self.importance, other.importance)
        self.representativeness = max(self.representativeness, other.representativeness)


def _fusion_pass(entries: List[_FusionEntry], threshold: float) -> List[_FusionEntry]:
    merged: List[_FusionEntry] = []
    for candidate in entries:
        for existing in merged:
            distance = color_distance(candidate.rgb, existing.rgb)
            if distance == 0 or distance < threshold:
                existing.absorb(candidate)
                break
        else:
            merged.append(_FusionEntry(candidate.rgb, candidate.frequency,
                                       candidate.importance, candidate.representativeness))
    return merged


def _fuse(colors: Iterable[ExtractedColor], threshold: float) -> List[_FusionEntry]:
    entries = [
        _FusionEntry(c.color.as_tuple(), c.frequency, c.importance, c.representativeness)
        for c in colors
    ]
    while True:
        merged = _fusion_pass(entries, threshold)
        if len(merged) == len(entries):
            return merged
        entries = merged


def _to_extracted(entry: _FusionEntry, frequency_scale: float) -> ExtractedColor:
    return ExtractedColor(
        color=RGBColor.from_sequence(entry.rgb),
        frequency=float(min(1.0, entry.frequency * frequency_scale)),
        importance=entry.importance,
        representativeness=entry.representativeness,
    )


def merge_similar_colors(colors: Iterable[ExtractedColor], threshold: float,
                         frequency_scale: float = 1.0) -> List[ExtractedColor]:
    """
    Greedy, order-dependent fusion of colors closer than ``threshold``.
    Identical colors always fuse, even with a zero threshold.

    Each candidate is compared with the accepted entries in acceptance order
    and folded into the first one closer than ``threshold`` (frequency
    weighted average, summed frequency, max importance and
    representativeness); otherwise it is accepted as a new entry. The first
    color of each similarity group is the anchor. Passes repeat until none
    merges, so no two returned colors are closer than ``threshold`` even
    after anchors have moved.

    Args:
        colors: Candidates in priority order
        threshold: Euclidean RGB distance below which colors fuse
        frequency_scale: Factor applied to summed frequencies, e.g.
            1 / number of merged palettes, so frequencies stay shares

    Returns:
        Fused colors in anchor order
    """
    return [_to_extracted(e, frequency_scale) for e in _fuse(colors, threshold)]


def hybrid_score(color) -> float:
    """Weighted rank of an ExtractedColor or fusion entry; frequency is taken as stored."""
    return (IMPORTANCE_WEIGHT * color.importance
            + REPRESENTATIVENESS_WEIGHT * color.representativeness
            + FREQUENCY_WEIGHT * color.frequency)


class HybridQuantizer(BaseQuantizer):
    """
    Fusion of the three base quantizers.

    Budgets: octree floor(0.4 t), median-cut floor(0.3 t), K-means the
    remainder, so the three requests always add up to t.
    """

    algorithm = "hybrid"

    def __init__(self, seed: Optional[int] = None, kmeans: Optional[KMeansQuantizer] = None):
        self.octree = OctreeQuantizer()
        self.median_cut = MedianCutQuantizer()
        self.kmeans = kmeans if kmeans is not None else KMeansQuantizer(seed=seed)

    @staticmethod
    def sub_budgets(target: int) -> Tuple[int, int, int]:
        octree = (target * 4) // 10
        median_cut = (target * 3) // 10
        return octree, median_cut, target - octree - median_cut

    def extract(self, samples: np.ndarray, config: ExtractionConfig) -> List[ExtractedColor]:
        target = config.target_color_count
        budgets = zip((self.octree, self.median_cut, self.kmeans), self.sub_budgets(target))

        candidates: List[ExtractedColor] = []
        contributing = 0
        for quantizer, budget in budgets:
            if budget == 0:
                continue
            sub_colors = quantizer.extract(samples, config.with_target(budget))
            logger.debug(f"hybrid: {quantizer.algorithm} gave {len(sub_colors)}/{budget} colors")
            if sub_colors:
                contributing += 1
                candidates.extend(sub_colors)

        merged = _fuse(candidates, config.color_distance_threshold)
        logger.debug(f"hybrid: fused {len(candidates)} candidates into {len(merged)} colors")

        # rank on summed frequencies; shares are only rescaled for the output
        ranked = sorted(merged, key=hybrid_score, reverse=True)[:target]
        scale = 1.0 / max(1, contributing)
        return [_to_extracted(e, scale) for e in ranked]

    def estimate_working_set(self, samples: np.ndarray, target: int) -> int:
        estimates = [
            quantizer.estimate_working_set(samples, budget)
            for quantizer, budget in zip((self.octree, self.median_cut, self.kmeans), self.sub_budgets(target))
            if budget > 0
        ]
        return max(estimates) if estimates else 0
