"""
Median-cut color quantization.

Boxes are contiguous slices of one shared permutation of the samples, so the
boxes partition the sample set by construction: splitting a box reorders its
slice in place and cuts it in two.
"""

from typing import List, Optional, Tuple

import numpy as np
from loguru import logger

from colorengine.schemas import ExtractionConfig, ExtractedColor
from .base import BaseQuantizer, combine_duplicates, describe_palette, rank_by_count
from .pixels import channel_means


CHANNELS = ("r", "g", "b")


class ColorBoxArena:
    """
    Median-cut boxes stored as flat arrays addressed by integer handles.

    ``boxes`` lists the live handles in box-list order; a split replaces a
    handle by its two children at the same position.
    """

    def __init__(self, samples: np.ndarray):
        self.samples = samples
        self.order = np.arange(samples.shape[0], dtype=np.int64)
        self.start: List[int] = []
        self.end: List[int] = []
        self.low: List[Tuple[int, int, int]] = []
        self.high: List[Tuple[int, int, int]] = []
        self.boxes: List[int] = [self._new_box(0, samples.shape[0])] if samples.shape[0] else []

    def _new_box(self, start: int, end: int) -> int:
        members = self.samples[self.order[start:end]]
        if members.shape[0]:
            low = tuple(int(v) for v in members.min(axis=0))
            high = tuple(int(v) for v in members.max(axis=0))
        else:
            low = high = (0, 0, 0)
        self.start.append(start)
        self.end.append(end)
        self.low.append(low)
        self.high.append(high)
        return len(self.start) - 1

    def size(self, handle: int) -> int:
        return self.end[handle] - self.start[handle]

    def ranges(self, handle: int) -> Tuple[int, int, int]:
        low, high = self.low[handle], self.high[handle]
        return (high[0] - low[0], high[1] - low[1], high[2] - low[2])

    def volume(self, handle: int) -> int:
        r, g, b = self.ranges(handle)
        return r * g * b

    def largest_dimension(self, handle: int) -> int:
        """Channel with the widest range; ties resolve R >= G >= B."""
        r, g, b = self.ranges(handle)
        if r >= g and r >= b:
            return 0
        if g >= b:
            return 1
        return 2

    def is_splittable(self, handle: int) -> bool:
        """A box needs two samples and some spread on at least one channel."""
        return self.size(handle) > 1 and max(self.ranges(handle)) > 0

    def choose_box(self) -> Optional[int]:
        """
        Position in ``boxes`` of the splittable box with the largest volume.

        Ties fall to the widest single channel, then the most samples, then
        the earliest position. None when nothing can be split.
        """
        best_position = None
        best_key = None
        for position, handle in enumerate(self.boxes):
            if not self.is_splittable(handle):
                continue
            key = (self.volume(handle), max(self.ranges(handle)), self.size(handle))
            if best_key is None or key > best_key:
                best_key = key
                best_position = position
        return best_position

    def split(self, position: int) -> Tuple[int, int]:
        """
        Sort the box at ``position`` along its widest channel and cut at floor(n/2).

        Returns:
            Handles of the (left, right) children, now occupying ``position``
        """
        handle = self.boxes[position]
        n = self.size(handle)
        if n <= 1:
            raise ValueError(f"Box {handle} with {n} samples cannot be split")

        start, end = self.start[handle], self.end[handle]
        dimension = self.largest_dimension(handle)
        segment = self.order[start:end]
        self.order[start:end] = segment[np.argsort(self.samples[segment, dimension], kind="stable")]

        median = start + n // 2
        left = self._new_box(start, median)
        right = self._new_box(median, end)
        self.boxes[position:position + 1] = [left, right]
        return left, right

    def samples_of(self, handle: int) -> np.ndarray:
        return self.samples[self.order[self.start[handle]:self.end[handle]]]

    def average_colors(self) -> np.ndarray:
        """(K, 3) rounded mean color of each live box, in box-list order."""
        sums = np.array([
            self.samples_of(h).sum(axis=0, dtype=np.int64) for h in self.boxes
        ], dtype=np.int64).reshape(-1, 3)
        return channel_means(sums, self.box_sizes())

    def box_sizes(self) -> np.ndarray:
        return np.array([self.size(h) for h in self.boxes], dtype=np.int64)

    def cut(self, target: int) -> int:
        """
        Split until ``target`` boxes exist or no box can be split.

        Returns:
            Number of splits performed
        """
        splits = 0
        while len(self.boxes) < target:
            position = self.choose_box()
            if position is None:
                break
            dimension = self.largest_dimension(self.boxes[position])
            self.split(position)
            splits += 1
            logger.debug(f"median-cut: split on {CHANNELS[dimension]}, {len(self.boxes)} boxes")
        return splits


class MedianCutQuantizer(BaseQuantizer):
    """Median-cut quantizer: split the largest-volume box at its median sample."""

    algorithm = "median-cut"

    def extract(self, samples: np.ndarray, config: ExtractionConfig) -> List[ExtractedColor]:
        target = config.target_color_count
        arena = ColorBoxArena(samples)
        arena.cut(target)
        if len(arena.boxes) < target:
            logger.info(f"median-cut: stopped at {len(arena.boxes)} boxes, "
                        f"remaining boxes are monochrome or single samples")

        colors, counts = combine_duplicates(arena.average_colors(), arena.box_sizes())
        colors, counts = rank_by_count(colors, counts, target)
        return describe_palette(colors, counts, samples)

    def estimate_working_set(self, samples: np.ndarray, target: int) -> int:
        sample_count = samples.shape[0]
        # permutation, argsort scratch and a gathered slice per split
        return sample_count * (8 + 8 + 8 + 3) + self.scoring_working_set(sample_count, target)
