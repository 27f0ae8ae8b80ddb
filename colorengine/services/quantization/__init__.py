"""
colorengine Quantization Module

Reduces the opaque pixels of an RGBA buffer to a small palette with one of
four algorithms, and compares the algorithms on quality, speed and memory.
"""

from .base import BaseQuantizer, MemoryLimitExceeded, quality_score
from .comparison import ALGORITHM_ORDER, ComparisonHarness
from .hybrid import HybridQuantizer, merge_similar_colors
from .kmeans import KMeansFit, KMeansQuantizer
from .median_cut import ColorBoxArena, MedianCutQuantizer
from .octree import OctreeArena, OctreeQuantizer
from .pixels import PixelBuffer, hex_to_rgb, opaque_samples, rgb_to_hex
from .synthetic import generate_test_image

__all__ = [
    'ALGORITHM_ORDER',
    'BaseQuantizer',
    'ColorBoxArena',
    'ComparisonHarness',
    'HybridQuantizer',
    'KMeansFit',
    'KMeansQuantizer',
    'MedianCutQuantizer',
    'MemoryLimitExceeded',
    'OctreeArena',
    'OctreeQuantizer',
    'PixelBuffer',
    'generate_test_image',
    'hex_to_rgb',
    'merge_similar_colors',
    'opaque_samples',
    'quality_score',
    'rgb_to_hex',
]
