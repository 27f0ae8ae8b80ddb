"""
colorengine

Palette extraction from RGBA pixel buffers: octree, median-cut, K-means++
and hybrid quantizers plus a harness that compares them.
"""

__version__ = "1.0.0"
