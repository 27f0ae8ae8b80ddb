"""
Observability module for the colorengine quantizers.

Provides the extraction probe and benchmark metrics aggregation.
"""

from .metrics import (
    PerformanceMetrics,
    ExtractionProbe,
    MetricsCollector,
    performance_monitor,
)

__all__ = [
    'PerformanceMetrics',
    'ExtractionProbe',
    'MetricsCollector',
    'performance_monitor',
]
