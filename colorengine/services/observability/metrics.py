"""
Observability metrics for the quantization engine.

Provides the timing/memory probe wrapped around every extraction and a
collector that aggregates repeated runs for benchmarking.
"""

import time
import threading
from collections import defaultdict, deque
from contextlib import contextmanager
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional, List

import numpy as np
import psutil
from loguru import logger

from colorengine.config import config


@dataclass
class PerformanceMetrics:
    """Performance metrics for one quantizer run."""
    operation_name: str
    duration_ms: float
    memory_usage_bytes: int
    pixel_count: int
    color_count: int
    timestamp: float
    error: Optional[str] = None


def _current_rss() -> Optional[int]:
    if not config.MEMORY_PROBE_ENABLED:
        return None
    try:
        return psutil.Process().memory_info().rss
    except psutil.Error as e:
        logger.debug(f"RSS probe unavailable: {e}")
        return None


class ExtractionProbe:
    """
    Measures wall-clock duration and resident-memory growth of a block.

    Memory is best-effort: RSS is process-wide, so concurrent work shows up
    in the delta. Growth is clamped at zero and reported as 0 when psutil
    cannot read the process.
    """

    def __init__(self):
        self.duration_ms: float = 0.0
        self.memory_usage: int = 0
        self._start_time: float = 0.0
        self._start_rss: Optional[int] = None

    def __enter__(self) -> "ExtractionProbe":
        self._start_rss = _current_rss()
        self._start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.duration_ms = (time.perf_counter() - self._start_time) * 1000
        end_rss = _current_rss()
        if self._start_rss is not None and end_rss is not None:
            self.memory_usage = max(0, end_rss - self._start_rss)
        return False


class MetricsCollector:
    """Thread-safe collector of quantizer performance metrics."""

    def __init__(self, max_history: int = 1000):
        self.max_history = max_history
        self._lock = threading.Lock()
        self._metrics_history: deque = deque(maxlen=max_history)
        self._operation_counts = defaultdict(int)
        self._error_counts = defaultdict(int)
        self._performance_stats = defaultdict(list)

    def record_performance(self, metrics: PerformanceMetrics) -> None:
        """Record performance metrics for an operation."""
        with self._lock:
            self._metrics_history.append(metrics)
            self._operation_counts[metrics.operation_name] += 1

            if metrics.error:
                self._error_counts[metrics.operation_name] += 1
                return

            self._performance_stats[metrics.operation_name].append({
                'duration_ms': metrics.duration_ms,
                'memory_bytes': metrics.memory_usage_bytes,
            })

            # Keep only recent stats to prevent memory growth
            if len(self._performance_stats[metrics.operation_name]) > self.max_history:
                self._performance_stats[metrics.operation_name].pop(0)

    def get_operation_stats(self, operation_name: str) -> Dict[str, Any]:
        """Get aggregated statistics for a specific operation."""
        with self._lock:
            return self._operation_stats_locked(operation_name)

    def _operation_stats_locked(self, operation_name: str) -> Dict[str, Any]:
        calls = self._operation_counts.get(operation_name, 0)
        if calls == 0:
            return {}

        errors = self._error_counts.get(operation_name, 0)
        stats = self._performance_stats.get(operation_name, [])
        summary = {
            'operation_name': operation_name,
            'total_calls': calls,
            'error_count': errors,
            'error_rate': errors / calls,
        }
        if not stats:
            return summary

        durations = [s['duration_ms'] for s in stats]
        memory_usage = [s['memory_bytes'] for s in stats]
        summary['duration_stats'] = {
            'mean_ms': float(np.mean(durations)),
            'median_ms': float(np.median(durations)),
            'p95_ms': float(np.percentile(durations, 95)),
            'min_ms': float(np.min(durations)),
            'max_ms': float(np.max(durations)),
        }
        summary['memory_stats'] = {
            'mean_bytes': float(np.mean(memory_usage)),
            'peak_bytes': int(np.max(memory_usage)),
        }
        return summary

    def get_all_stats(self) -> Dict[str, Any]:
        """Get aggregated statistics for all operations."""
        with self._lock:
            operations = {
                name: self._operation_stats_locked(name)
                for name in self._operation_counts
            }
            total = sum(self._operation_counts.values())
            total_errors = sum(self._error_counts.values())
            return {
                'operations': operations,
                'total_operations': total,
                'total_errors': total_errors,
                'overall_error_rate': total_errors / max(1, total),
            }

    def get_recent_metrics(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get the most recent performance metrics."""
        with self._lock:
            recent = list(self._metrics_history)[-limit:]
            return [asdict(metric) for metric in recent]


@contextmanager
def performance_monitor(collector: MetricsCollector, operation_name: str, pixel_count: int = 0):
    """
    Context manager recording the duration of a block into ``collector``.

    Yields a dict the caller may fill with ``color_count``.
    """
    probe = ExtractionProbe()
    outcome: Dict[str, Any] = {'color_count': 0}
    error_msg = None

    try:
        with probe:
            yield outcome
    except Exception as e:
        error_msg = str(e)
        raise
    finally:
        metrics = PerformanceMetrics(
            operation_name=operation_name,
            duration_ms=probe.duration_ms,
            memory_usage_bytes=probe.memory_usage,
            pixel_count=pixel_count,
            color_count=outcome.get('color_count', 0),
            timestamp=time.time(),
            error=error_msg
        )
        collector.record_performance(metrics)

        if error_msg:
            logger.error(f"Operation {operation_name} failed after {metrics.duration_ms:.1f}ms: {error_msg}")
        else:
            logger.debug(f"Operation {operation_name} completed in {metrics.duration_ms:.1f}ms "
                         f"(memory: {metrics.memory_usage_bytes} bytes)")
