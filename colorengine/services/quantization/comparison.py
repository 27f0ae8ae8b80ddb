"""
Side-by-side comparison of the four quantizers on one input.

Each algorithm is scored on quality, speed and memory; one algorithm failing
never prevents the others from being run and reported.
"""

from typing import Any, Dict, Optional

from loguru import logger

from colorengine.config import config as settings
from colorengine.schemas import AlgorithmMetrics, ComparisonReport, ExtractionResult
from colorengine.services.observability import MetricsCollector, performance_monitor
from .base import BaseQuantizer, ConfigLike, coerce_config
from .hybrid import HybridQuantizer
from .kmeans import KMeansQuantizer
from .median_cut import MedianCutQuantizer
from .octree import OctreeQuantizer
from .pixels import BufferLike, opaque_samples


ALGORITHM_ORDER = ("octree", "medianCut", "kmeans", "hybrid")


def speed_score(extraction_time_ms: float) -> float:
    return max(0.0, 1.0 - extraction_time_ms / settings.SPEED_BUDGET_MS)


def memory_score(memory_usage: int) -> float:
    return max(0.0, 1.0 - memory_usage / settings.MEMORY_BUDGET_BYTES)


def score_result(result: ExtractionResult) -> AlgorithmMetrics:
    """Normalize one result into comparison metrics."""
    speed = speed_score(result.extraction_time)
    memory = memory_score(result.memory_usage)
    overall = (settings.QUALITY_WEIGHT * result.quality_score
               + settings.SPEED_WEIGHT * speed
               + settings.MEMORY_WEIGHT * memory)
    return AlgorithmMetrics(
        extraction_time=result.extraction_time,
        quality_score=result.quality_score,
        memory_usage=result.memory_usage,
        color_count=result.color_count,
        speed_score=speed,
        memory_score=memory,
        overall_score=overall,
    )


def pick_winner(metrics: Dict[str, AlgorithmMetrics]) -> Optional[str]:
    """Highest overall score; ties go to the earlier algorithm in ALGORITHM_ORDER."""
    winner = None
    best = None
    for name in ALGORITHM_ORDER:
        if name not in metrics:
            continue
        score = metrics[name].overall_score
        if best is None or score > best:
            best = score
            winner = name
    return winner


class ComparisonHarness:
    """Runs octree, median-cut, K-means and hybrid on identical input."""

    def __init__(self, seed: Optional[int] = None,
                 quantizers: Optional[Dict[str, BaseQuantizer]] = None):
        """
        Args:
            seed: Seed shared by the K-means and hybrid quantizers
            quantizers: Replacement quantizers keyed by algorithm name
        """
        self.quantizers: Dict[str, BaseQuantizer] = {
            "octree": OctreeQuantizer(),
            "medianCut": MedianCutQuantizer(),
            "kmeans": KMeansQuantizer(seed=seed),
            "hybrid": HybridQuantizer(seed=seed),
        }
        if quantizers:
            unknown = set(quantizers) - set(ALGORITHM_ORDER)
            if unknown:
                raise ValueError(f"Unknown algorithms {sorted(unknown)}; expected {ALGORITHM_ORDER}")
            self.quantizers.update(quantizers)
        self.collector = MetricsCollector()

    def compare(self, buffer: BufferLike, config: ConfigLike,
                collector: Optional[MetricsCollector] = None) -> ComparisonReport:
        """
        Run every quantizer and pick the best overall score.

        Args:
            buffer: (H, W, 4) array or PixelBuffer
            config: ExtractionConfig or equivalent mapping
            collector: Where run timings are recorded; defaults to the
                harness collector

        Returns:
            ComparisonReport with results, metrics, errors and winner

        Raises:
            ValueError: If config or buffer is invalid
        """
        config = coerce_config(config)
        samples = opaque_samples(buffer)
        collector = collector if collector is not None else self.collector
        report = ComparisonReport()

        for name in ALGORITHM_ORDER:
            quantizer = self.quantizers[name]
            try:
                with performance_monitor(collector, name, samples.shape[0]) as outcome:
                    result = quantizer.quantize_samples(samples, config)
                    outcome['color_count'] = result.color_count
            except Exception as e:
                logger.exception(f"Comparison: {name} failed, continuing with remaining algorithms")
                report.errors[name] = f"{type(e).__name__}: {e}"
                continue

            report.results[name] = result
            report.metrics[name] = score_result(result)

        report.winner = pick_winner(report.metrics)
        if report.winner is None:
            logger.error(f"Comparison: every algorithm failed ({', '.join(report.errors)})")
        else:
            logger.info(
                f"Comparison winner: {report.winner} "
                f"(overall: {report.metrics[report.winner].overall_score:.3f})"
            )
        return report

    def benchmark(self, buffer: BufferLike, config: ConfigLike, rounds: int = 3) -> Dict[str, Any]:
        """
        Repeat compare() and aggregate per-algorithm duration statistics.

        Returns:
            Dict with rounds, wins per algorithm, collector stats per
            algorithm, collector totals, the runs of the last round and
            the last report (camelCase)
        """
        if rounds < 1:
            raise ValueError(f"rounds must be >= 1, got {rounds}")

        collector = MetricsCollector()
        wins = {name: 0 for name in ALGORITHM_ORDER}
        report = None
        for round_index in range(rounds):
            report = self.compare(buffer, config, collector=collector)
            if report.winner is not None:
                wins[report.winner] += 1
            logger.debug(f"Benchmark round {round_index + 1}/{rounds}: winner {report.winner}")

        return {
            'rounds': rounds,
            'wins': wins,
            'stats': {name: collector.get_operation_stats(name) for name in ALGORITHM_ORDER},
            'totals': collector.get_all_stats(),
            'recent': collector.get_recent_metrics(limit=len(ALGORITHM_ORDER)),
            'lastReport': report.model_dump(by_alias=True),
        }
