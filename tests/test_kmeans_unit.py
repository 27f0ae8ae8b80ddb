"""
Unit tests for the K-means++ quantizer.

Tests seeding, Lloyd iteration, convergence and reproducibility.
"""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from colorengine.services.quantization.kmeans import KMeansQuantizer
from colorengine.services.quantization.pixels import color_distance, opaque_samples
from colorengine.services.quantization.synthetic import generate_test_image


REGION_COLORS = {(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0)}


class TestKMeansSettings:
    """Test constructor validation"""

    def test_defaults_from_settings(self):
        quantizer = KMeansQuantizer(seed=1)
        assert quantizer.max_iterations >= 1
        assert quantizer.max_samples >= 1

    @pytest.mark.parametrize("kwargs", [
        {"max_iterations": 0},
        {"convergence_threshold": -1.0},
        {"max_samples": 0},
    ])
    def test_invalid_settings_rejected(self, kwargs):
        with pytest.raises(ValueError):
            KMeansQuantizer(**kwargs)


class TestSeeding:
    """Test K-means++ seeding"""

    def test_seeds_are_distinct_samples(self, noisy_image):
        samples = opaque_samples(noisy_image)
        quantizer = KMeansQuantizer(seed=3)
        seeds = quantizer.seed_centroids(samples, 12, quantizer.make_rng())
        assert seeds.shape == (12, 3)
        assert len({tuple(s) for s in seeds}) == 12
        sample_set = {tuple(s) for s in samples.astype(np.int64)}
        assert all(tuple(s) in sample_set for s in seeds)

    def test_stops_when_every_sample_is_covered(self):
        """Test seeding never duplicates a centroid"""
        samples = np.array([[10, 10, 10]] * 5 + [[90, 90, 90]] * 5, dtype=np.uint8)
        quantizer = KMeansQuantizer(seed=0)
        seeds = quantizer.seed_centroids(samples, 6, quantizer.make_rng())
        assert {tuple(s) for s in seeds} == {(10, 10, 10), (90, 90, 90)}
        assert seeds.shape[0] == 2

    def test_no_samples(self):
        quantizer = KMeansQuantizer(seed=0)
        seeds = quantizer.seed_centroids(np.zeros((0, 3), dtype=np.uint8), 4, quantizer.make_rng())
        assert seeds.shape == (0, 3)

    def test_draw_at_total_weight_stays_in_range(self):
        """Test a draw equal to the summed weight picks the last weighted sample"""
        class EdgeRng:
            def integers(self, n):
                return 0

            def random(self):
                return 1.0

        samples = np.array([[0, 0, 0], [10, 10, 10], [0, 0, 0]], dtype=np.uint8)
        seeds = KMeansQuantizer(seed=0).seed_centroids(samples, 2, EdgeRng())
        np.testing.assert_array_equal(seeds, [[0, 0, 0], [10, 10, 10]])


class TestLloyd:
    """Test Lloyd iteration"""

    def test_converges_on_solid_regions(self, quadrant_image):
        """Test k solid regions give k exact centroids"""
        samples = opaque_samples(quadrant_image)
        fit = KMeansQuantizer(seed=11).fit(samples, 4)
        assert fit.converged
        assert fit.iterations == 1
        assert {tuple(int(v) for v in c) for c in fit.centroids} == REGION_COLORS

    def test_empty_cluster_keeps_centroid(self, monkeypatch):
        """Test a centroid that wins nothing stays put instead of becoming NaN"""
        samples = np.array([[0, 0, 0]] * 4 + [[10, 10, 10]] * 4, dtype=np.uint8)
        quantizer = KMeansQuantizer(seed=0)
        monkeypatch.setattr(
            quantizer, "seed_centroids",
            lambda samples, k, rng: np.array([[0, 0, 0], [255, 255, 255]], dtype=np.int64),
        )
        fit = quantizer.fit(samples, 2)
        assert not np.isnan(fit.centroids.astype(np.float64)).any()
        np.testing.assert_array_equal(fit.centroids[1], [255, 255, 255])
        np.testing.assert_array_equal(fit.centroids[0], [5, 5, 5])
        assert np.all(fit.labels == 0)

    def test_iteration_cap(self, monkeypatch, log_messages):
        """Test hitting max_iterations is reported, not raised"""
        samples = np.array([[0, 0, 0]] * 4 + [[10, 10, 10]] * 4, dtype=np.uint8)
        quantizer = KMeansQuantizer(seed=0, max_iterations=1)
        monkeypatch.setattr(
            quantizer, "seed_centroids",
            lambda samples, k, rng: np.array([[0, 0, 0], [255, 255, 255]], dtype=np.int64),
        )
        fit = quantizer.fit(samples, 2)
        assert not fit.converged
        assert fit.iterations == 1
        assert any("no convergence" in m for m in log_messages)

    def test_empty_cluster_dropped_from_palette(self, monkeypatch, make_config):
        img = np.zeros((2, 4, 4), dtype=np.uint8)
        img[:, :2, :3] = (0, 0, 0)
        img[:, 2:, :3] = (10, 10, 10)
        img[..., 3] = 255
        quantizer = KMeansQuantizer(seed=0)
        monkeypatch.setattr(
            quantizer, "seed_centroids",
            lambda samples, k, rng: np.array([[0, 0, 0], [255, 255, 255]], dtype=np.int64),
        )
        result = quantizer.quantize(img, make_config(target=2))
        assert result.rgb_tuples() == [(5, 5, 5)]
        assert result.colors[0].frequency == 1.0


class TestSubsampling:
    """Test stride subsampling"""

    def test_stride(self):
        samples = np.arange(105, dtype=np.uint8).repeat(3).reshape(-1, 3)
        quantizer = KMeansQuantizer(seed=0, max_samples=10)
        working = quantizer.subsample(samples)
        np.testing.assert_array_equal(working, samples[::10])

    def test_small_inputs_untouched(self):
        samples = np.zeros((5, 3), dtype=np.uint8)
        assert KMeansQuantizer(seed=0, max_samples=10).subsample(samples).shape[0] == 5


class TestKMeansQuantizer:
    """Test palette extraction through K-means"""

    def test_centroids_near_region_colors(self, quadrant_image, make_config):
        config = make_config(target=4, threshold=15.0)
        result = KMeansQuantizer(seed=5).quantize(quadrant_image, config)
        assert result.algorithm == "improved-kmeans"
        assert result.color_count == 4
        for rgb in result.rgb_tuples():
            nearest = min(color_distance(rgb, region) for region in REGION_COLORS)
            assert nearest <= config.color_distance_threshold

    def test_same_seed_same_palette(self, make_config):
        img = generate_test_image("natural", 48, 48, seed=2)
        config = make_config(target=6)
        first = KMeansQuantizer(seed=42).quantize(img, config)
        second = KMeansQuantizer(seed=42).quantize(img, config)
        assert first.rgb_tuples() == second.rgb_tuples()
        assert [c.frequency for c in first.colors] == [c.frequency for c in second.colors]

    def test_instance_reusable_across_threads(self, make_config):
        """Test concurrent calls on one instance agree with each other"""
        img = generate_test_image("complex", 48, 48, seed=9)
        config = make_config(target=5)
        quantizer = KMeansQuantizer(seed=8)
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: quantizer.quantize(img, config), range(4)))
        palettes = {tuple(r.rgb_tuples()) for r in results}
        assert len(palettes) == 1

    def test_uniform_image_single_color(self, uniform_image, make_config):
        result = KMeansQuantizer(seed=1).quantize(uniform_image, make_config(target=5))
        assert result.rgb_tuples() == [(40, 120, 200)]
