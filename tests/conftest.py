"""
Test configuration and fixtures for colorengine quantizer tests.
"""
import sys

import numpy as np
import pytest
from loguru import logger

from colorengine.schemas import ExtractionConfig


QUADRANT_COLORS = [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0)]


def rgba_image(pixels, width, height):
    """Build an (H, W, 4) uint8 image from a flat list of RGBA tuples."""
    return np.array(pixels, dtype=np.uint8).reshape(height, width, 4)


@pytest.fixture
def make_config():
    """Factory for ExtractionConfig with permissive quality and memory settings."""
    def _make(target=8, threshold=15.0, quality=0.0, memory=512.0, max_colors=None):
        return ExtractionConfig(
            target_color_count=target,
            max_color_count=max_colors if max_colors is not None else target,
            quality_threshold=quality,
            color_distance_threshold=threshold,
            memory_limit=memory,
        )
    return _make


@pytest.fixture
def scenario_a_image():
    """2x2 image: two red pixels, one green, one blue."""
    return rgba_image(
        [(255, 0, 0, 255), (255, 0, 0, 255), (0, 255, 0, 255), (0, 0, 255, 255)], 2, 2
    )


@pytest.fixture
def transparent_image():
    """Fully transparent 4x4 image."""
    return np.zeros((4, 4, 4), dtype=np.uint8)


@pytest.fixture
def uniform_image():
    """Opaque 8x8 image of a single color."""
    img = np.zeros((8, 8, 4), dtype=np.uint8)
    img[:, :] = (40, 120, 200, 255)
    return img


@pytest.fixture
def quadrant_image():
    """40x40 image split into four solid 20x20 quadrants."""
    img = np.zeros((40, 40, 4), dtype=np.uint8)
    img[:20, :20, :3] = QUADRANT_COLORS[0]
    img[:20, 20:, :3] = QUADRANT_COLORS[1]
    img[20:, :20, :3] = QUADRANT_COLORS[2]
    img[20:, 20:, :3] = QUADRANT_COLORS[3]
    img[..., 3] = 255
    return img


@pytest.fixture
def noisy_image():
    """Deterministic 32x32 image of random colors."""
    rng = np.random.default_rng(1234)
    img = rng.integers(0, 256, size=(32, 32, 4), dtype=np.uint8)
    img[..., 3] = 255
    return img


@pytest.fixture
def log_messages():
    """Capture loguru messages emitted during a test."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def restore_logging():
    """Put loguru back on its default sink after a test reconfigures it."""
    yield
    logger.remove()
    logger.add(sys.__stderr__)
