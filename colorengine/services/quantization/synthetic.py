"""
Generate synthetic RGBA images for quantizer comparison and benchmarking.
"""
from typing import Callable, Dict, Optional

import numpy as np


def _grid(width: int, height: int):
    y, x = np.mgrid[0:height, 0:width]
    return x.astype(np.float64), y.astype(np.float64)


def _gradient_channels(x: np.ndarray, y: np.ndarray, width: int, height: int):
    r = np.floor(x / width * 255)
    g = np.floor(y / height * 255)
    b = np.floor((x + y) / (width + height) * 255)
    return r, g, b


def create_gradient_image(width: int, height: int, rng: np.random.Generator) -> np.ndarray:
    """
    Smooth two-axis gradient: red along x, green along y, blue along the diagonal.

    Returns:
        (H, W, 3) float channels
    """
    x, y = _grid(width, height)
    return np.stack(_gradient_channels(x, y, width, height), axis=-1)


def create_natural_image(width: int, height: int, rng: np.random.Generator) -> np.ndarray:
    """
    Low-frequency sine/cosine texture with uniform noise, resembling a photo.

    Returns:
        (H, W, 3) float channels
    """
    x, y = _grid(width, height)
    wave1 = np.sin(x * 0.05) * np.cos(y * 0.03)
    wave2 = np.sin(x * 0.02 + y * 0.04)
    noise = rng.random((3, height, width)) * 40

    r = 128 + wave1 * 60 + noise[0]
    g = 100 + wave2 * 80 + noise[1]
    b = 80 + wave1 * wave2 * 100 + noise[2]
    return np.stack([r, g, b], axis=-1)


def create_geometric_image(width: int, height: int, rng: np.random.Generator) -> np.ndarray:
    """
    Flat-color shapes on gray: two circles and vertical stripes.

    Returns:
        (H, W, 3) float channels
    """
    x, y = _grid(width, height)
    circle1 = np.sqrt((x - width / 3) ** 2 + (y - height / 3) ** 2) < 50
    circle2 = np.sqrt((x - 2 * width / 3) ** 2 + (y - 2 * height / 3) ** 2) < 40
    stripes = np.floor(x / 20) % 2 == 0

    img = np.full((height, width, 3), 128.0)
    img[stripes] = (100, 100, 255)
    img[circle2] = (100, 255, 100)
    img[circle1] = (255, 100, 100)
    return img


def create_complex_image(width: int, height: int, rng: np.random.Generator) -> np.ndarray:
    """
    Gradient base with a centered circle, diagonal stripes and shared noise.

    Returns:
        (H, W, 3) float channels
    """
    x, y = _grid(width, height)
    r, g, b = _gradient_channels(x, y, width, height)

    circle = np.sqrt((x - width / 2) ** 2 + (y - height / 2) ** 2) < 60
    stripes = np.floor((x + y) / 15) % 2 == 0
    noise = rng.random((height, width)) * 50 - 25

    both = circle & stripes
    r = np.where(both, np.minimum(255, r + 100), r)
    g = np.where(both, np.minimum(255, g - 50), g)
    g = np.where(circle & ~stripes, np.minimum(255, g + 80), g)
    b = np.where(stripes & ~circle, np.minimum(255, b + 70), b)

    return np.stack([r + noise, g + noise, b + noise], axis=-1)


IMAGE_KINDS: Dict[str, Callable[[int, int, np.random.Generator], np.ndarray]] = {
    "gradient": create_gradient_image,
    "natural": create_natural_image,
    "geometric": create_geometric_image,
    "complex": create_complex_image,
}


def generate_test_image(kind: str, width: int = 256, height: int = 256,
                        seed: Optional[int] = None) -> np.ndarray:
    """
    Create a fully opaque synthetic RGBA image.

    Args:
        kind: One of "gradient", "natural", "geometric", "complex"
        width: Image width
        height: Image height
        seed: Seed for the noise generator

    Returns:
        (H, W, 4) uint8 array

    Raises:
        ValueError: If kind is unknown or a dimension is not positive
    """
    if kind not in IMAGE_KINDS:
        raise ValueError(f"Unknown image kind {kind!r}; expected one of {sorted(IMAGE_KINDS)}")
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")

    rng = np.random.default_rng(seed)
    rgb = IMAGE_KINDS[kind](width, height, rng)

    rgba = np.empty((height, width, 4), dtype=np.uint8)
    rgba[..., :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    rgba[..., 3] = 255
    return rgba
