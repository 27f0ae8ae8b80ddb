"""
Pixel buffer access and color math shared by the quantizers.

Samples are always (N, 3) uint8 arrays of opaque RGB values in buffer order.
"""

import math
from dataclasses import dataclass
from typing import Any, Sequence, Tuple, Union

import numpy as np


MAX_RGB_DISTANCE = 255.0 * math.sqrt(3.0)


@dataclass(frozen=True)
class PixelBuffer:
    """Flat RGBA buffer (row-major, 4 values per pixel) with its dimensions."""
    data: Any
    width: int
    height: int

    def to_array(self) -> np.ndarray:
        """Return the buffer as an (H, W, 4) uint8 array."""
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Invalid buffer dimensions {self.width}x{self.height}")

        if isinstance(self.data, (bytes, bytearray, memoryview)):
            flat = np.frombuffer(self.data, dtype=np.uint8)
        else:
            flat = _as_u8(np.asarray(self.data).reshape(-1))

        expected = self.width * self.height * 4
        if flat.size != expected:
            raise ValueError(
                f"RGBA buffer length {flat.size} does not match "
                f"{self.width}x{self.height}x4 = {expected}"
            )
        return flat.reshape(self.height, self.width, 4)


BufferLike = Union[PixelBuffer, np.ndarray, Sequence]


def _as_u8(values: np.ndarray) -> np.ndarray:
    if values.dtype == np.uint8:
        return values
    if values.size and (values.min() < 0 or values.max() > 255):
        raise ValueError("Pixel values must lie in 0..255")
    if np.issubdtype(values.dtype, np.floating) and not np.all(np.equal(np.mod(values, 1), 0)):
        raise ValueError("Pixel values must be integers")
    return values.astype(np.uint8)


def to_rgba_array(buffer: BufferLike) -> np.ndarray:
    """Normalize a supported buffer into an (H, W, 4) uint8 array."""
    if isinstance(buffer, PixelBuffer):
        return buffer.to_array()

    array = np.asarray(buffer)
    if array.ndim != 3 or array.shape[2] != 4:
        raise ValueError(
            f"Expected an (H, W, 4) RGBA array or a PixelBuffer, got shape {array.shape}"
        )
    return _as_u8(array)


def opaque_samples(buffer: BufferLike) -> np.ndarray:
    """Extract RGB values of every pixel with alpha > 0, in buffer order."""
    rgba = to_rgba_array(buffer).reshape(-1, 4)
    return np.ascontiguousarray(rgba[rgba[:, 3] > 0, :3])


def round_half_up(values: np.ndarray) -> np.ndarray:
    """Round non-negative channel averages the way palette averages are defined."""
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5)


def channel_means(sums: np.ndarray, counts: np.ndarray) -> np.ndarray:
    """
    Rounded per-row channel averages; rows with a zero count yield (0, 0, 0).

    Args:
        sums: (K, 3) channel sums
        counts: (K,) sample counts

    Returns:
        (K, 3) uint8 colors
    """
    sums = np.asarray(sums, dtype=np.float64).reshape(-1, 3)
    counts = np.asarray(counts, dtype=np.float64).reshape(-1)
    means = np.zeros_like(sums)
    nonzero = counts > 0
    means[nonzero] = sums[nonzero] / counts[nonzero, None]
    return np.clip(round_half_up(means), 0, 255).astype(np.uint8)


def color_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean RGB distance between two colors."""
    dr = float(a[0]) - float(b[0])
    dg = float(a[1]) - float(b[1])
    db = float(a[2]) - float(b[2])
    return math.sqrt(dr * dr + dg * dg + db * db)


def squared_distances(samples: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """(N, K) squared Euclidean distances between samples and centers."""
    diff = samples.astype(np.float64)[:, None, :] - centers.astype(np.float64)[None, :, :]
    return np.einsum("nkc,nkc->nk", diff, diff)


def rgb_to_hex(rgb_u8: Sequence[int]) -> str:
    """Convert an RGB triple to a hex color string."""
    r, g, b = [int(x) for x in rgb_u8[:3]]
    return f"#{r:02X}{g:02X}{b:02X}"


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    """Convert hex color string to RGB tuple."""
    hex_color = hex_color.lstrip('#')
    if len(hex_color) != 6:
        raise ValueError(f"Expected #RRGGBB, got {hex_color!r}")
    return tuple(int(hex_color[i:i+2], 16) for i in (0, 2, 4))


def nearest_centers(samples: np.ndarray, centers: np.ndarray,
                    chunk_cells: int = 1 << 20) -> Tuple[np.ndarray, np.ndarray]:
    """
    Assign every sample to its nearest center.

    Work is chunked so that at most ``chunk_cells`` sample/center pairs are
    held at once. Ties go to the lowest center index.

    Returns:
        Tuple of (labels (N,) int64, distances (N,) float64)
    """
    n = samples.shape[0]
    labels = np.zeros(n, dtype=np.int64)
    distances = np.zeros(n, dtype=np.float64)
    if n == 0 or centers.shape[0] == 0:
        return labels, distances

    rows = max(1, chunk_cells // centers.shape[0])
    for start in range(0, n, rows):
        stop = min(n, start + rows)
        d2 = squared_distances(samples[start:stop], centers)
        idx = np.argmin(d2, axis=1)
        labels[start:stop] = idx
        distances[start:stop] = np.sqrt(d2[np.arange(stop - start), idx])
    return labels, distances
