"""Image cuts and the 1D signal helpers used to read them."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import numpy as np

BLUR_KERNEL = (
    0.0276,
    0.0663,
    0.1238,
    0.1802,
    0.2042,
    0.1802,
    0.1238,
    0.0663,
    0.0276,
)


@dataclass
class ImageCut:
    """A segment of the image along which a 1D signal is sampled.

    The segment runs from *start* (usually the imaged marker center) to
    *stop* (usually an outer ellipse point, whose image gradient is
    *stop_gradient*). Only the part between the fractions *begin_sig* and
    *end_sig* of the segment is sampled, at *n_samples* regular positions.
    """

    start: tuple[float, float]
    stop: tuple[float, float]
    n_samples: int = 100
    begin_sig: float = 0.0
    end_sig: float = 1.0
    stop_gradient: tuple[float, float] = (0.0, 0.0)
    out_of_bounds: bool = False
    signal: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.n_samples < 0:
            raise ValueError("the number of samples cannot be negative")
        self.start = (float(self.start[0]), float(self.start[1]))
        self.stop = (float(self.stop[0]), float(self.stop[1]))
        self.stop_gradient = (float(self.stop_gradient[0]), float(self.stop_gradient[1]))
        self.signal = np.zeros(self.n_samples, dtype=float)


def apply_homography(homography, x: float, y: float) -> tuple[float, float]:
    """Map the point ``(x, y)`` through a 3x3 homography."""
    h = np.asarray(homography, dtype=float)
    if h.shape != (3, 3):
        raise ValueError("a homography is a 3x3 matrix")
    u = h[0, 0] * x + h[0, 1] * y + h[0, 2]
    v = h[1, 0] * x + h[1, 1] * y + h[1, 2]
    w = h[2, 0] * x + h[2, 1] * y + h[2, 2]
    if w == 0:
        raise ZeroDivisionError("point is mapped to infinity")
    return float(u / w), float(v / w)


def get_pixel_bilinear(image, x: float, y: float) -> float:
    """Bilinear interpolation of a gray image at ``(x, y)``, halved.

    The image is indexed ``[row, column]``; the four pixels around the point
    must lie inside it.
    """
    img = np.asarray(image)
    px = int(x)
    py = int(y)
    if px < 0 or py < 0 or px + 1 >= img.shape[1] or py + 1 >= img.shape[0]:
        raise IndexError(f"point ({x}, {y}) too close to the image border")
    p1 = float(img[py, px])
    p2 = float(img[py, px + 1])
    p3 = float(img[py + 1, px])
    p4 = float(img[py + 1, px + 1])
    fx = x - px
    fy = y - py
    fx1 = 1.0 - fx
    fy1 = 1.0 - fy
    return (p1 * fx1 * fy1 + p2 * fx * fy1 + p3 * fx1 * fy + p4 * fx * fy) / 2


def compute_median(values: Iterable[float]) -> float:
    """Median of the values; for an even count, the mean of the middle two."""
    ordered = sorted(values)
    if not ordered:
        raise ValueError("median of an empty sequence")
    half = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[half]
    return (ordered[half - 1] + ordered[half]) / 2.0


def _correlate_clamped(kernel: Sequence[float], signal: Sequence[float]) -> np.ndarray:
    sig = np.asarray(signal, dtype=float)
    ker = np.asarray(kernel, dtype=float)
    if sig.size == 0:
        raise ValueError("empty signal")
    if ker.size == 0:
        raise ValueError("empty kernel")
    half = (ker.size - 1) // 2
    padded = np.pad(sig, (half, ker.size - 1 - half), mode="edge")
    return np.correlate(padded, ker, mode="valid")


def blur_signal(signal: Sequence[float]) -> np.ndarray:
    """Smooth a signal with a 9-tap Gaussian, repeating the end values."""
    return _correlate_clamped(BLUR_KERNEL, signal)


def convolve_cut(kernel: Sequence[float], signal: Sequence[float]) -> tuple[float, float]:
    """Filter *signal* with *kernel* and locate the highest response.

    Returns the maximum value and its (first) position along the signal.
    """
    output = _correlate_clamped(kernel, signal)
    location = int(np.argmax(output))
    return float(output[location]), float(location)


def create_rectified_cut_image(cuts: Sequence[ImageCut]) -> np.ndarray:
    """Stack the signals of *cuts* as rows of an 8-bit image."""
    if not cuts:
        raise ValueError("no cuts to draw")
    width = len(cuts[0].signal)
    if any(len(cut.signal) != width for cut in cuts):
        raise ValueError("all cuts must hold signals of the same length")
    rows = np.array([np.asarray(cut.signal, dtype=float) for cut in cuts]).reshape(
        len(cuts), width
    )
    finite = np.where(np.isfinite(rows), rows, 0.0)
    return np.trunc(np.clip(finite, 0.0, 255.0)).astype(np.uint8)


def _is_finite_point(x: float, y: float) -> bool:
    return math.isfinite(x) and math.isfinite(y)