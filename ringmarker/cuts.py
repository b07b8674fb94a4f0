"""Sampling image cuts: plain and rectified signals, refinement and selection."""

from __future__ import annotations

import copy
import math
from collections.abc import Iterable, Sequence
from typing import Any

import numpy as np

from ringmarker.sampling import (
    ImageCut,
    apply_homography,
    convolve_cut,
    get_pixel_bilinear,
)

# Derivative-of-Gaussian kernels (9 taps) for sigma 0.5, 1 and 1.5.
REFINEMENT_KERNELS = (
    (-0.0000, -0.0003, -0.1065, -0.7863, 0.0, 0.7863, 0.1065, 0.0003, 0.0000),
    (-0.0044, -0.0540, -0.2376, -0.3450, 0.0, 0.3450, 0.2376, 0.0540, 0.0044),
    (-0.0366, -0.1113, -0.1801, -0.1594, 0.0, 0.1594, 0.1801, 0.1113, 0.0366),
)


def _xy(point: Any) -> tuple[float, float]:
    if hasattr(point, "x") and hasattr(point, "y"):
        return float(point.x), float(point.y)
    return float(point[0]), float(point[1])


def _directed(point: Any) -> tuple[float, float, float, float]:
    if hasattr(point, "dx") and hasattr(point, "dy"):
        return float(point.x), float(point.y), float(point.dx), float(point.dy)
    x, y, dx, dy = point
    return float(x), float(y), float(dx), float(dy)


def _steps(x_start: float, y_start: float, x_stop: float, y_stop: float, n: int):
    if n <= 1:
        return 0.0, 0.0
    return (x_stop - x_start) / (n - 1.0), (y_stop - y_start) / (n - 1.0)


def cut_interpolated(cut: ImageCut, image) -> ImageCut:
    """Sample the signal of *cut* regularly between its begin and end fractions.

    Sampling stops, and the cut is marked out of bounds, at the first
    position that is not at least one pixel inside the image.
    """
    img = np.asarray(image)
    rows, cols = img.shape[:2]
    (sx, sy), (ex, ey) = cut.start, cut.stop
    diff_x = ex - sx
    diff_y = ey - sy

    if cut.begin_sig != 0.0:
        x_start = sx + diff_x * cut.begin_sig
        y_start = sy + diff_y * cut.begin_sig
    else:
        x_start, y_start = sx, sy
    if cut.end_sig != 1.0:
        x_stop = sx + diff_x * cut.end_sig
        y_stop = sy + diff_y * cut.end_sig
    else:
        x_stop, y_stop = ex, ey

    n = len(cut.signal)
    step_x, step_y = _steps(x_start, y_start, x_stop, y_stop, n)
    x, y = x_start, y_start
    for i in range(n):
        if 1.0 <= x < cols - 1 and 1.0 <= y < rows - 1:
            cut.signal[i] = get_pixel_bilinear(img, x, y)
        else:
            cut.out_of_bounds = True
            break
        x += step_x
        y += step_y
    return cut


def extract_signal_using_homography(
    cut: ImageCut, image, homography, inv_homography
) -> ImageCut:
    """Sample the rectified signal of *cut*.

    Positions are spaced regularly in the marker plane, from its origin
    towards the back-projection of the cut's stop point, and mapped into the
    image by *homography* (marker plane to image). Samples falling outside
    the image mark the cut out of bounds but do not stop the sampling.
    """
    img = np.asarray(image)
    rows, cols = img.shape[:2]
    try:
        back_x, back_y = apply_homography(inv_homography, cut.stop[0], cut.stop[1])
    except ZeroDivisionError:
        cut.out_of_bounds = True
        return cut

    if cut.begin_sig != 0.0:
        x_start, y_start = back_x * cut.begin_sig, back_y * cut.begin_sig
    else:
        x_start, y_start = 0.0, 0.0
    if cut.end_sig != 1.0:
        x_stop, y_stop = back_x * cut.end_sig, back_y * cut.end_sig
    else:
        x_stop, y_stop = back_x, back_y

    n = len(cut.signal)
    step_x, step_y = _steps(x_start, y_start, x_stop, y_stop, n)
    x, y = x_start, y_start
    for i in range(n):
        try:
            x_res, y_res = apply_homography(homography, x, y)
        except ZeroDivisionError:
            x_res = y_res = math.nan
        if 0.0 <= x_res < cols - 1 and 0.0 <= y_res < rows - 1:
            cut.signal[i] = get_pixel_bilinear(img, x_res, y_res)
        else:
            cut.out_of_bounds = True
        x += step_x
        y += step_y
    return cut


def get_signals(cuts: Iterable[ImageCut], homography, image) -> None:
    """Sample the rectified signal of every cut under *homography*."""
    h = np.asarray(homography, dtype=float)
    inv = np.linalg.inv(h)
    for cut in cuts:
        extract_signal_using_homography(cut, image, h, inv)


def collect_cuts(
    image,
    center: Any,
    outer_points: Iterable[Any],
    n_samples: int,
    begin_sig: float,
) -> list[ImageCut]:
    """Sample cuts from *center* to each outer point, keeping those in the image.

    Outer points are objects with ``x, y, dx, dy`` or tuples of those four.
    """
    start = _xy(center)
    cuts: list[ImageCut] = []
    for point in outer_points:
        x, y, dx, dy = _directed(point)
        cut = ImageCut(
            start,
            (x, y),
            n_samples=n_samples,
            begin_sig=begin_sig,
            end_sig=1.0,
            stop_gradient=(dx, dy),
        )
        cut_interpolated(cut, image)
        if not cut.out_of_bounds:
            cuts.append(cut)
    return cuts


def outer_edge_refinement(cut: ImageCut, image, scale: float, n_samples: int) -> bool:
    """Move the stop point of *cut* onto the strongest edge along its gradient.

    A short cut across the stop point is filtered by three derivative
    kernels; the position of the highest response becomes the new stop.
    Returns False, leaving *cut* unchanged, when that short cut leaves the
    image or the gradient is null.
    """
    length = 3.0 * math.sqrt(2.0) * scale
    half = length / 2.0
    gx, gy = cut.stop_gradient
    norm = math.hypot(gx, gy)
    if norm == 0:
        return False
    dir_x, dir_y = gx / norm, gy / norm
    sx, sy = cut.stop

    p_start = (sx - half * dir_x, sy - half * dir_y)
    p_stop = (sx + half * dir_x, sy + half * dir_y)
    probe = ImageCut(p_start, p_stop, n_samples=n_samples, stop_gradient=cut.stop_gradient)
    cut_interpolated(probe, image)
    if probe.out_of_bounds:
        return False

    responses: dict[float, float] = {}
    for kernel in REFINEMENT_KERNELS:
        value, location = convolve_cut(kernel, probe.signal)
        responses.setdefault(value, location)
    max_location = responses[max(responses)]

    step = length / (n_samples - 1.0) if n_samples > 1 else 0.0
    cut.stop = (
        p_start[0] + step * max_location * dir_x,
        p_start[1] + step * max_location * dir_y,
    )
    return True


def cost_select_cut(
    var_cuts: Sequence[float],
    gradients: Sequence[Any],
    indices: Iterable[int],
    alpha: float,
) -> float:
    """Score a subset of cuts: norm of the summed unit gradients minus alpha
    times the summed signal variances."""
    sum_x = sum_y = 0.0
    sum_var = 0.0
    for i in indices:
        if not 0 <= i < len(var_cuts):
            raise IndexError(f"cut index {i} out of range")
        gx, gy = _xy(gradients[i])
        sum_x += gx
        sum_y += gy
        sum_var += var_cuts[i]
    return math.hypot(sum_x, sum_y) - alpha * sum_var


def select_cuts_uniform(
    cuts: Sequence[ImageCut],
    select_size: int,
    image,
    scale: float,
    n_samples: int,
) -> list[ImageCut]:
    """Pick up to *select_size* sharp cuts spread evenly over *cuts*.

    Each cut's stop point is refined in place; a cut qualifies when its
    refinement succeeds and its signal variance exceeds half of the largest
    one. Copies of the chosen cuts are returned.
    """
    select_size = min(select_size, len(cuts))
    if select_size <= 0:
        return []

    variances = [float(np.var(np.asarray(cut.signal, dtype=float))) for cut in cuts]
    var_max = max(variances)

    sharp: list[int] = []
    for i, (cut, variance) in enumerate(zip(cuts, variances)):
        if outer_edge_refinement(cut, image, scale, n_samples):
            if var_max > 0 and variance / var_max > 0.5:
                sharp.append(i)

    step = max(1.0, len(sharp) / select_size)
    selected: list[ImageCut] = []
    k = 0
    while True:
        position = int(k * step)
        if position < len(sharp) and len(selected) < select_size:
            selected.append(copy.deepcopy(cuts[sharp[position]]))
        else:
            break
        k += 1
    return selected