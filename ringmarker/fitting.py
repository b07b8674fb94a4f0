"""Least-squares ellipse and circle fitting on edge points."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from ringmarker.edges import EdgePoint

_EPS = float(np.finfo(np.float32).eps)
_INVERTIBILITY_THRESHOLD = 1e-5
_C1_INVERSE = np.array(
    [
        [0.0, 0.0, 0.5],
        [0.0, -1.0, 0.0],
        [0.5, 0.0, 0.0],
    ]
)


@dataclass(frozen=True)
class Ellipse:
    """An ellipse given by its center, semi-axes and orientation in radians."""

    center: tuple[float, float]
    a: float
    b: float
    angle: float


def _xy(point: Any) -> tuple[float, float]:
    if hasattr(point, "x") and hasattr(point, "y"):
        return float(point.x), float(point.y)
    return float(point[0]), float(point[1])


def _as_array(points: Iterable[Any]) -> np.ndarray:
    return np.array([_xy(p) for p in points], dtype=float).reshape(-1, 2)


def _fit_conic(pts: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    offset = pts.mean(axis=0)
    centred = pts - offset
    x, y = centred[:, 0], centred[:, 1]
    d1 = np.column_stack((x * x, x * y, y * y))
    d2 = np.column_stack((x, y, np.ones_like(x)))
    s1 = d1.T @ d1
    s2 = d1.T @ d2
    s3 = d2.T @ d2
    if abs(np.linalg.det(s3)) <= _INVERTIBILITY_THRESHOLD:
        raise ValueError("the input points appear to be linearly dependent")
    t = -np.linalg.inv(s3) @ s2.T
    m = _C1_INVERSE @ (s1 + s2 @ t)

    _, vectors = np.linalg.eig(m)
    evr = np.real(vectors)
    cond = 4 * evr[0] * evr[2] - evr[1] * evr[1]

    best = None
    best_value = math.inf
    for i, value in enumerate(cond):
        if _EPS < value < best_value:
            best, best_value = i, value
    if best is None:
        raise ValueError("degenerate conic")
    a1 = evr[:, best]
    return np.concatenate((a1, t @ a1)), offset


def _to_ellipse(coef: np.ndarray, offset: np.ndarray) -> Ellipse:
    idet = coef[0] * coef[2] - coef[1] * coef[1] / 4
    idet = 1.0 / idet if idet > _EPS else 0.0
    scale = math.sqrt(idet / 4)
    if scale < _EPS:
        raise ValueError("singular conic: not an ellipse")

    aa, bb, cc, dd, ee, ff = (float(v) for v in coef * scale)
    c0 = 2 * (-dd * cc + ee * bb / 2)
    c1 = 2 * (-aa * ee + dd * bb / 2)
    ff += aa * c0 * c0 + bb * c0 * c1 + cc * c1 * c1 + dd * c0 + ee * c1
    if abs(ff) < _EPS:
        raise ValueError("singular conic: null constant term")

    s = np.array([[aa, bb / 2], [bb / 2, cc]]) / -ff
    u, values, _ = np.linalg.svd(s)
    if values[1] <= 0:
        raise ValueError("degenerate ellipse: line or point")
    radius0 = math.sqrt(1.0 / values[0])
    radius1 = math.sqrt(1.0 / values[1])
    angle = math.pi - math.atan2(u[0, 1], u[1, 1])
    center = (c0 + float(offset[0]), c1 + float(offset[1]))
    return Ellipse(center, radius0, radius1, angle)


def fit_ellipse(points: Iterable[Any]) -> Ellipse:
    """Fit an ellipse to at least five points, given as pairs or point objects.

    The first semi-axis is the shorter one.
    """
    pts = _as_array(points)
    if len(pts) < 5:
        raise ValueError(
            f"fitEllipse: {len(pts)} provided, at least 5 are needed to estimate an ellipse"
        )
    coef, offset = _fit_conic(pts)
    return _to_ellipse(coef, offset)


def fit_circle(points: Iterable[Any]) -> Ellipse:
    """Fit a circle algebraically to at least three points."""
    pts = _as_array(points)
    if len(pts) < 3:
        raise ValueError(f"{len(pts)} provided, at least 3 are needed to estimate a circle")
    x, y = pts[:, 0], pts[:, 1]
    a = np.column_stack((x, y, np.ones_like(x), x * x + y * y))
    _, _, vt = np.linalg.svd(a, full_matrices=True)
    v = vt[-1]
    if abs(v[3]) < _EPS:
        raise ValueError("Degenerate circle in circleFitting: points are collinear")
    xc = -0.5 * v[0] / v[3]
    yc = -0.5 * v[1] / v[3]
    squared = xc * xc + yc * yc - v[2] / v[3]
    if squared <= 0:
        raise ValueError(f"Degenerate circle in circleFitting, radius is negative: {squared}")
    radius = math.sqrt(squared)
    return Ellipse((float(xc), float(yc)), radius, radius, 0.0)


def _unit_gradient(point: EdgePoint) -> tuple[float, float]:
    norm = math.hypot(point.dx, point.dy)
    if norm == 0:
        return (math.nan, math.nan)
    return (point.dx / norm, point.dy / norm)


def _distance(p: EdgePoint, q: EdgePoint) -> float:
    return math.hypot(p.x - q.x, p.y - q.y)


def inner_prod_min(
    children: Sequence[EdgePoint], thr_cos_diff_max: float
) -> tuple[float, EdgePoint | None, EdgePoint | None]:
    """Smallest inner product between unit gradients of *children*.

    The first pass finds the point whose gradient departs most from the first
    point's, the second pass measures every gradient against that one. As
    soon as an inner product reaches *thr_cos_diff_max* it is returned.
    Also returned are the point farthest from the first point and the point
    farthest from that one, as far as they were found.
    """
    if len(children) < 2:
        raise ValueError("at least two points are needed")

    p0 = children[0]
    gx0, gy0 = _unit_gradient(p0)
    minimum = 1.1
    dist_max = 0.0
    p1: EdgePoint | None = None
    p2: EdgePoint | None = None
    angle1: EdgePoint | None = None

    for current in children[1:]:
        gx, gy = _unit_gradient(current)
        inner = gx0 * gx + gy0 * gy
        if inner <= thr_cos_diff_max:
            return inner, p1, p2
        if inner < minimum:
            minimum = inner
            angle1 = current
        dist = _distance(p0, current)
        if dist > dist_max:
            dist_max = dist
            p1 = current

    if angle1 is None:
        return minimum, p1, p2

    gxm, gym = _unit_gradient(angle1)
    minimum = 1.0
    dist_max = 0.0
    reference = p1 if p1 is not None else p0
    for current in children:
        gx, gy = _unit_gradient(current)
        inner = gxm * gx + gym * gy
        if inner <= thr_cos_diff_max:
            return inner, p1, p2
        if inner < minimum:
            minimum = inner
        dist = _distance(reference, current)
        if dist > dist_max:
            dist_max = dist
            p2 = current

    return minimum, p1, p2