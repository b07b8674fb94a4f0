import math

import pytest

from ringmarker.edges import EdgePoint
from ringmarker.fitting import fit_circle, fit_ellipse, inner_prod_min


def _ellipse_points(cx, cy, a, b, theta, n=20):
    points = []
    for k in range(n):
        t = 2 * math.pi * k / n
        u, v = a * math.cos(t), b * math.sin(t)
        points.append(
            (
                cx + u * math.cos(theta) - v * math.sin(theta),
                cy + u * math.sin(theta) + v * math.cos(theta),
            )
        )
    return points


def test_fit_ellipse_on_circle():
    ellipse = fit_ellipse(_ellipse_points(3.0, 4.0, 7.0, 7.0, 0.0))
    assert ellipse.center[0] == pytest.approx(3.0, abs=1e-6)
    assert ellipse.center[1] == pytest.approx(4.0, abs=1e-6)
    assert ellipse.a == pytest.approx(7.0, rel=1e-6)
    assert ellipse.b == pytest.approx(7.0, rel=1e-6)


def test_fit_rotated_ellipse():
    ellipse = fit_ellipse(_ellipse_points(10.0, 20.0, 5.0, 3.0, 0.4))
    assert ellipse.center[0] == pytest.approx(10.0, abs=1e-6)
    assert ellipse.center[1] == pytest.approx(20.0, abs=1e-6)
    assert ellipse.a <= ellipse.b
    assert (ellipse.a, ellipse.b) == pytest.approx((3.0, 5.0), rel=1e-6)
    assert abs(math.sin(2 * (ellipse.angle - 0.4))) < 1e-6


def test_fit_ellipse_accepts_edge_points():
    points = [EdgePoint(x, y, 0.0, 0.0) for x, y in _ellipse_points(-2.0, 1.0, 4.0, 2.0, 1.0)]
    ellipse = fit_ellipse(points)
    assert ellipse.center[0] == pytest.approx(-2.0, abs=1e-6)
    assert ellipse.center[1] == pytest.approx(1.0, abs=1e-6)
    assert (ellipse.a, ellipse.b) == pytest.approx((2.0, 4.0), rel=1e-6)


def test_fit_ellipse_too_few_points():
    with pytest.raises(ValueError, match="at least 5"):
        fit_ellipse([(0, 0), (1, 0), (0, 1), (1, 1)])


def test_fit_ellipse_collinear_points():
    with pytest.raises(ValueError):
        fit_ellipse([(float(i), 2.0 * i) for i in range(6)])


def test_fit_circle():
    circle = fit_circle(_ellipse_points(5.0, -3.0, 2.5, 2.5, 0.0, n=12))
    assert circle.center[0] == pytest.approx(5.0, abs=1e-6)
    assert circle.center[1] == pytest.approx(-3.0, abs=1e-6)
    assert circle.a == pytest.approx(2.5, rel=1e-6)
    assert circle.b == circle.a
    assert circle.angle == 0.0


def test_fit_circle_collinear():
    with pytest.raises(ValueError):
        fit_circle([(float(i), float(i)) for i in range(4)])


def _radial_points():
    return [
        EdgePoint(10, 0, 1.0, 0.0),
        EdgePoint(0, 10, 0.0, 1.0),
        EdgePoint(-10, 0, -1.0, 0.0),
        EdgePoint(0, -10, 0.0, -1.0),
    ]


def test_inner_prod_min_opposite_gradients():
    points = _radial_points()
    value, p1, p2 = inner_prod_min(points, -2.0)
    assert value == pytest.approx(-1.0)
    assert p1 is points[2]
    assert p2 is points[0]


def test_inner_prod_min_stops_at_threshold():
    points = _radial_points()
    value, p1, p2 = inner_prod_min(points, 0.5)
    assert value == pytest.approx(0.0)
    assert p1 is None and p2 is None


def test_inner_prod_min_needs_two_points():
    with pytest.raises(ValueError):
        inner_prod_min([EdgePoint(0, 0, 1.0, 0.0)], 0.0)