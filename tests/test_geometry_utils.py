from __future__ import annotations

import math

import numpy as np

from city_collision.geometry_utils import (
    Point2D,
    as_point,
    compute_convex_hull,
    create_polygon_record,
    is_finite_number,
    point_in_polygon,
    points_in_polygon,
)


SQUARE = [Point2D(0.0, 0.0), Point2D(10.0, 0.0), Point2D(10.0, 10.0), Point2D(0.0, 10.0)]


def test_point_in_square() -> None:
    poly = create_polygon_record(SQUARE)
    assert poly is not None
    assert point_in_polygon(5.0, 5.0, poly)
    assert not point_in_polygon(15.0, 5.0, poly)
    assert not point_in_polygon(5.0, -0.1, poly)


def test_point_in_concave_polygon() -> None:
    # U shape opening upward; the notch is outside.
    ring = [(0, 0), (30, 0), (30, 30), (20, 30), (20, 10), (10, 10), (10, 30), (0, 30)]
    poly = create_polygon_record(ring)
    assert poly is not None
    assert point_in_polygon(5.0, 20.0, poly)
    assert point_in_polygon(25.0, 20.0, poly)
    assert not point_in_polygon(15.0, 20.0, poly)
    assert point_in_polygon(15.0, 5.0, poly)


def test_point_in_polygon_handles_missing_polygon() -> None:
    assert not point_in_polygon(0.0, 0.0, None)


def test_polygon_record_filters_duplicates_and_non_finite() -> None:
    ring = [
        (0.0, 0.0),
        (0.0, 5e-7),
        (float("nan"), 3.0),
        (10.0, 0.0),
        (10.0, float("inf")),
        (10.0, 10.0),
    ]
    poly = create_polygon_record(ring)
    assert poly is not None
    assert poly.points == (Point2D(0.0, 0.0), Point2D(10.0, 0.0), Point2D(10.0, 10.0))
    assert poly.bbox.min_x == 0.0 and poly.bbox.max_x == 10.0
    assert poly.bbox.min_y == 0.0 and poly.bbox.max_y == 10.0


def test_polygon_record_rejects_degenerate_rings() -> None:
    assert create_polygon_record(None) is None
    assert create_polygon_record([(0, 0), (1, 1)]) is None
    assert create_polygon_record([(0, 0), (0, 0), (0, 0), (1e-7, 0)]) is None


def test_as_point_accepts_common_shapes() -> None:
    assert as_point((1, 2)) == Point2D(1.0, 2.0)
    assert as_point({"x": 3, "y": 4}) == Point2D(3.0, 4.0)
    assert as_point(Point2D(5.0, 6.0)) == Point2D(5.0, 6.0)
    assert as_point((math.nan, 1.0)) is None
    assert as_point("xy") is None
    assert as_point(None) is None


def test_is_finite_number() -> None:
    assert is_finite_number(1)
    assert is_finite_number(-2.5)
    assert is_finite_number(np.float32(1.5))
    assert not is_finite_number(math.inf)
    assert not is_finite_number(math.nan)
    assert not is_finite_number("1")
    assert not is_finite_number(None)
    assert not is_finite_number(True)


def test_vectorized_containment_matches_scalar() -> None:
    ring = [(0, 0), (30, 0), (30, 30), (20, 30), (20, 10), (10, 10), (10, 30), (0, 30)]
    poly = create_polygon_record(ring)
    assert poly is not None
    xs, ys = np.meshgrid(np.linspace(-5.0, 35.0, 41), np.linspace(-5.0, 35.0, 41))
    mask = points_in_polygon(xs.ravel(), ys.ravel(), poly)
    expected = [point_in_polygon(float(x), float(y), poly) for x, y in zip(xs.ravel(), ys.ravel())]
    assert mask.tolist() == expected


def test_convex_hull_of_square_with_interior_point() -> None:
    pts = SQUARE + [Point2D(5.0, 5.0), Point2D(2.0, 7.0)]
    hull = compute_convex_hull(pts)
    assert hull == [Point2D(0.0, 0.0), Point2D(10.0, 0.0), Point2D(10.0, 10.0), Point2D(0.0, 10.0)]


def test_convex_hull_contains_all_inputs() -> None:
    rng = np.random.default_rng(0)
    pts = [Point2D(float(x), float(y)) for x, y in rng.uniform(-100.0, 100.0, size=(60, 2))]
    hull = compute_convex_hull(pts)
    assert len(hull) >= 3
    assert set(hull) <= set(pts)
    n = len(hull)
    for p in pts:
        for i in range(n):
            a = hull[i]
            b = hull[(i + 1) % n]
            cross = (b.x - a.x) * (p.y - a.y) - (b.y - a.y) * (p.x - a.x)
            # Counter-clockwise hull: nothing lies strictly to the right of an edge.
            assert cross >= -1e-9


def test_convex_hull_small_inputs_returned_unchanged() -> None:
    two = [Point2D(1.0, 1.0), Point2D(0.0, 0.0)]
    assert compute_convex_hull(two) == two
    assert compute_convex_hull([]) == []
    assert compute_convex_hull(None) == []


def test_convex_hull_drops_non_finite_points() -> None:
    pts = [Point2D(0.0, 0.0), Point2D(math.nan, 1.0), Point2D(1.0, math.inf), Point2D(1.0, 0.0)]
    assert compute_convex_hull(pts) == [Point2D(0.0, 0.0), Point2D(1.0, 0.0)]
