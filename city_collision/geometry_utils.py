"""
Geometry utilities for the collision engine.

Provides the planar point and polygon value types, the cached bounding
box, even-odd point-in-polygon tests (scalar and numpy-vectorized),
the monotone-chain convex hull, and small distance helpers used by
buffering, wall synthesis and walkability queries.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple
import math

import numpy as np


DUPLICATE_EPSILON = 1e-6


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


class Point2D(NamedTuple):
    """Position in local planar meters (x east, y north)."""

    x: float
    y: float


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box used as a cheap query pre-filter."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float

    def contains(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y


@dataclass(frozen=True)
class Polygon:
    """Closed ring of at least three distinct points plus its bounding box.

    Build instances through `create_polygon_record`, which filters the
    input ring; the constructor itself does not validate.
    """

    points: Tuple[Point2D, ...]
    bbox: BoundingBox

    @cached_property
    def arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Ring coordinates as float64 arrays (xs, ys) for batch queries."""
        xs = np.fromiter((p.x for p in self.points), dtype=np.float64, count=len(self.points))
        ys = np.fromiter((p.y for p in self.points), dtype=np.float64, count=len(self.points))
        return xs, ys

    def centroid(self) -> Point2D:
        """Mean of the ring vertices."""
        return vertex_mean(self.points)

    def to_list(self) -> List[List[float]]:
        return [[p.x, p.y] for p in self.points]


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------


def is_finite_number(value: object) -> bool:
    """True for real numbers that are neither NaN nor infinite."""
    if isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)  # type: ignore[arg-type]
    except TypeError:
        return False


def as_point(value: object) -> Optional[Point2D]:
    """Coerce a Point2D, (x, y) pair or object with x/y attributes.

    Returns None when the value carries no finite coordinates.
    """
    if value is None:
        return None
    if isinstance(value, Point2D):
        x, y = value.x, value.y
    elif isinstance(value, dict):
        x, y = value.get("x"), value.get("y")
    elif hasattr(value, "x") and hasattr(value, "y"):
        x, y = value.x, value.y  # type: ignore[attr-defined]
    else:
        try:
            x, y = value[0], value[1]  # type: ignore[index]
        except (TypeError, IndexError, KeyError):
            return None
    if not (is_finite_number(x) and is_finite_number(y)):
        return None
    return Point2D(float(x), float(y))


def distance(a: Point2D, b: Point2D) -> float:
    """Euclidean distance between two points."""
    return math.hypot(b.x - a.x, b.y - a.y)


def normalize_2d(dx: float, dy: float) -> Tuple[float, float]:
    """Return (dx, dy) normalized; if zero vector, return (0, 0)."""
    length = math.hypot(dx, dy)
    if length < 1e-10:
        return 0.0, 0.0
    return dx / length, dy / length


def perpendicular(dx: float, dy: float) -> Tuple[float, float]:
    """Left-hand normal of a direction vector."""
    return -dy, dx


def vertex_mean(points: Sequence[Point2D]) -> Point2D:
    """Arithmetic mean of a non-empty point sequence."""
    n = len(points)
    if n == 0:
        raise ValueError("vertex_mean requires at least one point")
    sx = 0.0
    sy = 0.0
    for p in points:
        sx += p.x
        sy += p.y
    return Point2D(sx / n, sy / n)


# ---------------------------------------------------------------------------
# Polygon construction
# ---------------------------------------------------------------------------


def compute_bounding_box(points: Iterable[Point2D]) -> BoundingBox:
    min_x = math.inf
    max_x = -math.inf
    min_y = math.inf
    max_y = -math.inf
    for p in points:
        if p.x < min_x:
            min_x = p.x
        if p.x > max_x:
            max_x = p.x
        if p.y < min_y:
            min_y = p.y
        if p.y > max_y:
            max_y = p.y
    return BoundingBox(min_x=min_x, max_x=max_x, min_y=min_y, max_y=max_y)


def create_polygon_record(points: Optional[Sequence[object]]) -> Optional[Polygon]:
    """
    Build a Polygon from a ring, or return None if it is degenerate.

    Non-finite vertices are dropped, as is any vertex within
    DUPLICATE_EPSILON of its predecessor on both axes. Fewer than three
    remaining vertices yields None.
    """
    if points is None or len(points) < 3:
        return None
    filtered: List[Point2D] = []
    for raw in points:
        p = as_point(raw)
        if p is None:
            continue
        if filtered:
            last = filtered[-1]
            if abs(last.x - p.x) < DUPLICATE_EPSILON and abs(last.y - p.y) < DUPLICATE_EPSILON:
                continue
        filtered.append(p)
    if len(filtered) < 3:
        return None
    bbox = compute_bounding_box(filtered)
    if not (is_finite_number(bbox.min_x) and is_finite_number(bbox.min_y)):
        return None
    return Polygon(points=tuple(filtered), bbox=bbox)


# ---------------------------------------------------------------------------
# Containment
# ---------------------------------------------------------------------------


def point_in_polygon(px: float, py: float, polygon: Optional[Polygon]) -> bool:
    """
    Even-odd ray-casting test with a bounding-box short-circuit.

    An edge counts as crossed when exactly one endpoint lies strictly
    above the query row (`yi > py != yj > py`); points exactly on an
    edge resolve by that tie-break rather than being classified as
    on-boundary.
    """
    if polygon is None:
        return False
    bbox = polygon.bbox
    if px < bbox.min_x or px > bbox.max_x or py < bbox.min_y or py > bbox.max_y:
        return False
    pts = polygon.points
    inside = False
    j = len(pts) - 1
    for i in range(len(pts)):
        xi, yi = pts[i]
        xj, yj = pts[j]
        if (yi > py) != (yj > py) and px < (xj - xi) * (py - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def points_in_polygon(xs: np.ndarray, ys: np.ndarray, polygon: Polygon) -> np.ndarray:
    """Vectorized `point_in_polygon` over equally shaped coordinate arrays."""
    bbox = polygon.bbox
    candidates = (xs >= bbox.min_x) & (xs <= bbox.max_x) & (ys >= bbox.min_y) & (ys <= bbox.max_y)
    inside = np.zeros(xs.shape, dtype=bool)
    if not candidates.any():
        return inside
    cx = xs[candidates]
    cy = ys[candidates]
    hits = np.zeros(cx.shape, dtype=bool)
    rx, ry = polygon.arrays
    n = len(rx)
    j = n - 1
    with np.errstate(divide="ignore", invalid="ignore"):
        for i in range(n):
            xi, yi = rx[i], ry[i]
            xj, yj = rx[j], ry[j]
            straddles = (yi > cy) != (yj > cy)
            if yj != yi:
                crossing = cx < (xj - xi) * (cy - yi) / (yj - yi) + xi
                hits ^= straddles & crossing
            j = i
    inside[candidates] = hits
    return inside


# ---------------------------------------------------------------------------
# Convex hull
# ---------------------------------------------------------------------------


def _cross(o: Point2D, a: Point2D, b: Point2D) -> float:
    return (a.x - o.x) * (b.y - o.y) - (a.y - o.y) * (b.x - o.x)


def compute_convex_hull(points: Optional[Sequence[Point2D]]) -> List[Point2D]:
    """
    Andrew's monotone chain; returns hull vertices counter-clockwise.

    Inputs with fewer than three points are returned unchanged. Points
    with non-finite coordinates are dropped before sorting, and if fewer
    than three survive the sorted survivors are returned. Collinear
    points on hull edges are discarded.
    """
    if points is None:
        return []
    if len(points) < 3:
        return list(points)
    valid = [p for p in (as_point(raw) for raw in points) if p is not None]
    ordered = sorted(valid, key=lambda p: (p.x, p.y))
    if len(ordered) < 3:
        return ordered

    lower: List[Point2D] = []
    for p in ordered:
        while len(lower) >= 2 and _cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)

    upper: List[Point2D] = []
    for p in reversed(ordered):
        while len(upper) >= 2 and _cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)

    return lower[:-1] + upper[:-1]
