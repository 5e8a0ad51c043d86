"""
Shape generators for collision geometry.

Builds the convex pieces the engine tests against: rectangles around
segments, regular circle and ellipse rings, and the capsule-style
buffer of a polyline (one rectangle per segment plus circular caps).
"""

from __future__ import annotations

from typing import List, Optional, Sequence
import math

from .geometry_utils import (
    Point2D,
    Polygon,
    as_point,
    create_polygon_record,
    is_finite_number,
    perpendicular,
)


CIRCLE_MIN_SEGMENTS = 8
ELLIPSE_MIN_SEGMENTS = 12
DEFAULT_CIRCLE_SEGMENTS = 16
DEFAULT_CAP_SEGMENTS = 12
DEFAULT_CLIFF_SEGMENTS = 48


# ---------------------------------------------------------------------------
# Rings
# ---------------------------------------------------------------------------


def create_rectangle_around_segment(
    start: Point2D,
    end: Point2D,
    half_width: float,
) -> Optional[List[Point2D]]:
    """
    Four corners of the rectangle of half-width `half_width` whose long
    axis runs from `start` to `end`. Zero or non-finite length gives None.
    """
    dx = end.x - start.x
    dy = end.y - start.y
    length = math.hypot(dx, dy)
    if length == 0.0 or not math.isfinite(length):
        return None
    nx, ny = perpendicular(dx / length, dy / length)
    ox = nx * half_width
    oy = ny * half_width
    return [
        Point2D(start.x + ox, start.y + oy),
        Point2D(end.x + ox, end.y + oy),
        Point2D(end.x - ox, end.y - oy),
        Point2D(start.x - ox, start.y - oy),
    ]


def create_ellipse_polygon(
    center: Point2D,
    radius_x: float,
    radius_y: float,
    segments: int = DEFAULT_CLIFF_SEGMENTS,
) -> Optional[List[Point2D]]:
    """Ring of max(12, segments) points evenly spaced in angle."""
    if not (is_finite_number(radius_x) and is_finite_number(radius_y)):
        return None
    if radius_x <= 0 or radius_y <= 0:
        return None
    count = max(ELLIPSE_MIN_SEGMENTS, int(segments))
    step = 2.0 * math.pi / count
    return [
        Point2D(
            center.x + math.cos(i * step) * radius_x,
            center.y + math.sin(i * step) * radius_y,
        )
        for i in range(count)
    ]


def create_circle_polygon(
    center: Point2D,
    radius: float,
    segments: int = DEFAULT_CIRCLE_SEGMENTS,
) -> Optional[List[Point2D]]:
    """Ring of max(8, segments) points evenly spaced in angle."""
    if not is_finite_number(radius) or radius <= 0:
        return None
    count = max(CIRCLE_MIN_SEGMENTS, int(segments))
    step = 2.0 * math.pi / count
    return [
        Point2D(
            center.x + math.cos(i * step) * radius,
            center.y + math.sin(i * step) * radius,
        )
        for i in range(count)
    ]


# ---------------------------------------------------------------------------
# Buffering
# ---------------------------------------------------------------------------


def _append_record(out: List[Polygon], ring: Optional[List[Point2D]]) -> None:
    polygon = create_polygon_record(ring)
    if polygon is not None:
        out.append(polygon)


def buffer_polyline(
    points: Optional[Sequence[object]],
    buffer: float,
    closed: bool = False,
    cap_segments: int = DEFAULT_CAP_SEGMENTS,
) -> List[Polygon]:
    """
    Approximate the region within `buffer` of a polyline as convex pieces.

    Each segment becomes a rectangle; a closed line also buffers its
    closing edge. Caps: a closed line gets a circle at every vertex, an
    open line only at its two endpoints, so sharp interior turns of an
    open line keep a small uncovered wedge on the outside of the bend.
    Degenerate segments are skipped.
    """
    if not is_finite_number(buffer) or buffer <= 0:
        return []
    if points is None:
        return []
    line = [p for p in (as_point(raw) for raw in points) if p is not None]
    if len(line) < 2:
        return []

    pieces: List[Polygon] = []
    for start, end in zip(line, line[1:]):
        _append_record(pieces, create_rectangle_around_segment(start, end, buffer))
    if closed:
        _append_record(pieces, create_rectangle_around_segment(line[-1], line[0], buffer))

    cap_count = max(CIRCLE_MIN_SEGMENTS, int(cap_segments))
    cap_centers = line if closed else [line[0], line[-1]]
    for center in cap_centers:
        _append_record(pieces, create_circle_polygon(center, buffer, cap_count))
    return pieces
