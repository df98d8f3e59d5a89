"""Overlap detection and boundary checks for candidate placements.

The central question this module answers: "may this vertex set be
committed?" Every preview and every commit calls ``placement_verdict``
(or its boolean form ``check_overlap``) with the candidate's raw vertices
and the shapes already on the floor. The check enforces, in order:

  * **Duplicate guard** — a candidate whose centroid is within ``S/2`` of
    an existing piece's centroid and which shares a raw vertex with it is
    a re-placement of the same piece. Coincident vertices sit exactly on
    boundaries, so the strict-interior test below would let it through.
  * **Containment** — no vertex of either collision polygon may be
    strictly inside the other. A vertex within ``EDGE_TOLERANCE`` of a
    boundary is *not* strictly inside: flush contact is legal.
  * **Edge crossing** — no pair of edges may properly cross. The
    cross-product sign test has a dead zone so touching and collinear
    edges do not count.
  * **Interior overlap** — the collision polygons may not share more than
    ``MIN_OVERLAP_AREA`` of interior. This catches shallow overlaps whose
    vertices all land on the other polygon's boundary, e.g. two squares
    49 apart.
  * **Buildable area** — when a boundary is active, every raw vertex must
    lie inside at least one (padded) buildable rectangle.

Corner pieces collide with their fillet footprint from ``corners.py``,
using each piece's own building style. All functions are pure.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np
from shapely.geometry import Polygon as ShapelyPolygon

from .constants import (
    CROSS_EPSILON,
    EDGE_TOLERANCE,
    MIN_EDGE_LENGTH,
    MIN_OVERLAP_AREA,
    SHAPE_SIZE,
)
from .corners import collision_vertices
from .shapes import Point, polygon_centroid
from .types import BuildableArea, Shape

logger = logging.getLogger(__name__)

REASON_DUPLICATE = "duplicate"
REASON_VERTEX_INSIDE = "vertex_inside"
REASON_EDGE_CROSSING = "edge_crossing"
REASON_INTERIOR_OVERLAP = "interior_overlap"
REASON_OUTSIDE_AREA = "outside_area"


@dataclass(frozen=True)
class Verdict:
    ok: bool
    reason: str | None = None
    shape_id: int | None = None  # the placed shape that blocked, if any


ACCEPTED = Verdict(ok=True)


def point_to_segment_distance_squared(
    px: float,
    py: float,
    x1: float,
    y1: float,
    x2: float,
    y2: float,
) -> float:
    """Compute squared distance from point to line segment.

    Uses vector projection. If projection falls within segment,
    returns perpendicular distance. Otherwise returns distance
    to nearest endpoint.
    """
    seg_len_sq = (x2 - x1) ** 2 + (y2 - y1) ** 2
    if seg_len_sq == 0:
        return (px - x1) ** 2 + (py - y1) ** 2

    t = ((px - x1) * (x2 - x1) + (py - y1) * (y2 - y1)) / seg_len_sq

    if 0 < t < 1:
        proj_x = x1 + t * (x2 - x1)
        proj_y = y1 + t * (y2 - y1)
        return (px - proj_x) ** 2 + (py - proj_y) ** 2
    else:
        dist_to_start = (px - x1) ** 2 + (py - y1) ** 2
        dist_to_end = (px - x2) ** 2 + (py - y2) ** 2
        return min(dist_to_start, dist_to_end)


def point_in_polygon(px: float, py: float, vertices: list[Point]) -> bool:
    """Ray-casting point-in-polygon test."""
    n = len(vertices)
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = vertices[i]
        xj, yj = vertices[j]
        if (yi > py) != (yj > py):
            intersect_x = (xj - xi) * (py - yi) / (yj - yi) + xi
            if px < intersect_x:
                inside = not inside
        j = i
    return inside


def point_on_boundary(
    px: float,
    py: float,
    vertices: list[Point],
    tolerance: float = EDGE_TOLERANCE,
) -> bool:
    """True if the point is within ``tolerance`` of any polygon edge."""
    n = len(vertices)
    tol_sq = tolerance * tolerance
    for i in range(n):
        x1, y1 = vertices[i]
        x2, y2 = vertices[(i + 1) % n]
        if (x2 - x1) ** 2 + (y2 - y1) ** 2 <= MIN_EDGE_LENGTH:
            continue
        d = point_to_segment_distance_squared(px, py, x1, y1, x2, y2)
        if d < tol_sq:
            return True
    return False


def point_strictly_in_polygon(
    px: float, py: float, vertices: list[Point]
) -> bool:
    """Interior test where points on (or near) the boundary are outside."""
    if point_on_boundary(px, py, vertices):
        return False
    return point_in_polygon(px, py, vertices)


def _cross(o: Point, a: Point, b: Point) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def segments_cross(a1: Point, a2: Point, b1: Point, b2: Point) -> bool:
    """True if the segments properly cross (not merely touch or overlap)."""
    eps = CROSS_EPSILON
    d1 = _cross(b1, b2, a1)
    d2 = _cross(b1, b2, a2)
    d3 = _cross(a1, a2, b1)
    d4 = _cross(a1, a2, b2)
    return ((d1 > eps and d2 < -eps) or (d1 < -eps and d2 > eps)) and (
        (d3 > eps and d4 < -eps) or (d3 < -eps and d4 > eps)
    )


def _edge_array(poly: list[Point]) -> np.ndarray:
    """Edges as an (N, 4) array of (x1, y1, x2, y2)."""
    pts = np.asarray(poly, dtype=np.float64)
    return np.hstack([pts, np.roll(pts, -1, axis=0)])


def edges_cross(poly_a: list[Point], poly_b: list[Point]) -> bool:
    """Vectorized ``segments_cross`` over every edge pair of two polygons."""
    if len(poly_a) < 2 or len(poly_b) < 2:
        return False
    edges_a = _edge_array(poly_a)
    edges_b = _edge_array(poly_b)

    # Broadcast: (E_a, 1) vs (1, E_b) → cross products over all pairs
    ax1 = edges_a[:, 0:1]
    ay1 = edges_a[:, 1:2]
    ax2 = edges_a[:, 2:3]
    ay2 = edges_a[:, 3:4]
    bx1 = edges_b[:, 0:1].T
    by1 = edges_b[:, 1:2].T
    bx2 = edges_b[:, 2:3].T
    by2 = edges_b[:, 3:4].T

    d1 = (bx2 - bx1) * (ay1 - by1) - (by2 - by1) * (ax1 - bx1)
    d2 = (bx2 - bx1) * (ay2 - by1) - (by2 - by1) * (ax2 - bx1)
    d3 = (ax2 - ax1) * (by1 - ay1) - (ay2 - ay1) * (bx1 - ax1)
    d4 = (ax2 - ax1) * (by2 - ay1) - (ay2 - ay1) * (bx2 - ax1)

    eps = CROSS_EPSILON
    straddle_b = ((d1 > eps) & (d2 < -eps)) | ((d1 < -eps) & (d2 > eps))
    straddle_a = ((d3 > eps) & (d4 < -eps)) | ((d3 < -eps) & (d4 > eps))
    return bool(np.any(straddle_a & straddle_b))


def _bounds(poly: list[Point]) -> tuple[float, float, float, float]:
    xs = [p[0] for p in poly]
    ys = [p[1] for p in poly]
    return min(xs), min(ys), max(xs), max(ys)


def _boxes_apart(a: list[Point], b: list[Point]) -> bool:
    a_min_x, a_min_y, a_max_x, a_max_y = _bounds(a)
    b_min_x, b_min_y, b_max_x, b_max_y = _bounds(b)
    return (
        a_max_x < b_min_x
        or b_max_x < a_min_x
        or a_max_y < b_min_y
        or b_max_y < a_min_y
    )


def _shapely(poly: list[Point]) -> ShapelyPolygon:
    sp = ShapelyPolygon(poly)
    if not sp.is_valid:
        # Self-intersecting rings from hand-edited or legacy data.
        sp = sp.buffer(0)
    return sp


def interior_overlap_area(poly_a: list[Point], poly_b: list[Point]) -> float:
    """Area shared by the interiors of two simple polygons."""
    if len(poly_a) < 3 or len(poly_b) < 3:
        return 0.0
    return _shapely(poly_a).intersection(_shapely(poly_b)).area


def polygons_overlap_reason(
    poly_a: list[Point], poly_b: list[Point]
) -> str | None:
    """Why two collision polygons overlap, or ``None`` if they don't.

    Touching (shared edge or vertex, within ``EDGE_TOLERANCE``) is NOT
    counted as overlap.
    """
    if len(poly_a) < 3 or len(poly_b) < 3:
        return None
    if _boxes_apart(poly_a, poly_b):
        return None

    for px, py in poly_a:
        if point_strictly_in_polygon(px, py, poly_b):
            return REASON_VERTEX_INSIDE
    for px, py in poly_b:
        if point_strictly_in_polygon(px, py, poly_a):
            return REASON_VERTEX_INSIDE

    if edges_cross(poly_a, poly_b):
        return REASON_EDGE_CROSSING

    if interior_overlap_area(poly_a, poly_b) > MIN_OVERLAP_AREA:
        return REASON_INTERIOR_OVERLAP
    return None


def polygons_overlap(poly_a: list[Point], poly_b: list[Point]) -> bool:
    """Test if two polygons share interior area beyond flush contact."""
    return polygons_overlap_reason(poly_a, poly_b) is not None


def is_duplicate_placement(
    candidate: list[Point], existing: list[Point] | tuple[Point, ...]
) -> bool:
    """Same-spot re-placement: close centroids and a coincident raw vertex."""
    if not candidate or not existing:
        return False
    cx, cy = polygon_centroid(candidate)
    ex, ey = polygon_centroid(existing)
    if math.hypot(cx - ex, cy - ey) >= SHAPE_SIZE / 2:
        return False
    limit = 2 * EDGE_TOLERANCE
    for vx, vy in candidate:
        for wx, wy in existing:
            if math.hypot(vx - wx, vy - wy) < limit:
                return True
    return False


def point_in_buildable_area(
    px: float,
    py: float,
    areas: Iterable[BuildableArea],
    padding_percent: float = 0.0,
) -> bool:
    fraction = padding_percent / 100
    return any(area.contains(px, py, fraction) for area in areas)


def shape_in_buildable_area(
    vertices: Iterable[Point],
    areas: list[BuildableArea],
    padding_percent: float = 0.0,
) -> bool:
    """Every vertex must fall inside some buildable area (not necessarily the same one)."""
    return all(
        point_in_buildable_area(x, y, areas, padding_percent)
        for x, y in vertices
    )


def placement_verdict(
    vertices: list[Point],
    kind: str,
    building: str,
    placed: Iterable[Shape],
    areas: list[BuildableArea] | None = None,
    padding_percent: float = 0.0,
) -> Verdict:
    """Decide whether ``vertices`` may be committed among ``placed``.

    ``areas`` is ``None`` when no boundary is active; an empty list means
    a boundary is active but nothing is buildable.
    """
    raw = [tuple(v) for v in vertices]
    candidate = collision_vertices(kind, raw, building)

    for shape in placed:
        if is_duplicate_placement(raw, shape.vertices):
            logger.debug("Rejected: duplicate of shape %s", shape.id)
            return Verdict(False, REASON_DUPLICATE, shape.id)
        reason = polygons_overlap_reason(candidate, shape.collision_vertices)
        if reason is not None:
            logger.debug("Rejected: %s against shape %s", reason, shape.id)
            return Verdict(False, reason, shape.id)

    if areas is not None and not shape_in_buildable_area(
        raw, areas, padding_percent
    ):
        logger.debug("Rejected: outside buildable area")
        return Verdict(False, REASON_OUTSIDE_AREA)
    return ACCEPTED


def check_overlap(
    vertices: list[Point],
    kind: str,
    building: str,
    placed: Iterable[Shape],
    areas: list[BuildableArea] | None = None,
    padding_percent: float = 0.0,
) -> bool:
    """True if the candidate may NOT be placed (the preview's "blocked" flag)."""
    return not placement_verdict(
        vertices, kind, building, placed, areas, padding_percent
    ).ok
