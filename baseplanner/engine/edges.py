"""Outward edge and normal extraction.

For squares, stairs and triangles the vertex winding is fixed, so the
outward normal is always the tangent rotated 90 degrees clockwise
``(uy, -ux)``. Corner pieces only expose their two legs (never the
hypotenuse, which is replaced by the fillet) and their normals are checked
against the opposite vertex and flipped when they point inward.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from .constants import CORNER, MIN_EDGE_LENGTH
from .shapes import Point
from .types import Edge, Shape


def _make_edge(
    v1: Point,
    v2: Point,
    shape_id: int,
    edge_index: int,
    opposite: Point | None = None,
) -> Edge | None:
    dx = v2[0] - v1[0]
    dy = v2[1] - v1[1]
    length = math.hypot(dx, dy)
    if length < MIN_EDGE_LENGTH:
        return None
    ux, uy = dx / length, dy / length
    nx, ny = uy, -ux
    mid_x = (v1[0] + v2[0]) / 2
    mid_y = (v1[1] + v2[1]) / 2
    if opposite is not None:
        # Normal must face away from the third vertex of the corner.
        if nx * (opposite[0] - mid_x) + ny * (opposite[1] - mid_y) > 0:
            nx, ny = -nx, -ny
    return Edge(
        v1=v1,
        v2=v2,
        ux=ux,
        uy=uy,
        nx=nx,
        ny=ny,
        mid_x=mid_x,
        mid_y=mid_y,
        length=length,
        shape_id=shape_id,
        edge_index=edge_index,
    )


def shape_edges(kind: str, vertices, shape_id: int) -> list[Edge]:
    """Edges of one piece, skipping degenerate (near zero-length) ones."""
    verts = [tuple(v) for v in vertices]
    edges: list[Edge] = []
    if kind == CORNER:
        if len(verts) < 3:
            return edges
        corner, end1, end2 = verts[0], verts[1], verts[2]
        for edge in (
            _make_edge(corner, end1, shape_id, 0, opposite=end2),
            _make_edge(end2, corner, shape_id, 2, opposite=end1),
        ):
            if edge is not None:
                edges.append(edge)
        return edges

    n = len(verts)
    if n < 2:
        return edges
    for i in range(n):
        edge = _make_edge(verts[i], verts[(i + 1) % n], shape_id, i)
        if edge is not None:
            edges.append(edge)
    return edges


def all_edges(shapes: Iterable[Shape]) -> list[Edge]:
    return [e for s in shapes for e in s.edges]


def point_to_edge_distance(px: float, py: float, edge: Edge) -> float:
    """Distance from a point to the closest point of the edge segment."""
    x1, y1 = edge.v1
    x2, y2 = edge.v2
    dx = x2 - x1
    dy = y2 - y1
    len_sq = dx * dx + dy * dy
    if len_sq < MIN_EDGE_LENGTH:
        return math.hypot(px - x1, py - y1)
    t = ((px - x1) * dx + (py - y1) * dy) / len_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(px - (x1 + t * dx), py - (y1 + t * dy))


def find_closest_edge(
    px: float, py: float, edges: Iterable[Edge]
) -> tuple[Edge | None, float]:
    """Return the nearest edge and its distance (``inf`` if there are none)."""
    closest = None
    min_dist = math.inf
    for edge in edges:
        dist = point_to_edge_distance(px, py, edge)
        if dist < min_dist:
            min_dist = dist
            closest = edge
    return closest, min_dist
