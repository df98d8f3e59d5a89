"""Snap resolution: turn a cursor position into a candidate vertex set.

Single-piece placement tries, in order:

  1. **Edge snap** — the nearest edge of any placed piece within
     ``SNAP_THRESHOLD`` of the cursor; the new piece is built flush against
     it on the outward side.
  2. **Free placement** — the piece is centred on the cursor, and its
     centroid moved to the nearest grid cell centre when grid snapping is
     on or the floor is still empty.

Group drags use ``group_grid_offset`` (bounding-box minimum corner onto a
grid intersection) and ``group_vertex_offset`` (make the closest pair of
group/external vertices coincide); ``groups.transform_group`` decides
whether those snaps are kept.

Every output is a vertex list; the pose is always re-derived from it.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from .constants import (
    CELL_SIZE,
    CORNER,
    SHAPE_SIZE,
    SNAP_THRESHOLD,
    TRI_HEIGHT,
)
from .edges import all_edges, find_closest_edge
from .shapes import Point, free_vertices, is_square_like
from .types import Edge, Shape

MODE_EDGE = "edge"
MODE_GRID = "grid"
MODE_FREE = "free"


@dataclass(frozen=True)
class SnapResult:
    vertices: list[Point]
    mode: str
    edge: Edge | None = None


def snapped_vertices(
    edge: Edge, kind: str, cursor: Point | None = None
) -> list[Point]:
    """Vertices of a ``kind`` piece placed flush against ``edge``.

    For corners the cursor picks the orientation: which side of the edge
    (dot with the normal) decides outward vs. inward, and which half of
    the edge (dot with the tangent) decides which endpoint carries the
    right angle.
    """
    v1, v2 = edge.v1, edge.v2
    nx, ny = edge.nx, edge.ny

    if is_square_like(kind):
        ox, oy = nx * SHAPE_SIZE, ny * SHAPE_SIZE
        return [
            v2,
            v1,
            (v1[0] + ox, v1[1] + oy),
            (v2[0] + ox, v2[1] + oy),
        ]

    if kind == CORNER:
        outward = True
        corner_at_v1 = True
        if cursor is not None:
            rel_x = cursor[0] - edge.mid_x
            rel_y = cursor[1] - edge.mid_y
            outward = rel_x * nx + rel_y * ny >= 0
            corner_at_v1 = rel_x * edge.ux + rel_y * edge.uy < 0
        sign = 1.0 if outward else -1.0
        ox, oy = nx * SHAPE_SIZE * sign, ny * SHAPE_SIZE * sign
        if corner_at_v1:
            return [v1, v2, (v1[0] + ox, v1[1] + oy)]
        return [v2, v1, (v2[0] + ox, v2[1] + oy)]

    apex = (edge.mid_x + nx * TRI_HEIGHT, edge.mid_y + ny * TRI_HEIGHT)
    return [apex, v2, v1]


def snap_to_cell_center(x: float, y: float, cell: float = CELL_SIZE) -> Point:
    """Nearest cell centre; centres sit at ``cell/2 + n*cell``."""
    return (
        math.floor(x / cell) * cell + cell / 2,
        math.floor(y / cell) * cell + cell / 2,
    )


def snap_to_grid_intersection(
    x: float, y: float, cell: float = CELL_SIZE
) -> Point:
    return round(x / cell) * cell, round(y / cell) * cell


def resolve_placement(
    kind: str,
    x: float,
    y: float,
    placed: Sequence[Shape],
    grid: bool = False,
    threshold: float = SNAP_THRESHOLD,
) -> SnapResult:
    """Candidate vertices for placing ``kind`` with the cursor at ``(x, y)``."""
    edge, distance = find_closest_edge(x, y, all_edges(placed))
    if edge is not None and distance <= threshold:
        return SnapResult(snapped_vertices(edge, kind, (x, y)), MODE_EDGE, edge)
    if grid or not placed:
        gx, gy = snap_to_cell_center(x, y)
        return SnapResult(free_vertices(kind, gx, gy), MODE_GRID)
    return SnapResult(free_vertices(kind, x, y), MODE_FREE)


def bounding_box(vertices: Sequence[Point]) -> tuple[float, float, float, float]:
    """``(min_x, min_y, max_x, max_y)`` of a non-empty vertex list."""
    xs = [v[0] for v in vertices]
    ys = [v[1] for v in vertices]
    return min(xs), min(ys), max(xs), max(ys)


def group_grid_offset(
    vertices: Sequence[Point], cell: float = CELL_SIZE
) -> Point:
    """Offset that puts the bounding box's minimum corner on the grid."""
    if not vertices:
        return 0.0, 0.0
    min_x, min_y, _, _ = bounding_box(vertices)
    gx, gy = snap_to_grid_intersection(min_x, min_y, cell)
    return gx - min_x, gy - min_y


def nearest_vertex_pair(
    moving: Sequence[Point], external: Sequence[Point]
) -> tuple[int, int, float] | None:
    """Closest (moving index, external index, distance), or ``None``."""
    if not moving or not external:
        return None
    m = np.asarray(moving, dtype=np.float64)
    e = np.asarray(external, dtype=np.float64)
    # (M, 1, 2) - (1, E, 2) → (M, E) distances
    dists = np.hypot(
        m[:, None, 0] - e[None, :, 0], m[:, None, 1] - e[None, :, 1]
    )
    i, j = np.unravel_index(int(np.argmin(dists)), dists.shape)
    return int(i), int(j), float(dists[i, j])


def group_vertex_offset(
    moving: Sequence[Point],
    external: Sequence[Point],
    threshold: float = SNAP_THRESHOLD,
) -> Point | None:
    """Offset making the closest moving/external vertex pair coincide."""
    pair = nearest_vertex_pair(moving, external)
    if pair is None:
        return None
    i, j, dist = pair
    if dist > threshold:
        return None
    return (
        external[j][0] - moving[i][0],
        external[j][1] - moving[i][1],
    )
