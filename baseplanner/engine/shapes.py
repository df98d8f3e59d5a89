"""Vertex generation and pose recovery for the four piece kinds.

Every piece is stored as an ordered vertex list. The order is fixed per
kind, which is what makes the pose recoverable from the vertices alone:

  * **square / stair** — top-left, top-right, bottom-right, bottom-left of
    an ``S x S`` square in local space. Rotation = atan2(v0 -> v1) + 180.
  * **triangle** — equilateral, apex at ``(0, -2H/3)``, base at ``y = H/3``.
    Rotation = atan2(centroid -> v0) + 90.
  * **corner** — right triangle whose right angle (the "corner vertex") is
    ``v0``, with legs to ``v1`` and ``v2``. Rotation = atan2(v0 -> v1).

The share-link decoder relies on ``pose_from_vertices`` agreeing with
``vertices_from_pose``; any change to the templates or to the recovery
rule breaks old links.
"""

from __future__ import annotations

import math

from .constants import CORNER, SHAPE_SIZE, SQUARE, STAIR, TRI_HEIGHT, TRIANGLE

Point = tuple[float, float]
Vertices = list[Point]

_HALF = SHAPE_SIZE / 2

_TEMPLATES: dict[str, tuple[Point, ...]] = {
    SQUARE: ((-_HALF, -_HALF), (_HALF, -_HALF), (_HALF, _HALF), (-_HALF, _HALF)),
    STAIR: ((-_HALF, -_HALF), (_HALF, -_HALF), (_HALF, _HALF), (-_HALF, _HALF)),
    TRIANGLE: (
        (0.0, -TRI_HEIGHT * 2 / 3),
        (_HALF, TRI_HEIGHT / 3),
        (-_HALF, TRI_HEIGHT / 3),
    ),
    CORNER: ((-_HALF, -_HALF), (_HALF, -_HALF), (-_HALF, _HALF)),
}

# Rotational symmetry of each kind, in degrees.
SYMMETRY_DEG = {SQUARE: 90.0, STAIR: 90.0, TRIANGLE: 120.0, CORNER: 360.0}


def is_square_like(kind: str) -> bool:
    return kind in (SQUARE, STAIR)


def min_vertex_count(kind: str) -> int:
    return 4 if is_square_like(kind) else 3


def local_template(kind: str) -> Vertices:
    """Local-space vertices for ``kind``; unknown kinds use the triangle."""
    return list(_TEMPLATES.get(kind, _TEMPLATES[TRIANGLE]))


def vertices_from_anchor(
    kind: str, x: float, y: float, rotation: float
) -> Vertices:
    """Rotate the kind's template by ``rotation`` degrees about its local
    origin and place that origin at ``(x, y)``.

    For squares, stairs and triangles the local origin is the vertex mean.
    A corner's origin is the middle of its bounding square, which is how
    cursor placement and pre-vertex saved designs position it.
    """
    rad = math.radians(rotation)
    cos_r = math.cos(rad)
    sin_r = math.sin(rad)
    return [
        (x + vx * cos_r - vy * sin_r, y + vx * sin_r + vy * cos_r)
        for vx, vy in local_template(kind)
    ]


def vertices_from_pose(kind: str, x: float, y: float, rotation: float) -> Vertices:
    """Vertices whose mean is ``(x, y)``; inverse of ``pose_from_vertices``."""
    mx, my = polygon_centroid(local_template(kind))
    rad = math.radians(rotation)
    dx = mx * math.cos(rad) - my * math.sin(rad)
    dy = mx * math.sin(rad) + my * math.cos(rad)
    return vertices_from_anchor(kind, x - dx, y - dy, rotation)


def free_vertices(kind: str, x: float, y: float) -> Vertices:
    """Unrotated template with its local origin on ``(x, y)``."""
    return vertices_from_anchor(kind, x, y, 0.0)


def polygon_centroid(vertices: list[Point] | tuple[Point, ...]) -> Point:
    """Arithmetic mean of the vertices (not the area centroid)."""
    if not vertices:
        return (0.0, 0.0)
    n = len(vertices)
    return (
        sum(v[0] for v in vertices) / n,
        sum(v[1] for v in vertices) / n,
    )


def pose_from_vertices(
    kind: str, vertices: list[Point] | tuple[Point, ...]
) -> tuple[float, float, float]:
    """Recover ``(cx, cy, rotation_deg)`` from an ordered vertex list."""
    cx, cy = polygon_centroid(vertices)
    if len(vertices) < 2:
        return cx, cy, 0.0
    if kind == TRIANGLE:
        dx = vertices[0][0] - cx
        dy = vertices[0][1] - cy
        return cx, cy, math.degrees(math.atan2(dy, dx)) + 90.0
    dx = vertices[1][0] - vertices[0][0]
    dy = vertices[1][1] - vertices[0][1]
    rotation = math.degrees(math.atan2(dy, dx))
    if is_square_like(kind):
        rotation += 180.0
    return cx, cy, rotation


def normalize_angle(deg: float, period: float = 360.0) -> float:
    """Map ``deg`` into ``[0, period)``."""
    r = deg % period
    # -1e-20 % 360 == 360.0
    return 0.0 if r >= period else r


def angles_equivalent(
    kind: str, a: float, b: float, tol: float = 1e-6
) -> bool:
    """True if two rotations produce the same footprint for ``kind``."""
    period = SYMMETRY_DEG.get(kind, 360.0)
    d = normalize_angle(a - b, period)
    return d < tol or period - d < tol


def translate_vertices(vertices, dx: float, dy: float) -> Vertices:
    return [(x + dx, y + dy) for x, y in vertices]


def rotate_vertices(
    vertices, angle_deg: float, about: Point | None = None
) -> Vertices:
    """Rotate vertices by ``angle_deg`` about ``about`` (default: their centroid)."""
    if not vertices:
        return []
    cx, cy = about if about is not None else polygon_centroid(vertices)
    rad = math.radians(angle_deg)
    cos_r = math.cos(rad)
    sin_r = math.sin(rad)
    return [
        (
            cx + (x - cx) * cos_r - (y - cy) * sin_r,
            cy + (x - cx) * sin_r + (y - cy) * cos_r,
        )
        for x, y in vertices
    ]
