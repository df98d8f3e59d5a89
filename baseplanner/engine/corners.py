"""Collision footprints for filleted corner pieces.

A corner piece is stored as a raw right triangle ``(corner, end1, end2)``
but is drawn, and collides, with its right angle replaced by a fillet. The
fillet depends on the piece's own building style:

  * **round** — a fan from the corner vertex over a radius-S arc between
    the two legs, ``ARC_SEGMENTS`` segments, always swept the short way
    round: 14 points.
  * **stepped** — a staircase from ``end1`` to ``end2``, alternating a
    step along the end2 leg and a step back along the end1 leg: 8 points.
  * **diagonal** — small flats at both ends, parallel to the opposite
    leg, each ``DIAGONAL_FLAT_RATIO`` of that leg long: 5 points.
"""

from __future__ import annotations

import math

from .constants import (
    ARC_SEGMENTS,
    BUILDINGS_BY_KEY,
    CORNER,
    CORNER_STEPS,
    DIAGONAL,
    DIAGONAL_FLAT_RATIO,
    ROUND,
    SHAPE_SIZE,
    STEPPED,
)
from .shapes import Point


def corner_style(building: str) -> str:
    """Fillet style for a building type; unknown types are round."""
    bt = BUILDINGS_BY_KEY.get(building)
    return bt.corner_style if bt is not None else ROUND


def _diagonal(corner: Point, end1: Point, end2: Point) -> list[Point]:
    d1x, d1y = end1[0] - corner[0], end1[1] - corner[1]
    d2x, d2y = end2[0] - corner[0], end2[1] - corner[1]
    flat1 = (
        end1[0] + d2x * DIAGONAL_FLAT_RATIO,
        end1[1] + d2y * DIAGONAL_FLAT_RATIO,
    )
    flat2 = (
        end2[0] + d1x * DIAGONAL_FLAT_RATIO,
        end2[1] + d1y * DIAGONAL_FLAT_RATIO,
    )
    return [corner, end1, flat1, flat2, end2]


def _stepped(corner: Point, end1: Point, end2: Point) -> list[Point]:
    d1x, d1y = end1[0] - corner[0], end1[1] - corner[1]
    d2x, d2y = end2[0] - corner[0], end2[1] - corner[1]
    points = [corner, end1]
    x, y = end1
    for _ in range(CORNER_STEPS):
        x += d2x / CORNER_STEPS
        y += d2y / CORNER_STEPS
        points.append((x, y))
        x -= d1x / CORNER_STEPS
        y -= d1y / CORNER_STEPS
        points.append((x, y))
    return points


def _round(corner: Point, end1: Point, end2: Point) -> list[Point]:
    angle1 = math.atan2(end1[1] - corner[1], end1[0] - corner[0])
    angle2 = math.atan2(end2[1] - corner[1], end2[0] - corner[0])
    diff = angle2 - angle1
    while diff > math.pi:
        diff -= 2 * math.pi
    while diff < -math.pi:
        diff += 2 * math.pi
    points = [corner]
    for i in range(ARC_SEGMENTS + 1):
        angle = angle1 + diff * i / ARC_SEGMENTS
        points.append(
            (
                corner[0] + math.cos(angle) * SHAPE_SIZE,
                corner[1] + math.sin(angle) * SHAPE_SIZE,
            )
        )
    return points


def corner_collision_vertices(
    corner: Point, end1: Point, end2: Point, style: str = ROUND
) -> list[Point]:
    """Ordered polygon used both for collision and for drawing."""
    corner, end1, end2 = tuple(corner), tuple(end1), tuple(end2)
    if style == DIAGONAL:
        return _diagonal(corner, end1, end2)
    if style == STEPPED:
        return _stepped(corner, end1, end2)
    return _round(corner, end1, end2)


def collision_vertices(kind: str, vertices, building: str) -> list[Point]:
    """Collision polygon for any piece; only corners are approximated."""
    verts = [tuple(v) for v in vertices]
    if kind == CORNER and len(verts) >= 3:
        return corner_collision_vertices(
            verts[0], verts[1], verts[2], corner_style(building)
        )
    return verts
