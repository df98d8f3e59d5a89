"""Connected groups of pieces and the transforms applied to them.

Two pieces are connected when an edge of one matches both endpoints of an
edge of the other within ``2 * EDGE_TOLERANCE``, in either order; pieces
that merely touch at a vertex are not. A group is the breadth-first
closure of that relation from a seed piece. No adjacency graph is kept:
``find_group`` rebuilds a spatial hash of edge midpoints per query, which
is cheap next to the collision checks that follow any group transform.

Groups drive bulk move/rotate (``transform_group``), copy/paste
(``copy_group``/``paste_clipboard``) and pattern capture
(``capture_pattern``/``instantiate_pattern``). Patterns store each
piece relative to its *own* centroid plus that centroid's offset from the
group centroid, so replaying one is independent of where and at what
angle it was captured.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .collision import ACCEPTED, Verdict, placement_verdict
from .constants import EDGE_TOLERANCE
from .shapes import (
    Point,
    min_vertex_count,
    polygon_centroid,
    rotate_vertices,
    translate_vertices,
    vertices_from_pose,
)
from .snap import group_grid_offset, group_vertex_offset
from .types import BuildableArea, Edge, Pattern, PatternPiece, Shape

logger = logging.getLogger(__name__)

MATCH_TOLERANCE = 2 * EDGE_TOLERANCE


def _close(a: Point, b: Point, tol: float) -> bool:
    return math.hypot(a[0] - b[0], a[1] - b[1]) <= tol


def edges_match(a: Edge, b: Edge, tol: float = MATCH_TOLERANCE) -> bool:
    """Both endpoints coincide, in either order."""
    return (_close(a.v1, b.v1, tol) and _close(a.v2, b.v2, tol)) or (
        _close(a.v1, b.v2, tol) and _close(a.v2, b.v1, tol)
    )


def shapes_connected(a: Shape, b: Shape) -> bool:
    return any(edges_match(ea, eb) for ea in a.edges for eb in b.edges)


def _cell(x: float, y: float) -> tuple[int, int]:
    return math.floor(x / MATCH_TOLERANCE), math.floor(y / MATCH_TOLERANCE)


def find_group(seed_id: int, shapes: Sequence[Shape]) -> set[int]:
    """Ids of every piece transitively edge-connected to ``seed_id``."""
    by_id = {s.id: s for s in shapes}
    if seed_id not in by_id:
        return set()

    # Matching edges have midpoints within MATCH_TOLERANCE of each other,
    # so a lookup over the 3x3 neighbouring cells finds every candidate.
    buckets: dict[tuple[int, int], list[tuple[int, Edge]]] = {}
    for s in shapes:
        for e in s.edges:
            buckets.setdefault(_cell(e.mid_x, e.mid_y), []).append((s.id, e))

    group = {seed_id}
    queue = deque([seed_id])
    while queue:
        current = by_id[queue.popleft()]
        for e in current.edges:
            cx, cy = _cell(e.mid_x, e.mid_y)
            for ix in (cx - 1, cx, cx + 1):
                for iy in (cy - 1, cy, cy + 1):
                    for other_id, other_edge in buckets.get((ix, iy), ()):
                        if other_id in group:
                            continue
                        if edges_match(e, other_edge):
                            group.add(other_id)
                            queue.append(other_id)
    return group


def group_centroid(shapes: Iterable[Shape]) -> Point:
    """Mean of every vertex of every piece in the group."""
    return polygon_centroid([v for s in shapes for v in s.vertices])


def translate_group(
    shapes: Sequence[Shape], group_ids: set[int], dx: float, dy: float
) -> list[Shape]:
    return [s.translated(dx, dy) if s.id in group_ids else s for s in shapes]


def rotate_group(
    shapes: Sequence[Shape],
    group_ids: set[int],
    angle_deg: float,
    about: Point | None = None,
) -> list[Shape]:
    """Rotate the group's pieces about ``about`` (default: group centroid)."""
    if about is None:
        about = group_centroid(s for s in shapes if s.id in group_ids)
    return [
        s.rotated(angle_deg, about) if s.id in group_ids else s
        for s in shapes
    ]


def validate_group(
    candidates: Iterable[Shape],
    others: Sequence[Shape],
    areas: list[BuildableArea] | None = None,
    padding_percent: float = 0.0,
) -> Verdict:
    """Check each moved piece against the pieces outside the group."""
    for shape in candidates:
        verdict = placement_verdict(
            list(shape.vertices),
            shape.kind,
            shape.building,
            others,
            areas,
            padding_percent,
        )
        if not verdict.ok:
            return verdict
    return ACCEPTED


@dataclass(frozen=True)
class GroupTransform:
    ok: bool
    shapes: list[Shape] = field(default_factory=list)
    snapped: bool = False
    verdict: Verdict = ACCEPTED


def transform_group(
    shapes: Sequence[Shape],
    group_ids: set[int],
    dx: float = 0.0,
    dy: float = 0.0,
    angle_deg: float = 0.0,
    grid_snap: bool = False,
    vertex_snap: bool = False,
    areas: list[BuildableArea] | None = None,
    padding_percent: float = 0.0,
) -> GroupTransform:
    """Rotate the group about its centroid, then translate it, then snap.

    Snapped forms are tried first; any that would overlap a non-group
    piece is dropped in favour of the un-snapped transform. ``shapes`` in
    the result is the whole floor with the group replaced.
    """
    members = [s for s in shapes if s.id in group_ids]
    others = [s for s in shapes if s.id not in group_ids]
    if not members:
        return GroupTransform(ok=False)

    moved = members
    if angle_deg:
        about = group_centroid(members)
        moved = [s.rotated(angle_deg, about) for s in moved]
    if dx or dy:
        moved = [s.translated(dx, dy) for s in moved]

    attempts: list[tuple[list[Shape], bool]] = []
    if grid_snap or vertex_snap:
        snapped = moved
        if grid_snap:
            offset = group_grid_offset([v for s in snapped for v in s.vertices])
            snapped = [s.translated(*offset) for s in snapped]
            attempts.append((snapped, True))
        if vertex_snap:
            external = [v for s in others for v in s.vertices]
            offset = group_vertex_offset(
                [v for s in snapped for v in s.vertices], external
            )
            if offset is not None:
                attempts.insert(
                    0, ([s.translated(*offset) for s in snapped], True)
                )
    attempts.append((moved, False))

    verdict = ACCEPTED
    for candidate, was_snapped in attempts:
        verdict = validate_group(candidate, others, areas, padding_percent)
        if verdict.ok:
            by_id = {s.id: s for s in candidate}
            return GroupTransform(
                ok=True,
                shapes=[by_id.get(s.id, s) for s in shapes],
                snapped=was_snapped,
            )
        logger.debug(
            "Group transform candidate rejected (%s, snapped=%s)",
            verdict.reason,
            was_snapped,
        )
    return GroupTransform(ok=False, verdict=verdict)


@dataclass(frozen=True)
class ClipboardPiece:
    kind: str
    building: str
    relative_vertices: tuple[Point, ...]


@dataclass(frozen=True)
class Clipboard:
    pieces: tuple[ClipboardPiece, ...] = ()


def copy_group(shapes: Sequence[Shape], group_ids: set[int]) -> Clipboard:
    """Store the group's vertices relative to the group centroid."""
    members = [s for s in shapes if s.id in group_ids]
    if not members:
        return Clipboard()
    gx, gy = group_centroid(members)
    return Clipboard(
        tuple(
            ClipboardPiece(
                kind=s.kind,
                building=s.building,
                relative_vertices=tuple(
                    translate_vertices(s.vertices, -gx, -gy)
                ),
            )
            for s in members
        )
    )


def paste_clipboard(
    clipboard: Clipboard, x: float, y: float, next_id: int, floor: int = 0
) -> list[Shape]:
    """Recreate the clipboard with its group centroid at ``(x, y)``."""
    return [
        Shape(
            id=next_id + i,
            kind=piece.kind,
            vertices=tuple(translate_vertices(piece.relative_vertices, x, y)),
            building=piece.building,
            floor=floor,
        )
        for i, piece in enumerate(clipboard.pieces)
    ]


def capture_pattern(name: str, shapes: Sequence[Shape]) -> Pattern:
    gx, gy = group_centroid(shapes)
    pieces = []
    for s in shapes:
        cx, cy, rotation = s.pose
        pieces.append(
            PatternPiece(
                kind=s.kind,
                building=s.building,
                relative_vertices=tuple(
                    translate_vertices(s.vertices, -cx, -cy)
                ),
                offset=(cx - gx, cy - gy),
                rotation=rotation,
            )
        )
    return Pattern(name=name, pieces=pieces)


def instantiate_pattern(
    pattern: Pattern,
    x: float,
    y: float,
    next_id: int,
    rotation: float = 0.0,
    floor: int = 0,
) -> list[Shape]:
    """Place ``pattern`` with its group centroid at ``(x, y)``.

    Pieces saved without vertex data are rebuilt from their recorded
    rotation; pieces that still have too few vertices are skipped.
    """
    result: list[Shape] = []
    for piece in pattern.pieces:
        rel = list(piece.relative_vertices)
        if not rel:
            rel = vertices_from_pose(piece.kind, 0.0, 0.0, piece.rotation)
        if len(rel) < min_vertex_count(piece.kind):
            logger.debug(
                "Skipping degenerate %s piece in pattern %r",
                piece.kind,
                pattern.name,
            )
            continue
        ox, oy = piece.offset
        verts = translate_vertices(rel, x + ox, y + oy)
        if rotation:
            verts = rotate_vertices(verts, rotation, (x, y))
        result.append(
            Shape(
                id=next_id + len(result),
                kind=piece.kind,
                vertices=tuple(verts),
                building=piece.building,
                floor=floor,
            )
        )
    return result
