"""Data types for placed pieces, buildable areas, patterns and settings."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from functools import cached_property

from .constants import (
    BUILDINGS_BY_KEY,
    DEFAULT_BUILDING,
    DIRECTIONS,
    FIEF_DEFAULTS,
    MAX_STAKES,
    SHAPE_KINDS,
    SQUARE,
    TRIANGLE,
)
from .shapes import (
    Point,
    min_vertex_count,
    pose_from_vertices,
    rotate_vertices,
    translate_vertices,
    vertices_from_pose,
)

logger = logging.getLogger(__name__)


def _is_number(v) -> bool:
    return (
        isinstance(v, (int, float))
        and not isinstance(v, bool)
        and math.isfinite(v)
    )


def _is_int(v) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _is_point(v) -> bool:
    return (
        isinstance(v, (list, tuple))
        and len(v) == 2
        and all(_is_number(c) for c in v)
    )


@dataclass(frozen=True)
class Edge:
    """One outward-facing edge of a placed piece.

    ``(ux, uy)`` is the unit tangent from ``v1`` to ``v2`` and ``(nx, ny)``
    the unit normal pointing away from the piece.
    """

    v1: Point
    v2: Point
    ux: float
    uy: float
    nx: float
    ny: float
    mid_x: float
    mid_y: float
    length: float
    shape_id: int
    edge_index: int


@dataclass(frozen=True)
class Shape:
    """A committed piece.

    The vertex tuple is the only stored geometry; ``centroid`` and
    ``rotation`` are always derived from it, so the two can never disagree.
    """

    id: int
    kind: str
    vertices: tuple[Point, ...]
    building: str = DEFAULT_BUILDING
    floor: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "vertices",
            tuple((float(x), float(y)) for x, y in self.vertices),
        )

    @staticmethod
    def from_pose(
        id: int,
        kind: str,
        x: float,
        y: float,
        rotation: float = 0.0,
        building: str = DEFAULT_BUILDING,
        floor: int = 0,
    ) -> Shape:
        return Shape(
            id=id,
            kind=kind,
            vertices=tuple(vertices_from_pose(kind, x, y, rotation)),
            building=building,
            floor=floor,
        )

    @cached_property
    def pose(self) -> tuple[float, float, float]:
        return pose_from_vertices(self.kind, self.vertices)

    @property
    def centroid(self) -> Point:
        return self.pose[0], self.pose[1]

    @property
    def rotation(self) -> float:
        return self.pose[2]

    @cached_property
    def edges(self) -> list[Edge]:
        from .edges import shape_edges

        return shape_edges(self.kind, self.vertices, self.id)

    @cached_property
    def collision_vertices(self) -> list[Point]:
        from .corners import collision_vertices

        return collision_vertices(self.kind, self.vertices, self.building)

    def with_vertices(self, vertices) -> Shape:
        return replace(self, vertices=tuple(vertices))

    def with_id(self, new_id: int) -> Shape:
        return replace(self, id=new_id)

    def translated(self, dx: float, dy: float) -> Shape:
        return self.with_vertices(translate_vertices(self.vertices, dx, dy))

    def rotated(self, angle_deg: float, about: Point | None = None) -> Shape:
        return self.with_vertices(
            rotate_vertices(self.vertices, angle_deg, about)
        )

    @staticmethod
    def from_dict(d: dict) -> Shape:
        """Build a shape from ``to_dict`` output.

        Raises ValueError if the entry is malformed. Entries without
        vertices are rebuilt from their pose.
        """
        if not isinstance(d, dict):
            raise ValueError(f"Shape entry must be an object, got {d!r}")
        shape_id = d.get("id")
        if not _is_int(shape_id):
            raise ValueError(f"Shape id must be an integer, got {shape_id!r}")
        kind = d.get("type", SQUARE)
        if kind not in SHAPE_KINDS:
            raise ValueError(f"Shape {shape_id} has unknown type {kind!r}")
        verts = d.get("vertices")
        if verts:
            if not isinstance(verts, list) or not all(_is_point(v) for v in verts):
                raise ValueError(f"Shape {shape_id} vertices must be [x, y] pairs")
            if len(verts) < min_vertex_count(kind):
                raise ValueError(
                    f"Shape {shape_id} needs {min_vertex_count(kind)} vertices"
                )
            vertices = tuple((v[0], v[1]) for v in verts)
        else:
            pose = [d.get("x", 0.0), d.get("y", 0.0), d.get("rotation", 0.0)]
            if not all(_is_number(p) for p in pose):
                raise ValueError(f"Shape {shape_id} pose must be numeric")
            vertices = tuple(vertices_from_pose(kind, *pose))
        building = d.get("building", DEFAULT_BUILDING)
        floor = d.get("floor", 0)
        if not isinstance(building, str) or not _is_int(floor):
            raise ValueError(f"Shape {shape_id} has a bad building or floor")
        return Shape(
            id=shape_id,
            kind=kind,
            vertices=vertices,
            building=building,
            floor=floor,
        )

    def to_dict(self) -> dict:
        cx, cy, rotation = self.pose
        return {
            "id": self.id,
            "type": self.kind,
            "building": self.building,
            "floor": self.floor,
            "x": cx,
            "y": cy,
            "rotation": rotation,
            "vertices": [[x, y] for x, y in self.vertices],
        }


@dataclass(frozen=True)
class BuildableArea:
    id: str | int
    x: float
    y: float
    width: float
    height: float
    parent_id: str | int | None = None

    def contains(self, px: float, py: float, padding_fraction: float = 0.0) -> bool:
        """Inclusive containment, with the rectangle expanded by the padding."""
        pad_x = self.width * padding_fraction
        pad_y = self.height * padding_fraction
        return (
            self.x - pad_x <= px <= self.x + self.width + pad_x
            and self.y - pad_y <= py <= self.y + self.height + pad_y
        )


@dataclass(frozen=True)
class ClaimedArea:
    id: int
    direction: str
    parent_id: str | int = "main"

    @staticmethod
    def from_dict(d: dict) -> ClaimedArea:
        return ClaimedArea(
            id=d["id"],
            direction=d.get("direction", "top"),
            parent_id=d.get("parentId", "main"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "direction": self.direction,
            "parentId": self.parent_id,
        }


@dataclass
class PendingClaim:
    id: int
    direction: str
    parent_id: str | int
    countdown: float


@dataclass(frozen=True)
class DropZone:
    parent_id: str | int
    direction: str
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class PatternPiece:
    """One piece of a pattern.

    ``relative_vertices`` are relative to the piece's own centroid and
    ``offset`` is that centroid relative to the pattern's group centroid.
    """

    kind: str
    building: str
    relative_vertices: tuple[Point, ...]
    offset: Point
    rotation: float = 0.0

    @staticmethod
    def from_dict(d: dict) -> PatternPiece:
        return PatternPiece(
            kind=d.get("type", SQUARE),
            building=d.get("building", DEFAULT_BUILDING),
            relative_vertices=tuple(
                (v[0], v[1]) for v in d.get("vertices") or ()
            ),
            offset=tuple(d.get("offset", (0.0, 0.0))),
            rotation=d.get("rotation", 0.0),
        )

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "building": self.building,
            "vertices": [[x, y] for x, y in self.relative_vertices],
            "offset": list(self.offset),
            "rotation": self.rotation,
        }


@dataclass
class Pattern:
    name: str
    pieces: list[PatternPiece] = field(default_factory=list)

    @staticmethod
    def from_dict(d: dict) -> Pattern:
        return Pattern(
            name=d.get("name", ""),
            pieces=[PatternPiece.from_dict(p) for p in d.get("shapes", [])],
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "shapes": [p.to_dict() for p in self.pieces],
        }


@dataclass
class PlannerSettings:
    """User-facing options that affect placement and sharing."""

    building_type: str = DEFAULT_BUILDING
    left_click_shape: str = SQUARE
    right_click_shape: str = TRIANGLE
    delete_method: str = "middle"  # "middle" or "shift"
    grid_snap: bool = False
    vertex_snap: bool = False
    fief_mode: bool = False
    fief_type: str = "basic"  # "basic" or "advanced"
    fief_width: int = FIEF_DEFAULTS["basic"][0]
    fief_height: int = FIEF_DEFAULTS["basic"][1]
    fief_padding: float = 0.0  # percent, expands every buildable area

    def __post_init__(self) -> None:
        defaults = PlannerSettings.__dataclass_fields__
        for name, allowed in (
            ("building_type", tuple(BUILDINGS_BY_KEY)),
            ("left_click_shape", SHAPE_KINDS),
            ("right_click_shape", SHAPE_KINDS),
            ("delete_method", ("middle", "shift")),
            ("fief_type", tuple(FIEF_DEFAULTS)),
        ):
            value = getattr(self, name)
            if value not in allowed:
                fallback = defaults[name].default
                logger.warning(
                    "Unknown %s %r, using %r", name, value, fallback
                )
                setattr(self, name, fallback)
        if not 0.0 <= self.fief_padding <= 5.0:
            clamped = min(max(self.fief_padding, 0.0), 5.0)
            logger.warning(
                "fief_padding %r out of range, clamped to %r",
                self.fief_padding,
                clamped,
            )
            self.fief_padding = clamped

    @staticmethod
    def defaults_for_fief(fief_type: str) -> tuple[int, int]:
        return FIEF_DEFAULTS.get(fief_type, FIEF_DEFAULTS["basic"])

    def with_fief_type(self, fief_type: str) -> PlannerSettings:
        """Switch fief preset; dimensions reset to the preset's defaults."""
        w, h = self.defaults_for_fief(fief_type)
        return replace(
            self, fief_type=fief_type, fief_width=w, fief_height=h
        )

    @staticmethod
    def from_dict(d: dict | None) -> PlannerSettings:
        if not d:
            return PlannerSettings()
        fief_type = d.get("fief_type", "basic")
        w, h = PlannerSettings.defaults_for_fief(fief_type)
        return PlannerSettings(
            building_type=d.get("building_type", DEFAULT_BUILDING),
            left_click_shape=d.get("left_click_shape", SQUARE),
            right_click_shape=d.get("right_click_shape", TRIANGLE),
            delete_method=d.get("delete_method", "middle"),
            grid_snap=d.get("grid_snap", False),
            vertex_snap=d.get("vertex_snap", False),
            fief_mode=d.get("fief_mode", False),
            fief_type=fief_type,
            fief_width=d.get("fief_width", w),
            fief_height=d.get("fief_height", h),
            fief_padding=d.get("fief_padding", 0.0),
        )

    def to_dict(self) -> dict:
        return {
            "building_type": self.building_type,
            "left_click_shape": self.left_click_shape,
            "right_click_shape": self.right_click_shape,
            "delete_method": self.delete_method,
            "grid_snap": self.grid_snap,
            "vertex_snap": self.vertex_snap,
            "fief_mode": self.fief_mode,
            "fief_type": self.fief_type,
            "fief_width": self.fief_width,
            "fief_height": self.fief_height,
            "fief_padding": self.fief_padding,
        }


@dataclass
class DesignState:
    """Everything a share link carries: shapes per floor plus settings.

    Shapes are immutable, so ``copy`` only needs fresh containers; the
    undo history relies on that.
    """

    floors: dict[int, list[Shape]] = field(default_factory=dict)
    active_floor: int = 0
    settings: PlannerSettings = field(default_factory=PlannerSettings)
    claimed_areas: list[ClaimedArea] = field(default_factory=list)
    stakes_inventory: int = MAX_STAKES

    def shapes(self, floor: int | None = None) -> list[Shape]:
        if floor is None:
            floor = self.active_floor
        return self.floors.get(floor, [])

    def all_shapes(self) -> list[Shape]:
        return [s for f in sorted(self.floors) for s in self.floors[f]]

    def floors_with_content(self) -> list[int]:
        return sorted(f for f, shapes in self.floors.items() if shapes)

    def set_shapes(self, floor: int, shapes: list[Shape]) -> None:
        self.floors[floor] = list(shapes)

    def next_id(self) -> int:
        ids = [s.id for s in self.all_shapes()]
        return max(ids) + 1 if ids else 1

    def find(self, shape_id: int, floor: int | None = None) -> Shape | None:
        for s in self.shapes(floor):
            if s.id == shape_id:
                return s
        return None

    def copy(self) -> DesignState:
        return DesignState(
            floors={f: list(shapes) for f, shapes in self.floors.items()},
            active_floor=self.active_floor,
            settings=replace(self.settings),
            claimed_areas=list(self.claimed_areas),
            stakes_inventory=self.stakes_inventory,
        )

    @staticmethod
    def from_dict(d: dict) -> DesignState:
        """Rebuild a design from ``to_dict`` output; raises ValueError if malformed."""
        if not isinstance(d, dict):
            raise ValueError("Design must be a JSON object")
        shapes = d.get("shapes", [])
        raw_claims = d.get("claimed_areas", [])
        if not isinstance(shapes, list) or not isinstance(raw_claims, list):
            raise ValueError("Design shapes and claimed_areas must be lists")
        floors: dict[int, list[Shape]] = {}
        for sd in shapes:
            shape = Shape.from_dict(sd)
            floors.setdefault(shape.floor, []).append(shape)
        claims = []
        for c in raw_claims:
            if not isinstance(c, dict) or not _is_int(c.get("id")):
                raise ValueError(f"Claimed area must have an integer id, got {c!r}")
            if c.get("direction") not in DIRECTIONS:
                logger.debug("Skipping claim with bad direction: %r", c)
                continue
            parent = c.get("parentId", "main")
            if parent != "main" and not _is_int(parent):
                raise ValueError(f"Claimed area {c['id']} has bad parent {parent!r}")
            claims.append(ClaimedArea.from_dict(c))
        active_floor = d.get("active_floor", 0)
        stakes = d.get("stakes_inventory", MAX_STAKES)
        if not _is_int(active_floor) or not _is_int(stakes):
            raise ValueError("active_floor and stakes_inventory must be integers")
        settings = d.get("settings")
        if settings is not None and not isinstance(settings, dict):
            raise ValueError("Design settings must be an object")
        return DesignState(
            floors=floors,
            active_floor=active_floor,
            settings=PlannerSettings.from_dict(settings),
            claimed_areas=claims,
            stakes_inventory=stakes,
        )

    def to_dict(self) -> dict:
        return {
            "shapes": [s.to_dict() for s in self.all_shapes()],
            "active_floor": self.active_floor,
            "settings": self.settings.to_dict(),
            "claimed_areas": [c.to_dict() for c in self.claimed_areas],
            "stakes_inventory": self.stakes_inventory,
        }
