"""Interactive planner session.

``PlannerSession`` is the single owner of a design while it is being
edited: it holds the ``DesignState``, the undo ``History``, the stake
``ClaimLedger``, the clipboard and saved patterns, and turns pointer
input into engine calls. A UI layer only forwards events and draws what
``preview`` and ``state`` return.

Every mutation of shapes or settings pushes the state it replaces onto the
history first, so ``undo`` reverts any single operation. Stake countdowns
are time-driven and are not part of the history; a pending stake is
counted back into the inventory whenever the ledger is written to the
state.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field, replace

from ..engine.collision import placement_verdict, point_in_polygon
from ..engine.constants import (
    BUILDINGS_BY_KEY,
    CLAIM_TICK,
    HISTORY_LIMIT,
    ROTATION_DEG_PER_PX,
)
from ..engine.edges import all_edges
from ..engine.errors import PlacementRejected, UnknownPattern
from ..engine.groups import (
    Clipboard,
    GroupTransform,
    find_group,
    instantiate_pattern,
    paste_clipboard,
    transform_group,
    validate_group,
)
from ..engine.groups import capture_pattern as _capture_pattern
from ..engine.groups import copy_group as _copy_group
from ..engine.shapes import Point, rotate_vertices
from ..engine.snap import MODE_FREE, resolve_placement
from ..engine.types import (
    BuildableArea,
    DesignState,
    DropZone,
    Edge,
    Pattern,
    PendingClaim,
    Shape,
)
from . import codec
from .fief import ClaimLedger, active_areas, buildable_areas, stake_drop_zones
from .history import History

logger = logging.getLogger(__name__)

LEFT = "left"
RIGHT = "right"
MIDDLE = "middle"


@dataclass(frozen=True)
class Preview:
    kind: str
    vertices: list[Point]
    overlap: bool
    mode: str = MODE_FREE
    edge: Edge | None = None
    rotation: float = 0.0


@dataclass
class _Gesture:
    button: str
    kind: str
    base_vertices: list[Point]
    start_screen_x: float
    angle: float = 0.0

    def vertices(self) -> list[Point]:
        if not self.angle:
            return list(self.base_vertices)
        return rotate_vertices(self.base_vertices, self.angle)


@dataclass(frozen=True)
class BillOfMaterials:
    pieces: dict[str, int] = field(default_factory=dict)
    materials: dict[str, int] = field(default_factory=dict)

    @property
    def total_pieces(self) -> int:
        return sum(self.pieces.values())


class PlannerSession:
    def __init__(
        self,
        state: DesignState | None = None,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self.state = state if state is not None else DesignState()
        self.history = History(history_limit)
        self.ledger = ClaimLedger(
            self.state.stakes_inventory, self.state.claimed_areas
        )
        self.clipboard = Clipboard()
        self.patterns: dict[str, Pattern] = {}
        self._gesture: _Gesture | None = None

    # -- helpers -------------------------------------------------------------

    @property
    def settings(self):
        return self.state.settings

    @property
    def placed(self) -> list[Shape]:
        return self.state.shapes()

    @property
    def gesture_active(self) -> bool:
        return self._gesture is not None

    def areas(self) -> list[BuildableArea] | None:
        return active_areas(self.settings, self.ledger.claimed)

    def all_areas(self) -> list[BuildableArea]:
        """Main and claimed areas for drawing; empty when fief mode is off."""
        return buildable_areas(self.settings, self.ledger.claimed)[0]

    def kind_for_button(self, button: str) -> str:
        if button == RIGHT:
            return self.settings.right_click_shape
        return self.settings.left_click_shape

    def _verdict(self, vertices, kind: str, building: str | None = None):
        return placement_verdict(
            vertices,
            kind,
            building or self.settings.building_type,
            self.placed,
            self.areas(),
            self.settings.fief_padding,
        )

    def _checkpoint(self) -> None:
        self._sync_claims()
        self.history.push(self.state)

    def _sync_claims(self) -> None:
        self.state.claimed_areas = list(self.ledger.claimed)
        self.state.stakes_inventory = self.ledger.inventory + len(
            self.ledger.pending
        )

    def _replace_state(self, state: DesignState) -> None:
        self.state = state
        self.ledger = ClaimLedger(state.stakes_inventory, state.claimed_areas)
        self._gesture = None

    # -- placement -----------------------------------------------------------

    def preview(self, kind: str, x: float, y: float) -> Preview:
        """Where ``kind`` would go with the cursor at ``(x, y)``."""
        result = resolve_placement(
            kind, x, y, self.placed, grid=self.settings.grid_snap
        )
        blocked = not self._verdict(result.vertices, kind).ok
        return Preview(kind, result.vertices, blocked, result.mode, result.edge)

    def place(
        self, kind: str, vertices, building: str | None = None
    ) -> Shape:
        """Commit a piece; raises ``PlacementRejected`` if it is not legal."""
        building = building or self.settings.building_type
        verts = [tuple(v) for v in vertices]
        verdict = self._verdict(verts, kind, building)
        if not verdict.ok:
            raise PlacementRejected(verdict.reason)
        self._checkpoint()
        shape = Shape(
            id=self.state.next_id(),
            kind=kind,
            vertices=tuple(verts),
            building=building,
            floor=self.state.active_floor,
        )
        self.state.set_shapes(self.state.active_floor, self.placed + [shape])
        logger.debug("Placed %s %s at %s", kind, shape.id, shape.centroid)
        return shape

    def try_place(
        self, kind: str, vertices, building: str | None = None
    ) -> Shape | None:
        try:
            return self.place(kind, vertices, building)
        except PlacementRejected as e:
            logger.debug("%s", e)
            return None

    def place_at(self, kind: str, x: float, y: float) -> Shape | None:
        """Click-to-place: commit the preview if it is legal."""
        return self.try_place(kind, self.preview(kind, x, y).vertices)

    # -- placement gesture ---------------------------------------------------

    def begin_placement(
        self, button: str, x: float, y: float, screen_x: float | None = None
    ) -> Preview | None:
        """Press: fix the candidate under the cursor and start rotating it.

        Pressing the other button while a gesture is active cancels it.
        """
        if self._gesture is not None:
            if button != self._gesture.button:
                self.cancel_gesture()
            return None
        kind = self.kind_for_button(button)
        preview = self.preview(kind, x, y)
        self._gesture = _Gesture(
            button=button,
            kind=kind,
            base_vertices=preview.vertices,
            start_screen_x=x if screen_x is None else screen_x,
        )
        return preview

    def drag_placement(self, screen_x: float) -> Preview | None:
        """Horizontal drag rotates the candidate about its centroid."""
        g = self._gesture
        if g is None:
            return None
        g.angle = (screen_x - g.start_screen_x) * ROTATION_DEG_PER_PX
        verts = g.vertices()
        blocked = not self._verdict(verts, g.kind).ok
        return Preview(g.kind, verts, blocked, rotation=g.angle)

    def release_placement(self, button: str) -> Shape | None:
        """Release: commit the rotated candidate if legal and the button matches."""
        g = self._gesture
        self._gesture = None
        if g is None or button != g.button:
            return None
        return self.try_place(g.kind, g.vertices())

    def cancel_gesture(self) -> None:
        self._gesture = None

    # -- deletion ------------------------------------------------------------

    def is_delete_click(self, button: str, shift: bool = False) -> bool:
        if self.settings.delete_method == "shift":
            return shift and button in (LEFT, RIGHT)
        return button == MIDDLE

    def shape_at(self, x: float, y: float) -> Shape | None:
        """Topmost piece whose footprint contains the point."""
        for shape in reversed(self.placed):
            if point_in_polygon(x, y, shape.collision_vertices):
                return shape
        return None

    def delete_at(self, x: float, y: float) -> Shape | None:
        shape = self.shape_at(x, y)
        if shape is None:
            return None
        self._checkpoint()
        self.state.set_shapes(
            self.state.active_floor,
            [s for s in self.placed if s.id != shape.id],
        )
        return shape

    def clear_floor(self) -> None:
        if not self.placed:
            return
        self._checkpoint()
        self.state.set_shapes(self.state.active_floor, [])

    def clear_design(self) -> None:
        """Remove every piece on every floor and reset claims and stakes."""
        self._checkpoint()
        self.state.floors = {}
        self.ledger.reset()
        self._sync_claims()

    def set_active_floor(self, floor: int) -> None:
        self._gesture = None
        self.state.active_floor = floor

    def update_settings(self, **changes) -> None:
        """Apply setting changes; a new fief type resets its dimensions."""
        settings = self.settings
        fief_type = changes.pop("fief_type", None)
        if fief_type is not None and fief_type != settings.fief_type:
            settings = settings.with_fief_type(fief_type)
        # raises TypeError on an unknown name before anything is recorded
        settings = replace(settings, **changes)
        self._checkpoint()
        self.state.settings = settings

    # -- groups and patterns -------------------------------------------------

    def group_of(self, shape_id: int) -> set[int]:
        return find_group(shape_id, self.placed)

    def _transform(
        self, shape_id: int, dx: float, dy: float, angle: float
    ) -> GroupTransform:
        group = self.group_of(shape_id)
        result = transform_group(
            self.placed,
            group,
            dx,
            dy,
            angle,
            grid_snap=self.settings.grid_snap,
            vertex_snap=self.settings.vertex_snap,
            areas=self.areas(),
            padding_percent=self.settings.fief_padding,
        )
        if result.ok:
            self._checkpoint()
            self.state.set_shapes(self.state.active_floor, result.shapes)
        else:
            logger.debug(
                "Group of %s not moved: %s", shape_id, result.verdict.reason
            )
        return result

    def move_group(self, shape_id: int, dx: float, dy: float) -> GroupTransform:
        return self._transform(shape_id, dx, dy, 0.0)

    def rotate_group(self, shape_id: int, angle: float) -> GroupTransform:
        return self._transform(shape_id, 0.0, 0.0, angle)

    def copy_group(self, shape_id: int) -> Clipboard:
        self.clipboard = _copy_group(self.placed, self.group_of(shape_id))
        return self.clipboard

    def _commit_pieces(self, pieces: list[Shape]) -> list[Shape]:
        verdict = validate_group(
            pieces, self.placed, self.areas(), self.settings.fief_padding
        )
        if not verdict.ok:
            raise PlacementRejected(verdict.reason)
        self._checkpoint()
        self.state.set_shapes(self.state.active_floor, self.placed + pieces)
        return pieces

    def paste(self, x: float, y: float) -> list[Shape]:
        """Paste the clipboard centred on ``(x, y)``; all pieces or none."""
        pieces = paste_clipboard(
            self.clipboard,
            x,
            y,
            self.state.next_id(),
            self.state.active_floor,
        )
        if not pieces:
            return []
        return self._commit_pieces(pieces)

    def capture_pattern(self, name: str, shape_id: int) -> Pattern | None:
        members = [s for s in self.placed if s.id in self.group_of(shape_id)]
        if not members:
            return None
        pattern = _capture_pattern(name, members)
        self.patterns[name] = pattern
        return pattern

    def place_pattern(
        self, name: str, x: float, y: float, rotation: float = 0.0
    ) -> list[Shape]:
        """Place a saved pattern; raises ``UnknownPattern`` for a bad name."""
        pattern = self.patterns.get(name)
        if pattern is None:
            raise UnknownPattern(name)
        pieces = instantiate_pattern(
            pattern,
            x,
            y,
            self.state.next_id(),
            rotation,
            self.state.active_floor,
        )
        if not pieces:
            return []
        return self._commit_pieces(pieces)

    # -- claims --------------------------------------------------------------

    def drop_zones(self) -> list[DropZone]:
        return stake_drop_zones(
            self.settings, self.ledger.claimed, self.ledger.pending
        )

    def place_stake(self, zone: DropZone) -> PendingClaim | None:
        if not self.settings.fief_mode:
            return None
        stake = self.ledger.place_stake(zone)
        self._sync_claims()
        return stake

    def cancel_stake(self, stake_id: int) -> bool:
        cancelled = self.ledger.cancel_stake(stake_id)
        self._sync_claims()
        return cancelled

    def tick(self, elapsed: float = CLAIM_TICK):
        promoted = self.ledger.tick(elapsed)
        if promoted:
            logger.info("Claimed %d new area(s)", len(promoted))
            self._sync_claims()
        return promoted

    # -- sharing and history -------------------------------------------------

    def share_string(self) -> str:
        self._sync_claims()
        return codec.encode(self.state)

    def share_url(self, base_url: str) -> tuple[str, bool]:
        self._sync_claims()
        return codec.share_url(base_url, self.state)

    def load_shared(self, payload: str) -> bool:
        """Replace the design with a shared one; on failure nothing changes."""
        state = codec.try_decode(payload)
        if state is None:
            return False
        self._checkpoint()
        self._replace_state(state)
        logger.info(
            "Loaded shared design with %d piece(s)", len(state.all_shapes())
        )
        return True

    def undo(self) -> bool:
        previous = self.history.undo()
        if previous is None:
            return False
        pending = self.ledger.pending
        self._replace_state(previous)
        self.ledger.carry_pending(pending)
        self._sync_claims()
        return True

    # -- queries -------------------------------------------------------------

    def edges(self) -> list[Edge]:
        return all_edges(self.placed)

    def bill_of_materials(self) -> BillOfMaterials:
        """Piece counts per kind and material totals across all floors."""
        pieces: Counter[str] = Counter()
        materials: Counter[str] = Counter()
        for shape in self.state.all_shapes():
            pieces[shape.kind] += 1
            building = BUILDINGS_BY_KEY.get(shape.building)
            if building is not None:
                materials[building.material] += building.cost
        return BillOfMaterials(dict(pieces), dict(materials))
