"""Buildable areas (fiefs), stakes and the claim countdown.

When fief mode is on, placement is restricted to a chain of axis-aligned
rectangles: the main fief centred on ``FIEF_ORIGIN`` plus every claimed
extension, each attached to one side of its parent. Extensions are claimed
by dropping a stake on a drop zone; the stake counts down for
``STAKE_COUNTDOWN`` seconds and then becomes a permanent ``ClaimedArea``.
A pending stake can be cancelled at any time, which refunds it.

``ClaimLedger`` holds the stake inventory and pending countdowns and is
advanced by ``tick``. ``ClaimTimer`` drives it from a Tk-style scheduler
(``after(ms, callback)`` / ``after_cancel(id)``) and only keeps a callback
scheduled while some countdown is pending.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

from ..engine.constants import (
    CELL_SIZE,
    CLAIM_TICK,
    DIRECTIONS,
    FIEF_ORIGIN,
    MAX_STAKES,
    STAKE_COUNTDOWN,
)
from ..engine.types import (
    BuildableArea,
    ClaimedArea,
    DropZone,
    PendingClaim,
    PlannerSettings,
)

logger = logging.getLogger(__name__)

MAIN_AREA_ID = "main"


def _adjacent_origin(
    parent: BuildableArea, direction: str, width: float, height: float
) -> tuple[float, float] | None:
    if direction == "top":
        return parent.x, parent.y - height
    if direction == "bottom":
        return parent.x, parent.y + parent.height
    if direction == "left":
        return parent.x - width, parent.y
    if direction == "right":
        return parent.x + parent.width, parent.y
    return None


def _fief_size(settings: PlannerSettings) -> tuple[float, float]:
    return settings.fief_width * CELL_SIZE, settings.fief_height * CELL_SIZE


def main_area(settings: PlannerSettings) -> BuildableArea:
    w, h = _fief_size(settings)
    return BuildableArea(
        id=MAIN_AREA_ID,
        x=FIEF_ORIGIN[0] - w / 2,
        y=FIEF_ORIGIN[1] - h / 2,
        width=w,
        height=h,
    )


def buildable_areas(
    settings: PlannerSettings,
    claims: Iterable[ClaimedArea],
    pending: Iterable[PendingClaim] = (),
) -> tuple[list[BuildableArea], dict[Any, BuildableArea]]:
    """Resolve claims into rectangles.

    Returns the buildable areas (main + claimed) and a map from id to area
    that additionally includes pending stakes, so drop zones can chain off
    a stake that is still counting down. Claims whose parent is unknown
    are skipped.
    """
    if not settings.fief_mode:
        return [], {}
    w, h = _fief_size(settings)
    main = main_area(settings)
    areas = [main]
    area_map: dict[Any, BuildableArea] = {MAIN_AREA_ID: main}

    for claim in claims:
        parent = area_map.get(claim.parent_id)
        origin = (
            _adjacent_origin(parent, claim.direction, w, h) if parent else None
        )
        if origin is None:
            logger.debug("Skipping unresolvable claim %r", claim)
            continue
        area = BuildableArea(claim.id, origin[0], origin[1], w, h, claim.parent_id)
        areas.append(area)
        area_map[claim.id] = area

    for stake in pending:
        parent = area_map.get(stake.parent_id)
        origin = (
            _adjacent_origin(parent, stake.direction, w, h) if parent else None
        )
        if origin is None:
            continue
        area_map[stake.id] = BuildableArea(
            stake.id, origin[0], origin[1], w, h, stake.parent_id
        )
    return areas, area_map


def active_areas(
    settings: PlannerSettings, claims: Iterable[ClaimedArea]
) -> list[BuildableArea] | None:
    """Areas to enforce during placement, or ``None`` when fief mode is off."""
    if not settings.fief_mode:
        return None
    return buildable_areas(settings, claims)[0]


def stake_drop_zones(
    settings: PlannerSettings,
    claims: Iterable[ClaimedArea],
    pending: Iterable[PendingClaim] = (),
) -> list[DropZone]:
    """Free positions next to every buildable area, each offered once."""
    if not settings.fief_mode:
        return []
    pending = list(pending)
    areas, area_map = buildable_areas(settings, claims, pending)
    w, h = _fief_size(settings)

    occupied = {(a.x, a.y) for a in areas}
    for stake in pending:
        if stake.id in area_map:
            a = area_map[stake.id]
            occupied.add((a.x, a.y))

    zones: list[DropZone] = []
    for area in areas:
        for direction in DIRECTIONS:
            x, y = _adjacent_origin(area, direction, w, h)
            if (x, y) in occupied:
                continue
            zones.append(DropZone(area.id, direction, x, y, w, h))
            occupied.add((x, y))
    return zones


class ClaimLedger:
    """Stake inventory, pending countdowns and completed claims."""

    def __init__(
        self,
        inventory: int = MAX_STAKES,
        claimed: Iterable[ClaimedArea] = (),
    ) -> None:
        self.inventory = inventory
        self.claimed: list[ClaimedArea] = list(claimed)
        self.pending: list[PendingClaim] = []

    @property
    def timer_active(self) -> bool:
        return bool(self.pending)

    def _next_id(self) -> int:
        ids = [c.id for c in self.claimed] + [p.id for p in self.pending]
        ints = [i for i in ids if isinstance(i, int)]
        return max(ints) + 1 if ints else 1

    def place_stake(self, zone: DropZone) -> PendingClaim | None:
        if self.inventory <= 0:
            logger.debug("No stakes left in inventory")
            return None
        stake = PendingClaim(
            id=self._next_id(),
            direction=zone.direction,
            parent_id=zone.parent_id,
            countdown=STAKE_COUNTDOWN,
        )
        self.pending.append(stake)
        self.inventory -= 1
        return stake

    def cancel_stake(self, stake_id: int) -> bool:
        """Remove a pending stake and refund it; ``False`` if not pending."""
        for i, stake in enumerate(self.pending):
            if stake.id == stake_id:
                del self.pending[i]
                self.inventory += 1
                return True
        return False

    def tick(self, elapsed: float = CLAIM_TICK) -> list[ClaimedArea]:
        """Advance every countdown; returns the claims completed by this tick."""
        promoted: list[ClaimedArea] = []
        still_pending: list[PendingClaim] = []
        for stake in self.pending:
            remaining = stake.countdown - elapsed
            # 50 ticks of 0.1 do not sum to exactly 5.0
            if remaining <= 1e-9:
                claim = ClaimedArea(stake.id, stake.direction, stake.parent_id)
                self.claimed.append(claim)
                promoted.append(claim)
            else:
                still_pending.append(replace(stake, countdown=remaining))
        self.pending = still_pending
        return promoted

    def carry_pending(self, stakes: Iterable[PendingClaim]) -> None:
        """Keep counting down ``stakes`` after the claims were restored.

        Each kept stake is paid for from the restored inventory. A stake
        whose parent area no longer exists is dropped, which refunds it.
        """
        parents: set[str | int] = {MAIN_AREA_ID}
        parents.update(c.id for c in self.claimed)
        parents.update(p.id for p in self.pending)
        taken = {c.id for c in self.claimed}
        for stake in stakes:
            if (
                stake.parent_id not in parents
                or stake.id in taken
                or self.inventory <= 0
            ):
                logger.debug("Dropping pending stake %s", stake.id)
                continue
            self.pending.append(stake)
            self.inventory -= 1
            parents.add(stake.id)
            taken.add(stake.id)

    def reset(self) -> None:
        self.inventory = MAX_STAKES
        self.claimed = []
        self.pending = []


class ClaimTimer:
    """Periodic ``ClaimLedger.tick`` driven by a Tk-style scheduler.

    ``after(ms, callback)`` must return an id accepted by ``after_cancel``.
    """

    def __init__(
        self,
        ledger: ClaimLedger,
        after: Callable[[int, Callable[[], None]], Any],
        after_cancel: Callable[[Any], None],
        on_claim: Callable[[list[ClaimedArea]], None] | None = None,
    ) -> None:
        self.ledger = ledger
        self._after = after
        self._after_cancel = after_cancel
        self._on_claim = on_claim
        self._after_id: Any = None

    @property
    def running(self) -> bool:
        return self._after_id is not None

    def ensure_running(self) -> None:
        """Schedule the next tick if a countdown is pending and none is queued."""
        if self._after_id is None and self.ledger.timer_active:
            self._after_id = self._after(int(CLAIM_TICK * 1000), self._fire)

    def _fire(self) -> None:
        self._after_id = None
        promoted = self.ledger.tick(CLAIM_TICK)
        if promoted and self._on_claim is not None:
            self._on_claim(promoted)
        self.ensure_running()

    def cancel(self) -> None:
        if self._after_id is not None:
            self._after_cancel(self._after_id)
            self._after_id = None
