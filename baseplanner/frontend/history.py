"""Bounded undo stack of whole-design snapshots."""

from __future__ import annotations

from ..engine.constants import HISTORY_LIMIT
from ..engine.types import DesignState


class History:
    """Append-only snapshots; the oldest is dropped past ``limit``.

    Every mutation kind (place, delete, group move, paste, clear, load)
    pushes the state it is about to replace, so one ``undo`` reverts any
    of them.
    """

    def __init__(self, limit: int = HISTORY_LIMIT) -> None:
        self.limit = limit
        self._snapshots: list[DesignState] = []

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def can_undo(self) -> bool:
        return bool(self._snapshots)

    def push(self, state: DesignState) -> None:
        self._snapshots.append(state.copy())
        if len(self._snapshots) > self.limit:
            self._snapshots.pop(0)

    def undo(self) -> DesignState | None:
        if not self._snapshots:
            return None
        return self._snapshots.pop()

    def clear(self) -> None:
        self._snapshots.clear()
