"""Exceptions raised across the planner.

Degenerate geometry (zero-length edges, too few vertices) is never raised;
the modules that can meet it skip it and log at debug level instead.
"""

from __future__ import annotations


class PlannerError(Exception):
    """Base class for planner errors."""


class PlacementRejected(PlannerError):
    """Candidate geometry overlaps placed shapes or leaves the buildable area.

    ``reason`` is one of the ``collision.REASON_*`` strings.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"placement rejected: {reason}")
        self.reason = reason


class DecodeFailure(PlannerError, ValueError):
    """A shared design string could not be decoded."""


class UnknownPattern(PlannerError):
    """No saved pattern has the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"no pattern named {name!r}")
        self.name = name
