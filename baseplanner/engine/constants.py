"""Geometry constants and building-style tables.

The numeric tolerances here (``EDGE_TOLERANCE``, ``SNAP_THRESHOLD``,
``ARC_SEGMENTS``) were tuned by hand against real designs and are part of
the share-link contract: changing them changes which old designs decode
into legal layouts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

SHAPE_SIZE = 50.0
TRI_HEIGHT = SHAPE_SIZE * math.sqrt(3) / 2
SNAP_THRESHOLD = 100.0
EDGE_TOLERANCE = 2.0
ARC_SEGMENTS = 12
CELL_SIZE = 50.0
CORNER_STEPS = 3
DIAGONAL_FLAT_RATIO = 0.27

# Edges shorter than this are treated as degenerate and skipped.
MIN_EDGE_LENGTH = 0.001
# Dead zone for the cross-product sign test in segment crossing.
CROSS_EPSILON = 0.01

STAKE_COUNTDOWN = 5.0
CLAIM_TICK = 0.1
MAX_STAKES = 5

HISTORY_LIMIT = 50
EMBED_URL_LIMIT = 2048
ROTATION_DEG_PER_PX = 0.5

# Centre of the main buildable area, in world units.
FIEF_ORIGIN = (450.0, 300.0)
FIEF_DEFAULTS = {
    "basic": (5, 5),
    "advanced": (10, 10),
}

SQUARE = "square"
TRIANGLE = "triangle"
CORNER = "corner"
STAIR = "stair"

# Index in this tuple is the wire code.
SHAPE_KINDS = (SQUARE, TRIANGLE, CORNER, STAIR)

ROUND = "round"
STEPPED = "stepped"
DIAGONAL = "diagonal"


@dataclass(frozen=True)
class BuildingType:
    key: str
    label: str
    corner_style: str
    material: str
    cost: int


# Index in this tuple is the wire code.
BUILDING_TYPES = (
    BuildingType("atreides", "Atreides", STEPPED, "plastone", 18),
    BuildingType("harkonnen", "Harkonnen", ROUND, "plastone", 18),
    BuildingType("choamShelter", "Choam Shelter", ROUND, "granite", 12),
    BuildingType("choamFacility", "Choam Facility", DIAGONAL, "granite", 15),
)
BUILDINGS_BY_KEY = {b.key: b for b in BUILDING_TYPES}
DEFAULT_BUILDING = BUILDING_TYPES[0].key

DIRECTIONS = ("top", "bottom", "left", "right")

# Interior overlap below this area (squared world units) counts as flush
# contact; covers float noise from snapping and rotation.
MIN_OVERLAP_AREA = 0.5
