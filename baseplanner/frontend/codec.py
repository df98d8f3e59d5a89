"""Compact share-string codec.

A design travels as one URL query parameter: the design is reduced to a
small JSON object, compressed with LZ-String and encoded with its
URL-safe alphabet (``compressToEncodedURIComponent``), the same envelope
every historical share link uses.

Three payload shapes have been published over time and all still decode:

  * **flat rows** (current) — ``{"s": [[kind, style?, x1, y1, ...], ...]}``
    with integer coordinates. ``style`` is present only when it differs
    from the design's building type ``b``; the row length's parity tells
    the two layouts apart. Designs with content on more than one floor use
    ``{"fl": {"0": [...], "1": [...]}}`` instead of ``s``.
  * **short-key objects** — ``{"s": [{"t": "s", "v": [x1, y1, ...], "b":
    "a"}, ...]}`` with one- or two-letter codes.
  * **verbose** — ``{"shapes": [{"type", "x", "y", "rotation",
    "building", "_verts"?}], "buildingType": ...}``.

The payload shape is detected once and each form is decoded into the same
``DesignState``. Centroid and rotation are never read from the payload:
they are recomputed from the decoded vertices, so a stored rotation that
disagrees with its vertices cannot leak in. Rows with fewer vertices than
their kind needs are skipped; anything structurally wrong raises
``DecodeFailure`` and nothing is applied.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any

from lzstring import LZString

from ..engine.constants import (
    BUILDING_TYPES,
    BUILDINGS_BY_KEY,
    DEFAULT_BUILDING,
    DIRECTIONS,
    EMBED_URL_LIMIT,
    FIEF_DEFAULTS,
    MAX_STAKES,
    SHAPE_KINDS,
    SQUARE,
    TRIANGLE,
)
from ..engine.errors import DecodeFailure
from ..engine.shapes import min_vertex_count, vertices_from_anchor
from ..engine.types import ClaimedArea, DesignState, PlannerSettings, Shape

logger = logging.getLogger(__name__)

_LZ = LZString()

KIND_CODES = {kind: i for i, kind in enumerate(SHAPE_KINDS)}
BUILDING_CODES = {b.key: i for i, b in enumerate(BUILDING_TYPES)}
DIRECTION_CODES = {d: i for i, d in enumerate(DIRECTIONS)}

_KIND_CHARS = {"s": "square", "t": "triangle", "c": "corner", "st": "stair"}
_BUILDING_CHARS = {
    "a": "atreides",
    "h": "harkonnen",
    "cs": "choamShelter",
    "cf": "choamFacility",
}
_DIRECTION_CHARS = {"t": "top", "b": "bottom", "l": "left", "r": "right"}

MAIN_PARENT_CODE = 0


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _shape_row(shape: Shape, default_code: int) -> list[int]:
    row = [KIND_CODES.get(shape.kind, 0)]
    code = BUILDING_CODES.get(shape.building, 0)
    if code != default_code:
        row.append(code)
    for x, y in shape.vertices:
        row.append(int(round(x)))
        row.append(int(round(y)))
    return row


def _claim_rows(claims: list[ClaimedArea]) -> list[list[int]]:
    """Claims as ``[direction, parent]``; ids are renumbered 1..n in order."""
    renumbered: dict[Any, int] = {"main": MAIN_PARENT_CODE}
    rows = []
    for claim in claims:
        parent = renumbered.get(claim.parent_id)
        if parent is None or claim.direction not in DIRECTION_CODES:
            logger.debug("Dropping dangling claim %r from share payload", claim)
            continue
        rows.append([DIRECTION_CODES[claim.direction], parent])
        renumbered[claim.id] = len(rows)
    return rows


def encode_payload(state: DesignState) -> dict:
    """The JSON object a share string carries, defaults omitted."""
    settings = state.settings
    b_code = BUILDING_CODES.get(settings.building_type, 0)
    payload: dict[str, Any] = {}

    floors = state.floors_with_content()
    if len(floors) > 1:
        payload["fl"] = {
            str(f): [_shape_row(s, b_code) for s in state.floors[f]]
            for f in floors
        }
    else:
        floor = floors[0] if floors else 0
        payload["s"] = [_shape_row(s, b_code) for s in state.shapes(floor)]
        if floor != 0:
            payload["fi"] = floor
    if state.active_floor != 0:
        payload["af"] = state.active_floor

    if b_code != 0:
        payload["b"] = b_code
    if settings.left_click_shape != SQUARE:
        payload["l"] = KIND_CODES[settings.left_click_shape]
    if settings.right_click_shape != TRIANGLE:
        payload["r"] = KIND_CODES[settings.right_click_shape]
    if settings.delete_method != "middle":
        payload["d"] = 1
    if settings.grid_snap:
        payload["g"] = 1
    if settings.vertex_snap:
        payload["vs"] = 1
    if settings.fief_mode:
        payload["fm"] = 1
        if settings.fief_type != "basic":
            payload["ft"] = 1
        w, h = FIEF_DEFAULTS[settings.fief_type]
        if settings.fief_width != w:
            payload["fw"] = settings.fief_width
        if settings.fief_height != h:
            payload["fh"] = settings.fief_height
        if settings.fief_padding != 0:
            payload["fp"] = round(settings.fief_padding * 10) / 10
        if state.stakes_inventory != MAX_STAKES:
            payload["si"] = state.stakes_inventory
        claims = _claim_rows(state.claimed_areas)
        if claims:
            payload["ca"] = claims
    return payload


def encode(state: DesignState) -> str:
    """Compress a design into a URL-safe share string."""
    text = json.dumps(encode_payload(state), separators=(",", ":"))
    return _LZ.compressToEncodedURIComponent(text)


def fits_embed_limit(text: str) -> bool:
    return len(text) <= EMBED_URL_LIMIT


def share_url(base_url: str, state: DesignState) -> tuple[str, bool]:
    """Share link and whether it fits the embed limit.

    The link is always produced; callers use the flag to decide whether it
    can be embedded.
    """
    url = f"{base_url}?d={encode(state)}"
    return url, fits_embed_limit(url)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _is_number(v: Any) -> bool:
    return (
        isinstance(v, (int, float))
        and not isinstance(v, bool)
        and math.isfinite(v)
    )


def _numbers(values: Any, what: str) -> list[float]:
    if not isinstance(values, list) or not all(_is_number(v) for v in values):
        raise DecodeFailure(f"{what} must be a list of numbers")
    return values


def _setting_number(data: dict, key: str, default: float) -> float:
    value = data.get(key)
    if value is None:
        return default
    if not _is_number(value):
        raise DecodeFailure(f"setting {key!r} must be numeric")
    return value


def _pairs(flat: list[float]) -> list[tuple[float, float]]:
    return [(flat[i], flat[i + 1]) for i in range(0, len(flat) - 1, 2)]


def _coded(value: Any, table: tuple, chars: dict[str, str], default: str) -> str:
    """Resolve a value given as a numeric code, a short char code or a name."""
    if _is_number(value) and int(value) == value and 0 <= value < len(table):
        return table[int(value)]
    if isinstance(value, str):
        if value in chars:
            return chars[value]
        if value in table:
            return value
    return default


_BUILDING_KEYS = tuple(b.key for b in BUILDING_TYPES)


def _building(value: Any, default: str) -> str:
    return _coded(value, _BUILDING_KEYS, _BUILDING_CHARS, default)


def _kind(value: Any) -> str:
    return _coded(value, SHAPE_KINDS, _KIND_CHARS, SQUARE)


def _decode_flat_row(row: Any, default_building: str):
    if not isinstance(row, list) or not row:
        raise DecodeFailure("shape row must be a non-empty list")
    _numbers(row, "shape row")
    kind = _kind(row[0])
    building = default_building
    start = 1
    if len(row) >= 2 and 0 <= row[1] <= 3 and (len(row) - 2) % 2 == 0:
        building = _building(row[1], default_building)
        start = 2
    return kind, building, _pairs(row[start:])


def _decode_short_row(obj: Any, default_building: str):
    if not isinstance(obj, dict):
        raise DecodeFailure("shape entry must be an object")
    kind = _kind(obj.get("t"))
    building = default_building
    if "b" in obj:
        building = _building(obj["b"], default_building)
    verts: list[tuple[float, float]] = []
    v = obj.get("v")
    if v is not None:
        flat = _numbers(v, "vertex list")
        if len(flat) >= 4:
            verts = _pairs(flat)
    return kind, building, verts


def _decode_verbose_shape(obj: Any, default_building: str):
    if not isinstance(obj, dict):
        raise DecodeFailure("shape entry must be an object")
    kind = _kind(obj.get("type"))
    building = _building(obj.get("building"), default_building)
    raw = obj.get("_verts")
    verts: list[tuple[float, float]] = []
    if isinstance(raw, list):
        for p in raw:
            if not isinstance(p, dict) or not (
                _is_number(p.get("x")) and _is_number(p.get("y"))
            ):
                raise DecodeFailure("vertex must have numeric x and y")
            verts.append((p["x"], p["y"]))
    if len(verts) < min_vertex_count(kind):
        # Designs saved before vertices were stored only have a pose.
        pose = [obj.get(k, 0) for k in ("x", "y", "rotation")]
        if not all(_is_number(p) for p in pose):
            raise DecodeFailure("shape pose must be numeric")
        verts = vertices_from_anchor(kind, *pose)
    return kind, building, verts


def _build_shapes(entries, floor: int, first_id: int) -> list[Shape]:
    shapes: list[Shape] = []
    for kind, building, verts in entries:
        if len(verts) < min_vertex_count(kind):
            logger.debug(
                "Skipping %s with %d vertices on floor %d",
                kind,
                len(verts),
                floor,
            )
            continue
        shapes.append(
            Shape(
                id=first_id + len(shapes),
                kind=kind,
                vertices=tuple(verts),
                building=building,
                floor=floor,
            )
        )
    return shapes


def _decode_rows(rows: Any, default_building: str):
    if not isinstance(rows, list):
        raise DecodeFailure("shape list must be a list")
    if not rows:
        return []
    if isinstance(rows[0], list):
        return [_decode_flat_row(r, default_building) for r in rows]
    return [_decode_short_row(r, default_building) for r in rows]


def _floor_index(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise DecodeFailure(f"bad floor index {value!r}") from e


def _is_claim_ref(value: Any) -> bool:
    return (isinstance(value, int) and not isinstance(value, bool)) or (
        isinstance(value, str) and value != ""
    )


def _compact_parent(value: Any) -> str | int:
    if value in ("m", "main") or (
        _is_number(value) and value == MAIN_PARENT_CODE
    ):
        return "main"
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    raise DecodeFailure(f"bad claimed area parent {value!r}")


def _decode_claims(rows: Any) -> list[ClaimedArea]:
    if not isinstance(rows, list):
        raise DecodeFailure("claimed areas must be a list")
    claims = []
    for i, row in enumerate(rows, start=1):
        if isinstance(row, list) and len(row) >= 2:
            direction = _coded(row[0], DIRECTIONS, _DIRECTION_CHARS, "top")
            parent_id = _compact_parent(row[1])
        elif isinstance(row, dict):
            direction = _coded(row.get("d"), DIRECTIONS, _DIRECTION_CHARS, "top")
            parent_id = _compact_parent(row.get("p", "m"))
        else:
            raise DecodeFailure("claimed area must be a list or object")
        claims.append(ClaimedArea(id=i, direction=direction, parent_id=parent_id))
    return claims


def _decode_verbose_claims(rows: Any) -> list[ClaimedArea]:
    if not isinstance(rows, list):
        raise DecodeFailure("claimedAreas must be a list")
    claims = []
    for c in rows:
        if (
            not isinstance(c, dict)
            or not _is_claim_ref(c.get("id"))
            or not _is_claim_ref(c.get("parentId", "main"))
            or c.get("direction") not in DIRECTIONS
        ):
            raise DecodeFailure("bad claimed area in verbose payload")
        claims.append(ClaimedArea.from_dict(c))
    return claims


def _decode_compact(data: dict) -> DesignState:
    default_building = _building(data.get("b"), DEFAULT_BUILDING)
    floors: dict[int, list[Shape]] = {}
    next_id = 1
    if "fl" in data:
        if not isinstance(data["fl"], dict):
            raise DecodeFailure("floor map must be an object")
        items = sorted(
            ((_floor_index(k), v) for k, v in data["fl"].items()),
            key=lambda item: item[0],
        )
    else:
        items = [(_floor_index(data.get("fi", 0)), data["s"])]
    for floor, rows in items:
        shapes = _build_shapes(
            _decode_rows(rows, default_building), floor, next_id
        )
        floors[floor] = shapes
        next_id += len(shapes)

    fief_type = "advanced" if data.get("ft") in (1, "a") else "basic"
    w, h = FIEF_DEFAULTS[fief_type]
    settings = PlannerSettings(
        building_type=default_building,
        left_click_shape=_coded(data.get("l"), SHAPE_KINDS, _KIND_CHARS, SQUARE),
        right_click_shape=_coded(
            data.get("r"), SHAPE_KINDS, _KIND_CHARS, TRIANGLE
        ),
        delete_method="shift" if data.get("d") in (1, "s") else "middle",
        grid_snap=data.get("g") == 1,
        vertex_snap=data.get("vs") == 1,
        fief_mode=data.get("fm") == 1,
        fief_type=fief_type,
        fief_width=_setting_number(data, "fw", w),
        fief_height=_setting_number(data, "fh", h),
        fief_padding=_setting_number(data, "fp", 0.0),
    )
    return DesignState(
        floors=floors,
        active_floor=_floor_index(data.get("af", 0)),
        settings=settings,
        claimed_areas=_decode_claims(data.get("ca", [])),
        stakes_inventory=_setting_number(data, "si", MAX_STAKES),
    )


def _decode_verbose(data: dict) -> DesignState:
    default_building = _building(data.get("buildingType"), DEFAULT_BUILDING)
    raw_shapes = data.get("shapes") or []
    if not isinstance(raw_shapes, list):
        raise DecodeFailure("shapes must be a list")
    entries = [_decode_verbose_shape(s, default_building) for s in raw_shapes]
    shapes = _build_shapes(entries, 0, 1)

    fief_type = "advanced" if data.get("fiefType") == "advanced" else "basic"
    w, h = FIEF_DEFAULTS[fief_type]
    settings = PlannerSettings(
        building_type=default_building,
        left_click_shape=data.get("leftClickShape") or SQUARE,
        right_click_shape=data.get("rightClickShape") or TRIANGLE,
        delete_method=data.get("deleteMethod") or "middle",
        fief_mode=bool(data.get("fiefMode", False)),
        fief_type=fief_type,
        fief_width=_setting_number(data, "fiefWidth", w),
        fief_height=_setting_number(data, "fiefHeight", h),
        fief_padding=_setting_number(data, "fiefPadding", 0.0),
    )
    claims = _decode_verbose_claims(data.get("claimedAreas") or [])
    return DesignState(
        floors={0: shapes} if shapes else {},
        settings=settings,
        claimed_areas=claims,
        stakes_inventory=_setting_number(data, "stakesInventory", MAX_STAKES),
    )


def decode_payload(data: Any) -> DesignState:
    """Decode an already-decompressed payload object of any known shape."""
    if not isinstance(data, dict):
        raise DecodeFailure("design payload must be a JSON object")
    if "fl" in data or "s" in data:
        state = _decode_compact(data)
    elif "shapes" in data:
        state = _decode_verbose(data)
    else:
        raise DecodeFailure("unrecognised design payload")
    if not isinstance(state.stakes_inventory, int) or not (
        0 <= state.stakes_inventory <= MAX_STAKES
    ):
        raise DecodeFailure(f"bad stake inventory {state.stakes_inventory!r}")
    return state


def decode(text: str) -> DesignState:
    """Decode a share string; raises ``DecodeFailure`` on any bad input."""
    if not isinstance(text, str) or not text.strip():
        raise DecodeFailure("empty share string")
    try:
        raw = _LZ.decompressFromEncodedURIComponent(text.strip())
    except Exception as e:
        # lzstring surfaces corrupt input as assorted builtin errors.
        raise DecodeFailure("share string is not LZ-String data") from e
    if not raw:
        raise DecodeFailure("share string decompressed to nothing")
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise DecodeFailure("share string does not contain JSON") from e
    return decode_payload(data)


def try_decode(text: str) -> DesignState | None:
    """``decode`` for callers that keep their current state on failure."""
    try:
        return decode(text)
    except DecodeFailure as e:
        logger.warning("Failed to load shared design: %s", e)
        return None
