"""Tests for the share-string codec, including every historical payload shape."""

import json
import random

import pytest
from lzstring import LZString

from baseplanner.engine.constants import BUILDING_TYPES, MAX_STAKES, SHAPE_KINDS
from baseplanner.engine.errors import DecodeFailure
from baseplanner.engine.shapes import angles_equivalent, vertices_from_pose
from baseplanner.engine.types import (
    ClaimedArea,
    DesignState,
    PlannerSettings,
    Shape,
)

from .codec import (
    decode,
    decode_payload,
    encode,
    encode_payload,
    fits_embed_limit,
    share_url,
    try_decode,
)

LZ = LZString()


def _pack(obj) -> str:
    return LZ.compressToEncodedURIComponent(json.dumps(obj))


def _random_design(rng: random.Random, n: int) -> DesignState:
    """Pieces on a coarse lattice spread over up to three floors."""
    floors = {}
    cells = rng.sample(range(400), n)
    for i, cell in enumerate(cells):
        floor = rng.randrange(3)
        x = (cell % 20) * 120.0 + rng.uniform(-5, 5)
        y = (cell // 20) * 120.0 + rng.uniform(-5, 5)
        shape = Shape.from_pose(
            i + 1,
            rng.choice(SHAPE_KINDS),
            x,
            y,
            rng.uniform(-180, 180),
            rng.choice(BUILDING_TYPES).key,
            floor,
        )
        floors.setdefault(floor, []).append(shape)
    return DesignState(
        floors=floors,
        settings=PlannerSettings(building_type=rng.choice(BUILDING_TYPES).key),
    )


class TestRoundTrip:
    def test_empty_design(self):
        state = decode(encode(DesignState()))
        assert state.all_shapes() == []
        assert encode_payload(DesignState()) == {"s": []}

    def test_random_designs_within_one_unit(self):
        """Random designs of up to 200 pieces survive with vertices within +-1."""
        rng = random.Random(1234)
        for n in (0, 1, 7, 60, 200):
            state = _random_design(rng, n)
            decoded = decode(encode(state))
            assert decoded.floors_with_content() == state.floors_with_content()
            for floor in state.floors_with_content():
                before = state.floors[floor]
                after = decoded.floors[floor]
                assert len(after) == len(before)
                for a, b in zip(before, after):
                    assert a.kind == b.kind
                    assert a.building == b.building
                    assert b.floor == floor
                    for (ax, ay), (bx, by) in zip(a.vertices, b.vertices):
                        assert abs(ax - bx) <= 1.0 and abs(ay - by) <= 1.0

    def test_pose_recomputed_after_rounding(self):
        state = DesignState(
            floors={0: [Shape.from_pose(1, "triangle", 10.3, 20.7, 33.0)]}
        )
        shape = decode(encode(state)).all_shapes()[0]
        assert abs(shape.centroid[0] - 10.3) < 1.0
        assert angles_equivalent("triangle", shape.rotation, 33.0, 3.0)

    def test_settings_and_claims(self):
        settings = PlannerSettings(
            building_type="choamFacility",
            left_click_shape="corner",
            right_click_shape="square",
            delete_method="shift",
            grid_snap=True,
            vertex_snap=True,
            fief_mode=True,
            fief_type="advanced",
            fief_width=12,
            fief_height=9,
            fief_padding=2.5,
        )
        claims = [
            ClaimedArea(10, "right", "main"),
            ClaimedArea(11, "top", 10),
        ]
        state = DesignState(settings=settings, claimed_areas=claims, stakes_inventory=3)
        decoded = decode(encode(state))
        assert decoded.settings == settings
        assert decoded.stakes_inventory == 3
        assert [(c.direction, c.parent_id) for c in decoded.claimed_areas] == [
            ("right", "main"),
            ("top", 1),
        ]
        assert [c.id for c in decoded.claimed_areas] == [1, 2]

    def test_fief_settings_only_written_in_fief_mode(self):
        state = DesignState(
            settings=PlannerSettings(fief_padding=3.0),
            stakes_inventory=2,
        )
        payload = encode_payload(state)
        assert "fp" not in payload and "si" not in payload
        assert decode(encode(state)).stakes_inventory == MAX_STAKES


class TestPayloadShape:
    def test_style_omitted_when_default(self):
        shapes = [
            Shape.from_pose(1, "square", 0.0, 0.0, building="harkonnen"),
            Shape.from_pose(2, "square", 50.0, 0.0, building="atreides"),
        ]
        state = DesignState(
            floors={0: shapes}, settings=PlannerSettings(building_type="harkonnen")
        )
        payload = encode_payload(state)
        assert payload["b"] == 1
        rows = payload["s"]
        assert len(rows[0]) == 9
        assert rows[1][:2] == [0, 0] and len(rows[1]) == 10

    def test_integer_coordinates(self):
        state = DesignState(floors={0: [Shape.from_pose(1, "square", 0.4, 0.6)]})
        row = encode_payload(state)["s"][0]
        assert all(isinstance(v, int) for v in row)

    def test_multi_floor_payload(self):
        state = DesignState(
            floors={
                0: [Shape.from_pose(1, "square", 0.0, 0.0)],
                2: [Shape.from_pose(2, "square", 0.0, 0.0, floor=2)],
            },
            active_floor=2,
        )
        payload = encode_payload(state)
        assert set(payload["fl"]) == {"0", "2"}
        assert "s" not in payload
        assert payload["af"] == 2
        decoded = decode(encode(state))
        assert decoded.active_floor == 2
        assert len(decoded.shapes(2)) == 1

    def test_single_upper_floor(self):
        state = DesignState(floors={1: [Shape.from_pose(1, "corner", 0.0, 0.0, floor=1)]})
        payload = encode_payload(state)
        assert payload["fi"] == 1
        assert decode(encode(state)).floors_with_content() == [1]


class TestHistoricalFormats:
    def test_flat_rows_with_style(self):
        verts = [v for p in vertices_from_pose("square", 100, 100, 0) for v in p]
        state = decode(_pack({"s": [[0, 3] + [round(v) for v in verts]], "b": 0}))
        shape = state.all_shapes()[0]
        assert shape.building == "choamFacility"
        assert abs(shape.centroid[0] - 100) < 1.0

    def test_short_key_objects(self):
        verts = [round(v) for p in vertices_from_pose("triangle", 0, 0, 90) for v in p]
        payload = {
            "s": [
                {"t": "t", "v": verts, "b": "h"},
                {"t": "s", "v": [1, 2]},  # degenerate, skipped
                {"t": "c", "v": [0, 0, 50, 0, 0, 50]},
            ],
            "b": "cs",
            "l": 2,
            "d": "s",
            "ft": "a",
            "fm": 1,
            "ca": [{"d": "r", "p": "m"}, {"d": "b", "p": 1}],
        }
        state = decode(_pack(payload))
        shapes = state.all_shapes()
        assert [s.kind for s in shapes] == ["triangle", "corner"]
        assert shapes[0].building == "harkonnen"
        assert shapes[1].building == "choamShelter"
        assert angles_equivalent("triangle", shapes[0].rotation, 90.0, 2.0)
        assert state.settings.left_click_shape == "corner"
        assert state.settings.delete_method == "shift"
        assert state.settings.fief_type == "advanced"
        assert state.settings.fief_width == 10
        assert [(c.direction, c.parent_id) for c in state.claimed_areas] == [
            ("right", "main"),
            ("bottom", 1),
        ]

    def test_verbose_with_and_without_vertices(self):
        stored = vertices_from_pose("square", 200.0, 0.0, 30.0)
        payload = {
            "shapes": [
                {
                    "id": 1700000000000,
                    "type": "square",
                    "x": 200.0,
                    "y": 0.0,
                    # stale rotation: vertices win
                    "rotation": 75.0,
                    "building": "harkonnen",
                    "_verts": [{"x": x, "y": y} for x, y in stored],
                },
                {"id": 2, "type": "triangle", "x": 0.0, "y": 0.0, "rotation": 60.0},
            ],
            "buildingType": "choamShelter",
            "rightClickShape": "corner",
            "fiefMode": True,
            "fiefType": "advanced",
            "fiefWidth": 11,
            "stakesInventory": 2,
            "claimedAreas": [{"id": 9, "direction": "left", "parentId": "main"}],
        }
        state = decode(_pack(payload))
        sq, tri = state.all_shapes()
        assert angles_equivalent("square", sq.rotation, 30.0, 1e-6)
        assert sq.building == "harkonnen"
        assert tri.building == "choamShelter"
        assert angles_equivalent("triangle", tri.rotation, 60.0, 1e-6)
        assert state.settings.right_click_shape == "corner"
        assert state.settings.fief_width == 11
        assert state.settings.fief_height == 10
        assert state.stakes_inventory == 2
        assert state.claimed_areas == [ClaimedArea(9, "left", "main")]

    def test_verbose_corner_without_vertices_keeps_position(self):
        """Old saves put a corner's bounding-square centre at x, y."""
        payload = {
            "shapes": [
                {"id": 1, "type": "corner", "x": 100.0, "y": 100.0, "rotation": 0.0}
            ]
        }
        shape = decode(_pack(payload)).all_shapes()[0]
        cx, cy = shape.vertices[0]
        assert abs(cx - 75.0) < 1e-9 and abs(cy - 75.0) < 1e-9

    def test_unknown_kind_code_is_square(self):
        verts = [round(v) for p in vertices_from_pose("square", 0, 0, 0) for v in p]
        state = decode(_pack({"s": [[9] + verts]}))
        assert state.all_shapes()[0].kind == "square"


class TestFailures:
    @pytest.mark.parametrize(
        "payload",
        ["", "   ", "not a share string!!", "N4Ig", "%%%%"],
    )
    def test_garbage_raises(self, payload):
        with pytest.raises(DecodeFailure):
            decode(payload)

    def test_json_but_not_object(self):
        with pytest.raises(DecodeFailure):
            decode(_pack([1, 2, 3]))

    def test_unrecognised_object(self):
        with pytest.raises(DecodeFailure):
            decode(_pack({"hello": "world"}))

    def test_bad_coordinates(self):
        with pytest.raises(DecodeFailure):
            decode(_pack({"s": [[0, "a", 1, 2, 3]]}))

    def test_bad_stake_inventory(self):
        with pytest.raises(DecodeFailure):
            decode(_pack({"s": [], "si": 99}))

    @pytest.mark.parametrize(
        "claims",
        [[[0, [1]]], [{"d": "t", "p": {"x": 1}}], [[1, -2]], [[1, True]]],
    )
    def test_bad_claim_parent(self, claims):
        with pytest.raises(DecodeFailure):
            decode(_pack({"s": [], "fm": 1, "ca": claims}))

    @pytest.mark.parametrize(
        "claim",
        [
            {"id": [1], "direction": "top"},
            {"id": 1, "direction": "top", "parentId": {"x": 1}},
            {"direction": "top"},
        ],
    )
    def test_bad_verbose_claim(self, claim):
        with pytest.raises(DecodeFailure):
            decode(_pack({"shapes": [], "claimedAreas": [claim]}))

    def test_try_decode_returns_none(self, caplog):
        assert try_decode("definitely not valid") is None
        assert "Failed to load shared design" in caplog.text

    def test_decode_failure_is_value_error(self):
        with pytest.raises(ValueError):
            decode_payload("nope")


class TestShareUrl:
    def test_short_design_fits(self):
        url, fits = share_url("https://example.org/", DesignState())
        assert url.startswith("https://example.org/?d=")
        assert fits

    def test_long_design_flagged(self):
        rng = random.Random(7)
        url, fits = share_url("https://example.org/", _random_design(rng, 200))
        assert not fits
        assert not fits_embed_limit(url)
        assert decode(url.split("?d=", 1)[1]).all_shapes()
