"""Tests for connected groups, group transforms, clipboard and patterns."""

from baseplanner.engine.collision import REASON_DUPLICATE
from baseplanner.engine.groups import (
    capture_pattern,
    copy_group,
    edges_match,
    find_group,
    group_centroid,
    instantiate_pattern,
    paste_clipboard,
    rotate_group,
    shapes_connected,
    transform_group,
    translate_group,
)
from baseplanner.engine.shapes import angles_equivalent
from baseplanner.engine.types import BuildableArea, Pattern, PatternPiece, Shape


def _sq(id, x, y, rotation=0.0):
    return Shape.from_pose(id, "square", x, y, rotation)


def _l_shape():
    """Four squares in an L plus one touching only at a vertex and one far away."""
    return [
        _sq(1, 0, 0),
        _sq(2, 50, 0),
        _sq(3, 100, 0),
        _sq(4, 100, 50),
        _sq(5, 150, 100),
        _sq(6, 400, 400),
    ]


def _close(a, b, tol=1e-6):
    return abs(a[0] - b[0]) < tol and abs(a[1] - b[1]) < tol


class TestConnectivity:
    def test_edges_match_either_order(self):
        a = _sq(1, 0, 0).edges[1]
        b = _sq(2, 50, 0).edges[3]
        assert edges_match(a, b)

    def test_shapes_connected(self):
        assert shapes_connected(_sq(1, 0, 0), _sq(2, 50, 0))
        assert not shapes_connected(_sq(1, 0, 0), _sq(2, 50, 50))

    def test_connected_within_tolerance(self):
        assert shapes_connected(_sq(1, 0, 0), _sq(2, 53, 0))
        assert not shapes_connected(_sq(1, 0, 0), _sq(2, 55, 0))

    def test_l_shape_flood_fill(self):
        shapes = _l_shape()
        assert find_group(1, shapes) == {1, 2, 3, 4}
        assert find_group(4, shapes) == {1, 2, 3, 4}

    def test_vertex_contact_is_separate(self):
        assert find_group(5, _l_shape()) == {5}

    def test_isolated_and_missing(self):
        assert find_group(6, _l_shape()) == {6}
        assert find_group(99, _l_shape()) == set()

    def test_triangle_joins_group(self):
        square = _sq(1, 0, 0)
        edge = square.edges[0]
        tri = Shape(2, "triangle", (
            (edge.mid_x + edge.nx * 43.30127, edge.mid_y + edge.ny * 43.30127),
            edge.v2,
            edge.v1,
        ))
        assert find_group(1, [square, tri]) == {1, 2}


class TestTransforms:
    def test_group_centroid(self):
        assert _close(group_centroid([_sq(1, 0, 0), _sq(2, 50, 0)]), (25.0, 0.0))

    def test_translate_only_group(self):
        moved = translate_group(_l_shape(), {1, 2}, 10.0, 0.0)
        assert _close(moved[0].centroid, (10.0, 0.0))
        assert _close(moved[2].centroid, (100.0, 0.0))

    def test_rotate_group_about_centroid(self):
        shapes = [_sq(1, 0, 0), _sq(2, 50, 0)]
        rotated = rotate_group(shapes, {1, 2}, 90.0)
        assert _close(rotated[0].centroid, (25.0, -25.0))
        assert _close(rotated[1].centroid, (25.0, 25.0))
        assert angles_equivalent("square", rotated[0].rotation, 0.0)

    def test_transform_moves_group(self):
        shapes = _l_shape()
        result = transform_group(shapes, {1, 2, 3, 4}, dx=0.0, dy=-200.0)
        assert result.ok
        assert not result.snapped
        by_id = {s.id: s for s in result.shapes}
        assert _close(by_id[1].centroid, (0.0, -200.0))
        assert _close(by_id[6].centroid, (400.0, 400.0))
        assert len(result.shapes) == len(shapes)

    def test_transform_rejected_on_overlap(self):
        shapes = _l_shape()
        result = transform_group(shapes, {6}, dx=-300.0, dy=-400.0)
        assert not result.ok
        assert result.verdict.reason == REASON_DUPLICATE

    def test_transform_rejected_outside_area(self):
        area = BuildableArea("main", -100.0, -100.0, 200.0, 200.0)
        result = transform_group([_sq(1, 0, 0)], {1}, dx=500.0, areas=[area])
        assert not result.ok

    def test_grid_snap_aligns_bounding_box(self):
        result = transform_group([_sq(1, 0, 0)], {1}, dx=12.0, dy=7.0, grid_snap=True)
        assert result.ok and result.snapped
        min_x = min(v[0] for v in result.shapes[0].vertices)
        min_y = min(v[1] for v in result.shapes[0].vertices)
        assert abs(min_x % 50.0) < 1e-6 and abs(min_y % 50.0) < 1e-6

    def test_vertex_snap_joins_neighbour(self):
        shapes = [_sq(1, 0, 0), _sq(2, 200, 3)]
        result = transform_group(shapes, {2}, dx=-147.0, vertex_snap=True)
        assert result.ok and result.snapped
        moved = {s.id: s for s in result.shapes}[2]
        assert _close(moved.centroid, (50.0, 0.0))

    def test_snap_falls_back_when_snapped_form_collides(self):
        """Grid snap would land on the other square, so the raw move wins."""
        shapes = [_sq(1, 45, 10), _sq(2, 300, 300)]
        result = transform_group(shapes, {2}, dx=-275.0, dy=-345.0, grid_snap=True)
        assert result.ok
        assert not result.snapped
        moved = {s.id: s for s in result.shapes}[2]
        assert _close(moved.centroid, (25.0, -45.0))

    def test_empty_group(self):
        assert not transform_group(_l_shape(), set()).ok


class TestClipboard:
    def test_copy_and_paste(self):
        shapes = _l_shape()
        clip = copy_group(shapes, {1, 2})
        pasted = paste_clipboard(clip, 500.0, -100.0, next_id=10, floor=1)
        assert [s.id for s in pasted] == [10, 11]
        assert all(s.floor == 1 for s in pasted)
        assert _close(group_centroid(pasted), (500.0, -100.0))
        assert _close(pasted[1].centroid, (525.0, -100.0))

    def test_copy_empty(self):
        assert copy_group(_l_shape(), {42}).pieces == ()


class TestPatterns:
    def test_capture_and_instantiate(self):
        members = [_sq(1, 0, 0), _sq(2, 50, 0)]
        pattern = capture_pattern("pair", members)
        assert len(pattern.pieces) == 2
        placed = instantiate_pattern(pattern, 300.0, 300.0, next_id=5)
        assert [s.id for s in placed] == [5, 6]
        assert _close(placed[0].centroid, (275.0, 300.0))
        assert _close(placed[1].centroid, (325.0, 300.0))

    def test_instantiate_rotated(self):
        pattern = capture_pattern("pair", [_sq(1, 0, 0), _sq(2, 50, 0)])
        placed = instantiate_pattern(pattern, 0.0, 0.0, next_id=1, rotation=90.0)
        assert _close(placed[0].centroid, (0.0, -25.0))
        assert _close(placed[1].centroid, (0.0, 25.0))

    def test_round_trip_through_dict(self):
        pattern = capture_pattern("pair", [_sq(1, 0, 0), _sq(2, 50, 0)])
        restored = Pattern.from_dict(pattern.to_dict())
        placed = instantiate_pattern(restored, 0.0, 0.0, next_id=1)
        assert _close(placed[1].centroid, (25.0, 0.0))

    def test_missing_vertices_rebuilt_from_rotation(self):
        pattern = Pattern(
            "legacy",
            [PatternPiece("triangle", "harkonnen", (), (10.0, 0.0), 180.0)],
        )
        placed = instantiate_pattern(pattern, 0.0, 0.0, next_id=1)
        assert len(placed) == 1
        assert _close(placed[0].centroid, (10.0, 0.0))
        assert angles_equivalent("triangle", placed[0].rotation, 180.0)
        assert placed[0].building == "harkonnen"

    def test_missing_corner_vertices_centred_on_offset(self):
        pattern = Pattern(
            "legacy",
            [PatternPiece("corner", "harkonnen", (), (0.0, 0.0), 90.0)],
        )
        placed = instantiate_pattern(pattern, 100.0, 100.0, next_id=1)
        assert _close(placed[0].centroid, (100.0, 100.0))
        assert angles_equivalent("corner", placed[0].rotation, 90.0)

    def test_degenerate_piece_skipped(self):
        pattern = Pattern(
            "broken",
            [
                PatternPiece("square", "atreides", ((0.0, 0.0), (1.0, 0.0)), (0.0, 0.0)),
                PatternPiece("square", "atreides", (), (60.0, 0.0)),
            ],
        )
        placed = instantiate_pattern(pattern, 0.0, 0.0, next_id=1)
        assert len(placed) == 1
        assert placed[0].id == 1
