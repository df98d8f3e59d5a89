"""Tests for corner fillet footprints."""

import math

from baseplanner.engine.constants import SHAPE_SIZE
from baseplanner.engine.corners import (
    collision_vertices,
    corner_collision_vertices,
    corner_style,
)
from baseplanner.engine.shapes import vertices_from_pose

CORNER = (0.0, 0.0)
END1 = (50.0, 0.0)
END2 = (0.0, 50.0)


class TestCornerStyle:
    def test_per_building(self):
        assert corner_style("atreides") == "stepped"
        assert corner_style("harkonnen") == "round"
        assert corner_style("choamShelter") == "round"
        assert corner_style("choamFacility") == "diagonal"

    def test_unknown_building_is_round(self):
        assert corner_style("fremen") == "round"


class TestFootprints:
    def test_vertex_counts(self):
        """Round 14, stepped 8, diagonal 5."""
        assert len(corner_collision_vertices(CORNER, END1, END2, "round")) == 14
        assert len(corner_collision_vertices(CORNER, END1, END2, "stepped")) == 8
        assert len(corner_collision_vertices(CORNER, END1, END2, "diagonal")) == 5

    def test_round_arc_at_radius(self):
        points = corner_collision_vertices(CORNER, END1, END2, "round")
        assert points[0] == CORNER
        for p in points[1:]:
            assert abs(math.dist(p, CORNER) - SHAPE_SIZE) < 1e-9
        assert math.dist(points[1], END1) < 1e-9
        assert math.dist(points[-1], END2) < 1e-9

    def test_round_sweeps_short_way(self):
        """Legs straddling the atan2 branch cut still sweep 90 degrees."""
        corner = (0.0, 0.0)
        end1 = (-50.0, 1e-9)
        end2 = (0.0, -50.0)
        points = corner_collision_vertices(corner, end1, end2, "round")
        for p in points[1:]:
            # every arc point stays in the lower-left quadrant
            assert p[0] <= 1e-6 and p[1] <= 1e-6

    def test_stepped_ends_at_end2(self):
        points = corner_collision_vertices(CORNER, END1, END2, "stepped")
        assert points[:2] == [CORNER, END1]
        assert math.dist(points[-1], END2) < 1e-9
        # alternating moves along each leg
        for a, b in zip(points[1:], points[2:]):
            assert abs(a[0] - b[0]) < 1e-9 or abs(a[1] - b[1]) < 1e-9

    def test_diagonal_flats(self):
        points = corner_collision_vertices(CORNER, END1, END2, "diagonal")
        assert points[0] == CORNER
        assert points[1] == END1
        assert abs(points[2][0] - 50.0) < 1e-9
        assert abs(points[2][1] - 13.5) < 1e-9
        assert abs(points[3][0] - 13.5) < 1e-9
        assert abs(points[3][1] - 50.0) < 1e-9
        assert points[4] == END2


class TestCollisionVertices:
    def test_non_corner_unchanged(self):
        verts = vertices_from_pose("square", 0.0, 0.0, 0.0)
        assert collision_vertices("square", verts, "atreides") == verts

    def test_corner_uses_building_style(self):
        verts = vertices_from_pose("corner", 0.0, 0.0, 0.0)
        assert len(collision_vertices("corner", verts, "atreides")) == 8
        assert len(collision_vertices("corner", verts, "harkonnen")) == 14
        assert len(collision_vertices("corner", verts, "choamFacility")) == 5
