"""Tests of entity transforms, extents and vertex ownership."""

import math

import numpy as np
import pytest

from cadutilities.model.database import OpenMode
from cadutilities.model.entities import (
    Circle,
    DBObject,
    DBPoint,
    Line,
    Polyline,
    Polyline2d,
    Polyline3d,
    PolylineVertex3d,
    Vertex2d,
)
from cadutilities.model.errors import (
    InvalidExtentsError,
    InvalidInputError,
    NonUniformScalingError,
    NotOpenForWriteError,
)
from cadutilities.model.geometry_primitives import Matrix3d, Point2d, Point3d, Vector3d


def xyz(p):
    return (p.x, p.y, p.z)


def square_polyline():
    pline = Polyline()
    for i, (x, y) in enumerate([(0, 0), (2, 0), (2, 2), (0, 2)]):
        pline.add_vertex_at(i, Point2d(x, y))
    pline.is_closed = True
    return pline


class TestSimpleEntities:

    def test_line_transform(self):
        line = Line(Point3d(0, 0, 0), Point3d(1, 0, 0))
        line.transform_by(Matrix3d.displacement(Vector3d(0, 5, 0)))
        assert line.start_point == Point3d(0, 5, 0)
        assert line.end_point == Point3d(1, 5, 0)
        assert line.length == pytest.approx(1.0)

    def test_line_extents(self):
        line = Line(Point3d(3, -1, 2), Point3d(1, 4, 0))
        ext = line.geometric_extents
        assert ext.min_point == Point3d(1, -1, 0)
        assert ext.max_point == Point3d(3, 4, 2)

    def test_point_extents_are_degenerate(self):
        ext = DBPoint(Point3d(1, 2, 3)).geometric_extents
        assert ext.min_point == ext.max_point == Point3d(1, 2, 3)

    def test_default_properties(self):
        line = Line(Point3d(0, 0, 0), Point3d(1, 0, 0))
        assert line.layer == "0"
        assert line.color_index == 256
        assert line.linetype == "ByLayer"
        assert line.lineweight == -1


class TestCircle:

    def test_extents_in_xy(self):
        ext = Circle(Point3d(1, 1, 0), 2.0).geometric_extents
        assert xyz(ext.min_point) == pytest.approx((-1, -1, 0))
        assert xyz(ext.max_point) == pytest.approx((3, 3, 0))

    def test_extents_of_circle_facing_x(self):
        ext = Circle(Point3d(0, 0, 0), 1.0, normal=Vector3d(1, 0, 0)).geometric_extents
        assert xyz(ext.min_point) == pytest.approx((0, -1, -1))
        assert xyz(ext.max_point) == pytest.approx((0, 1, 1))

    def test_scaling_grows_radius(self):
        circle = Circle(Point3d(1, 0, 0), 1.0)
        circle.transform_by(Matrix3d.scaling(3.0, Point3d.ORIGIN))
        assert circle.radius == pytest.approx(3.0)
        assert circle.center == Point3d(3, 0, 0)

    def test_rotation_turns_normal(self):
        circle = Circle(Point3d(0, 0, 0), 1.0)
        circle.transform_by(Matrix3d.rotation(math.pi / 2, Vector3d.X_AXIS, Point3d.ORIGIN))
        assert xyz(circle.normal) == pytest.approx((0, -1, 0), abs=1e-12)

    def test_non_uniform_scaling_rejected(self):
        circle = Circle(Point3d(0, 0, 0), 1.0)
        with pytest.raises(NonUniformScalingError):
            circle.transform_by(Matrix3d(np.diag([2.0, 1.0, 1.0, 1.0])))
        assert circle.radius == 1.0

    def test_invalid_radius(self):
        with pytest.raises(InvalidInputError):
            Circle(Point3d(0, 0, 0), 0.0)


class TestPolyline:

    def test_vertices_in_world_xy(self):
        pline = square_polyline()
        assert pline.number_of_vertices == 4
        assert pline.get_point3d_at(2) == Point3d(2, 2, 0)

    def test_add_vertex_index_out_of_range(self):
        pline = Polyline()
        with pytest.raises(InvalidInputError):
            pline.add_vertex_at(1, Point2d(0, 0))

    def test_insert_vertex_in_the_middle(self):
        pline = Polyline()
        pline.add_vertex_at(0, Point2d(0, 0))
        pline.add_vertex_at(1, Point2d(2, 0))
        pline.add_vertex_at(1, Point2d(1, 1))
        assert [pline.get_point2d_at(i) for i in range(3)] == [Point2d(0, 0), Point2d(1, 1), Point2d(2, 0)]

    def test_remove_vertex(self):
        pline = square_polyline()
        pline.remove_vertex_at(0)
        assert pline.get_point2d_at(0) == Point2d(2, 0)

    def test_elevation(self):
        pline = Polyline(elevation=3.0)
        pline.add_vertex_at(0, Point2d(1, 1))
        assert pline.get_point3d_at(0) == Point3d(1, 1, 3)
        assert pline.elevation == pytest.approx(3.0)

    def test_extents_include_bulge(self):
        pline = Polyline()
        pline.add_vertex_at(0, Point2d(0, 0), bulge=1.0)
        pline.add_vertex_at(1, Point2d(2, 0))
        ext = pline.geometric_extents
        assert xyz(ext.min_point) == pytest.approx((0, -1, 0), abs=1e-12)
        assert xyz(ext.max_point) == pytest.approx((2, 0, 0), abs=1e-12)

    def test_closing_segment_bulge_counts_only_when_closed(self):
        pline = Polyline()
        pline.add_vertex_at(0, Point2d(0, 0))
        pline.add_vertex_at(1, Point2d(2, 0), bulge=1.0)
        assert pline.geometric_extents.max_point.y == pytest.approx(0.0)
        pline.is_closed = True
        # Closing arc runs counter-clockwise from (2, 0) back to (0, 0), above the chord
        assert pline.geometric_extents.max_point.y == pytest.approx(1.0)

    def test_empty_polyline_has_no_extents(self):
        with pytest.raises(InvalidExtentsError):
            Polyline().geometric_extents

    def test_rotation_about_x_leaves_the_xy_plane(self):
        pline = Polyline()
        pline.add_vertex_at(0, Point2d(1, 2))
        pline.transform_by(Matrix3d.rotation(math.pi / 2, Vector3d.X_AXIS, Point3d.ORIGIN))
        assert xyz(pline.get_point3d_at(0)) == pytest.approx((1, 0, 2), abs=1e-12)
        assert xyz(pline.normal) == pytest.approx((0, -1, 0), abs=1e-12)
        assert pline.get_bulge_at(0) == 0.0

    def test_scaling_scales_widths_and_keeps_bulges(self):
        pline = Polyline()
        pline.add_vertex_at(0, Point2d(1, 0), bulge=0.5, start_width=0.1, end_width=0.2)
        pline.add_vertex_at(1, Point2d(3, 0))
        pline.transform_by(Matrix3d.scaling(2.0, Point3d.ORIGIN))
        assert pline.get_point3d_at(0) == Point3d(2, 0, 0)
        assert pline.get_point3d_at(1) == Point3d(6, 0, 0)
        assert pline.get_start_width_at(0) == pytest.approx(0.2)
        assert pline.get_end_width_at(0) == pytest.approx(0.4)
        assert pline.get_bulge_at(0) == 0.5

    def test_repeated_rotation_keeps_plane_coordinates_and_widths(self):
        pline = Polyline()
        pline.add_vertex_at(0, Point2d(1.3, 0.7), start_width=0.5, end_width=0.25)
        pline.add_vertex_at(1, Point2d(3.1, 2.9))
        turn = Matrix3d.rotation(0.3, Vector3d(1, 1, 1), Point3d(2, 0, 0))
        for _ in range(10):
            pline.transform_by(turn)
        assert pline.get_point2d_at(0) == Point2d(1.3, 0.7)
        assert pline.get_point2d_at(1) == Point2d(3.1, 2.9)
        assert pline.get_start_width_at(0) == 0.5
        assert pline.get_end_width_at(0) == 0.25

    def test_negative_scaling_mirrors_through_base_point(self):
        pline = square_polyline()
        pline.transform_by(Matrix3d.scaling(-1.0, Point3d(1, 1, 0)))
        assert xyz(pline.get_point3d_at(0)) == pytest.approx((2, 2, 0), abs=1e-12)
        assert xyz(pline.get_point3d_at(2)) == pytest.approx((0, 0, 0), abs=1e-12)

    def test_non_uniform_scaling_rejected(self):
        with pytest.raises(NonUniformScalingError):
            square_polyline().transform_by(Matrix3d(np.diag([1.0, 3.0, 1.0, 1.0])))


class TestVertexOwningPolylines:

    def test_non_resident_iteration_yields_vertices(self):
        pline = Polyline2d()
        pline.append_vertex(Vertex2d(Point3d(0, 0, 0)))
        pline.append_vertex(Vertex2d(Point3d(1, 0, 0)))
        entries = list(pline)
        assert all(isinstance(e, Vertex2d) for e in entries)

    def test_resident_iteration_yields_ids(self, database):
        pline = Polyline2d()
        pline.append_vertex(Vertex2d(Point3d(0, 0, 0)))
        pline_id = database.add(pline)
        pline.append_vertex(Vertex2d(Point3d(1, 0, 0)))

        ids = list(pline)
        assert len(ids) == 2
        for vid in ids:
            vertex = database.get(vid)
            assert isinstance(vertex, Vertex2d)
            assert vertex.owner_id == pline_id
        assert database.entity_ids() == [pline_id]

    def test_wrong_vertex_type_rejected(self):
        with pytest.raises(InvalidInputError):
            Polyline3d().append_vertex(Vertex2d(Point3d(0, 0, 0)))

    def test_resident_polyline3d_transform_moves_vertices(self, database):
        pline = Polyline3d()
        for p in [Point3d(0, 0, 0), Point3d(1, 1, 1)]:
            pline.append_vertex(PolylineVertex3d(p))
        database.add(pline)

        pline.transform_by(Matrix3d.displacement(Vector3d(0, 0, 10)))

        positions = [database.get(vid).position for vid in pline]
        assert positions == [Point3d(0, 0, 10), Point3d(1, 1, 11)]
        assert database.transaction_manager.number_of_active_transactions == 0

    def test_polyline2d_extents(self, database):
        pline = Polyline2d()
        for p in [Point3d(0, 0, 0), Point3d(4, 1, 0), Point3d(-1, 3, 0)]:
            pline.append_vertex(Vertex2d(p))
        database.add(pline)
        ext = pline.geometric_extents
        assert ext.min_point == Point3d(-1, 0, 0)
        assert ext.max_point == Point3d(4, 3, 0)

    def test_polyline2d_scaling_scales_vertex_widths(self):
        pline = Polyline2d()
        pline.append_vertex(Vertex2d(Point3d(1, 0, 0), start_width=0.5, end_width=0.5))
        pline.transform_by(Matrix3d.scaling(4.0, Point3d.ORIGIN))
        (vertex,) = list(pline)
        assert vertex.position == Point3d(4, 0, 0)
        assert vertex.start_width == pytest.approx(2.0)

    def test_polyline2d_rotation_keeps_vertex_widths(self):
        pline = Polyline2d()
        pline.append_vertex(Vertex2d(Point3d(1, 0, 0), start_width=0.3, end_width=0.7))
        pline.transform_by(Matrix3d.rotation(1.1, Vector3d(0, 0, 1), Point3d(5, 5, 0)))
        (vertex,) = list(pline)
        assert vertex.start_width == 0.3
        assert vertex.end_width == 0.7

    def test_polyline2d_rejects_non_uniform_scaling(self):
        pline = Polyline2d()
        pline.append_vertex(Vertex2d(Point3d(1, 0, 0)))
        with pytest.raises(NonUniformScalingError):
            pline.transform_by(Matrix3d(np.diag([1.0, 1.0, 2.0, 1.0])))


class TestWriteAccess:

    def test_opened_for_read_cannot_be_modified(self, database):
        line_id = database.add(Line(Point3d(0, 0, 0), Point3d(1, 0, 0)))
        with database.transaction_manager.start_transaction() as tr:
            line = tr.get_object(line_id, OpenMode.FOR_READ)
            with pytest.raises(NotOpenForWriteError):
                line.transform_by(Matrix3d.displacement(Vector3d(1, 0, 0)))

    def test_open_mode_released_after_transaction(self, database):
        line = Line(Point3d(0, 0, 0), Point3d(1, 0, 0))
        line_id = database.add(line)
        with database.transaction_manager.start_transaction() as tr:
            tr.get_object(line_id, OpenMode.FOR_READ)
        assert line.open_mode is None
        line.transform_by(Matrix3d.displacement(Vector3d(1, 0, 0)))
        assert line.start_point == Point3d(1, 0, 0)


class TestSerialization:

    def test_polyline_round_trip(self):
        pline = square_polyline()
        pline.set_bulge_at(1, 0.25)
        pline.layer = "WALLS"
        pline.transform_by(Matrix3d.rotation(0.3, Vector3d(1, 1, 1), Point3d(2, 0, 0)))

        copy = DBObject.from_dict(pline.to_dict())

        assert isinstance(copy, Polyline)
        assert copy.is_closed
        assert copy.layer == "WALLS"
        assert copy.get_bulge_at(1) == 0.25
        for i in range(4):
            assert xyz(copy.get_point3d_at(i)) == pytest.approx(xyz(pline.get_point3d_at(i)))

    def test_unknown_type_rejected(self):
        with pytest.raises(InvalidInputError):
            DBObject.from_dict({"type": "Spline"})

    def test_non_resident_polyline3d_cannot_be_serialized(self):
        with pytest.raises(InvalidInputError):
            Polyline3d().to_dict()
