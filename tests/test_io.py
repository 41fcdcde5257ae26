"""Tests of HDF5 drawing persistence."""

import h5py
import pytest

from cadutilities import drawing_tools
from cadutilities.config import DrawingDefaults
from cadutilities.model.database import Database, ObjectId
from cadutilities.model.entities import Circle, Line, Polyline, Polyline2d, Polyline3d, PolylineVertex3d, Vertex2d
from cadutilities.model.errors import ObjectNotFoundError
from cadutilities.model.geometry_primitives import Point3d, Vector3d
from cadutilities.model.io import DrawingIO


@pytest.fixture
def drawing():
    db = Database(defaults=DrawingDefaults(layer="PLAN", color_index=5))
    line = Line(Point3d(0, 0, 0), Point3d(4, 0, 0))
    line.layer = "AXES"
    db.add(line)
    db.add(Circle(Point3d(1, 1, 1), 2.5, normal=Vector3d(0, 1, 0)))
    pline = drawing_tools.create_polyline([Point3d(0, 0), Point3d(2, 0), Point3d(2, 3)])
    pline.set_bulge_at(0, 0.5)
    db.add(pline)
    pline2d = Polyline2d(closed=True)
    for p in [Point3d(0, 0, 0), Point3d(1, 0, 0), Point3d(1, 1, 0)]:
        pline2d.append_vertex(Vertex2d(p, start_width=0.1))
    db.add(pline2d)
    return db


class TestDrawingIO:

    def test_round_trip(self, drawing, tmp_path):
        path = str(tmp_path / "drawing.h5")
        DrawingIO.save_database(drawing, path)
        loaded = DrawingIO.load_database(path)

        assert loaded.defaults == DrawingDefaults(layer="PLAN", color_index=5)
        assert loaded.entity_ids() == drawing.entity_ids()

        line, circle, pline, pline2d = (loaded.get(eid) for eid in loaded.entity_ids())
        assert isinstance(line, Line) and line.layer == "AXES"
        assert line.end_point == Point3d(4, 0, 0)
        assert isinstance(circle, Circle)
        assert circle.radius == 2.5
        assert circle.normal == Vector3d(0, 1, 0)
        assert isinstance(pline, Polyline)
        assert pline.get_bulge_at(0) == 0.5
        assert drawing_tools.get_vertices(pline) == [Point3d(0, 0, 0), Point3d(2, 0, 0), Point3d(2, 3, 0)]
        assert isinstance(pline2d, Polyline2d) and pline2d.is_closed
        assert drawing_tools.get_vertices(pline2d) == [Point3d(0, 0, 0), Point3d(1, 0, 0), Point3d(1, 1, 0)]
        vertex = loaded.get(list(pline2d)[0])
        assert vertex.owner_id == pline2d.object_id
        assert vertex.start_width == pytest.approx(0.1)

    def test_new_handles_continue_after_load(self, drawing, tmp_path):
        path = str(tmp_path / "drawing.h5")
        DrawingIO.save_database(drawing, path)
        loaded = DrawingIO.load_database(path)
        new_id = loaded.add(Line(Point3d(0, 0, 0), Point3d(1, 1, 1)))
        # four entities plus three Polyline2d vertices were loaded
        assert new_id == ObjectId(8)

    def test_erased_handles_are_not_reused_after_load(self, tmp_path):
        db = Database()
        pline = Polyline3d()
        for p in [Point3d(0, 0, 0), Point3d(1, 2, 3)]:
            pline.append_vertex(PolylineVertex3d(p))
        pline_id = db.add(pline)
        erased_id = list(pline)[-1]
        db.get(erased_id).erase()
        path = str(tmp_path / "drawing.h5")
        DrawingIO.save_database(db, path)

        with h5py.File(path, "r") as f:
            assert f.attrs["handseed"] == 4

        loaded = DrawingIO.load_database(path)
        new_id = loaded.add(Line(Point3d(0, 0, 0), Point3d(1, 1, 1)))
        assert new_id == ObjectId(4)
        assert erased_id not in loaded
        with pytest.raises(ObjectNotFoundError):
            drawing_tools.get_vertices(loaded.get(pline_id))

    def test_erased_objects_are_not_saved(self, drawing, tmp_path):
        path = str(tmp_path / "drawing.h5")
        first_id = drawing.entity_ids()[0]
        drawing.get(first_id).erase()
        DrawingIO.save_database(drawing, path)
        loaded = DrawingIO.load_database(path)
        assert first_id not in loaded
        assert len(loaded.entity_ids()) == 3

    def test_large_drawing_uses_dataset(self, tmp_path):
        db = Database()
        for i in range(1000):
            db.add(Line(Point3d(i, 0, 0), Point3d(i, 1, 0)))
        path = str(tmp_path / "large.h5")
        DrawingIO.save_database(db, path)

        with h5py.File(path, "r") as f:
            assert "objects" in f["objects"]

        loaded = DrawingIO.load_database(path)
        assert len(loaded.entity_ids()) == 1000

    def test_not_an_hdf5_file(self, tmp_path):
        path = tmp_path / "drawing.txt"
        path.write_text("not a drawing")
        with pytest.raises(ValueError):
            DrawingIO.load_database(str(path))

    def test_empty_drawing(self, tmp_path):
        path = str(tmp_path / "empty.h5")
        DrawingIO.save_database(Database(), path)
        assert DrawingIO.load_database(path).entity_ids() == []
