"""
Drawing Entities
================
Defines the objects stored in a drawing database and how they follow a
transformation matrix.

Classes:
    DBObject: Anything that can live in a Database.
    Entity: A DBObject with display properties, geometry and extents.
    Curve: Base of the linear entities.
    Line, Circle, DBPoint: Simple entities.
    Polyline: Lightweight planar polyline with inline 2D vertices.
    Polyline2d / Vertex2d: Planar polyline owning vertex sub-objects.
    Polyline3d / PolylineVertex3d: Non-planar polyline owning vertex sub-objects.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Union, TYPE_CHECKING

from cadutilities.config import DEFAULT_DRAWING_DEFAULTS, DrawingDefaults
from cadutilities.model.database import ObjectId, OpenMode, working_database
from cadutilities.model.errors import (
    InvalidExtentsError,
    InvalidInputError,
    NonUniformScalingError,
    NotOpenForWriteError,
)
from cadutilities.model.geometry_primitives import Extents3d, Matrix3d, Point2d, Point3d, Vector3d
from cadutilities.model.geometry_utils import (
    PlaneFrame,
    arc_world_extrema,
    bulge_to_arc,
    circle_half_extents,
    plane_frame,
)

if TYPE_CHECKING:
    from cadutilities.model.database import Database

# Attributes that describe database membership rather than object state
_MEMBERSHIP_ATTRS = frozenset({"_database", "_object_id", "_open_mode"})

# Registry used to rebuild objects from their serialized form
OBJECT_TYPES: Dict[str, type] = {}


def _point_to_list(point: Point3d) -> List[float]:
    return [point.x, point.y, point.z]


def _vector_to_list(vector: Vector3d) -> List[float]:
    return [vector.x, vector.y, vector.z]


class DBObject:
    """
    Base of every object that can be stored in a Database.
    """

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        OBJECT_TYPES[cls.__name__] = cls

    def __init__(self) -> None:
        self._database: Optional[Database] = None
        self._object_id: Optional[ObjectId] = None
        self._open_mode: Optional[OpenMode] = None
        self._erased: bool = False
        self.owner_id: Optional[ObjectId] = None

    def __repr__(self) -> str:
        handle = self._object_id if self._object_id is not None else "-"
        return f"{self.__class__.__name__}(handle={handle})"

    @property
    def object_id(self) -> Optional[ObjectId]:
        return self._object_id

    @property
    def database(self) -> Optional[Database]:
        return self._database

    @property
    def is_resident(self) -> bool:
        return self._database is not None

    @property
    def is_erased(self) -> bool:
        return self._erased

    @property
    def open_mode(self) -> Optional[OpenMode]:
        return self._open_mode

    @property
    def is_write_enabled(self) -> bool:
        return self._open_mode != OpenMode.FOR_READ

    def assert_write_enabled(self) -> None:
        """
        Raises:
            NotOpenForWriteError: If the object was opened for read in a transaction.
        """
        if not self.is_write_enabled:
            raise NotOpenForWriteError(f"{self!r} is not open for write.")

    def erase(self) -> None:
        self.assert_write_enabled()
        self._erased = True

    def transform_by(self, matrix: Matrix3d) -> None:
        raise NotImplementedError(f"{self.__class__.__name__} cannot be transformed.")

    # --- Database hooks ---

    def _set_database(self, database: Database, object_id: ObjectId) -> None:
        self._database = database
        self._object_id = object_id

    def _detach(self) -> None:
        self._database = None
        self._object_id = None
        self._open_mode = None

    def _snapshot(self) -> Dict[str, Any]:
        return {
            key: (list(value) if isinstance(value, list) else value)
            for key, value in vars(self).items()
            if key not in _MEMBERSHIP_ATTRS
        }

    def _restore(self, state: Dict[str, Any]) -> None:
        self.__dict__.update(state)

    # --- Serialization ---

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.__class__.__name__}
        if self.owner_id is not None:
            data["owner"] = self.owner_id.handle
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DBObject:
        obj_type = OBJECT_TYPES.get(data.get("type", ""))
        if obj_type is None:
            raise InvalidInputError(f"Unknown object type: {data.get('type')!r}")
        obj = obj_type._from_dict(data)
        if "owner" in data:
            obj.owner_id = ObjectId(int(data["owner"]))
        return obj

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> DBObject:
        raise NotImplementedError


class Entity(DBObject):
    """A drawable object with layer, color, linetype and lineweight."""

    def __init__(self) -> None:
        super().__init__()
        self._apply_defaults(DEFAULT_DRAWING_DEFAULTS)

    def _apply_defaults(self, defaults: DrawingDefaults) -> None:
        self.layer = defaults.layer
        self.color_index = defaults.color_index
        self.linetype = defaults.linetype
        self.lineweight = defaults.lineweight

    def set_database_defaults(self, database: Optional[Database] = None) -> None:
        """
        Reset display properties to the defaults of `database`.

        Falls back to the owning database, then to the working database.
        """
        database = database or self._database or working_database()
        self.assert_write_enabled()
        self._apply_defaults(database.defaults)

    @property
    def geometric_extents(self) -> Extents3d:
        """
        Raises:
            InvalidExtentsError: If the entity has no geometry.
        """
        extents = Extents3d.from_points(self._extent_points())
        if extents is None:
            raise InvalidExtentsError(f"{self!r} has no geometry to bound.")
        return extents

    def _extent_points(self) -> List[Point3d]:
        raise NotImplementedError

    def _properties_dict(self) -> Dict[str, Any]:
        return {
            "layer": self.layer,
            "color_index": self.color_index,
            "linetype": self.linetype,
            "lineweight": self.lineweight,
        }

    def _load_properties(self, data: Dict[str, Any]) -> None:
        props = data.get("properties", {})
        self.layer = props.get("layer", self.layer)
        self.color_index = int(props.get("color_index", self.color_index))
        self.linetype = props.get("linetype", self.linetype)
        self.lineweight = int(props.get("lineweight", self.lineweight))

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["properties"] = self._properties_dict()
        return data


class Curve(Entity):
    """Base of the linear entities."""

    @property
    def is_closed(self) -> bool:
        return False


def _require_similarity(entity: Entity, matrix: Matrix3d) -> None:
    if not matrix.is_uniscaled_ortho():
        raise NonUniformScalingError(f"{entity!r} can only be transformed by a uniform scale and rotation.")


class Line(Curve):

    def __init__(self, start_point: Point3d, end_point: Point3d) -> None:
        super().__init__()
        self.start_point = start_point
        self.end_point = end_point

    @property
    def length(self) -> float:
        return self.start_point.distance_to(self.end_point)

    def transform_by(self, matrix: Matrix3d) -> None:
        self.assert_write_enabled()
        self.start_point = self.start_point.transform_by(matrix)
        self.end_point = self.end_point.transform_by(matrix)

    def _extent_points(self) -> List[Point3d]:
        return [self.start_point, self.end_point]

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["start"] = _point_to_list(self.start_point)
        data["end"] = _point_to_list(self.end_point)
        return data

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> Line:
        line = cls(Point3d(*data["start"]), Point3d(*data["end"]))
        line._load_properties(data)
        return line


class DBPoint(Entity):

    def __init__(self, position: Point3d) -> None:
        super().__init__()
        self.position = position

    def transform_by(self, matrix: Matrix3d) -> None:
        self.assert_write_enabled()
        self.position = self.position.transform_by(matrix)

    def _extent_points(self) -> List[Point3d]:
        return [self.position]

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["position"] = _point_to_list(self.position)
        return data

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> DBPoint:
        point = cls(Point3d(*data["position"]))
        point._load_properties(data)
        return point


class Circle(Curve):

    def __init__(self, center: Point3d, radius: float, normal: Vector3d = Vector3d.Z_AXIS) -> None:
        super().__init__()
        if radius <= 0.0:
            raise InvalidInputError(f"Circle radius must be positive, got {radius}.")
        if normal.is_zero_length():
            raise InvalidInputError("Circle normal must not be a zero-length vector.")
        self.center = center
        self.radius = radius
        self.normal = normal.normalize()

    @property
    def is_closed(self) -> bool:
        return True

    def transform_by(self, matrix: Matrix3d) -> None:
        self.assert_write_enabled()
        _require_similarity(self, matrix)
        self.center = self.center.transform_by(matrix)
        self.radius = self.radius * matrix.scale()
        self.normal = self.normal.transform_by(matrix).normalize()

    def _extent_points(self) -> List[Point3d]:
        half = circle_half_extents(self.radius, self.normal)
        c = self.center.to_array()
        return [Point3d.from_array(c - half), Point3d.from_array(c + half)]

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["center"] = _point_to_list(self.center)
        data["radius"] = self.radius
        data["normal"] = _vector_to_list(self.normal)
        return data

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> Circle:
        circle = cls(Point3d(*data["center"]), float(data["radius"]), Vector3d(*data["normal"]))
        circle._load_properties(data)
        return circle


# --- Lightweight polyline ---

@dataclass(frozen=True)
class PolylineVertex:
    """Inline vertex of a lightweight polyline, in plane coordinates."""
    point: Point2d
    bulge: float = 0.0
    start_width: float = 0.0
    end_width: float = 0.0


class Polyline(Curve):
    """
    Lightweight polyline.

    Vertices are 2D points in the polyline's plane. The plane is kept as an
    orthonormal frame so rotations about any axis stay exact.

    Args:
        normal: Normal of the polyline plane.
        elevation: Distance of the plane from the world origin along `normal`.
    """

    def __init__(self, normal: Vector3d = Vector3d.Z_AXIS, elevation: float = 0.0) -> None:
        super().__init__()
        self._vertices: List[PolylineVertex] = []
        self._frame: PlaneFrame = plane_frame(normal, elevation)
        self._closed = False

    @property
    def number_of_vertices(self) -> int:
        return len(self._vertices)

    @property
    def normal(self) -> Vector3d:
        return self._frame.normal

    @property
    def elevation(self) -> float:
        return (self._frame.origin - Point3d.ORIGIN).dot(self.normal)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @is_closed.setter
    def is_closed(self, value: bool) -> None:
        self.assert_write_enabled()
        self._closed = bool(value)

    def _check_index(self, index: int, upper: Optional[int] = None) -> None:
        upper = self.number_of_vertices - 1 if upper is None else upper
        if not 0 <= index <= upper:
            raise InvalidInputError(f"Vertex index {index} out of range [0, {upper}].")

    def add_vertex_at(
        self,
        index: int,
        point: Point2d,
        bulge: float = 0.0,
        start_width: float = 0.0,
        end_width: float = 0.0,
    ) -> None:
        """Insert a vertex before position `index` (``index == number_of_vertices`` appends)."""
        self.assert_write_enabled()
        self._check_index(index, upper=self.number_of_vertices)
        self._vertices.insert(index, PolylineVertex(point, bulge, start_width, end_width))

    def remove_vertex_at(self, index: int) -> None:
        self.assert_write_enabled()
        self._check_index(index)
        del self._vertices[index]

    def get_point2d_at(self, index: int) -> Point2d:
        self._check_index(index)
        return self._vertices[index].point

    def get_point3d_at(self, index: int) -> Point3d:
        """World coordinates of the vertex at `index`."""
        return self._frame.to_world(self.get_point2d_at(index))

    def get_bulge_at(self, index: int) -> float:
        self._check_index(index)
        return self._vertices[index].bulge

    def set_bulge_at(self, index: int, bulge: float) -> None:
        self.assert_write_enabled()
        self._check_index(index)
        self._vertices[index] = replace(self._vertices[index], bulge=bulge)

    def get_start_width_at(self, index: int) -> float:
        self._check_index(index)
        return self._vertices[index].start_width

    def get_end_width_at(self, index: int) -> float:
        self._check_index(index)
        return self._vertices[index].end_width

    def transform_by(self, matrix: Matrix3d) -> None:
        """
        Map the plane frame through `matrix`.

        Plane coordinates and widths grow by the uniform scale factor; bulges
        are relative to the plane normal and stay unchanged.

        Raises:
            NonUniformScalingError: If `matrix` is not a similarity transform.
        """
        self.assert_write_enabled()
        _require_similarity(self, matrix)
        factor = matrix.scale()
        self._frame = PlaneFrame(
            origin=self._frame.origin.transform_by(matrix),
            x_axis=self._frame.x_axis.transform_by(matrix).normalize(),
            y_axis=self._frame.y_axis.transform_by(matrix).normalize(),
        )
        if factor != 1.0:
            self._vertices = [
                PolylineVertex(
                    Point2d(v.point.x * factor, v.point.y * factor),
                    v.bulge,
                    v.start_width * factor,
                    v.end_width * factor,
                )
                for v in self._vertices
            ]

    def _segments(self) -> Iterator[tuple[PolylineVertex, PolylineVertex]]:
        n = self.number_of_vertices
        last = n if self._closed else n - 1
        for i in range(max(last, 0)):
            yield self._vertices[i], self._vertices[(i + 1) % n]

    def _extent_points(self) -> List[Point3d]:
        points = [self.get_point3d_at(i) for i in range(self.number_of_vertices)]
        for start, end in self._segments():
            arc = bulge_to_arc(start.point, end.point, start.bulge)
            if arc is not None:
                points.extend(arc_world_extrema(arc, self._frame))
        return points

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["closed"] = self._closed
        data["origin"] = _point_to_list(self._frame.origin)
        data["x_axis"] = _vector_to_list(self._frame.x_axis)
        data["y_axis"] = _vector_to_list(self._frame.y_axis)
        data["vertices"] = [
            [v.point.x, v.point.y, v.bulge, v.start_width, v.end_width] for v in self._vertices
        ]
        return data

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> Polyline:
        pline = cls()
        pline._frame = PlaneFrame(
            origin=Point3d(*data["origin"]),
            x_axis=Vector3d(*data["x_axis"]),
            y_axis=Vector3d(*data["y_axis"]),
        )
        pline._closed = bool(data.get("closed", False))
        pline._vertices = [
            PolylineVertex(Point2d(x, y), bulge, sw, ew) for x, y, bulge, sw, ew in data["vertices"]
        ]
        pline._load_properties(data)
        return pline


# --- Polylines with vertex sub-objects ---

class Vertex(Entity):
    """Base of polyline vertex sub-objects."""

    def __init__(self, position: Point3d) -> None:
        super().__init__()
        self.position = position

    def transform_by(self, matrix: Matrix3d) -> None:
        self.assert_write_enabled()
        self.position = self.position.transform_by(matrix)

    def _extent_points(self) -> List[Point3d]:
        return [self.position]

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["position"] = _point_to_list(self.position)
        return data


class Vertex2d(Vertex):

    def __init__(
        self,
        position: Point3d,
        bulge: float = 0.0,
        start_width: float = 0.0,
        end_width: float = 0.0,
    ) -> None:
        super().__init__(position)
        self.bulge = bulge
        self.start_width = start_width
        self.end_width = end_width

    def transform_by(self, matrix: Matrix3d) -> None:
        super().transform_by(matrix)
        factor = matrix.scale()
        if factor != 1.0:
            self.start_width *= factor
            self.end_width *= factor

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["bulge"] = self.bulge
        data["widths"] = [self.start_width, self.end_width]
        return data

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> Vertex2d:
        start_width, end_width = data.get("widths", (0.0, 0.0))
        vertex = cls(Point3d(*data["position"]), float(data.get("bulge", 0.0)), start_width, end_width)
        vertex._load_properties(data)
        return vertex


class PolylineVertex3d(Vertex):

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> PolylineVertex3d:
        vertex = cls(Point3d(*data["position"]))
        vertex._load_properties(data)
        return vertex


VertexEntry = Union[ObjectId, Vertex]


class _VertexOwningPolyline(Curve):
    """
    Polyline whose vertices are separate objects.

    While the polyline is not database-resident the vertices are held
    directly and iteration yields them. Once resident, every vertex is
    stored in the database and iteration yields ObjectIds.
    """

    vertex_type: ClassVar[type] = Vertex

    def __init__(self, closed: bool = False) -> None:
        super().__init__()
        self._vertices: List[VertexEntry] = []
        self._closed = closed

    def __iter__(self) -> Iterator[VertexEntry]:
        return iter(list(self._vertices))

    def __len__(self) -> int:
        return len(self._vertices)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @is_closed.setter
    def is_closed(self, value: bool) -> None:
        self.assert_write_enabled()
        self._closed = bool(value)

    def append_vertex(self, vertex: Vertex) -> Optional[ObjectId]:
        """
        Append `vertex`; returns its ObjectId when the polyline is resident.

        Raises:
            InvalidInputError: If the vertex type does not match the polyline.
        """
        self.assert_write_enabled()
        if not isinstance(vertex, self.vertex_type):
            raise InvalidInputError(
                f"{self.__class__.__name__} expects {self.vertex_type.__name__}, got {vertex.__class__.__name__}."
            )
        if self._database is None:
            self._vertices.append(vertex)
            return None

        vertex.owner_id = self._object_id
        vertex_id = self._database.add(vertex)
        self._vertices.append(vertex_id)
        return vertex_id

    def _set_database(self, database: Database, object_id: ObjectId) -> None:
        super()._set_database(database, object_id)
        # Move vertices held in memory into the database
        entries: List[VertexEntry] = []
        for entry in self._vertices:
            if isinstance(entry, Vertex):
                entry.owner_id = object_id
                entries.append(database.add(entry))
            else:
                entries.append(entry)
        self._vertices = entries

    def _detach(self) -> None:
        # Take the vertex objects back into memory
        self._vertices = [
            self._database.get(entry, open_erased=True) if isinstance(entry, ObjectId) else entry
            for entry in self._vertices
        ]
        super()._detach()

    def _vertex_positions(self) -> List[Point3d]:
        if self._database is None:
            return [v.position for v in self._vertices]
        with self._database.transaction_manager.start_transaction() as tr:
            return [tr.get_object(vid, OpenMode.FOR_READ).position for vid in self._vertices]

    def _transform_vertices(self, matrix: Matrix3d) -> None:
        if self._database is None:
            for vertex in self._vertices:
                vertex.transform_by(matrix)
            return

        with self._database.transaction_manager.start_transaction() as tr:
            for vertex_id in self._vertices:
                tr.get_object(vertex_id, OpenMode.FOR_WRITE).transform_by(matrix)
            tr.commit()

    def transform_by(self, matrix: Matrix3d) -> None:
        self.assert_write_enabled()
        self._transform_vertices(matrix)

    def erase(self) -> None:
        super().erase()
        if self._database is None:
            return
        with self._database.transaction_manager.start_transaction() as tr:
            for vertex_id in self._vertices:
                tr.get_object(vertex_id, OpenMode.FOR_WRITE).erase()
            tr.commit()

    def _extent_points(self) -> List[Point3d]:
        return self._vertex_positions()

    def to_dict(self) -> Dict[str, Any]:
        if self._database is None:
            raise InvalidInputError(f"{self!r} must be database-resident to be serialized.")
        data = super().to_dict()
        data["closed"] = self._closed
        data["vertices"] = [vid.handle for vid in self._vertices]
        return data

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> _VertexOwningPolyline:
        pline = cls(closed=bool(data.get("closed", False)))
        pline._vertices = [ObjectId(int(handle)) for handle in data["vertices"]]
        pline._load_properties(data)
        return pline


class Polyline2d(_VertexOwningPolyline):
    """Planar polyline owning Vertex2d sub-objects."""

    vertex_type = Vertex2d

    def transform_by(self, matrix: Matrix3d) -> None:
        """
        Raises:
            NonUniformScalingError: If `matrix` is not a similarity transform.
        """
        self.assert_write_enabled()
        _require_similarity(self, matrix)
        self._transform_vertices(matrix)


class Polyline3d(_VertexOwningPolyline):
    """Polyline owning PolylineVertex3d sub-objects; vertices need not be coplanar."""

    vertex_type = PolylineVertex3d


# Internal base classes are not stored by name
for _internal in ("Vertex", "_VertexOwningPolyline", "Curve", "Entity"):
    OBJECT_TYPES.pop(_internal, None)
