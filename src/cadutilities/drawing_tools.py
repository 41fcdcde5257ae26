"""
Drawing Tools
=============
Static helpers that move, rotate, scale, sort and inspect drawing entities.

Every transform is a single matrix handed to ``Entity.transform_by``; vertex
extraction reads vertex sub-objects through a short-lived transaction.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, TypeVar, Union

from cadutilities.model.database import Database, OpenMode, working_database
from cadutilities.model.entities import (
    Curve,
    Entity,
    Polyline,
    Polyline2d,
    Polyline3d,
    PolylineVertex3d,
    Vertex2d,
)
from cadutilities.model.errors import InvalidInputError
from cadutilities.model.geometry_primitives import AngleMode, Axis, Matrix3d, Point2d, Point3d, Vector3d
from cadutilities.model.geometry_utils import midpoint, to_radians

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=Entity)


def create_polyline(vertices: Iterable[Point3d]) -> Polyline:
    """
    Creates a Polyline with default settings (layer, color, etc.) with the specified vertices.
    Only the X and Y coordinates are taken into account, width is zero, and no bulges are added.

    Args:
        vertices: Vertices that will compose the polyline.
    """
    polyline = Polyline()
    polyline.set_database_defaults()

    for i, vertex in enumerate(vertices):
        polyline.add_vertex_at(i, Point2d(vertex.x, vertex.y), 0, 0, 0)

    return polyline


def get_midpoint(point1: Point3d, point2: Point3d) -> Point3d:
    """Gets the midpoint between two points."""
    return midpoint(point1, point2)


def get_vertices(polyline: Curve, database: Optional[Database] = None) -> List[Point3d]:
    """
    Gets the vertices of a polyline.

    Vertex sub-objects of Polyline2d and Polyline3d are opened for read in a
    transaction that is always disposed before returning.

    Args:
        polyline: Polyline, Polyline2d, or Polyline3d from which to obtain the vertices.
        database: Database used to open vertex sub-objects. Defaults to the
            polyline's own database, then to the working database.

    Returns:
        The vertex positions in world coordinates; an empty list for any other curve type.
    """
    if isinstance(polyline, Polyline):
        return [polyline.get_point3d_at(i) for i in range(polyline.number_of_vertices)]

    if isinstance(polyline, Polyline2d):
        vertex_type: type = Vertex2d
    elif isinstance(polyline, Polyline3d):
        vertex_type = PolylineVertex3d
    else:
        logger.debug(f"get_vertices: {polyline.__class__.__name__} has no vertices.")
        return []

    database = database or polyline.database or working_database()
    vertices: List[Point3d] = []

    with database.transaction_manager.start_transaction() as transaction:
        for entry in polyline:
            if isinstance(entry, vertex_type):
                vertices.append(entry.position)
            else:
                vertex = transaction.get_object(entry, OpenMode.FOR_READ)
                vertices.append(vertex.position)

    return vertices


def move(entity: Entity, from_point: Point3d, to_point: Point3d) -> None:
    """Moves an object in the drawing."""
    move_vector = to_point - from_point
    move_matrix = Matrix3d.displacement(move_vector)

    logger.debug(f"Moving {entity!r} by {move_vector}")
    entity.transform_by(move_matrix)


def rotate(
    entity: Entity,
    base_point: Point3d,
    rotation_angle: float,
    rotation_axis: Union[Axis, Vector3d] = Axis.Z,
    mode: AngleMode = AngleMode.DEGREES,
) -> None:
    """
    Rotates an object in the drawing.

    Args:
        entity: Entity to rotate.
        base_point: Point the rotation axis passes through.
        rotation_angle: Angle in degrees or radians depending on `mode`.
        rotation_axis: X, Y or Z axis (2D rotation in the plane normal to it),
            or a vector representing a custom axis.
        mode: States if the angle entered is in degrees or radians.

    Raises:
        InvalidInputError: If a custom axis has zero length.
    """
    if isinstance(rotation_axis, Axis):
        rotate_vector = Vector3d.for_axis(rotation_axis)
    else:
        rotate_vector = rotation_axis

    angle = to_radians(rotation_angle, mode)
    rotate_matrix = Matrix3d.rotation(angle, rotate_vector, base_point)

    logger.debug(f"Rotating {entity!r} by {angle:.6f} rad about {rotate_vector} through {base_point}")
    entity.transform_by(rotate_matrix)


def scale(entity: Entity, base_point: Point3d, scale_factor: float) -> None:
    """
    Scales an object in the drawing.

    Raises:
        InvalidInputError: If `scale_factor` is zero.
    """
    scale_matrix = Matrix3d.scaling(scale_factor, base_point)

    logger.debug(f"Scaling {entity!r} by {scale_factor} about {base_point}")
    entity.transform_by(scale_matrix)


def sort_entities(entities: Sequence[EntityT], axis: Axis) -> List[EntityT]:
    """
    Sorts entities so that their order corresponds to their position along `axis`.

    The entity's position is obtained from the geometric_extents.min_point
    property. Entities at the same position keep their relative order.

    Args:
        entities: Entities that will be sorted.
        axis: Axis along which the entities will be sorted.

    Returns:
        A new list; the input is left untouched.
    """
    _check_axis(axis)
    positions = [entity.geometric_extents.min_point[axis] for entity in entities]
    order = sorted(range(len(positions)), key=positions.__getitem__)
    return [entities[i] for i in order]


def sort_points(points: Sequence[Point3d], axis: Axis) -> List[Point3d]:
    """
    Sorts points so that their order corresponds to their position along `axis`.

    Args:
        points: Points that will be sorted.
        axis: Axis along which the points will be sorted.

    Returns:
        A new list; the input is left untouched.
    """
    _check_axis(axis)
    return sorted(points, key=lambda point: point[axis])


def _check_axis(axis: Axis) -> None:
    if not isinstance(axis, Axis):
        raise InvalidInputError(f"Expected an Axis member, got {axis!r}.")
