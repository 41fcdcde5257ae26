from __future__ import annotations

from typing import NamedTuple, TYPE_CHECKING

from math import atan, atan2, cos, pi, sin, tan
import numpy as np

if TYPE_CHECKING:
    from numpy import typing as npt

from cadutilities.config import TOLERANCE
from cadutilities.model.errors import InvalidInputError
from cadutilities.model.geometry_primitives import AngleMode, Point2d, Point3d, Vector3d

# Threshold of the arbitrary axis algorithm (1/64)
_ARBITRARY_AXIS_LIMIT = 1.0 / 64.0


def deg2rad(degrees: float) -> float:
    return degrees * pi / 180


def to_radians(angle: float, mode: AngleMode) -> float:
    """Convert an angle given in `mode` units to radians."""
    if mode == AngleMode.DEGREES:
        return deg2rad(angle)
    return angle


class PlaneFrame(NamedTuple):
    """Orthonormal frame of a plane expressed in world coordinates."""
    origin: Point3d
    x_axis: Vector3d
    y_axis: Vector3d

    @property
    def normal(self) -> Vector3d:
        return self.x_axis.cross(self.y_axis)

    def to_world(self, point: Point2d) -> Point3d:
        return self.origin + self.x_axis * point.x + self.y_axis * point.y


def plane_frame(normal: Vector3d, elevation: float = 0.0) -> PlaneFrame:
    """
    Build the plane frame for `normal` with the arbitrary axis algorithm.

    The same normal always yields the same X axis, which keeps 2D
    coordinates of planar entities stable between sessions.

    Args:
        normal: Plane normal (need not be unit length).
        elevation: Signed distance of the plane from the world origin along `normal`.

    Returns:
        A PlaneFrame whose origin lies on the plane closest to the world origin.
    """
    if normal.is_zero_length():
        raise InvalidInputError("Plane normal must not be a zero-length vector.")

    n = normal.normalize()
    if abs(n.x) < _ARBITRARY_AXIS_LIMIT and abs(n.y) < _ARBITRARY_AXIS_LIMIT:
        x_axis = Vector3d.Y_AXIS.cross(n).normalize()
    else:
        x_axis = Vector3d.Z_AXIS.cross(n).normalize()
    y_axis = n.cross(x_axis).normalize()
    origin = Point3d.ORIGIN + n * elevation
    return PlaneFrame(origin=origin, x_axis=x_axis, y_axis=y_axis)


class BulgeArc(NamedTuple):
    """Circular arc of a bulged polyline segment in plane coordinates."""
    center: Point2d
    radius: float
    start_angle: float
    sweep: float  # signed, positive is counter-clockwise


def bulge_to_arc(start: Point2d, end: Point2d, bulge: float) -> BulgeArc | None:
    """
    Convert a polyline segment with a bulge into its arc.

    The bulge is the tangent of a quarter of the included angle; positive
    values bend the segment counter-clockwise.

    Returns:
        The arc, or None when the segment is straight or has zero length.
    """
    chord = end.distance_to(start)
    if abs(bulge) <= TOLERANCE or chord <= TOLERANCE:
        return None

    sweep = 4.0 * atan(bulge)
    dx, dy = end.x - start.x, end.y - start.y
    mid_x, mid_y = (start.x + end.x) / 2.0, (start.y + end.y) / 2.0

    # Offset from the chord midpoint along the left-hand normal of the chord
    offset = 0.5 / tan(sweep / 2.0)
    center = Point2d(mid_x - dy * offset, mid_y + dx * offset)
    radius = chord / (2.0 * abs(sin(sweep / 2.0)))
    start_angle = atan2(start.y - center.y, start.x - center.x)
    return BulgeArc(center=center, radius=radius, start_angle=start_angle, sweep=sweep)


def _angle_in_sweep(angle: float, start_angle: float, sweep: float) -> bool:
    if sweep >= 0.0:
        delta = (angle - start_angle) % (2.0 * pi)
    else:
        delta = (start_angle - angle) % (2.0 * pi)
    return delta <= abs(sweep) + TOLERANCE


def arc_world_extrema(arc: BulgeArc, frame: PlaneFrame) -> list[Point3d]:
    """
    Points of a planar arc where a world coordinate reaches an extremum.

    For every world axis i the coordinate along the arc is
    ``c_i + r * (u_i * cos(t) + v_i * sin(t))`` which peaks at
    ``t = atan2(v_i, u_i)`` and ``t + pi``; only angles inside the sweep count.
    End points are not included.
    """
    center = frame.to_world(arc.center)
    u = frame.x_axis.to_array()
    v = frame.y_axis.to_array()

    points: list[Point3d] = []
    for i in range(3):
        if abs(u[i]) <= TOLERANCE and abs(v[i]) <= TOLERANCE:
            continue
        base = atan2(v[i], u[i])
        for t in (base, base + pi):
            if _angle_in_sweep(t, arc.start_angle, arc.sweep):
                offset = arc.radius * (u * cos(t) + v * sin(t))
                points.append(Point3d.from_array(center.to_array() + offset))
    return points


def circle_half_extents(radius: float, normal: Vector3d) -> npt.NDArray[np.float64]:
    """
    Half-size of the bounding box of a circle along each world axis.

    Args:
        radius: Circle radius.
        normal: Normal of the circle plane.

    Returns:
        Array of shape (3,) with ``r * sqrt(1 - n_i^2)`` for each axis.
    """
    n = normal.normalize().to_array()
    return radius * np.sqrt(np.clip(1.0 - n * n, 0.0, 1.0))


def midpoint(point1: Point3d, point2: Point3d) -> Point3d:
    return Point3d((point1.x + point2.x) / 2,
                   (point1.y + point2.y) / 2, (point1.z + point2.z) / 2)

