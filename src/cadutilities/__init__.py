"""Helpers that move, rotate, scale, sort and inspect drawing entities."""
from cadutilities.drawing_tools import (
    create_polyline,
    get_midpoint,
    get_vertices,
    move,
    rotate,
    scale,
    sort_entities,
    sort_points,
)
from cadutilities.model.geometry_primitives import AngleMode, Axis, Matrix3d, Point2d, Point3d, Vector3d

__all__ = [
    "AngleMode",
    "Axis",
    "Matrix3d",
    "Point2d",
    "Point3d",
    "Vector3d",
    "create_polyline",
    "get_midpoint",
    "get_vertices",
    "move",
    "rotate",
    "scale",
    "sort_entities",
    "sort_points",
]
