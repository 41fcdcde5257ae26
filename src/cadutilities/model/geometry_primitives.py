"""
Geometric Primitives for the drawing model.

Points, vectors and 4x4 homogeneous matrices used by every entity
transform. All primitives are immutable; transforming returns a new object.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Iterable, Optional, Union, TYPE_CHECKING
import math

import numpy as np

from cadutilities.config import TOLERANCE
from cadutilities.model.errors import InvalidInputError

if TYPE_CHECKING:
    import numpy.typing as npt


class Axis(Enum):
    X = 0
    Y = 1
    Z = 2


class AngleMode(Enum):
    DEGREES = "degrees"
    RADIANS = "radians"


@dataclass(frozen=True)
class Vector3d:
    """
    A vector in 3D space representing direction and magnitude.
    """
    x: float
    y: float
    z: float = 0.0

    X_AXIS: ClassVar[Vector3d]
    Y_AXIS: ClassVar[Vector3d]
    Z_AXIS: ClassVar[Vector3d]

    def __add__(self, other: Vector3d) -> Vector3d:
        return Vector3d(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Vector3d) -> Vector3d:
        return Vector3d(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: float) -> Vector3d:
        return Vector3d(self.x * scalar, self.y * scalar, self.z * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> Vector3d:
        if scalar == 0.0: raise ZeroDivisionError
        return Vector3d(self.x / scalar, self.y / scalar, self.z / scalar)

    def __neg__(self) -> Vector3d:
        return Vector3d(-self.x, -self.y, -self.z)

    @property
    def length(self) -> float:
        return math.sqrt(self.x**2 + self.y**2 + self.z**2)

    def is_zero_length(self, tol: float = TOLERANCE) -> bool:
        return self.length <= tol

    def normalize(self) -> Vector3d:
        mag = self.length
        if mag == 0.0: return Vector3d(0.0, 0.0, 0.0)
        return self / mag

    def dot(self, other: Vector3d) -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: Vector3d) -> Vector3d:
        return Vector3d(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x
        )

    def is_equal_to(self, other: Vector3d, tol: float = TOLERANCE) -> bool:
        return (self - other).length <= tol

    def transform_by(self, matrix: Matrix3d) -> Vector3d:
        """Apply the linear part of the matrix (translation is ignored)."""
        return Vector3d.from_array(matrix.linear @ self.to_array())

    def to_array(self) -> npt.NDArray[np.float64]:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @classmethod
    def from_array(cls, values: Iterable[float]) -> Vector3d:
        x, y, z = (float(v) for v in values)
        return cls(x, y, z)

    @classmethod
    def for_axis(cls, axis: Axis) -> Vector3d:
        return (cls.X_AXIS, cls.Y_AXIS, cls.Z_AXIS)[axis.value]


Vector3d.X_AXIS = Vector3d(1.0, 0.0, 0.0)
Vector3d.Y_AXIS = Vector3d(0.0, 1.0, 0.0)
Vector3d.Z_AXIS = Vector3d(0.0, 0.0, 1.0)


@dataclass(frozen=True)
class Point2d:
    """A point in a plane."""
    x: float
    y: float

    def __sub__(self, other: Point2d) -> Point2d:
        return Point2d(self.x - other.x, self.y - other.y)

    def distance_to(self, other: Point2d) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_array(self) -> npt.NDArray[np.float64]:
        return np.array([self.x, self.y], dtype=np.float64)


@dataclass(frozen=True)
class Point3d:
    """A simple geometric point in 3D space."""
    x: float
    y: float
    z: float = 0.0

    ORIGIN: ClassVar[Point3d]

    def __add__(self, other: Vector3d) -> Point3d:
        # Point + Vector = Point (Translation)
        if isinstance(other, Vector3d):
            return Point3d(self.x + other.x, self.y + other.y, self.z + other.z)
        raise TypeError("Can only add a Vector3d to a Point3d.")

    def __sub__(self, other: Union[Vector3d, Point3d]) -> Union[Vector3d, Point3d]:
        # Point - Point = Vector (Direction)
        if isinstance(other, Point3d):
            return Vector3d(self.x - other.x, self.y - other.y, self.z - other.z)
        # Point - Vector = Point (Inverse translation)
        if isinstance(other, Vector3d):
            return Point3d(self.x - other.x, self.y - other.y, self.z - other.z)
        raise TypeError("Can only subtract a Vector3d or Point3d from a Point3d.")

    def __getitem__(self, axis: Axis) -> float:
        return (self.x, self.y, self.z)[axis.value]

    def coordinate(self, axis: Axis) -> float:
        """Coordinate of the point along one of the principal axes."""
        return self[axis]

    def distance_to(self, other: Point3d) -> float:
        return math.sqrt((self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2)

    def is_equal_to(self, other: Point3d, tol: float = TOLERANCE) -> bool:
        return self.distance_to(other) <= tol

    def transform_by(self, matrix: Matrix3d) -> Point3d:
        return Point3d.from_array(matrix.apply(self.to_array()))

    def to_array(self) -> npt.NDArray[np.float64]:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @classmethod
    def from_array(cls, values: Iterable[float]) -> Point3d:
        x, y, z = (float(v) for v in values)
        return cls(x, y, z)


Point3d.ORIGIN = Point3d(0.0, 0.0, 0.0)


class Matrix3d:
    """
    Affine transform in 3D space stored as a 4x4 homogeneous matrix.

    Points are column vectors, so ``a @ b`` applies ``b`` first and ``a`` second.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Optional[npt.ArrayLike] = None) -> None:
        if data is None:
            arr = np.identity(4, dtype=np.float64)
        else:
            arr = np.array(data, dtype=np.float64)
            if arr.shape != (4, 4):
                raise InvalidInputError(f"Matrix3d expects a 4x4 array, got shape {arr.shape}.")
        arr.setflags(write=False)
        self._data = arr

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._data.tolist()})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix3d):
            return NotImplemented
        return bool(np.array_equal(self._data, other._data))

    def __hash__(self) -> int:
        return hash(self._data.tobytes())

    def __matmul__(self, other: Matrix3d) -> Matrix3d:
        return Matrix3d(self._data @ other._data)

    __mul__ = __matmul__

    @property
    def data(self) -> npt.NDArray[np.float64]:
        return self._data

    @property
    def linear(self) -> npt.NDArray[np.float64]:
        """Upper-left 3x3 block."""
        return self._data[:3, :3]

    # --- Constructors ---

    @classmethod
    def identity(cls) -> Matrix3d:
        return cls()

    @classmethod
    def displacement(cls, vector: Vector3d) -> Matrix3d:
        data = np.identity(4, dtype=np.float64)
        data[:3, 3] = vector.to_array()
        return cls(data)

    @classmethod
    def rotation(cls, angle: float, axis: Vector3d, center: Point3d) -> Matrix3d:
        """
        Rotation of `angle` radians about the line through `center` along `axis`.

        Positive angles follow the right-hand rule around `axis`.

        Raises:
            InvalidInputError: If `axis` has zero length.
        """
        if axis.is_zero_length():
            raise InvalidInputError("Rotation axis must not be a zero-length vector.")

        k = axis.normalize().to_array()
        cos_a = math.cos(angle)
        sin_a = math.sin(angle)

        # Rodrigues' rotation formula
        k_cross = np.array([
            [0.0, -k[2], k[1]],
            [k[2], 0.0, -k[0]],
            [-k[1], k[0], 0.0],
        ])
        rot = cos_a * np.identity(3) + sin_a * k_cross + (1.0 - cos_a) * np.outer(k, k)

        c = center.to_array()
        data = np.identity(4, dtype=np.float64)
        data[:3, :3] = rot
        data[:3, 3] = c - rot @ c
        return cls(data)

    @classmethod
    def scaling(cls, factor: float, center: Point3d) -> Matrix3d:
        """
        Uniform scaling by `factor` about `center`.

        Raises:
            InvalidInputError: If `factor` is zero (the matrix would be singular).
        """
        if abs(factor) <= TOLERANCE:
            raise InvalidInputError(f"Scale factor must be non-zero, got {factor}.")

        c = center.to_array()
        data = np.identity(4, dtype=np.float64)
        data[:3, :3] *= factor
        data[:3, 3] = c - factor * c
        return cls(data)

    # --- Queries ---

    def apply(self, coords: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """Transform an (3,) point or an (N, 3) array of points."""
        pts = np.asarray(coords, dtype=np.float64)
        return pts @ self.linear.T + self._data[:3, 3]

    def inverse(self) -> Matrix3d:
        return Matrix3d(np.linalg.inv(self._data))

    def scale(self, tol: float = TOLERANCE) -> float:
        """
        Largest scale factor applied by the linear part.

        Factors within `tol` of 1.0 are reported as exactly 1.0, so rigid
        motions leave lengths and widths untouched.
        """
        factor = float(np.max(np.linalg.norm(self.linear, axis=0)))
        if abs(factor - 1.0) <= tol:
            return 1.0
        return factor

    def is_uniscaled_ortho(self, tol: float = TOLERANCE) -> bool:
        """True when the linear part is a uniform scale times an orthogonal matrix."""
        lin = self.linear
        gram = lin.T @ lin
        s2 = gram[0, 0]
        if s2 <= tol:
            return False
        return bool(np.allclose(gram, s2 * np.identity(3), atol=tol * max(1.0, s2)))

    def is_equal_to(self, other: Matrix3d, tol: float = TOLERANCE) -> bool:
        return bool(np.allclose(self._data, other._data, atol=tol))


@dataclass(frozen=True)
class Extents3d:
    """Axis-aligned bounding box."""
    min_point: Point3d
    max_point: Point3d

    def add_point(self, point: Point3d) -> Extents3d:
        return Extents3d(
            Point3d(min(self.min_point.x, point.x), min(self.min_point.y, point.y), min(self.min_point.z, point.z)),
            Point3d(max(self.max_point.x, point.x), max(self.max_point.y, point.y), max(self.max_point.z, point.z)),
        )

    def add_extents(self, other: Extents3d) -> Extents3d:
        return self.add_point(other.min_point).add_point(other.max_point)

    @classmethod
    def from_points(cls, points: Iterable[Point3d]) -> Optional[Extents3d]:
        """Bounding box of the points, or None when there are none."""
        arr = np.array([p.to_array() for p in points], dtype=np.float64).reshape(-1, 3)
        if arr.shape[0] == 0:
            return None
        return cls(Point3d.from_array(arr.min(axis=0)), Point3d.from_array(arr.max(axis=0)))
