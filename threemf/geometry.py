"""Points, matrices, boxes and lookup tables for 3D geometry in single precision."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

MAX_FLOAT32 = 3.4028234663852886e38
MICRONS_ACCURACY = 1e-6

_FLOAT32 = struct.Struct("<f")


def _f32(value: float) -> float:
    """Round a number to the nearest single precision float."""
    try:
        return _FLOAT32.unpack(_FLOAT32.pack(value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


_MICRONS = _f32(MICRONS_ACCURACY)


class Point2D(tuple):
    """A 2D point stored as two single precision coordinates."""

    __slots__ = ()

    def __new__(cls, x: float = 0.0, y: float = 0.0) -> "Point2D":
        return super().__new__(cls, (_f32(x), _f32(y)))

    def __getnewargs__(self):
        return tuple(self)

    @property
    def x(self) -> float:
        return self[0]

    @property
    def y(self) -> float:
        return self[1]

    def __repr__(self) -> str:
        return f"Point2D({self[0]!r}, {self[1]!r})"


class Point3D(tuple):
    """A 3D point stored as three single precision coordinates."""

    __slots__ = ()

    def __new__(cls, x: float = 0.0, y: float = 0.0, z: float = 0.0) -> "Point3D":
        return super().__new__(cls, (_f32(x), _f32(y), _f32(z)))

    def __getnewargs__(self):
        return tuple(self)

    @property
    def x(self) -> float:
        return self[0]

    @property
    def y(self) -> float:
        return self[1]

    @property
    def z(self) -> float:
        return self[2]

    def __repr__(self) -> str:
        return f"Point3D({self[0]!r}, {self[1]!r}, {self[2]!r})"


@dataclass(frozen=True)
class Box:
    """An axis aligned box in 3D space."""

    min: Point3D = field(default_factory=Point3D)
    max: Point3D = field(default_factory=Point3D)

    def extend(self, other: "Box") -> "Box":
        """Return the smallest box holding this box and ``other``."""
        return Box(
            Point3D(*map(min, self.min, other.min)),
            Point3D(*map(max, self.max, other.max)),
        )

    def extend_point(self, point: Point3D) -> "Box":
        """Return the smallest box holding this box and ``point``."""
        return Box(
            Point3D(*map(min, self.min, point)),
            Point3D(*map(max, self.max, point)),
        )


def limit_box() -> Box:
    """Return an inverted box that any extension will replace."""
    return Box(
        Point3D(MAX_FLOAT32, MAX_FLOAT32, MAX_FLOAT32),
        Point3D(-MAX_FLOAT32, -MAX_FLOAT32, -MAX_FLOAT32),
    )


class Matrix(tuple):
    """A 4x4 matrix in row major order; ``m[4*r + c]`` is row r, column c."""

    __slots__ = ()

    def __new__(cls, values: Iterable[float] = ()) -> "Matrix":
        items = tuple(_f32(v) for v in values)
        if not items:
            items = (0.0,) * 16
        if len(items) != 16:
            raise ValueError(f"a matrix needs 16 values, got {len(items)}")
        return super().__new__(cls, items)

    def __getnewargs__(self):
        return (tuple(self),)

    def __str__(self) -> str:
        return " ".join(
            f"{self[i]:.3f}" for i in (0, 1, 2, 4, 5, 6, 8, 9, 10, 12, 13, 14)
        )

    def __repr__(self) -> str:
        return f"Matrix({list(self)!r})"

    def translate(self, x: float, y: float, z: float) -> "Matrix":
        """Return a copy with a relative translation applied."""
        values = list(self)
        values[12] += x
        values[13] += y
        values[14] += z
        return Matrix(values)

    def mul(self, other: "Matrix") -> "Matrix":
        """Return the matrix product of this matrix and ``other``."""
        return Matrix(
            sum(self[4 * k + r] * other[4 * c + k] for k in range(4))
            for c in range(4)
            for r in range(4)
        )

    def mul3d(self, v: Point3D) -> Point3D:
        """Transform a 3D point."""
        m = self
        return Point3D(
            m[0] * v[0] + m[4] * v[1] + m[8] * v[2] + m[12],
            m[1] * v[0] + m[5] * v[1] + m[9] * v[2] + m[13],
            m[2] * v[0] + m[6] * v[1] + m[10] * v[2] + m[14],
        )

    def mul2d(self, v: Point2D) -> Point2D:
        """Transform a 2D point."""
        m = self
        return Point2D(
            m[0] * v[0] + m[4] * v[1] + m[12],
            m[1] * v[0] + m[5] * v[1] + m[13],
        )

    def mul_box(self, box: Box) -> Box:
        """Transform a box, keeping its minimum below its maximum."""
        if self[15] == 0:
            return box
        lo = self.mul3d(box.min)
        hi = self.mul3d(box.max)
        return Box(Point3D(*map(min, lo, hi)), Point3D(*map(max, lo, hi)))


def identity() -> Matrix:
    """Return the 4x4 identity matrix."""
    return Matrix((1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1))


def quantize(point: Point3D) -> Tuple[int, int, int]:
    """Return the integer micron grid cell that holds ``point``."""
    return tuple(math.floor(_f32(_f32(c) / _MICRONS)) for c in point)  # type: ignore[return-value]


def pair_key(data1: int, data2: int) -> Tuple[int, int]:
    """Return an order independent key for a pair of numbers."""
    return (data1, data2) if data1 < data2 else (data2, data1)


class PairMatch(dict):
    """Finds duplicate unordered pairs of numbers."""

    def add_match(self, data1: int, data2: int, param: int) -> None:
        """Record ``param`` for the pair, replacing any earlier value."""
        self[pair_key(data1, data2)] = param

    def check_match(self, data1: int, data2: int) -> Optional[int]:
        """Return the value recorded for the pair, or None."""
        return self.get(pair_key(data1, data2))


class VectorTree(dict):
    """Identifies vectors by their position on a micron grid."""

    def add_vector(self, vec: Point3D, value: int) -> None:
        """Record ``value`` for the position of ``vec``."""
        self[quantize(vec)] = value

    def find_vector(self, vec: Point3D) -> Optional[int]:
        """Return the value recorded for the position of ``vec``, or None."""
        return self.get(quantize(vec))

    def remove_vector(self, vec: Point3D) -> None:
        """Forget the position of ``vec``, if recorded."""
        self.pop(quantize(vec), None)