"""
Vector and rotation helpers shared by the builder, completer and relaxer.

Conventions:
    - Positions are plain 3-tuples in angstrom-like model units.
    - Angles passed in and out of public helpers are in degrees.
    - Rotation matrices are row-major 3x3 tuples.
"""

from __future__ import annotations

import math
from typing import List, Optional, Tuple

from .elements import covalent_radius


Vector = Tuple[float, float, float]
Matrix = Tuple[Vector, Vector, Vector]

EPSILON = 1e-9
BOND_LENGTH_SCALE = 1.2
BOND_ORDER_SHORTENING = 0.1
DEFAULT_AXIS: Vector = (1.0, 0.0, 0.0)
DEFAULT_IDEAL_ANGLE = 109.5

IDENTITY: Matrix = ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0))

# element -> {neighbour count: ideal angle in degrees}
IDEAL_ANGLES = {
    "C": {4: 109.5, 3: 120.0, 2: 180.0},
    "N": {3: 107.0, 2: 120.0},
    "O": {2: 104.5},
}


def vector_add(a: Vector, b: Vector) -> Vector:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def vector_sub(a: Vector, b: Vector) -> Vector:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def vector_scale(v: Vector, scalar: float) -> Vector:
    return (v[0] * scalar, v[1] * scalar, v[2] * scalar)


def vector_length(v: Vector) -> float:
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


def vector_dot(a: Vector, b: Vector) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def vector_cross(a: Vector, b: Vector) -> Vector:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def vector_zero() -> Vector:
    return (0.0, 0.0, 0.0)


def vector_normalize(v: Vector) -> Optional[Vector]:
    """Unit vector along v, or None when v is (numerically) zero."""
    length = vector_length(v)
    if length < EPSILON:
        return None
    return (v[0] / length, v[1] / length, v[2] / length)


def distance(a: Vector, b: Vector) -> float:
    return vector_length(vector_sub(a, b))


def mean_vector(vectors: List[Vector]) -> Vector:
    if not vectors:
        return vector_zero()
    count = float(len(vectors))
    return (
        sum(v[0] for v in vectors) / count,
        sum(v[1] for v in vectors) / count,
        sum(v[2] for v in vectors) / count,
    )


def perpendicular(v: Vector) -> Vector:
    """Some unit vector perpendicular to the unit vector v."""
    helper: Vector = (1.0, 0.0, 0.0) if abs(v[0]) < 0.9 else (0.0, 1.0, 0.0)
    result = vector_normalize(vector_cross(v, helper))
    if result is None:  # pragma: no cover - helper is never parallel to v
        return (0.0, 0.0, 1.0)
    return result


def angle_between(a: Vector, b: Vector) -> float:
    """Angle between two vectors in degrees; 0.0 if either is zero."""
    length_a = vector_length(a)
    length_b = vector_length(b)
    if length_a < EPSILON or length_b < EPSILON:
        return 0.0
    cos_theta = max(-1.0, min(1.0, vector_dot(a, b) / (length_a * length_b)))
    return math.degrees(math.acos(cos_theta))


def rotation_matrix(axis: Vector, angle_radians: float) -> Matrix:
    """Rodrigues rotation matrix about a unit axis."""
    x, y, z = axis
    c = math.cos(angle_radians)
    s = math.sin(angle_radians)
    t = 1.0 - c
    return (
        (c + x * x * t, x * y * t - z * s, x * z * t + y * s),
        (y * x * t + z * s, c + y * y * t, y * z * t - x * s),
        (z * x * t - y * s, z * y * t + x * s, c + z * z * t),
    )


def rotation_between(source: Vector, target: Vector) -> Matrix:
    """Matrix rotating the unit vector source onto the unit vector target."""
    cos_theta = max(-1.0, min(1.0, vector_dot(source, target)))
    if cos_theta > 1.0 - 1e-12:
        return IDENTITY
    if cos_theta < -1.0 + 1e-12:
        return rotation_matrix(perpendicular(source), math.pi)
    axis = vector_normalize(vector_cross(source, target))
    if axis is None:  # pragma: no cover - excluded by the checks above
        return IDENTITY
    return rotation_matrix(axis, math.acos(cos_theta))


def matrix_apply(matrix: Matrix, v: Vector) -> Vector:
    return (
        matrix[0][0] * v[0] + matrix[0][1] * v[1] + matrix[0][2] * v[2],
        matrix[1][0] * v[0] + matrix[1][1] * v[1] + matrix[1][2] * v[2],
        matrix[2][0] * v[0] + matrix[2][1] * v[1] + matrix[2][2] * v[2],
    )


def rotate_about(v: Vector, axis: Vector, angle_radians: float) -> Vector:
    return matrix_apply(rotation_matrix(axis, angle_radians), v)


def ideal_bond_length(element_a: str, element_b: str, order: int = 1) -> float:
    base = (covalent_radius(element_a) + covalent_radius(element_b)) * BOND_LENGTH_SCALE
    return base / (1.0 + (order - 1) * BOND_ORDER_SHORTENING)


def ideal_angle(element: str, neighbor_count: int) -> float:
    return IDEAL_ANGLES.get(element, {}).get(neighbor_count, DEFAULT_IDEAL_ANGLE)


def bend(back: Vector, angle_degrees: float, reference: Optional[Vector] = None) -> Vector:
    """
    Unit direction making ``angle_degrees`` with the unit vector ``back``.

    The direction lies in the plane of ``back`` and ``reference`` when a
    usable reference is given.
    """
    side: Optional[Vector] = None
    if reference is not None:
        along = vector_scale(back, vector_dot(reference, back))
        side = vector_normalize(vector_sub(reference, along))
    if side is None:
        side = perpendicular(back)
    theta = math.radians(angle_degrees)
    return vector_add(vector_scale(back, math.cos(theta)), vector_scale(side, math.sin(theta)))


def cone_directions(
    axis: Vector, polar_degrees: float, count: int, reference: Optional[Vector] = None
) -> List[Vector]:
    """``count`` unit vectors at equal azimuth steps on a cone around ``axis``."""
    u: Optional[Vector] = None
    if reference is not None:
        along = vector_scale(axis, vector_dot(reference, axis))
        u = vector_normalize(vector_sub(reference, along))
    if u is None:
        u = perpendicular(axis)
    w = vector_cross(axis, u)
    polar = math.radians(polar_degrees)
    directions: List[Vector] = []
    for step in range(count):
        phi = 2.0 * math.pi * step / count
        radial = vector_add(vector_scale(u, math.cos(phi)), vector_scale(w, math.sin(phi)))
        directions.append(
            vector_add(vector_scale(axis, math.cos(polar)), vector_scale(radial, math.sin(polar)))
        )
    return directions


def zigzag_position(index: int, bond_length: float) -> Vector:
    """Damped zig-zag backbone position keeping consecutive bonds off-axis."""
    angle = index * math.pi / 3.0
    return (
        index * bond_length,
        math.sin(angle) * bond_length * 0.5,
        math.cos(angle) * bond_length * 0.5,
    )
