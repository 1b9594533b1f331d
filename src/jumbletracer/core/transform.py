"""Affine matrices and coordinate systems for nested scene frames.

Scene nodes position their children with a 4x4 affine matrix that maps local
coordinates into the parent frame. Three matrices are derived from it:

    matrix:   local -> parent, used to carry hit points back out
    inverse:  parent -> local, used to carry rays in (points with w=1,
              direction vectors with w=0)
    dual:     the biorthogonal dual of the linear part, used to carry
              surface normals back out

Normals are not transformed like points. For a linear part A with columns
a0, a1, a2, the dual basis b0, b1, b2 satisfies bi . aj = delta_ij and equals
the inverse-transpose of A. Under non-uniform scale or skew only the dual
keeps a transformed normal perpendicular to the transformed surface.

Host-side construction uses NumPy; the device helpers at the bottom of the
module apply the uploaded matrices inside Taichi kernels.

Example:
    >>> from src.jumbletracer.core.transform import AffineMatrix, Axis, CoordinateSystem
    >>> m = AffineMatrix.rotation_degrees(-135.0, Axis.Z) @ AffineMatrix.scaling((0.5, 1.25, 1.0))
    >>> m.translate((-1.25, 0.25, 0.0))
    >>> csys = CoordinateSystem(m)
    >>> csys.inverse.transform_point(csys.matrix.transform_point((1.0, 2.0, 3.0)))
"""

import math
from collections.abc import Sequence
from enum import IntEnum

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

vec3 = tm.vec3
vec4 = tm.vec4

# A basis is singular when |det| <= SINGULAR_EPSILON * product of its column lengths
SINGULAR_EPSILON = 1e-12


class Axis(IntEnum):
    """Coordinate axis for axis-aligned rotations."""

    X = 0
    Y = 1
    Z = 2


def _as_vector3(value: Sequence[float], name: str) -> npt.NDArray[np.float64]:
    vector = np.asarray(value, dtype=np.float64)
    if vector.shape != (3,):
        raise ValueError(f"{name} must have exactly 3 components, got shape {vector.shape}")
    return vector


def _is_degenerate(det: float, columns: npt.NDArray[np.float64]) -> bool:
    """Whether a determinant is negligible next to the lengths of its columns.

    By Hadamard's inequality |det| never exceeds the product of the column
    lengths, so the ratio is the volume of the normalized basis.
    """
    bound = float(np.prod(np.linalg.norm(columns, axis=0)))
    return not abs(det) > SINGULAR_EPSILON * bound


class AffineMatrix:
    """A 4x4 affine transform stored row-major.

    Matrices compose with ``@`` so that ``(a @ b).transform_point(p)`` applies
    ``b`` first and then ``a``. Instances are treated as values: every
    operation except :meth:`translate` returns a new matrix.

    Attributes:
        rows: The underlying 4x4 float64 array.
    """

    def __init__(self, rows: Sequence[Sequence[float]] | npt.NDArray[np.float64] | None = None) -> None:
        if rows is None:
            self.rows = np.identity(4, dtype=np.float64)
        else:
            self.rows = np.array(rows, dtype=np.float64)
            if self.rows.shape != (4, 4):
                raise ValueError(f"Affine matrix must be 4x4, got shape {self.rows.shape}")

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @classmethod
    def identity(cls) -> "AffineMatrix":
        return cls()

    @classmethod
    def translation(cls, offset: Sequence[float]) -> "AffineMatrix":
        """Create a pure translation by ``offset``."""
        m = cls()
        m.rows[:3, 3] = _as_vector3(offset, "offset")
        return m

    @classmethod
    def rotation(cls, radians: float, axis: Axis) -> "AffineMatrix":
        """Create a right-handed rotation about a coordinate axis.

        Args:
            radians: Rotation angle. Positive angles rotate counter-clockwise
                when looking down the axis toward the origin.
            axis: The axis to rotate about.

        Returns:
            The rotation matrix.
        """
        c = math.cos(radians)
        s = math.sin(radians)
        m = cls()
        if axis == Axis.X:
            m.rows[1, 1], m.rows[1, 2] = c, -s
            m.rows[2, 1], m.rows[2, 2] = s, c
        elif axis == Axis.Y:
            m.rows[0, 0], m.rows[0, 2] = c, s
            m.rows[2, 0], m.rows[2, 2] = -s, c
        else:
            m.rows[0, 0], m.rows[0, 1] = c, -s
            m.rows[1, 0], m.rows[1, 1] = s, c
        return m

    @classmethod
    def rotation_degrees(cls, degrees: float, axis: Axis) -> "AffineMatrix":
        return cls.rotation(math.radians(degrees), axis)

    @classmethod
    def scaling(cls, factors: Sequence[float]) -> "AffineMatrix":
        """Create a (possibly non-uniform) scale along the three axes."""
        m = cls()
        sx, sy, sz = _as_vector3(factors, "factors")
        m.rows[0, 0] = sx
        m.rows[1, 1] = sy
        m.rows[2, 2] = sz
        return m

    @classmethod
    def from_basis(
        cls,
        origin: Sequence[float],
        u: Sequence[float],
        v: Sequence[float],
        w: Sequence[float],
    ) -> "AffineMatrix":
        """Create the matrix whose columns are the axes u, v, w and the origin."""
        m = cls()
        m.rows[:3, 0] = _as_vector3(u, "u")
        m.rows[:3, 1] = _as_vector3(v, "v")
        m.rows[:3, 2] = _as_vector3(w, "w")
        m.rows[:3, 3] = _as_vector3(origin, "origin")
        return m

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def __matmul__(self, other: "AffineMatrix") -> "AffineMatrix":
        if not isinstance(other, AffineMatrix):
            return NotImplemented
        return AffineMatrix(self.rows @ other.rows)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AffineMatrix):
            return NotImplemented
        return bool(np.array_equal(self.rows, other.rows))

    def __repr__(self) -> str:
        return f"AffineMatrix({self.rows.tolist()})"

    def translate(self, offset: Sequence[float]) -> None:
        """Add ``offset`` to the translation column in place."""
        self.rows[:3, 3] += _as_vector3(offset, "offset")

    def transpose(self) -> "AffineMatrix":
        return AffineMatrix(self.rows.T)

    def determinant(self) -> float:
        """Determinant by cofactor expansion along the first row."""
        cofactors = self._cofactors()
        return float(np.dot(self.rows[0], cofactors[0]))

    def _cofactors(self) -> npt.NDArray[np.float64]:
        cofactors = np.empty((4, 4), dtype=np.float64)
        for i in range(4):
            for j in range(4):
                minor = np.delete(np.delete(self.rows, i, axis=0), j, axis=1)
                cofactors[i, j] = (-1.0) ** (i + j) * np.linalg.det(minor)
        return cofactors

    def inverse(self) -> "AffineMatrix":
        """Invert with the adjugate (transposed cofactor) method.

        Returns:
            The inverse matrix.

        Raises:
            ValueError: If the matrix is singular.
        """
        cofactors = self._cofactors()
        det = float(np.dot(self.rows[0], cofactors[0]))
        if _is_degenerate(det, self.rows):
            raise ValueError(f"Affine matrix is singular (determinant {det:g})")
        return AffineMatrix(cofactors.T / det)

    @property
    def linear(self) -> npt.NDArray[np.float64]:
        """The upper-left 3x3 linear part."""
        return self.rows[:3, :3].copy()

    @property
    def offset(self) -> npt.NDArray[np.float64]:
        """The translation column."""
        return self.rows[:3, 3].copy()

    def transform_point(self, point: Sequence[float]) -> npt.NDArray[np.float64]:
        """Apply the full transform to a point (homogeneous w = 1)."""
        p = np.append(_as_vector3(point, "point"), 1.0)
        return (self.rows @ p)[:3]

    def transform_vector(self, vector: Sequence[float]) -> npt.NDArray[np.float64]:
        """Apply only the linear part to a direction (homogeneous w = 0)."""
        d = np.append(_as_vector3(vector, "vector"), 0.0)
        return (self.rows @ d)[:3]

    def to_list(self) -> list[list[float]]:
        return self.rows.tolist()


def dual_basis(
    a0: Sequence[float],
    a1: Sequence[float],
    a2: Sequence[float],
) -> npt.NDArray[np.float64]:
    """Compute the biorthogonal dual of three basis vectors.

    Each dual vector is perpendicular to the other two basis vectors and has
    unit dot product with its own: ``bi = (aj x ak) / (a0 . (a1 x a2))``.

    Args:
        a0: First basis vector.
        a1: Second basis vector.
        a2: Third basis vector.

    Returns:
        A 3x3 array whose columns are the dual vectors b0, b1, b2. Applied to
        a local-frame normal it yields the parent-frame normal (up to length).

    Raises:
        ValueError: If the basis vectors are linearly dependent.
    """
    a0 = _as_vector3(a0, "a0")
    a1 = _as_vector3(a1, "a1")
    a2 = _as_vector3(a2, "a2")
    volume = float(np.dot(a0, np.cross(a1, a2)))
    if _is_degenerate(volume, np.column_stack((a0, a1, a2))):
        raise ValueError("Basis vectors are linearly dependent; no dual basis exists")
    b0 = np.cross(a1, a2) / volume
    b1 = np.cross(a2, a0) / volume
    b2 = np.cross(a0, a1) / volume
    return np.column_stack((b0, b1, b2))


class CoordinateSystem:
    """A node's local frame with its derived inverse and normal matrices.

    Attributes:
        matrix: Local -> parent transform.
        inverse: Parent -> local transform.
        dual: 3x3 matrix carrying local normals to the parent frame.
    """

    def __init__(self, matrix: AffineMatrix | None = None) -> None:
        """Derive the inverse and dual matrices from ``matrix``.

        Args:
            matrix: The local -> parent transform. Defaults to identity.

        Raises:
            ValueError: If the matrix is singular or not affine.
        """
        matrix = AffineMatrix() if matrix is None else AffineMatrix(matrix.rows)
        if not np.allclose(matrix.rows[3], (0.0, 0.0, 0.0, 1.0)):
            raise ValueError(f"Coordinate system matrix is not affine: bottom row {matrix.rows[3]}")
        self.matrix = matrix
        self.inverse = matrix.inverse()
        linear = matrix.linear
        self.dual = dual_basis(linear[:, 0], linear[:, 1], linear[:, 2])

    @classmethod
    def identity(cls) -> "CoordinateSystem":
        return cls()

    @classmethod
    def from_basis(
        cls,
        origin: Sequence[float] = (0.0, 0.0, 0.0),
        scale: Sequence[float] = (1.0, 1.0, 1.0),
        u: Sequence[float] = (1.0, 0.0, 0.0),
        v: Sequence[float] = (0.0, 1.0, 0.0),
        w: Sequence[float] = (0.0, 0.0, 1.0),
    ) -> "CoordinateSystem":
        """Build a frame from an origin, a 3-axis scale and three axis vectors.

        The local x, y, z axes map to ``scale[0] * u``, ``scale[1] * v`` and
        ``scale[2] * w`` in the parent frame, and the local origin maps to
        ``origin``.

        Raises:
            ValueError: If any scale factor is zero or the axes are dependent.
        """
        sx, sy, sz = _as_vector3(scale, "scale")
        return cls(
            AffineMatrix.from_basis(
                origin,
                sx * _as_vector3(u, "u"),
                sy * _as_vector3(v, "v"),
                sz * _as_vector3(w, "w"),
            )
        )

    def compose(self, child: "CoordinateSystem") -> "CoordinateSystem":
        """Return the frame of ``child`` expressed in this frame's parent."""
        return CoordinateSystem(self.matrix @ child.matrix)

    def is_identity(self) -> bool:
        return bool(np.allclose(self.matrix.rows, np.identity(4)))

    def transform_normal(self, normal: Sequence[float]) -> npt.NDArray[np.float64]:
        """Carry a local normal to the parent frame and renormalize it."""
        n = self.dual @ _as_vector3(normal, "normal")
        return n / np.linalg.norm(n)

    def __repr__(self) -> str:
        return f"CoordinateSystem({self.matrix.rows.tolist()})"


# =============================================================================
# Device-side helpers (Taichi functions)
# =============================================================================


@ti.func
def transform_point(m: tm.mat4, p: vec3) -> vec3:
    """Apply an affine matrix to a point (w = 1)."""
    r = m @ vec4(p.x, p.y, p.z, 1.0)
    return vec3(r[0], r[1], r[2])


@ti.func
def transform_vector(m: tm.mat4, v: vec3) -> vec3:
    """Apply the linear part of an affine matrix to a direction (w = 0)."""
    r = m @ vec4(v.x, v.y, v.z, 0.0)
    return vec3(r[0], r[1], r[2])


@ti.func
def transform_normal(dual: tm.mat3, n: vec3) -> vec3:
    """Carry a normal through a dual-basis matrix and renormalize."""
    return tm.normalize(dual @ n)
