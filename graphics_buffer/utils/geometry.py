"""Affine transforms and polygon/curve geometry.

Provides:
    - Transform: 2×3 affine matrix with composition, inversion and the
      host-API builder helpers (trans, scale, rot_rad, rot_deg, shear)
    - Polygon helpers: normalization, signed area, bounding box
    - Bézier flattening (quadratic and cubic) via adaptive subdivision

Used by:
    - Rasterizer: user space → device space before scan conversion
    - ImageBlitter: inverse mapping from device pixels to source texels
    - Glyph outlines: curve contours → polygons
    - Line drawer: segment → quad / stadium polygons

Conventions:
    - Matrix layout [[a, b, c], [d, e, f]]: x' = a·x + b·y + c, y' = d·x + e·y + f
    - (A @ B)(p) == A(B(p)); builder helpers post-multiply, so
      Transform.identity().trans(10, 0).scale(2) scales first, then translates
    - Device space: pixel units, origin top-left, +y down
"""

import math
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np


PointsLike = Union[Sequence[Sequence[float]], np.ndarray]


class Transform:
    """Affine 2D transform stored as a 2×3 float64 matrix.

    Instances are immutable: every builder returns a new Transform.

    Examples
    --------
    >>> t = Transform.identity().trans(10.0, 30.0)
    >>> t.apply([[0.0, 0.0]]).tolist()
    [[10.0, 30.0]]
    """

    __slots__ = ('_m',)

    def __init__(self, matrix: Optional[PointsLike] = None):
        if matrix is None:
            m = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], dtype=np.float64)
        else:
            m = np.array(matrix, dtype=np.float64)
            if m.shape == (6,):
                m = m.reshape(2, 3)
            if m.shape == (3, 3):
                m = m[:2]
            if m.shape != (2, 3):
                raise ValueError(f"Transform matrix must be 2x3 (or 6 floats), got shape {m.shape}")
        m.setflags(write=False)
        self._m = m

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def identity(cls) -> 'Transform':
        return cls()

    @classmethod
    def translation(cls, tx: float, ty: float) -> 'Transform':
        return cls([[1.0, 0.0, tx], [0.0, 1.0, ty]])

    @classmethod
    def scaling(cls, sx: float, sy: Optional[float] = None) -> 'Transform':
        sy = sx if sy is None else sy
        return cls([[sx, 0.0, 0.0], [0.0, sy, 0.0]])

    @classmethod
    def rotation(cls, angle_rad: float) -> 'Transform':
        c, s = math.cos(angle_rad), math.sin(angle_rad)
        return cls([[c, -s, 0.0], [s, c, 0.0]])

    @classmethod
    def shearing(cls, kx: float, ky: float) -> 'Transform':
        return cls([[1.0, kx, 0.0], [ky, 1.0, 0.0]])

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    @property
    def matrix(self) -> np.ndarray:
        """Read-only 2×3 matrix."""
        return self._m

    def _as3x3(self) -> np.ndarray:
        return np.vstack([self._m, [0.0, 0.0, 1.0]])

    def __matmul__(self, other: 'Transform') -> 'Transform':
        if not isinstance(other, Transform):
            return NotImplemented
        return Transform(self._as3x3() @ other._as3x3())

    def trans(self, tx: float, ty: float) -> 'Transform':
        return self @ Transform.translation(tx, ty)

    def scale(self, sx: float, sy: Optional[float] = None) -> 'Transform':
        return self @ Transform.scaling(sx, sy)

    def rot_rad(self, angle: float) -> 'Transform':
        return self @ Transform.rotation(angle)

    def rot_deg(self, angle: float) -> 'Transform':
        return self.rot_rad(math.radians(angle))

    def shear(self, kx: float, ky: float) -> 'Transform':
        return self @ Transform.shearing(kx, ky)

    @property
    def determinant(self) -> float:
        (a, b, _), (d, e, _) = self._m
        return float(a * e - b * d)

    def is_invertible(self, eps: float = 1e-12) -> bool:
        return abs(self.determinant) > eps

    def invert(self) -> 'Transform':
        """Inverse transform.

        Raises
        ------
        ValueError
            If the matrix is singular (determinant ≈ 0)
        """
        if not self.is_invertible():
            raise ValueError(f"Transform is not invertible (det={self.determinant:.3g})")
        return Transform(np.linalg.inv(self._as3x3()))

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def apply(self, points: PointsLike) -> np.ndarray:
        """Transform points of shape (..., 2); returns float64 array of the same shape."""
        p = np.asarray(points, dtype=np.float64)
        if p.shape[-1] != 2:
            raise ValueError(f"Points must have shape (..., 2), got {p.shape}")
        return p @ self._m[:, :2].T + self._m[:, 2]

    __call__ = apply

    def is_identity(self) -> bool:
        return bool(np.array_equal(self._m, Transform()._m))

    def allclose(self, other: 'Transform', atol: float = 1e-9) -> bool:
        return bool(np.allclose(self._m, other._m, atol=atol))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transform):
            return NotImplemented
        return bool(np.array_equal(self._m, other._m))

    def __hash__(self) -> int:
        return hash(self._m.tobytes())

    def __repr__(self) -> str:
        (a, b, c), (d, e, f) = self._m.tolist()
        return f"Transform([[{a:g}, {b:g}, {c:g}], [{d:g}, {e:g}, {f:g}]])"


IDENTITY = Transform.identity()


def as_transform(transform: Union[None, Transform, PointsLike]) -> Transform:
    """Accept None (identity), a Transform, or a raw 2×3 / 6-float matrix."""
    if transform is None:
        return IDENTITY
    if isinstance(transform, Transform):
        return transform
    return Transform(transform)


# ============================================================================
# POLYGONS
# ============================================================================

def as_polygon(vertices: PointsLike) -> np.ndarray:
    """Normalize vertices to a float64 array of shape (N, 2).

    An empty input yields shape (0, 2). A closing vertex equal to the first is
    kept (it adds a zero-length edge, which the rasterizer ignores).
    """
    p = np.asarray(vertices, dtype=np.float64)
    if p.size == 0:
        return np.zeros((0, 2), dtype=np.float64)
    if p.ndim != 2 or p.shape[1] != 2:
        raise ValueError(f"Polygon vertices must have shape (N, 2), got {p.shape}")
    return p


def polygon_signed_area(poly: np.ndarray) -> float:
    """Shoelace signed area (positive for clockwise in +y-down device space)."""
    if len(poly) < 3:
        return 0.0
    x, y = poly[:, 0], poly[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def polygon_bbox(poly: np.ndarray) -> Tuple[float, float, float, float]:
    """Bounding box (x_min, y_min, x_max, y_max)."""
    if len(poly) == 0:
        raise ValueError("Empty polygon has no bounding box")
    x_min, y_min = poly.min(axis=0)
    x_max, y_max = poly.max(axis=0)
    return float(x_min), float(y_min), float(x_max), float(y_max)


def rect_corners(rect: Sequence[float]) -> np.ndarray:
    """Corners of [x, y, w, h] in drawing order (tl, tr, br, bl), shape (4, 2)."""
    x, y, w, h = (float(v) for v in rect)
    return np.array([[x, y], [x + w, y], [x + w, y + h], [x, y + h]], dtype=np.float64)


# ============================================================================
# BÉZIER FLATTENING
# ============================================================================

def quadratic_to_cubic(p0: np.ndarray, p1: np.ndarray, p2: np.ndarray) -> Tuple[np.ndarray, ...]:
    """Degree-elevate a quadratic Bézier to an equivalent cubic."""
    p0, p1, p2 = (np.asarray(p, dtype=np.float64) for p in (p0, p1, p2))
    return p0, p0 + 2.0 / 3.0 * (p1 - p0), p2 + 2.0 / 3.0 * (p1 - p2), p2


def flatten_cubic(
    p1: np.ndarray,
    p2: np.ndarray,
    p3: np.ndarray,
    p4: np.ndarray,
    max_err: float = 0.1,
    max_depth: int = 12
) -> np.ndarray:
    """Flatten a cubic Bézier to a polyline via adaptive subdivision.

    Parameters
    ----------
    p1, p2, p3, p4 : array-like
        Control points, shape (2,)
    max_err : float
        Maximum distance of the inner control points from the chord,
        default 0.1 (units of the input coordinates)
    max_depth : int
        Maximum recursion depth, default 12

    Returns
    -------
    np.ndarray
        Polyline vertices, shape (N, 2), N ≥ 2, starting at p1 and ending at p4

    Notes
    -----
    Flatness criterion: distance from q2, q3 to the chord q1-q4. For a
    degenerate chord the distance to q1 is used instead.
    """
    pts = [np.asarray(p, dtype=np.float64) for p in (p1, p2, p3, p4)]
    out = [pts[0]]

    def subdivide(q1, q2, q3, q4, depth):
        chord = q4 - q1
        chord_len = math.hypot(chord[0], chord[1])
        if chord_len > 1e-12:
            d2 = abs((q2[0] - q1[0]) * chord[1] - (q2[1] - q1[1]) * chord[0]) / chord_len
            d3 = abs((q3[0] - q1[0]) * chord[1] - (q3[1] - q1[1]) * chord[0]) / chord_len
        else:
            d2 = math.hypot(*(q2 - q1))
            d3 = math.hypot(*(q3 - q1))

        if depth >= max_depth or max(d2, d3) <= max_err:
            out.append(q4)
            return

        # De Casteljau split at t=0.5
        q12 = (q1 + q2) / 2.0
        q23 = (q2 + q3) / 2.0
        q34 = (q3 + q4) / 2.0
        q123 = (q12 + q23) / 2.0
        q234 = (q23 + q34) / 2.0
        q1234 = (q123 + q234) / 2.0
        subdivide(q1, q12, q123, q1234, depth + 1)
        subdivide(q1234, q234, q34, q4, depth + 1)

    subdivide(*pts, 0)
    return np.array(out, dtype=np.float64)


def flatten_quadratic(
    p0: np.ndarray,
    p1: np.ndarray,
    p2: np.ndarray,
    max_err: float = 0.1
) -> np.ndarray:
    """Flatten a quadratic Bézier (via degree elevation)."""
    return flatten_cubic(*quadratic_to_cubic(p0, p1, p2), max_err=max_err)


def arc_points(
    center: Sequence[float],
    radius: float,
    start: float,
    end: float,
    segments: int
) -> np.ndarray:
    """Points on a circular arc from angle start to end (radians), inclusive."""
    t = np.linspace(start, end, max(int(segments), 1) + 1)
    cx, cy = center
    return np.stack([cx + radius * np.cos(t), cy + radius * np.sin(t)], axis=1)


def concat_points(parts: Iterable[np.ndarray]) -> np.ndarray:
    """Concatenate point arrays, returning (0, 2) for nothing."""
    parts = [np.asarray(p, dtype=np.float64).reshape(-1, 2) for p in parts]
    if not parts:
        return np.zeros((0, 2), dtype=np.float64)
    return np.concatenate(parts, axis=0)
