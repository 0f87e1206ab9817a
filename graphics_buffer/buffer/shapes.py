"""Shape → polygon expansion for the line drawer and host-API helpers.

Provides:
    - line_polygon(): segment + thickness + cap → polygon
    - rectangle_polygon(): [x, y, w, h] → quad
    - ellipse_polygon(): [x, y, w, h] bounding box → regular polygon
    - circle_polygon(): center + radius → regular polygon
    - polygon_from_points(): host vertex list → polygon

All results are user-space (N, 2) float64 arrays; the caller transforms
them to device space and hands them to the rasterizer. Empty (0, 2) arrays
mean "draw nothing".

Line caps:
    butt    quad ending exactly at p0 and p1
    square  quad extended by thickness/2 past both ends
    round   stadium: semicircles of radius thickness/2 around p0 and p1
"""

import math
from typing import Sequence

import numpy as np

from graphics_buffer.utils import geometry
from graphics_buffer.utils.validators import validate_line_cap

_EMPTY = np.zeros((0, 2), dtype=np.float64)


def _cap_segments(radius: float) -> int:
    """Segments per semicircle: ~1 per device pixel of arc, within [8, 64]."""
    return int(np.clip(math.ceil(math.pi * radius), 8, 64))


def circle_polygon(center: Sequence[float], radius: float, resolution: int = 128) -> np.ndarray:
    """Regular polygon approximating a circle."""
    if not (radius > 0.0) or resolution < 3:
        return _EMPTY
    t = 2.0 * math.pi * np.arange(resolution, dtype=np.float64) / resolution
    cx, cy = float(center[0]), float(center[1])
    return np.stack([cx + radius * np.cos(t), cy + radius * np.sin(t)], axis=1)


def ellipse_polygon(rect: Sequence[float], resolution: int = 128) -> np.ndarray:
    """Polygon approximating the ellipse inscribed in rect = [x, y, w, h].

    Examples
    --------
    >>> ellipse_polygon([0, 0, 100, 100], resolution=4).round(6).tolist()
    [[100.0, 50.0], [50.0, 100.0], [0.0, 50.0], [50.0, 0.0]]
    """
    x, y, w, h = (float(v) for v in rect)
    if w == 0.0 or h == 0.0 or resolution < 3:
        return _EMPTY
    t = 2.0 * math.pi * np.arange(resolution, dtype=np.float64) / resolution
    cx, cy = x + 0.5 * w, y + 0.5 * h
    return np.stack([cx + 0.5 * w * np.cos(t), cy + 0.5 * h * np.sin(t)], axis=1)


def rectangle_polygon(rect: Sequence[float]) -> np.ndarray:
    """Quad for rect = [x, y, w, h] (empty for zero width or height)."""
    x, y, w, h = (float(v) for v in rect)
    if w == 0.0 or h == 0.0:
        return _EMPTY
    return geometry.rect_corners((x, y, w, h))


def line_polygon(
    p0: Sequence[float],
    p1: Sequence[float],
    thickness: float,
    cap: str = "butt"
) -> np.ndarray:
    """Expand a line segment into a fillable polygon.

    Parameters
    ----------
    p0, p1 : (x, y)
        Segment endpoints
    thickness : float
        Full line width; <= 0 (or non-finite) draws nothing
    cap : str
        "butt", "square" or "round"

    Returns
    -------
    np.ndarray
        Polygon vertices (N, 2); empty when nothing should be drawn

    Notes
    -----
    A zero-length segment draws nothing with butt caps, an axis-aligned
    square with square caps and a disc with round caps.
    """
    cap = validate_line_cap(cap)
    if not (np.isfinite(thickness) and thickness > 0.0):
        return _EMPTY

    a = np.asarray(p0, dtype=np.float64).reshape(2)
    b = np.asarray(p1, dtype=np.float64).reshape(2)
    if not (np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
        return _EMPTY

    r = 0.5 * float(thickness)
    d = b - a
    length = float(np.hypot(d[0], d[1]))

    if length == 0.0:
        if cap == "butt":
            return _EMPTY
        if cap == "square":
            return geometry.rect_corners((a[0] - r, a[1] - r, 2.0 * r, 2.0 * r))
        return circle_polygon(a, r, resolution=2 * _cap_segments(r))

    u = d / length * r                 # along the segment, length r
    n = np.array([-u[1], u[0]])        # left normal, length r

    if cap == "butt":
        return np.array([a + n, b + n, b - n, a - n])
    if cap == "square":
        return np.array([a - u + n, b + u + n, b + u - n, a - u - n])

    theta = math.atan2(n[1], n[0])
    segs = _cap_segments(r)
    # Arc around p1 from +n through +u to -n, then around p0 from -n through -u back to +n
    front = geometry.arc_points(b, r, theta, theta - math.pi, segs)
    back = geometry.arc_points(a, r, theta - math.pi, theta - 2.0 * math.pi, segs)
    return geometry.concat_points([front, back])


def polygon_from_points(points) -> np.ndarray:
    """Host-API vertex list → (N, 2) polygon (empty when fewer than 3 points)."""
    poly = geometry.as_polygon(points)
    if len(poly) < 3:
        return _EMPTY
    return poly
