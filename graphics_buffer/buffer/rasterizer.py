"""Scanline polygon rasterizer with anti-aliased coverage.

Converts device-space polygons (one or more closed contours, possibly
self-intersecting) into per-row coverage spans for the compositor.

Architecture:
    - Contours → non-horizontal edges (x0, y0, x1, y1, winding dir), y0 < y1
    - For each pixel row intersecting the polygon (clipped to the buffer):
        * sample `subsamples` sub-scanlines at y + (k + 0.5) / subsamples
        * intersect every active edge (half-open y0 ≤ sy < y1), sort by x
        * pair crossings into interior spans by fill rule
          (nonzero: running winding ≠ 0, evenodd: odd crossing count)
        * add each span's exact horizontal overlap with every pixel,
          weighted 1 / subsamples
    - Emit one CoverageSpan per row that received coverage

Anti-aliasing:
    Coverage is analytic along x (exact overlap of the span with the pixel)
    and sampled along y. With antialias disabled, one sub-scanline runs
    through the pixel centre and coverage is thresholded at 0.5, giving
    binary masks.

Invariants:
    - Coverage values lie in [0, 1]; an interior pixel gets exactly 1.0
      (subsamples is a power of two, so the 1/subsamples weights sum exactly)
    - Every emitted (x, y) lies inside [0, width) × [0, height)
    - <3 vertices, non-finite vertices or zero area → no spans
    - Deterministic: the same input always yields the same floats
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple, Union

import numpy as np

from graphics_buffer.utils import geometry
from graphics_buffer.utils.validators import validate_fill_rule

logger = logging.getLogger(__name__)

Contours = Union[np.ndarray, Sequence[np.ndarray]]

# Coverage below this is treated as no coverage (float noise at span ends).
_COVERAGE_EPS = 1e-9


def normalize_contours(contours: Contours) -> List[np.ndarray]:
    """Accept one contour (N, 2) or a sequence of contours; return a list of (N, 2) arrays."""
    if isinstance(contours, np.ndarray) and contours.ndim == 2:
        return [geometry.as_polygon(contours)]
    if (
        isinstance(contours, (list, tuple))
        and contours
        and np.ndim(contours[0]) == 1
    ):
        # A flat list of (x, y) pairs is a single contour
        return [geometry.as_polygon(contours)]
    return [geometry.as_polygon(c) for c in contours]


@dataclass
class CoverageSpan:
    """Coverage for one device row.

    Attributes
    ----------
    y : int
        Row index
    x0 : int
        Column of values[0]
    values : np.ndarray
        float64 coverage in [0, 1], shape (n,)
    """
    y: int
    x0: int
    values: np.ndarray

    @property
    def x1(self) -> int:
        """One past the last column."""
        return self.x0 + len(self.values)

    def iter_triples(self) -> Iterator[Tuple[int, int, float]]:
        """Yield (x, y, coverage) for every pixel with nonzero coverage."""
        for i in np.flatnonzero(self.values):
            yield self.x0 + int(i), self.y, float(self.values[i])


class Rasterizer:
    """Scan converter bound to a clip extent.

    Parameters
    ----------
    width, height : int
        Clip extent (the target buffer size)
    subsamples : int
        Sub-scanlines per pixel row when anti-aliasing, power of two
    antialias : bool
        False → single centre sample, binary coverage

    Examples
    --------
    >>> r = Rasterizer(8, 8)
    >>> spans = r.rasterize([[2, 2], [6, 2], [6, 6], [2, 6]])
    >>> [(s.y, s.x0, s.values.tolist()) for s in spans][0]
    (2, 2, [1.0, 1.0, 1.0, 1.0])
    """

    def __init__(
        self,
        width: int,
        height: int,
        subsamples: int = 16,
        antialias: bool = True
    ):
        if subsamples < 1 or subsamples & (subsamples - 1):
            raise ValueError(f"subsamples must be a positive power of two, got {subsamples}")
        self.width = int(width)
        self.height = int(height)
        self.antialias = antialias
        self.subsamples = subsamples if antialias else 1

    # ------------------------------------------------------------------
    # Edge table
    # ------------------------------------------------------------------

    @staticmethod
    def _build_edges(polys: List[np.ndarray]) -> np.ndarray:
        """Edge table, shape (E, 5): x_top, y_top, x_bottom, y_bottom, dir."""
        edges = []
        for poly in polys:
            if len(poly) < 2:
                continue
            start = poly
            end = np.roll(poly, -1, axis=0)
            x0, y0 = start[:, 0], start[:, 1]
            x1, y1 = end[:, 0], end[:, 1]
            keep = y0 != y1
            if not keep.any():
                continue
            x0, y0, x1, y1 = x0[keep], y0[keep], x1[keep], y1[keep]
            downward = y1 > y0
            direction = np.where(downward, 1.0, -1.0)
            top_x = np.where(downward, x0, x1)
            top_y = np.where(downward, y0, y1)
            bot_x = np.where(downward, x1, x0)
            bot_y = np.where(downward, y1, y0)
            edges.append(np.stack([top_x, top_y, bot_x, bot_y, direction], axis=1))
        if not edges:
            return np.zeros((0, 5), dtype=np.float64)
        return np.concatenate(edges, axis=0)

    # ------------------------------------------------------------------
    # Scan conversion
    # ------------------------------------------------------------------

    def rasterize(self, contours: Contours, fill_rule: str = "nonzero") -> List[CoverageSpan]:
        """Rasterize a polygon (or several contours of one path).

        Parameters
        ----------
        contours : array-like
            A single contour (N, 2) or a sequence of contours in device space.
            Each contour is implicitly closed.
        fill_rule : str
            "nonzero" or "evenodd"

        Returns
        -------
        list of CoverageSpan
            Rows in increasing y order; empty for degenerate or fully
            clipped input
        """
        rule = validate_fill_rule(fill_rule)
        polys = normalize_contours(contours)

        if self.width <= 0 or self.height <= 0:
            return []

        total_vertices = sum(len(p) for p in polys)
        if total_vertices < 3:
            return []
        for p in polys:
            if len(p) and not np.all(np.isfinite(p)):
                logger.debug("Skipping polygon with non-finite vertices")
                return []

        # Collinear (zero-area) input yields zero-width spans, dropped per row.
        # Signed area is no early-out: a bowtie sums to 0 but covers pixels.
        edges = self._build_edges(polys)
        if len(edges) == 0:
            return []

        all_pts = np.concatenate([p for p in polys if len(p)], axis=0)
        x_min, y_min = all_pts.min(axis=0)
        x_max, y_max = all_pts.max(axis=0)
        if x_max <= 0 or y_max <= 0 or x_min >= self.width or y_min >= self.height:
            return []

        row_start = max(int(np.floor(y_min)), 0)
        row_end = min(int(np.ceil(y_max)), self.height)

        spans = []
        for y in range(row_start, row_end):
            values = self._rasterize_row(edges, y, rule)
            if values is None:
                continue
            nz = np.flatnonzero(values)
            x0, x1 = int(nz[0]), int(nz[-1]) + 1
            spans.append(CoverageSpan(y=y, x0=x0, values=values[x0:x1]))
        return spans

    def _sample_offsets(self) -> np.ndarray:
        s = self.subsamples
        return (np.arange(s, dtype=np.float64) + 0.5) / s

    def _rasterize_row(self, edges: np.ndarray, y: int, rule: str):
        """Coverage for row y, shape (width,), or None if nothing is covered."""
        top_y, bot_y = edges[:, 1], edges[:, 3]
        row_edges = edges[(top_y < y + 1) & (bot_y > y)]
        if len(row_edges) < 2:
            return None

        tx, ty, bx, by, direction = row_edges.T
        sy = y + self._sample_offsets()                       # (S,)
        active = (ty[None, :] <= sy[:, None]) & (sy[:, None] < by[None, :])   # (S, E)
        if not active.any():
            return None

        slope = (bx - tx) / (by - ty)
        xs = tx[None, :] + (sy[:, None] - ty[None, :]) * slope[None, :]
        xs = np.where(active, xs, np.inf)

        order = np.argsort(xs, axis=1, kind='stable')
        xs_sorted = np.take_along_axis(xs, order, axis=1)
        if rule == "nonzero":
            dirs = np.where(active, direction[None, :], 0.0)
            winding = np.cumsum(np.take_along_axis(dirs, order, axis=1), axis=1)
            inside = winding[:, :-1] != 0
        else:
            crossings = np.cumsum(np.take_along_axis(active, order, axis=1), axis=1)
            inside = (crossings[:, :-1] % 2) == 1

        a = xs_sorted[:, :-1][inside]
        b = xs_sorted[:, 1:][inside]
        finite = np.isfinite(b)
        a, b = a[finite], b[finite]
        if a.size == 0:
            return None

        w = self.width
        a = np.clip(a, 0.0, w)
        b = np.clip(b, 0.0, w)
        keep = b > a
        if not keep.any():
            return None
        a, b = a[keep], b[keep]

        weight = 1.0 / self.subsamples
        fa = np.minimum(np.floor(a).astype(np.int64), w)
        fb = np.minimum(np.floor(b).astype(np.int64), w)

        # coverage(px) = clamp(b - px, 0, 1) - clamp(a - px, 0, 1):
        # a unit step on [fa, fb) plus the fractional ends at fa and fb.
        step = np.zeros(w + 1, dtype=np.float64)
        ends = np.zeros(w + 1, dtype=np.float64)
        np.add.at(step, fa, weight)
        np.add.at(step, fb, -weight)
        np.add.at(ends, fb, weight * (b - fb))
        np.add.at(ends, fa, -weight * (a - fa))
        coverage = np.cumsum(step)[:w] + ends[:w]
        coverage = np.clip(coverage, 0.0, 1.0)
        coverage[coverage < _COVERAGE_EPS] = 0.0

        if not self.antialias:
            coverage = np.where(coverage >= 0.5, 1.0, 0.0)

        if not coverage.any():
            return None
        return coverage

    # ------------------------------------------------------------------
    # Dense helpers
    # ------------------------------------------------------------------

    def coverage_array(self, contours: Contours, fill_rule: str = "nonzero") -> np.ndarray:
        """Rasterize into a dense (height, width) float64 coverage array."""
        return spans_to_array(self.rasterize(contours, fill_rule), self.width, self.height)


def spans_to_array(spans: List[CoverageSpan], width: int, height: int) -> np.ndarray:
    """Scatter coverage spans into a dense (height, width) float64 array."""
    out = np.zeros((height, width), dtype=np.float64)
    for span in spans:
        out[span.y, span.x0:span.x1] = span.values
    return out


def iter_coverage(spans: List[CoverageSpan]) -> Iterator[Tuple[int, int, float]]:
    """Flatten spans into (x, y, coverage) triples."""
    for span in spans:
        yield from span.iter_triples()
