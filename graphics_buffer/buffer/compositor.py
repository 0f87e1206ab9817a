"""Alpha compositing ("over") of coverage into the pixel store.

Per covered pixel, with k = alpha · coverage:

    rgb' = src_rgb · k + dst_rgb · (1 − k)
    a'   = k       + dst_a   · (1 − k)

Colors are straight alpha; math runs in float64 on the affected region and
is rounded to nearest on the way back to uint8.

Invariants:
    - k == 0 → destination bytes untouched (pixels are masked, not rewritten)
    - k == 1 → exact replacement: rgb' = src_rgb, a' = 1
    - Disjoint rows are independent, so row-band parallel compositing is
      byte-identical to sequential compositing

Parallelism:
    workers > 1 splits the affected rows into bands of at least
    min_rows_per_band rows and blends them on a thread pool (numpy releases
    the GIL inside the elementwise kernels). Each band writes only its own
    rows of the store.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Sequence

import numpy as np

from graphics_buffer.buffer.pixel_store import PixelStore
from graphics_buffer.buffer.rasterizer import CoverageSpan
from graphics_buffer.utils import color as color_utils

logger = logging.getLogger(__name__)


def blend_over(dst: np.ndarray, src: np.ndarray, k: np.ndarray) -> np.ndarray:
    """Blend float src over uint8 dst with weights k.

    Parameters
    ----------
    dst : np.ndarray
        uint8 destination, shape (h, w, 4)
    src : np.ndarray
        float64 source color, shape (4,) or (h, w, 4); only RGB is used
    k : np.ndarray
        float64 effective opacity alpha·coverage in [0, 1], shape (h, w)

    Returns
    -------
    np.ndarray
        uint8 result, shape (h, w, 4). Pixels with k == 0 equal dst.
    """
    d = color_utils.from_rgba8(dst)
    src = np.asarray(src, dtype=np.float64)
    k3 = k[..., np.newaxis]

    out = np.empty_like(d)
    out[..., :3] = src[..., :3] * k3 + d[..., :3] * (1.0 - k3)
    out[..., 3] = k + d[..., 3] * (1.0 - k)

    result = color_utils.to_rgba8(out)
    untouched = k <= 0.0
    result[untouched] = dst[untouched]
    return result


class Compositor:
    """Blends coverage spans or per-pixel layers into a PixelStore.

    Parameters
    ----------
    workers : int
        Thread count for row-band parallelism (1 = sequential)
    min_rows_per_band : int
        Smallest band worth dispatching to a worker
    """

    def __init__(self, workers: int = 1, min_rows_per_band: int = 32):
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.workers = int(workers)
        self.min_rows_per_band = max(int(min_rows_per_band), 1)

    def composite_spans(
        self,
        store: PixelStore,
        spans: Sequence[CoverageSpan],
        color
    ) -> int:
        """Blend a solid color through coverage spans.

        Parameters
        ----------
        store : PixelStore
            Destination
        spans : sequence of CoverageSpan
            Output of Rasterizer.rasterize(); at most one span per row
        color : sequence of float
            Straight-alpha RGBA source color

        Returns
        -------
        int
            Number of pixels whose effective opacity was nonzero
        """
        src = color_utils.as_color(color)
        if not spans or src[3] <= 0.0:
            return 0

        x0 = min(s.x0 for s in spans)
        x1 = max(s.x1 for s in spans)
        y0 = min(s.y for s in spans)
        y1 = max(s.y for s in spans) + 1

        coverage = np.zeros((y1 - y0, x1 - x0), dtype=np.float64)
        for s in spans:
            coverage[s.y - y0, s.x0 - x0:s.x1 - x0] = s.values

        return self.composite_layer(store, x0, y0, src, coverage)

    def composite_layer(
        self,
        store: PixelStore,
        x0: int,
        y0: int,
        src: np.ndarray,
        coverage: np.ndarray
    ) -> int:
        """Blend a source layer placed at (x0, y0).

        Parameters
        ----------
        store : PixelStore
            Destination
        x0, y0 : int
            Device position of coverage[0, 0]; the layer is clipped to the store
        src : np.ndarray
            float64 straight-alpha RGBA, shape (4,) for a solid color or
            (h, w, 4) per pixel
        coverage : np.ndarray
            float64 coverage in [0, 1], shape (h, w)

        Returns
        -------
        int
            Number of pixels whose effective opacity was nonzero
        """
        src = np.asarray(src, dtype=np.float64)
        coverage = np.asarray(coverage, dtype=np.float64)
        h, w = coverage.shape

        # Clip the layer rectangle to the store
        cx0, cy0 = max(x0, 0), max(y0, 0)
        cx1, cy1 = min(x0 + w, store.width), min(y0 + h, store.height)
        if cx1 <= cx0 or cy1 <= cy0:
            return 0

        cov = coverage[cy0 - y0:cy1 - y0, cx0 - x0:cx1 - x0]
        if src.ndim == 1:
            k = np.clip(src[3] * cov, 0.0, 1.0)
            src_clip = src
        else:
            src_clip = src[cy0 - y0:cy1 - y0, cx0 - x0:cx1 - x0]
            k = np.clip(src_clip[..., 3] * cov, 0.0, 1.0)

        touched = int(np.count_nonzero(k))
        if touched == 0:
            return 0

        bands = self._bands(cy1 - cy0)
        if len(bands) == 1:
            self._blend_band(store, cx0, cx1, cy0, src_clip, k, 0, cy1 - cy0)
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                futures = [
                    pool.submit(self._blend_band, store, cx0, cx1, cy0, src_clip, k, r0, r1)
                    for r0, r1 in bands
                ]
                for f in futures:
                    f.result()
        return touched

    def _bands(self, rows: int) -> List[tuple]:
        if self.workers == 1 or rows < 2 * self.min_rows_per_band:
            return [(0, rows)]
        n = min(self.workers, rows // self.min_rows_per_band)
        edges = np.linspace(0, rows, n + 1).astype(int)
        return [(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:]) if b > a]

    @staticmethod
    def _blend_band(store, cx0, cx1, cy0, src, k, r0, r1):
        dst = store.data[cy0 + r0:cy0 + r1, cx0:cx1]
        band_src = src if src.ndim == 1 else src[r0:r1]
        dst[...] = blend_over(dst, band_src, k[r0:r1])
