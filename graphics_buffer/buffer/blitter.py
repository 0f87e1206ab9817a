"""Transformed image blits through the compositor.

For each destination pixel whose centre falls in the transformed bounding
box of the source image (clipped to the buffer), the pixel centre is mapped
back through the inverse transform to a source coordinate, sampled, tinted,
and composited.

Mapping:
    source-rect local (u, v) ∈ [0, sw) × [0, sh)
      → user space  dest_rect.xy + (u, v) · dest_rect.wh / src_rect.wh
      → device      transform(user)

Sampling:
    - "nearest": texel (sx + ⌊u⌋, sy + ⌊v⌋)
    - "bilinear": OpenCV cv2.remap (in tiles) on premultiplied float32 RGBA with a
      transparent constant border, texel centres at integer + 0.5

Samples outside the source rectangle contribute zero alpha. A singular
transform (or a zero-sized rect) draws nothing.
"""

import logging
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np
from PIL import Image

from graphics_buffer.buffer.compositor import Compositor
from graphics_buffer.buffer.pixel_store import PixelStore
from graphics_buffer.utils import color as color_utils
from graphics_buffer.utils.geometry import Transform, as_transform, rect_corners
from graphics_buffer.utils.validators import SAMPLING_MODES

logger = logging.getLogger(__name__)

# cv2.remap rejects images and maps of SHRT_MAX or more pixels per side
REMAP_LIMIT = 32767
REMAP_TILE = 1024


def image_to_rgba8(image) -> np.ndarray:
    """Normalize a blit source to a uint8 (H, W, 4) array.

    Accepts PixelStore / RenderBuffer (anything with as_array()),
    PIL.Image.Image (converted to RGBA), or numpy arrays: uint8 (H, W, 4),
    uint8 (H, W, 3) (opaque), or float (H, W, 3|4) in [0, 1].
    """
    if hasattr(image, 'as_array'):
        return image.as_array()
    if isinstance(image, Image.Image):
        return np.asarray(image.convert('RGBA'))

    arr = np.asarray(image)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise ValueError(f"Image array must have shape (H, W, 3|4), got {arr.shape}")
    if arr.dtype != np.uint8:
        if not np.issubdtype(arr.dtype, np.floating):
            raise TypeError(f"Image array must be uint8 or float in [0, 1], got {arr.dtype}")
        arr = color_utils.to_rgba8(arr) if arr.shape[2] == 4 else np.rint(
            np.clip(arr, 0.0, 1.0) * 255.0
        ).astype(np.uint8)
    if arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        arr = np.concatenate([arr, alpha], axis=2)
    return arr


class ImageBlitter:
    """Maps source images onto a PixelStore.

    Parameters
    ----------
    compositor : Compositor
        Blends sampled texels into the store
    sampling : str
        Default sampling mode, "nearest" or "bilinear"
    """

    def __init__(self, compositor: Compositor, sampling: str = "nearest"):
        if sampling not in SAMPLING_MODES:
            raise ValueError(f"sampling must be one of {SAMPLING_MODES}, got {sampling!r}")
        self.compositor = compositor
        self.sampling = sampling

    def blit(
        self,
        store: PixelStore,
        image,
        dest_rect: Optional[Sequence[float]] = None,
        transform: Optional[Transform] = None,
        color: Optional[Sequence[float]] = None,
        src_rect: Optional[Sequence[float]] = None,
        sampling: Optional[str] = None
    ) -> int:
        """Draw image into store.

        Parameters
        ----------
        store : PixelStore
            Destination
        image : PixelStore, RenderBuffer, PIL.Image.Image or np.ndarray
            Source pixels
        dest_rect : [x, y, w, h], optional
            User-space rectangle the source rect is stretched onto;
            defaults to [0, 0, src_w, src_h]
        transform : Transform, optional
            User → device transform; identity when omitted
        color : RGBA, optional
            Tint multiplied with every texel (white when omitted)
        src_rect : [x, y, w, h], optional
            Integer sub-rectangle of the source; whole image when omitted
        sampling : str, optional
            Override the blitter's default sampling mode

        Returns
        -------
        int
            Pixels composited with nonzero opacity
        """
        sampling = sampling or self.sampling
        if sampling not in SAMPLING_MODES:
            raise ValueError(f"sampling must be one of {SAMPLING_MODES}, got {sampling!r}")

        src = image_to_rgba8(image)
        tint = color_utils.WHITE if color is None else color_utils.as_color(color)
        if tint[3] <= 0.0 or store.is_empty():
            return 0

        sub = self._crop(src, src_rect)
        if sub is None:
            return 0
        sh, sw = sub.shape[:2]

        dx, dy, dw, dh = (0.0, 0.0, float(sw), float(sh)) if dest_rect is None else (
            float(v) for v in dest_rect
        )
        mapping = as_transform(transform).trans(dx, dy).scale(dw / sw, dh / sh)
        if not mapping.is_invertible():
            logger.debug("Skipping image blit with singular transform")
            return 0

        bounds = self._device_bounds(mapping, sw, sh, store)
        if bounds is None:
            return 0
        x0, y0, x1, y1 = bounds

        # Pixel centres of the device box → source-local (u, v)
        xs = np.arange(x0, x1, dtype=np.float64) + 0.5
        ys = np.arange(y0, y1, dtype=np.float64) + 0.5
        gx, gy = np.meshgrid(xs, ys)
        uv = mapping.invert().apply(np.stack([gx, gy], axis=-1))
        u, v = uv[..., 0], uv[..., 1]
        inside = (u >= 0.0) & (u < sw) & (v >= 0.0) & (v < sh)
        if not inside.any():
            return 0

        if sampling == "nearest":
            texels = self._sample_nearest(sub, u, v, inside)
        else:
            texels = self._sample_bilinear(sub, u, v)

        src_rgba = color_utils.mul(texels, tint)
        coverage = inside.astype(np.float64)
        return self.compositor.composite_layer(store, x0, y0, src_rgba, coverage)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _crop(src: np.ndarray, src_rect: Optional[Sequence[float]]) -> Optional[np.ndarray]:
        h, w = src.shape[:2]
        if src_rect is None:
            sub = src
        else:
            sx, sy, sw, sh = (int(round(float(v))) for v in src_rect)
            sx0, sy0 = max(sx, 0), max(sy, 0)
            sx1, sy1 = min(sx + sw, w), min(sy + sh, h)
            if sx1 <= sx0 or sy1 <= sy0:
                return None
            sub = src[sy0:sy1, sx0:sx1]
        if sub.shape[0] == 0 or sub.shape[1] == 0:
            return None
        return sub

    @staticmethod
    def _device_bounds(
        mapping: Transform,
        sw: int,
        sh: int,
        store: PixelStore
    ) -> Optional[Tuple[int, int, int, int]]:
        corners = mapping.apply(rect_corners((0.0, 0.0, sw, sh)))
        if not np.all(np.isfinite(corners)):
            return None
        x_min, y_min = corners.min(axis=0)
        x_max, y_max = corners.max(axis=0)
        x0 = max(int(np.floor(x_min)), 0)
        y0 = max(int(np.floor(y_min)), 0)
        x1 = min(int(np.ceil(x_max)), store.width)
        y1 = min(int(np.ceil(y_max)), store.height)
        if x1 <= x0 or y1 <= y0:
            return None
        return x0, y0, x1, y1

    @staticmethod
    def _sample_nearest(sub: np.ndarray, u: np.ndarray, v: np.ndarray, inside: np.ndarray) -> np.ndarray:
        sh, sw = sub.shape[:2]
        ix = np.clip(np.floor(u), 0, sw - 1).astype(np.intp)
        iy = np.clip(np.floor(v), 0, sh - 1).astype(np.intp)
        texels = color_utils.from_rgba8(sub[iy, ix])
        texels[~inside] = 0.0
        return texels

    @staticmethod
    def _sample_bilinear(sub: np.ndarray, u: np.ndarray, v: np.ndarray) -> np.ndarray:
        rgba = sub.astype(np.float32) / 255.0
        premul = rgba.copy()
        premul[..., :3] *= rgba[..., 3:4]

        map_x = (u - 0.5).astype(np.float32)
        map_y = (v - 0.5).astype(np.float32)
        rows, cols = map_x.shape
        sampled = np.zeros((rows, cols, 4), dtype=np.float64)
        for ty in range(0, rows, REMAP_TILE):
            for tx in range(0, cols, REMAP_TILE):
                tile = np.s_[ty:ty + REMAP_TILE, tx:tx + REMAP_TILE]
                sampled[tile] = _remap_tile(premul, map_x[tile], map_y[tile])

        alpha = sampled[..., 3]
        out = np.zeros_like(sampled)
        has_alpha = alpha > 0.0
        out[has_alpha, :3] = sampled[has_alpha, :3] / alpha[has_alpha, np.newaxis]
        out[..., 3] = alpha
        return np.clip(out, 0.0, 1.0)


def _remap_tile(premul: np.ndarray, map_x: np.ndarray, map_y: np.ndarray) -> np.ndarray:
    """Bilinear samples of premul at (map_x, map_y), zero outside the image.

    Crops premul to the texels the tile can reach so cv2.remap sees images
    below its SHRT_MAX size limit; windows that are still too large (strong
    minification of a huge source) go through bilinear_gather().
    """
    h, w = premul.shape[:2]
    sx0 = max(int(np.floor(map_x.min())), 0)
    sy0 = max(int(np.floor(map_y.min())), 0)
    sx1 = min(int(np.floor(map_x.max())) + 2, w)
    sy1 = min(int(np.floor(map_y.max())) + 2, h)
    if sx1 <= sx0 or sy1 <= sy0:
        return np.zeros(map_x.shape + (4,), dtype=np.float64)

    window = np.ascontiguousarray(premul[sy0:sy1, sx0:sx1])
    local_x = map_x - np.float32(sx0)
    local_y = map_y - np.float32(sy0)
    if max(window.shape[:2]) >= REMAP_LIMIT:
        return bilinear_gather(window, local_x, local_y)
    return cv2.remap(
        window, local_x, local_y,
        interpolation=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0.0, 0.0, 0.0, 0.0)
    ).reshape(map_x.shape + (4,)).astype(np.float64)


def bilinear_gather(image: np.ndarray, map_x: np.ndarray, map_y: np.ndarray) -> np.ndarray:
    """Bilinear interpolation of image (H, W, C) at float pixel coordinates.

    Same convention as cv2.remap with INTER_LINEAR and a zero constant
    border: texel (i, j) sits at integer coordinates, neighbours outside
    the image contribute zero.
    """
    h, w = image.shape[:2]
    x0 = np.floor(map_x).astype(np.intp)
    y0 = np.floor(map_y).astype(np.intp)
    fx = (map_x - x0).astype(np.float64)[..., np.newaxis]
    fy = (map_y - y0).astype(np.float64)[..., np.newaxis]

    out = np.zeros(map_x.shape + (image.shape[2],), dtype=np.float64)
    for dy, wy in ((0, 1.0 - fy), (1, fy)):
        for dx, wx in ((0, 1.0 - fx), (1, fx)):
            xi = x0 + dx
            yi = y0 + dy
            valid = (xi >= 0) & (xi < w) & (yi >= 0) & (yi < h)
            texels = image[np.clip(yi, 0, h - 1), np.clip(xi, 0, w - 1)]
            out += np.where(valid[..., np.newaxis], texels * (wx * wy), 0.0)
    return out
