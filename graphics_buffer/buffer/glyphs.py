"""Glyph rasterization, glyph caching and the text drawer.

Fonts:
    - FontFace: interface (font_id + rasterize_glyph)
    - OutlineFont: glyph contours in em units (TrueType-style quadratic
      outlines or plain polylines), scan-converted by the package's own
      Rasterizer
    - TrueTypeFont: FreeType outlines rendered through Pillow
      (PIL.ImageFont.truetype)

GlyphCache:
    Coverage bitmaps keyed by (font_id, size, codepoint). Built outside the
    lock, inserted under it with insert-if-absent, so two threads racing on
    the same key both return the one bitmap that landed in the cache.
    Missing glyphs fall back to U+FFFD, then to an empty bitmap.

Text drawer:
    draw_text() walks the string, blits each cached coverage mask tinted by
    the fill color at pen + (left, -top) under the caller's transform, and
    advances the pen by the glyph's advance width. The cache is an explicit
    mutable handle owned by the caller.

Bitmap placement (device pixels, +y down):
    top-left of the bitmap = (pen_x + left, pen_y - top), where pen_y is the
    baseline and top is the distance from the baseline up to the first row.
"""

import io
import logging
import math
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from graphics_buffer.buffer.blitter import ImageBlitter
from graphics_buffer.buffer.pixel_store import PixelStore
from graphics_buffer.buffer.rasterizer import Rasterizer
from graphics_buffer.utils import geometry, hashing
from graphics_buffer.utils.geometry import Transform, as_transform

logger = logging.getLogger(__name__)

REPLACEMENT_CHARACTER = 0xFFFD


# ============================================================================
# GLYPH BITMAPS
# ============================================================================

@dataclass(frozen=True, eq=False)
class GlyphBitmap:
    """Rasterized glyph.

    Attributes
    ----------
    width, height : int
        Bitmap size in pixels
    coverage : np.ndarray
        uint8 coverage, shape (height, width), read-only
    left : float
        Horizontal offset from the pen to the bitmap's left column
    top : float
        Distance from the baseline up to the bitmap's top row
    advance : float
        Pen advance after this glyph
    """
    width: int
    height: int
    coverage: np.ndarray
    left: float
    top: float
    advance: float

    def __post_init__(self):
        self.coverage.setflags(write=False)

    @classmethod
    def empty(cls, advance: float = 0.0) -> 'GlyphBitmap':
        return cls(0, 0, np.zeros((0, 0), dtype=np.uint8), 0.0, 0.0, float(advance))

    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def as_rgba(self) -> np.ndarray:
        """White RGBA8 image whose alpha is the coverage."""
        rgba = np.full((self.height, self.width, 4), 255, dtype=np.uint8)
        rgba[..., 3] = self.coverage
        return rgba


# ============================================================================
# FONTS
# ============================================================================

class FontFace(ABC):
    """Source of glyph bitmaps.

    Implementations return None from rasterize_glyph() when the font has no
    glyph for the codepoint; the cache handles fallback.
    """

    @property
    @abstractmethod
    def font_id(self) -> str:
        """Stable identifier, part of the glyph cache key."""

    @abstractmethod
    def rasterize_glyph(self, size: int, codepoint: int) -> Optional[GlyphBitmap]:
        ...


@dataclass
class OutlineGlyph:
    """One glyph of an OutlineFont, in font units (y up, baseline at 0).

    Attributes
    ----------
    contours : list of np.ndarray
        Closed contours, each (N, 2)
    advance : float
        Advance width
    on_curve : list of np.ndarray, optional
        Per-contour boolean flags. When given, contours are TrueType
        quadratic outlines (off-curve points are control points); when
        omitted, contours are polylines.
    """
    contours: List[np.ndarray]
    advance: float
    on_curve: Optional[List[np.ndarray]] = None

    def polygons(self, max_err: float) -> List[np.ndarray]:
        """Flattened contours (font units)."""
        if self.on_curve is None:
            return [geometry.as_polygon(c) for c in self.contours]
        return [
            flatten_quadratic_contour(c, flags, max_err=max_err)
            for c, flags in zip(self.contours, self.on_curve)
        ]


def flatten_quadratic_contour(
    points: Sequence[Sequence[float]],
    on_curve: Sequence[bool],
    max_err: float = 0.1
) -> np.ndarray:
    """Flatten a closed TrueType quadratic contour to a polygon.

    Two consecutive off-curve points imply an on-curve point at their
    midpoint. A contour with no on-curve point starts at the midpoint of its
    first two control points.

    Parameters
    ----------
    points : array-like
        Contour points, shape (N, 2)
    on_curve : sequence of bool
        On-curve flag per point
    max_err : float
        Flattening tolerance, same units as points

    Returns
    -------
    np.ndarray
        Polygon vertices, shape (M, 2)
    """
    pts = geometry.as_polygon(points)
    flags = np.asarray(on_curve, dtype=bool)
    n = len(pts)
    if n == 0:
        return pts
    if len(flags) != n:
        raise ValueError(f"on_curve has {len(flags)} flags for {n} points")

    if flags.any():
        start = int(np.argmax(flags))
        pts = np.roll(pts, -start, axis=0)
        flags = np.roll(flags, -start)
        first = pts[0]
        rest = list(range(1, n))
    else:
        first = (pts[0] + pts[1]) / 2.0 if n > 1 else pts[0]
        rest = list(range(1, n)) + [0]

    out = [first]
    current = first
    control = None
    # Close back to the starting on-curve point
    sequence = [(pts[i], bool(flags[i])) for i in rest]
    sequence.append((first, True))
    for p, on in sequence:
        if on:
            if control is None:
                out.append(p)
            else:
                out.extend(geometry.flatten_quadratic(current, control, p, max_err=max_err)[1:])
                control = None
            current = p
        elif control is None:
            control = p
        else:
            mid = (control + p) / 2.0
            out.extend(geometry.flatten_quadratic(current, control, mid, max_err=max_err)[1:])
            current = mid
            control = p
    return np.array(out[:-1], dtype=np.float64)


class OutlineFont(FontFace):
    """Font defined by in-memory glyph outlines.

    Parameters
    ----------
    glyphs : dict
        codepoint → OutlineGlyph
    units_per_em : float
        Font units per em; size in pixels maps one em to size pixels
    name : str
        Used in font_id
    subsamples : int
        Rasterizer sub-scanlines for glyph coverage
    """

    def __init__(
        self,
        glyphs: Dict[int, OutlineGlyph],
        units_per_em: float = 1000.0,
        name: str = "outline",
        subsamples: int = 16
    ):
        if units_per_em <= 0:
            raise ValueError(f"units_per_em must be positive, got {units_per_em}")
        self.glyphs = dict(glyphs)
        self.units_per_em = float(units_per_em)
        self.name = name
        self.subsamples = subsamples

    @property
    def font_id(self) -> str:
        return f"outline:{self.name}"

    def rasterize_glyph(self, size: int, codepoint: int) -> Optional[GlyphBitmap]:
        glyph = self.glyphs.get(codepoint)
        if glyph is None:
            return None
        scale = size / self.units_per_em
        advance = glyph.advance * scale

        # Flatten in font units with a tolerance of ~1/20 px
        polys = [p for p in glyph.polygons(max_err=0.05 / scale) if len(p)]
        if not polys:
            return GlyphBitmap.empty(advance)

        # Font units (y up) → pixels (y down), baseline at y = 0
        device = [np.column_stack([p[:, 0] * scale, -p[:, 1] * scale]) for p in polys]
        pts = np.concatenate(device, axis=0)
        x_min, y_min = pts.min(axis=0)
        x_max, y_max = pts.max(axis=0)
        left, top_row = math.floor(x_min), math.floor(y_min)
        width, height = math.ceil(x_max) - left, math.ceil(y_max) - top_row
        if width <= 0 or height <= 0:
            return GlyphBitmap.empty(advance)

        shifted = [p - np.array([left, top_row], dtype=np.float64) for p in device]
        rasterizer = Rasterizer(width, height, subsamples=self.subsamples)
        coverage = rasterizer.coverage_array(shifted, fill_rule="nonzero")
        mask = np.rint(coverage * 255.0).astype(np.uint8)
        return GlyphBitmap(width, height, mask, float(left), float(-top_row), advance)


class TrueTypeFont(FontFace):
    """TrueType/OpenType font rendered by FreeType through Pillow.

    Parameters
    ----------
    path : str or Path
        Font file
    index : int
        Face index within a collection

    Notes
    -----
    Pillow exposes no cmap lookup, so a codepoint counts as missing when it
    renders identically (same mask and advance) to U+FFFF, a noncharacter
    that always maps to .notdef.

    Use from_bytes() for fonts held in memory (embedded or downloaded).
    """

    _NOTDEF_CHAR = "\uffff"

    def __init__(self, path: Union[str, os.PathLike], index: int = 0):
        self.path = os.fspath(path)
        self._data: Optional[bytes] = None
        self._setup(index)

    @classmethod
    def from_bytes(cls, data: Union[bytes, bytearray, memoryview], index: int = 0) -> 'TrueTypeFont':
        """Load a font from the raw contents of a .ttf/.otf file.

        Raises
        ------
        OSError
            If FreeType can't parse the data
        """
        font = cls.__new__(cls)
        font.path = None
        font._data = bytes(data)
        font._setup(index)
        return font

    def _setup(self, index: int) -> None:
        self.index = int(index)
        self._sizes: Dict[int, ImageFont.FreeTypeFont] = {}
        self._notdef: Dict[int, Tuple[bytes, float]] = {}
        self._lock = threading.Lock()
        # Fail early on unreadable fonts
        self._face(12)

    @property
    def font_id(self) -> str:
        if self._data is not None:
            return f"truetype:sha256:{hashing.sha256_bytes(self._data)}#{self.index}"
        return f"truetype:{os.path.abspath(self.path)}#{self.index}"

    def _face(self, size: int) -> ImageFont.FreeTypeFont:
        with self._lock:
            face = self._sizes.get(size)
            if face is None:
                source = self.path if self._data is None else io.BytesIO(self._data)
                face = ImageFont.truetype(source, size, index=self.index)
                self._sizes[size] = face
            return face

    def _render(self, face: ImageFont.FreeTypeFont, ch: str) -> Tuple[np.ndarray, int, int, float]:
        x0, y0, x1, y1 = (int(v) for v in face.getbbox(ch, anchor='ls'))
        advance = float(face.getlength(ch))
        w, h = x1 - x0, y1 - y0
        if w <= 0 or h <= 0:
            return np.zeros((0, 0), dtype=np.uint8), 0, 0, advance
        img = Image.new('L', (w, h), 0)
        ImageDraw.Draw(img).text((-x0, -y0), ch, font=face, fill=255, anchor='ls')
        return np.asarray(img, dtype=np.uint8).copy(), x0, y0, advance

    def _is_notdef(self, size: int, face: ImageFont.FreeTypeFont, mask: np.ndarray, advance: float) -> bool:
        ref = self._notdef.get(size)
        if ref is None:
            ref_mask, _, _, ref_advance = self._render(face, self._NOTDEF_CHAR)
            ref = (ref_mask.tobytes() + bytes(str(ref_mask.shape), 'ascii'), ref_advance)
            self._notdef[size] = ref
        key = mask.tobytes() + bytes(str(mask.shape), 'ascii')
        return key == ref[0] and advance == ref[1]

    def rasterize_glyph(self, size: int, codepoint: int) -> Optional[GlyphBitmap]:
        face = self._face(int(size))
        ch = chr(codepoint)
        mask, x0, y0, advance = self._render(face, ch)
        if codepoint != REPLACEMENT_CHARACTER and self._is_notdef(int(size), face, mask, advance):
            return None
        if mask.size == 0:
            return GlyphBitmap.empty(advance)
        h, w = mask.shape
        return GlyphBitmap(w, h, mask, float(x0), float(-y0), advance)


# ============================================================================
# CACHE
# ============================================================================

class GlyphCache:
    """Caches glyph bitmaps for one font.

    Parameters
    ----------
    font : FontFace
        Glyph source
    enabled : bool
        False → every request rasterizes (used to verify cached output)
    fallback_codepoint : int
        Substitute for glyphs the font lacks, default U+FFFD

    Attributes
    ----------
    hits, misses : int
        Request counters
    """

    def __init__(
        self,
        font: FontFace,
        enabled: bool = True,
        fallback_codepoint: int = REPLACEMENT_CHARACTER
    ):
        self.font = font
        self.enabled = enabled
        self.fallback_codepoint = fallback_codepoint
        self.hits = 0
        self.misses = 0
        self._glyphs: Dict[Tuple[str, int, int], GlyphBitmap] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._glyphs)

    def __contains__(self, key) -> bool:
        return key in self._glyphs

    def key(self, size: int, codepoint: Union[int, str]) -> Tuple[str, int, int]:
        if isinstance(codepoint, str):
            codepoint = ord(codepoint)
        return self.font.font_id, int(size), int(codepoint)

    def glyph(self, size: int, codepoint: Union[int, str]) -> GlyphBitmap:
        """Bitmap for (size, codepoint), rasterized on first request.

        Parameters
        ----------
        size : int
            Font size in pixels (one em)
        codepoint : int or str
            Unicode codepoint or a one-character string

        Returns
        -------
        GlyphBitmap
            Cached bitmap; the fallback glyph or an empty bitmap when the
            font has no glyph for codepoint
        """
        key = self.key(size, codepoint)
        if self.enabled:
            with self._lock:
                cached = self._glyphs.get(key)
                if cached is not None:
                    self.hits += 1
                    return cached

        bitmap = self._build(key[1], key[2])

        with self._lock:
            self.misses += 1
            if not self.enabled:
                return bitmap
            # Another thread may have inserted the same key meanwhile
            return self._glyphs.setdefault(key, bitmap)

    def _build(self, size: int, codepoint: int) -> GlyphBitmap:
        if size <= 0:
            raise ValueError(f"Font size must be positive, got {size}")
        bitmap = self.font.rasterize_glyph(size, codepoint)
        if bitmap is not None:
            return bitmap
        if codepoint != self.fallback_codepoint:
            logger.warning(
                f"No glyph for U+{codepoint:04X} in {self.font.font_id}, "
                f"using U+{self.fallback_codepoint:04X}"
            )
            bitmap = self.font.rasterize_glyph(size, self.fallback_codepoint)
            if bitmap is not None:
                return bitmap
        return GlyphBitmap.empty()

    def text_width(self, size: int, text: str) -> float:
        """Sum of advance widths of text."""
        return float(sum(self.glyph(size, ch).advance for ch in text))

    def clear(self) -> None:
        with self._lock:
            self._glyphs.clear()
            self.hits = 0
            self.misses = 0


# ============================================================================
# TEXT DRAWER
# ============================================================================

def draw_text(
    blitter: ImageBlitter,
    store: PixelStore,
    glyphs: GlyphCache,
    text: str,
    size: int,
    pen_origin: Sequence[float],
    color,
    transform: Optional[Transform] = None
) -> float:
    """Paint text with the pen starting at pen_origin (on the baseline).

    Parameters
    ----------
    blitter : ImageBlitter
        Paints each glyph mask
    store : PixelStore
        Destination
    glyphs : GlyphCache
        Explicit cache handle; updated in place
    text : str
        Characters to draw (no shaping, no line breaking)
    size : int
        Font size in pixels
    pen_origin : (x, y)
        User-space pen start
    color : RGBA
        Fill color the coverage masks are tinted with
    transform : Transform, optional
        User → device transform

    Returns
    -------
    float
        Pen x position after the last glyph
    """
    t = as_transform(transform)
    x, y = float(pen_origin[0]), float(pen_origin[1])
    for ch in text:
        glyph = glyphs.glyph(size, ch)
        if not glyph.is_empty():
            blitter.blit(
                store,
                glyph.as_rgba(),
                transform=t.trans(x + glyph.left, y - glyph.top),
                color=color,
                sampling="nearest"
            )
        x += glyph.advance
    return x
