"""Software render target.

RenderBuffer owns a PixelStore and implements the Graphics interface on top
of the rasterization pipeline:

    draw_polygon / draw_line / rectangle / ellipse
        user-space polygon → transform → Rasterizer → Compositor → PixelStore
    draw_image
        ImageBlitter (inverse-mapped sampling) → Compositor → PixelStore
    draw_text
        GlyphCache (caller-owned) → ImageBlitter → Compositor → PixelStore

Persistence (codec.py) and texture export (texture.py) read the store on
demand. Pipeline parameters come from a RenderConfigV1 (defaults when
omitted, or configs/render.v1.yaml via load_render_config()).

Concurrency:
    A RenderBuffer is not safe for concurrent draws; callers serialize
    access. Parallelism inside one draw is the compositor's business
    (config compositor.workers).

Usage:
    from graphics_buffer import RenderBuffer, Transform
    buf = RenderBuffer(100, 100)
    buf.clear([0, 0, 0, 0])
    buf.ellipse([0, 0, 100, 100], [1, 0, 0, 0.7])
    buf.save("circles.png")
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from graphics_buffer.buffer import codec, glyphs as glyph_module, shapes
from graphics_buffer.buffer.blitter import ImageBlitter
from graphics_buffer.buffer.compositor import Compositor
from graphics_buffer.buffer.glyphs import FontFace, GlyphCache
from graphics_buffer.buffer.pixel_store import PixelStore
from graphics_buffer.buffer.rasterizer import Rasterizer, normalize_contours
from graphics_buffer.buffer.surface import Graphics
from graphics_buffer.buffer.texture import TextureContext, TextureSettings, rgba_snapshot
from graphics_buffer.utils import color as color_utils
from graphics_buffer.utils import hashing
from graphics_buffer.utils.geometry import Transform, as_transform
from graphics_buffer.utils.validators import (
    RenderConfigV1,
    default_render_config,
    validate_fill_rule,
    validate_line_cap,
)

logger = logging.getLogger(__name__)


class RenderBuffer(Graphics):
    """In-memory RGBA8 render target.

    Parameters
    ----------
    width, height : int
        Buffer size in pixels (non-negative)
    config : RenderConfigV1, optional
        Pipeline settings; built-in defaults when omitted

    Attributes
    ----------
    store : PixelStore
        Pixel storage, mutated by every draw call
    config : RenderConfigV1
        Active settings
    """

    def __init__(self, width: int, height: int, config: Optional[RenderConfigV1] = None):
        self.config = config or default_render_config()
        self._attach(PixelStore(width, height))

    @classmethod
    def from_store(cls, store: PixelStore, config: Optional[RenderConfigV1] = None) -> 'RenderBuffer':
        """Wrap an existing PixelStore (no copy)."""
        buf = cls.__new__(cls)
        buf.config = config or default_render_config()
        buf._attach(store)
        return buf

    def _attach(self, store: PixelStore) -> None:
        cfg = self.config
        self.store = store
        self.rasterizer = Rasterizer(
            store.width,
            store.height,
            subsamples=cfg.rasterizer.subsamples,
            antialias=cfg.rasterizer.antialias
        )
        self.compositor = Compositor(
            workers=cfg.compositor.workers,
            min_rows_per_band=cfg.compositor.min_rows_per_band
        )
        self.blitter = ImageBlitter(self.compositor, sampling=cfg.blitter.sampling)

    # ------------------------------------------------------------------
    # Size and pixel access
    # ------------------------------------------------------------------

    @property
    def width(self) -> int:
        return self.store.width

    @property
    def height(self) -> int:
        return self.store.height

    @property
    def size(self) -> Tuple[int, int]:
        return self.store.size

    def get_size(self) -> Tuple[int, int]:
        return self.store.size

    @property
    def pixels(self) -> bytes:
        """Row-major RGBA8 bytes."""
        return self.store.pixels

    def as_array(self) -> np.ndarray:
        """Read-only (H, W, 4) uint8 view."""
        return self.store.as_array()

    def pixel(self, x: int, y: int) -> Optional[np.ndarray]:
        """Float RGBA at (x, y); None outside the buffer."""
        return self.store.get_pixel(x, y)

    get_pixel = pixel

    def set_pixel(self, x: int, y: int, color: Sequence[float]) -> None:
        """Overwrite one pixel (no blending); no-op outside the buffer."""
        self.store.set_pixel(x, y, color)

    def copy(self) -> 'RenderBuffer':
        return RenderBuffer.from_store(self.store.copy(), self.config)

    def digest(self) -> str:
        """SHA-256 of size and pixel bytes."""
        return hashing.sha256_array(self.store.data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RenderBuffer):
            return NotImplemented
        return self.store == other.store

    __hash__ = None

    def __repr__(self) -> str:
        return f"RenderBuffer({self.width}x{self.height})"

    # ------------------------------------------------------------------
    # Graphics
    # ------------------------------------------------------------------

    def clear(self, color: Sequence[float]) -> None:
        self.store.clear(color)

    def draw_polygon(
        self,
        vertices,
        color: Sequence[float],
        transform: Optional[Transform] = None,
        fill_rule: Optional[str] = None
    ) -> None:
        """Fill a polygon.

        Parameters
        ----------
        vertices : array-like
            One contour (N, 2) or a list of contours, user space
        color : RGBA
            Straight-alpha fill color
        transform : Transform, optional
            User → device
        fill_rule : str, optional
            "nonzero" or "evenodd"; config default when omitted
        """
        color = color_utils.as_color(color)
        rule = validate_fill_rule(fill_rule or self.config.rasterizer.default_fill_rule)
        t = as_transform(transform)
        contours = [t.apply(c) for c in normalize_contours(vertices) if len(c)]
        self._fill(contours, color, rule)

    def draw_line(
        self,
        p0: Sequence[float],
        p1: Sequence[float],
        thickness: float,
        color: Sequence[float],
        transform: Optional[Transform] = None,
        cap: Optional[str] = None
    ) -> None:
        color = color_utils.as_color(color)
        cap = validate_line_cap(cap or self.config.line.default_cap)
        poly = shapes.line_polygon(p0, p1, thickness, cap=cap)
        if len(poly) == 0:
            return
        self._fill([as_transform(transform).apply(poly)], color, "nonzero")

    def draw_image(
        self,
        image,
        dest_rect: Optional[Sequence[float]] = None,
        transform: Optional[Transform] = None,
        color: Optional[Sequence[float]] = None,
        src_rect: Optional[Sequence[float]] = None
    ) -> None:
        touched = self.blitter.blit(
            self.store, image,
            dest_rect=dest_rect,
            transform=transform,
            color=color,
            src_rect=src_rect
        )
        logger.debug(f"draw_image: {touched} pixels")

    def draw_text(
        self,
        glyphs: GlyphCache,
        text: str,
        size: int,
        pen_origin: Sequence[float],
        color: Sequence[float],
        transform: Optional[Transform] = None
    ) -> float:
        color = color_utils.as_color(color)
        return glyph_module.draw_text(
            self.blitter, self.store, glyphs, text, size, pen_origin, color, transform
        )

    def glyph_cache(self, font: FontFace, enabled: bool = True) -> GlyphCache:
        """New cache for font, with the configured fallback codepoint.

        The caller keeps the cache and passes it to every draw_text() call;
        it can be shared between buffers rendering the same font.
        """
        return GlyphCache(font, enabled=enabled, fallback_codepoint=self.config.glyphs.fallback_codepoint)

    def ellipse(
        self,
        rect: Sequence[float],
        color: Sequence[float],
        transform: Optional[Transform] = None,
        resolution: Optional[int] = None
    ) -> None:
        resolution = resolution or self.config.ellipse.resolution
        self.draw_polygon(shapes.ellipse_polygon(rect, resolution), color, transform)

    def _fill(self, contours, color: np.ndarray, rule: str) -> int:
        if not contours or color[3] <= 0.0:
            return 0
        spans = self.rasterizer.rasterize(contours, fill_rule=rule)
        touched = self.compositor.composite_spans(self.store, spans, color)
        logger.debug(f"fill ({rule}): {len(spans)} rows, {touched} pixels")
        return touched

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: Union[str, Path], fmt: Optional[str] = None) -> Path:
        """Write the buffer losslessly (format from the extension, PNG default).

        Raises
        ------
        EncodeError
            Zero width or height, or a lossy/unsupported format
        BufferIOError
            Write failure
        """
        if fmt is None and not Path(path).suffix:
            fmt = self.config.codec.default_format
        return codec.save(self.store, path, fmt=fmt, compress_level=self.config.codec.compress_level)

    def to_bytes(self, fmt: Optional[str] = None) -> bytes:
        """Encode the buffer (default format from config)."""
        return codec.encode(
            self.store,
            fmt=fmt or self.config.codec.default_format,
            compress_level=self.config.codec.compress_level
        )

    @classmethod
    def load(cls, path: Union[str, Path], config: Optional[RenderConfigV1] = None) -> 'RenderBuffer':
        """Decode an image file into a new buffer sized from the file.

        Raises
        ------
        BufferIOError
            Missing or unreadable file
        DecodeError
            Malformed contents
        """
        return cls.from_store(codec.load(path), config)

    open = load

    @classmethod
    def from_bytes(cls, data: bytes, config: Optional[RenderConfigV1] = None) -> 'RenderBuffer':
        """Decode encoded image bytes into a new buffer.

        Raises
        ------
        DecodeError
            Malformed input
        """
        return cls.from_store(codec.decode(data), config)

    # ------------------------------------------------------------------
    # Raw pixels and textures
    # ------------------------------------------------------------------

    @classmethod
    def from_raw(
        cls,
        width: int,
        height: int,
        data: Union[bytes, np.ndarray],
        config: Optional[RenderConfigV1] = None
    ) -> 'RenderBuffer':
        """Build a buffer from row-major RGBA8 bytes.

        Raises
        ------
        SizeMismatchError
            If len(data) != width * height * 4
        """
        pixels = rgba_snapshot(int(width), int(height), data)
        return cls.from_store(PixelStore.from_array(pixels, copy=False), config)

    def update(
        self,
        data: Union[bytes, np.ndarray],
        offset: Sequence[int] = (0, 0),
        size: Optional[Sequence[int]] = None
    ) -> None:
        """Overwrite a block of pixels with raw RGBA8 bytes.

        Parameters
        ----------
        data : bytes or np.ndarray
            Row-major RGBA8, exactly size[0] * size[1] * 4 bytes
        offset : (x, y)
            Destination of the block's top-left pixel
        size : (w, h), optional
            Block size; the whole buffer when omitted

        Raises
        ------
        SizeMismatchError
            If the byte count doesn't match size

        Notes
        -----
        Pixels falling outside the buffer are dropped.
        """
        w, h = (self.width, self.height) if size is None else (int(size[0]), int(size[1]))
        block = rgba_snapshot(w, h, data)
        ox, oy = int(offset[0]), int(offset[1])
        dst = self.store.region(ox, oy, w, h)
        if dst.size == 0:
            return
        sx, sy = max(-ox, 0), max(-oy, 0)
        dst[...] = block[sy:sy + dst.shape[0], sx:sx + dst.shape[1]]

    def to_texture(self, context: TextureContext, settings: Optional[TextureSettings] = None):
        """Snapshot the buffer into a host texture (later draws are not reflected).

        Raises
        ------
        TextureError
            If the host context fails
        """
        return context.create_texture(self.width, self.height, self.store.pixels, settings)
