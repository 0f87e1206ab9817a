"""Rasterization, compositing and persistence for the render buffer.

Modules:
    - pixel_store: RGBA8 grid
    - rasterizer: polygons → anti-aliased coverage spans
    - compositor: "over" blending of coverage into the store
    - shapes: lines, rectangles and ellipses as polygons
    - blitter: transformed image blits
    - glyphs: fonts, glyph cache, text drawer
    - codec: lossless PNG/TIFF encode/decode (Pillow)
    - texture: texture export adapters (torch, optional)
    - surface: Graphics interface
    - render_buffer: RenderBuffer, the Graphics implementation
    - errors: exception taxonomy
"""

from .errors import (
    BufferIOError,
    DecodeError,
    EncodeError,
    GraphicsBufferError,
    SizeMismatchError,
    TextureError,
)
from .glyphs import FontFace, GlyphBitmap, GlyphCache, OutlineFont, OutlineGlyph, TrueTypeFont
from .pixel_store import PixelStore
from .render_buffer import RenderBuffer
from .surface import Graphics
from .texture import TextureContext, TextureSettings, TorchTexture, TorchTextureContext

__all__ = [
    'BufferIOError',
    'DecodeError',
    'EncodeError',
    'GraphicsBufferError',
    'SizeMismatchError',
    'TextureError',
    'FontFace',
    'GlyphBitmap',
    'GlyphCache',
    'OutlineFont',
    'OutlineGlyph',
    'TrueTypeFont',
    'PixelStore',
    'RenderBuffer',
    'Graphics',
    'TextureContext',
    'TextureSettings',
    'TorchTexture',
    'TorchTextureContext',
]
