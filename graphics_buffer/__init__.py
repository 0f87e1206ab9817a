"""graphics_buffer: software render target for 2D vector-graphics drawing.

An in-memory RGBA8 pixel buffer that takes draw commands (filled polygons,
lines, images, text) under an affine transform, produces anti-aliased,
alpha-composited pixels, saves/loads lossless raster files and exports
snapshots as textures.

Architecture layers (strict one-way dependency):
    scripts/ → graphics_buffer/buffer/ → graphics_buffer/utils/

Key invariants:
    - Colors are straight-alpha RGBA floats in [0, 1]; storage is RGBA8
    - Device space: pixel units, origin top-left, +y down
    - Drawing never raises for geometry (clip-and-continue)
    - YAML-only configs (configs/render.v1.yaml)
"""

__version__ = "0.7.7"

from .buffer import (
    BufferIOError,
    DecodeError,
    EncodeError,
    GlyphCache,
    Graphics,
    GraphicsBufferError,
    OutlineFont,
    RenderBuffer,
    SizeMismatchError,
    TextureError,
    TrueTypeFont,
)
from .utils.geometry import Transform

__all__ = [
    '__version__',
    'RenderBuffer',
    'Graphics',
    'GlyphCache',
    'OutlineFont',
    'TrueTypeFont',
    'Transform',
    'GraphicsBufferError',
    'BufferIOError',
    'DecodeError',
    'EncodeError',
    'SizeMismatchError',
    'TextureError',
]
