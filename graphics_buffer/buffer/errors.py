"""Error taxonomy for the render buffer.

Drawing never raises for geometry: out-of-bounds or degenerate primitives
are clipped or skipped. Only persistence, raw-byte construction and texture
export surface errors:

    GraphicsBufferError
    ├── BufferIOError      (also OSError)     filesystem failure
    ├── DecodeError        (also ValueError)  malformed/unsupported encoded bytes
    ├── EncodeError        (also ValueError)  invalid buffer state at save time
    ├── SizeMismatchError  (also ValueError)  raw byte count ≠ width·height·4
    └── TextureError       (also RuntimeError) texture export failed

The dual inheritance lets callers catch either the package base class or the
builtin category they already handle.
"""


class GraphicsBufferError(Exception):
    """Base class for all render buffer errors."""


class BufferIOError(GraphicsBufferError, OSError):
    """Reading or writing a file failed."""


class DecodeError(GraphicsBufferError, ValueError):
    """Encoded image bytes are malformed or use an unsupported format."""


class EncodeError(GraphicsBufferError, ValueError):
    """The buffer cannot be encoded (e.g. zero width or height, lossy format)."""


class SizeMismatchError(GraphicsBufferError, ValueError):
    """Raw RGBA bytes don't match the requested dimensions."""

    def __init__(self, length: int, width: int, height: int):
        self.length = length
        self.width = width
        self.height = height
        super().__init__(
            f"Raw data has {length} bytes ({length // 4} pixels), "
            f"but {width}x{height} needs {width * height * 4} bytes"
        )


class TextureError(GraphicsBufferError, RuntimeError):
    """Creating a host texture from the buffer failed."""
