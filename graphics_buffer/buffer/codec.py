"""Lossless raster codec adapter (Pillow).

Provides:
    - encode() / decode(): PixelStore ↔ encoded bytes
    - save() / load(): file persistence with atomic writes
    - format_for_path(): extension → format

Formats:
    PNG (default) and TIFF, both lossless with straight RGBA. Lossy
    extensions (.jpg, .webp, ...) and BMP (Pillow reads 32-bit BMP back
    without alpha) are rejected with EncodeError so a save never silently
    changes pixels.

Error mapping:
    - zero width/height or unsupported format → EncodeError
    - filesystem failure → BufferIOError (an OSError), original chained
    - malformed/unsupported encoded bytes → DecodeError

Decoded images of any mode are converted to RGBA; dimensions always come
from the decoded data.
"""

import io
import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from graphics_buffer.buffer.errors import BufferIOError, DecodeError, EncodeError
from graphics_buffer.buffer.pixel_store import PixelStore
from graphics_buffer.utils import fs
from graphics_buffer.utils.profiler import timer
from graphics_buffer.utils.validators import LOSSLESS_FORMATS

logger = logging.getLogger(__name__)

EXTENSION_FORMATS = {
    '.png': 'PNG',
    '.tif': 'TIFF',
    '.tiff': 'TIFF',
}


def format_for_path(path: Union[str, Path], default: str = "PNG") -> str:
    """Pick the output format from the file extension.

    Parameters
    ----------
    path : Union[str, Path]
        Target path
    default : str
        Format used when the path has no extension

    Returns
    -------
    str
        "PNG" or "TIFF"

    Raises
    ------
    EncodeError
        If the extension names a lossy or unsupported format
    """
    ext = Path(path).suffix.lower()
    if not ext:
        return default.upper()
    fmt = EXTENSION_FORMATS.get(ext)
    if fmt is None:
        raise EncodeError(
            f"Unsupported output format '{ext}' for {path}: "
            f"expected one of {sorted(EXTENSION_FORMATS)}"
        )
    return fmt


def encode(store: PixelStore, fmt: str = "PNG", compress_level: int = 6) -> bytes:
    """Encode a PixelStore.

    Parameters
    ----------
    store : PixelStore
        Source pixels
    fmt : str
        "PNG" or "TIFF"
    compress_level : int
        zlib level for PNG (0-9)

    Returns
    -------
    bytes
        Encoded image

    Raises
    ------
    EncodeError
        On zero width or height, an unsupported format, or an encoder failure
    """
    fmt = fmt.upper()
    if store.is_empty():
        raise EncodeError(f"Cannot encode a {store.width}x{store.height} buffer")
    if fmt not in LOSSLESS_FORMATS:
        raise EncodeError(f"Format must be one of {LOSSLESS_FORMATS}, got {fmt}")

    img = Image.fromarray(np.ascontiguousarray(store.data))
    buf = io.BytesIO()
    params = {'compress_level': int(compress_level)} if fmt == "PNG" else {}
    try:
        with timer(f"encode_{fmt.lower()}"):
            img.save(buf, format=fmt, **params)
    except (OSError, ValueError) as e:
        raise EncodeError(f"Failed to encode {store.width}x{store.height} buffer as {fmt}: {e}") from e
    return buf.getvalue()


def decode(data: bytes) -> PixelStore:
    """Decode image bytes into a freshly sized PixelStore.

    Raises
    ------
    DecodeError
        If the bytes are empty, truncated, or not a format Pillow can read
    """
    if not data:
        raise DecodeError("Cannot decode empty image data")
    try:
        with timer("decode"):
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                rgba = np.asarray(img.convert('RGBA'), dtype=np.uint8)
    except UnidentifiedImageError as e:
        raise DecodeError(f"Unrecognized image data ({len(data)} bytes)") from e
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Malformed image data: {e}") from e
    return PixelStore.from_array(rgba, copy=True)


def save(
    store: PixelStore,
    path: Union[str, Path],
    fmt: Optional[str] = None,
    compress_level: int = 6
) -> Path:
    """Encode and atomically write a PixelStore.

    Parameters
    ----------
    store : PixelStore
        Source pixels
    path : Union[str, Path]
        Destination; parent directories are created
    fmt : str, optional
        Overrides the extension-derived format
    compress_level : int
        zlib level for PNG

    Returns
    -------
    Path
        The written path

    Raises
    ------
    EncodeError
        Zero-size buffer or unsupported format
    BufferIOError
        Write failure
    """
    path = Path(path)
    fmt = fmt.upper() if fmt else format_for_path(path)
    data = encode(store, fmt=fmt, compress_level=compress_level)
    try:
        fs.atomic_write_bytes(path, data)
    except OSError as e:
        raise BufferIOError(e.errno, f"Failed to save buffer to {path}: {e}", str(path)) from e
    logger.info(f"Saved {store.width}x{store.height} buffer to {path} ({fmt}, {len(data)} bytes)")
    return path


def load(path: Union[str, Path]) -> PixelStore:
    """Read and decode an image file.

    Raises
    ------
    BufferIOError
        Missing or unreadable file
    DecodeError
        Malformed contents
    """
    path = Path(path)
    try:
        data = fs.read_bytes(path)
    except OSError as e:
        raise BufferIOError(e.errno, f"Failed to read {path}: {e}", str(path)) from e
    store = decode(data)
    logger.info(f"Loaded {store.width}x{store.height} buffer from {path}")
    return store
