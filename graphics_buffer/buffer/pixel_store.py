"""Width×height RGBA8 pixel grid.

Storage is a C-contiguous uint8 array of shape (height, width, 4), row-major
with the origin at the top-left and +y down, so `pixels` (the flat byte view)
always has exactly width·height·4 bytes.

Coordinate access never raises: get_pixel() returns None and set_pixel() is a
no-op outside the grid, matching the clip-and-continue contract of drawing.
"""

import logging
import math
from typing import Optional, Tuple

import numpy as np

from graphics_buffer.utils import color as color_utils

logger = logging.getLogger(__name__)


class PixelStore:
    """Owned RGBA8 pixel buffer.

    Attributes
    ----------
    width : int
        Columns
    height : int
        Rows
    data : np.ndarray
        uint8 array, shape (height, width, 4). Mutated in place by the
        compositor; callers outside the package should prefer as_array().
    """

    def __init__(self, width: int, height: int):
        width, height = int(width), int(height)
        if width < 0 or height < 0:
            raise ValueError(f"Buffer dimensions must be non-negative, got {width}x{height}")
        self.width = width
        self.height = height
        # Contents are unspecified until clear(); zeros is the concrete choice.
        self.data = np.zeros((height, width, 4), dtype=np.uint8)

    @classmethod
    def from_array(cls, rgba: np.ndarray, copy: bool = True) -> 'PixelStore':
        """Wrap (or copy) an existing (H, W, 4) uint8 array."""
        arr = np.asarray(rgba)
        if arr.ndim != 3 or arr.shape[2] != 4:
            raise ValueError(f"Expected (H, W, 4) RGBA array, got shape {arr.shape}")
        if arr.dtype != np.uint8:
            raise TypeError(f"Expected uint8 RGBA array, got {arr.dtype}")
        store = cls.__new__(cls)
        store.height, store.width = int(arr.shape[0]), int(arr.shape[1])
        store.data = np.array(arr, dtype=np.uint8, order='C', copy=True) if copy else arr
        return store

    # ------------------------------------------------------------------
    # Size
    # ------------------------------------------------------------------

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height)."""
        return self.width, self.height

    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def _cell(self, x, y) -> Optional[Tuple[int, int]]:
        # Pixel (i, j) covers [i, i + 1) x [j, j + 1); NaN and inf are outside
        try:
            ix, iy = math.floor(x), math.floor(y)
        except (ValueError, OverflowError):
            return None
        return (ix, iy) if self.in_bounds(ix, iy) else None

    # ------------------------------------------------------------------
    # Pixel access
    # ------------------------------------------------------------------

    def clear(self, color) -> None:
        """Fill every pixel with color."""
        self.data[...] = color_utils.to_rgba8(color_utils.as_color(color))

    def get_pixel(self, x: int, y: int) -> Optional[np.ndarray]:
        """Float RGBA color at (x, y), or None outside the buffer."""
        cell = self._cell(x, y)
        if cell is None:
            return None
        return color_utils.from_rgba8(self.data[cell[1], cell[0]])

    def set_pixel(self, x: int, y: int, color) -> None:
        """Overwrite (x, y) with color (no blending). No-op outside the buffer."""
        cell = self._cell(x, y)
        if cell is None:
            return
        self.data[cell[1], cell[0]] = color_utils.to_rgba8(color_utils.as_color(color))

    def get_rgba8(self, x: int, y: int) -> Optional[Tuple[int, int, int, int]]:
        """Raw 8-bit channels at (x, y), or None outside the buffer."""
        cell = self._cell(x, y)
        if cell is None:
            return None
        r, g, b, a = (int(v) for v in self.data[cell[1], cell[0]])
        return r, g, b, a

    # ------------------------------------------------------------------
    # Bulk access
    # ------------------------------------------------------------------

    @property
    def pixels(self) -> bytes:
        """Row-major RGBA bytes (len == width * height * 4)."""
        return self.data.tobytes()

    def as_array(self) -> np.ndarray:
        """Read-only view of the (H, W, 4) uint8 data."""
        view = self.data.view()
        view.setflags(write=False)
        return view

    def region(self, x: int, y: int, w: int, h: int) -> np.ndarray:
        """Writable view of the rectangle clipped to the buffer (may be empty)."""
        x0, y0 = max(int(x), 0), max(int(y), 0)
        x1, y1 = min(int(x) + int(w), self.width), min(int(y) + int(h), self.height)
        if x1 <= x0 or y1 <= y0:
            return self.data[0:0, 0:0]
        return self.data[y0:y1, x0:x1]

    def copy(self) -> 'PixelStore':
        return PixelStore.from_array(self.data, copy=True)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelStore):
            return NotImplemented
        return self.size == other.size and bool(np.array_equal(self.data, other.data))

    __hash__ = None

    def __repr__(self) -> str:
        return f"PixelStore({self.width}x{self.height})"
