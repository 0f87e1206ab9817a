"""Color handling for straight-alpha RGBA colors.

Provides:
    - as_color(): validate/normalize a 4-component float color
    - to_rgba8() / from_rgba8(): [0,1] floats ↔ 8-bit channels
    - hex_color(): "#RRGGBB[AA]" → float color (host API convenience)
    - mul(): component-wise product (image tinting)

Invariants:
    - Colors are straight (non-premultiplied) alpha, components in [0, 1]
    - Quantization rounds to nearest: byte = round(c * 255)
    - from_rgba8(to_rgba8(c)) == c exactly when c is a multiple of 1/255

Named constants (WHITE, BLACK, TRANSPARENT, ...) are float64 arrays; treat
them as read-only.
"""

from typing import Sequence, Union

import numpy as np


ColorLike = Union[Sequence[float], np.ndarray]


def _const(*rgba: float) -> np.ndarray:
    c = np.array(rgba, dtype=np.float64)
    c.setflags(write=False)
    return c


WHITE = _const(1.0, 1.0, 1.0, 1.0)
BLACK = _const(0.0, 0.0, 0.0, 1.0)
TRANSPARENT = _const(0.0, 0.0, 0.0, 0.0)
RED = _const(1.0, 0.0, 0.0, 1.0)
GREEN = _const(0.0, 1.0, 0.0, 1.0)
BLUE = _const(0.0, 0.0, 1.0, 1.0)


def as_color(color: ColorLike) -> np.ndarray:
    """Validate a color and return it as a float64 array of shape (4,).

    Parameters
    ----------
    color : sequence of float
        RGBA components, nominally in [0, 1]

    Returns
    -------
    np.ndarray
        Copy of the color clipped to [0, 1], shape (4,), float64

    Raises
    ------
    ValueError
        If the color does not have exactly 4 finite components
    """
    c = np.asarray(color, dtype=np.float64).reshape(-1)
    if c.shape != (4,):
        raise ValueError(f"Color must have 4 components (r, g, b, a), got shape {c.shape}")
    if not np.all(np.isfinite(c)):
        raise ValueError(f"Color components must be finite, got {c.tolist()}")
    return np.clip(c, 0.0, 1.0)


def to_rgba8(color: ColorLike) -> np.ndarray:
    """Quantize float color(s) in [0,1] to uint8 (round to nearest).

    Accepts a single color (4,) or an array (..., 4).
    """
    c = np.clip(np.asarray(color, dtype=np.float64), 0.0, 1.0)
    return np.rint(c * 255.0).astype(np.uint8)


def from_rgba8(rgba: np.ndarray) -> np.ndarray:
    """Convert uint8 channels to float64 in [0, 1]."""
    return np.asarray(rgba, dtype=np.float64) / 255.0


def hex_color(code: str) -> np.ndarray:
    """Parse "#RRGGBB" or "#RRGGBBAA" (leading '#' optional).

    Examples
    --------
    >>> hex_color("ff000080").tolist()
    [1.0, 0.0, 0.0, 0.5019607843137255]
    """
    s = code.lstrip('#')
    if len(s) not in (6, 8):
        raise ValueError(f"Hex color must have 6 or 8 digits, got {code!r}")
    try:
        values = [int(s[i:i + 2], 16) for i in range(0, len(s), 2)]
    except ValueError as e:
        raise ValueError(f"Invalid hex color: {code!r}") from e
    if len(values) == 3:
        values.append(255)
    return from_rgba8(np.array(values, dtype=np.uint8))


def mul(a: ColorLike, b: ColorLike) -> np.ndarray:
    """Component-wise product of two colors (or color arrays)."""
    return np.asarray(a, dtype=np.float64) * np.asarray(b, dtype=np.float64)
