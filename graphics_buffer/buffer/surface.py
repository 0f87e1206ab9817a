"""Host drawing interface.

Graphics is the capability set a 2D drawing API needs from a render target.
It is independent of any drawing or windowing library; RenderBuffer is the
software implementation.

Conventions shared by every method:
    - Colors are straight-alpha RGBA floats in [0, 1]
    - transform maps user space to device space (None = identity)
    - Drawing never raises for geometry: out-of-bounds and degenerate
      primitives are clipped or skipped. Malformed arguments (wrong color
      arity, unknown fill rule or cap) raise ValueError.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from graphics_buffer.buffer.shapes import ellipse_polygon, rectangle_polygon
from graphics_buffer.utils.geometry import Transform


class Graphics(ABC):
    """Drawing surface."""

    @abstractmethod
    def clear(self, color: Sequence[float]) -> None:
        """Fill the whole surface with color (no blending)."""

    @abstractmethod
    def draw_polygon(
        self,
        vertices,
        color: Sequence[float],
        transform: Optional[Transform] = None,
        fill_rule: Optional[str] = None
    ) -> None:
        """Fill a polygon (or list of contours) with color."""

    @abstractmethod
    def draw_line(
        self,
        p0: Sequence[float],
        p1: Sequence[float],
        thickness: float,
        color: Sequence[float],
        transform: Optional[Transform] = None,
        cap: Optional[str] = None
    ) -> None:
        """Stroke a segment; thickness is the full width in user units."""

    @abstractmethod
    def draw_image(
        self,
        image,
        dest_rect: Optional[Sequence[float]] = None,
        transform: Optional[Transform] = None,
        color: Optional[Sequence[float]] = None,
        src_rect: Optional[Sequence[float]] = None
    ) -> None:
        """Blit image (optionally a src_rect of it) onto dest_rect, tinted by color."""

    @abstractmethod
    def draw_text(
        self,
        glyphs,
        text: str,
        size: int,
        pen_origin: Sequence[float],
        color: Sequence[float],
        transform: Optional[Transform] = None
    ) -> float:
        """Draw text with the pen starting on the baseline at pen_origin.

        Returns the pen x position after the last glyph.
        """

    # Shape helpers built on the primitives above

    def rectangle(
        self,
        rect: Sequence[float],
        color: Sequence[float],
        transform: Optional[Transform] = None
    ) -> None:
        self.draw_polygon(rectangle_polygon(rect), color, transform)

    def ellipse(
        self,
        rect: Sequence[float],
        color: Sequence[float],
        transform: Optional[Transform] = None,
        resolution: Optional[int] = None
    ) -> None:
        self.draw_polygon(ellipse_polygon(rect, resolution or 128), color, transform)
