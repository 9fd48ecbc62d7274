"""
Coordinate mapping between screen, canvas and original image pixels.

Three spaces are involved:

* **screen** — pixels of the widget as it appears on screen (pointer events).
* **canvas** — the backing raster, a fixed ``display_width`` wide and scaled
  to keep the image's aspect ratio.
* **original** — pixels of the source image; selections live here.

Screen → canvas is a per-axis stretch (the widget may be drawn larger or
smaller than its backing raster).  Canvas → original divides by the image
scale.  Rounding happens only on the final step into original space.
"""

from __future__ import annotations

from typing import Optional, Tuple

import config


class CoordinateMapper:
    def __init__(self, original_width: int, original_height: int,
                 display_width: Optional[int] = None) -> None:
        if original_width <= 0 or original_height <= 0:
            raise ValueError(
                f"Image size must be positive, got {original_width}x{original_height}."
            )
        self.original_width = original_width
        self.original_height = original_height
        self.display_width = display_width or config.get_display_width()
        self.scale = self.display_width / original_width
        self.canvas_width = self.display_width
        self.canvas_height = max(1, round(original_height * self.scale))
        # On-screen size; equal to the backing size until the view says otherwise.
        self.view_width: float = self.canvas_width
        self.view_height: float = self.canvas_height

    def set_view_size(self, width: float, height: float) -> None:
        """Record the size the canvas is actually drawn at on screen."""
        if width > 0 and height > 0:
            self.view_width = width
            self.view_height = height

    @property
    def css_scale(self) -> Tuple[float, float]:
        """Backing pixels per screen pixel, per axis."""
        return self.canvas_width / self.view_width, self.canvas_height / self.view_height

    # ------------------------------------------------------------------
    # screen <-> canvas
    # ------------------------------------------------------------------
    def screen_to_canvas(self, sx: float, sy: float) -> Tuple[float, float]:
        kx, ky = self.css_scale
        return sx * kx, sy * ky

    def canvas_to_screen(self, cx: float, cy: float) -> Tuple[float, float]:
        kx, ky = self.css_scale
        return cx / kx, cy / ky

    # ------------------------------------------------------------------
    # canvas <-> original
    # ------------------------------------------------------------------
    def to_original(self, cx: float, cy: float) -> Tuple[int, int]:
        return round(cx / self.scale), round(cy / self.scale)

    def to_canvas(self, ox: float, oy: float) -> Tuple[float, float]:
        return ox * self.scale, oy * self.scale

    def length_to_original(self, length: float) -> int:
        return round(length / self.scale)

    def screen_to_original(self, sx: float, sy: float) -> Tuple[int, int]:
        return self.to_original(*self.screen_to_canvas(sx, sy))
