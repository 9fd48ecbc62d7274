"""
Pointer-driven state machine for drawing and resizing selections.

The controller knows nothing about tkinter: the GUI forwards raw pointer
positions (screen pixels) and edit commands, then redraws from
:attr:`InteractionController.draft_rect` and the store.

States::

    IDLE --new_selection(kind)--> SELECTING --pointer_up--> IDLE
    IDLE --pointer_down on a handle of the edited area--> RESIZING --pointer_up--> IDLE

Editing focus (``editing_id``) is orthogonal to the drawing state and
tracks a selection id, so deleting other areas never disturbs it.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

import config
from coords import CoordinateMapper
from selections import GEOMETRY_FIELDS, Selection, SelectionKind, SelectionStore


# Corner handles first so they win over edge midpoints on tiny areas.
HANDLES: Tuple[str, ...] = ("tl", "tr", "bl", "br", "mt", "mb", "ml", "mr")

# Which rectangle edges each handle drags.
_HANDLE_EDGES: Dict[str, Tuple[str, ...]] = {
    "tl": ("left", "top"),
    "tr": ("right", "top"),
    "bl": ("left", "bottom"),
    "br": ("right", "bottom"),
    "mt": ("top",),
    "mb": ("bottom",),
    "ml": ("left",),
    "mr": ("right",),
}

Rect = Tuple[float, float, float, float]  # x, y, w, h


class Mode(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    RESIZING = "resizing"


class SliceInProgressError(RuntimeError):
    """A new gesture was started while a slice is still encoding."""


def normalize_rect(x: float, y: float, w: float, h: float) -> Rect:
    """Flip a rectangle with negative extent so its origin is top-left."""
    if w < 0:
        x, w = x + w, -w
    if h < 0:
        y, h = y + h, -h
    return x, y, w, h


def handle_positions(rect: Rect) -> Dict[str, Tuple[float, float]]:
    """Canvas position of each of the eight resize handles of *rect*."""
    x, y, w, h = rect
    mx, my = x + w / 2, y + h / 2
    return {
        "tl": (x, y), "tr": (x + w, y),
        "bl": (x, y + h), "br": (x + w, y + h),
        "mt": (mx, y), "mb": (mx, y + h),
        "ml": (x, my), "mr": (x + w, my),
    }


class InteractionController:
    def __init__(self, store: SelectionStore, mapper: Optional[CoordinateMapper] = None) -> None:
        self.store = store
        self.mapper = mapper
        self.mode = Mode.IDLE
        self.pending_kind = SelectionKind.LINK
        self.editing_id: Optional[int] = None
        self.resize_handle: Optional[str] = None
        self.resize_id: Optional[int] = None
        self.slicing = False
        self._draft: Optional[List[float]] = None
        self._resize_edges: Dict[str, float] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def reset(self, mapper: Optional[CoordinateMapper] = None) -> None:
        """A new image replaced the old one: drop every area and gesture."""
        self.store.clear()
        if mapper is not None:
            self.mapper = mapper
        self.mode = Mode.IDLE
        self.editing_id = None
        self._draft = None
        self._end_resize()

    def begin_slice(self) -> None:
        self.slicing = True

    def finish_slice(self) -> None:
        self.slicing = False

    @property
    def editing(self) -> Optional[Selection]:
        return self.store.get(self.editing_id)

    @property
    def draft_rect(self) -> Optional[Rect]:
        """Normalized in-progress rectangle in canvas pixels, if drawing."""
        if self.mode is not Mode.SELECTING or self._draft is None:
            return None
        return normalize_rect(*self._draft)

    def canvas_rect(self, sel: Selection) -> Rect:
        cx, cy = self.mapper.to_canvas(sel.x, sel.y)
        cw, ch = self.mapper.to_canvas(sel.width, sel.height)
        return cx, cy, cw, ch

    # ------------------------------------------------------------------
    # Commands from the side panel
    # ------------------------------------------------------------------
    def new_selection(self, kind: SelectionKind = SelectionKind.LINK) -> None:
        if self.slicing:
            raise SliceInProgressError("Wait for the current slice to finish.")
        self.mode = Mode.SELECTING
        self.pending_kind = SelectionKind(kind)
        self.editing_id = None
        self._draft = None
        self._end_resize()

    def cancel(self) -> None:
        """Abandon a half-drawn area or an in-progress resize."""
        self.mode = Mode.IDLE
        self._draft = None
        self._end_resize()

    def edit(self, sel_id: int) -> None:
        if self.store.get(sel_id) is None:
            return
        if self.mode is Mode.RESIZING and sel_id != self.resize_id:
            self.mode = Mode.IDLE
            self._end_resize()
        self.editing_id = sel_id
        if self.mode is Mode.SELECTING:
            self.mode = Mode.IDLE
            self._draft = None

    def delete(self, sel_id: int) -> bool:
        if self.editing_id == sel_id:
            self.editing_id = None
        if self.mode is Mode.RESIZING and self.resize_id == sel_id:
            self.mode = Mode.IDLE
            self._end_resize()
        return self.store.delete(sel_id)

    def _apply(self, change: Callable[[Selection], Selection]) -> Optional[Selection]:
        sel = self.editing
        if sel is None:
            return None
        return self.store.update(change(sel))

    def set_url(self, url: str) -> Optional[Selection]:
        return self._apply(lambda s: s.with_url(url))

    def set_text(self, text: str) -> Optional[Selection]:
        return self._apply(lambda s: s.with_text(text))

    def set_text_align(self, align: str) -> Optional[Selection]:
        return self._apply(lambda s: s.with_text_align(align))

    def set_font_size(self, font_size: str) -> Optional[Selection]:
        return self._apply(lambda s: s.with_font_size(font_size))

    def set_colors(self, background: Optional[str] = None,
                   text: Optional[str] = None) -> Optional[Selection]:
        return self._apply(lambda s: s.with_colors(background, text))

    def set_kind(self, kind: SelectionKind) -> Optional[Selection]:
        return self._apply(lambda s: s.with_kind(kind))

    def set_geometry(self, field: str, value: str) -> Optional[Selection]:
        """Typed numeric edit; text that isn't an integer is ignored."""
        if field not in GEOMETRY_FIELDS:
            return None
        try:
            number = int(str(value).strip())
        except ValueError:
            return None
        return self._apply(lambda s: s.with_geometry(**{field: number}))

    # ------------------------------------------------------------------
    # Pointer events (screen pixels)
    # ------------------------------------------------------------------
    def hit_handle(self, cx: float, cy: float) -> Optional[str]:
        """Name of the edited area's handle within reach of (cx, cy), canvas pixels."""
        sel = self.editing
        if sel is None:
            return None
        radius = config.get_handle_radius()
        positions = handle_positions(self.canvas_rect(sel))
        for name in HANDLES:
            hx, hy = positions[name]
            if abs(cx - hx) <= radius and abs(cy - hy) <= radius:
                return name
        return None

    def pointer_down(self, sx: float, sy: float) -> bool:
        """Returns True if the press started a gesture."""
        cx, cy = self.mapper.screen_to_canvas(sx, sy)
        if self.mode is Mode.SELECTING:
            self._draft = [cx, cy, 0.0, 0.0]
            return True
        if self.mode is Mode.IDLE:
            handle = self.hit_handle(cx, cy)
            if handle is None:
                return False
            x, y, w, h = self.canvas_rect(self.editing)
            self._resize_edges = {"left": x, "top": y, "right": x + w, "bottom": y + h}
            self.resize_handle = handle
            self.resize_id = self.editing_id
            self.mode = Mode.RESIZING
            logger.debug(f"Resizing selection {self.editing_id} by {handle}")
            return True
        return False

    def pointer_move(self, sx: float, sy: float) -> Optional[Selection]:
        cx, cy = self.mapper.screen_to_canvas(sx, sy)
        if self.mode is Mode.SELECTING and self._draft is not None:
            self._draft[2] = cx - self._draft[0]
            self._draft[3] = cy - self._draft[1]
            return None
        if self.mode is Mode.RESIZING:
            return self._resize_to(cx, cy)
        return None

    def pointer_up(self, sx: Optional[float] = None, sy: Optional[float] = None) -> Optional[Selection]:
        """Finish the current gesture; returns the created or resized selection."""
        if sx is not None and sy is not None:
            self.pointer_move(sx, sy)
        if self.mode is Mode.RESIZING:
            sel = self.store.get(self.resize_id)
            self.mode = Mode.IDLE
            self._end_resize()
            return sel
        if self.mode is not Mode.SELECTING or self._draft is None:
            return None
        x, y, w, h = normalize_rect(*self._draft)
        self._draft = None
        self.mode = Mode.IDLE
        min_drag = config.get_min_drag()
        if not (w > min_drag and h > min_drag):
            logger.warning(f"Selection {w:.0f}x{h:.0f} too small, discarded")
            return None
        ox, oy = self.mapper.to_original(x, y)
        ow = max(1, self.mapper.length_to_original(w))
        oh = max(1, self.mapper.length_to_original(h))
        return self.store.add(ox, oy, ow, oh, self.pending_kind)

    def _resize_to(self, cx: float, cy: float) -> Optional[Selection]:
        sel = self.store.get(self.resize_id)
        if sel is None:
            self.mode = Mode.IDLE
            self._end_resize()
            return None
        edges = dict(self._resize_edges)
        for edge in _HANDLE_EDGES[self.resize_handle]:
            edges[edge] = cx if edge in ("left", "right") else cy
        x, y, w, h = normalize_rect(edges["left"], edges["top"],
                                    edges["right"] - edges["left"],
                                    edges["bottom"] - edges["top"])
        ox, oy = self.mapper.to_original(x, y)
        resized = sel.with_geometry(
            x=ox, y=oy,
            width=max(1, self.mapper.length_to_original(w)),
            height=max(1, self.mapper.length_to_original(h)),
        )
        return self.store.update(resized)

    def _end_resize(self) -> None:
        self.resize_handle = None
        self.resize_id = None
        self._resize_edges = {}
