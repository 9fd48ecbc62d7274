"""
Selection model — immutable rectangles over the original image.

A selection is either a *link* area (the crop is wrapped in ``<a href>``)
or a *replace* area (the crop is swapped for a styled text block).  All
coordinates are in original-image pixels.

Selections never change in place: every edit goes through a typed command
(``with_url``, ``with_geometry`` ...) that validates the new value and
returns a fresh instance, which the store swaps in wholesale.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from loguru import logger


TEXT_ALIGNMENTS: Tuple[str, ...] = ("left", "center", "right", "justify")
GEOMETRY_FIELDS: Tuple[str, ...] = ("x", "y", "width", "height")


class SelectionKind(str, Enum):
    LINK = "link"
    REPLACE = "replace"


class InvalidSelectionError(ValueError):
    """A selection field was given a value it can never hold."""


@dataclass(frozen=True)
class Selection:
    """A committed rectangle plus its kind-specific payload."""
    id: int
    x: int
    y: int
    width: int
    height: int
    kind: SelectionKind = SelectionKind.LINK
    # link payload
    url: str = ""
    # replace payload
    text: str = ""
    text_align: str = "center"
    font_size: str = "16px"
    background_color: str = "#ffffff"
    text_color: str = "#000000"

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidSelectionError(
                f"Selection size must be positive, got {self.width}x{self.height}."
            )
        if self.text_align not in TEXT_ALIGNMENTS:
            raise InvalidSelectionError(f"Unknown text alignment {self.text_align!r}.")
        if not isinstance(self.kind, SelectionKind):
            raise InvalidSelectionError(f"Unknown selection kind {self.kind!r}.")

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def has_link(self) -> bool:
        return self.kind is SelectionKind.LINK and bool(self.url)

    def contains(self, px: float, py: float) -> bool:
        """Half-open containment: left/top edges inside, right/bottom outside."""
        return self.x <= px < self.right and self.y <= py < self.bottom

    # -- typed update commands ------------------------------------------
    def with_url(self, url: str) -> "Selection":
        return replace(self, url=url.strip())

    def with_text(self, text: str) -> "Selection":
        return replace(self, text=text)

    def with_text_align(self, align: str) -> "Selection":
        return replace(self, text_align=align)

    def with_font_size(self, font_size: str) -> "Selection":
        # Not parsed here: half-typed values are legal until slicing time.
        return replace(self, font_size=font_size.strip())

    def with_colors(self, background: Optional[str] = None,
                    text: Optional[str] = None) -> "Selection":
        return replace(
            self,
            background_color=self.background_color if background is None else background,
            text_color=self.text_color if text is None else text,
        )

    def with_kind(self, kind: SelectionKind) -> "Selection":
        return replace(self, kind=SelectionKind(kind))

    def with_geometry(self, **fields: int) -> "Selection":
        """Return a copy with some of ``x``, ``y``, ``width``, ``height`` changed."""
        unknown = set(fields) - set(GEOMETRY_FIELDS)
        if unknown:
            raise InvalidSelectionError(f"Not a geometry field: {', '.join(sorted(unknown))}.")
        return replace(self, **{k: int(v) for k, v in fields.items()})


class SelectionStore:
    """Ordered collection of selections keyed by a stable id.

    Iteration order is insertion order; ids come from a monotonically
    increasing counter and are never reused, even after :meth:`clear`.
    """

    def __init__(self) -> None:
        self._items: List[Selection] = []
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Selection]:
        return iter(self._items)

    def snapshot(self) -> Tuple[Selection, ...]:
        """Consistent view for slicing; later mutations don't affect it."""
        return tuple(self._items)

    def get(self, sel_id: Optional[int]) -> Optional[Selection]:
        for sel in self._items:
            if sel.id == sel_id:
                return sel
        return None

    def index_of(self, sel_id: int) -> Optional[int]:
        for i, sel in enumerate(self._items):
            if sel.id == sel_id:
                return i
        return None

    def label(self, sel_id: int) -> str:
        """Display label such as ``Link Area #2`` (1-based position)."""
        idx = self.index_of(sel_id)
        if idx is None:
            return ""
        sel = self._items[idx]
        if sel.kind is SelectionKind.REPLACE:
            prefix = "Text Area"
        elif sel.url:
            prefix = "Link Area"
        else:
            prefix = "Area"
        return f"{prefix} #{idx + 1}"

    def add(self, x: int, y: int, width: int, height: int,
            kind: SelectionKind = SelectionKind.LINK, **payload) -> Selection:
        sel = Selection(next(self._ids), int(x), int(y), int(width), int(height),
                        SelectionKind(kind), **payload)
        self._items.append(sel)
        logger.debug(f"Added selection {sel.id} ({sel.kind.value}) at "
                     f"{sel.x},{sel.y} {sel.width}x{sel.height}")
        return sel

    def update(self, updated: Selection) -> Optional[Selection]:
        """Swap in *updated* for the selection with the same id.

        Returns ``None`` (and changes nothing) if that id is gone.
        """
        idx = self.index_of(updated.id)
        if idx is None:
            logger.debug(f"Ignoring update of missing selection {updated.id}")
            return None
        self._items[idx] = updated
        return updated

    def delete(self, sel_id: int) -> bool:
        idx = self.index_of(sel_id)
        if idx is None:
            return False
        del self._items[idx]
        logger.debug(f"Deleted selection {sel_id}")
        return True

    def clear(self) -> None:
        """Drop every selection (a new image was loaded)."""
        self._items.clear()
