"""
Core slicing logic — pure functions, no GUI dependencies.

Every selection edge (plus the image border) becomes a cut line.  Rows are
cut first across the whole image; each row is then cut into columns by the
selections that overlap that row only:

    +------+---------------+------+
    |      |   link area   |      |     row 0: 3 cells
    +------+-------+-------+------+
    |              |  text  |     |     row 1: 3 cells
    +--------------+--------+-----+

Each cell is owned by at most one selection (its *occupant*): the earliest
created selection containing the cell centre.  Neighbouring cells in a row
with the same occupant are then merged into one wider cell.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from selections import Selection, SelectionKind


class CellKind(str, Enum):
    IMAGE = "image"
    LINK = "link"
    TEXT = "text"


@dataclass(frozen=True)
class Cell:
    """One grid cell; box follows PIL convention (right/bottom exclusive)."""
    row_start: int
    row_end: int
    col_start: int
    col_end: int
    occupant: Optional[Selection] = None

    @property
    def width(self) -> int:
        return self.col_end - self.col_start

    @property
    def height(self) -> int:
        return self.row_end - self.row_start

    @property
    def box(self) -> Tuple[int, int, int, int]:
        return self.col_start, self.row_start, self.col_end, self.row_end

    @property
    def kind(self) -> CellKind:
        return classify(self.occupant)


@dataclass(frozen=True)
class MergedCell(Cell):
    """A run of adjacent cells in one row sharing an occupant.

    ``splits`` keeps the internal column boundaries of the original cells.
    """
    splits: Tuple[int, ...] = ()


Row = List[MergedCell]


def classify(occupant: Optional[Selection]) -> CellKind:
    """Emission class of a cell; a link area without a URL is a plain image."""
    if occupant is None:
        return CellKind.IMAGE
    if occupant.kind is SelectionKind.REPLACE:
        return CellKind.TEXT
    return CellKind.LINK if occupant.url else CellKind.IMAGE


def same_occupant(a: Optional[Selection], b: Optional[Selection]) -> bool:
    """Identity comparison: equal payloads on different areas don't count."""
    if a is None or b is None:
        return a is None and b is None
    return a.id == b.id


# ---------------------------------------------------------------------------
# Grid lines
# ---------------------------------------------------------------------------
def _usable(selections: Iterable[Selection]) -> List[Selection]:
    return [s for s in selections if s.width > 0 and s.height > 0]


def row_boundaries(image_height: int, selections: Sequence[Selection]) -> List[int]:
    """Sorted distinct horizontal cut lines, image border included."""
    ys = {0, image_height}
    for s in _usable(selections):
        ys.add(max(0, math.floor(s.y)))
        ys.add(min(image_height, math.ceil(s.y + s.height)))
    return sorted(y for y in ys if 0 <= y <= image_height)


def column_boundaries(row_start: int, row_end: int, image_width: int,
                      selections: Sequence[Selection]) -> List[int]:
    """Sorted distinct vertical cut lines for the row ``[row_start, row_end)``."""
    xs = {0, image_width}
    for s in _usable(selections):
        if s.y + s.height > row_start and s.y < row_end:
            xs.add(max(0, math.floor(s.x)))
            xs.add(min(image_width, math.ceil(s.x + s.width)))
    return sorted(x for x in xs if 0 <= x <= image_width)


def _spans(bounds: Sequence[int]) -> List[Tuple[int, int]]:
    return [(a, b) for a, b in zip(bounds, bounds[1:]) if b > a]


# ---------------------------------------------------------------------------
# Occupants
# ---------------------------------------------------------------------------
def resolve_occupant(cx: float, cy: float,
                     selections: Sequence[Selection]) -> Optional[Selection]:
    """First selection (creation order) whose rectangle contains the point."""
    for s in _usable(selections):
        if s.contains(cx, cy):
            return s
    return None


def build_grid(image_width: int, image_height: int,
               selections: Sequence[Selection]) -> List[List[Cell]]:
    """Cut the image into rows of cells, each with its occupant resolved."""
    if image_width <= 0 or image_height <= 0:
        raise ValueError(f"Image size must be positive, got {image_width}x{image_height}.")
    grid: List[List[Cell]] = []
    for y0, y1 in _spans(row_boundaries(image_height, selections)):
        row: List[Cell] = []
        cy = y0 + (y1 - y0) / 2
        for x0, x1 in _spans(column_boundaries(y0, y1, image_width, selections)):
            occupant = resolve_occupant(x0 + (x1 - x0) / 2, cy, selections)
            row.append(Cell(y0, y1, x0, x1, occupant))
        grid.append(row)
    return grid


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------
def merge_row(cells: Sequence[Union[Cell, MergedCell]]) -> Row:
    """Collapse contiguous runs of cells with the same occupant.

    Already-merged cells keep their internal splits, so merging twice is a
    no-op.
    """
    merged: Row = []
    for cell in cells:
        splits = cell.splits if isinstance(cell, MergedCell) else ()
        prev = merged[-1] if merged else None
        if (prev is not None and prev.col_end == cell.col_start
                and same_occupant(prev.occupant, cell.occupant)):
            merged[-1] = MergedCell(
                prev.row_start, prev.row_end, prev.col_start, cell.col_end,
                prev.occupant, prev.splits + (cell.col_start,) + splits,
            )
        else:
            merged.append(MergedCell(cell.row_start, cell.row_end, cell.col_start,
                                     cell.col_end, cell.occupant, splits))
    return merged


def merge_grid(grid: Sequence[Sequence[Cell]]) -> List[Row]:
    return [merge_row(row) for row in grid]


def split_merged(cell: MergedCell) -> List[Cell]:
    """Undo a merge: cut *cell* back at its recorded internal boundaries."""
    edges = [cell.col_start, *cell.splits, cell.col_end]
    return [Cell(cell.row_start, cell.row_end, a, b, cell.occupant)
            for a, b in zip(edges, edges[1:])]


def slice_layout(image_width: int, image_height: int,
                 selections: Sequence[Selection]) -> List[Row]:
    """Grid, occupants and merge in one step: the table layout to emit."""
    return merge_grid(build_grid(image_width, image_height, selections))
