"""Unit tests for slicer.py — run with: python -m pytest test_slicer.py"""

import pytest

from selections import Selection, SelectionKind
from slicer import (Cell, CellKind, MergedCell, build_grid, classify, column_boundaries,
                    merge_row, resolve_occupant, row_boundaries, same_occupant,
                    slice_layout, split_merged)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _link(sel_id, x, y, w, h, url="http://x"):
    return Selection(sel_id, x, y, w, h, SelectionKind.LINK, url=url)


def _text(sel_id, x, y, w, h, text="Hi"):
    return Selection(sel_id, x, y, w, h, SelectionKind.REPLACE, text=text)


def _assert_tiles(grid, width, height):
    """Rows are contiguous top to bottom, cells contiguous left to right."""
    y = 0
    area = 0
    for row in grid:
        assert row[0].row_start == y
        x = 0
        for cell in row:
            assert cell.row_start == row[0].row_start
            assert cell.row_end == row[0].row_end
            assert cell.col_start == x
            assert cell.width > 0
            x = cell.col_end
            area += cell.width * cell.height
        assert x == width
        y = row[0].row_end
    assert y == height
    assert area == width * height


# ---------------------------------------------------------------------------
# Grid lines
# ---------------------------------------------------------------------------
class TestBoundaries:
    def test_no_selections(self):
        assert row_boundaries(80, []) == [0, 80]
        assert column_boundaries(0, 80, 100, []) == [0, 100]

    def test_rows_from_selection_edges(self):
        assert row_boundaries(100, [_link(1, 10, 20, 30, 40)]) == [0, 20, 60, 100]

    def test_rows_are_clamped(self):
        assert row_boundaries(100, [_link(1, 0, -10, 30, 200)]) == [0, 100]

    def test_duplicate_edges_collapse(self):
        sels = [_link(1, 0, 20, 10, 30), _link(2, 50, 20, 10, 30)]
        assert row_boundaries(100, sels) == [0, 20, 50, 100]

    def test_columns_only_from_intersecting_selections(self):
        sels = [_link(1, 10, 0, 20, 10), _link(2, 60, 50, 20, 10)]
        assert column_boundaries(0, 10, 100, sels) == [0, 10, 30, 100]
        assert column_boundaries(50, 60, 100, sels) == [0, 60, 80, 100]

    def test_touching_row_does_not_intersect(self):
        # selection ends exactly where the row starts
        assert column_boundaries(10, 20, 100, [_link(1, 30, 0, 10, 10)]) == [0, 100]

    def test_columns_are_clamped(self):
        assert column_boundaries(0, 10, 100, [_link(1, 90, 0, 50, 10)]) == [0, 90, 100]


# ---------------------------------------------------------------------------
# Occupants
# ---------------------------------------------------------------------------
class TestOccupants:
    def test_no_match(self):
        assert resolve_occupant(5, 5, [_link(1, 10, 10, 5, 5)]) is None

    def test_half_open_edges(self):
        sel = _link(1, 10, 10, 10, 10)
        assert resolve_occupant(10, 10, [sel]) is sel
        assert resolve_occupant(20, 15, [sel]) is None

    def test_earliest_selection_wins_overlap(self):
        first, second = _link(1, 0, 0, 50, 50), _text(2, 10, 10, 50, 50)
        assert resolve_occupant(20, 20, [first, second]) is first

    def test_classify(self):
        assert classify(None) is CellKind.IMAGE
        assert classify(_link(1, 0, 0, 1, 1, url="")) is CellKind.IMAGE
        assert classify(_link(1, 0, 0, 1, 1)) is CellKind.LINK
        assert classify(_text(1, 0, 0, 1, 1)) is CellKind.TEXT

    def test_same_occupant_uses_identity(self):
        a, b = _text(1, 0, 0, 5, 5), _text(2, 0, 0, 5, 5)
        assert same_occupant(None, None)
        assert same_occupant(a, a)
        assert not same_occupant(a, b)
        assert not same_occupant(a, None)


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------
class TestBuildGrid:
    def test_empty_image_grid(self):
        grid = build_grid(100, 100, [])
        assert len(grid) == 1 and len(grid[0]) == 1
        assert grid[0][0].box == (0, 0, 100, 100)
        assert grid[0][0].occupant is None

    def test_tiles_image(self):
        sels = [_link(1, 10, 10, 30, 30), _text(2, 25, 30, 50, 40),
                _link(3, 80, 0, 40, 90), _link(4, 0, 95, 100, 5)]
        _assert_tiles(build_grid(100, 100, sels), 100, 100)

    def test_tiles_with_out_of_bounds_selection(self):
        _assert_tiles(build_grid(100, 80, [_link(1, -20, -20, 60, 200)]), 100, 80)

    def test_occupant_assigned_per_cell(self):
        sel = _link(1, 50, 0, 100, 100)
        row = build_grid(200, 100, [sel])[0]
        assert [c.box for c in row] == [(0, 0, 50, 100), (50, 0, 150, 100), (150, 0, 200, 100)]
        assert [c.occupant for c in row] == [None, sel, None]

    def test_invalid_image_size(self):
        with pytest.raises(ValueError, match="positive"):
            build_grid(0, 10, [])


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------
class TestMerge:
    def test_unoccupied_neighbours_merge(self):
        cells = [Cell(0, 10, 0, 10), Cell(0, 10, 10, 30)]
        merged = merge_row(cells)
        assert len(merged) == 1
        assert merged[0].width == 30
        assert merged[0].splits == (10,)

    def test_same_selection_merges(self):
        # B cuts row 0 in two, but both halves belong to A
        a, b = _link(1, 0, 0, 100, 100), _link(2, 0, 0, 50, 50)
        layout = slice_layout(100, 100, [a, b])
        assert len(layout[0]) == 1
        assert layout[0][0].occupant is a
        assert layout[0][0].splits == (50,)

    def test_equal_payload_different_selection_does_not_merge(self):
        a = _text(1, 0, 0, 50, 10, text="same")
        b = _text(2, 50, 0, 50, 10, text="same")
        merged = merge_row([Cell(0, 10, 0, 50, a), Cell(0, 10, 50, 100, b)])
        assert len(merged) == 2

    def test_empty_link_does_not_merge_with_plain_image(self):
        empty = _link(1, 0, 0, 50, 10, url="")
        merged = merge_row([Cell(0, 10, 0, 50, empty), Cell(0, 10, 50, 100)])
        assert len(merged) == 2
        assert [c.kind for c in merged] == [CellKind.IMAGE, CellKind.IMAGE]

    def test_merge_is_idempotent(self):
        sels = [_link(1, 10, 0, 40, 40), _link(2, 20, 20, 60, 10)]
        for row in slice_layout(100, 60, sels):
            assert merge_row(row) == row

    def test_split_restores_cells(self):
        sels = [_link(1, 0, 0, 100, 100), _link(2, 0, 0, 30, 50), _link(3, 60, 0, 10, 50)]
        grid = build_grid(100, 100, sels)
        for cells, merged in zip(grid, [merge_row(r) for r in grid]):
            restored = [c for m in merged for c in split_merged(m)]
            assert [c.box for c in restored] == [c.box for c in cells]
            assert [c.occupant for c in restored] == [c.occupant for c in cells]

    def test_merged_cell_is_a_cell(self):
        merged = merge_row([Cell(0, 5, 0, 5)])
        assert isinstance(merged[0], MergedCell)
        assert merged[0].box == (0, 0, 5, 5)


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------
class TestLayoutScenarios:
    def test_link_in_middle(self):
        layout = slice_layout(200, 100, [_link(1, 50, 0, 100, 100)])
        assert len(layout) == 1
        assert [(c.col_start, c.col_end) for c in layout[0]] == [(0, 50), (50, 150), (150, 200)]
        assert [c.kind for c in layout[0]] == [CellKind.IMAGE, CellKind.LINK, CellKind.IMAGE]

    def test_text_areas_with_gap(self):
        a = _text(1, 0, 0, 100, 100, text="left")
        b = _text(2, 200, 0, 100, 100, text="right")
        row = slice_layout(300, 100, [a, b])[0]
        assert [c.kind for c in row] == [CellKind.TEXT, CellKind.IMAGE, CellKind.TEXT]
        assert [c.occupant for c in row] == [a, None, b]
