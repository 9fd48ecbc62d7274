"""Unit tests for selections.py"""

import dataclasses

import pytest

from selections import InvalidSelectionError, Selection, SelectionKind, SelectionStore


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------
class TestSelection:
    def test_defaults(self):
        sel = Selection(1, 0, 0, 10, 10)
        assert sel.kind is SelectionKind.LINK
        assert sel.url == ""
        assert not sel.has_link

    @pytest.mark.parametrize("w,h", [(0, 10), (10, 0), (-5, 10)])
    def test_non_positive_size_rejected(self, w, h):
        with pytest.raises(InvalidSelectionError, match="positive"):
            Selection(1, 0, 0, w, h)

    def test_unknown_alignment_rejected(self):
        with pytest.raises(InvalidSelectionError, match="alignment"):
            Selection(1, 0, 0, 10, 10, SelectionKind.REPLACE, text_align="middle")

    def test_immutable(self):
        sel = Selection(1, 0, 0, 10, 10)
        with pytest.raises(dataclasses.FrozenInstanceError):
            sel.x = 5

    def test_contains_is_half_open(self):
        sel = Selection(1, 10, 20, 5, 5)
        assert sel.contains(10, 20)
        assert sel.contains(14.9, 24.9)
        assert not sel.contains(15, 22)
        assert not sel.contains(12, 25)


# ---------------------------------------------------------------------------
# Typed updates
# ---------------------------------------------------------------------------
class TestUpdates:
    def test_with_url_returns_new_instance(self):
        sel = Selection(1, 0, 0, 10, 10)
        updated = sel.with_url("  http://example.com ")
        assert updated.url == "http://example.com"
        assert sel.url == ""
        assert updated.id == sel.id

    def test_with_geometry(self):
        sel = Selection(1, 0, 0, 10, 10).with_geometry(x=5, width=20)
        assert (sel.x, sel.y, sel.width, sel.height) == (5, 0, 20, 10)

    def test_with_geometry_validates(self):
        with pytest.raises(InvalidSelectionError):
            Selection(1, 0, 0, 10, 10).with_geometry(height=0)

    def test_with_geometry_rejects_unknown_field(self):
        with pytest.raises(InvalidSelectionError, match="geometry"):
            Selection(1, 0, 0, 10, 10).with_geometry(depth=3)

    def test_with_text_align_validates(self):
        sel = Selection(1, 0, 0, 10, 10, SelectionKind.REPLACE)
        assert sel.with_text_align("justify").text_align == "justify"
        with pytest.raises(InvalidSelectionError):
            sel.with_text_align("diagonal")

    def test_with_colors_keeps_unset(self):
        sel = Selection(1, 0, 0, 10, 10, SelectionKind.REPLACE).with_colors(background="#ff0000")
        assert sel.background_color == "#ff0000"
        assert sel.text_color == "#000000"

    def test_font_size_accepted_unparsed(self):
        sel = Selection(1, 0, 0, 10, 10, SelectionKind.REPLACE).with_font_size("1")
        assert sel.font_size == "1"

    def test_with_kind(self):
        sel = Selection(1, 0, 0, 10, 10).with_kind("replace")
        assert sel.kind is SelectionKind.REPLACE


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
class TestStore:
    def test_add_assigns_increasing_ids(self):
        store = SelectionStore()
        a = store.add(0, 0, 10, 10)
        b = store.add(5, 5, 10, 10, SelectionKind.REPLACE, text="Hi")
        assert a.id < b.id
        assert list(store) == [a, b]
        assert b.text == "Hi"

    def test_ids_not_reused_after_delete(self):
        store = SelectionStore()
        a = store.add(0, 0, 10, 10)
        store.delete(a.id)
        assert store.add(0, 0, 10, 10).id != a.id

    def test_update_swaps_by_id(self):
        store = SelectionStore()
        a = store.add(0, 0, 10, 10)
        store.add(20, 20, 10, 10)
        updated = store.update(a.with_url("http://x"))
        assert store.get(a.id) is updated
        assert store.index_of(a.id) == 0

    def test_update_missing_is_noop(self):
        store = SelectionStore()
        a = store.add(0, 0, 10, 10)
        store.delete(a.id)
        assert store.update(a.with_url("http://x")) is None
        assert len(store) == 0

    def test_delete_missing(self):
        assert not SelectionStore().delete(42)

    def test_snapshot_is_detached(self):
        store = SelectionStore()
        store.add(0, 0, 10, 10)
        snap = store.snapshot()
        store.add(20, 20, 10, 10)
        assert len(snap) == 1

    def test_labels_follow_position(self):
        store = SelectionStore()
        a = store.add(0, 0, 10, 10)
        b = store.add(0, 0, 10, 10, url="http://x")
        c = store.add(0, 0, 10, 10, SelectionKind.REPLACE)
        assert store.label(a.id) == "Area #1"
        assert store.label(b.id) == "Link Area #2"
        assert store.label(c.id) == "Text Area #3"
        store.delete(a.id)
        assert store.label(b.id) == "Link Area #1"
        assert store.label(a.id) == ""

    def test_clear(self):
        store = SelectionStore()
        store.add(0, 0, 10, 10)
        store.clear()
        assert len(store) == 0
