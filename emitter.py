"""
HTML table markup for a sliced layout.

Email clients ignore CSS positioning, so the layout is rebuilt from nested
tables: one outer row per layout row, each holding an inner single-row
table whose cells carry percentage widths.  Image cells reference JPEG
files named ``{base}_{n}.jpeg``, numbered row by row, left to right.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from html import escape
from typing import Dict, List, Optional, Sequence, Tuple

import config
from selections import Selection
from slicer import CellKind, MergedCell


FONT_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?|\.\d+)\s*(px|em|rem)\s*$")
LINE_HEIGHT_FACTOR = 1.2

_TABLE_ATTRS = 'cellpadding="0" cellspacing="0" border="0"'
_IMG_STYLE = "display:block; border:0; width: 100%;"


class InvalidFontSizeError(ValueError):
    """A text area's font size isn't ``<number><px|em|rem>``."""

    def __init__(self, selection: Selection) -> None:
        self.selection = selection
        super().__init__(
            f"Invalid font size {selection.font_size!r} on selection {selection.id}; "
            f"expected a number followed by px, em or rem."
        )


@dataclass(frozen=True)
class Tile:
    """A merged cell plus the file it is rendered from (None for text)."""
    cell: MergedCell
    filename: Optional[str] = None


def sanitize_base_name(name: str) -> str:
    """Reduce an upload's file name to ASCII alphanumerics, extension dropped."""
    stem = os.path.splitext(os.path.basename(name or ""))[0]
    cleaned = re.sub(r"[^A-Za-z0-9]", "", stem)
    return cleaned or config.DEFAULT_BASE_NAME


def plan_tiles(layout: Sequence[Sequence[MergedCell]], base_name: str) -> List[List[Tile]]:
    """Assign ``{base}_{n}.jpeg`` to every image-bearing cell in layout order.

    HTML rendering and rasterizing both consume this plan, so file names
    always agree between the two.
    """
    base = base_name or config.DEFAULT_BASE_NAME
    counter = 0
    plan: List[List[Tile]] = []
    for row in layout:
        tiles: List[Tile] = []
        for cell in row:
            if cell.kind is CellKind.TEXT:
                tiles.append(Tile(cell))
                continue
            counter += 1
            tiles.append(Tile(cell, f"{base}_{counter}.jpeg"))
        plan.append(tiles)
    return plan


def parse_font_size(selection: Selection) -> Tuple[float, str]:
    match = FONT_SIZE_RE.match(selection.font_size or "")
    if match is None:
        raise InvalidFontSizeError(selection)
    return float(match.group(1)), match.group(2)


def _number(value: float) -> str:
    return format(round(value, 2), "g")


def text_cell_height(selection: Selection) -> str:
    """Cell height for a text area: font size x 1.2, same unit."""
    size, unit = parse_font_size(selection)
    return f"{_number(size * LINE_HEIGHT_FACTOR)}{unit}"


def css_font_size(selection: Selection) -> str:
    """Font size with the whitespace between number and unit removed."""
    size, unit = parse_font_size(selection)
    return f"{_number(size)}{unit}"


def _hundredths(units: int) -> str:
    whole, frac = divmod(units, 100)
    return str(whole) if frac == 0 else f"{whole}.{frac:02d}".rstrip("0")


def width_percentages(cells: Sequence[MergedCell]) -> List[str]:
    """Each cell's share of the row width, as a percentage to two decimals.

    Largest-remainder rounding in hundredths, so every row sums to exactly 100.
    """
    total = sum(c.width for c in cells)
    if total <= 0:
        return ["0" for _ in cells]
    shares = [divmod(c.width * 10000, total) for c in cells]
    units = [floor for floor, _ in shares]
    leftover = 10000 - sum(units)
    by_remainder = sorted(range(len(cells)), key=lambda i: shares[i][1], reverse=True)
    for i in by_remainder[:leftover]:
        units[i] += 1
    return [_hundredths(u) for u in units]


def _image_tag(filename: str) -> str:
    name = escape(filename, quote=True)
    return f'<img src="{name}" alt="{name}" style="{_IMG_STYLE}" />'


def render_cell(tile: Tile, percent: str) -> str:
    cell = tile.cell
    if cell.kind is CellKind.TEXT:
        sel = cell.occupant
        height = text_cell_height(sel)
        style = (
            f"text-align:{sel.text_align};"
            f"font-size:{css_font_size(sel)};"
            f"background-color:{sel.background_color};"
            f"color:{sel.text_color}"
        )
        return (f'<td width="{percent}%" height="{escape(height)}">'
                f'<div style="{escape(style, quote=True)}">{escape(sel.text)}</div></td>')
    img = _image_tag(tile.filename)
    if cell.kind is CellKind.LINK:
        href = escape(cell.occupant.url, quote=True)
        img = f'<a href="{href}" target="_blank">{img}</a>'
    return f'<td width="{percent}%">{img}</td>'


def render_html(plan: Sequence[Sequence[Tile]], max_width: Optional[int] = None) -> str:
    """Serialize a tile plan into nested-table markup.

    Raises :class:`InvalidFontSizeError` before producing any output if a
    text cell's font size can't be parsed.
    """
    for row in plan:
        for tile in row:
            if tile.cell.kind is CellKind.TEXT:
                parse_font_size(tile.cell.occupant)

    max_width = max_width or config.get_display_width()
    lines = [f'<table {_TABLE_ATTRS} style="max-width:{max_width}px;">']
    for row in plan:
        percents = width_percentages([t.cell for t in row])
        lines += [
            "  <tr>",
            "    <td>",
            f'      <table {_TABLE_ATTRS} width="100%">',
            "        <tr>",
        ]
        lines += [f"          {render_cell(t, p)}" for t, p in zip(row, percents)]
        lines += [
            "        </tr>",
            "      </table>",
            "    </td>",
            "  </tr>",
        ]
    lines.append("</table>")
    return "\n".join(lines)


def referenced_files(plan: Sequence[Sequence[Tile]]) -> List[str]:
    return [t.filename for row in plan for t in row if t.filename]


def replace_image_urls(html: str, filenames: Sequence[str], urls: str) -> str:
    """Point image ``src`` attributes at hosted copies.

    *urls* holds one URL per line, matched to *filenames* by position; a
    blank line leaves that image alone.  ``alt`` text is untouched.
    """
    lines = urls.splitlines()
    mapping: Dict[str, str] = {}
    for name, line in zip(filenames, lines):
        if line.strip():
            mapping[name] = line.strip()
    if not mapping:
        return html

    def _swap(match: "re.Match[str]") -> str:
        current = match.group(2)
        new = mapping.get(current)
        if new is None:
            return match.group(0)
        return f'{match.group(1)}{escape(new, quote=True)}"'

    return re.sub(r'(<img\b[^>]*?\bsrc=")([^"]*)"', _swap, html)
