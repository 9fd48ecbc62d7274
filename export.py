"""
The slice operation and its file outputs.

``slice_image`` takes one consistent snapshot of the selections, lays out
the table, renders the markup, then encodes every image tile.  It returns
only when the HTML and the full file set are both ready.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from loguru import logger
from PIL import Image

import config
from emitter import Tile, plan_tiles, referenced_files, render_html, sanitize_base_name
from raster import PillowRaster, RasterSource, SlicedFile, rasterize
from selections import Selection
from slicer import slice_layout


@dataclass
class SliceResult:
    html: str
    files: List[SlicedFile]
    plan: List[List[Tile]] = field(default_factory=list)

    @property
    def filenames(self) -> List[str]:
        return [f.name for f in self.files]


def slice_image(img: Image.Image, selections: Sequence[Selection], base_name: str,
                source: Optional[RasterSource] = None,
                max_workers: Optional[int] = None) -> SliceResult:
    """Turn *img* plus its selections into table HTML and JPEG tiles.

    Raises ``InvalidFontSizeError`` before any encoding starts, and
    ``RasterizeError`` if any tile fails to encode.
    """
    snapshot = tuple(selections)
    base = sanitize_base_name(base_name)
    logger.info(f"Slicing {img.width}x{img.height} image with {len(snapshot)} selection(s)")
    layout = slice_layout(img.width, img.height, snapshot)
    plan = plan_tiles(layout, base)
    html = render_html(plan)
    files = rasterize(plan, source or PillowRaster(img), max_workers=max_workers)
    if [f.name for f in files] != referenced_files(plan):
        raise RuntimeError("Encoded files don't match the files referenced in the HTML.")
    logger.info(f"Slice done: {sum(len(r) for r in layout)} cell(s), {len(files)} file(s)")
    return SliceResult(html, files, plan)


def write_slices(result: SliceResult, directory: str, html_name: str = "index.html") -> List[str]:
    """Write the markup and every tile into *directory*.

    Returns the list of written file paths, HTML first.
    """
    os.makedirs(directory, exist_ok=True)
    html_path = os.path.join(directory, html_name)
    with open(html_path, "w", encoding="utf-8") as f:
        f.write(result.html)
    paths: List[str] = [html_path]
    for sliced in result.files:
        p = os.path.join(directory, sliced.name)
        with open(p, "wb") as f:
            f.write(sliced.data)
        paths.append(p)
    logger.info(f"Wrote {len(paths)} file(s) to {directory}")
    return paths


def layout_dict(width: int, height: int, selections: Sequence[Selection],
                base_name: str = config.DEFAULT_BASE_NAME) -> dict:
    """Selections and the resolved table layout as plain data."""
    plan = plan_tiles(slice_layout(width, height, selections), sanitize_base_name(base_name))
    return {
        "image_size": {"width": width, "height": height},
        "selections": [
            {
                "id": s.id, "kind": s.kind.value,
                "x": s.x, "y": s.y, "w": s.width, "h": s.height,
                "url": s.url, "text": s.text, "text_align": s.text_align,
                "font_size": s.font_size, "background_color": s.background_color,
                "text_color": s.text_color,
            }
            for s in selections
        ],
        "rows": [
            [
                {
                    "x": t.cell.col_start, "y": t.cell.row_start,
                    "w": t.cell.width, "h": t.cell.height,
                    "kind": t.cell.kind.value,
                    "selection": t.cell.occupant.id if t.cell.occupant else None,
                    "file": t.filename,
                }
                for t in row
            ]
            for row in plan
        ],
    }


def export_json(width: int, height: int, selections: Sequence[Selection], path: str,
                base_name: str = config.DEFAULT_BASE_NAME) -> None:
    """Write the selection layout to a JSON file."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(layout_dict(width, height, selections, base_name), f, indent=2)
