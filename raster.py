"""
Per-tile JPEG encoding.

The slicing code only needs a ``crop(box) -> bytes`` capability, so any
object with that method can stand in for the real image (tests use fakes
that fail or stall on purpose).  Tiles are encoded on a thread pool and
the result is only produced once every tile's future has resolved.
"""

from __future__ import annotations

import io
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from loguru import logger
from PIL import Image

import config
from emitter import Tile


Box = Tuple[int, int, int, int]


class RasterSource(Protocol):
    def crop(self, box: Box) -> bytes:
        """Return the encoded image for *box* (x0, y0, x1, y1)."""
        ...


class RasterizeError(RuntimeError):
    """One or more tiles failed to encode; no partial file set is returned."""

    def __init__(self, failures: Dict[str, BaseException]) -> None:
        self.failures = failures
        names = ", ".join(sorted(failures))
        super().__init__(f"Failed to encode {len(failures)} tile(s): {names}")


@dataclass(frozen=True)
class SlicedFile:
    name: str
    data: bytes


def flatten(img: Image.Image) -> Image.Image:
    """RGB copy of *img* with any transparency composited over white."""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return img.convert("RGB")


class PillowRaster:
    """Crops and JPEG-encodes regions of a Pillow image."""

    def __init__(self, img: Image.Image, quality: Optional[int] = None) -> None:
        self._img = flatten(img)
        self.quality = quality or config.get_jpeg_quality()

    @property
    def size(self) -> Tuple[int, int]:
        return self._img.size

    def crop(self, box: Box) -> bytes:
        buf = io.BytesIO()
        self._img.crop(box).save(buf, format="JPEG", quality=self.quality)
        return buf.getvalue()


def rasterize(plan: Sequence[Sequence[Tile]], source: RasterSource,
              max_workers: Optional[int] = None) -> List[SlicedFile]:
    """Encode every image tile of *plan*, in plan order.

    Blocks until all encodes have finished.  If any of them failed, raises
    :class:`RasterizeError` naming every failed file.
    """
    tiles = [t for row in plan for t in row if t.filename]
    if not tiles:
        return []
    workers = max_workers or config.get_workers()
    futures: List[Tuple[str, Future]] = []
    with ThreadPoolExecutor(max_workers=workers) as pool:
        for tile in tiles:
            futures.append((tile.filename, pool.submit(source.crop, tile.cell.box)))
        wait([f for _, f in futures])

    files: List[SlicedFile] = []
    failures: Dict[str, BaseException] = {}
    for name, future in futures:
        exc = future.exception()
        if exc is not None:
            logger.error(f"Encoding {name} failed: {exc}")
            failures[name] = exc
            continue
        files.append(SlicedFile(name, future.result()))
    if failures:
        raise RasterizeError(failures)
    logger.debug(f"Encoded {len(files)} tile(s) on {workers} worker(s)")
    return files
