"""
Runtime tunables for the image slicer.

Each getter reads an environment variable and falls back to a default.
Call them at use time so tests can override values with ``monkeypatch``.
"""

from __future__ import annotations

import os

from loguru import logger


DEFAULT_DISPLAY_WIDTH = 640
DEFAULT_HANDLE_RADIUS = 8
DEFAULT_MIN_DRAG = 5
DEFAULT_JPEG_QUALITY = 90
DEFAULT_WORKERS = 4
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_BASE_NAME = "slice"


def _int_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer, using {default}")
        return default
    if value < minimum:
        logger.warning(f"{name}={value} is below {minimum}, using {default}")
        return default
    return value


def get_display_width() -> int:
    """Fixed backing width of the editing canvas, in pixels."""
    return _int_env("SLICER_DISPLAY_WIDTH", DEFAULT_DISPLAY_WIDTH)


def get_handle_radius() -> int:
    """Hit-test radius of resize handles, in canvas pixels."""
    return _int_env("SLICER_HANDLE_RADIUS", DEFAULT_HANDLE_RADIUS)


def get_min_drag() -> int:
    """A drag must exceed this many canvas pixels on both axes to commit."""
    return _int_env("SLICER_MIN_DRAG", DEFAULT_MIN_DRAG, minimum=0)


def get_jpeg_quality() -> int:
    quality = _int_env("SLICER_JPEG_QUALITY", DEFAULT_JPEG_QUALITY)
    return min(quality, 100)


def get_workers() -> int:
    """Thread count for concurrent tile encoding."""
    return _int_env("SLICER_WORKERS", DEFAULT_WORKERS)


def get_log_level() -> str:
    return os.environ.get("SLICER_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL
