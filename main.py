#!/usr/bin/env python3
"""Entry point for the Image Slicer."""

import argparse
import sys

from loguru import logger

import config


def main() -> None:
    parser = argparse.ArgumentParser(description="Slice an image into an HTML email table.")
    parser.add_argument("image", nargs="?", help="image to open on start")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug detail")
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else config.get_log_level())

    from gui import App

    app = App(args.image)
    app.mainloop()


if __name__ == "__main__":
    main()
