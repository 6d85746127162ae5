"""Emoji pixel art: turn an image into a fixed-size grid of coloured squares.

The text form of the grid is what gets encoded into the QR code, so encode()
must stay byte-for-byte stable for a given grid.
"""

from dataclasses import dataclass

from PIL import Image

from qrmatrix import GRID_SIZE
from qrmatrix.image_utils import ResizeResult, read_samples, resample
from qrmatrix.palette import Symbol, classify_grid

_GLYPHS = [(s.glyph, s) for s in Symbol]


@dataclass(frozen=True)
class PixelArt:
    """Pixel art derived from an image."""

    symbols: list[list[Symbol]]
    text: str
    resize: ResizeResult


def _check_shape(symbols: list[list[Symbol]], size: int) -> None:
    if len(symbols) != size or any(len(row) != size for row in symbols):
        raise ValueError(f"Pixel art grid must be {size}x{size}.")


def encode(symbols: list[list[Symbol]], size: int = GRID_SIZE) -> str:
    """Serialise a symbol grid into the pixel art payload.

    Rows are written top to bottom, one glyph per cell, and every row ends
    with a newline, including the last one.

    Raises:
        ValueError: If the grid is not size x size.
    """
    _check_shape(symbols, size)
    return "".join("".join(s.glyph for s in row) + "\n" for row in symbols)


def parse(text: str, size: int = GRID_SIZE) -> list[list[Symbol]]:
    """Read a pixel art payload back into its symbol grid.

    Raises:
        ValueError: If the text holds an unknown glyph or is not size x size.
    """
    rows = []
    for line_no, line in enumerate(text.splitlines(), start=1):
        row = []
        pos = 0
        while pos < len(line):
            for glyph, symbol in _GLYPHS:
                if line.startswith(glyph, pos):
                    row.append(symbol)
                    pos += len(glyph)
                    break
            else:
                raise ValueError(
                    f"Unknown glyph {line[pos]!r} on line {line_no}, column {pos + 1}."
                )
        rows.append(row)

    _check_shape(rows, size)
    return rows


def image_to_pixel_art(image: Image.Image, size: int = GRID_SIZE) -> PixelArt:
    """Resample, classify and encode an image in one step.

    Args:
        image: Source image of any size or aspect ratio.
        size: Grid side length.

    Returns:
        PixelArt with the symbol grid, its payload text and the resize
        outcome (check ``resize.resized`` to detect a fallback).
    """
    resized = resample(image, size)
    symbols = classify_grid(read_samples(resized.image, size))
    return PixelArt(symbols=symbols, text=encode(symbols, size), resize=resized)
