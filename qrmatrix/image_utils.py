"""Image processing utilities for pixel art and QR output."""

import logging
import os
from dataclasses import dataclass
from enum import Enum

from PIL import Image, ImageOps

from qrmatrix import GRID_SIZE
from qrmatrix.palette import TRANSPARENT, ColorSample

logger = logging.getLogger(__name__)


class ResizeStatus(Enum):
    """Outcome of fitting an image onto the pixel art canvas."""
    RESIZED = "resized"
    FALLBACK = "fallback"  # canvas could not be rendered, source kept as-is


class VerifyResult(Enum):
    """Result of QR scannability verification."""
    SCANNABLE = "scannable"
    NOT_SCANNABLE = "not_scannable"
    SKIPPED = "skipped"  # pyzbar not installed


@dataclass(frozen=True)
class ResizeResult:
    """An image ready for sampling, tagged with how it was produced."""

    image: Image.Image
    status: ResizeStatus
    reason: str | None = None

    @property
    def resized(self) -> bool:
        return self.status is ResizeStatus.RESIZED


def load_image(path: str) -> Image.Image:
    """Load an image from disk.

    Args:
        path: Path to the input image file.

    Returns:
        The decoded PIL Image, fully loaded into memory and rotated upright
        according to its EXIF orientation.

    Raises:
        FileNotFoundError: If the image file doesn't exist.
        ValueError: If the file is not a valid image.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Image not found: {path}")

    try:
        img = Image.open(path)
        img.load()
        # Camera JPEGs often store their rotation in EXIF only
        return ImageOps.exif_transpose(img)
    except (OSError, SyntaxError) as e:
        raise ValueError(f"Could not open image '{path}': {e}")


def fit_size(width: int, height: int, size: int = GRID_SIZE) -> tuple[int, int]:
    """Compute the (w, h) of an image scaled uniformly to fit a size x size box.

    The scale factor is min(size / width, size / height), so the longer side
    becomes *size* and the shorter one is scaled proportionally (rounded,
    minimum 1). Small images are scaled up to fit.

    Raises:
        ValueError: If either side is zero.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Cannot fit an empty {width}x{height} image.")

    ratio = min(size / width, size / height)
    w = min(size, max(1, round(width * ratio)))
    h = min(size, max(1, round(height * ratio)))
    return w, h


def resample(image: Image.Image, size: int = GRID_SIZE) -> ResizeResult:
    """Fit an image onto a transparent size x size canvas, preserving aspect.

    The image is scaled by a uniform factor and centred; the letterbox area
    around it is fully transparent (alpha 0). If the canvas cannot be
    rendered the original image is returned with ResizeStatus.FALLBACK and
    the reason, so callers can decide whether to warn the user.

    Args:
        image: Source image of any size, aspect ratio and mode.
        size: Side of the output canvas in pixels.

    Returns:
        ResizeResult holding an RGBA image of exactly size x size pixels on
        success, or the untouched source image on fallback.
    """
    try:
        rgba = image.convert("RGBA")
        w, h = fit_size(rgba.width, rgba.height, size)
        scaled = rgba.resize((w, h), Image.LANCZOS)

        canvas = Image.new("RGBA", (size, size), (0, 0, 0, 0))
        canvas.paste(scaled, ((size - w) // 2, (size - h) // 2))
    except (OSError, ValueError, MemoryError) as e:
        logger.warning("Could not render %dx%d canvas, using source image: %s", size, size, e)
        return ResizeResult(image=image, status=ResizeStatus.FALLBACK, reason=str(e))

    logger.debug(
        "Resampled %dx%d image to %dx%d inside %dx%d canvas",
        image.width, image.height, w, h, size, size,
    )
    return ResizeResult(image=canvas, status=ResizeStatus.RESIZED)


def read_samples(image: Image.Image, size: int = GRID_SIZE) -> list[list[ColorSample]]:
    """Read a size x size grid of colour samples from the top-left of an image.

    Colour channels are premultiplied by alpha, so a half-transparent pixel
    reads darker than its opaque colour. Cells that fall outside the image are
    transparent, so the grid always has exactly size rows of size samples,
    even for an image that was not resized.
    """
    if image.width == 0 or image.height == 0:
        return [[TRANSPARENT] * size for _ in range(size)]

    rgba = image if image.mode == "RGBA" else image.convert("RGBA")
    premultiplied = rgba.convert("RGBa")
    pixels = premultiplied.load()
    grid = []
    for y in range(size):
        row = []
        for x in range(size):
            if x < premultiplied.width and y < premultiplied.height:
                row.append(ColorSample.from_rgba8(pixels[x, y]))
            else:
                row.append(TRANSPARENT)
        grid.append(row)
    return grid


def sample_grid(image: Image.Image, size: int = GRID_SIZE) -> list[list[ColorSample]]:
    """Resample an image and read back its size x size grid of colours."""
    return read_samples(resample(image, size).image, size)


def save_image(image: Image.Image, output_path: str) -> str:
    """Save an image, creating the parent directory if needed.

    The format follows the output extension (PNG when there is none).

    Returns:
        The output path where the image was saved.
    """
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

    if os.path.splitext(output_path)[1]:
        image.save(output_path)
    else:
        image.save(output_path, "PNG")

    return output_path


def verify_qr_scannable(image: Image.Image) -> tuple[VerifyResult, bytes | None]:
    """Attempt to decode a QR code from a generated image.

    Uses pyzbar if available, otherwise returns SKIPPED.

    Args:
        image: The image to verify.

    Returns:
        Tuple of (VerifyResult, decoded_bytes: bytes | None).
    """
    try:
        from pyzbar.pyzbar import ZBarSymbol
        from pyzbar.pyzbar import decode as pyzbar_decode
    except ImportError:
        # Also raised when the zbar shared library itself is missing
        return VerifyResult.SKIPPED, None

    results = pyzbar_decode(image.convert("L"), symbols=[ZBarSymbol.QRCODE])
    if results:
        return VerifyResult.SCANNABLE, results[0].data
    return VerifyResult.NOT_SCANNABLE, None
