"""Turn text payloads into QR code bitmaps.

The symbol itself comes from a QR-symbol encoder backend (python-qrcode or
segno) that returns a module matrix; the pipeline rasterises that matrix and
scales it up with nearest-neighbour so every module is a solid square block.
"""

import logging
import os
from abc import ABC, abstractmethod

import qrcode
from qrcode.exceptions import DataOverflowError
from PIL import Image

from qrmatrix import ERROR_CORRECTION, MAX_QR_BYTES, MODULE_SCALE, QUIET_ZONE
from qrmatrix.errors import EncodingError, QRGenerationFailure

logger = logging.getLogger(__name__)

# True = dark module, quiet zone included
Matrix = list[list[bool]]

DEFAULT_BACKEND = "qrcode"

_QRCODE_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}


# ---------------------------------------------------------------------------
# Encoder backends
# ---------------------------------------------------------------------------

class BaseSymbolEncoder(ABC):
    """Abstract QR-symbol encoder: bytes in, module matrix out."""

    def __init__(self, border: int = QUIET_ZONE):
        self.border = border

    @abstractmethod
    def encode(self, data: bytes, error_correction: str = ERROR_CORRECTION) -> Matrix:
        """Encode *data* into the smallest QR symbol that fits it.

        Args:
            data: Raw payload bytes.
            error_correction: One of "L", "M", "Q", "H".

        Returns:
            The module matrix, including a quiet zone of ``border`` modules.

        Raises:
            QRGenerationFailure: If the payload exceeds the capacity of a
                version 40 symbol or the level is invalid.
        """
        ...

    @abstractmethod
    def name(self) -> str:
        ...


class QRCodeEncoder(BaseSymbolEncoder):
    """Encoder backed by python-qrcode."""

    def name(self) -> str:
        return "qrcode"

    def encode(self, data: bytes, error_correction: str = ERROR_CORRECTION) -> Matrix:
        level = _QRCODE_LEVELS.get(error_correction.upper())
        if level is None:
            raise QRGenerationFailure(f"Invalid error correction level '{error_correction}'.")

        qr = qrcode.QRCode(error_correction=level, border=self.border)
        qr.add_data(data)
        try:
            qr.make(fit=True)
        except (DataOverflowError, ValueError) as e:
            raise QRGenerationFailure(_too_large_message(data)) from e

        logger.debug("qrcode built version %d symbol for %d bytes", qr.version, len(data))
        return [list(row) for row in qr.get_matrix()]


class SegnoEncoder(BaseSymbolEncoder):
    """Encoder backed by segno."""

    def name(self) -> str:
        return "segno"

    def encode(self, data: bytes, error_correction: str = ERROR_CORRECTION) -> Matrix:
        import segno

        if error_correction.upper() not in _QRCODE_LEVELS:
            raise QRGenerationFailure(f"Invalid error correction level '{error_correction}'.")

        try:
            # boost_error would silently raise the level above the one requested
            qr = segno.make(data, error=error_correction.lower(), micro=False, boost_error=False)
        except ValueError as e:  # segno.DataOverflowError is a ValueError
            raise QRGenerationFailure(_too_large_message(data)) from e

        logger.debug("segno built version %s symbol for %d bytes", qr.version, len(data))
        return [[bool(module) for module in row] for row in qr.matrix_iter(border=self.border)]


def _too_large_message(data: bytes) -> str:
    return (
        f"Text too long for a QR code ({len(data)} bytes). "
        f"Maximum is {MAX_QR_BYTES} bytes with error correction level {ERROR_CORRECTION}."
    )


def get_encoder(backend: str | None = None) -> BaseSymbolEncoder:
    """Factory function to get a QR-symbol encoder.

    Args:
        backend: One of "qrcode" or "segno". Defaults to the QRMATRIX_BACKEND
            environment variable, then "qrcode".

    Returns:
        An initialized encoder.
    """
    encoders = {
        "qrcode": QRCodeEncoder,
        "segno": SegnoEncoder,
    }

    backend = backend or os.environ.get("QRMATRIX_BACKEND") or DEFAULT_BACKEND
    if backend not in encoders:
        raise ValueError(f"Unknown backend '{backend}'. Choose from: {', '.join(encoders.keys())}")

    return encoders[backend]()


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def rasterize(matrix: Matrix, scale: int = MODULE_SCALE) -> Image.Image:
    """Render a module matrix as a black-on-white bitmap.

    Each module becomes a scale x scale block; the upscale is nearest-neighbour
    so block edges stay sharp.
    """
    size = len(matrix)
    img = Image.new("L", (size, size), 255)
    img.putdata([0 if dark else 255 for row in matrix for dark in row])
    img = img.resize((size * scale, size * scale), Image.NEAREST)
    return img.convert("1", dither=Image.Dither.NONE)


class QRPayloadPipeline:
    """Generate QR bitmaps at the fixed correction level and module scale."""

    def __init__(self, encoder: BaseSymbolEncoder | None = None):
        self.encoder = encoder or get_encoder()

    def generate(self, payload: str | None) -> Image.Image | None:
        """Generate a QR code image for *payload*.

        Empty or missing text produces no image rather than an error.

        Args:
            payload: Raw user text or a pixel art payload.

        Returns:
            A monochrome PIL Image, or None when the payload is empty.

        Raises:
            EncodingError: If the text cannot be encoded as UTF-8.
            QRGenerationFailure: If the encoder cannot build a symbol.
        """
        if not payload:
            return None

        try:
            data = payload.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodingError(f"Failed to encode text: {e.reason}.") from e

        matrix = self.encoder.encode(data, ERROR_CORRECTION)
        logger.debug("Rasterising %dx%d module matrix at %dx", len(matrix), len(matrix), MODULE_SCALE)
        return rasterize(matrix, MODULE_SCALE)


def generate_qr_code(payload: str | None, backend: str | None = None) -> Image.Image | None:
    """Shortcut for QRPayloadPipeline(get_encoder(backend)).generate(payload)."""
    return QRPayloadPipeline(get_encoder(backend)).generate(payload)
