"""QRMatrix — QR codes from text or from emoji pixel art of a photo."""

__version__ = "1.0.0"

# Shared constants
GRID_SIZE = 15  # Pixel art grid is GRID_SIZE x GRID_SIZE cells
MODULE_SCALE = 10  # Each QR module becomes a MODULE_SCALE x MODULE_SCALE block
ERROR_CORRECTION = "M"  # ~15% of the symbol recoverable
QUIET_ZONE = 4  # Light modules around the symbol, per the QR standard
MAX_QR_BYTES = 2331  # Max byte-mode payload at QR version 40, EC level M
