"""Exceptions raised by the QR payload pipeline."""


class QRMatrixError(Exception):
    """Base class for recoverable, request-level failures."""


class EncodingError(QRMatrixError):
    """The payload text could not be converted to UTF-8 bytes."""


class QRGenerationFailure(QRMatrixError):
    """The QR-symbol encoder could not produce a symbol matrix.

    Raised when the payload exceeds the capacity of a version 40 symbol at
    the requested correction level, or when the level itself is invalid.
    """
