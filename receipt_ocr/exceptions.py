"""Exception hierarchy for the receipt OCR pipeline."""


class ReceiptOCRError(Exception):
    """Base exception for all receipt OCR errors."""


class ValidationError(ReceiptOCRError):
    """Raised when an input document is rejected before processing."""


class ImageDecodingError(ValidationError):
    """Raised when a document cannot be decoded into page images."""


class InitializationError(ReceiptOCRError):
    """Raised when the recognition engine fails to start."""


class RecognitionError(ReceiptOCRError):
    """Raised when a single recognition engine call fails."""


class NoUsableResultError(RecognitionError):
    """Raised when every attempt in a recognition grid failed."""


class ProcessingTimeoutError(ReceiptOCRError):
    """Raised when a processing attempt exceeds its deadline."""
