"""Receipt OCR Core.

An offline receipt and invoice digitization pipeline combining Tesseract
OCR over multiple OpenCV-enhanced image variants with heuristic field
extraction to produce structured records with bounded retries.
"""

__version__ = "1.0.0"
