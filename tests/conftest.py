"""Shared test fixtures for the receipt OCR test suite."""

import io
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from receipt_ocr.utils.config import AppConfig, ProcessingConfig

SAMPLE_RECEIPT = """\
Joe's Coffee House
123 Main Street
Springfield, IL 62701
Tel: (555) 123-4567
Date: 12/25/2024  Time: 14:30
Receipt #: R-10042
Cappuccino Large 4.50
2 x Blueberry Muffin 7.00
Subtotal $11.50
Tax $0.92
TOTAL $12.42
VISA ****1234
Thank you for visiting!
"""


@pytest.fixture
def sample_image() -> np.ndarray:
    """Create a simple synthetic grayscale test image."""
    image = np.zeros((200, 300), dtype=np.uint8)
    image[50:150, 50:250] = 255
    return image


@pytest.fixture
def sample_color_image() -> np.ndarray:
    """Create a simple synthetic RGB test image."""
    image = np.zeros((200, 300, 3), dtype=np.uint8)
    image[50:150, 50:250] = (255, 255, 255)
    return image


@pytest.fixture
def png_bytes() -> bytes:
    """Encode a small RGB image as PNG bytes."""
    img = Image.fromarray(np.full((60, 120, 3), 255, dtype=np.uint8))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def sample_receipt_text() -> str:
    """Return clean OCR text of a typical point-of-sale receipt."""
    return SAMPLE_RECEIPT


@pytest.fixture
def app_config() -> AppConfig:
    """Application configuration with backoff disabled for fast tests."""
    return AppConfig(
        processing=ProcessingConfig(backoff_base_ms=0, backoff_cap_ms=0)
    )


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
