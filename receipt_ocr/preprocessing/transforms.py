"""Pixel-level transforms for receipt image variants.

Every transform takes a single-channel ``uint8`` image and returns a new
array; inputs are never modified in place.
"""

import cv2
import numpy as np

from receipt_ocr.utils.logger import get_logger

logger = get_logger(__name__)

MID_GRAY = 128


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert an image to grayscale if it has color channels.

    Decoded documents arrive as RGB (or RGBA), so luma is computed with
    the ITU-R 601 weights 0.299, 0.587 and 0.114.

    Args:
        image: Input image (RGB, RGBA, or grayscale).

    Returns:
        Grayscale image. A grayscale input is returned as a copy.
    """
    if image.ndim == 3:
        if image.shape[2] == 1:
            return image[:, :, 0].copy()
        if image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_RGBA2GRAY)
        return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
    return image.copy()


def _clip(values: np.ndarray) -> np.ndarray:
    return np.clip(values, 0, 255).astype(np.uint8)


def stretch_contrast(
    gray: np.ndarray, boost: float = 1.3, brightness: int = 10
) -> np.ndarray:
    """Stretch contrast around mid-gray and shift brightness.

    Args:
        gray: Grayscale image.
        boost: Contrast multiplier applied to the deviation from 128.
        brightness: Offset added after the stretch.

    Returns:
        Contrast-enhanced image clamped to [0, 255].
    """
    stretched = (gray.astype(np.float32) - MID_GRAY) * boost + MID_GRAY
    return _clip(np.rint(stretched) + brightness)


def binarize_fixed(gray: np.ndarray, threshold: int = 128) -> np.ndarray:
    """Binarize with a single global threshold.

    Pixels darker than ``threshold`` become black, everything else white.
    """
    return np.where(gray < threshold, 0, 255).astype(np.uint8)


def binarize_local(
    gray: np.ndarray,
    window: int = 5,
    offset: int = 10,
    floor: int = 80,
    ceiling: int = 200,
) -> np.ndarray:
    """Binarize against a neighborhood-average threshold.

    The threshold for each pixel is the mean of its ``window`` x ``window``
    neighborhood minus ``offset``, bounded to ``[floor, ceiling]`` so flat
    regions never collapse to all-black or all-white.

    Args:
        gray: Grayscale image.
        window: Side length of the sampling window.
        offset: Amount subtracted from the local mean.
        floor: Lowest allowed threshold.
        ceiling: Highest allowed threshold.

    Returns:
        Binary image with pixel values 0 or 255.
    """
    local_mean = cv2.blur(
        gray.astype(np.float32), (window, window), borderType=cv2.BORDER_REPLICATE
    )
    thresholds = np.clip(local_mean - offset, floor, ceiling)
    logger.debug("Applied local binarization (window=%d)", window)
    return np.where(gray < thresholds, 0, 255).astype(np.uint8)


def emphasize_edges(gray: np.ndarray, strength: float = 0.5) -> np.ndarray:
    """Push every pixel further away from mid-gray.

    A cheap stand-in for an unsharp mask: strokes get darker and the paper
    gets lighter in proportion to how far they already are from 128.
    """
    values = gray.astype(np.float32)
    return _clip(np.rint(values + (values - MID_GRAY) * strength))


def optimize_for_text(gray: np.ndarray) -> np.ndarray:
    """Asymmetric correction tuned for thin printed text.

    Dark pixels (< 80) are darkened by 20, light pixels (> 200) lightened
    by 20, and the mid band is split at 140 and pushed apart by 10.
    """
    values = gray.astype(np.int16)
    mid_band = np.where(values < 140, values - 10, values + 10)
    result = np.where(
        values < 80,
        values - 20,
        np.where(values > 200, values + 20, mid_band),
    )
    return _clip(result)
