"""Image variant generation for multi-pass receipt OCR.

Produces several independently processed renderings of one page image,
each tuned for a different visual problem (low contrast, noise, faint
text), all at a common target resolution.
"""

from dataclasses import dataclass
from enum import StrEnum

import cv2
import numpy as np

from receipt_ocr.exceptions import ImageDecodingError
from receipt_ocr.utils.config import ResizeProfile, VariantConfig
from receipt_ocr.utils.logger import get_logger

from .transforms import (
    binarize_fixed,
    binarize_local,
    emphasize_edges,
    optimize_for_text,
    stretch_contrast,
    to_gray,
)

logger = get_logger(__name__)


class VariantName(StrEnum):
    """Names of the supported image variants."""

    ENHANCED = "enhanced"
    BLACKWHITE = "blackwhite"
    SHARPENED = "sharpened"
    TEXT_OPTIMIZED = "text_optimized"
    ORIGINAL = "original"


class ResizeMode(StrEnum):
    """Which resize profile of the variant configuration to apply."""

    STANDARD = "standard"
    COMPACT = "compact"


_DESCRIPTIONS: dict[VariantName, str] = {
    VariantName.ENHANCED: "Enhanced contrast with brightness lift",
    VariantName.BLACKWHITE: "High contrast black and white",
    VariantName.SHARPENED: "Sharpened with edge emphasis",
    VariantName.TEXT_OPTIMIZED: "Optimized for thin printed text",
    VariantName.ORIGINAL: "Grayscale resize without enhancement",
}


@dataclass(frozen=True)
class ImageVariant:
    """One processed rendering of a source page."""

    pixels: np.ndarray
    name: VariantName
    description: str

    @property
    def size(self) -> tuple[int, int]:
        """Return ``(width, height)`` of the variant."""
        return self.pixels.shape[1], self.pixels.shape[0]


def calculate_contrast(image: np.ndarray) -> float:
    """Calculate image contrast as the standard deviation of pixel intensities.

    Args:
        image: Input image (RGB or grayscale).

    Returns:
        Contrast score (higher means more contrast).
    """
    return float(to_gray(image).std())


def target_size(width: int, height: int, profile: ResizeProfile) -> tuple[int, int]:
    """Compute the resize target for a source of the given size.

    Width is ``width * scale_factor`` clamped to the profile bounds and
    height follows proportionally.

    Returns:
        ``(target_width, target_height)``.
    """
    scaled = width * profile.scale_factor
    target_width = int(round(max(profile.min_width, min(profile.max_width, scaled))))
    target_height = max(1, int(round(target_width / width * height)))
    return target_width, target_height


class VariantGenerator:
    """Builds the configured set of image variants for a page.

    Args:
        config: Variant configuration with resize profiles and transform
            parameters.
    """

    def __init__(self, config: VariantConfig) -> None:
        self.config = config

    def generate(
        self,
        image: np.ndarray,
        mode: ResizeMode = ResizeMode.STANDARD,
        enable_preprocessing: bool = True,
    ) -> list[ImageVariant]:
        """Generate variants for one decoded page image.

        Args:
            image: Decoded page as a numpy array (RGB, RGBA, or grayscale).
            mode: Resize profile to use.
            enable_preprocessing: When ``False`` only the plain grayscale
                ``original`` variant is produced.

        Returns:
            List of variants, all with identical dimensions.

        Raises:
            ImageDecodingError: If the image is empty or has an
                unsupported shape.
        """
        self._check_image(image)
        if mode == ResizeMode.COMPACT:
            profile = self.config.compact
        else:
            profile = self.config.standard

        height, width = image.shape[:2]
        size = target_size(width, height, profile)
        logger.debug(
            "Resizing %dx%d -> %dx%d (%s profile)",
            width,
            height,
            size[0],
            size[1],
            mode,
        )

        gray = to_gray(image)
        base = cv2.resize(gray, size, interpolation=cv2.INTER_CUBIC)

        if enable_preprocessing:
            names = [VariantName(name) for name in self.config.variant_names]
        else:
            names = [VariantName.ORIGINAL]

        variants = [
            ImageVariant(
                pixels=self._apply(name, base),
                name=name,
                description=_DESCRIPTIONS[name],
            )
            for name in names
        ]
        logger.info(
            "Created %d variants at %dx%d (source contrast %.1f)",
            len(variants),
            size[0],
            size[1],
            calculate_contrast(gray),
        )
        return variants

    def _apply(self, name: VariantName, gray: np.ndarray) -> np.ndarray:
        pixels = self._transform(name, gray)
        pixels.flags.writeable = False
        return pixels

    def _transform(self, name: VariantName, gray: np.ndarray) -> np.ndarray:
        cfg = self.config
        if name == VariantName.ENHANCED:
            return stretch_contrast(gray, cfg.contrast_boost, cfg.brightness_offset)
        if name == VariantName.BLACKWHITE:
            if cfg.adaptive_threshold:
                return binarize_local(
                    gray,
                    window=cfg.threshold_window,
                    floor=cfg.threshold_floor,
                    ceiling=cfg.threshold_ceiling,
                )
            return binarize_fixed(gray, cfg.fixed_threshold)
        if name == VariantName.SHARPENED:
            return emphasize_edges(gray, cfg.sharpen_strength)
        if name == VariantName.TEXT_OPTIMIZED:
            return optimize_for_text(gray)
        return gray.copy()

    @staticmethod
    def _check_image(image: np.ndarray) -> None:
        if not isinstance(image, np.ndarray) or image.ndim not in (2, 3):
            raise ImageDecodingError("Page image must be a 2-D or 3-D array")
        if image.shape[0] == 0 or image.shape[1] == 0:
            raise ImageDecodingError("Page image is empty")
        if image.ndim == 3 and image.shape[2] not in (1, 3, 4):
            raise ImageDecodingError(f"Unsupported channel count: {image.shape[2]}")
        if image.dtype != np.uint8:
            raise ImageDecodingError(f"Unsupported pixel type: {image.dtype}")
