"""Configuration management for the receipt OCR pipeline.

Loads and validates YAML configuration with sensible defaults for image
variants, OCR, parsing, and the retrying processing controller.
"""

import logging
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

VariantNameLiteral = Literal[
    "enhanced", "blackwhite", "sharpened", "text_optimized", "original"
]


class ResizeProfile(BaseModel):
    """Target-width rule applied before every variant transform."""

    scale_factor: float = Field(default=2.0, gt=0)
    min_width: int = Field(default=400, gt=0)
    max_width: int = Field(default=2500, gt=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "ResizeProfile":
        if self.min_width > self.max_width:
            raise ValueError("min_width must not exceed max_width")
        return self


class VariantConfig(BaseModel):
    """Configuration for image variant generation."""

    standard: ResizeProfile = Field(default_factory=ResizeProfile)
    compact: ResizeProfile = Field(
        default_factory=lambda: ResizeProfile(
            scale_factor=1.5, min_width=800, max_width=1600
        )
    )
    variant_names: list[VariantNameLiteral] = Field(
        default_factory=lambda: [
            "enhanced",
            "blackwhite",
            "sharpened",
            "text_optimized",
        ]
    )
    contrast_boost: float = 1.3
    brightness_offset: int = 10
    adaptive_threshold: bool = True
    fixed_threshold: int = Field(default=128, ge=0, le=255)
    threshold_window: int = Field(default=5, ge=1)
    threshold_floor: int = 80
    threshold_ceiling: int = 200
    sharpen_strength: float = 0.5

    @field_validator("variant_names")
    @classmethod
    def _non_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one variant must be enabled")
        return value


class OCRConfig(BaseModel):
    """Configuration for the Tesseract OCR engine."""

    tesseract_cmd: str | None = None
    default_lang: str = "eng"
    render_scale: float = Field(default=3.0, ge=2.0, le=3.0)
    configurations: list[str] | None = None


class ParsingConfig(BaseModel):
    """Configuration for receipt field extraction."""

    fuzzy_match_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    context_radius: int = 50
    item_price_cap: float = 200.0
    max_amount: float = 10000.0
    extra_field_slots: int = 5
    vendor_search_lines: int = 5
    totals_tolerance: float = 0.1


class ProcessingConfig(BaseModel):
    """Configuration for the retrying processing controller."""

    max_retries: int = Field(default=2, ge=0)
    timeout_ms: int = Field(default=60000, gt=0)
    enable_preprocessing: bool = True
    max_file_size_mb: int = 50
    backoff_base_ms: int = 1000
    backoff_cap_ms: int = 5000
    min_quality: float = 60.0
    final_min_quality: float = 30.0
    min_text_length: int = 50


class AppConfig(BaseModel):
    """Top-level application configuration."""

    variants: VariantConfig = Field(default_factory=VariantConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    parsing: ParsingConfig = Field(default_factory=ParsingConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
