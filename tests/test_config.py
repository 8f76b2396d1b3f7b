"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from receipt_ocr.utils.config import (
    AppConfig,
    OCRConfig,
    ParsingConfig,
    ProcessingConfig,
    ResizeProfile,
    VariantConfig,
    load_config,
)


class TestVariantConfig:
    """Tests for VariantConfig defaults and validation."""

    def test_defaults(self) -> None:
        cfg = VariantConfig()
        assert cfg.variant_names == [
            "enhanced",
            "blackwhite",
            "sharpened",
            "text_optimized",
        ]
        assert cfg.standard.scale_factor == 2.0
        assert (cfg.standard.min_width, cfg.standard.max_width) == (400, 2500)
        assert cfg.compact.scale_factor == 1.5
        assert (cfg.compact.min_width, cfg.compact.max_width) == (800, 1600)

    def test_empty_variant_list_rejected(self) -> None:
        with pytest.raises(ValidationError):
            VariantConfig(variant_names=[])

    def test_unknown_variant_rejected(self) -> None:
        with pytest.raises(ValidationError):
            VariantConfig(variant_names=["sepia"])

    def test_inverted_width_bounds_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ResizeProfile(min_width=2000, max_width=1000)


class TestOCRConfig:
    """Tests for OCRConfig defaults and overrides."""

    def test_defaults(self) -> None:
        cfg = OCRConfig()
        assert cfg.default_lang == "eng"
        assert cfg.render_scale == 3.0
        assert cfg.tesseract_cmd is None
        assert cfg.configurations is None

    @pytest.mark.parametrize("scale", [1.0, 3.5])
    def test_render_scale_bounds(self, scale: float) -> None:
        with pytest.raises(ValidationError):
            OCRConfig(render_scale=scale)


class TestParsingAndProcessingConfig:
    """Tests for parser and controller defaults."""

    def test_parsing_defaults(self) -> None:
        cfg = ParsingConfig()
        assert cfg.fuzzy_match_threshold == 0.7
        assert cfg.item_price_cap == 200.0
        assert cfg.extra_field_slots == 5

    def test_processing_defaults(self) -> None:
        cfg = ProcessingConfig()
        assert cfg.max_retries == 2
        assert cfg.timeout_ms == 60000
        assert cfg.max_file_size_mb == 50
        assert cfg.min_quality == 60.0
        assert cfg.final_min_quality == 30.0

    def test_negative_retries_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ProcessingConfig(max_retries=-1)


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_load_project_config(self, config_dir: Path) -> None:
        cfg = load_config(config_dir / "config.yaml")
        assert isinstance(cfg, AppConfig)
        assert cfg.ocr.default_lang == "eng"
        assert cfg.processing.max_retries == 2

    def test_load_missing_file_returns_defaults(self) -> None:
        cfg = load_config(Path("/nonexistent/path/config.yaml"))
        assert isinstance(cfg, AppConfig)
        assert cfg.log_level == "INFO"

    def test_load_custom_yaml(self, tmp_path: Path) -> None:
        config_data = {
            "variants": {"variant_names": ["enhanced"]},
            "ocr": {"default_lang": "deu", "configurations": ["uniform_block"]},
            "processing": {"max_retries": 0},
            "log_level": "DEBUG",
        }
        config_file = tmp_path / "config.yaml"
        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

        cfg = load_config(config_file)
        assert cfg.variants.variant_names == ["enhanced"]
        assert cfg.ocr.default_lang == "deu"
        assert cfg.ocr.configurations == ["uniform_block"]
        assert cfg.processing.max_retries == 0
        assert cfg.log_level == "DEBUG"

    def test_load_empty_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        cfg = load_config(config_file)
        assert isinstance(cfg, AppConfig)
