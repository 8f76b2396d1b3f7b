"""Catalog of Tesseract configurations tried against every image variant."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType

from receipt_ocr.utils.logger import get_logger

logger = get_logger(__name__)

RECEIPT_CHARSET = (
    "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz.,/$():-"
)
AMOUNT_CHARSET = "0123456789.$,"


class SegmentationMode(IntEnum):
    """Tesseract page segmentation modes used by the catalog."""

    FULLY_AUTOMATIC = 3
    SINGLE_COLUMN = 4
    UNIFORM_BLOCK = 6
    SINGLE_LINE = 7
    SINGLE_WORD = 8
    SPARSE_TEXT = 11
    RAW_LINE = 13


@dataclass(frozen=True)
class RecognitionConfig:
    """A named Tesseract setup: segmentation mode plus ``-c`` overrides."""

    segmentation_mode: SegmentationMode
    name: str
    description: str
    parameter_overrides: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "parameter_overrides",
            MappingProxyType(dict(self.parameter_overrides)),
        )


def _config(
    mode: SegmentationMode, name: str, description: str, **overrides: str
) -> RecognitionConfig:
    params = {"preserve_interword_spaces": "1", **overrides}
    return RecognitionConfig(mode, name, description, params)


RECOGNITION_CONFIGS: tuple[RecognitionConfig, ...] = (
    _config(
        SegmentationMode.UNIFORM_BLOCK,
        "uniform_block",
        "Uniform block of text, ideal for receipts",
        tessedit_char_whitelist=RECEIPT_CHARSET,
    ),
    _config(
        SegmentationMode.SINGLE_WORD,
        "single_word",
        "Single word recognition, good for amounts",
        tessedit_char_whitelist=AMOUNT_CHARSET,
    ),
    _config(
        SegmentationMode.SINGLE_LINE,
        "single_text_line",
        "Single text line, good for structured data",
    ),
    _config(
        SegmentationMode.SINGLE_COLUMN,
        "single_column",
        "Single column of text of variable sizes",
    ),
    _config(
        SegmentationMode.FULLY_AUTOMATIC,
        "fully_automatic",
        "Fully automatic page segmentation",
    ),
    _config(
        SegmentationMode.SPARSE_TEXT,
        "sparse_text",
        "Sparse text, good for low-quality images",
    ),
    _config(
        SegmentationMode.RAW_LINE,
        "raw_line",
        "Raw line, bypasses Tesseract layout heuristics",
    ),
)


def select_configs(names: Iterable[str] | None = None) -> list[RecognitionConfig]:
    """Return catalog entries, optionally restricted to the given names.

    Catalog order is preserved regardless of the order of ``names``.

    Raises:
        ValueError: If a name is not in the catalog.
    """
    if names is None:
        return list(RECOGNITION_CONFIGS)

    wanted = set(names)
    known = {c.name for c in RECOGNITION_CONFIGS}
    unknown = wanted - known
    if unknown:
        raise ValueError(f"Unknown recognition configurations: {sorted(unknown)}")

    selected = [c for c in RECOGNITION_CONFIGS if c.name in wanted]
    logger.debug("Selected %d of %d configurations", len(selected), len(known))
    return selected
