"""Tesseract OCR engine wrapper with explicit session lifecycle.

The engine is an owned resource: it is initialized once (verifying the
Tesseract binary), reconfigured per attempt with a segmentation mode and
parameter overrides, and terminated on shutdown.
"""

import shlex
import threading
from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np
import pytesseract
from PIL import Image

from receipt_ocr.exceptions import InitializationError, RecognitionError
from receipt_ocr.utils.logger import get_logger

from .configurations import RecognitionConfig, SegmentationMode

logger = get_logger(__name__)


@dataclass
class EngineOutput:
    """Raw output of one Tesseract invocation."""

    text: str
    confidence: float
    word_count: int


def build_config_string(
    segmentation_mode: int, overrides: Mapping[str, str] | None = None
) -> str:
    """Build the Tesseract command-line config for pytesseract.

    Whitespace is removed from override values because Tesseract cannot
    receive it through ``-c`` and character whitelists never need it.

    Args:
        segmentation_mode: Tesseract ``--psm`` value.
        overrides: Tesseract variables passed as ``-c key=value``.

    Returns:
        Config string such as ``--psm 6 -c preserve_interword_spaces=1``.
    """
    parts = [f"--psm {int(segmentation_mode)}"]
    for key, value in (overrides or {}).items():
        compact = "".join(str(value).split())
        parts.append(f"-c {key}={shlex.quote(compact)}")
    return " ".join(parts)


class TesseractEngine:
    """Stateful wrapper around Tesseract for receipt text extraction.

    Calls are serialized with a lock so a recognition that is still
    running in a worker thread after its caller gave up cannot interleave
    with the next configure-and-recognize pair.

    Args:
        tesseract_cmd: Path to the Tesseract executable.
            If ``None``, uses the system default.
        default_lang: OCR language code.
    """

    def __init__(
        self,
        tesseract_cmd: str | None = None,
        default_lang: str = "eng",
    ) -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.default_lang = default_lang
        self.version: str | None = None
        self._initialized = False
        self._lock = threading.Lock()
        self._segmentation_mode: int = SegmentationMode.UNIFORM_BLOCK
        self._overrides: dict[str, str] = {"preserve_interword_spaces": "1"}

    @property
    def is_initialized(self) -> bool:
        """Whether :meth:`initialize` has completed successfully."""
        return self._initialized

    def initialize(self) -> None:
        """Verify that Tesseract is installed and usable.

        Raises:
            InitializationError: If the Tesseract binary cannot be run.
        """
        if self._initialized:
            return
        try:
            self.version = str(pytesseract.get_tesseract_version())
        except (pytesseract.TesseractNotFoundError, OSError) as exc:
            raise InitializationError(f"OCR initialization failed: {exc}") from exc
        self._initialized = True
        logger.info(
            "Tesseract %s initialized (lang=%s)", self.version, self.default_lang
        )

    def terminate(self) -> None:
        """Release the session; a later :meth:`initialize` starts a new one."""
        with self._lock:
            if self._initialized:
                logger.info("Terminating Tesseract session")
            self._initialized = False
            self._segmentation_mode = SegmentationMode.UNIFORM_BLOCK
            self._overrides = {"preserve_interword_spaces": "1"}

    def configure(self, config: RecognitionConfig) -> None:
        """Set the segmentation mode and overrides for following calls."""
        with self._lock:
            self._apply(config)

    def recognize(
        self, image: np.ndarray, config: RecognitionConfig | None = None
    ) -> EngineOutput:
        """Run Tesseract on an image with the current (or given) configuration.

        Args:
            image: Input image as a numpy array.
            config: Optional configuration applied atomically before the call.

        Returns:
            Recognized text with the mean word confidence (0-100).

        Raises:
            RecognitionError: If the engine is not initialized or Tesseract
                fails on this image.
        """
        with self._lock:
            if not self._initialized:
                raise RecognitionError("OCR engine is not initialized")
            if config is not None:
                self._apply(config)

            tess_config = build_config_string(
                self._segmentation_mode, self._overrides
            )
            try:
                pil_image = Image.fromarray(image)
                text = pytesseract.image_to_string(
                    pil_image, lang=self.default_lang, config=tess_config
                )
                data = pytesseract.image_to_data(
                    pil_image,
                    lang=self.default_lang,
                    config=tess_config,
                    output_type=pytesseract.Output.DICT,
                )
            except (pytesseract.TesseractError, RuntimeError, OSError) as exc:
                raise RecognitionError(f"Tesseract failed: {exc}") from exc

        confidence, word_count = self._mean_confidence(data)
        logger.debug(
            "Tesseract [%s] read %d words at confidence %.1f",
            tess_config,
            word_count,
            confidence,
        )
        return EngineOutput(text=text, confidence=confidence, word_count=word_count)

    def _apply(self, config: RecognitionConfig) -> None:
        self._segmentation_mode = int(config.segmentation_mode)
        self._overrides = dict(config.parameter_overrides)

    @staticmethod
    def _mean_confidence(data: dict) -> tuple[float, int]:
        total_conf = 0.0
        word_count = 0
        for raw_conf, word in zip(data.get("conf", []), data.get("text", [])):
            try:
                conf = float(raw_conf)
            except (TypeError, ValueError):
                continue
            if conf > 0 and str(word).strip():
                total_conf += conf
                word_count += 1
        if word_count == 0:
            return 0.0, 0
        return total_conf / word_count, word_count

    def __enter__(self) -> "TesseractEngine":
        self.initialize()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.terminate()
