"""Brute-force recognition over the variant x configuration grid.

Rather than predicting which rendering and segmentation mode suit a
receipt, every pair in a small fixed grid is tried and the quality
scorer picks the winner.
"""

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from receipt_ocr.exceptions import NoUsableResultError
from receipt_ocr.preprocessing.variants import ImageVariant
from receipt_ocr.utils.logger import get_logger

from .configurations import RecognitionConfig
from .scoring import score_result
from .tesseract_engine import TesseractEngine

logger = get_logger(__name__)

Scorer = Callable[[str, float | None], float]


@dataclass
class RecognitionResult:
    """The outcome of one variant + configuration attempt."""

    text: str
    engine_confidence: float
    quality_score: float
    method: str
    processing_time_ms: float


class RecognitionOrchestrator:
    """Runs every variant through every configuration and keeps the best.

    Attempts run strictly one after another against the shared engine;
    each engine call is moved to a worker thread so the event loop stays
    responsive and the caller's timeout can fire.

    Args:
        engine: Initialized recognition engine.
        scorer: Function mapping ``(text, engine_confidence)`` to a 0-100
            quality score.
    """

    def __init__(self, engine: TesseractEngine, scorer: Scorer = score_result) -> None:
        self.engine = engine
        self.scorer = scorer

    async def run(
        self,
        variants: Sequence[ImageVariant],
        configs: Sequence[RecognitionConfig],
    ) -> RecognitionResult:
        """Try all ``variants x configs`` pairs and return the best result.

        Ties keep the earliest attempt. Failed attempts are logged and
        skipped.

        Raises:
            NoUsableResultError: If no attempt produced a result.
        """
        total = len(variants) * len(configs)
        logger.info(
            "Starting grid OCR: %d variants x %d configs = %d attempts",
            len(variants),
            len(configs),
            total,
        )

        best: RecognitionResult | None = None
        failures = 0
        attempt = 0

        for variant in variants:
            for config in configs:
                attempt += 1
                method = f"{variant.name}+{config.name}"
                result = await self._attempt(variant, config, method)
                if result is None:
                    failures += 1
                    continue

                logger.debug(
                    "Attempt %d/%d %s: quality %.1f, %d chars, %.0fms",
                    attempt,
                    total,
                    method,
                    result.quality_score,
                    len(result.text),
                    result.processing_time_ms,
                )
                if best is None or result.quality_score > best.quality_score:
                    best = result

        if best is None:
            raise NoUsableResultError(
                f"No usable recognition result: all {total} attempts failed"
            )

        logger.info(
            "Best method %s with quality %.1f (%d chars, %d failed attempts)",
            best.method,
            best.quality_score,
            len(best.text),
            failures,
        )
        return best

    async def _attempt(
        self, variant: ImageVariant, config: RecognitionConfig, method: str
    ) -> RecognitionResult | None:
        start = time.perf_counter()
        try:
            output = await asyncio.to_thread(
                self.engine.recognize, variant.pixels, config
            )
        except Exception as exc:
            elapsed = (time.perf_counter() - start) * 1000
            logger.warning("Attempt %s failed after %.0fms: %s", method, elapsed, exc)
            return None

        elapsed = (time.perf_counter() - start) * 1000
        return RecognitionResult(
            text=output.text,
            engine_confidence=output.confidence,
            quality_score=self.scorer(output.text, output.confidence),
            method=method,
            processing_time_ms=elapsed,
        )
