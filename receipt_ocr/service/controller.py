"""End-to-end document processing with retries, timeouts and statistics.

The controller validates the input, decodes its pages once, then runs
recognition and parsing attempts until a record meets the quality bar or
the retry budget is spent. Every outcome, including failures, is returned
as a :class:`ProcessingResult`; errors never escape
:meth:`ProcessingController.process_document`.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import numpy as np
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from receipt_ocr.exceptions import (
    ProcessingTimeoutError,
    ReceiptOCRError,
    ValidationError,
)
from receipt_ocr.extraction.models import ExtractedRecord
from receipt_ocr.extraction.parser import ReceiptParser
from receipt_ocr.ocr.document_recognizer import DocumentRecognizer
from receipt_ocr.ocr.tesseract_engine import TesseractEngine
from receipt_ocr.preprocessing.variants import ResizeMode
from receipt_ocr.utils.config import AppConfig, ProcessingConfig
from receipt_ocr.utils.logger import get_logger
from receipt_ocr.validation.quality import QualityAssessor

from .models import (
    ALLOWED_MIME_TYPES,
    InputDocument,
    PerformanceReport,
    ProcessingOptions,
    ProcessingResult,
)

logger = get_logger(__name__)

BYTES_PER_MB = 1024 * 1024


@dataclass
class ProcessingStats:
    """Running statistics over completed documents."""

    documents_processed: int = 0
    successful: int = 0
    average_time_ms: float = 0.0
    average_quality: float = 0.0

    @property
    def success_rate(self) -> float:
        if not self.documents_processed:
            return 0.0
        return 100.0 * self.successful / self.documents_processed

    def record(self, result: ProcessingResult) -> None:
        self.documents_processed += 1
        if result.success:
            self.successful += 1
        n = self.documents_processed
        total_ms = result.performance.total_time_ms
        self.average_time_ms += (total_ms - self.average_time_ms) / n
        self.average_quality += (result.quality_score - self.average_quality) / n

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents_processed": self.documents_processed,
            "successful": self.successful,
            "success_rate": round(self.success_rate, 1),
            "average_time_ms": round(self.average_time_ms, 1),
            "average_quality": round(self.average_quality, 1),
        }


@dataclass
class _Attempts:
    """Best record and timings accumulated across attempts."""

    best: ExtractedRecord | None = None
    best_quality: float = 0.0
    used: int = 0
    ocr_time_ms: float = 0.0
    parsing_time_ms: float = 0.0
    last_error: str | None = None

    def offer(self, record: ExtractedRecord, quality: float) -> None:
        if self.best is None or quality > self.best_quality:
            self.best = record
            self.best_quality = quality


class ProcessingController:
    """Coordinates recognition, parsing and quality checks for documents.

    Args:
        recognizer: Document recognizer; its engine is initialized lazily.
        parser: Field extraction parser.
        assessor: Data-quality scorer and acceptance policy.
        config: Processing configuration (limits, backoff, thresholds).
    """

    def __init__(
        self,
        recognizer: DocumentRecognizer,
        parser: ReceiptParser,
        assessor: QualityAssessor,
        config: ProcessingConfig | None = None,
    ) -> None:
        self.recognizer = recognizer
        self.parser = parser
        self.assessor = assessor
        self.config = config or ProcessingConfig()
        self.stats = ProcessingStats()
        self._backoff = wait_exponential(
            multiplier=self.config.backoff_base_ms / 1000,
            max=self.config.backoff_cap_ms / 1000,
        )

    @property
    def engine(self) -> TesseractEngine:
        return self.recognizer.engine

    async def initialize(self) -> None:
        """Start the recognition engine if it is not running yet.

        Raises:
            InitializationError: If the engine cannot be started.
        """
        if not self.engine.is_initialized:
            await asyncio.to_thread(self.engine.initialize)

    async def terminate(self) -> None:
        """Release the recognition engine."""
        self.engine.terminate()

    async def __aenter__(self) -> "ProcessingController":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.terminate()

    async def health_check(self) -> dict[str, Any]:
        """Report whether the engine can be started, with current statistics."""
        try:
            await self.initialize()
        except ReceiptOCRError as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "details": {"error": str(exc)}}
        return {
            "status": "ok",
            "details": {
                "initialized": self.engine.is_initialized,
                "engine_version": self.engine.version,
                "stats": self.get_statistics(),
            },
        }

    def get_statistics(self) -> dict[str, Any]:
        """Return running statistics over processed documents."""
        return self.stats.to_dict()

    async def process_document(
        self,
        document: InputDocument,
        options: ProcessingOptions | dict[str, Any] | None = None,
    ) -> ProcessingResult:
        """Extract a structured record from a document.

        Args:
            document: The document to process.
            options: Per-call options; a plain dict is accepted and unknown
                keys are ignored. Defaults come from the configuration.

        Returns:
            The processing result. ``success`` is ``False`` when the input
            was rejected or no attempt produced an acceptable record; the
            best record obtained is still returned in ``data``.
        """
        start = time.perf_counter()
        try:
            result = await self._process(document, options, start)
        except Exception as exc:
            logger.exception("Unexpected failure processing %s", document.name)
            result = self._failure(f"Unexpected error: {exc}", start)

        self.stats.record(result)
        logger.info(
            "Processed %s: success=%s quality=%.1f attempts=%d time=%.0fms",
            document.name,
            result.success,
            result.quality_score,
            result.performance.attempts_used,
            result.performance.total_time_ms,
        )
        return result

    async def _process(
        self,
        document: InputDocument,
        options: ProcessingOptions | dict[str, Any] | None,
        start: float,
    ) -> ProcessingResult:
        try:
            resolved = self._resolve_options(options)
            self.validate(document)
        except ValidationError as exc:
            logger.warning("Rejected %s: %s", document.name, exc)
            return self._failure(str(exc), start)

        try:
            await self.initialize()
            pages = await asyncio.to_thread(self.recognizer.load_pages, document)
        except ReceiptOCRError as exc:
            logger.error("Cannot process %s: %s", document.name, exc)
            return self._failure(str(exc), start)

        attempts = await self._run_attempts(document, pages, resolved)
        performance = self._performance(attempts, start)
        if attempts.best is not None and attempts.last_error is None:
            return ProcessingResult(
                success=True,
                data=attempts.best,
                performance=performance,
                quality_score=attempts.best_quality,
            )

        error = (
            f"Processing failed after {attempts.used} attempt(s): "
            f"{attempts.last_error}"
        )
        return ProcessingResult(
            success=False,
            data=attempts.best or ExtractedRecord(),
            error=error,
            performance=performance,
            quality_score=attempts.best_quality,
        )

    async def _run_attempts(
        self,
        document: InputDocument,
        pages: list[np.ndarray],
        options: ProcessingOptions,
    ) -> _Attempts:
        attempts = _Attempts()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(options.max_retries + 1),
            retry=(
                retry_if_exception_type((ReceiptOCRError, TimeoutError))
                | retry_if_result(lambda accepted: not accepted)
            ),
            wait=self._retry_wait,
            sleep=self._pause,
            retry_error_callback=lambda state: False,
        )
        async for attempt in retrying:
            number = attempt.retry_state.attempt_number
            with attempt:
                accepted = await self._attempt(
                    document, pages, options, number, attempts
                )
            outcome = attempt.retry_state.outcome
            if outcome is not None and outcome.failed:
                attempts.last_error = str(outcome.exception())
                logger.warning("Attempt %d failed: %s", number, attempts.last_error)
            else:
                attempt.retry_state.set_result(accepted)
        return attempts

    async def _attempt(
        self,
        document: InputDocument,
        pages: list[np.ndarray],
        options: ProcessingOptions,
        number: int,
        attempts: _Attempts,
    ) -> bool:
        """Run one recognition and parsing pass.

        Returns:
            Whether the record met the acceptance criteria.

        Raises:
            ProcessingTimeoutError: If recognition exceeded the deadline.
            ReceiptOCRError: If recognition failed.
        """
        final = number == options.max_retries + 1
        mode = ResizeMode.STANDARD if number == 1 else ResizeMode.COMPACT
        attempts.used = number
        logger.info(
            "Attempt %d/%d for %s (%s profile)",
            number,
            options.max_retries + 1,
            document.name,
            mode,
        )

        ocr_start = time.perf_counter()
        try:
            recognition = await asyncio.wait_for(
                self.recognizer.recognize(pages, mode, options.enable_preprocessing),
                timeout=options.timeout_ms / 1000,
            )
        except TimeoutError as exc:
            raise ProcessingTimeoutError(
                f"Attempt {number} exceeded {options.timeout_ms} ms"
            ) from exc
        finally:
            attempts.ocr_time_ms += (time.perf_counter() - ocr_start) * 1000

        parse_start = time.perf_counter()
        record = self.parser.parse(
            recognition.text,
            source_name=document.name,
            processing_method=recognition.method,
            confidence=recognition.engine_confidence,
        )
        quality = self.assessor.assess(record)
        attempts.parsing_time_ms += (time.perf_counter() - parse_start) * 1000
        attempts.offer(record, quality)

        if self.assessor.is_acceptable(record, quality, final_attempt=final):
            attempts.best = record
            attempts.best_quality = quality
            attempts.last_error = None
            return True

        attempts.last_error = (
            f"data quality {quality:.1f} did not meet the acceptance criteria"
        )
        logger.info("Attempt %d rejected: %s", number, attempts.last_error)
        return False

    def _retry_wait(self, retry_state: RetryCallState) -> float:
        """Back off exponentially after errors; rejected records retry at once."""
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            return self._backoff(retry_state)
        return 0.0

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            logger.debug("Backing off %.2fs before the next attempt", seconds)
            await asyncio.sleep(seconds)

    def validate(self, document: InputDocument) -> None:
        """Check a document against the input limits.

        Raises:
            ValidationError: If the name is empty, the MIME type is not
                allowed, or the document is empty or too large.
        """
        if not document.name or not document.name.strip():
            raise ValidationError("Document name must not be empty")
        if document.mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(f"Unsupported file type: {document.mime_type}")
        if document.size == 0:
            raise ValidationError("Document is empty")
        limit = self.config.max_file_size_mb * BYTES_PER_MB
        if document.size > limit:
            raise ValidationError(
                f"File too large: {document.size} bytes "
                f"(max {self.config.max_file_size_mb} MB)"
            )

    def _resolve_options(
        self, options: ProcessingOptions | dict[str, Any] | None
    ) -> ProcessingOptions:
        if isinstance(options, ProcessingOptions):
            return options
        defaults = {
            "max_retries": self.config.max_retries,
            "timeout_ms": self.config.timeout_ms,
            "enable_preprocessing": self.config.enable_preprocessing,
        }
        try:
            return ProcessingOptions.model_validate({**defaults, **(options or {})})
        except ValueError as exc:
            raise ValidationError(f"Invalid processing options: {exc}") from exc

    @staticmethod
    def _performance(attempts: _Attempts, start: float) -> PerformanceReport:
        return PerformanceReport(
            total_time_ms=(time.perf_counter() - start) * 1000,
            ocr_time_ms=attempts.ocr_time_ms,
            parsing_time_ms=attempts.parsing_time_ms,
            attempts_used=attempts.used,
        )

    @staticmethod
    def _failure(error: str, start: float) -> ProcessingResult:
        return ProcessingResult(
            success=False,
            data=ExtractedRecord(),
            error=error,
            performance=PerformanceReport(
                total_time_ms=(time.perf_counter() - start) * 1000
            ),
        )


def build_controller(config: AppConfig | None = None) -> ProcessingController:
    """Wire a controller with a fresh engine from application configuration."""
    config = config or AppConfig()
    engine = TesseractEngine(config.ocr.tesseract_cmd, config.ocr.default_lang)
    recognizer = DocumentRecognizer(engine, config)
    return ProcessingController(
        recognizer,
        ReceiptParser(config.parsing),
        QualityAssessor(config.processing),
        config.processing,
    )
