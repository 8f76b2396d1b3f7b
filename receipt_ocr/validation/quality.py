"""Data-quality scoring and acceptance policy for extracted records.

Scores a record by which key fields were found, how confident the engine
was, and whether the amounts agree with each other. Only fields that were
found count toward the maximum, on top of a fixed base potential.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from receipt_ocr.extraction.models import ExtractedRecord
from receipt_ocr.utils.config import ProcessingConfig
from receipt_ocr.utils.logger import get_logger

logger = get_logger(__name__)

# Points awarded when a field is present; they sum to 100.
PRESENCE_WEIGHTS: dict[str, float] = {
    "total": 25,
    "vendor": 20,
    "date": 15,
    "subtotal": 10,
    "tax": 10,
    "raw_text": 10,
    "invoice_number": 5,
    "time": 5,
}
# Fixed potential added to every denominator, present fields or not.
BASE_POTENTIAL = 50.0
RICH_TEXT_LENGTH = 100
CONFIDENCE_FLOOR = 70.0
CONFIDENCE_BONUS_CAP = 15.0
CONSISTENCY_POINTS = 10.0
CONSISTENCY_TOLERANCE = Decimal("0.05")


@dataclass
class QualityCheck:
    """Outcome of one scoring check."""

    name: str
    passed: bool
    points: float
    possible: float


@dataclass
class QualityReport:
    """Aggregated data-quality assessment of a record."""

    score: float
    checks: list[QualityCheck] = field(default_factory=list)

    @property
    def failed(self) -> list[str]:
        return [c.name for c in self.checks if not c.passed]


class QualityAssessor:
    """Scores extracted records and decides whether to accept them.

    Args:
        config: Processing configuration holding the acceptance thresholds.
    """

    def __init__(self, config: ProcessingConfig | None = None) -> None:
        self.config = config or ProcessingConfig()

    def assess(self, record: ExtractedRecord) -> float:
        """Compute the data-quality score of a record.

        Returns:
            Score normalized to ``[0, 100]``.
        """
        return self.report(record).score

    def report(self, record: ExtractedRecord) -> QualityReport:
        """Run every scoring check and return the detailed breakdown."""
        checks = [self._presence_check(record, name) for name in PRESENCE_WEIGHTS]
        checks.append(self._confidence_check(record))
        consistency = self._consistency_check(record)
        if consistency is not None:
            checks.append(consistency)

        earned = sum(c.points for c in checks)
        possible = BASE_POTENTIAL + sum(c.possible for c in checks)
        score = 100.0 * earned / possible if possible else 0.0
        score = max(0.0, min(100.0, score))
        logger.debug("Quality %.1f (%.1f/%.1f points)", score, earned, possible)
        return QualityReport(score=score, checks=checks)

    def is_acceptable(
        self, record: ExtractedRecord, score: float, final_attempt: bool = False
    ) -> bool:
        """Decide whether a record is good enough to stop retrying.

        Args:
            record: The extracted record.
            score: Its data-quality score.
            final_attempt: Whether no further attempts remain, which lowers
                the quality bar.
        """
        threshold = (
            self.config.final_min_quality if final_attempt else self.config.min_quality
        )
        has_anchor = record.total is not None or record.vendor is not None
        has_text = len(record.raw_text) > self.config.min_text_length
        return score >= threshold and has_anchor and has_text

    @staticmethod
    def _presence_check(record: ExtractedRecord, name: str) -> QualityCheck:
        weight = PRESENCE_WEIGHTS[name]
        if name == "raw_text":
            present = len(record.raw_text) > RICH_TEXT_LENGTH
        else:
            present = record.is_set(name)
        if not present:
            return QualityCheck(name, False, 0.0, 0.0)
        return QualityCheck(name, True, weight, weight)

    @staticmethod
    def _confidence_check(record: ExtractedRecord) -> QualityCheck:
        confidence = record.confidence or 0.0
        bonus = 0.0
        if confidence > CONFIDENCE_FLOOR:
            bonus = min(CONFIDENCE_BONUS_CAP, (confidence - CONFIDENCE_FLOOR) * 0.5)
        return QualityCheck("confidence", bonus > 0, bonus, CONFIDENCE_BONUS_CAP)

    @staticmethod
    def _consistency_check(record: ExtractedRecord) -> QualityCheck | None:
        """Check that subtotal plus tax matches the total.

        Only applies when all three amounts are present.
        """
        if record.total is None or record.subtotal is None or record.tax is None:
            return None
        expected = record.subtotal + record.tax
        if record.total > 0:
            deviation = abs(record.total - expected) / record.total
            passed = deviation <= CONSISTENCY_TOLERANCE
        else:
            passed = expected == 0
        return QualityCheck(
            "consistency",
            passed,
            CONSISTENCY_POINTS if passed else 0.0,
            CONSISTENCY_POINTS,
        )
