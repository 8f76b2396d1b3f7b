"""Heuristic quality scoring for raw OCR text.

Combines the engine's own confidence with receipt-domain signals so that
the orchestrator can rank results coming from different variants and
configurations on one scale.
"""

import re

from receipt_ocr.utils.logger import get_logger

logger = get_logger(__name__)

MONEY_BONUS = 15
KEYWORD_BONUS = 3
LENGTH_BONUS = 5
NOISE_PENALTY_WEIGHT = 20
PLAUSIBLE_LENGTH = (50, 5000)

RECEIPT_KEYWORDS: tuple[str, ...] = (
    "total",
    "subtotal",
    "tax",
    "amount",
    "receipt",
    "invoice",
    "date",
    "time",
)

_MONEY_RE = re.compile(r"[$€£]\s?\d+[.,]\d{1,2}|\b\d+[.,]\d{2}\b")
_NOISE_RE = re.compile(r"[^A-Za-z0-9\s.,$€£:;()\-/#%&'\"@*+!?]")


def special_char_ratio(text: str) -> float:
    """Return the share of characters outside the allowed set."""
    if not text:
        return 0.0
    return len(_NOISE_RE.findall(text)) / len(text)


def score_result(text: str, engine_confidence: float | None) -> float:
    """Score a recognition result on a 0-100 scale.

    Starts from the engine confidence, adds bonuses for money-shaped
    tokens, receipt keywords and a plausible length, and subtracts a
    penalty proportional to the share of garbage characters.

    Args:
        text: Raw text returned by the engine.
        engine_confidence: Engine-reported mean confidence (0-100), or
            ``None`` when unavailable.

    Returns:
        Quality score clamped to [0, 100].
    """
    score = float(engine_confidence or 0.0)

    if _MONEY_RE.search(text):
        score += MONEY_BONUS

    lowered = text.lower()
    found = sum(1 for word in RECEIPT_KEYWORDS if word in lowered)
    score += found * KEYWORD_BONUS

    if PLAUSIBLE_LENGTH[0] <= len(text) <= PLAUSIBLE_LENGTH[1]:
        score += LENGTH_BONUS

    ratio = special_char_ratio(text)
    score -= round(NOISE_PENALTY_WEIGHT * ratio)

    final = max(0.0, min(100.0, score))
    logger.debug(
        "Scored %d chars: keywords=%d noise=%.2f -> %.1f",
        len(text),
        found,
        ratio,
        final,
    )
    return final
