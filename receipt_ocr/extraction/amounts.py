"""Money amount detection, scoring and field assignment.

Collects every currency-shaped token in the text, rates each one by the
keywords around it and its formatting, then assigns amounts to the
subtotal, tax and total fields by line context.
"""

import bisect
import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from receipt_ocr.utils.logger import get_logger

from .normalize import parse_amount

logger = get_logger(__name__)

_GROUPED = r"\d{1,3}(?:[.,]\d{3})+"
_GROUPED_DEC = rf"{_GROUPED}[.,]\d{{2}}"
_PLAIN_DEC = r"\d+[.,]\d{2}"
_NUMBER = rf"(?:{_GROUPED}(?:[.,]\d{{2}})?|\d+(?:[.,]\d{{2}})?)"
_DECIMAL = rf"(?:{_GROUPED_DEC}|{_PLAIN_DEC})"
_END = r"(?!\d)(?![.,]\d)"

# Ordered from most to least specific; overlapping matches keep the longest.
AMOUNT_PATTERNS: list[re.Pattern] = [
    re.compile(rf"(?<!\w)[$€£]\s?{_NUMBER}{_END}"),
    re.compile(rf"\b(?:USD|EUR|GBP)\s?{_NUMBER}{_END}", re.IGNORECASE),
    re.compile(rf"(?<![\d.,]){_DECIMAL}\s?(?:USD|EUR|GBP|[$€£])", re.IGNORECASE),
    re.compile(rf"(?<![\d.,]){_DECIMAL}{_END}"),
]

_CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP"}
_CURRENCY_CODE_RE = re.compile(r"\b(USD|EUR|GBP)\b", re.IGNORECASE)
_COMMA_DECIMAL_RE = re.compile(r"\d,\d{2}(?!\d)")
_DOT_DECIMAL_RE = re.compile(r"\d\.\d{2}(?!\d)")

_SUBTOTAL_RE = re.compile(r"sub\s*-?\s*total", re.IGNORECASE)
_TAX_RE = re.compile(r"\b(?:tax|vat|btw|gst|hst)\b", re.IGNORECASE)
_INCLUSIVE_RE = re.compile(r"\bincl", re.IGNORECASE)
_TOTAL_RE = re.compile(
    r"\btotal\b|\b(?:amount|balance)\s+due\b|\bto\s+pay\b", re.IGNORECASE
)

# (pattern, bonus) pairs applied to the text surrounding an amount.
_CONTEXT_BONUSES: list[tuple[re.Pattern, int]] = [
    (re.compile("total"), 25),
    (re.compile("subtotal"), 20),
    (re.compile("tax|vat|btw"), 20),
    (re.compile("amount"), 15),
    (re.compile("due"), 15),
]
_SYMBOL_FORMAT_RE = re.compile(r"^\$\d+\.\d{2}$")
_BARE_FORMAT_RE = re.compile(r"^\d+\.\d{2}$")
SUSPICIOUS_LIMIT = Decimal("5000")
MIN_FALLBACK_CONFIDENCE = 50.0


@dataclass(frozen=True)
class AmountCandidate:
    """A currency-shaped token found in the text."""

    value: Decimal
    source: str
    start: int
    end: int
    line_index: int
    confidence: float
    currency: str | None


def detect_currency(amount: str) -> str | None:
    """Infer the ISO currency code of an amount string.

    Symbols and codes win; otherwise a comma decimal separator means EUR
    and a dot decimal separator means USD.
    """
    for symbol, code in _CURRENCY_SYMBOLS.items():
        if symbol in amount:
            return code
    match = _CURRENCY_CODE_RE.search(amount)
    if match:
        return match.group(1).upper()
    if _COMMA_DECIMAL_RE.search(amount):
        return "EUR"
    if _DOT_DECIMAL_RE.search(amount):
        return "USD"
    return None


def amount_confidence(
    source: str, value: Decimal, text: str, position: int, radius: int = 50
) -> float:
    """Rate how likely a token is a meaningful receipt amount.

    Args:
        source: Token as found in the text.
        value: Parsed value of the token.
        text: Full text the token was found in.
        position: Start offset of the token in ``text``.
        radius: Characters of context considered on each side.

    Returns:
        Confidence in ``[0, 100]``.
    """
    context = text[max(0, position - radius) : position + radius].lower()
    confidence = 50
    for pattern, bonus in _CONTEXT_BONUSES:
        if pattern.search(context):
            confidence += bonus

    if _SYMBOL_FORMAT_RE.match(source):
        confidence += 20
    if _BARE_FORMAT_RE.match(source):
        confidence += 10

    if value < Decimal("0.01") or value > SUSPICIOUS_LIMIT:
        confidence -= 20
    if "000" in source:
        confidence -= 10
    return float(max(0, min(100, confidence)))


def find_amounts(
    lines: Sequence[str], radius: int = 50, max_amount: float = 10000.0
) -> list[AmountCandidate]:
    """Collect amount candidates from cleaned lines, in document order.

    Candidates are deduplicated by span, and values outside
    ``(0, max_amount)`` are dropped.
    """
    text = "\n".join(lines)
    line_starts: list[int] = []
    offset = 0
    for line in lines:
        line_starts.append(offset)
        offset += len(line) + 1

    spans: list[tuple[int, int]] = []
    for pattern in AMOUNT_PATTERNS:
        spans.extend(m.span() for m in pattern.finditer(text))
    spans.sort(key=lambda s: (s[0], -(s[1] - s[0])))

    limit = Decimal(str(max_amount))
    candidates: list[AmountCandidate] = []
    last_end = -1
    for start, end in spans:
        if start < last_end:
            continue
        last_end = end
        source = text[start:end].strip()
        value = parse_amount(source)
        if value is None or not Decimal("0") < value < limit:
            continue
        candidates.append(
            AmountCandidate(
                value=value,
                source=source,
                start=start,
                end=end,
                line_index=bisect.bisect_right(line_starts, start) - 1,
                confidence=amount_confidence(source, value, text, start, radius),
                currency=detect_currency(source),
            )
        )
    logger.debug("Found %d amount candidates", len(candidates))
    return candidates


def classify_amount_line(line: str) -> str | None:
    """Name the amount field a line's label refers to, if any."""
    if _SUBTOTAL_RE.search(line):
        return "subtotal"
    if _TAX_RE.search(line) and not _INCLUSIVE_RE.search(line):
        return "tax"
    if _TOTAL_RE.search(line):
        return "total"
    return None


def _best(candidates: list[AmountCandidate]) -> AmountCandidate:
    # Equal confidence goes to the right-most amount on the line.
    return max(candidates, key=lambda c: (c.confidence, c.start))


def assign_amounts(
    lines: Sequence[str],
    candidates: Sequence[AmountCandidate],
    taken: Sequence[str] = (),
) -> dict[str, AmountCandidate]:
    """Assign candidates to ``subtotal``, ``tax`` and ``total`` by context.

    A labelled line takes its own best amount; a label-only line takes the
    amounts on the following line when that line has no label itself.

    Args:
        lines: Cleaned text lines.
        candidates: Candidates from :func:`find_amounts`.
        taken: Fields that already hold a value and must not be assigned.

    Returns:
        Mapping of field name to the candidate chosen for it.
    """
    by_line: dict[int, list[AmountCandidate]] = {}
    for candidate in candidates:
        by_line.setdefault(candidate.line_index, []).append(candidate)

    assigned: dict[str, AmountCandidate] = {}
    for index, line in enumerate(lines):
        field_name = classify_amount_line(line)
        if field_name is None or field_name in taken or field_name in assigned:
            continue
        on_line = by_line.get(index)
        if not on_line:
            following = index + 1
            if following >= len(lines) or classify_amount_line(lines[following]):
                continue
            on_line = by_line.get(following)
        if on_line:
            assigned[field_name] = _best(on_line)
            logger.debug(
                "Assigned %s from context: %s", field_name, assigned[field_name].source
            )
    return assigned


def fallback_total(
    candidates: Sequence[AmountCandidate], used: Sequence[AmountCandidate] = ()
) -> AmountCandidate | None:
    """Pick the highest-confidence unassigned amount as the total.

    Only candidates above :data:`MIN_FALLBACK_CONFIDENCE` qualify; the
    first one seen wins ties.
    """
    best: AmountCandidate | None = None
    for candidate in candidates:
        if candidate in used or candidate.confidence <= MIN_FALLBACK_CONFIDENCE:
            continue
        if best is None or candidate.confidence > best.confidence:
            best = candidate
    return best
