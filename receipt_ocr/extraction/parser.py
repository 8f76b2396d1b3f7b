"""Multi-strategy field extraction from raw OCR text.

Runs direct patterns, contextual heuristics, fuzzy label matching,
amount resolution, line-item detection, business-data rules and overflow
collection in a fixed order. Each strategy only fills fields that are
still unset, so earlier strategies take precedence.
"""

import re
import time
from dataclasses import dataclass, field
from decimal import Decimal

from receipt_ocr.utils.config import ParsingConfig
from receipt_ocr.utils.logger import get_logger

from .amounts import (
    AmountCandidate,
    assign_amounts,
    detect_currency,
    fallback_total,
    find_amounts,
)
from .fuzzy import match_keyword, split_label
from .models import ExtractedRecord, LineItem, to_money
from .normalize import clean_lines, is_valid_date, parse_amount
from .rules import BUSINESS_RULES, DIRECT_RULES, first_match

logger = get_logger(__name__)

_VENDOR_LABEL_RE = re.compile(
    r"^(?:vendor|supplier|from|merchant|store|seller|shop|business)\b\s*[:\-]?\s*(.+)",
    re.IGNORECASE,
)
_VENDOR_SKIP_RE = re.compile(
    r"^(?:invoice|bill|receipt|tax|date|datum|check|server|item|total|subtotal"
    r"|tel|phone|fax|www|http|\d)",
    re.IGNORECASE,
)
_VENDOR_NOISE_RE = re.compile(r"[^\w\s\-.'&]")
_STREET_RE = re.compile(
    r"\d+.*\b(?:street|st|ave|avenue|road|rd|blvd|boulevard|lane|ln|way|drive|dr"
    r"|straat|weg|laan)\b",
    re.IGNORECASE,
)
_POSTAL_RE = re.compile(
    r"\b\d{5}(?:-\d{4})?\b|\b[A-Z]{2}\s+\d{5}\b|\b\d{4}\s?[A-Z]{2}\b"
)
_PHONE_RE = re.compile(
    r"(?<![\w])(?:\+?\d{1,2}[\s.\-])?\(?\d{3}\)?[\s.\-]?\d{3}[\s.\-]?\d{4}(?!\d)"
)
_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}")
_ITEM_RE = re.compile(
    r"^(?:(?P<qty>\d{1,3})\s*[xX@]\s+)?(?P<desc>.+?)[\s.]+"
    r"[$€£]?(?P<amount>\d{1,3}(?:,\d{3})*[.,]\d{2})\s*$"
)
_ITEM_KEYWORD_RE = re.compile(
    r"total|subtotal|tax|amount|vat|btw|balance|change|cash|due|tender",
    re.IGNORECASE,
)
_OVERFLOW_SKIP_RE = re.compile(
    r"^(?:total|subtotal|tax|date|time|amount|vendor|invoice|receipt|check|server"
    r"|item|description|price|\d+\s*$)",
    re.IGNORECASE,
)
_FUZZY_FIELD_ALIASES = {"amount": "total"}


@dataclass
class _ParseState:
    """Mutable bookkeeping for a single parse call."""

    lines: list[str]
    consumed: set[int] = field(default_factory=set)
    sources: dict[str, str] = field(default_factory=dict)


class ReceiptParser:
    """Extracts structured receipt fields from raw OCR text.

    Args:
        config: Parsing configuration; defaults are used when omitted.
    """

    def __init__(self, config: ParsingConfig | None = None) -> None:
        self.config = config or ParsingConfig()

    def parse(
        self,
        raw_text: str,
        source_name: str = "document",
        processing_method: str | None = None,
        confidence: float | None = None,
    ) -> ExtractedRecord:
        """Parse raw OCR text into an :class:`ExtractedRecord`.

        Args:
            raw_text: Text returned by the recognition engine.
            source_name: Document name, used for logging only.
            processing_method: Recognition method label stored on the record.
            confidence: Engine confidence stored on the record.

        Returns:
            The extracted record. Missing fields stay ``None``.
        """
        start = time.perf_counter()
        record = ExtractedRecord(
            raw_text=raw_text,
            processing_method=processing_method,
            confidence=confidence,
        )
        state = _ParseState(lines=clean_lines(raw_text))

        if state.lines:
            self._extract_direct(record, state)
            self._extract_contextual(record, state, raw_text)
            self._extract_fuzzy(record, state)
            self._resolve_amounts(record, state)
            self._extract_items(record, state)
            self._extract_business_data(record, state)
            self._collect_overflow(record, state)
        self._post_process(record)

        record.processing_time_ms = (time.perf_counter() - start) * 1000
        filled = sum(
            1
            for name in ("invoice_number", "date", "time", "vendor", "total")
            if record.is_set(name)
        )
        logger.info(
            "Parsed %s: %d lines, %d/5 key fields, %d items",
            source_name,
            len(state.lines),
            filled,
            len(record.items),
        )
        return record

    def _extract_direct(self, record: ExtractedRecord, state: _ParseState) -> None:
        for field_name, rules in DIRECT_RULES.items():
            if record.is_set(field_name):
                continue
            found = first_match(rules, state.lines)
            if found:
                value, index = found
                setattr(record, field_name, value)
                state.consumed.add(index)
                logger.debug("Direct match %s=%s", field_name, value)

    def _extract_contextual(
        self, record: ExtractedRecord, state: _ParseState, raw_text: str
    ) -> None:
        lines = state.lines
        if record.vendor is None:
            found = self._find_vendor(lines)
            if found:
                record.vendor, index = found
                state.consumed.add(index)

        if record.vendor_address is None:
            found_address = self._find_address(lines)
            if found_address:
                record.vendor_address, indices = found_address
                state.consumed.update(indices)

        if record.vendor_phone is None:
            match = _PHONE_RE.search(raw_text)
            if match:
                record.vendor_phone = " ".join(match.group(0).split())
                state.consumed.update(_lines_containing(lines, record.vendor_phone))

        if record.vendor_email is None:
            match = _EMAIL_RE.search(raw_text)
            if match:
                record.vendor_email = match.group(0)
                state.consumed.update(_lines_containing(lines, record.vendor_email))

    def _find_vendor(self, lines: list[str]) -> tuple[str, int] | None:
        for index, line in enumerate(lines):
            match = _VENDOR_LABEL_RE.match(line)
            if match and _has_letters(match.group(1)) and len(match.group(1)) > 2:
                return match.group(1).strip(), index

        for index, line in enumerate(lines[: self.config.vendor_search_lines]):
            if _VENDOR_SKIP_RE.match(line) or not 3 < len(line) < 50:
                continue
            if _EMAIL_RE.search(line) or _PHONE_RE.search(line):
                continue
            if _looks_like_business_name(line):
                return line, index
        return None

    @staticmethod
    def _find_address(lines: list[str]) -> tuple[str, list[int]] | None:
        for index in range(len(lines) - 1):
            first, second = lines[index], lines[index + 1]
            if _STREET_RE.search(first) and _POSTAL_RE.search(second):
                return f"{first}, {second}", [index, index + 1]

        for index, line in enumerate(lines):
            if _STREET_RE.search(line) and _POSTAL_RE.search(line):
                return line, [index]
        return None

    def _extract_fuzzy(self, record: ExtractedRecord, state: _ParseState) -> None:
        threshold = self.config.fuzzy_match_threshold
        for index, line in enumerate(state.lines):
            split = split_label(line)
            if split is None:
                continue
            label, token = split
            matched = match_keyword(
                label, ("subtotal", "tax", "total", "amount"), threshold
            )
            if matched is None:
                continue
            field_name = _FUZZY_FIELD_ALIASES.get(matched[0], matched[0])
            if record.is_set(field_name):
                continue
            value = parse_amount(token)
            if value is None or not Decimal("0") < value < self._max_amount:
                continue
            setattr(record, field_name, value)
            state.sources[field_name] = token
            state.consumed.add(index)
            logger.debug(
                "Fuzzy match %r -> %s=%s (%.2f)", label, field_name, value, matched[1]
            )

    @property
    def _max_amount(self) -> Decimal:
        return Decimal(str(self.config.max_amount))

    def _resolve_amounts(self, record: ExtractedRecord, state: _ParseState) -> None:
        candidates = find_amounts(
            state.lines, self.config.context_radius, self.config.max_amount
        )
        taken = [n for n in ("subtotal", "tax", "total") if record.is_set(n)]
        assigned = assign_amounts(state.lines, candidates, taken)
        for field_name, candidate in assigned.items():
            setattr(record, field_name, candidate.value)
            state.sources[field_name] = candidate.source
            state.consumed.add(candidate.line_index)

        if record.total is None:
            fallback = fallback_total(candidates, list(assigned.values()))
            if fallback is not None:
                record.total = fallback.value
                state.sources["total"] = fallback.source
                logger.debug(
                    "Total %s taken from best-scoring amount (%.0f)",
                    fallback.source,
                    fallback.confidence,
                )

        record.currency = self._detect_record_currency(state, candidates)

    @staticmethod
    def _detect_record_currency(
        state: _ParseState, candidates: list[AmountCandidate]
    ) -> str | None:
        for field_name in ("total", "subtotal", "tax"):
            source = state.sources.get(field_name)
            if source and detect_currency(source):
                return detect_currency(source)
        for candidate in candidates:
            if candidate.currency:
                return candidate.currency
        return None

    def _extract_items(self, record: ExtractedRecord, state: _ParseState) -> None:
        cap = Decimal(str(self.config.item_price_cap))
        for index, line in enumerate(state.lines):
            if index in state.consumed:
                continue
            match = _ITEM_RE.match(line)
            if not match:
                continue
            description = match.group("desc").strip(" .:-")
            if len(description) < 5 or not _has_letters(description):
                continue
            if _ITEM_KEYWORD_RE.search(description):
                continue
            amount = parse_amount(match.group("amount"))
            if amount is None or not Decimal("0") < amount < cap:
                continue

            quantity = Decimal(match.group("qty") or "1")
            if quantity <= 0:
                continue
            record.items.append(
                LineItem(
                    description=description,
                    amount=amount,
                    quantity=quantity,
                    unit_price=to_money(amount / quantity),
                )
            )
            state.consumed.add(index)

    def _extract_business_data(
        self, record: ExtractedRecord, state: _ParseState
    ) -> None:
        by_field: dict[str, list] = {}
        for rule in BUSINESS_RULES:
            by_field.setdefault(rule.field, []).append(rule)

        for field_name, rules in by_field.items():
            if record.is_set(field_name):
                continue
            found = first_match(rules, state.lines)
            if found:
                value, index = found
                setattr(record, field_name, value)
                state.consumed.add(index)

    def _collect_overflow(self, record: ExtractedRecord, state: _ParseState) -> None:
        for index, line in enumerate(state.lines):
            if len(record.extra_fields) >= self.config.extra_field_slots:
                break
            if index in state.consumed or not 3 < len(line) < 100:
                continue
            if _OVERFLOW_SKIP_RE.match(line) or line in record.extra_fields:
                continue
            record.extra_fields.append(line)

    def _post_process(self, record: ExtractedRecord) -> None:
        if (
            record.total is not None
            and record.subtotal is not None
            and record.tax is not None
            and record.total > 0
        ):
            expected = record.subtotal + record.tax
            difference = abs(record.total - expected) / record.total
            if difference > Decimal(str(self.config.totals_tolerance)):
                message = (
                    f"Total {record.total} does not match subtotal "
                    f"{record.subtotal} + tax {record.tax}"
                )
                logger.warning("Totals check failed: %s", message)
                record.warnings.append(message)

        if record.vendor is not None:
            vendor = _VENDOR_NOISE_RE.sub("", record.vendor).strip()
            record.vendor = vendor if len(vendor) >= 2 else None

        for name in ("date", "due_date"):
            value = getattr(record, name)
            if value is not None and not is_valid_date(value):
                logger.warning("Discarding invalid %s: %s", name, value)
                setattr(record, name, None)


def _has_letters(text: str) -> bool:
    return any(c.isalpha() for c in text)


def _looks_like_business_name(line: str) -> bool:
    """Check for a line that starts with a letter and is mostly letters."""
    if not line[0].isalpha():
        return False
    visible = [c for c in line if not c.isspace()]
    letters = sum(c.isalpha() for c in visible)
    return letters * 2 >= len(visible)


def _lines_containing(lines: list[str], value: str) -> list[int]:
    return [i for i, line in enumerate(lines) if value in line]
