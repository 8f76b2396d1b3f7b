"""Ordered regex rule tables for direct field extraction.

Each field has a list of :class:`FieldRule` entries tried in priority
order; within a rule, lines are scanned in document order. The first rule
whose extractor produces a value wins.
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .normalize import normalize_date, normalize_time

Extractor = Callable[[re.Match], str | None]

_MONTHS = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?"
DATE_TOKEN = (
    r"(?<!\d)(\d{1,4}[/\-.]\d{1,2}[/\-.]\d{1,4}"
    rf"|\d{{1,2}}[\s\-]{_MONTHS}[\s,\-]+\d{{2,4}}"
    rf"|{_MONTHS}\s+\d{{1,2}},?\s+\d{{4}})(?!\d)"
)
TIME_TOKEN = r"(?<![\d:])(\d{1,2}:\d{2}(?::\d{2})?(?:\s*[ap]\.?m\.?)?)(?![\d:])"
_STRUCTURED_CODE_RE = re.compile(r"[\-.]|\d{3}")


@dataclass(frozen=True)
class FieldRule:
    """A single extraction rule for one field.

    Attributes:
        field: Name of the record field the rule fills.
        pattern: Compiled pattern searched in each line.
        extractor: Turns a match into a field value, or rejects it with
            ``None``.
        exclusion: Lines matching this pattern are skipped.
    """

    field: str
    pattern: re.Pattern
    extractor: Extractor
    exclusion: re.Pattern | None = None

    def apply(self, line: str) -> str | None:
        """Return the value this rule extracts from a line, if any."""
        if self.exclusion is not None and self.exclusion.search(line):
            return None
        match = self.pattern.search(line)
        if not match:
            return None
        return self.extractor(match)


def _compile(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE)


def _identifier(
    min_length: int = 3, need_letter: bool = False, structured: bool = False
) -> Extractor:
    """Build an extractor for codes that must contain a digit.

    With ``structured``, the code must also contain a separator or a run of
    three digits, so words such as ``7ELEVEN`` are not taken for codes.
    """

    def extract(match: re.Match) -> str | None:
        value = match.group(1).strip().strip(".-")
        if len(value) < min_length or not any(c.isdigit() for c in value):
            return None
        if need_letter and not any(c.isalpha() for c in value):
            return None
        if structured and not _STRUCTURED_CODE_RE.search(value):
            return None
        return value

    return extract


def _date(match: re.Match) -> str | None:
    return normalize_date(match.group(1))


def _time(match: re.Match) -> str | None:
    return normalize_time(match.group(1))


def _masked_card(match: re.Match) -> str | None:
    value = re.sub(r"\s+", "", match.group(1))
    if sum(c.isdigit() for c in value) < 4:
        return None
    return value


def _payment_method(match: re.Match) -> str | None:
    return " ".join(match.group(1).upper().split())


_DUE = _compile(r"\bdue\b")
_CONTACT = _compile(r"\b(?:tel|phone|fax|mobile)\b")

INVOICE_NUMBER_RULES: list[FieldRule] = [
    FieldRule(
        "invoice_number",
        _compile(
            r"\b(?:invoice|inv|bill|receipt|ticket)\b[\s#]*"
            r"(?:no\.?|number|num\.?)?\s*[:#]?\s*([a-z0-9][a-z0-9\-.]*)"
        ),
        _identifier(),
    ),
    FieldRule(
        "invoice_number",
        _compile(r"(?:^|\s)(?:no\.?|#|num\.?)\s*:?\s*([a-z0-9][a-z0-9\-.]{2,})"),
        _identifier(),
        exclusion=_CONTACT,
    ),
    FieldRule(
        "invoice_number",
        re.compile(r"^([A-Za-z0-9][A-Za-z0-9\-.]{3,})$"),
        _identifier(min_length=4, need_letter=True, structured=True),
    ),
]

DUE_DATE_RULES: list[FieldRule] = [
    FieldRule(
        "due_date",
        _compile(
            r"\b(?:due\s*date|payment\s*due|due\s*by|due\s*on)\b\s*:?\s*"
            + DATE_TOKEN
        ),
        _date,
    ),
]

DATE_RULES: list[FieldRule] = [
    FieldRule(
        "date",
        _compile(rf"\b(?:date|datum|fecha)\b\s*:?\s*{DATE_TOKEN}"),
        _date,
        exclusion=_DUE,
    ),
    FieldRule(
        "date",
        _compile(rf"\b(?:issued|printed|created)\b.*?{DATE_TOKEN}"),
        _date,
        exclusion=_DUE,
    ),
    FieldRule("date", _compile(DATE_TOKEN), _date, exclusion=_DUE),
]

TIME_RULES: list[FieldRule] = [
    FieldRule("time", _compile(rf"\b(?:time|tijd|hora)\b\s*:?\s*{TIME_TOKEN}"), _time),
    FieldRule("time", _compile(TIME_TOKEN), _time),
]

BUSINESS_RULES: list[FieldRule] = [
    FieldRule(
        "transaction_id",
        _compile(
            r"\b(?:transaction|trans|txn|ref(?:erence)?)\b\.?\s*"
            r"(?:id|no\.?|number|#)?\s*[:#]?\s*([a-z0-9\-]{6,})"
        ),
        _identifier(min_length=6),
    ),
    FieldRule(
        "authorization_code",
        _compile(
            r"\b(?:auth(?:orization)?|approval|appr)\b\.?\s*"
            r"(?:code|no\.?|#)?\s*[:#]?\s*([a-z0-9]{4,})"
        ),
        _identifier(min_length=4),
    ),
    FieldRule(
        "terminal_id",
        _compile(
            r"\b(?:terminal|term|tid)\b\.?\s*(?:id|no\.?|#)?\s*[:#]?\s*"
            r"([a-z0-9\-]{3,})"
        ),
        _identifier(),
    ),
    FieldRule(
        "merchant_id",
        _compile(r"\b(?:merchant\s*(?:id\b|no\.?|#)|mid\b)\s*[:#]?\s*([a-z0-9\-]{3,})"),
        _identifier(),
    ),
    FieldRule(
        "card_number",
        _compile(r"((?:[x*•#]{2,}[\s\-]?){1,4}\d{4})(?!\d)"),
        _masked_card,
    ),
    FieldRule(
        "card_number",
        _compile(r"\b(?:card|kaart|acct|account)\b\D*?([x*\d]{4,})(?!\d)"),
        _masked_card,
    ),
    FieldRule(
        "payment_method",
        _compile(
            r"\b(?:card\s*type|payment\s*method|paid\s*by|tender)\b\s*:?\s*"
            r"([a-z]{2,}(?:\s(?:card|pay|express))?)"
        ),
        _payment_method,
    ),
    FieldRule(
        "payment_method",
        _compile(
            r"\b(visa|master\s?card|amex|american\s+express|discover|maestro"
            r"|debit|credit|cash|apple\s+pay|google\s+pay|contactless)\b"
        ),
        _payment_method,
    ),
]

DIRECT_RULES: dict[str, list[FieldRule]] = {
    "invoice_number": INVOICE_NUMBER_RULES,
    "due_date": DUE_DATE_RULES,
    "date": DATE_RULES,
    "time": TIME_RULES,
}


def first_match(
    rules: Sequence[FieldRule], lines: Sequence[str]
) -> tuple[str, int] | None:
    """Apply rules in priority order over lines in document order.

    Returns:
        ``(value, line_index)`` of the first successful extraction, or
        ``None`` if no rule matched any line.
    """
    for rule in rules:
        for index, line in enumerate(lines):
            value = rule.apply(line)
            if value:
                return value, index
    return None
