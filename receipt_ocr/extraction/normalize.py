"""Text cleanup and value normalization for OCR'd receipt text.

Converts raw amount, date and time strings into canonical values and
repairs common OCR artifacts before field extraction.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation

from receipt_ocr.utils.logger import get_logger

from .models import to_money

logger = get_logger(__name__)

DATE_OUTPUT_FORMAT = "%m/%d/%Y"

# Month-name formats tried after the numeric parser gives up.
NAMED_DATE_FORMATS: list[str] = [
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%d %b, %Y",
    "%d-%b-%Y",
    "%d-%b-%y",
]

_SPACES_RE = re.compile(r"\s+")
_PIPES_RE = re.compile(r"[|\\]")
_DOUBLE_QUOTES_RE = re.compile(r"[“”„«»]")
_SINGLE_QUOTES_RE = re.compile(r"[‘’‚′`]")
_SPACED_DECIMAL_RE = re.compile(
    r"(\d)\s*([,.])\s*(\d{2})(?=\s*(?:[$€£]|USD|EUR|GBP)?$)", re.IGNORECASE
)
_SPACED_CURRENCY_RE = re.compile(r"([$€£])\s+(?=\d)")
_CURRENCY_STRIP_RE = re.compile(r"[$€£\s]|USD|EUR|GBP", re.IGNORECASE)
_US_THOUSANDS_RE = re.compile(r"^\d{1,3}(?:,\d{3})+$")
_EU_THOUSANDS_RE = re.compile(r"^\d{1,3}(?:\.\d{3})+$")
_NUMERIC_DATE_RE = re.compile(r"^(\d{1,4})[/\-.](\d{1,2})[/\-.](\d{1,4})$")
_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([AaPp]\.?[Mm]\.?)?")


def clean_line(line: str) -> str:
    """Repair common OCR artifacts in a single line.

    Collapses whitespace, turns pipes and backslashes into spaces,
    normalizes curly quotes, closes gaps around the decimal separator of
    the amount ending a line (``TOTAL 12 .50`` -> ``TOTAL 12.50``) and
    after currency symbols (``$ 5`` -> ``$5``). Comma-separated numbers
    inside a line, as in addresses, are left alone.
    """
    cleaned = _PIPES_RE.sub(" ", line)
    cleaned = _SPACES_RE.sub(" ", cleaned).strip()
    cleaned = _DOUBLE_QUOTES_RE.sub('"', cleaned)
    cleaned = _SINGLE_QUOTES_RE.sub("'", cleaned)
    cleaned = _SPACED_DECIMAL_RE.sub(r"\1\2\3", cleaned)
    cleaned = _SPACED_CURRENCY_RE.sub(r"\1", cleaned)
    return cleaned


def clean_lines(text: str) -> list[str]:
    """Split text into cleaned, non-empty lines."""
    lines = (clean_line(raw) for raw in text.splitlines())
    return [line for line in lines if line]


def parse_amount(amount: str) -> Decimal | None:
    """Parse a money string in US or European notation.

    The right-most separator followed by exactly two digits is the decimal
    point; grouping separators are dropped.

    Examples:
        ``"$64.00"`` -> 64.00, ``"64,00"`` -> 64.00,
        ``"1.234,56"`` -> 1234.56, ``"1,234.56"`` -> 1234.56.

    Returns:
        Amount rounded to cents, or ``None`` if the string holds no number.
    """
    if not amount:
        return None
    cleaned = _CURRENCY_STRIP_RE.sub("", amount).strip().rstrip(".,")

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        if _US_THOUSANDS_RE.match(cleaned):
            cleaned = cleaned.replace(",", "")
        else:
            head, _, tail = cleaned.rpartition(",")
            cleaned = head.replace(",", "") + "." + tail
    elif cleaned.count(".") > 1:
        if _EU_THOUSANDS_RE.match(cleaned):
            cleaned = cleaned.replace(".", "")
        else:
            head, _, tail = cleaned.rpartition(".")
            cleaned = head.replace(".", "") + "." + tail

    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return to_money(value)


def _four_digit_year(year: int) -> int:
    if year >= 100:
        return year
    return year + (2000 if year < 50 else 1900)


def _format_date(year: int, month: int, day: int) -> str | None:
    if not 1900 <= year <= 2100:
        return None
    try:
        return datetime(year, month, day).strftime(DATE_OUTPUT_FORMAT)
    except ValueError:
        return None


def normalize_date(date_str: str) -> str | None:
    """Normalize a date string to ``MM/DD/YYYY``.

    Numeric dates are read month-first unless the first part cannot be a
    month (``25/12/2024`` -> ``12/25/2024``); a four-digit first part is
    read as year-month-day. Two-digit years pivot at 50. Month-name dates
    such as ``Jan 15, 2024`` are also accepted.

    Returns:
        The canonical date, or ``None`` if the input is not a real date.
    """
    text = date_str.strip()
    match = _NUMERIC_DATE_RE.match(text)
    if match:
        first, second, third = (int(p) for p in match.groups())
        if len(match.group(1)) == 4:
            return _format_date(first, second, third)

        year = _four_digit_year(third)
        if 1 <= first <= 12 and second <= 31:
            return _format_date(year, first, second)
        if 1 <= second <= 12 and first <= 31:
            return _format_date(year, second, first)
        return None

    cleaned = _SPACES_RE.sub(" ", text.replace(".", ""))
    for fmt in NAMED_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).strftime(DATE_OUTPUT_FORMAT)
        except ValueError:
            continue
    logger.debug("Could not normalize date %r", date_str)
    return None


def is_valid_date(date_str: str) -> bool:
    """Check that a string is a canonical ``MM/DD/YYYY`` date."""
    try:
        datetime.strptime(date_str, DATE_OUTPUT_FORMAT)
    except ValueError:
        return False
    return True


def normalize_time(time_str: str) -> str | None:
    """Normalize a time string to 12-hour ``H:MM AM/PM``.

    Returns:
        The canonical time, or ``None`` for out-of-range values.
    """
    match = _TIME_RE.search(time_str)
    if not match:
        return None

    hour = int(match.group(1))
    minute = match.group(2)
    marker = match.group(4)
    if int(minute) > 59:
        return None

    if marker:
        if not 1 <= hour <= 12:
            return None
        suffix = "AM" if marker[0].lower() == "a" else "PM"
        return f"{hour}:{minute} {suffix}"

    if hour > 23:
        return None
    suffix = "PM" if hour >= 12 else "AM"
    display = hour % 12 or 12
    return f"{display}:{minute} {suffix}"
