"""Fuzzy keyword matching for OCR-corrupted labels.

Receipt labels often come back from the engine with character
substitutions (``T0TAL``, ``sublotal``). Labels are compared to known
keyword variants with normalized Levenshtein similarity.
"""

import re

from rapidfuzz.distance import Levenshtein

# Known spellings and common OCR corruptions per field.
KEYWORD_VARIANTS: dict[str, tuple[str, ...]] = {
    "subtotal": ("subtotal", "sub total", "subtotaal", "sub-total", "sublotal"),
    "tax": ("tax", "btw", "vat", "sales tax", "tox", "iax"),
    "total": ("total", "totaal", "tota1", "t0tal", "tatol", "iotal", "fotal"),
    "amount": ("amount", "bedrag", "am0unt", "amouht"),
    "invoice": ("invoice", "factuur", "inv0ice", "invoic3", "1nvoice"),
}

# Fields the parser fills from fuzzy label matches.
AMOUNT_FIELDS: tuple[str, ...] = ("subtotal", "tax", "total")

_TRAILING_AMOUNT_RE = re.compile(
    r"(?P<amount>(?:[$€£]\s?)?\d[\d.,]*(?:\s?(?:USD|EUR|GBP|[$€£]))?)\s*$",
    re.IGNORECASE,
)
_MONEY_SHAPE_RE = re.compile(r"[.,]\d{2}\b|[$€£]")
_LABEL_NOISE_RE = re.compile(r"[^\w\s\-]")


def similarity(first: str, second: str) -> float:
    """Normalized Levenshtein similarity between two strings.

    Returns:
        A value in ``[0, 1]``; 1.0 for identical strings, including two
        empty strings.
    """
    return Levenshtein.normalized_similarity(first, second)


def split_label(line: str) -> tuple[str, str] | None:
    """Split a line into its label and trailing money token.

    ``"T0TAL: $55.00"`` gives ``("t0tal", "$55.00")``. The label is
    lowercased with punctuation stripped.

    Returns:
        ``(label, amount_token)``, or ``None`` when the line does not end
        in a money-shaped token or has no label.
    """
    match = _TRAILING_AMOUNT_RE.search(line)
    if not match:
        return None
    token = match.group("amount").strip()
    if not _MONEY_SHAPE_RE.search(token):
        return None
    label = _LABEL_NOISE_RE.sub(" ", line[: match.start()].lower())
    label = " ".join(label.split())
    if not label:
        return None
    return label, token


def match_keyword(
    label: str,
    fields: tuple[str, ...] = AMOUNT_FIELDS,
    threshold: float = 0.7,
) -> tuple[str, float] | None:
    """Find the field whose keyword variants best match a label.

    Args:
        label: Lowercased label text.
        fields: Candidate fields, in priority order for equal scores.
        threshold: Minimum similarity for a match.

    Returns:
        ``(field, similarity)`` for the best match, or ``None``.
    """
    best: tuple[str, float] | None = None
    for field_name in fields:
        for variant in KEYWORD_VARIANTS[field_name]:
            score = similarity(label, variant)
            if score >= threshold and (best is None or score > best[1]):
                best = (field_name, score)
    return best
