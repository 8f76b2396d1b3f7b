"""Structured receipt records produced by the field extraction parser."""

import uuid
from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Any

CENT = Decimal("0.01")


def to_money(value: Decimal | float | int | str) -> Decimal:
    """Quantize a value to two decimal places."""
    return Decimal(str(value)).quantize(CENT)


@dataclass
class LineItem:
    """A purchased item with its price."""

    description: str
    amount: Decimal
    quantity: Decimal = Decimal("1")
    unit_price: Decimal | None = None

    def __post_init__(self) -> None:
        if not self.description.strip():
            raise ValueError("Line item description must not be empty")
        self.amount = to_money(self.amount)
        if self.amount < 0 or self.quantity < 0:
            raise ValueError("Line item amount and quantity must be non-negative")
        if self.unit_price is None:
            self.unit_price = self.amount
        self.unit_price = to_money(self.unit_price)

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "quantity": float(self.quantity),
            "unit_price": float(self.unit_price),
            "amount": float(self.amount),
        }


@dataclass
class ExtractedRecord:
    """Fields extracted from one receipt or invoice.

    Every field is optional; the parser fills what it can find. Monetary
    values are non-negative :class:`~decimal.Decimal` rounded to cents,
    dates use ``MM/DD/YYYY`` and times ``H:MM AM/PM``.
    """

    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    invoice_number: str | None = None
    transaction_id: str | None = None
    authorization_code: str | None = None
    terminal_id: str | None = None
    merchant_id: str | None = None
    card_number: str | None = None
    payment_method: str | None = None

    date: str | None = None
    time: str | None = None
    due_date: str | None = None

    subtotal: Decimal | None = None
    tax: Decimal | None = None
    total: Decimal | None = None
    currency: str | None = None

    vendor: str | None = None
    vendor_address: str | None = None
    vendor_phone: str | None = None
    vendor_email: str | None = None

    items: list[LineItem] = field(default_factory=list)
    extra_fields: list[str] = field(default_factory=list)

    raw_text: str = ""
    processing_method: str | None = None
    confidence: float | None = None
    processing_time_ms: float = 0.0
    warnings: list[str] = field(default_factory=list)

    def is_set(self, name: str) -> bool:
        """Return whether a field currently holds a value."""
        return getattr(self, name) is not None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Decimal):
                value = float(value)
            elif f.name == "items":
                value = [item.to_dict() for item in value]
            elif isinstance(value, list):
                value = list(value)
            result[f.name] = value
        return result
