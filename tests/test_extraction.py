"""Tests for text normalization, fuzzy matching, amounts and the parser."""

from decimal import Decimal

import pytest

from receipt_ocr.extraction.amounts import (
    amount_confidence,
    assign_amounts,
    classify_amount_line,
    detect_currency,
    fallback_total,
    find_amounts,
)
from receipt_ocr.extraction.fuzzy import match_keyword, similarity, split_label
from receipt_ocr.extraction.models import ExtractedRecord, LineItem
from receipt_ocr.extraction.normalize import (
    clean_line,
    clean_lines,
    is_valid_date,
    normalize_date,
    normalize_time,
    parse_amount,
)
from receipt_ocr.extraction.parser import ReceiptParser
from receipt_ocr.extraction.rules import (
    BUSINESS_RULES,
    DATE_RULES,
    INVOICE_NUMBER_RULES,
    first_match,
)
from receipt_ocr.utils.config import ParsingConfig


class TestCleanLine:
    """Tests for OCR artifact cleanup."""

    def test_pipes_and_spaced_decimal(self) -> None:
        assert clean_line("TOTAL  |  12 .50") == "TOTAL 12.50"

    def test_trailing_amount_with_code_repaired(self) -> None:
        assert clean_line("Totaal 64, 00 EUR") == "Totaal 64,00 EUR"

    def test_address_numbers_untouched(self) -> None:
        assert clean_line("Suite 4, 12 Main Street") == "Suite 4, 12 Main Street"

    def test_currency_gap_closed(self) -> None:
        assert clean_line("Tax $ 5.00") == "Tax $5.00"

    def test_curly_quotes(self) -> None:
        assert clean_line("“Joe’s”") == "\"Joe's\""

    def test_clean_lines_drops_blank(self) -> None:
        assert clean_lines("a\n\n   b  \n\t\n") == ["a", "b"]


class TestParseAmount:
    """Tests for money string parsing."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("$64.00", "64.00"),
            ("64,00", "64.00"),
            ("1.234,56", "1234.56"),
            ("1,234.56", "1234.56"),
            ("1,234", "1234.00"),
            ("1.234.567", "1234567.00"),
            ("€ 12", "12.00"),
            ("12.5", "12.50"),
            ("64.00 USD", "64.00"),
        ],
    )
    def test_formats(self, raw: str, expected: str) -> None:
        assert parse_amount(raw) == Decimal(expected)

    @pytest.mark.parametrize("raw", ["", "abc", "$", "..."])
    def test_unparseable(self, raw: str) -> None:
        assert parse_amount(raw) is None

    def test_reparsing_is_stable(self) -> None:
        for raw in ("$64.00", "1.234,56", "0.92", "7"):
            value = parse_amount(raw)
            assert parse_amount(str(value)) == value


class TestNormalizeDate:
    """Tests for date normalization."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("12/25/2024", "12/25/2024"),
            ("25/12/2024", "12/25/2024"),
            ("2024-01-15", "01/15/2024"),
            ("01.15.24", "01/15/2024"),
            ("01/15/99", "01/15/1999"),
            ("Jan 15, 2024", "01/15/2024"),
            ("15 March 2024", "03/15/2024"),
        ],
    )
    def test_valid_dates(self, raw: str, expected: str) -> None:
        assert normalize_date(raw) == expected

    @pytest.mark.parametrize(
        "raw", ["13/13/2024", "02/30/2024", "01/01/1800", "not a date"]
    )
    def test_invalid_dates(self, raw: str) -> None:
        assert normalize_date(raw) is None

    def test_is_valid_date(self) -> None:
        assert is_valid_date("02/29/2024")
        assert not is_valid_date("02/29/2023")
        assert not is_valid_date("2024-02-01")


class TestNormalizeTime:
    """Tests for time normalization."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("14:30", "2:30 PM"),
            ("00:05", "12:05 AM"),
            ("12:00", "12:00 PM"),
            ("9:15 am", "9:15 AM"),
            ("11:45:10 p.m.", "11:45 PM"),
        ],
    )
    def test_valid_times(self, raw: str, expected: str) -> None:
        assert normalize_time(raw) == expected

    @pytest.mark.parametrize("raw", ["25:00", "10:75", "13:00 PM", "noon"])
    def test_invalid_times(self, raw: str) -> None:
        assert normalize_time(raw) is None


class TestFuzzy:
    """Tests for fuzzy keyword matching."""

    def test_similarity(self) -> None:
        assert similarity("total", "total") == 1.0
        assert similarity("", "") == 1.0
        assert similarity("t0tal", "total") >= 0.7

    def test_split_label(self) -> None:
        assert split_label("T0TAL: $55.00") == ("t0tal", "$55.00")
        assert split_label("Totaal 64,00 EUR") == ("totaal", "64,00 EUR")

    @pytest.mark.parametrize("line", ["$55.00", "Main Street 12", "Thank you"])
    def test_split_label_rejects(self, line: str) -> None:
        assert split_label(line) is None

    def test_match_keyword(self) -> None:
        assert match_keyword("sub total") == ("subtotal", 1.0)
        assert match_keyword("tota1")[0] == "total"
        assert match_keyword("vat")[0] == "tax"

    def test_match_keyword_below_threshold(self) -> None:
        assert match_keyword("thank you") is None
        assert match_keyword("totl", threshold=0.95) is None


class TestRules:
    """Tests for ordered direct and business rules."""

    def test_labelled_date_beats_earlier_bare_date(self) -> None:
        lines = ["05/06/2024", "Date: 03/04/2024"]
        assert first_match(DATE_RULES, lines) == ("03/04/2024", 1)

    def test_due_lines_excluded_from_date(self) -> None:
        lines = ["Due: 02/01/2024", "01/01/2024"]
        assert first_match(DATE_RULES, lines) == ("01/01/2024", 1)

    def test_invoice_number_labelled(self) -> None:
        lines = ["Invoice No: INV-2024-001"]
        assert first_match(INVOICE_NUMBER_RULES, lines) == ("INV-2024-001", 0)

    def test_invoice_number_ignores_phone_lines(self) -> None:
        assert first_match(INVOICE_NUMBER_RULES, ["Tel # 5551234567"]) is None

    def test_invoice_number_needs_digit(self) -> None:
        assert first_match(INVOICE_NUMBER_RULES, ["Receipt: copy"]) is None

    def test_bare_code_needs_separator_or_digit_run(self) -> None:
        assert first_match(INVOICE_NUMBER_RULES, ["7ELEVEN"]) is None
        assert first_match(INVOICE_NUMBER_RULES, ["TX4471"]) == ("TX4471", 0)

    def test_business_identifiers(self) -> None:
        lines = [
            "Trans ID: TX987654",
            "Auth Code: 0A12B3",
            "Terminal: T-042",
            "Merchant ID: 88812",
            "Mastercard XXXX-XXXX-XXXX-9876",
        ]
        found = {}
        for rule in BUSINESS_RULES:
            if rule.field in found:
                continue
            result = first_match([rule], lines)
            if result:
                found[rule.field] = result[0]

        assert found["transaction_id"] == "TX987654"
        assert found["authorization_code"] == "0A12B3"
        assert found["terminal_id"] == "T-042"
        assert found["merchant_id"] == "88812"
        assert found["card_number"] == "XXXX-XXXX-XXXX-9876"
        assert found["payment_method"] == "MASTERCARD"


class TestAmounts:
    """Tests for amount detection, scoring and assignment."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("$5.00", "USD"),
            ("€5", "EUR"),
            ("£5.00", "GBP"),
            ("5.00 gbp", "GBP"),
            ("5,00", "EUR"),
            ("5.00", "USD"),
            ("500", None),
        ],
    )
    def test_detect_currency(self, raw: str, expected: str | None) -> None:
        assert detect_currency(raw) == expected

    def test_confidence_keyword_and_format(self) -> None:
        text = "Total $12.42"
        assert amount_confidence("$12.42", Decimal("12.42"), text, 6) == 95.0

    def test_confidence_penalties(self) -> None:
        text = "Item 1000.00"
        assert amount_confidence("1000.00", Decimal("1000.00"), text, 5) == 50.0
        text = "Item 9999.99"
        assert amount_confidence("9999.99", Decimal("9999.99"), text, 5) == 40.0

    def test_find_amounts_deduplicates_spans(self) -> None:
        candidates = find_amounts(["Subtotal 10.00", "Total $10.80"])
        assert [c.value for c in candidates] == [Decimal("10.00"), Decimal("10.80")]
        assert [c.line_index for c in candidates] == [0, 1]
        assert candidates[1].source == "$10.80"

    def test_find_amounts_european_grouping(self) -> None:
        candidates = find_amounts(["Totaal 1.234,56"])
        assert len(candidates) == 1
        assert candidates[0].value == Decimal("1234.56")
        assert candidates[0].currency == "EUR"

    def test_find_amounts_respects_limit(self) -> None:
        assert find_amounts(["Total 20000.00"], max_amount=10000.0) == []

    @pytest.mark.parametrize(
        "line, expected",
        [
            ("Sub-Total 5.00", "subtotal"),
            ("VAT 21% 1.05", "tax"),
            ("Incl. VAT 1.05", None),
            ("Amount due 5.00", "total"),
            ("Item 3.00", None),
        ],
    )
    def test_classify_amount_line(self, line: str, expected: str | None) -> None:
        assert classify_amount_line(line) == expected

    def test_label_on_previous_line(self) -> None:
        lines = ["TOTAL", "$9.99"]
        assigned = assign_amounts(lines, find_amounts(lines))
        assert assigned["total"].value == Decimal("9.99")

    def test_taken_fields_skipped(self) -> None:
        lines = ["Total 9.99"]
        assert assign_amounts(lines, find_amounts(lines), taken=["total"]) == {}

    def test_fallback_total(self) -> None:
        candidates = find_amounts(["Paid $8.25", "Ref 3.00"])
        best = fallback_total(candidates)
        assert best is not None
        assert best.value == Decimal("8.25")
        assert fallback_total(candidates, used=[best]).value == Decimal("3.00")

    def test_fallback_requires_confidence(self) -> None:
        candidates = find_amounts(["Qty 9999.00"])
        assert fallback_total(candidates) is None


class TestModels:
    """Tests for record models."""

    def test_line_item_rounds_and_defaults_unit_price(self) -> None:
        item = LineItem(description="Coffee", amount=Decimal("3.499"))
        assert item.amount == Decimal("3.50")
        assert item.unit_price == Decimal("3.50")

    def test_line_item_rejects_empty_description(self) -> None:
        with pytest.raises(ValueError):
            LineItem(description="  ", amount=Decimal("1"))

    def test_record_to_dict(self) -> None:
        record = ExtractedRecord(total=Decimal("12.42"), raw_text="x")
        data = record.to_dict()
        assert data["total"] == 12.42
        assert data["vendor"] is None
        assert data["items"] == []
        assert len(data["id"]) == 32


class TestReceiptParser:
    """Tests for the multi-strategy parser."""

    def setup_method(self) -> None:
        self.parser = ReceiptParser()

    def test_sample_receipt(self, sample_receipt_text: str) -> None:
        record = self.parser.parse(
            sample_receipt_text, processing_method="enhanced+uniform_block"
        )

        assert record.vendor == "Joe's Coffee House"
        assert record.vendor_address == "123 Main Street, Springfield, IL 62701"
        assert record.vendor_phone == "(555) 123-4567"
        assert record.date == "12/25/2024"
        assert record.time == "2:30 PM"
        assert record.invoice_number == "R-10042"
        assert record.subtotal == Decimal("11.50")
        assert record.tax == Decimal("0.92")
        assert record.total == Decimal("12.42")
        assert record.currency == "USD"
        assert record.card_number == "****1234"
        assert record.payment_method == "VISA"
        assert record.processing_method == "enhanced+uniform_block"
        assert record.warnings == []

    def test_sample_receipt_items(self, sample_receipt_text: str) -> None:
        record = self.parser.parse(sample_receipt_text)

        assert [i.description for i in record.items] == [
            "Cappuccino Large",
            "Blueberry Muffin",
        ]
        muffin = record.items[1]
        assert muffin.quantity == Decimal("2")
        assert muffin.unit_price == Decimal("3.50")
        assert muffin.amount == Decimal("7.00")

    def test_unconsumed_lines_become_extra_fields(
        self, sample_receipt_text: str
    ) -> None:
        record = self.parser.parse(sample_receipt_text)
        assert record.extra_fields == ["Thank you for visiting!"]

    def test_single_total_line(self) -> None:
        record = self.parser.parse("TOTAL: $42.50")
        assert record.total == Decimal("42.50")
        assert record.currency == "USD"
        assert record.vendor is None

    def test_ocr_corrupted_label(self) -> None:
        record = self.parser.parse("T0TAL 55.00")
        assert record.total == Decimal("55.00")

    def test_european_total(self) -> None:
        record = self.parser.parse("Totaal 64,00 EUR")
        assert record.total == Decimal("64.00")
        assert record.currency == "EUR"

    def test_address_keeps_comma_separated_numbers(self) -> None:
        text = (
            "Corner Deli\n"
            "Suite 4, 12 Main Street\n"
            "Springfield, IL 62701\n"
            "TOTAL 9.00"
        )
        record = self.parser.parse(text)
        assert record.vendor_address == (
            "Suite 4, 12 Main Street, Springfield, IL 62701"
        )
        assert record.total == Decimal("9.00")

    def test_address_numbers_are_not_amounts(self) -> None:
        record = self.parser.parse("ACME MARKET\nUnit 4, 12 High Street\nThank you")
        assert record.currency is None

    def test_fallback_total_from_best_amount(self) -> None:
        record = self.parser.parse("Cafe Roma\nPaid $8.25")
        assert record.vendor == "Cafe Roma"
        assert record.total == Decimal("8.25")

    def test_invoice_fields(self) -> None:
        text = (
            "ACME Supplies Ltd\n"
            "Invoice No: INV-2024-001\n"
            "Invoice Date: 01/15/2024\n"
            "Due Date: 02/15/2024\n"
            "Total Due $150.00\n"
        )
        record = self.parser.parse(text)
        assert record.vendor == "ACME Supplies Ltd"
        assert record.invoice_number == "INV-2024-001"
        assert record.date == "01/15/2024"
        assert record.due_date == "02/15/2024"
        assert record.total == Decimal("150.00")

    def test_totals_mismatch_warns(self) -> None:
        record = self.parser.parse("Subtotal 10.00\nTax 1.00\nTotal 20.00")
        assert record.total == Decimal("20.00")
        assert len(record.warnings) == 1
        assert "does not match" in record.warnings[0]

    def test_item_price_cap(self) -> None:
        parser = ReceiptParser(ParsingConfig(item_price_cap=50.0))
        record = parser.parse("Store Name\nBig Screen Television 99.99")
        assert record.items == []

    def test_extra_field_slots_limit(self) -> None:
        parser = ReceiptParser(ParsingConfig(extra_field_slots=2))
        text = "Header Shop\nline alpha\nline beta\nline gamma\nline delta"
        record = parser.parse(text)
        assert record.extra_fields == ["line alpha", "line beta"]

    def test_empty_text(self) -> None:
        record = self.parser.parse("")
        assert record.total is None
        assert record.vendor is None
        assert record.items == []
        assert record.raw_text == ""

    def test_garbage_text(self) -> None:
        record = self.parser.parse("~~ ## ^^ ||\n@@@")
        assert record.total is None
        assert record.currency is None
