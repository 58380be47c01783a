"""
TradeDoc Tracker - Normalizer Tests

Unit tests for spreadsheet row normalization.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from tradedoc.models.transaction import DocumentStatus
from tradedoc.services.normalizer import (
    batch_refs,
    normalize_batch,
    parse_amount,
    parse_date,
)


def _row(**overrides):
    row = {
        "Trref": "FT24001",
        "Custno": "C001",
        "Custnm": "Acme Trading",
        "Tradate": "10/01/2024",
        "Currency": "usd",
        "Amount": "1,500.50",
        "bencust": "Shenzhen Parts Co",
        "remark": "HD 123, TT truoc 240115",
        "document": "Invoice",
    }
    row.update(overrides)
    return row


class TestParseAmount:

    def test_strips_thousands_separators(self):
        assert parse_amount("1,234,567.891") == Decimal("1234567.89")

    def test_numeric_cell(self):
        assert parse_amount(2500) == Decimal("2500.00")

    @pytest.mark.parametrize("value", ["abc", "-5", "NaN", True])
    def test_rejects_invalid(self, value):
        with pytest.raises(ValueError):
            parse_amount(value)


class TestParseDate:

    def test_native_datetime(self):
        assert parse_date(datetime(2024, 1, 10, 15, 30)) == date(2024, 1, 10)

    def test_day_serial(self):
        assert parse_date(45301) == date(2024, 1, 10)
        assert parse_date("45301") == date(2024, 1, 10)

    def test_day_month_year_string(self):
        assert parse_date("10/01/2024") == date(2024, 1, 10)

    def test_blank_is_none(self):
        assert parse_date(None) is None
        assert parse_date("  ") is None

    @pytest.mark.parametrize("value", ["2024-01-10", "31/02/2024", 0])
    def test_rejects_unknown_encodings(self, value):
        with pytest.raises(ValueError):
            parse_date(value)


class TestNormalizeBatch:
    """Test cases for normalize_batch."""

    def test_valid_row_becomes_draft(self):
        report = normalize_batch([_row()], existing_refs=set())

        assert not report.has_errors
        assert report.total_rows == 1
        draft = report.drafts[0]
        assert draft.trref == "FT24001"
        assert draft.currency == "USD"
        assert draft.amount == Decimal("1500.50")
        assert draft.tradate == date(2024, 1, 10)
        assert draft.contract_number == "123"
        assert draft.expected_delivery_date == date(2024, 1, 15)
        assert draft.expected_declaration_date == date(2024, 2, 14)
        assert draft.additional_date == date(2024, 3, 15)
        assert draft.status == DocumentStatus.AWAITING_DOCUMENTS
        assert draft.is_send_email is False
        assert draft.is_sending_email is False

    def test_missing_required_fields_reported_with_row_number(self):
        rows = [_row(), _row(Trref="FT24002", Custno="", Amount=None)]

        report = normalize_batch(rows, existing_refs=set())

        assert report.has_errors
        assert [error.to_dict() for error in report.errors] == [
            {"row": 3, "error": "Missing required fields: Custno, Amount"}
        ]

    def test_every_invalid_row_is_reported(self):
        rows = [
            _row(Trref="A", Amount="ten"),
            _row(Trref="B"),
            _row(Trref="C", Tradate="2024/01/10"),
        ]

        report = normalize_batch(rows, existing_refs=set())

        assert [error.row for error in report.errors] == [2, 4]
        assert len(report.drafts) == 1

    def test_duplicate_in_batch_first_wins(self):
        rows = [_row(Custnm="First"), _row(Custnm="Second")]

        report = normalize_batch(rows, existing_refs=set())

        assert len(report.drafts) == 1
        assert report.drafts[0].custnm == "First"
        assert report.skipped_in_batch == 1
        assert not report.has_errors

    def test_existing_refs_are_skipped(self):
        rows = [_row(Trref="OLD"), _row(Trref="NEW")]

        report = normalize_batch(rows, existing_refs={"OLD"})

        assert [draft.trref for draft in report.drafts] == ["NEW"]
        assert report.skipped_existing == 1
        assert report.skipped_duplicates == 1

    def test_esdate_overrides_remark_deadline(self):
        report = normalize_batch([_row(Esdate="01/03/2024")], existing_refs=set())

        draft = report.drafts[0]
        assert draft.expected_delivery_date == date(2024, 1, 15)
        assert draft.expected_declaration_date == date(2024, 3, 1)
        assert draft.additional_date == date(2024, 3, 31)

    def test_remark_without_markers_leaves_deadline_empty(self):
        report = normalize_batch([_row(remark="Goods payment")], existing_refs=set())

        draft = report.drafts[0]
        assert draft.contract_number is None
        assert draft.expected_declaration_date is None
        assert draft.additional_date is None

    def test_headers_are_case_insensitive(self):
        row = {key.upper(): value for key, value in _row().items()}

        report = normalize_batch([row], existing_refs=set())

        assert not report.has_errors
        assert report.drafts[0].trref == "FT24001"

    def test_strict_mode_requires_document_and_contract(self):
        rows = [_row(Trref="A", document=""), _row(Trref="B", remark="TT truoc 240115")]

        report = normalize_batch(rows, existing_refs=set(), strict=True)

        assert [error.to_dict() for error in report.errors] == [
            {"row": 2, "error": "Missing required fields: document"},
            {"row": 3, "error": "Contract number not found in remark"},
        ]

    def test_custom_day_offsets(self):
        report = normalize_batch(
            [_row()], existing_refs=set(), declaration_days=10, additional_days=5,
        )

        draft = report.drafts[0]
        assert draft.expected_declaration_date == date(2024, 1, 25)
        assert draft.additional_date == date(2024, 1, 30)


def test_batch_refs_ignores_blank_refs():
    rows = [_row(Trref="A"), _row(Trref=" "), {"trref": 1001.0}]
    assert batch_refs(rows) == ["A", "1001"]


def test_date_encodings_of_one_day_agree():
    day = date(2024, 1, 15)
    encodings = [datetime(2024, 1, 15, 0, 0), day, 45306, 45306.0, "45306", "15/01/2024"]

    assert {parse_date(value) for value in encodings} == {day}


def test_reference_row():
    row = {
        "Trref": "T1",
        "Custno": "C1",
        "Custnm": "ABC",
        "Currency": "USD",
        "Amount": "1,000.50",
        "bencust": "X",
        "remark": "HD 123, TT truoc 240115",
    }

    draft = normalize_batch([row], existing_refs=set()).drafts[0]

    assert draft.amount == Decimal("1000.50")
    assert draft.contract_number == "123"
    assert draft.expected_delivery_date == date(2024, 1, 15)
    assert draft.expected_declaration_date == date(2024, 2, 14)
