"""
TradeDoc Tracker - Remark Parser Tests

Unit tests for contract number and delivery date extraction.
"""

from datetime import date

import pytest

from tradedoc.services.remark_parser import (
    RemarkInfo,
    fold_remark,
    parse_remark,
    parse_yymmdd,
)


class TestFoldRemark:
    """Accent folding keeps offsets aligned with the original text."""

    def test_strips_vietnamese_diacritics(self):
        assert fold_remark("Hợp đồng tạm ứng") == "HOP DONG TAM UNG"

    def test_preserves_length(self):
        remark = "Thanh toán trước đợt 2, hđ số 15"
        assert len(fold_remark(remark)) == len(remark)


class TestParseYymmdd:

    def test_valid_date(self):
        assert parse_yymmdd("240115") == date(2024, 1, 15)

    @pytest.mark.parametrize("token", ["241315", "240230", "2401", "24011a"])
    def test_invalid_tokens(self, token):
        assert parse_yymmdd(token) is None


class TestParseRemark:
    """Test cases for parse_remark."""

    def test_contract_and_advance_payment(self):
        info = parse_remark("HD 123, TT truoc 240115")

        assert info.contract_number == "123"
        assert info.delivery_date == date(2024, 1, 15)
        assert info.declaration_date == date(2024, 2, 14)

    def test_vietnamese_markers(self):
        info = parse_remark("Hợp đồng: SG-07/2024 tạm ứng 231201")

        assert info.contract_number == "SG-07/2024"
        assert info.delivery_date == date(2023, 12, 1)
        assert info.declaration_date == date(2023, 12, 31)

    def test_contract_keeps_original_casing(self):
        info = parse_remark("payment hd abc-12x for goods")
        assert info.contract_number == "abc-12x"

    def test_compact_advance_marker(self):
        info = parse_remark("TTTRUOC240301")
        assert info.delivery_date == date(2024, 3, 1)

    def test_marker_needs_token_boundary(self):
        info = parse_remark("SHD 55 NOTTTRUOC 240115")

        assert info.contract_number is None
        assert info.delivery_date is None

    def test_impossible_date_skipped_for_next_marker(self):
        info = parse_remark("TT truoc 241301 ung truoc 240220")
        assert info.delivery_date == date(2024, 2, 20)

    def test_seven_digits_do_not_match(self):
        info = parse_remark("TT truoc 2401150")
        assert info.delivery_date is None
        assert info.declaration_date is None

    def test_first_contract_wins(self):
        info = parse_remark("HD A1 HD B2")
        assert info.contract_number == "A1"

    def test_custom_declaration_days(self):
        info = parse_remark("TT truoc 240115", declaration_days=45)
        assert info.declaration_date == date(2024, 2, 29)

    @pytest.mark.parametrize("remark", [None, "", "   ", "Payment for invoice 42"])
    def test_no_match_gives_empty_info(self, remark):
        assert parse_remark(remark) == RemarkInfo()

    @pytest.mark.parametrize("remark", ["CK qua HDBank cho KH, TT truoc 240115", "HDBANK 240115"])
    def test_contract_marker_needs_separator(self, remark):
        assert parse_remark(remark).contract_number is None

    def test_bank_name_does_not_hide_later_contract(self):
        info = parse_remark("CK qua HDBank theo HD 778, TT truoc 240115")

        assert info.contract_number == "778"
        assert info.delivery_date == date(2024, 1, 15)
