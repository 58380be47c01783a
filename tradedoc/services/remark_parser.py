"""
TradeDoc Tracker - Remark Parser

Extracts the contract number and the advance-payment delivery date from the
free-text bank memo (`remark`) of a transaction.

Grammar, applied to the accent-folded, upper-cased remark:

    CONTRACT   := ("HD" | "HOP DONG") SEP CODE       CODE  := [A-Z0-9][^\\s,;]*
    ADVANCE    := ADV_MARKER SEP? DATE6              DATE6 := \\d{6}  (yymmdd)
    ADV_MARKER := "TT TRUOC" | "TTTRUOC" | "THANH TOAN TRUOC"
                | "UNG TRUOC" | "TAM UNG"
    SEP        := one or more of whitespace ":" "." "-" "#"

Rules:
- Markers only match at a token boundary (no letter or digit right before).
- The first CONTRACT wins; the code keeps the casing of the original remark.
- The first ADVANCE whose DATE6 is a real calendar date wins; impossible
  dates such as month 13 are skipped.
- Delivery date is 20yy-mm-dd; the declaration deadline is delivery + 30 days.
- No match gives None values, never an error.

Examples:
    "HD 123, TT truoc 240115"         -> 123, 2024-01-15, 2024-02-14
    "Hợp đồng: SG-07/2024 tạm ứng 231201" -> SG-07/2024, 2023-12-01, 2023-12-31
"""

import re
import unicodedata
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional


DEFAULT_DECLARATION_DAYS = 30

_SEP = r"[\s:.\-#]*"
_CONTRACT_SEP = r"[\s:.\-#]+"

CONTRACT_PATTERN = re.compile(
    r"(?<![A-Z0-9])(?:HOP\s+DONG|HD)" + _CONTRACT_SEP + r"([A-Z0-9][^\s,;]*)"
)
ADVANCE_PATTERN = re.compile(
    r"(?<![A-Z0-9])(?:THANH\s+TOAN\s+TRUOC|TT\s*TRUOC|UNG\s+TRUOC|TAM\s+UNG)"
    + _SEP
    + r"(\d{6})(?!\d)"
)


@dataclass(frozen=True)
class RemarkInfo:
    """Values extracted from a remark."""
    contract_number: Optional[str] = None
    delivery_date: Optional[date] = None
    declaration_date: Optional[date] = None


def _fold_char(char: str) -> str:
    if char in ("đ", "Đ"):
        return "D"
    decomposed = unicodedata.normalize("NFD", char)
    base = decomposed[0] if decomposed else char
    upper = base.upper()
    # Keep a one-to-one mapping so match offsets index the original text
    return upper if len(upper) == 1 else char


def fold_remark(remark: str) -> str:
    """Strip Vietnamese diacritics and upper-case, preserving string length."""
    return "".join(_fold_char(c) for c in remark)


def parse_yymmdd(token: str) -> Optional[date]:
    """Parse a six-digit yymmdd token in the 2000s; None if not a real date."""
    if len(token) != 6 or not token.isdigit():
        return None
    try:
        return date(2000 + int(token[0:2]), int(token[2:4]), int(token[4:6]))
    except ValueError:
        return None


def parse_remark(
    remark: Optional[str],
    declaration_days: int = DEFAULT_DECLARATION_DAYS,
) -> RemarkInfo:
    """Extract contract number and delivery/declaration dates from a remark."""
    if not remark or not str(remark).strip():
        return RemarkInfo()

    original = str(remark)
    folded = fold_remark(original)

    contract_number = None
    contract = CONTRACT_PATTERN.search(folded)
    if contract:
        contract_number = original[contract.start(1):contract.end(1)]

    delivery_date = None
    for advance in ADVANCE_PATTERN.finditer(folded):
        delivery_date = parse_yymmdd(advance.group(1))
        if delivery_date is not None:
            break

    declaration_date = None
    if delivery_date is not None:
        declaration_date = delivery_date + timedelta(days=declaration_days)

    return RemarkInfo(
        contract_number=contract_number,
        delivery_date=delivery_date,
        declaration_date=declaration_date,
    )
