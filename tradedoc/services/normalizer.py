"""
TradeDoc Tracker - Ingestion Normalizer

Turns raw spreadsheet rows into validated transaction drafts.

Pure transformation: no database access. The caller supplies the set of
`trref` values already stored and decides what to do with row errors.

Per-row rules, in order:
1. Required fields present and non-blank
2. Skip trref already seen earlier in the batch
3. Skip trref already stored
4. Amount parsed as Decimal (thousands separators stripped)
5. Tradate / Esdate normalized from date, day serial or dd/mm/yyyy
6. Contract number and delivery date extracted from the remark
7. Draft constructed in the initial workflow state
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Container, Dict, Iterable, List, Mapping, Optional

from tradedoc.models.transaction import DocumentStatus
from tradedoc.services.remark_parser import DEFAULT_DECLARATION_DAYS, parse_remark
from tradedoc.utils.spreadsheet import ROW_NUMBER_KEY


REQUIRED_FIELDS = ("Trref", "Custno", "Custnm", "Currency", "Amount", "bencust")
STRICT_REQUIRED_FIELDS = REQUIRED_FIELDS + ("document",)

# Spreadsheet day serials count from 1899-12-30
SERIAL_EPOCH = date(1899, 12, 30)
DATE_FORMAT = "%d/%m/%Y"
DEFAULT_ADDITIONAL_DAYS = 30
AMOUNT_QUANTUM = Decimal("0.01")

# Spreadsheet row 1 is the header
FIRST_DATA_ROW = 2


# ===========================================
# RESULT TYPES
# ===========================================

@dataclass(frozen=True)
class RowError:
    """A rejected row, numbered as in the spreadsheet."""
    row: int
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.row, "error": self.error}


@dataclass
class TransactionDraft:
    """A validated row ready to be persisted."""
    trref: str
    custno: str
    custnm: str
    currency: str
    amount: Decimal
    bencust: str
    remark: str = ""
    tradate: Optional[date] = None
    document: Optional[str] = None
    contract_number: Optional[str] = None
    expected_delivery_date: Optional[date] = None
    expected_declaration_date: Optional[date] = None
    additional_date: Optional[date] = None
    status: DocumentStatus = DocumentStatus.AWAITING_DOCUMENTS
    is_document_added: bool = False
    censored: bool = False
    post_inspection: bool = False
    is_send_email: bool = False
    is_sending_email: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class NormalizationReport:
    """Outcome of normalizing one batch."""
    total_rows: int = 0
    drafts: List[TransactionDraft] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)
    skipped_in_batch: int = 0
    skipped_existing: int = 0

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def skipped_duplicates(self) -> int:
        return self.skipped_in_batch + self.skipped_existing


# ===========================================
# FIELD PARSERS
# ===========================================

def _lookup(row: Mapping[str, Any], name: str) -> Any:
    """Header lookup tolerant of case and surrounding spaces."""
    if name in row:
        return row[name]
    wanted = name.strip().lower()
    for key, value in row.items():
        if isinstance(key, str) and key.strip().lower() == wanted:
            return value
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _is_blank(value: Any) -> bool:
    return _text(value) == ""


def parse_amount(value: Any) -> Decimal:
    """
    Parse a monetary amount.

    Raises:
        ValueError: If the value is not a finite, non-negative number
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value}")
    if isinstance(value, Decimal):
        amount = value
    else:
        cleaned = str(value).replace(",", "").replace(" ", "").strip()
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {value}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value}")
    if amount < 0:
        raise ValueError(f"Amount must not be negative: {value}")
    return amount.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def parse_date(value: Any) -> Optional[date]:
    """
    Normalize a spreadsheet date cell to a calendar day.

    Accepts a native date/datetime, a day serial counted from 1899-12-30
    (number or digit-only string) or a dd/mm/yyyy string. Blank gives None.

    Raises:
        ValueError: If the value matches none of the encodings
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid date: {value}")
    if isinstance(value, (int, float, Decimal)):
        return _from_serial(value)

    text = str(value).strip()
    if not text:
        return None
    if text.isdigit():
        return _from_serial(int(text))
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError:
        raise ValueError(f"Invalid date: {text}")


def _from_serial(serial) -> date:
    days = int(serial)
    if days <= 0:
        raise ValueError(f"Invalid date serial: {serial}")
    try:
        return SERIAL_EPOCH + timedelta(days=days)
    except OverflowError:
        raise ValueError(f"Invalid date serial: {serial}")


# ===========================================
# BATCH NORMALIZATION
# ===========================================

def normalize_batch(
    rows: Iterable[Mapping[str, Any]],
    existing_refs: Container[str],
    strict: bool = False,
    declaration_days: int = DEFAULT_DECLARATION_DAYS,
    additional_days: int = DEFAULT_ADDITIONAL_DAYS,
) -> NormalizationReport:
    """
    Normalize an ordered batch of raw rows.

    Duplicates (inside the batch or against `existing_refs`) are counted,
    never reported as errors. The first occurrence of a trref in row order
    wins.
    """
    report = NormalizationReport()
    seen_refs = set()
    required = STRICT_REQUIRED_FIELDS if strict else REQUIRED_FIELDS

    for index, row in enumerate(rows):
        report.total_rows += 1
        row_number = row.get(ROW_NUMBER_KEY, index + FIRST_DATA_ROW)

        missing = [name for name in required if _is_blank(_lookup(row, name))]
        if missing:
            report.errors.append(
                RowError(row_number, f"Missing required fields: {', '.join(missing)}")
            )
            continue

        trref = _text(_lookup(row, "Trref"))
        if trref in seen_refs:
            report.skipped_in_batch += 1
            continue
        seen_refs.add(trref)
        if trref in existing_refs:
            report.skipped_existing += 1
            continue

        try:
            amount = parse_amount(_lookup(row, "Amount"))
        except ValueError as e:
            report.errors.append(RowError(row_number, str(e)))
            continue

        try:
            tradate = parse_date(_lookup(row, "Tradate"))
            esdate = parse_date(_lookup(row, "Esdate"))
        except ValueError as e:
            report.errors.append(RowError(row_number, str(e)))
            continue

        remark = _text(_lookup(row, "remark"))
        info = parse_remark(remark, declaration_days=declaration_days)
        if strict and not info.contract_number:
            report.errors.append(RowError(row_number, "Contract number not found in remark"))
            continue

        # An explicit Esdate column overrides the remark-derived deadline
        declaration_date = esdate or info.declaration_date
        additional_date = None
        if declaration_date is not None:
            additional_date = declaration_date + timedelta(days=additional_days)

        document = _text(_lookup(row, "document")) or None

        report.drafts.append(
            TransactionDraft(
                trref=trref,
                custno=_text(_lookup(row, "Custno")),
                custnm=_text(_lookup(row, "Custnm")),
                currency=_text(_lookup(row, "Currency")).upper(),
                amount=amount,
                bencust=_text(_lookup(row, "bencust")),
                remark=remark,
                tradate=tradate,
                document=document,
                contract_number=info.contract_number,
                expected_delivery_date=info.delivery_date,
                expected_declaration_date=declaration_date,
                additional_date=additional_date,
            )
        )

    return report


def batch_refs(rows: Iterable[Mapping[str, Any]]) -> List[str]:
    """Non-blank trref values of a batch, for the store lookup."""
    refs = (_text(_lookup(row, "Trref")) for row in rows)
    return [ref for ref in refs if ref]
