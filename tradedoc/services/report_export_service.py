"""
TradeDoc Tracker - Report Export Service

Spreadsheet exports of transaction listings (openpyxl).

Profiles:
- deadline: one status view (awaiting / overdue / documents added)
- post_inspection: censored transactions with audit columns
"""

import io
import logging
from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from sqlalchemy.ext.asyncio import AsyncSession

from tradedoc.models.transaction import DocumentStatus, StatusView, Transaction
from tradedoc.services.transaction_store import TransactionFilter, TransactionStore
from tradedoc.utils.dates import business_now, business_today, format_date

logger = logging.getLogger(__name__)

SHEET_TITLE = "Transactions"
AMOUNT_FORMAT = "#,##0.00"

Column = Tuple[str, Callable[[Transaction, date], object], int]


def _yes_no(value: bool) -> str:
    return "Có" if value else "Không"


DEADLINE_COLUMNS: List[Column] = [
    ("Số giao dịch", lambda t, today: t.trref, 18),
    ("Mã khách hàng", lambda t, today: t.custno, 15),
    ("Tên khách hàng", lambda t, today: t.custnm, 30),
    ("Ngày giao dịch", lambda t, today: format_date(t.tradate), 14),
    ("Loại tiền", lambda t, today: t.currency, 10),
    ("Số tiền", lambda t, today: t.amount, 18),
    ("Người thụ hưởng", lambda t, today: t.bencust, 30),
    ("Nội dung", lambda t, today: t.remark, 40),
    ("Số hợp đồng", lambda t, today: t.contract_number or "", 18),
    ("Hạn bổ sung chứng từ", lambda t, today: format_date(t.expected_declaration_date), 18),
    ("Hạn gia hạn", lambda t, today: format_date(t.additional_date), 14),
    ("Trạng thái", lambda t, today: t.status_view(today).label, 14),
    ("Ghi chú", lambda t, today: t.note or "", 30),
]

POST_INSPECTION_COLUMNS: List[Column] = DEADLINE_COLUMNS + [
    ("Đã kiểm soát", lambda t, today: _yes_no(t.censored), 12),
    ("Ghi chú kiểm soát", lambda t, today: t.note_censored or "", 30),
    ("Đã hậu kiểm", lambda t, today: _yes_no(t.post_inspection), 12),
    ("Ghi chú hậu kiểm", lambda t, today: t.note_inspection or "", 30),
    ("Người cập nhật", lambda t, today: t.updated_by or "", 20),
]


def build_workbook(
    transactions: Sequence[Transaction],
    columns: Sequence[Column],
    today: date,
) -> bytes:
    """Render transactions into a single-sheet .xlsx file."""
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    header_font = Font(bold=True, size=10, color="FFFFFF")
    header_fill = PatternFill(start_color="2D3748", end_color="2D3748", fill_type="solid")

    for col, (title, _, width) in enumerate(columns, start=1):
        cell = ws.cell(row=1, column=col, value=title)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        ws.column_dimensions[get_column_letter(col)].width = width

    amount_column = next(
        (i for i, (title, _, _) in enumerate(columns, start=1) if title == "Số tiền"),
        None,
    )

    for row, transaction in enumerate(transactions, start=2):
        for col, (_, getter, _) in enumerate(columns, start=1):
            ws.cell(row=row, column=col, value=getter(transaction, today))
        if amount_column:
            ws.cell(row=row, column=amount_column).number_format = AMOUNT_FORMAT

    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def report_filename(view: str) -> str:
    return f"report-{view}-{business_now().strftime('%Y%m%d%H%M%S')}.xlsx"


class ReportExportService:
    """Service for spreadsheet report exports."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = TransactionStore(db)

    async def export_deadline_report(
        self,
        view: StatusView,
        search: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Tuple[bytes, str]:
        """Export one status view. Returns (content, filename)."""
        today = today or business_today()
        transactions = await self.store.find_all(
            TransactionFilter(search=search, view=view, today=today)
        )
        content = build_workbook(transactions, DEADLINE_COLUMNS, today)
        logger.info(f"Exported {len(transactions)} transaction(s) for view {view.value}")
        return content, report_filename(view.value)

    async def export_post_inspection_report(
        self,
        post_inspection: Optional[bool] = None,
        search: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Tuple[bytes, str]:
        """Export censored transactions with documents added, with audit columns."""
        today = today or business_today()
        transactions = await self.store.find_all(
            TransactionFilter(
                search=search,
                status=DocumentStatus.DOCUMENTS_ADDED,
                censored=True,
                post_inspection=post_inspection,
            )
        )
        content = build_workbook(transactions, POST_INSPECTION_COLUMNS, today)
        logger.info(f"Exported {len(transactions)} transaction(s) for post-inspection")
        return content, report_filename("post-inspection")
