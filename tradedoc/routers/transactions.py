"""
TradeDoc Tracker - Transactions Router

API endpoints for transaction import, listings, workflow updates and exports.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from tradedoc.database import get_async_session
from tradedoc.dependencies import get_current_actor, require_actor_permission
from tradedoc.models.transaction import StatusView
from tradedoc.schemas.transaction import (
    CensorshipUpdateRequest,
    DocumentUpdateRequest,
    ImportResult,
    PostInspectionUpdateRequest,
    TransactionPage,
    TransactionResponse,
)
from tradedoc.services.report_export_service import ReportExportService
from tradedoc.services.transaction_service import TransactionService
from tradedoc.services.workflow import (
    AdvanceDocuments,
    SetCensorship,
    SetPostInspection,
    WorkflowService,
)
from tradedoc.utils.error_handling import InvalidFileException, InvalidStatusException
from tradedoc.utils.permissions import Actor, Permission
from tradedoc.utils.spreadsheet import is_xlsx_upload, read_rows


router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _parse_view(value: str) -> StatusView:
    try:
        return StatusView.parse(value)
    except ValueError:
        raise InvalidStatusException(
            value,
            allowed=[member.value for member in StatusView] + [member.label for member in StatusView],
        )


def _xlsx_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ===========================================
# LISTINGS
# ===========================================

@router.get(
    "",
    response_model=TransactionPage,
    summary="List transactions",
    description="All transactions, newest first.",
)
async def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    search: Optional[str] = Query(None, description="Search by customer name or trref"),
    actor: Actor = Depends(require_actor_permission([Permission.VIEW_TRANSACTIONS])),
    db: AsyncSession = Depends(get_async_session),
):
    return await TransactionService(db).list_transactions(page=page, limit=limit, search=search)


@router.get(
    "/status/{status}",
    response_model=TransactionPage,
    summary="List transactions by status",
    description="Status: awaiting_documents, overdue, documents_added (or the Vietnamese labels).",
)
async def list_by_status(
    status: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    search: Optional[str] = Query(None),
    actor: Actor = Depends(require_actor_permission([Permission.VIEW_TRANSACTIONS])),
    db: AsyncSession = Depends(get_async_session),
):
    view = _parse_view(status)
    return await TransactionService(db).list_by_status(view, page=page, limit=limit, search=search)


@router.get(
    "/post-censorship",
    response_model=TransactionPage,
    summary="List censored transactions",
)
async def list_post_censorship(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    search: Optional[str] = Query(None),
    post_inspection: Optional[bool] = Query(None),
    actor: Actor = Depends(require_actor_permission([Permission.VIEW_TRANSACTIONS])),
    db: AsyncSession = Depends(get_async_session),
):
    return await TransactionService(db).list_post_censorship(
        page=page, limit=limit, search=search, post_inspection=post_inspection,
    )


# ===========================================
# EXPORTS
# ===========================================

@router.get(
    "/report/{status}",
    summary="Export transactions by status",
    response_class=Response,
)
async def export_by_status(
    status: str,
    search: Optional[str] = Query(None),
    actor: Actor = Depends(require_actor_permission([Permission.EXPORT_REPORTS])),
    db: AsyncSession = Depends(get_async_session),
):
    view = _parse_view(status)
    content, filename = await ReportExportService(db).export_deadline_report(view, search=search)
    return _xlsx_response(content, filename)


@router.get(
    "/report-post-inspection",
    summary="Export censored transactions with audit columns",
    response_class=Response,
)
async def export_post_inspection(
    post_inspection: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    actor: Actor = Depends(require_actor_permission([Permission.EXPORT_REPORTS])),
    db: AsyncSession = Depends(get_async_session),
):
    content, filename = await ReportExportService(db).export_post_inspection_report(
        post_inspection=post_inspection, search=search,
    )
    return _xlsx_response(content, filename)


# ===========================================
# IMPORT
# ===========================================

@router.post(
    "/import",
    response_model=ImportResult,
    summary="Import transactions from .xlsx",
    description="All-or-nothing: any invalid row rejects the batch with every row error.",
)
async def import_transactions(
    file: UploadFile = File(...),
    actor: Actor = Depends(require_actor_permission([Permission.IMPORT_TRANSACTIONS])),
    db: AsyncSession = Depends(get_async_session),
):
    if not is_xlsx_upload(file.filename, file.content_type or ""):
        raise InvalidFileException()
    rows = read_rows(await file.read())
    return await TransactionService(db).import_rows(rows)


# ===========================================
# SINGLE TRANSACTION
# ===========================================

@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get transaction",
)
async def get_transaction(
    transaction_id: int,
    actor: Actor = Depends(require_actor_permission([Permission.VIEW_TRANSACTIONS])),
    db: AsyncSession = Depends(get_async_session),
):
    return await TransactionService(db).get_transaction(transaction_id)


@router.put(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Update document status",
)
async def update_documents(
    transaction_id: int,
    request: DocumentUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_session),
):
    command = AdvanceDocuments(**request.model_dump(exclude_none=True))
    return await WorkflowService(db).apply(transaction_id, command, actor)


@router.put(
    "/{transaction_id}/censorship",
    response_model=TransactionResponse,
    summary="Censor transaction",
)
async def update_censorship(
    transaction_id: int,
    request: CensorshipUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_session),
):
    command = SetCensorship(**request.model_dump(exclude_none=True))
    return await WorkflowService(db).apply(transaction_id, command, actor)


@router.put(
    "/{transaction_id}/post-inspection",
    response_model=TransactionResponse,
    summary="Post-inspect transaction",
)
async def update_post_inspection(
    transaction_id: int,
    request: PostInspectionUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_async_session),
):
    command = SetPostInspection(**request.model_dump(exclude_none=True))
    return await WorkflowService(db).apply(transaction_id, command, actor)
