"""
TradeDoc Tracker - Customers Router

API endpoints for the customer directory.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from tradedoc.database import get_async_session
from tradedoc.dependencies import require_actor_permission
from tradedoc.schemas.customer import (
    CustomerImportResult,
    CustomerResponse,
    CustomerWithTransactionsPage,
)
from tradedoc.services.customer_service import CustomerService
from tradedoc.utils.error_handling import InvalidFileException
from tradedoc.utils.permissions import Actor, Permission
from tradedoc.utils.spreadsheet import is_xlsx_upload, read_rows


router = APIRouter()


@router.post(
    "/import",
    response_model=CustomerImportResult,
    summary="Import customers from .xlsx",
    description="Upsert by customer number; any invalid row rejects the batch.",
)
async def import_customers(
    file: UploadFile = File(...),
    actor: Actor = Depends(require_actor_permission([Permission.MANAGE_CUSTOMERS])),
    db: AsyncSession = Depends(get_async_session),
):
    if not is_xlsx_upload(file.filename, file.content_type or ""):
        raise InvalidFileException()
    rows = read_rows(await file.read())
    return await CustomerService(db).import_customers(rows)


@router.get(
    "/with-transactions",
    response_model=CustomerWithTransactionsPage,
    summary="Customers with their transactions",
)
async def list_customers_with_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    is_send_email: Optional[bool] = Query(None, description="Filter transactions by reminder delivery"),
    search: Optional[str] = Query(None, description="Search by customer name or number"),
    actor: Actor = Depends(require_actor_permission([Permission.VIEW_CUSTOMERS])),
    db: AsyncSession = Depends(get_async_session),
):
    return await CustomerService(db).list_customers_with_transactions(
        page=page, limit=limit, is_send_email=is_send_email, search=search,
    )


@router.get(
    "/{custno}",
    response_model=CustomerResponse,
    summary="Get customer",
)
async def get_customer(
    custno: str,
    actor: Actor = Depends(require_actor_permission([Permission.VIEW_CUSTOMERS])),
    db: AsyncSession = Depends(get_async_session),
):
    return await CustomerService(db).get_customer(custno)
