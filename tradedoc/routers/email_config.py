"""
TradeDoc Tracker - Sender Account Router

API endpoints for the reminder sender mailbox.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tradedoc.database import get_async_session
from tradedoc.dependencies import require_actor_permission
from tradedoc.schemas.email_config import (
    EmailConfigCreateRequest,
    EmailConfigResponse,
    EmailConfigUpdateRequest,
)
from tradedoc.services.email_config_service import EmailConfigService
from tradedoc.utils.permissions import Actor, Permission


router = APIRouter()


@router.get(
    "",
    response_model=List[EmailConfigResponse],
    summary="List sender accounts",
)
async def list_email_configs(
    actor: Actor = Depends(require_actor_permission([Permission.MANAGE_EMAIL_CONFIG])),
    db: AsyncSession = Depends(get_async_session),
):
    return await EmailConfigService(db).list_configs()


@router.post(
    "",
    response_model=EmailConfigResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create sender account",
)
async def create_email_config(
    request: EmailConfigCreateRequest,
    actor: Actor = Depends(require_actor_permission([Permission.MANAGE_EMAIL_CONFIG])),
    db: AsyncSession = Depends(get_async_session),
):
    return await EmailConfigService(db).create_config(
        email=request.email,
        password=request.password,
        is_active=request.is_active,
    )


@router.put(
    "/{config_id}",
    response_model=EmailConfigResponse,
    summary="Update sender account",
)
async def update_email_config(
    config_id: int,
    request: EmailConfigUpdateRequest,
    actor: Actor = Depends(require_actor_permission([Permission.MANAGE_EMAIL_CONFIG])),
    db: AsyncSession = Depends(get_async_session),
):
    return await EmailConfigService(db).update_config(
        config_id,
        email=request.email,
        password=request.password,
        is_active=request.is_active,
    )
