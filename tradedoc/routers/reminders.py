"""
TradeDoc Tracker - Reminders Router

Administrative endpoints for the reminder scheduler.
"""

from typing import List

from fastapi import APIRouter, Depends

from tradedoc.dependencies import require_actor_permission
from tradedoc.schemas.reminder import PendingReminderResponse, SweepReportResponse
from tradedoc.schemas.transaction import TransactionResponse
from tradedoc.services.reminder_scheduler import ReminderScheduler, get_reminder_scheduler
from tradedoc.utils.error_handling import NotFoundException
from tradedoc.utils.permissions import Actor, Permission


router = APIRouter()


@router.post(
    "/sweep",
    response_model=SweepReportResponse,
    summary="Run a reminder sweep now",
)
async def run_sweep(
    actor: Actor = Depends(require_actor_permission([Permission.MANAGE_REMINDERS])),
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
):
    report = await scheduler.sweep()
    return report.to_dict()


@router.get(
    "/pending",
    response_model=List[PendingReminderResponse],
    summary="List claimed, undelivered reminders",
)
async def list_pending(
    actor: Actor = Depends(require_actor_permission([Permission.MANAGE_REMINDERS])),
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
):
    return await scheduler.list_pending()


@router.delete(
    "/{transaction_id}",
    summary="Cancel a deferred reminder job",
    description="The claim stays in place; use reset to make the transaction eligible again.",
)
async def cancel_reminder(
    transaction_id: int,
    actor: Actor = Depends(require_actor_permission([Permission.MANAGE_REMINDERS])),
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
):
    if not scheduler.cancel(transaction_id):
        raise NotFoundException("Scheduled reminder", transaction_id)
    return {"transaction_id": transaction_id, "cancelled": True}


@router.post(
    "/{transaction_id}/reset",
    response_model=TransactionResponse,
    summary="Clear a stuck reminder claim",
)
async def reset_reminder(
    transaction_id: int,
    actor: Actor = Depends(require_actor_permission([Permission.MANAGE_REMINDERS])),
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
):
    return await scheduler.reset_reminder(transaction_id, actor)
