"""
TradeDoc Tracker - Celery Tasks

Background tasks for reminder sweeps and deferred reminder dispatch.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from celery import shared_task

logger = logging.getLogger(__name__)


def run_async(coro):
    """Helper to run async functions in Celery tasks."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _with_fresh_engine(action):
    """Run `action(scheduler)` on an engine bound to the current event loop."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

    from tradedoc.config import settings
    from tradedoc.services.email_service import EmailService
    from tradedoc.services.job_queue import CeleryJobQueue
    from tradedoc.services.reminder_scheduler import ReminderScheduler

    engine = create_async_engine(settings.database_url_async, pool_pre_ping=True)
    try:
        scheduler = ReminderScheduler(
            session_factory=async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False),
            notifier=EmailService(),
            job_queue=CeleryJobQueue(),
        )
        return await action(scheduler)
    finally:
        await engine.dispose()


# ===========================================
# REMINDER TASKS
# ===========================================

@shared_task(name='tradedoc.tasks.celery_tasks.reminder_sweep_task')
def reminder_sweep_task() -> Dict[str, Any]:
    """Claim and dispatch or defer every eligible reminder."""
    async def _sweep(scheduler):
        report = await scheduler.sweep()
        return report.to_dict()

    result = run_async(_with_fresh_engine(_sweep))
    logger.info(f"Reminder sweep task finished: {result}")
    return result


@shared_task(name='tradedoc.tasks.celery_tasks.dispatch_reminder_task')
def dispatch_reminder_task(transaction_id: int) -> Dict[str, Any]:
    """Deferred dispatch of one claimed reminder."""
    async def _dispatch(scheduler) -> Optional[bool]:
        return await scheduler.dispatch(transaction_id)

    delivered = run_async(_with_fresh_engine(_dispatch))
    return {"transaction_id": transaction_id, "delivered": delivered}
