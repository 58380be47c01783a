"""
TradeDoc Tracker - Reminder Scheduler

Sends each customer at most one "documents pending" reminder per transaction.

Flow per sweep:
1. Candidates: is_send_email = false AND is_sending_email = false, with a
   customer email resolvable by custno
2. Claim: conditional UPDATE flipping is_sending_email, committed at once;
   losing the race means another sweep owns the transaction
3. Target: (deadline - lead days) at the dispatch hour, business timezone;
   no deadline means now
4. Due today or earlier -> dispatch now, otherwise defer on the job queue
5. Dispatch: stamp reminder_attempted_at, send, set is_send_email on success

A failed attempt keeps the claim. Nothing retries automatically; an
administrator clears the claim with reset_reminder().
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta, timezone
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from tradedoc.config import settings
from tradedoc.models.customer import Customer
from tradedoc.models.transaction import Transaction
from tradedoc.services.email_config_service import EmailConfigService
from tradedoc.services.email_service import EmailService, render_reminder_html
from tradedoc.services.job_queue import CeleryJobQueue, InProcessJobQueue
from tradedoc.services.transaction_store import TransactionStore
from tradedoc.utils.dates import as_aware, business_now, business_tz
from tradedoc.utils.error_handling import (
    BusinessRuleException,
    EmailDeliveryException,
    TransactionNotFoundException,
)
from tradedoc.utils.permissions import Actor, Permission, require_permission

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Counters for one sweep."""
    candidates: int = 0
    claimed: int = 0
    dispatched: int = 0
    deferred: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class ReminderScheduler:
    """Claims, schedules and dispatches reminder emails."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        notifier,
        job_queue,
        lead_days: Optional[int] = None,
        dispatch_hour: Optional[int] = None,
        subject_template: Optional[str] = None,
        clock: Callable[[], datetime] = business_now,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.job_queue = job_queue
        self.lead_days = settings.reminder_lead_days if lead_days is None else lead_days
        self.dispatch_hour = settings.reminder_dispatch_hour if dispatch_hour is None else dispatch_hour
        self.subject_template = subject_template or settings.reminder_subject_template
        self.clock = clock

    # ===========================================
    # TIMING
    # ===========================================

    def compute_target(self, deadline: Optional[date], now: Optional[datetime] = None) -> datetime:
        """Dispatch instant for a deadline, in the business timezone."""
        now = now or self.clock()
        if deadline is None:
            return now
        tz = now.tzinfo or business_tz()
        day = deadline - timedelta(days=self.lead_days)
        return datetime.combine(day, time(hour=self.dispatch_hour), tzinfo=tz)

    @staticmethod
    def is_due(target: datetime, now: datetime) -> bool:
        """Due once the target's calendar day has arrived."""
        local_now = now.astimezone(target.tzinfo)
        return target.date() <= local_now.date() or target <= now

    # ===========================================
    # SWEEP
    # ===========================================

    async def sweep(self) -> SweepReport:
        """Claim every eligible transaction and dispatch or defer its reminder."""
        report = SweepReport()
        now = self.clock()
        claimed = []

        async with self.session_factory() as db:
            store = TransactionStore(db)
            candidates = await store.find_reminder_candidates()
            report.candidates = len(candidates)

            for transaction, _customer in candidates:
                target = self.compute_target(transaction.expected_declaration_date, now)
                if not await store.claim_reminder(transaction.id, target.astimezone(timezone.utc)):
                    report.skipped += 1
                    logger.debug(f"Reminder for transaction {transaction.id} already claimed")
                    continue
                report.claimed += 1
                claimed.append((transaction.id, transaction.trref, target))

        for transaction_id, trref, target in claimed:
            try:
                if self.is_due(target, now):
                    outcome = await self.dispatch(transaction_id)
                    if outcome is True:
                        report.dispatched += 1
                    elif outcome is False:
                        report.failed += 1
                    else:
                        report.skipped += 1
                else:
                    self._defer(transaction_id, target)
                    report.deferred += 1
                    logger.info(f"Reminder for {trref} deferred to {target.isoformat()}")
            except Exception as e:
                # Claim is kept; recover_pending or reset_reminder picks it up
                report.failed += 1
                logger.error(f"Reminder for {trref} aborted: {str(e)}", exc_info=True)

        logger.info(
            f"Reminder sweep: {report.candidates} candidates, {report.claimed} claimed, "
            f"{report.dispatched} sent, {report.deferred} deferred, "
            f"{report.failed} failed, {report.skipped} skipped"
        )
        return report

    def _defer(self, transaction_id: int, fire_at: datetime) -> None:
        self.job_queue.schedule(
            transaction_id,
            fire_at.astimezone(timezone.utc),
            partial(self.dispatch, transaction_id),
        )

    # ===========================================
    # DISPATCH
    # ===========================================

    async def dispatch(self, transaction_id: int) -> Optional[bool]:
        """
        Make the single delivery attempt for a claimed transaction.

        Returns True when delivered, False when the attempt failed and None
        when there was nothing to attempt. Delivery errors never propagate.
        """
        async with self.session_factory() as db:
            result = await db.execute(
                select(Transaction, Customer)
                .join(Customer, Customer.custno == Transaction.custno)
                .where(Transaction.id == transaction_id)
            )
            row = result.first()
            if row is None:
                logger.warning(f"Reminder for transaction {transaction_id} has no customer; not sent")
                return None
            transaction, customer = row

            attempted_at = datetime.now(timezone.utc)
            if not await TransactionStore(db).mark_reminder_attempted(transaction_id, attempted_at):
                logger.warning(f"Reminder for {transaction.trref} is not awaiting an attempt")
                return None
            transaction.reminder_attempted_at = attempted_at

            error: Optional[Exception] = None
            try:
                sender = await EmailConfigService(db).get_active_sender()
                subject = self.subject_template.format(trref=transaction.trref)
                html_body = render_reminder_html(transaction, customer)
                delivered = await self.notifier.send(
                    sender.email,
                    customer.email,
                    subject,
                    html_body,
                    password=sender.password,
                )
            except Exception as e:
                delivered = False
                error = e

            if not delivered:
                failure = EmailDeliveryException(customer.email, transaction.trref, original_error=error)
                logger.error(
                    f"Reminder for {transaction.trref} not delivered: {failure.message}",
                    extra={"code": failure.code.value, "details": failure.details},
                )
                return False

            transaction.is_send_email = True
            transaction.reminder_sent_at = datetime.now(timezone.utc)
            await db.commit()

        logger.info(f"Reminder for {transaction.trref} sent to {customer.email}")
        return True

    # ===========================================
    # RECOVERY & ADMINISTRATION
    # ===========================================

    async def recover_pending(self) -> int:
        """Re-register claims that never reached a delivery attempt."""
        async with self.session_factory() as db:
            claims = await TransactionStore(db).find_unattempted_claims()

        recovered = 0
        now = self.clock()
        for transaction, _customer in claims:
            if transaction.id in self.job_queue:
                continue
            fire_at = as_aware(transaction.reminder_due_at) or now
            self._defer(transaction.id, fire_at)
            recovered += 1

        if recovered:
            logger.info(f"Recovered {recovered} pending reminder(s)")
        return recovered

    def cancel(self, transaction_id: int) -> bool:
        """Drop a deferred job; the claim stays until reset."""
        return self.job_queue.cancel(transaction_id)

    async def list_pending(self) -> List[Dict[str, Any]]:
        """Claimed but undelivered reminders with their job state."""
        async with self.session_factory() as db:
            claims = await TransactionStore(db).find_pending_claims()

        scheduled = dict(self.job_queue.pending())
        return [
            {
                "transaction_id": transaction.id,
                "trref": transaction.trref,
                "custno": transaction.custno,
                "reminder_due_at": as_aware(transaction.reminder_due_at),
                "reminder_attempted_at": as_aware(transaction.reminder_attempted_at),
                "scheduled": transaction.id in scheduled,
                "fire_at": scheduled.get(transaction.id),
            }
            for transaction in claims
        ]

    async def reset_reminder(self, transaction_id: int, actor: Actor) -> Transaction:
        """Clear a stuck claim so the next sweep picks the transaction up again."""
        require_permission(actor, Permission.MANAGE_REMINDERS)

        async with self.session_factory() as db:
            transaction = await TransactionStore(db).get(transaction_id)
            if transaction is None:
                raise TransactionNotFoundException(transaction_id)
            if transaction.is_send_email:
                raise BusinessRuleException(
                    f"Reminder for {transaction.trref} was already delivered",
                    rule="REMINDER_ALREADY_SENT",
                )

            self.job_queue.cancel(transaction_id)
            transaction.is_sending_email = False
            transaction.reminder_due_at = None
            transaction.reminder_attempted_at = None
            transaction.updated_by = actor.name
            await db.commit()
            await db.refresh(transaction)

        logger.info(f"Reminder claim for {transaction.trref} reset by {actor.name}")
        return transaction

    async def run_forever(self, interval_seconds: int) -> None:
        """Periodic sweep loop owned by the application lifespan."""
        while True:
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Reminder sweep failed: {e}", exc_info=True)
            await asyncio.sleep(interval_seconds)


# ===========================================
# DEFAULT INSTANCE
# ===========================================

_scheduler: Optional[ReminderScheduler] = None


def build_job_queue():
    if settings.reminder_job_backend.lower() == "celery":
        return CeleryJobQueue()
    return InProcessJobQueue()


def get_reminder_scheduler() -> ReminderScheduler:
    """Process-wide scheduler; the job queue must outlive requests."""
    global _scheduler
    if _scheduler is None:
        from tradedoc.database import async_session_maker

        _scheduler = ReminderScheduler(
            session_factory=async_session_maker,
            notifier=EmailService(),
            job_queue=build_job_queue(),
        )
    return _scheduler
