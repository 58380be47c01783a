"""
TradeDoc Tracker - Deferred Job Queue

One-shot jobs keyed by fire time, used for reminders whose dispatch instant
is in the future.

Backends:
- InProcessJobQueue: heap + single asyncio worker; jobs are lost on restart
  and re-registered by ReminderScheduler.recover_pending()
- CeleryJobQueue: apply_async with an ETA on the Redis broker
"""

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

JobCallback = Callable[[], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(order=True)
class ScheduledJob:
    fire_at: datetime
    seq: int
    key: int = field(compare=False)
    callback: Optional[JobCallback] = field(compare=False, default=None, repr=False)


class InProcessJobQueue:
    """
    Heap of jobs ordered by (fire_at, seq) with one worker task.

    Scheduling an existing key replaces its job; stale heap entries are
    dropped lazily when popped.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._heap: List[ScheduledJob] = []
        self._jobs: Dict[int, ScheduledJob] = {}
        self._counter = itertools.count()
        self._wakeup = asyncio.Event()
        self._worker: Optional[asyncio.Task] = None

    # ===========================================
    # JOB MANAGEMENT
    # ===========================================

    def schedule(self, key: int, fire_at: datetime, callback: JobCallback) -> ScheduledJob:
        job = ScheduledJob(fire_at=fire_at, seq=next(self._counter), key=key, callback=callback)
        if key in self._jobs:
            logger.debug(f"Replacing scheduled job {key}")
        self._jobs[key] = job
        heapq.heappush(self._heap, job)
        self._wakeup.set()
        return job

    def cancel(self, key: int) -> bool:
        job = self._jobs.pop(key, None)
        if job is None:
            return False
        self._wakeup.set()
        logger.info(f"Cancelled scheduled job {key}")
        return True

    def requeue(self, key: int, fire_at: datetime) -> bool:
        job = self._jobs.get(key)
        if job is None:
            return False
        self.schedule(key, fire_at, job.callback)
        return True

    def pending(self) -> List[Tuple[int, datetime]]:
        return sorted(
            ((job.key, job.fire_at) for job in self._jobs.values()),
            key=lambda item: (item[1], item[0]),
        )

    def __contains__(self, key: int) -> bool:
        return key in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    # ===========================================
    # EXECUTION
    # ===========================================

    def _pop_due(self, now: datetime) -> Optional[ScheduledJob]:
        while self._heap:
            head = self._heap[0]
            if self._jobs.get(head.key) is not head:
                heapq.heappop(self._heap)
                continue
            if head.fire_at > now:
                return None
            heapq.heappop(self._heap)
            del self._jobs[head.key]
            return head
        return None

    def _next_fire_at(self) -> Optional[datetime]:
        while self._heap and self._jobs.get(self._heap[0].key) is not self._heap[0]:
            heapq.heappop(self._heap)
        return self._heap[0].fire_at if self._heap else None

    async def run_due(self, now: Optional[datetime] = None) -> int:
        """Run every job due at `now` in fire order; returns how many ran."""
        now = now or self._clock()
        ran = 0
        while True:
            job = self._pop_due(now)
            if job is None:
                return ran
            ran += 1
            try:
                await job.callback()
            except Exception as e:
                logger.error(f"Scheduled job {job.key} failed: {e}", exc_info=True)

    async def _run(self) -> None:
        while True:
            self._wakeup.clear()
            await self.run_due()
            next_fire = self._next_fire_at()
            timeout = None
            if next_fire is not None:
                timeout = max((next_fire - self._clock()).total_seconds(), 0)
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                pass

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
            logger.info("In-process job queue started")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info(f"In-process job queue stopped ({len(self._jobs)} job(s) dropped)")


class CeleryJobQueue:
    """
    Jobs as Celery tasks with an ETA; task id `reminder-<key>`.

    The callback is not shipped to the worker: the task re-enters
    ReminderScheduler.dispatch for the keyed transaction.
    """

    def __init__(self):
        self._scheduled: Dict[int, datetime] = {}

    @staticmethod
    def task_id(key: int) -> str:
        return f"reminder-{key}"

    def schedule(self, key: int, fire_at: datetime, callback: Optional[JobCallback] = None) -> str:
        from tradedoc.tasks.celery_app import celery_app
        from tradedoc.tasks.celery_tasks import dispatch_reminder_task

        celery_app.set_current()
        if key in self._scheduled:
            self.cancel(key)
        dispatch_reminder_task.apply_async(args=[key], eta=fire_at, task_id=self.task_id(key))
        self._scheduled[key] = fire_at
        return self.task_id(key)

    def cancel(self, key: int) -> bool:
        from tradedoc.tasks.celery_app import celery_app

        celery_app.control.revoke(self.task_id(key))
        logger.info(f"Revoked Celery job {self.task_id(key)}")
        return self._scheduled.pop(key, None) is not None

    def requeue(self, key: int, fire_at: datetime) -> bool:
        known = key in self._scheduled
        self.schedule(key, fire_at)
        return known

    def pending(self) -> List[Tuple[int, datetime]]:
        """Jobs scheduled by this process; the broker is not queried."""
        return sorted(self._scheduled.items(), key=lambda item: (item[1], item[0]))

    def __contains__(self, key: int) -> bool:
        return key in self._scheduled

    def __len__(self) -> int:
        return len(self._scheduled)

    def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass
