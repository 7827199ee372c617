"""Reminder scheduling for booking lifecycle events.

Reminders are anchored to the appointment: reminder ``n`` is due
``n * interval`` before ``scheduled_time``. A booking that is closer than
the minimum lead time gets no reminders at all.
"""

import asyncio
import math
import weakref
from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from reminders.booking.booking import Booking
from reminders.enums import ChannelType
from reminders.job.job import ReminderJob, reminder_prefix
from reminders.job.queue import DelayedJobQueue
from reminders.utils.time import as_aware, utc_now

logger = structlog.get_logger(__name__)

# How long a cancelled booking with no known appointment time is remembered.
_TOMBSTONE_TTL = timedelta(days=30)


class ReminderScheduler:
    """Creates and withdraws the reminder jobs of a booking.

    Every operation on a booking runs under that booking's lock, and a
    cancelled booking id is remembered so a confirmation or reschedule
    racing with the cancellation can never recreate its jobs. The memory
    lasts until the appointment has passed, after which nothing could
    schedule reminders for it anyway.
    """

    def __init__(
        self,
        queue: DelayedJobQueue,
        interval: timedelta = timedelta(hours=2),
        min_lead: timedelta = timedelta(hours=2),
        channel: ChannelType = ChannelType.WHATSAPP,
        clock: Callable[[], datetime] = utc_now,
    ):
        if interval <= timedelta(0):
            raise ValueError("Reminder interval must be positive")

        self.queue = queue
        self.interval = interval
        self.min_lead = min_lead
        self.channel = channel
        self.clock = clock

        self._cancelled: dict[str, datetime] = {}
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @classmethod
    def from_settings(cls, queue: DelayedJobQueue, settings, clock: Callable[[], datetime] = utc_now):
        return cls(
            queue,
            interval=timedelta(seconds=settings.REMINDER_INTERVAL_SECONDS),
            min_lead=timedelta(seconds=settings.MIN_LEAD_SECONDS),
            channel=settings.REMINDER_CHANNEL,
            clock=clock,
        )

    def _lock_for(self, booking_id: str) -> asyncio.Lock:
        lock = self._locks.get(booking_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[booking_id] = lock
        return lock

    def reminder_count(self, scheduled_time: datetime, now: datetime) -> int:
        """How many reminders fit between ``now`` and the appointment."""
        lead = as_aware(scheduled_time) - as_aware(now)
        if lead < self.min_lead:
            return 0

        intervals_until = lead / self.interval
        if intervals_until < 1:
            return 0
        return math.floor(intervals_until)

    def is_cancelled(self, booking_id: str) -> bool:
        self._prune_cancelled()
        return booking_id in self._cancelled

    def _prune_cancelled(self):
        now = as_aware(self.clock())
        expired = [booking_id for booking_id, until in self._cancelled.items() if until <= now]
        for booking_id in expired:
            del self._cancelled[booking_id]

    # -------------------------------------------------------------------
    # Lifecycle operations
    # -------------------------------------------------------------------
    async def schedule_reminders(self, booking: Booking) -> list[str]:
        """Enqueue the booking's reminders. Returns the ids newly queued."""
        async with self._lock_for(booking.id):
            return await self._schedule(booking)

    async def cancel_reminders(self, booking_id: str, scheduled_time: datetime | None = None) -> int:
        """Withdraw every pending reminder of the booking.

        Reminders already claimed by the worker are in flight and will
        still be sent. ``scheduled_time`` bounds how long the cancellation
        is remembered.
        """
        async with self._lock_for(booking_id):
            self._prune_cancelled()
            if scheduled_time is not None:
                until = as_aware(scheduled_time)
            else:
                until = as_aware(self.clock()) + _TOMBSTONE_TTL
            self._cancelled[booking_id] = max(until, self._cancelled.get(booking_id, until))
            removed = await self.queue.cancel_by_prefix(reminder_prefix(booking_id), reason="booking cancelled")

        logger.info("Reminders cancelled", booking_id=booking_id, removed=removed)
        return removed

    async def reschedule_reminders(self, booking: Booking) -> list[str]:
        """Replace the booking's reminders with ones for its new time."""
        async with self._lock_for(booking.id):
            removed = await self.queue.cancel_by_prefix(reminder_prefix(booking.id), reason="booking rescheduled")
            logger.info("Reminders withdrawn for reschedule", booking_id=booking.id, removed=removed)
            return await self._schedule(booking)

    async def _schedule(self, booking: Booking) -> list[str]:
        if booking.is_cancelled or self.is_cancelled(booking.id):
            logger.info("Booking is cancelled, no reminders scheduled", booking_id=booking.id)
            return []

        if not booking.is_schedulable:
            logger.info(
                "Booking status does not take reminders",
                booking_id=booking.id,
                status=booking.status.value,
            )
            return []

        count = self.reminder_count(booking.scheduled_time, self.clock())
        if count == 0:
            logger.info(
                "Appointment too soon for reminders",
                booking_id=booking.id,
                scheduled_time=str(booking.scheduled_time),
            )
            return []

        queued = []
        for number in range(1, count + 1):
            job = ReminderJob.for_reminder(booking, number, self.interval, self.channel)
            if await self.queue.enqueue(job):
                queued.append(job.job_id)

        logger.info("Reminders scheduled", booking_id=booking.id, planned=count, queued=len(queued))
        return queued

    # -------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------
    def reminder_status(self, booking_id: str) -> list[dict]:
        """Live reminder jobs of a booking with their queue state."""
        return [
            {
                "job_id": job.job_id,
                "reminder_number": job.reminder_number,
                "status": job.status,
                "due_at": job.due_at,
            }
            for job in self.queue.jobs_with_prefix(reminder_prefix(booking_id))
        ]

