"""NotificationEngine: the context object wiring the reminders service together.

Built once at process start from ``DispatchSettings`` and passed by
reference to whatever drives it (the server entry point, booking service
integrations, tests). It owns the queue, scheduler, channel registry,
rate limiter, alert processor and dispatch worker; nothing in the
context is a module-level singleton.

All methods that touch persistence must run inside an active
``reminders`` domain context.
"""

from collections.abc import Callable
from datetime import datetime

import httpx
import structlog
from protean.utils.globals import current_domain

from reminders.alert.intake import AlertIntake
from reminders.alert.notification_event import NotificationEvent
from reminders.alert.processor import AlertProcessor
from reminders.booking.booking import Booking
from reminders.channel import ChannelRegistry, build_channels
from reminders.config import DispatchSettings
from reminders.dispatch.rate_limiter import RateLimiter
from reminders.dispatch.retry import RetryPolicy
from reminders.dispatch.worker import DispatchWorker
from reminders.job.job import ReminderJob
from reminders.job.queue import DelayedJobQueue
from reminders.job.scheduler import ReminderScheduler
from reminders.message.message import Message, MessageStatus
from reminders.utils.time import utc_now

logger = structlog.get_logger(__name__)


class NotificationEngine:
    def __init__(
        self,
        settings: DispatchSettings | None = None,
        channels: ChannelRegistry | None = None,
        rate_limiter: RateLimiter | None = None,
        clock: Callable[[], datetime] = utc_now,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or DispatchSettings()
        self.clock = clock

        self.queue = DelayedJobQueue()
        self.channels = channels or build_channels(self.settings, http_client=http_client)
        self.rate_limiter = rate_limiter or RateLimiter(self.settings.channel_spacing())
        self.retry_policy = RetryPolicy.from_settings(self.settings)
        self.scheduler = ReminderScheduler.from_settings(self.queue, self.settings, clock=clock)
        self.processor = AlertProcessor.from_settings(self.settings)
        self.intake = AlertIntake(self.queue, self.processor, clock=clock)
        self.worker = DispatchWorker(
            self.queue,
            self.channels,
            rate_limiter=self.rate_limiter,
            retry_policy=self.retry_policy,
            intake=self.intake,
            concurrency=self.settings.WORKER_CONCURRENCY,
            batch_size=self.settings.WORKER_BATCH_SIZE,
            poll_interval=self.settings.WORKER_POLL_INTERVAL_SECONDS,
            clock=clock,
        )

    # -------------------------------------------------------------------
    # Booking lifecycle
    # -------------------------------------------------------------------
    async def on_booking_confirmed(self, booking: Booking) -> list[str]:
        return await self.scheduler.schedule_reminders(booking)

    async def on_booking_cancelled(self, booking_id: str, booking: Booking | None = None) -> int:
        """Withdraw pending reminders; confirm the cancellation when a phone is known."""
        scheduled_time = booking.scheduled_time if booking is not None else None
        removed = await self.scheduler.cancel_reminders(booking_id, scheduled_time=scheduled_time)

        if booking is not None and booking.customer_phone:
            job = ReminderJob.for_cancellation(booking, self.settings.REMINDER_CHANNEL, due_at=self.clock())
            await self.queue.enqueue(job)

        return removed

    async def on_booking_rescheduled(self, booking: Booking) -> list[str]:
        return await self.scheduler.reschedule_reminders(booking)

    # -------------------------------------------------------------------
    # Alerts
    # -------------------------------------------------------------------
    async def submit(self, event: NotificationEvent) -> bool:
        return await self.intake.submit(event)

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------
    async def start(self):
        """Recover work left by a previous process, then start the worker."""
        await self.queue.release_stale_claims(self.clock())
        await self.intake.resubmit_unprocessed()
        await self.worker.start()

    async def stop(self):
        await self.worker.stop()
        await self.channels.aclose()

    def get_active_jobs(self) -> list[ReminderJob]:
        return self.queue.active_jobs()

    def dead_letters(self) -> list[Message]:
        """Messages that exhausted their attempts or failed permanently."""
        return current_domain.repository_for(Message).find_by_status(MessageStatus.DEAD)

    def add_delivery_listener(self, listener) -> None:
        self.worker.add_listener(listener)

    def health_check(self) -> dict:
        """Aggregate channel health: healthy only if every adapter is."""
        channels = {
            channel.value: {"healthy": status.healthy, "message": status.message}
            for channel, status in self.channels.health_check().items()
        }
        unhealthy = sorted(name for name, status in channels.items() if not status["healthy"])
        return {
            "healthy": not unhealthy,
            "message": f"Unhealthy channels: {', '.join(unhealthy)}" if unhealthy else "All channels healthy",
            "channels": channels,
        }

    def stats(self) -> dict:
        return self.worker.stats()
