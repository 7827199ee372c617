"""Dispatch worker: the control loop that turns due jobs into deliveries.

Each tick claims a batch of due jobs and runs them on a bounded pool of
tasks. A job either classifies an alert event or delivers one message:
render, pick the channel adapter, wait for the channel's rate limiter,
send, then record the outcome on the Message and either drop the job,
reschedule it for a retry, or dead-letter it.

Failures are isolated per job. Nothing a single job does can stop the
loop; unexpected exceptions are caught at the job boundary and the
job's message goes to dead.
"""

import asyncio
import inspect
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import structlog
from protean.utils.globals import current_domain

from reminders.channel import ChannelRegistry
from reminders.channel.port import DeliveryResult, OutboundMessage
from reminders.dispatch.rate_limiter import RateLimiter
from reminders.dispatch.retry import RetryPolicy
from reminders.errors import DeliveryError, PermanentDeliveryError, TransientDeliveryError
from reminders.job.job import JobKind, ReminderJob
from reminders.job.queue import DelayedJobQueue
from reminders.message.message import Message, MessageStatus
from reminders.templates import render_message
from reminders.utils.logging import bind_job_context, clear_job_context
from reminders.utils.time import as_aware, utc_now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DeliveryAttempt:
    """Outcome of one delivery attempt, published to listeners."""

    job_id: str
    channel: str | None
    success: bool
    attempt: int
    status: str
    event_id: str | None = None
    booking_id: str | None = None
    error: str | None = None
    error_kind: str | None = None
    retry_in: float | None = None  # Seconds until the next attempt


DeliveryListener = Callable[[DeliveryAttempt], object]


class DispatchWorker:
    def __init__(
        self,
        queue: DelayedJobQueue,
        channels: ChannelRegistry,
        rate_limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        intake=None,
        concurrency: int = 5,
        batch_size: int = 10,
        poll_interval: float = 5.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        if concurrency < 1:
            raise ValueError("Worker concurrency must be at least 1")

        self.queue = queue
        self.channels = channels
        self.rate_limiter = rate_limiter or RateLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.intake = intake
        self.concurrency = concurrency
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.clock = clock

        self._semaphore = asyncio.Semaphore(concurrency)
        self._wakeup = asyncio.Event()
        self._in_flight: set[asyncio.Task] = set()
        self._listeners: list[DeliveryListener] = []
        self._counters: Counter = Counter()
        self._loop_task: asyncio.Task | None = None
        self._running = False
        self._paused = False

        queue.on_change(self.wake)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    async def start(self):
        if self._running:
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._run_loop())
        logger.info("Dispatch worker started", concurrency=self.concurrency, batch_size=self.batch_size)

    async def stop(self):
        """Stop polling and wait for in-flight sends to finish."""
        self._running = False
        self._wakeup.set()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
        await self.drain()
        logger.info("Dispatch worker stopped", **self._counter_snapshot())

    def pause(self):
        self._paused = True
        logger.info("Dispatch worker paused")

    def resume(self):
        self._paused = False
        self.wake()
        logger.info("Dispatch worker resumed")

    def wake(self):
        self._wakeup.set()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    def add_listener(self, listener: DeliveryListener) -> None:
        """Subscribe to per-attempt delivery results. Async listeners are awaited."""
        self._listeners.append(listener)

    async def _run_loop(self):
        while self._running:
            self._wakeup.clear()
            try:
                await self.tick()
            except Exception:
                logger.exception("Dispatch tick failed")
            await self._wait_for_work()

    async def _wait_for_work(self):
        if not self._running:
            return

        timeout = self.poll_interval
        if not self._paused:
            next_due = self.queue.next_due_at()
            if next_due is not None:
                timeout = min(timeout, max((next_due - as_aware(self.clock())).total_seconds(), 0.0))

        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout)
        except TimeoutError:
            pass

    # -------------------------------------------------------------------
    # Ticks
    # -------------------------------------------------------------------
    async def tick(self) -> int:
        """Claim due jobs and start them on the pool. Returns jobs claimed."""
        if self._paused:
            return 0

        jobs = await self.queue.dequeue_ready(self.clock(), self.batch_size)
        for job in jobs:
            await self._semaphore.acquire()
            task = asyncio.create_task(self._run_job(job))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
        return len(jobs)

    async def drain(self):
        """Wait until no job is in flight."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def process_due(self) -> int:
        """Run one tick to completion."""
        claimed = await self.tick()
        await self.drain()
        return claimed

    def stats(self) -> dict:
        return {
            "running": self._running,
            "paused": self._paused,
            "in_flight": len(self._in_flight),
            **self._counter_snapshot(),
            "queue": self.queue.stats(),
        }

    def _counter_snapshot(self) -> dict:
        return {key: self._counters[key] for key in ("sent", "retried", "dead", "skipped", "classified")}

    # -------------------------------------------------------------------
    # Job execution
    # -------------------------------------------------------------------
    async def _run_job(self, job: ReminderJob):
        bind_job_context(job_id=job.job_id, kind=job.kind, channel=job.channel)
        log = logger
        try:
            if JobKind(job.kind) == JobKind.CLASSIFICATION:
                await self._classify(job)
            else:
                await self._deliver(job, log)
        except Exception as exc:
            log.error("Job failed unexpectedly", error=str(exc), exc_info=True)
            await self._fail_unexpectedly(job, exc, log)
        finally:
            clear_job_context()
            self._semaphore.release()

    async def _classify(self, job: ReminderJob):
        if self.intake is None:
            raise RuntimeError("No alert intake configured for classification jobs")
        await self.intake.handle(job, self.clock())
        await self.queue.complete(job.job_id)
        self._counters["classified"] += 1

    async def _deliver(self, job: ReminderJob, log):
        now = self.clock()

        if JobKind(job.kind) == JobKind.REMINDER and job.scheduled_time and as_aware(job.scheduled_time) <= now:
            log.info("Appointment already passed, reminder skipped", scheduled_time=str(job.scheduled_time))
            await self.queue.complete(job.job_id)
            self._counters["skipped"] += 1
            return

        messages = current_domain.repository_for(Message)
        message = messages.find(job.message_id)

        if message is None:
            message = Message.create(
                message_id=job.message_id,
                channel=job.channel,
                recipient=job.recipient,
                template=job.template,
                booking_id=job.booking_id,
                event_id=job.event_id,
                max_retries=self.retry_policy.max_retries,
            )
            try:
                content = render_message(job.template, self._render_context(job, now), job.channel)
            except Exception as exc:
                await self._dead_letter(job, message, PermanentDeliveryError(f"Rendering failed: {exc}"), log)
                return
            message.subject = content.get("subject")
            message.body = content["body"]
            messages.add(message)
        elif message.is_terminal:
            log.warning("Message already finished, dropping leftover job", status=message.status)
            await self.queue.complete(job.job_id)
            return
        elif MessageStatus(message.status) == MessageStatus.FAILED:
            message.retry()
            messages.add(message)

        try:
            adapter = self.channels.get(message.channel)
        except DeliveryError as exc:
            await self._dead_letter(job, message, exc, log)
            return

        outbound = OutboundMessage(
            message_id=message.message_id,
            recipient=message.recipient,
            body=message.body,
            subject=message.subject,
            user_id=job.user_id,
            data={"job_id": job.job_id, "event_id": job.event_id, "booking_id": job.booking_id},
        )

        # Recipient problems fail the message without spending an attempt
        validation_error = adapter.validate(outbound)
        if validation_error is not None:
            await self._dead_letter(job, message, validation_error, log)
            return

        await self.rate_limiter.acquire(adapter.channel)

        message.begin_attempt()
        messages.add(message)

        try:
            result = await adapter.send(outbound)
        except Exception as exc:
            result = DeliveryResult(success=False, error=TransientDeliveryError(f"Unexpected adapter error: {exc}"))

        if result.success:
            message.mark_sent(result.message_id, sent_at=self.clock())
            messages.add(message)
            await self.queue.complete(job.job_id)
            self._counters["sent"] += 1
            log.info("Message sent", channel=message.channel, attempts=message.attempts)
            await self._emit(job, message, success=True)
            return

        error = result.error or TransientDeliveryError("Adapter reported failure without an error")
        if self.retry_policy.should_retry(error, message.attempts):
            delay = self.retry_policy.delay_for(message.attempts)
            retry_at = as_aware(self.clock()) + delay
            message.mark_failed(str(error), retry_at, error_kind=error.kind)
            messages.add(message)
            await self.queue.reschedule(job.job_id, retry_at)
            self._counters["retried"] += 1
            log.warning(
                "Delivery failed, retry scheduled",
                channel=message.channel,
                attempts=message.attempts,
                error=str(error),
                retry_in=delay.total_seconds(),
            )
            await self._emit(job, message, success=False, error=error, retry_in=delay.total_seconds())
            return

        await self._dead_letter(job, message, error, log)

    def _render_context(self, job: ReminderJob, now: datetime) -> dict:
        context = job.context
        context["now"] = now
        if job.scheduled_time is not None:
            context["scheduled_time"] = job.scheduled_time
        return context

    async def _dead_letter(self, job: ReminderJob, message: Message, error: DeliveryError, log):
        message.mark_dead(str(error), error_kind=error.kind)
        current_domain.repository_for(Message).add(message)
        await self.queue.complete(job.job_id)
        self._counters["dead"] += 1

        # Error level is what reaches the operator channel
        log.error(
            "Message dead-lettered",
            channel=message.channel,
            recipient=message.recipient,
            attempts=message.attempts,
            error_kind=error.kind,
            reason=str(error),
        )
        await self._emit(job, message, success=False, error=error)

    async def _fail_unexpectedly(self, job: ReminderJob, exc: Exception, log):
        try:
            if JobKind(job.kind) != JobKind.CLASSIFICATION:
                messages = current_domain.repository_for(Message)
                message = messages.find(job.message_id)
                if message is not None and not message.is_terminal:
                    await self._dead_letter(job, message, PermanentDeliveryError(f"Unexpected error: {exc}"), log)
                    return
            await self.queue.complete(job.job_id)
        except Exception:
            log.exception("Could not record failure for job")

    async def _emit(self, job: ReminderJob, message: Message, success: bool, error=None, retry_in=None):
        attempt = DeliveryAttempt(
            job_id=job.job_id,
            channel=message.channel,
            success=success,
            attempt=message.attempts,
            status=message.status,
            event_id=job.event_id,
            booking_id=job.booking_id,
            error=str(error) if error is not None else None,
            error_kind=error.kind if error is not None else None,
            retry_in=retry_in,
        )
        for listener in self._listeners:
            try:
                result = listener(attempt)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Delivery listener failed", job_id=job.job_id)
