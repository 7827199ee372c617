"""Application tests for ReminderScheduler: reminder counts, cancellation and reschedule."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from reminders.booking.booking import Booking, BookingStatus
from reminders.enums import ChannelType
from reminders.job.queue import DelayedJobQueue
from reminders.job.scheduler import ReminderScheduler

NOW = datetime(2025, 6, 2, 9, 0, tzinfo=UTC)


def _booking(hours_ahead=10.0, booking_id="booking_123", **overrides):
    defaults = {
        "id": booking_id,
        "scheduled_time": NOW + timedelta(hours=hours_ahead),
        "customer_name": "Ana",
        "customer_phone": "+1234567890",
    }
    defaults.update(overrides)
    return Booking(**defaults)


@pytest.fixture()
def queue():
    return DelayedJobQueue()


@pytest.fixture()
def scheduler(queue):
    return ReminderScheduler(
        queue,
        interval=timedelta(hours=2),
        min_lead=timedelta(hours=2),
        channel=ChannelType.WHATSAPP,
        clock=lambda: NOW,
    )


class TestScheduleReminders:
    def test_ten_hours_ahead_gives_five_reminders(self, scheduler, queue):
        queued = asyncio.run(scheduler.schedule_reminders(_booking(10)))

        expected = [f"booking_123-reminder-{n}" for n in range(1, 6)]
        assert queued == expected
        assert sorted(job.job_id for job in queue.active_jobs()) == expected

    def test_due_times_count_back_from_appointment(self, scheduler, queue):
        booking = _booking(10)
        asyncio.run(scheduler.schedule_reminders(booking))

        due = {job.reminder_number: job.due_at for job in queue.active_jobs()}
        assert due == {n: booking.scheduled_time - n * timedelta(hours=2) for n in range(1, 6)}

    def test_one_hour_ahead_gives_no_reminders(self, scheduler, queue):
        assert asyncio.run(scheduler.schedule_reminders(_booking(1))) == []
        assert queue.active_jobs() == []

    def test_exactly_min_lead_gives_one_reminder(self, scheduler):
        assert asyncio.run(scheduler.schedule_reminders(_booking(2))) == ["booking_123-reminder-1"]

    def test_partial_interval_rounds_down(self, scheduler):
        assert len(asyncio.run(scheduler.schedule_reminders(_booking(7.5)))) == 3

    def test_past_appointment_gives_no_reminders(self, scheduler):
        assert asyncio.run(scheduler.schedule_reminders(_booking(-3))) == []

    def test_min_lead_longer_than_interval(self, queue):
        scheduler = ReminderScheduler(
            queue, interval=timedelta(hours=1), min_lead=timedelta(hours=4), clock=lambda: NOW
        )
        assert asyncio.run(scheduler.schedule_reminders(_booking(3))) == []
        assert len(asyncio.run(scheduler.schedule_reminders(_booking(5, booking_id="b-2")))) == 5

    def test_rescheduling_same_booking_is_idempotent(self, scheduler, queue):
        async def scenario():
            await scheduler.schedule_reminders(_booking(10))
            return await scheduler.schedule_reminders(_booking(10))

        assert asyncio.run(scenario()) == []
        assert len(queue.active_jobs()) == 5

    @pytest.mark.parametrize("status", [BookingStatus.CANCELLED, BookingStatus.COMPLETED])
    def test_non_schedulable_statuses(self, scheduler, status):
        assert asyncio.run(scheduler.schedule_reminders(_booking(10, status=status))) == []

    def test_pending_bookings_get_reminders(self, scheduler):
        assert len(asyncio.run(scheduler.schedule_reminders(_booking(4, status=BookingStatus.PENDING)))) == 2

    def test_rejects_non_positive_interval(self, queue):
        with pytest.raises(ValueError):
            ReminderScheduler(queue, interval=timedelta(0))


class TestCancelReminders:
    def test_cancel_removes_all_reminders(self, scheduler, queue):
        async def scenario():
            await scheduler.schedule_reminders(_booking(10))
            removed = await scheduler.cancel_reminders("booking_123")
            ready = await queue.dequeue_ready(NOW + timedelta(hours=10), limit=100)
            return removed, ready

        removed, ready = asyncio.run(scenario())
        assert removed == 5
        assert ready == []
        assert queue.active_jobs() == []

    def test_cancel_leaves_other_bookings(self, scheduler, queue):
        async def scenario():
            await scheduler.schedule_reminders(_booking(4))
            await scheduler.schedule_reminders(_booking(4, booking_id="booking_456"))
            await scheduler.cancel_reminders("booking_123")

        asyncio.run(scenario())
        assert {job.booking_id for job in queue.active_jobs()} == {"booking_456"}

    def test_cancelled_booking_cannot_be_scheduled_again(self, scheduler, queue):
        async def scenario():
            await scheduler.cancel_reminders("booking_123")
            return await scheduler.schedule_reminders(_booking(10))

        assert asyncio.run(scenario()) == []
        assert scheduler.is_cancelled("booking_123")
        assert queue.active_jobs() == []

    def test_confirmation_racing_with_cancellation(self, scheduler, queue):
        """Whatever the interleaving, a cancelled booking ends with no pending reminders."""

        async def scenario():
            await asyncio.gather(
                scheduler.schedule_reminders(_booking(10)),
                scheduler.cancel_reminders("booking_123"),
                scheduler.schedule_reminders(_booking(10)),
            )

        asyncio.run(scenario())
        assert queue.active_jobs() == []


class TestRescheduleReminders:
    def test_reschedule_replaces_reminders(self, scheduler, queue):
        async def scenario():
            await scheduler.schedule_reminders(_booking(10))
            return await scheduler.reschedule_reminders(_booking(4))

        queued = asyncio.run(scenario())
        assert queued == ["booking_123-reminder-1", "booking_123-reminder-2"]
        assert len(queue.active_jobs()) == 2
        assert {job.scheduled_time for job in queue.active_jobs()} == {NOW + timedelta(hours=4)}

    def test_reschedule_to_too_soon_clears_reminders(self, scheduler, queue):
        async def scenario():
            await scheduler.schedule_reminders(_booking(10))
            await scheduler.reschedule_reminders(_booking(1))

        asyncio.run(scenario())
        assert queue.active_jobs() == []

    def test_reschedule_after_cancel_is_refused(self, scheduler, queue):
        async def scenario():
            await scheduler.cancel_reminders("booking_123")
            return await scheduler.reschedule_reminders(_booking(10))

        assert asyncio.run(scenario()) == []


class TestReminderStatus:
    def test_lists_booking_reminders(self, scheduler):
        asyncio.run(scheduler.schedule_reminders(_booking(4)))

        status = scheduler.reminder_status("booking_123")
        assert [entry["job_id"] for entry in status] == ["booking_123-reminder-2", "booking_123-reminder-1"]
        assert all(entry["status"] == "pending" for entry in status)

    def test_unknown_booking(self, scheduler):
        assert scheduler.reminder_status("nope") == []


class TestCancellationMemory:
    @pytest.fixture()
    def now(self):
        return [NOW]

    @pytest.fixture()
    def scheduler(self, queue, now):
        return ReminderScheduler(queue, clock=lambda: now[0])

    def test_forgotten_once_the_appointment_has_passed(self, scheduler, now):
        booking = _booking(10)
        asyncio.run(scheduler.cancel_reminders(booking.id, scheduled_time=booking.scheduled_time))
        assert scheduler.is_cancelled(booking.id)

        now[0] = booking.scheduled_time + timedelta(minutes=1)

        assert not scheduler.is_cancelled(booking.id)
        assert scheduler._cancelled == {}

    def test_unknown_appointment_is_forgotten_after_a_month(self, scheduler, now):
        asyncio.run(scheduler.cancel_reminders("booking_123"))

        now[0] = NOW + timedelta(days=29)
        assert scheduler.is_cancelled("booking_123")

        now[0] = NOW + timedelta(days=31)
        assert not scheduler.is_cancelled("booking_123")

    def test_expired_entries_pruned_by_later_cancellations(self, scheduler, now):
        async def scenario():
            for index in range(50):
                booking = _booking(10, booking_id=f"booking_{index:03d}")
                await scheduler.cancel_reminders(booking.id, scheduled_time=booking.scheduled_time)
            now[0] = NOW + timedelta(days=1)
            await scheduler.cancel_reminders("booking_999", scheduled_time=NOW + timedelta(days=2))

        asyncio.run(scenario())
        assert list(scheduler._cancelled) == ["booking_999"]
