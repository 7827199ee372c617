"""Application tests for AlertIntake: submission, classification and channel fan-out."""

import asyncio
import json

from protean import current_domain
from reminders.alert.intake import AlertIntake
from reminders.alert.notification_event import NotificationEvent, ProcessingOutcome
from reminders.alert.processor import AlertProcessor
from reminders.enums import ChannelType
from reminders.job.job import JobKind
from reminders.job.queue import DelayedJobQueue
from reminders.message.message import Message
from reminders.preference.preference import NotificationPreference


def _low_stock(event_id="evt-1", user_id="user-1", current_stock=3):
    return NotificationEvent.create(
        event_id=event_id,
        event_type="low_stock",
        user_id=user_id,
        data={"product_name": "Beard Oil", "location_name": "Main St", "current_stock": current_stock},
    )


def _preferences(user_id="user-1", **overrides):
    defaults = {
        "channels": {ChannelType.EMAIL: True, ChannelType.SMS: True, ChannelType.IN_APP: True},
        "email": "owner@example.com",
        "phone_number": "+1234567890",
    }
    defaults.update(overrides)
    preference = NotificationPreference.create(user_id=user_id, **defaults)
    current_domain.repository_for(NotificationPreference).add(preference)
    return preference


def _event(event_id):
    return current_domain.repository_for(NotificationEvent).find(event_id)


async def _submit_and_classify(intake, queue, event, now):
    await intake.submit(event)
    queued = set()
    for job in await queue.dequeue_ready(now, limit=10):
        if JobKind(job.kind) == JobKind.CLASSIFICATION:
            queued |= await intake.handle(job, now)
            await queue.complete(job.job_id)
    return queued


class TestSubmit:
    def test_submit_stores_event_and_queues_classification(self, clock):
        queue = DelayedJobQueue()
        intake = AlertIntake(queue, AlertProcessor(), clock=clock)

        assert asyncio.run(intake.submit(_low_stock())) is True

        assert _event("evt-1").processed is False
        assert [job.job_id for job in queue.active_jobs()] == ["evt-1-classify"]

    def test_processed_event_is_ignored_on_redelivery(self, clock):
        _preferences()
        queue = DelayedJobQueue()
        intake = AlertIntake(queue, AlertProcessor(), clock=clock)

        async def scenario():
            first = await _submit_and_classify(intake, queue, _low_stock(), clock())
            again = await intake.submit(_low_stock())
            return first, again

        first, again = asyncio.run(scenario())

        assert first == {ChannelType.EMAIL, ChannelType.SMS, ChannelType.IN_APP}
        assert again is False
        assert {job.job_id for job in queue.active_jobs()} == {"evt-1-email", "evt-1-sms", "evt-1-in_app"}

    def test_unprocessed_events_are_resubmitted(self, clock):
        queue = DelayedJobQueue()
        intake = AlertIntake(queue, AlertProcessor(), clock=clock)
        current_domain.repository_for(NotificationEvent).add(_low_stock(event_id="evt-9"))

        assert asyncio.run(intake.resubmit_unprocessed()) == 1
        assert [job.job_id for job in queue.active_jobs()] == ["evt-9-classify"]


class TestHandle:
    def test_critical_low_stock_fans_out_to_enabled_channels(self, clock):
        _preferences(channels={ChannelType.EMAIL: True, ChannelType.SMS: False, ChannelType.IN_APP: True})
        queue = DelayedJobQueue()
        intake = AlertIntake(queue, AlertProcessor(), clock=clock)

        queued = asyncio.run(_submit_and_classify(intake, queue, _low_stock(), clock()))

        assert queued == {ChannelType.EMAIL, ChannelType.IN_APP}
        event = _event("evt-1")
        assert event.processed is True
        assert event.outcome == ProcessingOutcome.ALERTED.value
        assert event.alert_severity == "critical"
        assert sorted(json.loads(event.alert_channels)) == ["email", "in_app"]

        jobs = {job.channel: job for job in queue.active_jobs()}
        assert jobs["email"].recipient == "owner@example.com"
        assert jobs["in_app"].recipient == "user-1"
        assert jobs["email"].template == "low_stock"
        assert jobs["email"].context["severity"] == "critical"

    def test_unsubscribed_event_type_sends_nothing(self, clock):
        _preferences(event_types=["imminent_expiration"])
        queue = DelayedJobQueue()
        intake = AlertIntake(queue, AlertProcessor(), clock=clock)

        queued = asyncio.run(_submit_and_classify(intake, queue, _low_stock(), clock()))

        assert queued == set()
        assert queue.active_jobs() == []
        assert current_domain.repository_for(Message).find("evt-1-email") is None
        event = _event("evt-1")
        assert event.outcome == ProcessingOutcome.DECLINED.value
        assert event.failure_reason == "No eligible channel after preference filtering"

    def test_missing_preferences_send_nothing(self, clock):
        queue = DelayedJobQueue()
        intake = AlertIntake(queue, AlertProcessor(), clock=clock)

        assert asyncio.run(_submit_and_classify(intake, queue, _low_stock(), clock())) == set()
        assert queue.active_jobs() == []

    def test_severity_below_minimum_priority(self, clock):
        _preferences(min_priority="critical")
        queue = DelayedJobQueue()
        intake = AlertIntake(queue, AlertProcessor(), clock=clock)

        queued = asyncio.run(_submit_and_classify(intake, queue, _low_stock(current_stock=15), clock()))
        assert queued == set()

    def test_channel_without_recipient_is_skipped(self, clock):
        _preferences(phone_number=None)
        queue = DelayedJobQueue()
        intake = AlertIntake(queue, AlertProcessor(), clock=clock)

        queued = asyncio.run(_submit_and_classify(intake, queue, _low_stock(), clock()))
        assert queued == {ChannelType.EMAIL, ChannelType.IN_APP}

    def test_declined_event(self, clock):
        _preferences()
        queue = DelayedJobQueue()
        intake = AlertIntake(queue, AlertProcessor(), clock=clock)

        queued = asyncio.run(_submit_and_classify(intake, queue, _low_stock(current_stock=50), clock()))

        assert queued == set()
        event = _event("evt-1")
        assert event.outcome == ProcessingOutcome.DECLINED.value
        assert "threshold" in event.failure_reason

    def test_classification_failure_marks_event_failed(self, clock):
        _preferences()
        queue = DelayedJobQueue()
        intake = AlertIntake(queue, AlertProcessor(), clock=clock)
        event = NotificationEvent.create(event_id="evt-bad", event_type="low_stock", user_id="user-1", data={})

        queued = asyncio.run(_submit_and_classify(intake, queue, event, clock()))

        assert queued == set()
        stored = _event("evt-bad")
        assert stored.processed is True
        assert stored.outcome == ProcessingOutcome.FAILED.value
        assert queue.active_jobs() == []
