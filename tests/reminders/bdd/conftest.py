"""Shared BDD fixtures and step definitions for the Reminders domain."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then
from reminders.booking.booking import Booking
from reminders.enums import ChannelType
from reminders.job.events import (
    ReminderJobCancelled,
    ReminderJobClaimed,
    ReminderJobCompleted,
    ReminderJobRescheduled,
    ReminderJobScheduled,
)
from reminders.job.job import ReminderJob
from reminders.message.events import (
    MessageCreated,
    MessageDeadLettered,
    MessageFailed,
    MessageRetried,
    MessageSent,
)
from reminders.message.message import Message

# Map event name strings to classes for dynamic lookup
_EVENT_CLASSES = {
    "MessageCreated": MessageCreated,
    "MessageSent": MessageSent,
    "MessageFailed": MessageFailed,
    "MessageRetried": MessageRetried,
    "MessageDeadLettered": MessageDeadLettered,
    "ReminderJobScheduled": ReminderJobScheduled,
    "ReminderJobClaimed": ReminderJobClaimed,
    "ReminderJobRescheduled": ReminderJobRescheduled,
    "ReminderJobCancelled": ReminderJobCancelled,
    "ReminderJobCompleted": ReminderJobCompleted,
}

NOW = datetime(2025, 6, 2, 9, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a pending WhatsApp message allowing {max_retries:d} attempts"), target_fixture="aggregate")
def pending_message(max_retries):
    message = Message.create(
        message_id="booking_123-reminder-1",
        channel=ChannelType.WHATSAPP.value,
        recipient="+1234567890",
        body="Hello Ana!",
        booking_id="booking_123",
        max_retries=max_retries,
    )
    message._events.clear()
    return message


@given(parsers.cfparse("a reminder job {hours:d} hours before a booking"), target_fixture="aggregate")
def reminder_job(hours):
    booking = Booking(
        id="booking_123",
        scheduled_time=NOW + timedelta(hours=10),
        customer_name="Ana",
        customer_phone="+1234567890",
    )
    job = ReminderJob.for_reminder(booking, hours // 2, timedelta(hours=2), ChannelType.WHATSAPP)
    job._events.clear()
    return job


# ---------------------------------------------------------------------------
# Then steps (shared)
# ---------------------------------------------------------------------------
@then("the action fails with a validation error")
def action_fails_with_validation_error(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse('the status is "{status}"'))
def status_is(aggregate, status):
    assert aggregate.status == status


@then(parsers.cfparse("a {event_type} event is raised"))
def generic_event_raised(aggregate, event_type):
    event_cls = _EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in aggregate._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in aggregate._events]}"


@then("no event is raised")
def no_event_raised(aggregate):
    assert aggregate._events == []
