"""Fake email/SMS/push adapters and the channel registry."""

import asyncio

import pytest
from reminders.channel import ChannelRegistry, build_channels
from reminders.channel.fake_email import FakeEmailAdapter
from reminders.channel.fake_push import FakePushAdapter
from reminders.channel.fake_sms import FakeSMSAdapter
from reminders.channel.port import OutboundMessage, is_e164
from reminders.enums import ChannelType
from reminders.errors import ConfigurationError, PermanentDeliveryError, TransientDeliveryError


def _outbound(recipient, body="Hello", subject=None):
    return OutboundMessage(message_id="m-1", recipient=recipient, body=body, subject=subject)


class TestE164:
    @pytest.mark.parametrize("number", ["+1234567890", "+447911123456", "+12"])
    def test_valid(self, number):
        assert is_e164(number)

    @pytest.mark.parametrize("number", ["1234567890", "+0123456789", "+1", "+1234567890123456", "", None, "+1 234"])
    def test_invalid(self, number):
        assert not is_e164(number)


class TestFakeEmailAdapter:
    def test_records_sent_email(self):
        adapter = FakeEmailAdapter(from_address="alerts@example.com")

        result = asyncio.run(adapter.send(_outbound("owner@example.com", subject="Low stock")))

        assert result.success is True
        assert result.message_id.startswith("email-")
        assert adapter.sent_messages == [
            {
                "message_id": result.message_id,
                "from": "alerts@example.com",
                "to": "owner@example.com",
                "subject": "Low stock",
                "body": "Hello",
            }
        ]

    def test_rejects_address_without_at(self):
        error = FakeEmailAdapter().validate(_outbound("owner.example.com"))
        assert error.kind == "validation_error"

    def test_unhealthy_without_sender(self):
        assert FakeEmailAdapter(from_address=None).health_check().healthy is False

    def test_configured_failure(self):
        adapter = FakeEmailAdapter()
        adapter.configure(should_succeed=False, failure_reason="Mailbox full")

        result = asyncio.run(adapter.send(_outbound("owner@example.com")))

        assert result.success is False
        assert isinstance(result.error, PermanentDeliveryError)
        assert str(result.error) == "Mailbox full"
        assert adapter.sent_messages == []

    def test_retryable_failure(self):
        adapter = FakeEmailAdapter()
        adapter.configure(should_succeed=False, retryable=True)

        result = asyncio.run(adapter.send(_outbound("owner@example.com")))

        assert isinstance(result.error, TransientDeliveryError)
        assert str(result.error) == "Email delivery failed"

    def test_reset(self):
        adapter = FakeEmailAdapter()
        adapter.configure(should_succeed=False)
        asyncio.run(adapter.send(_outbound("owner@example.com")))

        adapter.reset()

        assert adapter.attempts == 0
        assert asyncio.run(adapter.send(_outbound("owner@example.com"))).success is True


class TestFakeSMSAdapter:
    def test_scripted_failures_run_in_order(self):
        adapter = FakeSMSAdapter()
        adapter.fail_next(TransientDeliveryError("busy"), PermanentDeliveryError("blocked"))

        async def scenario():
            return [await adapter.send(_outbound("+1234567890")) for _ in range(3)]

        first, second, third = asyncio.run(scenario())

        assert str(first.error) == "busy"
        assert str(second.error) == "blocked"
        assert third.success is True
        assert adapter.attempts == 3
        assert len(adapter.sent_messages) == 1

    def test_validates_e164(self):
        adapter = FakeSMSAdapter()
        assert adapter.validate(_outbound("+1234567890")) is None
        assert adapter.validate(_outbound("555-1234")).kind == "validation_error"


class TestFakePushAdapter:
    def test_records_device_token(self):
        adapter = FakePushAdapter()
        message = OutboundMessage(message_id="m-1", recipient="device-abc", body="Hi", subject="T", data={"k": "v"})

        result = asyncio.run(adapter.send(message))

        assert result.message_id.startswith("push-")
        assert adapter.sent_messages[0]["device_token"] == "device-abc"
        assert adapter.sent_messages[0]["data"] == {"k": "v"}

    def test_empty_recipient_is_rejected(self):
        assert FakePushAdapter().validate(_outbound("")).kind == "validation_error"


class TestChannelRegistry:
    def test_lookup_by_type_or_value(self):
        sms = FakeSMSAdapter()
        registry = ChannelRegistry([sms])

        assert registry.get(ChannelType.SMS) is sms
        assert registry.get("sms") is sms
        assert "sms" in registry
        assert "email" not in registry
        assert "carrier-pigeon" not in registry

    def test_unknown_channel_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            ChannelRegistry().get(ChannelType.EMAIL)

    def test_build_channels_registers_every_type(self, settings):
        registry = build_channels(settings)
        assert {adapter.channel for adapter in registry} == set(ChannelType)

    def test_health_check_reports_each_adapter(self, settings):
        registry = build_channels(settings.model_copy(update={"WHATSAPP_AUTH_TOKEN": None}))

        health = registry.health_check()

        assert health[ChannelType.EMAIL].healthy is True
        assert health[ChannelType.WHATSAPP].healthy is False
        assert "auth_token" in health[ChannelType.WHATSAPP].message
