"""Channel adapter registry: pluggable notification dispatch channels.

The registry is built once per engine and passed explicitly to the
dispatch worker. Fake adapters back email, SMS and push; in-app and
WhatsApp use their real implementations.
"""

from collections.abc import Iterable, Iterator

import httpx

from reminders.channel.port import ChannelAdapter, HealthStatus
from reminders.enums import ChannelType
from reminders.errors import ConfigurationError


class ChannelRegistry:
    def __init__(self, adapters: Iterable[ChannelAdapter] = ()):
        self._adapters: dict[ChannelType, ChannelAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: ChannelAdapter) -> None:
        self._adapters[adapter.channel] = adapter

    def get(self, channel: ChannelType | str) -> ChannelAdapter:
        """Return the adapter for ``channel``.

        Raises ConfigurationError when no adapter is registered, so the
        worker treats it like any other permanent delivery failure.
        """
        try:
            return self._adapters[ChannelType(channel)]
        except (KeyError, ValueError) as exc:
            raise ConfigurationError(f"No adapter registered for channel: {channel}") from exc

    def __contains__(self, channel) -> bool:
        try:
            return ChannelType(channel) in self._adapters
        except ValueError:
            return False

    def __iter__(self) -> Iterator[ChannelAdapter]:
        return iter(self._adapters.values())

    def health_check(self) -> dict[ChannelType, HealthStatus]:
        return {channel: adapter.health_check() for channel, adapter in self._adapters.items()}

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            close = getattr(adapter, "aclose", None)
            if close is not None:
                await close()


def build_channels(settings, http_client: httpx.AsyncClient | None = None) -> ChannelRegistry:
    """Registry with one adapter per channel type, configured from settings."""
    from reminders.channel.fake_email import FakeEmailAdapter
    from reminders.channel.fake_push import FakePushAdapter
    from reminders.channel.fake_sms import FakeSMSAdapter
    from reminders.channel.in_app import InAppAdapter
    from reminders.channel.whatsapp import WhatsAppAdapter

    return ChannelRegistry(
        [
            FakeEmailAdapter(from_address=settings.EMAIL_FROM_ADDRESS),
            FakeSMSAdapter(),
            FakePushAdapter(),
            InAppAdapter(),
            WhatsAppAdapter.from_settings(settings, client=http_client),
        ]
    )
