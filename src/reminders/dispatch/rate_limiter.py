"""Per-channel send spacing.

Each channel has a monotonic "next allowed send time". A caller reserves
the earliest free slot synchronously, then sleeps until it. Reservations
on one channel never delay another channel.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping

from reminders.enums import ChannelType


class RateLimiter:
    def __init__(
        self,
        spacing: Mapping[ChannelType, float] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._spacing = {ChannelType(channel): float(seconds) for channel, seconds in (spacing or {}).items()}
        self._next_allowed: dict[ChannelType, float] = {}
        self._clock = clock
        self._sleep = sleep

    def spacing_for(self, channel: ChannelType) -> float:
        return self._spacing.get(channel, 0.0)

    def reserve(self, channel: ChannelType) -> float:
        """Claim the next send slot on ``channel``; returns seconds to wait."""
        channel = ChannelType(channel)
        now = self._clock()
        slot = max(now, self._next_allowed.get(channel, now))
        self._next_allowed[channel] = slot + self.spacing_for(channel)
        return slot - now

    async def acquire(self, channel: ChannelType) -> float:
        """Wait until ``channel`` may send again. Returns the time waited."""
        wait = self.reserve(channel)
        if wait > 0:
            await self._sleep(wait)
        return wait
