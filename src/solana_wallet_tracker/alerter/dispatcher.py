"""Alert dispatch to the configured delivery channels."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from solana_wallet_tracker.alerter.formatter import AlertFormatter
from solana_wallet_tracker.alerter.models import ChannelResult, DispatchResult, FormattedAlert
from solana_wallet_tracker.detector.models import CoordinatedBuyAlert

logger = logging.getLogger(__name__)


@runtime_checkable
class AlertChannel(Protocol):
    """A delivery channel. ``send`` returns True when the message was accepted."""

    name: str

    async def send(self, alert: FormattedAlert) -> bool: ...


@dataclass
class DispatcherStats:
    """Counters for dispatched alerts."""

    alerts_dispatched: int = 0
    deliveries_succeeded: int = 0
    deliveries_failed: int = 0


class AlertDispatcher:
    """Formats an alert and sends it to every channel concurrently.

    ``dispatch`` never raises: channel failures are logged and reported in
    the returned DispatchResult. Failed deliveries are not retried.
    """

    def __init__(
        self,
        channels: Sequence[AlertChannel],
        *,
        formatter: AlertFormatter | None = None,
    ) -> None:
        self._channels = list(channels)
        self._formatter = formatter or AlertFormatter()
        self._stats = DispatcherStats()

    @property
    def channels(self) -> list[AlertChannel]:
        return list(self._channels)

    @property
    def stats(self) -> DispatcherStats:
        return self._stats

    def format(self, alert: CoordinatedBuyAlert) -> FormattedAlert:
        return self._formatter.format(alert)

    async def dispatch(self, alert: CoordinatedBuyAlert) -> DispatchResult:
        self._stats.alerts_dispatched += 1
        try:
            formatted = self._formatter.format(alert)
        except Exception as e:
            logger.error("Failed to format alert for %s: %s", alert.asset, e)
            self._stats.deliveries_failed += len(self._channels)
            return DispatchResult(
                tuple(ChannelResult(channel=c.name, success=False, error=str(e)) for c in self._channels)
            )
        return await self.dispatch_formatted(formatted)

    async def dispatch_formatted(self, formatted: FormattedAlert) -> DispatchResult:
        if not self._channels:
            logger.warning("No alert channels configured; dropping alert %r", formatted.title)
            return DispatchResult()

        outcomes = await asyncio.gather(
            *(channel.send(formatted) for channel in self._channels),
            return_exceptions=True,
        )

        results: list[ChannelResult] = []
        for channel, outcome in zip(self._channels, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error("Alert channel %s raised: %s", channel.name, outcome)
                results.append(ChannelResult(channel=channel.name, success=False, error=str(outcome)))
            elif outcome:
                results.append(ChannelResult(channel=channel.name, success=True))
            else:
                results.append(ChannelResult(channel=channel.name, success=False, error="rejected"))

        result = DispatchResult(tuple(results))
        self._stats.deliveries_succeeded += result.success_count
        self._stats.deliveries_failed += result.failure_count
        return result
