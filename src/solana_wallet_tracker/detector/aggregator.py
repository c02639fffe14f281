"""Cross-wallet aggregation of buy signals into coordinated-buy alerts.

Signals are grouped per (subscriber, asset). A window triggers when at
least ``required_wallets`` distinct wallets have together spent at least
``sol_threshold`` SOL, and is removed when it triggers or after it has been
idle for longer than the TTL.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from solana_wallet_tracker.detector.models import AggregationWindow, BuySignal, CoordinatedBuyAlert
from solana_wallet_tracker.ingestor.models import TokenEnrichment
from solana_wallet_tracker.storage.models import SubscriberSettings

logger = logging.getLogger(__name__)


# Default configuration
DEFAULT_WINDOW_TTL_SECONDS = 3600  # 1 hour

WindowKey = tuple[str, str]


@dataclass
class AggregatorStats:
    """Statistics for the signal aggregator."""

    signals_ingested: int = 0
    signals_discarded: int = 0
    windows_opened: int = 0
    windows_triggered: int = 0
    windows_expired: int = 0


class SignalAggregator:
    """Keyed state machine turning buy signals into alerts.

    ``ingest`` is serialized by a single lock, so a window is never read and
    mutated by two signals at once.

    Example:
        ```python
        aggregator = SignalAggregator()
        alert = await aggregator.ingest("chat-1", subscriber.settings(), signal)
        if alert is not None:
            await dispatcher.dispatch(alert)
        ```
    """

    def __init__(
        self,
        *,
        window_ttl_seconds: float = DEFAULT_WINDOW_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the aggregator.

        Args:
            window_ttl_seconds: Idle time after which a window is dropped.
            clock: Wall clock in epoch seconds.
        """
        self._ttl = window_ttl_seconds
        self._clock = clock
        self._windows: dict[WindowKey, AggregationWindow] = {}
        self._lock = asyncio.Lock()
        self._stats = AggregatorStats()

    @property
    def stats(self) -> AggregatorStats:
        return self._stats

    def __len__(self) -> int:
        return len(self._windows)

    def get_window(self, subscriber_id: str, asset: str) -> AggregationWindow | None:
        return self._windows.get((subscriber_id, asset))

    def active_windows(self) -> list[AggregationWindow]:
        return list(self._windows.values())

    async def ingest(
        self,
        subscriber_id: str,
        settings: SubscriberSettings,
        signal: BuySignal,
    ) -> CoordinatedBuyAlert | None:
        """Fold one signal into its window.

        Returns:
            The alert if this signal completed the quorum, else None.
        """
        async with self._lock:
            now = self._clock()
            self._expire(now)
            self._stats.signals_ingested += 1

            if not signal.is_actionable:
                self._stats.signals_discarded += 1
                return None

            key = (subscriber_id, signal.asset)
            window = self._windows.get(key)
            if window is None:
                window = AggregationWindow(
                    subscriber_id=subscriber_id,
                    asset=signal.asset,
                    first_seen=now,
                    last_updated=now,
                )
                self._windows[key] = window
                self._stats.windows_opened += 1

            window.add(signal, now)
            total = window.total_spent
            count = window.buyer_count
            logger.debug(
                "Window %s/%s: %d buyers, %.4f SOL total",
                subscriber_id,
                signal.asset,
                count,
                total,
            )

            if count >= settings.required_wallets and total >= settings.sol_threshold:
                del self._windows[key]
                self._stats.windows_triggered += 1
                logger.info(
                    "Coordinated buy of %s (%s) for %s: %d wallets, %.4f SOL",
                    window.display_name,
                    signal.asset,
                    subscriber_id,
                    count,
                    total,
                )
                return self._build_alert(window, now)

            return None

    def _expire(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if now - window.last_updated > self._ttl]
        for key in expired:
            del self._windows[key]
        if expired:
            self._stats.windows_expired += len(expired)
            logger.debug("Expired %d aggregation windows", len(expired))

    async def sweep(self) -> int:
        """Drop idle windows outside of ``ingest``. Returns how many were dropped."""
        async with self._lock:
            before = len(self._windows)
            self._expire(self._clock())
            return before - len(self._windows)

    @staticmethod
    def _build_alert(window: AggregationWindow, now: float) -> CoordinatedBuyAlert:
        return CoordinatedBuyAlert(
            subscriber_id=window.subscriber_id,
            asset=window.asset,
            display_name=window.display_name,
            buyers=dict(window.buyers),
            total_spent=window.total_spent,
            first_seen=datetime.fromtimestamp(window.first_seen, tz=UTC),
            triggered_at=datetime.fromtimestamp(now, tz=UTC),
            enrichment=window.enrichment or TokenEnrichment.unknown(),
        )
