"""Main pipeline orchestrator for Solana Wallet Tracker.

This module provides the Pipeline class that wires together all detection
components and manages the event flow from polling to alerting.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from redis.asyncio import Redis

from solana_wallet_tracker.alerter.channels.telegram import TelegramChannel
from solana_wallet_tracker.alerter.dispatcher import AlertChannel, AlertDispatcher
from solana_wallet_tracker.alerter.formatter import AlertFormatter
from solana_wallet_tracker.config import Settings, get_settings
from solana_wallet_tracker.detector.aggregator import SignalAggregator
from solana_wallet_tracker.detector.classifier import TransactionClassifier
from solana_wallet_tracker.detector.models import CoordinatedBuyAlert
from solana_wallet_tracker.ingestor.enrichment import EnrichmentClient
from solana_wallet_tracker.ingestor.models import ChainTransaction
from solana_wallet_tracker.ingestor.poller import PollerRegistry, WalletPoller
from solana_wallet_tracker.ingestor.rpc_client import EndpointPool, RetryingCaller, SolanaRpcClient
from solana_wallet_tracker.storage.models import SubscriberSettings, WalletAddResult
from solana_wallet_tracker.storage.store import TrackerStore

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """State of the pipeline."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class PipelineStats:
    """Statistics for the pipeline."""

    started_at: datetime | None = None
    transactions_processed: int = 0
    signals_generated: int = 0
    alerts_triggered: int = 0
    alerts_sent: int = 0
    webhooks_received: int = 0
    errors: int = 0
    last_transaction_time: datetime | None = None
    last_error: str | None = None


class Pipeline:
    """Main pipeline orchestrator for the Solana Wallet Tracker.

    Pipeline flow:
        WalletPoller → TransactionClassifier → SignalAggregator → AlertDispatcher

    Example:
        ```python
        from solana_wallet_tracker.config import get_settings
        from solana_wallet_tracker.pipeline import Pipeline

        pipeline = Pipeline(get_settings())
        await pipeline.add_wallets("123456789", "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU whale")

        await pipeline.start()
        # Pipeline runs until stop() is called
        await pipeline.stop()
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        dry_run: bool | None = None,
        store: TrackerStore | None = None,
        rpc_client: SolanaRpcClient | None = None,
        enrichment: EnrichmentClient | None = None,
        channels: Sequence[AlertChannel] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            dry_run: If True, log alerts instead of sending them. Overrides
                settings.dry_run.
            store: Subscriber store. A fresh in-memory store by default.
            rpc_client: Chain query client. Built from settings.rpc if omitted.
            enrichment: Enrichment client. Built from settings.enrichment if omitted.
            channels: Alert channels. Built from settings.telegram if omitted.
            sleep: Async sleep used by pollers and backoff.
            clock: Wall clock in epoch seconds.
        """
        self._settings = settings or get_settings()
        self._dry_run = dry_run if dry_run is not None else self._settings.dry_run
        self._sleep = sleep
        self._clock = clock

        self._state = PipelineState.STOPPED
        self._stats = PipelineStats()

        self._store = store or TrackerStore(
            default_sol_threshold=self._settings.defaults.sol_threshold,
            default_required_wallets=self._settings.defaults.required_wallets,
        )

        # Components (initialized in start() unless injected)
        self._redis: Redis | None = None
        self._rpc_client = rpc_client
        self._owns_rpc_client = rpc_client is None
        self._enrichment = enrichment
        self._owns_enrichment = enrichment is None
        self._channels = list(channels) if channels is not None else None
        self._classifier: TransactionClassifier | None = None
        self._aggregator: SignalAggregator | None = None
        self._alert_dispatcher: AlertDispatcher | None = None
        self._pollers: PollerRegistry | None = None

        # Synchronization
        self._stop_event: asyncio.Event | None = None

    @property
    def state(self) -> PipelineState:
        """Current pipeline state."""
        return self._state

    @property
    def stats(self) -> PipelineStats:
        """Current pipeline statistics."""
        return self._stats

    @property
    def is_running(self) -> bool:
        """Check if pipeline is running."""
        return self._state == PipelineState.RUNNING

    @property
    def store(self) -> TrackerStore:
        return self._store

    @property
    def aggregator(self) -> SignalAggregator | None:
        return self._aggregator

    @property
    def pollers(self) -> PollerRegistry | None:
        return self._pollers

    async def start(self) -> None:
        """Start the pipeline.

        Initializes all components and starts a poller for every wallet
        already in the store.

        Raises:
            RuntimeError: If pipeline is already running.
            Exception: If any component fails to initialize.
        """
        if self._state != PipelineState.STOPPED:
            raise RuntimeError(f"Cannot start pipeline in state {self._state}")

        self._state = PipelineState.STARTING
        self._stop_event = asyncio.Event()
        logger.info("Starting pipeline...")

        try:
            await self._initialize_components()
            await self._start_pollers()
            self._stats.started_at = datetime.now(UTC)
            self._state = PipelineState.RUNNING
            logger.info("Pipeline started successfully")
        except Exception as e:
            self._state = PipelineState.ERROR
            self._stats.last_error = str(e)
            logger.error("Failed to start pipeline: %s", e)
            await self._cleanup()
            self._state = PipelineState.STOPPED
            raise

    async def stop(self) -> None:
        """Stop the pipeline gracefully.

        Cancels every poller and cleans up resources.
        """
        if self._state == PipelineState.STOPPED:
            return

        self._state = PipelineState.STOPPING
        logger.info("Stopping pipeline...")

        if self._stop_event:
            self._stop_event.set()

        if self._pollers:
            await self._pollers.cancel_all()
        await self._cleanup()

        self._state = PipelineState.STOPPED
        logger.info("Pipeline stopped")

    def request_stop(self) -> None:
        """Ask ``run()`` to return; safe to call from a signal handler."""
        if self._stop_event:
            self._stop_event.set()

    async def _initialize_components(self) -> None:
        """Initialize all pipeline components."""
        settings = self._settings

        if settings.redis.url:
            logger.debug("Initializing Redis connection...")
            self._redis = Redis.from_url(settings.redis.url)

        if self._rpc_client is None:
            logger.debug("Initializing Solana RPC client...")
            pool = EndpointPool(settings.rpc.endpoint_urls())
            caller = RetryingCaller(pool, max_retries=settings.poller.max_retries, sleep=self._sleep)
            self._rpc_client = SolanaRpcClient(pool, caller=caller, commitment=settings.rpc.commitment)
            self._owns_rpc_client = True

        if self._enrichment is None:
            logger.debug("Initializing enrichment client...")
            api_key = settings.enrichment.api_key
            self._enrichment = EnrichmentClient(
                api_key=api_key.get_secret_value() if api_key else None,
                base_url=settings.enrichment.base_url,
                cache_ttl_seconds=settings.enrichment.cache_ttl_seconds,
                timeout_seconds=settings.enrichment.timeout_seconds,
                redis=self._redis,
            )
            self._owns_enrichment = True

        logger.debug("Initializing detection components...")
        self._classifier = TransactionClassifier(self._enrichment)
        self._aggregator = SignalAggregator(
            window_ttl_seconds=settings.aggregator.window_ttl_seconds,
            clock=self._clock,
        )

        logger.debug("Initializing alerting components...")
        channels = self._channels if self._channels is not None else self._build_alert_channels()
        self._alert_dispatcher = AlertDispatcher(channels, formatter=AlertFormatter(verbosity="detailed"))

        self._pollers = PollerRegistry(self._make_poller)
        logger.info("All components initialized")

    def _build_alert_channels(self) -> list[AlertChannel]:
        """Build list of enabled alert channels."""
        channels: list[AlertChannel] = []
        settings = self._settings

        if settings.telegram.enabled and settings.telegram.bot_token:
            channels.append(
                TelegramChannel(
                    settings.telegram.bot_token.get_secret_value(),
                    settings.telegram.chat_id,
                )
            )
            logger.info("Telegram channel enabled")

        if not channels:
            logger.warning("No alert channels configured")

        return channels

    def _make_poller(self, subscriber_id: str, address: str) -> WalletPoller:
        assert self._rpc_client is not None
        poller_settings = self._settings.poller
        return WalletPoller(
            subscriber_id,
            address,
            store=self._store,
            rpc=self._rpc_client,
            handler=self._on_transaction,
            interval_seconds=poller_settings.interval_seconds,
            signature_limit=poller_settings.signature_limit,
            transaction_delay_seconds=poller_settings.transaction_delay_seconds,
            sleep=self._sleep,
            clock=self._clock,
        )

    async def _start_pollers(self) -> None:
        if not self._pollers:
            return
        count = 0
        for subscriber in self._store.subscribers():
            for address in list(subscriber.wallets):
                await self._pollers.start(subscriber.subscriber_id, address)
                count += 1
        if count:
            logger.info("Started %d wallet pollers", count)

    async def _cleanup(self) -> None:
        """Clean up resources."""
        if self._rpc_client and self._owns_rpc_client:
            await self._rpc_client.aclose()
            self._rpc_client = None

        if self._enrichment and self._owns_enrichment:
            await self._enrichment.aclose()
            self._enrichment = None

        if self._alert_dispatcher:
            for channel in self._alert_dispatcher.channels:
                close = getattr(channel, "aclose", None)
                if callable(close):
                    await close()

        if self._redis:
            await self._redis.aclose()
            self._redis = None

        logger.debug("Resources cleaned up")

    # ------------------------------------------------------------------
    # Subscriber management
    # ------------------------------------------------------------------

    async def add_wallets(self, subscriber_id: str, lines: str | Iterable[str]) -> list[WalletAddResult]:
        """Track wallets for a subscriber, starting pollers when running."""
        results = self._store.add_wallets(subscriber_id, lines)
        if self.is_running and self._pollers:
            for result in results:
                if result.ok:
                    await self._pollers.start(subscriber_id, result.address)
        return results

    async def remove_wallet(self, subscriber_id: str, address: str) -> bool:
        """Stop tracking a wallet; its poller is cancelled before its state is dropped."""
        if self._pollers:
            await self._pollers.cancel(subscriber_id, address)
        return self._store.remove_wallet(subscriber_id, address)

    def pause(self, subscriber_id: str) -> None:
        self._store.set_paused(subscriber_id, True)

    def resume(self, subscriber_id: str) -> None:
        self._store.set_paused(subscriber_id, False)

    # ------------------------------------------------------------------
    # Event flow
    # ------------------------------------------------------------------

    async def _on_transaction(
        self,
        subscriber_id: str,
        address: str,
        tx: ChainTransaction,
        settings: SubscriberSettings,
    ) -> None:
        """Process one transaction of a tracked wallet.

        Errors are logged and counted here so one bad transaction does not
        abort the rest of the poller's tick.
        """
        try:
            await self._process_transaction(subscriber_id, address, tx, settings)
        except Exception as e:
            self._stats.errors += 1
            self._stats.last_error = str(e)
            logger.error("Error processing transaction %s for %s: %s", tx.signature, address, e)

    async def _process_transaction(
        self,
        subscriber_id: str,
        address: str,
        tx: ChainTransaction,
        settings: SubscriberSettings,
    ) -> None:
        if not self._classifier or not self._aggregator:
            return

        self._stats.transactions_processed += 1
        self._stats.last_transaction_time = datetime.now(UTC)
        logger.debug("Processing transaction %s for wallet %s", tx.signature[:8], address[:8])

        signal = await self._classifier.classify(tx, settings, address)
        if signal is None:
            return
        self._stats.signals_generated += 1
        logger.info(
            "Detected buy of %s (%s) for %.4f SOL by %s",
            signal.display_name,
            signal.asset,
            signal.sol_spent,
            address,
        )

        alert = await self._aggregator.ingest(subscriber_id, settings, signal)
        if alert is not None:
            await self._send_alert(alert)

    async def _send_alert(self, alert: CoordinatedBuyAlert) -> None:
        """Format and dispatch a triggered alert."""
        if not self._alert_dispatcher:
            return
        self._stats.alerts_triggered += 1

        subscriber = self._store.get(alert.subscriber_id)
        if subscriber is not None:
            alert = dataclasses.replace(alert, nicknames=subscriber.nicknames())

        if self._dry_run:
            formatted = self._alert_dispatcher.format(alert)
            logger.info("[DRY RUN] Would send alert to %s:\n%s", alert.subscriber_id, formatted.plain_text)
            return

        result = await self._alert_dispatcher.dispatch(alert)

        if result.all_succeeded:
            self._stats.alerts_sent += 1
            logger.info("Alert sent for %s (%s...)", alert.display_name, alert.asset[:8])
        else:
            self._stats.errors += 1
            logger.warning(
                "Alert partially failed: %d/%d channels succeeded",
                result.success_count,
                result.success_count + result.failure_count,
            )

    async def ingest_webhook(self, signature: str, account_keys: Sequence[str] | None = None) -> int:
        """Process a pushed transaction notification.

        The transaction is fetched once and run through classification and
        aggregation for every tracked wallet among its account keys.

        Returns:
            The number of (subscriber, wallet) pairs the transaction was
            processed for.

        Raises:
            RuntimeError: If the pipeline is not running.
        """
        if not self.is_running or not self._rpc_client:
            raise RuntimeError("Pipeline is not running")
        self._stats.webhooks_received += 1

        tx = await self._rpc_client.get_transaction(signature)
        if tx is None:
            logger.info("Webhook transaction %s not available", signature)
            return 0

        keys = list(account_keys) if account_keys else list(tx.account_keys)
        processed = 0
        for address in dict.fromkeys(keys):
            for subscriber, _wallet in self._store.find_trackers(address):
                settings = subscriber.settings()
                if settings.is_paused:
                    continue
                await self._on_transaction(subscriber.subscriber_id, address, tx, settings)
                processed += 1
        return processed

    async def run(self) -> None:
        """Start the pipeline and run until interrupted.

        Example:
            ```python
            pipeline = Pipeline()
            try:
                await pipeline.run()
            except KeyboardInterrupt:
                pass
            ```
        """
        await self.start()

        try:
            await self.run_until_stopped()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    async def run_until_stopped(self) -> None:
        """Block until ``request_stop()`` or ``stop()`` is called."""
        if self._stop_event:
            await self._stop_event.wait()

    async def __aenter__(self) -> Pipeline:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.stop()
