"""Per-wallet incremental transaction polling.

One WalletPoller runs per (subscriber, tracked address). Each tick lists the
newest signatures for the address, walks back to the stored cursor, advances
the cursor and hands the new transactions, oldest first, to a handler.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from solana_wallet_tracker.ingestor.models import ChainTransaction, SignatureInfo
from solana_wallet_tracker.ingestor.rpc_client import SolanaRpcClient
from solana_wallet_tracker.storage.models import SubscriberSettings
from solana_wallet_tracker.storage.store import TrackerStore

logger = logging.getLogger(__name__)


# Default configuration
DEFAULT_INTERVAL_SECONDS = 30.0
DEFAULT_SIGNATURE_LIMIT = 2
DEFAULT_TRANSACTION_DELAY_SECONDS = 0.5

PollKey = tuple[str, str]
TransactionHandler = Callable[[str, str, ChainTransaction, SubscriberSettings], Awaitable[None]]


@dataclass
class PollerStats:
    """Statistics for one wallet poller."""

    ticks: int = 0
    paused_ticks: int = 0
    signatures_seen: int = 0
    transactions_handled: int = 0
    transactions_missing: int = 0
    transactions_before_start: int = 0
    errors: int = 0
    last_tick_time: datetime | None = None
    last_error: str | None = None


class WalletPoller:
    """Polls one tracked wallet for new transactions.

    The cursor is advanced to the newest listed signature before any body
    is fetched, so a transaction whose processing fails is not retried.

    Example:
        ```python
        poller = WalletPoller("chat-1", address, store=store, rpc=rpc, handler=on_tx)
        await poller.seed()
        handled = await poller.tick()
        ```
    """

    def __init__(
        self,
        subscriber_id: str,
        address: str,
        *,
        store: TrackerStore,
        rpc: SolanaRpcClient,
        handler: TransactionHandler,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        signature_limit: int = DEFAULT_SIGNATURE_LIMIT,
        transaction_delay_seconds: float = DEFAULT_TRANSACTION_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the poller.

        Args:
            subscriber_id: Owner of the tracked wallet.
            address: Wallet address to poll.
            store: Store holding the wallet's cursor and start time.
            rpc: Chain query client.
            handler: Awaited with each new transaction, oldest first.
            interval_seconds: Time between ticks.
            signature_limit: Number of newest signatures listed per tick.
            transaction_delay_seconds: Pause between transaction fetches.
            sleep: Async sleep, injectable for tests.
            clock: Wall clock in epoch seconds.
        """
        self._subscriber_id = subscriber_id
        self._address = address
        self._store = store
        self._rpc = rpc
        self._handler = handler
        self._interval = interval_seconds
        self._signature_limit = signature_limit
        self._transaction_delay = transaction_delay_seconds
        self._sleep = sleep
        self._clock = clock
        self._stats = PollerStats()

    @property
    def key(self) -> PollKey:
        return (self._subscriber_id, self._address)

    @property
    def stats(self) -> PollerStats:
        return self._stats

    async def seed(self) -> None:
        """Record the monitoring start time and seed the cursor.

        The cursor is set to the newest existing signature so history from
        before tracking began is never emitted. A failure here is logged and
        polling starts with an empty cursor.
        """
        wallet = self._store.get_wallet(self._subscriber_id, self._address)
        if wallet is None:
            return
        if wallet.monitoring_start_time is None:
            wallet.monitoring_start_time = int(self._clock())
            logger.info(
                "Started monitoring %s (%s) for %s",
                wallet.nickname,
                self._address,
                self._subscriber_id,
            )

        try:
            signatures = await self._rpc.list_recent_signatures(self._address, 1)
        except Exception as e:
            logger.error("Error getting initial signatures for %s: %s", self._address, e)
            return
        if signatures:
            wallet.last_processed_signature = signatures[0].signature
            logger.debug("Seeded cursor for %s at %s", self._address, signatures[0].signature[:8])

    async def tick(self) -> int:
        """Run one polling step. Returns the number of transactions handled."""
        self._stats.ticks += 1
        self._stats.last_tick_time = datetime.now(UTC)

        subscriber = self._store.get(self._subscriber_id)
        wallet = self._store.get_wallet(self._subscriber_id, self._address)
        if subscriber is None or wallet is None:
            return 0

        settings = subscriber.settings()
        if settings.is_paused:
            self._stats.paused_ticks += 1
            return 0

        listed = await self._rpc.list_recent_signatures(self._address, self._signature_limit)
        new_signatures = self._collect_new(listed, wallet.last_processed_signature)
        if not new_signatures:
            return 0

        self._stats.signatures_seen += len(new_signatures)
        wallet.last_processed_signature = new_signatures[0].signature

        start_time = wallet.monitoring_start_time
        handled = 0
        fetched = 0
        for info in reversed(new_signatures):
            if _predates(info.block_time, start_time):
                self._stats.transactions_before_start += 1
                logger.debug("Skipping %s from before monitoring started", info.signature[:8])
                continue

            if fetched:
                await self._sleep(self._transaction_delay)
            fetched += 1

            tx = await self._rpc.get_transaction(info.signature)
            if tx is None:
                self._stats.transactions_missing += 1
                logger.info("Transaction %s not available yet", info.signature)
                continue
            if _predates(tx.block_time, start_time):
                self._stats.transactions_before_start += 1
                continue

            await self._handler(self._subscriber_id, self._address, tx, settings)
            handled += 1

        self._stats.transactions_handled += handled
        return handled

    @staticmethod
    def _collect_new(listed: list[SignatureInfo], cursor: str | None) -> list[SignatureInfo]:
        """Signatures newer than the cursor, newest first."""
        new: list[SignatureInfo] = []
        for info in listed:
            if info.signature == cursor:
                break
            new.append(info)
        return new

    async def _safe_tick(self) -> None:
        try:
            await self.tick()
        except Exception as e:
            self._stats.errors += 1
            self._stats.last_error = str(e)
            logger.error("Error monitoring wallet %s for %s: %s", self._address, self._subscriber_id, e)

    async def run(self) -> None:
        """Seed, then tick every ``interval_seconds`` until cancelled."""
        await self.seed()
        while True:
            await self._sleep(self._interval)
            await self._safe_tick()


def _predates(block_time: int | None, start_time: int | None) -> bool:
    return block_time is not None and start_time is not None and block_time < start_time


@dataclass(frozen=True)
class PollHandle:
    """A running poller and its task."""

    key: PollKey
    poller: WalletPoller
    task: asyncio.Task

    def done(self) -> bool:
        return self.task.done()


PollerFactory = Callable[[str, str], WalletPoller]


class PollerRegistry:
    """One cancellable polling task per (subscriber, address)."""

    def __init__(self, factory: PollerFactory) -> None:
        self._factory = factory
        self._handles: dict[PollKey, PollHandle] = {}

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, key: object) -> bool:
        return key in self._handles

    def get(self, subscriber_id: str, address: str) -> PollHandle | None:
        return self._handles.get((subscriber_id, address))

    def handles(self) -> list[PollHandle]:
        return list(self._handles.values())

    async def start(self, subscriber_id: str, address: str) -> PollHandle:
        """Start polling, replacing any poller already running for the key."""
        key = (subscriber_id, address)
        await self.cancel(subscriber_id, address)

        poller = self._factory(subscriber_id, address)
        task = asyncio.create_task(poller.run(), name=f"poller:{subscriber_id}:{address}")
        handle = PollHandle(key=key, poller=poller, task=task)
        self._handles[key] = handle
        logger.debug("Started poller for %s/%s", subscriber_id, address)
        return handle

    async def cancel(self, subscriber_id: str, address: str) -> bool:
        """Cancel the poller for a key and wait for it to finish."""
        handle = self._handles.pop((subscriber_id, address), None)
        if handle is None:
            return False
        await _cancel_task(handle.task)
        logger.debug("Cancelled poller for %s/%s", subscriber_id, address)
        return True

    async def cancel_all(self) -> None:
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            await _cancel_task(handle.task)
        if handles:
            logger.info("Cancelled %d pollers", len(handles))


async def _cancel_task(task: asyncio.Task) -> None:
    if task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
