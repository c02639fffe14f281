"""In-memory store for subscribers, tracked wallets and polling cursors.

All state lives in this process and is lost on restart.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from solders.pubkey import Pubkey

from solana_wallet_tracker.storage.models import (
    DEFAULT_REQUIRED_WALLETS,
    DEFAULT_SOL_THRESHOLD,
    Subscriber,
    TrackedWallet,
    WalletAddResult,
    WalletAddStatus,
)

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base exception for store errors."""


class UnknownSubscriberError(StoreError):
    """Raised when a subscriber id has never been seen."""

    def __init__(self, subscriber_id: str) -> None:
        super().__init__(f"Unknown subscriber: {subscriber_id}")
        self.subscriber_id = subscriber_id


class InvalidSettingError(StoreError):
    """Raised when a subscriber setting is out of range."""


def is_valid_address(address: str) -> bool:
    """Check that ``address`` parses as a base58 Solana public key."""
    try:
        Pubkey.from_string(address)
    except Exception:
        return False
    return True


def parse_wallet_lines(lines: str | Iterable[str]) -> list[tuple[str, str | None]]:
    """Parse ``address [nickname ...]`` lines, skipping blank ones."""
    if isinstance(lines, str):
        lines = lines.splitlines()
    entries: list[tuple[str, str | None]] = []
    for line in lines:
        parts = line.strip().split()
        if not parts:
            continue
        nickname = " ".join(parts[1:]) or None
        entries.append((parts[0], nickname))
    return entries


class TrackerStore:
    """Owner of all subscriber and watchlist state.

    Subscribers are created lazily on first access and never destroyed.

    Example:
        ```python
        store = TrackerStore()
        results = store.add_wallets("chat-1", "7xKX...AsU whale\\n9WzD...WWM")
        store.set_sol_threshold("chat-1", 1.0)
        ```
    """

    def __init__(
        self,
        *,
        default_sol_threshold: float = DEFAULT_SOL_THRESHOLD,
        default_required_wallets: int = DEFAULT_REQUIRED_WALLETS,
    ) -> None:
        self._default_sol_threshold = default_sol_threshold
        self._default_required_wallets = default_required_wallets
        self._subscribers: dict[str, Subscriber] = {}

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscriber_id: object) -> bool:
        return subscriber_id in self._subscribers

    def subscribers(self) -> Iterator[Subscriber]:
        return iter(list(self._subscribers.values()))

    def get(self, subscriber_id: str) -> Subscriber | None:
        return self._subscribers.get(subscriber_id)

    def get_or_create(self, subscriber_id: str) -> Subscriber:
        subscriber = self._subscribers.get(subscriber_id)
        if subscriber is None:
            subscriber = Subscriber(
                subscriber_id=subscriber_id,
                sol_threshold=self._default_sol_threshold,
                required_wallets=self._default_required_wallets,
            )
            self._subscribers[subscriber_id] = subscriber
            logger.info("Created subscriber %s", subscriber_id)
        return subscriber

    def require(self, subscriber_id: str) -> Subscriber:
        subscriber = self._subscribers.get(subscriber_id)
        if subscriber is None:
            raise UnknownSubscriberError(subscriber_id)
        return subscriber

    # ------------------------------------------------------------------
    # Watchlist
    # ------------------------------------------------------------------

    def add_wallets(
        self,
        subscriber_id: str,
        lines: str | Iterable[str],
    ) -> list[WalletAddResult]:
        """Add wallets from ``address [nickname]`` lines.

        Each address is validated on its own; an invalid one is reported and
        the rest of the batch proceeds. Re-adding a tracked address updates
        its nickname and resets its cursor.
        """
        subscriber = self.get_or_create(subscriber_id)
        results: list[WalletAddResult] = []

        for address, nickname in parse_wallet_lines(lines):
            if not is_valid_address(address):
                logger.info("Rejected invalid wallet address %s for %s", address, subscriber_id)
                results.append(
                    WalletAddResult(
                        address=address,
                        status=WalletAddStatus.INVALID,
                        error=f"Invalid wallet address: {address}",
                    )
                )
                continue

            existing = address in subscriber.wallets
            name = nickname or f"Wallet {len(subscriber.wallets) + 1}"
            subscriber.wallets[address] = TrackedWallet(address=address, nickname=name)
            status = WalletAddStatus.UPDATED if existing else WalletAddStatus.ADDED
            logger.info("%s wallet %s (%s) for %s", status.value.capitalize(), name, address, subscriber_id)
            results.append(WalletAddResult(address=address, status=status, nickname=name))

        return results

    def remove_wallet(self, subscriber_id: str, address: str) -> bool:
        """Stop tracking ``address``, discarding its cursor. Returns whether it was tracked."""
        subscriber = self._subscribers.get(subscriber_id)
        if subscriber is None:
            return False
        removed = subscriber.wallets.pop(address, None)
        if removed is not None:
            logger.info("Removed wallet %s (%s) for %s", removed.nickname, address, subscriber_id)
        return removed is not None

    def get_wallet(self, subscriber_id: str, address: str) -> TrackedWallet | None:
        subscriber = self._subscribers.get(subscriber_id)
        if subscriber is None:
            return None
        return subscriber.wallets.get(address)

    def find_trackers(self, address: str) -> list[tuple[Subscriber, TrackedWallet]]:
        """Every (subscriber, wallet) pair tracking ``address``."""
        return [
            (subscriber, subscriber.wallets[address])
            for subscriber in self._subscribers.values()
            if address in subscriber.wallets
        ]

    def update_cursor(self, subscriber_id: str, address: str, signature: str) -> None:
        wallet = self.get_wallet(subscriber_id, address)
        if wallet is not None:
            wallet.last_processed_signature = signature

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_paused(self, subscriber_id: str, paused: bool) -> None:
        subscriber = self.get_or_create(subscriber_id)
        subscriber.is_paused = paused
        logger.info("%s monitoring for %s", "Paused" if paused else "Resumed", subscriber_id)

    def set_sol_threshold(self, subscriber_id: str, value: float) -> None:
        if not value > 0:
            raise InvalidSettingError(f"SOL threshold must be positive, got {value}")
        self.get_or_create(subscriber_id).sol_threshold = float(value)

    def set_required_wallets(self, subscriber_id: str, value: int) -> None:
        if isinstance(value, bool) or int(value) != value or value < 1:
            raise InvalidSettingError(f"Required wallets must be a positive integer, got {value}")
        self.get_or_create(subscriber_id).required_wallets = int(value)
