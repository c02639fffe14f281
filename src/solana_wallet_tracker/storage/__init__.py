"""Storage layer - In-memory subscribers, watchlists and cursors."""

from solana_wallet_tracker.storage.models import (
    Subscriber,
    SubscriberSettings,
    TrackedWallet,
    WalletAddResult,
    WalletAddStatus,
)
from solana_wallet_tracker.storage.store import (
    InvalidSettingError,
    StoreError,
    TrackerStore,
    UnknownSubscriberError,
    is_valid_address,
    parse_wallet_lines,
)

__all__ = [
    "InvalidSettingError",
    "StoreError",
    "Subscriber",
    "SubscriberSettings",
    "TrackedWallet",
    "TrackerStore",
    "UnknownSubscriberError",
    "WalletAddResult",
    "WalletAddStatus",
    "is_valid_address",
    "parse_wallet_lines",
]
