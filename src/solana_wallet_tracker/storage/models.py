"""In-memory models for subscribers and their tracked wallets."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

DEFAULT_SOL_THRESHOLD = 0.5
DEFAULT_REQUIRED_WALLETS = 3


@dataclass(frozen=True)
class SubscriberSettings:
    """Immutable snapshot of a subscriber's detection settings.

    Pollers take one snapshot per tick, so a settings change applies from
    the next tick onwards.
    """

    sol_threshold: float = DEFAULT_SOL_THRESHOLD
    required_wallets: int = DEFAULT_REQUIRED_WALLETS
    is_paused: bool = False


@dataclass
class TrackedWallet:
    """A watched wallet address and its polling cursor."""

    address: str
    nickname: str
    last_processed_signature: str | None = None
    monitoring_start_time: int | None = None

    @property
    def short_address(self) -> str:
        return f"{self.address[:8]}...{self.address[-8:]}"


@dataclass
class Subscriber:
    """Alert recipient with its own settings and watchlist."""

    subscriber_id: str
    sol_threshold: float = DEFAULT_SOL_THRESHOLD
    required_wallets: int = DEFAULT_REQUIRED_WALLETS
    is_paused: bool = False
    wallets: dict[str, TrackedWallet] = field(default_factory=dict)

    def settings(self) -> SubscriberSettings:
        return SubscriberSettings(
            sol_threshold=self.sol_threshold,
            required_wallets=self.required_wallets,
            is_paused=self.is_paused,
        )

    def nicknames(self) -> dict[str, str]:
        """Map of address to nickname for presentation."""
        return {address: wallet.nickname for address, wallet in self.wallets.items()}


class WalletAddStatus(str, Enum):
    """Outcome of adding one address to a watchlist."""

    ADDED = "added"
    UPDATED = "updated"
    INVALID = "invalid"


@dataclass(frozen=True)
class WalletAddResult:
    """Per-address outcome of ``TrackerStore.add_wallets``."""

    address: str
    status: WalletAddStatus
    nickname: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not WalletAddStatus.INVALID
