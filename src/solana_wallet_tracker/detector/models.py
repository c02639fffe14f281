"""Data models for the detector module."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from solana_wallet_tracker.ingestor.models import UNKNOWN, TokenEnrichment

UNKNOWN_ASSET = "unknown"


@dataclass(frozen=True)
class BuySignal:
    """A single wallet's net acquisition of an asset in one transaction.

    Attributes:
        wallet_address: The acquiring wallet.
        asset: Mint of the largest positive balance change, or ``"unknown"``.
        sol_spent: Native balance decrease of the fee payer, in SOL.
        asset_amount: Token balance increase (UI units).
        signature: Transaction signature.
        block_time: Block time in epoch seconds, if known.
        enrichment: Token metadata, market and volume data.
    """

    wallet_address: str
    asset: str
    sol_spent: float
    asset_amount: float
    signature: str
    block_time: int | None = None
    enrichment: TokenEnrichment | None = None

    @property
    def is_actionable(self) -> bool:
        return self.asset != UNKNOWN_ASSET

    @property
    def display_name(self) -> str:
        if self.enrichment is None:
            return UNKNOWN
        return self.enrichment.metadata.symbol

    def to_dict(self) -> dict[str, object]:
        return {
            "wallet_address": self.wallet_address,
            "asset": self.asset,
            "sol_spent": self.sol_spent,
            "asset_amount": self.asset_amount,
            "signature": self.signature,
            "block_time": self.block_time,
            "display_name": self.display_name,
        }


@dataclass
class AggregationWindow:
    """Running per-(subscriber, asset) tally of distinct buyers.

    Times are epoch seconds from the aggregator's clock.
    """

    subscriber_id: str
    asset: str
    first_seen: float
    last_updated: float
    display_name: str = UNKNOWN
    buyers: dict[str, float] = field(default_factory=dict)
    enrichment: TokenEnrichment | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.subscriber_id, self.asset)

    @property
    def total_spent(self) -> float:
        return sum(self.buyers.values())

    @property
    def buyer_count(self) -> int:
        return len(self.buyers)

    def add(self, signal: BuySignal, now: float) -> None:
        self.buyers[signal.wallet_address] = self.buyers.get(signal.wallet_address, 0.0) + signal.sol_spent
        self.last_updated = now
        if signal.enrichment is not None:
            self.enrichment = signal.enrichment
            if signal.display_name != UNKNOWN or self.display_name == UNKNOWN:
                self.display_name = signal.display_name


@dataclass(frozen=True)
class CoordinatedBuyAlert:
    """A triggered window, handed to the alert dispatcher.

    Attributes:
        subscriber_id: Alert recipient.
        asset: Mint bought by the wallets.
        display_name: Token symbol or ``Unknown``.
        buyers: Wallet address to cumulative SOL spent (a copy).
        total_spent: Sum of ``buyers``.
        first_seen: Wall-clock time the window opened.
        triggered_at: Wall-clock time the quorum was met.
        enrichment: Token metadata, market and volume data.
        nicknames: Subscriber's wallet nicknames for presentation.
        alert_id: Unique identifier.
    """

    subscriber_id: str
    asset: str
    display_name: str
    buyers: dict[str, float]
    total_spent: float
    first_seen: datetime
    triggered_at: datetime
    enrichment: TokenEnrichment = field(default_factory=TokenEnrichment)
    nicknames: dict[str, str] = field(default_factory=dict)
    alert_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def buyer_count(self) -> int:
        return len(self.buyers)

    def nickname_for(self, address: str) -> str:
        return self.nicknames.get(address) or f"{address[:8]}..."

    def to_dict(self) -> dict[str, object]:
        return {
            "alert_id": self.alert_id,
            "subscriber_id": self.subscriber_id,
            "asset": self.asset,
            "display_name": self.display_name,
            "buyers": dict(self.buyers),
            "buyer_count": self.buyer_count,
            "total_spent": self.total_spent,
            "first_seen": self.first_seen.isoformat(),
            "triggered_at": self.triggered_at.isoformat(),
        }
