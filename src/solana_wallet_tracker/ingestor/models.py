"""Data models for the ingestor module."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

LAMPORTS_PER_SOL = 1_000_000_000
UNKNOWN = "Unknown"


@dataclass(frozen=True)
class SignatureInfo:
    """A transaction signature as listed for an address (newest first)."""

    signature: str
    block_time: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SignatureInfo:
        """Create a SignatureInfo from an RPC ``getSignaturesForAddress`` item."""
        block_time = data.get("blockTime", data.get("block_time"))
        return cls(
            signature=str(data["signature"]),
            block_time=int(block_time) if block_time is not None else None,
        )


@dataclass(frozen=True)
class TokenBalance:
    """Token balance entry from a transaction's pre/post token balances."""

    mint: str
    owner: str | None
    amount: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenBalance:
        """Create a TokenBalance from an RPC token balance entry.

        The UI amount is used (already scaled by decimals); a missing
        ``uiAmount`` counts as zero.
        """
        ui = data.get("uiTokenAmount") or {}
        amount = ui.get("uiAmount")
        owner = data.get("owner")
        return cls(
            mint=str(data["mint"]),
            owner=str(owner) if owner is not None else None,
            amount=float(amount) if amount is not None else 0.0,
        )


@dataclass(frozen=True)
class ChainTransaction:
    """The parts of a confirmed transaction the classifier needs.

    ``pre_balances``/``post_balances`` are lamports indexed like the
    transaction's account keys; index 0 is the fee payer.
    """

    signature: str
    pre_balances: tuple[int, ...]
    post_balances: tuple[int, ...]
    pre_token_balances: tuple[TokenBalance, ...] = ()
    post_token_balances: tuple[TokenBalance, ...] = ()
    block_time: int | None = None
    account_keys: tuple[str, ...] = ()

    @property
    def has_native_balances(self) -> bool:
        return bool(self.pre_balances) and bool(self.post_balances)

    @classmethod
    def from_dict(cls, signature: str, data: dict[str, Any]) -> ChainTransaction:
        """Create a ChainTransaction from a JSON ``getTransaction`` result."""
        meta = data.get("meta") or {}
        message = (data.get("transaction") or {}).get("message") or {}
        keys: list[str] = []
        for key in message.get("accountKeys") or []:
            # jsonParsed encoding wraps keys in objects
            if isinstance(key, dict):
                key = key.get("pubkey")
            if key:
                keys.append(str(key))

        block_time = data.get("blockTime")
        return cls(
            signature=signature,
            pre_balances=tuple(int(b) for b in meta.get("preBalances") or ()),
            post_balances=tuple(int(b) for b in meta.get("postBalances") or ()),
            pre_token_balances=tuple(
                TokenBalance.from_dict(b) for b in meta.get("preTokenBalances") or () if b.get("mint")
            ),
            post_token_balances=tuple(
                TokenBalance.from_dict(b) for b in meta.get("postTokenBalances") or () if b.get("mint")
            ),
            block_time=int(block_time) if block_time is not None else None,
            account_keys=tuple(keys),
        )


def _parse_timestamp(raw: Any) -> datetime | None:
    """Parse an epoch (seconds or milliseconds) or ISO timestamp."""
    if raw is None or raw == "":
        return None
    with contextlib.suppress(TypeError, ValueError, OverflowError, OSError):
        if isinstance(raw, (int, float)) or str(raw).isdigit():
            value = float(raw)
            if value > 1e12:
                value /= 1000.0
            return datetime.fromtimestamp(value, tz=UTC)
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    return None


def _optional_float(raw: Any) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class TokenMetadata:
    """Token metadata; ``symbol``/``name`` fall back to ``Unknown``."""

    symbol: str = UNKNOWN
    name: str = UNKNOWN
    deployer: str | None = None
    deploy_time: datetime | None = None
    is_complete: bool | None = None
    twitter: str | None = None
    telegram: str | None = None
    website: str | None = None

    @property
    def is_known(self) -> bool:
        return self.symbol != UNKNOWN or self.name != UNKNOWN

    @classmethod
    def unknown(cls) -> TokenMetadata:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenMetadata:
        """Create TokenMetadata from a ``/token/metadata`` payload."""
        complete = data.get("is_complete")
        return cls(
            symbol=str(data.get("symbol") or UNKNOWN),
            name=str(data.get("name") or UNKNOWN),
            deployer=data.get("deployer"),
            deploy_time=_parse_timestamp(data.get("deploy_timestamp")),
            is_complete=bool(complete) if complete is not None else None,
            twitter=data.get("twitter") or None,
            telegram=data.get("telegram") or None,
            website=data.get("website") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "deployer": self.deployer,
            "deploy_timestamp": self.deploy_time.isoformat() if self.deploy_time else None,
            "is_complete": self.is_complete,
            "twitter": self.twitter,
            "telegram": self.telegram,
            "website": self.website,
        }


@dataclass(frozen=True)
class TokenMarketData:
    """Market data; every field is ``None`` when unknown."""

    price_usd: float | None = None
    price_sol: float | None = None
    market_cap: float | None = None
    bonding_progress: float | None = None
    holders: int | None = None

    @classmethod
    def unknown(cls) -> TokenMarketData:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, holders: int | None = None) -> TokenMarketData:
        """Create TokenMarketData from a ``/token/marketData`` payload."""
        return cls(
            price_usd=_optional_float(data.get("price_usd")),
            price_sol=_optional_float(data.get("price_sol")),
            market_cap=_optional_float(data.get("current_market_cap")),
            bonding_progress=_optional_float(data.get("bonding_progress")),
            holders=holders,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "price_usd": self.price_usd,
            "price_sol": self.price_sol,
            "current_market_cap": self.market_cap,
            "bonding_progress": self.bonding_progress,
            "holders": self.holders,
        }


@dataclass(frozen=True)
class TokenVolumeData:
    """Volume data in SOL; zeros and ``None`` timestamps when unknown."""

    buy_volume_1h: float = 0.0
    buy_volume_24h: float = 0.0
    sell_volume_24h: float = 0.0
    last_buy_time: datetime | None = None
    last_sell_time: datetime | None = None

    @property
    def buy_sell_ratio(self) -> float:
        if self.sell_volume_24h > 0:
            return self.buy_volume_24h / self.sell_volume_24h
        return self.buy_volume_24h if self.buy_volume_24h > 0 else 0.0

    @classmethod
    def unknown(cls) -> TokenVolumeData:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenVolumeData:
        """Create TokenVolumeData from a ``/token/volume`` payload (lamports)."""

        def sol(key: str) -> float:
            raw = data.get(key) or 0
            try:
                return int(raw) / LAMPORTS_PER_SOL
            except (TypeError, ValueError):
                return 0.0

        return cls(
            buy_volume_1h=sol("buy_volume_1h"),
            buy_volume_24h=sol("buy_volume_24h"),
            sell_volume_24h=sol("sell_volume_24h"),
            last_buy_time=_parse_timestamp(data.get("last_buy_timestamp")),
            last_sell_time=_parse_timestamp(data.get("last_sell_timestamp")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "buy_volume_1h": int(round(self.buy_volume_1h * LAMPORTS_PER_SOL)),
            "buy_volume_24h": int(round(self.buy_volume_24h * LAMPORTS_PER_SOL)),
            "sell_volume_24h": int(round(self.sell_volume_24h * LAMPORTS_PER_SOL)),
            "last_buy_timestamp": self.last_buy_time.isoformat() if self.last_buy_time else None,
            "last_sell_timestamp": self.last_sell_time.isoformat() if self.last_sell_time else None,
        }


@dataclass(frozen=True)
class TokenEnrichment:
    """All enrichment for one asset, as attached to signals and alerts."""

    metadata: TokenMetadata = field(default_factory=TokenMetadata)
    market: TokenMarketData = field(default_factory=TokenMarketData)
    volume: TokenVolumeData = field(default_factory=TokenVolumeData)

    @classmethod
    def unknown(cls) -> TokenEnrichment:
        return cls()
