"""Data ingestion layer - Solana RPC polling and token enrichment."""

from solana_wallet_tracker.ingestor.enrichment import EnrichmentClient, EnrichmentError
from solana_wallet_tracker.ingestor.models import (
    ChainTransaction,
    SignatureInfo,
    TokenBalance,
    TokenEnrichment,
    TokenMarketData,
    TokenMetadata,
    TokenVolumeData,
)
from solana_wallet_tracker.ingestor.poller import PollerRegistry, PollHandle, WalletPoller
from solana_wallet_tracker.ingestor.rpc_client import (
    Endpoint,
    EndpointPool,
    RateLimitError,
    RetryingCaller,
    RpcClientError,
    SolanaRpcClient,
)

__all__ = [
    "ChainTransaction",
    "Endpoint",
    "EndpointPool",
    "EnrichmentClient",
    "EnrichmentError",
    "PollHandle",
    "PollerRegistry",
    "RateLimitError",
    "RetryingCaller",
    "RpcClientError",
    "SignatureInfo",
    "SolanaRpcClient",
    "TokenBalance",
    "TokenEnrichment",
    "TokenMarketData",
    "TokenMetadata",
    "TokenVolumeData",
    "WalletPoller",
]
