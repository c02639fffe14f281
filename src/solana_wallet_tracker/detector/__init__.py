"""Detection layer - Buy classification and coordinated-buy aggregation."""

from solana_wallet_tracker.detector.aggregator import SignalAggregator
from solana_wallet_tracker.detector.classifier import TransactionClassifier, classify_transaction
from solana_wallet_tracker.detector.models import (
    UNKNOWN_ASSET,
    AggregationWindow,
    BuySignal,
    CoordinatedBuyAlert,
)

__all__ = [
    "UNKNOWN_ASSET",
    "AggregationWindow",
    "BuySignal",
    "CoordinatedBuyAlert",
    "SignalAggregator",
    "TransactionClassifier",
    "classify_transaction",
]
