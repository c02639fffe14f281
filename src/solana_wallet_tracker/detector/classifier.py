"""Transaction classification into buy signals.

A transaction is a buy when the fee payer's native balance fell by at least
the subscriber's SOL threshold; the bought asset is the token whose balance,
owned by the tracked wallet, increased the most.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Protocol

from solana_wallet_tracker.detector.models import UNKNOWN_ASSET, BuySignal
from solana_wallet_tracker.ingestor.models import LAMPORTS_PER_SOL, ChainTransaction, TokenEnrichment
from solana_wallet_tracker.storage.models import SubscriberSettings

logger = logging.getLogger(__name__)


class EnrichmentSource(Protocol):
    async def get_enrichment(self, mint: str) -> TokenEnrichment: ...


def net_sol_spent(tx: ChainTransaction) -> float:
    """Fee payer's native balance decrease in SOL, floored at zero."""
    return max(0, tx.pre_balances[0] - tx.post_balances[0]) / LAMPORTS_PER_SOL


def largest_token_gain(tx: ChainTransaction, wallet_address: str) -> tuple[str, float]:
    """Mint with the strictly largest positive balance increase for the wallet.

    The first-listed mint wins ties. Returns ``("unknown", 0.0)`` when no
    balance owned by the wallet increased.
    """
    pre_amounts: dict[str, float] = {}
    for balance in tx.pre_token_balances:
        if balance.owner == wallet_address:
            pre_amounts[balance.mint] = balance.amount

    asset = UNKNOWN_ASSET
    amount = 0.0
    for balance in tx.post_token_balances:
        if balance.owner != wallet_address:
            continue
        delta = balance.amount - pre_amounts.get(balance.mint, 0.0)
        if delta > amount:
            asset = balance.mint
            amount = delta
    return asset, amount


def classify_transaction(
    tx: ChainTransaction,
    settings: SubscriberSettings,
    wallet_address: str,
) -> BuySignal | None:
    """Classify a transaction for a tracked wallet.

    Returns:
        A BuySignal, or None when balances are missing or the SOL spent is
        below ``settings.sol_threshold``. The signal's asset is ``"unknown"``
        when no token balance of the wallet increased.
    """
    if not tx.has_native_balances:
        logger.debug("Transaction %s has no native balances", tx.signature)
        return None

    spent = net_sol_spent(tx)
    if spent < settings.sol_threshold:
        logger.debug(
            "Spent %.4f SOL in %s, below threshold of %s SOL",
            spent,
            tx.signature,
            settings.sol_threshold,
        )
        return None

    asset, amount = largest_token_gain(tx, wallet_address)
    if asset == UNKNOWN_ASSET:
        logger.debug("No net token gain found for wallet %s in %s", wallet_address, tx.signature)

    return BuySignal(
        wallet_address=wallet_address,
        asset=asset,
        sol_spent=spent,
        asset_amount=amount,
        signature=tx.signature,
        block_time=tx.block_time,
    )


class TransactionClassifier:
    """Classifies transactions and attaches token enrichment.

    Enrichment is looked up for actionable assets only and never changes
    whether a transaction is a buy.
    """

    def __init__(self, enrichment: EnrichmentSource | None = None) -> None:
        self._enrichment = enrichment

    async def classify(
        self,
        tx: ChainTransaction,
        settings: SubscriberSettings,
        wallet_address: str,
    ) -> BuySignal | None:
        signal = classify_transaction(tx, settings, wallet_address)
        if signal is None or not signal.is_actionable or self._enrichment is None:
            return signal

        try:
            enrichment = await self._enrichment.get_enrichment(signal.asset)
        except Exception as e:
            logger.warning("Enrichment failed for %s: %s", signal.asset, e)
            enrichment = TokenEnrichment.unknown()

        return replace(signal, enrichment=enrichment)
