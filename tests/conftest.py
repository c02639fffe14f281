"""Pytest configuration and fixtures."""

from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest

from solana_wallet_tracker.ingestor.models import ChainTransaction, TokenBalance
from solana_wallet_tracker.storage.models import SubscriberSettings

LAMPORTS = 1_000_000_000


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def wallet_a() -> str:
    """A valid base58 wallet address."""
    return "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


@pytest.fixture
def wallet_b() -> str:
    """A second valid base58 wallet address."""
    return "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


@pytest.fixture
def wallet_c() -> str:
    """A third valid base58 wallet address."""
    return "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"


@pytest.fixture
def sample_mint() -> str:
    """A token mint address."""
    return "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep() -> AsyncMock:
    """Async sleep that returns immediately and records delays."""
    return AsyncMock(return_value=None)


@pytest.fixture
def default_settings() -> SubscriberSettings:
    return SubscriberSettings(sol_threshold=0.5, required_wallets=2)


@pytest.fixture
def make_buy_tx() -> Callable[..., ChainTransaction]:
    """Build a transaction where ``wallet`` spends SOL and receives ``mint``."""

    def _make(
        wallet: str,
        mint: str,
        *,
        sol: float,
        tokens: float = 1000.0,
        signature: str = "sig",
        block_time: int | None = 1_700_000_100,
    ) -> ChainTransaction:
        pre = 10 * LAMPORTS
        return ChainTransaction(
            signature=signature,
            pre_balances=(pre, 0),
            post_balances=(pre - int(round(sol * LAMPORTS)), 0),
            pre_token_balances=(),
            post_token_balances=(TokenBalance(mint=mint, owner=wallet, amount=tokens),),
            block_time=block_time,
            account_keys=(wallet,),
        )

    return _make
