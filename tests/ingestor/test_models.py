"""Tests for ingestor data models."""

from datetime import UTC, datetime

from solana_wallet_tracker.ingestor.models import (
    UNKNOWN,
    ChainTransaction,
    SignatureInfo,
    TokenBalance,
    TokenMarketData,
    TokenMetadata,
    TokenVolumeData,
)


def _rpc_transaction(wallet: str, mint: str) -> dict:
    return {
        "slot": 250_000_000,
        "blockTime": 1_700_000_100,
        "meta": {
            "preBalances": [5_000_000_000, 2_039_280],
            "postBalances": [4_500_000_000, 2_039_280],
            "preTokenBalances": [],
            "postTokenBalances": [
                {
                    "accountIndex": 1,
                    "mint": mint,
                    "owner": wallet,
                    "uiTokenAmount": {"uiAmount": 1234.5, "decimals": 6, "amount": "1234500000"},
                }
            ],
        },
        "transaction": {
            "message": {"accountKeys": [wallet, "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"]},
            "signatures": ["abc"],
        },
    }


class TestSignatureInfo:
    """Tests for the SignatureInfo dataclass."""

    def test_from_dict(self) -> None:
        info = SignatureInfo.from_dict({"signature": "5abc", "blockTime": 1_700_000_000, "err": None})

        assert info.signature == "5abc"
        assert info.block_time == 1_700_000_000

    def test_from_dict_without_block_time(self) -> None:
        assert SignatureInfo.from_dict({"signature": "5abc"}).block_time is None


class TestTokenBalance:
    """Tests for the TokenBalance dataclass."""

    def test_null_ui_amount_is_zero(self) -> None:
        balance = TokenBalance.from_dict({"mint": "m", "owner": "o", "uiTokenAmount": {"uiAmount": None}})

        assert balance.amount == 0.0


class TestChainTransaction:
    """Tests for parsing getTransaction results."""

    def test_from_dict(self, wallet_a: str, sample_mint: str) -> None:
        tx = ChainTransaction.from_dict("abc", _rpc_transaction(wallet_a, sample_mint))

        assert tx.signature == "abc"
        assert tx.pre_balances == (5_000_000_000, 2_039_280)
        assert tx.post_balances == (4_500_000_000, 2_039_280)
        assert tx.post_token_balances == (TokenBalance(mint=sample_mint, owner=wallet_a, amount=1234.5),)
        assert tx.block_time == 1_700_000_100
        assert tx.account_keys[0] == wallet_a
        assert tx.has_native_balances

    def test_parsed_account_keys(self, wallet_a: str, sample_mint: str) -> None:
        data = _rpc_transaction(wallet_a, sample_mint)
        data["transaction"]["message"]["accountKeys"] = [
            {"pubkey": wallet_a, "signer": True, "writable": True},
        ]

        tx = ChainTransaction.from_dict("abc", data)

        assert tx.account_keys == (wallet_a,)

    def test_missing_meta(self) -> None:
        tx = ChainTransaction.from_dict("abc", {"transaction": {}})

        assert not tx.has_native_balances
        assert tx.post_token_balances == ()


class TestEnrichmentModels:
    """Tests for token metadata, market and volume models."""

    def test_metadata_defaults_to_unknown(self) -> None:
        metadata = TokenMetadata.from_dict({"symbol": "", "deployer": "dep"})

        assert metadata.symbol == UNKNOWN
        assert metadata.name == UNKNOWN
        assert metadata.deployer == "dep"
        assert not metadata.is_known

    def test_metadata_deploy_timestamp_millis(self) -> None:
        metadata = TokenMetadata.from_dict({"symbol": "BONK", "deploy_timestamp": 1_700_000_000_000})

        assert metadata.deploy_time == datetime.fromtimestamp(1_700_000_000, tz=UTC)
        assert metadata.is_known

    def test_metadata_survives_cache_serialization(self) -> None:
        metadata = TokenMetadata.from_dict(
            {"symbol": "BONK", "name": "Bonk", "deploy_timestamp": "2024-01-01T00:00:00Z", "twitter": "@bonk"}
        )

        assert TokenMetadata.from_dict(metadata.to_dict()) == metadata

    def test_market_data(self) -> None:
        market = TokenMarketData.from_dict(
            {"price_usd": "0.0001", "price_sol": 0.0000005, "current_market_cap": 50_000, "bonding_progress": 0.42},
            holders=321,
        )

        assert market.price_usd == 0.0001
        assert market.market_cap == 50_000.0
        assert market.bonding_progress == 0.42
        assert market.holders == 321

    def test_market_data_unknown(self) -> None:
        market = TokenMarketData.unknown()

        assert market.price_usd is None
        assert market.holders is None

    def test_volume_converts_lamports(self) -> None:
        volume = TokenVolumeData.from_dict(
            {
                "buy_volume_1h": "500000000",
                "buy_volume_24h": 3_000_000_000,
                "sell_volume_24h": 1_500_000_000,
                "last_buy_timestamp": 1_700_000_000,
            }
        )

        assert volume.buy_volume_1h == 0.5
        assert volume.buy_volume_24h == 3.0
        assert volume.sell_volume_24h == 1.5
        assert volume.buy_sell_ratio == 2.0
        assert volume.last_buy_time == datetime.fromtimestamp(1_700_000_000, tz=UTC)
        assert volume.last_sell_time is None

    def test_buy_sell_ratio_without_sells(self) -> None:
        assert TokenVolumeData(buy_volume_24h=2.5).buy_sell_ratio == 2.5
        assert TokenVolumeData().buy_sell_ratio == 0.0
