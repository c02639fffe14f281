"""Tests for the in-memory tracker store."""

import pytest

from solana_wallet_tracker.storage import (
    InvalidSettingError,
    TrackerStore,
    UnknownSubscriberError,
    WalletAddStatus,
    is_valid_address,
    parse_wallet_lines,
)


@pytest.fixture
def store() -> TrackerStore:
    return TrackerStore(default_sol_threshold=0.5, default_required_wallets=3)


class TestParsing:
    """Tests for address validation and line parsing."""

    def test_valid_address(self, wallet_a: str) -> None:
        assert is_valid_address(wallet_a)

    @pytest.mark.parametrize("address", ["", "not-an-address", "0OIl" * 11])
    def test_invalid_address(self, address: str) -> None:
        assert not is_valid_address(address)

    def test_parse_lines(self, wallet_a: str, wallet_b: str) -> None:
        text = f"{wallet_a} big whale\n\n   {wallet_b}  \n"

        assert parse_wallet_lines(text) == [(wallet_a, "big whale"), (wallet_b, None)]


class TestWatchlist:
    """Tests for adding and removing wallets."""

    def test_add_wallets_creates_subscriber(self, store: TrackerStore, wallet_a: str, wallet_b: str) -> None:
        results = store.add_wallets("chat-1", [f"{wallet_a} whale", wallet_b])

        assert [r.status for r in results] == [WalletAddStatus.ADDED, WalletAddStatus.ADDED]
        subscriber = store.require("chat-1")
        assert subscriber.sol_threshold == 0.5
        assert subscriber.required_wallets == 3
        assert subscriber.nicknames() == {wallet_a: "whale", wallet_b: "Wallet 2"}

    def test_invalid_address_does_not_abort_batch(self, store: TrackerStore, wallet_a: str) -> None:
        results = store.add_wallets("chat-1", ["bogus", wallet_a])

        assert results[0].status is WalletAddStatus.INVALID
        assert not results[0].ok
        assert "bogus" in results[0].error
        assert results[1].ok
        assert list(store.require("chat-1").wallets) == [wallet_a]

    def test_readd_updates_nickname_and_resets_cursor(self, store: TrackerStore, wallet_a: str) -> None:
        store.add_wallets("chat-1", f"{wallet_a} first")
        store.update_cursor("chat-1", wallet_a, "sig-1")

        results = store.add_wallets("chat-1", f"{wallet_a} second")

        assert results[0].status is WalletAddStatus.UPDATED
        wallet = store.get_wallet("chat-1", wallet_a)
        assert wallet.nickname == "second"
        assert wallet.last_processed_signature is None

    def test_remove_wallet(self, store: TrackerStore, wallet_a: str) -> None:
        store.add_wallets("chat-1", wallet_a)

        assert store.remove_wallet("chat-1", wallet_a) is True
        assert store.get_wallet("chat-1", wallet_a) is None
        assert store.remove_wallet("chat-1", wallet_a) is False
        assert store.remove_wallet("chat-unknown", wallet_a) is False

    def test_find_trackers(self, store: TrackerStore, wallet_a: str, wallet_b: str) -> None:
        store.add_wallets("chat-1", wallet_a)
        store.add_wallets("chat-2", f"{wallet_a} shared")
        store.add_wallets("chat-3", wallet_b)

        trackers = store.find_trackers(wallet_a)

        assert sorted(s.subscriber_id for s, _ in trackers) == ["chat-1", "chat-2"]
        assert store.find_trackers("nobody") == []

    def test_require_unknown(self, store: TrackerStore) -> None:
        with pytest.raises(UnknownSubscriberError):
            store.require("missing")


class TestSettings:
    """Tests for subscriber settings."""

    def test_pause_and_resume(self, store: TrackerStore) -> None:
        store.set_paused("chat-1", True)
        assert store.require("chat-1").settings().is_paused

        store.set_paused("chat-1", False)
        assert not store.require("chat-1").settings().is_paused

    def test_set_sol_threshold(self, store: TrackerStore) -> None:
        store.set_sol_threshold("chat-1", 1.25)

        assert store.require("chat-1").settings().sol_threshold == 1.25

    @pytest.mark.parametrize("value", [0, -1.0, float("nan")])
    def test_rejects_bad_threshold(self, store: TrackerStore, value: float) -> None:
        with pytest.raises(InvalidSettingError):
            store.set_sol_threshold("chat-1", value)

    def test_set_required_wallets(self, store: TrackerStore) -> None:
        store.set_required_wallets("chat-1", 5)

        assert store.require("chat-1").settings().required_wallets == 5

    @pytest.mark.parametrize("value", [0, -2, 1.5, True])
    def test_rejects_bad_required_wallets(self, store: TrackerStore, value) -> None:
        with pytest.raises(InvalidSettingError):
            store.set_required_wallets("chat-1", value)

    def test_settings_snapshot_is_immutable(self, store: TrackerStore) -> None:
        snapshot = store.get_or_create("chat-1").settings()
        store.set_sol_threshold("chat-1", 9.0)

        assert snapshot.sol_threshold == 0.5
