"""Tests for the alert formatter."""

from datetime import UTC, datetime

import pytest

from solana_wallet_tracker.alerter.formatter import (
    AlertFormatter,
    format_bonding_progress,
    format_market_cap,
    format_price,
    social_links,
    truncate_address,
)
from solana_wallet_tracker.detector.models import CoordinatedBuyAlert
from solana_wallet_tracker.ingestor.models import TokenEnrichment, TokenMarketData, TokenMetadata

MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
WALLET_A = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
WALLET_B = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


@pytest.fixture
def enriched_alert() -> CoordinatedBuyAlert:
    return CoordinatedBuyAlert(
        subscriber_id="12345",
        asset=MINT,
        display_name="BONK",
        buyers={WALLET_A: 0.3, WALLET_B: 0.35},
        total_spent=0.65,
        first_seen=datetime(2024, 1, 1, 12, 0, tzinfo=UTC),
        triggered_at=datetime(2024, 1, 1, 12, 5, tzinfo=UTC),
        enrichment=TokenEnrichment(
            metadata=TokenMetadata(symbol="BONK", name="Bonk <Inu>", twitter="@bonk_inu"),
            market=TokenMarketData(
                price_usd=0.00002,
                price_sol=0.0000001,
                market_cap=1_234_567,
                bonding_progress=0.4567,
                holders=2500,
            ),
        ),
        nicknames={WALLET_A: "whale & co"},
    )


@pytest.fixture
def bare_alert() -> CoordinatedBuyAlert:
    return CoordinatedBuyAlert(
        subscriber_id="12345",
        asset=MINT,
        display_name="Unknown",
        buyers={WALLET_A: 1.0, WALLET_B: 1.0},
        total_spent=2.0,
        first_seen=datetime(2024, 1, 1, tzinfo=UTC),
        triggered_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


class TestHelpers:
    """Tests for the formatting helpers."""

    def test_truncate_address(self) -> None:
        assert truncate_address(MINT) == "EPjF...Dt1v"
        assert truncate_address("short") == "short"

    def test_unknown_market_values(self) -> None:
        market = TokenMarketData.unknown()

        assert format_price(market) == "$Unknown (Unknown SOL)"
        assert format_market_cap(market) == "Unknown"
        assert format_bonding_progress(market) is None

    def test_market_values(self) -> None:
        market = TokenMarketData(price_usd=0.5, price_sol=0.0025, market_cap=50_000.4, bonding_progress=0.5)

        assert format_price(market) == "$0.50000000 (0.00250000 SOL)"
        assert format_market_cap(market) == "$50,000"
        assert format_bonding_progress(market) == "50.00%"

    def test_social_links(self) -> None:
        links = social_links(
            TokenMetadata(twitter="@bonk", telegram="https://t.me/bonk", website="https://bonk.example")
        )

        assert links == {
            "twitter": "https://twitter.com/bonk",
            "telegram": "https://t.me/bonk",
            "website": "https://bonk.example",
        }

    def test_twitter_url_kept(self) -> None:
        assert social_links(TokenMetadata(twitter="https://x.com/bonk"))["twitter"] == "https://x.com/bonk"


class TestAlertFormatter:
    """Tests for AlertFormatter."""

    def test_recipient_and_title(self, enriched_alert: CoordinatedBuyAlert) -> None:
        formatted = AlertFormatter().format(enriched_alert)

        assert formatted.recipient == "12345"
        assert formatted.title == "Coordinated buy: BONK (2 wallets)"
        assert "0.6500 SOL" in formatted.body

    def test_telegram_html_detailed(self, enriched_alert: CoordinatedBuyAlert) -> None:
        html = AlertFormatter().format(enriched_alert).telegram_html

        assert "COORDINATED BUY ALERT" in html
        assert "<b>Token:</b> <code>BONK</code>" in html
        assert "Bonk &lt;Inu&gt;" in html
        assert "whale &amp; co (0.3000 SOL)" in html
        assert f"{WALLET_B[:8]}... (0.3500 SOL)" in html
        assert "<b>Collective SOL Spent:</b> 0.6500 SOL" in html
        assert "<b>Market Cap:</b> $1,234,567" in html
        assert "<b>Holders:</b> 2,500" in html
        assert "<b>Bonding Progress:</b> 45.67%" in html
        assert 'href="https://twitter.com/bonk_inu"' in html
        assert f'href="https://pump.fun/token/{MINT}"' in html
        assert "Raydium" in html

    def test_compact_html_omits_market(self, enriched_alert: CoordinatedBuyAlert) -> None:
        html = AlertFormatter(verbosity="compact").format(enriched_alert).telegram_html

        assert "Market Cap" not in html
        assert "Trade on" not in html
        assert "Pump.fun" in html

    def test_unknown_enrichment(self, bare_alert: CoordinatedBuyAlert) -> None:
        formatted = AlertFormatter().format(bare_alert)

        assert "<b>Token:</b> <code>Unknown</code>" in formatted.telegram_html
        assert "<b>Market Cap:</b> Unknown" in formatted.telegram_html
        assert "Holders" not in formatted.telegram_html
        assert "Social" not in formatted.telegram_html

    def test_plain_text(self, enriched_alert: CoordinatedBuyAlert) -> None:
        text = AlertFormatter().format(enriched_alert).plain_text

        assert text.startswith("COORDINATED BUY DETECTED")
        assert f"Address: {MINT}" in text
        assert "  whale & co (0.3000 SOL)" in text
        assert f"Jupiter: https://jup.ag/swap/SOL-{MINT}" in text
        assert "<b>" not in text

    def test_links(self, enriched_alert: CoordinatedBuyAlert) -> None:
        links = AlertFormatter().format(enriched_alert).links

        assert links["solscan"] == f"https://solscan.io/token/{MINT}"
        assert links["photon"] == f"https://photon-sol.tinyastro.io/en/lp/{MINT}"
        assert "twitter" in links
