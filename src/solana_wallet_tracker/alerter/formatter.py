"""Alert message formatter for coordinated-buy alerts.

This module transforms CoordinatedBuyAlert objects into human-readable
messages for Telegram (HTML parse mode) and plain text.
"""

from __future__ import annotations

import html
from typing import Literal

from solana_wallet_tracker.alerter.models import FormattedAlert
from solana_wallet_tracker.detector.models import CoordinatedBuyAlert
from solana_wallet_tracker.ingestor.models import UNKNOWN, TokenMarketData, TokenMetadata

# Trade links
PUMP_FUN_URL = "https://pump.fun/token/{mint}"
PHOTON_URL = "https://photon-sol.tinyastro.io/en/lp/{mint}"
JUPITER_URL = "https://jup.ag/swap/SOL-{mint}"
RAYDIUM_URL = "https://raydium.io/swap/?inputCurrency=sol&outputCurrency={mint}"
SOLSCAN_TOKEN_URL = "https://solscan.io/token/{mint}"
TWITTER_URL = "https://twitter.com/{handle}"

TRADE_LINKS = (
    ("pump_fun", "Pump.fun", PUMP_FUN_URL),
    ("photon", "Photon", PHOTON_URL),
    ("jupiter", "Jupiter", JUPITER_URL),
    ("raydium", "Raydium", RAYDIUM_URL),
)

SEPARATOR = "━" * 28


def truncate_address(address: str, chars: int = 4) -> str:
    """Truncate a base58 address to ABCD...WXYZ format."""
    if len(address) < chars * 2 + 3:
        return address
    return f"{address[:chars]}...{address[-chars:]}"


def format_sol(amount: float) -> str:
    return f"{amount:.4f} SOL"


def format_price(market: TokenMarketData) -> str:
    usd = f"${market.price_usd:.8f}" if market.price_usd else f"${UNKNOWN}"
    sol = f"{market.price_sol:.8f}" if market.price_sol else UNKNOWN
    return f"{usd} ({sol} SOL)"


def format_market_cap(market: TokenMarketData) -> str:
    return f"${market.market_cap:,.0f}" if market.market_cap else UNKNOWN


def format_bonding_progress(market: TokenMarketData) -> str | None:
    if not market.bonding_progress:
        return None
    return f"{market.bonding_progress * 100:.2f}%"


def social_links(metadata: TokenMetadata) -> dict[str, str]:
    """Social links that are present in the metadata."""
    links: dict[str, str] = {}
    if metadata.twitter:
        handle = metadata.twitter.replace("@", "")
        links["twitter"] = handle if handle.startswith("http") else TWITTER_URL.format(handle=handle)
    if metadata.telegram:
        links["telegram"] = metadata.telegram
    if metadata.website:
        links["website"] = metadata.website
    return links


class AlertFormatter:
    """Formats CoordinatedBuyAlerts into multi-channel alert messages.

    Supports two verbosity levels:
    - compact: token, buyer count and collective SOL only
    - detailed: buyer list, market data, social and trade links
    """

    def __init__(
        self,
        verbosity: Literal["compact", "detailed"] = "detailed",
    ) -> None:
        self.verbosity = verbosity

    def format(self, alert: CoordinatedBuyAlert) -> FormattedAlert:
        """Format a coordinated-buy alert for every channel."""
        metadata = alert.enrichment.metadata
        display_name = alert.display_name if alert.display_name != UNKNOWN else metadata.symbol

        links = self._build_links(alert)
        title = f"Coordinated buy: {display_name} ({alert.buyer_count} wallets)"
        body = (
            f"{alert.buyer_count} tracked wallets bought {display_name} "
            f"({truncate_address(alert.asset)}) for {format_sol(alert.total_spent)}"
        )

        return FormattedAlert(
            recipient=alert.subscriber_id,
            title=title,
            body=body,
            telegram_html=self._build_telegram_html(alert, display_name, links),
            plain_text=self._build_plain_text(alert, display_name, links),
            links=links,
        )

    def _build_links(self, alert: CoordinatedBuyAlert) -> dict[str, str]:
        links = {key: url.format(mint=alert.asset) for key, _, url in TRADE_LINKS}
        links["solscan"] = SOLSCAN_TOKEN_URL.format(mint=alert.asset)
        links.update(social_links(alert.enrichment.metadata))
        return links

    def _buyer_lines(self, alert: CoordinatedBuyAlert) -> list[str]:
        return [
            f"{alert.nickname_for(address)} ({format_sol(spent)})"
            for address, spent in alert.buyers.items()
        ]

    def _build_telegram_html(
        self,
        alert: CoordinatedBuyAlert,
        display_name: str,
        links: dict[str, str],
    ) -> str:
        """Build Telegram HTML parse-mode message."""
        esc = html.escape
        metadata = alert.enrichment.metadata
        market = alert.enrichment.market

        lines = [
            f"<b>{SEPARATOR}</b>",
            "<b>🔥 COORDINATED BUY ALERT 🔥</b>",
            f"<b>{SEPARATOR}</b>",
            "",
            f"<b>Token:</b> <code>{esc(display_name)}</code>",
        ]
        if metadata.name != UNKNOWN and metadata.name != display_name:
            lines.append(f"<b>Name:</b> {esc(metadata.name)}")
        lines.append(f"<b>Address:</b> <code>{esc(alert.asset)}</code>")
        lines.append("")

        lines.append(f"<b>Buyers ({alert.buyer_count}):</b>")
        lines.extend(esc(line) for line in self._buyer_lines(alert))
        lines.append("")
        lines.append(f"<b>Collective SOL Spent:</b> {format_sol(alert.total_spent)}")

        if self.verbosity == "compact":
            lines.append("")
            lines.append(f'<a href="{esc(links["pump_fun"])}">Pump.fun</a>')
            return "\n".join(lines)

        lines.append("")
        lines.append(f"<b>Price:</b> {esc(format_price(market))}")
        lines.append(f"<b>Market Cap:</b> {esc(format_market_cap(market))}")
        if market.holders:
            lines.append(f"<b>Holders:</b> {market.holders:,}")
        progress = format_bonding_progress(market)
        if progress:
            lines.append(f"<b>Bonding Progress:</b> {progress}")

        socials = [
            (label, links[key])
            for key, label in (("twitter", "Twitter"), ("telegram", "Telegram"), ("website", "Website"))
            if key in links
        ]
        if socials:
            lines.append("")
            lines.append(f"<b>{SEPARATOR}</b>")
            lines.append("<b>Social:</b>")
            lines.extend(f'• <a href="{esc(url)}">{label}</a>' for label, url in socials)

        lines.append("")
        lines.append(f"<b>{SEPARATOR}</b>")
        lines.append("<b>Trade on:</b>")
        lines.extend(f'• <a href="{esc(links[key])}">{label}</a>' for key, label, _ in TRADE_LINKS)
        lines.append(f"<b>{SEPARATOR}</b>")

        return "\n".join(lines)

    def _build_plain_text(
        self,
        alert: CoordinatedBuyAlert,
        display_name: str,
        links: dict[str, str],
    ) -> str:
        """Build plain text format for logs and generic channels."""
        market = alert.enrichment.market

        lines = [
            "COORDINATED BUY DETECTED",
            "=" * 30,
            "",
            f"Token: {display_name}",
            f"Address: {alert.asset}",
            f"Buyers ({alert.buyer_count}):",
        ]
        lines.extend(f"  {line}" for line in self._buyer_lines(alert))
        lines.append(f"Collective SOL Spent: {format_sol(alert.total_spent)}")

        if self.verbosity == "detailed":
            lines.append(f"Price: {format_price(market)}")
            lines.append(f"Market Cap: {format_market_cap(market)}")
            if market.holders:
                lines.append(f"Holders: {market.holders:,}")
            progress = format_bonding_progress(market)
            if progress:
                lines.append(f"Bonding Progress: {progress}")

        lines.append("")
        for key, label, _ in TRADE_LINKS:
            lines.append(f"{label}: {links[key]}")

        return "\n".join(lines)
