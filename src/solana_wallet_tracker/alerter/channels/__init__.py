"""Alert delivery channels."""

from solana_wallet_tracker.alerter.channels.telegram import TelegramChannel

__all__ = ["TelegramChannel"]
