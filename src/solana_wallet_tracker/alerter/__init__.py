"""Alerting layer - Coordinated-buy alert formatting and delivery."""

from solana_wallet_tracker.alerter.channels.telegram import TelegramChannel
from solana_wallet_tracker.alerter.dispatcher import AlertChannel, AlertDispatcher
from solana_wallet_tracker.alerter.formatter import AlertFormatter
from solana_wallet_tracker.alerter.models import ChannelResult, DispatchResult, FormattedAlert

__all__ = [
    "AlertChannel",
    "AlertDispatcher",
    "AlertFormatter",
    "ChannelResult",
    "DispatchResult",
    "FormattedAlert",
    "TelegramChannel",
]
