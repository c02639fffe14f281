"""Data models for the alerter module."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FormattedAlert:
    """An alert rendered for every supported channel.

    Attributes:
        recipient: Subscriber id the alert is addressed to (a Telegram chat id).
        title: Short headline.
        body: Compact plain body.
        telegram_html: Telegram message using HTML parse mode.
        plain_text: Full plain-text rendering for logs and dry runs.
        links: Named links included in the message.
    """

    recipient: str
    title: str
    body: str
    telegram_html: str
    plain_text: str
    links: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ChannelResult:
    """Outcome of sending to one channel."""

    channel: str
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of dispatching one alert to every channel."""

    results: tuple[ChannelResult, ...] = ()

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def all_succeeded(self) -> bool:
        return bool(self.results) and self.failure_count == 0

    @property
    def any_succeeded(self) -> bool:
        return self.success_count > 0
