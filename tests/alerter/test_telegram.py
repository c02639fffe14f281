"""Tests for the Telegram channel."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from solana_wallet_tracker.alerter.channels.telegram import TelegramChannel
from solana_wallet_tracker.alerter.models import FormattedAlert


class FakePostResponse:
    def __init__(self, status: int, text: str = "") -> None:
        self.status = status
        self._text = text

    async def text(self) -> str:
        return self._text

    async def __aenter__(self) -> "FakePostResponse":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None


def _alert(recipient: str = "12345") -> FormattedAlert:
    return FormattedAlert(
        recipient=recipient,
        title="Coordinated buy: BONK (2 wallets)",
        body="body",
        telegram_html="<b>alert</b>",
        plain_text="alert",
    )


def _session(**post_kwargs: Any) -> MagicMock:
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    session.post = MagicMock(**post_kwargs)
    return session


class TestTelegramChannel:
    """Tests for TelegramChannel.send."""

    @pytest.mark.asyncio
    async def test_send_message(self) -> None:
        session = _session(return_value=FakePostResponse(200))
        channel = TelegramChannel("123:abc", session=session)

        assert await channel.send(_alert()) is True

        url = session.post.call_args.args[0]
        payload = session.post.call_args.kwargs["json"]
        assert url == "https://api.telegram.org/bot123:abc/sendMessage"
        assert payload == {
            "chat_id": "12345",
            "text": "<b>alert</b>",
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }

    @pytest.mark.asyncio
    async def test_default_chat_id(self) -> None:
        session = _session(return_value=FakePostResponse(200))
        channel = TelegramChannel("123:abc", default_chat_id="999", session=session)

        await channel.send(_alert(recipient=""))

        assert session.post.call_args.kwargs["json"]["chat_id"] == "999"

    @pytest.mark.asyncio
    async def test_missing_chat_id(self) -> None:
        session = _session()
        channel = TelegramChannel("123:abc", session=session)

        assert await channel.send(_alert(recipient="")) is False
        session.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_api_error(self) -> None:
        session = _session(return_value=FakePostResponse(400, '{"ok":false}'))
        channel = TelegramChannel("123:abc", session=session)

        assert await channel.send(_alert()) is False

    @pytest.mark.asyncio
    async def test_network_error(self) -> None:
        session = _session(side_effect=aiohttp.ClientConnectionError("refused"))
        channel = TelegramChannel("123:abc", session=session)

        assert await channel.send(_alert()) is False

    @pytest.mark.asyncio
    async def test_borrowed_session_not_closed(self) -> None:
        session = _session()
        channel = TelegramChannel("123:abc", session=session)

        await channel.aclose()

        session.close.assert_not_awaited()
