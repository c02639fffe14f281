"""Telegram Bot API delivery channel."""

from __future__ import annotations

import logging

import aiohttp

from solana_wallet_tracker.alerter.models import FormattedAlert

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}"
DEFAULT_TIMEOUT_SECONDS = 10.0


class TelegramChannel:
    """Sends alerts with ``sendMessage`` in HTML parse mode.

    Alerts go to the alert's recipient (the subscriber's chat id), or to
    ``default_chat_id`` when the recipient is empty.
    """

    name = "telegram"

    def __init__(
        self,
        bot_token: str,
        default_chat_id: str | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        api_url: str = TELEGRAM_API_URL,
    ) -> None:
        self._api = api_url.format(token=bot_token)
        self._default_chat_id = default_chat_id
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def aclose(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def send(self, alert: FormattedAlert) -> bool:
        chat_id = alert.recipient or self._default_chat_id
        if not chat_id:
            logger.error("Telegram alert %r has no chat id", alert.title)
            return False

        session = await self._get_session()
        payload = {
            "chat_id": chat_id,
            "text": alert.telegram_html,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        try:
            async with session.post(f"{self._api}/sendMessage", json=payload) as resp:
                if resp.status == 200:
                    return True
                err = await resp.text()
                logger.error("Telegram error (status %d): %s", resp.status, err)
                return False
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.error("Telegram error: %s", e)
            return False
