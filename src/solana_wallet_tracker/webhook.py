"""Inbound webhook HTTP server.

``POST /webhook`` with ``{"signature": "...", "accountKeys": ["..."]}`` runs
the pushed transaction through the pipeline for every tracked wallet among
its account keys.
"""

from __future__ import annotations

import json
import logging

from aiohttp import web

from solana_wallet_tracker.pipeline import Pipeline

logger = logging.getLogger(__name__)

PIPELINE_KEY = web.AppKey("pipeline", Pipeline)


class WebhookPayloadError(ValueError):
    """Raised for a malformed webhook body."""


def parse_payload(body: object) -> tuple[str, list[str]]:
    """Validate a webhook body and return (signature, account keys)."""
    if not isinstance(body, dict):
        raise WebhookPayloadError("Body must be a JSON object")
    signature = body.get("signature")
    if not isinstance(signature, str) or not signature:
        raise WebhookPayloadError("Missing signature")
    account_keys = body.get("accountKeys") or []
    if not isinstance(account_keys, list) or not all(isinstance(k, str) for k in account_keys):
        raise WebhookPayloadError("accountKeys must be a list of strings")
    return signature, account_keys


async def handle_webhook(request: web.Request) -> web.Response:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return web.Response(status=400, text=f"Invalid JSON: {e}")

    try:
        signature, account_keys = parse_payload(body)
    except WebhookPayloadError as e:
        return web.Response(status=400, text=str(e))

    pipeline = request.app[PIPELINE_KEY]
    try:
        processed = await pipeline.ingest_webhook(signature, account_keys)
    except Exception as e:
        logger.error("Webhook error for %s: %s", signature, e)
        return web.Response(status=500, text="Error processing webhook")

    logger.debug("Webhook %s processed for %d tracked wallets", signature[:8], processed)
    return web.Response(text="OK")


async def handle_health(request: web.Request) -> web.Response:
    pipeline = request.app[PIPELINE_KEY]
    return web.json_response({"state": pipeline.state.value, "running": pipeline.is_running})


def create_app(pipeline: Pipeline) -> web.Application:
    app = web.Application()
    app[PIPELINE_KEY] = pipeline
    app.router.add_post("/webhook", handle_webhook)
    app.router.add_get("/health", handle_health)
    return app


class WebhookServer:
    """Runs the webhook app on a TCP site."""

    def __init__(self, pipeline: Pipeline, *, host: str = "0.0.0.0", port: int = 3000) -> None:
        self._app = create_app(pipeline)
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None

    @property
    def app(self) -> web.Application:
        return self._app

    async def start(self) -> None:
        if self._runner is not None:
            return
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, host=self._host, port=self._port)
        await site.start()
        logger.info("Webhook server listening on %s:%d", self._host, self._port)

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        logger.info("Webhook server stopped")
