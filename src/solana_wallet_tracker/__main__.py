"""Command-line entry point.

Usage:
    python -m solana_wallet_tracker run [--dry-run] [--watch SUBSCRIBER:ADDRESS[:NICKNAME] ...]
    python -m solana_wallet_tracker config
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from collections.abc import Sequence

from pydantic import ValidationError

from solana_wallet_tracker import __version__
from solana_wallet_tracker.config import ConfigurationError, Settings, get_settings
from solana_wallet_tracker.pipeline import Pipeline
from solana_wallet_tracker.webhook import WebhookServer

logger = logging.getLogger("solana_wallet_tracker")


def parse_watch(value: str) -> tuple[str, str]:
    """Parse ``SUBSCRIBER:ADDRESS[:NICKNAME]`` into (subscriber, wallet line)."""
    parts = value.split(":", 2)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise argparse.ArgumentTypeError(f"expected SUBSCRIBER:ADDRESS[:NICKNAME], got {value!r}")
    line = parts[1] if len(parts) == 2 else f"{parts[1]} {parts[2]}"
    return parts[0], line


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solana_wallet_tracker",
        description="Coordinated buy detection for tracked Solana wallets",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="run the detection pipeline")
    run.add_argument("--dry-run", action="store_true", help="log alerts instead of sending them")
    run.add_argument(
        "--watch",
        action="append",
        type=parse_watch,
        default=[],
        metavar="SUBSCRIBER:ADDRESS[:NICKNAME]",
        help="track a wallet for a subscriber (repeatable)",
    )

    sub.add_parser("config", help="print the effective configuration with secrets redacted")
    return parser


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def run_pipeline(settings: Settings, watches: Sequence[tuple[str, str]]) -> None:
    pipeline = Pipeline(settings)
    for subscriber_id, line in watches:
        for result in await pipeline.add_wallets(subscriber_id, line):
            if not result.ok:
                logger.warning("%s", result.error)

    webhook: WebhookServer | None = None
    if settings.webhook.enabled:
        webhook = WebhookServer(pipeline, host=settings.webhook.host, port=settings.webhook.port)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, pipeline.request_stop)

    async with pipeline:
        if webhook is not None:
            await webhook.start()
        try:
            await pipeline.run_until_stopped()
        finally:
            if webhook is not None:
                await webhook.stop()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    if args.command == "config":
        print(json.dumps(settings.redacted_summary(), indent=2))
        return 0

    if args.dry_run:
        settings = settings.model_copy(update={"dry_run": True})

    try:
        settings.validate_requirements(command="run")
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(settings)
    logger.info("Solana Wallet Tracker %s starting", __version__)
    try:
        asyncio.run(run_pipeline(settings, args.watch))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
