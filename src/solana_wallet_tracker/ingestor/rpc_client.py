"""Solana RPC client with endpoint rotation and rate-limit backoff.

This module provides the upstream access layer used by the wallet pollers:
- EndpointPool: ordered RPC endpoints with an active one and rotation
- RetryingCaller: bounded exponential backoff on rate limiting, escalating
  to endpoint rotation after repeated strikes
- SolanaRpcClient: the chain query interface (recent signatures, transaction
  bodies) over solana-py's AsyncClient, rebuilt after every rotation
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solders.pubkey import Pubkey
from solders.signature import Signature

from solana_wallet_tracker.ingestor.models import ChainTransaction, SignatureInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 10_000
ROTATE_AFTER_STRIKES = 3

RATE_LIMIT_MARKERS = ("429", "rate limit", "too many requests")


class RpcClientError(Exception):
    """Base exception for RPC client errors."""


class RateLimitError(RpcClientError):
    """Raised when the upstream endpoint signals rate limiting."""


def is_rate_limit_error(error: BaseException) -> bool:
    """Classify an upstream error as rate limiting.

    Walks the ``__cause__`` chain since solana-py wraps the underlying
    HTTP status error.
    """
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, RateLimitError):
            return True
        text = str(current).lower()
        if any(marker in text for marker in RATE_LIMIT_MARKERS):
            return True
        current = current.__cause__
    return False


def backoff_delay_seconds(
    attempt: int,
    *,
    base_ms: int = DEFAULT_BASE_DELAY_MS,
    max_ms: int = DEFAULT_MAX_DELAY_MS,
) -> float:
    """Backoff before retry ``attempt`` (0-based): ``min(base * 2^attempt, max)`` ms."""
    return min(base_ms * (2**attempt), max_ms) / 1000.0


@dataclass(frozen=True)
class Endpoint:
    """A configured RPC endpoint."""

    url: str
    index: int

    @property
    def display_url(self) -> str:
        """URL without the query string (which usually carries the API key)."""
        return self.url.split("?", 1)[0]


RotateListener = Callable[[Endpoint], None]


class EndpointPool:
    """Ordered RPC endpoints with a single active endpoint.

    The active endpoint is held in one attribute and replaced by a single
    assignment in ``rotate()``, so concurrent readers observe either the old
    or the new endpoint.

    Example:
        ```python
        pool = EndpointPool(["https://rpc-a.example", "https://rpc-b.example"])
        pool.current().url   # rpc-a
        pool.rotate().url    # rpc-b
        ```
    """

    def __init__(self, urls: Sequence[str]) -> None:
        if not urls:
            raise ValueError("EndpointPool requires at least one endpoint")
        self._endpoints = tuple(Endpoint(url=url, index=i) for i, url in enumerate(urls))
        self._active = self._endpoints[0]
        self._listeners: list[RotateListener] = []

        self.rate_limit_strikes = 0
        self.total_rotations = 0
        self.total_requests = 0

        logger.info("Configured %d RPC endpoints", len(self._endpoints))

    def __len__(self) -> int:
        return len(self._endpoints)

    @property
    def endpoints(self) -> tuple[Endpoint, ...]:
        return self._endpoints

    @property
    def active_index(self) -> int:
        return self._active.index

    def current(self) -> Endpoint:
        """Return the active endpoint."""
        return self._active

    def on_rotate(self, listener: RotateListener) -> None:
        """Register a callback invoked with the new endpoint after each rotation."""
        self._listeners.append(listener)

    def record_rate_limit(self) -> int:
        """Count one rate-limit failure and return the strike total."""
        self.rate_limit_strikes += 1
        return self.rate_limit_strikes

    def rotate(self) -> Endpoint:
        """Advance to the next endpoint, reset strikes and notify listeners."""
        new = self._endpoints[(self._active.index + 1) % len(self._endpoints)]
        self._active = new
        self.rate_limit_strikes = 0
        self.total_rotations += 1
        logger.info("Rotated RPC endpoint to #%d: %s", new.index, new.display_url)

        for listener in self._listeners:
            try:
                listener(new)
            except Exception as e:
                logger.error("RPC rotation listener failed for %s: %s", new.display_url, e)
        return new


class RetryingCaller:
    """Wraps upstream calls with rate-limit backoff and endpoint rotation.

    ``call(fn)`` awaits ``fn(endpoint)`` against the active endpoint and, on a
    rate-limit error, sleeps ``min(1s * 2^attempt, 10s)`` and tries again, up
    to ``max_retries`` retries. Every rate-limit failure is a pool-wide strike; the pool rotates
    once strikes reach three. Non rate-limit errors are re-raised at once.
    """

    def __init__(
        self,
        pool: EndpointPool,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._pool = pool
        self._max_retries = max_retries
        self._sleep = sleep

    @property
    def pool(self) -> EndpointPool:
        return self._pool

    async def call(
        self,
        fn: Callable[[Endpoint], Awaitable[T]],
        *,
        max_retries: int | None = None,
    ) -> T:
        retries = self._max_retries if max_retries is None else max_retries
        attempt = 0
        while True:
            self._pool.total_requests += 1
            try:
                return await fn(self._pool.current())
            except Exception as e:
                if not is_rate_limit_error(e):
                    raise

                strikes = self._pool.record_rate_limit()
                if strikes >= ROTATE_AFTER_STRIKES:
                    self._pool.rotate()

                if attempt >= retries:
                    logger.warning("Rate limited; giving up after %d attempts", attempt + 1)
                    raise

                delay = backoff_delay_seconds(attempt)
                logger.info(
                    "Rate limited. Retrying in %.1fs (attempt %d/%d)",
                    delay,
                    attempt + 1,
                    retries,
                )
                await self._sleep(delay)
                attempt += 1


ClientFactory = Callable[[str], Any]


class SolanaRpcClient:
    """Chain query interface for the wallet pollers.

    Example:
        ```python
        pool = EndpointPool(settings.rpc.endpoint_urls())
        client = SolanaRpcClient(pool)

        sigs = await client.list_recent_signatures(address, limit=2)
        tx = await client.get_transaction(sigs[0].signature)
        await client.aclose()
        ```
    """

    def __init__(
        self,
        pool: EndpointPool,
        *,
        caller: RetryingCaller | None = None,
        commitment: str = "confirmed",
        client_factory: ClientFactory | None = None,
    ) -> None:
        """Initialize the RPC client.

        Args:
            pool: Endpoint pool shared with the retrying caller.
            caller: Retrying caller; one is built over ``pool`` if omitted.
            commitment: Commitment level for queries.
            client_factory: Builds an AsyncClient for an endpoint URL.
        """
        self._pool = pool
        self._caller = caller or RetryingCaller(pool)
        self._commitment = Commitment(commitment)
        self._client_factory = client_factory or self._new_async_client
        self._client = self._client_factory(pool.current().url)
        self._stale_clients: list[Any] = []
        pool.on_rotate(self._rebuild_client)

    @property
    def caller(self) -> RetryingCaller:
        return self._caller

    def _new_async_client(self, url: str) -> AsyncClient:
        return AsyncClient(url, commitment=self._commitment)

    def _rebuild_client(self, endpoint: Endpoint) -> None:
        # In-flight requests keep the old client; it is closed on shutdown.
        self._stale_clients.append(self._client)
        self._client = self._client_factory(endpoint.url)

    async def list_recent_signatures(self, address: str, limit: int) -> list[SignatureInfo]:
        """List the most recent signatures for an address, newest first."""
        pubkey = Pubkey.from_string(address)
        resp = await self._caller.call(
            lambda _endpoint: self._client.get_signatures_for_address(pubkey, limit=limit)
        )
        value = getattr(resp, "value", None)
        if value is None:
            raise RpcClientError(f"Unexpected getSignaturesForAddress response: {resp!r}")
        return [
            SignatureInfo(signature=str(item.signature), block_time=item.block_time)
            for item in value
        ]

    async def get_transaction(self, signature: str) -> ChainTransaction | None:
        """Fetch a transaction body; ``None`` when it is not (yet) visible."""
        sig = Signature.from_string(signature)
        resp = await self._caller.call(
            lambda _endpoint: self._client.get_transaction(
                sig,
                encoding="json",
                max_supported_transaction_version=0,
            )
        )
        if not hasattr(resp, "value"):
            raise RpcClientError(f"Unexpected getTransaction response: {resp!r}")
        if resp.value is None:
            return None
        data = json.loads(resp.value.to_json())
        return ChainTransaction.from_dict(signature, data)

    async def health_check(self) -> bool:
        """Check if the active endpoint answers."""
        try:
            return bool(await self._caller.call(lambda _endpoint: self._client.is_connected()))
        except Exception as e:
            logger.warning("RPC health check failed: %s", e)
            return False

    async def aclose(self) -> None:
        """Close the active and any rotated-out AsyncClient sessions."""
        clients = [*self._stale_clients, self._client]
        self._stale_clients.clear()
        for client in clients:
            close = getattr(client, "close", None)
            if not callable(close):
                continue
            try:
                result = close()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning("Failed to close RPC client session: %s", e)
