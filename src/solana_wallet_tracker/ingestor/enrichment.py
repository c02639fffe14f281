"""Token enrichment client with in-memory and Redis caching.

Looks up token metadata, market data and volume from a CallStatic-style
pump.fun API. Every lookup is best-effort: failures are logged and the
caller gets a fully populated result with explicit unknown fields.
"""

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import aiohttp
from redis.asyncio import Redis

from .models import TokenEnrichment, TokenMarketData, TokenMetadata, TokenVolumeData

logger = logging.getLogger(__name__)


# Default configuration
DEFAULT_BASE_URL = "https://api.callstaticrpc.com/pumpfun/v1"
DEFAULT_CACHE_TTL_SECONDS = 600  # 10 minutes
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_REDIS_KEY_PREFIX = "solana_wallet_tracker:enrichment:"

METADATA = "metadata"
MARKET = "market"
VOLUME = "volume"


class EnrichmentError(Exception):
    """Raised when the enrichment API returns an unusable response."""

    pass


@dataclass
class EnrichmentStats:
    """Counters for enrichment lookups."""

    requests: int = 0
    cache_hits: int = 0
    failures: int = 0


class EnrichmentClient:
    """Best-effort token enrichment lookups.

    Results are cached per (lookup kind, mint) for ``cache_ttl_seconds`` in
    memory, and mirrored to Redis when a Redis client is given.

    Example:
        ```python
        client = EnrichmentClient(api_key="...", redis=redis)
        enrichment = await client.get_enrichment(mint)
        print(enrichment.metadata.symbol)
        await client.aclose()
        ```
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        redis: Redis | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = time.monotonic,
        redis_key_prefix: str = DEFAULT_REDIS_KEY_PREFIX,
    ) -> None:
        """Initialize the enrichment client.

        Args:
            api_key: Bearer token for the API. Without it every lookup
                returns unknown values.
            base_url: API base URL.
            cache_ttl_seconds: Freshness window for cached results.
            timeout_seconds: Per-request timeout.
            redis: Optional Redis client for a shared cache.
            session: Optional aiohttp session (created lazily otherwise).
            clock: Monotonic clock for the in-memory cache.
            redis_key_prefix: Prefix for Redis cache keys.
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._cache_ttl = cache_ttl_seconds
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._redis = redis
        self._session = session
        self._owns_session = session is None
        self._clock = clock
        self._key_prefix = redis_key_prefix
        self._memory: dict[tuple[str, str], tuple[float, dict[str, Any]]] = {}
        self._stats = EnrichmentStats()

        if not api_key:
            logger.warning("Enrichment API key missing; token enrichment will be limited")

    @property
    def stats(self) -> EnrichmentStats:
        return self._stats

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def aclose(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _redis_key(self, kind: str, mint: str) -> str:
        return f"{self._key_prefix}{kind}:{mint}"

    async def _get_cached(self, kind: str, mint: str) -> dict[str, Any] | None:
        entry = self._memory.get((kind, mint))
        if entry is not None:
            stored_at, data = entry
            if self._clock() - stored_at < self._cache_ttl:
                return data
            del self._memory[(kind, mint)]

        if self._redis is None:
            return None
        try:
            cached = await self._redis.get(self._redis_key(kind, mint))
        except Exception as e:
            logger.warning("Redis cache read failed for %s %s: %s", kind, mint, e)
            return None
        if not cached:
            return None
        try:
            data = json.loads(cached)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning("Failed to parse cached %s for %s: %s", kind, mint, e)
            return None
        self._memory[(kind, mint)] = (self._clock(), data)
        return data

    async def _set_cached(self, kind: str, mint: str, data: dict[str, Any]) -> None:
        self._memory[(kind, mint)] = (self._clock(), data)
        if self._redis is None:
            return
        try:
            await self._redis.setex(self._redis_key(kind, mint), self._cache_ttl, json.dumps(data))
        except Exception as e:
            logger.warning("Redis cache write failed for %s %s: %s", kind, mint, e)

    def clear_cache(self) -> None:
        self._memory.clear()

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _request(self, path: str, mint: str) -> dict[str, Any]:
        """GET ``path`` for a token and return the ``data`` object.

        Raises:
            EnrichmentError: On a non-2xx status or an unsuccessful payload.
        """
        self._stats.requests += 1
        session = await self._get_session()
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        async with session.get(
            f"{self._base_url}{path}",
            params={"token": mint},
            headers=headers,
            timeout=self._timeout,
        ) as response:
            if response.status >= 400:
                raise EnrichmentError(f"Enrichment API error: {response.status}")
            payload = await response.json(content_type=None)

        if not isinstance(payload, dict) or not payload.get("success") or not payload.get("data"):
            raise EnrichmentError(f"Unsuccessful enrichment response for {path}")
        data = payload["data"]
        if not isinstance(data, dict):
            raise EnrichmentError(f"Unexpected enrichment data for {path}")
        return data

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_metadata(self, mint: str) -> TokenMetadata:
        """Token symbol, name, deployer and social links."""
        cached = await self._get_cached(METADATA, mint)
        if cached is not None:
            self._stats.cache_hits += 1
            return TokenMetadata.from_dict(cached)
        if not self.enabled:
            return TokenMetadata.unknown()

        try:
            metadata = TokenMetadata.from_dict(await self._request("/token/metadata", mint))
        except Exception as e:
            self._stats.failures += 1
            logger.warning("Error fetching token metadata for %s: %s", mint, e)
            return TokenMetadata.unknown()

        await self._set_cached(METADATA, mint, metadata.to_dict())
        return metadata

    async def get_market_data(self, mint: str) -> TokenMarketData:
        """Price, market cap, bonding progress and holder count."""
        cached = await self._get_cached(MARKET, mint)
        if cached is not None:
            self._stats.cache_hits += 1
            return TokenMarketData.from_dict(cached, holders=cached.get("holders"))
        if not self.enabled:
            return TokenMarketData.unknown()

        try:
            data = await self._request("/token/marketData", mint)
        except Exception as e:
            self._stats.failures += 1
            logger.warning("Error fetching market data for %s: %s", mint, e)
            return TokenMarketData.unknown()

        holders: int | None = None
        try:
            holders_data = await self._request("/token/holders", mint)
            raw = holders_data.get("total_holders")
            holders = int(raw) if raw else None
        except Exception as e:
            logger.info("Error fetching holders for %s: %s", mint, e)

        market = TokenMarketData.from_dict(data, holders=holders)
        await self._set_cached(MARKET, mint, market.to_dict())
        return market

    async def get_volume_data(self, mint: str) -> TokenVolumeData:
        """Buy/sell volume (SOL) and last trade times."""
        cached = await self._get_cached(VOLUME, mint)
        if cached is not None:
            self._stats.cache_hits += 1
            return TokenVolumeData.from_dict(cached)
        if not self.enabled:
            return TokenVolumeData.unknown()

        try:
            data = await self._request("/token/volume", mint)
        except Exception as e:
            self._stats.failures += 1
            logger.warning("Error fetching volume data for %s: %s", mint, e)
            return TokenVolumeData.unknown()

        volume = TokenVolumeData.from_dict(data)
        await self._set_cached(VOLUME, mint, volume.to_dict())
        return volume

    async def get_enrichment(self, mint: str) -> TokenEnrichment:
        """Run the three lookups concurrently."""
        metadata, market, volume = await asyncio.gather(
            self.get_metadata(mint),
            self.get_market_data(mint),
            self.get_volume_data(mint),
        )
        return TokenEnrichment(metadata=metadata, market=market, volume=volume)
