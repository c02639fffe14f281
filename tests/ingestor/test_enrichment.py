"""Tests for the token enrichment client."""

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from solana_wallet_tracker.ingestor.enrichment import EnrichmentClient
from solana_wallet_tracker.ingestor.models import UNKNOWN, TokenMarketData

BASE_URL = "https://api.example/pumpfun/v1"


class FakeResponse:
    """Minimal stand-in for an aiohttp response context manager."""

    def __init__(self, status: int = 200, payload: Any = None) -> None:
        self.status = status
        self._payload = payload

    async def json(self, content_type: str | None = None) -> Any:
        return self._payload

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None


def _ok(data: dict) -> FakeResponse:
    return FakeResponse(payload={"success": True, "data": data})


@pytest.fixture
def routes() -> dict[str, FakeResponse]:
    return {
        "/token/metadata": _ok({"symbol": "BONK", "name": "Bonk", "twitter": "https://x.com/bonk"}),
        "/token/marketData": _ok({"price_usd": 0.0002, "current_market_cap": 42_000, "bonding_progress": 0.5}),
        "/token/holders": _ok({"total_holders": 150}),
        "/token/volume": _ok({"buy_volume_24h": 4_000_000_000, "sell_volume_24h": 2_000_000_000}),
    }


@pytest.fixture
def session(routes: dict[str, FakeResponse]) -> MagicMock:
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()

    def get(url: str, **kwargs: Any) -> FakeResponse:
        return routes[url.removeprefix(BASE_URL)]

    session.get = MagicMock(side_effect=get)
    return session


@pytest.fixture
def client(session: MagicMock, clock) -> EnrichmentClient:
    return EnrichmentClient(
        api_key="test-key",
        base_url=BASE_URL,
        cache_ttl_seconds=600,
        session=session,
        clock=clock,
    )


class TestLookups:
    """Tests for individual enrichment lookups."""

    @pytest.mark.asyncio
    async def test_metadata_request_shape(self, client, session, sample_mint: str) -> None:
        metadata = await client.get_metadata(sample_mint)

        assert metadata.symbol == "BONK"
        url = session.get.call_args.args[0]
        kwargs = session.get.call_args.kwargs
        assert url == f"{BASE_URL}/token/metadata"
        assert kwargs["params"] == {"token": sample_mint}
        assert kwargs["headers"]["Authorization"] == "Bearer test-key"

    @pytest.mark.asyncio
    async def test_market_data_includes_holders(self, client, sample_mint: str) -> None:
        market = await client.get_market_data(sample_mint)

        assert market.price_usd == 0.0002
        assert market.market_cap == 42_000.0
        assert market.holders == 150

    @pytest.mark.asyncio
    async def test_holders_failure_keeps_market_data(self, client, routes, sample_mint: str) -> None:
        routes["/token/holders"] = FakeResponse(status=500)

        market = await client.get_market_data(sample_mint)

        assert market.price_usd == 0.0002
        assert market.holders is None

    @pytest.mark.asyncio
    async def test_volume_in_sol(self, client, sample_mint: str) -> None:
        volume = await client.get_volume_data(sample_mint)

        assert volume.buy_volume_24h == 4.0
        assert volume.buy_sell_ratio == 2.0

    @pytest.mark.asyncio
    async def test_http_error_returns_unknown(self, client, routes, sample_mint: str) -> None:
        routes["/token/metadata"] = FakeResponse(status=503)

        metadata = await client.get_metadata(sample_mint)

        assert metadata.symbol == UNKNOWN
        assert client.stats.failures == 1

    @pytest.mark.asyncio
    async def test_unsuccessful_payload_returns_unknown(self, client, routes, sample_mint: str) -> None:
        routes["/token/marketData"] = FakeResponse(payload={"success": False, "data": None})

        assert await client.get_market_data(sample_mint) == TokenMarketData.unknown()

    @pytest.mark.asyncio
    async def test_get_enrichment_combines_lookups(self, client, sample_mint: str) -> None:
        enrichment = await client.get_enrichment(sample_mint)

        assert enrichment.metadata.name == "Bonk"
        assert enrichment.market.bonding_progress == 0.5
        assert enrichment.volume.sell_volume_24h == 2.0

    @pytest.mark.asyncio
    async def test_without_api_key_no_requests(self, session, sample_mint: str) -> None:
        client = EnrichmentClient(api_key=None, base_url=BASE_URL, session=session)

        enrichment = await client.get_enrichment(sample_mint)

        assert enrichment.metadata.symbol == UNKNOWN
        assert enrichment.market.price_usd is None
        assert enrichment.volume.buy_volume_24h == 0.0
        session.get.assert_not_called()


class TestCaching:
    """Tests for the in-memory and Redis caches."""

    @pytest.mark.asyncio
    async def test_memory_cache_hit(self, client, session, sample_mint: str) -> None:
        await client.get_metadata(sample_mint)
        await client.get_metadata(sample_mint)

        assert session.get.call_count == 1
        assert client.stats.cache_hits == 1

    @pytest.mark.asyncio
    async def test_memory_cache_expires(self, client, session, clock, sample_mint: str) -> None:
        await client.get_metadata(sample_mint)
        clock.advance(601)
        await client.get_metadata(sample_mint)

        assert session.get.call_count == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, client, routes, session, sample_mint: str) -> None:
        good = routes["/token/volume"]
        routes["/token/volume"] = FakeResponse(status=500)
        await client.get_volume_data(sample_mint)

        routes["/token/volume"] = good
        volume = await client.get_volume_data(sample_mint)

        assert volume.buy_volume_24h == 4.0

    @pytest.mark.asyncio
    async def test_writes_through_to_redis(self, session, clock, sample_mint: str) -> None:
        redis = MagicMock()
        redis.get = AsyncMock(return_value=None)
        redis.setex = AsyncMock()
        client = EnrichmentClient(api_key="k", base_url=BASE_URL, session=session, redis=redis, clock=clock)

        await client.get_metadata(sample_mint)

        key, ttl, value = redis.setex.await_args.args
        assert key == f"solana_wallet_tracker:enrichment:metadata:{sample_mint}"
        assert ttl == 600
        assert json.loads(value)["symbol"] == "BONK"

    @pytest.mark.asyncio
    async def test_reads_from_redis(self, session, clock, sample_mint: str) -> None:
        redis = MagicMock()
        redis.get = AsyncMock(return_value=json.dumps({"symbol": "WIF", "name": "dogwifhat"}))
        redis.setex = AsyncMock()
        client = EnrichmentClient(api_key="k", base_url=BASE_URL, session=session, redis=redis, clock=clock)

        metadata = await client.get_metadata(sample_mint)

        assert metadata.symbol == "WIF"
        session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_redis_errors_fall_back_to_api(self, session, clock, sample_mint: str) -> None:
        redis = MagicMock()
        redis.get = AsyncMock(side_effect=ConnectionError("redis down"))
        redis.setex = AsyncMock(side_effect=ConnectionError("redis down"))
        client = EnrichmentClient(api_key="k", base_url=BASE_URL, session=session, redis=redis, clock=clock)

        metadata = await client.get_metadata(sample_mint)

        assert metadata.symbol == "BONK"


class TestSession:
    """Tests for session ownership."""

    @pytest.mark.asyncio
    async def test_borrowed_session_is_not_closed(self, client, session) -> None:
        await client.aclose()

        session.close.assert_not_awaited()
