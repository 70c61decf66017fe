"""Tests for the NebulaGraph HTTP gateway client."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from sui_graph_ingest.storage.gateway import (
    NebulaGatewayClient,
    QueryResult,
    StoreQueryError,
    StoreTransportError,
)

Handler = Callable[[httpx.Request], httpx.Response]


def make_client(handler: Handler, *, max_retries: int = 3) -> NebulaGatewayClient:
    return NebulaGatewayClient(
        "http://gateway:3002/",
        max_retries=max_retries,
        retry_delay_seconds=0.0,
        transport=httpx.MockTransport(handler),
    )


class TestQueryResult:
    def test_from_column_map(self) -> None:
        result = QueryResult.from_gateway({"address": ["a", "b"], "score": [1.0, 0.5]})
        assert result.columns == ("address", "score")
        assert result.rows == (("a", 1.0), ("b", 0.5))
        assert result.column("score") == [1.0, 0.5]
        assert result.as_dicts()[1] == {"address": "b", "score": 0.5}

    def test_empty(self) -> None:
        result = QueryResult.from_gateway(None)
        assert result.rows == ()
        assert result.scalar(default=0) == 0

    def test_scalar(self) -> None:
        assert QueryResult.from_gateway({"count": [7]}).scalar() == 7

    def test_rejects_unexpected_shape(self) -> None:
        with pytest.raises(StoreQueryError):
            QueryResult.from_gateway([1, 2])


class TestNebulaGatewayClient:
    @pytest.mark.asyncio
    async def test_execute_posts_query(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "data": {"count": [3]}})

        client = make_client(handler)
        result = await client.execute("USE s; MATCH (n) RETURN count(n) AS count")
        await client.aclose()

        assert result.scalar() == 3
        assert seen[0].method == "POST"
        assert seen[0].url == httpx.URL("http://gateway:3002/query")
        assert json.loads(seen[0].content) == {"query": "USE s; MATCH (n) RETURN count(n) AS count"}

    @pytest.mark.asyncio
    async def test_success_false_raises_query_error(self) -> None:
        client = make_client(
            lambda _: httpx.Response(200, json={"success": False, "error": "SemanticError"})
        )
        with pytest.raises(StoreQueryError, match="SemanticError"):
            await client.execute("bad")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_http_error_raises_query_error(self) -> None:
        client = make_client(
            lambda _: httpx.Response(500, json={"success": False, "error": "boom"})
        )
        with pytest.raises(StoreQueryError) as exc_info:
            await client.execute("q")
        await client.aclose()
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_transport_error_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={"success": True, "data": None})

        client = make_client(handler)
        await client.execute("q")
        await client.aclose()
        assert calls == 2

    @pytest.mark.asyncio
    async def test_transport_error_exhausted(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = make_client(handler, max_retries=2)
        with pytest.raises(StoreTransportError):
            await client.execute("q")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_health_check(self) -> None:
        client = make_client(lambda _: httpx.Response(200, json={"status": "ok"}))
        assert await client.health_check() is True
        await client.aclose()
