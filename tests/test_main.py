"""Tests for the command-line entry point."""

from __future__ import annotations

import io
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sui_graph_ingest.__main__ import build_parser, run_health, run_stats
from sui_graph_ingest.storage.gateway import StoreTransportError
from sui_graph_ingest.storage.reader import GraphStats


class TestParser:
    def test_ingest_arguments(self) -> None:
        args = build_parser().parse_args(
            ["ingest", "--checkpoints", "5", "--rpc-url", "https://node.example", "--enhanced"]
        )
        assert args.command == "ingest"
        assert args.checkpoints == 5
        assert args.rpc_url == "https://node.example"
        assert args.enhanced is True

    def test_ingest_defaults(self) -> None:
        args = build_parser().parse_args(["ingest"])
        assert args.checkpoints is None
        assert args.enhanced is False

    def test_related_arguments(self) -> None:
        args = build_parser().parse_args(["related", "0xabc", "--limit", "3"])
        assert args.address == "0xabc"
        assert args.limit == 3

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestRunStats:
    @pytest.fixture
    def settings(self) -> MagicMock:
        settings = MagicMock()
        settings.nebula.gateway_url = "http://gateway:3002"
        settings.nebula.request_timeout_seconds = 1.0
        settings.nebula.max_retries = 1
        settings.nebula.space = "sui_analysis"
        return settings

    @pytest.mark.asyncio
    async def test_prints_json(self, settings: MagicMock) -> None:
        out = io.StringIO()
        with patch("sui_graph_ingest.__main__.GraphReader") as reader_cls:
            reader_cls.return_value.stats = AsyncMock(return_value=GraphStats(3, 4, 1))
            code = await run_stats(settings, out)

        assert code == 0
        assert json.loads(out.getvalue()) == {
            "totalAddresses": 3,
            "totalTransactions": 4,
            "relatedGroups": 1,
        }

    @pytest.mark.asyncio
    async def test_store_error_exit_code(self, settings: MagicMock) -> None:
        out = io.StringIO()
        with patch("sui_graph_ingest.__main__.GraphReader") as reader_cls:
            reader_cls.return_value.stats = AsyncMock(side_effect=StoreTransportError("down"))
            code = await run_stats(settings, out)

        assert code == 1
        assert out.getvalue() == ""


class TestRunHealth:
    @pytest.fixture
    def settings(self) -> MagicMock:
        settings = MagicMock()
        settings.sui.rpc_url = "https://fullnode.example"
        settings.nebula.gateway_url = "http://gateway:3002"
        settings.nebula.request_timeout_seconds = 1.0
        return settings

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("sui_ok", "gateway_ok", "expected"),
        [(True, True, 0), (False, True, 1), (True, False, 1)],
    )
    async def test_reports_both_backends(
        self, settings: MagicMock, sui_ok: bool, gateway_ok: bool, expected: int
    ) -> None:
        out = io.StringIO()
        args = build_parser().parse_args(["health", "--rpc-url", "https://other.example"])
        with (
            patch("sui_graph_ingest.__main__.SuiClient") as client_cls,
            patch("sui_graph_ingest.__main__.NebulaGatewayClient") as gateway_cls,
        ):
            client_cls.return_value.health_check = AsyncMock(return_value=sui_ok)
            client_cls.return_value.aclose = AsyncMock()
            gateway_cls.return_value.health_check = AsyncMock(return_value=gateway_ok)
            gateway_cls.return_value.aclose = AsyncMock()
            code = await run_health(settings, args, out)

        assert code == expected
        assert json.loads(out.getvalue()) == {"sui": sui_ok, "gateway": gateway_ok}
        assert client_cls.call_args.args[0] == "https://other.example"
        client_cls.return_value.aclose.assert_awaited_once()
        gateway_cls.return_value.aclose.assert_awaited_once()
