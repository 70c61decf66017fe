"""Tests for enhanced-mode wallet enrichment."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from sui_graph_ingest.aggregator.enrichment import WalletEnricher
from sui_graph_ingest.aggregator.wallets import WalletAggregator
from sui_graph_ingest.ingestor.chain import RpcError
from sui_graph_ingest.progress import ProgressEventType, ProgressReporter

T0 = datetime(2026, 1, 1, tzinfo=UTC)


@pytest.fixture
def mock_client() -> AsyncMock:
    client = AsyncMock()
    client.get_balance = AsyncMock(return_value=Decimal("12.5"))
    client.get_owned_objects_count = AsyncMock(return_value=4)
    client.is_contract = AsyncMock(return_value=False)
    return client


@pytest.fixture
def wallets() -> WalletAggregator:
    wallets = WalletAggregator()
    for _ in range(3):
        wallets.update("a" * 64, T0)
    wallets.update("b" * 64, T0)
    wallets.update("c" * 64, T0)
    return wallets


class TestWalletEnricher:
    @pytest.mark.asyncio
    async def test_enriches_only_top_n(
        self, mock_client: AsyncMock, wallets: WalletAggregator, reporter: ProgressReporter
    ) -> None:
        enricher = WalletEnricher(mock_client, top_n=2)
        enriched = await enricher.enrich(wallets, reporter)

        assert enriched == 2
        top = wallets.get("a" * 64)
        assert top.sui_balance == Decimal("12.5")
        assert top.owned_objects_count == 4
        assert top.last_activity == top.last_seen
        assert wallets.get("c" * 64).is_enriched is False
        assert mock_client.get_balance.await_count == 2

    @pytest.mark.asyncio
    async def test_failure_reported_as_warning(
        self, mock_client: AsyncMock, wallets: WalletAggregator, reporter: ProgressReporter
    ) -> None:
        mock_client.get_balance.side_effect = [RpcError("suix_getBalance", "boom"), Decimal("1")]
        enricher = WalletEnricher(mock_client, top_n=2)

        enriched = await enricher.enrich(wallets, reporter)

        assert enriched == 1
        warnings = [e for e in reporter.events if e.type is ProgressEventType.WARNING]
        assert len(warnings) == 1
        assert "suix_getBalance" in warnings[0].message

    @pytest.mark.asyncio
    async def test_progress_stays_in_band(
        self, mock_client: AsyncMock, wallets: WalletAggregator, reporter: ProgressReporter
    ) -> None:
        reporter.progress("crawl done", 30)
        await WalletEnricher(mock_client, top_n=3).enrich(wallets, reporter)

        percents = [e.percent for e in reporter.events if e.percent is not None]
        assert all(30 <= p <= 40 for p in percents)
        assert percents[-1] == 40

    @pytest.mark.asyncio
    async def test_stops_when_requested(
        self, mock_client: AsyncMock, wallets: WalletAggregator, reporter: ProgressReporter
    ) -> None:
        enriched = await WalletEnricher(mock_client, top_n=3).enrich(
            wallets, reporter, should_stop=lambda: True
        )
        assert enriched == 0
        mock_client.get_balance.assert_not_called()
