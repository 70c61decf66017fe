"""Tests for the graph store writer."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from sui_graph_ingest.aggregator.wallets import Wallet
from sui_graph_ingest.analysis.relationships import RelationshipScorer
from sui_graph_ingest.ingestor.models import TransferEvent
from sui_graph_ingest.progress import ProgressEventType, ProgressReporter
from sui_graph_ingest.storage.gateway import QueryResult, StoreQueryError, StoreTransportError
from sui_graph_ingest.storage.schema import GraphSchema
from sui_graph_ingest.storage.writer import GraphStoreWriter, SchemaError, WriteResult

A = "a" * 64
B = "b" * 64
C = "c" * 64
T0 = datetime(2026, 1, 1, tzinfo=UTC)


@pytest.fixture
def mock_gateway() -> AsyncMock:
    gateway = AsyncMock()
    gateway.execute = AsyncMock(return_value=QueryResult())
    return gateway


@pytest.fixture
def writer(mock_gateway: AsyncMock, reporter: ProgressReporter) -> GraphStoreWriter:
    return GraphStoreWriter(mock_gateway, reporter, settle_seconds=0)


def wallet(address: str) -> Wallet:
    return Wallet(address=address, first_seen=T0, last_seen=T0, transaction_count=1)


def transfer(src: str, dst: str) -> TransferEvent:
    return TransferEvent(
        src=src,
        dst=dst,
        amount=Decimal("1"),
        timestamp=T0,
        tx_hash="d",
        gas_used=10,
        success=True,
    )


def warnings(reporter: ProgressReporter) -> list[str]:
    return [e.message for e in reporter.events if e.type is ProgressEventType.WARNING]


class TestInitializeSchema:
    @pytest.mark.asyncio
    async def test_statement_order(self, writer: GraphStoreWriter, mock_gateway: AsyncMock) -> None:
        await writer.initialize_schema()

        statements = [c.args[0] for c in mock_gateway.execute.await_args_list]
        assert statements[0].startswith("DROP SPACE IF EXISTS")
        assert statements[1].startswith("CREATE SPACE IF NOT EXISTS")
        assert "CREATE TAG IF NOT EXISTS wallet" in statements[2]
        assert "CREATE EDGE IF NOT EXISTS transaction" in statements[3]
        assert "CREATE EDGE IF NOT EXISTS related_to" in statements[4]

    @pytest.mark.asyncio
    async def test_failure_raises_schema_error(
        self, writer: GraphStoreWriter, mock_gateway: AsyncMock
    ) -> None:
        mock_gateway.execute.side_effect = StoreTransportError("gateway down")
        with pytest.raises(SchemaError):
            await writer.initialize_schema()

    @pytest.mark.asyncio
    async def test_create_types_twice_succeeds(
        self, writer: GraphStoreWriter, mock_gateway: AsyncMock
    ) -> None:
        await writer.create_types()
        await writer.create_types()

        statements = [c.args[0] for c in mock_gateway.execute.await_args_list]
        assert len(statements) == 6
        assert statements[:3] == statements[3:]

    @pytest.mark.asyncio
    async def test_enhanced_schema(self, mock_gateway: AsyncMock, reporter: ProgressReporter) -> None:
        writer = GraphStoreWriter(
            mock_gateway, reporter, schema=GraphSchema(enhanced=True), settle_seconds=0
        )
        await writer.initialize_schema()
        statements = [c.args[0] for c in mock_gateway.execute.await_args_list]
        assert "sui_balance" in statements[2]


class TestWriteBatches:
    @pytest.mark.asyncio
    async def test_write_wallets(self, writer: GraphStoreWriter, mock_gateway: AsyncMock) -> None:
        result = await writer.write_wallets([wallet(A), wallet(B)])

        assert result == WriteResult(attempted=2, inserted=2, failed=0)
        assert mock_gateway.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_record_isolated(
        self, writer: GraphStoreWriter, mock_gateway: AsyncMock, reporter: ProgressReporter
    ) -> None:
        mock_gateway.execute.side_effect = [
            QueryResult(),
            StoreQueryError("vertex rejected"),
            QueryResult(),
        ]
        result = await writer.write_wallets([wallet(A), wallet(B), wallet(C)])

        assert result == WriteResult(attempted=3, inserted=2, failed=1)
        assert len(warnings(reporter)) == 1
        assert "vertex rejected" in warnings(reporter)[0]

    @pytest.mark.asyncio
    async def test_write_edges_and_relationships(
        self, writer: GraphStoreWriter, mock_gateway: AsyncMock
    ) -> None:
        edges = [transfer(A, B), transfer(B, A)]
        edge_result = await writer.write_edges(edges)
        pair_result = await writer.write_relationships(RelationshipScorer().score(edges))

        assert edge_result.inserted == 2
        assert pair_result.inserted == 1
        statements = [c.args[0] for c in mock_gateway.execute.await_args_list]
        assert all("INSERT EDGE transaction" in s for s in statements[:2])
        assert "INSERT EDGE related_to" in statements[2]

    @pytest.mark.asyncio
    async def test_progress_bands(self, writer: GraphStoreWriter, reporter: ProgressReporter) -> None:
        await writer.write_wallets([wallet(A)])
        assert reporter.last_percent == 60
        await writer.write_edges([transfer(A, B)])
        assert reporter.last_percent == 80
        await writer.write_relationships([])
        assert reporter.last_percent == 80

    @pytest.mark.asyncio
    async def test_stops_when_requested(
        self, mock_gateway: AsyncMock, reporter: ProgressReporter
    ) -> None:
        writer = GraphStoreWriter(mock_gateway, reporter, should_stop=lambda: True)
        result = await writer.write_wallets([wallet(A)])

        assert result == WriteResult()
        mock_gateway.execute.assert_not_called()
