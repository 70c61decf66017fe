"""Tests for wallet aggregation and edge collection."""

from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from sui_graph_ingest.aggregator.edges import EdgeCollector
from sui_graph_ingest.aggregator.wallets import WalletAggregator
from sui_graph_ingest.ingestor.models import TransferEvent

A = "a" * 64
B = "b" * 64
C = "c" * 64
T0 = datetime(2026, 1, 1, tzinfo=UTC)


def transfer(src: str, dst: str, *, at: datetime = T0, amount: str = "1", digest: str = "d") -> TransferEvent:
    return TransferEvent(
        src=src,
        dst=dst,
        amount=Decimal(amount),
        timestamp=at,
        tx_hash=digest,
        gas_used=10,
        success=True,
    )


class TestWalletAggregator:
    def test_update_creates_wallet(self) -> None:
        wallets = WalletAggregator()
        wallet = wallets.update(A, T0)

        assert wallet.transaction_count == 1
        assert wallet.first_seen == wallet.last_seen == T0
        assert A in wallets
        assert len(wallets) == 1

    def test_window_tracks_min_and_max(self) -> None:
        wallets = WalletAggregator()
        wallets.update(A, T0 + timedelta(hours=2))
        wallets.update(A, T0)
        wallets.update(A, T0 + timedelta(hours=1))

        wallet = wallets.get(A)
        assert wallet is not None
        assert wallet.first_seen == T0
        assert wallet.last_seen == T0 + timedelta(hours=2)
        assert wallet.transaction_count == 3

    def test_first_seen_never_after_last_seen(self) -> None:
        rng = random.Random(7)
        wallets = WalletAggregator()
        for _ in range(200):
            wallets.update(A, T0 + timedelta(seconds=rng.randint(-10_000, 10_000)))
            wallet = wallets.get(A)
            assert wallet is not None
            assert wallet.first_seen <= wallet.last_seen

    def test_record_updates_both_endpoints(self) -> None:
        wallets = WalletAggregator()
        events = [transfer(A, B), transfer(B, C), transfer(A, C)]
        for event in events:
            wallets.record(event)

        assert wallets.total_transaction_count() == 2 * len(events)
        assert wallets.get(A).transaction_count == 2
        assert wallets.get(A).total_amount == Decimal("2")

    def test_top_active_orders_by_count_then_address(self) -> None:
        wallets = WalletAggregator()
        wallets.record(transfer(A, B))
        wallets.record(transfer(C, B))

        assert [w.address for w in wallets.top_active(2)] == [B, A]
        assert wallets.top_active(0) == []

    def test_wallet_not_enriched_by_default(self) -> None:
        wallets = WalletAggregator()
        assert wallets.update(A, T0).is_enriched is False


class TestEdgeCollector:
    def test_append_keeps_duplicates_in_order(self) -> None:
        edges = EdgeCollector()
        first = transfer(A, B, digest="same")
        edges.append(first)
        edges.append(first)
        edges.append(transfer(B, A, digest="other"))

        assert len(edges) == 3
        assert [e.tx_hash for e in edges] == ["same", "same", "other"]
        assert edges.edges[0] is first
