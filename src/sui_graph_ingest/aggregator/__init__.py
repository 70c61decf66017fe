"""In-memory aggregation of transfer events."""

from sui_graph_ingest.aggregator.edges import EdgeCollector
from sui_graph_ingest.aggregator.enrichment import WalletEnricher
from sui_graph_ingest.aggregator.wallets import Wallet, WalletAggregator

__all__ = [
    "EdgeCollector",
    "Wallet",
    "WalletAggregator",
    "WalletEnricher",
]
