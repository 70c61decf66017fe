"""Graph store access - NebulaGraph HTTP gateway, schema, writer and reader."""

from sui_graph_ingest.storage.gateway import (
    NebulaGatewayClient,
    QueryResult,
    StoreError,
    StoreQueryError,
    StoreTransportError,
)
from sui_graph_ingest.storage.reader import GraphReader, GraphStats, RelatedAccount
from sui_graph_ingest.storage.schema import GraphSchema
from sui_graph_ingest.storage.writer import GraphStoreWriter, SchemaError, WriteResult

__all__ = [
    "GraphReader",
    "GraphSchema",
    "GraphStats",
    "GraphStoreWriter",
    "NebulaGatewayClient",
    "QueryResult",
    "RelatedAccount",
    "SchemaError",
    "StoreError",
    "StoreQueryError",
    "StoreTransportError",
    "WriteResult",
]
