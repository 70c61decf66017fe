"""Chain ingestion layer - Sui full node access and transfer decoding."""

from sui_graph_ingest.ingestor.chain import RpcError, SuiClient, SuiClientError
from sui_graph_ingest.ingestor.decoder import DecodeError, TransferDecoder
from sui_graph_ingest.ingestor.models import (
    Checkpoint,
    DecodeOutcome,
    InputIndex,
    LiteralAddress,
    RecipientRef,
    SkipReason,
    TransferEvent,
    TransferKind,
    normalize_address,
)

__all__ = [
    "Checkpoint",
    "DecodeError",
    "DecodeOutcome",
    "InputIndex",
    "LiteralAddress",
    "RecipientRef",
    "RpcError",
    "SkipReason",
    "SuiClient",
    "SuiClientError",
    "TransferDecoder",
    "TransferEvent",
    "TransferKind",
    "normalize_address",
]
