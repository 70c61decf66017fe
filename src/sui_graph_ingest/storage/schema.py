"""Graph space and type definitions."""

from __future__ import annotations

from dataclasses import dataclass

from sui_graph_ingest.storage.nql import use

WALLET_TAG = "wallet"
TRANSACTION_EDGE = "transaction"
RELATED_EDGE = "related_to"

_WALLET_COLUMNS = (
    "address string NOT NULL, first_seen datetime, last_seen datetime, "
    "transaction_count int DEFAULT 0, total_amount double DEFAULT 0.0, "
    "is_contract bool DEFAULT false"
)
_WALLET_ENHANCED_COLUMNS = (
    ", sui_balance double DEFAULT 0.0, owned_objects_count int DEFAULT 0, last_activity datetime"
)

_TRANSACTION_COLUMNS = (
    "amount double NOT NULL, tx_timestamp datetime NOT NULL, tx_hash string NOT NULL, "
    "gas_used int DEFAULT 0, success bool DEFAULT true"
)
_TRANSACTION_ENHANCED_COLUMNS = ', transaction_type string DEFAULT "unknown"'

_RELATED_COLUMNS = (
    "relationship_score double NOT NULL, common_transactions int DEFAULT 0, "
    "total_amount double DEFAULT 0.0, first_interaction datetime, last_interaction datetime, "
    'relationship_type string DEFAULT "unknown"'
)
_RELATED_ENHANCED_COLUMNS = ", avg_gas_used double DEFAULT 0.0"


@dataclass(frozen=True)
class GraphSchema:
    """Statements that (re)build the ingestion space.

    Attributes:
        space: Graph space name.
        partition_num: Space partition count.
        replica_factor: Space replica factor.
        enhanced: Whether the types carry the enrichment columns.
    """

    space: str = "sui_analysis"
    partition_num: int = 10
    replica_factor: int = 1
    enhanced: bool = False

    def drop_space(self) -> str:
        return f"DROP SPACE IF EXISTS {self.space}"

    def create_space(self) -> str:
        return (
            f"CREATE SPACE IF NOT EXISTS {self.space} "
            f"(partition_num = {self.partition_num}, replica_factor = {self.replica_factor}, "
            "vid_type = FIXED_STRING(64))"
        )

    def create_wallet_tag(self) -> str:
        columns = _WALLET_COLUMNS + (_WALLET_ENHANCED_COLUMNS if self.enhanced else "")
        return use(self.space, f"CREATE TAG IF NOT EXISTS {WALLET_TAG} ({columns})")

    def create_transaction_edge(self) -> str:
        columns = _TRANSACTION_COLUMNS + (_TRANSACTION_ENHANCED_COLUMNS if self.enhanced else "")
        return use(self.space, f"CREATE EDGE IF NOT EXISTS {TRANSACTION_EDGE} ({columns})")

    def create_related_edge(self) -> str:
        columns = _RELATED_COLUMNS + (_RELATED_ENHANCED_COLUMNS if self.enhanced else "")
        return use(self.space, f"CREATE EDGE IF NOT EXISTS {RELATED_EDGE} ({columns})")

    def type_statements(self) -> list[str]:
        """The ``IF NOT EXISTS`` type statements, safe to run repeatedly."""
        return [
            self.create_wallet_tag(),
            self.create_transaction_edge(),
            self.create_related_edge(),
        ]
