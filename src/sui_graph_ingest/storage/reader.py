"""Read queries against the ingested graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sui_graph_ingest.ingestor.models import normalize_address
from sui_graph_ingest.storage.gateway import NebulaGatewayClient
from sui_graph_ingest.storage.nql import quote, use
from sui_graph_ingest.storage.schema import RELATED_EDGE, TRANSACTION_EDGE, WALLET_TAG

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphStats:
    total_addresses: int
    total_transactions: int
    related_groups: int

    def to_dict(self) -> dict[str, int]:
        return {
            "totalAddresses": self.total_addresses,
            "totalTransactions": self.total_transactions,
            "relatedGroups": self.related_groups,
        }


@dataclass(frozen=True)
class RelatedAccount:
    address: str
    relationship_score: float
    common_transactions: int
    total_amount: Decimal
    relationship_type: str

    def to_dict(self) -> dict[str, object]:
        return {
            "address": self.address,
            "relationshipScore": self.relationship_score,
            "commonTransactions": self.common_transactions,
            "totalAmount": str(self.total_amount),
            "relationshipType": self.relationship_type,
        }


class GraphReader:
    """Summary and neighbourhood queries over the ingestion space."""

    def __init__(self, gateway: NebulaGatewayClient, *, space: str = "sui_analysis") -> None:
        self._gateway = gateway
        self._space = space

    async def _count(self, statement: str) -> int:
        result = await self._gateway.execute(use(self._space, statement))
        return int(result.scalar(default=0) or 0)

    async def stats(self) -> GraphStats:
        """Count wallets, transaction edges and relationship edges."""
        return GraphStats(
            total_addresses=await self._count(f"MATCH (n:{WALLET_TAG}) RETURN count(n) AS count"),
            total_transactions=await self._count(
                f"MATCH ()-[e:{TRANSACTION_EDGE}]->() RETURN count(e) AS count"
            ),
            related_groups=await self._count(
                f"MATCH ()-[r:{RELATED_EDGE}]->() RETURN count(r) AS count"
            ),
        )

    async def related_accounts(self, address: str, limit: int = 20) -> list[RelatedAccount]:
        """Wallets sharing a relationship edge with ``address``, strongest first.

        Raises:
            ValueError: If ``address`` is not a Sui address or ``limit < 1``.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        vid = normalize_address(address)
        statement = (
            f"MATCH (target:{WALLET_TAG})-[r:{RELATED_EDGE}]-(related:{WALLET_TAG}) "
            f"WHERE id(target) == {quote(vid)} "
            "RETURN related.wallet.address AS address, r.relationship_score AS score, "
            "r.common_transactions AS common_transactions, r.total_amount AS total_amount, "
            "r.relationship_type AS relationship_type "
            f"ORDER BY score DESC LIMIT {limit}"
        )
        result = await self._gateway.execute(use(self._space, statement))
        accounts = [
            RelatedAccount(
                address=str(row["address"]),
                relationship_score=float(row["score"] or 0.0),
                common_transactions=int(row["common_transactions"] or 0),
                total_amount=Decimal(str(row["total_amount"] or 0)),
                relationship_type=str(row["relationship_type"] or "unknown"),
            )
            for row in result.as_dicts()
        ]
        logger.debug("Found %d related account(s) for %s", len(accounts), vid)
        return accounts
