"""Graph store writer: schema rebuild and per-record persistence.

Each record is written with its own statement. A failed record is counted,
logged and reported as a warning, and the batch moves on; only schema
initialization failures abort a run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from sui_graph_ingest.aggregator.wallets import Wallet
from sui_graph_ingest.analysis.relationships import RelationshipPair
from sui_graph_ingest.ingestor.models import TransferEvent, to_rpc_address
from sui_graph_ingest.progress import ProgressReporter, band
from sui_graph_ingest.storage import nql
from sui_graph_ingest.storage.gateway import NebulaGatewayClient, StoreError
from sui_graph_ingest.storage.schema import GraphSchema

logger = logging.getLogger(__name__)

T = TypeVar("T")

WALLET_BAND = (40, 60)
EDGE_BAND = (60, 80)
RELATIONSHIP_BAND = (80, 95)

# Progress records per batch, at most.
_PROGRESS_STEPS = 50


class SchemaError(StoreError):
    """Raised when the graph space or its types cannot be (re)created."""


@dataclass(frozen=True)
class WriteResult:
    """Outcome of one batch write."""

    attempted: int = 0
    inserted: int = 0
    failed: int = 0


class GraphStoreWriter:
    """The only component that mutates the graph store."""

    def __init__(
        self,
        gateway: NebulaGatewayClient,
        reporter: ProgressReporter,
        *,
        schema: GraphSchema | None = None,
        settle_seconds: float = 3.0,
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        self._gateway = gateway
        self._reporter = reporter
        self._schema = schema or GraphSchema()
        self._settle_seconds = settle_seconds
        self._should_stop = should_stop

    @property
    def schema(self) -> GraphSchema:
        return self._schema

    @property
    def space(self) -> str:
        return self._schema.space

    async def initialize_schema(self) -> None:
        """Drop and recreate the space, then create its types.

        Raises:
            SchemaError: If any schema statement fails.
        """
        schema = self._schema
        try:
            self._reporter.info(f"Dropping graph space {schema.space}")
            await self._gateway.execute(schema.drop_space())
            self._reporter.info(f"Creating graph space {schema.space}")
            await self._gateway.execute(schema.create_space())
            if self._settle_seconds > 0:
                self._reporter.info(
                    f"Waiting {self._settle_seconds:g}s for space {schema.space} to become available"
                )
                await asyncio.sleep(self._settle_seconds)
            await self.create_types()
        except StoreError as e:
            logger.error("Schema initialization failed: %s", e)
            raise SchemaError(f"schema initialization failed: {e}") from e

        mode = "enhanced" if schema.enhanced else "basic"
        self._reporter.success(f"Graph schema ready ({mode} mode)")

    async def create_types(self) -> None:
        """Create the wallet tag and both edge types if they do not exist."""
        for statement in self._schema.type_statements():
            await self._gateway.execute(statement)

    async def write_wallets(self, wallets: Sequence[Wallet]) -> WriteResult:
        self._reporter.info(f"Inserting {len(wallets)} wallets")
        return await self._write_batch(
            wallets,
            lambda w: nql.insert_wallet(self.space, w, enhanced=self._schema.enhanced),
            describe=lambda w: f"wallet {to_rpc_address(w.address)}",
            label="wallets",
            progress_band=WALLET_BAND,
        )

    async def write_edges(self, edges: Sequence[TransferEvent]) -> WriteResult:
        self._reporter.info(f"Inserting {len(edges)} transaction edges")
        return await self._write_batch(
            edges,
            lambda e: nql.insert_transaction(self.space, e, enhanced=self._schema.enhanced),
            describe=lambda e: f"transaction {e.tx_hash} ({e.src[:8]} -> {e.dst[:8]})",
            label="transaction edges",
            progress_band=EDGE_BAND,
        )

    async def write_relationships(self, pairs: Sequence[RelationshipPair]) -> WriteResult:
        self._reporter.info(f"Inserting {len(pairs)} relationship edges")
        return await self._write_batch(
            pairs,
            lambda p: nql.insert_relationship(self.space, p, enhanced=self._schema.enhanced),
            describe=lambda p: f"relationship {p.src[:8]} <-> {p.dst[:8]}",
            label="relationship edges",
            progress_band=RELATIONSHIP_BAND,
        )

    async def _write_batch(
        self,
        records: Sequence[T],
        render: Callable[[T], str],
        *,
        describe: Callable[[T], str],
        label: str,
        progress_band: tuple[int, int],
    ) -> WriteResult:
        total = len(records)
        step = max(1, total // _PROGRESS_STEPS)
        attempted = inserted = failed = 0

        for i, record in enumerate(records):
            if self._should_stop is not None and self._should_stop():
                logger.info("Stopping %s write after %d/%d records", label, attempted, total)
                break
            attempted += 1
            try:
                await self._gateway.execute(render(record))
                inserted += 1
            except (StoreError, ValueError) as e:
                failed += 1
                self._reporter.warning(f"Failed to insert {describe(record)}: {e}")

            if (i + 1) % step == 0 or i + 1 == total:
                self._reporter.progress(
                    f"Inserted {inserted}/{total} {label}",
                    band(progress_band[0], progress_band[1], i + 1, total),
                )

        result = WriteResult(attempted=attempted, inserted=inserted, failed=failed)
        self._reporter.success(f"Inserted {inserted}/{total} {label} ({failed} failed)")
        return result
