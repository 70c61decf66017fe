"""Ingestion pipeline orchestrator for sui-graph-ingest.

This module provides the IngestionPipeline class that wires together the
chain client, transfer decoder, aggregators, relationship scorer and graph
store writer, and reports every step through a progress feed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from redis.asyncio import Redis

from sui_graph_ingest.aggregator.edges import EdgeCollector
from sui_graph_ingest.aggregator.enrichment import WalletEnricher
from sui_graph_ingest.aggregator.wallets import WalletAggregator
from sui_graph_ingest.analysis.relationships import RelationshipClassifier, RelationshipScorer
from sui_graph_ingest.config import RunConfig, Settings, get_settings
from sui_graph_ingest.ingestor.chain import RpcError, SuiClient
from sui_graph_ingest.ingestor.decoder import DecodeError, TransferDecoder
from sui_graph_ingest.ingestor.models import Checkpoint
from sui_graph_ingest.locking import RunLock
from sui_graph_ingest.progress import ProgressEvent, ProgressReporter, band
from sui_graph_ingest.storage.gateway import NebulaGatewayClient
from sui_graph_ingest.storage.schema import GraphSchema
from sui_graph_ingest.storage.writer import GraphStoreWriter, SchemaError

logger = logging.getLogger(__name__)

CRAWL_BAND = (0, 30)
ENRICHMENT_BAND = (30, 40)

SuiClientFactory = Callable[[str], SuiClient]


class PipelineState(str, Enum):
    """Ingestion run lifecycle states."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    CRAWLING = "crawling"
    ENRICHING = "enriching"
    SCORING = "scoring"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineCancelledError(Exception):
    """Raised inside a run when cancellation was requested."""


@dataclass
class PipelineStats:
    """Statistics for one ingestion run."""

    started_at: datetime | None = None
    finished_at: datetime | None = None
    checkpoints_processed: int = 0
    checkpoints_failed: int = 0
    transactions_processed: int = 0
    transactions_failed: int = 0
    transfers_extracted: int = 0
    unresolved_commands: int = 0
    wallets_enriched: int = 0
    wallets_inserted: int = 0
    wallets_failed: int = 0
    transactions_inserted: int = 0
    transactions_failed_to_insert: int = 0
    relationships_inserted: int = 0
    relationships_failed: int = 0
    last_error: str | None = None

    def summary(self) -> dict[str, int]:
        """Counts carried by the ``complete`` progress record."""
        return {
            "checkpointsProcessed": self.checkpoints_processed,
            "walletsInserted": self.wallets_inserted,
            "transactionsInserted": self.transactions_inserted,
            "relationshipsInserted": self.relationships_inserted,
        }


class IngestionPipeline:
    """Main orchestrator for one ingestion run at a time.

    Pipeline flow:
        Checkpoints -> Transactions -> Decoder -> Wallets + Edges
        -> (Enrichment) -> Relationship Scorer -> Graph Store Writer

    Example:
        ```python
        from sui_graph_ingest.config import get_settings
        from sui_graph_ingest.pipeline import IngestionPipeline

        settings = get_settings()
        pipeline = IngestionPipeline(settings)

        async for event in pipeline.stream(settings.default_run_config()):
            print(event.to_json())
        await pipeline.aclose()
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        gateway: NebulaGatewayClient | None = None,
        redis: Redis | None = None,
        client_factory: SuiClientFactory | None = None,
        run_lock: RunLock | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            gateway: Graph store client. Built from settings when omitted.
            redis: Redis client for RPC caching and the cross-process run lock.
                Built from settings when omitted and ``REDIS_URL`` is set.
            client_factory: Builds a chain client for an RPC URL.
            run_lock: Lock guarding the graph space.
        """
        self._settings = settings or get_settings()

        self._owns_gateway = gateway is None
        self._gateway = gateway or NebulaGatewayClient(
            self._settings.nebula.gateway_url,
            timeout_seconds=self._settings.nebula.request_timeout_seconds,
            max_retries=self._settings.nebula.max_retries,
        )

        self._owns_redis = False
        if redis is None and self._settings.redis.url:
            redis = Redis.from_url(self._settings.redis.url)
            self._owns_redis = True
        self._redis = redis

        self._client_factory = client_factory or self._default_client
        self._run_lock = run_lock or RunLock(
            self._settings.nebula.space,
            redis=self._redis,
            ttl_seconds=self._settings.ingest.run_lock_ttl_seconds,
        )
        self._decoder = TransferDecoder()
        self._scorer = RelationshipScorer()
        self._classifier = (
            RelationshipClassifier() if self._settings.ingest.classify_relationships else None
        )

        self._state = PipelineState.IDLE
        self._stats = PipelineStats()
        self._cancel_event = asyncio.Event()

    @property
    def state(self) -> PipelineState:
        """Current run state."""
        return self._state

    @property
    def stats(self) -> PipelineStats:
        """Statistics of the current or most recent run."""
        return self._stats

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked

    def cancel(self) -> None:
        """Request cooperative cancellation of the active run."""
        if self.is_running:
            logger.info("Cancellation requested")
        self._cancel_event.set()

    def _default_client(self, rpc_url: str) -> SuiClient:
        sui = self._settings.sui
        fallback = sui.fallback_rpc_url if sui.fallback_rpc_url != rpc_url else None
        return SuiClient(
            rpc_url,
            fallback_rpc_url=fallback,
            redis=self._redis,
            max_requests_per_second=sui.max_requests_per_second,
            max_retries=sui.max_retries,
            retry_delay_seconds=sui.retry_delay_seconds,
        )

    def _cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise PipelineCancelledError("ingestion run cancelled")

    async def _begin(self) -> None:
        await self._run_lock.acquire()
        self._cancel_event = asyncio.Event()
        self._stats = PipelineStats(started_at=datetime.now(UTC))
        self._state = PipelineState.IDLE

    async def stream(self, run_config: RunConfig | None = None) -> AsyncIterator[ProgressEvent]:
        """Run one ingestion in a background task and yield its progress feed.

        Closing the iterator early requests cancellation and waits for the
        run to stop.

        Raises:
            RunInProgressError: If another run holds the lock.
        """
        config = run_config or self._settings.default_run_config()
        await self._begin()
        reporter = ProgressReporter()
        task = asyncio.create_task(self._execute(config, reporter))
        drained = False
        try:
            async for event in reporter.stream():
                yield event
            drained = True
        finally:
            if not drained:
                self.cancel()
            await task

    async def run(
        self,
        run_config: RunConfig | None = None,
        *,
        reporter: ProgressReporter | None = None,
    ) -> PipelineStats:
        """Run one ingestion to completion or failure.

        Inspect ``state`` afterwards to tell the two apart.

        Raises:
            RunInProgressError: If another run holds the lock.
        """
        config = run_config or self._settings.default_run_config()
        await self._begin()
        await self._execute(config, reporter or ProgressReporter(streaming=False))
        return self._stats

    async def _execute(self, config: RunConfig, reporter: ProgressReporter) -> None:
        client: SuiClient | None = None
        try:
            self._state = PipelineState.INITIALIZING
            reporter.info(
                f"Starting ingestion of {config.checkpoint_count} checkpoint(s) from {config.rpc_url}"
                + (" (enhanced mode)" if config.enhanced_mode else "")
            )
            writer = self._build_writer(config, reporter)
            await writer.initialize_schema()
            self._check_cancelled()

            client = self._client_factory(config.rpc_url)
            wallets = WalletAggregator()
            edges = EdgeCollector()

            self._state = PipelineState.CRAWLING
            await self._crawl(client, config, wallets, edges, reporter)
            reporter.success(
                f"Crawl finished: {len(wallets)} wallets, {len(edges)} transfers "
                f"from {self._stats.checkpoints_processed} checkpoint(s)"
            )

            if config.enhanced_mode:
                self._state = PipelineState.ENRICHING
                enricher = WalletEnricher(
                    client,
                    top_n=self._settings.ingest.enrichment_top_n,
                    delay_seconds=self._settings.ingest.enrichment_delay_seconds,
                    progress_band=ENRICHMENT_BAND,
                )
                self._stats.wallets_enriched = await enricher.enrich(
                    wallets, reporter, should_stop=self._cancel_requested
                )
                self._check_cancelled()

            self._state = PipelineState.SCORING
            pairs = self._scorer.score(edges)
            if self._classifier is not None:
                self._classifier.apply(pairs)
            reporter.info(f"Scored {len(pairs)} relationship pair(s)")

            self._state = PipelineState.PERSISTING
            result = await writer.write_wallets(list(wallets))
            self._stats.wallets_inserted = result.inserted
            self._stats.wallets_failed = result.failed
            self._check_cancelled()

            result = await writer.write_edges(edges.edges)
            self._stats.transactions_inserted = result.inserted
            self._stats.transactions_failed_to_insert = result.failed
            self._check_cancelled()

            result = await writer.write_relationships(pairs)
            self._stats.relationships_inserted = result.inserted
            self._stats.relationships_failed = result.failed
            self._check_cancelled()

            self._stats.finished_at = datetime.now(UTC)
            self._state = PipelineState.COMPLETED
            reporter.progress("Ingestion complete", 100)
            reporter.complete("Ingestion complete", self._stats.summary())
            logger.info("Ingestion run completed: %s", self._stats.summary())
        except SchemaError as e:
            self._fail(reporter, f"Aborting run: {e}")
        except PipelineCancelledError:
            self._fail(reporter, "Ingestion run cancelled")
        except Exception as e:
            logger.exception("Ingestion run failed")
            self._fail(reporter, f"Ingestion run failed: {e}")
        finally:
            if client is not None:
                await client.aclose()
            reporter.close()
            await self._run_lock.release()

    def _fail(self, reporter: ProgressReporter, message: str) -> None:
        self._state = PipelineState.FAILED
        self._stats.finished_at = datetime.now(UTC)
        self._stats.last_error = message
        reporter.error(message)

    def _build_writer(self, config: RunConfig, reporter: ProgressReporter) -> GraphStoreWriter:
        nebula = self._settings.nebula
        schema = GraphSchema(
            space=nebula.space,
            partition_num=nebula.partition_num,
            replica_factor=nebula.replica_factor,
            enhanced=config.enhanced_mode,
        )
        return GraphStoreWriter(
            self._gateway,
            reporter,
            schema=schema,
            settle_seconds=nebula.schema_settle_seconds,
            should_stop=self._cancel_requested,
        )

    async def _crawl(
        self,
        client: SuiClient,
        config: RunConfig,
        wallets: WalletAggregator,
        edges: EdgeCollector,
        reporter: ProgressReporter,
    ) -> None:
        latest = await client.latest_checkpoint()
        start = max(0, latest - config.checkpoint_count + 1)
        total = latest - start + 1
        reporter.info(f"Latest checkpoint is {latest}; crawling {start}-{latest}")

        for i, sequence_number in enumerate(range(start, latest + 1)):
            self._check_cancelled()
            try:
                checkpoint = await client.get_checkpoint(sequence_number)
            except RpcError as e:
                self._stats.checkpoints_failed += 1
                reporter.error(f"Failed to fetch checkpoint {sequence_number}: {e}")
            else:
                await self._process_checkpoint(client, checkpoint, wallets, edges, reporter)
                self._stats.checkpoints_processed += 1

            reporter.progress(
                f"Processed checkpoint {sequence_number} ({i + 1}/{total})",
                band(CRAWL_BAND[0], CRAWL_BAND[1], i + 1, total),
            )

    async def _process_checkpoint(
        self,
        client: SuiClient,
        checkpoint: Checkpoint,
        wallets: WalletAggregator,
        edges: EdgeCollector,
        reporter: ProgressReporter,
    ) -> None:
        for digest in checkpoint.transaction_digests:
            self._check_cancelled()
            try:
                tx = await client.get_transaction_block(digest)
                outcome = self._decoder.decode(tx, digest=digest, timestamp=checkpoint.timestamp)
            except (RpcError, DecodeError) as e:
                self._stats.transactions_failed += 1
                reporter.warning(f"Failed to process transaction {digest}: {e}")
                continue
            except Exception as e:
                self._stats.transactions_failed += 1
                logger.exception("Unexpected error decoding transaction %s", digest)
                reporter.warning(f"Skipping transaction {digest}: {e}")
                continue

            self._stats.transactions_processed += 1
            for skipped in outcome.unresolved:
                self._stats.unresolved_commands += 1
                reporter.warning(
                    f"Transaction {digest}: could not resolve recipient of "
                    f"{skipped.kind.value} command #{skipped.command_index}"
                )
            for event in outcome.events:
                wallets.record(event)
                edges.append(event)
            self._stats.transfers_extracted += len(outcome.events)

    async def aclose(self) -> None:
        """Release owned connections."""
        if self._owns_gateway:
            await self._gateway.aclose()
        if self._owns_redis and self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def __aenter__(self) -> IngestionPipeline:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
