"""Command-line entry point.

Usage:
    python -m sui_graph_ingest ingest --checkpoints 10 [--rpc-url URL] [--enhanced]
    python -m sui_graph_ingest stats
    python -m sui_graph_ingest related ADDRESS [--limit N]
    python -m sui_graph_ingest health [--rpc-url URL]

``ingest`` writes the progress feed to stdout as newline-delimited JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from typing import TextIO

from pydantic import ValidationError

from sui_graph_ingest.config import Settings, get_settings
from sui_graph_ingest.ingestor.chain import SuiClient
from sui_graph_ingest.locking import RunInProgressError
from sui_graph_ingest.pipeline import IngestionPipeline, PipelineState
from sui_graph_ingest.progress import ProgressEventType
from sui_graph_ingest.storage.gateway import NebulaGatewayClient, StoreError
from sui_graph_ingest.storage.reader import GraphReader

logger = logging.getLogger("sui_graph_ingest")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sui_graph_ingest",
        description="Ingest Sui transfers into a NebulaGraph wallet graph",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Rebuild the graph from recent checkpoints")
    ingest.add_argument("--checkpoints", type=int, default=None, help="Number of checkpoints")
    ingest.add_argument("--rpc-url", default=None, help="Sui full node JSON-RPC URL")
    ingest.add_argument(
        "--enhanced",
        action="store_true",
        help="Fetch balance and object details for the most active wallets",
    )

    subparsers.add_parser("stats", help="Count wallets and edges in the graph")

    related = subparsers.add_parser("related", help="List wallets related to an address")
    related.add_argument("address", help="Sui address (with or without 0x)")
    related.add_argument("--limit", type=int, default=20, help="Maximum results")

    health = subparsers.add_parser("health", help="Check the Sui node and graph gateway")
    health.add_argument("--rpc-url", default=None, help="Sui full node JSON-RPC URL")
    return parser


async def run_ingest(settings: Settings, args: argparse.Namespace, out: TextIO) -> int:
    try:
        run_config = settings.default_run_config(
            checkpoint_count=args.checkpoints,
            rpc_url=args.rpc_url,
            enhanced_mode=args.enhanced or None,
        )
    except ValidationError as e:
        logger.error("Invalid run configuration: %s", e)
        return 2

    completed = False
    async with IngestionPipeline(settings) as pipeline:
        try:
            async for event in pipeline.stream(run_config):
                out.write(event.to_json() + "\n")
                out.flush()
                if event.type is ProgressEventType.COMPLETE:
                    completed = True
        except RunInProgressError as e:
            logger.error("%s", e)
            return 1
        return 0 if completed and pipeline.state is PipelineState.COMPLETED else 1


async def run_stats(settings: Settings, out: TextIO) -> int:
    gateway = NebulaGatewayClient(
        settings.nebula.gateway_url,
        timeout_seconds=settings.nebula.request_timeout_seconds,
        max_retries=settings.nebula.max_retries,
    )
    try:
        stats = await GraphReader(gateway, space=settings.nebula.space).stats()
    except StoreError as e:
        logger.error("Failed to read graph stats: %s", e)
        return 1
    finally:
        await gateway.aclose()
    out.write(json.dumps(stats.to_dict()) + "\n")
    return 0


async def run_related(settings: Settings, args: argparse.Namespace, out: TextIO) -> int:
    gateway = NebulaGatewayClient(
        settings.nebula.gateway_url,
        timeout_seconds=settings.nebula.request_timeout_seconds,
        max_retries=settings.nebula.max_retries,
    )
    try:
        reader = GraphReader(gateway, space=settings.nebula.space)
        accounts = await reader.related_accounts(args.address, limit=args.limit)
    except (StoreError, ValueError) as e:
        logger.error("Failed to query related accounts: %s", e)
        return 1
    finally:
        await gateway.aclose()
    for account in accounts:
        out.write(json.dumps(account.to_dict()) + "\n")
    return 0


async def run_health(settings: Settings, args: argparse.Namespace, out: TextIO) -> int:
    client = SuiClient(
        args.rpc_url or settings.sui.rpc_url,
        max_retries=1,
        retry_delay_seconds=0.0,
    )
    gateway = NebulaGatewayClient(
        settings.nebula.gateway_url,
        timeout_seconds=settings.nebula.request_timeout_seconds,
        max_retries=1,
    )
    try:
        status = {
            "sui": await client.health_check(),
            "gateway": await gateway.health_check(),
        }
    finally:
        await client.aclose()
        await gateway.aclose()
    out.write(json.dumps(status) + "\n")
    if not all(status.values()):
        logger.error("Health check failed: %s", status)
        return 1
    return 0


async def dispatch(settings: Settings, args: argparse.Namespace, out: TextIO) -> int:
    if args.command == "ingest":
        return await run_ingest(settings, args, out)
    if args.command == "stats":
        return await run_stats(settings, out)
    if args.command == "health":
        return await run_health(settings, args, out)
    return await run_related(settings, args, out)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logger.debug("Settings: %s", settings.redacted_summary())
    try:
        return asyncio.run(dispatch(settings, args, sys.stdout))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
