"""Enhanced-mode wallet enrichment (bounded to the most active wallets).

Balance, owned-object count and the contract flag each cost a full node round
trip, so only the top-N wallets by transfer count are looked up.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from sui_graph_ingest.ingestor.chain import RpcError
from sui_graph_ingest.ingestor.models import to_rpc_address
from sui_graph_ingest.progress import ProgressReporter, band

if TYPE_CHECKING:
    from collections.abc import Callable

    from sui_graph_ingest.aggregator.wallets import Wallet, WalletAggregator
    from sui_graph_ingest.ingestor.chain import SuiClient

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 20


class WalletEnricher:
    """Fetches balance/object-count/contract-flag for the top-N wallets."""

    def __init__(
        self,
        client: SuiClient,
        *,
        top_n: int = DEFAULT_TOP_N,
        delay_seconds: float = 0.0,
        progress_band: tuple[int, int] = (30, 40),
    ) -> None:
        self._client = client
        self._top_n = top_n
        self._delay = delay_seconds
        self._band = progress_band

    async def enrich_wallet(self, wallet: Wallet) -> None:
        """Populate one wallet's enrichment fields.

        Raises:
            RpcError: If any of the lookups fails.
        """
        wallet.sui_balance = await self._client.get_balance(wallet.address)
        wallet.owned_objects_count = await self._client.get_owned_objects_count(wallet.address)
        wallet.is_contract = await self._client.is_contract(wallet.address)
        wallet.last_activity = wallet.last_seen
        logger.debug("Enriched wallet %s", wallet.address)

    async def enrich(
        self,
        wallets: WalletAggregator,
        reporter: ProgressReporter,
        *,
        should_stop: Callable[[], bool] | None = None,
    ) -> int:
        """Enrich the most active wallets, reporting through ``reporter``.

        Lookup failures are reported as warnings and skipped.

        Returns:
            Number of wallets successfully enriched.
        """
        selected = wallets.top_active(self._top_n)
        if not selected:
            return 0

        reporter.info(f"Enhanced mode: fetching details for {len(selected)} most active wallets")
        enriched = 0
        for i, wallet in enumerate(selected):
            if should_stop is not None and should_stop():
                break
            display = to_rpc_address(wallet.address)
            try:
                await self.enrich_wallet(wallet)
                enriched += 1
                reporter.info(
                    f"Wallet {i + 1}/{len(selected)} {display[:12]}...: "
                    f"balance {wallet.sui_balance:.2f} SUI, objects {wallet.owned_objects_count}, "
                    f"contract {wallet.is_contract}"
                )
            except RpcError as e:
                reporter.warning(f"Failed to fetch details for wallet {display}: {e}")

            reporter.progress(
                f"Fetched wallet details {i + 1}/{len(selected)}",
                band(self._band[0], self._band[1], i + 1, len(selected)),
            )
            if self._delay and i < len(selected) - 1:
                await asyncio.sleep(self._delay)

        reporter.success(f"Fetched details for {enriched}/{len(selected)} wallets")
        return enriched
