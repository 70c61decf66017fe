"""Per-wallet summary statistics folded from transfer events."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sui_graph_ingest.ingestor.models import TransferEvent


@dataclass
class Wallet:
    """One address observed in the ingested window.

    Attributes:
        address: Normalized address (the store's vertex id).
        first_seen: Earliest timestamp the wallet took part in a transfer.
        last_seen: Latest timestamp the wallet took part in a transfer.
        transaction_count: Accepted transfers with this wallet as an endpoint.
        total_amount: Accumulated transfer value in SUI.
        is_contract: Whether the address owns published packages (enhanced mode).
        sui_balance: Current SUI balance (enhanced mode, top-N only).
        owned_objects_count: Owned objects on the first page (enhanced mode, top-N only).
        last_activity: Latest activity timestamp (enhanced mode, top-N only).
    """

    address: str
    first_seen: datetime
    last_seen: datetime
    transaction_count: int = 0
    total_amount: Decimal = Decimal("0")
    is_contract: bool = False
    sui_balance: Decimal | None = None
    owned_objects_count: int | None = None
    last_activity: datetime | None = None

    @property
    def is_enriched(self) -> bool:
        return self.sui_balance is not None


class WalletAggregator:
    """Mutable map of normalized address -> Wallet.

    Callers pass already-normalized addresses; the aggregator does not
    normalize.
    """

    def __init__(self) -> None:
        self._wallets: dict[str, Wallet] = {}

    def update(self, address: str, timestamp: datetime, amount: Decimal = Decimal("0")) -> Wallet:
        """Fold one appearance of ``address`` at ``timestamp`` into its record."""
        wallet = self._wallets.get(address)
        if wallet is None:
            wallet = Wallet(address=address, first_seen=timestamp, last_seen=timestamp)
            self._wallets[address] = wallet
        else:
            wallet.first_seen = min(wallet.first_seen, timestamp)
            wallet.last_seen = max(wallet.last_seen, timestamp)
        wallet.transaction_count += 1
        wallet.total_amount += amount
        return wallet

    def record(self, event: TransferEvent) -> None:
        """Fold a transfer into both of its endpoints."""
        self.update(event.src, event.timestamp, event.amount)
        self.update(event.dst, event.timestamp, event.amount)

    def get(self, address: str) -> Wallet | None:
        return self._wallets.get(address)

    def top_active(self, n: int) -> list[Wallet]:
        """Return the ``n`` wallets with the most transfers (ties by address)."""
        if n <= 0:
            return []
        ranked = sorted(self._wallets.values(), key=lambda w: (-w.transaction_count, w.address))
        return ranked[:n]

    def total_transaction_count(self) -> int:
        return sum(w.transaction_count for w in self._wallets.values())

    def __len__(self) -> int:
        return len(self._wallets)

    def __iter__(self) -> Iterator[Wallet]:
        return iter(list(self._wallets.values()))

    def __contains__(self, address: object) -> bool:
        return address in self._wallets
